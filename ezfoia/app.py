# ezfoia/app.py
import time
from typing import Dict

# Load .env BEFORE any ezfoia imports (they read env vars at import time)
from dotenv import load_dotenv
load_dotenv(override=True)

from fastapi import Depends, FastAPI, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse

from ezfoia import auth as authmod
from ezfoia import db as dbmod
from ezfoia import monitoring
from ezfoia.connectors import sms
from ezfoia.connectors import stripe_billing
from ezfoia.connectors.supabase import AuthUser
from ezfoia.dependencies import admin_user, current_user, get_orchestrator, rate_limit
from ezfoia.errors import ConfigurationError, EzfoiaError, ForbiddenError, NotFoundError, RateLimited
from ezfoia.notifications import notify_status_change, send_confirmation
from ezfoia.orchestrator import SubmissionOrchestrator
from ezfoia.processors import chat, documents, drafting
from ezfoia.processors.timeline import derive_timeline
from ezfoia.schemas import (
    AnalyzeDocumentRequest, ChatRequest, CompletePaidSubmissionBody, MessageStatusRequest,
    NotifyStatusChangeRequest, SendConfirmationRequest, StatusUpdateBody, SubmitRequestBody,
    WizardAnswers,
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

app = FastAPI(title="EZFOIA API")

# Initialize DB tables on startup
dbmod.init_db()

app.state.orchestrator = SubmissionOrchestrator()
app.state.rate_limiters = {
    "chat": authmod.build_limiter(20, 60, namespace="chat"),
    "subscription": authmod.build_limiter(30, 60, namespace="subscription"),
    "notify-status": authmod.build_limiter(30, 60, namespace="notify-status"),
}


# ---------------------------------------------------------------------------
# CORS middleware (answers every preflight, decorates every response)
# ---------------------------------------------------------------------------
@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


# ---------------------------------------------------------------------------
# Metrics middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.time()
    endpoint = request.url.path
    method = request.method
    status = "500"
    try:
        response = await call_next(request)
        status = str(response.status_code)
        return response
    except Exception:
        monitoring.logger.exception("Unhandled exception in request", extra={"path": endpoint})
        raise
    finally:
        monitoring.observe_request(start, endpoint, method, status)


# ---------------------------------------------------------------------------
# Error envelope: {"error": "..."}
# ---------------------------------------------------------------------------
@app.exception_handler(EzfoiaError)
async def ezfoia_error_handler(request: Request, exc: EzfoiaError):
    log = monitoring.logger.error if exc.status_code >= 500 else monitoring.logger.warning
    log("Request failed", extra={"path": request.url.path, "status": exc.status_code, "error": exc.log_detail})
    headers = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details: Dict[str, str] = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        details.setdefault(".".join(loc) or "body", err.get("msg", "Invalid value"))
    return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": details})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # runs outside the middleware stack, so the CORS headers are set here
    monitoring.logger.error("Unhandled error", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"error": "Internal server error"}, headers=CORS_HEADERS)


# ---------------------------------------------------------------------------
# Drafting / chat / documents
# ---------------------------------------------------------------------------
@app.post("/api/generate-foia")
def generate_foia(answers: WizardAnswers):
    """
    POST /api/generate-foia
    Body: WizardAnswers
    Returns: { "message": "...", "estimatedResponseTime": "...", "tips": [...] }
    """
    return drafting.draft(answers)


@app.post("/api/foia-chat", dependencies=[Depends(rate_limit("chat", "Rate limit exceeded. Please try again in a moment."))])
def foia_chat(req: ChatRequest):
    """
    POST /api/foia-chat
    Body: { "messages": [{"role": "user", "content": "..."}] }
    Streams text/event-stream chunks, terminated by `data: [DONE]`.
    """
    events = chat.start_chat_stream(req.messages)
    return StreamingResponse(events, media_type="text/event-stream",
                             headers={"Cache-Control": "no-cache"})


@app.post("/api/analyze-document")
def analyze_document(req: AnalyzeDocumentRequest, user: AuthUser = Depends(current_user)):
    return documents.analyze(user.id, req)


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------
@app.post("/api/check-subscription", dependencies=[Depends(rate_limit("subscription"))])
def check_subscription(user: AuthUser = Depends(current_user)):
    if not user.email:
        raise ConfigurationError("User email not available", log_detail=f"user {user.id} has no email")
    monitoring.log_step(stripe_billing.TAG, "User authenticated", user_id=user.id)
    return stripe_billing.check_subscription(user.email)


@app.api_route("/api/get-stripe-config", methods=["GET", "POST"])
def get_stripe_config():
    if not stripe_billing.STRIPE_PUBLISHABLE_KEY:
        raise ConfigurationError("Stripe not configured", log_detail="No publishable key configured")
    return {"publishableKey": stripe_billing.STRIPE_PUBLISHABLE_KEY}


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
@app.post("/api/notify-status-change", dependencies=[Depends(rate_limit("notify-status"))])
def notify_status_change_endpoint(req: NotifyStatusChangeRequest):
    return notify_status_change(req.requestId, req.newStatus, req.oldStatus)


@app.post("/api/send-confirmation")
def send_confirmation_endpoint(req: SendConfirmationRequest, user: AuthUser = Depends(current_user)):
    if not user.email or req.to.strip().lower() != user.email.strip().lower():
        raise ForbiddenError("Confirmation emails can only be sent to your own address")
    return send_confirmation(req.to, req.name, req.agencyName, req.recordType, req.requestId)


@app.post("/api/twilio-message-status")
def twilio_message_status(req: MessageStatusRequest, user: AuthUser = Depends(admin_user)):
    monitoring.log_step("TWILIO-MESSAGE-STATUS", "Fetching Twilio message", message_sid=req.messageSid)
    return sms.fetch_message_status(req.messageSid).model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
@app.post("/api/requests")
def create_request(body: SubmitRequestBody, user: AuthUser = Depends(current_user),
                   orchestrator: SubmissionOrchestrator = Depends(get_orchestrator)):
    """
    POST /api/requests
    201 {"status": "submitted", "request": {...}} when the caller is entitled,
    200 {"status": "payment_required", "pending_request": {...}} otherwise.
    """
    result = orchestrator.submit(user, body.model_dump(exclude={"draftMessage"}), body.draftMessage)
    return JSONResponse(status_code=201 if result["status"] == "submitted" else 200, content=result)


@app.post("/api/requests/complete")
def complete_request(body: CompletePaidSubmissionBody, user: AuthUser = Depends(current_user),
                     orchestrator: SubmissionOrchestrator = Depends(get_orchestrator)):
    result = orchestrator.complete_paid_submission(user, body.pendingRequest.model_dump(), body.checkoutSessionId)
    return JSONResponse(status_code=201, content=result)


@app.get("/api/requests/{request_id}/timeline")
def request_timeline(request_id: str = Path(..., description="Request ID to fetch"),
                     user: AuthUser = Depends(current_user)):
    rec = dbmod.get_request(request_id)
    if not rec:
        raise NotFoundError("Request not found")
    if rec["user_id"] != user.id and not dbmod.has_role(user.id, "admin"):
        raise ForbiddenError(log_detail=f"user {user.id} cannot read request {request_id}")
    return {"request": rec, "timeline": derive_timeline(rec["status"], rec["created_at"], rec["updated_at"])}


@app.patch("/api/requests/{request_id}/status")
def update_request_status(body: StatusUpdateBody, request_id: str = Path(...),
                          user: AuthUser = Depends(admin_user),
                          orchestrator: SubmissionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.update_status(request_id, body.status, user)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    if not monitoring.PROMETHEUS_ENABLED:
        return PlainTextResponse("Prometheus disabled", status_code=404)
    payload, content_type = monitoring.prometheus_metrics_response()
    return Response(content=payload, media_type=content_type)
