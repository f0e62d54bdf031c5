# ezfoia/orchestrator.py
from typing import Any, Dict, Mapping, Optional, Tuple

# Import modules (not bare functions) so monkeypatching in tests works correctly
import ezfoia.connectors.stripe_billing as _stripe
import ezfoia.notifications as _notifications
from ezfoia.connectors.supabase import AuthUser
from ezfoia.errors import ForbiddenError, NotFoundError, PaymentRequired, ValidationFailed
from ezfoia.status import ASSIGNABLE_STATUSES
from ezfoia.validator import validate_request_fields
from ezfoia import monitoring
from ezfoia import db as dbmod

TAG = "SUBMIT-REQUEST"

STATUS_SUBMITTED = "submitted"
STATUS_PAYMENT_REQUIRED = "payment_required"


class SubmissionOrchestrator:
    def __init__(self, free_requests: int = 1):
        self.free_requests = free_requests

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _validated(self, raw: Mapping[str, Any]) -> Dict[str, str]:
        result = validate_request_fields(raw)
        if not result.valid:
            monitoring.inc_submission("invalid")
            raise ValidationFailed("Validation failed", details=result.errors)
        return result.data

    def _entitlement(self, user: AuthUser) -> Tuple[bool, str]:
        """(allowed, reason). First request is free, then the plan limit applies."""
        count = dbmod.count_requests_for_user(user.id)
        if count < self.free_requests:
            return True, "free"
        if not user.email:
            return False, "no_email"
        sub = _stripe.check_subscription(user.email)
        if sub.subscribed:
            limit = _stripe.request_limit(sub.product_id)
            if limit is None or count < limit:
                return True, "plan"
            return False, "plan_limit"
        return False, "not_subscribed"

    def _send_confirmation(self, user: AuthUser, request: Dict[str, Any]) -> None:
        if not user.email:
            return
        profile = dbmod.get_profile(user.id) or {}
        name = profile.get("full_name") or user.full_name or "Valued Customer"
        try:
            _notifications.send_confirmation(user.email, name, request["agency_name"],
                                             request["record_type"], request["id"])
        except Exception:
            # submission stands; the email is best effort
            monitoring.logger.exception("Confirmation email failed", extra={"request_id": request["id"]})

    def _create(self, user: AuthUser, data: Dict[str, str],
                checkout_session_id: Optional[str] = None) -> Dict[str, Any]:
        request = dbmod.create_request(user.id, data, checkout_session_id=checkout_session_id)
        dbmod.log_activity(
            user.id,
            "request_submitted",
            f"Submitted FOIA request to {request['agency_name']}",
            {"request_id": request["id"], "record_type": request["record_type"]},
        )
        monitoring.inc_submission("submitted")
        monitoring.log_step(TAG, "Request created", request_id=request["id"], user_id=user.id)
        self._send_confirmation(user, request)
        return {"status": STATUS_SUBMITTED, "request": request}

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------
    def submit(self, user: AuthUser, fields: Mapping[str, Any],
               draft_message: Optional[str] = None) -> Dict[str, Any]:
        """
        Validate, check entitlement, then persist.

        Returns {"status": "submitted", "request": {...}} or, when the user
        must pay first, {"status": "payment_required", "pending_request": {...}}
        with nothing persisted.
        """
        raw = dict(fields)
        if draft_message and draft_message.strip():
            raw["recordDescription"] = draft_message
        data = self._validated(raw)

        allowed, reason = self._entitlement(user)
        monitoring.log_step(TAG, "Entitlement checked", user_id=user.id, allowed=allowed, reason=reason)
        if not allowed:
            monitoring.inc_submission(STATUS_PAYMENT_REQUIRED)
            return {"status": STATUS_PAYMENT_REQUIRED, "pending_request": data}
        return self._create(user, data)

    def complete_paid_submission(self, user: AuthUser, pending: Mapping[str, Any],
                                 checkout_session_id: str) -> Dict[str, Any]:
        """
        Create the pending request once Stripe confirms the checkout session.
        Calling again with the same session returns the request it already paid for.
        """
        data = self._validated(pending)

        existing = dbmod.get_request_by_checkout_session(checkout_session_id)
        if existing:
            if existing["user_id"] != user.id:
                raise ForbiddenError(log_detail="checkout session belongs to another user")
            return {"status": STATUS_SUBMITTED, "request": existing}

        session = _stripe.retrieve_checkout_session(checkout_session_id)
        if session.get("status") != "complete" or session.get("payment_status") != "paid":
            monitoring.inc_submission("payment_unverified")
            raise PaymentRequired("Payment has not been completed",
                                  log_detail=f"session {checkout_session_id} status={session.get('status')} "
                                             f"payment_status={session.get('payment_status')}")
        paid_by = (_stripe.session_email(session) or "").strip().lower()
        if not user.email or paid_by != user.email.strip().lower():
            monitoring.inc_submission("payment_unverified")
            raise ForbiddenError("Payment does not belong to this account",
                                 log_detail=f"session {checkout_session_id} paid by another customer")

        try:
            return self._create(user, data, checkout_session_id=checkout_session_id)
        except dbmod.DuplicateCheckoutSession:
            # a concurrent call created it first
            return {"status": STATUS_SUBMITTED,
                    "request": dbmod.get_request_by_checkout_session(checkout_session_id)}

    def update_status(self, request_id: str, new_status: str, actor: AuthUser) -> Dict[str, Any]:
        """
        Admin transition. The status change is committed before the owner is
        notified; a failed notification is reported, never rolled back.
        """
        status = (new_status or "").strip().lower()
        if status not in ASSIGNABLE_STATUSES:
            raise ValidationFailed("Invalid status",
                                   details={"status": f"Must be one of: {', '.join(sorted(ASSIGNABLE_STATUSES))}"})

        current = dbmod.get_request(request_id)
        if not current:
            raise NotFoundError("Request not found")
        updated = dbmod.update_request_status(request_id, status)
        dbmod.log_activity(
            updated["user_id"],
            "status_changed",
            f"Request status changed from {current['status']} to {status}",
            {"request_id": request_id, "old_status": current["status"], "new_status": status,
             "changed_by": actor.id},
        )
        monitoring.log_step("UPDATE-STATUS", "Status updated", request_id=request_id,
                            old_status=current["status"], new_status=status)

        try:
            result = _notifications.notify_status_change(request_id, status, current["status"])
            notification = {"sent": True, "smsSent": result.get("smsSent", False)}
        except Exception:
            monitoring.logger.exception("Status notification failed", extra={"request_id": request_id})
            notification = {"sent": False, "error": "Notification failed"}
        return {"request": updated, "notification": notification}
