# ezfoia/notifications.py
"""
Status-change and confirmation notifications (email via Resend, SMS via
MessageBird). Every interpolated value is HTML-escaped.
"""

import html
import os
from typing import Any, Dict, Optional

from ezfoia import db as dbmod
from ezfoia import monitoring
from ezfoia.connectors import resend_email, sms
from ezfoia.connectors import supabase as supabase_conn
from ezfoia.errors import NotFoundError
from ezfoia.status import RequestStatus, normalize_status, status_color, status_label

SITE_URL = os.getenv("SITE_URL", "https://ezfoia.com").rstrip("/")

TAG = "NOTIFY-STATUS-CHANGE"

_STYLE = """
  body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }
  .container { max-width: 600px; margin: 0 auto; padding: 20px; }
  .header { background: linear-gradient(135deg, #14b8a6 0%, #0d9488 100%); padding: 30px; border-radius: 12px 12px 0 0; text-align: center; }
  .header h1 { color: white; margin: 0; font-size: 24px; }
  .content { background: #f8fafc; padding: 30px; border: 1px solid #e2e8f0; }
  .request-details { background: white; padding: 20px; border-radius: 8px; margin: 20px 0; border: 1px solid #e2e8f0; }
  .detail-row { display: flex; justify-content: space-between; padding: 10px 0; border-bottom: 1px solid #f1f5f9; }
  .detail-label { color: #64748b; font-size: 14px; }
  .detail-value { font-weight: 600; color: #0f172a; }
  .footer { background: #0f172a; color: #94a3b8; padding: 20px; border-radius: 0 0 12px 12px; text-align: center; font-size: 12px; }
  .cta-button { display: inline-block; background: #14b8a6; color: white; padding: 12px 24px; border-radius: 8px; text-decoration: none; font-weight: 600; margin-top: 20px; }
"""

_FOOTER = """
    <div class="footer">
      <p>&copy; 2025 EZFOIA. A ClearSightAI Company.</p>
      <p>Questions? Reply to this email or visit our help center.</p>
    </div>"""


def tracking_id(request_id: str) -> str:
    return request_id[:8].upper()


def _page(body: str) -> str:
    return (f"<!DOCTYPE html>\n<html>\n<head><style>{_STYLE}</style></head>\n<body>\n"
            f"  <div class=\"container\">\n    <div class=\"header\"><h1>EZFOIA</h1></div>\n"
            f"    <div class=\"content\">{body}\n    </div>{_FOOTER}\n  </div>\n</body>\n</html>\n")


def _detail_row(label: str, value: str, last: bool = False, value_style: str = "") -> str:
    row_style = ' style="border-bottom: none;"' if last else ""
    style = f' style="{value_style}"' if value_style else ""
    return (f'<div class="detail-row"{row_style}><span class="detail-label">{label}</span>'
            f'<span class="detail-value"{style}>{html.escape(value)}</span></div>')


def render_status_email(user_name: str, new_status: str, agency_name: str, record_type: str,
                        request_id: str) -> str:
    label = status_label(new_status)
    normalized = normalize_status(new_status)
    banner = ""
    if normalized is RequestStatus.COMPLETED:
        banner = ('<div style="background: #dcfce7; border: 1px solid #86efac; border-radius: 8px; padding: 15px; margin: 20px 0;">'
                  '<p style="margin: 0; color: #166534;"><strong>Great news!</strong> Your requested documents are '
                  'now available for download in your dashboard.</p></div>')
    elif normalized is RequestStatus.REJECTED:
        banner = ('<div style="background: #fef2f2; border: 1px solid #fecaca; border-radius: 8px; padding: 15px; margin: 20px 0;">'
                  '<p style="margin: 0; color: #991b1b;"><strong>We\'re sorry.</strong> The agency has denied this '
                  'request. Please contact our support team for assistance with next steps.</p></div>')
    link = f"{SITE_URL}/dashboard/request/{request_id}"
    body = f"""
      <h2 style="margin-top: 0;">Hello {html.escape(user_name)}!</h2>
      <p>Your FOIA request status has been updated.</p>
      <div style="text-align: center; margin: 25px 0;">
        <span style="display: inline-block; background: {status_color(new_status)}; color: white; padding: 8px 16px; border-radius: 20px; font-weight: 600; font-size: 14px;">{html.escape(label)}</span>
      </div>
      <div class="request-details">
        <h3 style="margin-top: 0; color: #0f172a;">Request Details</h3>
        {_detail_row("Agency", agency_name)}
        {_detail_row("Record Type", record_type)}
        {_detail_row("Tracking ID", tracking_id(request_id), last=True)}
      </div>
      {banner}
      <div style="text-align: center;"><a href="{html.escape(link, quote=True)}" class="cta-button">View Request Details</a></div>"""
    return _page(body)


def render_confirmation_email(name: str, agency_name: str, record_type: str, request_id: str) -> str:
    body = f"""
      <h2 style="margin-top: 0;">Hello {html.escape(name)}!</h2>
      <p>Great news! Your FOIA request has been successfully submitted. Our team will begin processing it right away.</p>
      <div style="background: #14b8a6; color: white; padding: 15px; border-radius: 8px; text-align: center; margin: 20px 0;">
        <p style="margin: 0; font-size: 12px; opacity: 0.8;">TRACKING ID</p>
        <p style="margin: 5px 0 0 0; font-size: 18px; font-weight: bold;">{html.escape(tracking_id(request_id))}</p>
      </div>
      <div class="request-details">
        <h3 style="margin-top: 0; color: #0f172a;">Request Details</h3>
        {_detail_row("Agency", agency_name)}
        {_detail_row("Record Type", record_type)}
        {_detail_row("Status", "Pending", last=True, value_style="color: #14b8a6;")}
      </div>
      <h3>What happens next?</h3>
      <ol style="color: #475569;">
        <li>Our team reviews your request for completeness</li>
        <li>We file the official FOIA request with the agency</li>
        <li>You'll receive SMS updates as your request progresses</li>
        <li>Once approved, our AI will help you search through your documents</li>
      </ol>"""
    return _page(body)


def status_sms_text(agency_name: str, new_status: str) -> str:
    follow_up = ("Your documents are ready for download!"
                 if normalize_status(new_status) is RequestStatus.COMPLETED else "Log in to view details.")
    return f'EZFOIA: Your FOIA request for {agency_name} is now "{status_label(new_status)}". {follow_up}'


def send_confirmation(to: str, name: str, agency_name: str, record_type: str, request_id: str,
                      client=None) -> Dict[str, Any]:
    monitoring.log_step("SEND-CONFIRMATION", "Sending confirmation email", request_id=request_id)
    try:
        resp = resend_email.send_email(
            to,
            "Your FOIA Request Has Been Submitted - EZFOIA",
            render_confirmation_email(name, agency_name, record_type, request_id),
            client=client,
        )
    except Exception:
        monitoring.inc_notification("email", "error")
        raise
    monitoring.inc_notification("email", "sent")
    return resp


def notify_status_change(request_id: str, new_status: str, old_status: Optional[str] = None,
                         client=None) -> Dict[str, Any]:
    """
    Email (and, when the profile opted in, text) the request owner about a
    status change. Returns {"success", "emailResponse", "smsSent"}.
    """
    monitoring.log_step(TAG, "Processing status change", request_id=request_id,
                        old_status=old_status, new_status=new_status)
    request = dbmod.get_request(request_id)
    if not request:
        raise NotFoundError("Request not found")

    profile = dbmod.get_profile(request["user_id"]) or {}
    user = supabase_conn.get_user_by_id(request["user_id"], client=client)
    if user is None:
        raise NotFoundError("User not found")
    if not user.email:
        raise NotFoundError("User email not found")

    user_name = profile.get("full_name") or user.full_name or "there"
    monitoring.log_step(TAG, "Sending notifications", has_phone=bool(profile.get("phone")))

    sms_sent = False
    if profile.get("phone") and profile.get("sms_notifications"):
        sms_sent = sms.send_sms(profile["phone"], status_sms_text(request["agency_name"], new_status), client=client)
        monitoring.inc_notification("sms", "sent" if sms_sent else "skipped")

    email_response = None
    if profile.get("email_notifications", True):
        try:
            email_response = resend_email.send_email(
                user.email,
                f"Your FOIA Request Status: {status_label(new_status)} - EZFOIA",
                render_status_email(user_name, new_status, request["agency_name"], request["record_type"], request_id),
                client=client,
            )
        except Exception:
            monitoring.inc_notification("email", "error")
            raise
        monitoring.inc_notification("email", "sent")

    monitoring.log_step(TAG, "Notifications sent", sms_sent=sms_sent, emailed=email_response is not None)
    return {"success": True, "emailResponse": email_response, "smsSent": sms_sent}
