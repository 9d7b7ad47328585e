import html
import logging
from typing import Optional

import resend

from app.core.config import get_settings

logger = logging.getLogger(__name__)

BRAND_GRADIENT = "linear-gradient(135deg, #2563eb 0%, #7c3aed 100%)"
WARNING_GRADIENT = "linear-gradient(135deg, #f97316 0%, #ea580c 100%)"

EXPIRY_SUBJECTS = {
    30: "Your Apple Wallet certificate expires in 30 days",
    7: "Your Apple Wallet certificate expires in 7 days",
    0: "Your Apple Wallet certificate has expired",
}


def _greeting(name: str | None) -> str:
    return f"Hi {html.escape(name)}," if name else "Hi there,"


def _render(title: str, body: str, cta_label: str | None = None, cta_url: str | None = None,
            gradient: str = BRAND_GRADIENT) -> str:
    """Wrap body paragraphs in the shared email layout."""
    button = ""
    if cta_label and cta_url:
        button = f"""
        <div style="text-align: center; margin: 30px 0;">
            <a href="{cta_url}"
               style="background: {gradient};
                      color: white;
                      padding: 14px 28px;
                      text-decoration: none;
                      border-radius: 8px;
                      font-weight: 600;
                      display: inline-block;">
                {cta_label}
            </a>
        </div>"""

    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: {gradient}; padding: 30px; border-radius: 10px 10px 0 0;">
        <h1 style="color: white; margin: 0; font-size: 24px;">{title}</h1>
    </div>
    <div style="background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px;">
        {body}
        {button}
    </div>
    <div style="text-align: center; padding: 20px;">
        <p style="font-size: 12px; color: #999; margin: 0;">
            The PassKit Team
        </p>
    </div>
</body>
</html>
"""


def _p(text: str) -> str:
    return f'<p style="font-size: 16px;">{text}</p>'


class EmailService:
    """Service for sending emails via Resend."""

    def __init__(self):
        settings = get_settings()
        self.api_key = settings.resend_api_key
        resend.api_key = self.api_key
        self.web_app_url = settings.web_app_url.rstrip("/")
        self.sender = settings.email_from

        # Log configuration status (without exposing full key)
        if self.api_key:
            logger.info(f"Resend configured with key: {self.api_key[:10]}...")
        else:
            logger.warning("RESEND_API_KEY is not set!")

    def _send(self, to: str, subject: str, html_content: str,
              attachments: Optional[list[dict]] = None) -> bool:
        params = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": html_content,
        }
        if attachments:
            params["attachments"] = attachments
        try:
            logger.info(f"Sending '{subject}' email to {to}")
            result = resend.Emails.send(params)
            logger.info(f"Email sent successfully: {result}")
            return True
        except Exception as e:
            logger.error(f"Failed to send '{subject}' email to {to}: {e}")
            raise

    # Account approval

    def send_account_pending(self, to: str, name: str) -> bool:
        body = _p(_greeting(name)) + _p(
            "Thanks for signing up. Your account is pending review by our team. "
            "We'll email you as soon as it has been approved."
        )
        return self._send(to, "Your PassKit account is pending approval",
                          _render("Account pending approval", body))

    def send_account_approved(self, to: str, name: str) -> bool:
        body = _p(_greeting(name)) + _p(
            "Your account has been approved. Configure Apple Wallet and Google Wallet "
            "to start designing passes."
        )
        return self._send(to, "Welcome to PassKit! Your account is approved",
                          _render("Your account is approved!", body, "Go to Dashboard", self.web_app_url))

    def send_account_rejected(self, to: str, name: str) -> bool:
        body = _p(_greeting(name)) + _p(
            "After reviewing your application we are unable to approve your account at this time. "
            "Reply to this email if you believe this is a mistake."
        )
        return self._send(to, "Your PassKit account application has been declined",
                          _render("Account application declined", body, gradient=WARNING_GRADIENT))

    # Tier progression

    def send_tier_advanced(self, to: str, name: str, tier_name: str) -> bool:
        body = _p(_greeting(name)) + _p(
            f"Your account has been upgraded to the <strong>{html.escape(tier_name)}</strong> tier."
        )
        return self._send(to, "Congratulations! Your PassKit account tier has been upgraded",
                          _render("Tier upgraded", body, "View your progress", f"{self.web_app_url}/tier"))

    def send_production_request_received(self, to: str, name: str) -> bool:
        body = _p(_greeting(name)) + _p(
            "We received your request for the Production tier. Our team will review it "
            "and get back to you shortly."
        )
        return self._send(to, "We received your Production tier request",
                          _render("Production request received", body))

    def send_admin_production_request(self, to: str, requester_name: str, requester_email: str) -> bool:
        body = _p(
            f"<strong>{html.escape(requester_name)}</strong> ({html.escape(requester_email)}) "
            "has requested the Production tier."
        )
        return self._send(to, f"New Production Tier Request: {requester_name}",
                          _render("New production request", body, "Review requests",
                                  f"{self.web_app_url}/admin/production-requests"))

    def send_production_approved(self, to: str, name: str) -> bool:
        body = _p(_greeting(name)) + _p(
            "Your Production tier request has been approved. Complete the pre-launch "
            "checklist to go live."
        )
        return self._send(to, "Your Production Tier Request Has Been Approved",
                          _render("Production approved!", body, "Open checklist", f"{self.web_app_url}/tier"))

    def send_production_rejected(self, to: str, name: str, reason: str) -> bool:
        body = _p(_greeting(name)) + _p(
            "We reviewed your Production tier request and could not approve it yet."
        ) + _p(f"<strong>Reason:</strong> {html.escape(reason)}") + _p(
            "You can address the feedback and submit a new request at any time."
        )
        return self._send(to, "Update on Your Production Tier Request",
                          _render("Production request update", body, gradient=WARNING_GRADIENT))

    def send_live_tier(self, to: str, name: str) -> bool:
        body = _p(_greeting(name)) + _p(
            "Your account is now <strong>Live</strong>. You can distribute passes to your customers."
        )
        return self._send(to, "Your PassKit Account is Now LIVE!",
                          _render("You're live!", body, "Go to Dashboard", self.web_app_url))

    # Credentials

    def send_apple_csr_instructions(self, to: str, name: str, csr_pem: bytes, renewal: bool = False) -> bool:
        """Email the CSR with the steps to obtain a Pass Type ID certificate from Apple."""
        steps = (
            "<ol>"
            "<li>Sign in to the Apple Developer portal and open Certificates, Identifiers &amp; Profiles.</li>"
            "<li>Create a Pass Type ID certificate and upload the attached signing request.</li>"
            "<li>Download the issued .cer file and upload it in PassKit.</li>"
            "</ol>"
        )
        if renewal:
            subject = "Your Apple Wallet Certificate Renewal Request"
            intro = "Your certificate is due for renewal. Attached is a new certificate signing request."
        else:
            subject = "Your Apple Wallet Certificate Signing Request"
            intro = "Attached is the certificate signing request for your Apple Wallet setup."
        body = _p(_greeting(name)) + _p(intro) + steps
        return self._send(
            to,
            subject,
            _render(subject, body, "Upload certificate", f"{self.web_app_url}/settings/certificates/apple"),
            attachments=[{"filename": "cert.certSigningRequest", "content": list(csr_pem)}],
        )

    def send_google_rotation_instructions(self, to: str, name: str) -> bool:
        steps = (
            "<ol>"
            "<li>Open the Google Cloud console for your Wallet project.</li>"
            "<li>Create a new key for the service account and download the JSON file.</li>"
            "<li>Upload the new JSON file in PassKit, then delete the old key in Google Cloud.</li>"
            "</ol>"
        )
        body = _p(_greeting(name)) + _p("Follow these steps to rotate your Google Wallet credentials.") + steps
        return self._send(
            to,
            "Google Wallet Credentials Rotation Instructions",
            _render("Rotate Google Wallet credentials", body, "Upload credentials",
                    f"{self.web_app_url}/settings/certificates/google"),
        )

    def send_certificate_expiry(self, to: str, name: str, expiry_date: str, days_remaining: int) -> bool:
        subject = EXPIRY_SUBJECTS.get(days_remaining, "Apple Wallet certificate expiry notice")
        if days_remaining <= 0:
            message = f"Your Apple Wallet certificate expired on {expiry_date}. Passes can no longer be signed until you renew it."
        else:
            message = f"Your Apple Wallet certificate expires on {expiry_date}. Renew it now to keep issuing passes."
        body = _p(_greeting(name)) + _p(message)
        return self._send(
            to,
            subject,
            _render(subject, body, "Manage certificates", f"{self.web_app_url}/settings/certificates/apple",
                    gradient=WARNING_GRADIENT),
        )


# Singleton instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create the email service singleton."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
