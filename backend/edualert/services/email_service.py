import html

import httpx
import structlog
from edualert.core.config import settings

logger = structlog.get_logger()


class EmailService:
    """
    Outbound mail through the SendGrid v3 HTTP API.

    Delivery is always best-effort: send() reports success as a bool and
    never raises, so callers can treat email as a side effect.
    """

    BASE_URL = "https://api.sendgrid.com/v3/mail/send"

    @classmethod
    def is_configured(cls) -> bool:
        return bool(settings.SENDGRID_API_KEY)

    @classmethod
    async def send(cls, to_email: str, subject: str, html: str) -> bool:
        if not cls.is_configured():
            logger.warning("email_skipped_not_configured", to=to_email, subject=subject)
            return False

        payload = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {"email": settings.SENDGRID_FROM_EMAIL, "name": settings.SENDGRID_FROM_NAME},
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
        }
        headers = {
            "Authorization": f"Bearer {settings.SENDGRID_API_KEY}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    cls.BASE_URL, headers=headers, json=payload, timeout=settings.EMAIL_TIMEOUT_SECONDS
                )
                if response.status_code >= 400:
                    logger.error("email_send_failed", to=to_email, status=response.status_code, body=response.text[:300])
                    return False
            except httpx.HTTPError as e:
                logger.error("email_send_failed", to=to_email, error=str(e))
                return False

        logger.info("email_sent", to=to_email, subject=subject)
        return True


# Templates. Every interpolated value except settings goes through _esc.

def _esc(value) -> str:
    return html.escape(str(value if value is not None else ""))

def _escaped(context: dict) -> dict:
    return {key: _esc(value) for key, value in context.items()}

def _layout(title: str, body: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <div style="background: #1e40af; color: white; padding: 20px; border-radius: 8px 8px 0 0;">
        <h1 style="margin: 0; font-size: 22px;">EduAlert</h1>
        <p style="margin: 5px 0 0 0;">Ministry of Education - {title}</p>
      </div>
      <div style="background: white; padding: 20px; border: 1px solid #e5e7eb; border-top: none;">
        {body}
      </div>
      <p style="color: #6b7280; font-size: 12px; text-align: center;">
        This is an automated notification from the EduAlert system.
      </p>
    </div>
    """

def verification_email(full_name: str, code: str) -> str:
    full_name = _esc(full_name)
    return _layout("Email Verification", f"""
        <p>Hello {full_name},</p>
        <p>Your verification code is: <strong>{code}</strong></p>
        <p>This code will expire in {settings.OTP_EXPIRY_MINUTES} minutes.</p>
        <p>After verification an administrator must approve your account before you can sign in.</p>
    """)

def password_reset_email(full_name: str, code: str) -> str:
    full_name = _esc(full_name)
    return _layout("Password Reset", f"""
        <p>Hello {full_name},</p>
        <p>You requested a password reset for your EduAlert account.</p>
        <p>Your reset code is: <strong>{code}</strong></p>
        <p>This code will expire in {settings.RESET_CODE_EXPIRY_MINUTES} minutes.</p>
        <p>If you did not request this reset, please ignore this email.</p>
    """)

def new_report_email(context: dict) -> str:
    context = _escaped(context)
    return _layout("Teacher Absence Report", f"""
        <p><strong>New report requires investigation</strong></p>
        <table style="width: 100%; border-collapse: collapse;">
          <tr><td><strong>Reference:</strong></td><td>{context['reference_number']}</td></tr>
          <tr><td><strong>School:</strong></td><td>{context['school_name']}</td></tr>
          <tr><td><strong>Teacher:</strong></td><td>{context['teacher_name']}</td></tr>
          <tr><td><strong>Region:</strong></td><td>{context['region_name']}</td></tr>
          <tr><td><strong>School Level:</strong></td><td>{context['school_level_name']}</td></tr>
        </table>
        <p>{context['description']}</p>
        <p><a href="{settings.APP_URL}/reports/{context['report_id']}">View Report Details</a></p>
        <p style="font-size: 13px;">This report has been automatically reviewed and approved for investigation.</p>
    """)

def assignment_email(officer_name: str, context: dict) -> str:
    officer_name = _esc(officer_name)
    context = _escaped(context)
    return _layout("Report Assignment", f"""
        <p>Hello {officer_name},</p>
        <p>You have been assigned to report <strong>{context['reference_number']}</strong>
           at {context['school_name']} (teacher: {context['teacher_name']}).</p>
        <p><a href="{settings.APP_URL}/reports/{context['report_id']}">View Report Details</a></p>
    """)
