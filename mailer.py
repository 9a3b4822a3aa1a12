import logging
from datetime import datetime
from html import escape

import httpx

from config import settings

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


def render_email(
    title: str,
    greeting: str,
    message: str,
    button_text: str | None = None,
    button_url: str | None = None,
) -> str:
    button = ""
    if button_text and button_url:
        button = (
            '<div style="text-align: center; margin-bottom: 30px;">'
            f'<a href="{escape(button_url)}" style="background-color: #212121; color: #ffffff; '
            'text-decoration: none; padding: 12px 24px; border-radius: 6px; display: inline-block;">'
            f"{escape(button_text)}</a></div>"
        )

    return f"""
    <div style="font-family: Arial, sans-serif; background-color: #f8f9fa; padding: 40px;">
      <div style="max-width: 480px; margin: auto; background-color: #ffffff; border-radius: 8px;">
        <div style="background-color: #212121; padding: 20px; text-align: center;">
          <h1 style="color: #ffffff; font-size: 20px; margin: 0;">{escape(title)}</h1>
        </div>
        <div style="padding: 30px; color: #333333;">
          <p style="font-size: 16px;">{escape(greeting)}</p>
          <p style="font-size: 15px; line-height: 1.6;">{escape(message)}</p>
          {button}
          <p style="font-size: 13px; color: #666666;">
            If you didn't request this, you can safely ignore this email.
          </p>
        </div>
        <div style="background-color: #f1f1f1; padding: 15px; text-align: center; font-size: 12px; color: #888888;">
          &copy; {datetime.utcnow().year} Library. All rights reserved.
        </div>
      </div>
    </div>
    """


def send_email(to_email: str, subject: str, text: str, html: str | None = None) -> bool:
    """Send one message through Resend. Returns False when it was not delivered."""
    if not settings.RESEND_API_KEY or not settings.RESEND_FROM:
        logger.warning(f"Email service not configured. Skipping '{subject}' to {to_email}")
        return False

    body = {
        "from": settings.RESEND_FROM,
        "to": [to_email],
        "subject": subject,
        "text": text,
    }
    if html:
        body["html"] = html

    try:
        response = httpx.post(
            RESEND_URL,
            headers={
                "Authorization": f"Bearer {settings.RESEND_API_KEY}",
                "Content-Type": "application/json",
            },
            json=body,
            timeout=20,
        )
    except httpx.RequestError as exc:
        logger.error(f"Error while sending email to {to_email}: {exc}")
        return False

    if response.status_code not in (200, 201):
        logger.error(f"Failed to send email via Resend: {response.text}")
        return False

    logger.info(f"Email '{subject}' sent to {to_email}")
    return True
