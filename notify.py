"""
Contact-form email notifications through the SendGrid HTTP API.

Sending is best effort: it runs after the submission is stored, and every
failure is logged and reported as False rather than raised.
"""

import html
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


def format_contact_email(submission: Dict[str, Any]) -> Dict[str, str]:
    name = submission.get("name", "")
    email = submission.get("email", "")
    message = submission.get("message", "")
    text = f"Name: {name}\nEmail: {email}\nMessage: {message}\n"
    body = (
        "<h3>New Contact Form Submission</h3>"
        f"<p><strong>Name:</strong> {html.escape(name)}</p>"
        f"<p><strong>Email:</strong> {html.escape(email)}</p>"
        "<p><strong>Message:</strong></p>"
        f"<p>{html.escape(message)}</p>"
    )
    return {"subject": f"New Contact Form Submission - {name}", "text": text, "html": body}


class Notifier:
    def __init__(self, settings, session: Optional[requests.Session] = None, timeout: int = 10):
        self.settings = settings
        self.session = session or requests.Session()
        self.timeout = timeout

    def send_contact_notification(self, submission: Dict[str, Any]) -> bool:
        s = self.settings
        if not s.email_configured:
            logger.warning("Email not configured; skipping notification for submission %s", submission.get("id"))
            return False

        content = format_contact_email(submission)
        payload = {
            "personalizations": [{"to": [{"email": s.contact_notify_email}], "subject": content["subject"]}],
            "from": {"email": s.email_from},
            "reply_to": {"email": submission.get("email"), "name": submission.get("name")},
            "content": [
                {"type": "text/plain", "value": content["text"]},
                {"type": "text/html", "value": content["html"]},
            ],
        }
        headers = {"Authorization": f"Bearer {s.sendgrid_api_key}", "Content-Type": "application/json"}
        try:
            resp = self.session.post(SENDGRID_URL, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException:
            logger.exception("Error sending contact notification for submission %s", submission.get("id"))
            return False

        if resp.status_code not in (200, 202):
            logger.error("Contact notification rejected: status=%s body=%s", resp.status_code, resp.text[:200])
            return False
        logger.info("Contact notification sent for submission %s", submission.get("id"))
        return True
