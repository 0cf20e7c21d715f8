"""Email channel for notifications, sent through Flask-Mail."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from flask import current_app, render_template_string
from flask_mail import Mail, Message

logger = logging.getLogger(__name__)

_LAYOUT = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: {{ colour }};">{{ heading }}</h2>
  <p>お疲れ様です。</p>
  {% if intro %}<p>{{ intro }}</p>{% endif %}
  <div style="background: {{ background }}; padding: 16px; border-radius: 8px; margin: 16px 0;">
    {% for label, value in rows %}<p><strong>{{ label }}:</strong> {{ value }}</p>{% endfor %}
  </div>
  {% if footer %}<p>{{ footer }}</p>{% endif %}
</div>
"""

_DEFAULT_LAYOUT = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2>{{ title }}</h2>
  <p>{{ message }}</p>
</div>
"""

SUBJECT_PREFIX = "【賢者の精算】"


def _yen(amount: Any) -> str:
    try:
        return f"¥{int(round(float(amount or 0))):,}"
    except (TypeError, ValueError):
        return "¥0"


class EmailService:
    """Renders notification templates and sends them via Flask-Mail."""

    def __init__(self, mail: Optional[Mail] = None):
        self.mail = mail

    def send_email(self, to_email: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
        """Send one message; failures are logged and reported as False."""
        if not self.mail:
            logger.error("Mail service not initialized")
            return False

        try:
            msg = Message(
                subject=subject,
                sender=current_app.config.get("MAIL_DEFAULT_SENDER"),
                recipients=[to_email],
            )
            msg.html = html_body
            if text_body:
                msg.body = text_body
            self.mail.send(msg)
        except Exception as exc:
            logger.error(f"Failed to send email to {to_email}: {exc}")
            return False

        logger.info(f"Email sent successfully to {to_email}")
        return True

    def send_template(
        self,
        to_email: str,
        template_id: Optional[str],
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        subject, html_body, text_body = self.render(template_id, title, message, data or {})
        return self.send_email(to_email, subject, html_body, text_body)

    def render(
        self, template_id: Optional[str], title: str, message: str, data: Dict[str, Any]
    ) -> Tuple[str, str, str]:
        """Return ``(subject, html, text)`` for a template id."""
        app_title = data.get("application_title", "")
        decided_at = data.get("decided_at", "")

        if template_id == "application_approved":
            rows = [
                ("申請タイトル", app_title),
                ("金額", _yen(data.get("amount"))),
                ("承認日時", decided_at),
            ]
            html = render_template_string(
                _LAYOUT,
                colour="#059669",
                heading="申請が承認されました",
                intro="以下の申請が承認されました：",
                background="#f0f9ff",
                rows=rows,
                footer="ご確認ください。",
            )
            return f"{SUBJECT_PREFIX}申請が承認されました - {app_title}", html, self._text("申請が承認されました", rows)

        if template_id in ("application_rejected", "application_returned"):
            returned = template_id == "application_returned"
            heading = "申請が差し戻されました" if returned else "申請が否認されました"
            rows = [
                ("申請タイトル", app_title),
                ("差戻し理由" if returned else "否認理由", data.get("reason") or "理由なし"),
                ("差戻し日時" if returned else "否認日時", decided_at),
            ]
            html = render_template_string(
                _LAYOUT,
                colour="#d97706" if returned else "#dc2626",
                heading=heading,
                intro=f"以下の{heading}：",
                background="#fffbeb" if returned else "#fef2f2",
                rows=rows,
                footer="内容を修正して再申請してください。" if returned else "詳細については承認者にお問い合わせください。",
            )
            return f"{SUBJECT_PREFIX}{heading} - {app_title}", html, self._text(heading, rows)

        html = render_template_string(_DEFAULT_LAYOUT, title=title or "通知", message=message or "")
        return title or f"{SUBJECT_PREFIX}通知", html, f"{title or '通知'}\n\n{message or ''}"

    @staticmethod
    def _text(heading: str, rows) -> str:
        lines = [heading, ""] + [f"{label}: {value}" for label, value in rows]
        return "\n".join(lines)


# Global email service instance
email_service = EmailService()


def init_email_service(mail: Mail) -> None:
    """Initialize the email service with Flask-Mail instance."""
    email_service.mail = mail


def send_email(to_email: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
    return email_service.send_email(to_email, subject, html_body, text_body)
