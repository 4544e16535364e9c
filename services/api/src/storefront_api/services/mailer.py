"""邮箱确认验证码投递。"""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING

import resend

from storefront_api.core.otp import OTPEngine
from storefront_api.services.session_service import SessionService

if TYPE_CHECKING:
    from storefront_api.models.user import User

logger = logging.getLogger(__name__)

_SUBJECT = "Your confirmation code"


def render_otp_email(name: str, code: str, ttl_minutes: int) -> str:
    """渲染验证码邮件正文。"""
    return f"""
    <div style="font-family:Arial,sans-serif;line-height:1.5">
      <h2>Hi {html.escape(name)},</h2>
      <p>Use the code below to confirm your email address.</p>
      <p style="font-size:28px;letter-spacing:6px;font-weight:bold">{code}</p>
      <p style="color:#666;font-size:12px">The code expires in {ttl_minutes} minutes.
      If you didn't create this account, ignore this email.</p>
    </div>
    """


class ConfirmationMailer:
    """生成验证码、写入会话存储并通过 Resend 投递。

    关闭投递（mail_enabled=False）时仍会写入验证码，只跳过发送，便于本地联调。
    """

    def __init__(
        self,
        sessions: SessionService,
        otp_engine: OTPEngine,
        *,
        enabled: bool,
        api_key: str | None,
        sender: str,
    ) -> None:
        if enabled and not api_key:
            raise ValueError("resend_api_key is required when mail delivery is enabled")
        self.sessions = sessions
        self.otp_engine = otp_engine
        self.enabled = enabled
        self.api_key = api_key
        self.sender = sender

    def send_confirmation_code(self, user: "User") -> None:
        logger.info("sending confirmation code user_id=%s", user.id)
        secret = self.otp_engine.generate_secret(user.email)
        code = self.otp_engine.generate_numeric_code(secret)
        self.sessions.save_otp(user.email, code)

        body = render_otp_email(user.name, code, self.sessions.otp_ttl_seconds // 60)
        self.deliver(user.email, _SUBJECT, body)

    def deliver(self, to_email: str, subject: str, body: str) -> None:
        if not self.enabled:
            logger.info("mail delivery disabled, skipping confirmation email")
            return

        resend.api_key = self.api_key
        sent = resend.Emails.send(
            {
                "from": self.sender,
                "to": [to_email],
                "subject": subject,
                "html": body,
            }
        )
        logger.info("confirmation email sent email_id=%s", sent.get("id") if isinstance(sent, dict) else None)
