"""用户账号业务流程。

覆盖注册、登录、资料变更与邮箱确认；资料变更成功后统一刷新当前会话。
"""

from __future__ import annotations

import hmac
import logging
from uuid import uuid4

from storefront_api.core.errors import (
    EmailAlreadyConfirmed,
    EmailNotConfirmed,
    InvalidCredential,
    NameIsSame,
    OTPExpired,
    OTPInvalid,
    PasswordIsSame,
    UserAlreadyExists,
    UserNotFound,
    UserNotFoundInContext,
)
from storefront_api.core.passwords import PasswordHasher
from storefront_api.models.user import User
from storefront_api.schemas.session import UserSession
from storefront_api.services.mailer import ConfirmationMailer
from storefront_api.services.rate_limit import ResendCodeLimiter
from storefront_api.services.session_service import SessionService
from storefront_api.services.users import UserRepository, normalize_email

logger = logging.getLogger(__name__)


def _require_principal(principal: UserSession | None) -> UserSession:
    if principal is None:
        raise UserNotFoundInContext()
    return principal


class UserService:
    """用户账号服务，每个请求构造一次。"""

    def __init__(
        self,
        users: UserRepository,
        sessions: SessionService,
        mailer: ConfirmationMailer,
        hasher: PasswordHasher,
        resend_limiter: ResendCodeLimiter | None = None,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.mailer = mailer
        self.hasher = hasher
        self.resend_limiter = resend_limiter

    def register(self, *, name: str, email: str, password: str) -> User:
        email = normalize_email(email)
        if self.users.get_by_email(email) is not None:
            logger.warning("user already exists")
            raise UserAlreadyExists()

        password_hash = self.hasher.hash(password)
        user = User(
            id=uuid4(),
            name=name.strip(),
            username=email,
            email=email,
            password_hash=password_hash,
            email_confirmed=False,
            avatar_url="",
        )
        return self.users.create(user)

    def sign_in(self, *, email: str, password: str) -> str:
        """校验口令并创建会话。

        邮箱未确认时会话照常创建，同时发送确认验证码，并以 EmailNotConfirmed 携带令牌返回。
        """
        user = self.users.get_by_email(email)
        if user is None:
            logger.warning("sign in with unknown email")
            raise InvalidCredential()
        self.hasher.verify(user.password_hash, password)

        token = self.sessions.create_session(user)
        if not user.email_confirmed:
            logger.warning("user email not confirmed user_id=%s", user.id)
            self.mailer.send_confirmation_code(user)
            raise EmailNotConfirmed(token)

        logger.info("user signed in user_id=%s", user.id)
        return token

    def get_user_info(self, principal: UserSession | None) -> UserSession:
        return _require_principal(principal)

    def update_name(self, principal: UserSession | None, name: str) -> None:
        principal = _require_principal(principal)
        name = name.strip()
        if principal.name == name:
            raise NameIsSame()

        self.users.update_name(principal.user_id, name)
        self.sessions.renew_current_session(principal, self.users)

    def update_password(self, principal: UserSession | None, old_password: str, new_password: str) -> None:
        principal = _require_principal(principal)
        user = self.users.get_by_id(principal.user_id)
        if user is None:
            raise UserNotFound()

        self.hasher.verify(user.password_hash, old_password)
        if old_password == new_password:
            raise PasswordIsSame()

        self.users.update_password(user.id, self.hasher.hash(new_password))
        self.sessions.renew_current_session(principal, self.users)

    def resend_code(self, principal: UserSession | None, email: str | None, client_ip: str | None = None) -> None:
        """重新发送验证码；已登录时使用会话邮箱，否则使用请求中的邮箱。

        匿名请求对未注册与已确认的邮箱同样返回成功，不暴露账号是否存在。
        """
        target = principal.email if principal is not None else email
        if not target:
            raise UserNotFound()
        target = normalize_email(target)
        if self.resend_limiter is not None:
            self.resend_limiter.check(target, client_ip)

        user = self.users.get_by_email(target)
        if principal is None and (user is None or user.email_confirmed):
            logger.info("anonymous resend code skipped registered=%s", user is not None)
            return
        if user is None:
            raise UserNotFound()
        if user.email_confirmed:
            raise EmailAlreadyConfirmed()

        self.mailer.send_confirmation_code(user)

    def confirm_email(self, principal: UserSession | None, otp: str) -> None:
        principal = _require_principal(principal)
        user = self.users.get_by_id(principal.user_id)
        if user is None:
            raise UserNotFound()
        if user.email_confirmed:
            raise EmailAlreadyConfirmed()

        stored = self.sessions.get_otp(user.email)
        if not stored:
            raise OTPExpired()
        if not hmac.compare_digest(stored.encode("utf-8"), otp.encode("utf-8")):
            raise OTPInvalid()

        self.users.mark_email_confirmed(user.id)
        self.sessions.consume_otp(user.email)
        self.sessions.renew_current_session(principal, self.users)
        logger.info("email confirmed user_id=%s", user.id)
