"""登录会话服务。

用户会话状态流转：
匿名 -> 已认证（会话写入存储）-> 已续期（资料变更后刷新冗余字段）-> 过期/失效（TTL 到期或被新登录覆盖）-> 匿名。

同一用户只保留一个有效会话：新登录覆盖旧会话后，旧令牌虽然签名仍然有效，
但与存储中的令牌不一致，会被拒绝。并发登录按存储“后写覆盖”处理。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from storefront_api.core.errors import (
    OTPNotFound,
    TokenInvalid,
    UserNotFound,
    UserNotFoundInContext,
)
from storefront_api.core.security import TokenCodec, VerifiedClaims
from storefront_api.schemas.session import UserSession
from storefront_api.services.session_store import SessionStore

if TYPE_CHECKING:
    from storefront_api.models.user import User
    from storefront_api.services.users import UserRepository

logger = logging.getLogger(__name__)


def _session_from_user(user: "User", token: str) -> UserSession:
    return UserSession(
        token=token,
        user_id=user.id,
        name=user.name,
        email=user.email,
        avatar_url=user.avatar_url or "",
    )


class SessionService:
    """编排令牌签发、会话解析、续期与验证码读写。"""

    def __init__(
        self,
        store: SessionStore,
        codec: TokenCodec,
        *,
        session_ttl_seconds: int,
        otp_ttl_seconds: int,
    ) -> None:
        self.store = store
        self.codec = codec
        self.session_ttl_seconds = session_ttl_seconds
        self.otp_ttl_seconds = otp_ttl_seconds

    def create_session(self, user: "User") -> str:
        """签发令牌并以完整 TTL 写入会话，覆盖该用户已有会话。"""
        logger.info("creating session user_id=%s", user.id)
        token = self.codec.sign(user_id=user.id, name=user.name, email=user.email, avatar_url=user.avatar_url)
        self.store.put_session(user.id, _session_from_user(user, token), self.session_ttl_seconds)
        return token

    def resolve_session(self, token: str, claims: VerifiedClaims) -> UserSession:
        """按已验签声明中的用户 ID 查找会话，并校验出示令牌与存储令牌一致。"""
        if not isinstance(claims, VerifiedClaims):
            raise TypeError("resolve_session requires signature-verified claims")

        session = self.store.get_session(claims.user_id)
        if session.token != token:
            logger.warning("session token mismatch user_id=%s", claims.user_id)
            raise TokenInvalid()
        return session

    def renew_current_session(self, principal: UserSession | None, users: "UserRepository") -> None:
        """资料变更后刷新会话中的冗余字段，令牌与剩余 TTL 均保持不变。"""
        if principal is None:
            raise UserNotFoundInContext()

        user = users.get_by_id(principal.user_id)
        if user is None:
            logger.error("user vanished during session renewal user_id=%s", principal.user_id)
            raise UserNotFound()

        self.store.renew_session(user.id, _session_from_user(user, principal.token))
        logger.info("session renewed user_id=%s", user.id)

    def save_otp(self, email: str, code: str) -> None:
        self.store.put_otp(email, code, self.otp_ttl_seconds)
        logger.info("otp saved")

    def get_otp(self, email: str) -> str:
        """读取验证码；不存在或已过期时返回空串。"""
        try:
            return self.store.get_otp(email)
        except OTPNotFound:
            logger.warning("otp not found")
            return ""

    def consume_otp(self, email: str) -> None:
        """删除已使用的验证码，保证同一验证码不能二次匹配。"""
        self.store.delete_otp(email)
