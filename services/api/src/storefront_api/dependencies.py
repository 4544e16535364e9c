"""请求认证依赖。

职责:
1. 从 Authorization 头提取会话令牌。
2. 校验令牌签名，仅凭已验签声明查找服务端会话。
3. 将会话作为类型化主体 UserSession 注入路由。
4. 组装每个请求使用的用户服务。
"""

from dataclasses import dataclass
import logging

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront_api.core.config import Settings
from storefront_api.core.errors import SessionNotFound, TokenInvalid
from storefront_api.core.otp import OTPEngine
from storefront_api.core.passwords import PasswordHasher
from storefront_api.core.security import TokenCodec
from storefront_api.db.session import get_db
from storefront_api.schemas.session import UserSession
from storefront_api.services.mailer import ConfirmationMailer
from storefront_api.services.rate_limit import ResendCodeLimiter
from storefront_api.services.session_service import SessionService
from storefront_api.services.user_service import UserService
from storefront_api.services.users import UserRepository

logger = logging.getLogger(__name__)


def _auth_error(code: str, message: str, reason: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": message, "details": {"reason": reason}},
        headers={"WWW-Authenticate": "Bearer"},
    )


AUTH_REQUIRED = _auth_error("AUTH_REQUIRED", "缺少访问令牌。", "missing_authorization")
AUTH_SESSION_INVALID = _auth_error("AUTH_SESSION_INVALID", "会话令牌无效。", "invalid_session")
AUTH_SESSION_EXPIRED = _auth_error("AUTH_SESSION_EXPIRED", "会话已过期，请重新登录。", "session_expired")
AUTH_UNAUTHORIZED = _auth_error("AUTH_UNAUTHORIZED", "未登录或登录状态已失效。", "unauthorized")


@dataclass
class AuthRuntime:
    """认证相关组件容器，应用启动时构造一次并挂在 app.state.auth 上。"""

    settings: Settings
    codec: TokenCodec
    sessions: SessionService
    hasher: PasswordHasher
    otp_engine: OTPEngine
    mailer: ConfirmationMailer
    resend_limiter: ResendCodeLimiter


def get_auth_runtime(request: Request) -> AuthRuntime:
    return request.app.state.auth


def _extract_bearer_token(authorization: str) -> str:
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        raise AUTH_SESSION_INVALID
    return parts[1]


def _log_rejected_token(runtime: AuthRuntime, token: str, reason: str) -> None:
    """记录被拒令牌的未验签声明，仅用于排障。"""
    try:
        claims = runtime.codec.peek_claims(token)
    except TokenInvalid:
        logger.warning("session rejected reason=%s claims=unreadable", reason)
        return
    logger.warning("session rejected reason=%s unverified_user_id=%s", reason, claims.user_id)


def authenticate(runtime: AuthRuntime, authorization: str | None) -> UserSession:
    """执行完整的认证链路，任一环节失败均返回 401。"""
    if not authorization:
        raise AUTH_REQUIRED

    token = _extract_bearer_token(authorization)
    try:
        claims = runtime.codec.verify(token)
    except TokenInvalid:
        _log_rejected_token(runtime, token, "signature")
        raise AUTH_SESSION_INVALID from None

    try:
        return runtime.sessions.resolve_session(token, claims)
    except SessionNotFound:
        logger.info("session expired user_id=%s", claims.user_id)
        raise AUTH_SESSION_EXPIRED from None
    except Exception as exc:
        # 存储不可用或令牌不一致统一视为未认证。
        logger.warning("session resolution failed user_id=%s error=%s", claims.user_id, exc)
        raise AUTH_UNAUTHORIZED from None


def get_current_session(
    authorization: str | None = Header(default=None, alias="Authorization"),
    runtime: AuthRuntime = Depends(get_auth_runtime),
) -> UserSession:
    """要求已登录的路由使用。"""
    return authenticate(runtime, authorization)


def get_optional_session(
    authorization: str | None = Header(default=None, alias="Authorization"),
    runtime: AuthRuntime = Depends(get_auth_runtime),
) -> UserSession | None:
    """允许匿名访问的路由使用；携带了凭据则必须有效。"""
    if not authorization:
        return None
    return authenticate(runtime, authorization)


def get_user_service(
    runtime: AuthRuntime = Depends(get_auth_runtime),
    db: Session = Depends(get_db),
) -> UserService:
    """按请求组装用户服务，数据库会话随请求结束关闭。"""
    return UserService(
        users=UserRepository(db),
        sessions=runtime.sessions,
        mailer=runtime.mailer,
        hasher=runtime.hasher,
        resend_limiter=runtime.resend_limiter,
    )
