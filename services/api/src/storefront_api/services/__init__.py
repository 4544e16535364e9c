"""服务层能力导出集合。"""

from storefront_api.services.mailer import ConfirmationMailer
from storefront_api.services.rate_limit import ResendCodeLimiter
from storefront_api.services.session_service import SessionService
from storefront_api.services.session_store import (
    LocalSessionStore,
    RedisSessionStore,
    SessionStore,
    build_session_store,
)
from storefront_api.services.user_service import UserService
from storefront_api.services.users import UserRepository, normalize_email

__all__ = [
    "ConfirmationMailer",
    "LocalSessionStore",
    "RedisSessionStore",
    "ResendCodeLimiter",
    "SessionService",
    "SessionStore",
    "UserRepository",
    "UserService",
    "build_session_store",
    "normalize_email",
]
