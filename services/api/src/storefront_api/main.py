"""FastAPI 应用入口点。

启动方式：``uvicorn storefront_api.main:create_app --factory``。
配置与签名密钥只在这里读取一次，随后以构造参数注入各组件。
"""

import logging

from fastapi import FastAPI
from sqlalchemy.orm import Session, sessionmaker

from storefront_api.api.router import api_router
from storefront_api.core.config import Settings, get_settings
from storefront_api.core.logging import setup_logging
from storefront_api.core.otp import OTPEngine
from storefront_api.core.passwords import PasswordHasher
from storefront_api.core.security import SigningKeys, TokenCodec
from storefront_api.db.session import build_engine, build_session_factory
from storefront_api.dependencies import AuthRuntime
from storefront_api.exceptions import register_exception_handlers
from storefront_api.middlewares import register_middlewares
from storefront_api.services.mailer import ConfirmationMailer
from storefront_api.services.rate_limit import ResendCodeLimiter
from storefront_api.services.session_service import SessionService
from storefront_api.services.session_store import SessionStore, build_session_store

logger = logging.getLogger(__name__)


def build_auth_runtime(settings: Settings, session_store: SessionStore | None = None) -> AuthRuntime:
    """按配置组装认证组件。"""
    codec = TokenCodec(SigningKeys.from_settings(settings), algorithm=settings.auth_jwt_algorithm)
    store = session_store if session_store is not None else build_session_store(settings)
    sessions = SessionService(
        store,
        codec,
        session_ttl_seconds=settings.session_ttl_seconds,
        otp_ttl_seconds=settings.otp_ttl_seconds,
    )
    otp_engine = OTPEngine(settings.auth_otp_issuer, digits=settings.auth_otp_digits)
    mailer = ConfirmationMailer(
        sessions,
        otp_engine,
        enabled=settings.mail_enabled,
        api_key=settings.resend_api_key,
        sender=settings.mail_from,
    )
    return AuthRuntime(
        settings=settings,
        codec=codec,
        sessions=sessions,
        hasher=PasswordHasher(settings.auth_password_hash_iterations),
        otp_engine=otp_engine,
        mailer=mailer,
        resend_limiter=ResendCodeLimiter.from_settings(store, settings),
    )


def create_app(
    settings: Settings | None = None,
    *,
    session_store: SessionStore | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """创建并配置 FastAPI 应用实例。"""
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        description=(
            "店铺后台账号与会话接口。\n\n"
            "所有业务接口统一返回：`{request_id, data, meta}`。\n"
            "认证方式：`Authorization: Bearer <token>`，同一用户仅保留最近一次登录的会话。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "users", "description": "注册、登录、资料修改与邮箱确认。"},
        ],
    )

    app.state.settings = settings
    app.state.auth = build_auth_runtime(settings, session_store)
    app.state.session_factory = session_factory or build_session_factory(build_engine(settings.database_url))

    register_middlewares(app, settings)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    logger.info("application created env=%s prefix=%s", settings.app_env, settings.api_prefix)
    return app
