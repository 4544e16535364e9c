"""重发验证码限流。

固定窗口计数，按邮箱与客户端 IP 分别计数，任一超限即拒绝。计数保存在会话存储中，
多实例部署时共享同一 Redis 即可全局生效。
"""

import logging

from storefront_api.core.config import Settings
from storefront_api.core.errors import RateLimited
from storefront_api.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class ResendCodeLimiter:
    def __init__(self, store: SessionStore, *, per_email: int, per_ip: int, window_seconds: int) -> None:
        self.store = store
        self.per_email = per_email
        self.per_ip = per_ip
        self.window_seconds = window_seconds

    @classmethod
    def from_settings(cls, store: SessionStore, settings: Settings) -> "ResendCodeLimiter":
        return cls(
            store,
            per_email=settings.resend_code_limit_per_email,
            per_ip=settings.resend_code_limit_per_ip,
            window_seconds=settings.resend_code_window_seconds,
        )

    def check(self, email: str, client_ip: str | None) -> None:
        """计数一次，超出任一限额时抛出 RateLimited。"""
        if self.store.incr_counter(f"resend_email_{email}", self.window_seconds) > self.per_email:
            logger.warning("resend code rate limited by email")
            raise RateLimited()
        if client_ip and self.store.incr_counter(f"resend_ip_{client_ip}", self.window_seconds) > self.per_ip:
            logger.warning("resend code rate limited by ip client_ip=%s", client_ip)
            raise RateLimited()
