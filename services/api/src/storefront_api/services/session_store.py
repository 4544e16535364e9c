"""会话与验证码存储。

键空间：
- 会话：``<session_prefix><user_id>``，默认 ``session_<uuid>``。
- 验证码：``<otp_prefix><email>``，默认 ``session_otp_<email>``。
- 限流计数：``<rate_prefix><name>``，默认 ``rate_limit_<name>``。
UUID 不会以 ``otp_`` 开头，两类键互不冲突。

生产使用 Redis；未配置 Redis 时回退到进程内存储（仅适合本地开发与测试）。
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from threading import Lock
from typing import Protocol
from uuid import UUID

from pydantic import ValidationError
from redis import Redis
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from storefront_api.core.config import Settings
from storefront_api.core.errors import OTPNotFound, SessionNotFound, SessionStoreError, SessionStoreTimeout
from storefront_api.schemas.session import UserSession

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """会话存储协议。"""

    def put_session(self, user_id: UUID, session: UserSession, ttl_seconds: int) -> None: ...

    def get_session(self, user_id: UUID) -> UserSession: ...

    def renew_session(self, user_id: UUID, session: UserSession) -> None: ...

    def session_ttl(self, user_id: UUID) -> float | None: ...

    def put_otp(self, email: str, code: str, ttl_seconds: int) -> None: ...

    def get_otp(self, email: str) -> str: ...

    def delete_otp(self, email: str) -> None: ...

    def incr_counter(self, name: str, window_seconds: int) -> int: ...


class _Keyspace:
    def __init__(self, session_prefix: str, otp_prefix: str, rate_prefix: str) -> None:
        if len({session_prefix, otp_prefix, rate_prefix}) != 3:
            raise ValueError("session, otp and rate limit key prefixes must differ")
        self.session_prefix = session_prefix
        self.otp_prefix = otp_prefix
        self.rate_prefix = rate_prefix

    def session_key(self, user_id: UUID) -> str:
        return f"{self.session_prefix}{user_id}"

    def otp_key(self, email: str) -> str:
        return f"{self.otp_prefix}{email}"

    def rate_key(self, name: str) -> str:
        return f"{self.rate_prefix}{name}"


@contextmanager
def _redis_errors(operation: str) -> Iterator[None]:
    """将 Redis 异常映射为存储层异常，超时单独区分。"""
    try:
        yield
    except RedisTimeoutError as exc:
        logger.error("session store timeout operation=%s", operation)
        raise SessionStoreTimeout() from exc
    except RedisError as exc:
        logger.error("session store failure operation=%s error=%s", operation, exc)
        raise SessionStoreError() from exc


class RedisSessionStore(_Keyspace):
    """基于 Redis 的会话存储。

    单键 SET/GET 由 Redis 保证原子性；续期是“先读 TTL 再写”的两步操作，
    同一用户并发续期存在窄窗口竞争，不做额外加锁。
    """

    def __init__(
        self,
        client: Redis,
        *,
        session_prefix: str = "session_",
        otp_prefix: str = "session_otp_",
        rate_prefix: str = "rate_limit_",
    ) -> None:
        super().__init__(session_prefix, otp_prefix, rate_prefix)
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisSessionStore":
        client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout_seconds,
            socket_connect_timeout=settings.redis_connect_timeout_seconds,
        )
        return cls(
            client,
            session_prefix=settings.session_key_prefix,
            otp_prefix=settings.otp_key_prefix,
            rate_prefix=settings.rate_limit_key_prefix,
        )

    def put_session(self, user_id: UUID, session: UserSession, ttl_seconds: int) -> None:
        with _redis_errors("put_session"):
            self._client.set(self.session_key(user_id), session.to_json(), ex=ttl_seconds)

    def get_session(self, user_id: UUID) -> UserSession:
        with _redis_errors("get_session"):
            raw = self._client.get(self.session_key(user_id))
        if raw is None:
            raise SessionNotFound()
        try:
            return UserSession.from_json(raw)
        except ValidationError as exc:
            logger.error("corrupt session record user_id=%s", user_id)
            raise SessionStoreError("corrupt session record") from exc

    def renew_session(self, user_id: UUID, session: UserSession) -> None:
        key = self.session_key(user_id)
        with _redis_errors("renew_session"):
            remaining_ms = self._client.pttl(key)
            if remaining_ms == -1:
                written = self._client.set(key, session.to_json(), xx=True)
            elif remaining_ms <= 0:
                raise SessionNotFound()
            else:
                # XX：键在读 TTL 与写入之间被淘汰时不复活会话。
                written = self._client.set(key, session.to_json(), px=remaining_ms, xx=True)
        if not written:
            raise SessionNotFound()

    def session_ttl(self, user_id: UUID) -> float | None:
        with _redis_errors("session_ttl"):
            remaining_ms = self._client.pttl(self.session_key(user_id))
        if remaining_ms == -1:
            return float("inf")
        if remaining_ms < 0:
            return None
        return remaining_ms / 1000

    def put_otp(self, email: str, code: str, ttl_seconds: int) -> None:
        with _redis_errors("put_otp"):
            self._client.set(self.otp_key(email), code, ex=ttl_seconds)

    def get_otp(self, email: str) -> str:
        with _redis_errors("get_otp"):
            code = self._client.get(self.otp_key(email))
        if code is None:
            raise OTPNotFound()
        return code

    def delete_otp(self, email: str) -> None:
        with _redis_errors("delete_otp"):
            self._client.delete(self.otp_key(email))

    def incr_counter(self, name: str, window_seconds: int) -> int:
        """固定窗口计数：首次计数时设置窗口过期时间，返回窗口内累计次数。"""
        key = self.rate_key(name)
        with _redis_errors("incr_counter"):
            count = int(self._client.incr(key))
            if count == 1:
                self._client.expire(key, window_seconds)
        return count


class LocalSessionStore(_Keyspace):
    """进程内会话存储，语义与 Redis 实现一致（含 TTL 过期）。

    每次读写都在锁内全量清理过期键，只适合本地开发与测试，不可用于生产负载；
    多进程部署时各进程状态互不可见。
    """

    def __init__(
        self,
        *,
        session_prefix: str = "session_",
        otp_prefix: str = "session_otp_",
        rate_prefix: str = "rate_limit_",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(session_prefix, otp_prefix, rate_prefix)
        self._clock = clock
        # key -> (value, expires_at)；expires_at 为 None 表示永不过期。
        self._entries: dict[str, tuple[str, float | None]] = {}
        self._lock = Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalSessionStore":
        return cls(
            session_prefix=settings.session_key_prefix,
            otp_prefix=settings.otp_key_prefix,
            rate_prefix=settings.rate_limit_key_prefix,
        )

    def _cleanup(self, now: float) -> None:
        expired_keys = [
            key for key, (_, expires_at) in self._entries.items() if expires_at is not None and expires_at <= now
        ]
        for key in expired_keys:
            self._entries.pop(key, None)

    def _set(self, key: str, value: str, ttl_seconds: float | None) -> None:
        now = self._clock()
        with self._lock:
            self._cleanup(now)
            self._entries[key] = (value, None if ttl_seconds is None else now + ttl_seconds)

    def _get(self, key: str) -> str | None:
        now = self._clock()
        with self._lock:
            self._cleanup(now)
            entry = self._entries.get(key)
        return entry[0] if entry else None

    def _remaining(self, key: str) -> float | None:
        now = self._clock()
        with self._lock:
            self._cleanup(now)
            entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        return float("inf") if expires_at is None else expires_at - now

    def put_session(self, user_id: UUID, session: UserSession, ttl_seconds: int) -> None:
        self._set(self.session_key(user_id), session.to_json(), ttl_seconds)

    def get_session(self, user_id: UUID) -> UserSession:
        raw = self._get(self.session_key(user_id))
        if raw is None:
            raise SessionNotFound()
        return UserSession.from_json(raw)

    def renew_session(self, user_id: UUID, session: UserSession) -> None:
        key = self.session_key(user_id)
        remaining = self._remaining(key)
        if remaining is None:
            raise SessionNotFound()
        self._set(key, session.to_json(), None if remaining == float("inf") else remaining)

    def session_ttl(self, user_id: UUID) -> float | None:
        return self._remaining(self.session_key(user_id))

    def put_otp(self, email: str, code: str, ttl_seconds: int) -> None:
        self._set(self.otp_key(email), code, ttl_seconds)

    def get_otp(self, email: str) -> str:
        code = self._get(self.otp_key(email))
        if code is None:
            raise OTPNotFound()
        return code

    def delete_otp(self, email: str) -> None:
        with self._lock:
            self._entries.pop(self.otp_key(email), None)

    def incr_counter(self, name: str, window_seconds: int) -> int:
        key = self.rate_key(name)
        now = self._clock()
        with self._lock:
            self._cleanup(now)
            value, expires_at = self._entries.get(key, ("0", now + window_seconds))
            count = int(value) + 1
            self._entries[key] = (str(count), expires_at)
        return count


def build_session_store(settings: Settings) -> SessionStore:
    """按配置选择会话存储实现。"""
    if settings.redis_url:
        return RedisSessionStore.from_settings(settings)
    logger.warning("redis_url not configured, falling back to in-process session store")
    return LocalSessionStore.from_settings(settings)
