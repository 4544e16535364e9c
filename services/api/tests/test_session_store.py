from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from storefront_api.core.errors import OTPNotFound, SessionNotFound, SessionStoreError, SessionStoreTimeout
from storefront_api.schemas.session import UserSession
from storefront_api.services.session_store import LocalSessionStore, RedisSessionStore, build_session_store


class FakeRedis:
    """最小化的 Redis 替身，只实现会话存储用到的命令。"""

    def __init__(self, clock) -> None:
        self.clock = clock
        self.data: dict[str, tuple[str, float | None]] = {}
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _alive(self, key: str) -> tuple[str, float | None] | None:
        entry = self.data.get(key)
        if entry is not None and entry[1] is not None and entry[1] <= self.clock():
            del self.data[key]
            return None
        return entry

    def set(self, key, value, ex=None, px=None, xx=False):
        self._check()
        if xx and self._alive(key) is None:
            return None
        expires_at = None
        if ex is not None:
            expires_at = self.clock() + ex
        elif px is not None:
            expires_at = self.clock() + px / 1000
        self.data[key] = (value, expires_at)
        return True

    def get(self, key):
        self._check()
        entry = self._alive(key)
        return entry[0] if entry else None

    def pttl(self, key):
        self._check()
        entry = self._alive(key)
        if entry is None:
            return -2
        if entry[1] is None:
            return -1
        return int((entry[1] - self.clock()) * 1000)

    def delete(self, key):
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0

    def incr(self, key):
        self._check()
        entry = self._alive(key)
        value, expires_at = entry if entry else ("0", None)
        count = int(value) + 1
        self.data[key] = (str(count), expires_at)
        return count

    def expire(self, key, seconds):
        self._check()
        entry = self._alive(key)
        if entry is None:
            return False
        self.data[key] = (entry[0], self.clock() + seconds)
        return True


def _session(user_id, token="token-1", name="Alice") -> UserSession:
    return UserSession(token=token, user_id=user_id, name=name, email="alice@example.com")


@pytest.fixture
def fake_redis(clock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def redis_store(fake_redis) -> RedisSessionStore:
    return RedisSessionStore(fake_redis)


@pytest.fixture(params=["local", "redis"])
def any_store(request, store, redis_store):
    return store if request.param == "local" else redis_store


def test_session_put_and_get(any_store):
    user_id = uuid4()
    any_store.put_session(user_id, _session(user_id), 60)
    assert any_store.get_session(user_id) == _session(user_id)


def test_missing_session_raises(any_store):
    with pytest.raises(SessionNotFound):
        any_store.get_session(uuid4())


def test_session_expires_after_ttl(any_store, clock):
    user_id = uuid4()
    any_store.put_session(user_id, _session(user_id), 60)
    clock.advance(61)
    with pytest.raises(SessionNotFound):
        any_store.get_session(user_id)


def test_renew_keeps_remaining_ttl(any_store, clock):
    user_id = uuid4()
    any_store.put_session(user_id, _session(user_id), 100)
    clock.advance(40)

    any_store.renew_session(user_id, _session(user_id, name="Alice Chen"))

    assert any_store.get_session(user_id).name == "Alice Chen"
    assert any_store.session_ttl(user_id) == pytest.approx(60, abs=0.01)
    clock.advance(61)
    with pytest.raises(SessionNotFound):
        any_store.get_session(user_id)


def test_renew_missing_session_does_not_create_it(any_store):
    user_id = uuid4()
    with pytest.raises(SessionNotFound):
        any_store.renew_session(user_id, _session(user_id))
    with pytest.raises(SessionNotFound):
        any_store.get_session(user_id)


def test_put_session_overwrites_previous(any_store):
    user_id = uuid4()
    any_store.put_session(user_id, _session(user_id, token="old"), 60)
    any_store.put_session(user_id, _session(user_id, token="new"), 60)
    assert any_store.get_session(user_id).token == "new"


def test_otp_put_get_delete(any_store, clock):
    any_store.put_otp("alice@example.com", "123456", 300)
    assert any_store.get_otp("alice@example.com") == "123456"

    any_store.delete_otp("alice@example.com")
    with pytest.raises(OTPNotFound):
        any_store.get_otp("alice@example.com")


def test_otp_expires(any_store, clock):
    any_store.put_otp("alice@example.com", "123456", 300)
    clock.advance(301)
    with pytest.raises(OTPNotFound):
        any_store.get_otp("alice@example.com")


def test_redis_keys_use_prefixes(redis_store, fake_redis):
    user_id = uuid4()
    redis_store.put_session(user_id, _session(user_id), 60)
    redis_store.put_otp("alice@example.com", "123456", 60)

    assert set(fake_redis.data) == {f"session_{user_id}", "session_otp_alice@example.com"}


def test_redis_renew_without_expiry_keeps_no_expiry(redis_store, fake_redis):
    user_id = uuid4()
    fake_redis.data[f"session_{user_id}"] = (_session(user_id).to_json(), None)

    redis_store.renew_session(user_id, _session(user_id, name="Alice Chen"))

    assert fake_redis.data[f"session_{user_id}"][1] is None
    assert redis_store.session_ttl(user_id) == float("inf")


def test_redis_timeout_maps_to_store_timeout(redis_store, fake_redis):
    fake_redis.fail_with = RedisTimeoutError("timed out")
    with pytest.raises(SessionStoreTimeout):
        redis_store.get_session(uuid4())


def test_redis_failure_maps_to_store_error(redis_store, fake_redis):
    fake_redis.fail_with = RedisConnectionError("refused")
    with pytest.raises(SessionStoreError) as exc_info:
        redis_store.put_otp("alice@example.com", "123456", 60)
    assert not isinstance(exc_info.value, SessionStoreTimeout)


def test_redis_corrupt_record_raises_store_error(redis_store, fake_redis):
    user_id = uuid4()
    fake_redis.data[f"session_{user_id}"] = ("{not json", None)
    with pytest.raises(SessionStoreError):
        redis_store.get_session(user_id)


def test_equal_prefixes_are_rejected():
    with pytest.raises(ValueError):
        LocalSessionStore(session_prefix="k_", otp_prefix="k_")


def test_build_session_store_falls_back_to_local(settings):
    assert isinstance(build_session_store(settings), LocalSessionStore)


def test_build_session_store_uses_redis_when_configured(settings):
    configured = settings.model_copy(update={"redis_url": "redis://localhost:6379/0"})
    assert isinstance(build_session_store(configured), RedisSessionStore)


def test_counter_counts_within_window(any_store, clock):
    assert [any_store.incr_counter("resend_email_alice", 60) for _ in range(3)] == [1, 2, 3]

    clock.advance(30)
    assert any_store.incr_counter("resend_email_alice", 60) == 4
    assert any_store.incr_counter("resend_email_bob", 60) == 1


def test_counter_resets_after_window(any_store, clock):
    any_store.incr_counter("resend_ip_10.0.0.1", 60)
    any_store.incr_counter("resend_ip_10.0.0.1", 60)
    clock.advance(61)
    assert any_store.incr_counter("resend_ip_10.0.0.1", 60) == 1


def test_redis_counter_uses_rate_prefix_and_expiry(redis_store, fake_redis, clock):
    redis_store.incr_counter("resend_email_alice@example.com", 600)
    redis_store.incr_counter("resend_email_alice@example.com", 600)

    value, expires_at = fake_redis.data["rate_limit_resend_email_alice@example.com"]
    assert value == "2"
    assert expires_at == pytest.approx(clock() + 600)


def test_redis_counter_failure_maps_to_store_error(redis_store, fake_redis):
    fake_redis.fail_with = RedisConnectionError("refused")
    with pytest.raises(SessionStoreError):
        redis_store.incr_counter("resend_email_alice@example.com", 600)


def test_local_store_cleanup_drops_expired_entries(store, clock):
    user_id = uuid4()
    store.put_session(user_id, _session(user_id), 10)
    store.incr_counter("resend_email_alice@example.com", 10)
    clock.advance(11)

    store.put_otp("bob@example.com", "123456", 60)

    assert set(store._entries) == {"session_otp_bob@example.com"}


def test_rate_prefix_must_differ_from_session_prefixes():
    with pytest.raises(ValueError):
        LocalSessionStore(session_prefix="session_", otp_prefix="session_otp_", rate_prefix="session_")
