from uuid import uuid4

import pytest

from storefront_api.core.errors import (
    SessionNotFound,
    TokenInvalid,
    UserNotFound,
    UserNotFoundInContext,
)
from storefront_api.models.user import User
from storefront_api.services.users import UserRepository


def _user(db, name="Alice", email="alice@example.com") -> User:
    return UserRepository(db).create(
        User(
            id=uuid4(),
            name=name,
            username=email,
            email=email,
            password_hash="x",
            email_confirmed=True,
            avatar_url="",
        )
    )


def test_create_and_resolve_session(session_service, codec, db):
    user = _user(db)
    token = session_service.create_session(user)

    session = session_service.resolve_session(token, codec.verify(token))
    assert session.token == token
    assert session.user_id == user.id
    assert session.name == "Alice"
    assert session.email == "alice@example.com"


def test_create_session_uses_full_ttl(session_service, store, db, settings):
    user = _user(db)
    session_service.create_session(user)
    assert store.session_ttl(user.id) == pytest.approx(settings.session_ttl_seconds)


def test_new_sign_in_invalidates_previous_token(session_service, codec, db):
    user = _user(db)
    stale = session_service.create_session(user)
    fresh = session_service.create_session(user)

    with pytest.raises(TokenInvalid):
        session_service.resolve_session(stale, codec.verify(stale))
    assert session_service.resolve_session(fresh, codec.verify(fresh)).token == fresh


def test_resolve_missing_session(session_service, codec):
    token = codec.sign(user_id=uuid4(), name="Ghost", email="ghost@example.com", avatar_url="")
    with pytest.raises(SessionNotFound):
        session_service.resolve_session(token, codec.verify(token))


def test_resolve_requires_verified_claims(session_service, codec, db):
    user = _user(db)
    token = session_service.create_session(user)
    with pytest.raises(TypeError):
        session_service.resolve_session(token, codec.peek_claims(token))


def test_session_expires_after_ttl(session_service, codec, clock, db, settings):
    user = _user(db)
    token = session_service.create_session(user)
    clock.advance(settings.session_ttl_seconds + 1)
    with pytest.raises(SessionNotFound):
        session_service.resolve_session(token, codec.verify(token))


def test_renew_refreshes_fields_and_preserves_ttl(session_service, codec, store, clock, db):
    user = _user(db)
    users = UserRepository(db)
    token = session_service.create_session(user)
    principal = session_service.resolve_session(token, codec.verify(token))

    clock.advance(3600)
    ttl_before = store.session_ttl(user.id)
    users.update_name(user.id, "Alice Chen")
    session_service.renew_current_session(principal, users)

    renewed = session_service.resolve_session(token, codec.verify(token))
    assert renewed.name == "Alice Chen"
    assert renewed.token == token
    assert store.session_ttl(user.id) == pytest.approx(ttl_before)


def test_renew_without_principal(session_service, db):
    with pytest.raises(UserNotFoundInContext):
        session_service.renew_current_session(None, UserRepository(db))


def test_renew_for_deleted_user(session_service, codec, db):
    user = _user(db)
    token = session_service.create_session(user)
    principal = session_service.resolve_session(token, codec.verify(token))
    db.delete(user)
    db.commit()

    with pytest.raises(UserNotFound):
        session_service.renew_current_session(principal, UserRepository(db))


def test_otp_round_trip_and_expiry(session_service, clock, settings):
    session_service.save_otp("alice@example.com", "123456")
    assert session_service.get_otp("alice@example.com") == "123456"

    clock.advance(settings.otp_ttl_seconds + 1)
    assert session_service.get_otp("alice@example.com") == ""


def test_consume_otp(session_service):
    session_service.save_otp("alice@example.com", "123456")
    session_service.consume_otp("alice@example.com")
    assert session_service.get_otp("alice@example.com") == ""


def test_alice_scenario(session_service, codec, db, clock):
    """两次登录后旧令牌失效，改名后会话内容更新而令牌不变。"""
    alice = _user(db)
    users = UserRepository(db)

    t1 = session_service.create_session(alice)
    clock.advance(10)
    t2 = session_service.create_session(alice)
    assert t1 != t2

    with pytest.raises(TokenInvalid):
        session_service.resolve_session(t1, codec.verify(t1))

    principal = session_service.resolve_session(t2, codec.verify(t2))
    users.update_name(alice.id, "Alice Liddell")
    session_service.renew_current_session(principal, users)

    current = session_service.resolve_session(t2, codec.verify(t2))
    assert current.name == "Alice Liddell"
    assert current.token == t2
