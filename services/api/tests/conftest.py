from collections.abc import Generator

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import storefront_api.models  # noqa: F401
from storefront_api.core.config import Settings
from storefront_api.core.otp import OTPEngine
from storefront_api.core.security import SigningKeys, TokenCodec
from storefront_api.db.session import build_session_factory
from storefront_api.main import create_app
from storefront_api.models.base import Base
from storefront_api.services.mailer import ConfirmationMailer
from storefront_api.services.session_service import SessionService
from storefront_api.services.session_store import LocalSessionStore


class ManualClock:
    """可手动推进的时钟，驱动进程内存储的 TTL。"""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingMailer(ConfirmationMailer):
    """记录投递内容而不真正发信。"""

    def __init__(self, sessions: SessionService, otp_engine: OTPEngine) -> None:
        super().__init__(sessions, otp_engine, enabled=False, api_key=None, sender="test@example.com")
        self.sent: list[dict[str, str]] = []

    def deliver(self, to_email: str, subject: str, body: str) -> None:
        self.sent.append({"to": to_email, "subject": subject, "body": body})


def _pem_pair(private_key: ec.EllipticCurvePrivateKey) -> tuple[str, str]:
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )
    return private_pem, public_pem


@pytest.fixture
def ec_pems() -> tuple[str, str]:
    return _pem_pair(ec.generate_private_key(ec.SECP256R1()))


@pytest.fixture
def settings(ec_pems) -> Settings:
    private_pem, public_pem = ec_pems
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        redis_url=None,
        auth_private_key_pem=private_pem,
        auth_public_key_pem=public_pem,
        auth_password_hash_iterations=1000,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock) -> LocalSessionStore:
    return LocalSessionStore(clock=clock)


@pytest.fixture
def codec(settings) -> TokenCodec:
    return TokenCodec(SigningKeys.from_settings(settings), algorithm=settings.auth_jwt_algorithm)


@pytest.fixture
def session_service(store, codec, settings) -> SessionService:
    return SessionService(
        store,
        codec,
        session_ttl_seconds=settings.session_ttl_seconds,
        otp_ttl_seconds=settings.otp_ttl_seconds,
    )


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(settings, store, session_factory):
    app = create_app(settings, session_store=store, session_factory=session_factory)
    runtime = app.state.auth
    runtime.mailer = RecordingMailer(runtime.sessions, runtime.otp_engine)
    return app


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def mailer(app) -> RecordingMailer:
    return app.state.auth.mailer
