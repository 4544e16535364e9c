"""会话令牌签发与校验。

令牌为 ES256 签名的紧凑 JWS，声明体携带 ``{id, name, email, avatarURL}``。
令牌本身不含过期时间，有效期完全由会话存储 TTL 与“存储令牌一致”校验决定。

两种声明提取方式严格区分：
- ``TokenCodec.verify``：校验签名后返回 VerifiedClaims，认证链路（含会话查找）只接受它。
- ``TokenCodec.peek_claims``：不校验签名，返回 UnverifiedClaims，仅供认证失败时记录诊断日志。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import jwt
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import load_pem_private_key, load_pem_public_key
from jwt import InvalidAlgorithmError, InvalidTokenError

from storefront_api.core.config import ECDSA_ALGORITHMS, Settings
from storefront_api.core.errors import SigningError, TokenInvalid, UnexpectedSigningMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigningKeys:
    """会话令牌使用的 EC 密钥对，启动时加载一次。"""

    private_key: ec.EllipticCurvePrivateKey
    public_key: ec.EllipticCurvePublicKey

    @classmethod
    def from_pem(cls, private_pem: bytes, public_pem: bytes) -> "SigningKeys":
        """从 PEM 内容解析密钥对，非椭圆曲线密钥直接拒绝。"""
        private_key = load_pem_private_key(private_pem, password=None)
        if not isinstance(private_key, ec.EllipticCurvePrivateKey):
            raise ValueError("private key is not an EC key")
        public_key = load_pem_public_key(public_pem)
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            raise ValueError("public key is not an EC key")
        return cls(private_key=private_key, public_key=public_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SigningKeys":
        """按配置加载密钥，内联 PEM 优先于文件路径。"""
        private_pem = (
            settings.auth_private_key_pem.encode("utf-8")
            if settings.auth_private_key_pem
            else Path(settings.auth_private_key_path).read_bytes()
        )
        public_pem = (
            settings.auth_public_key_pem.encode("utf-8")
            if settings.auth_public_key_pem
            else Path(settings.auth_public_key_path).read_bytes()
        )
        return cls.from_pem(private_pem, public_pem)


@dataclass(frozen=True)
class VerifiedClaims:
    """已通过签名校验的令牌声明。"""

    user_id: UUID
    name: str
    email: str
    avatar_url: str
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class UnverifiedClaims:
    """未校验签名的令牌声明，内容不可信。"""

    user_id: UUID
    name: str
    email: str
    avatar_url: str
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


def _parse_claims(payload: dict[str, Any]) -> tuple[UUID, str, str, str]:
    raw_id = payload.get("id")
    if not isinstance(raw_id, str):
        raise TokenInvalid()
    try:
        user_id = UUID(raw_id)
    except ValueError as exc:
        raise TokenInvalid() from exc

    name = payload.get("name")
    email = payload.get("email")
    avatar_url = payload.get("avatarURL") or ""
    if not isinstance(name, str) or not isinstance(email, str) or not isinstance(avatar_url, str):
        raise TokenInvalid()
    return user_id, name, email, avatar_url


class TokenCodec:
    """会话令牌编解码器。"""

    def __init__(self, keys: SigningKeys, algorithm: str = "ES256") -> None:
        if algorithm not in ECDSA_ALGORITHMS:
            raise ValueError(f"unsupported signing algorithm: {algorithm}")
        self._keys = keys
        self.algorithm = algorithm

    def sign(self, *, user_id: UUID, name: str, email: str, avatar_url: str | None) -> str:
        """签发会话令牌。"""
        claims: dict[str, object] = {
            "id": str(user_id),
            "name": name,
            "email": email,
            "avatarURL": avatar_url or "",
            "iat": int(datetime.now(timezone.utc).timestamp()),
            # 同一用户重复登录也必须得到不同令牌。
            "jti": uuid4().hex,
        }
        try:
            return jwt.encode(claims, self._keys.private_key, algorithm=self.algorithm)
        except (jwt.PyJWTError, TypeError, ValueError) as exc:
            logger.error("failed to sign session token error=%s", exc)
            raise SigningError() from exc

    def verify(self, token: str) -> VerifiedClaims:
        """校验签名并返回可信声明，不校验过期时间。"""
        try:
            payload = jwt.decode(
                token,
                key=self._keys.public_key,
                algorithms=list(ECDSA_ALGORITHMS),
                options={"verify_aud": False, "verify_iss": False},
            )
        except InvalidAlgorithmError as exc:
            raise UnexpectedSigningMethod() from exc
        except InvalidTokenError as exc:
            raise TokenInvalid() from exc

        user_id, name, email, avatar_url = _parse_claims(payload)
        return VerifiedClaims(user_id=user_id, name=name, email=email, avatar_url=avatar_url, raw=payload)

    def peek_claims(self, token: str) -> UnverifiedClaims:
        """不校验签名读取声明，仅用于诊断，禁止据此做任何授权或查找。"""
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except InvalidTokenError as exc:
            raise TokenInvalid() from exc

        user_id, name, email, avatar_url = _parse_claims(payload)
        return UnverifiedClaims(user_id=user_id, name=name, email=email, avatar_url=avatar_url, raw=payload)
