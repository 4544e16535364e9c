"""口令哈希与校验。"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets

from storefront_api.core.errors import HashingError, InvalidCredential

_ALGORITHM = "pbkdf2_sha256"


class PasswordHasher:
    """基于 PBKDF2-SHA256 的慢哈希。

    哈希串格式：``pbkdf2_sha256$<iterations>$<salt_b64>$<digest_b64>``，
    迭代次数随哈希保存，调高配置不影响历史口令校验。
    """

    def __init__(self, iterations: int) -> None:
        self.iterations = iterations

    def hash(self, password: str) -> str:
        """生成带随机盐的口令哈希。"""
        try:
            salt = secrets.token_bytes(16)
            digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, self.iterations)
        except (AttributeError, TypeError, ValueError) as exc:
            raise HashingError() from exc
        salt_b64 = base64.b64encode(salt).decode("ascii")
        digest_b64 = base64.b64encode(digest).decode("ascii")
        return f"{_ALGORITHM}${self.iterations}${salt_b64}${digest_b64}"

    def verify(self, password_hash: str, password: str) -> None:
        """校验口令，不匹配时抛出 InvalidCredential。"""
        try:
            algorithm, iterations_text, salt_b64, expected_digest_b64 = password_hash.split("$", 3)
            if algorithm != _ALGORITHM:
                raise InvalidCredential()
            iterations = int(iterations_text)
            salt = base64.b64decode(salt_b64.encode("ascii"))
            expected_digest = base64.b64decode(expected_digest_b64.encode("ascii"))
            actual_digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
        except (AttributeError, ValueError, TypeError, binascii.Error) as exc:
            raise InvalidCredential() from exc

        if not hmac.compare_digest(actual_digest, expected_digest):
            raise InvalidCredential()
