"""基于时间的一次性验证码（RFC 6238）。

密钥只在生成验证码时使用一次，不落库；邮箱确认时比较的是会话存储中保存的验证码值，
而不是用密钥重新计算。
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import os
import time

from storefront_api.core.errors import OTPGenerationError

logger = logging.getLogger(__name__)

PERIOD_SECONDS = 30
SKEW_STEPS = 1
DIGITS = 6


def _decode_secret(secret: str) -> bytes:
    padded = secret.upper() + "=" * ((8 - len(secret) % 8) % 8)
    try:
        return base64.b32decode(padded, casefold=True)
    except (binascii.Error, ValueError) as exc:
        raise OTPGenerationError("invalid otp secret") from exc


def _hotp(key: bytes, counter: int, digits: int) -> str:
    digest = hmac.new(key, counter.to_bytes(8, "big"), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    code_int = (int.from_bytes(digest[offset : offset + 4], "big") & 0x7FFFFFFF) % (10**digits)
    return str(code_int).zfill(digits)


class OTPEngine:
    """生成验证码密钥与数字验证码。"""

    def __init__(self, issuer: str, *, period: int = PERIOD_SECONDS, skew: int = SKEW_STEPS, digits: int = DIGITS):
        self.issuer = issuer
        self.period = period
        self.skew = skew
        self.digits = digits

    def generate_secret(self, identity: str) -> str:
        """为指定身份（通常是邮箱）生成新的 base32 共享密钥。"""
        if not identity or not identity.strip():
            raise OTPGenerationError("otp identity is required")
        secret = base64.b32encode(os.urandom(20)).decode("ascii").rstrip("=")
        logger.debug("otp secret generated issuer=%s", self.issuer)
        return secret

    def generate_numeric_code(self, secret: str, at: float | None = None) -> str:
        """按当前时间窗口计算数字验证码，同一窗口内结果一致。"""
        key = _decode_secret(secret)
        timestamp = time.time() if at is None else at
        return _hotp(key, int(timestamp // self.period), self.digits)

    def verify_code(self, secret: str, code: str, at: float | None = None) -> bool:
        """校验验证码，允许前后各 skew 个时间窗口的时钟偏差。"""
        if not code or len(code) != self.digits or not code.isdigit():
            return False
        key = _decode_secret(secret)
        timestamp = time.time() if at is None else at
        counter = int(timestamp // self.period)
        for offset in range(-self.skew, self.skew + 1):
            if hmac.compare_digest(_hotp(key, counter + offset, self.digits), code):
                return True
        return False
