import base64

import pytest

from storefront_api.core.errors import OTPGenerationError
from storefront_api.core.otp import OTPEngine

# RFC 6238 附录 B 的 SHA1 种子 "12345678901234567890"。
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


@pytest.mark.parametrize(
    ("at", "expected"),
    [
        (59, "287082"),
        (1111111109, "081804"),
        (1111111111, "050471"),
        (1234567890, "005924"),
    ],
)
def test_numeric_code_matches_rfc6238_vectors(at, expected):
    engine = OTPEngine("Storefront")
    assert engine.generate_numeric_code(RFC_SECRET, at=at) == expected


def test_same_window_yields_same_code_and_next_window_differs():
    engine = OTPEngine("Storefront")
    secret = engine.generate_secret("alice@example.com")

    first = engine.generate_numeric_code(secret, at=1_700_000_010)
    assert engine.generate_numeric_code(secret, at=1_700_000_029) == first
    assert engine.generate_numeric_code(secret, at=1_700_000_100) != first


def test_verify_code_allows_one_step_skew():
    engine = OTPEngine("Storefront")
    code = engine.generate_numeric_code(RFC_SECRET, at=1_111_111_111)

    assert engine.verify_code(RFC_SECRET, code, at=1_111_111_111 + 30)
    assert engine.verify_code(RFC_SECRET, code, at=1_111_111_111 - 30)
    assert not engine.verify_code(RFC_SECRET, code, at=1_111_111_111 + 90)
    assert not engine.verify_code(RFC_SECRET, "12ab56", at=1_111_111_111)


def test_generate_secret_is_base32_and_random():
    engine = OTPEngine("Storefront")
    first = engine.generate_secret("alice@example.com")
    second = engine.generate_secret("alice@example.com")

    assert first != second
    padded = first + "=" * ((8 - len(first) % 8) % 8)
    assert len(base64.b32decode(padded)) == 20


def test_generate_secret_requires_identity():
    with pytest.raises(OTPGenerationError):
        OTPEngine("Storefront").generate_secret("  ")


def test_invalid_secret_raises_generation_error():
    with pytest.raises(OTPGenerationError):
        OTPEngine("Storefront").generate_numeric_code("not-base32!", at=0)
