import pytest

from storefront_api.core.errors import InvalidCredential
from storefront_api.core.passwords import PasswordHasher


def test_password_hash_and_verify():
    hasher = PasswordHasher(iterations=1000)
    password_hash = hasher.hash("Passw0rd!")

    assert password_hash.startswith("pbkdf2_sha256$1000$")
    assert hasher.verify(password_hash, "Passw0rd!") is None
    with pytest.raises(InvalidCredential):
        hasher.verify(password_hash, "wrong-password")


def test_password_hash_is_salted():
    hasher = PasswordHasher(iterations=1000)
    assert hasher.hash("Passw0rd!") != hasher.hash("Passw0rd!")


def test_verify_uses_iterations_stored_in_hash():
    old_hash = PasswordHasher(iterations=1000).hash("Passw0rd!")
    # 调高迭代次数后历史哈希仍可校验。
    PasswordHasher(iterations=5000).verify(old_hash, "Passw0rd!")


@pytest.mark.parametrize("malformed", ["", "plain-text", "md5$1$abc$def", "pbkdf2_sha256$x$abc$def"])
def test_verify_rejects_malformed_hash(malformed):
    with pytest.raises(InvalidCredential):
        PasswordHasher(iterations=1000).verify(malformed, "Passw0rd!")
