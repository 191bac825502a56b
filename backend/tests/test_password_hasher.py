import pytest

from app.core.exceptions import InvalidCredentialsError, ValidationError
from app.core.security import PasswordHasher


def test_hash_is_salted_per_call(hasher):
    first = hasher.hash("correct horse")
    second = hasher.hash("correct horse")
    assert first != second
    assert hasher.matches("correct horse", first)
    assert hasher.matches("correct horse", second)


def test_hash_uses_configured_cost(hasher):
    assert hasher.hash("pw-123456").startswith("$2b$04$")
    assert PasswordHasher(rounds=5).hash("pw-123456").startswith("$2b$05$")


def test_verify_rejects_wrong_password(hasher):
    digest = hasher.hash("right-password")
    hasher.verify(digest, "right-password")
    with pytest.raises(InvalidCredentialsError):
        hasher.verify(digest, "wrong-password")


def test_malformed_digest_is_a_mismatch(hasher):
    assert hasher.matches("anything", "not-a-bcrypt-hash") is False
    with pytest.raises(InvalidCredentialsError):
        hasher.verify("not-a-bcrypt-hash", "anything")


def test_overlong_and_empty_passwords_are_rejected(hasher):
    with pytest.raises(ValidationError):
        hasher.hash("x" * 73)
    with pytest.raises(ValidationError):
        hasher.hash("")
    digest = hasher.hash("x" * 72)
    assert hasher.matches("x" * 73, digest) is False
