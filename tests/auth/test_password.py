"""Tests for password hashing and strength rules."""

import pytest

from habit_tracker.auth.password import (
    PasswordStrengthError,
    hash_password,
    validate_password_strength,
    verify_password,
)


class TestHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("SecurePass1")
        assert hashed.startswith("$argon2id$")
        assert verify_password("SecurePass1", hashed)

    def test_wrong_password(self):
        hashed = hash_password("SecurePass1")
        assert not verify_password("SecurePass2", hashed)

    def test_garbage_hash_is_mismatch(self):
        assert not verify_password("SecurePass1", "not-a-hash")


class TestStrength:
    def test_valid_password(self):
        validate_password_strength("SecurePass1")

    @pytest.mark.parametrize(
        ("password", "message"),
        [
            ("", "cannot be empty"),
            ("Sh0rt", "at least 8"),
            ("alllowercase1", "uppercase"),
            ("ALLUPPERCASE1", "lowercase"),
            ("NoDigitsHere", "digit"),
            ("A1" + "a" * 200, "must not exceed"),
        ],
    )
    def test_weak_passwords(self, password: str, message: str):
        with pytest.raises(PasswordStrengthError, match=message):
            validate_password_strength(password)

    def test_weak_password_is_validation_error(self):
        with pytest.raises(PasswordStrengthError) as exc_info:
            validate_password_strength("weak")
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "WEAK_PASSWORD"

    def test_all_unmet_rules_reported(self):
        with pytest.raises(PasswordStrengthError) as exc_info:
            validate_password_strength("short")
        assert exc_info.value.details["requirements"] == [
            "Password must be at least 8 characters",
            "Password must contain at least one uppercase letter",
            "Password must contain at least one digit",
        ]
