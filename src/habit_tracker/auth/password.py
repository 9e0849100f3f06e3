"""argon2id password hashing and the sign-up strength rules."""

from __future__ import annotations

from collections.abc import Callable

import argon2
from argon2.exceptions import InvalidHashError, VerificationError

from habit_tracker.config import get_settings
from habit_tracker.errors import ValidationError

# 64 MiB, 2 passes: a few tens of milliseconds per login
_hasher = argon2.PasswordHasher(time_cost=2, memory_cost=64 * 1024, parallelism=1, type=argon2.Type.ID)

_CHARACTER_RULES: tuple[tuple[Callable[[str], bool], str], ...] = (
    (str.isupper, "Password must contain at least one uppercase letter"),
    (str.islower, "Password must contain at least one lowercase letter"),
    (str.isdigit, "Password must contain at least one digit"),
)


class PasswordStrengthError(ValidationError):
    code = "WEAK_PASSWORD"


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """False on mismatch or on a stored value that is not an argon2 hash."""
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def check_needs_rehash(password_hash: str) -> bool:
    """True when the hash was made with older cost parameters."""
    return _hasher.check_needs_rehash(password_hash)


def password_problems(password: str) -> list[str]:
    """Every unmet rule, length first."""
    settings = get_settings()
    if not password or not password.strip():
        return ["Password cannot be empty"]
    problems: list[str] = []
    if len(password) < settings.password_min_length:
        problems.append(f"Password must be at least {settings.password_min_length} characters")
    if len(password) > settings.password_max_length:
        problems.append(f"Password must not exceed {settings.password_max_length} characters")
    problems.extend(message for check, message in _CHARACTER_RULES if not any(check(c) for c in password))
    return problems


def validate_password_strength(password: str) -> None:
    """
    Raises:
        PasswordStrengthError: With the first unmet rule as message and all of them in details.
    """
    problems = password_problems(password)
    if problems:
        raise PasswordStrengthError(problems[0], details={"requirements": problems})
