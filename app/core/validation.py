from __future__ import annotations

import re
from dataclasses import astuple, dataclass, field
from typing import List, Optional, Tuple

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SPECIAL_CHAR_PATTERN = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

PASSWORD_MIN_LENGTH = 8


@dataclass(frozen=True)
class EmailValidation:
    is_valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class PasswordRequirements:
    """Результат проверки каждого правила пароля.

    Порядок полей совпадает с PASSWORD_REQUIREMENT_LABELS.
    """

    min_length: bool
    has_upper_case: bool
    has_lower_case: bool
    has_number: bool
    has_special_char: bool


@dataclass(frozen=True)
class PasswordValidation:
    is_valid: bool
    requirements: PasswordRequirements
    errors: List[str] = field(default_factory=list)


# Подписи правил для отображения на клиенте
PASSWORD_REQUIREMENT_LABELS: Tuple[Tuple[str, str], ...] = (
    ("min_length", f"{PASSWORD_MIN_LENGTH}+ characters"),
    ("has_upper_case", "Uppercase letter"),
    ("has_lower_case", "Lowercase letter"),
    ("has_number", "Number"),
    ("has_special_char", "Special character"),
)

_REQUIREMENT_ERRORS: Tuple[str, ...] = (
    f"Password must be at least {PASSWORD_MIN_LENGTH} characters",
    "Password must contain at least one uppercase letter",
    "Password must contain at least one lowercase letter",
    "Password must contain at least one number",
    "Password must contain at least one special character",
)


def validate_email(email: Optional[str]) -> EmailValidation:
    if not email:
        return EmailValidation(False, "Email is required")
    if not EMAIL_PATTERN.match(email):
        return EmailValidation(False, "Please enter a valid email address")
    return EmailValidation(True)


def validate_password(password: Optional[str]) -> PasswordValidation:
    password = password or ""
    requirements = PasswordRequirements(
        min_length=len(password) >= PASSWORD_MIN_LENGTH,
        has_upper_case=re.search(r"[A-Z]", password) is not None,
        has_lower_case=re.search(r"[a-z]", password) is not None,
        has_number=re.search(r"[0-9]", password) is not None,
        has_special_char=SPECIAL_CHAR_PATTERN.search(password) is not None,
    )
    errors = [
        message
        for met, message in zip(astuple(requirements), _REQUIREMENT_ERRORS)
        if not met
    ]
    return PasswordValidation(
        is_valid=not errors,
        requirements=requirements,
        errors=errors,
    )


def describe_requirements(requirements: PasswordRequirements) -> List[dict]:
    """Список правил с отметкой выполнения, в порядке отображения."""
    return [
        {"key": key, "text": text, "met": met}
        for (key, text), met in zip(PASSWORD_REQUIREMENT_LABELS, astuple(requirements))
    ]
