"""Password strength scoring and policy gating.

Passwords are only scored and gated here; hashing is left to the external
identity provider.

Score contributions (additive, clamped to 0-100):
    length            up to 25, proportional to len / min_length
    character classes 15 upper, 15 lower, 15 digit, 20 symbol
    entropy           min(10, entropy / 6) when entropy >= 40 bits
    sequences         -10 when a known 3-character run appears
"""

import math
import re

from .models import (
    PasswordRequirements,
    PasswordStrength,
    PasswordValidationResult,
    PersonalInfo,
)

DEFAULT_PASSWORD_POLICY = PasswordRequirements()

COMMON_PASSWORDS = frozenset(
    {
        "password",
        "123456",
        "123456789",
        "qwerty",
        "abc123",
        "password123",
        "admin",
        "letmein",
        "welcome",
        "monkey",
        "1234567890",
        "password1",
        "qwerty123",
        "admin123",
        "root",
        "user",
        "guest",
        "test",
        "demo",
        "12345678",
        "password321",
        "abcdef123",
        "welcome123",
        "hello123",
    }
)

KNOWN_SEQUENCES = (
    "abcdefghijklmnopqrstuvwxyz",
    "qwertyuiopasdfghjklzxcvbnm",
    "1234567890",
    "0987654321",
)
SEQUENCE_LENGTH = 3

LENGTH_WEIGHT = 25
UPPERCASE_WEIGHT = 15
LOWERCASE_WEIGHT = 15
DIGIT_WEIGHT = 15
SYMBOL_WEIGHT = 20
MAX_ENTROPY_BONUS = 10
SEQUENCE_PENALTY = 10
MIN_ENTROPY_BITS = 40
MIN_PERSONAL_FRAGMENT = 3

UPPERCASE = re.compile(r"[A-Z]")
LOWERCASE = re.compile(r"[a-z]")
DIGIT = re.compile(r"[0-9]")
SYMBOL = re.compile(r"[^a-zA-Z0-9]")

STRENGTH_THRESHOLDS = (
    (20, PasswordStrength.VERY_WEAK),
    (40, PasswordStrength.WEAK),
    (60, PasswordStrength.FAIR),
    (80, PasswordStrength.GOOD),
    (95, PasswordStrength.STRONG),
)

SYMBOL_HINT = "!@#$%^&*()_+-=[]{}|;:,.<>?"


def calculate_entropy(password: str) -> float:
    charset_size = 0
    if LOWERCASE.search(password):
        charset_size += 26
    if UPPERCASE.search(password):
        charset_size += 26
    if DIGIT.search(password):
        charset_size += 10
    if SYMBOL.search(password):
        charset_size += 32
    return len(password) * math.log2(charset_size or 1)


def has_excessive_repeating(password: str, max_repeating: int) -> bool:
    if max_repeating <= 0:
        return False
    run = 0
    previous = None
    for char in password:
        run = run + 1 if char == previous else 1
        previous = char
        if run >= max_repeating:
            return True
    return False


def has_sequential_pattern(password: str) -> bool:
    lowered = password.lower()
    for sequence in KNOWN_SEQUENCES:
        for i in range(len(sequence) - SEQUENCE_LENGTH + 1):
            if sequence[i : i + SEQUENCE_LENGTH] in lowered:
                return True
    return False


def contains_personal_info(password: str, personal_info: PersonalInfo | None) -> bool:
    if personal_info is None:
        return False

    lowered = password.lower()
    fragments: list[str] = []

    if personal_info.email:
        local, _, domain = personal_info.email.lower().partition("@")
        fragments.append(local)
        fragments.append(domain.split(".")[0])

    if personal_info.name:
        fragments.extend(personal_info.name.lower().split(" "))

    return any(
        len(fragment) >= MIN_PERSONAL_FRAGMENT and fragment in lowered for fragment in fragments
    )


def strength_for_score(score: float) -> PasswordStrength:
    for threshold, strength in STRENGTH_THRESHOLDS:
        if score < threshold:
            return strength
    return PasswordStrength.VERY_STRONG


def validate_password(
    password: str,
    requirements: PasswordRequirements = DEFAULT_PASSWORD_POLICY,
    personal_info: PersonalInfo | None = None,
) -> PasswordValidationResult:
    errors: list[str] = []
    warnings: list[str] = []
    score = 0.0

    if len(password) < requirements.min_length:
        errors.append(f"Password must be at least {requirements.min_length} characters long")
    else:
        score += min(LENGTH_WEIGHT, len(password) / requirements.min_length * LENGTH_WEIGHT)

    if len(password) > requirements.max_length:
        errors.append(f"Password must not exceed {requirements.max_length} characters")

    class_checks = (
        (
            requirements.require_uppercase,
            UPPERCASE,
            UPPERCASE_WEIGHT,
            "Password must contain at least one uppercase letter",
        ),
        (
            requirements.require_lowercase,
            LOWERCASE,
            LOWERCASE_WEIGHT,
            "Password must contain at least one lowercase letter",
        ),
        (
            requirements.require_numbers,
            DIGIT,
            DIGIT_WEIGHT,
            "Password must contain at least one number",
        ),
        (
            requirements.require_symbols,
            SYMBOL,
            SYMBOL_WEIGHT,
            f"Password must contain at least one special character ({SYMBOL_HINT})",
        ),
    )
    for required, pattern, weight, message in class_checks:
        if pattern.search(password):
            score += weight
        elif required:
            errors.append(message)

    entropy = calculate_entropy(password)
    if entropy < MIN_ENTROPY_BITS:
        warnings.append("Password has low entropy - consider making it more complex")
    else:
        score += min(MAX_ENTROPY_BONUS, entropy / 6)

    if has_excessive_repeating(password, requirements.max_repeating_chars):
        errors.append(
            f"Password cannot have {requirements.max_repeating_chars} or more repeating characters"
        )

    if has_sequential_pattern(password):
        warnings.append("Password contains sequential characters - consider mixing them up")
        score -= SEQUENCE_PENALTY

    if requirements.prevent_common_passwords and password.lower() in COMMON_PASSWORDS:
        errors.append("This password is too common and easily guessable")

    if requirements.prevent_personal_info and contains_personal_info(password, personal_info):
        errors.append("Password should not contain personal information like your name or email")

    final_score = round(max(0.0, min(100.0, score)))

    return PasswordValidationResult(
        errors=errors,
        warnings=warnings,
        strength=strength_for_score(final_score),
        score=final_score,
    )


def password_suggestions() -> list[str]:
    return [
        "Use a mix of uppercase and lowercase letters",
        "Include numbers and special characters (!@#$%^&*)",
        "Make it at least 12 characters long for better security",
        "Avoid common words and personal information",
        "Consider using a passphrase with multiple words",
        "Don't use the same password for multiple accounts",
        "Consider using a password manager",
    ]
