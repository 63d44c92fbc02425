import re

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
PHONE_REGEX = re.compile(r"^[+]?[0-9\s\-()]{7,15}$")
PASSWORD_REGEX = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])")

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72


def normalize_email(email: str) -> str:
    email = email.strip().lower()

    if not EMAIL_REGEX.match(email):
        raise ValueError("Please provide a valid email address")

    return email


def normalize_phone(phone: str | None) -> str | None:
    if not phone:
        return None

    phone = phone.strip()

    if not PHONE_REGEX.match(phone):
        raise ValueError("Please enter a valid phone number")

    return phone


def validate_password_strength(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must not exceed {MAX_PASSWORD_BYTES} bytes")

    if not PASSWORD_REGEX.match(password):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number, and one special character"
        )

    return password
