"""Password Rules — checks applied before a password is hashed.

Invariants:
    - Pure: return DomainValidationError or None
    - Confirmation mismatch is detected before any persistence access
"""

from storefront.core.errors import DomainValidationError

# bcrypt only reads the first 72 bytes; longer inputs are refused outright
MAX_PASSWORD_BYTES = 72


def check_new_password(password: str) -> DomainValidationError | None:
    if not password or not password.strip():
        return DomainValidationError("Password cannot be empty", "password")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return DomainValidationError(
            f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes", "password",
        )
    return None


def check_password_confirmation(
    password: str, confirm_password: str,
) -> DomainValidationError | None:
    if password != confirm_password:
        return DomainValidationError(
            "Your passwords don't match", "confirm_password",
        )
    return None
