"""Password policy applied at registration."""

from collections.abc import Callable

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

# (check, message) pairs evaluated in order; the first failing rule is reported
CHARACTER_RULES: tuple[tuple[Callable[[str], bool], str], ...] = (
    (lambda pw: any(c.isupper() for c in pw), "Password must contain at least one uppercase letter"),
    (lambda pw: any(c.islower() for c in pw), "Password must contain at least one lowercase letter"),
    (lambda pw: any(c.isdigit() for c in pw), "Password must contain at least one digit"),
)


def validate_password_strength(password: str) -> str:
    """Check ``password`` against the registration policy.

    The length bound comes first, then one uppercase letter, one lowercase
    letter and one digit. Login does not apply it.

    Returns:
        The password unchanged

    Raises:
        ValueError: With the message of the first rule that fails

    """
    if not MIN_PASSWORD_LENGTH <= len(password) <= MAX_PASSWORD_LENGTH:
        raise ValueError(f"Password must be between {MIN_PASSWORD_LENGTH} and {MAX_PASSWORD_LENGTH} characters")
    for check, message in CHARACTER_RULES:
        if not check(password):
            raise ValueError(message)
    return password
