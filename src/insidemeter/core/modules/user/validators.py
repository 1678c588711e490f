import re

from insidemeter.errors import ValidationError

USERNAME_RE = re.compile(r"^[a-z0-9_.-]{3,30}$")


def normalize_login(login: str) -> str:
    """Usernames and emails are matched case-insensitively."""
    return login.strip().lower()


def validate_username(username: str) -> None:
    """Validate username: 3-30 chars of lowercase letters, digits, '_', '.', '-'.

    Raises:
        ValidationError: If username doesn't meet requirements
    """
    if not USERNAME_RE.fullmatch(username):
        raise ValidationError("Username must be 3-30 characters: lowercase letters, digits, '_', '.' or '-'")


def validate_password(password: str) -> None:
    """Validate password meets requirements.

    Requirements:
    - No whitespace characters
    - Minimum length of 6 characters

    Raises:
        ValidationError: If password doesn't meet requirements
    """
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters long")

    if any(char.isspace() for char in password):
        raise ValidationError("Password cannot contain whitespace characters")
