"""
Input Validation and Normalization Utilities.

Registration and profile updates funnel their text input through
`InputValidator` so that usernames and emails are stored in one canonical
form (trimmed, lowercase) and required fields are never blank.
"""

import re
from typing import Dict, Optional

from core.exceptions import ValidationError
from core.logging_config import get_logger

logger = get_logger(__name__)


class InputValidator:
    """Validation and normalization of account fields"""

    EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
    USERNAME_PATTERN = re.compile(r"^[a-z0-9_.-]{3,30}$")

    @staticmethod
    def require(fields: Dict[str, Optional[str]], message: str = "All fields are required"):
        """Reject missing or whitespace-only values"""
        for name, value in fields.items():
            if value is None or not str(value).strip():
                raise ValidationError(name, message)

    @staticmethod
    def normalize_username(username: str) -> str:
        return (username or "").strip().lower()

    @staticmethod
    def normalize_email(email: str) -> str:
        return (email or "").strip().lower()

    @staticmethod
    def validate_username(username: str) -> str:
        """Validate and normalize a username"""
        username = InputValidator.normalize_username(username)
        if not InputValidator.USERNAME_PATTERN.match(username):
            raise ValidationError(
                "username",
                "Username must be 3-30 characters: letters, digits, '_', '.', '-'",
            )
        return username

    @staticmethod
    def validate_email(email: str) -> str:
        """Validate and normalize an email address"""
        email = InputValidator.normalize_email(email)
        if not InputValidator.EMAIL_PATTERN.match(email):
            logger.debug("Rejected malformed email address")
            raise ValidationError("email", "Invalid email format")
        return email

    @staticmethod
    def validate_reference(field: str, value: Optional[str], message: str) -> str:
        """Validate an uploaded-media reference (avatar, cover image)"""
        value = (value or "").strip()
        if not value:
            raise ValidationError(field, message)
        return value
