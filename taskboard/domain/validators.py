"""Shared validation for user-entered labels."""

from taskboard.core.errors import ValidationError


# Constants for validation
MAX_LABEL_LENGTH = 500


def clean_label(value: str, *, field: str = "name") -> str:
    """Strip a category name or task title, rejecting blank or oversized values."""
    cleaned = value.strip() if isinstance(value, str) else ""

    if not cleaned:
        raise ValidationError(f"{field.capitalize()} cannot be empty")

    if len(cleaned) > MAX_LABEL_LENGTH:
        raise ValidationError(f"{field.capitalize()} too long (max {MAX_LABEL_LENGTH} characters)")

    return cleaned
