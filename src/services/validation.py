"""
Input validation helpers for mailbox operations.

All validators raise ValidationError with the offending value so the caller
can tell exactly which precondition failed.
"""

import os
import re
from typing import Iterable, Optional, Sequence

from domain.errors import ValidationError

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

# Gmail rejects longer label names
MAX_LABEL_NAME_LENGTH = 225


def is_valid_email(address: str) -> bool:
    """
    Check if an email address is syntactically valid.

    Args:
        address: Email address to check

    Returns:
        True if address looks like local@domain.tld, ASCII only, with no
        whitespace (addresses are written to headers without encoding)

    Example:
        >>> is_valid_email("user@example.com")
        True
        >>> is_valid_email("not an address")
        False
    """
    return (
        isinstance(address, str)
        and address.isascii()
        and bool(EMAIL_PATTERN.fullmatch(address))
    )


def validate_email_list(addresses: Optional[Iterable[str]], field_name: str = 'to') -> None:
    """
    Validate every address in a list.

    Args:
        addresses: Addresses to check (None is accepted as "not given")
        field_name: Header name used in the error message

    Raises:
        ValidationError: On the first invalid address
    """
    if addresses is None:
        return
    if isinstance(addresses, str):
        raise ValidationError(f"{field_name} must be a list of addresses, got a string")
    for address in addresses:
        if not is_valid_email(address):
            raise ValidationError(f"Invalid email address in {field_name}: {address!r}")


def validate_header_value(value: Optional[str], field_name: str) -> None:
    """
    Reject header values that could inject extra header lines.

    Raises:
        ValidationError: If value contains CR or LF
    """
    if value is None:
        return
    if '\r' in value or '\n' in value:
        raise ValidationError(f"{field_name} must not contain line breaks")


def is_readable_file(path: str) -> bool:
    """Check that path exists, is a regular file, and is readable."""
    return os.path.isfile(path) and os.access(path, os.R_OK)


def validate_label_name(name: Optional[str]) -> None:
    """
    Check a label name is a non-empty string Gmail will accept.

    Raises:
        ValidationError: If the name is empty or longer than MAX_LABEL_NAME_LENGTH
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Label name is required")
    if len(name) > MAX_LABEL_NAME_LENGTH:
        raise ValidationError(
            f"Label name must be at most {MAX_LABEL_NAME_LENGTH} characters, got {len(name)}"
        )


def validate_choice(value: Optional[str], field_name: str, allowed: Sequence[str]) -> None:
    """
    Check an optional value is one of the allowed strings.

    Raises:
        ValidationError: If value is given and not allowed
    """
    if value is not None and value not in allowed:
        raise ValidationError(f"{field_name} must be one of: {', '.join(allowed)}")
