"""
Enum Utilities for VARCHAR-based Status Fields

CONVENTIONS:
━━━━━━━━━━━━
• Database: VARCHAR(50) - NOT a database ENUM type
• SQLAlchemy: String(50) with Mapped[str]
• Pydantic: Python Enum for API validation
• Case: All enum values stored in UPPERCASE

DATA FLOW:
━━━━━━━━━━
INPUT (API Request):
    Pydantic Enum → .value → String → Database
    Example: PaymentStatus.PAID → "PAID" → VARCHAR

OUTPUT (API Response):
    Database → String → Enum (via to_enum) → pure core functions

CASE NORMALIZATION:
━━━━━━━━━━━━━━━━━━━
Use normalize_to_uppercase() in a "before" field validator so that
"paid", "Paid" and "PAID" are all accepted. camelCase spellings such as
"bankTransfer" or "pendingRenewal" are mapped to BANK_TRANSFER and
PENDING_RENEWAL.
"""

import re
from enum import Enum
from typing import Any, Optional, TypeVar, Type, Set


T = TypeVar('T', bound=Enum)

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[a-zA-Z])(?=[0-9])')


def to_enum(value: Any, enum_class: Type[T]) -> Optional[T]:
    """
    Convert a string value to an enum instance.

    Returns None if the value is not a member.

    Examples:
        >>> to_enum("PAID", PaymentStatus)
        PaymentStatus.PAID
        >>> to_enum("INVALID", PaymentStatus)
        None
    """
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(normalize_token(value))
    except (ValueError, KeyError):
        return None


def enum_values(enum_class: Type[Enum]) -> list:
    """Get all values from an enum class."""
    return [e.value for e in enum_class]


def normalize_token(value: Any) -> Any:
    """
    Upper snake case for enum-like strings.

    Examples:
        >>> normalize_token("bankTransfer")
        'BANK_TRANSFER'
        >>> normalize_token(" pending renewal ")
        'PENDING_RENEWAL'
    """
    if not isinstance(value, str):
        return value
    token = _CAMEL_BOUNDARY.sub('_', value.strip())
    return re.sub(r'[\s\-]+', '_', token).upper()


# =============================================================================
# CASE NORMALIZATION FOR PYDANTIC SCHEMAS
# =============================================================================

def normalize_to_uppercase(value: Any, valid_values: Set[str]) -> Any:
    """
    Normalize a string value to UPPERCASE if it's a valid enum value.

    Returns the original value when it does not normalize to a member, so
    Pydantic raises its own validation error.

    Examples:
        >>> normalize_to_uppercase('paid', {'PAID', 'UNPAID'})
        'PAID'
        >>> normalize_to_uppercase('invalid', {'PAID', 'UNPAID'})
        'invalid'
    """
    if value is None:
        return value
    if isinstance(value, str):
        upper_v = normalize_token(value)
        if upper_v in valid_values:
            return upper_v
    return value

