"""Phone normalization utilities for Indian mobile numbers."""
import re
from typing import Optional

_WHITESPACE = re.compile(r"\s+")
_NON_DIGIT = re.compile(r"\D")
_TEN_DIGITS = re.compile(r"^\d{10}$")

INDIA_COUNTRY_CODE = "91"


def normalize_indian_mobile_to_e164(contact: str) -> str:
    """
    Normalize an Indian 10-digit mobile number to E.164 (+91...).

    - Whitespace anywhere in the input is removed.
    - Input already starting with "+" or "0" is returned as-is.
    - Exactly 10 digits gets the +91 prefix.
    - Anything else is returned trimmed but otherwise unchanged.

    Examples:
        >>> normalize_indian_mobile_to_e164("98765 43210")
        '+919876543210'
        >>> normalize_indian_mobile_to_e164("+919876543210")
        '+919876543210'
    """
    trimmed = _WHITESPACE.sub("", contact or "")

    if trimmed.startswith("+") or trimmed.startswith("0"):
        return trimmed

    if _TEN_DIGITS.match(trimmed):
        return f"+{INDIA_COUNTRY_CODE}{trimmed}"

    return trimmed


def to_whatsapp_number(contact: str) -> Optional[str]:
    """
    Convert a contact to a WhatsApp wa.me identifier (digits only, with country code).

    Returns None when fewer than 10 digits remain after normalization.
    """
    digits = _NON_DIGIT.sub("", normalize_indian_mobile_to_e164(contact))

    if len(digits) < 10:
        return None

    # "0"-prefixed input skips normalization and can still be a bare 10 digits
    if len(digits) == 10:
        return f"{INDIA_COUNTRY_CODE}{digits}"

    return digits


def is_valid_indian_mobile(contact: str) -> bool:
    """True when the normalized contact carries at least 10 digits."""
    return to_whatsapp_number(contact) is not None
