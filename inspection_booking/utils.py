"""Shared normalization helpers for customer and vehicle input."""

import re

# Bulgarian plates: 1-2 letters, 4 digits, 0-2 letters (Latin or Cyrillic)
PLATE_PATTERN = re.compile(r"^[A-ZА-Я]{1,2}\d{4}[A-ZА-Я]{0,2}$")
PHONE_PATTERN = re.compile(r"^(\+359|0)[0-9]{8,9}$")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0878 559 905")
        '0878559905'
        >>> normalize_phone("+359 (87) 855-9905")
        '+359878559905'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def normalize_plate(value: str) -> str:
    """Uppercase a registration plate and drop non-alphanumerics.

    Examples:
        >>> normalize_plate("a 1234 bc")
        'A1234BC'
        >>> normalize_plate("CA-1234-XX")
        'CA1234XX'
        >>> normalize_plate("CA1234ABX")
        'CA1234ABX'
    """
    return "".join(ch for ch in value.upper() if ch.isalnum())


def is_valid_plate(value: str) -> bool:
    """Check a normalized plate against the plate-format pattern."""
    return bool(PLATE_PATTERN.match(value))


def is_valid_phone(value: str) -> bool:
    """Check a normalized phone number against the accepted formats."""
    return bool(PHONE_PATTERN.match(value))
