"""Shared validation utilities"""

import re
from typing import Optional

from ..config import DEFAULT_COUNTRY_CODE


def normalize_phone(phone: Optional[str], country_code: str = DEFAULT_COUNTRY_CODE) -> Optional[str]:
    """
    Normalize a phone number to E.164 format.

    Local numbers with a trunk prefix ("0416...") lose the leading zero and get
    the default country code. Numbers written with "+" or "00" keep their own
    country code.

    Args:
        phone: Phone number string in various formats
        country_code: Country code for local numbers (digits only)

    Returns:
        Normalized phone number in E.164 format (+58XXXXXXXXXX)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    stripped = phone.strip()
    digits = re.sub(r"\D", "", stripped)

    if stripped.startswith("+"):
        pass
    elif digits.startswith("00"):
        digits = digits[2:]
    elif digits.startswith(country_code) and len(digits) > 10:
        pass
    else:
        digits = country_code + digits.lstrip("0")

    # E.164 allows at most 15 digits; anything under 8 is not a reachable number
    if len(digits) < 8 or len(digits) > 15:
        raise ValueError(f"Invalid phone number: {phone}")

    return f"+{digits}"


def phone_digits(phone: str) -> str:
    """Digits only - the address format messaging gateways expect"""
    return re.sub(r"\D", "", phone)
