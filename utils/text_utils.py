"""
Text utilities for raw cell values.

Most sheet cells keep whatever the user typed ("국민 111-1234-123456").
Price, count and amount fields are reduced to their digits when edited, and
account numbers are normalized only for matching.
"""

import re
from typing import Any, Optional

_NON_DIGITS = re.compile(r"[^0-9]")

# Account numbers shorter than this are treated as invalid
MIN_ACCOUNT_DIGITS = 8


def cell_text(value: Any) -> str:
    """
    Render a cell value as the string the grid shows.

    None becomes "", booleans become "Y"/"N", everything else str().
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Y" if value else "N"
    return str(value)


def is_blank(value: Any) -> bool:
    """True for None and empty strings (whitespace is not blank)."""
    return value is None or value == ""


def parse_amount(value: Any) -> int:
    """
    Extract the integer amount from a free-text cell.

    - "15,000" → 15000
    - "15000원" → 15000
    - "" / None / "abc" → 0

    Args:
        value: Raw amount cell

    Returns:
        Amount as int (0 when no digits are present)
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    digits = _NON_DIGITS.sub("", str(value))
    return int(digits) if digits else 0


def parse_digits(value: Any) -> Optional[int]:
    """
    Keep only the digits of a numeric cell.

    - "15,000원" → 15000
    - 2000 → 2000
    - "" / None / "abc" → None
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    digits = _NON_DIGITS.sub("", str(value))
    return int(digits) if digits else None


def normalize_account_number(account_info: Optional[str]) -> Optional[str]:
    """
    Normalize account info to digits only for matching.

    - "국민 111-1234-123456 홍길동" → "1111234123456"
    - "123-45" → None (too short)

    Args:
        account_info: Account text as entered

    Returns:
        Digits-only account number, or None if missing or too short
    """
    if not account_info or not isinstance(account_info, str):
        return None

    normalized = _NON_DIGITS.sub("", account_info)

    if len(normalized) < MIN_ACCOUNT_DIGITS:
        return None

    return normalized
