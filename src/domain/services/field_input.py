"""Normalisation applied to draft fields as the user types."""
import re

TITLE_MAX_LENGTH = 30
DESCRIPTION_MAX_LENGTH = 500

_NON_PRICE_CHARS = re.compile(r"[^\d.]")
_LEADING_ZEROS = re.compile(r"^0+(?=\d)")


def clip(value: str, max_length: int) -> str:
    return value[:max_length]


def sanitize_price(value: str) -> str:
    """
    Keep digits and a single decimal point, drop leading zeros of the integer
    part and cut the fraction to two digits: "007.129" -> "7.12".
    """
    cleaned = _NON_PRICE_CHARS.sub("", value)
    integer_part, dot, fraction = cleaned.partition(".")
    # Any further dots are folded into the fraction and then dropped
    fraction = fraction.replace(".", "")[:2]
    integer_part = _LEADING_ZEROS.sub("", integer_part)
    if dot and fraction:
        return f"{integer_part}.{fraction}"
    return integer_part


def remaining(value: str, max_length: int) -> int:
    return max(0, max_length - len(value))
