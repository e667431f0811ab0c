import math
import re
from decimal import ROUND_HALF_UP, Decimal

from atletiek_scraper.exceptions import FieldParseError

_DIGITS_RE = re.compile(r"-?\d+")


def round_float_to_digits(value: float, digits: int) -> float:
    """Rounds half away from zero to the given number of decimal digits."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def parse_decimal(text: str, field: str | None = None) -> float:
    """Parses a decimal number that may use ``,`` as decimal separator.

    Args:
        text: The raw text (e.g. "5,98", "12.31", " 9999998 ").
        field: Field name used in the error for diagnostics.

    Returns:
        The parsed float.

    Raises:
        FieldParseError: If the text is not a finite number.
    """
    cleaned = text.strip().replace("\xa0", "").replace(" ", "").replace(",", ".")
    try:
        value = float(cleaned)
    except ValueError:
        raise FieldParseError(
            f"Not a decimal number: {text!r}", raw_value=text, field=field
        ) from None

    if not math.isfinite(value):
        raise FieldParseError(
            f"Not a finite number: {text!r}", raw_value=text, field=field
        )
    return value


def parse_int(text: str, field: str | None = None) -> int:
    """Parses the first integer found in text (e.g. "3.", "#44", " 12 ").

    Raises:
        FieldParseError: If the text contains no digits.
    """
    match = _DIGITS_RE.search(text.replace("\xa0", ""))
    if not match:
        raise FieldParseError(f"No integer in {text!r}", raw_value=text, field=field)
    return int(match.group(0))
