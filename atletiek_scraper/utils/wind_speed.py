import re

import structlog

from atletiek_scraper.utils.numbers import round_float_to_digits

logger = structlog.get_logger(__name__)

# Group 1: sign, group 2: wind speed
WIND_RE = re.compile(r"([+-]?)(\d*\.?\d+)m/s")


def parse_wind_speed(text: str) -> float | None:
    """Extracts a wind speed in m/s from text like "+1,2 m/s".

    Spaces are ignored and ``,`` is treated as the decimal separator. A
    missing sign means tailwind.

    Args:
        text: The visible text of a result or personal best cell.

    Returns:
        Wind speed rounded to 2 decimals, or None when there is no wind
        reading in the text.
    """
    normalized = text.replace(" ", "").replace("\xa0", "").replace(",", ".")
    match = WIND_RE.search(normalized)
    if not match:
        logger.warning("wind_speed_not_found", text=normalized[:80])
        return None

    sign = -1.0 if match.group(1) == "-" else 1.0
    value = round_float_to_digits(float(match.group(2)), 2)
    return value * sign
