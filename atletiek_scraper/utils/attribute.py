import re

from atletiek_scraper.exceptions import FieldParseError
from atletiek_scraper.models import Attribute

# Group 1: number, group 2: unit
ATTRIBUTE_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*([a-zA-Z]+)")


def parse_attribute(text: str) -> Attribute | None:
    """Parses an event specification such as "2 kg", "600gr" or "76,2 cm".

    Heights are converted to meters and weights to kilograms.

    Args:
        text: The specification label.

    Returns:
        The parsed Attribute, or None when the text has no number with a
        unit.

    Raises:
        FieldParseError: If the unit is not one of cm, kg or gr.
    """
    match = ATTRIBUTE_RE.search(text)
    if not match:
        return None

    value = float(match.group(1).replace(",", "."))
    unit = match.group(2).lower()

    if unit == "cm":
        return Attribute.height(value / 100.0)
    if unit == "kg":
        return Attribute.weight(value)
    if unit == "gr":
        return Attribute.weight(value / 1000.0)

    raise FieldParseError(
        f"Unknown attribute unit '{unit}'", raw_value=text, field="attribute"
    )
