import re
from datetime import UTC, date, datetime, time

from atletiek_scraper.exceptions import FieldParseError

MONTHS = {
    "JAN": 1,
    "FEB": 2,
    "MAR": 3,
    "MRT": 3,
    "APR": 4,
    "MAY": 5,
    "MEI": 5,
    "JUN": 6,
    "JUL": 7,
    "AUG": 8,
    "SEP": 9,
    "OCT": 10,
    "OKT": 10,
    "NOV": 11,
    "DEC": 12,
}

# 1: day of month, 2: month (MAR, AUG, etc.), 3: year
MONTH_DATE_RE = re.compile(r"\w{2,3}\s+(\d{1,2})\s+(\w{3})\s+(\d{4})")
SORT_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})")
SORT_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})")


def parse_month_abbreviation_date(text: str) -> date:
    """Parses dates like "Sat 06 MAY 2023" from the competition feeder.

    Raises:
        FieldParseError: If the text doesn't match or the month is unknown.
    """
    match = MONTH_DATE_RE.search(text)
    if not match:
        raise FieldParseError(f"Unrecognized date {text!r}", raw_value=text, field="date")

    month = MONTHS.get(match.group(2).upper())
    if month is None:
        raise FieldParseError(
            f"Invalid month: {match.group(2)}", raw_value=text, field="date"
        )

    try:
        return date(int(match.group(3)), month, int(match.group(1)))
    except ValueError as e:
        raise FieldParseError(str(e), raw_value=text, field="date") from e


def parse_sort_date(text: str) -> date:
    """Parses the leading YYYYMMDD of a ``span.sortData`` data attribute.

    The attribute often carries extra text after the date
    (e.g. "20160609Venlo (NLD)"), which is ignored here.
    """
    match = SORT_DATE_RE.match(text.strip())
    if not match:
        raise FieldParseError(f"No sort date in {text!r}", raw_value=text, field="date")
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError as e:
        raise FieldParseError(str(e), raw_value=text, field="date") from e


def parse_sort_datetime(text: str) -> datetime:
    """Parses a YYYYMMDDHHMM sort value into a naive local datetime."""
    match = SORT_DATETIME_RE.match(text.strip())
    if not match:
        raise FieldParseError(
            f"No sort datetime in {text!r}", raw_value=text, field="timestamp"
        )
    try:
        return datetime(*(int(g) for g in match.groups()))
    except ValueError as e:
        raise FieldParseError(str(e), raw_value=text, field="timestamp") from e


def date_to_epoch(day: date) -> int:
    """Returns the Unix timestamp of midnight UTC at the given date.

    The competition feeder takes its date range in this form.
    """
    return int(datetime.combine(day, time(0, 0), tzinfo=UTC).timestamp())
