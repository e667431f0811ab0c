from functools import lru_cache

import pycountry

from atletiek_scraper.exceptions import ConfigurationError


# Countries the competition search accepts (ISO 3166-1 alpha-2).
SUPPORTED_COUNTRIES: tuple[str, ...] = (
    "BE",
    "BQ",
    "CW",
    "FR",
    "DE",
    "IL",
    "NL",
    "SX",
    "ZA",
    "CH",
    "GB",
    "US",
)
DEFAULT_COUNTRY = "NL"


@lru_cache(maxsize=128)
def get_iso_country_code(name: str) -> str | None:
    """
    Resolve a country name or code to its 2-letter ISO code (Alpha-2).

    Args:
        name: The country name or code (e.g. "Netherlands", "NLD", "nl").

    Returns:
        ISO 2-letter code (e.g. "NL") or None if not found.
    """
    if not name:
        return None

    try:
        country = pycountry.countries.lookup(name)
        return str(country.alpha_2)
    except LookupError:
        pass

    try:
        search_result = pycountry.countries.search_fuzzy(name)
        if search_result:
            return str(getattr(search_result[0], "alpha_2", None))
    except LookupError:
        pass

    return None


def resolve_country(value: str | None) -> str:
    """Resolves user input to a country code supported by the search.

    Args:
        value: Country code or name; empty or None selects the default (NL).

    Returns:
        The alpha-2 code.

    Raises:
        ConfigurationError: If the country is unknown or not supported.
    """
    if not value or not value.strip():
        return DEFAULT_COUNTRY

    candidate = value.strip().upper()
    if candidate not in SUPPORTED_COUNTRIES:
        resolved = get_iso_country_code(value.strip())
        if resolved is None:
            raise ConfigurationError(
                f"Unknown country '{value}'",
                parameter="country",
                expected_format="ISO 3166-1 alpha-2 code or country name",
                example="NL",
            )
        candidate = resolved

    if candidate not in SUPPORTED_COUNTRIES:
        raise ConfigurationError(
            f"Country '{value}' is not in available countries",
            parameter="country",
            expected_format=", ".join(SUPPORTED_COUNTRIES),
            example="BE",
        )

    return candidate
