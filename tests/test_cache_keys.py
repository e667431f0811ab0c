from datetime import date

import pytest

from atletiek_scraper.cache_keys import (
    DEFAULT_TTLS,
    GetRegistrations,
    GetResults,
    key_from_dict,
    new_get_athlete_profile,
    new_get_registrations,
    new_get_results,
    new_search_athletes,
    new_search_competitions,
)
from atletiek_scraper.exceptions import ConfigurationError

START = date(2023, 5, 1)
END = date(2023, 5, 31)


class TestSearchCompetitions:
    def test_empty_and_missing_query_are_equal(self) -> None:
        assert new_search_competitions(START, END, None) == new_search_competitions(
            START, END, ""
        )

    def test_query_is_case_insensitive(self) -> None:
        a = new_search_competitions(START, END, "Pinkstermeeting")
        b = new_search_competitions(START, END, "PINKSTERMEETING")
        assert a == b
        assert hash(a) == hash(b)

    def test_default_country(self) -> None:
        assert new_search_competitions(START, END).country == "NL"

    def test_country_name_and_code_are_equal(self) -> None:
        by_name = new_search_competitions(START, END, country="Belgium")
        by_code = new_search_competitions(START, END, country="be")
        assert by_name == by_code
        assert by_code.country == "BE"

    def test_unsupported_country(self) -> None:
        with pytest.raises(ConfigurationError):
            new_search_competitions(START, END, country="Sweden")

    def test_different_ranges_differ(self) -> None:
        assert new_search_competitions(START, END) != new_search_competitions(
            START, date(2023, 6, 30)
        )


def test_search_athletes_normalization() -> None:
    assert new_search_athletes("  Marith ") == new_search_athletes("marith")


def test_kinds_do_not_collide() -> None:
    """Test that equal ids of different kinds are different keys."""
    assert new_get_registrations(1) != new_get_results(1)
    assert len({new_get_registrations(1), new_get_results(1)}) == 2


def test_constructors() -> None:
    assert new_get_registrations(39657) == GetRegistrations(39657)
    assert new_get_results(1398565) == GetResults(1398565)
    assert new_get_athlete_profile(1023456).athlete_id == 1023456


@pytest.mark.parametrize(
    "key",
    [
        new_search_competitions(START, END, "Meeting", "DE"),
        new_get_registrations(39657),
        new_get_results(1398565),
        new_search_athletes("siekman"),
        new_get_athlete_profile(1023456),
    ],
)
def test_key_from_dict(key: object) -> None:
    assert key_from_dict(key.to_dict()) == key  # type: ignore[attr-defined]


def test_key_from_dict_unknown_kind() -> None:
    with pytest.raises(ValueError):
        key_from_dict({"kind": "get_start_list", "competition_id": 1})


def test_default_ttls() -> None:
    assert DEFAULT_TTLS["get_results"] == 24 * 3600
    assert DEFAULT_TTLS["get_registrations"] == 12 * 3600
