from collections.abc import Callable
from datetime import date

import pytest
from structlog.testing import capture_logs

from atletiek_scraper.models import CompetitionSummary
from atletiek_scraper.sources.competition_list import CompetitionListParser


@pytest.fixture
def competitions(load_html: Callable[[str], str]) -> list[CompetitionSummary]:
    return CompetitionListParser().parse(load_html("competition_list.html"))


class TestCompetitionListParser:
    def test_broken_rows_are_skipped(self, competitions: list[CompetitionSummary]) -> None:
        """Test that a row without a competition id is skipped."""
        assert [c.competition_id for c in competitions] == [38406, 38679, 39657, 40001]

    def test_full_row(self, competitions: list[CompetitionSummary]) -> None:
        assert competitions[0] == CompetitionSummary(
            competition_id=38406,
            name="Pinkstermeeting",
            date=date(2023, 5, 6),
            location="Vlaardingen",
            club="AV Fortuna",
            registrations=312,
            results_available=True,
            club_members_only=False,
        )

    def test_club_members_only_badge(self, competitions: list[CompetitionSummary]) -> None:
        """Test that the badge is detected and not part of the name."""
        competition = competitions[1]
        assert competition.name == "Clubkampioenschappen"
        assert competition.club_members_only is True
        assert competition.results_available is False

    def test_location_keeps_extra_commas(
        self, competitions: list[CompetitionSummary]
    ) -> None:
        assert competitions[1].club == "AV Haarlem"
        assert competitions[1].location == "Haarlem, Noord-Holland"

    def test_missing_fields_have_defaults(
        self, competitions: list[CompetitionSummary]
    ) -> None:
        competition = competitions[2]
        assert competition.name == "Avondcompetitie & Jeugdwedstrijd"
        assert competition.date == date.today()
        assert competition.club == "Atletiekclub Zwolle"
        assert competition.location == ""
        assert competition.registrations == 0

    def test_missing_date_is_logged(self, load_html: Callable[[str], str]) -> None:
        with capture_logs() as logs:
            CompetitionListParser().parse(load_html("competition_list.html"))
        events = [log["event"] for log in logs]
        assert "competition_date_missing" in events
        assert "competition_row_skipped" in events

    def test_empty_result_is_valid(self) -> None:
        """Test that a search without hits is an empty list, not an error."""
        assert CompetitionListParser().parse("<html><body></body></html>") == []
