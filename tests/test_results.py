from collections.abc import Callable
from datetime import date, datetime

import pytest
from structlog.testing import capture_logs

from atletiek_scraper.exceptions import StructureNotFound, UnsupportedPageVariant
from atletiek_scraper.models import (
    AboveThreshold,
    AthleteEventResults,
    BelowZero,
    CompetitionLocation,
    CompetitionRegistration,
    Measurement,
    Points,
    Position,
    TimetableSlot,
)
from atletiek_scraper.sources.results import AthleteResultsParser, RowShape

URL = "https://www.atletiek.nu/wedstrijd/uitslagenonderdeel"


@pytest.fixture
def parser() -> AthleteResultsParser:
    return AthleteResultsParser()


class TestStandardResults:
    @pytest.fixture
    def results(
        self, parser: AthleteResultsParser, load_html: Callable[[str], str]
    ) -> AthleteEventResults:
        return parser.parse(load_html("results_standard.html"))

    def test_header(self, results: AthleteEventResults) -> None:
        assert results.athlete_name == "Sanne Bakker"
        assert results.competition_id == 38406

    def test_one_result_per_event_url(self, results: AthleteEventResults) -> None:
        urls = [r.event_url for r in results.results]
        assert urls == [
            f"{URL}/38406/60m/",
            f"{URL}/38406/ver/",
            f"{URL}/38406/kogel/",
        ]

    def test_rounds_are_merged(self, results: AthleteEventResults) -> None:
        """Test that heats and finals of one event end up in one result."""
        sprint = results.results[0]
        assert sprint.event_name == "60 meter"
        assert sprint.items == [
            Measurement(7.94, wind_speed=1.2),
            Position(3),
            Measurement(7.89, wind_speed=-0.4),
            Position(2),
        ]

    def test_negative_value_is_dnf(self, results: AthleteEventResults) -> None:
        assert results.results[1].items == [
            Measurement(-2.0, dnf=True, dnf_reason=BelowZero())
        ]

    def test_event_name_from_url(self, results: AthleteEventResults) -> None:
        """Test that a link without text is named after the url's event code."""
        shot_put = results.results[2]
        assert shot_put.event_name == "kogel"
        assert shot_put.items == [Measurement(9.87)]

    def test_no_points(self, results: AthleteEventResults) -> None:
        assert results.get_total_points() is None

    def test_timetable(self, results: AthleteEventResults) -> None:
        assert results.timetable == [
            TimetableSlot(
                timestamp=datetime(2023, 5, 6, 10, 30),
                start_list_url="https://www.atletiek.nu/wedstrijd/startlijst/38406/12/",
                group_name="Serie 1",
                event_name_short="60m",
                event_name_long="60 meter series",
            ),
            TimetableSlot(
                timestamp=datetime(2023, 5, 6, 14, 15),
                start_list_url="https://www.atletiek.nu/wedstrijd/startlijst/38406/27/",
                group_name="Groep A",
                event_name_short="Ver",
                event_name_long="Ver",
            ),
        ]

    def test_past_registrations(self, results: AthleteEventResults) -> None:
        flag = "https://www.atletiek.nu/img/flags/nl.png"
        assert results.past_registrations == [
            CompetitionRegistration(
                participant_id=1398565,
                competition_name="Pinkstermeeting",
                date=date(2023, 5, 6),
                location=CompetitionLocation("Vlaardingen", "Netherlands", "Europe", flag),
            ),
            CompetitionRegistration(
                participant_id=None,
                competition_name="Indoor Apeldoorn",
                date=date(2023, 2, 11),
                location=CompetitionLocation("Apeldoorn", "Netherlands", "Europe", flag),
            ),
        ]

    def test_skipped_rows_are_logged(
        self, parser: AthleteResultsParser, load_html: Callable[[str], str]
    ) -> None:
        with capture_logs() as logs:
            parser.parse(load_html("results_standard.html"))
        events = [log["event"] for log in logs]
        assert "timetable_slot_skipped" in events
        assert "past_registration_skipped" in events


class TestCombinedEventResults:
    @pytest.fixture
    def results(
        self, parser: AthleteResultsParser, load_html: Callable[[str], str]
    ) -> AthleteEventResults:
        return parser.parse(load_html("results_combined.html"))

    def test_events(self, results: AthleteEventResults) -> None:
        assert results.athlete_name == "Eva Hendriks"
        assert results.competition_id == 37970
        assert [r.event_name for r in results.results] == [
            "60m horden",
            "Hoogspringen",
            "Kogelstoten",
            "Verspringen",
            "800 meter",
        ]

    def test_items(self, results: AthleteEventResults) -> None:
        assert results.results[0].items == [
            Measurement(10.92),
            Position(4),
            Points(612),
        ]

    def test_implausible_value_is_dnf(self, results: AthleteEventResults) -> None:
        items = results.results[4].items
        assert items == [
            Measurement(
                9999998.0, dnf=True, dnf_reason=AboveThreshold(threshold=10000.0)
            ),
            Points(0),
        ]
        assert results.results[3].items[0].dnf_reason == BelowZero()

    def test_total_points(self, results: AthleteEventResults) -> None:
        """Test that the total row is not parsed as an event."""
        assert results.get_total_points() == 1436

    def test_without_optional_sections(self, results: AthleteEventResults) -> None:
        assert results.timetable == []
        assert results.past_registrations == []


class TestRowShape:
    def test_detects_row_shapes(self, parser: AthleteResultsParser) -> None:
        soup = parser.make_soup(
            "<table><tr>"
            '<td><a href="/x/">60m</a></td><td>Vijfkamp</td>'
            "</tr><tr>"
            '<td>Vijfkamp</td><td><a href="/y/">60mH</a></td>'
            "</tr><tr>"
            "<td>Totaal</td><td>1436</td>"
            "</tr></table>"
        )
        rows = [row.find_all("td") for row in soup.find_all("tr")]
        assert [parser.probe_row_shape(cells) for cells in rows] == [
            RowShape.STANDARD_ROW,
            RowShape.COMBINED_EVENT_ROW,
            RowShape.NO_MATCH,
        ]


def test_external_results(
    parser: AthleteResultsParser, load_html: Callable[[str], str]
) -> None:
    with pytest.raises(UnsupportedPageVariant) as excinfo:
        parser.parse(load_html("results_external.html"))
    assert excinfo.value.marker == "Uitslagen worden extern gepubliceerd"


def test_missing_results_table(
    parser: AthleteResultsParser, load_html: Callable[[str], str]
) -> None:
    with pytest.raises(StructureNotFound) as excinfo:
        parser.parse(load_html("results_missing.html"))
    assert excinfo.value.selector == "table#uitslagentabel"


class TestMixedResultsTable:
    @pytest.fixture
    def results(
        self, parser: AthleteResultsParser, load_html: Callable[[str], str]
    ) -> AthleteEventResults:
        return parser.parse(load_html("results_mixed.html"))

    def test_rows_matching_the_header(self, results: AthleteEventResults) -> None:
        assert results.results[0].event_name == "60 meter"
        assert results.results[0].items == [Measurement(7.94), Position(3)]

    def test_combined_rows_under_standalone_header(
        self, results: AthleteEventResults
    ) -> None:
        assert [r.event_name for r in results.results[1:]] == [
            "60m horden",
            "Hoogspringen",
        ]
        assert results.results[1].items == [
            Measurement(10.92),
            Position(4),
            Points(612),
        ]
        assert results.get_total_points() == 1124

    def test_standalone_row_under_combined_header(
        self, parser: AthleteResultsParser
    ) -> None:
        results = parser.parse(
            '<table id="uitslagentabel"><thead><tr>'
            "<th>Meerkamp</th><th>Onderdeel</th><th>Prestatie</th>"
            "<th>Pl.</th><th>Punten</th>"
            "</tr></thead><tbody><tr>"
            '<td><a href="/wedstrijd/uitslagenonderdeel/1/60m/">60m</a></td>'
            '<td><span class="sortData" data="7.94"></span>7,94</td>'
            "<td>3</td>"
            "</tr></tbody></table>"
        )
        assert results.results[0].items == [Measurement(7.94), Position(3)]
