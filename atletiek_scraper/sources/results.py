import re
from enum import Enum

import soupsieve as sv
from bs4 import Tag

from atletiek_scraper.exceptions import (
    FieldParseError,
    StructureNotFound,
    UnsupportedPageVariant,
)
from atletiek_scraper.models import (
    AthleteEventResults,
    EventResult,
    EventResultItem,
    Measurement,
    Points,
    Position,
    TimetableSlot,
)
from atletiek_scraper.sources.base_parser import BaseParser, Document, attr, cell_text
from atletiek_scraper.sources.competition_registrations import (
    CompetitionRegistrationsParser,
)
from atletiek_scraper.utils.date_and_time import parse_sort_datetime
from atletiek_scraper.utils.html import clean_html, normalize_space
from atletiek_scraper.utils.numbers import parse_decimal, parse_int
from atletiek_scraper.utils.wind_speed import parse_wind_speed

COMPETITION_LINK_RE = re.compile(r"/wedstrijd/main/(\d+)/")
# Event code in the event url, used when the link has no text
EVENT_CODE_RE = re.compile(r"/uitslagenonderdeel/\d*/([A-Za-z\d]*)/")

# Pages that link to results hosted elsewhere instead of showing them
EXTERNAL_RESULTS_MARKERS = (
    "Results are published externally",
    "Uitslagen worden extern gepubliceerd",
)

RESULT_HEADER_ALIASES = {
    "event": frozenset({"event", "onderdeel"}),
    "position": frozenset({"pos", "pos.", "position", "pl", "pl.", "plaats"}),
    "points": frozenset({"points", "punten", "pnt", "pnt.", "pts"}),
}

TIMETABLE_HEADER_ALIASES = {
    "time": frozenset({"time", "tijd", "date", "datum"}),
    "event": frozenset({"event", "onderdeel"}),
    "group": frozenset({"group", "groep", "round", "ronde", "serie"}),
}

# Empty result cells
NO_VALUE = frozenset({"", "-", "--"})


class RowShape(Enum):
    """Layouts of a row in the results table."""

    STANDARD_ROW = "StandardRow"
    COMBINED_EVENT_ROW = "CombinedEventRow"
    NO_MATCH = "NoMatch"


class AthleteResultsParser(BaseParser):
    """Parses an athlete's results page of a single competition.

    Besides the results table the page carries the athlete's timetable for
    the competition and the list of other competitions of the athlete.
    """

    page = "results"

    NAME = sv.compile("h1")
    COMPETITION_LINK = sv.compile('a[href*="/wedstrijd/main/"]')
    RESULTS_TABLE = sv.compile("table#uitslagentabel")
    HEADER = sv.compile("thead > tr > th")
    ROW = sv.compile("tbody > tr")
    SORT_DATA = sv.compile("span.sortData[data]")
    VISIBLE_RESULT = sv.compile("span.tipped")
    TIMETABLE_TABLE = sv.compile("table#tijdschema")

    def __init__(self) -> None:
        super().__init__()
        self.past_registrations_parser = CompetitionRegistrationsParser()

    def probe_row_shape(self, cells: list[Tag]) -> RowShape:
        """Detects the row layout from where the event link sits.

        Standalone events link the event in the first cell; rows of a
        combined event have the combined event name first and the link in
        the second cell.
        """
        if cells and cells[0].find("a", href=True) is not None:
            return RowShape.STANDARD_ROW
        if len(cells) > 1 and cells[1].find("a", href=True) is not None:
            return RowShape.COMBINED_EVENT_ROW
        return RowShape.NO_MATCH

    def parse(self, document: Document) -> AthleteEventResults:
        """Parses results, timetable and past competitions of an athlete.

        Args:
            document: Results page HTML or a parsed tree.

        Returns:
            The athlete's results with one EventResult per event url.

        Raises:
            UnsupportedPageVariant: If the results are published externally.
            StructureNotFound: If the page has no results table.
        """
        soup = self.make_soup(document)

        table = self.RESULTS_TABLE.select_one(soup)
        if table is None:
            page_text = soup.get_text(" ")
            for marker in EXTERNAL_RESULTS_MARKERS:
                if marker in page_text:
                    raise UnsupportedPageVariant(
                        "Results of this competition are published externally",
                        marker=marker,
                        page=self.page,
                    )
            raise StructureNotFound(
                "No results table found",
                page=self.page,
                selector=self.RESULTS_TABLE.pattern,
            )

        return AthleteEventResults(
            athlete_name=self._parse_name(soup),
            competition_id=self._parse_competition_id(soup),
            results=self._parse_results(table),
            timetable=self._parse_timetable(soup),
            past_registrations=self.past_registrations_parser.parse(soup),
        )

    def _parse_name(self, soup: Tag) -> str:
        heading = self.NAME.select_one(soup)
        if heading is None:
            self.logger.warning("athlete_name_missing")
            return ""
        name = normalize_space(clean_html(heading))
        return name or cell_text(heading)

    def _parse_competition_id(self, soup: Tag) -> int | None:
        link = self.COMPETITION_LINK.select_one(soup)
        match = COMPETITION_LINK_RE.search(attr(link, "href") or "")
        return int(match.group(1)) if match else None

    # --- Results ------------------------------------------------------------

    def _parse_results(self, table: Tag) -> list[EventResult]:
        header_cells = self.HEADER.select(table)
        columns = self.read_header_map(header_cells, RESULT_HEADER_ALIASES)
        header_width = len(header_cells)
        # Keyed by event url, insertion ordered
        results: dict[str, EventResult] = {}

        for row in self.ROW.select(table):
            cells = row.find_all("td", recursive=False)
            shape = self.probe_row_shape(cells)
            if shape is RowShape.NO_MATCH:
                self.logger.debug("result_row_skipped", text=cell_text(row)[:80])
                continue

            try:
                event_name, event_url = self._parse_event(cells, shape)
            except FieldParseError as e:
                self.logger.warning("result_row_skipped", error=e.message)
                continue

            # Header positions only describe rows as wide as the header
            row_columns = columns if len(cells) == header_width else {}
            items = self._parse_items(cells, shape, row_columns, event_url)
            result = results.get(event_url)
            if result is None:
                results[event_url] = EventResult(event_name, event_url, items)
            else:
                result.items.extend(items)

        return list(results.values())

    def _parse_event(self, cells: list[Tag], shape: RowShape) -> tuple[str, str]:
        event_cell = cells[0] if shape is RowShape.STANDARD_ROW else cells[1]
        link = event_cell.find("a", href=True)
        url = attr(link, "href") or ""
        name = cell_text(link)
        if not name:
            match = EVENT_CODE_RE.search(url)
            if not match:
                raise FieldParseError(
                    "Event link without name", raw_value=url, field="event_name"
                )
            name = match.group(1)
        return name, url

    def _column_roles(
        self, cells: list[Tag], shape: RowShape, columns: dict[str, int]
    ) -> dict[int, str]:
        """Assigns a role (position, points, measurement) to each cell.

        Header roles take precedence. Without them the row shape decides:
        standalone rows end with the position, combined event rows end with
        the position followed by the points.
        """
        count = len(cells)
        event_index = 0 if shape is RowShape.STANDARD_ROW else 1

        if shape is RowShape.STANDARD_ROW:
            position_index = columns.get("position", count - 1)
            points_index = columns.get("points")
        else:
            position_index = columns.get("position", count - 2)
            points_index = columns.get("points", count - 1)

        roles = {}
        for index in range(event_index + 1, count):
            if index == position_index:
                roles[index] = "position"
            elif index == points_index:
                roles[index] = "points"
            else:
                roles[index] = "measurement"
        return roles

    def _parse_items(
        self,
        cells: list[Tag],
        shape: RowShape,
        columns: dict[str, int],
        event_url: str,
    ) -> list[EventResultItem]:
        items: list[EventResultItem] = []
        for index, role in self._column_roles(cells, shape, columns).items():
            try:
                item = self._parse_item(cells[index], role)
            except FieldParseError as e:
                self.logger.debug(
                    "result_cell_skipped",
                    event_url=event_url,
                    role=role,
                    error=e.message,
                    raw_value=e.raw_value,
                )
                continue
            if item is not None:
                items.append(item)
        return items

    def _parse_item(self, cell: Tag, role: str) -> EventResultItem | None:
        if role == "measurement":
            return self._parse_measurement(cell)

        text = cell_text(cell)
        if text in NO_VALUE:
            return None
        if role == "position":
            return Position(rank=parse_int(text, field="position"))
        return Points(amount=parse_int(text, field="points"))

    def _parse_measurement(self, cell: Tag) -> Measurement | None:
        sort_data = self.SORT_DATA.select_one(cell)
        if sort_data is None:
            return None

        value = parse_decimal(attr(sort_data, "data") or "", field="measurement")

        visible = self.VISIBLE_RESULT.select_one(cell)
        text = cell_text(visible) if visible is not None else cell_text(cell)
        wind_speed = parse_wind_speed(text) if "m/s" in text else None

        return Measurement.from_raw(value, wind_speed)

    # --- Timetable ----------------------------------------------------------

    def _parse_timetable(self, soup: Tag) -> list[TimetableSlot]:
        table = self.TIMETABLE_TABLE.select_one(soup)
        if table is None:
            return []

        columns = self.read_header_map(
            self.HEADER.select(table), TIMETABLE_HEADER_ALIASES
        )
        time_index = columns.get("time", 0)
        event_index = columns.get("event", 1)
        group_index = columns.get("group", 2)

        slots = []
        for row in self.ROW.select(table):
            cells = row.find_all("td", recursive=False)
            if len(cells) <= max(time_index, event_index):
                continue
            try:
                slots.append(
                    self._parse_slot(cells, time_index, event_index, group_index)
                )
            except FieldParseError as e:
                self.logger.warning(
                    "timetable_slot_skipped", error=e.message, raw_value=e.raw_value
                )
        return slots

    def _parse_slot(
        self, cells: list[Tag], time_index: int, event_index: int, group_index: int
    ) -> TimetableSlot:
        sort_data = self.SORT_DATA.select_one(cells[time_index])
        raw_time = attr(sort_data, "data") or cell_text(cells[time_index])

        event_cell = cells[event_index]
        link = event_cell.find("a", href=True)
        short_name = cell_text(link) if link is not None else cell_text(event_cell)
        long_name = normalize_space(attr(link, "title") or "") or short_name

        group = cell_text(cells[group_index]) if group_index < len(cells) else ""

        return TimetableSlot(
            timestamp=parse_sort_datetime(raw_time),
            start_list_url=attr(link, "href"),
            group_name=group,
            event_name_short=short_name,
            event_name_long=long_name,
        )
