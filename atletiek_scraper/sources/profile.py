import re
from datetime import date

import soupsieve as sv
from bs4 import Tag

from atletiek_scraper.exceptions import FieldParseError
from atletiek_scraper.models import Attribute, AthleteProfile, EventGraph, PersonalBest
from atletiek_scraper.sources.base_parser import BaseParser, Document, attr, cell_text
from atletiek_scraper.sources.competition_registrations import (
    CompetitionRegistrationsParser,
)
from atletiek_scraper.utils.attribute import parse_attribute
from atletiek_scraper.utils.date_and_time import parse_sort_date
from atletiek_scraper.utils.html import clean_html, normalize_space
from atletiek_scraper.utils.numbers import parse_decimal, round_float_to_digits
from atletiek_scraper.utils.wind_speed import parse_wind_speed

# "9,62", "1:02,34", "2:01:13,5", "12,3h"
PERFORMANCE_RE = re.compile(r"^((?:\d+:){0,2})(\d+)(?:[.,](\d+))?\s*(h?)$")
# "20160609Venlo (NLD)": date, location, country
PB_SORT_DATA_RE = re.compile(r"^(\d{8})(.*?)\s*\((\w*)\)\s*$", re.S)

PB_HEADER_ALIASES = {
    "event": frozenset({"event", "onderdeel"}),
    "performance": frozenset({"performance", "prestatie", "result", "resultaat"}),
    "date": frozenset({"date", "datum", "date / location", "datum / plaats"}),
}


def parse_performance(text: str) -> tuple[float, bool]:
    """Parses a displayed performance into a number.

    Times with minutes or hours are converted to seconds; plain values are
    seconds or meters depending on the event.

    Args:
        text: The displayed performance, e.g. "1:02,34" or "12,3h".

    Returns:
        (performance, hand_measured)

    Raises:
        FieldParseError: If the text is not a performance.
    """
    match = PERFORMANCE_RE.match(normalize_space(text))
    if not match:
        raise FieldParseError(
            f"Unrecognized performance {text!r}", raw_value=text, field="performance"
        )

    prefix, whole, fraction, hand = match.groups()
    value = 0.0
    for part in prefix.split(":")[:-1]:
        value = value * 60 + int(part)
    value = value * 60 + int(whole) if prefix else float(whole)

    if fraction:
        value += int(fraction) / 10 ** len(fraction)
        value = round_float_to_digits(value, len(fraction))
    return value, hand == "h"


class AthleteProfileParser(BaseParser):
    """Parses an athlete profile: personal bests, graphs, competitions."""

    page = "profile"

    NAME = sv.compile("h1")
    PB_TABLE = sv.compile("div#records > table#persoonlijkerecords")
    HEADER = sv.compile("thead > tr > th")
    PB_ROW = sv.compile("tbody > tr")
    SUBTEXT = sv.compile("span.subtext")
    SORT_DATA = sv.compile("span.sortData[data]")
    SPECIFICATION_ROW = sv.compile("table#specificaties tr[data-specificatie]")
    GRAPH = sv.compile("div.grafiek[data-onderdeel-id][data-specificatie]")
    GRAPH_TITLE = sv.compile("h3")
    GRAPH_POINT = sv.compile("li[data-datum][data-prestatie]")

    def __init__(self) -> None:
        super().__init__()
        self.past_registrations_parser = CompetitionRegistrationsParser()

    def parse(self, document: Document) -> AthleteProfile:
        """Parses an athlete profile page.

        Args:
            document: Profile page HTML or a parsed tree.

        Returns:
            The profile; sections missing from the page are empty.

        Raises:
            StructureNotFound: If the page has no athlete name.
        """
        soup = self.make_soup(document)
        heading = self.require(soup, self.NAME, "No athlete profile found")

        specifications = self._parse_specifications(soup)

        return AthleteProfile(
            name=normalize_space(clean_html(heading))
            or cell_text(heading),
            personal_bests=self._parse_personal_bests(soup),
            graphs=self._parse_graphs(soup, specifications),
            past_registrations=self.past_registrations_parser.parse(soup),
        )

    # --- Personal bests -----------------------------------------------------

    def _parse_personal_bests(self, soup: Tag) -> list[PersonalBest]:
        table = self.PB_TABLE.select_one(soup)
        if table is None:
            return []

        columns = self.read_header_map(self.HEADER.select(table), PB_HEADER_ALIASES)
        indexes = (
            columns.get("event", 0),
            columns.get("performance", 1),
            columns.get("date", 2),
        )

        personal_bests = []
        for row in self.PB_ROW.select(table):
            cells = row.find_all("td", recursive=False)
            if len(cells) <= max(indexes):
                continue
            try:
                personal_bests.append(self._parse_personal_best(row, cells, *indexes))
            except FieldParseError as e:
                self.logger.warning(
                    "personal_best_skipped", error=e.message, raw_value=e.raw_value
                )
        return personal_bests

    def _parse_personal_best(
        self,
        row: Tag,
        cells: list[Tag],
        event_index: int,
        performance_index: int,
        date_index: int,
    ) -> PersonalBest:
        event_cell = cells[event_index]
        event = normalize_space(clean_html(event_cell))
        subtext = self.SUBTEXT.select_one(event_cell)
        attribute = parse_attribute(cell_text(subtext)) if subtext else None

        performance_cell = cells[performance_index]
        display = normalize_space(clean_html(performance_cell))
        performance, hand_measured = parse_performance(display)
        full_text = cell_text(performance_cell)
        wind_speed = parse_wind_speed(full_text) if "m/s" in full_text else None

        sort_data = self.SORT_DATA.select_one(cells[date_index])
        raw = attr(sort_data, "data") or ""
        match = PB_SORT_DATA_RE.match(raw)
        if not match:
            raise FieldParseError(
                "Unrecognized date and location", raw_value=raw, field="date"
            )

        return PersonalBest(
            event=event,
            performance=performance,
            display_performance=display,
            wind_speed=wind_speed,
            hand_measured=hand_measured,
            location=match.group(2).strip(),
            country=match.group(3),
            date=parse_sort_date(match.group(1)),
            not_important="minderbelangrijk" in (attr(row, "class") or "").split(),
            attribute=attribute,
        )

    # --- Graphs -------------------------------------------------------------

    def _parse_specifications(self, soup: Tag) -> dict[str, Attribute]:
        """Reads the specification table into token -> Attribute."""
        specifications = {}
        for row in self.SPECIFICATION_ROW.select(soup):
            token = attr(row, "data-specificatie") or ""
            label = cell_text(row)
            try:
                attribute = parse_attribute(label)
            except FieldParseError as e:
                self.logger.warning(
                    "specification_skipped", token=token, error=e.message
                )
                continue
            specifications[token] = attribute or Attribute.all()
        return specifications

    def _parse_graphs(
        self, soup: Tag, specifications: dict[str, Attribute]
    ) -> list[EventGraph]:
        graphs = []
        for node in self.GRAPH.select(soup):
            token = attr(node, "data-specificatie") or ""
            graph_id = attr(node, "data-grafiek-id")

            if graph_id == token:
                specification = Attribute.all()
            elif token in specifications:
                specification = specifications[token]
            else:
                self.logger.warning(
                    "graph_specification_unresolved", token=token, graph_id=graph_id
                )
                continue

            try:
                event_id = int(attr(node, "data-onderdeel-id") or "")
            except ValueError:
                self.logger.warning(
                    "graph_skipped", token=token, error="invalid event id"
                )
                continue

            graphs.append(
                EventGraph(
                    specification=specification,
                    event=cell_text(self.GRAPH_TITLE.select_one(node)),
                    event_id=event_id,
                    points=self._parse_graph_points(node, token),
                )
            )
        return graphs

    def _parse_graph_points(
        self, node: Tag, token: str
    ) -> list[tuple[date, float]]:
        points = []
        for point in self.GRAPH_POINT.select(node):
            try:
                day = parse_sort_date(attr(point, "data-datum") or "")
                value = parse_decimal(attr(point, "data-prestatie") or "", "performance")
            except FieldParseError as e:
                self.logger.debug(
                    "graph_point_skipped", token=token, raw_value=e.raw_value
                )
                continue
            points.append((day, value))
        return points
