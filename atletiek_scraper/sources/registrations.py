import html
import re
from enum import Enum

import soupsieve as sv
from bs4 import BeautifulSoup, Tag

from atletiek_scraper.exceptions import FieldParseError, StructureNotFound
from atletiek_scraper.models import EventStatus, Registration, RelayTeam
from atletiek_scraper.sources.base_parser import (
    BaseParser,
    Document,
    attr,
    cell_text,
)
from atletiek_scraper.utils.html import clean_html, normalize_space
from atletiek_scraper.utils.numbers import parse_int

PARTICIPANT_ID_RE = re.compile(r"deelnemer_id=(\d+)")
DIGITS_RE = re.compile(r"(\d+)")
# Collapsed summary shown when a participant has more events than fit
COLLAPSED_EVENTS_RE = re.compile(r"^\+\s*\d+\s+(?:onderdelen|onderdeel|events?)$", re.I)

# Status keywords (normalized: lower case, no spaces, dashes or underscores)
STATUS_KEYWORDS = {
    "accepted": EventStatus.ACCEPTED,
    "geaccepteerd": EventStatus.ACCEPTED,
    "cancelled": EventStatus.CANCELLED,
    "canceled": EventStatus.CANCELLED,
    "afgemeld": EventStatus.CANCELLED,
    "rejected": EventStatus.REJECTED,
    "afgewezen": EventStatus.REJECTED,
    "reserve": EventStatus.RESERVE,
    "unverified": EventStatus.UNVERIFIED,
    "nietgeverifieerd": EventStatus.UNVERIFIED,
    "checkedin": EventStatus.CHECKED_IN,
    "ingecheckt": EventStatus.CHECKED_IN,
}

HEADER_ALIASES = {
    "bib": frozenset({"bib", "startnr", "startnr.", "startnummer", "#"}),
    "name": frozenset({"name", "naam", "athlete", "atleet"}),
    "category": frozenset({"category", "categorie", "cat."}),
    "club": frozenset({"club", "vereniging", "club / school"}),
    "team": frozenset({"team", "ploeg"}),
    "relay_teams": frozenset({"relay teams", "estafetteteams", "estafette"}),
    "events": frozenset({"events", "onderdelen", "event", "onderdeel"}),
}


class RegistrationsShape(Enum):
    """Page variants a registration list can come in."""

    LEGACY_APP_LIST = "LegacyAppList"
    WEB_TABLE = "WebTable"
    NO_MATCH = "NoMatch"


def parse_status_keyword(keyword: str) -> EventStatus | None:
    """Maps a status label to an EventStatus, or None if unrecognized."""
    text = keyword.strip().lower()
    if ":" in text:
        # "Status: Checked-in"
        text = text.split(":", 1)[1]
    normalized = re.sub(r"[\s_-]", "", text)
    return STATUS_KEYWORDS.get(normalized)


class RegistrationListParser(BaseParser):
    """Parses the registration list of a competition.

    Two page variants exist. The legacy athlete app renders a list inside a
    ``script`` template (escaped HTML); the website renders a table with a
    header row. Variants are detected by ordered shape probes.
    """

    page = "registrations"

    LEGACY_SCRIPT = sv.compile("script.list-content-registrations")
    WEB_TABLE = sv.compile("table.deelnemerstabel")

    SHAPE_PROBES = (
        (RegistrationsShape.LEGACY_APP_LIST, LEGACY_SCRIPT),
        (RegistrationsShape.WEB_TABLE, WEB_TABLE),
    )

    LEGACY_ITEM = sv.compile("li > a")
    LEGACY_TITLE = sv.compile("div.item-inner > div.item-title")
    LEGACY_EVENTS = sv.compile("div.item-inner > div.item-after")

    HEADER = sv.compile("thead > tr > th")
    ROW = sv.compile("tbody > tr")
    EVENT_LABEL = sv.compile("span.inschrijving[title]")
    CLUB_TOOLTIP = sv.compile("span.tipped[title]")
    OUT_OF_COMPETITION = sv.compile(".buitenmededinging")

    def probe_shape(self, soup: Tag) -> RegistrationsShape:
        for shape, selector in self.SHAPE_PROBES:
            if selector.select_one(soup) is not None:
                return shape
        return RegistrationsShape.NO_MATCH

    def parse(self, document: Document) -> list[Registration]:
        """Parses all registrations of a competition.

        Args:
            document: Registration page HTML or a parsed tree.

        Returns:
            Registrations in page order, unique by participant id (the first
            occurrence wins).

        Raises:
            StructureNotFound: If the page matches no known variant.
        """
        soup = self.make_soup(document)
        shape = self.probe_shape(soup)
        self.logger.debug("registrations_shape_detected", shape=shape.value)

        if shape is RegistrationsShape.LEGACY_APP_LIST:
            registrations = self._parse_legacy_list(soup)
        elif shape is RegistrationsShape.WEB_TABLE:
            registrations = self._parse_web_table(soup)
        else:
            raise StructureNotFound(
                "No registrations list or table found",
                page=self.page,
                selector=f"{self.LEGACY_SCRIPT.pattern}, {self.WEB_TABLE.pattern}",
            )

        return self._deduplicate(registrations)

    def _deduplicate(self, registrations: list[Registration]) -> list[Registration]:
        seen: set[int] = set()
        unique = []
        for registration in registrations:
            if registration.participant_id in seen:
                self.logger.debug(
                    "duplicate_participant_dropped",
                    participant_id=registration.participant_id,
                )
                continue
            seen.add(registration.participant_id)
            unique.append(registration)
        return unique

    # --- Legacy athlete app -------------------------------------------------

    def _parse_legacy_list(self, soup: Tag) -> list[Registration]:
        script = self.LEGACY_SCRIPT.select_one(soup)
        # The template is served HTML-escaped inside the script element
        fragment = BeautifulSoup(html.unescape(script.string or ""), "lxml")

        registrations = []
        for item in self.LEGACY_ITEM.select(fragment):
            try:
                registrations.append(self._parse_legacy_item(item))
            except FieldParseError as e:
                self.logger.warning(
                    "registration_skipped", error=e.message, raw_value=e.raw_value
                )
        return registrations

    def _parse_legacy_item(self, item: Tag) -> Registration:
        href = attr(item, "href") or ""
        id_match = PARTICIPANT_ID_RE.search(href)
        if not id_match:
            raise FieldParseError(
                "No participant id in link", raw_value=href, field="participant_id"
            )

        title = self.LEGACY_TITLE.select_one(item)
        lines = [normalize_space(s) for s in title.stripped_strings] if title else []
        if len(lines) < 2:
            raise FieldParseError(
                "Registration item without name and details",
                raw_value=" | ".join(lines),
                field="name",
            )

        # "Category | Club" or "Category | Club | Team"
        parts = [p.strip() for p in lines[-1].split("|")]
        if len(parts) == 3:
            category, club, team = parts
        elif len(parts) == 2:
            category, club = parts
            team = None
        else:
            raise FieldParseError(
                "Unrecognized category and club", raw_value=lines[-1], field="category"
            )

        events_node = self.LEGACY_EVENTS.select_one(item)
        return Registration(
            participant_id=int(id_match.group(1)),
            name=lines[0],
            category=category,
            club_name=club,
            team_name=team or None,
            events=self._extract_events(events_node, int(id_match.group(1))),
        )

    # --- Website table ------------------------------------------------------

    def _parse_web_table(self, soup: Tag) -> list[Registration]:
        table = self.WEB_TABLE.select_one(soup)
        columns = self.read_header_map(self.HEADER.select(table), HEADER_ALIASES)
        if "name" not in columns:
            raise StructureNotFound(
                "Registrations table has no name column",
                page=self.page,
                selector=self.HEADER.pattern,
            )

        registrations = []
        for row in self.ROW.select(table):
            try:
                registrations.append(self._parse_web_row(row, columns))
            except FieldParseError as e:
                self.logger.warning(
                    "registration_skipped", error=e.message, raw_value=e.raw_value
                )
        return registrations

    def _parse_web_row(self, row: Tag, columns: dict[str, int]) -> Registration:
        row_id = attr(row, "id") or ""
        id_match = DIGITS_RE.search(row_id)
        if not id_match:
            raise FieldParseError(
                "Registration row without id", raw_value=row_id, field="participant_id"
            )
        participant_id = int(id_match.group(1))

        cells = row.find_all("td", recursive=False)

        def column(name: str) -> Tag | None:
            index = columns.get(name)
            if index is None or index >= len(cells):
                return None
            return cells[index]

        name_cell = column("name")
        club_name, club_name_short = self._parse_club(column("club"))
        team_name = cell_text(column("team")) or None

        return Registration(
            participant_id=participant_id,
            name=self._parse_name(name_cell),
            category=cell_text(column("category")),
            club_name=club_name,
            club_name_short=club_name_short,
            team_name=team_name,
            relay_teams=self._parse_relay_teams(column("relay_teams")),
            events=self._extract_events(column("events"), participant_id),
            out_of_competition=(
                name_cell is not None
                and self.OUT_OF_COMPETITION.select_one(name_cell) is not None
            ),
            bib_number=self._parse_bib(column("bib"), participant_id),
        )

    def _parse_name(self, cell: Tag | None) -> str:
        if cell is None:
            return ""
        link = cell.find("a")
        if link is not None:
            return cell_text(link)
        # Badges (out of competition marker) are nested, the name is not
        return normalize_space(clean_html(cell))

    def _parse_club(self, cell: Tag | None) -> tuple[str, str | None]:
        if cell is None:
            return "", None
        tooltip = self.CLUB_TOOLTIP.select_one(cell)
        if tooltip is not None:
            return normalize_space(attr(tooltip, "title") or ""), cell_text(tooltip)
        return cell_text(cell), None

    def _parse_relay_teams(self, cell: Tag | None) -> list[RelayTeam]:
        if cell is None:
            return []
        teams = []
        for link in cell.find_all("a", href=True):
            numbers = DIGITS_RE.findall(attr(link, "href") or "")
            if not numbers:
                self.logger.debug("relay_team_without_id", text=cell_text(link))
                continue
            teams.append(RelayTeam(team_id=int(numbers[-1]), name=cell_text(link)))
        return teams

    def _parse_bib(self, cell: Tag | None, participant_id: int) -> int | None:
        text = cell_text(cell)
        if not text:
            return None
        try:
            return parse_int(text, field="bib_number")
        except FieldParseError:
            self.logger.debug("bib_number_unparsed", participant_id=participant_id, text=text)
            return None

    # --- Event status -------------------------------------------------------

    def _extract_events(
        self, cell: Tag | None, participant_id: int
    ) -> list[tuple[str, EventStatus]]:
        """Reads (event, status) pairs from an events cell.

        Annotated labels carry the status in their tooltip. Without them,
        every non-empty text line is an event with an unknown status.
        """
        if cell is None:
            return []

        labels = self.EVENT_LABEL.select(cell)
        if labels:
            events = []
            for label in labels:
                name = cell_text(label)
                if not name or COLLAPSED_EVENTS_RE.match(name):
                    continue
                keyword = attr(label, "title") or ""
                status = parse_status_keyword(keyword)
                if status is None:
                    self.logger.warning(
                        "unexpected_event_status",
                        participant_id=participant_id,
                        event=name,
                        status=keyword,
                    )
                    status = EventStatus.UNKNOWN
                events.append((name, status))
            return events

        lines = (normalize_space(line) for line in cell.get_text("\n").splitlines())
        return [
            (line, EventStatus.UNKNOWN)
            for line in lines
            if line and not COLLAPSED_EVENTS_RE.match(line)
        ]
