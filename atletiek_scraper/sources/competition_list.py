import re
from datetime import date

import soupsieve as sv
from bs4 import Tag

from atletiek_scraper.exceptions import FieldParseError
from atletiek_scraper.models import CompetitionSummary
from atletiek_scraper.sources.base_parser import BaseParser, Document, attr, cell_text
from atletiek_scraper.utils.date_and_time import parse_month_abbreviation_date
from atletiek_scraper.utils.html import clean_html, normalize_space

ID_RE = re.compile(r"(\d+)")
# "123 athletes" / "123 deelnemers"
REGISTRATIONS_RE = re.compile(r"(\d+)\s*(?:athletes?|deelnemers?|atleten)", re.I)

RESULTS_LABELS = frozenset({"results", "uitslagen"})
CLUB_MEMBERS_ONLY_MARKERS = ("Club members only", "Alleen voor clubleden")


class CompetitionListParser(BaseParser):
    """Parses the competition search feeder (``feeder.php?page=search``).

    The feeder returns bare table rows, one per competition. An empty
    document is a valid result: the search simply found nothing.
    """

    page = "competition_list"

    ROW = sv.compile("tr[onclick]")
    DATE = sv.compile("td.datumCol > span.hidden-xs")
    NAME = sv.compile("td.eventnaam > a > span > span.eventnaam")
    CLUB_AND_LOCATION = sv.compile("td.eventnaam > a > span > span.verenigingnaam")
    REGISTRATIONS = sv.compile("td.eventnaam > a > span > span.aantaldeelnemers")
    STATUS = sv.compile("td:last-child > span")

    def parse(self, document: Document) -> list[CompetitionSummary]:
        """Parses all competitions listed in the feeder output.

        Args:
            document: Feeder HTML or a parsed tree.

        Returns:
            Competitions in page order; rows that cannot be parsed are
            skipped with a warning.
        """
        soup = self.make_soup(document)
        competitions = []

        for row in self.ROW.select(soup):
            try:
                competitions.append(self._parse_row(row))
            except FieldParseError as e:
                self.logger.warning(
                    "competition_row_skipped", error=e.message, raw_value=e.raw_value
                )

        self.logger.debug("competitions_parsed", count=len(competitions))
        return competitions

    def _parse_row(self, row: Tag) -> CompetitionSummary:
        onclick = attr(row, "onclick") or ""
        id_match = ID_RE.search(onclick)
        if not id_match:
            raise FieldParseError(
                "No competition id in row", raw_value=onclick, field="competition_id"
            )
        competition_id = int(id_match.group(1))

        name_node = self.NAME.select_one(row)
        if name_node is None:
            raise FieldParseError(
                "No competition name in row",
                raw_value=str(competition_id),
                field="name",
                selector=self.NAME.pattern,
            )
        inner_html = name_node.decode_contents()
        # Nested badges (e.g. "Club members only") are not part of the name
        name = normalize_space(clean_html(name_node))
        club_members_only = any(m in inner_html for m in CLUB_MEMBERS_ONLY_MARKERS)

        club, location = self._parse_club_and_location(row)

        return CompetitionSummary(
            competition_id=competition_id,
            name=name,
            date=self._parse_date(row, competition_id),
            location=location,
            club=club,
            registrations=self._parse_registrations(row, competition_id),
            results_available=self._has_results(row),
            club_members_only=club_members_only,
        )

    def _parse_date(self, row: Tag, competition_id: int) -> date:
        date_node = self.DATE.select_one(row)
        if date_node is None:
            self.logger.warning(
                "competition_date_missing", competition_id=competition_id
            )
            return date.today()
        return parse_month_abbreviation_date(cell_text(date_node))

    def _parse_club_and_location(self, row: Tag) -> tuple[str, str]:
        # Text is "Club, Location"; the location itself may contain commas
        text = cell_text(self.CLUB_AND_LOCATION.select_one(row))
        club, _, location = text.partition(", ")
        return club.strip(), location.strip()

    def _parse_registrations(self, row: Tag, competition_id: int) -> int:
        text = cell_text(self.REGISTRATIONS.select_one(row))
        match = REGISTRATIONS_RE.search(text)
        if not match:
            self.logger.debug(
                "registration_count_missing", competition_id=competition_id, text=text
            )
            return 0
        return int(match.group(1))

    def _has_results(self, row: Tag) -> bool:
        status = self.STATUS.select_one(row)
        return cell_text(status).lower() in RESULTS_LABELS
