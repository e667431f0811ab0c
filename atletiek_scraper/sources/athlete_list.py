import re

import soupsieve as sv
from bs4 import Tag

from atletiek_scraper.exceptions import FieldParseError
from atletiek_scraper.models import AthleteSummary
from atletiek_scraper.sources.base_parser import BaseParser, Document, attr
from atletiek_scraper.utils.html import normalize_space

ATHLETE_ID_RE = re.compile(r"koppel_id=(\d+)")
# 1: age, 2: club name
AGE_AND_CLUB_RE = re.compile(r"(\d{1,3})\s+(?:years|jaar)\s*\|\s*(.+)")


class AthleteListParser(BaseParser):
    """Parses athlete search results from the athlete app."""

    page = "athlete_list"

    ITEM = sv.compile("div.list-athletes > ul > li > a > div.item-inner > div.item-title")

    def parse(self, document: Document) -> list[AthleteSummary]:
        soup = self.make_soup(document)
        athletes = []

        for item in self.ITEM.select(soup):
            try:
                athletes.append(self._parse_item(item))
            except FieldParseError as e:
                self.logger.warning(
                    "athlete_item_skipped", error=e.message, raw_value=e.raw_value
                )

        return athletes

    def _parse_item(self, item: Tag) -> AthleteSummary:
        lines = [normalize_space(s) for s in item.stripped_strings]
        lines = [line for line in lines if line]
        if len(lines) < 2:
            raise FieldParseError(
                "Athlete item without name and details",
                raw_value=" | ".join(lines),
                field="name",
            )

        details = AGE_AND_CLUB_RE.search(lines[-1])
        if not details:
            raise FieldParseError(
                "Unrecognized athlete details", raw_value=lines[-1], field="age"
            )

        link = item.find_parent("a")
        onclick = attr(link, "onclick") or attr(link, "href") or ""
        id_match = ATHLETE_ID_RE.search(onclick)
        if not id_match:
            raise FieldParseError(
                "No athlete id on item", raw_value=onclick, field="athlete_id"
            )

        return AthleteSummary(
            athlete_id=int(id_match.group(1)),
            name=lines[0],
            club_name=details.group(2).strip(),
            age=int(details.group(1)),
        )
