import re

import soupsieve as sv
from bs4 import Tag

from atletiek_scraper.exceptions import FieldParseError
from atletiek_scraper.models import CompetitionLocation, CompetitionRegistration
from atletiek_scraper.sources.base_parser import BaseParser, Document, attr, cell_text
from atletiek_scraper.utils.date_and_time import parse_sort_date
from atletiek_scraper.utils.html import clean_html, normalize_space

PARTICIPANT_LINK_RE = re.compile(r"/atleet/main/(\d+)/")
# Flag tooltip: 'Netherlands<br><span class="subtext">Europe</span>'
FLAG_TITLE_RE = re.compile(
    r"^\s*([^<]*?)\s*<br\s*/?>\s*<span[^>]*>\s*([^<]*?)\s*</span>", re.I
)


class CompetitionRegistrationsParser(BaseParser):
    """Parses the list of competitions on athlete pages.

    Both the athlete results page and the athlete profile page show the
    competitions the athlete took part in, with the same table markup.
    """

    page = "past_registrations"

    ROW = sv.compile("div#wedstrijden > table > tbody > tr")
    SORT_DATA = sv.compile("span.sortData[data]")
    LOCATION = sv.compile("span.subtext > span.hidden-xs")
    FLAG = sv.compile("img[title]")

    def parse(self, document: Document) -> list[CompetitionRegistration]:
        """Parses all listed competitions.

        The table is optional: a page without it yields an empty list.
        """
        soup = self.make_soup(document)
        registrations = []

        for row in self.ROW.select(soup):
            try:
                registrations.append(self._parse_row(row))
            except FieldParseError as e:
                self.logger.warning(
                    "past_registration_skipped", error=e.message, raw_value=e.raw_value
                )

        return registrations

    def _parse_row(self, row: Tag) -> CompetitionRegistration:
        first_cell = row.find("td")
        if first_cell is None:
            raise FieldParseError("Row without cells", field="competition_name")

        link = first_cell.find("a", href=True)
        participant_id = None
        if link is not None:
            match = PARTICIPANT_LINK_RE.search(attr(link, "href") or "")
            if match:
                participant_id = int(match.group(1))
            name = cell_text(link)
        else:
            name = normalize_space(clean_html(first_cell))

        sort_data = self.SORT_DATA.select_one(row)
        if sort_data is None:
            raise FieldParseError(
                "Row without sort date",
                raw_value=name,
                field="date",
                selector=self.SORT_DATA.pattern,
            )

        return CompetitionRegistration(
            participant_id=participant_id,
            competition_name=name,
            date=parse_sort_date(attr(sort_data, "data") or ""),
            location=self._parse_location(row),
        )

    def _parse_location(self, row: Tag) -> CompetitionLocation:
        location = self.LOCATION.select_one(row)
        if location is None:
            raise FieldParseError(
                "Row without location", field="location", selector=self.LOCATION.pattern
            )

        place = normalize_space(clean_html(location))

        flag = self.FLAG.select_one(location)
        title = attr(flag, "title") or ""
        match = FLAG_TITLE_RE.search(title)
        if not match:
            raise FieldParseError(
                "Unrecognized country tooltip", raw_value=title, field="country"
            )

        return CompetitionLocation(
            place=place,
            country=match.group(1),
            continent=match.group(2),
            flag_img_url=attr(flag, "src") or "",
        )
