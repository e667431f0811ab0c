import re

import soupsieve as sv

from atletiek_scraper.models import CompetitionEvent
from atletiek_scraper.sources.base_parser import BaseParser, Document, attr

# 1: competition id, 2: event id
START_LIST_RE = re.compile(r"/wedstrijd/startlijst/(\d+)/(\d+)/")


class CompetitionEventListParser(BaseParser):
    """Collects the events of a competition from its start list links.

    The competition page links each event's start list next to a status
    badge. An event listed under several rounds or groups is returned once,
    in order of first appearance.
    """

    page = "competition_events"

    START_LIST_LINK = sv.compile("tbody > tr > td > span + a[href]")

    def parse(self, document: Document) -> list[CompetitionEvent]:
        soup = self.make_soup(document)
        events: dict[tuple[int, int], CompetitionEvent] = {}

        for link in self.START_LIST_LINK.select(soup):
            href = attr(link, "href") or ""
            for competition_id, event_id in START_LIST_RE.findall(href):
                key = (int(competition_id), int(event_id))
                events.setdefault(key, CompetitionEvent(*key))

        self.logger.debug("competition_events_parsed", count=len(events))
        return list(events.values())
