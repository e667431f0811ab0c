from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from atletiek_scraper.cache_keys import (
    CachedRequestKey,
    GetAthleteProfile,
    GetRegistrations,
    GetResults,
    SearchAthletes,
    SearchCompetitions,
)
from atletiek_scraper.sources.athlete_list import AthleteListParser
from atletiek_scraper.sources.base_parser import BaseParser
from atletiek_scraper.sources.competition_events import CompetitionEventListParser
from atletiek_scraper.sources.competition_list import CompetitionListParser
from atletiek_scraper.sources.profile import AthleteProfileParser
from atletiek_scraper.sources.registrations import RegistrationListParser
from atletiek_scraper.sources.results import AthleteResultsParser
from atletiek_scraper.utils.date_and_time import date_to_epoch

BASE_URL = "https://www.atletiek.nu"
# Athlete app version the search endpoint expects
APP_VERSION = "1.16"


@dataclass(frozen=True)
class PageRequest:
    """An upstream page and the parser that turns it into a record."""

    url: str
    parser: BaseParser

    def parse(self, html: bytes | str) -> Any:
        return self.parser.parse(html)


class AtletiekSource:
    """Builds atletiek.nu URLs and binds each request kind to its parser."""

    def __init__(self, base_url: str = BASE_URL) -> None:
        self.base_url = base_url.rstrip("/")
        self.competition_list_parser = CompetitionListParser()
        self.athlete_list_parser = AthleteListParser()
        self.registration_list_parser = RegistrationListParser()
        self.results_parser = AthleteResultsParser()
        self.profile_parser = AthleteProfileParser()
        self.competition_events_parser = CompetitionEventListParser()

    def competitions_url(self, key: SearchCompetitions) -> str:
        params = [
            ("page", "search"),
            ("do", "events"),
            ("country", key.country),
            ("event_soort[]", "in"),
            ("event_soort[]", "out"),
            ("search", key.query or ""),
            ("startDate", date_to_epoch(key.start)),
            ("endDate", date_to_epoch(key.end)),
        ]
        return f"{self.base_url}/feeder.php?{urlencode(params)}"

    def registrations_url(self, key: GetRegistrations) -> str:
        return f"{self.base_url}/wedstrijd/atleten/{key.competition_id}/"

    def results_url(self, key: GetResults) -> str:
        return f"{self.base_url}/atleet/main/{key.participant_id}/"

    def athlete_search_url(self, key: SearchAthletes) -> str:
        params = [
            ("page", "athletes"),
            ("do", "searchresults"),
            ("name", key.query),
            ("language", "en_GB"),
            ("version", APP_VERSION),
            ("improvePerformance", 0),
        ]
        return f"{self.base_url}/athleteapp.php?{urlencode(params)}"

    def profile_url(self, key: GetAthleteProfile) -> str:
        return f"{self.base_url}/atleet/profiel/{key.athlete_id}/"

    def competition_url(self, competition_id: int) -> str:
        return f"{self.base_url}/wedstrijd/main/{int(competition_id)}/"

    def competition_events_request(self, competition_id: int) -> PageRequest:
        """Returns the competition page and the parser for its event list.

        Event lists are not cached; callers fetch them directly.
        """
        return PageRequest(
            self.competition_url(competition_id), self.competition_events_parser
        )

    def request_for(self, key: CachedRequestKey) -> PageRequest:
        """Returns the page to fetch for a key and the parser for it."""
        if isinstance(key, SearchCompetitions):
            return PageRequest(self.competitions_url(key), self.competition_list_parser)
        if isinstance(key, GetRegistrations):
            return PageRequest(
                self.registrations_url(key), self.registration_list_parser
            )
        if isinstance(key, GetResults):
            return PageRequest(self.results_url(key), self.results_parser)
        if isinstance(key, SearchAthletes):
            return PageRequest(self.athlete_search_url(key), self.athlete_list_parser)
        if isinstance(key, GetAthleteProfile):
            return PageRequest(self.profile_url(key), self.profile_parser)
        raise TypeError(f"Unsupported request key: {key!r}")
