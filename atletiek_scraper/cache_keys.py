"""Cache keys, one variant per logical request.

Keys are frozen dataclasses: equality and hashing are structural. All
normalization happens when a key is built, so two semantically equal
requests always map to the same cache entry.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, ClassVar

from atletiek_scraper.utils.country import resolve_country

HOUR = 3600.0


@dataclass(frozen=True)
class SearchCompetitions:
    start: date
    end: date
    query: str | None = None
    country: str | None = None

    kind: ClassVar[str] = "search_competitions"

    def __post_init__(self) -> None:
        # None and "" are the same search; queries are case-insensitive
        object.__setattr__(self, "query", (self.query or "").casefold())
        object.__setattr__(self, "country", resolve_country(self.country))

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "query": self.query,
            "country": self.country,
        }


@dataclass(frozen=True)
class GetRegistrations:
    competition_id: int

    kind: ClassVar[str] = "get_registrations"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "competition_id": self.competition_id}


@dataclass(frozen=True)
class GetResults:
    participant_id: int

    kind: ClassVar[str] = "get_results"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "participant_id": self.participant_id}


@dataclass(frozen=True)
class SearchAthletes:
    query: str

    kind: ClassVar[str] = "search_athletes"

    def __post_init__(self) -> None:
        object.__setattr__(self, "query", self.query.strip().lower())

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "query": self.query}


@dataclass(frozen=True)
class GetAthleteProfile:
    athlete_id: int

    kind: ClassVar[str] = "get_athlete_profile"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "athlete_id": self.athlete_id}


CachedRequestKey = (
    SearchCompetitions
    | GetRegistrations
    | GetResults
    | SearchAthletes
    | GetAthleteProfile
)

# Time to live per key kind, in seconds
DEFAULT_TTLS: dict[str, float] = {
    SearchCompetitions.kind: 12 * HOUR,
    GetRegistrations.kind: 12 * HOUR,
    GetResults.kind: 24 * HOUR,
    SearchAthletes.kind: 12 * HOUR,
    GetAthleteProfile.kind: 12 * HOUR,
}


def new_search_competitions(
    start: date, end: date, query: str | None = None, country: str | None = None
) -> SearchCompetitions:
    return SearchCompetitions(start, end, query, country)


def new_get_registrations(competition_id: int) -> GetRegistrations:
    return GetRegistrations(int(competition_id))


def new_get_results(participant_id: int) -> GetResults:
    return GetResults(int(participant_id))


def new_search_athletes(query: str) -> SearchAthletes:
    return SearchAthletes(query)


def new_get_athlete_profile(athlete_id: int) -> GetAthleteProfile:
    return GetAthleteProfile(int(athlete_id))


def key_from_dict(data: dict[str, Any]) -> CachedRequestKey:
    """Rebuilds a key serialized with ``to_dict``.

    Raises:
        ValueError: If the kind is unknown.
        KeyError: If a field is missing.
    """
    kind = data["kind"]
    if kind == SearchCompetitions.kind:
        return new_search_competitions(
            date.fromisoformat(data["start"]),
            date.fromisoformat(data["end"]),
            data.get("query"),
            data.get("country"),
        )
    if kind == GetRegistrations.kind:
        return new_get_registrations(data["competition_id"])
    if kind == GetResults.kind:
        return new_get_results(data["participant_id"])
    if kind == SearchAthletes.kind:
        return new_search_athletes(data["query"])
    if kind == GetAthleteProfile.kind:
        return new_get_athlete_profile(data["athlete_id"])
    raise ValueError(f"Unknown request kind: {kind}")
