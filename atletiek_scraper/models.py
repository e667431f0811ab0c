from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

# Measurements above this value are upstream sentinels (e.g. 9999998 for a
# DNF in a combined event), never real performances.
MEASUREMENT_THRESHOLD = 10000.0


@dataclass(frozen=True)
class CompetitionSummary:
    """A competition as listed by the competition search feeder.

    Date format: ISO 8601 (YYYY-MM-DD)
    """

    competition_id: int
    name: str
    date: date
    location: str
    club: str
    registrations: int
    results_available: bool
    club_members_only: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "competition_id": self.competition_id,
            "name": self.name,
            "date": self.date.isoformat(),
            "location": self.location,
            "club": self.club,
            "registrations": self.registrations,
            "results_available": self.results_available,
            "club_members_only": self.club_members_only,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompetitionSummary":
        return cls(
            competition_id=int(data["competition_id"]),
            name=data["name"],
            date=date.fromisoformat(data["date"]),
            location=data["location"],
            club=data["club"],
            registrations=int(data["registrations"]),
            results_available=bool(data["results_available"]),
            club_members_only=bool(data["club_members_only"]),
        )


@dataclass(frozen=True)
class AthleteSummary:
    """An athlete as returned by the athlete search."""

    athlete_id: int
    name: str
    club_name: str
    age: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "athlete_id": self.athlete_id,
            "name": self.name,
            "club_name": self.club_name,
            "age": self.age,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AthleteSummary":
        return cls(
            athlete_id=int(data["athlete_id"]),
            name=data["name"],
            club_name=data["club_name"],
            age=int(data["age"]),
        )


@dataclass(frozen=True)
class CompetitionEvent:
    """An event of a competition, identified by its start list url."""

    competition_id: int
    event_id: int

    def to_dict(self) -> dict[str, Any]:
        return {"competition_id": self.competition_id, "event_id": self.event_id}


class EventStatus(str, Enum):
    """Registration status of a single event of a participant."""

    ACCEPTED = "Accepted"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"
    RESERVE = "Reserve"
    UNVERIFIED = "Unverified"
    CHECKED_IN = "CheckedIn"
    UNKNOWN = "Unknown"  # No explicit status rendered, or an unrecognized one


@dataclass(frozen=True)
class RelayTeam:
    team_id: int
    name: str


@dataclass
class Registration:
    """A participant registered for a competition.

    Events are (event name, status) pairs in the order the page lists them.
    """

    participant_id: int
    name: str
    category: str = ""
    club_name: str = ""  # Full club name
    club_name_short: str | None = None
    team_name: str | None = None
    relay_teams: list[RelayTeam] = field(default_factory=list)
    events: list[tuple[str, EventStatus]] = field(default_factory=list)
    out_of_competition: bool = False
    bib_number: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "participant_id": self.participant_id,
            "name": self.name,
            "category": self.category,
            "club_name": self.club_name,
            "club_name_short": self.club_name_short,
            "team_name": self.team_name,
            "relay_teams": [
                {"team_id": t.team_id, "name": t.name} for t in self.relay_teams
            ],
            "events": [[name, status.value] for name, status in self.events],
            "out_of_competition": self.out_of_competition,
            "bib_number": self.bib_number,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Registration":
        return cls(
            participant_id=int(data["participant_id"]),
            name=data["name"],
            category=data.get("category", ""),
            club_name=data.get("club_name", ""),
            club_name_short=data.get("club_name_short"),
            team_name=data.get("team_name"),
            relay_teams=[
                RelayTeam(team_id=int(t["team_id"]), name=t["name"])
                for t in data.get("relay_teams", [])
            ],
            events=[(name, EventStatus(status)) for name, status in data.get("events", [])],
            out_of_competition=bool(data.get("out_of_competition", False)),
            bib_number=data.get("bib_number"),
        )


# --- Event results ---------------------------------------------------------


@dataclass(frozen=True)
class BelowZero:
    """The upstream stored a negative value (invalid attempt marker)."""


@dataclass(frozen=True)
class AboveThreshold:
    """The upstream stored a value above the plausibility threshold."""

    threshold: float


DnfReason = BelowZero | AboveThreshold


@dataclass(frozen=True)
class Position:
    rank: int


@dataclass(frozen=True)
class Measurement:
    """A measured performance (time in seconds, or distance/height in meters).

    The raw value is always kept in ``result``, even when it is implausible;
    ``dnf`` and ``dnf_reason`` flag such values.
    """

    result: float
    wind_speed: float | None = None
    dnf: bool = False
    dnf_reason: DnfReason | None = None

    @classmethod
    def from_raw(cls, value: float, wind_speed: float | None = None) -> "Measurement":
        """Builds a Measurement, flagging implausible raw values as DNF.

        Args:
            value: The raw value from the page's sort data.
            wind_speed: Optional wind speed in m/s.

        Returns:
            A Measurement with dnf/dnf_reason set according to the value.
        """
        if value < 0:
            return cls(value, wind_speed, dnf=True, dnf_reason=BelowZero())
        if value > MEASUREMENT_THRESHOLD:
            return cls(
                value,
                wind_speed,
                dnf=True,
                dnf_reason=AboveThreshold(threshold=MEASUREMENT_THRESHOLD),
            )
        return cls(value, wind_speed)


@dataclass(frozen=True)
class Points:
    amount: int


EventResultItem = Position | Measurement | Points


def _dnf_reason_to_dict(reason: DnfReason | None) -> dict[str, Any] | None:
    if reason is None:
        return None
    if isinstance(reason, AboveThreshold):
        return {"type": "AboveThreshold", "threshold": reason.threshold}
    return {"type": "BelowZero"}


def _dnf_reason_from_dict(data: dict[str, Any] | None) -> DnfReason | None:
    if data is None:
        return None
    if data["type"] == "AboveThreshold":
        return AboveThreshold(threshold=float(data["threshold"]))
    if data["type"] == "BelowZero":
        return BelowZero()
    raise ValueError(f"Unknown dnf reason type: {data['type']}")


def item_to_dict(item: EventResultItem) -> dict[str, Any]:
    """Serializes a result item with a ``type`` tag."""
    if isinstance(item, Position):
        return {"type": "Position", "rank": item.rank}
    if isinstance(item, Points):
        return {"type": "Points", "amount": item.amount}
    return {
        "type": "Measurement",
        "result": item.result,
        "wind_speed": item.wind_speed,
        "dnf": item.dnf,
        "dnf_reason": _dnf_reason_to_dict(item.dnf_reason),
    }


def item_from_dict(data: dict[str, Any]) -> EventResultItem:
    """Inverse of item_to_dict."""
    kind = data["type"]
    if kind == "Position":
        return Position(rank=int(data["rank"]))
    if kind == "Points":
        return Points(amount=int(data["amount"]))
    if kind == "Measurement":
        return Measurement(
            result=float(data["result"]),
            wind_speed=data.get("wind_speed"),
            dnf=bool(data.get("dnf", False)),
            dnf_reason=_dnf_reason_from_dict(data.get("dnf_reason")),
        )
    raise ValueError(f"Unknown result item type: {kind}")


@dataclass
class EventResult:
    """All result items of one event (one entry per event url)."""

    event_name: str
    event_url: str
    items: list[EventResultItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_name": self.event_name,
            "event_url": self.event_url,
            "items": [item_to_dict(i) for i in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EventResult":
        return cls(
            event_name=data["event_name"],
            event_url=data["event_url"],
            items=[item_from_dict(i) for i in data.get("items", [])],
        )


@dataclass(frozen=True)
class TimetableSlot:
    """A scheduled event slot from the athlete's timetable."""

    timestamp: datetime  # Local (Europe/Amsterdam) wall-clock time, naive
    start_list_url: str | None
    group_name: str
    event_name_short: str
    event_name_long: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "start_list_url": self.start_list_url,
            "group_name": self.group_name,
            "event_name_short": self.event_name_short,
            "event_name_long": self.event_name_long,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimetableSlot":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            start_list_url=data.get("start_list_url"),
            group_name=data.get("group_name", ""),
            event_name_short=data.get("event_name_short", ""),
            event_name_long=data.get("event_name_long", ""),
        )


@dataclass(frozen=True)
class CompetitionLocation:
    place: str
    country: str
    continent: str
    flag_img_url: str


@dataclass(frozen=True)
class CompetitionRegistration:
    """A competition an athlete took part in, as listed on athlete pages."""

    participant_id: int | None  # None when the row has no link
    competition_name: str
    date: date
    location: CompetitionLocation

    def to_dict(self) -> dict[str, Any]:
        return {
            "participant_id": self.participant_id,
            "competition_name": self.competition_name,
            "date": self.date.isoformat(),
            "location": {
                "place": self.location.place,
                "country": self.location.country,
                "continent": self.location.continent,
                "flag_img_url": self.location.flag_img_url,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompetitionRegistration":
        loc = data["location"]
        return cls(
            participant_id=data.get("participant_id"),
            competition_name=data["competition_name"],
            date=date.fromisoformat(data["date"]),
            location=CompetitionLocation(
                place=loc["place"],
                country=loc["country"],
                continent=loc["continent"],
                flag_img_url=loc["flag_img_url"],
            ),
        )


@dataclass
class AthleteEventResults:
    """Results of one athlete at one competition.

    ``results`` holds exactly one EventResult per event url.
    """

    athlete_name: str
    competition_id: int | None
    results: list[EventResult] = field(default_factory=list)
    timetable: list[TimetableSlot] = field(default_factory=list)
    past_registrations: list[CompetitionRegistration] = field(default_factory=list)

    def get_total_points(self) -> int | None:
        """Sums all Points items over all events.

        Returns:
            None when no event has a Points item, otherwise the exact sum.
        """
        amounts = [
            item.amount
            for result in self.results
            for item in result.items
            if isinstance(item, Points)
        ]
        if not amounts:
            return None
        return sum(amounts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "athlete_name": self.athlete_name,
            "competition_id": self.competition_id,
            "results": [r.to_dict() for r in self.results],
            "timetable": [s.to_dict() for s in self.timetable],
            "past_registrations": [r.to_dict() for r in self.past_registrations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AthleteEventResults":
        return cls(
            athlete_name=data["athlete_name"],
            competition_id=data.get("competition_id"),
            results=[EventResult.from_dict(r) for r in data.get("results", [])],
            timetable=[TimetableSlot.from_dict(s) for s in data.get("timetable", [])],
            past_registrations=[
                CompetitionRegistration.from_dict(r)
                for r in data.get("past_registrations", [])
            ],
        )


# --- Athlete profile -------------------------------------------------------


@dataclass(frozen=True)
class Attribute:
    """Implement specification of an event (shot weight, hurdle height).

    ``kind`` is one of ALL, WEIGHT (value in kilograms) or HEIGHT (value in
    meters).
    """

    ALL = "All"
    WEIGHT = "Weight"
    HEIGHT = "Height"

    kind: str
    value: float | None = None

    @classmethod
    def all(cls) -> "Attribute":
        return cls(cls.ALL)

    @classmethod
    def weight(cls, kilograms: float) -> "Attribute":
        return cls(cls.WEIGHT, kilograms)

    @classmethod
    def height(cls, meters: float) -> "Attribute":
        return cls(cls.HEIGHT, meters)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Attribute":
        kind = data["kind"]
        if kind not in (cls.ALL, cls.WEIGHT, cls.HEIGHT):
            raise ValueError(f"Unknown attribute kind: {kind}")
        value = data.get("value")
        return cls(kind, float(value) if value is not None else None)


@dataclass(frozen=True)
class PersonalBest:
    event: str
    performance: float  # Seconds for times, meters for distances
    display_performance: str
    wind_speed: float | None
    hand_measured: bool
    location: str
    country: str  # IOC code as shown upstream (e.g. "NLD")
    date: date
    not_important: bool = False
    attribute: Attribute | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "performance": self.performance,
            "display_performance": self.display_performance,
            "wind_speed": self.wind_speed,
            "hand_measured": self.hand_measured,
            "location": self.location,
            "country": self.country,
            "date": self.date.isoformat(),
            "not_important": self.not_important,
            "attribute": self.attribute.to_dict() if self.attribute else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersonalBest":
        attribute = data.get("attribute")
        return cls(
            event=data["event"],
            performance=float(data["performance"]),
            display_performance=data["display_performance"],
            wind_speed=data.get("wind_speed"),
            hand_measured=bool(data["hand_measured"]),
            location=data["location"],
            country=data["country"],
            date=date.fromisoformat(data["date"]),
            not_important=bool(data.get("not_important", False)),
            attribute=Attribute.from_dict(attribute) if attribute else None,
        )


@dataclass
class EventGraph:
    """Performance history of one event/specification combination."""

    specification: Attribute
    event: str
    event_id: int
    points: list[tuple[date, float]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "specification": self.specification.to_dict(),
            "event": self.event,
            "event_id": self.event_id,
            "points": [[d.isoformat(), p] for d, p in self.points],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EventGraph":
        return cls(
            specification=Attribute.from_dict(data["specification"]),
            event=data["event"],
            event_id=int(data["event_id"]),
            points=[(date.fromisoformat(d), float(p)) for d, p in data.get("points", [])],
        )


@dataclass
class AthleteProfile:
    name: str
    personal_bests: list[PersonalBest] = field(default_factory=list)
    graphs: list[EventGraph] = field(default_factory=list)
    past_registrations: list[CompetitionRegistration] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "personal_bests": [pb.to_dict() for pb in self.personal_bests],
            "graphs": [g.to_dict() for g in self.graphs],
            "past_registrations": [r.to_dict() for r in self.past_registrations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AthleteProfile":
        return cls(
            name=data["name"],
            personal_bests=[
                PersonalBest.from_dict(pb) for pb in data.get("personal_bests", [])
            ],
            graphs=[EventGraph.from_dict(g) for g in data.get("graphs", [])],
            past_registrations=[
                CompetitionRegistration.from_dict(r)
                for r in data.get("past_registrations", [])
            ],
        )
