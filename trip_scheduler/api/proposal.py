"""Lenient reader for AI-generated itinerary proposals.

The model output is untrusted: fields go missing, numbers arrive as strings
and travellers come either as a plain count or as an adults/children split.
Everything here turns that into typed dataclasses without ever raising;
absent or unreadable values simply stay None (or empty).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Union

from trip_scheduler.api.models import Coordinates

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace("$", "").strip()
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def _int(value: Any) -> Optional[int]:
    number = _number(value)
    return int(number) if number is not None else None


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _items(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _strings(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [_text(v) for v in _items(value) if _text(v)]


def _coordinates(data: Mapping[str, Any]) -> Optional[Coordinates]:
    """Pick explicit coordinates off an activity, in any of the usual shapes."""
    for candidate in (data.get("coordinates"), data.get("location"), data):
        point = _mapping(candidate)
        lat = _number(point.get("lat", point.get("latitude")))
        lng = _number(point.get("lng", point.get("lon", point.get("longitude"))))
        if lat is not None and lng is not None and -90 <= lat <= 90 and -180 <= lng <= 180:
            return Coordinates(lat=lat, lng=lng)
    return None


# ---------------------------------------------------------------------------
# Travellers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TravelerCount:
    count: int


@dataclass(frozen=True)
class TravelerParty:
    adults: int
    children: int = 0


Travelers = Union[TravelerCount, TravelerParty]


def parse_travelers(value: Any) -> Travelers:
    """Read either ``3`` or ``{"adults": 2, "children": 1}``."""
    if isinstance(value, Mapping):
        return TravelerParty(
            adults=max(_int(value.get("adults")) or 0, 0),
            children=max(_int(value.get("children")) or 0, 0),
        )
    count = _int(value)
    return TravelerCount(count=count if count and count > 0 else 1)


def total_travelers(travelers: Travelers) -> int:
    """Headcount of a party, whichever way it was described."""
    if isinstance(travelers, TravelerParty):
        return travelers.adults + travelers.children
    return travelers.count


# ---------------------------------------------------------------------------
# Proposal shape
# ---------------------------------------------------------------------------

@dataclass
class ActivityProposal:
    title: str
    id: Optional[str] = None
    time: Optional[str] = None
    description: str = ""
    duration: str = ""
    location: str = ""
    coordinates: Optional[Coordinates] = None
    category: Optional[str] = None
    type: Optional[str] = None
    price: Optional[float] = None
    rating: Optional[float] = None
    image: Optional[str] = None
    tips: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ActivityProposal":
        data = _mapping(data)
        location = data.get("location")
        return cls(
            id=_text(data.get("id")) or None,
            time=_text(data.get("time") or data.get("startTime")) or None,
            title=_text(data.get("title") or data.get("name")) or "Untitled activity",
            description=_text(data.get("description")),
            duration=_text(data.get("duration")),
            location=_text(location) if not isinstance(location, Mapping)
            else _text(location.get("address") or location.get("name")),
            coordinates=_coordinates(data),
            category=_text(data.get("category")) or None,
            type=_text(data.get("type")) or None,
            price=_number(data.get("price")),
            rating=_number(data.get("rating")),
            image=_text(data.get("image") or data.get("imageUrl")) or None,
            tips=_strings(data.get("tips")),
        )


@dataclass
class AccommodationProposal:
    name: str
    type: str = ""
    price: Optional[float] = None
    location: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> Optional["AccommodationProposal"]:
        data = _mapping(data)
        name = _text(data.get("name"))
        if not name:
            return None
        return cls(
            name=name,
            type=_text(data.get("type")),
            price=_number(data.get("price")),
            location=_text(data.get("location")),
        )


@dataclass
class MealProposal:
    type: str
    venue: str
    cuisine: str = ""
    price: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["MealProposal"]:
        data = _mapping(data)
        venue = _text(data.get("venue") or data.get("name"))
        if not venue:
            return None
        return cls(
            type=_text(data.get("type")).lower(),
            venue=venue,
            cuisine=_text(data.get("cuisine")),
            price=_number(data.get("price")),
        )


@dataclass
class DayProposal:
    day: Optional[int] = None
    date: Optional[str] = None
    title: str = ""
    description: str = ""
    activities: List[ActivityProposal] = field(default_factory=list)
    accommodation: Optional[AccommodationProposal] = None
    meals: List[MealProposal] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "DayProposal":
        data = _mapping(data)
        meals = [MealProposal.from_dict(m) for m in _items(data.get("meals"))]
        return cls(
            day=_int(data.get("day")),
            date=_text(data.get("date")) or None,
            title=_text(data.get("title")),
            description=_text(data.get("description")),
            activities=[ActivityProposal.from_dict(a) for a in _items(data.get("activities"))],
            accommodation=AccommodationProposal.from_dict(data.get("accommodation")),
            meals=[m for m in meals if m is not None],
        )


@dataclass
class ItineraryProposal:
    destination: str = ""
    duration: Optional[int] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    travelers: Travelers = field(default_factory=lambda: TravelerCount(1))
    total_budget: Optional[float] = None
    estimated_total_cost: Optional[float] = None
    days: List[DayProposal] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)
    tips: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ItineraryProposal":
        if not isinstance(data, Mapping):
            logger.warning(f"Ignoring proposal of type {type(data).__name__}")
            data = {}
        return cls(
            destination=_text(data.get("destination")),
            duration=_int(data.get("duration")),
            start_date=_text(data.get("startDate")) or None,
            end_date=_text(data.get("endDate")) or None,
            travelers=parse_travelers(data.get("travelers")),
            total_budget=_number(data.get("totalBudget")),
            estimated_total_cost=_number(data.get("estimatedTotalCost")),
            days=[DayProposal.from_dict(d) for d in _items(data.get("days"))],
            highlights=_strings(data.get("highlights")),
            tips=_strings(data.get("tips")),
        )


__all__ = [
    "TravelerCount",
    "TravelerParty",
    "Travelers",
    "parse_travelers",
    "total_travelers",
    "ActivityProposal",
    "AccommodationProposal",
    "MealProposal",
    "DayProposal",
    "ItineraryProposal",
]
