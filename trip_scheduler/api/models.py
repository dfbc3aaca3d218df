"""Shared data structures for itinerary scheduling.

The schedule store, the sequencer and the AI proposal converter all work on
these dataclasses. Every type round-trips through ``to_dict`` / ``from_dict``
using the camelCase keys the map/timeline front-end expects, so an itinerary
can be parked in the Flask session between edits.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional


class PoiCategory(str, Enum):
    """Closed set of place categories shown on the map."""

    RESTAURANT = "restaurant"
    ATTRACTION = "attraction"
    HOTEL = "hotel"
    SHOPPING = "shopping"
    TRANSPORT = "transport"
    CAFE_BAKERY = "cafe-bakery"
    BARS_NIGHTLIFE = "bars-nightlife"
    ART_MUSEUMS = "art-museums"
    BEAUTY_OTHER = "beauty-other"

    @classmethod
    def parse(cls, value: Any) -> "PoiCategory":
        """Return the category for *value*, accepting legacy spellings."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        key = _LEGACY_CATEGORIES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return cls.ATTRACTION


# Older itineraries stored plural or differently named categories.
_LEGACY_CATEGORIES = {
    "restaurants": "restaurant",
    "hotels": "hotel",
    "attractions": "attraction",
    "beauty-fashion": "beauty-other",
    "other": "beauty-other",
}


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        # Accept full ISO timestamps as well as plain dates.
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


@dataclass
class Coordinates:
    """A WGS84 position, optionally with a postal address."""

    lat: float
    lng: float
    address: Optional[str] = None

    def as_pair(self) -> tuple[float, float]:
        return self.lat, self.lng

    def to_dict(self) -> dict:
        data = {"lat": self.lat, "lng": self.lng}
        if self.address is not None:
            data["address"] = self.address
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinates":
        return cls(
            lat=float(data.get("lat", 0.0)),
            lng=float(data.get("lng", 0.0)),
            address=data.get("address"),
        )


@dataclass
class POI:
    """A place that can be scheduled into one or more time slots."""

    id: str
    name: str
    category: PoiCategory
    location: Coordinates
    rating: Optional[float] = None
    price: int = 2  # ordinal tier 1-4
    description: str = ""
    images: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    opening_hours: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "location": self.location.to_dict(),
            "rating": self.rating,
            "price": self.price,
            "description": self.description,
            "images": list(self.images),
            "tags": list(self.tags),
            "openingHours": {day: dict(hours) for day, hours in self.opening_hours.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "POI":
        images = list(data.get("images") or [])
        if data.get("image") and data["image"] not in images:
            images.insert(0, data["image"])
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            category=PoiCategory.parse(data.get("category")),
            location=Coordinates.from_dict(data.get("location") or {}),
            rating=data.get("rating"),
            price=int(data.get("price") or 2),
            description=data.get("description") or "",
            images=images,
            tags=list(data.get("tags") or []),
            opening_hours=dict(data.get("openingHours") or {}),
        )


@dataclass
class TimeSlot:
    """A scheduled occurrence of a POI within a day.

    ``end_time`` is derived from ``start_time`` and ``duration`` by the
    sequencer and is never edited on its own.
    """

    id: str
    start_time: str  # "HH:MM"
    end_time: str
    poi_id: str
    duration: int  # minutes
    transport_time: int = 0  # minutes to the next slot of the same day

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "poiId": self.poi_id,
            "duration": self.duration,
            "transportTime": self.transport_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeSlot":
        return cls(
            id=str(data["id"]),
            start_time=data["startTime"],
            end_time=data.get("endTime", data["startTime"]),
            poi_id=str(data["poiId"]),
            duration=int(data.get("duration", 0)),
            transport_time=int(data.get("transportTime") or 0),
        )


@dataclass
class DayPlan:
    """One calendar day of the trip."""

    id: str
    date: Optional[date]
    day_number: int  # 1-based position within the trip
    slots: List[TimeSlot] = field(default_factory=list)
    notes: str = ""

    def slot(self, slot_id: str) -> Optional[TimeSlot]:
        return next((s for s in self.slots if s.id == slot_id), None)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat() if self.date else None,
            "dayNumber": self.day_number,
            "slots": [s.to_dict() for s in self.slots],
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DayPlan":
        return cls(
            id=str(data["id"]),
            date=_parse_date(data.get("date")),
            day_number=int(data.get("dayNumber", 1)),
            slots=[TimeSlot.from_dict(s) for s in data.get("slots") or []],
            notes=data.get("notes") or "",
        )


@dataclass
class Itinerary:
    """The whole trip: its days plus the catalog of places they reference."""

    id: str
    trip_id: str
    destination: str
    start_date: Optional[date]
    end_date: Optional[date]
    days: List[DayPlan] = field(default_factory=list)
    pois: List[POI] = field(default_factory=list)

    @classmethod
    def empty(cls, trip_id: str, destination: str, start_date: date, end_date: date,
              itinerary_id: Optional[str] = None) -> "Itinerary":
        """A trip with one blank day per date from *start_date* to *end_date*.

        Raises:
            ValueError: If *end_date* falls before *start_date*
        """
        if end_date < start_date:
            raise ValueError("End date must not be before start date")
        count = (end_date - start_date).days + 1
        days = [
            DayPlan(id=f"day-{n}", date=start_date + timedelta(days=n - 1), day_number=n)
            for n in range(1, count + 1)
        ]
        return cls(
            id=itinerary_id or str(uuid.uuid4()),
            trip_id=trip_id,
            destination=destination,
            start_date=start_date,
            end_date=end_date,
            days=days,
        )

    def day(self, day_id: str) -> Optional[DayPlan]:
        return next((d for d in self.days if d.id == day_id), None)

    def poi(self, poi_id: str) -> Optional[POI]:
        return next((p for p in self.pois if p.id == poi_id), None)

    def poi_index(self) -> Dict[str, POI]:
        return {p.id: p for p in self.pois}

    def referenced_poi_ids(self) -> set[str]:
        return {slot.poi_id for day in self.days for slot in day.slots}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tripId": self.trip_id,
            "destination": self.destination,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "days": [d.to_dict() for d in self.days],
            "pois": [p.to_dict() for p in self.pois],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Itinerary":
        return cls(
            id=str(data["id"]),
            trip_id=str(data.get("tripId", "")),
            destination=data.get("destination", ""),
            start_date=_parse_date(data.get("startDate")),
            end_date=_parse_date(data.get("endDate")),
            days=[DayPlan.from_dict(d) for d in data.get("days") or []],
            pois=[POI.from_dict(p) for p in data.get("pois") or []],
        )


__all__ = [
    "PoiCategory",
    "Coordinates",
    "POI",
    "TimeSlot",
    "DayPlan",
    "Itinerary",
]
