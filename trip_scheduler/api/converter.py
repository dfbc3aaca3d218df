"""Turn an AI itinerary proposal into a schedulable itinerary.

The converter is forgiving. Whatever the model produced, it
hands back a structurally complete :class:`Itinerary`: unknown categories
become attractions, unreadable durations become two hours and places that
cannot be found fall back to a jittered spot near the destination, then to
(0, 0). How often those fallbacks fired is recorded in a
:class:`ConversionReport` so the caller can warn the user.

Coordinates are resolved by an ordered chain of resolvers::

    explicit coordinates  ->  geocode "<location>, <destination>"
        ->  destination anchor + jitter  ->  sentinel (0, 0)

Each resolver returns a :class:`Resolution` or None; an exception inside one
counts as None. Geocoding for a day runs with bounded concurrency, but the
resulting slots always follow the proposal's own order.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Mapping, MutableMapping, Optional, Union

from trip_scheduler.api import sequencer
from trip_scheduler.api.config import get_converter_config
from trip_scheduler.api.geocoding import Geocoder, build_geocoder
from trip_scheduler.api.models import (
    Coordinates,
    DayPlan,
    Itinerary,
    POI,
    PoiCategory,
    TimeSlot,
)
from trip_scheduler.api.proposal import (
    ActivityProposal,
    DayProposal,
    ItineraryProposal,
    MealProposal,
    total_travelers,
)

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 120
DEFAULT_PRICE_TIER = 2
FIRST_ACTIVITY_HOUR = 9
ACTIVITY_SPACING_HOURS = 3
LATEST_DEFAULT_HOUR = 23
TRANSPORT_BUFFER = 30
MEAL_DURATION = 90
MEAL_TIMES = {"lunch": "12:30", "dinner": "19:00"}
JITTER_DEGREES = 0.01
SENTINEL = (0.0, 0.0)

# Free-text activity types seen in model output, mapped onto map categories.
CATEGORY_TABLE: Dict[str, PoiCategory] = {
    "sightseeing": PoiCategory.ATTRACTION,
    "attraction": PoiCategory.ATTRACTION,
    "activity": PoiCategory.ATTRACTION,
    "tour": PoiCategory.ATTRACTION,
    "beach": PoiCategory.ATTRACTION,
    "park": PoiCategory.ATTRACTION,
    "museum": PoiCategory.ART_MUSEUMS,
    "art": PoiCategory.ART_MUSEUMS,
    "gallery": PoiCategory.ART_MUSEUMS,
    "art-museums": PoiCategory.ART_MUSEUMS,
    "restaurant": PoiCategory.RESTAURANT,
    "dining": PoiCategory.RESTAURANT,
    "lunch": PoiCategory.RESTAURANT,
    "dinner": PoiCategory.RESTAURANT,
    "breakfast": PoiCategory.CAFE_BAKERY,
    "cafe": PoiCategory.CAFE_BAKERY,
    "bakery": PoiCategory.CAFE_BAKERY,
    "cafe-bakery": PoiCategory.CAFE_BAKERY,
    "bar": PoiCategory.BARS_NIGHTLIFE,
    "nightlife": PoiCategory.BARS_NIGHTLIFE,
    "bars-nightlife": PoiCategory.BARS_NIGHTLIFE,
    "shopping": PoiCategory.SHOPPING,
    "market": PoiCategory.SHOPPING,
    "transport": PoiCategory.TRANSPORT,
    "hotel": PoiCategory.HOTEL,
    "accommodation": PoiCategory.HOTEL,
    "spa": PoiCategory.BEAUTY_OTHER,
    "wellness": PoiCategory.BEAUTY_OTHER,
    "beauty-other": PoiCategory.BEAUTY_OTHER,
}

DEFAULT_OPENING_HOURS = {
    "monday": {"open": "09:00", "close": "18:00"},
    "tuesday": {"open": "09:00", "close": "18:00"},
    "wednesday": {"open": "09:00", "close": "18:00"},
    "thursday": {"open": "09:00", "close": "18:00"},
    "friday": {"open": "09:00", "close": "18:00"},
    "saturday": {"open": "10:00", "close": "17:00"},
    "sunday": {"open": "10:00", "close": "17:00"},
}

_HOURS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:hour|hrs?\b|h\b)", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+)\s*min", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Normalisation tables
# ---------------------------------------------------------------------------

def map_category(*labels: Optional[str]) -> PoiCategory:
    """Category for the first recognised label; attraction otherwise."""
    for label in labels:
        key = (label or "").strip().lower()
        if key in CATEGORY_TABLE:
            return CATEGORY_TABLE[key]
    return PoiCategory.ATTRACTION


def price_tier(price: Optional[float]) -> int:
    if price is None:
        return DEFAULT_PRICE_TIER
    if price < 20:
        return 1
    if price < 50:
        return 2
    if price < 100:
        return 3
    return 4


def parse_duration(text: Optional[str]) -> Optional[int]:
    """Minutes described by "2 hours", "1.5 hrs", "45 min" or "1h 30min".

    Returns None when the text mentions neither hours nor minutes (or adds
    up to zero), leaving the caller to apply its default.
    """
    text = text or ""
    hours = _HOURS_RE.search(text)
    minutes = _MINUTES_RE.search(text)
    total = 0
    if hours:
        total += round(float(hours.group(1)) * 60)
    if minutes:
        total += int(minutes.group(1))
    return total or None


def default_start_time(index: int) -> str:
    hour = min(FIRST_ACTIVITY_HOUR + index * ACTIVITY_SPACING_HOURS, LATEST_DEFAULT_HOUR)
    return f"{hour:02d}:00"


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Coordinate resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlaceQuery:
    """What is known about a place when its coordinates are resolved."""

    text: str
    destination: str
    explicit: Optional[Coordinates] = None
    anchor: Optional[Coordinates] = None


@dataclass(frozen=True)
class Resolution:
    lat: float
    lng: float
    source: str  # explicit | geocoded | jittered | sentinel


Resolver = Callable[[PlaceQuery], Awaitable[Optional[Resolution]]]


def _query_text(*parts: str) -> str:
    return ", ".join(p for p in parts if p)


@dataclass
class ConversionReport:
    """How much of a conversion relied on fallbacks."""

    destination_resolved: bool = False
    days: int = 0
    activities: int = 0
    places: int = 0
    sentinel_places: int = 0
    jittered_places: int = 0
    default_durations: int = 0

    @property
    def warnings(self) -> List[str]:
        notes = []
        if not self.destination_resolved:
            notes.append("Destination could not be located; places may be missing from the map.")
        if self.places and self.sentinel_places * 2 > self.places:
            notes.append(
                f"{self.sentinel_places} of {self.places} places have no known location."
            )
        if self.default_durations:
            notes.append(
                f"{self.default_durations} activities use a default duration of "
                f"{DEFAULT_DURATION} minutes."
            )
        return notes

    def to_dict(self) -> dict:
        return {
            "destinationResolved": self.destination_resolved,
            "days": self.days,
            "activities": self.activities,
            "places": self.places,
            "sentinelPlaces": self.sentinel_places,
            "jitteredPlaces": self.jittered_places,
            "defaultDurations": self.default_durations,
            "warnings": self.warnings,
        }


@dataclass
class _DayBuild:
    plan: DayPlan
    pois: List[POI] = field(default_factory=list)


class ItineraryConverter:
    """Converts AI proposals using the given geocoder."""

    def __init__(self, geocoder: Geocoder, concurrency: Optional[int] = None,
                 rng: Optional[random.Random] = None):
        self.geocoder = geocoder
        self.concurrency = concurrency or get_converter_config()["geocode_concurrency"]
        self.rng = rng or random.Random()
        self.resolvers: List[Resolver] = [
            self._explicit_coordinates,
            self._geocoded_place,
            self._jittered_anchor,
        ]

    # -- resolvers ---------------------------------------------------------

    async def _explicit_coordinates(self, query: PlaceQuery) -> Optional[Resolution]:
        if query.explicit is None:
            return None
        return Resolution(query.explicit.lat, query.explicit.lng, "explicit")

    async def _geocoded_place(self, query: PlaceQuery) -> Optional[Resolution]:
        if not query.text:
            return None
        results = await self.geocoder.search(_query_text(query.text, query.destination))
        if not results:
            return None
        return Resolution(results[0].lat, results[0].lng, "geocoded")

    async def _jittered_anchor(self, query: PlaceQuery) -> Optional[Resolution]:
        if query.anchor is None:
            return None
        return Resolution(
            query.anchor.lat + self.rng.uniform(-JITTER_DEGREES, JITTER_DEGREES),
            query.anchor.lng + self.rng.uniform(-JITTER_DEGREES, JITTER_DEGREES),
            "jittered",
        )

    async def resolve(self, query: PlaceQuery) -> Resolution:
        """Run the resolver chain; always returns a position."""
        for resolver in self.resolvers:
            try:
                found = await resolver(query)
            except Exception as e:
                logger.warning(f"Resolving '{query.text}' via {resolver.__name__} failed: {e}")
                continue
            if found is not None:
                return found
        logger.warning(f"Could not locate '{query.text}', using default coordinates")
        return Resolution(*SENTINEL, "sentinel")

    async def _locate_destination(self, destination: str) -> Optional[Coordinates]:
        if not destination:
            return None
        try:
            results = await self.geocoder.search(destination)
        except Exception as e:
            logger.error(f"Failed to geocode destination '{destination}': {e}")
            return None
        if not results:
            logger.warning(f"No results found for destination: {destination}")
            return None
        anchor = Coordinates(results[0].lat, results[0].lng)
        logger.info(f"Geocoded destination {destination} to {anchor.lat}, {anchor.lng}")
        return anchor

    async def _resolve_all(self, queries: List[PlaceQuery]) -> List[Resolution]:
        gate = asyncio.Semaphore(self.concurrency)

        async def bounded(query: PlaceQuery) -> Resolution:
            async with gate:
                return await self.resolve(query)

        # gather keeps input order regardless of completion order
        return list(await asyncio.gather(*(bounded(q) for q in queries)))

    # -- building ----------------------------------------------------------

    def _poi_id(self, preferred: Optional[str], seen: set[str]) -> str:
        poi_id = preferred if preferred and preferred not in seen else str(uuid.uuid4())
        seen.add(poi_id)
        return poi_id

    @staticmethod
    def _place(resolution: Resolution, address: Optional[str],
               report: ConversionReport) -> Coordinates:
        report.places += 1
        if resolution.source == "sentinel":
            report.sentinel_places += 1
        elif resolution.source == "jittered":
            report.jittered_places += 1
        return Coordinates(resolution.lat, resolution.lng, address or None)

    @staticmethod
    def _activity_description(activity: ActivityProposal) -> str:
        lines = [activity.description] if activity.description else []
        lines.extend(f"Tip: {tip}" for tip in activity.tips)
        return "\n".join(lines)

    async def _build_day(self, index: int, proposal: DayProposal, day_date: date,
                         destination: str, anchor: Optional[Coordinates],
                         seen: set[str], report: ConversionReport) -> _DayBuild:
        activities = proposal.activities
        meals = proposal.meals
        stay = proposal.accommodation

        queries = [
            PlaceQuery(a.location or a.title, destination, a.coordinates, anchor)
            for a in activities
        ]
        if stay is not None:
            queries.append(PlaceQuery(stay.location or stay.name, destination, None, anchor))
        queries.extend(PlaceQuery(m.venue, destination, None, anchor) for m in meals)
        resolutions = await self._resolve_all(queries)

        build = _DayBuild(plan=DayPlan(
            id=f"day-{index + 1}",
            date=day_date,
            day_number=index + 1,
            notes=proposal.description or proposal.title,
        ))

        for position, (activity, where) in enumerate(zip(activities, resolutions)):
            minutes = parse_duration(activity.duration)
            if minutes is None:
                report.default_durations += 1
                minutes = DEFAULT_DURATION
            labels = [a for a in (activity.category, activity.type) if a]
            poi = POI(
                id=self._poi_id(activity.id, seen),
                name=activity.title,
                category=map_category(activity.category, activity.type),
                location=self._place(where, activity.location, report),
                rating=activity.rating,
                price=price_tier(activity.price),
                description=self._activity_description(activity),
                images=[activity.image] if activity.image else [],
                tags=[label.lower() for label in labels],
                opening_hours={d: dict(h) for d, h in DEFAULT_OPENING_HOURS.items()},
            )
            build.pois.append(poi)

            start = sequencer.parse_clock(activity.time)
            start_time = (sequencer.format_clock(start) if start is not None
                          else default_start_time(position))
            build.plan.slots.append(TimeSlot(
                id=str(uuid.uuid4()),
                start_time=start_time,
                end_time=sequencer.calculate_end_time(start_time, minutes),
                poi_id=poi.id,
                duration=minutes,
            ))
        # explicit times and spaced defaults can interleave
        sequencer.sort_slots(build.plan)
        report.activities += len(activities)

        remaining = resolutions[len(activities):]
        if stay is not None:
            where = remaining.pop(0)
            build.pois.append(POI(
                id=self._poi_id(None, seen),
                name=stay.name,
                category=PoiCategory.HOTEL,
                location=self._place(where, stay.location, report),
                price=price_tier(stay.price),
                description=f"{stay.type or 'hotel'} accommodation",
            ))

        for meal, where in zip(meals, remaining):
            build.pois.append(self._meal_poi(meal, where, destination, seen, report))
            meal_time = MEAL_TIMES.get(meal.type)
            if meal_time is None:
                # breakfast and snacks are catalog-only
                continue
            sequencer.insert_slot(build.plan, TimeSlot(
                id=str(uuid.uuid4()),
                start_time=meal_time,
                end_time=meal_time,
                poi_id=build.pois[-1].id,
                duration=MEAL_DURATION,
            ))

        for slot in build.plan.slots:
            slot.transport_time = TRANSPORT_BUFFER
        if build.plan.slots:
            build.plan.slots[-1].transport_time = 0

        logger.debug(
            f"Day {index + 1}: {len(build.plan.slots)} slots, {len(build.pois)} places"
        )
        return build

    def _meal_poi(self, meal: MealProposal, where: Resolution, destination: str,
                  seen: set[str], report: ConversionReport) -> POI:
        cuisine = f"{meal.cuisine} cuisine" if meal.cuisine else "Meal"
        return POI(
            id=self._poi_id(None, seen),
            name=meal.venue,
            category=(PoiCategory.CAFE_BAKERY if meal.type == "breakfast"
                      else PoiCategory.RESTAURANT),
            location=self._place(where, destination, report),
            price=price_tier(meal.price),
            description=f"{cuisine} for {meal.type or 'a meal'}",
        )

    # -- public API --------------------------------------------------------

    async def convert_with_report(
        self, proposal: Union[ItineraryProposal, Mapping[str, Any], Any], trip_id: str
    ) -> tuple[Itinerary, ConversionReport]:
        if not isinstance(proposal, ItineraryProposal):
            proposal = ItineraryProposal.from_dict(proposal)

        report = ConversionReport(days=len(proposal.days))
        destination = proposal.destination
        logger.info(f"Converting proposal for {destination or 'unknown destination'} "
                    f"({len(proposal.days)} days) into trip {trip_id}")

        anchor = await self._locate_destination(destination)
        report.destination_resolved = anchor is not None

        day_dates = [_parse_date(d.date) for d in proposal.days]
        start_date = (_parse_date(proposal.start_date)
                      or next((d for d in day_dates if d), None)
                      or date.today())

        seen: set[str] = set()
        days: List[DayPlan] = []
        pois: List[POI] = []
        for index, day_proposal in enumerate(proposal.days):
            day_date = day_dates[index] or start_date + timedelta(days=index)
            build = await self._build_day(
                index, day_proposal, day_date, destination, anchor, seen, report
            )
            days.append(build.plan)
            pois.extend(build.pois)

        end_date = (_parse_date(proposal.end_date)
                    or (days[-1].date if days else None)
                    or start_date)

        itinerary = Itinerary(
            id=str(uuid.uuid4()),
            trip_id=trip_id,
            destination=destination,
            start_date=start_date,
            end_date=end_date,
            days=days,
            pois=pois,
        )
        logger.info(
            f"Converted {report.activities} activities into {len(days)} days; "
            f"{report.sentinel_places}/{report.places} places unresolved"
        )
        return itinerary, report

    async def convert(self, proposal: Union[ItineraryProposal, Mapping[str, Any], Any],
                      trip_id: str) -> Itinerary:
        itinerary, _ = await self.convert_with_report(proposal, trip_id)
        return itinerary


async def convert_proposal(proposal: Any, trip_id: str,
                           geocoder: Optional[Geocoder] = None) -> Itinerary:
    """Convert with the configured geocoder chain."""
    converter = ItineraryConverter(geocoder or build_geocoder())
    return await converter.convert(proposal, trip_id)


def store_metadata(proposal: Union[ItineraryProposal, Mapping[str, Any], Any],
                   sink: Optional[MutableMapping[str, Any]] = None) -> Dict[str, Any]:
    """Collect the non-schedule parts of a proposal for display.

    When *sink* is given (e.g. the Flask session) the result is also stored
    under ``"itinerary_metadata"``.
    """
    if not isinstance(proposal, ItineraryProposal):
        proposal = ItineraryProposal.from_dict(proposal)
    metadata = {
        "highlights": list(proposal.highlights),
        "tips": list(proposal.tips),
        "estimatedTotalCost": proposal.estimated_total_cost,
        "totalBudget": proposal.total_budget,
        "travelers": total_travelers(proposal.travelers),
    }
    if sink is not None:
        sink["itinerary_metadata"] = metadata
    return metadata


__all__ = [
    "CATEGORY_TABLE",
    "ConversionReport",
    "ItineraryConverter",
    "PlaceQuery",
    "Resolution",
    "convert_proposal",
    "default_start_time",
    "map_category",
    "parse_duration",
    "price_tier",
    "store_metadata",
]
