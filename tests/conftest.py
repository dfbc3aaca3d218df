import asyncio
from datetime import date

import pytest

from trip_scheduler.api.geocoding import GeocodeResult
from trip_scheduler.api.models import Coordinates, DayPlan, Itinerary, POI, PoiCategory

# A few real Paris landmarks, roughly west to east.
EIFFEL = (48.8584, 2.2945)
ORSAY = (48.8600, 2.3266)
LOUVRE = (48.8606, 2.3376)
NOTRE_DAME = (48.8530, 2.3499)
PARIS = (48.8566, 2.3522)


class FakeGeocoder:
    """In-memory geocoder that records every query it receives."""

    def __init__(self, answers=None, fail=(), delays=None):
        self.answers = answers or {}
        self.fail = set(fail)
        self.delays = delays or {}
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        if query in self.delays:
            await asyncio.sleep(self.delays[query])
        if query in self.fail:
            raise RuntimeError("geocoder unavailable")
        return [GeocodeResult(lat, lng, label=query) for lat, lng in self.answers.get(query, [])]


def _make_poi(poi_id, position=PARIS, category=PoiCategory.ATTRACTION, name=None):
    lat, lng = position
    return POI(
        id=poi_id,
        name=name or poi_id.replace("-", " ").title(),
        category=category,
        location=Coordinates(lat, lng),
    )


@pytest.fixture
def make_poi():
    return _make_poi


@pytest.fixture
def fake_geocoder():
    return FakeGeocoder


@pytest.fixture
def itinerary():
    """Two empty days in Paris with three catalogued landmarks."""
    return Itinerary(
        id="itin-1",
        trip_id="trip-1",
        destination="Paris",
        start_date=date(2025, 6, 1),
        end_date=date(2025, 6, 2),
        days=[
            DayPlan(id="day-1", date=date(2025, 6, 1), day_number=1),
            DayPlan(id="day-2", date=date(2025, 6, 2), day_number=2),
        ],
        pois=[
            _make_poi("eiffel", EIFFEL),
            _make_poi("orsay", ORSAY, PoiCategory.ART_MUSEUMS),
            _make_poi("louvre", LOUVRE, PoiCategory.ART_MUSEUMS),
        ],
    )


@pytest.fixture
def paris_proposal():
    """The smallest useful proposal: one day, two timed activities."""
    return {
        "destination": "Paris",
        "duration": 1,
        "startDate": "2025-06-01",
        "endDate": "2025-06-01",
        "travelers": 2,
        "days": [
            {
                "day": 1,
                "date": "2025-06-01",
                "title": "Museums",
                "description": "Art day",
                "activities": [
                    {"time": "09:00", "title": "A", "duration": "2 hours",
                     "location": "Louvre", "type": "museum"},
                    {"time": "13:00", "title": "B", "duration": "1 hour",
                     "location": "Orsay", "type": "museum"},
                ],
            }
        ],
    }
