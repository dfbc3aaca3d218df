# trip_scheduler/api/schedule_store.py
"""Editing session over a single itinerary.

:class:`ScheduleStore` owns the working copy of an :class:`Itinerary` for the
length of an editing session. Each public mutation is synchronous, applies
in one step and re-runs the sequencer so the touched day stays consistent.
Stale day, slot or POI ids are ignored rather than raised, because the
timeline UI can easily send an edit for something it has just removed.

Selection and map viewport live in :class:`ViewState`, which can be reset
without touching the schedule.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from trip_scheduler.api import sequencer
from trip_scheduler.api.models import DayPlan, Itinerary, POI, TimeSlot
from trip_scheduler.api.sequencer import TimeGap

logger = logging.getLogger(__name__)

DEFAULT_MAP_CENTER = (48.8566, 2.3522)  # Paris
DEFAULT_MAP_ZOOM = 12
POI_ZOOM = 16

Listener = Callable[["ScheduleStore"], None]


@dataclass
class ViewState:
    """Selection and map viewport for the planner UI."""

    selected_day_id: Optional[str] = None
    selected_poi_id: Optional[str] = None
    highlighted_poi_id: Optional[str] = None
    map_center: Tuple[float, float] = DEFAULT_MAP_CENTER
    map_zoom: int = DEFAULT_MAP_ZOOM

    def select_day(self, day_id: Optional[str]) -> None:
        self.selected_day_id = day_id

    def select_poi(self, poi_id: Optional[str]) -> None:
        self.selected_poi_id = poi_id

    def highlight_poi(self, poi_id: Optional[str]) -> None:
        self.highlighted_poi_id = poi_id

    def set_map_view(self, center: Tuple[float, float], zoom: Optional[int] = None) -> None:
        self.map_center = (float(center[0]), float(center[1]))
        if zoom is not None:
            self.map_zoom = zoom

    def fly_to_bounds(self, bounds: Tuple[Tuple[float, float], Tuple[float, float]]) -> None:
        """Center the map on a bounding box and pick a zoom that fits it."""
        (lat1, lng1), (lat2, lng2) = bounds
        self.map_center = ((lat1 + lat2) / 2, (lng1 + lng2) / 2)
        span = max(abs(lat2 - lat1), abs(lng2 - lng1))
        if span > 0.1:
            self.map_zoom = 11
        elif span > 0.05:
            self.map_zoom = 12
        else:
            self.map_zoom = 14

    def reset(self) -> None:
        self.selected_day_id = None
        self.selected_poi_id = None
        self.highlighted_poi_id = None
        self.map_center = DEFAULT_MAP_CENTER
        self.map_zoom = DEFAULT_MAP_ZOOM


@dataclass
class Suggestion:
    """An AI-proposed change the user can apply or dismiss."""

    id: str
    type: str  # optimize_route | fill_gap | add_meal | add_transport
    description: str
    slots: List[TimeSlot] = field(default_factory=list)
    day_id: Optional[str] = None


class ScheduleStore:
    """Mutable, observable holder of the itinerary being edited."""

    def __init__(self, itinerary: Optional[Itinerary] = None):
        self.itinerary: Optional[Itinerary] = None
        self.view = ViewState()
        self.suggestions: List[Suggestion] = []
        self.applied_suggestions: List[str] = []
        self._listeners: List[Listener] = []
        if itinerary is not None:
            self.set_itinerary(itinerary)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _day(self, day_id: str) -> Optional[DayPlan]:
        if self.itinerary is None:
            return None
        return self.itinerary.day(day_id)

    def _pois(self) -> Dict[str, POI]:
        return self.itinerary.poi_index() if self.itinerary else {}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def set_itinerary(self, itinerary: Itinerary) -> None:
        """Load an itinerary as-is.

        Each day is put back in time order, with fresh end times, the first
        time an edit other than a reorder touches it.
        """
        self.itinerary = itinerary
        if itinerary.days and not self.view.selected_day_id:
            self.view.select_day(itinerary.days[0].id)
        logger.debug(f"Loaded itinerary {itinerary.id} with {len(itinerary.days)} days")
        self._notify()

    def add_poi_to_day(self, poi: POI, day_id: str, time: Optional[str] = None,
                       duration: int = sequencer.DEFAULT_DURATION) -> Optional[TimeSlot]:
        """Schedule *poi* on a day, cataloguing it first if needed.

        Returns the new slot, or None when the day does not exist.
        """
        day = self._day(day_id)
        if day is None:
            return None

        if self.itinerary.poi(poi.id) is None:
            self.itinerary.pois.append(poi)

        start = sequencer.parse_clock(time) if time else None
        if start is None:
            start = sequencer.parse_clock(sequencer.DEFAULT_START_TIME)
        start_time = sequencer.format_clock(start)

        slot = TimeSlot(
            id=f"slot-{uuid.uuid4().hex[:12]}",
            start_time=start_time,
            end_time=start_time,
            poi_id=poi.id,
            duration=duration,
        )
        sequencer.restore_order(day)
        sequencer.insert_slot(day, slot)
        sequencer.recalculate_transport_times(day, self._pois())
        self._notify()
        return slot

    def remove_poi_from_day(self, day_id: str, slot_id: str) -> None:
        """Drop a slot; the POI stays in the catalog."""
        day = self._day(day_id)
        if day is None or not sequencer.remove_slot(day, slot_id):
            return
        sequencer.normalise_day(day, self._pois())
        self._notify()

    def reorder_day_slots(self, day_id: str, from_index: int, to_index: int) -> None:
        """Move a slot within its day, leaving every start time alone.

        Run :meth:`retime_day` afterwards to make the times follow the new
        order.
        """
        day = self._day(day_id)
        if day is None or not sequencer.move_slot(day, from_index, to_index):
            return
        sequencer.recalculate_transport_times(day, self._pois())
        self._notify()

    def update_slot_time(self, day_id: str, slot_id: str, start_time: str,
                         duration: int) -> None:
        day = self._day(day_id)
        if day is None or not sequencer.retime_slot(day, slot_id, start_time, duration):
            return
        sequencer.normalise_day(day, self._pois())
        self._notify()

    def retime_day(self, day_id: str) -> None:
        day = self._day(day_id)
        if day is None or not sequencer.retime_day(day, self._pois()):
            return
        self._notify()

    def compact_catalog(self, keep: Iterable[str] = ()) -> List[str]:
        """Remove catalogued POIs that no slot references.

        Ids in *keep* survive regardless, e.g. catalog-only accommodation.
        Returns the removed ids.
        """
        if self.itinerary is None:
            return []
        wanted = self.itinerary.referenced_poi_ids() | set(keep)
        removed = [p.id for p in self.itinerary.pois if p.id not in wanted]
        if removed:
            self.itinerary.pois = [p for p in self.itinerary.pois if p.id in wanted]
            if self.view.selected_poi_id in removed:
                self.view.select_poi(None)
            logger.info(f"Compacted catalog, removed {len(removed)} unused POIs")
            self._notify()
        return removed

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------
    def set_suggestions(self, suggestions: List[Suggestion]) -> None:
        self.suggestions = list(suggestions)
        self._notify()

    def apply_suggestion(self, suggestion_id: str) -> None:
        """Apply a suggestion; only ``optimize_route`` changes the schedule."""
        suggestion = next((s for s in self.suggestions if s.id == suggestion_id), None)
        if suggestion is None or self.itinerary is None:
            return

        if suggestion.type == "optimize_route" and suggestion.slots and suggestion.day_id:
            day = self._day(suggestion.day_id)
            pois = self._pois()
            if day is None or any(s.poi_id not in pois for s in suggestion.slots):
                logger.warning(f"Suggestion {suggestion_id} targets unknown day or POIs")
                return
            day.slots = list(suggestion.slots)
            sequencer.normalise_day(day, pois)

        self.applied_suggestions.append(suggestion_id)
        self._notify()

    def dismiss_suggestion(self, suggestion_id: str) -> None:
        remaining = [s for s in self.suggestions if s.id != suggestion_id]
        if len(remaining) != len(self.suggestions):
            self.suggestions = remaining
            self._notify()

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    def get_day_route(self, day_id: str) -> List[Tuple[float, float]]:
        """Ordered (lat, lng) pairs of the day's stops, for drawing the route."""
        day = self._day(day_id)
        if day is None:
            return []
        pois = self._pois()
        return [pois[s.poi_id].location.as_pair() for s in day.slots if s.poi_id in pois]

    def get_time_gaps(self, day_id: str) -> List[TimeGap]:
        day = self._day(day_id)
        if day is None:
            return []
        return sequencer.find_time_gaps(day)

    def get_selected_day(self) -> Optional[DayPlan]:
        if not self.view.selected_day_id:
            return None
        return self._day(self.view.selected_day_id)

    def get_selected_poi(self) -> Optional[POI]:
        if self.itinerary is None or not self.view.selected_poi_id:
            return None
        return self.itinerary.poi(self.view.selected_poi_id)

    def fly_to_poi(self, poi_id: str) -> None:
        poi = self.itinerary.poi(poi_id) if self.itinerary else None
        if poi is not None:
            self.view.set_map_view(poi.location.as_pair(), POI_ZOOM)


__all__ = ["ScheduleStore", "ViewState", "Suggestion"]
