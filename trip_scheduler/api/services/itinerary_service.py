# trip_scheduler/api/services/itinerary_service.py
"""Service layer for itinerary generation and session-held editing."""

import asyncio
import logging
import uuid
from datetime import date
from typing import Dict, Any, Optional

from flask import session

from trip_scheduler.api.converter import ItineraryConverter, store_metadata
from trip_scheduler.api.geocoding import Geocoder, build_geocoder
from trip_scheduler.api.llm import generate_itinerary_proposal
from trip_scheduler.api.models import Itinerary
from trip_scheduler.api.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)

SESSION_KEYS = ('current_itinerary', 'itinerary_metadata', 'conversion_report')

# Longest trip that can be started empty
MAX_MANUAL_DAYS = 60

_geocoder: Optional[Geocoder] = None


def get_geocoder() -> Geocoder:
    """Return the process-wide geocoder chain, building it on first use."""
    global _geocoder
    if _geocoder is None:
        _geocoder = build_geocoder()
    return _geocoder


class ItineraryService:
    """Handles itinerary generation and session management."""

    @staticmethod
    def generate_itinerary(destination: str, days: int, travelers: int = 1,
                           budget: Optional[float] = None) -> Itinerary:
        """Draft a proposal with the LLM and convert it into an itinerary.

        Args:
            destination: Destination name
            days: Number of days
            travelers: Party size used in the prompt
            budget: Optional total budget

        Returns:
            The converted itinerary, also stored in the session

        Raises:
            ValueError: If invalid parameters
            Exception: If generation fails
        """
        if not destination or not isinstance(destination, str):
            raise ValueError("Invalid destination parameter")

        if not isinstance(days, int) or days < 1 or days > 14:
            raise ValueError("Days must be between 1 and 14")

        try:
            logger.info(f"Generating itinerary for {destination}, {days} days")
            proposal = generate_itinerary_proposal(destination, days, travelers, budget)
        except Exception as e:
            logger.error(f"Failed to generate itinerary: {e}")
            raise

        return ItineraryService.convert_proposal(proposal, str(uuid.uuid4()))

    @staticmethod
    def convert_proposal(proposal: Dict[str, Any], trip_id: str) -> Itinerary:
        """Convert an AI proposal and make it the session's itinerary.

        Args:
            proposal: Raw proposal as produced by the model
            trip_id: Trip the itinerary belongs to

        Returns:
            The converted itinerary
        """
        if not isinstance(proposal, dict):
            raise ValueError("Proposal must be a JSON object")

        converter = ItineraryConverter(get_geocoder())
        itinerary, report = asyncio.run(converter.convert_with_report(proposal, trip_id))
        for warning in report.warnings:
            logger.warning(f"Trip {trip_id}: {warning}")

        ItineraryService.store_in_session(itinerary)
        store_metadata(proposal, session)
        session['conversion_report'] = report.to_dict()
        return itinerary

    @staticmethod
    def create_itinerary(trip_id: str, destination: str, start_date: date,
                         end_date: date) -> Itinerary:
        """Start an empty itinerary for manual planning.

        Replaces whatever the session held, including metadata and the
        conversion report of an earlier proposal.

        Raises:
            ValueError: If the date range is inverted or too long
        """
        if (end_date - start_date).days + 1 > MAX_MANUAL_DAYS:
            raise ValueError(f"Trips are limited to {MAX_MANUAL_DAYS} days")
        itinerary = Itinerary.empty(trip_id, destination, start_date, end_date)

        ItineraryService.clear_session()
        store = ScheduleStore()
        store.subscribe(lambda s: ItineraryService.store_in_session(s.itinerary))
        store.set_itinerary(itinerary)
        logger.info(f"Created empty itinerary for trip {trip_id} with {len(itinerary.days)} days")
        return itinerary

    @staticmethod
    def store_in_session(itinerary: Itinerary) -> None:
        """Store itinerary data in Flask session.

        Args:
            itinerary: Itinerary to keep for the editing session
        """
        session['current_itinerary'] = itinerary.to_dict()
        session.modified = True
        logger.debug(f"Stored itinerary {itinerary.id} in session")

    @staticmethod
    def get_from_session() -> Optional[Itinerary]:
        """Get current itinerary from session.

        Returns:
            Itinerary or None if not found
        """
        data = session.get('current_itinerary')
        return Itinerary.from_dict(data) if data else None

    @staticmethod
    def open_store() -> ScheduleStore:
        """Open an editing store over the session itinerary.

        Every mutation is written straight back to the session.

        Raises:
            ValueError: If no itinerary has been loaded yet
        """
        itinerary = ItineraryService.get_from_session()
        if itinerary is None:
            raise ValueError("No itinerary in session")
        store = ScheduleStore(itinerary)
        store.subscribe(lambda s: ItineraryService.store_in_session(s.itinerary))
        return store

    @staticmethod
    def get_session_info() -> Dict[str, Any]:
        """Get current session information.

        Returns:
            Dictionary with session info
        """
        data = session.get('current_itinerary') or {}
        return {
            'has_itinerary': 'current_itinerary' in session,
            'destination': data.get('destination'),
            'days': len(data.get('days') or []),
            'report': session.get('conversion_report'),
        }

    @staticmethod
    def clear_session() -> None:
        """Clear itinerary data from session."""
        for key in SESSION_KEYS:
            session.pop(key, None)
        session.modified = True
        logger.debug("Cleared itinerary from session")

    @staticmethod
    def format_day_explanation(itinerary: Itinerary, day_number: int) -> str:
        """Format explanation for a specific day.

        Args:
            itinerary: Current itinerary
            day_number: Day to explain (0 for overview)

        Returns:
            Formatted explanation string
        """
        if itinerary is None or not itinerary.days:
            return "I don't have a current itinerary to explain. Would you like me to plan a trip first?"

        days = itinerary.days
        pois = itinerary.poi_index()

        def names(day):
            return [pois[s.poi_id].name for s in day.slots if s.poi_id in pois]

        if day_number == 0:
            response = f"Here's your complete {len(days)}-day itinerary for {itinerary.destination}: "
            for day in days:
                response += f"Day {day.day_number}: You'll visit {', '.join(names(day)) or 'nothing yet'}. "
            response += "Which day would you like me to explain in more detail?"
            return response

        if not 0 < day_number <= len(days):
            return f"I don't have information for day {day_number}. Your trip is {len(days)} days long."

        day = days[day_number - 1]
        response = f"On day {day_number} in {itinerary.destination}, here's your plan: "
        for slot in day.slots:
            poi = pois.get(slot.poi_id)
            if poi is None:
                continue
            category = poi.category.value.replace('-', ' & ')
            response += f"{slot.start_time} to {slot.end_time}: {poi.name} ({category}). "
        response += f"That's {len(day.slots)} stops planned."
        return response
