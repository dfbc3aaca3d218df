# trip_scheduler/routes/planner.py
"""Planner routes and blueprint configuration."""

import logging
from datetime import date

from flask import Blueprint, jsonify, request

from trip_scheduler.api.models import POI
from trip_scheduler.api.services.itinerary_service import ItineraryService
from trip_scheduler.api.services.map_service import MapService

logger = logging.getLogger(__name__)


def _body():
    return request.get_json(silent=True) or {}


def _int_field(data, key, default=None):
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer")
    return value


def _date_field(data, key):
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be an ISO date")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"'{key}' must be an ISO date") from None


def create_planner_blueprint():
    """Create and configure the planner blueprint.

    Edits operate on the itinerary held in the Flask session. Unknown day or
    slot ids leave it unchanged and still answer 200 with the itinerary.

    Returns:
        Configured Flask Blueprint
    """
    planner_bp = Blueprint("planner", __name__, url_prefix="/planner")

    @planner_bp.errorhandler(ValueError)
    def bad_request(error):
        return jsonify({"error": str(error)}), 400

    # ------------------------------------------------------------------
    # Whole itinerary
    # ------------------------------------------------------------------
    @planner_bp.route("/api/itinerary", methods=["GET", "POST", "DELETE"])
    def api_itinerary():
        """Return, start or discard the session itinerary."""
        if request.method == "POST":
            data = _body()
            trip_id = str(data.get("tripId") or "")
            if not trip_id:
                raise ValueError("'tripId' is required")
            itinerary = ItineraryService.create_itinerary(
                trip_id,
                str(data.get("destination") or ""),
                _date_field(data, "startDate"),
                _date_field(data, "endDate"),
            )
            return jsonify(itinerary.to_dict()), 201

        if request.method == "DELETE":
            ItineraryService.clear_session()
            return jsonify({"status": "cleared"})

        itinerary = ItineraryService.get_from_session()
        if itinerary is None:
            return jsonify({"error": "No itinerary in session"}), 404
        return jsonify(itinerary.to_dict())

    @planner_bp.route("/api/itinerary/generate", methods=["POST"])
    def api_generate():
        """Generate a proposal with the LLM and convert it."""
        data = _body()
        destination = data.get("destination", "")
        days = data.get("days", 3)
        travelers = data.get("travelers", 1)
        budget = data.get("budget")

        try:
            itinerary = ItineraryService.generate_itinerary(destination, days, travelers, budget)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            logger.error(f"Itinerary generation failed: {e}")
            return jsonify({"error": str(e)}), 500

        return jsonify({
            "itinerary": itinerary.to_dict(),
            **ItineraryService.get_session_info(),
        })

    @planner_bp.route("/api/itinerary/convert", methods=["POST"])
    def api_convert():
        """Convert a proposal supplied by the caller."""
        data = _body()
        proposal = data.get("proposal")
        trip_id = str(data.get("tripId") or "")
        if not trip_id:
            raise ValueError("'tripId' is required")

        itinerary = ItineraryService.convert_proposal(proposal, trip_id)
        return jsonify({
            "itinerary": itinerary.to_dict(),
            **ItineraryService.get_session_info(),
        })

    @planner_bp.route("/api/itinerary/compact", methods=["POST"])
    def api_compact():
        """Drop catalogued places that are no longer scheduled."""
        keep = _body().get("keep") or []
        store = ItineraryService.open_store()
        removed = store.compact_catalog(keep)
        return jsonify({"removed": removed, "itinerary": store.itinerary.to_dict()})

    # ------------------------------------------------------------------
    # Day edits
    # ------------------------------------------------------------------
    @planner_bp.route("/api/itinerary/days/<day_id>/slots", methods=["POST"])
    def api_add_slot(day_id):
        data = _body()
        poi_data = data.get("poi")
        if not isinstance(poi_data, dict) or not poi_data.get("id"):
            raise ValueError("'poi' with an 'id' is required")

        store = ItineraryService.open_store()
        slot = store.add_poi_to_day(
            POI.from_dict(poi_data),
            day_id,
            data.get("time"),
            _int_field(data, "duration", 120),
        )
        return jsonify({
            "slot": slot.to_dict() if slot else None,
            "itinerary": store.itinerary.to_dict(),
        })

    @planner_bp.route("/api/itinerary/days/<day_id>/slots/<slot_id>",
                      methods=["PATCH", "DELETE"])
    def api_slot(day_id, slot_id):
        store = ItineraryService.open_store()
        if request.method == "DELETE":
            store.remove_poi_from_day(day_id, slot_id)
        else:
            data = _body()
            start_time = data.get("startTime")
            if not isinstance(start_time, str):
                raise ValueError("'startTime' is required")
            store.update_slot_time(day_id, slot_id, start_time, _int_field(data, "duration"))
        return jsonify(store.itinerary.to_dict())

    @planner_bp.route("/api/itinerary/days/<day_id>/reorder", methods=["POST"])
    def api_reorder(day_id):
        data = _body()
        store = ItineraryService.open_store()
        store.reorder_day_slots(day_id, _int_field(data, "fromIndex"), _int_field(data, "toIndex"))
        return jsonify(store.itinerary.to_dict())

    @planner_bp.route("/api/itinerary/days/<day_id>/retime", methods=["POST"])
    def api_retime(day_id):
        store = ItineraryService.open_store()
        store.retime_day(day_id)
        return jsonify(store.itinerary.to_dict())

    # ------------------------------------------------------------------
    # Day queries
    # ------------------------------------------------------------------
    @planner_bp.route("/api/itinerary/days/<day_id>/route")
    def api_route(day_id):
        """Route points, bounding box and per-leg estimates for the map."""
        mode = request.args.get("mode", "walking")
        store = ItineraryService.open_store()
        points = store.get_day_route(day_id)
        bounds = MapService.calculate_bounds(points)
        return jsonify({
            "points": [list(p) for p in points],
            "bounds": [list(corner) for corner in bounds] if bounds else None,
            "legs": MapService.route_legs(points, mode),
        })

    @planner_bp.route("/api/itinerary/days/<day_id>/gaps")
    def api_gaps(day_id):
        store = ItineraryService.open_store()
        return jsonify([gap.to_dict() for gap in store.get_time_gaps(day_id)])

    @planner_bp.route("/api/itinerary/days/<day_id>/summary")
    def api_summary(day_id):
        itinerary = ItineraryService.get_from_session()
        if itinerary is None:
            return jsonify({"error": "No itinerary in session"}), 404
        day = itinerary.day(day_id)
        if day is None:
            return jsonify({"error": f"Unknown day '{day_id}'"}), 404
        return jsonify({
            "summary": ItineraryService.format_day_explanation(itinerary, day.day_number),
        })

    @planner_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "planner"})

    return planner_bp


__all__ = ['create_planner_blueprint']
