from unittest.mock import patch

import pytest

from main import create_app

SERVICE = "trip_scheduler.api.services.itinerary_service"


@pytest.fixture
def client(fake_geocoder):
    geocoder = fake_geocoder({
        "Paris": [(48.8566, 2.3522)],
        "Louvre, Paris": [(48.8606, 2.3376)],
        "Orsay, Paris": [(48.8600, 2.3266)],
    })
    app = create_app({"TESTING": True, "SECRET_KEY": "test"})
    with patch(f"{SERVICE}.get_geocoder", return_value=geocoder):
        with app.test_client() as client:
            yield client


@pytest.fixture
def loaded(client, paris_proposal):
    response = client.post("/planner/api/itinerary/convert",
                           json={"proposal": paris_proposal, "tripId": "trip-9"})
    assert response.status_code == 200
    return client


def _itinerary(client):
    return client.get("/planner/api/itinerary").get_json()


def _slots(itinerary, day=0):
    return itinerary["days"][day]["slots"]


def test_health(client):
    assert client.get("/planner/health").get_json()["status"] == "ok"


def test_no_itinerary_yet(client):
    assert client.get("/planner/api/itinerary").status_code == 404
    response = client.post("/planner/api/itinerary/days/day-1/retime")
    assert response.status_code == 400


class TestConvert:
    def test_convert_stores_itinerary_in_session(self, loaded):
        itinerary = _itinerary(loaded)

        assert itinerary["tripId"] == "trip-9"
        assert [s["startTime"] for s in _slots(itinerary)] == ["09:00", "13:00"]
        with loaded.session_transaction() as sess:
            assert sess["itinerary_metadata"]["travelers"] == 2
            assert sess["conversion_report"]["places"] == 2

    def test_response_includes_session_info(self, client, paris_proposal):
        body = client.post("/planner/api/itinerary/convert",
                           json={"proposal": paris_proposal, "tripId": "t"}).get_json()
        assert body["has_itinerary"] is True
        assert body["destination"] == "Paris"
        assert body["days"] == 1
        assert body["report"]["warnings"] == []

    @pytest.mark.parametrize("payload", [
        {"proposal": {"days": []}},
        {"proposal": "text", "tripId": "t"},
        {"tripId": "t"},
    ])
    def test_bad_requests(self, client, payload):
        assert client.post("/planner/api/itinerary/convert", json=payload).status_code == 400

    def test_clear(self, loaded):
        assert loaded.delete("/planner/api/itinerary").get_json() == {"status": "cleared"}
        assert loaded.get("/planner/api/itinerary").status_code == 404


class TestGenerate:
    def test_generate_converts_model_output(self, client, paris_proposal):
        with patch(f"{SERVICE}.generate_itinerary_proposal",
                   return_value=paris_proposal) as generate:
            response = client.post("/planner/api/itinerary/generate",
                                   json={"destination": "Paris", "days": 1})

        assert response.status_code == 200
        assert response.get_json()["itinerary"]["destination"] == "Paris"
        generate.assert_called_once_with("Paris", 1, 1, None)

    @pytest.mark.parametrize("payload", [
        {"destination": "", "days": 2},
        {"destination": "Paris", "days": 30},
        {"destination": "Paris", "days": "two"},
    ])
    def test_invalid_parameters(self, client, payload):
        response = client.post("/planner/api/itinerary/generate", json=payload)
        assert response.status_code == 400

    def test_model_failure_is_a_server_error(self, client):
        with patch(f"{SERVICE}.generate_itinerary_proposal",
                   side_effect=RuntimeError("model unavailable")):
            response = client.post("/planner/api/itinerary/generate",
                                   json={"destination": "Paris", "days": 2})
        assert response.status_code == 500
        assert "model unavailable" in response.get_json()["error"]


class TestEdits:
    def test_add_slot_in_time_order(self, loaded):
        poi = {"id": "cafe", "name": "Cafe de Flore", "category": "cafe-bakery",
               "location": {"lat": 48.854, "lng": 2.3325}}

        body = loaded.post("/planner/api/itinerary/days/day-1/slots",
                           json={"poi": poi, "time": "11:30", "duration": 45}).get_json()

        assert body["slot"]["endTime"] == "12:15"
        slots = _slots(_itinerary(loaded))
        assert [s["startTime"] for s in slots] == ["09:00", "11:30", "13:00"]
        assert slots[-1]["transportTime"] == 0
        names = {p["id"]: p for p in _itinerary(loaded)["pois"]}
        assert names["cafe"]["category"] == "cafe-bakery"

    def test_add_to_unknown_day(self, loaded):
        body = loaded.post("/planner/api/itinerary/days/day-9/slots",
                           json={"poi": {"id": "x", "name": "X"}}).get_json()
        assert body["slot"] is None

    def test_add_requires_poi(self, loaded):
        response = loaded.post("/planner/api/itinerary/days/day-1/slots", json={"time": "10:00"})
        assert response.status_code == 400

    def test_update_and_delete_slot(self, loaded):
        first, second = _slots(_itinerary(loaded))

        updated = loaded.patch(f"/planner/api/itinerary/days/day-1/slots/{first['id']}",
                               json={"startTime": "15:00", "duration": 30}).get_json()
        assert [s["id"] for s in _slots(updated)] == [second["id"], first["id"]]
        assert _slots(updated)[1]["endTime"] == "15:30"

        remaining = loaded.delete(
            f"/planner/api/itinerary/days/day-1/slots/{second['id']}").get_json()
        assert [s["id"] for s in _slots(remaining)] == [first["id"]]

    def test_patch_validates_fields(self, loaded):
        slot_id = _slots(_itinerary(loaded))[0]["id"]
        url = f"/planner/api/itinerary/days/day-1/slots/{slot_id}"
        assert loaded.patch(url, json={"duration": 30}).status_code == 400
        assert loaded.patch(url, json={"startTime": "10:00", "duration": "30"}).status_code == 400

    def test_stale_ids_leave_itinerary_alone(self, loaded):
        before = _itinerary(loaded)
        response = loaded.delete("/planner/api/itinerary/days/day-1/slots/nope")
        assert response.status_code == 200
        assert response.get_json() == before

    def test_reorder_then_retime(self, loaded):
        first, second = _slots(_itinerary(loaded))

        reordered = loaded.post("/planner/api/itinerary/days/day-1/reorder",
                                json={"fromIndex": 0, "toIndex": 1}).get_json()
        assert [s["startTime"] for s in _slots(reordered)] == ["13:00", "09:00"]

        retimed = loaded.post("/planner/api/itinerary/days/day-1/retime").get_json()
        slots = _slots(retimed)
        assert [s["id"] for s in slots] == [second["id"], first["id"]]
        assert slots[0]["startTime"] == "13:00"
        assert slots[1]["startTime"] > "14:00"

    def test_reorder_needs_integers(self, loaded):
        response = loaded.post("/planner/api/itinerary/days/day-1/reorder",
                               json={"fromIndex": "0", "toIndex": 1})
        assert response.status_code == 400

    def test_compact_drops_unscheduled_places(self, loaded):
        slots = _slots(_itinerary(loaded))
        loaded.delete(f"/planner/api/itinerary/days/day-1/slots/{slots[1]['id']}")

        body = loaded.post("/planner/api/itinerary/compact", json={}).get_json()

        assert body["removed"] == [slots[1]["poiId"]]
        assert [p["id"] for p in body["itinerary"]["pois"]] == [slots[0]["poiId"]]


class TestQueries:
    def test_route(self, loaded):
        body = loaded.get("/planner/api/itinerary/days/day-1/route?mode=walking").get_json()
        assert body["points"] == [[48.8606, 2.3376], [48.86, 2.3266]]
        assert body["bounds"] == [[48.86, 2.3266], [48.8606, 2.3376]]
        assert len(body["legs"]) == 1

    def test_route_of_unknown_day(self, loaded):
        body = loaded.get("/planner/api/itinerary/days/day-7/route").get_json()
        assert body == {"points": [], "bounds": None, "legs": []}

    def test_gaps(self, loaded):
        gaps = loaded.get("/planner/api/itinerary/days/day-1/gaps").get_json()
        assert gaps == [
            {"start": "08:00", "end": "09:00", "duration": 60},
            {"start": "11:00", "end": "13:00", "duration": 120},
            {"start": "14:00", "end": "22:00", "duration": 480},
        ]

    def test_summary(self, loaded):
        body = loaded.get("/planner/api/itinerary/days/day-1/summary").get_json()
        assert "09:00 to 11:00: A (art & museums)" in body["summary"]
        assert loaded.get("/planner/api/itinerary/days/day-5/summary").status_code == 404


class TestManualPlanning:
    def test_start_empty_trip_and_plan_it(self, client):
        response = client.post("/planner/api/itinerary", json={
            "tripId": "trip-m", "destination": "Lyon",
            "startDate": "2025-07-01", "endDate": "2025-07-03",
        })

        assert response.status_code == 201
        body = response.get_json()
        assert [(d["id"], d["date"]) for d in body["days"]] == [
            ("day-1", "2025-07-01"), ("day-2", "2025-07-02"), ("day-3", "2025-07-03"),
        ]
        assert _itinerary(client) == body

        poi = {"id": "fourviere", "name": "Fourviere", "category": "attraction",
               "location": {"lat": 45.7623, "lng": 4.8227}}
        client.post("/planner/api/itinerary/days/day-2/slots", json={"poi": poi, "time": "10:00"})
        assert [s["poiId"] for s in _slots(_itinerary(client), day=1)] == ["fourviere"]

    def test_starting_over_drops_previous_proposal_data(self, loaded):
        loaded.post("/planner/api/itinerary", json={
            "tripId": "trip-m", "startDate": "2025-07-01", "endDate": "2025-07-01",
        })
        with loaded.session_transaction() as sess:
            assert "itinerary_metadata" not in sess
            assert "conversion_report" not in sess
        assert _itinerary(loaded)["tripId"] == "trip-m"

    @pytest.mark.parametrize("payload", [
        {"startDate": "2025-07-01", "endDate": "2025-07-02"},
        {"tripId": "t", "startDate": "July 1st", "endDate": "2025-07-02"},
        {"tripId": "t", "startDate": "2025-07-01"},
        {"tripId": "t", "startDate": "2025-07-05", "endDate": "2025-07-01"},
        {"tripId": "t", "startDate": "2025-01-01", "endDate": "2025-12-31"},
    ])
    def test_invalid_requests(self, client, payload):
        assert client.post("/planner/api/itinerary", json=payload).status_code == 400


def test_summary_without_itinerary_is_not_found(client):
    response = client.get("/planner/api/itinerary/days/day-1/summary")
    assert response.status_code == 404
    assert client.get("/planner/api/itinerary").status_code == 404
