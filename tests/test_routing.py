from __future__ import annotations

import pytest
import requests

from helpers import STEP, FakeRouter, line_route, straight_route
from senavision.errors import RoutingError
from senavision.instructions import InstructionTracker
from senavision.models import InstructionKind, LatLng
from senavision.routing import (
    OSRMRouter, RouteChange, RouteEngine, carry_over_progress, describe_maneuver, route_hash,
)

START = LatLng(-6.2000, 106.8166)
DEST_5KM = LatLng(-6.2000 + 0.045, 106.8166)
DEST_50KM = LatLng(-6.2000 + 0.45, 106.8166)


class _Response:
    def __init__(self, payload: dict, status: int = 200) -> None:
        self._payload = payload
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> dict:
        return self._payload


class _Session:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[tuple[str, dict]] = []

    def get(self, url: str, params=None, timeout=None, headers=None):
        self.requests.append((url, params))
        if self.error:
            raise self.error
        return self.response


OSRM_PAYLOAD = {
    "code": "Ok",
    "routes": [{
        "distance": 420.0,
        "duration": 320.0,
        "geometry": {"coordinates": [[106.8166, -6.2], [106.8166, -6.199], [106.8176, -6.199]]},
        "legs": [{"steps": [
            {"distance": 111.0, "name": "Jalan Thamrin",
             "maneuver": {"type": "depart", "bearing_after": 0}},
            {"distance": 309.0, "name": "Jalan Kebon Sirih",
             "maneuver": {"type": "turn", "modifier": "right"}},
            {"distance": 0.0, "name": "",
             "maneuver": {"type": "arrive"}},
        ]}],
    }],
}


def _engine(scheduler, router, found, failures) -> RouteEngine:
    return RouteEngine(
        router, scheduler,
        on_route_found=lambda route, is_new, change: found.append((route, is_new, change)),
        on_routing_failure=lambda error, change: failures.append((error, change)),
    )


def test_route_hash_is_stable_and_sensitive() -> None:
    a = [LatLng(-6.2, 106.8), LatLng(-6.1, 106.8)]
    b = [LatLng(-6.2, 106.8), LatLng(-6.1, 106.9)]
    assert route_hash(a) == route_hash(list(a))
    assert route_hash(a) != route_hash(b)


def test_describe_maneuver() -> None:
    assert describe_maneuver({"name": "Jalan A", "maneuver": {"type": "turn", "modifier": "left"}}) == (
        "Turn left onto Jalan A", InstructionKind.TURN
    )
    text, kind = describe_maneuver({"maneuver": {"type": "roundabout", "exit": 3}})
    assert text == "Enter the traffic circle and take the 3rd exit"
    assert kind == InstructionKind.ROUNDABOUT
    assert describe_maneuver({"maneuver": {"type": "arrive"}})[1] == InstructionKind.ARRIVE


def test_osrm_router_parses_route() -> None:
    session = _Session(_Response(OSRM_PAYLOAD))
    router = OSRMRouter(session=session)

    route = router.route(START, DEST_5KM)

    url, params = session.requests[0]
    assert url.endswith(f"/route/v1/foot/{START.lng},{START.lat};{DEST_5KM.lng},{DEST_5KM.lat}")
    assert params["steps"] == "true"
    assert route.polyline[0] == LatLng(-6.2, 106.8166)
    assert route.total_distance == 420.0
    assert [i.text for i in route.instructions] == [
        "Berangkat utara di Jalan Thamrin",
        "Belok kanan ke Jalan Kebon Sirih",
        "Anda telah tiba di tujuan",
    ]
    assert [i.cumulative_distance for i in route.instructions] == [0.0, 111.0, 420.0]


def test_osrm_router_wraps_network_errors() -> None:
    router = OSRMRouter(session=_Session(error=requests.ConnectionError("offline")))
    with pytest.raises(RoutingError):
        router.route(START, DEST_5KM)


def test_osrm_router_no_route() -> None:
    router = OSRMRouter(session=_Session(_Response({"code": "NoRoute", "message": "Impossible route"})))
    with pytest.raises(RoutingError) as exc_info:
        router.route(START, DEST_5KM)
    assert exc_info.value.status == "NoRoute"


def test_first_recompute_rebuilds_and_announces(scheduler) -> None:
    found, failures = [], []
    engine = _engine(scheduler, FakeRouter(), found, failures)

    assert engine.recompute(START, DEST_5KM, "Monas") == RouteChange.REBUILD
    scheduler.run_jobs()

    route, is_new, change = found[0]
    assert is_new and change == RouteChange.REBUILD
    assert route.name == "Monas"
    assert route.hash == engine.last_hash
    assert route.waypoints == (START, DEST_5KM)
    assert not engine.is_announcing_route


def test_destination_change_from_5km_to_50km_rebuilds(scheduler) -> None:
    found, failures = [], []
    engine = _engine(scheduler, FakeRouter(), found, failures)
    engine.recompute(START, DEST_5KM)
    scheduler.run_jobs()
    old_route = found[0][0]
    for instruction in old_route.instructions:
        instruction.announced = True
        instruction.retired = True

    scheduler.advance(5)
    assert engine.recompute(START, DEST_50KM) == RouteChange.REBUILD
    scheduler.run_jobs()

    new_route, is_new, change = found[1]
    assert change == RouteChange.REBUILD and is_new
    assert new_route.hash != old_route.hash
    assert not any(i.announced or i.retired for i in new_route.instructions)


def test_start_move_updates_and_keeps_progress(scheduler) -> None:
    found, failures = [], []
    engine = _engine(scheduler, FakeRouter(), found, failures)
    engine.recompute(START, DEST_5KM)
    scheduler.run_jobs()
    found[0][0].instructions[1].announced = True

    moved = LatLng(START.lat + 0.0002, START.lng)
    assert engine.recompute(moved, DEST_5KM) == RouteChange.UPDATE
    scheduler.run_jobs()

    route, is_new, change = found[1]
    assert change == RouteChange.UPDATE and not is_new
    assert route.instructions[1].announced
    assert engine.waypoints == (moved, DEST_5KM)


def test_tiny_moves_do_not_request(scheduler) -> None:
    router = FakeRouter()
    engine = _engine(scheduler, router, [], [])
    engine.recompute(START, DEST_5KM)
    scheduler.run_jobs()

    nudged = LatLng(START.lat + 0.00005, START.lng)
    assert engine.recompute(nudged, DEST_5KM) == RouteChange.UNCHANGED
    assert len(router.calls) == 1


def test_superseded_results_are_dropped(scheduler) -> None:
    found, failures = [], []
    engine = _engine(scheduler, FakeRouter(), found, failures)
    engine.recompute(START, DEST_5KM)
    engine.recompute(START, DEST_50KM)

    scheduler.run_jobs()

    assert len(found) == 1
    assert found[0][0].waypoints[1] == DEST_50KM


def test_start_move_before_first_answer_is_still_a_rebuild(scheduler) -> None:
    found, failures = [], []
    engine = _engine(scheduler, FakeRouter(), found, failures)
    engine.recompute(START, DEST_5KM)

    moved = LatLng(START.lat + 0.0002, START.lng)
    assert engine.recompute(moved, DEST_5KM) == RouteChange.REBUILD
    scheduler.run_jobs()

    assert len(found) == 1
    route, is_new, change = found[0]
    assert is_new and change == RouteChange.REBUILD
    assert route.polyline[0] == moved


def test_quick_destination_changes_each_announce(scheduler) -> None:
    found, failures = [], []
    engine = _engine(scheduler, FakeRouter(), found, failures)
    engine.recompute(START, DEST_5KM)
    scheduler.run_jobs()

    scheduler.advance(0.5)
    engine.recompute(START, DEST_50KM)
    scheduler.run_jobs()

    assert [is_new for _, is_new, _ in found] == [True, True]


def test_routing_failure_clears_waypoints(scheduler) -> None:
    found, failures = [], []
    engine = _engine(scheduler, FakeRouter(error=RoutingError("down")), found, failures)

    engine.recompute(START, DEST_5KM)
    scheduler.run_jobs()

    assert not found
    assert len(failures) == 1
    assert engine.waypoints is None and engine.route is None
    # Nothing retried
    scheduler.advance(30)
    scheduler.run_jobs()
    assert len(failures) == 1


def test_carry_over_progress_keeps_flags_of_the_same_step() -> None:
    old = line_route(START, DEST_5KM, turns=[("Belok kiri", 150.0)])
    new = line_route(START, DEST_5KM, turns=[("Belok kiri", 140.0)])
    old.instructions[1].announced = True
    old.instructions[0].retired = True

    carry_over_progress(old, new)

    assert new.instructions[1].announced
    assert new.instructions[0].retired
    assert not new.instructions[2].announced


def test_carry_over_progress_repeated_wording_keeps_later_turn_live() -> None:
    old = straight_route(START, steps=80, turns=[("Belok kiri", 100.0), ("Belok kiri", 600.0)])
    tracker = InstructionTracker(old)
    assert tracker.update(START.lat + 2 * STEP, START.lng).announcement == "Setelah 78 meter Belok kiri"
    tracker.update(START.lat + 12 * STEP, START.lng)
    assert old.instructions[1].retired and not old.instructions[2].announced

    # rerouted from vertex 12, about 133 m along the old route
    restart = LatLng(START.lat + 12 * STEP, START.lng)
    new = straight_route(restart, steps=68, turns=[("Belok kiri", 467.0)])
    carry_over_progress(old, new)

    later_turn = new.instructions[1]
    assert not later_turn.retired and not later_turn.announced

    tracker = InstructionTracker(new)
    tracker.update(restart.lat, restart.lng)
    assert "Belok kiri" in [text for text, _ in tracker.visible()]
    update = tracker.update(restart.lat + 30 * STEP, restart.lng)
    assert update.announcement == "Setelah 133 meter Belok kiri"
