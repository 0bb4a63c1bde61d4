"""Route computation and maintenance."""

import enum
import hashlib
import json
from typing import Callable, Optional

import requests

from .config import CONFIG
from .errors import RoutingError
from .geo import bearing_to_compass, cumulative_lengths, moved_more_than
from .instructions import localize_instruction
from .models import InstructionKind, LatLng, Route, RouteInstruction


def route_hash(polyline: list[LatLng]) -> str:
    """Stable fingerprint of a route geometry"""
    coords = json.dumps([[round(p.lat, 6), round(p.lng, 6)] for p in polyline])
    return hashlib.md5(coords.encode()).hexdigest()


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def describe_maneuver(step: dict) -> tuple[str, InstructionKind]:
    """English text for an OSRM step, in the phrasing of web routing controls"""
    maneuver = step.get("maneuver", {})
    kind = maneuver.get("type", "turn")
    modifier = maneuver.get("modifier", "straight")
    name = step.get("name") or ""
    onto = f" onto {name}" if name else ""

    if kind == "depart":
        heading = bearing_to_compass(maneuver.get("bearing_after", 0))
        return f"Head {heading}" + (f" on {name}" if name else ""), InstructionKind.DEPART
    if kind == "arrive":
        return "You have arrived at your destination", InstructionKind.ARRIVE
    if kind in ("roundabout", "rotary", "roundabout turn"):
        exit_number = maneuver.get("exit") or 1
        return f"Enter the traffic circle and take the {ordinal(exit_number)} exit{onto}", InstructionKind.ROUNDABOUT
    if kind == "exit roundabout" or kind == "exit rotary":
        return f"Exit the traffic circle{onto}", InstructionKind.ROUNDABOUT
    if kind == "fork":
        side = "left" if "left" in modifier else "right"
        return f"Keep {side} at the fork", InstructionKind.TURN
    if kind == "merge":
        side = "left" if "left" in modifier else "right"
        return f"Merge {side}{onto}", InstructionKind.TURN
    if kind in ("on ramp", "off ramp"):
        return f"Take the ramp{onto}", InstructionKind.TURN
    if kind in ("new name", "continue", "notification") and modifier == "straight":
        if name:
            return f"Continue onto {name}", InstructionKind.CONTINUE
        return "Continue straight", InstructionKind.CONTINUE
    return turn_text(modifier, name), InstructionKind.TURN


def turn_text(modifier: str, name: Optional[str] = None) -> str:
    """English turn phrase for an OSRM-style modifier ("left", "slight right", ...)"""
    onto = f" onto {name}" if name else ""
    if modifier == "uturn" or modifier == "u-turn":
        return f"Make a U-turn{onto}"
    if modifier == "straight":
        return f"Go straight{onto}" if name else "Continue straight"
    if modifier.startswith("slight"):
        return f"Make a {modifier}{onto}"
    if modifier.startswith("sharp"):
        return f"Turn {modifier}{onto}"
    return f"Turn {modifier}{onto}"


class Router:
    """Interface of a routing backend"""

    def route(self, start: LatLng, end: LatLng) -> Route:
        raise NotImplementedError


class OSRMRouter(Router):
    """Routes through an OSRM HTTP server"""

    def __init__(self, session: Optional[requests.Session] = None, config: Optional[dict] = None):
        config = config or CONFIG
        self.session = session or requests.Session()
        self.base_url = config["osrm_url"].rstrip("/")
        self.profile = config["osrm_profile"]
        self.timeout = config["http_timeout"]
        self.user_agent = config["user_agent"]

    def route(self, start: LatLng, end: LatLng) -> Route:
        url = (f"{self.base_url}/route/v1/{self.profile}/"
               f"{start.lng},{start.lat};{end.lng},{end.lat}")
        params = {"overview": "full", "geometries": "geojson", "steps": "true"}
        try:
            response = self.session.get(url, params=params, timeout=self.timeout,
                                        headers={"User-Agent": self.user_agent})
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RoutingError(f"OSRM request failed: {e}") from e

        if data.get("code") != "Ok" or not data.get("routes"):
            raise RoutingError(data.get("message", "No route found"), status=data.get("code"))
        return self._parse_route(data["routes"][0])

    @staticmethod
    def _parse_route(osrm_route: dict) -> Route:
        # GeoJSON coordinates are [lon, lat]
        polyline = [LatLng(lat, lng) for lng, lat in osrm_route["geometry"]["coordinates"]]
        instructions = []
        travelled = 0.0
        for leg in osrm_route.get("legs", []):
            for step in leg.get("steps", []):
                text, kind = describe_maneuver(step)
                instructions.append(RouteInstruction(
                    text=localize_instruction(text),
                    cumulative_distance=travelled,
                    kind=kind,
                ))
                travelled += step.get("distance", 0.0)
        return Route(
            polyline=polyline,
            instructions=instructions,
            total_distance=osrm_route.get("distance", travelled),
            total_time=osrm_route.get("duration", 0.0),
        )


class RouteChange(str, enum.Enum):
    REBUILD = "rebuild"
    UPDATE = "update"
    UNCHANGED = "unchanged"


class RouteEngine:
    """Keeps one route between the user and the destination.

    A destination change beyond ``destination_change_threshold`` degrees
    rebuilds the route from scratch; a start change beyond
    ``start_change_threshold`` re-requests it with the new start and keeps
    the announced and retired state of instructions that survive. Routing
    runs on a worker thread; each request carries a generation number and
    results from superseded requests are dropped.

    ``on_route_found(route, is_new, change)`` receives every accepted route.
    ``is_new`` is only true for a rebuilt route whose hash differs from the
    last announced one, while no announcement is in progress and the
    debounce window has passed. ``on_routing_failure(error, change)`` is
    called once per failed request; nothing is retried.
    """

    def __init__(self, router: Router, scheduler, logger=None,
                 on_route_found: Optional[Callable] = None,
                 on_routing_failure: Optional[Callable] = None,
                 config: Optional[dict] = None):
        config = config or CONFIG
        self.router = router
        self.scheduler = scheduler
        self.logger = logger
        self.on_route_found = on_route_found
        self.on_routing_failure = on_routing_failure
        self.destination_threshold = config["destination_change_threshold"]
        self.start_threshold = config["start_change_threshold"]
        self.debounce = config["route_announce_debounce"]

        self.waypoints: Optional[tuple[LatLng, LatLng]] = None
        self.route: Optional[Route] = None
        self.name: Optional[str] = None
        self.generation = 0
        self.pending = False
        self.last_hash: Optional[str] = None
        self.is_announcing_route = False
        self.last_announcement_time: Optional[float] = None

    def reset(self):
        """Forget the route; any in-flight result becomes stale"""
        self.generation += 1
        self.waypoints = None
        self.route = None
        self.name = None
        self.pending = False
        self.last_hash = None
        self.is_announcing_route = False
        self.last_announcement_time = None

    def recompute(self, start: LatLng, end: LatLng, name: Optional[str] = None) -> RouteChange:
        """Bring the route in line with the current start and destination"""
        if self.waypoints is None or moved_more_than(self.waypoints[1], end, self.destination_threshold):
            self.reset()
            self.name = name
            self.waypoints = (start, end)
            self._request(RouteChange.REBUILD)
            return RouteChange.REBUILD

        if moved_more_than(self.waypoints[0], start, self.start_threshold):
            self.generation += 1
            self.waypoints = (start, self.waypoints[1])
            # Superseding a rebuild that has not answered yet is still a rebuild
            change = RouteChange.REBUILD if self.route is None else RouteChange.UPDATE
            self._request(change)
            return change

        return RouteChange.UNCHANGED

    def _request(self, change: RouteChange):
        generation = self.generation
        start, end = self.waypoints
        self.pending = True
        self._log("Route requested", {
            "change": change.value, "generation": generation,
            "start": start.to_list(), "end": end.to_list(),
        })
        self.scheduler.submit(
            self.router.route,
            lambda result, error: self._on_result(generation, change, result, error),
            start, end,
        )

    def _on_result(self, generation: int, change: RouteChange,
                   route: Optional[Route], error: Optional[BaseException]):
        if generation != self.generation:
            self._log("Stale route result ignored", {"generation": generation, "current": self.generation})
            return
        self.pending = False

        if error is not None:
            self._log("RoutingFailure", {"change": change.value, "error": str(error)})
            # The caller has to supply the destination again
            self.waypoints = None
            self.route = None
            if self.on_routing_failure:
                self.on_routing_failure(error, change)
            return

        route.waypoints = self.waypoints
        route.name = self.name
        route.hash = route_hash(route.polyline)
        route.cumulative_lengths = cumulative_lengths(route.polyline)
        if change == RouteChange.UPDATE and self.route is not None:
            carry_over_progress(self.route, route)
        self.route = route

        now = self.scheduler.time()
        is_new = (
            change == RouteChange.REBUILD
            and route.hash != self.last_hash
            and not self.is_announcing_route
            and (self.last_announcement_time is None or now - self.last_announcement_time > self.debounce)
        )
        self.last_hash = route.hash
        self._log("Route found", {
            "change": change.value, "new": is_new,
            "distance": route.total_distance, "time": route.total_time,
            "instructions": len(route.instructions),
        })
        if not self.on_route_found:
            return
        if is_new:
            self.is_announcing_route = True
            self.last_announcement_time = now
            try:
                self.on_route_found(route, True, change)
            finally:
                self.is_announcing_route = False
        else:
            self.on_route_found(route, False, change)

    def _log(self, message: str, data: Optional[dict] = None):
        if self.logger:
            self.logger.log(message, data)


def carry_over_progress(old: Route, new: Route, tolerance: Optional[float] = None):
    """Keep announced/retired flags for instructions that survive a reroute.

    A new instruction inherits from the old one with the same wording that
    lies the same distance before the destination (within ``tolerance``
    meters), so a repeated "Belok kiri" further on keeps its own flags.
    """
    if tolerance is None:
        tolerance = CONFIG["carry_over_tolerance"]
    for instruction in new.instructions:
        to_go = new.total_distance - instruction.cumulative_distance
        candidates = [
            (abs(old.total_distance - previous.cumulative_distance - to_go), n)
            for n, previous in enumerate(old.instructions)
            if previous.text == instruction.text
        ]
        candidates = [c for c in candidates if c[0] <= tolerance]
        if not candidates:
            continue
        previous = old.instructions[min(candidates)[1]]
        if previous.announced:
            instruction.announced = True
        if previous.retired:
            instruction.retired = True
