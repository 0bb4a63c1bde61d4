"""Street graph and offline pedestrian routing."""

import math
from typing import Optional

import networkx as nx

from .config import CONFIG
from .errors import RoutingError
from .geo import (
    bearing_between,
    bearing_to_compass,
    cumulative_lengths,
    haversine_distance,
    relative_direction,
    turn_angle,
)
from .instructions import localize_instruction
from .models import InstructionKind, LatLng, Route, RouteInstruction, Segment
from .osm import OSMFetcher
from .routing import Router, turn_text


class StreetGraph:
    """Graph representation of street network"""

    def __init__(self):
        self.graph = nx.Graph()
        self.nodes: dict[int, tuple[float, float]] = {}  # node_id -> (lat, lon)
        self.segments: dict[str, Segment] = {}  # segment_id -> Segment

    def build_from_osm(self, osm_data: dict):
        """Build graph from Overpass elements"""
        for element in osm_data.get("elements", []):
            if element["type"] == "node":
                self.nodes[element["id"]] = (element["lat"], element["lon"])

        for element in osm_data.get("elements", []):
            if element["type"] != "way":
                continue

            tags = element.get("tags", {})
            road_type = tags.get("highway", "unclassified")
            name = tags.get("name")
            way_id = element["id"]
            nodes = element.get("nodes", [])

            for i in range(len(nodes) - 1):
                n1, n2 = nodes[i], nodes[i + 1]
                if n1 not in self.nodes or n2 not in self.nodes:
                    continue

                lat1, lon1 = self.nodes[n1]
                lat2, lon2 = self.nodes[n2]
                length = haversine_distance(lat1, lon1, lat2, lon2)

                segment_id = Segment.make_id(n1, n2)
                self.segments[segment_id] = Segment(
                    id=segment_id, node1=n1, node2=n2, way_id=way_id,
                    name=name, road_type=road_type, length=length,
                )
                weight = CONFIG["road_weights"].get(road_type, CONFIG["default_road_weight"])
                self.graph.add_edge(n1, n2,
                                    segment_id=segment_id,
                                    length=length,
                                    weight=weight * length,
                                    road_type=road_type,
                                    name=name)

        # Unconnected nodes (way geometry outside the box) only slow lookups down
        self.nodes = {n: loc for n, loc in self.nodes.items() if n in self.graph}

    def find_nearest_node(self, lat: float, lon: float) -> Optional[int]:
        """Find the nearest graph node to a location"""
        min_dist = float("inf")
        nearest = None
        for node_id, (nlat, nlon) in self.nodes.items():
            dist = haversine_distance(lat, lon, nlat, nlon)
            if dist < min_dist:
                min_dist = dist
                nearest = node_id
        return nearest

    def get_node_location(self, node_id: int) -> Optional[tuple[float, float]]:
        return self.nodes.get(node_id)

    def get_segment(self, node1: int, node2: int) -> Optional[Segment]:
        return self.segments.get(Segment.make_id(node1, node2))

    def is_intersection(self, node_id: int) -> bool:
        """Check if a node is an intersection (degree > 2)"""
        return self.graph.degree(node_id) > 2

    def shortest_path(self, source: int, target: int) -> list[int]:
        try:
            return nx.shortest_path(self.graph, source, target, weight="weight")
        except (nx.NetworkXNoPath, nx.NodeNotFound) as e:
            raise RoutingError(f"No walkable path: {e}") from e


def padded_bbox(start: LatLng, end: LatLng, padding: float) -> tuple[float, float, float, float]:
    """(south, west, north, east) around both points plus padding meters"""
    dlat = padding / 111_320.0
    dlng = padding / (111_320.0 * max(math.cos(math.radians((start.lat + end.lat) / 2)), 0.01))
    return (
        min(start.lat, end.lat) - dlat,
        min(start.lng, end.lng) - dlng,
        max(start.lat, end.lat) + dlat,
        max(start.lng, end.lng) + dlng,
    )


class GraphRouter(Router):
    """Offline routing over Overpass street data with networkx"""

    MAX_DISTANCE = 15000  # meters - larger areas are too heavy to fetch

    def __init__(self, fetcher=OSMFetcher, logger=None, config: Optional[dict] = None):
        config = config or CONFIG
        self.fetcher = fetcher
        self.logger = logger
        self.padding = config["osm_fetch_padding"]
        self.walking_speed = config["walking_speed"]
        self.min_angle = config["min_instruction_angle"]

    def route(self, start: LatLng, end: LatLng) -> Route:
        if haversine_distance(start.lat, start.lng, end.lat, end.lng) > self.MAX_DISTANCE:
            raise RoutingError("Destination too far for offline routing")

        graph = StreetGraph()
        graph.build_from_osm(self.fetcher.fetch_streets(padded_bbox(start, end, self.padding),
                                                        logger=self.logger))
        source = graph.find_nearest_node(start.lat, start.lng)
        target = graph.find_nearest_node(end.lat, end.lng)
        if source is None or target is None:
            raise RoutingError("No streets near the route")
        return self.build_route(graph, graph.shortest_path(source, target))

    def build_route(self, graph: StreetGraph, path: list[int]) -> Route:
        """Polyline and turn instructions for a node path"""
        polyline = [LatLng(*graph.get_node_location(n)) for n in path]
        lengths = cumulative_lengths(polyline)
        total = lengths[-1] if lengths else 0.0
        instructions = []

        if len(path) >= 2:
            first = graph.get_segment(path[0], path[1])
            heading = bearing_to_compass(bearing_between(*graph.get_node_location(path[0]),
                                                         *graph.get_node_location(path[1])))
            text = f"Head {heading}" + (f" on {first.name}" if first and first.name else "")
            instructions.append(RouteInstruction(localize_instruction(text), 0.0, InstructionKind.DEPART, 0))

        for i in range(1, len(path) - 1):
            text = self.get_direction_instruction(graph, path[i - 1], path[i], path[i + 1])
            if text:
                kind = InstructionKind.CONTINUE if text.startswith("Continue") else InstructionKind.TURN
                instructions.append(RouteInstruction(localize_instruction(text), lengths[i], kind, i))

        instructions.append(RouteInstruction(
            localize_instruction("You have arrived at your destination"),
            total, InstructionKind.ARRIVE, len(path) - 1,
        ))
        return Route(
            polyline=polyline,
            instructions=instructions,
            total_distance=total,
            total_time=total / self.walking_speed,
        )

    def get_direction_instruction(self, graph: StreetGraph, from_node: int,
                                  current_node: int, to_node: int) -> Optional[str]:
        """English instruction at current_node, or None when nothing changes there"""
        from_loc = graph.get_node_location(from_node)
        current_loc = graph.get_node_location(current_node)
        to_loc = graph.get_node_location(to_node)

        incoming_bearing = bearing_between(from_loc[0], from_loc[1], current_loc[0], current_loc[1])
        outgoing_bearing = bearing_between(current_loc[0], current_loc[1], to_loc[0], to_loc[1])

        incoming = graph.get_segment(from_node, current_node)
        outgoing = graph.get_segment(current_node, to_node)
        name = outgoing.name if outgoing else None
        renamed = (incoming.name if incoming else None) != name
        bend = turn_angle(incoming_bearing, outgoing_bearing) >= self.min_angle

        if not renamed and not (bend and graph.is_intersection(current_node)):
            return None

        rel_dir = relative_direction(incoming_bearing, outgoing_bearing)
        if rel_dir == "straight":
            return f"Continue onto {name}" if name else None
        if rel_dir == "u-turn":
            return turn_text("uturn", name)
        return turn_text(rel_dir, name)
