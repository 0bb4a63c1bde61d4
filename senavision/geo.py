"""Geographic utility functions."""

from __future__ import annotations

import math
from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import LatLng


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    R = 6371000  # Earth's radius in meters

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def bearing_between(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate bearing from point 1 to point 2 in degrees (0-360, 0=North)"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = (math.cos(phi1) * math.sin(phi2) -
         math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda))

    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360) % 360


def bearing_to_compass(bearing: float) -> str:
    """Convert bearing to compass direction"""
    directions = ["north", "northeast", "east", "southeast",
                  "south", "southwest", "west", "northwest"]
    index = round(bearing / 45) % 8
    return directions[index]


def relative_direction(from_bearing: float, to_bearing: float) -> str:
    """Get relative direction (left, right, straight, etc.)"""
    diff = (to_bearing - from_bearing + 360) % 360

    if diff < 30 or diff > 330:
        return "straight"
    elif 30 <= diff < 60:
        return "slight right"
    elif 60 <= diff < 120:
        return "right"
    elif 120 <= diff < 150:
        return "sharp right"
    elif 150 <= diff < 210:
        return "u-turn"
    elif 210 <= diff < 240:
        return "sharp left"
    elif 240 <= diff < 300:
        return "left"
    else:
        return "slight left"


def turn_angle(from_bearing: float, to_bearing: float) -> float:
    """Absolute heading change in degrees (0-180)"""
    return abs((to_bearing - from_bearing + 180) % 360 - 180)


def in_box(lat: float, lng: float, box: Sequence[float]) -> bool:
    """Check whether a point lies inside (lat_min, lat_max, lng_min, lng_max)"""
    lat_min, lat_max, lng_min, lng_max = box
    return lat_min <= lat <= lat_max and lng_min <= lng <= lng_max


def moved_more_than(a: "LatLng", b: "LatLng", threshold_degrees: float) -> bool:
    """True when either axis differs by more than threshold_degrees"""
    return abs(a.lat - b.lat) > threshold_degrees or abs(a.lng - b.lng) > threshold_degrees


def cumulative_lengths(points: Sequence["LatLng"]) -> list[float]:
    """Path length in meters from the first point to each point"""
    lengths = []
    total = 0.0
    for i, point in enumerate(points):
        if i > 0:
            prev = points[i - 1]
            total += haversine_distance(prev.lat, prev.lng, point.lat, point.lng)
        lengths.append(total)
    return lengths


def nearest_vertex(points: Sequence["LatLng"], lat: float, lng: float) -> tuple[int, float]:
    """Linear scan for the closest polyline vertex. Returns (index, distance)."""
    nearest = -1
    min_dist = float("inf")
    for i, point in enumerate(points):
        dist = haversine_distance(lat, lng, point.lat, point.lng)
        if dist < min_dist:
            min_dist = dist
            nearest = i
    return nearest, min_dist
