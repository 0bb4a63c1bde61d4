"""Instruction phrasing and progress tracking along a route."""

import re
from dataclasses import dataclass, field
from typing import Optional

from .config import CONFIG
from .geo import cumulative_lengths, nearest_vertex
from .models import InstructionKind, Route, RouteInstruction

# English maneuver text (as produced by the routers) -> Indonesian
INSTRUCTION_PATTERNS = [
    (r"^Head (.+)$", r"Berangkat \1"),
    (r"^Turn right$", "Belok kanan"),
    (r"^Turn left$", "Belok kiri"),
    (r"^Turn right onto (.+)$", r"Belok kanan ke \1"),
    (r"^Turn left onto (.+)$", r"Belok kiri ke \1"),
    (r"^Turn sharp right onto (.+)$", r"Belok tajam ke kanan ke \1"),
    (r"^Turn sharp left onto (.+)$", r"Belok tajam ke kiri ke \1"),
    (r"^Turn sharp right$", "Belok tajam ke kanan"),
    (r"^Turn sharp left$", "Belok tajam ke kiri"),
    (r"^Turn left to stay on (.+)$", r"Belok kiri tetap di \1"),
    (r"^Turn right to stay on (.+)$", r"Belok kanan tetap di \1"),
    (r"^Go straight$", "Lurus terus"),
    (r"^Go straight onto (.+)$", r"Lurus terus ke \1"),
    (r"^Continue onto (.+)$", r"Lanjutkan ke \1"),
    (r"^Continue straight to stay on (.+)$", r"Lurus terus tetap di \1"),
    (r"^Continue straight$", "Lurus terus"),
    (r"^Keep right onto (.+)$", r"Tetap di kanan ke \1"),
    (r"^Keep left onto (.+)$", r"Tetap di kiri ke \1"),
    (r"^Keep left towards (.+)$", r"Tetap di kiri menuju \1"),
    (r"^Keep right towards (.+)$", r"Tetap di kanan menuju \1"),
    (r"^Keep right at the fork$", "Tetap kanan di persimpangan"),
    (r"^Keep left at the fork$", "Tetap kiri di persimpangan"),
    (r"^Take the ramp onto (.+)$", r"Ambil jalan keluar ke \1"),
    (r"^Take the ramp$", "Ambil jalan keluar"),
    (r"^Merge right onto (.+)$", r"Bergabung kanan ke \1"),
    (r"^Merge left onto (.+)$", r"Bergabung kiri ke \1"),
    (r"^Make a slight left to stay on (.+)$", r"Sedikit ke kiri tetap di \1"),
    (r"^Make a slight right to stay on (.+)$", r"Sedikit ke kanan tetap di \1"),
    (r"^Make a slight left onto (.+)$", r"Sedikit ke kiri ke \1"),
    (r"^Make a slight right onto (.+)$", r"Sedikit ke kanan ke \1"),
    (r"^Make a slight left$", "Sedikit ke kiri"),
    (r"^Make a slight right$", "Sedikit ke kanan"),
    (r"^Make a U-turn onto (.+)$", r"Putar balik ke \1"),
    (r"^Make a U-turn$", "Putar balik"),
    (r"^Enter the traffic circle and take the (\d+)(?:st|nd|rd|th) exit onto (.+)$",
     r"Masuk bundaran dan ambil jalan keluar ke-\1 ke \2"),
    (r"^Enter the traffic circle and take the (\d+)(?:st|nd|rd|th) exit$",
     r"Masuk bundaran dan ambil jalan keluar ke-\1"),
    (r"^Exit the traffic circle onto (.+)$", r"Keluar bundaran ke \1"),
    (r"^You have arrived at your destination, (.+)$", r"Anda telah tiba di tujuan, \1"),
    (r"^You have arrived at your destination$", "Anda telah tiba di tujuan"),
    (r"^You have arrived$", "Anda telah tiba"),
]
_COMPILED_PATTERNS = [(re.compile(p, re.IGNORECASE), r) for p, r in INSTRUCTION_PATTERNS]

# Word-level fallbacks for text no pattern covers
FALLBACK_WORDS = [
    ("Turn right", "Belok kanan"),
    ("Turn left", "Belok kiri"),
    ("Go straight", "Lurus terus"),
    ("straight", "lurus"),
    ("Continue", "Lanjutkan"),
    ("Keep right", "Tetap kanan"),
    ("Keep left", "Tetap kiri"),
    ("onto", "ke"),
    ("traffic circle", "bundaran"),
    ("and take the", "dan ambil"),
    ("exit", "keluar"),
    ("Merge", "Bergabung"),
    ("Take the ramp", "Ambil jalan keluar"),
    ("slight", "sedikit"),
]

COMPASS_WORDS = {
    "northeast": "timur laut", "northwest": "barat laut",
    "southeast": "tenggara", "southwest": "barat daya",
    "north": "utara", "south": "selatan", "east": "timur", "west": "barat",
}
_COMPASS_RE = re.compile(r"\b(" + "|".join(sorted(COMPASS_WORDS, key=len, reverse=True)) + r")\b",
                         re.IGNORECASE)


def localize_instruction(text: str) -> str:
    """Turn an English maneuver into natural Indonesian"""
    text = (text or "").strip()
    localized = None
    for pattern, replacement in _COMPILED_PATTERNS:
        if pattern.match(text):
            localized = pattern.sub(replacement, text)
            break
    if localized is None:
        localized = text
        for english, indonesian in FALLBACK_WORDS:
            localized = re.sub(re.escape(english), indonesian, localized, flags=re.IGNORECASE)
    if localized.startswith("Berangkat"):
        # "Head north on X"
        localized = re.sub(r"\bon\b", "di", localized, count=1)
    return _COMPASS_RE.sub(lambda m: COMPASS_WORDS[m.group(1).lower()], localized)


def format_distance(meters: float) -> str:
    """Short display distance: "150 m" or "1.5 km" """
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.1f} km"


def spoken_duration(seconds: float) -> str:
    minutes = round(seconds / 60)
    hours, minutes = divmod(minutes, 60)
    if hours and minutes:
        return f"{hours} jam {minutes} menit"
    if hours:
        return f"{hours} jam"
    return f"{minutes} menit"


def route_summary(route: Route) -> str:
    """Spoken distance and travel time, e.g. "Jarak 9.8 kilometer, perkiraan waktu 1 jam 12 menit" """
    if route.total_distance >= 1000:
        distance = f"Jarak {route.total_distance / 1000:.1f} kilometer"
    else:
        distance = f"Jarak {round(route.total_distance)} meter"
    summary = f"{distance}, perkiraan waktu {spoken_duration(route.total_time)}"
    if route.name:
        summary = f"{route.name}. {summary}"
    return summary


def proximity_phrase(text: str, remaining: float, now_distance: float = 2) -> str:
    if remaining >= now_distance:
        return f"Setelah {round(remaining)} meter {text}"
    return f"{text} sekarang"


def first_direction(route: Route) -> Optional[str]:
    """The opening direction spoken when navigation starts.

    Skips the departure step and marks the chosen instruction announced so
    the tracker does not repeat it.
    """
    for instruction in route.instructions:
        if instruction.kind == InstructionKind.DEPART or instruction.retired:
            continue
        instruction.mark_announced()
        return proximity_phrase(instruction.text, instruction.cumulative_distance)
    return None


@dataclass
class TrackerUpdate:
    distance_traveled: float
    nearest_index: int
    remaining: list[tuple[RouteInstruction, float]] = field(default_factory=list)
    newly_retired: list[RouteInstruction] = field(default_factory=list)
    announcement: Optional[str] = None


class InstructionTracker:
    """Maps positions onto a route and decides what to retire and announce"""

    def __init__(self, route: Route, config: Optional[dict] = None):
        config = config or CONFIG
        self.route = route
        self.retire_distance = config["instruction_retire_distance"]
        self.announce_distance = config["instruction_announce_distance"]
        self.now_distance = config["instruction_now_distance"]
        if not route.cumulative_lengths:
            route.cumulative_lengths = cumulative_lengths(route.polyline)
        self.distance_traveled = 0.0
        self.nearest_index = 0

    def remaining_for(self, instruction: RouteInstruction) -> float:
        return max(0.0, instruction.cumulative_distance - self.distance_traveled)

    def update(self, lat: float, lng: float, announce: bool = True) -> TrackerUpdate:
        """Project a position onto the route.

        Retires instructions closer than the retire distance and picks at
        most one instruction to announce, the first eligible in route order.
        """
        if not self.route.polyline:
            return TrackerUpdate(self.distance_traveled, self.nearest_index)
        index, _ = nearest_vertex(self.route.polyline, lat, lng)
        self.nearest_index = index
        self.distance_traveled = self.route.cumulative_lengths[index]

        result = TrackerUpdate(self.distance_traveled, index)
        for instruction in self.route.instructions:
            remaining = self.remaining_for(instruction)
            if (announce and result.announcement is None and not instruction.announced
                    and instruction.kind != InstructionKind.DEPART
                    and 0 < remaining <= self.announce_distance):
                instruction.mark_announced()
                result.announcement = proximity_phrase(instruction.text, remaining, self.now_distance)
            if not instruction.retired and remaining < self.retire_distance:
                instruction.retire()
                result.newly_retired.append(instruction)
            if not instruction.retired:
                result.remaining.append((instruction, remaining))
        return result

    def visible(self) -> list[tuple[str, str]]:
        """(text, formatted remaining distance) for every live instruction"""
        return [
            (i.text, format_distance(self.remaining_for(i)))
            for i in self.route.instructions
            if not i.retired
        ]
