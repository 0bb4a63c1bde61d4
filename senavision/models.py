"""Data classes for SENAVISION."""

import enum
from dataclasses import dataclass, field, asdict
from typing import Optional


@dataclass
class GpsFix:
    lat: float
    lng: float
    accuracy: Optional[float] = None  # meters
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "GpsFix":
        # Traces recorded with "lon" keys still load
        if "lon" in d and "lng" not in d:
            d = dict(d)
            d["lng"] = d.pop("lon")
        return cls(**d)


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float

    def to_list(self) -> list[float]:
        return [self.lat, self.lng]


@dataclass
class NamedLocation:
    lat: float
    lng: float
    name: str

    @property
    def position(self) -> LatLng:
        return LatLng(self.lat, self.lng)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "NamedLocation":
        return cls(lat=d["lat"], lng=d["lng"], name=d["name"])


class InstructionKind(str, enum.Enum):
    DEPART = "depart"
    TURN = "turn"
    CONTINUE = "continue"
    ROUNDABOUT = "roundabout"
    ARRIVE = "arrive"


@dataclass
class RouteInstruction:
    """One guidance step, positioned by its distance from the route start"""
    text: str
    cumulative_distance: float  # meters from route start to the maneuver
    kind: InstructionKind = InstructionKind.TURN
    index: Optional[int] = None  # polyline vertex of the maneuver, when known
    retired: bool = False
    announced: bool = False

    def retire(self):
        self.retired = True

    def mark_announced(self):
        self.announced = True


@dataclass
class Route:
    polyline: list[LatLng]
    instructions: list[RouteInstruction]
    total_distance: float  # meters
    total_time: float  # seconds
    waypoints: Optional[tuple[LatLng, LatLng]] = None
    hash: Optional[str] = None
    name: Optional[str] = None
    cumulative_lengths: list[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "hash": self.hash,
            "polyline": [p.to_list() for p in self.polyline],
            "waypoints": [p.to_list() for p in self.waypoints] if self.waypoints else None,
            "total_distance": self.total_distance,
            "total_time": self.total_time,
            "instructions": [
                {
                    "text": i.text,
                    "cumulative_distance": i.cumulative_distance,
                    "kind": i.kind.value,
                    "retired": i.retired,
                    "announced": i.announced,
                }
                for i in self.instructions
            ],
        }


@dataclass
class Segment:
    """A street edge between two OSM nodes"""
    id: str  # "{node1_id}-{node2_id}" sorted
    node1: int
    node2: int
    way_id: int
    name: Optional[str]
    road_type: str
    length: float  # meters

    @classmethod
    def make_id(cls, node1: int, node2: int) -> str:
        return f"{min(node1, node2)}-{max(node1, node2)}"


@dataclass
class NamedRouteSlot:
    id: int
    name: str
    start: Optional[NamedLocation] = None
    end: Optional[NamedLocation] = None

    @property
    def is_empty(self) -> bool:
        return self.start is None or self.end is None


class MicState(str, enum.Enum):
    IDLE = "idle"
    LISTENING = "listening"
    WAITING_FOR_CONFIRMATION = "waiting_for_confirmation"
    STOPPED = "stopped"
