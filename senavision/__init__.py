"""SENAVISION - Voice-driven turn-by-turn navigation."""

from .config import CONFIG, load_config
from .models import (
    GpsFix,
    LatLng,
    NamedLocation,
    Route,
    RouteInstruction,
    InstructionKind,
    NamedRouteSlot,
    MicState,
)
from .errors import SenavisionError, RoutingError, GeocodeNotFound, RecognitionError, SpeechError
from .logger import Logger
from .scheduling import LoopScheduler
from .location import LocationFilter
from .routing import OSRMRouter, RouteEngine, RouteChange
from .graph import StreetGraph, GraphRouter
from .osm import OSMFetcher
from .instructions import InstructionTracker, localize_instruction, route_summary
from .commands import interpret
from .gazetteer import KNOWN_PLACES, LocationResolver, NominatimGeocoder
from .microphone import MicrophoneLifecycle
from .announcer import AnnouncementQueue
from .store import RouteStore
from .audio import EspeakSink, PrintSink
from .gps import GPS, FixedLocation, GPSRecorder, GPSPlayback
from .console import ConsoleRecognizer
from .debug_gui import DebugServer, DebugRecognizer, WebSocketGPS
from .app import NavigationController, NavigationSession
from .__main__ import main

__all__ = [
    "CONFIG",
    "load_config",
    "GpsFix",
    "LatLng",
    "NamedLocation",
    "Route",
    "RouteInstruction",
    "InstructionKind",
    "NamedRouteSlot",
    "MicState",
    "SenavisionError",
    "RoutingError",
    "GeocodeNotFound",
    "RecognitionError",
    "SpeechError",
    "Logger",
    "LoopScheduler",
    "LocationFilter",
    "OSRMRouter",
    "RouteEngine",
    "RouteChange",
    "StreetGraph",
    "GraphRouter",
    "OSMFetcher",
    "InstructionTracker",
    "localize_instruction",
    "route_summary",
    "interpret",
    "KNOWN_PLACES",
    "LocationResolver",
    "NominatimGeocoder",
    "MicrophoneLifecycle",
    "AnnouncementQueue",
    "RouteStore",
    "EspeakSink",
    "PrintSink",
    "GPS",
    "FixedLocation",
    "GPSRecorder",
    "GPSPlayback",
    "ConsoleRecognizer",
    "DebugServer",
    "DebugRecognizer",
    "WebSocketGPS",
    "NavigationController",
    "NavigationSession",
    "main",
]
