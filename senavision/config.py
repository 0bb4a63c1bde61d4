"""Configuration settings for SENAVISION."""

import json
from typing import Optional

CONFIG = {
    "locale": "id-ID",
    "location_update_interval": 1,  # seconds between geolocation polls
    "gps_timeout": 10,  # seconds
    "log_interval": 10,  # seconds between STATE log entries
    # Location filter
    "missing_accuracy": 50000,  # meters - assumed when a fix reports none
    "default_location_box": (-7.6, -7.5, 110.8, 110.9),  # lat_min, lat_max, lng_min, lng_max (Surakarta)
    "default_location_accuracy": 10000,  # meters - worse than this inside the box is a cached fix
    "fresh_fix_accuracy": 5000,  # meters - ask for a fresh fix when a box fix is worse than this
    "max_acceptable_accuracy": 500,  # meters
    "position_epsilon": 1,  # meters - smaller moves are not reported
    # Route engine
    "destination_change_threshold": 0.001,  # degrees (~111m) - full rebuild
    "start_change_threshold": 0.0001,  # degrees (~11m) - in-place waypoint update
    "route_announce_debounce": 1.0,  # seconds
    # Instruction tracker
    "instruction_retire_distance": 50,  # meters
    "instruction_announce_distance": 200,  # meters
    "carry_over_tolerance": 30,  # meters, same step across a reroute
    "instruction_now_distance": 2,  # meters - "<instruction> sekarang" below this
    # Microphone
    "confirmation_window": 10.0,  # seconds waiting for "navigasi"
    "recognition_restart_delay": 1.0,  # seconds
    "microphone_resume_delay": 0.5,  # seconds after speech before listening again
    # Speech output
    "speech_rate": 0.85,
    "speech_pitch": 1.0,
    "speech_dedupe_window": 5.0,  # seconds
    "speech_grace_delay": 0.1,  # seconds between utterance end and the next step
    "espeak_voice": "id",
    "espeak_words_per_minute": 175,  # at rate 1.0
    # Routing backends
    "router": "osrm",
    "osrm_url": "https://router.project-osrm.org",
    "osrm_profile": "foot",
    "http_timeout": 15,  # seconds
    "user_agent": "senavision/0.1 (voice navigation assistant)",
    "osm_fetch_padding": 500,  # meters around start/end for offline routing
    "road_weights": {
        "footway": 1,
        "pedestrian": 1,
        "path": 1,
        "residential": 1,
        "living_street": 1,
        "service": 2,
        "unclassified": 2,
        "tertiary": 2,
        "secondary": 3,
        "primary": 4,
        "trunk": 10,
    },
    "default_road_weight": 2,
    "walking_speed": 1.3,  # m/s for offline route time estimates
    "min_instruction_angle": 30,  # degrees - smaller bends are not announced
    # Geocoding
    "nominatim_url": "https://nominatim.openstreetmap.org/search",
    "nominatim_min_interval": 1.0,  # seconds between requests
    "geocode_search_radius": 0.45,  # degrees (~50km) viewbox half-size around the user
    "geocode_country": "id",
    # Saved routes
    "route_slots": 6,
    "routes_db": "senavision_routes.db",
    # Debug GUI
    "debug_http_port": 8080,
    "debug_ws_port": 8765,
}


def load_config(path: Optional[str] = None) -> dict:
    """Overlay a JSON file on top of CONFIG and return the merged dict.

    Nested dicts (road_weights) are merged key by key. Lists become tuples so
    box coordinates keep the same shape as the defaults.
    """
    if not path:
        return CONFIG
    with open(path) as f:
        overrides = json.load(f)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(CONFIG.get(key), dict):
            CONFIG[key].update(value)
        elif isinstance(value, list):
            CONFIG[key] = tuple(value)
        else:
            CONFIG[key] = value
    return CONFIG
