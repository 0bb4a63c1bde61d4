#!/usr/bin/env python3
"""
SENAVISION - Voice-driven turn-by-turn navigation

Usage:
    python -m senavision [options]

Options:
    --lat LAT         Fixed latitude (for testing without GPS)
    --lon LON         Fixed longitude (for testing without GPS)
    --record FILE     Record GPS trace to JSON file for debugging
    --playback FILE   Playback GPS trace from JSON file
    --speed FACTOR    Playback speed multiplier (default: 1.0)
    --log FILE        Log file path (default: senavision_TIMESTAMP.log)
    --config FILE     JSON file overriding configuration values
    --router NAME     Routing backend: osrm (default) or graph (offline OSM)
    --db FILE         Saved routes database
    --debug-gui       Run with web-based visual debugger
    --no-audio        Print speech instead of using espeak
    --no-welcome      Skip the spoken welcome guide
    --list-routes     Print the saved routes and exit
    --reset-routes    Empty all saved routes and exit
"""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

from .config import CONFIG, load_config


def _list_routes(db_path):
    from .store import RouteStore
    store = RouteStore(db_path)
    for slot in store.all():
        if slot.is_empty:
            print(f"{slot.name}: (kosong)")
        else:
            print(f"{slot.name}: {slot.start.name} -> {slot.end.name}")
    store.close()


def _reset_routes(db_path):
    from .store import RouteStore
    store = RouteStore(db_path)
    filled = sum(1 for slot in store.all() if not slot.is_empty)
    store.reset()
    print(f"Cleared {filled} saved routes.")
    store.close()


async def _run_session(args, log_path: str):
    from .app import NavigationController
    from .audio import EspeakSink, PrintSink
    from .console import ConsoleRecognizer
    from .debug_gui import DebugServer, DebugRecognizer, WebSocketGPS
    from .gazetteer import LocationResolver, NominatimGeocoder
    from .graph import GraphRouter
    from .gps import GPS, FixedLocation, GPSPlayback, GPSRecorder
    from .logger import Logger
    from .routing import OSRMRouter
    from .scheduling import LoopScheduler
    from .store import RouteStore

    scheduler = LoopScheduler()

    # Debug GUI server
    debug_server = None
    if args.debug_gui:
        debug_server = DebugServer()
        debug_server.start()

    # Logger with optional callback for debug GUI
    log_callback = debug_server.send_log if debug_server else None
    logger = Logger(log_path, callback=log_callback)

    if CONFIG["router"] == "graph":
        router = GraphRouter(logger=logger)
    else:
        router = OSRMRouter()

    if debug_server:
        recognizer = DebugRecognizer(scheduler, debug_server)
    else:
        recognizer = ConsoleRecognizer(scheduler)

    # GPS source (can be swapped for recording/playback)
    if debug_server:
        gps_source = WebSocketGPS(debug_server)
    elif args.lat is not None:
        gps_source = FixedLocation(args.lat, args.lon)
    elif args.playback:
        gps_source = GPSPlayback(args.playback, args.speed)
    elif args.record:
        gps_source = GPSRecorder(GPS(), args.record)
    else:
        gps_source = GPS()

    controller = NavigationController(
        scheduler=scheduler,
        sink=PrintSink() if args.no_audio else EspeakSink(),
        recognizer=recognizer,
        router=router,
        resolver=LocationResolver(NominatimGeocoder()),
        store=RouteStore(args.db),
        gps_source=gps_source,
        logger=logger,
        debug_server=debug_server,
    )
    await controller.run(welcome=not args.no_welcome)


def main():
    parser = argparse.ArgumentParser(
        description="SENAVISION - Voice-driven turn-by-turn navigation"
    )
    parser.add_argument("--lat", type=float, metavar="LAT",
                        help="Fixed latitude (for testing without GPS)")
    parser.add_argument("--lon", type=float, metavar="LON",
                        help="Fixed longitude (for testing without GPS)")
    parser.add_argument("--record", metavar="FILE",
                        help="Record GPS trace to JSON file")
    parser.add_argument("--playback", metavar="FILE",
                        help="Playback GPS trace from JSON file")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--log", metavar="FILE",
                        help="Log file path (default: senavision_TIMESTAMP.log)")
    parser.add_argument("--config", metavar="FILE",
                        help="JSON file overriding configuration values")
    parser.add_argument("--router", choices=["osrm", "graph"],
                        help="Routing backend (default: osrm)")
    parser.add_argument("--db", metavar="FILE",
                        help=f"Saved routes database (default: {CONFIG['routes_db']})")
    parser.add_argument("--debug-gui", action="store_true",
                        help="Run with web-based visual debugger")
    parser.add_argument("--no-audio", action="store_true",
                        help="Print speech instead of using espeak")
    parser.add_argument("--no-welcome", action="store_true",
                        help="Skip the spoken welcome guide")
    parser.add_argument("--list-routes", action="store_true",
                        help="Print the saved routes and exit")
    parser.add_argument("--reset-routes", action="store_true",
                        help="Empty all saved routes and exit")

    args = parser.parse_args()

    # Validate lat/lon - must provide both or neither
    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be used together")

    if args.playback and args.record:
        parser.error("--playback and --record cannot be combined")

    if args.config:
        if not Path(args.config).exists():
            parser.error(f"config file not found: {args.config}")
        load_config(args.config)
    if args.router:
        CONFIG["router"] = args.router

    # Saved route maintenance: early exit
    if args.list_routes:
        _list_routes(args.db)
        return
    if args.reset_routes:
        _reset_routes(args.db)
        return

    if args.playback and not Path(args.playback).exists():
        print(f"Playback file not found: {args.playback}")
        sys.exit(1)

    # Determine log path
    log_path = args.log
    if not log_path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = f"senavision_{timestamp}.log"

    try:
        asyncio.run(_run_session(args, log_path))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
