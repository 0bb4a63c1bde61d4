"""Main SENAVISION application."""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .announcer import AnnouncementQueue
from .commands import (
    Activate, CreateRoute, InvalidRouteNumber, SelectRoute, SetDestination,
    StartNavigation, Unknown, VoiceCommand, interpret,
)
from .config import CONFIG
from .errors import GeocodeNotFound, RecognitionError
from .gps import GPSPlayback, GPSRecorder
from .instructions import InstructionTracker, first_direction, route_summary
from .location import LocationFilter
from .logger import Logger
from .microphone import MicrophoneLifecycle
from .models import GpsFix, LatLng, MicState, NamedLocation, Route
from .routing import RouteChange, RouteEngine


WELCOME_GUIDE = (
    "SENAVISION siap. Berikut panduan cara menggunakan aplikasi. "
    "Aplikasi memiliki sistem rute yang bisa Anda kelola sendiri. Ada enam slot rute yang tersedia, "
    "yaitu Rute Satu sampai Rute Enam. "
    "Semua rute bisa Anda isi melalui suara dengan mengatakan "
    "\"Buat Rute [nomor] dari [lokasi awal] ke [lokasi tujuan]\". "
    "Untuk menggunakan rute yang sudah Anda buat, ucapkan nama rutenya. Misalnya ucapkan \"Rute Satu\". "
    "Setelah rute dipilih, ucapkan kata \"Navigasi\" untuk memulai perjalanan. "
    "Aplikasi akan memberikan panduan suara yang akan membimbing Anda menuju tujuan. "
    "Aplikasi siap digunakan. Silakan buat rute terlebih dahulu atau sebutkan tujuan Anda secara langsung."
)

CONFIRM_PROMPT = ("Jika ingin mengganti tujuan sebutkan lokasi dan jika tidak "
                  "katakan navigasi untuk memulai perjalanan")
ALREADY_ACTIVE = "Mikrofon sudah aktif"
REACTIVATED_WHILE_NAVIGATING = "Mikrofon aktif kembali. Sebutkan tujuan baru atau ucapkan nama rute untuk mengubah rute"
ACTIVATED = "Mikrofon aktif. Ucapkan nama rute seperti \"Rute Satu\" atau sebutkan nama kota atau lokasi tujuan Anda"
GESTURE_ACTIVATED = "Mikrofon aktif. Ucapkan \"Halo\" atau sebutkan tujuan Anda"
PERMISSION_PROMPT = "Klik layar terlebih dahulu sekali untuk mengaktifkan mikrofon"
NO_ROUTE = "Rute belum ditetapkan. Silakan sebutkan tujuan terlebih dahulu."
NO_POSITION = "Lokasi Anda tidak terdeteksi. Pastikan GPS aktif."
ROUTING_FAILED = "Gagal menghitung rute. Server mungkin sedang bermasalah."
ASK_DESTINATION_AGAIN = "Sebutkan tujuan Anda lagi"
RETRY_AFTER_NOT_FOUND = "Ucapkan \"Halo\" dan sebutkan tujuan Anda lagi"
GEOCODE_ERROR = "Error saat mencari lokasi. Coba gunakan nama kota lain."
NOT_UNDERSTOOD = ("Perintah tidak dimengerti. Coba sebutkan nama daerah, desa, atau kota "
                  "seperti Jakarta, Bogor, atau Ubud")
INVALID_ROUTE_NUMBER = "Rute hanya tersedia dari Rute Satu sampai Rute Enam"


@dataclass
class NavigationSession:
    """Everything the controller knows about the current session"""
    position: Optional[GpsFix] = None
    low_confidence: bool = False
    destination: Optional[NamedLocation] = None
    tracker: Optional[InstructionTracker] = None
    geocode_token: int = 0
    fresh_fix_pending: bool = False
    welcome_done: bool = False
    started_at: float = 0.0

    @property
    def start(self) -> Optional[LatLng]:
        if self.position is None:
            return None
        return LatLng(self.position.lat, self.position.lng)


class NavigationController:
    """Owns the session and routes every event through the components.

    GPS fixes, transcripts and recognizer events all arrive here on the loop
    thread. Blocking work (geocoding, routing, fresh GPS reads) goes out
    through the scheduler and comes back as callbacks; tokens make late
    answers harmless.
    """

    def __init__(self, scheduler, sink, recognizer, router, resolver, store,
                 gps_source=None, logger: Optional[Logger] = None,
                 debug_server=None, config: Optional[dict] = None):
        self.config = config or CONFIG
        self.scheduler = scheduler
        self.recognizer = recognizer
        self.resolver = resolver
        self.store = store
        self.gps_source = gps_source
        self.logger = logger or Logger()
        self.debug_server = debug_server

        self.session = NavigationSession()
        self.announcer = AnnouncementQueue(sink, scheduler, self.logger, self.config)
        self.announcer.on_utterance = self._on_utterance
        self.mic = MicrophoneLifecycle(recognizer, scheduler, self.logger,
                                       on_state_change=self._on_mic_state_change,
                                       config=self.config)
        self.location = LocationFilter(on_position=self._on_position, logger=self.logger,
                                       config=self.config)
        self.route_engine = RouteEngine(router, scheduler, self.logger,
                                        on_route_found=self._on_route_found,
                                        on_routing_failure=self._on_routing_failure,
                                        config=self.config)
        self.last_log_update = 0.0
        self._follow_up = None
        recognizer.set_listener(self)

    @property
    def is_navigating(self) -> bool:
        return self.mic.is_navigating

    # Speech helpers

    def _say(self, segments: Sequence[str], after: Optional[Callable] = None):
        """Speak a reply with the microphone paused, then run ``after``.

        By default the microphone resumes once the reply has finished.
        """
        self._cancel_follow_up()
        self.mic.suspend()
        self.announcer.speak_sequence(list(segments), priority=True,
                                      on_complete=self._after_speech(after or self.mic.resume))

    def _after_speech(self, callback: Callable) -> Callable:
        def done():
            self._cancel_follow_up()
            self._follow_up = self.scheduler.call_later(self.config["microphone_resume_delay"], callback)
        return done

    def _cancel_follow_up(self):
        # A reply that finished earlier must not reopen the microphone later
        if self._follow_up is not None:
            self._follow_up.cancel()
            self._follow_up = None

    def _reopen_microphone(self):
        self.mic.resume()
        self.mic.activate()

    def _on_utterance(self, text: str):
        print(f"[SPEAK] {text}")
        if self.debug_server:
            self.debug_server.send_audio(text)

    def _on_mic_state_change(self, old: MicState, new: MicState):
        self._send_state()

    # Location

    def handle_fix(self, fix: GpsFix):
        """Feed one raw GPS sample"""
        result = self.location.process(fix)
        if result.needs_fresh_fix:
            self.request_fresh_fix()
        return result

    def request_fresh_fix(self):
        """Ask the GPS for an uncached reading on a worker thread"""
        if self.gps_source is None or self.session.fresh_fix_pending:
            return
        self.session.fresh_fix_pending = True
        self.logger.log("Fresh fix requested")
        self.scheduler.submit(self.gps_source.get_location, self._on_fresh_fix,
                              self.config["gps_timeout"], True)

    def _on_fresh_fix(self, fix: Optional[GpsFix], error: Optional[BaseException]):
        self.session.fresh_fix_pending = False
        if error is not None:
            self.logger.log("Fresh fix failed", {"error": str(error)})
            return
        if fix is not None:
            self.handle_fresh_fix(fix)

    def handle_fresh_fix(self, fix: GpsFix):
        return self.location.force_fix(fix)

    def _on_position(self, fix: GpsFix, low_confidence: bool):
        self.session.position = fix
        self.session.low_confidence = low_confidence
        destination = self.session.destination
        if destination is not None:
            self.route_engine.recompute(self.session.start, destination.position, destination.name)
        if self.is_navigating and self.session.tracker is not None:
            self._update_progress(fix)
        self._send_state()

    def _update_progress(self, fix: GpsFix):
        update = self.session.tracker.update(fix.lat, fix.lng, announce=True)
        for instruction in update.newly_retired:
            self.logger.log("Instruction passed", {"text": instruction.text})
        if update.announcement:
            self.announcer.speak(update.announcement)

    # Routing results

    def _on_route_found(self, route: Route, is_new: bool, change: RouteChange):
        self.session.tracker = InstructionTracker(route, self.config)
        if is_new:
            self.logger.log("New route", {
                "name": route.name,
                "distance": round(route.total_distance),
                "time": round(route.total_time),
            })
        if self.debug_server:
            self.debug_server.send_route(route.to_dict())
        self._send_state()

    def _on_routing_failure(self, error: BaseException, change: RouteChange):
        self.session.destination = None
        self._end_navigation()
        self._say([ROUTING_FAILED, ASK_DESTINATION_AGAIN], after=self._reopen_microphone)

    def _end_navigation(self):
        self.session.tracker = None
        if self.is_navigating:
            self.logger.log("Navigation ended")
        self.mic.reset_navigation()

    # Recognizer listener

    def handle_transcript(self, text: str, is_final: bool):
        if not is_final:
            return
        command = interpret(text, self.resolver.places)
        self.logger.log("Transcript", {"text": text, "command": type(command).__name__})
        if isinstance(command, Activate):
            self.activate()
            return
        if not self.mic.accepting_commands:
            self.logger.log("Transcript ignored", {"state": self.mic.state.value})
            return
        self.execute(command)

    def handle_recognition_start(self):
        self.mic.handle_recognition_start()

    def handle_recognition_end(self):
        self.mic.handle_recognition_end()

    def handle_recognition_error(self, code: str):
        self.mic.handle_recognition_error(code)
        if RecognitionError(code).is_permission_denied:
            self.announcer.speak(PERMISSION_PROMPT, priority=True)

    def handle_user_gesture(self):
        awaiting = self.mic.record.awaiting_gesture
        self.mic.handle_user_gesture()
        if awaiting and self.mic.state == MicState.LISTENING:
            self._say([GESTURE_ACTIVATED])

    # Commands

    def execute(self, command: VoiceCommand):
        if isinstance(command, Activate):
            self.activate()
        elif isinstance(command, StartNavigation):
            self.start_navigation()
        elif isinstance(command, SelectRoute):
            self.select_route(command.route_id)
        elif isinstance(command, CreateRoute):
            self.create_route(command)
        elif isinstance(command, SetDestination):
            self.set_destination(command.text)
        elif isinstance(command, InvalidRouteNumber):
            self._say([INVALID_ROUTE_NUMBER])
        elif isinstance(command, Unknown):
            self.logger.log("Command not understood", {"text": command.raw})
            self.announcer.speak(NOT_UNDERSTOOD, priority=True)

    def activate(self):
        if self.mic.accepting_commands:
            self._say([ALREADY_ACTIVE])
            return
        self.mic.activate()
        self._say([REACTIVATED_WHILE_NAVIGATING if self.is_navigating else ACTIVATED])

    def set_destination(self, text: str):
        """Resolve a spoken destination: gazetteer at once, geocoder in the background"""
        place = self.resolver.lookup(text)
        if place is not None:
            self.destination_resolved(place)
            return

        self.session.geocode_token += 1
        token = self.session.geocode_token
        near = self.session.start
        if near is not None:
            self._say([f"Mencari {text} di sekitar lokasi Anda..."])
        else:
            self._say([f"Mencari lokasi {text} di Indonesia..."])
        self.scheduler.submit(
            self.resolver.resolve,
            lambda result, error: self._on_geocoded(token, text, result, error),
            text, near,
        )

    def _on_geocoded(self, token: int, text: str, place: Optional[NamedLocation],
                     error: Optional[BaseException]):
        if token != self.session.geocode_token:
            self.logger.log("Stale geocode result ignored", {"text": text})
            return
        if isinstance(error, GeocodeNotFound):
            self.logger.log("Location not found", {"text": text, "reason": error.reason})
            self._cancel_follow_up()
            self.mic.stop()
            self.announcer.speak_sequence([f"Lokasi tidak ditemukan: {text}", RETRY_AFTER_NOT_FOUND],
                                          priority=True)
            return
        if error is not None:
            self.logger.log("Geocoding error", {"text": text, "error": str(error)})
            self._say([GEOCODE_ERROR])
            return
        self.destination_resolved(place)

    def destination_resolved(self, place: NamedLocation, announcement: Optional[Sequence[str]] = None):
        """Adopt a destination, start routing, and open the confirmation window"""
        self._cancel_follow_up()
        self._end_navigation()
        self.session.destination = place
        self.logger.log("Destination set", place.to_dict())
        self.mic.destination_resolved()
        if self.session.start is not None:
            self.route_engine.recompute(self.session.start, place.position, place.name)
        else:
            self.logger.log("Waiting for a position before routing")

        segments = announcement or [f"Tujuan Anda adalah {place.name}", CONFIRM_PROMPT]
        self.announcer.speak_sequence(list(segments), priority=True,
                                      on_complete=self._after_speech(self.mic.resume))
        self._send_state()

    def start_navigation(self):
        route = self.route_engine.route
        if route is None:
            self._say([NO_ROUTE])
            return
        if self.session.position is None:
            self._say([NO_POSITION])
            return

        self._cancel_follow_up()
        self.mic.start_navigation()
        self.session.tracker = InstructionTracker(route, self.config)
        segments = ["Memulai navigasi.", route_summary(route)]
        direction = first_direction(route)
        if direction:
            segments.append(direction)
        self.logger.log("Navigation started", {"destination": route.name, "distance": route.total_distance})
        self.announcer.speak_sequence(segments, priority=True)
        self._send_state()

    def select_route(self, route_id: int):
        slot = self.store.get(route_id)
        if slot is None:
            self._say([f"Rute {route_id} tidak ditemukan"])
            return
        if slot.is_empty:
            self._say([f"Rute {route_id} belum diisi. Untuk membuat rute baru, ucapkan "
                       f"\"Buat Rute {route_id} dari [lokasi start] ke [lokasi tujuan]\""])
            return
        # The walk starts from the current GPS position, not the stored start
        self.logger.log("Saved route selected", {"id": route_id, "start": slot.start.name, "end": slot.end.name})
        self.destination_resolved(slot.end, [
            f"Rute {route_id} dengan tujuan {slot.end.name}, dan Anda dari {slot.start.name}."
        ])

    def create_route(self, command: CreateRoute):
        """Resolve both ends in turn, then store them in the slot"""
        self.session.geocode_token += 1
        token = self.session.geocode_token
        self.scheduler.submit(
            self.resolver.resolve,
            lambda result, error: self._on_route_start_resolved(token, command, result, error),
            command.start_name, self.session.start,
        )

    def _on_route_start_resolved(self, token: int, command: CreateRoute,
                                 start: Optional[NamedLocation], error: Optional[BaseException]):
        if token != self.session.geocode_token:
            return
        if error is not None:
            self.logger.log("Route start not found", {"text": command.start_name, "error": str(error)})
            self._say([f"Lokasi awal tidak ditemukan: {command.start_name}"])
            return
        self.scheduler.submit(
            self.resolver.resolve,
            lambda result, error: self._on_route_end_resolved(token, command, start, result, error),
            command.end_name, start.position,
        )

    def _on_route_end_resolved(self, token: int, command: CreateRoute, start: NamedLocation,
                               end: Optional[NamedLocation], error: Optional[BaseException]):
        if token != self.session.geocode_token:
            return
        if error is not None:
            self.logger.log("Route end not found", {"text": command.end_name, "error": str(error)})
            self._say([f"Lokasi tujuan tidak ditemukan: {command.end_name}"])
            return
        if not self.store.set(command.route_id, start, end):
            self._say([f"Gagal membuat Rute {command.route_id}"])
            return
        self.logger.log("Saved route created", {"id": command.route_id, "start": start.name, "end": end.name})
        self._say([
            f"Rute {command.route_id} berhasil dibuat. Dari {start.name} ke {end.name}. "
            f"Ucapkan \"Rute {command.route_id}\" untuk menggunakan rute ini."
        ])

    # Session

    def start(self, welcome: bool = True):
        """Open speech input and greet the user; the microphone opens afterwards"""
        self.session.started_at = time.time()
        self.recognizer.open()
        if welcome and not self.session.welcome_done:
            self.session.welcome_done = True
            self.announcer.speak(WELCOME_GUIDE, priority=True, on_complete=self.mic.activate)
        else:
            self.mic.activate()

    def get_state(self) -> dict:
        """Get current state as dict for logging"""
        tracker = self.session.tracker
        route = self.route_engine.route
        state = {
            "microphone": self.mic.record.to_dict(),
            "is_navigating": self.is_navigating,
            "destination": self.session.destination.to_dict() if self.session.destination else None,
            "low_confidence": self.session.low_confidence,
            "route_pending": self.route_engine.pending,
            "route_hash": route.hash if route else None,
            "distance_traveled": tracker.distance_traveled if tracker else 0,
            "instructions": tracker.visible() if tracker else [],
            "filter": self.location.get_status(),
            "gps_status": self.gps_source.get_status() if self.gps_source else "no location source",
        }
        if self.session.position:
            state["location"] = {
                "lat": self.session.position.lat,
                "lng": self.session.position.lng,
                "accuracy": self.session.position.accuracy,
            }
        return state

    def _send_state(self):
        if self.debug_server:
            self.debug_server.send_state(self.get_state())

    def periodic_update(self):
        """Handle periodic status updates"""
        now = time.time()

        # Log to file every 10 seconds
        if now - self.last_log_update >= self.config["log_interval"]:
            self.logger.log("STATE", self.get_state())
            self.last_log_update = now

    def get_poll_interval(self) -> float:
        """Get poll interval, respecting playback speed if applicable"""
        if isinstance(self.gps_source, GPSPlayback):
            return self.gps_source.get_poll_interval()
        return self.config["location_update_interval"]

    def is_playback_finished(self) -> bool:
        if isinstance(self.gps_source, GPSPlayback):
            return self.gps_source.is_finished()
        return False

    async def run(self, welcome: bool = True):
        """Run the session until interrupted or the playback ends"""
        print("\n=== SENAVISION ===")
        if isinstance(self.gps_source, GPSPlayback):
            print(f"Playback mode: {self.gps_source.speed}x speed")
        print("Type commands (e.g. \"halo\", \"ke monas\", \"navigasi\"). Press Ctrl+C to stop")
        print()

        loop = asyncio.get_running_loop()
        self.start(welcome)
        try:
            while True:
                if self.gps_source is not None:
                    fix = await loop.run_in_executor(
                        None, self.gps_source.get_location, self.config["gps_timeout"]
                    )
                    if fix:
                        self.handle_fix(fix)
                self.periodic_update()
                if self.is_playback_finished():
                    print("\nPlayback finished")
                    self.logger.log("Playback finished")
                    break
                await asyncio.sleep(self.get_poll_interval())
        except asyncio.CancelledError:
            print("\nSession interrupted")
            self.logger.log("Session interrupted by user")
            raise
        finally:
            self.shutdown()

    def shutdown(self):
        self._cancel_follow_up()
        self.mic.stop()
        self.announcer.cancel_all()

        # Save GPS recording if applicable
        if isinstance(self.gps_source, GPSRecorder):
            count = self.gps_source.save()
            print(f"Saved {count} GPS samples to {self.gps_source.record_path}")

        summary = {
            "duration": time.time() - self.session.started_at if self.session.started_at else 0,
            "fixes_accepted": self.location.accepted_count,
            "fixes_rejected": self.location.rejected_count,
            "utterances": self.announcer.utterance_count,
            "commands": self.logger.count("Transcript"),
            "routes": self.logger.count("New route"),
        }
        self.logger.log("Session summary", summary)
        print("\nSession summary:")
        print(f"  Duration: {summary['duration']/60:.1f} minutes")
        print(f"  GPS fixes: {summary['fixes_accepted']} accepted, {summary['fixes_rejected']} rejected")
        print(f"  Commands: {summary['commands']}, routes built: {summary['routes']}")

        self.store.close()
        if self.debug_server:
            self.debug_server.stop()
        self.logger.close()
