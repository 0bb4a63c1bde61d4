"""Deterministic stand-ins for the loop, speech, recognizer and router."""

from __future__ import annotations

from typing import Callable, Optional

from senavision.errors import GeocodeNotFound, RecognitionError, SpeechError
from senavision.geo import haversine_distance
from senavision.models import InstructionKind, LatLng, NamedLocation, Route, RouteInstruction

STEP = 0.0001  # degrees of latitude between polyline vertices (about 11.1 m)


class TimerHandle:
    def __init__(self, when: float, seq: int, callback: Callable, args: tuple) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when a test advances it"""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[TimerHandle] = []
        self.jobs: list[tuple[Callable, Callable, tuple]] = []
        self._seq = 0

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable, *args) -> TimerHandle:
        handle = TimerHandle(self.now + delay, self._seq, callback, args)
        self._seq += 1
        self.timers.append(handle)
        return handle

    def call_threadsafe(self, callback: Callable, *args) -> None:
        self.call_later(0, callback, *args)

    def submit(self, func: Callable, on_done: Callable, *args) -> None:
        self.jobs.append((func, on_done, args))

    def run_jobs(self) -> None:
        """Run queued background jobs, including ones queued while running"""
        while self.jobs:
            func, on_done, args = self.jobs.pop(0)
            try:
                result = func(*args)
            except Exception as e:
                on_done(None, e)
            else:
                on_done(result, None)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.timers if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self.timers.remove(handle)
            self.now = max(self.now, handle.when)
            handle.callback(*handle.args)
        self.timers = [h for h in self.timers if not h.cancelled]
        self.now = target

    def settle(self, seconds: float = 60.0, step: float = 0.5) -> None:
        """Alternate timers and background jobs until nothing is left to do"""
        elapsed = 0.0
        while elapsed < seconds:
            self.run_jobs()
            self.advance(step)
            elapsed += step
            if not self.jobs and not any(not h.cancelled for h in self.timers):
                break
        self.run_jobs()


class FakeSink:
    """Speech sink where every utterance takes ``duration`` scheduler seconds"""

    def __init__(self, scheduler: ManualScheduler, duration: float = 1.0) -> None:
        self.scheduler = scheduler
        self.duration = duration
        self.spoken: list[str] = []
        self.cancel_count = 0
        self.fail = False
        self._handle: Optional[TimerHandle] = None

    def speak(self, text, locale, rate, pitch, on_start=None, on_end=None, on_error=None) -> None:
        self.spoken.append(text)
        if self.fail:
            self._handle = self.scheduler.call_later(0, on_error, SpeechError("no voice"))
            return
        self._handle = self.scheduler.call_later(self.duration, on_end)

    def cancel(self) -> None:
        self.cancel_count += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class FakeRecognizer:
    def __init__(self) -> None:
        self.listener = None
        self.active = False
        self.opened = False
        self.starts = 0
        self.stops = 0
        self.fail_code: Optional[str] = None

    def set_listener(self, listener) -> None:
        self.listener = listener

    def open(self) -> None:
        self.opened = True

    def start(self) -> None:
        if self.fail_code:
            raise RecognitionError(self.fail_code)
        self.active = True
        self.starts += 1

    def stop(self) -> None:
        self.active = False
        self.stops += 1


def straight_route(start: LatLng, steps: int = 40,
                   turns: Optional[list[tuple[str, float]]] = None) -> Route:
    """Route heading due north from ``start`` with a turn list of (text, distance)"""
    polyline = [LatLng(start.lat + i * STEP, start.lng) for i in range(steps + 1)]
    instructions = [RouteInstruction("Berangkat utara", 0.0, InstructionKind.DEPART)]
    for text, distance in turns or []:
        instructions.append(RouteInstruction(text, distance, InstructionKind.TURN))
    total = steps * STEP * 111195
    instructions.append(RouteInstruction("Anda telah tiba di tujuan", total, InstructionKind.ARRIVE))
    return Route(polyline=polyline, instructions=instructions, total_distance=total, total_time=total / 1.3)


def line_route(start: LatLng, end: LatLng, turns: Optional[list[tuple[str, float]]] = None) -> Route:
    """Route along the straight line from ``start`` to ``end``"""
    distance = haversine_distance(start.lat, start.lng, end.lat, end.lng)
    steps = int(min(200, max(2, distance // 10)))
    polyline = [
        LatLng(start.lat + (end.lat - start.lat) * i / steps, start.lng + (end.lng - start.lng) * i / steps)
        for i in range(steps + 1)
    ]
    instructions = [RouteInstruction("Berangkat utara", 0.0, InstructionKind.DEPART)]
    for text, at in turns or []:
        instructions.append(RouteInstruction(text, at, InstructionKind.TURN))
    instructions.append(RouteInstruction("Anda telah tiba di tujuan", distance, InstructionKind.ARRIVE))
    return Route(polyline=polyline, instructions=instructions, total_distance=distance, total_time=distance / 1.3)


class FakeRouter:
    """Router answering with a straight line to the destination"""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.calls: list[tuple[LatLng, LatLng]] = []

    def route(self, start: LatLng, end: LatLng) -> Route:
        self.calls.append((start, end))
        if self.error is not None:
            raise self.error
        return line_route(start, end, turns=[("Belok kiri ke Jalan Sudirman", 150.0)])


class FakeGeocoder:
    def __init__(self, places: Optional[dict[str, NamedLocation]] = None) -> None:
        self.places = places or {}
        self.queries: list[str] = []

    def search(self, text: str, near: Optional[LatLng] = None) -> NamedLocation:
        self.queries.append(text)
        if text not in self.places:
            raise GeocodeNotFound(text)
        return self.places[text]
