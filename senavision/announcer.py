"""Serialized spoken output."""

from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .config import CONFIG


@dataclass
class Announcement:
    """An ordered list of utterances spoken back to back"""
    segments: list[str]
    priority: bool = False
    on_complete: Optional[Callable[[], None]] = None

    @property
    def text(self) -> str:
        return " ".join(self.segments)


class AnnouncementQueue:
    """Plays announcements one at a time through a speech sink.

    - Non-priority announcements queue FIFO behind the current one.
    - A priority announcement cancels the current one (remaining segments
      and its completion callback included) and starts immediately.
    - An utterance spoken within the dedupe window, or already waiting to
      be spoken, is not spoken again unless the announcement has priority.
      The window runs from when the utterance was played, and is checked
      again when a queued segment comes up.
    - After each utterance a short grace delay passes before the next
      segment, or before ``on_complete`` and the next queued announcement.

    The sink must offer ``speak(text, locale, rate, pitch, on_start, on_end,
    on_error)`` and ``cancel()``. Callbacks from cancelled utterances are
    recognised by their token and ignored.
    """

    def __init__(self, sink, scheduler, logger=None, config: Optional[dict] = None):
        config = config or CONFIG
        self.sink = sink
        self.scheduler = scheduler
        self.logger = logger
        self.locale = config["locale"]
        self.rate = config["speech_rate"]
        self.pitch = config["speech_pitch"]
        self.dedupe_window = config["speech_dedupe_window"]
        self.grace_delay = config["speech_grace_delay"]

        self.queue: deque[Announcement] = deque()
        self.current: Optional[Announcement] = None
        self._segment_index = 0
        self._token = 0
        self._grace_handle = None
        self._recent: dict[str, float] = {}  # utterance text -> time played
        self.utterance_count = 0
        self.on_utterance: Optional[Callable[[str], None]] = None

    @property
    def speaking(self) -> bool:
        return self.current is not None

    def speak(self, text: str, priority: bool = False,
              on_complete: Optional[Callable[[], None]] = None) -> bool:
        """Speak one utterance. Returns False if it was dropped as a duplicate."""
        return self.speak_sequence([text], priority=priority, on_complete=on_complete)

    def speak_sequence(self, segments: Sequence[str], priority: bool = False,
                       on_complete: Optional[Callable[[], None]] = None) -> bool:
        """Speak several utterances in order as one announcement"""
        now = self.scheduler.time()
        self._expire_recent(now)
        segments = [s for s in segments if s]
        if not priority:
            pending = self._pending()
            segments = [s for s in segments if s not in self._recent and s not in pending]
        if not segments:
            self._log("Announcement dropped", {"priority": priority})
            # The flow waiting on this announcement still continues
            if on_complete:
                self.scheduler.call_later(self.grace_delay, on_complete)
            return False

        announcement = Announcement(list(segments), priority, on_complete)

        if priority and self.current is not None:
            self._log("Announcement preempted", {"text": self.current.text})
            self._stop_current()
            self._start(announcement)
        elif self.current is not None:
            self.queue.append(announcement)
        else:
            self._start(announcement)
        return True

    def cancel_all(self):
        """Silence everything, dropping queued announcements and their callbacks"""
        self.queue.clear()
        if self.current is not None:
            self._stop_current()

    def _pending(self) -> set[str]:
        """Utterances accepted but not yet played"""
        texts = set()
        if self.current is not None:
            texts.update(self.current.segments[self._segment_index + 1:])
        for announcement in self.queue:
            texts.update(announcement.segments)
        return texts

    def _expire_recent(self, now: float):
        expired = [text for text, t in self._recent.items() if now - t >= self.dedupe_window]
        for text in expired:
            del self._recent[text]

    def _stop_current(self):
        self._token += 1
        if self._grace_handle is not None:
            self._grace_handle.cancel()
            self._grace_handle = None
        self.current = None
        self.sink.cancel()

    def _start(self, announcement: Announcement):
        self.current = announcement
        self._segment_index = 0
        self._play_next()

    def _play_next(self):
        """Play the next due segment, or finish the current announcement"""
        now = self.scheduler.time()
        self._expire_recent(now)
        segments = self.current.segments
        while self._segment_index < len(segments):
            text = segments[self._segment_index]
            if self.current.priority or text not in self._recent:
                self._recent[text] = now
                self._play_segment(text)
                return
            self._log("Utterance skipped", {"text": text})
            self._segment_index += 1

        finished = self.current
        self.current = None
        if finished.on_complete:
            finished.on_complete()
        # on_complete may have started a new announcement
        if self.current is None and self.queue:
            self._start(self.queue.popleft())

    def _play_segment(self, text: str):
        self._token += 1
        token = self._token
        self.utterance_count += 1
        self._log("SPEAK", {"text": text})
        if self.on_utterance:
            self.on_utterance(text)
        self.sink.speak(
            text, self.locale, self.rate, self.pitch,
            on_start=None,
            on_end=lambda: self._utterance_finished(token),
            on_error=lambda error: self._utterance_failed(token, error),
        )

    def _utterance_failed(self, token: int, error):
        if token != self._token:
            return
        self._log("Speech error", {"error": str(error)})
        self._utterance_finished(token)

    def _utterance_finished(self, token: int):
        if token != self._token or self.current is None:
            return
        self._grace_handle = self.scheduler.call_later(self.grace_delay, self._advance, token)

    def _advance(self, token: int):
        if token != self._token or self.current is None:
            return
        self._grace_handle = None
        self._segment_index += 1
        self._play_next()

    def _log(self, message: str, data: Optional[dict] = None):
        if self.logger:
            self.logger.log(message, data)
