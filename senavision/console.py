"""Speech input typed on the terminal.

Every line is delivered as a final transcript. A few meta lines simulate
recognizer lifecycle events:

    :end           recognition ended on its own
    :error CODE    recognition error (e.g. "not-allowed", "no-speech")
    :tap           user touched the screen
"""

import sys
import threading
from typing import Optional


class ConsoleRecognizer:
    """Recognizer fed from stdin by a background thread"""

    def __init__(self, scheduler, stream=None):
        self.scheduler = scheduler
        self.stream = stream or sys.stdin
        self.listener = None
        self.active = False
        self._thread: Optional[threading.Thread] = None

    def set_listener(self, listener):
        """listener offers handle_transcript/handle_recognition_*/handle_user_gesture"""
        self.listener = listener

    def open(self):
        if self._thread is None:
            self._thread = threading.Thread(target=self._read_lines, daemon=True)
            self._thread.start()

    def start(self):
        self.active = True
        self.scheduler.call_threadsafe(self._emit_start)

    def stop(self):
        if self.active:
            self.active = False
            self.scheduler.call_threadsafe(self._emit_end)

    def _emit_start(self):
        if self.listener:
            self.listener.handle_recognition_start()

    def _emit_end(self):
        if self.listener:
            self.listener.handle_recognition_end()

    def _read_lines(self):
        for line in self.stream:
            line = line.strip()
            if line:
                self.scheduler.call_threadsafe(self.feed, line)

    def feed(self, line: str):
        """Deliver one console line on the loop thread"""
        if not self.listener:
            return
        if line == ":end":
            self.active = False
            self.listener.handle_recognition_end()
        elif line.startswith(":error"):
            code = line[len(":error"):].strip() or "network"
            self.listener.handle_recognition_error(code)
            self.active = False
            self.listener.handle_recognition_end()
        elif line == ":tap":
            self.listener.handle_user_gesture()
        else:
            self.listener.handle_transcript(line, True)
