"""Logging module for SENAVISION.

Lines look like ``[iso-timestamp] message | {json data}``. Worker threads
(geocoding, routing, OSM fetches) log too, so writes are serialized.
"""

import json
import threading
from collections import Counter
from datetime import datetime
from typing import Optional, Callable


class Logger:
    """Session event log: stdout, an optional file and an optional mirror callback"""

    def __init__(self, log_path: Optional[str] = None, callback: Optional[Callable] = None,
                 echo: bool = True):
        self.log_path = log_path
        self.callback = callback
        self.echo = echo
        self.counts: Counter = Counter()
        self._lock = threading.Lock()
        self.file = open(log_path, "a", encoding="utf-8") if log_path else None
        if self.file:
            bar = "=" * 60
            self._write(f"\n{bar}\nSENAVISION Log - {datetime.now().isoformat()}\n{bar}\n")

    def _write(self, text: str):
        self.file.write(text + "\n")
        self.file.flush()

    def log(self, message: str, data: Optional[dict] = None):
        """Log a message with optional structured data"""
        line = f"[{datetime.now().isoformat()}] {message}"
        if data:
            line += f" | {json.dumps(data, default=str, ensure_ascii=False)}"
        with self._lock:
            self.counts[message] += 1
            if self.echo:
                print(line)
            if self.file:
                self._write(line)
        if self.callback:
            self.callback(message, data)

    def count(self, message: str) -> int:
        """How many times ``message`` has been logged this session"""
        return self.counts[message]

    def close(self):
        with self._lock:
            if self.file:
                self.file.close()
                self.file = None
