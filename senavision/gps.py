"""GPS access and recording/playback."""

import json
import subprocess
import time
from datetime import datetime
from typing import Optional

from .config import CONFIG
from .models import GpsFix


class GPS:
    """GPS access via Termux API"""

    def __init__(self, provider: str = "gps"):
        self.provider = provider
        self.last_location: Optional[GpsFix] = None
        self.consecutive_failures = 0
        self.last_error: Optional[str] = None

    def get_location(self, timeout: int = 30, fresh: bool = False) -> Optional[GpsFix]:
        """Get current location using termux-location.

        A fresh request always asks the GPS hardware instead of whichever
        provider answers fastest.
        """
        provider = "gps" if fresh else self.provider
        try:
            result = subprocess.run(
                ["termux-location", "-p", provider, "-r", "once"],
                capture_output=True,
                text=True,
                timeout=timeout
            )
        except subprocess.TimeoutExpired:
            return self._fail("timeout")
        except FileNotFoundError:
            return self._fail("termux-location not installed")

        if result.returncode != 0:
            return self._fail(result.stderr.strip() if result.stderr else "unknown error")
        if not result.stdout or not result.stdout.strip():
            return self._fail("empty response")

        try:
            data = json.loads(result.stdout)
            location = GpsFix(
                lat=data["latitude"],
                lng=data["longitude"],
                accuracy=data.get("accuracy"),
                timestamp=time.time()
            )
        except (json.JSONDecodeError, KeyError) as e:
            return self._fail(f"bad response: {e}")

        self.last_location = location
        self.consecutive_failures = 0
        self.last_error = None
        return location

    def _fail(self, message: str) -> None:
        self.consecutive_failures += 1
        self.last_error = message
        return None

    def get_status(self) -> str:
        """Get GPS status string"""
        if self.consecutive_failures == 0:
            acc = f", accuracy {self.last_location.accuracy:.0f}m" if self.last_location and self.last_location.accuracy else ""
            return f"GPS OK{acc}"
        return f"GPS: {self.consecutive_failures} consecutive failures ({self.last_error})"


class FixedLocation:
    """Location source that always reports the same point (--lat/--lon)"""

    def __init__(self, lat: float, lng: float, accuracy: float = 5.0):
        self.fix = GpsFix(lat=lat, lng=lng, accuracy=accuracy)

    def get_location(self, timeout: int = 30, fresh: bool = False) -> Optional[GpsFix]:
        return GpsFix(self.fix.lat, self.fix.lng, self.fix.accuracy, time.time())

    def get_status(self) -> str:
        return f"Fixed location ({self.fix.lat:.5f}, {self.fix.lng:.5f})"


class GPSRecorder:
    """Records GPS trace to file"""

    def __init__(self, gps, record_path: str):
        self.gps = gps
        self.record_path = record_path
        self.trace: list[dict] = []
        self.start_time = time.time()

    def get_location(self, timeout: int = 30, fresh: bool = False) -> Optional[GpsFix]:
        """Get location and record it"""
        location = self.gps.get_location(timeout, fresh=fresh)

        # Record even failed attempts
        self.trace.append({
            "elapsed": time.time() - self.start_time,
            "timestamp": time.time(),
            "location": location.to_dict() if location else None,
            "fresh": fresh,
            "status": self.gps.get_status()
        })
        return location

    def get_status(self) -> str:
        return self.gps.get_status()

    def save(self):
        """Save trace to file"""
        with open(self.record_path, "w") as f:
            json.dump({
                "recorded_at": datetime.now().isoformat(),
                "trace": self.trace
            }, f, indent=2)
        return len(self.trace)


class GPSPlayback:
    """Plays back GPS trace from file"""

    def __init__(self, playback_path: str, speed: float = 1.0):
        self.playback_path = playback_path
        self.speed = speed
        self.index = 0
        self.last_location: Optional[GpsFix] = None
        self.consecutive_failures = 0

        with open(playback_path) as f:
            self.trace: list[dict] = json.load(f)["trace"]

    def get_location(self, timeout: int = 30, fresh: bool = False) -> Optional[GpsFix]:
        """Get next location from trace sequentially"""
        if self.index >= len(self.trace):
            return None

        entry = self.trace[self.index]
        self.index += 1

        if entry["location"]:
            location = GpsFix.from_dict(entry["location"])
            self.last_location = location
            self.consecutive_failures = 0
            return location
        self.consecutive_failures += 1
        return None

    def get_poll_interval(self) -> float:
        """Get the interval to wait between polls based on trace timing and speed"""
        if self.index <= 0 or self.index >= len(self.trace):
            return CONFIG["location_update_interval"] / self.speed

        prev_elapsed = self.trace[self.index - 1].get("elapsed", 0)
        curr_elapsed = self.trace[self.index].get("elapsed", 0)
        interval = (curr_elapsed - prev_elapsed) / self.speed
        return max(0.1, min(interval, 5.0))

    def is_finished(self) -> bool:
        """Check if playback is complete"""
        return self.index >= len(self.trace)

    def get_status(self) -> str:
        progress = f"{self.index}/{len(self.trace)}"
        if self.consecutive_failures == 0:
            return f"Playback OK ({progress})"
        return f"Playback: {self.consecutive_failures} failures ({progress})"
