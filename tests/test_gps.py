from __future__ import annotations

import json
import subprocess

import pytest

from senavision import gps as gps_module
from senavision.gps import GPS, FixedLocation, GPSPlayback, GPSRecorder
from senavision.models import GpsFix


class _Completed:
    def __init__(self, stdout: str = "", returncode: int = 0, stderr: str = "") -> None:
        self.stdout = stdout
        self.returncode = returncode
        self.stderr = stderr


def test_gps_parses_termux_output(monkeypatch) -> None:
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return _Completed(json.dumps({"latitude": -7.5565, "longitude": 110.8315, "accuracy": 12.0}))

    monkeypatch.setattr(gps_module.subprocess, "run", fake_run)
    gps = GPS(provider="network")

    fix = gps.get_location(timeout=5, fresh=True)

    assert (fix.lat, fix.lng, fix.accuracy) == (-7.5565, 110.8315, 12.0)
    assert calls[0] == ["termux-location", "-p", "gps", "-r", "once"]
    assert gps.get_status() == "GPS OK, accuracy 12m"


def test_gps_failures_are_counted(monkeypatch) -> None:
    def timeout(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, 5)

    monkeypatch.setattr(gps_module.subprocess, "run", timeout)
    gps = GPS()

    assert gps.get_location(5) is None
    assert gps.get_location(5) is None
    assert gps.get_status() == "GPS: 2 consecutive failures (timeout)"


def test_gps_bad_json(monkeypatch) -> None:
    monkeypatch.setattr(gps_module.subprocess, "run", lambda cmd, **kwargs: _Completed("{not json"))
    gps = GPS()

    assert gps.get_location() is None
    assert gps.last_error.startswith("bad response")


def test_fixed_location() -> None:
    source = FixedLocation(-7.5565, 110.8315)
    fix = source.get_location()
    assert (fix.lat, fix.lng, fix.accuracy) == (-7.5565, 110.8315, 5.0)
    assert fix.timestamp is not None


def test_record_then_play_back(tmp_path) -> None:
    path = str(tmp_path / "trace.json")
    fixes = iter([GpsFix(-7.5565, 110.8315, 8.0), None, GpsFix(-7.5566, 110.8316, 6.0)])

    class ScriptedGps:
        def get_location(self, timeout, fresh=False):
            return next(fixes)

        def get_status(self):
            return "scripted"

    recorder = GPSRecorder(ScriptedGps(), path)
    for _ in range(3):
        recorder.get_location(10)
    assert recorder.save() == 3

    playback = GPSPlayback(path, speed=2.0)
    first = playback.get_location()
    assert first.lat == -7.5565 and first.accuracy == 8.0
    assert playback.get_location() is None
    assert playback.get_status() == "Playback: 1 failures (2/3)"
    assert playback.get_location().lng == 110.8316
    assert playback.is_finished()
    assert playback.get_location() is None


def test_playback_reads_lon_keys(tmp_path) -> None:
    path = tmp_path / "old.json"
    path.write_text(json.dumps({"trace": [
        {"elapsed": 0.0, "location": {"lat": -7.5, "lon": 110.8, "accuracy": 5.0}},
        {"elapsed": 4.0, "location": {"lat": -7.5, "lon": 110.8001, "accuracy": 5.0}},
    ]}))
    playback = GPSPlayback(str(path), speed=2.0)

    assert playback.get_location().lng == 110.8
    assert playback.get_poll_interval() == pytest.approx(2.0)
