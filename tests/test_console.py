from __future__ import annotations

import io

from senavision.console import ConsoleRecognizer


class RecordingListener:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def handle_transcript(self, text: str, is_final: bool) -> None:
        self.events.append(("transcript", text, is_final))

    def handle_recognition_start(self) -> None:
        self.events.append(("start",))

    def handle_recognition_end(self) -> None:
        self.events.append(("end",))

    def handle_recognition_error(self, code: str) -> None:
        self.events.append(("error", code))

    def handle_user_gesture(self) -> None:
        self.events.append(("gesture",))


def _recognizer(scheduler, text: str = "") -> tuple[ConsoleRecognizer, RecordingListener]:
    recognizer = ConsoleRecognizer(scheduler, stream=io.StringIO(text))
    listener = RecordingListener()
    recognizer.set_listener(listener)
    return recognizer, listener


def test_lines_become_final_transcripts(scheduler) -> None:
    recognizer, listener = _recognizer(scheduler, "halo\n\n  ke monas  \n")

    recognizer.open()
    recognizer._thread.join(timeout=5)
    scheduler.advance(0)

    assert listener.events == [("transcript", "halo", True), ("transcript", "ke monas", True)]


def test_start_and_stop_emit_lifecycle_events(scheduler) -> None:
    recognizer, listener = _recognizer(scheduler)

    recognizer.start()
    recognizer.stop()
    recognizer.stop()
    scheduler.advance(0)

    assert listener.events == [("start",), ("end",)]
    assert not recognizer.active


def test_meta_lines(scheduler) -> None:
    recognizer, listener = _recognizer(scheduler)

    recognizer.feed(":tap")
    recognizer.feed(":error not-allowed")
    recognizer.feed(":error")
    recognizer.feed(":end")

    assert listener.events == [
        ("gesture",),
        ("error", "not-allowed"), ("end",),
        ("error", "network"), ("end",),
        ("end",),
    ]
