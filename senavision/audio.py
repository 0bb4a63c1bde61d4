"""Text-to-speech output for SENAVISION."""

import asyncio
import subprocess
from typing import Optional, Callable

from .config import CONFIG
from .errors import SpeechError


class EspeakSink:
    """Speech sink that speaks through espeak without blocking the event loop.

    Each utterance runs as an asyncio subprocess; cancel() kills it and
    suppresses its callbacks. Without espeak, pyttsx3 is tried on a worker
    thread and finally the text is printed.
    """

    def __init__(self, voice: Optional[str] = None, words_per_minute: Optional[int] = None):
        self.voice = voice or CONFIG["espeak_voice"]
        self.words_per_minute = words_per_minute or CONFIG["espeak_words_per_minute"]
        self._task: Optional[asyncio.Task] = None

    def speak(self, text: str, locale: str, rate: float, pitch: float,
              on_start: Optional[Callable] = None, on_end: Optional[Callable] = None,
              on_error: Optional[Callable] = None):
        self.cancel()
        self._task = asyncio.ensure_future(self._run(text, rate, pitch, on_start, on_end, on_error))

    def cancel(self):
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, text, rate, pitch, on_start, on_end, on_error):
        args = [
            "espeak",
            "-v", self.voice,
            "-s", str(int(self.words_per_minute * rate)),
            "-p", str(int(50 * pitch)),
            text,
        ]
        try:
            process = await asyncio.create_subprocess_exec(
                *args, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE
            )
        except FileNotFoundError:
            await asyncio.get_running_loop().run_in_executor(None, self._fallback, text)
            if on_end:
                on_end()
            return

        if on_start:
            on_start()
        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            raise
        if process.returncode != 0:
            if on_error:
                on_error(SpeechError(stderr.decode(errors="replace").strip() or "espeak failed"))
        elif on_end:
            on_end()

    @staticmethod
    def _fallback(text: str):
        try:
            import pyttsx3
            engine = pyttsx3.init()
            engine.say(text)
            engine.runAndWait()
        except Exception:
            print(f"[AUDIO] {text}")


class PrintSink:
    """Speech sink that prints utterances (--no-audio)"""

    def __init__(self):
        self._handle: Optional[asyncio.Handle] = None

    def speak(self, text: str, locale: str, rate: float, pitch: float,
              on_start: Optional[Callable] = None, on_end: Optional[Callable] = None,
              on_error: Optional[Callable] = None):
        self.cancel()
        print(f"[AUDIO] {text}")
        if on_start:
            on_start()
        if on_end:
            self._handle = asyncio.get_running_loop().call_soon(on_end)

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
