"""Voice command interpretation.

Transcripts are normalized and matched in a fixed order: activation,
navigation start, saved route selection, saved route creation, and finally
a destination. Anything left empty is Unknown.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from .gazetteer import KNOWN_PLACES


@dataclass(frozen=True)
class Activate:
    pass


@dataclass(frozen=True)
class StartNavigation:
    pass


@dataclass(frozen=True)
class SelectRoute:
    route_id: int


@dataclass(frozen=True)
class CreateRoute:
    route_id: int
    start_name: str
    end_name: str


@dataclass(frozen=True)
class SetDestination:
    text: str


@dataclass(frozen=True)
class InvalidRouteNumber:
    """A saved route number outside the available slots"""
    raw: str
    requested: str


@dataclass(frozen=True)
class Unknown:
    raw: str


VoiceCommand = Union[Activate, StartNavigation, SelectRoute, CreateRoute,
                     SetDestination, InvalidRouteNumber, Unknown]

ACTIVATION_PHRASES = {"halo", "hello", "aktivasi", "activate", "buka mikrofon", "aktifkan"}
NAVIGATION_EXACT = {"navigasi", "mulai"}
NAVIGATION_CONTAINS = ("mulai rute", "mulai navigasi", "ikut rute")

NUMBER_WORDS = {
    "satu": 1, "dua": 2, "tiga": 3, "empat": 4, "lima": 5, "enam": 6,
    "tujuh": 7, "delapan": 8, "sembilan": 9, "sepuluh": 10,
}
ROUTE_SLOTS = range(1, 7)

_NUMBER = r"(" + "|".join(NUMBER_WORDS) + r"|\d+)"
SELECT_ROUTE_RE = re.compile(r"^rute\s+" + _NUMBER + r"$")
CREATE_ROUTE_RE = re.compile(r"^buat\s+rute\s+" + _NUMBER + r"\s+dari\s+(.+?)\s+ke\s+(.+)$")

# Longest first so "navigasi ke" wins over "ke"
DESTINATION_PREFIXES = sorted([
    "pergi ke", "navigasi ke", "tujuan ke", "ke",
    "go to", "navigate to", "set destination",
    "go", "navigate", "destination",
], key=len, reverse=True)

_PUNCTUATION_RE = re.compile(r"[.,;:!?]")


def normalize(transcript: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace"""
    text = _PUNCTUATION_RE.sub("", transcript.lower())
    return " ".join(text.split())


def parse_route_number(word: str) -> Optional[int]:
    if word.isdigit():
        return int(word)
    return NUMBER_WORDS.get(word)


def strip_destination_prefix(text: str) -> str:
    """Remove one leading destination phrase, matched on whole words"""
    for prefix in DESTINATION_PREFIXES:
        if text == prefix:
            return ""
        if text.startswith(prefix + " "):
            return text[len(prefix) + 1:].strip()
    return text


def interpret(transcript: str, places: Optional[dict] = None) -> VoiceCommand:
    """Classify a transcript into a VoiceCommand"""
    places = KNOWN_PLACES if places is None else places
    text = normalize(transcript)
    if not text:
        return Unknown(transcript)

    if text in ACTIVATION_PHRASES:
        return Activate()

    if text in NAVIGATION_EXACT or any(p in text for p in NAVIGATION_CONTAINS):
        return StartNavigation()

    match = SELECT_ROUTE_RE.match(text)
    if match:
        number = parse_route_number(match.group(1))
        if number not in ROUTE_SLOTS:
            return InvalidRouteNumber(transcript, match.group(1))
        return SelectRoute(number)

    match = CREATE_ROUTE_RE.match(text)
    if match:
        number = parse_route_number(match.group(1))
        if number not in ROUTE_SLOTS:
            return InvalidRouteNumber(transcript, match.group(1))
        return CreateRoute(number, match.group(2).strip(), match.group(3).strip())

    # A known place name is a destination as spoken, even if it starts like a prefix
    if text in places:
        return SetDestination(text)

    destination = strip_destination_prefix(text)
    if not destination:
        return Unknown(transcript)
    return SetDestination(destination)
