from __future__ import annotations

from helpers import STEP, straight_route
from senavision.instructions import (
    InstructionTracker, first_direction, format_distance, localize_instruction,
    proximity_phrase, route_summary,
)
from senavision.models import LatLng

START = LatLng(-7.5565, 110.8315)


def test_localize_common_maneuvers() -> None:
    assert localize_instruction("Turn left onto Jalan Slamet Riyadi") == "Belok kiri ke Jalan Slamet Riyadi"
    assert localize_instruction("Make a slight right") == "Sedikit ke kanan"
    assert localize_instruction("Enter the traffic circle and take the 2nd exit onto Jalan A") == (
        "Masuk bundaran dan ambil jalan keluar ke-2 ke Jalan A"
    )
    assert localize_instruction("You have arrived at your destination") == "Anda telah tiba di tujuan"


def test_localize_departure_translates_compass() -> None:
    assert localize_instruction("Head northeast on Jalan Adi Sucipto") == "Berangkat timur laut di Jalan Adi Sucipto"


def test_localize_falls_back_to_word_replacement() -> None:
    assert localize_instruction("Continue onto the bridge") == "Lanjutkan ke the bridge"
    assert localize_instruction("Turn right at the light") == "Belok kanan at the light"


def test_format_distance() -> None:
    assert format_distance(150.4) == "150 m"
    assert format_distance(1500) == "1.5 km"


def test_proximity_phrase() -> None:
    assert proximity_phrase("Belok kiri", 120.4) == "Setelah 120 meter Belok kiri"
    assert proximity_phrase("Belok kiri", 1.5) == "Belok kiri sekarang"


def test_route_summary() -> None:
    route = straight_route(START, steps=40)
    route.total_distance = 9800
    route.total_time = 72 * 60
    route.name = "Monas"
    assert route_summary(route) == "Monas. Jarak 9.8 kilometer, perkiraan waktu 1 jam 12 menit"

    route.name = None
    route.total_distance = 640
    route.total_time = 8 * 60
    assert route_summary(route) == "Jarak 640 meter, perkiraan waktu 8 menit"


def test_first_direction_skips_departure_and_marks_announced() -> None:
    route = straight_route(START, turns=[("Belok kanan", 120.0)])

    assert first_direction(route) == "Setelah 120 meter Belok kanan"
    assert route.instructions[1].announced
    assert not route.instructions[0].announced


def test_tracker_announces_once_within_range() -> None:
    route = straight_route(START, steps=60, turns=[("Belok kiri", 400.0)])
    tracker = InstructionTracker(route)

    update = tracker.update(START.lat, START.lng)
    assert update.announcement is None

    # vertex 20 is about 222 m along, 178 m before the turn
    update = tracker.update(START.lat + 20 * STEP, START.lng)
    assert update.announcement is not None
    assert update.announcement.startswith("Setelah 17") and update.announcement.endswith("Belok kiri")

    update = tracker.update(START.lat + 22 * STEP, START.lng)
    assert update.announcement is None


def test_tracker_at_most_one_announcement_per_update() -> None:
    route = straight_route(START, steps=60, turns=[("Belok kiri", 150.0), ("Belok kanan", 180.0)])
    tracker = InstructionTracker(route)

    first = tracker.update(START.lat, START.lng)
    second = tracker.update(START.lat + STEP, START.lng)

    assert first.announcement.endswith("Belok kiri")
    assert second.announcement.endswith("Belok kanan")


def test_tracker_does_not_announce_when_disabled() -> None:
    route = straight_route(START, steps=60, turns=[("Belok kiri", 150.0)])
    tracker = InstructionTracker(route)

    update = tracker.update(START.lat, START.lng, announce=False)
    assert update.announcement is None
    assert not route.instructions[1].announced


def test_remaining_is_monotonic_and_retired_instructions_disappear() -> None:
    route = straight_route(START, steps=60, turns=[("Belok kiri", 300.0)])
    tracker = InstructionTracker(route)
    turn = route.instructions[1]

    previous = None
    for i in range(0, 40):
        tracker.update(START.lat + i * STEP, START.lng)
        if turn.retired:
            break
        remaining = tracker.remaining_for(turn)
        if previous is not None:
            assert remaining <= previous
        previous = remaining

    assert turn.retired
    assert "Belok kiri" not in [text for text, _ in tracker.visible()]
    # Walking back does not revive it
    tracker.update(START.lat, START.lng)
    assert "Belok kiri" not in [text for text, _ in tracker.visible()]


def test_depart_is_never_announced() -> None:
    route = straight_route(START, steps=5)
    tracker = InstructionTracker(route)

    for i in range(6):
        update = tracker.update(START.lat + i * STEP, START.lng)
        if update.announcement:
            assert "Berangkat" not in update.announcement


def test_visible_formats_remaining_distance() -> None:
    route = straight_route(START, steps=200, turns=[("Belok kiri", 1500.0)])
    tracker = InstructionTracker(route)
    tracker.update(START.lat, START.lng, announce=False)

    assert ("Belok kiri", "1.5 km") in tracker.visible()
