from __future__ import annotations

import pytest

from senavision.geo import (
    bearing_between, bearing_to_compass, cumulative_lengths, haversine_distance,
    in_box, moved_more_than, nearest_vertex, relative_direction, turn_angle,
)
from senavision.models import LatLng


def test_haversine_one_millidegree_of_latitude() -> None:
    assert haversine_distance(-7.56, 110.83, -7.559, 110.83) == pytest.approx(111.19, abs=0.05)


def test_bearing_and_compass() -> None:
    assert bearing_between(0, 0, 1, 0) == pytest.approx(0)
    assert bearing_between(0, 0, 0, 1) == pytest.approx(90)
    assert bearing_to_compass(44) == "northeast"
    assert bearing_to_compass(350) == "north"


@pytest.mark.parametrize("to_bearing, expected", [
    (10, "straight"),
    (45, "slight right"),
    (90, "right"),
    (180, "u-turn"),
    (270, "left"),
    (320, "slight left"),
])
def test_relative_direction(to_bearing: float, expected: str) -> None:
    assert relative_direction(0, to_bearing) == expected


def test_turn_angle_wraps() -> None:
    assert turn_angle(350, 10) == pytest.approx(20)
    assert turn_angle(10, 350) == pytest.approx(20)


def test_in_box() -> None:
    box = (-7.6, -7.5, 110.8, 110.9)
    assert in_box(-7.5565, 110.8315, box)
    assert not in_box(-6.2, 106.8, box)


def test_moved_more_than_checks_each_axis() -> None:
    a = LatLng(-7.5, 110.8)
    assert moved_more_than(a, LatLng(-7.5, 110.8015), 0.001)
    assert not moved_more_than(a, LatLng(-7.5005, 110.8005), 0.001)


def test_cumulative_lengths_and_nearest_vertex() -> None:
    points = [LatLng(-7.56, 110.83), LatLng(-7.559, 110.83), LatLng(-7.558, 110.83)]

    lengths = cumulative_lengths(points)
    assert lengths[0] == 0.0
    assert lengths[2] == pytest.approx(2 * lengths[1])

    index, distance = nearest_vertex(points, -7.5591, 110.83)
    assert index == 1
    assert distance == pytest.approx(11.1, abs=0.1)
