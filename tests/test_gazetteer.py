from __future__ import annotations

import pytest
import requests

from helpers import FakeGeocoder
from senavision.config import CONFIG
from senavision.errors import GeocodeNotFound
from senavision.gazetteer import LocationResolver, NominatimGeocoder, lookup_place, shorten_address
from senavision.models import LatLng, NamedLocation

SOLO = LatLng(-7.5565, 110.8315)


class _Response:
    def __init__(self, payload) -> None:
        self._payload = payload

    def raise_for_status(self) -> None:
        pass

    def json(self):
        return self._payload


class _Session:
    """Answers queued payloads in order"""

    def __init__(self, *payloads, error: Exception | None = None) -> None:
        self.payloads = list(payloads)
        self.error = error
        self.params: list[dict] = []

    def get(self, url, params=None, timeout=None, headers=None):
        self.params.append(params)
        if self.error:
            raise self.error
        return _Response(self.payloads.pop(0))


def _geocoder(session) -> NominatimGeocoder:
    return NominatimGeocoder(session=session, config=dict(CONFIG, nominatim_min_interval=0))


def test_lookup_place_normalizes_case_and_spacing() -> None:
    assert lookup_place("  Pasar   Gede ").name == "Pasar Gede Bosch Surakarta"
    assert lookup_place("UNS") == lookup_place("universitas sebelas maret")
    assert lookup_place("atlantis") is None


def test_shorten_address() -> None:
    display = "Stasiun Balapan, Jalan Wolter Monginsidi, Kestalan, Banjarsari, Surakarta, Jawa Tengah, Indonesia"
    assert shorten_address(display) == "Stasiun Balapan, Jalan Wolter Monginsidi, Kestalan, Banjarsari"
    assert shorten_address("Bogor, Indonesia") == "Bogor"


def test_search_prefers_closest_result_near_user() -> None:
    session = _Session([
        {"lat": "-6.9", "lon": "107.6", "display_name": "Stasiun Balapan, Bandung"},
        {"lat": "-7.5571", "lon": "110.8230", "display_name": "Stasiun Balapan, Surakarta, Indonesia"},
    ])

    place = _geocoder(session).search("stasiun balapan", SOLO)

    assert place == NamedLocation(-7.5571, 110.8230, "Stasiun Balapan, Surakarta")
    assert session.params[0]["bounded"] == 1
    assert session.params[0]["countrycodes"] == "id"


def test_search_falls_back_to_country_wide() -> None:
    session = _Session([], [{"lat": "-8.5", "lon": "115.26", "display_name": "Ubud, Gianyar, Bali, Indonesia"}])

    place = _geocoder(session).search("ubud", SOLO)

    assert place.name == "Ubud, Gianyar, Bali"
    assert "viewbox" not in session.params[1]


def test_search_without_position_is_unbounded() -> None:
    session = _Session([{"lat": "-6.2", "lon": "106.8", "display_name": "Jakarta"}])
    _geocoder(session).search("jakarta")

    assert len(session.params) == 1
    assert "bounded" not in session.params[0]


def test_search_not_found() -> None:
    with pytest.raises(GeocodeNotFound) as exc_info:
        _geocoder(_Session([], [])).search("atlantis", SOLO)
    assert exc_info.value.query == "atlantis"


def test_search_network_error_is_not_found() -> None:
    session = _Session(error=requests.ConnectionError("offline"))
    with pytest.raises(GeocodeNotFound) as exc_info:
        _geocoder(session).search("atlantis")
    assert "offline" in exc_info.value.reason


def test_resolver_uses_gazetteer_before_geocoder() -> None:
    geocoder = FakeGeocoder()
    resolver = LocationResolver(geocoder)

    assert resolver.resolve("Monas").name == "Monumen Nasional Jakarta"
    assert geocoder.queries == []


def test_resolver_falls_back_to_geocoder() -> None:
    balapan = NamedLocation(-7.5571, 110.8230, "Stasiun Balapan")
    geocoder = FakeGeocoder({"stasiun balapan": balapan})
    resolver = LocationResolver(geocoder)

    assert resolver.resolve("stasiun balapan", SOLO) == balapan
    assert geocoder.queries == ["stasiun balapan"]


def test_resolver_without_geocoder() -> None:
    with pytest.raises(GeocodeNotFound):
        LocationResolver().resolve("atlantis")
