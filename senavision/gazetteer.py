"""Destination lookup: static gazetteer first, Nominatim geocoding second."""

import threading
import time
from typing import Optional

import requests

from .config import CONFIG
from .errors import GeocodeNotFound
from .geo import haversine_distance
from .models import LatLng, NamedLocation


def _place(lat: float, lng: float, name: str) -> NamedLocation:
    return NamedLocation(lat=lat, lng=lng, name=name)


KNOWN_PLACES: dict[str, NamedLocation] = {
    # Major cities
    "jakarta": _place(-6.2088, 106.8456, "Jakarta, Indonesia"),
    "surabaya": _place(-7.2575, 112.7521, "Surabaya, Indonesia"),
    "bandung": _place(-6.9175, 107.6191, "Bandung, Indonesia"),
    "medan": _place(3.5952, 98.6722, "Medan, Indonesia"),
    "makassar": _place(-5.1477, 119.4327, "Makassar, Indonesia"),
    "semarang": _place(-6.9932, 110.4203, "Semarang, Indonesia"),
    "palembang": _place(-2.9761, 104.7754, "Palembang, Indonesia"),
    "denpasar": _place(-8.6705, 115.2126, "Denpasar, Indonesia"),
    # Central Java
    "yogyakarta": _place(-7.7956, 110.3695, "Yogyakarta, Indonesia"),
    "surakarta": _place(-7.5565, 110.8315, "Surakarta, Indonesia"),
    "solo": _place(-7.5565, 110.8315, "Surakarta, Indonesia"),
    "salatiga": _place(-7.3307, 110.5084, "Salatiga, Indonesia"),
    "magelang": _place(-7.4706, 110.2178, "Magelang, Indonesia"),
    "pekalongan": _place(-6.8887, 109.6753, "Pekalongan, Indonesia"),
    "tegal": _place(-6.8667, 109.1333, "Tegal, Indonesia"),
    # Surakarta districts
    "gilingan": _place(-7.5565, 110.8315, "Gilingan, Surakarta"),
    "pajang": _place(-7.5700, 110.8100, "Pajang, Surakarta"),
    "pasarkliwon": _place(-7.5760, 110.8310, "Pasarkliwon, Surakarta"),
    "jebres": _place(-7.5600, 110.8500, "Jebres, Surakarta"),
    "banjarsari": _place(-7.5560, 110.8170, "Banjarsari, Surakarta"),
    "laweyan": _place(-7.5640, 110.7950, "Laweyan, Surakarta"),
    "serengan": _place(-7.5680, 110.8250, "Serengan, Surakarta"),
    # Surakarta landmarks
    "masjid sheikh zayed": _place(-7.5575, 110.8400, "Masjid Sheikh Zayed, Surakarta"),
    "masjid agung surakarta": _place(-7.5740, 110.8365, "Masjid Agung Surakarta"),
    "uns": _place(-7.5600, 110.8569, "Universitas Sebelas Maret, Surakarta"),
    "universitas sebelas maret": _place(-7.5600, 110.8569, "Universitas Sebelas Maret, Surakarta"),
    "kampus uns": _place(-7.5600, 110.8569, "Kampus UNS"),
    "fakultas teknik uns": _place(-7.5617, 110.8572, "Fakultas Teknik UNS"),
    "ft uns": _place(-7.5617, 110.8572, "Fakultas Teknik UNS"),
    "kentingan": _place(-7.5617, 110.8572, "Kentingan, Jebres, Surakarta"),
    "keraton surakarta": _place(-7.5748, 110.8253, "Keraton Surakarta Hadiningrat"),
    "keraton solo": _place(-7.5748, 110.8253, "Keraton Surakarta Hadiningrat"),
    "pasar klewer": _place(-7.5667, 110.8269, "Pasar Klewer Surakarta"),
    "pasar gede": _place(-7.5680, 110.8290, "Pasar Gede Bosch Surakarta"),
    "triwindu": _place(-7.5622, 110.8244, "Pasar Triwindu Surakarta"),
    "kampung batik": _place(-7.5640, 110.7950, "Kampung Batik Laweyan"),
    "balai kota solo": _place(-7.5644, 110.8150, "Balai Kota Surakarta"),
    "solo grand mall": _place(-7.5392, 110.8103, "Solo Grand Mall"),
    "the park mall solo": _place(-7.5450, 110.8130, "The Park Mall Solo"),
    "hartono mall": _place(-7.5480, 110.8220, "Hartono Mall"),
    "rsud dr moewardi": _place(-7.5550, 110.8500, "RSUD Dr. Moewardi"),
    "rumah sakit moewardi": _place(-7.5550, 110.8500, "RSUD Dr. Moewardi"),
    "sma negeri 1 solo": _place(-7.5720, 110.8280, "SMA Negeri 1 Surakarta"),
    "sma 1 solo": _place(-7.5720, 110.8280, "SMA Negeri 1 Surakarta"),
    "stasiun purwosari": _place(-7.5680, 110.7980, "Stasiun Purwosari"),
    "terminal tirtonadi": _place(-7.5770, 110.8400, "Terminal Tirtonadi"),
    "bandara adisumarmo": _place(-7.5158, 110.7531, "Bandara Adisumarmo"),
    "taman balekambang": _place(-7.5600, 110.8100, "Taman Balekambang Solo"),
    "taman sriwedari": _place(-7.5680, 110.8210, "Taman Sriwedari Solo"),
    # Universities elsewhere
    "ui": _place(-6.3619, 106.8250, "Universitas Indonesia"),
    "itb": _place(-6.8891, 107.6105, "Institut Teknologi Bandung"),
    "ugm": _place(-7.7731, 110.3773, "Universitas Gadjah Mada"),
    "ipb": _place(-6.5616, 106.7226, "Institut Pertanian Bogor"),
    # Jakarta landmarks
    "monas": _place(-6.1751, 106.8650, "Monumen Nasional Jakarta"),
    "ancol": _place(-6.1277, 106.8418, "Taman Impian Jaya Ancol"),
    "kota tua": _place(-6.1352, 106.8136, "Kota Tua Jakarta"),
    # West Java
    "bogor": _place(-6.5971, 106.8060, "Bogor, Indonesia"),
    "depok": _place(-6.4025, 106.7942, "Depok, Indonesia"),
    "bekasi": _place(-6.2383, 106.9756, "Bekasi, Indonesia"),
    "tangerang": _place(-6.1783, 106.6319, "Tangerang, Indonesia"),
    "cirebon": _place(-6.7320, 108.5523, "Cirebon, Indonesia"),
    # East Java
    "malang": _place(-7.9666, 112.6326, "Malang, Indonesia"),
    "kediri": _place(-7.8164, 112.0122, "Kediri, Indonesia"),
    "jember": _place(-8.1845, 113.6681, "Jember, Indonesia"),
    "blitar": _place(-8.0955, 112.1609, "Blitar, Indonesia"),
    # Bali
    "ubud": _place(-8.5069, 115.2625, "Ubud, Bali, Indonesia"),
    "kuta": _place(-8.7074, 115.1749, "Kuta, Bali, Indonesia"),
}


def lookup_place(name: str, places: Optional[dict] = None) -> Optional[NamedLocation]:
    """Exact lookup of a normalized place name"""
    places = KNOWN_PLACES if places is None else places
    return places.get(" ".join(name.lower().split()))


def shorten_address(display_name: str, max_parts: int = 4) -> str:
    """Trim a geocoder display name to something short enough to speak"""
    parts = [p.strip() for p in display_name.split(",") if p.strip()]
    parts = [p for p in parts if p.lower() != "indonesia"]
    return ", ".join(parts[:max_parts])


class NominatimGeocoder:
    """Free-text geocoding through the OpenStreetMap Nominatim API.

    Nominatim allows one request per second; calls are throttled so that
    concurrent worker threads never exceed it.
    """

    def __init__(self, session: Optional[requests.Session] = None, config: Optional[dict] = None):
        config = config or CONFIG
        self.session = session or requests.Session()
        self.url = config["nominatim_url"]
        self.user_agent = config["user_agent"]
        self.timeout = config["http_timeout"]
        self.min_interval = config["nominatim_min_interval"]
        self.search_radius = config["geocode_search_radius"]
        self.country = config["geocode_country"]
        self._lock = threading.Lock()
        self._last_request = 0.0

    def _throttle(self):
        with self._lock:
            wait = self.min_interval - (time.monotonic() - self._last_request)
            if wait > 0:
                time.sleep(wait)
            self._last_request = time.monotonic()

    def _query(self, text: str, near: Optional[LatLng], bounded: bool) -> list[dict]:
        params = {
            "q": text,
            "format": "json",
            "limit": 5,
            "countrycodes": self.country,
            "accept-language": self.country,
        }
        if bounded and near is not None:
            d = self.search_radius
            params["viewbox"] = f"{near.lng - d},{near.lat + d},{near.lng + d},{near.lat - d}"
            params["bounded"] = 1
        self._throttle()
        response = self.session.get(
            self.url, params=params, timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
        )
        response.raise_for_status()
        return response.json()

    def search(self, text: str, near: Optional[LatLng] = None) -> NamedLocation:
        """Resolve free text, preferring the result closest to ``near``.

        Searches around the user first and falls back to a country-wide
        search. Raises GeocodeNotFound when nothing matches or the service
        is unreachable.
        """
        try:
            results = self._query(text, near, bounded=True) if near is not None else []
            if not results:
                results = self._query(text, near, bounded=False)
        except (requests.RequestException, ValueError) as e:
            raise GeocodeNotFound(text, reason=str(e)) from e
        if not results:
            raise GeocodeNotFound(text)

        def distance(result: dict) -> float:
            if near is None:
                return 0.0
            return haversine_distance(near.lat, near.lng, float(result["lat"]), float(result["lon"]))

        best = min(results, key=distance)
        return NamedLocation(
            lat=float(best["lat"]),
            lng=float(best["lon"]),
            name=shorten_address(best.get("display_name", text)),
        )


class LocationResolver:
    """Gazetteer first, then the geocoder"""

    def __init__(self, geocoder=None, places: Optional[dict] = None):
        self.geocoder = geocoder
        self.places = KNOWN_PLACES if places is None else places

    def lookup(self, text: str) -> Optional[NamedLocation]:
        return lookup_place(text, self.places)

    def resolve(self, text: str, near: Optional[LatLng] = None) -> NamedLocation:
        """Blocking resolution; run it on a worker thread"""
        place = self.lookup(text)
        if place:
            return place
        if self.geocoder is None:
            raise GeocodeNotFound(text, reason="no geocoder configured")
        return self.geocoder.search(text, near)
