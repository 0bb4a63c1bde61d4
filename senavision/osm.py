"""OpenStreetMap street data via the Overpass API, with disk caching."""

import hashlib
import json
import os
import time

import requests

from .config import CONFIG
from .errors import RoutingError

WALKABLE_HIGHWAYS = ("footway|pedestrian|path|residential|living_street|service|"
                     "unclassified|tertiary|secondary|primary|trunk|steps")


class OSMFetcher:
    """Fetch walkable streets inside a bounding box"""

    OVERPASS_URL = "https://overpass-api.de/api/interpreter"
    CACHE_DIR = "osm_cache"
    CACHE_MAX_AGE = 7 * 24 * 3600  # 7 days

    @classmethod
    def _cache_path(cls, bbox: tuple[float, float, float, float]) -> str:
        # Rounded so small start moves reuse the same file
        key = ",".join(f"{v:.3f}" for v in bbox)
        h = hashlib.md5(key.encode()).hexdigest()[:12]
        return os.path.join(cls.CACHE_DIR, f"osm_{h}.json")

    @classmethod
    def _find_covering_cache(cls, bbox: tuple[float, float, float, float]) -> dict | None:
        """Find a fresh cached response whose box contains the requested one"""
        if not os.path.isdir(cls.CACHE_DIR):
            return None
        south, west, north, east = bbox
        now = time.time()
        for fname in os.listdir(cls.CACHE_DIR):
            if not fname.endswith(".json"):
                continue
            fpath = os.path.join(cls.CACHE_DIR, fname)
            try:
                if now - os.path.getmtime(fpath) > cls.CACHE_MAX_AGE:
                    continue
                with open(fpath) as f:
                    cached = json.load(f)
                meta = cached.get("_cache_meta")
                if not meta:
                    continue
                cs, cw, cn, ce = meta["bbox"]
                if cs <= south and cw <= west and cn >= north and ce >= east:
                    return cached
            except (json.JSONDecodeError, KeyError, ValueError, OSError):
                continue
        return None

    @classmethod
    def fetch_streets(cls, bbox: tuple[float, float, float, float], logger=None) -> dict:
        """Fetch walkable ways inside (south, west, north, east).

        Raises RoutingError when Overpass cannot be reached.
        """
        cached = cls._find_covering_cache(bbox)
        if cached:
            if logger:
                logger.log("Using cached OSM data", {"bbox": list(bbox)})
            return {k: v for k, v in cached.items() if k != "_cache_meta"}

        south, west, north, east = bbox
        timeout = CONFIG["http_timeout"] * 4
        query = f"""
        [out:json][timeout:{timeout}];
        (
          way["highway"~"^({WALKABLE_HIGHWAYS})$"]({south},{west},{north},{east});
        );
        out body;
        >;
        out skel qt;
        """
        if logger:
            logger.log("Fetching OSM data", {"bbox": list(bbox)})

        try:
            response = requests.post(cls.OVERPASS_URL, data={"data": query}, timeout=timeout + 30,
                                     headers={"User-Agent": CONFIG["user_agent"]})
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RoutingError(f"OSM fetch failed: {e}") from e

        if data.get("elements"):
            os.makedirs(cls.CACHE_DIR, exist_ok=True)
            cache_data = dict(data)
            cache_data["_cache_meta"] = {"bbox": list(bbox), "fetched_at": time.time()}
            with open(cls._cache_path(bbox), "w") as f:
                json.dump(cache_data, f)
        return data
