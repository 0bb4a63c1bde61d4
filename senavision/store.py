"""Saved route slots persisted in SQLite."""

import sqlite3
from datetime import datetime
from typing import Optional

from .config import CONFIG
from .models import NamedLocation, NamedRouteSlot


class RouteStore:
    """Six fixed route slots ("Rute 1" to "Rute 6").

    Slots always exist; an empty slot has no start or end. Writes are
    committed immediately.
    """

    def __init__(self, db_path: Optional[str] = None, slots: Optional[int] = None):
        self.db_path = db_path or CONFIG["routes_db"]
        self.slots = slots or CONFIG["route_slots"]
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._init_schema()

    def _init_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS saved_routes (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                start_lat REAL,
                start_lng REAL,
                start_name TEXT,
                end_lat REAL,
                end_lng REAL,
                end_name TEXT,
                updated_at TEXT
            )
        """)
        for slot_id in range(1, self.slots + 1):
            self.conn.execute(
                "INSERT OR IGNORE INTO saved_routes (id, name) VALUES (?, ?)",
                (slot_id, f"Rute {slot_id}")
            )
        self.conn.commit()

    def valid_id(self, slot_id: int) -> bool:
        return 1 <= slot_id <= self.slots

    @staticmethod
    def _row_to_slot(row) -> NamedRouteSlot:
        slot_id, name, slat, slng, sname, elat, elng, ename = row
        start = NamedLocation(slat, slng, sname) if slat is not None else None
        end = NamedLocation(elat, elng, ename) if elat is not None else None
        return NamedRouteSlot(id=slot_id, name=name, start=start, end=end)

    def get(self, slot_id: int) -> Optional[NamedRouteSlot]:
        """Get a slot, or None when the id is outside the available slots"""
        if not self.valid_id(slot_id):
            return None
        cursor = self.conn.execute(
            "SELECT id, name, start_lat, start_lng, start_name, end_lat, end_lng, end_name "
            "FROM saved_routes WHERE id = ?",
            (slot_id,)
        )
        row = cursor.fetchone()
        return self._row_to_slot(row) if row else None

    def set(self, slot_id: int, start: NamedLocation, end: NamedLocation) -> bool:
        """Fill a slot. Returns False for ids outside the available slots."""
        if not self.valid_id(slot_id):
            return False
        self.conn.execute("""
            UPDATE saved_routes SET
                start_lat = ?, start_lng = ?, start_name = ?,
                end_lat = ?, end_lng = ?, end_name = ?,
                updated_at = ?
            WHERE id = ?
        """, (start.lat, start.lng, start.name, end.lat, end.lng, end.name,
              datetime.now().isoformat(), slot_id))
        self.conn.commit()
        return True

    def delete(self, slot_id: int) -> bool:
        """Empty a slot; the slot itself remains"""
        if not self.valid_id(slot_id):
            return False
        self.conn.execute("""
            UPDATE saved_routes SET
                start_lat = NULL, start_lng = NULL, start_name = NULL,
                end_lat = NULL, end_lng = NULL, end_name = NULL,
                updated_at = ?
            WHERE id = ?
        """, (datetime.now().isoformat(), slot_id))
        self.conn.commit()
        return True

    def all(self) -> list[NamedRouteSlot]:
        cursor = self.conn.execute(
            "SELECT id, name, start_lat, start_lng, start_name, end_lat, end_lng, end_name "
            "FROM saved_routes WHERE id <= ? ORDER BY id",
            (self.slots,)
        )
        return [self._row_to_slot(row) for row in cursor.fetchall()]

    def reset(self):
        """Empty every slot"""
        for slot_id in range(1, self.slots + 1):
            self.delete(slot_id)

    def close(self):
        self.conn.close()
