"""
In-memory implementation of the persistence API contract.

Used by the development server when no API base URL is configured, and by
tests. Records are scoped by owning user; a record owned by another user
is reported as not found, the same as a missing one.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import copy
import itertools
import logging
import threading

from enviro_gis.errors import NetworkError, NotFoundError, ValidationError
from enviro_gis.models.data_models import (
    REQUIRED_READING_FIELDS,
    READING_TYPES,
    Bounds,
    LayerType,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


class InMemoryBackend:
    """Location and shape records held in process memory.

    Args:
        users: Optional token -> user id mapping. Tokens not in the mapping
            are used as the user id directly.
    """

    def __init__(self, users: Optional[Dict[str, str]] = None) -> None:
        self._users = dict(users or {})
        self._locations: Dict[str, Dict[str, Any]] = {}
        self._shapes: Dict[str, Dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _user(self, token: str) -> str:
        if not token:
            raise NetworkError("Unauthorized", status=401)
        return self._users.get(token, token)

    def _next_id(self) -> str:
        return str(next(self._ids))

    # ═══════════════════════════════════════════════════════════════════════
    # 📍 LOCATIONS
    # ═══════════════════════════════════════════════════════════════════════

    def list_locations(self, token: str) -> List[Dict[str, Any]]:
        user_id = self._user(token)
        with self._lock:
            return [
                copy.deepcopy(rec)
                for rec in self._locations.values()
                if rec["userId"] == user_id
            ]

    def create_location(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        user_id = self._user(token)
        if not payload.get("name") or payload.get("latitude") is None or payload.get("longitude") is None:
            raise ValidationError("Missing required fields: name, latitude, longitude")
        try:
            layer_type = LayerType.from_string(payload.get("layerType", "co2"))
        except ValueError as e:
            raise ValidationError(str(e)) from e
        for name in REQUIRED_READING_FIELDS[layer_type]:
            if payload.get(name) is None:
                raise ValidationError(f"{name} is required for {layer_type.value} layer")

        record = copy.deepcopy(payload)
        unit = READING_TYPES[layer_type].unit
        if unit is not None:
            record["unit"] = unit
        with self._lock:
            stamp = _now()
            record.update(
                {
                    "id": self._next_id(),
                    "userId": user_id,
                    "layerType": layer_type.value,
                    "category": payload.get("category") or "monitoring_station",
                    "createdAt": stamp,
                    "updatedAt": stamp,
                }
            )
            self._locations[record["id"]] = record
        logger.info(f"✅ Created {layer_type.value} location {record['id']}")
        return copy.deepcopy(record)

    def update_location(
        self, token: str, location_id: str, partial: Dict[str, Any]
    ) -> Dict[str, Any]:
        user_id = self._user(token)
        with self._lock:
            record = self._owned(self._locations, location_id, user_id, "Location")
            record.update({k: v for k, v in partial.items() if k not in ("id", "userId", "createdAt")})
            record["updatedAt"] = _now()
            return copy.deepcopy(record)

    def delete_location(self, token: str, location_id: str) -> None:
        user_id = self._user(token)
        with self._lock:
            self._owned(self._locations, location_id, user_id, "Location")
            del self._locations[location_id]

    # ═══════════════════════════════════════════════════════════════════════
    # 🔷 SHAPES
    # ═══════════════════════════════════════════════════════════════════════

    def list_shapes(self, token: str) -> List[Dict[str, Any]]:
        user_id = self._user(token)
        with self._lock:
            return [
                copy.deepcopy(rec) for rec in self._shapes.values() if rec["userId"] == user_id
            ]

    def create_shape(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        user_id = self._user(token)
        geometry = payload.get("geometry")
        if not payload.get("name") or not isinstance(geometry, dict):
            raise ValidationError("Missing required fields: name, geometry")

        record = copy.deepcopy(payload)
        if not record.get("bounds"):
            bounds = Bounds.from_geometry(geometry)
            record["bounds"] = bounds.to_dict() if bounds else None
        with self._lock:
            stamp = _now()
            record.update(
                {"id": self._next_id(), "userId": user_id, "createdAt": stamp, "updatedAt": stamp}
            )
            self._shapes[record["id"]] = record
        logger.info(f"✅ Created shape {record['id']} ({record.get('shapeType')})")
        return copy.deepcopy(record)

    def update_shape(self, token: str, shape_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        user_id = self._user(token)
        with self._lock:
            record = self._owned(self._shapes, shape_id, user_id, "Shape")
            record.update({k: v for k, v in partial.items() if k not in ("id", "userId", "createdAt")})
            if "geometry" in partial and "bounds" not in partial:
                bounds = Bounds.from_geometry(record["geometry"])
                record["bounds"] = bounds.to_dict() if bounds else None
            record["updatedAt"] = _now()
            return copy.deepcopy(record)

    def delete_shape(self, token: str, shape_id: str) -> None:
        user_id = self._user(token)
        with self._lock:
            self._owned(self._shapes, shape_id, user_id, "Shape")
            del self._shapes[shape_id]

    @staticmethod
    def _owned(
        table: Dict[str, Dict[str, Any]], record_id: str, user_id: str, label: str
    ) -> Dict[str, Any]:
        record = table.get(str(record_id))
        if record is None or record["userId"] != user_id:
            raise NotFoundError(f"{label} not found")
        return record
