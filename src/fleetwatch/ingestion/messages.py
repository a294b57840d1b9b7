"""Inbound realtime message parsing.

Translates decoded JSON messages into validated models. Every list is
parsed item by item: an item that fails validation is logged and
dropped, the rest of the batch still goes through.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from fleetwatch._redact import redact_for_log
from fleetwatch.exceptions import FleetwatchProtocolError, FleetwatchServerError
from fleetwatch.ingestion.normalize import safe_str
from fleetwatch.models.geofence import Geofence
from fleetwatch.models.telemetry import TelemetrySample
from fleetwatch.models.vehicle import Vehicle

_logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound=BaseModel)


class MessageType(StrEnum):
    VEHICLE_UPDATE = "vehicle_update"
    VEHICLE_DATA = "vehicle_data"
    GEOFENCE_UPDATE = "geofence_update"
    CONNECTION = "connection"
    PONG = "pong"
    ERROR = "error"
    # Older servers push the roster under this name.
    VEHICLES = "vehicles"


@dataclass(frozen=True)
class BulkSnapshot:
    """Initial-state payload carrying all three collections."""

    vehicles: list[Vehicle] = field(default_factory=list)
    samples: list[TelemetrySample] = field(default_factory=list)
    geofences: list[Geofence] = field(default_factory=list)


@dataclass(frozen=True)
class GeofenceChange:
    """Geofences to upsert plus ids to remove."""

    upserts: list[Geofence] = field(default_factory=list)
    deleted_ids: list[str] = field(default_factory=list)


def decode_message(frame: str | bytes) -> dict[str, Any]:
    """Decode a text frame into a message object with a ``type`` key.

    Raises :class:`FleetwatchProtocolError` for invalid JSON, non-object
    payloads, or a missing ``type`` discriminator.
    """
    text = frame.decode("utf-8", errors="replace") if isinstance(frame, bytes) else frame
    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise FleetwatchProtocolError(f"Invalid JSON frame: {exc}", raw=text[:200]) from exc
    if not isinstance(parsed, dict):
        raise FleetwatchProtocolError("Message is not a JSON object", raw=text[:200])
    msg_type = parsed.get("type")
    if not isinstance(msg_type, str) or not msg_type.strip():
        raise FleetwatchProtocolError("Message has no 'type' discriminator", raw=text[:200])
    return parsed


def _as_items(data: Any) -> list[Any]:
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


def parse_items(model: type[TModel], data: Any, *, label: str) -> list[TModel]:
    """Validate each item of *data* as *model*, skipping invalid ones."""
    parsed: list[TModel] = []
    for item in _as_items(data):
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as exc:
            _logger.warning(
                "Dropping malformed %s: %s (%d validation errors)",
                label,
                _item_ref(item),
                exc.error_count(),
            )
            _logger.debug("Malformed %s payload: %s", label, redact_for_log(item))
        except (ValueError, TypeError, OverflowError) as exc:
            _logger.warning("Dropping malformed %s: %s (%s)", label, _item_ref(item), exc)
            _logger.debug("Malformed %s payload: %s", label, redact_for_log(item))
    return parsed


def _item_ref(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("id", "vehicle_id", "vehicleId", "geofence_id", "geofenceId", "deviceId", "gps_id"):
            ref = safe_str(item.get(key))
            if ref:
                return f"{key}={ref}"
        return "<no id>"
    return f"<{type(item).__name__}>"


def parse_vehicles(data: Any) -> list[Vehicle]:
    return parse_items(Vehicle, data, label="vehicle")


def parse_samples(data: Any) -> list[TelemetrySample]:
    return parse_items(TelemetrySample, data, label="telemetry sample")


def parse_geofences(data: Any) -> list[Geofence]:
    return parse_items(Geofence, data, label="geofence")


def parse_geofence_change(message: dict[str, Any]) -> GeofenceChange:
    """Parse a ``geofence_update`` message.

    Accepted ``data`` shapes: a geofence, a list of geofences, or
    ``{"geofences": [...], "deleted": [...]}``. A message-level
    ``"event": "delete"`` treats the items as ids to remove.
    """
    data = message.get("data")
    if str(message.get("event", "")).lower() == "delete":
        return GeofenceChange(deleted_ids=_parse_ids(data))

    if isinstance(data, dict) and ("geofences" in data or "deleted" in data):
        return GeofenceChange(
            upserts=parse_geofences(data.get("geofences")),
            deleted_ids=_parse_ids(data.get("deleted")),
        )
    return GeofenceChange(upserts=parse_geofences(data))


def _parse_ids(data: Any) -> list[str]:
    ids: list[str] = []
    for item in _as_items(data):
        if isinstance(item, dict):
            item = item.get("id", item.get("geofence_id", item.get("geofenceId")))
        ref = safe_str(item)
        if ref is not None:
            ids.append(ref)
    return ids


def parse_bulk_snapshot(data: Any) -> BulkSnapshot:
    """Parse the ``connection`` initial-state payload."""
    if not isinstance(data, dict):
        _logger.warning("Ignoring initial-state payload that is not an object")
        return BulkSnapshot()

    samples_data = None
    for key in ("vehicleData", "vehicle_data", "telemetry", "samples"):
        if key in data:
            samples_data = data[key]
            break

    return BulkSnapshot(
        vehicles=parse_vehicles(data.get("vehicles")),
        samples=parse_samples(samples_data),
        geofences=parse_geofences(data.get("geofences")),
    )


def parse_server_error(message: dict[str, Any]) -> FleetwatchServerError:
    """Build the exception instance surfaced for an ``error`` message."""
    detail = message.get("error")
    if detail is None:
        detail = message.get("message")
    if detail is None:
        detail = message.get("data")

    code = ""
    if isinstance(detail, dict):
        code = safe_str(detail.get("code")) or ""
        detail = detail.get("message") or detail.get("error") or detail
    text = safe_str(detail) or "Unknown server error"
    return FleetwatchServerError(text, code=code or safe_str(message.get("code")) or "")
