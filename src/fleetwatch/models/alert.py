"""Geofence violation and transition events."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from fleetwatch.models._base import LonLat
from fleetwatch.models.geofence import RuleKind


class ViolationKind(StrEnum):
    VIOLATION_ENTER = "violation_enter"
    VIOLATION_EXIT = "violation_exit"


class TransitionKind(StrEnum):
    """Every containment change, violating or not."""

    ENTER = "enter"
    EXIT = "exit"
    VIOLATION_ENTER = "violation_enter"
    VIOLATION_EXIT = "violation_exit"


class ViolationEvent(BaseModel):
    """A de-duplicated geofence rule violation, ready to be alerted on.

    Parameters
    ----------
    vehicle_id : str
        Offending vehicle.
    geofence_id : str
        Geofence whose rule was broken.
    kind : ViolationKind
        ``violation_enter`` for FORBIDDEN, ``violation_exit`` for STAY_IN.
    message : str
        Human-readable description for notifications.
    position : LonLat
        Position that triggered the violation.
    location : str
        ``position`` rendered as ``"lat, lon"``.
    timestamp : datetime
        Evaluation time (UTC).
    """

    model_config = ConfigDict(frozen=True)

    vehicle_id: str
    geofence_id: str
    kind: ViolationKind
    message: str
    position: LonLat
    location: str
    timestamp: datetime

    def to_alert_payload(self) -> dict[str, Any]:
        """Build the ``data`` object of an outbound ``alert`` message."""
        return {
            "vehicleId": self.vehicle_id,
            "alertType": self.kind.value,
            "alertMessage": self.message,
            "location": self.location,
            "timestamp": self.timestamp.isoformat(),
        }


class GeofenceTransition(BaseModel):
    """Informational boundary crossing, including STANDARD geofences."""

    model_config = ConfigDict(frozen=True)

    vehicle_id: str
    geofence_id: str
    kind: TransitionKind
    rule_kind: RuleKind
    position: LonLat
    timestamp: datetime

    @property
    def is_violation(self) -> bool:
        return self.kind in (TransitionKind.VIOLATION_ENTER, TransitionKind.VIOLATION_EXIT)
