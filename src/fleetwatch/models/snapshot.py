"""Derived per-vehicle operational snapshot and fleet statistics."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from fleetwatch.models._base import LonLat
from fleetwatch.models.telemetry import TelemetrySample
from fleetwatch.models.vehicle import Vehicle


class OperationalStatus(StrEnum):
    MOVING = "moving"
    PARKED = "parked"
    OFFLINE = "offline"


class VehicleSnapshot(BaseModel):
    """A vehicle fused with its newest telemetry sample.

    Recomputed from scratch on every update; holds no state beyond the
    sample it was built from.
    """

    model_config = ConfigDict(frozen=True)

    vehicle: Vehicle
    sample: TelemetrySample | None = None
    online: bool = False
    status: OperationalStatus = OperationalStatus.OFFLINE
    position: LonLat | None = None
    location: str = ""

    @property
    def vehicle_id(self) -> str:
        return self.vehicle.id

    @property
    def speed(self) -> float | None:
        return self.sample.speed if self.sample is not None else None


class FleetSummary(BaseModel):
    """Dashboard headline numbers for a set of snapshots."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    online: int = 0
    moving: int = 0
    parked: int = 0
    offline: int = 0
    average_speed: float = 0.0
    """Mean speed over moving vehicles."""
    average_fuel: float | None = None
    """Mean fuel level over online vehicles that report one."""
