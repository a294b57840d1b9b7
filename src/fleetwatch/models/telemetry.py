"""Telemetry sample model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from fleetwatch.ingestion.normalize import (
    is_valid_latitude,
    is_valid_longitude,
    normalize_timestamp,
    safe_float,
)
from fleetwatch.models._base import FleetBaseModel, LonLat, coerce_id


class TelemetrySample(FleetBaseModel):
    """A single timestamped reading from a tracking device.

    Coordinates that are missing, non-numeric, non-finite or out of
    range are stored as ``None``; such a sample carries no position.

    Parameters
    ----------
    device_id : str
        Tracking device id (matches ``Vehicle.telemetry_device_id``).
    timestamp : datetime
        UTC time the reading was taken.
    latitude : float or None
        Latitude in degrees.
    longitude : float or None
        Longitude in degrees.
    speed : float or None
        Ground speed as reported by the device.
    fuel_level : float or None
        Fuel level percentage.
    battery_level : float or None
        Battery level (percentage or volts, device dependent).
    raw : dict
        Original payload.
    """

    device_id: str = Field(
        validation_alias=AliasChoices(
            "deviceId",
            "device_id",
            "telemetryDeviceId",
            "gpsId",
            "gps_id",
        ),
    )
    timestamp: datetime = Field(validation_alias=AliasChoices("timestamp", "time", "recordedAt"))
    latitude: float | None = Field(default=None, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float | None = Field(default=None, validation_alias=AliasChoices("longitude", "lng", "lon"))
    speed: float | None = Field(default=None, validation_alias=AliasChoices("speed",))
    fuel_level: float | None = Field(default=None, validation_alias=AliasChoices("fuelLevel", "fuel_level", "fuel"))
    battery_level: float | None = Field(
        default=None,
        validation_alias=AliasChoices("batteryLevel", "battery_level", "battery"),
    )

    @property
    def position(self) -> LonLat | None:
        """The sample position, or ``None`` when coordinates are absent."""
        if self.latitude is None or self.longitude is None:
            return None
        return LonLat(self.longitude, self.latitude)

    @field_validator("device_id", mode="before")
    @classmethod
    def _coerce_device_id(cls, value: Any) -> str:
        return coerce_id(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime:
        parsed = normalize_timestamp(value)
        if parsed is None:
            raise ValueError(f"invalid timestamp: {value!r}")
        return parsed

    @field_validator("latitude", mode="before")
    @classmethod
    def _coerce_latitude(cls, value: Any) -> float | None:
        parsed = safe_float(value)
        return parsed if is_valid_latitude(parsed) else None

    @field_validator("longitude", mode="before")
    @classmethod
    def _coerce_longitude(cls, value: Any) -> float | None:
        parsed = safe_float(value)
        return parsed if is_valid_longitude(parsed) else None

    @field_validator("speed", "fuel_level", "battery_level", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)
