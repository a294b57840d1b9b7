"""Vehicle roster model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from fleetwatch.models._base import FleetBaseModel, coerce_id, coerce_optional_id


class Vehicle(FleetBaseModel):
    """A vehicle from the roster.

    Identity (``id``) is stable for the session lifetime; roster syncs
    replace the whole record by id.
    """

    id: str = Field(validation_alias=AliasChoices("id", "vehicleId", "vehicle_id"))
    """Vehicle identifier."""
    telemetry_device_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "telemetryDeviceId",
            "telemetry_device_id",
            "deviceId",
            "device_id",
            "gpsId",
            "gps_id",
        ),
    )
    """Id of the tracking device whose samples belong to this vehicle."""
    assigned_geofence_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "assignedGeofenceId",
            "assigned_geofence_id",
            "geofenceId",
            "geofence_id",
        ),
    )
    """Geofence this vehicle is evaluated against, if any."""
    name: str = Field(default="", validation_alias=AliasChoices("name", "vehicleName"))
    license_plate: str = Field(default="", validation_alias=AliasChoices("licensePlate", "license_plate"))

    @property
    def display_name(self) -> str:
        return self.name or self.license_plate or f"Vehicle {self.id}"

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return coerce_id(value)

    @field_validator("telemetry_device_id", "assigned_geofence_id", mode="before")
    @classmethod
    def _coerce_optional_ids(cls, value: Any) -> str | None:
        return coerce_optional_id(value)

    @field_validator("name", "license_plate", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()
