"""Data models for fleet telemetry, geofences and violations."""

from fleetwatch.models._base import Coordinate, FleetBaseModel, LonLat, parse_lonlat
from fleetwatch.models.alert import GeofenceTransition, TransitionKind, ViolationEvent, ViolationKind
from fleetwatch.models.geofence import (
    CircleGeometry,
    Geofence,
    GeofenceGeometry,
    GeometryKind,
    PolygonGeometry,
    RuleKind,
)
from fleetwatch.models.snapshot import FleetSummary, OperationalStatus, VehicleSnapshot
from fleetwatch.models.telemetry import TelemetrySample
from fleetwatch.models.vehicle import Vehicle

__all__ = [
    "CircleGeometry",
    "Coordinate",
    "FleetBaseModel",
    "FleetSummary",
    "Geofence",
    "GeofenceGeometry",
    "GeofenceTransition",
    "GeometryKind",
    "LonLat",
    "OperationalStatus",
    "PolygonGeometry",
    "RuleKind",
    "TelemetrySample",
    "TransitionKind",
    "Vehicle",
    "VehicleSnapshot",
    "ViolationEvent",
    "ViolationKind",
    "parse_lonlat",
]
