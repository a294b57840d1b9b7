"""fleetwatch - Realtime fleet telemetry fusion and geofence violation alerts."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetwatch")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetwatch.aggregator import TelemetryAggregator
from fleetwatch.config import FleetwatchConfig
from fleetwatch.detector import DetectionResult, TrackingState, ViolationDetector
from fleetwatch.exceptions import (
    FleetwatchConfigError,
    FleetwatchError,
    FleetwatchProtocolError,
    FleetwatchServerError,
    FleetwatchTransportError,
)
from fleetwatch.geometry import haversine_distance, is_inside_circle, is_inside_geofence, is_inside_polygon
from fleetwatch.link import LinkConnection, LinkState, RealtimeLink
from fleetwatch.models import (
    CircleGeometry,
    FleetSummary,
    Geofence,
    GeofenceTransition,
    GeometryKind,
    LonLat,
    OperationalStatus,
    PolygonGeometry,
    RuleKind,
    TelemetrySample,
    TransitionKind,
    Vehicle,
    VehicleSnapshot,
    ViolationEvent,
    ViolationKind,
)
from fleetwatch.monitor import FleetMonitor
from fleetwatch.state import FleetStore

__all__ = [
    "CircleGeometry",
    "DetectionResult",
    "FleetMonitor",
    "FleetStore",
    "FleetSummary",
    "FleetwatchConfig",
    "FleetwatchConfigError",
    "FleetwatchError",
    "FleetwatchProtocolError",
    "FleetwatchServerError",
    "FleetwatchTransportError",
    "Geofence",
    "GeofenceTransition",
    "GeometryKind",
    "LinkConnection",
    "LinkState",
    "LonLat",
    "OperationalStatus",
    "PolygonGeometry",
    "RealtimeLink",
    "RuleKind",
    "TelemetryAggregator",
    "TelemetrySample",
    "TrackingState",
    "TransitionKind",
    "Vehicle",
    "VehicleSnapshot",
    "ViolationDetector",
    "ViolationEvent",
    "ViolationKind",
    "__version__",
    "haversine_distance",
    "is_inside_circle",
    "is_inside_geofence",
    "is_inside_polygon",
]
