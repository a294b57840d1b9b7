"""State/store layer.

This package is the single source of truth for the roster, the newest
telemetry sample per device, and the geofence set. Only the store merges
incoming data; everything downstream is recomputed from it.
"""

from fleetwatch.state.store import FleetStore

__all__ = ["FleetStore"]
