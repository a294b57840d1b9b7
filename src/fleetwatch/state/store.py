"""Deterministic in-memory fleet store.

This is the only component allowed to merge incoming roster, telemetry
and geofence updates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from fleetwatch.models.geofence import Geofence
from fleetwatch.models.telemetry import TelemetrySample
from fleetwatch.models.vehicle import Vehicle
from fleetwatch.state.policy import should_accept_sample

_logger = logging.getLogger(__name__)


class FleetStore:
    """In-memory store for the roster, samples and geofences.

    Vehicles and geofences are replaced wholesale by id, never patched
    field by field. Samples are kept per device, newest timestamp wins.
    Given the same sequence of calls the store always ends in the same
    state.
    """

    def __init__(self) -> None:
        self._vehicles: dict[str, Vehicle] = {}
        self._samples: dict[str, TelemetrySample] = {}
        self._geofences: dict[str, Geofence] = {}

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def replace_vehicles(self, vehicles: Iterable[Vehicle]) -> None:
        """Replace the whole roster. Insertion order is the display order."""
        roster: dict[str, Vehicle] = {}
        for vehicle in vehicles:
            roster[vehicle.id] = vehicle
        self._vehicles = roster
        _logger.debug("Roster replaced: %d vehicles", len(roster))

    def upsert_vehicles(self, vehicles: Iterable[Vehicle]) -> int:
        """Replace or insert individual vehicle records by id."""
        count = 0
        for vehicle in vehicles:
            self._vehicles[vehicle.id] = vehicle
            count += 1
        return count

    @property
    def vehicles(self) -> list[Vehicle]:
        return list(self._vehicles.values())

    def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        return self._vehicles.get(vehicle_id)

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def apply_sample(self, sample: TelemetrySample) -> bool:
        """Store *sample* if it is newer than what we hold for its device."""
        cached = self._samples.get(sample.device_id)
        if not should_accept_sample(cached, sample):
            _logger.debug(
                "Discarding stale sample device=%s ts=%s (cached ts=%s)",
                sample.device_id,
                sample.timestamp.isoformat(),
                cached.timestamp.isoformat() if cached is not None else None,
            )
            return False
        self._samples[sample.device_id] = sample
        return True

    def apply_samples(self, samples: Iterable[TelemetrySample]) -> int:
        """Apply a batch of samples in any order; returns how many were kept."""
        return sum(1 for sample in samples if self.apply_sample(sample))

    @property
    def samples(self) -> dict[str, TelemetrySample]:
        return dict(self._samples)

    def latest_sample(self, device_id: str | None) -> TelemetrySample | None:
        if device_id is None:
            return None
        return self._samples.get(device_id)

    # ------------------------------------------------------------------
    # Geofences
    # ------------------------------------------------------------------

    def replace_geofences(self, geofences: Iterable[Geofence]) -> None:
        self._geofences = {geofence.id: geofence for geofence in geofences}
        _logger.debug("Geofences replaced: %d", len(self._geofences))

    def upsert_geofences(self, geofences: Iterable[Geofence]) -> int:
        count = 0
        for geofence in geofences:
            self._geofences[geofence.id] = geofence
            count += 1
        return count

    def remove_geofences(self, geofence_ids: Iterable[str]) -> int:
        removed = 0
        for geofence_id in geofence_ids:
            if self._geofences.pop(geofence_id, None) is not None:
                removed += 1
        return removed

    @property
    def geofences(self) -> dict[str, Geofence]:
        return dict(self._geofences)

    def get_geofence(self, geofence_id: str | None) -> Geofence | None:
        if geofence_id is None:
            return None
        return self._geofences.get(geofence_id)

    def clear(self) -> None:
        self._vehicles.clear()
        self._samples.clear()
        self._geofences.clear()
