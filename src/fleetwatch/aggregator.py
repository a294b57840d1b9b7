"""Fuse the vehicle roster with the newest telemetry into snapshots."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta

from fleetwatch._constants import (
    MOVING_SPEED_THRESHOLD,
    NO_GPS_LOCATION,
    ONLINE_THRESHOLD_SECONDS,
    format_location,
)
from fleetwatch.models.snapshot import FleetSummary, OperationalStatus, VehicleSnapshot
from fleetwatch.models.telemetry import TelemetrySample
from fleetwatch.models.vehicle import Vehicle


class TelemetryAggregator:
    """Project ``(roster, samples, now)`` into :class:`VehicleSnapshot` objects.

    The aggregator is stateless: building snapshots twice from the same
    inputs and the same ``now`` yields equal results.
    """

    def __init__(
        self,
        *,
        online_threshold: timedelta = timedelta(seconds=ONLINE_THRESHOLD_SECONDS),
        moving_speed_threshold: float = MOVING_SPEED_THRESHOLD,
    ) -> None:
        self._online_threshold = online_threshold
        self._moving_speed_threshold = moving_speed_threshold

    def is_online(self, sample: TelemetrySample | None, now: datetime) -> bool:
        """A vehicle is online when its newest sample is at most the threshold old."""
        if sample is None:
            return False
        return now - sample.timestamp <= self._online_threshold

    def derive_status(self, sample: TelemetrySample | None, now: datetime) -> OperationalStatus:
        if not self.is_online(sample, now):
            return OperationalStatus.OFFLINE
        assert sample is not None  # noqa: S101
        speed = sample.speed if sample.speed is not None else 0.0
        if speed > self._moving_speed_threshold:
            return OperationalStatus.MOVING
        return OperationalStatus.PARKED

    def build_snapshot(self, vehicle: Vehicle, sample: TelemetrySample | None, now: datetime) -> VehicleSnapshot:
        position = sample.position if sample is not None else None
        return VehicleSnapshot(
            vehicle=vehicle,
            sample=sample,
            online=self.is_online(sample, now),
            status=self.derive_status(sample, now),
            position=position,
            location=format_location(position.lon, position.lat) if position is not None else NO_GPS_LOCATION,
        )

    def build_snapshots(
        self,
        vehicles: Iterable[Vehicle],
        samples: Mapping[str, TelemetrySample],
        now: datetime,
    ) -> list[VehicleSnapshot]:
        """One snapshot per roster vehicle, in roster order.

        Vehicles whose device id is unknown (or missing) simply have no
        sample and come out offline.
        """
        snapshots: list[VehicleSnapshot] = []
        for vehicle in vehicles:
            device_id = vehicle.telemetry_device_id
            sample = samples.get(device_id) if device_id is not None else None
            snapshots.append(self.build_snapshot(vehicle, sample, now))
        return snapshots

    @staticmethod
    def summarize(snapshots: Iterable[VehicleSnapshot]) -> FleetSummary:
        """Fleet headline numbers: status counts, mean moving speed, mean fuel."""
        items = list(snapshots)
        online = [snap for snap in items if snap.online]
        moving = [snap for snap in online if snap.status == OperationalStatus.MOVING]
        parked = [snap for snap in online if snap.status == OperationalStatus.PARKED]

        speeds = [snap.speed or 0.0 for snap in moving]
        fuels = [
            snap.sample.fuel_level
            for snap in online
            if snap.sample is not None and snap.sample.fuel_level is not None
        ]

        return FleetSummary(
            total=len(items),
            online=len(online),
            moving=len(moving),
            parked=len(parked),
            offline=len(items) - len(online),
            average_speed=sum(speeds) / len(speeds) if speeds else 0.0,
            average_fuel=sum(fuels) / len(fuels) if fuels else None,
        )
