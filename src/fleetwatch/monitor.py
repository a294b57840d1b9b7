"""Fleet monitor: store → aggregator → detector pipeline behind a realtime link."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import aiohttp

from fleetwatch.aggregator import TelemetryAggregator
from fleetwatch.config import FleetwatchConfig
from fleetwatch.detector import DetectionResult, ViolationDetector
from fleetwatch.exceptions import FleetwatchServerError
from fleetwatch.ingestion.messages import (
    MessageType,
    parse_bulk_snapshot,
    parse_geofence_change,
    parse_samples,
    parse_server_error,
    parse_vehicles,
)
from fleetwatch.link import ConnectFactory, LinkState, RealtimeLink
from fleetwatch.models.alert import GeofenceTransition, ViolationEvent
from fleetwatch.models.snapshot import FleetSummary, VehicleSnapshot
from fleetwatch.state.store import FleetStore

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FleetMonitor:
    """Live fleet view with geofence violation alerts.

    Usage::

        async with FleetMonitor(config, on_violation=print) as monitor:
            await monitor.wait_connected()
            ...

    Every inbound roster, telemetry or geofence message updates the
    store and re-runs the whole pipeline synchronously, so callbacks
    always observe a consistent view. Callback exceptions are logged
    and never interrupt processing.
    """

    def __init__(
        self,
        config: FleetwatchConfig,
        *,
        clock: Callable[[], datetime] = _utcnow,
        connect: ConnectFactory | None = None,
        session: aiohttp.ClientSession | None = None,
        on_snapshots: Callable[[list[VehicleSnapshot]], None] | None = None,
        on_violation: Callable[[ViolationEvent], None] | None = None,
        on_transition: Callable[[GeofenceTransition], None] | None = None,
        on_state_change: Callable[[LinkState], None] | None = None,
        on_server_error: Callable[[FleetwatchServerError], None] | None = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._store = FleetStore()
        self._aggregator = TelemetryAggregator(
            online_threshold=timedelta(seconds=config.online_threshold),
            moving_speed_threshold=config.moving_speed_threshold,
        )
        self._detector = ViolationDetector(cooldown=timedelta(seconds=config.alert_cooldown))
        self._snapshots: list[VehicleSnapshot] = []

        self._on_snapshots = on_snapshots
        self._on_violation = on_violation
        self._on_transition = on_transition
        self._on_state_change = on_state_change
        self._on_server_error = on_server_error

        self._link = RealtimeLink(
            config,
            on_message=self.process_message,
            on_state_change=self._handle_state_change,
            on_server_error=self._handle_server_error,
            connect=connect,
            session=session,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetMonitor:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        await self._link.open()

    async def stop(self) -> None:
        await self._link.close()

    async def wait_connected(self, timeout: float | None = None) -> bool:
        return await self._link.wait_connected(timeout)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def config(self) -> FleetwatchConfig:
        return self._config

    @property
    def store(self) -> FleetStore:
        return self._store

    @property
    def detector(self) -> ViolationDetector:
        return self._detector

    @property
    def link(self) -> RealtimeLink:
        return self._link

    @property
    def state(self) -> LinkState:
        return self._link.state

    @property
    def snapshots(self) -> list[VehicleSnapshot]:
        return list(self._snapshots)

    def summary(self) -> FleetSummary:
        return self._aggregator.summarize(self._snapshots)

    def refresh(self) -> bool:
        """Ask the server for a fresh bulk snapshot (dropped while disconnected)."""
        return self._link.refresh()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def process_message(self, message: dict[str, Any]) -> DetectionResult | None:
        """Apply one decoded inbound message.

        Returns the detection result when the message changed the fleet
        state and the pipeline ran, ``None`` otherwise.
        """
        msg_type = message.get("type")
        data = message.get("data")

        match msg_type:
            case MessageType.VEHICLE_UPDATE | MessageType.VEHICLES:
                vehicles = parse_vehicles(data)
                if isinstance(data, list):
                    self._store.replace_vehicles(vehicles)
                else:
                    self._store.upsert_vehicles(vehicles)
            case MessageType.VEHICLE_DATA:
                accepted = self._store.apply_samples(parse_samples(data))
                _logger.debug("Applied %d telemetry samples", accepted)
            case MessageType.GEOFENCE_UPDATE:
                change = parse_geofence_change(message)
                self._store.upsert_geofences(change.upserts)
                self._store.remove_geofences(change.deleted_ids)
            case MessageType.CONNECTION:
                if data is None:
                    _logger.debug("Connection acknowledged without initial state")
                    return None
                bulk = parse_bulk_snapshot(data)
                self._store.replace_vehicles(bulk.vehicles)
                self._store.replace_geofences(bulk.geofences)
                self._store.apply_samples(bulk.samples)
                _logger.info(
                    "Initial state: %d vehicles, %d samples, %d geofences",
                    len(bulk.vehicles),
                    len(bulk.samples),
                    len(bulk.geofences),
                )
            case MessageType.PONG:
                return None
            case MessageType.ERROR:
                self._handle_server_error(parse_server_error(message))
                return None
            case _:
                _logger.debug("Ignoring message of unknown type %r", msg_type)
                return None

        return self.recompute()

    def recompute(self) -> DetectionResult:
        """Rebuild snapshots, run detection and publish the results."""
        now = self._clock()
        self._snapshots = self._aggregator.build_snapshots(self._store.vehicles, self._store.samples, now)
        result = self._detector.evaluate(self._snapshots, self._store.geofences, now)

        self._emit(self._on_snapshots, self.snapshots, label="on_snapshots")
        for transition in result.transitions:
            self._emit(self._on_transition, transition, label="on_transition")
        for violation in result.violations:
            _logger.info("%s at %s", violation.message, violation.location)
            self._emit(self._on_violation, violation, label="on_violation")
            self._link.send_alert(violation)
        return result

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _handle_state_change(self, state: LinkState) -> None:
        self._emit(self._on_state_change, state, label="on_state_change")

    def _handle_server_error(self, error: FleetwatchServerError) -> None:
        self._emit(self._on_server_error, error, label="on_server_error")

    @staticmethod
    def _emit(callback: Callable[[Any], None] | None, value: Any, *, label: str) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception:
            _logger.warning("%s callback failed", label, exc_info=True)
