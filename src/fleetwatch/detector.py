"""Edge-triggered geofence violation detection with per-kind cooldown."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

from fleetwatch._constants import ALERT_COOLDOWN_SECONDS, format_location
from fleetwatch.geometry import is_inside_geofence
from fleetwatch.models._base import LonLat
from fleetwatch.models.alert import GeofenceTransition, TransitionKind, ViolationEvent, ViolationKind
from fleetwatch.models.geofence import Geofence, RuleKind
from fleetwatch.models.snapshot import VehicleSnapshot

_logger = logging.getLogger(__name__)

CooldownKey = tuple[str, ViolationKind]


class TrackingState(StrEnum):
    NO_GEOFENCE = "no_geofence"
    OUTSIDE = "outside"
    INSIDE = "inside"


@dataclass(slots=True)
class _Track:
    """Containment memory for one vehicle against its assigned geofence."""

    geofence_id: str
    was_inside: bool = False


@dataclass
class DetectionResult:
    violations: list[ViolationEvent] = field(default_factory=list)
    transitions: list[GeofenceTransition] = field(default_factory=list)


def _transition_kind(rule: RuleKind, entered: bool) -> TransitionKind:
    if entered:
        return TransitionKind.VIOLATION_ENTER if rule == RuleKind.FORBIDDEN else TransitionKind.ENTER
    return TransitionKind.VIOLATION_EXIT if rule == RuleKind.STAY_IN else TransitionKind.EXIT


class ViolationDetector:
    """Track inside/outside state per vehicle and emit de-duplicated violations.

    Only boundary crossings matter: a vehicle parked inside a FORBIDDEN
    zone raises one ``violation_enter`` on the way in, not one per
    sample. A cooldown keyed by ``(vehicle_id, kind)`` additionally
    absorbs rapid oscillation across the boundary.
    """

    def __init__(self, *, cooldown: timedelta = timedelta(seconds=ALERT_COOLDOWN_SECONDS)) -> None:
        self._cooldown = cooldown
        self._tracks: dict[str, _Track] = {}
        self._last_alert: dict[CooldownKey, datetime] = {}

    def tracking_state(self, vehicle_id: str) -> TrackingState:
        track = self._tracks.get(vehicle_id)
        if track is None:
            return TrackingState.NO_GEOFENCE
        return TrackingState.INSIDE if track.was_inside else TrackingState.OUTSIDE

    def last_alert_at(self, vehicle_id: str, kind: ViolationKind) -> datetime | None:
        return self._last_alert.get((vehicle_id, kind))

    def reset_vehicle(self, vehicle_id: str) -> None:
        self._tracks.pop(vehicle_id, None)

    def reset(self) -> None:
        """Forget all containment memory and cooldowns."""
        self._tracks.clear()
        self._last_alert.clear()

    def evaluate(
        self,
        snapshots: Iterable[VehicleSnapshot],
        geofences: Mapping[str, Geofence],
        now: datetime,
    ) -> DetectionResult:
        """Evaluate every snapshot against its assigned geofence.

        Tracks for vehicles no longer present in *snapshots* are dropped.
        """
        result = DetectionResult()
        seen: set[str] = set()
        for snapshot in snapshots:
            seen.add(snapshot.vehicle_id)
            geofence = geofences.get(snapshot.vehicle.assigned_geofence_id or "")
            violation, transition = self.evaluate_snapshot(snapshot, geofence, now)
            if transition is not None:
                result.transitions.append(transition)
            if violation is not None:
                result.violations.append(violation)

        for vehicle_id in [vid for vid in self._tracks if vid not in seen]:
            del self._tracks[vehicle_id]
        for key in [key for key in self._last_alert if key[0] not in seen]:
            del self._last_alert[key]
        return result

    def evaluate_snapshot(
        self,
        snapshot: VehicleSnapshot,
        geofence: Geofence | None,
        now: datetime,
    ) -> tuple[ViolationEvent | None, GeofenceTransition | None]:
        """Advance one vehicle's state machine by one snapshot."""
        vehicle_id = snapshot.vehicle_id
        position = snapshot.position

        if geofence is None or not geofence.active or not snapshot.online or position is None:
            if vehicle_id in self._tracks:
                _logger.debug("Vehicle %s no longer evaluable; clearing containment state", vehicle_id)
                del self._tracks[vehicle_id]
            return None, None

        track = self._tracks.get(vehicle_id)
        if track is None or track.geofence_id != geofence.id:
            track = _Track(geofence_id=geofence.id)
            self._tracks[vehicle_id] = track

        is_inside = is_inside_geofence(position, geofence)
        was_inside = track.was_inside
        track.was_inside = is_inside

        if is_inside == was_inside:
            return None, None

        transition = GeofenceTransition(
            vehicle_id=vehicle_id,
            geofence_id=geofence.id,
            kind=_transition_kind(geofence.rule_kind, entered=is_inside),
            rule_kind=geofence.rule_kind,
            position=position,
            timestamp=now,
        )

        kind: ViolationKind | None = None
        if geofence.rule_kind == RuleKind.FORBIDDEN and is_inside:
            kind = ViolationKind.VIOLATION_ENTER
        elif geofence.rule_kind == RuleKind.STAY_IN and not is_inside:
            kind = ViolationKind.VIOLATION_EXIT
        if kind is None:
            return None, transition

        key: CooldownKey = (vehicle_id, kind)
        last = self._last_alert.get(key)
        if last is not None and now - last <= self._cooldown:
            _logger.debug("Suppressing %s for vehicle %s (cooldown, last=%s)", kind, vehicle_id, last.isoformat())
            return None, transition

        self._last_alert[key] = now
        return self._build_violation(snapshot, geofence, kind, position, now), transition

    @staticmethod
    def _build_violation(
        snapshot: VehicleSnapshot,
        geofence: Geofence,
        kind: ViolationKind,
        position: LonLat,
        now: datetime,
    ) -> ViolationEvent:
        verb = "entered" if kind == ViolationKind.VIOLATION_ENTER else "left"
        zone = geofence.name or f"#{geofence.id}"
        message = f"Violation: {snapshot.vehicle.display_name} {verb} geofence {zone} ({geofence.rule_kind.value})"
        return ViolationEvent(
            vehicle_id=snapshot.vehicle_id,
            geofence_id=geofence.id,
            kind=kind,
            message=message,
            position=position,
            location=format_location(position.lon, position.lat, precision=4),
            timestamp=now,
        )
