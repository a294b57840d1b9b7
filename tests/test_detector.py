from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from fleetwatch.aggregator import TelemetryAggregator
from fleetwatch.detector import TrackingState, ViolationDetector
from fleetwatch.models import (
    Geofence,
    TelemetrySample,
    TransitionKind,
    Vehicle,
    VehicleSnapshot,
    ViolationEvent,
    ViolationKind,
)

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

INSIDE = (0.0, 0.0)
OUTSIDE = (0.0, 0.02)  # ~2.2 km north of the center


def _geofence(
    geofence_id: str = "g1",
    rule: str = "FORBIDDEN",
    *,
    active: bool = True,
    center: tuple[float, float] = (0.0, 0.0),
) -> Geofence:
    return Geofence.model_validate(
        {
            "id": geofence_id,
            "name": "Depot",
            "ruleKind": rule,
            "active": active,
            "geometry": {"kind": "circle", "center": list(center), "radius": 1000},
        }
    )


def _snapshot(
    position: tuple[float, float] | None,
    now: datetime,
    *,
    geofence_id: str | None = "g1",
    age: timedelta = timedelta(0),
) -> VehicleSnapshot:
    vehicle = Vehicle(id="v1", telemetry_device_id="d1", assigned_geofence_id=geofence_id, name="Truck 1")
    lon, lat = position if position is not None else (None, None)
    sample = TelemetrySample(device_id="d1", timestamp=now - age, latitude=lat, longitude=lon, speed=10.0)
    return TelemetryAggregator().build_snapshot(vehicle, sample, now)


def _run(
    detector: ViolationDetector,
    geofences: list[Geofence],
    steps: list[tuple[int, tuple[float, float] | None]],
) -> list[ViolationEvent]:
    """Feed (minute offset, position) steps; return all violations."""
    fences = {g.id: g for g in geofences}
    violations: list[ViolationEvent] = []
    for minute, position in steps:
        now = T0 + timedelta(minutes=minute)
        violations.extend(detector.evaluate([_snapshot(position, now)], fences, now).violations)
    return violations


def test_forbidden_zone_alerts_once_on_entry() -> None:
    detector = ViolationDetector()

    violations = _run(detector, [_geofence()], [(0, OUTSIDE), (1, OUTSIDE), (2, INSIDE), (3, INSIDE)])

    assert len(violations) == 1
    assert violations[0].kind == ViolationKind.VIOLATION_ENTER
    assert violations[0].timestamp == T0 + timedelta(minutes=2)
    assert detector.tracking_state("v1") == TrackingState.INSIDE


def test_stay_in_zone_alerts_on_exit() -> None:
    detector = ViolationDetector()

    violations = _run(detector, [_geofence(rule="STAY_IN")], [(0, INSIDE), (1, OUTSIDE)])

    assert len(violations) == 1
    event = violations[0]
    assert event.kind == ViolationKind.VIOLATION_EXIT
    assert event.vehicle_id == "v1"
    assert event.geofence_id == "g1"
    assert event.message == "Violation: Truck 1 left geofence Depot (STAY_IN)"
    assert event.location == "0.0200, 0.0000"
    assert event.position == OUTSIDE


def test_vehicle_first_seen_inside_forbidden_zone_alerts() -> None:
    violations = _run(ViolationDetector(), [_geofence()], [(0, INSIDE)])

    assert [v.kind for v in violations] == [ViolationKind.VIOLATION_ENTER]


def test_vehicle_first_seen_outside_stay_in_zone_is_silent() -> None:
    assert _run(ViolationDetector(), [_geofence(rule="STAY_IN")], [(0, OUTSIDE), (1, OUTSIDE)]) == []


def test_cooldown_suppresses_oscillation() -> None:
    detector = ViolationDetector()

    violations = _run(
        detector,
        [_geofence()],
        [(0, INSIDE), (1, OUTSIDE), (2, INSIDE), (3, OUTSIDE), (4, INSIDE)],
    )

    assert len(violations) == 1
    assert detector.last_alert_at("v1", ViolationKind.VIOLATION_ENTER) == T0


def test_alert_repeats_after_cooldown_window() -> None:
    violations = _run(
        ViolationDetector(),
        [_geofence()],
        [(0, INSIDE), (1, OUTSIDE), (2, INSIDE), (3, OUTSIDE), (6, INSIDE)],
    )

    assert [v.timestamp for v in violations] == [T0, T0 + timedelta(minutes=6)]


def test_alert_exactly_at_cooldown_boundary_is_suppressed() -> None:
    detector = ViolationDetector(cooldown=timedelta(minutes=5))

    violations = _run(detector, [_geofence()], [(0, INSIDE), (1, OUTSIDE), (5, INSIDE)])

    assert len(violations) == 1


def test_standard_zone_reports_transitions_but_no_violations() -> None:
    detector = ViolationDetector()
    fences = {"g1": _geofence(rule="STANDARD")}

    entered = detector.evaluate([_snapshot(INSIDE, T0)], fences, T0)
    left = detector.evaluate([_snapshot(OUTSIDE, T0)], fences, T0)

    assert entered.violations == [] and left.violations == []
    assert [t.kind for t in entered.transitions] == [TransitionKind.ENTER]
    assert [t.kind for t in left.transitions] == [TransitionKind.EXIT]
    assert not left.transitions[0].is_violation


def test_suppressed_violation_still_reports_transition() -> None:
    detector = ViolationDetector()
    fences = {"g1": _geofence()}
    detector.evaluate([_snapshot(INSIDE, T0)], fences, T0)
    detector.evaluate([_snapshot(OUTSIDE, T0)], fences, T0)

    result = detector.evaluate([_snapshot(INSIDE, T0)], fences, T0)

    assert result.violations == []
    assert [t.kind for t in result.transitions] == [TransitionKind.VIOLATION_ENTER]


@pytest.mark.parametrize(
    "snapshot",
    [
        _snapshot(INSIDE, T0, geofence_id=None),
        _snapshot(INSIDE, T0, geofence_id="unknown"),
        _snapshot(INSIDE, T0, age=timedelta(minutes=30)),
        _snapshot(None, T0),
    ],
)
def test_unevaluable_vehicle_is_skipped_and_reset(snapshot: VehicleSnapshot) -> None:
    detector = ViolationDetector()
    fences = {"g1": _geofence(rule="STAY_IN")}
    detector.evaluate([_snapshot(INSIDE, T0)], fences, T0)
    assert detector.tracking_state("v1") == TrackingState.INSIDE

    result = detector.evaluate([snapshot], fences, T0)

    assert result.violations == [] and result.transitions == []
    assert detector.tracking_state("v1") == TrackingState.NO_GEOFENCE


def test_inactive_geofence_is_not_evaluated() -> None:
    assert _run(ViolationDetector(), [_geofence(active=False)], [(0, INSIDE), (1, OUTSIDE), (2, INSIDE)]) == []


def test_reassignment_restarts_tracking() -> None:
    detector = ViolationDetector()
    fences = {"g1": _geofence("g1"), "g2": _geofence("g2", center=(1, 1))}
    detector.evaluate([_snapshot(INSIDE, T0, geofence_id="g1")], fences, T0)
    assert detector.tracking_state("v1") == TrackingState.INSIDE

    result = detector.evaluate([_snapshot(INSIDE, T0, geofence_id="g2")], fences, T0)

    # Outside g2 from a fresh state: no crossing at all.
    assert result.transitions == []
    assert detector.tracking_state("v1") == TrackingState.OUTSIDE


def test_reentry_after_losing_geofence_counts_as_new_crossing() -> None:
    detector = ViolationDetector()
    fences = {"g1": _geofence()}
    detector.evaluate([_snapshot(INSIDE, T0)], fences, T0)
    detector.evaluate([_snapshot(INSIDE, T0, geofence_id=None)], fences, T0)

    later = T0 + timedelta(minutes=10)
    result = detector.evaluate([_snapshot(INSIDE, later)], fences, later)

    assert [v.kind for v in result.violations] == [ViolationKind.VIOLATION_ENTER]


def test_cooldown_is_keyed_by_vehicle_and_kind_not_geofence() -> None:
    detector = ViolationDetector()
    fences = {"g1": _geofence("g1"), "g2": _geofence("g2")}
    detector.evaluate([_snapshot(INSIDE, T0, geofence_id="g1")], fences, T0)

    result = detector.evaluate([_snapshot(INSIDE, T0, geofence_id="g2")], fences, T0)

    assert result.violations == []
    assert [t.geofence_id for t in result.transitions] == ["g2"]


def test_vehicles_dropped_from_roster_are_forgotten() -> None:
    detector = ViolationDetector()
    detector.evaluate([_snapshot(INSIDE, T0)], {"g1": _geofence()}, T0)

    detector.evaluate([], {"g1": _geofence()}, T0)

    assert detector.tracking_state("v1") == TrackingState.NO_GEOFENCE


def test_reset_clears_cooldowns() -> None:
    detector = ViolationDetector()
    _run(detector, [_geofence()], [(0, INSIDE)])

    detector.reset()

    assert detector.last_alert_at("v1", ViolationKind.VIOLATION_ENTER) is None
    assert len(_run(detector, [_geofence()], [(1, INSIDE)])) == 1


def test_vehicles_dropped_from_roster_lose_their_cooldowns() -> None:
    detector = ViolationDetector()
    _run(detector, [_geofence()], [(0, INSIDE)])
    assert detector.last_alert_at("v1", ViolationKind.VIOLATION_ENTER) == T0

    detector.evaluate([], {"g1": _geofence()}, T0)

    assert detector.last_alert_at("v1", ViolationKind.VIOLATION_ENTER) is None
