from __future__ import annotations

from datetime import UTC, datetime, timedelta

from fleetwatch.models import Geofence, TelemetrySample, Vehicle
from fleetwatch.state.store import FleetStore


def _dt(minutes: int = 0) -> datetime:
    return datetime(2026, 1, 1, 12, 0, tzinfo=UTC) + timedelta(minutes=minutes)


def _sample(minutes: int, *, lat: float | None = 52.5, lon: float | None = 13.4, speed: float = 0.0) -> TelemetrySample:
    return TelemetrySample(device_id="d1", timestamp=_dt(minutes), latitude=lat, longitude=lon, speed=speed)


def _geofence(geofence_id: str) -> Geofence:
    return Geofence.model_validate(
        {
            "id": geofence_id,
            "ruleKind": "FORBIDDEN",
            "geometry": {"kind": "circle", "center": [0, 0], "radius": 100},
        }
    )


def test_newest_timestamp_wins_regardless_of_arrival_order() -> None:
    store = FleetStore()

    assert store.apply_sample(_sample(5, speed=50.0))
    assert not store.apply_sample(_sample(1, speed=10.0))

    latest = store.latest_sample("d1")
    assert latest is not None
    assert latest.speed == 50.0


def test_batch_order_does_not_change_outcome() -> None:
    samples = [_sample(3, speed=3.0), _sample(1, speed=1.0), _sample(2, speed=2.0)]
    forward = FleetStore()
    backward = FleetStore()

    forward.apply_samples(samples)
    backward.apply_samples(reversed(samples))

    assert forward.samples == backward.samples
    assert forward.samples["d1"].speed == 3.0


def test_equal_timestamp_is_treated_as_duplicate() -> None:
    store = FleetStore()
    store.apply_sample(_sample(0, speed=1.0))

    assert not store.apply_sample(_sample(0, speed=99.0))
    assert store.samples["d1"].speed == 1.0


def test_positionless_sample_never_displaces_positioned_one() -> None:
    store = FleetStore()
    store.apply_sample(_sample(0))

    assert not store.apply_sample(_sample(1, lat=None, lon=None))
    assert store.samples["d1"].position is not None

    # A newer positioned sample still goes through.
    assert store.apply_sample(_sample(2, lat=52.6))


def test_positionless_samples_replace_each_other_by_time() -> None:
    store = FleetStore()
    store.apply_sample(_sample(0, lat=None, lon=None, speed=1.0))

    assert store.apply_sample(_sample(1, lat=None, lon=None, speed=2.0))
    assert store.samples["d1"].speed == 2.0


def test_replace_vehicles_keeps_order_and_drops_missing() -> None:
    store = FleetStore()
    store.replace_vehicles([Vehicle(id="a"), Vehicle(id="b")])
    store.replace_vehicles([Vehicle(id="c"), Vehicle(id="a")])

    assert [v.id for v in store.vehicles] == ["c", "a"]
    assert store.get_vehicle("b") is None


def test_upsert_vehicle_replaces_whole_record() -> None:
    store = FleetStore()
    store.replace_vehicles([Vehicle(id="a", name="Old", assigned_geofence_id="g1")])

    store.upsert_vehicles([Vehicle(id="a", name="New")])

    vehicle = store.get_vehicle("a")
    assert vehicle is not None
    assert vehicle.name == "New"
    assert vehicle.assigned_geofence_id is None


def test_geofence_upsert_and_remove() -> None:
    store = FleetStore()
    store.replace_geofences([_geofence("g1"), _geofence("g2")])

    assert store.upsert_geofences([_geofence("g3")]) == 1
    assert store.remove_geofences(["g1", "missing"]) == 1
    assert sorted(store.geofences) == ["g2", "g3"]
    assert store.get_geofence(None) is None


def test_views_are_copies() -> None:
    store = FleetStore()
    store.apply_sample(_sample(0))

    store.samples.clear()
    store.geofences["x"] = _geofence("x")

    assert "d1" in store.samples
    assert store.get_geofence("x") is None
