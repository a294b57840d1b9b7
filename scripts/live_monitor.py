#!/usr/bin/env python3
"""Live fleet monitor for a telemetry WebSocket endpoint.

Connects with ``FleetwatchConfig.from_env()`` (``FLEETWATCH_USER_ID`` is
required), then prints:
1) link state changes,
2) a fleet summary after every pipeline run (or every vehicle with --vehicles),
3) geofence violations and, with --transitions, every boundary crossing.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
import time
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleetwatch import (  # noqa: E402
    FleetMonitor,
    FleetwatchConfig,
    FleetwatchConfigError,
    FleetwatchServerError,
    GeofenceTransition,
    LinkState,
    TelemetryAggregator,
    VehicleSnapshot,
    ViolationEvent,
)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Print live fleet status and geofence violations.",
    )
    parser.add_argument(
        "--endpoint",
        help="WebSocket URL (overrides FLEETWATCH_ENDPOINT).",
    )
    parser.add_argument(
        "--user-id",
        help="User id sent with subscribe/refresh (overrides FLEETWATCH_USER_ID).",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--vehicles",
        action="store_true",
        help="Print one line per vehicle instead of the fleet summary.",
    )
    parser.add_argument(
        "--transitions",
        action="store_true",
        help="Also print non-violating geofence enter/exit transitions.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print violations as the JSON alert payload.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args()


def _print_snapshots(snapshots: list[VehicleSnapshot], *, per_vehicle: bool) -> None:
    ts_text = time.strftime("%H:%M:%S")
    if per_vehicle:
        for snap in snapshots:
            speed = "-" if snap.speed is None else f"{snap.speed:.1f}"
            print(
                f"[monitor] {ts_text} {snap.vehicle.display_name:<20} {snap.status.value:<8} "
                f"speed={speed:<6} {snap.location}",
            )
        return

    summary = TelemetryAggregator.summarize(snapshots)
    fuel = "-" if summary.average_fuel is None else f"{summary.average_fuel:.1f}"
    print(
        f"[monitor] {ts_text} total={summary.total} online={summary.online} moving={summary.moving} "
        f"parked={summary.parked} offline={summary.offline} "
        f"avg_speed={summary.average_speed:.1f} avg_fuel={fuel}",
    )


async def _run(config: FleetwatchConfig, args: argparse.Namespace) -> int:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, stop.set)

    def on_state_change(state: LinkState) -> None:
        print(f"[monitor] link {state.value}")

    def on_violation(event: ViolationEvent) -> None:
        if args.json:
            print(json.dumps({"type": "alert", "data": event.to_alert_payload()}, ensure_ascii=False))
        else:
            print(f"[monitor] ALERT {event.message} at {event.location}")

    def on_transition(transition: GeofenceTransition) -> None:
        if args.transitions and not transition.is_violation:
            print(
                f"[monitor] {transition.vehicle_id} {transition.kind.value} "
                f"geofence {transition.geofence_id} ({transition.rule_kind.value})",
            )

    def on_server_error(error: FleetwatchServerError) -> None:
        print(f"[monitor] server error code={error.code or '-'}: {error}", file=sys.stderr)

    monitor = FleetMonitor(
        config,
        on_snapshots=lambda snaps: _print_snapshots(snaps, per_vehicle=args.vehicles),
        on_violation=on_violation,
        on_transition=on_transition,
        on_state_change=on_state_change,
        on_server_error=on_server_error,
    )

    print(f"[monitor] Connecting to {config.endpoint} as {config.user_id}...")
    async with monitor:
        timeout = args.duration if args.duration > 0 else None
        try:
            await asyncio.wait_for(stop.wait(), timeout)
        except TimeoutError:
            print(f"[monitor] Reached --duration={args.duration}s, stopping.")
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, str] = {}
    if args.endpoint:
        overrides["endpoint"] = args.endpoint
    if args.user_id:
        overrides["user_id"] = args.user_id
    try:
        config = FleetwatchConfig.from_env(**overrides)
    except FleetwatchConfigError as exc:
        print(f"[monitor] Invalid configuration: {exc}", file=sys.stderr)
        return 2

    try:
        return asyncio.run(_run(config, args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(_main())
