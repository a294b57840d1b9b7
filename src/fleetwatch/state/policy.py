"""Deterministic sample merge policy.

This module intentionally contains *no* payload parsing. The ingestion
boundary hands over validated samples with normalized UTC timestamps.
"""

from __future__ import annotations

from fleetwatch.models.telemetry import TelemetrySample


def should_accept_sample(cached: TelemetrySample | None, incoming: TelemetrySample) -> bool:
    """Decide whether *incoming* replaces the cached sample for its device.

    Policy: newest timestamp wins, not last received. An incoming sample
    with the same timestamp as the cached one is a duplicate and is
    rejected, so a re-delivered batch never flips state.

    A sample without a usable position never displaces one that has a
    position; only the newest *valid* reading matters.
    """
    if cached is None:
        return True
    if incoming.timestamp <= cached.timestamp:
        return False
    return incoming.position is not None or cached.position is None
