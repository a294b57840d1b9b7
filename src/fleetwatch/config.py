"""Monitor configuration for fleetwatch."""

from __future__ import annotations

import dataclasses
import math
import os
from collections.abc import Mapping
from typing import Any

from fleetwatch._constants import (
    ALERT_COOLDOWN_SECONDS,
    DEFAULT_CHANNELS,
    DEFAULT_ENDPOINT,
    HEARTBEAT_INTERVAL_SECONDS,
    HEARTBEAT_TIMEOUT_SECONDS,
    MOVING_SPEED_THRESHOLD,
    ONLINE_THRESHOLD_SECONDS,
    RECONNECT_DELAY_SECONDS,
)
from fleetwatch.exceptions import FleetwatchConfigError


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    value = env.get(key)
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise FleetwatchConfigError(f"{key} must be a number, got {value!r}") from exc


def _env_channels(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    channels = tuple(part.strip() for part in value.split(",") if part.strip())
    return channels or None


@dataclasses.dataclass(frozen=True)
class FleetwatchConfig:
    """Monitor configuration.

    Parameters
    ----------
    user_id : str
        Identity sent with the subscription and refresh messages.
    endpoint : str
        WebSocket URL of the telemetry source. ``userId`` is appended
        as a query parameter on connect.
    channels : tuple of str
        Topics requested in the subscription message.
    heartbeat_interval : float
        Seconds between ``ping`` probes while connected.
    heartbeat_timeout : float
        Seconds to wait for the matching ``pong`` before the session is
        considered dead and torn down.
    reconnect_delay : float
        Seconds to wait before reconnecting after a disconnect.
    reconnect_max_delay : float or None
        When set, the delay grows linearly with consecutive failures
        (``reconnect_delay * attempt``) up to this cap. ``None`` keeps a
        fixed retry interval.
    alert_cooldown : float
        Minimum seconds between two alerts of the same kind for the same
        vehicle.
    online_threshold : float
        Maximum sample age in seconds for a vehicle to count as online.
    moving_speed_threshold : float
        Speeds strictly above this value mark an online vehicle as moving.
    """

    user_id: str
    endpoint: str = DEFAULT_ENDPOINT
    channels: tuple[str, ...] = DEFAULT_CHANNELS
    heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS
    heartbeat_timeout: float = HEARTBEAT_TIMEOUT_SECONDS
    reconnect_delay: float = RECONNECT_DELAY_SECONDS
    reconnect_max_delay: float | None = None
    alert_cooldown: float = ALERT_COOLDOWN_SECONDS
    online_threshold: float = ONLINE_THRESHOLD_SECONDS
    moving_speed_threshold: float = MOVING_SPEED_THRESHOLD

    def __post_init__(self) -> None:
        if not self.user_id or not str(self.user_id).strip():
            raise FleetwatchConfigError("user_id must be non-empty")
        if not self.endpoint.startswith(("ws://", "wss://", "http://", "https://")):
            raise FleetwatchConfigError(f"endpoint must be a ws(s):// or http(s):// URL, got {self.endpoint!r}")
        for name in (
            "heartbeat_interval",
            "heartbeat_timeout",
            "alert_cooldown",
            "online_threshold",
        ):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise FleetwatchConfigError(f"{name} must be a positive number, got {value}")
        if not math.isfinite(self.reconnect_delay) or self.reconnect_delay < 0:
            raise FleetwatchConfigError(f"reconnect_delay must be >= 0, got {self.reconnect_delay}")
        if self.reconnect_max_delay is not None and self.reconnect_max_delay < self.reconnect_delay:
            raise FleetwatchConfigError("reconnect_max_delay must be >= reconnect_delay")
        if not math.isfinite(self.moving_speed_threshold):
            raise FleetwatchConfigError("moving_speed_threshold must be finite")

    def reconnect_delay_for(self, attempt: int) -> float:
        """Delay before reconnect attempt number *attempt* (1-based)."""
        if self.reconnect_max_delay is None:
            return self.reconnect_delay
        return min(self.reconnect_delay * max(attempt, 1), self.reconnect_max_delay)

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetwatchConfig:
        """Create configuration from environment variables.

        Reads ``FLEETWATCH_USER_ID`` and optional ``FLEETWATCH_*``
        variables. Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FleetwatchConfig
            Populated configuration.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in (
            ("FLEETWATCH_USER_ID", "user_id"),
            ("FLEETWATCH_ENDPOINT", "endpoint"),
        ):
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        channels = _env_channels(env.get("FLEETWATCH_CHANNELS"))
        if channels is not None:
            config_kwargs["channels"] = channels

        _ENV_FLOAT_MAP = {
            "FLEETWATCH_HEARTBEAT_INTERVAL": "heartbeat_interval",
            "FLEETWATCH_HEARTBEAT_TIMEOUT": "heartbeat_timeout",
            "FLEETWATCH_RECONNECT_DELAY": "reconnect_delay",
            "FLEETWATCH_RECONNECT_MAX_DELAY": "reconnect_max_delay",
            "FLEETWATCH_ALERT_COOLDOWN": "alert_cooldown",
            "FLEETWATCH_ONLINE_THRESHOLD": "online_threshold",
            "FLEETWATCH_MOVING_SPEED_THRESHOLD": "moving_speed_threshold",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            if field_name in overrides:
                continue
            parsed = _env_float(env, env_key)
            if parsed is not None:
                config_kwargs[field_name] = parsed

        config_kwargs.update(overrides)

        if "user_id" not in config_kwargs:
            raise FleetwatchConfigError("FLEETWATCH_USER_ID is not set")
        if isinstance(config_kwargs.get("channels"), list):
            config_kwargs["channels"] = tuple(config_kwargs["channels"])

        return cls(**config_kwargs)
