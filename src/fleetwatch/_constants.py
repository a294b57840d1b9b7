"""Internal constants shared across the library."""

EARTH_RADIUS_M = 6_371_000.0

# Vehicle status derivation
ONLINE_THRESHOLD_SECONDS = 15 * 60
MOVING_SPEED_THRESHOLD = 2.0

# Violation de-duplication
ALERT_COOLDOWN_SECONDS = 5 * 60

# ------------------------------------------------------------------
# Realtime channel
# ------------------------------------------------------------------

HEARTBEAT_INTERVAL_SECONDS = 30.0
HEARTBEAT_TIMEOUT_SECONDS = 10.0
RECONNECT_DELAY_SECONDS = 5.0
DEFAULT_ENDPOINT = "ws://localhost:8055/websocket"
DEFAULT_CHANNELS: tuple[str, ...] = ("vehicles", "telemetry", "geofences")

NO_GPS_LOCATION = "No GPS data"


def format_location(lon: float, lat: float, *, precision: int = 5) -> str:
    """Render a position the way the dashboard shows it (``"lat, lon"``)."""
    return f"{lat:.{precision}f}, {lon:.{precision}f}"
