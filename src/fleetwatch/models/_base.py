"""Base model and coordinate types shared by the wire models.

Every wire model inherits from :class:`FleetBaseModel` which provides:

* frozen instances with unknown keys ignored, so CRUD backends can send
  extra columns without breaking ingestion.
* ``populate_by_name=True`` so models can be built from snake_case field
  names as well as the wire aliases.
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from typing import Annotated, Any, NamedTuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from fleetwatch.ingestion.normalize import is_valid_latitude, is_valid_longitude, safe_float, safe_str


class LonLat(NamedTuple):
    """A WGS84 position in ``(longitude, latitude)`` order."""

    lon: float
    lat: float


def parse_lonlat(value: Any) -> LonLat:
    """Coerce a ``[lon, lat]`` pair or a ``{lon/lng, lat}`` mapping.

    Raises :class:`ValueError` for anything that is not a pair of finite
    numbers inside the valid longitude/latitude ranges.
    """
    if isinstance(value, LonLat):
        lon, lat = value
    elif isinstance(value, dict):
        lon = safe_float(value.get("lon", value.get("lng", value.get("longitude"))))
        lat = safe_float(value.get("lat", value.get("latitude")))
    elif isinstance(value, (list, tuple)) and len(value) >= 2:
        lon = safe_float(value[0])
        lat = safe_float(value[1])
    else:
        raise ValueError(f"expected a [lon, lat] pair, got {value!r}")

    if not is_valid_longitude(lon) or not is_valid_latitude(lat):
        raise ValueError(f"coordinate out of range or not finite: {value!r}")
    return LonLat(float(lon), float(lat))  # type: ignore[arg-type]


Coordinate = Annotated[LonLat, BeforeValidator(parse_lonlat)]
"""Annotated type that validates ``[lon, lat]`` wire pairs into :class:`LonLat`."""


def coerce_id(value: Any) -> str:
    """Normalize integer or string ids to a non-empty string."""
    if isinstance(value, (dict, list, tuple, set, bool)):
        raise ValueError(f"id must be a string or integer, got {type(value).__name__}")
    text = safe_str(value)
    if text is None:
        raise ValueError("id must be non-empty")
    return text


def coerce_optional_id(value: Any) -> str | None:
    return safe_str(value)


class FleetBaseModel(BaseModel):
    """Base for fleetwatch wire models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original payload dict."""

    @model_validator(mode="before")
    @classmethod
    def _ensure_raw(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        merged.setdefault("raw", values)
        return merged
