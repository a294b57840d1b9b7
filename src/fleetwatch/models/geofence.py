"""Geofence model.

Geometry is a tagged union of :class:`CircleGeometry` and
:class:`PolygonGeometry`; each variant validates its own payload, so a
constructed :class:`Geofence` always carries a usable shape. Wire payloads
come in two dialects and both are accepted:

* ``{"id", "kind", "ruleKind", "active", "geometry": {...}}``
* ``{"geofence_id", "type", "rule_type", "status": "active",
  "definition": {"center": [lon, lat], "radius": ...}}`` where
  ``definition`` may itself be a JSON-encoded string.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from fleetwatch.ingestion.normalize import safe_float
from fleetwatch.models._base import Coordinate, FleetBaseModel, LonLat, coerce_id


class GeometryKind(StrEnum):
    CIRCLE = "circle"
    POLYGON = "polygon"


class RuleKind(StrEnum):
    """What crossing the geofence boundary means for an assigned vehicle."""

    FORBIDDEN = "FORBIDDEN"
    """Entering the region is a violation."""
    STAY_IN = "STAY_IN"
    """Leaving the region is a violation."""
    STANDARD = "STANDARD"
    """Informational only; never a violation."""

    @classmethod
    def _missing_(cls, value: object) -> RuleKind | None:
        if isinstance(value, str):
            normalized = value.strip().upper().replace("-", "_").replace(" ", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class CircleGeometry(BaseModel):
    """Circle defined by a center and a radius in meters."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    kind: Literal["circle"] = "circle"
    center: Coordinate
    radius: float = Field(validation_alias=AliasChoices("radius", "radiusMeters", "radius_m"))

    @field_validator("radius", mode="before")
    @classmethod
    def _coerce_radius(cls, value: Any) -> float:
        parsed = safe_float(value)
        if parsed is None or parsed <= 0:
            raise ValueError(f"radius must be a positive finite number, got {value!r}")
        return parsed


class PolygonGeometry(BaseModel):
    """Polygon ring of at least three vertices.

    The ring is implicitly closed; an explicit closing vertex equal to
    the first one is dropped on validation.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    kind: Literal["polygon"] = "polygon"
    ring: tuple[Coordinate, ...] = Field(validation_alias=AliasChoices("ring", "coordinates", "vertices"))

    @field_validator("ring", mode="before")
    @classmethod
    def _unwrap_ring(cls, value: Any) -> Any:
        # GeoJSON nests the outer ring one level deeper: [[[lon, lat], ...]]
        if (
            isinstance(value, (list, tuple))
            and len(value) == 1
            and isinstance(value[0], (list, tuple))
            and value[0]
            and isinstance(value[0][0], (list, tuple, dict))
        ):
            return value[0]
        return value

    @field_validator("ring")
    @classmethod
    def _close_ring(cls, value: tuple[LonLat, ...]) -> tuple[LonLat, ...]:
        if len(value) > 1 and value[0] == value[-1]:
            value = value[:-1]
        if len(value) < 3:
            raise ValueError(f"polygon needs at least 3 distinct vertices, got {len(value)}")
        return value


GeofenceGeometry = Annotated[CircleGeometry | PolygonGeometry, Field(discriminator="kind")]


def _parse_active(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"active", "true", "1", "yes", "on", "enabled"}:
            return True
        if normalized in {"inactive", "false", "0", "no", "off", "disabled", "archived"}:
            return False
        raise ValueError(f"unrecognized geofence status: {value!r}")
    parsed = safe_float(value)
    if parsed is None:
        raise ValueError(f"unrecognized geofence status: {value!r}")
    return parsed != 0


class Geofence(FleetBaseModel):
    """A named region with a rule kind.

    Parameters
    ----------
    id : str
        Geofence identifier (vehicles reference it by this id).
    name : str
        Display name.
    rule_kind : RuleKind
        Boundary rule applied to assigned vehicles.
    active : bool
        Inactive geofences are never evaluated.
    geometry : CircleGeometry or PolygonGeometry
        Validated shape.
    raw : dict
        Original payload.
    """

    id: str = Field(validation_alias=AliasChoices("id", "geofenceId", "geofence_id"))
    name: str = Field(default="", validation_alias=AliasChoices("name",))
    rule_kind: RuleKind = Field(validation_alias=AliasChoices("ruleKind", "rule_kind", "ruleType", "rule_type"))
    active: bool = Field(default=True, validation_alias=AliasChoices("active", "status", "isActive"))
    geometry: GeofenceGeometry

    @property
    def kind(self) -> GeometryKind:
        return GeometryKind(self.geometry.kind)

    @model_validator(mode="before")
    @classmethod
    def _assemble_geometry(cls, values: Any) -> Any:
        """Build the tagged geometry from either wire dialect."""
        if not isinstance(values, dict):
            return values
        merged = dict(values)

        geometry = merged.get("geometry")
        if geometry is None:
            geometry = merged.get("definition")
        if isinstance(geometry, str):
            try:
                geometry = json.loads(geometry)
            except json.JSONDecodeError as exc:
                raise ValueError(f"geometry is not valid JSON: {exc}") from exc

        if isinstance(geometry, dict):
            geometry = dict(geometry)
            kind = merged.get("kind") or merged.get("type") or geometry.get("kind") or geometry.get("type")
            if isinstance(kind, str):
                geometry["kind"] = kind.strip().lower()
            merged["geometry"] = geometry
        return merged

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return coerce_id(value)

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("rule_kind", mode="before")
    @classmethod
    def _coerce_rule_kind(cls, value: Any) -> RuleKind:
        if isinstance(value, RuleKind):
            return value
        if not isinstance(value, str):
            raise ValueError(f"rule kind must be a string, got {value!r}")
        return RuleKind(value)

    @field_validator("active", mode="before")
    @classmethod
    def _coerce_active(cls, value: Any) -> bool:
        if value is None:
            return True
        return _parse_active(value)
