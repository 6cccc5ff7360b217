"""Floor plan data model.

Coordinates follow the motion-tracking convention of the host application:
``Point3D.y`` is the vertical axis, so the planar floor projection of a 3D
position ``(x, y, z)`` is ``Point2D(x, z)``. All distances are meters, all
angles degrees, all timestamps milliseconds since epoch.

Every entity converts to and from plain dictionaries; ``from_dict`` raises
``FloorPlanFormatError`` for missing or mistyped fields so that a corrupt
document never produces a half-built aggregate.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import FloorPlanFormatError, InvalidModelError
from .identity import Clock, IdGenerator, system_clock, uuid_ids


# =============================================================================
# Dictionary field helpers
# =============================================================================

def _get(data: Any, key: str, kind: type, optional: bool = False) -> Any:
    """Fetch ``data[key]`` checking its JSON type."""
    if not isinstance(data, dict):
        raise FloorPlanFormatError(f"Expected object while reading '{key}'")

    value = data.get(key)
    if value is None:
        if optional:
            return None
        raise FloorPlanFormatError(f"Missing field: {key}")

    # bool is an int subclass; never accept it as a number
    if kind is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise FloorPlanFormatError(f"Field '{key}' must be a number")
        try:
            return float(value)
        except OverflowError as e:
            raise FloorPlanFormatError(f"Field '{key}' is out of range") from e
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise FloorPlanFormatError(f"Field '{key}' must be an integer")
        if abs(value) >= 2 ** 63:
            raise FloorPlanFormatError(f"Field '{key}' is out of range")
        return value
    if not isinstance(value, kind):
        raise FloorPlanFormatError(f"Field '{key}' must be of type {kind.__name__}")
    return value


def _get_list(data: Any, key: str) -> list:
    value = _get(data, key, list, optional=True)
    return value if value is not None else []


# =============================================================================
# Points
# =============================================================================

@dataclass(frozen=True)
class Point2D:
    """Floor-plane position (meters)."""
    x: float
    y: float

    def __add__(self, other: "Point2D") -> "Point2D":
        return Point2D(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Point2D") -> "Point2D":
        return Point2D(self.x - other.x, self.y - other.y)

    def distance_to(self, other: "Point2D") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Any) -> "Point2D":
        return cls(x=_get(data, "x", float), y=_get(data, "y", float))


@dataclass(frozen=True)
class Point3D:
    """Raw tracked position (meters); ``y`` is vertical."""
    x: float
    y: float
    z: float

    def project(self) -> Point2D:
        """Drop the vertical axis."""
        return Point2D(self.x, self.z)

    def distance_to(self, other: "Point3D") -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: Any) -> "Point3D":
        return cls(
            x=_get(data, "x", float),
            y=_get(data, "y", float),
            z=_get(data, "z", float),
        )


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned extent of a point set."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center_x(self) -> float:
        return (self.min_x + self.max_x) / 2

    @property
    def center_y(self) -> float:
        return (self.min_y + self.max_y) / 2


# =============================================================================
# Entities
# =============================================================================

@dataclass(frozen=True)
class Pin:
    """A finalized vertex of the floor plan.

    ``position2d`` is derived from ``position3d`` when omitted; passing an
    inconsistent projection raises ``InvalidModelError``.
    """
    id: str
    position3d: Point3D
    position2d: Optional[Point2D] = None
    timestamp: int = 0
    label: Optional[str] = None
    on_detected_surface: bool = True

    def __post_init__(self):
        projected = self.position3d.project()
        if self.position2d is None:
            object.__setattr__(self, "position2d", projected)
        elif not (
            math.isclose(self.position2d.x, projected.x, abs_tol=1e-9)
            and math.isclose(self.position2d.y, projected.y, abs_tol=1e-9)
        ):
            raise InvalidModelError(
                f"Pin {self.id}: position2d {self.position2d} is not the projection of {self.position3d}"
            )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position3d": self.position3d.to_dict(),
            "position2d": self.position2d.to_dict(),
            "timestamp": self.timestamp,
            "label": self.label,
            "on_detected_surface": self.on_detected_surface,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Pin":
        try:
            return cls(
                id=_get(data, "id", str),
                position3d=Point3D.from_dict(_get(data, "position3d", dict)),
                position2d=Point2D.from_dict(_get(data, "position2d", dict)),
                timestamp=_get(data, "timestamp", int),
                label=_get(data, "label", str, optional=True),
                on_detected_surface=_get(data, "on_detected_surface", bool),
            )
        except InvalidModelError as e:
            raise FloorPlanFormatError(str(e)) from e


class FeatureType(Enum):
    """Equipment or point of interest tagged during a walk."""
    DOOR = "door"
    BEACON = "beacon"
    DAMPER = "damper"
    VENT = "vent"
    UNIT = "unit"
    THERMOSTAT = "thermostat"
    PHOTO_POINT = "photo_point"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _FEATURE_DISPLAY_NAMES[self]


_FEATURE_DISPLAY_NAMES = {
    FeatureType.DOOR: "Door",
    FeatureType.BEACON: "Beacon",
    FeatureType.DAMPER: "Damper",
    FeatureType.VENT: "HVAC Vent",
    FeatureType.UNIT: "HVAC Unit",
    FeatureType.THERMOSTAT: "Thermostat",
    FeatureType.PHOTO_POINT: "Photo Point",
    FeatureType.OTHER: "Other",
}


@dataclass(frozen=True)
class FeatureMarker:
    """A feature placed at the technician's live position."""
    id: str
    type: FeatureType
    position2d: Point2D
    position3d: Optional[Point3D] = None
    label: Optional[str] = None
    photo_ref: Optional[str] = None
    linked_device_id: Optional[str] = None  # e.g. BLE address of a beacon
    linked_device_name: Optional[str] = None
    notes: Optional[str] = None
    timestamp: int = 0

    def with_photo(self, photo_ref: Optional[str]) -> "FeatureMarker":
        return replace(self, photo_ref=photo_ref)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "position2d": self.position2d.to_dict(),
            "position3d": self.position3d.to_dict() if self.position3d else None,
            "label": self.label,
            "photo_ref": self.photo_ref,
            "linked_device_id": self.linked_device_id,
            "linked_device_name": self.linked_device_name,
            "notes": self.notes,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "FeatureMarker":
        type_value = _get(data, "type", str)
        try:
            feature_type = FeatureType(type_value)
        except ValueError as e:
            raise FloorPlanFormatError(f"Unknown feature type: {type_value}") from e

        position3d = _get(data, "position3d", dict, optional=True)
        return cls(
            id=_get(data, "id", str),
            type=feature_type,
            position2d=Point2D.from_dict(_get(data, "position2d", dict)),
            position3d=Point3D.from_dict(position3d) if position3d is not None else None,
            label=_get(data, "label", str, optional=True),
            photo_ref=_get(data, "photo_ref", str, optional=True),
            linked_device_id=_get(data, "linked_device_id", str, optional=True),
            linked_device_name=_get(data, "linked_device_name", str, optional=True),
            notes=_get(data, "notes", str, optional=True),
            timestamp=_get(data, "timestamp", int),
        )


@dataclass(frozen=True)
class AnchorPoint:
    """A relocalization waypoint: position, compass heading and reference photo."""
    id: str
    position2d: Point2D
    position3d: Point3D
    heading_degrees: float
    photo_ref: str
    label: str
    linked_plan_id: Optional[str] = None
    timestamp: int = 0

    def __post_init__(self):
        if not self.photo_ref:
            raise InvalidModelError(f"Anchor {self.id} requires a reference photo")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position2d": self.position2d.to_dict(),
            "position3d": self.position3d.to_dict(),
            "heading_degrees": self.heading_degrees,
            "photo_ref": self.photo_ref,
            "label": self.label,
            "linked_plan_id": self.linked_plan_id,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "AnchorPoint":
        try:
            return cls(
                id=_get(data, "id", str),
                position2d=Point2D.from_dict(_get(data, "position2d", dict)),
                position3d=Point3D.from_dict(_get(data, "position3d", dict)),
                heading_degrees=_get(data, "heading_degrees", float),
                photo_ref=_get(data, "photo_ref", str),
                label=_get(data, "label", str),
                linked_plan_id=_get(data, "linked_plan_id", str, optional=True),
                timestamp=_get(data, "timestamp", int),
            )
        except InvalidModelError as e:
            raise FloorPlanFormatError(str(e)) from e


@dataclass
class FloorPlan:
    """Aggregate root assembled from a completed capture.

    ``perimeter_meters``/``area_square_meters`` are either unset or match
    ``corners`` at the last computation. ``is_closed`` implies at least three
    corners with the last one repeating the first.
    """
    id: str
    name: str
    pins: List[Pin] = field(default_factory=list)
    corners: List[Point2D] = field(default_factory=list)
    features: List[FeatureMarker] = field(default_factory=list)
    anchors: List[AnchorPoint] = field(default_factory=list)
    reference_heading_degrees: float = 0.0
    reference_floor_y: float = 0.0
    perimeter_meters: Optional[float] = None
    area_square_meters: Optional[float] = None
    is_closed: bool = False
    created_at: int = 0
    modified_at: int = 0

    @classmethod
    def new(
        cls,
        name: Optional[str] = None,
        ids: IdGenerator = uuid_ids,
        clock: Clock = system_clock,
    ) -> "FloorPlan":
        now = clock()
        return cls(
            id=ids(),
            name=name or f"Floor Plan {now}",
            created_at=now,
            modified_at=now,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pins": [p.to_dict() for p in self.pins],
            "corners": [c.to_dict() for c in self.corners],
            "features": [f.to_dict() for f in self.features],
            "anchors": [a.to_dict() for a in self.anchors],
            "reference_heading_degrees": self.reference_heading_degrees,
            "reference_floor_y": self.reference_floor_y,
            "perimeter_meters": self.perimeter_meters,
            "area_square_meters": self.area_square_meters,
            "is_closed": self.is_closed,
            "created_at": self.created_at,
            "modified_at": self.modified_at,
        }

    def check_outline(self) -> None:
        """Raise ``FloorPlanFormatError`` if metrics or closure disagree with ``corners``."""
        if self.is_closed and (len(self.corners) < 3 or self.corners[-1] != self.corners[0]):
            raise FloorPlanFormatError(
                "Closed plan needs at least 3 corners ending on the first"
            )
        if self.perimeter_meters is not None and len(self.corners) < 2:
            raise FloorPlanFormatError("Perimeter set on a plan with fewer than 2 corners")
        if self.area_square_meters is not None and not (self.is_closed and len(self.corners) >= 4):
            raise FloorPlanFormatError("Area set on a plan without a closed outline")

    @classmethod
    def from_dict(cls, data: Any) -> "FloorPlan":
        plan = cls(
            id=_get(data, "id", str),
            name=_get(data, "name", str),
            pins=[Pin.from_dict(p) for p in _get_list(data, "pins")],
            corners=[Point2D.from_dict(c) for c in _get_list(data, "corners")],
            features=[FeatureMarker.from_dict(f) for f in _get_list(data, "features")],
            anchors=[AnchorPoint.from_dict(a) for a in _get_list(data, "anchors")],
            reference_heading_degrees=_get(data, "reference_heading_degrees", float),
            reference_floor_y=_get(data, "reference_floor_y", float),
            perimeter_meters=_get(data, "perimeter_meters", float, optional=True),
            area_square_meters=_get(data, "area_square_meters", float, optional=True),
            is_closed=_get(data, "is_closed", bool),
            created_at=_get(data, "created_at", int),
            modified_at=_get(data, "modified_at", int),
        )
        plan.check_outline()
        return plan
