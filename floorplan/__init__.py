"""Walkplan floor plan package.

Data model, geometry kernel and persistence for floor plans captured by
walking a room.

Modules:
- models: Points, pins, features, anchors and the FloorPlan aggregate
- geometry: Perimeter, area, centroid, bounding box, rotation, smoothing
- identity: Injectable id generators and clocks
- repository: JSON-file storage and portable export/import
- dxf_exporter: DXF export of finalized plans
"""

from .errors import WalkplanError, FloorPlanFormatError, InvalidModelError
from .identity import CounterIds, FixedClock, system_clock, uuid_ids
from .models import (
    AnchorPoint,
    BoundingBox,
    FeatureMarker,
    FeatureType,
    FloorPlan,
    Pin,
    Point2D,
    Point3D,
)
from .repository import FloorPlanRepository, decode_plan, encode_plan

__all__ = [
    # Errors
    "WalkplanError",
    "FloorPlanFormatError",
    "InvalidModelError",
    # Identity
    "CounterIds",
    "FixedClock",
    "system_clock",
    "uuid_ids",
    # Models
    "AnchorPoint",
    "BoundingBox",
    "FeatureMarker",
    "FeatureType",
    "FloorPlan",
    "Pin",
    "Point2D",
    "Point3D",
    # Persistence
    "FloorPlanRepository",
    "decode_plan",
    "encode_plan",
]
