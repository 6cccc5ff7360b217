"""Capture session state.

A ``CaptureSession`` owns every piece of in-progress capture data: the
admitted path, marked corners, features and anchors, live position, and the
anchor placement and relocalization sub-states. It is created when a mapping
session starts, mutated only by the capture state machine, and discarded on
reset.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from floorplan.models import AnchorPoint, FeatureMarker, Pin, Point2D, Point3D


class RecordingState(Enum):
    """Lifecycle of a path recording."""
    IDLE = "idle"            # waiting for the technician to start
    RECORDING = "recording"  # actively recording the path
    COMPLETED = "completed"  # finalized into pins and metrics


class TrackingState(Enum):
    """Quality of the external motion-tracking feed."""
    NOT_AVAILABLE = "not_available"
    TRACKING = "tracking"
    PAUSED = "paused"
    STOPPED = "stopped"


class AnchorPlacementState(Enum):
    """Anchor placement sub-flow."""
    NONE = "none"
    POSITIONING = "positioning"  # walking to the anchor spot
    CAPTURING = "capturing"      # position confirmed, taking the photo
    CONFIRMED = "confirmed"      # anchor saved


@dataclass
class RelocalizationState:
    """Alignment of this session's frame to a previously placed anchor."""
    is_relocalizing: bool = False
    target_anchor: Optional[AnchorPoint] = None
    is_matched: bool = False
    observed_position: Optional[Point2D] = None
    offset: Optional[Point2D] = None  # anchor frame = session frame + offset
    rotation_offset_degrees: float = 0.0


@dataclass
class CaptureSession:
    """In-progress capture data."""
    recording_state: RecordingState = RecordingState.IDLE

    path_points: List[Point2D] = field(default_factory=list)
    corners: List[Point2D] = field(default_factory=list)
    corners3d: List[Point3D] = field(default_factory=list)
    corner_on_surface: List[bool] = field(default_factory=list)
    features: List[FeatureMarker] = field(default_factory=list)
    anchors: List[AnchorPoint] = field(default_factory=list)
    pins: List[Pin] = field(default_factory=list)

    start_position2d: Optional[Point2D] = None
    start_position3d: Optional[Point3D] = None
    current_position2d: Optional[Point2D] = None
    current_position3d: Optional[Point3D] = None
    distance_traveled_meters: float = 0.0
    distance_to_start_meters: Optional[float] = None

    # Tracking feed
    tracking_state: TrackingState = TrackingState.NOT_AVAILABLE
    plane_detected: bool = False
    floor_y: Optional[float] = None

    # Pending UI flows
    show_feature_picker: bool = False
    pending_feature_photo_id: Optional[str] = None
    anchor_placement_state: AnchorPlacementState = AnchorPlacementState.NONE
    pending_anchor_label: Optional[str] = None

    relocalization: RelocalizationState = field(default_factory=RelocalizationState)

    @property
    def is_recording(self) -> bool:
        return self.recording_state == RecordingState.RECORDING

    def snapshot(self) -> "CaptureSession":
        """Independent copy safe to hand to readers."""
        return copy.deepcopy(self)
