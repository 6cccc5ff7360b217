"""Walkplan capture engine package.

This package turns a stream of tracked device poses plus user actions into
finalized floor plans.

Modules:
- config: Capture configuration
- session: Capture session state and enums
- path_recorder: Distance-gated path recording
- annotations: Corners, features and anchors at the live position
- relocalization: Anchor-based alignment of a new session
- state_machine: Session lifecycle and finalization
- heading: Compass heading from accelerometer and magnetometer
- controller: Plan-level operations around a capture
- replay: Replay of recorded walks (``python -m capture.replay``)
"""

from .config import CaptureConfig, load_config
from .session import (
    AnchorPlacementState,
    CaptureSession,
    RecordingState,
    RelocalizationState,
    TrackingState,
)
from .path_recorder import PathRecorder
from .annotations import AnnotationTracker
from .relocalization import RelocalizationCalculator, compute_alignment
from .state_machine import CaptureStateMachine
from .heading import CompassFilter, HeadingReading
from .controller import FloorMapController

__all__ = [
    # Config
    "CaptureConfig",
    "load_config",
    # Session
    "AnchorPlacementState",
    "CaptureSession",
    "RecordingState",
    "RelocalizationState",
    "TrackingState",
    # Components
    "PathRecorder",
    "AnnotationTracker",
    "RelocalizationCalculator",
    "compute_alignment",
    # Orchestration
    "CaptureStateMachine",
    "FloorMapController",
    # Sensors
    "CompassFilter",
    "HeadingReading",
]
