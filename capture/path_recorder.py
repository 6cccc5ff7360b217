"""Distance-gated path recording.

The recorder consumes 3D position samples while a session is recording. A
sample is admitted to the stored path only when it lies at least
``min_distance_between_points`` from the last admitted point, which bounds
path density independently of the feed's sample rate. Every sample, admitted
or not, refreshes the live position and the distance back to the start so
that "close to start" feedback stays responsive.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from floorplan.models import Point3D

from .config import RecorderConfig
from .session import CaptureSession, RecordingState

logger = logging.getLogger(__name__)


@dataclass
class PathRecorder:
    """Admission gate and distance bookkeeping for the walked path."""

    config: RecorderConfig = field(default_factory=RecorderConfig)

    def start(self, session: CaptureSession, initial_position3d: Point3D) -> None:
        """Begin recording; the start point is always corner #0."""
        start = initial_position3d.project()

        session.recording_state = RecordingState.RECORDING
        session.path_points = [start]
        session.corners = [start]
        session.corners3d = [initial_position3d]
        session.corner_on_surface = [session.plane_detected]
        session.start_position2d = start
        session.start_position3d = initial_position3d
        session.current_position2d = start
        session.current_position3d = initial_position3d
        session.distance_traveled_meters = 0.0
        session.distance_to_start_meters = 0.0

        logger.info(f"Started recording at {start} (3D: {initial_position3d})")

    def update(self, session: CaptureSession, position3d: Point3D) -> bool:
        """Feed one position sample.

        Returns:
            True if the sample was admitted to the path
        """
        if session.recording_state != RecordingState.RECORDING or not session.path_points:
            return False

        if not position3d.is_finite():
            logger.debug(f"Dropping non-finite position sample {position3d}")
            return False

        new_point = position3d.project()
        dist_from_last = session.path_points[-1].distance_to(new_point)
        if session.start_position2d is not None:
            dist_to_start = new_point.distance_to(session.start_position2d)
        else:
            dist_to_start = 0.0

        session.current_position2d = new_point
        session.current_position3d = position3d
        session.distance_to_start_meters = dist_to_start

        if dist_from_last < self.config.min_distance_between_points:
            return False

        session.path_points.append(new_point)
        session.distance_traveled_meters += dist_from_last

        logger.debug(
            f"Added point #{len(session.path_points)}, dist={dist_from_last:.2f}m, "
            f"total={session.distance_traveled_meters:.2f}m"
        )
        return True

    def is_near_start(self, session: CaptureSession) -> bool:
        """Back within reach of the start after walking a meaningful distance."""
        if session.distance_to_start_meters is None:
            return False
        return (
            session.distance_to_start_meters < self.config.close_to_start_threshold
            and session.distance_traveled_meters > self.config.min_travel_for_close
        )
