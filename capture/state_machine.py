"""Capture state machine.

Orchestrates the path recorder, annotation tracker and relocalization
calculator over a single ``CaptureSession``:

    IDLE --start_recording--> RECORDING --stop_recording--> COMPLETED
      ^                                                          |
      +---------------------- reset_recording -------------------+

Finalization (``stop_recording``) smooths the walked path, optionally closes
the loop, turns corners into pins, computes perimeter and area, and folds the
session's corners, features and anchors into the target ``FloorPlan``.

All operations are serialized by one re-entrant lock; none of them block or
perform I/O. Operations whose precondition is not met (no live position, not
recording, no target anchor) are no-ops, because loss of the tracking feed is
routine and transient.

After each operation that changed the session, ``on_change(event, snapshot)``
is invoked when set. Live position refreshes that do not admit a path point
are not announced; poll ``snapshot()`` or ``live_position()`` for those.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Tuple

from floorplan import geometry
from floorplan.identity import Clock, IdGenerator, system_clock, uuid_ids
from floorplan.models import (
    AnchorPoint,
    FeatureMarker,
    FeatureType,
    FloorPlan,
    Pin,
    Point2D,
    Point3D,
)

from .annotations import DEFAULT_ANCHOR_PLACEMENT_LABEL, AnnotationTracker
from .config import CaptureConfig
from .path_recorder import PathRecorder
from .relocalization import RelocalizationCalculator
from .session import CaptureSession, RecordingState, TrackingState

logger = logging.getLogger(__name__)

HeadingSource = Callable[[], float]
ChangeCallback = Callable[[str, CaptureSession], None]

START_LABEL = "Start"
END_LABEL = "End"


def corner_label(index: int, count: int, closed: bool) -> Optional[str]:
    """Pin label for corner ``index`` of ``count``.

    The last corner of a closed plan repeats the start and stays unlabeled.
    """
    if index == 0:
        return START_LABEL
    if index == count - 1:
        return None if closed else END_LABEL
    return f"Corner {index}"


class CaptureStateMachine:
    """Session lifecycle and finalization for one active capture."""

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        ids: IdGenerator = uuid_ids,
        clock: Clock = system_clock,
        heading_source: Optional[HeadingSource] = None,
    ):
        self.config = config or CaptureConfig()
        self.ids = ids
        self.clock = clock
        self.heading_source: HeadingSource = heading_source or (lambda: 0.0)

        self.recorder = PathRecorder(self.config.recorder)
        self.annotations = AnnotationTracker(ids=ids, clock=clock)
        self.relocalizer = RelocalizationCalculator()

        self.session = CaptureSession()
        self.floor_plan: Optional[FloorPlan] = None

        # Callbacks
        self.on_change: Optional[ChangeCallback] = None

        self._lock = threading.RLock()

    def _emit(self, event: str) -> None:
        if self.on_change is not None:
            self.on_change(event, self.session.snapshot())

    def snapshot(self) -> CaptureSession:
        """Copy of the current session."""
        with self._lock:
            return self.session.snapshot()

    def live_position(self) -> Tuple[Optional[Point2D], Optional[float]]:
        """Live 2D position and distance to start, without copying the path."""
        with self._lock:
            return self.session.current_position2d, self.session.distance_to_start_meters

    @property
    def recording_state(self) -> RecordingState:
        return self.session.recording_state

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def start_session(self, plan: Optional[FloorPlan] = None) -> FloorPlan:
        """Bind a target plan and start a fresh session.

        Resuming an existing plan seeds the session with its pins, features and
        anchors so that finalization keeps them.
        """
        with self._lock:
            self.floor_plan = plan or FloorPlan.new(ids=self.ids, clock=self.clock)
            self.session = CaptureSession(
                pins=list(self.floor_plan.pins),
                features=list(self.floor_plan.features),
                anchors=list(self.floor_plan.anchors),
            )
            logger.info(f"Capture session started for plan {self.floor_plan.id}")
            self._emit("session_started")
            return self.floor_plan

    def update_tracking_state(
        self,
        state: TrackingState,
        plane_detected: bool,
        floor_y: Optional[float] = None,
    ) -> None:
        with self._lock:
            self.session.tracking_state = state
            self.session.plane_detected = plane_detected
            if floor_y is not None:
                self.session.floor_y = floor_y
            self._emit("tracking_updated")

    # =========================================================================
    # Path recording
    # =========================================================================

    def start_recording(self, initial_position3d: Point3D) -> bool:
        with self._lock:
            if self.session.recording_state != RecordingState.IDLE:
                logger.debug("start_recording ignored: session is not idle")
                return False
            if not initial_position3d.is_finite():
                return False
            self.recorder.start(self.session, initial_position3d)
            self._emit("recording_started")
            return True

    def update_position(self, position3d: Point3D) -> bool:
        """Feed a position sample; True if it was admitted to the path."""
        with self._lock:
            admitted = self.recorder.update(self.session, position3d)
            if admitted:
                self._emit("path_point_added")
            return admitted

    def is_near_start(self) -> bool:
        with self._lock:
            return self.recorder.is_near_start(self.session)

    # =========================================================================
    # Annotations
    # =========================================================================

    def mark_corner(self) -> bool:
        with self._lock:
            marked = self.annotations.mark_corner(self.session)
            if marked:
                self._emit("corner_marked")
            return marked

    def show_feature_picker(self) -> None:
        with self._lock:
            self.annotations.show_feature_picker(self.session)
            self._emit("feature_picker_shown")

    def hide_feature_picker(self) -> None:
        with self._lock:
            self.annotations.hide_feature_picker(self.session)
            self._emit("feature_picker_hidden")

    def add_feature(
        self,
        feature_type: FeatureType,
        label: Optional[str] = None,
        photo_ref: Optional[str] = None,
        linked_device_id: Optional[str] = None,
        linked_device_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Optional[FeatureMarker]:
        with self._lock:
            feature = self.annotations.add_feature(
                self.session,
                feature_type,
                label=label,
                photo_ref=photo_ref,
                linked_device_id=linked_device_id,
                linked_device_name=linked_device_name,
                notes=notes,
            )
            if feature is not None:
                self._emit("feature_added")
            return feature

    def remove_feature(self, feature_id: str) -> bool:
        with self._lock:
            removed = self.annotations.remove_feature(self.session, feature_id)
            if removed:
                self._emit("feature_removed")
            return removed

    def update_feature_photo(self, feature_id: str, photo_ref: Optional[str]) -> bool:
        with self._lock:
            updated = self.annotations.update_feature_photo(self.session, feature_id, photo_ref)
            if updated:
                self._emit("feature_updated")
            return updated

    def request_feature_photo(self, feature_id: str) -> bool:
        with self._lock:
            requested = self.annotations.request_feature_photo(self.session, feature_id)
            if requested:
                self._emit("feature_photo_requested")
            return requested

    def save_feature_photo(self, photo_ref: str) -> bool:
        with self._lock:
            saved = self.annotations.save_feature_photo(self.session, photo_ref)
            if saved:
                self._emit("feature_updated")
            return saved

    def cancel_feature_photo(self) -> None:
        with self._lock:
            self.annotations.cancel_feature_photo(self.session)
            self._emit("feature_photo_cancelled")

    # =========================================================================
    # Anchors
    # =========================================================================

    def start_anchor_placement(self, label: str = DEFAULT_ANCHOR_PLACEMENT_LABEL) -> None:
        with self._lock:
            self.annotations.start_anchor_placement(self.session, label)
            self._emit("anchor_placement_started")

    def confirm_anchor_position(self) -> bool:
        with self._lock:
            confirmed = self.annotations.confirm_anchor_position(self.session)
            if confirmed:
                self._emit("anchor_position_confirmed")
            return confirmed

    def save_anchor(
        self,
        photo_ref: str,
        heading_degrees: Optional[float] = None,
    ) -> Optional[AnchorPoint]:
        """Save an anchor stamped with the live compass heading."""
        with self._lock:
            if heading_degrees is None:
                heading_degrees = self.heading_source()
            anchor = self.annotations.save_anchor(
                self.session,
                photo_ref,
                heading_degrees,
                linked_plan_id=self.floor_plan.id if self.floor_plan else None,
            )
            if anchor is not None:
                self._emit("anchor_saved")
            return anchor

    def cancel_anchor_placement(self) -> None:
        with self._lock:
            self.annotations.cancel_anchor_placement(self.session)
            self._emit("anchor_placement_cancelled")

    def finish_anchor_placement(self) -> None:
        with self._lock:
            self.annotations.finish_anchor_placement(self.session)
            self._emit("anchor_placement_finished")

    # =========================================================================
    # Relocalization
    # =========================================================================

    def start_relocalization(self, target_anchor: AnchorPoint) -> None:
        with self._lock:
            self.relocalizer.start(self.session, target_anchor)
            self._emit("relocalization_started")

    def confirm_relocalization(
        self,
        observed_position3d: Point3D,
        observed_heading_degrees: Optional[float] = None,
    ) -> bool:
        with self._lock:
            if observed_heading_degrees is None:
                observed_heading_degrees = self.heading_source()
            confirmed = self.relocalizer.confirm(
                self.session, observed_position3d, observed_heading_degrees
            )
            if confirmed:
                self._emit("relocalization_confirmed")
            return confirmed

    def cancel_relocalization(self) -> None:
        with self._lock:
            self.relocalizer.cancel(self.session)
            self._emit("relocalization_cancelled")

    def apply_offset(self, point: Point2D) -> Point2D:
        with self._lock:
            return self.relocalizer.apply_offset(self.session, point)

    def align_point(self, point: Point2D) -> Point2D:
        with self._lock:
            return self.relocalizer.align_point(self.session, point)

    # =========================================================================
    # Finalization
    # =========================================================================

    def _build_pins(
        self,
        corners3d: List[Point3D],
        on_surface: List[bool],
        closed: bool,
    ) -> List[Pin]:
        now = self.clock()
        count = len(corners3d)
        return [
            Pin(
                id=self.ids(),
                position3d=position3d,
                timestamp=now,
                label=corner_label(i, count, closed),
                on_detected_surface=on_surface[i] if i < len(on_surface) else True,
            )
            for i, position3d in enumerate(corners3d)
        ]

    def stop_recording(self, close_path: bool) -> Optional[FloorPlan]:
        """Finalize the recording into the target floor plan.

        Returns:
            The updated plan, or None if not recording
        """
        with self._lock:
            s = self.session
            if s.recording_state != RecordingState.RECORDING:
                return None

            path = geometry.smooth_path(s.path_points, self.config.finalize.smoothing_window)
            corners = list(s.corners)
            corners3d = list(s.corners3d)
            on_surface = list(s.corner_on_surface)

            if close_path:
                if len(path) >= 3:
                    path.append(path[0])
                if len(corners) >= 2:
                    corners.append(corners[0])
                    corners3d.append(corners3d[0])
                    on_surface.append(on_surface[0])

            pins = self._build_pins(corners3d, on_surface, close_path)

            perimeter = None
            if len(corners) >= 2:
                perimeter = geometry.perimeter(corners, closed=close_path)

            area = None
            if close_path and len(corners) >= 4:
                area = geometry.area(corners[:-1])
                if not geometry.is_valid_polygon(corners[:-1], self.config.finalize.min_polygon_area):
                    logger.warning(f"Closed outline is degenerate (area={area:.4f} m^2)")

            s.recording_state = RecordingState.COMPLETED
            s.path_points = path
            s.corners = corners
            s.corners3d = corners3d
            s.corner_on_surface = on_surface
            s.pins = pins

            if self.floor_plan is None:
                self.floor_plan = FloorPlan.new(ids=self.ids, clock=self.clock)

            plan = self.floor_plan
            plan.pins = list(pins)
            plan.corners = list(corners)
            plan.features = list(s.features)
            plan.anchors = list(s.anchors)
            plan.perimeter_meters = perimeter
            plan.area_square_meters = area
            plan.is_closed = close_path and len(corners) >= 3
            plan.reference_heading_degrees = self.heading_source()
            if s.floor_y is not None:
                plan.reference_floor_y = s.floor_y

            logger.info(
                f"Stopped recording: {len(corners)} corners, {len(path)} path points, "
                f"closed={plan.is_closed}"
            )
            self._emit("recording_stopped")
            return plan

    def reset_recording(self) -> None:
        """Discard all capture data and return to IDLE."""
        with self._lock:
            # Tracking feed status is external state and survives the reset
            tracking = (self.session.tracking_state, self.session.plane_detected, self.session.floor_y)
            self.session = CaptureSession()
            (
                self.session.tracking_state,
                self.session.plane_detected,
                self.session.floor_y,
            ) = tracking
            logger.info("Recording reset")
            self._emit("recording_reset")

    # =========================================================================
    # Manual pin placement
    # =========================================================================

    def add_pin(self, position3d: Point3D, on_surface: bool = True) -> Pin:
        with self._lock:
            pin = Pin(
                id=self.ids(),
                position3d=position3d,
                timestamp=self.clock(),
                on_detected_surface=on_surface,
            )
            self.session.pins.append(pin)
            self._emit("pin_added")
            return pin

    def undo_last_pin(self) -> Optional[Pin]:
        with self._lock:
            if not self.session.pins:
                return None
            pin = self.session.pins.pop()
            self._emit("pin_removed")
            return pin

    def close_polygon(self) -> Optional[FloorPlan]:
        """Close manually placed pins into a polygon (needs 3 pins)."""
        with self._lock:
            pins = self.session.pins
            if len(pins) < 3:
                return None

            points = [p.position2d for p in pins]
            if self.floor_plan is None:
                self.floor_plan = FloorPlan.new(ids=self.ids, clock=self.clock)

            plan = self.floor_plan
            plan.pins = list(pins)
            plan.corners = points + [points[0]]
            plan.perimeter_meters = geometry.perimeter(points, closed=True)
            plan.area_square_meters = geometry.area(points)
            plan.is_closed = True
            plan.reference_heading_degrees = self.heading_source()

            self._emit("polygon_closed")
            return plan
