"""Corner, feature and anchor markers placed at the live position.

Every marker needs a current position. When tracking is lost there is none,
and the operation quietly does nothing: a technician mid-walk is never
interrupted by an error for a transient condition.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from floorplan.identity import Clock, IdGenerator, system_clock, uuid_ids
from floorplan.models import AnchorPoint, FeatureMarker, FeatureType, Point3D

from .session import AnchorPlacementState, CaptureSession, RecordingState

logger = logging.getLogger(__name__)

DEFAULT_ANCHOR_PLACEMENT_LABEL = "Doorway"
DEFAULT_ANCHOR_LABEL = "Anchor"


@dataclass
class AnnotationTracker:
    """Records user-initiated markers against the live position."""

    ids: IdGenerator = field(default=uuid_ids)
    clock: Clock = field(default=system_clock)

    # ------------------------------------------------------------------
    # Corners
    # ------------------------------------------------------------------

    def mark_corner(self, session: CaptureSession) -> bool:
        """Append the live position as a corner (recording only)."""
        if session.recording_state != RecordingState.RECORDING:
            return False

        pos = session.current_position2d
        if pos is None:
            return False

        pos3d = session.current_position3d
        if pos3d is None:
            pos3d = Point3D(pos.x, session.floor_y or 0.0, pos.y)

        session.corners.append(pos)
        session.corners3d.append(pos3d)
        session.corner_on_surface.append(session.plane_detected)

        logger.debug(f"Marked corner #{len(session.corners)} at {pos} (3D: {pos3d})")
        return True

    # ------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------

    def show_feature_picker(self, session: CaptureSession) -> None:
        session.show_feature_picker = True

    def hide_feature_picker(self, session: CaptureSession) -> None:
        session.show_feature_picker = False

    def add_feature(
        self,
        session: CaptureSession,
        feature_type: FeatureType,
        label: Optional[str] = None,
        photo_ref: Optional[str] = None,
        linked_device_id: Optional[str] = None,
        linked_device_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Optional[FeatureMarker]:
        """Tag a feature at the live position and close the feature picker."""
        pos = session.current_position2d
        if pos is None:
            return None

        feature = FeatureMarker(
            id=self.ids(),
            type=feature_type,
            position2d=pos,
            position3d=session.current_position3d,
            label=label,
            photo_ref=photo_ref,
            linked_device_id=linked_device_id,
            linked_device_name=linked_device_name,
            notes=notes,
            timestamp=self.clock(),
        )
        session.features.append(feature)
        session.show_feature_picker = False

        logger.debug(f"Added feature: {feature_type.display_name} at {pos}")
        return feature

    def remove_feature(self, session: CaptureSession, feature_id: str) -> bool:
        remaining = [f for f in session.features if f.id != feature_id]
        removed = len(remaining) != len(session.features)
        session.features = remaining
        return removed

    def update_feature_photo(
        self,
        session: CaptureSession,
        feature_id: str,
        photo_ref: Optional[str],
    ) -> bool:
        updated = False
        features = []
        for f in session.features:
            if f.id == feature_id:
                f = f.with_photo(photo_ref)
                updated = True
            features.append(f)
        session.features = features
        return updated

    def request_feature_photo(self, session: CaptureSession, feature_id: str) -> bool:
        """Mark a feature as waiting for a photo."""
        if not any(f.id == feature_id for f in session.features):
            return False
        session.pending_feature_photo_id = feature_id
        return True

    def save_feature_photo(self, session: CaptureSession, photo_ref: str) -> bool:
        """Attach a photo to the feature that requested one."""
        feature_id = session.pending_feature_photo_id
        if feature_id is None:
            return False

        self.update_feature_photo(session, feature_id, photo_ref)
        session.pending_feature_photo_id = None

        logger.debug(f"Saved photo for feature {feature_id}: {photo_ref}")
        return True

    def cancel_feature_photo(self, session: CaptureSession) -> None:
        session.pending_feature_photo_id = None

    # ------------------------------------------------------------------
    # Anchors: POSITIONING -> CAPTURING -> CONFIRMED
    # ------------------------------------------------------------------

    def start_anchor_placement(
        self,
        session: CaptureSession,
        label: str = DEFAULT_ANCHOR_PLACEMENT_LABEL,
    ) -> None:
        session.anchor_placement_state = AnchorPlacementState.POSITIONING
        session.pending_anchor_label = label

    def confirm_anchor_position(self, session: CaptureSession) -> bool:
        """Technician is standing at the anchor spot, ready for the photo."""
        if session.anchor_placement_state != AnchorPlacementState.POSITIONING:
            return False
        session.anchor_placement_state = AnchorPlacementState.CAPTURING
        return True

    def save_anchor(
        self,
        session: CaptureSession,
        photo_ref: str,
        heading_degrees: float,
        linked_plan_id: Optional[str] = None,
    ) -> Optional[AnchorPoint]:
        """Save an anchor at the live position with the compass heading.

        Requires a confirmed position (CAPTURING), a live 2D and 3D position
        and a reference photo.
        """
        if session.anchor_placement_state != AnchorPlacementState.CAPTURING:
            logger.debug("save_anchor ignored: anchor position not confirmed")
            return None

        pos = session.current_position2d
        pos3d = session.current_position3d
        if pos is None or pos3d is None or not photo_ref:
            return None

        anchor = AnchorPoint(
            id=self.ids(),
            position2d=pos,
            position3d=pos3d,
            heading_degrees=heading_degrees,
            photo_ref=photo_ref,
            label=session.pending_anchor_label or DEFAULT_ANCHOR_LABEL,
            linked_plan_id=linked_plan_id,
            timestamp=self.clock(),
        )
        session.anchors.append(anchor)
        session.anchor_placement_state = AnchorPlacementState.CONFIRMED
        session.pending_anchor_label = None

        logger.debug(f"Saved anchor '{anchor.label}' at {pos}, heading={heading_degrees}")
        return anchor

    def cancel_anchor_placement(self, session: CaptureSession) -> None:
        session.anchor_placement_state = AnchorPlacementState.NONE
        session.pending_anchor_label = None

    def finish_anchor_placement(self, session: CaptureSession) -> None:
        session.anchor_placement_state = AnchorPlacementState.NONE
