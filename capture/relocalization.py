"""Relocalization against a previously placed anchor.

A new mapping session has its own coordinate origin. Standing where an anchor
of an earlier session was placed, the technician confirms the match; the
calculator then records the translation mapping new-session coordinates onto
the anchor's frame and the difference in compass heading between the two
visits.

Only the translation is applied by ``apply_offset``. The rotation offset is
exposed for callers that merge rooms; ``align_point`` applies both but is
never used automatically on recorded geometry.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

from floorplan import geometry
from floorplan.models import AnchorPoint, Point2D, Point3D

from .session import CaptureSession, RelocalizationState

logger = logging.getLogger(__name__)


def compute_alignment(
    anchor: AnchorPoint,
    observed_position3d: Point3D,
    observed_heading_degrees: float,
) -> Tuple[Point2D, float]:
    """Translation and rotation aligning the observed frame to the anchor's.

    Returns:
        Tuple of (offset, rotation_offset_degrees) where
        ``offset = anchor.position2d - observed.project()`` and
        ``rotation = anchor.heading - observed_heading``
    """
    offset = anchor.position2d - observed_position3d.project()
    rotation_offset = anchor.heading_degrees - observed_heading_degrees
    return offset, rotation_offset


@dataclass
class RelocalizationCalculator:
    """Relocalization sub-state transitions on a capture session."""

    def start(self, session: CaptureSession, target_anchor: AnchorPoint) -> None:
        logger.info(f"Starting relocalization to anchor: {target_anchor.label}")
        session.relocalization = RelocalizationState(
            is_relocalizing=True,
            target_anchor=target_anchor,
            is_matched=False,
        )

    def confirm(
        self,
        session: CaptureSession,
        observed_position3d: Point3D,
        observed_heading_degrees: float,
    ) -> bool:
        """Technician stands at the target anchor; compute the alignment."""
        state = session.relocalization
        if state.target_anchor is None:
            return False

        offset, rotation = compute_alignment(
            state.target_anchor, observed_position3d, observed_heading_degrees
        )
        state.is_matched = True
        state.observed_position = observed_position3d.project()
        state.offset = offset
        state.rotation_offset_degrees = rotation

        logger.info(
            f"Relocalization confirmed: offset=({offset.x:.3f}, {offset.y:.3f}), "
            f"rotation={rotation:.1f}"
        )
        return True

    def cancel(self, session: CaptureSession) -> None:
        session.relocalization = RelocalizationState()

    def apply_offset(self, session: CaptureSession, point: Point2D) -> Point2D:
        """Translate into the anchor frame; identity when not matched."""
        state = session.relocalization
        if not state.is_matched or state.offset is None:
            return point
        return point + state.offset

    def align_point(self, session: CaptureSession, point: Point2D) -> Point2D:
        """Rotate about the observed position, then translate.

        The rotation uses ``geometry.rotate``'s counter-clockwise convention.
        The observed position itself always maps onto the anchor position.
        Identity when not matched.
        """
        state = session.relocalization
        if not state.is_matched or state.offset is None or state.observed_position is None:
            return point

        rotated = geometry.rotate_about(point, state.observed_position, state.rotation_offset_degrees)
        return rotated + state.offset
