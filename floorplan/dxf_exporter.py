"""DXF exporter for Walkplan floor plans.

Exports a finalized floor plan to DXF so it can be opened in CAD software
like AutoCAD, Rhino, or similar applications.

Layers:
- CORNERS: Polyline through the user-marked corners
- PATH: Optional walked path (smoothed path points)
- FEATURES: Tagged equipment as circles with type labels
- ANCHORS: Relocalization anchors as heading arrows
- ANNOTATIONS: Optional edge length dimensions
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

import ezdxf

from .models import AnchorPoint, FeatureMarker, FloorPlan, Point2D

logger = logging.getLogger(__name__)


# Layer configuration
LAYER_CORNERS = "CORNERS"
LAYER_PATH = "PATH"
LAYER_FEATURES = "FEATURES"
LAYER_ANCHORS = "ANCHORS"
LAYER_ANNOTATIONS = "ANNOTATIONS"

# Colors (AutoCAD Color Index)
COLOR_CORNERS = 7  # White
COLOR_PATH = 8  # Gray
COLOR_FEATURES = 4  # Cyan
COLOR_ANCHORS = 1  # Red
COLOR_ANNOTATIONS = 3  # Green


@dataclass
class DxfExporter:
    """Export floor plan data to DXF format.

    Parameters:
        include_path: Whether to include the walked path
        include_annotations: Whether to include edge length dimensions
        feature_marker_size: Radius of feature markers in meters
        anchor_marker_size: Length of anchor heading arrows in meters
    """

    include_path: bool = True
    include_annotations: bool = False
    feature_marker_size: float = 0.15  # meters
    anchor_marker_size: float = 0.3  # meters
    text_height: float = 0.12  # meters

    _doc: object = field(default=None, repr=False)
    _msp: object = field(default=None, repr=False)

    def __post_init__(self):
        """Initialize DXF document."""
        self._doc = ezdxf.new(dxfversion="R2010")
        self._msp = self._doc.modelspace()

        for name, color in (
            (LAYER_CORNERS, COLOR_CORNERS),
            (LAYER_PATH, COLOR_PATH),
            (LAYER_FEATURES, COLOR_FEATURES),
            (LAYER_ANCHORS, COLOR_ANCHORS),
            (LAYER_ANNOTATIONS, COLOR_ANNOTATIONS),
        ):
            self._doc.layers.add(name, color=color, linetype="CONTINUOUS")

    def add_corners(self, corners: Sequence[Point2D], closed: bool = False) -> None:
        """Add the corner outline.

        A closed plan stores its first corner again at the end; the duplicate
        is dropped and the polyline closed instead.
        """
        points = [(c.x, c.y) for c in corners]
        if closed and len(points) > 1 and points[0] == points[-1]:
            points = points[:-1]
        if len(points) < 2:
            return

        self._msp.add_lwpolyline(
            points,
            close=closed,
            dxfattribs={"layer": LAYER_CORNERS}
        )

    def add_path(self, path_points: Sequence[Point2D]) -> None:
        """Add the walked path as an open polyline."""
        if not self.include_path or len(path_points) < 2:
            return

        self._msp.add_lwpolyline(
            [(p.x, p.y) for p in path_points],
            dxfattribs={"layer": LAYER_PATH}
        )

    def add_features(self, features: Sequence[FeatureMarker]) -> None:
        """Add feature markers with their type (and label when set)."""
        for feature in features:
            x, y = feature.position2d.x, feature.position2d.y
            self._msp.add_circle(
                (x, y),
                radius=self.feature_marker_size,
                dxfattribs={"layer": LAYER_FEATURES}
            )

            text = feature.type.display_name
            if feature.label:
                text = f"{text}: {feature.label}"

            self._msp.add_text(
                text,
                height=self.text_height,
                dxfattribs={
                    "layer": LAYER_FEATURES,
                    "insert": (x + self.feature_marker_size, y + self.feature_marker_size)
                }
            )

    def add_anchors(self, anchors: Sequence[AnchorPoint]) -> None:
        """Add anchors as arrows pointing along their compass heading.

        Compass headings are clockwise from north (+Y); the arrow direction
        is converted to the CCW-from-+X convention of the drawing.
        """
        for anchor in anchors:
            x, y = anchor.position2d.x, anchor.position2d.y
            theta = math.radians(90.0 - anchor.heading_degrees)

            head_len = self.anchor_marker_size
            head_x = x + head_len * math.cos(theta)
            head_y = y + head_len * math.sin(theta)

            self._msp.add_line(
                (x, y),
                (head_x, head_y),
                dxfattribs={"layer": LAYER_ANCHORS}
            )

            # Arrow wings
            wing_angle = math.radians(150)
            wing_len = head_len * 0.3

            for sign in [1, -1]:
                wing_x = head_x + wing_len * math.cos(theta + sign * wing_angle)
                wing_y = head_y + wing_len * math.sin(theta + sign * wing_angle)
                self._msp.add_line(
                    (head_x, head_y),
                    (wing_x, wing_y),
                    dxfattribs={"layer": LAYER_ANCHORS}
                )

            self._msp.add_text(
                anchor.label,
                height=self.text_height,
                dxfattribs={
                    "layer": LAYER_ANCHORS,
                    "insert": (x + head_len, y - head_len)
                }
            )

    def add_dimension(
        self,
        p1: Point2D,
        p2: Point2D,
        offset: float = 0.3
    ) -> None:
        """Add a linear dimension annotation for one edge.

        Args:
            p1: Start point
            p2: End point
            offset: Distance to offset dimension line from the edge
        """
        if not self.include_annotations:
            return

        dx = p2.x - p1.x
        dy = p2.y - p1.y
        length = math.sqrt(dx*dx + dy*dy)

        if length < 0.01:
            return

        # Perpendicular direction
        perp_x = -dy / length
        perp_y = dx / length

        d1 = (p1.x + offset * perp_x, p1.y + offset * perp_y)
        d2 = (p2.x + offset * perp_x, p2.y + offset * perp_y)

        # Extension lines
        self._msp.add_line((p1.x, p1.y), d1, dxfattribs={"layer": LAYER_ANNOTATIONS})
        self._msp.add_line((p2.x, p2.y), d2, dxfattribs={"layer": LAYER_ANNOTATIONS})

        # Dimension line
        self._msp.add_line(d1, d2, dxfattribs={"layer": LAYER_ANNOTATIONS})

        mid = ((d1[0] + d2[0]) / 2, (d1[1] + d2[1]) / 2)
        self._msp.add_text(
            f"{length:.2f}m",
            height=self.text_height,
            dxfattribs={
                "layer": LAYER_ANNOTATIONS,
                "insert": mid,
                "rotation": math.degrees(math.atan2(dy, dx))
            }
        )

    def add_edge_dimensions(self, corners: Sequence[Point2D]) -> None:
        for p1, p2 in zip(corners, corners[1:]):
            self.add_dimension(p1, p2)

    def entity_count(self, layer: str) -> int:
        """Number of modelspace entities on ``layer``."""
        return len(self._msp.query(f'*[layer=="{layer}"]'))

    def save(self, path: Path | str) -> bool:
        """Save DXF to file.

        Returns:
            True if successful, False if the file could not be written
        """
        try:
            self._doc.saveas(path)
        except OSError as e:
            logger.error(f"Failed to write DXF {path}: {e}")
            return False
        return True


def export_floor_plan(
    plan: FloorPlan,
    output_path: Path | str = "floor_plan.dxf",
    path_points: Optional[Sequence[Point2D]] = None,
    **kwargs
) -> bool:
    """Convenience function to export a complete floor plan.

    Args:
        plan: Finalized floor plan
        output_path: Output DXF file path
        path_points: Optional walked path to include
        **kwargs: Additional parameters for DxfExporter

    Returns:
        True if successful
    """
    exporter = DxfExporter(**kwargs)

    exporter.add_corners(plan.corners, closed=plan.is_closed)
    exporter.add_edge_dimensions(plan.corners)
    exporter.add_features(plan.features)
    exporter.add_anchors(plan.anchors)

    if path_points:
        exporter.add_path(path_points)

    return exporter.save(output_path)
