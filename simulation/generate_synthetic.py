"""Synthetic walk generator.

This module generates synthetic capture walks for development, testing and
CI. A simulated technician walks the perimeter of a room at constant speed,
marking every vertex as a corner, optionally tagging features along the walls
and placing a doorway anchor at the start. The output is the walk format read
by ``capture.replay``:

    positions.csv      timestamp_ms,x,y,z,heading_deg
    events.json        tracking / start_recording / corner / feature / anchor / stop_recording
    metadata.json      generator parameters
    ground_truth.json  room outline, perimeter and area

Plan coordinates (x, y) map to tracking coordinates (x, z); y in the tracking
frame is the device height above the session origin.

Usage:
    python -m simulation.generate_synthetic --out walks/synthetic --room l-shaped
"""
from __future__ import annotations

import argparse
import csv
import json
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from floorplan import geometry
from floorplan.models import Point2D


@dataclass
class Room:
    """Room outline as an ordered list of vertices (meters, plan frame)."""
    vertices: List[Tuple[float, float]] = field(default_factory=list)

    @classmethod
    def rectangle(cls, width: float = 4.0, height: float = 3.0, origin: Tuple[float, float] = (0, 0)) -> 'Room':
        """Create a rectangular room with its first vertex at ``origin``."""
        ox, oy = origin
        return cls(vertices=[
            (ox, oy),
            (ox + width, oy),
            (ox + width, oy + height),
            (ox, oy + height),
        ])

    @classmethod
    def l_shaped(cls, width: float = 6.0, height: float = 5.0, notch: float = 2.0) -> 'Room':
        """Create an L-shaped room: a rectangle with one corner notched out."""
        return cls(vertices=[
            (0, 0),
            (width, 0),
            (width, height - notch),
            (width - notch, height - notch),
            (width - notch, height),
            (0, height),
        ])

    @property
    def points(self) -> List[Point2D]:
        return [Point2D(x, y) for x, y in self.vertices]

    def perimeter(self) -> float:
        return geometry.perimeter(self.points, closed=True)

    def area(self) -> float:
        return geometry.area(self.points)


@dataclass
class FeatureSpec:
    """A feature to tag while walking an edge."""
    edge: int                      # index of the edge's starting vertex
    fraction: float = 0.5          # position along the edge
    feature_type: str = "vent"
    label: Optional[str] = None


@dataclass
class SyntheticWalk:
    """Generator for synthetic walks."""

    room: Room = field(default_factory=Room.rectangle)
    features: List[FeatureSpec] = field(default_factory=list)
    place_anchor: bool = True

    # Motion
    walking_speed: float = 0.5     # m/s
    sample_rate: float = 30.0      # Hz
    device_height: float = 0.0     # tracking-frame y of the device
    floor_y: float = -1.4          # detected floor plane height

    # Noise
    position_noise_stddev: float = 0.0   # meters, per axis
    heading_noise_stddev: float = 0.0    # degrees

    seed: Optional[int] = None

    def _rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)

    def generate_walk(self, output_dir: Path | str) -> Dict[str, Any]:
        """Generate a complete walk.

        Args:
            output_dir: Output directory path

        Returns:
            Summary dictionary
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        rng = self._rng()
        step_m = self.walking_speed / self.sample_rate
        dt_ms = 1000.0 / self.sample_rate

        vertices = list(self.room.vertices)
        n = len(vertices)

        rows = []
        events = []
        t = 0.0

        def emit_sample(x: float, y: float, heading: float) -> int:
            ts = int(round(t))
            nx, ny = (0.0, 0.0)
            if self.position_noise_stddev > 0:
                nx, ny = rng.normal(0.0, self.position_noise_stddev, size=2)
            hn = rng.normal(0.0, self.heading_noise_stddev) if self.heading_noise_stddev > 0 else 0.0
            rows.append((
                ts,
                x + nx,
                self.device_height,
                y + ny,
                (heading + hn) % 360.0,
            ))
            return ts

        # Compass heading of the first edge: clockwise from +y
        x0, y0 = vertices[0]
        x1, y1 = vertices[1 % n]
        heading = (90.0 - math.degrees(math.atan2(y1 - y0, x1 - x0))) % 360.0

        ts = emit_sample(x0, y0, heading)
        events.append({
            "type": "tracking",
            "timestamp": ts,
            "state": "tracking",
            "plane_detected": True,
            "floor_y": self.floor_y,
        })
        events.append({"type": "start_recording", "timestamp": ts})
        if self.place_anchor:
            events.append({
                "type": "anchor",
                "timestamp": ts,
                "label": "Doorway",
                "photo_ref": "anchor_0.jpg",
            })

        features_by_edge: Dict[int, List[FeatureSpec]] = {}
        for feature in self.features:
            features_by_edge.setdefault(feature.edge % n, []).append(feature)

        for i in range(n):
            ax, ay = vertices[i]
            bx, by = vertices[(i + 1) % n]
            length = math.hypot(bx - ax, by - ay)
            heading = (90.0 - math.degrees(math.atan2(by - ay, bx - ax))) % 360.0
            steps = max(1, int(math.ceil(length / step_m)))

            pending = sorted(features_by_edge.get(i, []), key=lambda s: s.fraction)
            for frac in np.linspace(0.0, 1.0, steps + 1)[1:]:
                t += dt_ms
                ts = emit_sample(ax + (bx - ax) * frac, ay + (by - ay) * frac, heading)
                while pending and pending[0].fraction <= frac:
                    feature = pending.pop(0)
                    events.append({
                        "type": "feature",
                        "timestamp": ts,
                        "feature_type": feature.feature_type,
                        "label": feature.label,
                    })

            # Back at the start the loop is closed instead of re-marking it
            if i < n - 1:
                events.append({"type": "corner", "timestamp": ts})

        events.append({"type": "stop_recording", "timestamp": ts, "close_path": True})

        metadata = {
            "project": "walkplan-synthetic",
            "created": datetime.now(timezone.utc).isoformat(),
            "vertices": n,
            "walking_speed": self.walking_speed,
            "sample_rate": self.sample_rate,
            "position_noise_stddev": self.position_noise_stddev,
            "heading_noise_stddev": self.heading_noise_stddev,
            "seed": self.seed,
        }
        with open(output_dir / "metadata.json", "w") as f:
            json.dump(metadata, f, indent=2)

        with open(output_dir / "positions.csv", "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["timestamp_ms", "x", "y", "z", "heading_deg"])
            for ts, x, y, z, hdg in rows:
                writer.writerow([ts, f"{x:.6f}", f"{y:.6f}", f"{z:.6f}", f"{hdg:.3f}"])

        with open(output_dir / "events.json", "w") as f:
            json.dump(events, f, indent=2)

        with open(output_dir / "ground_truth.json", "w") as f:
            truth = {
                "vertices": [{"x": x, "y": y} for x, y in vertices],
                "perimeter_meters": self.room.perimeter(),
                "area_square_meters": self.room.area(),
                "features": len(self.features),
                "anchors": 1 if self.place_anchor else 0,
            }
            json.dump(truth, f, indent=2)

        summary = {
            "status": "ok",
            "walk_dir": str(output_dir),
            "samples": len(rows),
            "events": len(events),
            "vertices": n,
        }

        print(json.dumps(summary))
        return summary


def make_walk(
    outdir: Path | str,
    room: str = "rectangle",
    noise: float = 0.0,
    seed: Optional[int] = None,
) -> Dict[str, Any]:
    """Generate a walk with a vent on the first wall and a doorway anchor."""
    walk = SyntheticWalk(
        room=Room.l_shaped() if room == "l-shaped" else Room.rectangle(),
        features=[FeatureSpec(edge=0, fraction=0.5, feature_type="vent", label="Supply")],
        position_noise_stddev=noise,
        seed=seed,
    )
    return walk.generate_walk(outdir)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Generate a synthetic capture walk for testing"
    )
    parser.add_argument(
        "--out",
        required=True,
        help="Output walk directory"
    )
    parser.add_argument(
        "--room",
        choices=["rectangle", "l-shaped"],
        default="rectangle",
        help="Room shape (default: rectangle)"
    )
    parser.add_argument(
        "--width",
        type=float,
        default=4.0,
        help="Rectangle width in meters (default: 4.0)"
    )
    parser.add_argument(
        "--height",
        type=float,
        default=3.0,
        help="Rectangle height in meters (default: 3.0)"
    )
    parser.add_argument(
        "--features",
        type=int,
        default=1,
        help="Number of vents to tag, one per wall (default: 1)"
    )
    parser.add_argument(
        "--noise",
        type=float,
        default=0.01,
        help="Position noise stddev in meters (default: 0.01)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed"
    )

    args = parser.parse_args()

    if args.room == "l-shaped":
        room = Room.l_shaped()
    else:
        room = Room.rectangle(args.width, args.height)

    seed = args.seed if args.seed is not None else random.randrange(2**31)
    walk = SyntheticWalk(
        room=room,
        features=[
            FeatureSpec(edge=i, fraction=0.5, feature_type="vent", label=f"Vent {i + 1}")
            for i in range(args.features)
        ],
        position_noise_stddev=args.noise,
        seed=seed,
    )
    walk.generate_walk(args.out)
