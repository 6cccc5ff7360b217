"""Replay a recorded walk through the capture engine.

A walk directory holds the raw feed of one capture:

    positions.csv   timestamp_ms,x,y,z,heading_deg   (one row per pose sample)
    events.json     [{"type": ..., "timestamp": ms, ...}, ...]

Event types:
    tracking         {"state": "tracking", "plane_detected": true, "floor_y": -1.4}
    start_recording
    corner
    feature          {"feature_type": "vent", "label": ..., "notes": ...}
    anchor           {"label": "Doorway", "photo_ref": "anchor_0.jpg"}
    stop_recording   {"close_path": true}

Samples and events are merged by timestamp; an event sees every sample with
a timestamp at or before its own. The finalized plan is written in the
portable format, optionally with a DXF drawing.

Usage:
    python -m capture.replay --walk walks/synthetic --out artifacts/plan.json --dxf artifacts/plan.dxf
"""
from __future__ import annotations

import argparse
import csv
import json
import logging
import math
import sys
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from floorplan.dxf_exporter import export_floor_plan
from floorplan.errors import InvalidModelError
from floorplan.identity import Clock, IdGenerator, system_clock, uuid_ids
from floorplan.models import FeatureType, FloorPlan, Point3D
from floorplan.repository import encode_plan

from .config import CaptureConfig, load_config
from .session import RecordingState, TrackingState
from .state_machine import CaptureStateMachine

logger = logging.getLogger(__name__)


@dataclass
class PoseSample:
    """One row of positions.csv."""
    timestamp_ms: int
    position: Point3D
    heading_deg: float


@dataclass
class ReplayResult:
    """Result of replaying a walk."""

    success: bool
    walk_path: str
    output_path: str

    # Replay stats
    num_samples: int = 0
    num_admitted: int = 0
    num_corners: int = 0
    num_features: int = 0
    num_anchors: int = 0

    # Plan metrics
    perimeter_meters: Optional[float] = None
    area_square_meters: Optional[float] = None
    is_closed: bool = False

    # Issues and warnings
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    processing_time_sec: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def load_positions(path: Path | str) -> List[PoseSample]:
    """Load pose samples, sorted by timestamp.

    Raises:
        ValueError: on a malformed row
    """
    samples = []
    with open(path, newline="") as f:
        for row in csv.DictReader(f):
            samples.append(PoseSample(
                timestamp_ms=int(row["timestamp_ms"]),
                position=Point3D(float(row["x"]), float(row["y"]), float(row["z"])),
                heading_deg=float(row.get("heading_deg") or 0.0),
            ))
    samples.sort(key=lambda s: s.timestamp_ms)
    return samples


def _has_numeric_timestamp(event: Dict[str, Any]) -> bool:
    ts = event.get("timestamp", 0)
    return isinstance(ts, (int, float)) and not isinstance(ts, bool) and math.isfinite(ts)


def load_events(
    path: Path | str, dropped: Optional[List[Dict[str, Any]]] = None
) -> List[Dict[str, Any]]:
    """Load walk events, sorted by timestamp.

    Entries without a ``type`` are ignored. Events whose ``timestamp`` is not
    a finite number are left out and appended to ``dropped`` when given.
    A missing timestamp counts as 0.
    """
    with open(path) as f:
        events = json.load(f)
    if not isinstance(events, list):
        raise ValueError("events.json must contain a list")

    typed = [e for e in events if isinstance(e, dict) and "type" in e]
    events = [e for e in typed if _has_numeric_timestamp(e)]
    if dropped is not None:
        dropped.extend(e for e in typed if not _has_numeric_timestamp(e))
    events.sort(key=lambda e: e.get("timestamp", 0))
    return events


@dataclass
class WalkReplay:
    """Drives a ``CaptureStateMachine`` from a recorded walk."""

    config: CaptureConfig = field(default_factory=CaptureConfig)
    ids: IdGenerator = field(default=uuid_ids)
    clock: Clock = field(default=system_clock)

    samples: List[PoseSample] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)
    machine: Optional[CaptureStateMachine] = None

    result: ReplayResult = field(default_factory=lambda: ReplayResult(
        success=False, walk_path="", output_path=""
    ))

    _heading: float = 0.0

    def load_walk(self, walk_dir: Path | str) -> bool:
        """Load positions and events from a walk directory.

        Returns:
            True if loading successful
        """
        walk_dir = Path(walk_dir)
        self.result.walk_path = str(walk_dir)

        if not walk_dir.exists():
            self.result.errors.append(f"Walk directory not found: {walk_dir}")
            return False

        positions_file = walk_dir / "positions.csv"
        events_file = walk_dir / "events.json"

        if not positions_file.exists():
            self.result.errors.append("No positions.csv found in walk")
            return False

        try:
            self.samples = load_positions(positions_file)
        except (KeyError, ValueError) as e:
            self.result.errors.append(f"Malformed positions.csv: {e}")
            return False

        if events_file.exists():
            dropped: List[Dict[str, Any]] = []
            try:
                self.events = load_events(events_file, dropped)
            except (ValueError, json.JSONDecodeError) as e:
                self.result.errors.append(f"Malformed events.json: {e}")
                return False
            for event in dropped:
                self.result.warnings.append(
                    f"Skipped {event['type']!r} event with invalid timestamp {event.get('timestamp')!r}"
                )
        else:
            self.result.warnings.append("No events.json found; nothing will be recorded")

        self.result.num_samples = len(self.samples)
        return True

    def _current_heading(self) -> float:
        return self._heading

    def _apply_event(self, event: Dict[str, Any], last: Optional[PoseSample]) -> None:
        machine = self.machine
        kind = event["type"]
        ts = event.get("timestamp", 0)

        if kind == "tracking":
            try:
                state = TrackingState(event.get("state", "tracking"))
            except ValueError:
                self.result.warnings.append(f"Unknown tracking state at {ts}: {event.get('state')!r}")
                return
            machine.update_tracking_state(
                state,
                bool(event.get("plane_detected", False)),
                event.get("floor_y"),
            )

        elif kind == "start_recording":
            if last is None:
                self.result.errors.append(f"start_recording at {ts} before any position")
                return
            machine.start_recording(last.position)

        elif kind == "corner":
            if not machine.mark_corner():
                self.result.warnings.append(f"Corner at {ts} ignored (not recording)")

        elif kind == "feature":
            try:
                feature_type = FeatureType(event.get("feature_type", "other"))
            except ValueError:
                self.result.warnings.append(
                    f"Unknown feature type at {ts}: {event.get('feature_type')!r}"
                )
                feature_type = FeatureType.OTHER
            feature = machine.add_feature(
                feature_type,
                label=event.get("label"),
                photo_ref=event.get("photo_ref"),
                notes=event.get("notes"),
            )
            if feature is None:
                self.result.warnings.append(f"Feature at {ts} ignored (no position)")

        elif kind == "anchor":
            machine.start_anchor_placement(event.get("label", "Doorway"))
            machine.confirm_anchor_position()
            anchor = machine.save_anchor(event.get("photo_ref", ""))
            if anchor is None:
                self.result.warnings.append(f"Anchor at {ts} not saved")
                machine.cancel_anchor_placement()
            else:
                machine.finish_anchor_placement()

        elif kind == "stop_recording":
            plan = machine.stop_recording(bool(event.get("close_path", True)))
            if plan is None:
                self.result.warnings.append(f"stop_recording at {ts} ignored (not recording)")

        else:
            self.result.warnings.append(f"Unknown event type at {ts}: {kind!r}")

    def replay(self, plan: Optional[FloorPlan] = None) -> Optional[FloorPlan]:
        """Feed samples and events through a fresh state machine.

        Returns:
            The finalized plan, or None if the walk never finished recording
        """
        self.machine = CaptureStateMachine(
            config=self.config,
            ids=self.ids,
            clock=self.clock,
            heading_source=self._current_heading,
        )
        self.machine.start_session(plan)

        last: Optional[PoseSample] = None
        i = 0
        for event in self.events:
            ts = event.get("timestamp", 0)
            while i < len(self.samples) and self.samples[i].timestamp_ms <= ts:
                last = self.samples[i]
                self._heading = last.heading_deg
                if self.machine.update_position(last.position):
                    self.result.num_admitted += 1
                i += 1
            self._apply_event(event, last)

        # Trailing samples after the last event
        for sample in self.samples[i:]:
            self._heading = sample.heading_deg
            if self.machine.update_position(sample.position):
                self.result.num_admitted += 1

        session = self.machine.snapshot()
        if session.recording_state != RecordingState.COMPLETED:
            self.result.errors.append("Walk did not finish recording")
            return None

        plan = self.machine.floor_plan
        self.result.num_corners = len(plan.corners)
        self.result.num_features = len(plan.features)
        self.result.num_anchors = len(plan.anchors)
        self.result.perimeter_meters = plan.perimeter_meters
        self.result.area_square_meters = plan.area_square_meters
        self.result.is_closed = plan.is_closed

        if not plan.is_closed:
            self.result.warnings.append("Plan outline is open")
        return plan

    def run(
        self,
        walk_dir: Path | str,
        output_path: Path | str,
        dxf_path: Optional[Path | str] = None,
    ) -> ReplayResult:
        """Run the full replay: load, replay, write outputs."""
        start_time = time.time()
        output_path = Path(output_path)
        self.result.output_path = str(output_path)

        logger.info(f"Loading walk from {walk_dir}")
        if not self.load_walk(walk_dir):
            return self._finish(start_time)
        logger.info(f"Loaded {len(self.samples)} samples, {len(self.events)} events")

        try:
            plan = self.replay()
        except InvalidModelError as e:
            self.result.errors.append(f"Invalid capture data: {e.message}")
            return self._finish(start_time)
        if plan is None:
            return self._finish(start_time)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(encode_plan(plan))
        logger.info(f"Wrote plan to {output_path}")

        if dxf_path is not None:
            dxf_path = Path(dxf_path)
            dxf_path.parent.mkdir(parents=True, exist_ok=True)
            path_points = self.machine.snapshot().path_points
            if not export_floor_plan(plan, dxf_path, path_points=path_points):
                self.result.warnings.append(f"DXF export failed: {dxf_path}")

        self.result.success = True
        return self._finish(start_time)

    def _finish(self, start_time: float) -> ReplayResult:
        self.result.processing_time_sec = time.time() - start_time
        return self.result


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Replay a recorded walk into a floor plan"
    )
    parser.add_argument(
        "--walk",
        required=True,
        help="Path to walk directory"
    )
    parser.add_argument(
        "--out",
        required=True,
        help="Output plan file (portable JSON)"
    )
    parser.add_argument(
        "--dxf",
        help="Optional DXF output file"
    )
    parser.add_argument(
        "--config", "-c",
        help="Capture configuration file"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    replay = WalkReplay(config=load_config(args.config))
    result = replay.run(args.walk, args.out, args.dxf)

    # Print summary
    print("\n" + "=" * 60)
    print("REPLAY SUMMARY")
    print("=" * 60)
    print(f"Status: {'SUCCESS' if result.success else 'FAILED'}")
    print(f"Samples: {result.num_samples} ({result.num_admitted} admitted)")
    print(f"Corners: {result.num_corners}")
    print(f"Features: {result.num_features}")
    print(f"Anchors: {result.num_anchors}")
    if result.perimeter_meters is not None:
        print(f"Perimeter: {result.perimeter_meters:.2f} m")
    if result.area_square_meters is not None:
        print(f"Area: {result.area_square_meters:.2f} m^2")
    print(f"Time: {result.processing_time_sec:.2f}s")

    if result.warnings:
        print(f"\nWarnings ({len(result.warnings)}):")
        for w in result.warnings:
            print(f"  - {w}")

    if result.errors:
        print(f"\nErrors ({len(result.errors)}):")
        for e in result.errors:
            print(f"  - {e}")

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
