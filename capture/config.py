"""Configuration settings for the capture engine."""

from dataclasses import dataclass, field
from typing import Optional
import json
import os


@dataclass
class RecorderConfig:
    """Path recording thresholds."""
    min_distance_between_points: float = 0.15  # meters, admission gate
    close_to_start_threshold: float = 0.5      # meters, "back at start"
    min_travel_for_close: float = 2.0          # meters walked before closing is offered


@dataclass
class FinalizeConfig:
    """Finalization (stop recording) parameters."""
    smoothing_window: int = 3         # symmetric moving average
    min_polygon_area: float = 0.001   # m^2, below this a polygon is degenerate


@dataclass
class CompassConfig:
    """Compass filter parameters."""
    low_pass_alpha: float = 0.25
    level_tolerance_deg: float = 2.0


@dataclass
class StorageConfig:
    """Floor plan storage configuration."""
    storage_dir: str = os.path.expanduser("~/.local/share/walkplan/plans")


@dataclass
class CaptureConfig:
    """Main capture engine configuration."""
    recorder: RecorderConfig = field(default_factory=RecorderConfig)
    finalize: FinalizeConfig = field(default_factory=FinalizeConfig)
    compass: CompassConfig = field(default_factory=CompassConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def from_file(cls, path: str) -> "CaptureConfig":
        """Load configuration from JSON file."""
        with open(path) as f:
            data = json.load(f)

        config = cls()
        for section in ("recorder", "finalize", "compass", "storage"):
            target = getattr(config, section)
            for k, v in data.get(section, {}).items():
                if hasattr(target, k):
                    setattr(target, k, v)
        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "recorder": {
                "min_distance_between_points": self.recorder.min_distance_between_points,
                "close_to_start_threshold": self.recorder.close_to_start_threshold,
                "min_travel_for_close": self.recorder.min_travel_for_close,
            },
            "finalize": {
                "smoothing_window": self.finalize.smoothing_window,
                "min_polygon_area": self.finalize.min_polygon_area,
            },
            "compass": {
                "low_pass_alpha": self.compass.low_pass_alpha,
                "level_tolerance_deg": self.compass.level_tolerance_deg,
            },
            "storage": {
                "storage_dir": self.storage.storage_dir,
            },
        }

    def save(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)


# Default config file locations
DEFAULT_CONFIG_PATHS = [
    "/etc/walkplan/capture.json",
    os.path.expanduser("~/.config/walkplan/capture.json"),
    "./capture_config.json",
]


def load_config(path: Optional[str] = None) -> CaptureConfig:
    """Load configuration from file or return defaults."""
    if path and os.path.exists(path):
        return CaptureConfig.from_file(path)

    for p in DEFAULT_CONFIG_PATHS:
        if os.path.exists(p):
            return CaptureConfig.from_file(p)

    return CaptureConfig()
