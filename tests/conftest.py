"""Pytest configuration and shared fixtures."""

import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from floorplan.identity import CounterIds, FixedClock
from tests.helpers import walk_rectangle


@pytest.fixture
def clock():
    """Deterministic clock starting at 1,000,000 ms, advancing 10 ms per call."""
    return FixedClock(start_ms=1_000_000, step_ms=10)


@pytest.fixture
def ids():
    return CounterIds("test")


@pytest.fixture
def sample_config():
    """Create a sample CaptureConfig."""
    from capture.config import CaptureConfig
    return CaptureConfig()


@pytest.fixture
def sample_config_dict():
    """Sample configuration as dictionary."""
    return {
        "recorder": {
            "min_distance_between_points": 0.15,
            "close_to_start_threshold": 0.5,
            "min_travel_for_close": 2.0,
        },
        "finalize": {
            "smoothing_window": 3,
            "min_polygon_area": 0.001,
        },
        "compass": {
            "low_pass_alpha": 0.25,
            "level_tolerance_deg": 2.0,
        },
        "storage": {
            "storage_dir": "/var/walkplan/plans",
        },
    }


@pytest.fixture
def heading():
    """Mutable heading source: set ``heading.value`` to change the reading."""
    class _Heading:
        value = 0.0

        def __call__(self):
            return self.value

    return _Heading()


@pytest.fixture
def machine(ids, clock, heading):
    """State machine with deterministic ids, clock and heading."""
    from capture.state_machine import CaptureStateMachine
    return CaptureStateMachine(ids=ids, clock=clock, heading_source=heading)


@pytest.fixture
def repository(tmp_path, ids, clock):
    """Repository stored under the test's temporary directory."""
    from floorplan.repository import FloorPlanRepository
    return FloorPlanRepository(tmp_path / "plans", clock=clock, ids=ids)


@pytest.fixture
def square_plan(machine):
    """Finalized 4 m x 3 m rectangle walked counter-clockwise from the origin."""
    machine.start_session()
    return walk_rectangle(machine)
