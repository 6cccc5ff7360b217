"""Tests for the compass filter."""

import math
import threading
import pytest

from capture.config import CompassConfig
from capture.heading import CompassFilter, HeadingReading

GRAVITY_FLAT = (0.0, 0.0, 9.81)


def settled(accel, mag, samples=200, alpha=0.25):
    """Filter fed the same readings until the low-pass output converges."""
    compass = CompassFilter(CompassConfig(low_pass_alpha=alpha))
    for _ in range(samples):
        compass.update_accelerometer(accel)
        compass.update_magnetometer(mag)
    return compass


class TestHeading:
    """Tests for heading computation."""

    def test_initial_reading(self):
        compass = CompassFilter()
        assert compass.reading() == HeadingReading(0.0, 0.0, 0.0)
        assert compass.current_heading() == 0.0

    def test_facing_north(self):
        # Field points along +Y (device top) and down into the ground
        compass = settled(GRAVITY_FLAT, (0.0, 30.0, -40.0))
        assert compass.current_heading() == pytest.approx(0.0, abs=1e-6)

    def test_facing_west(self):
        # North is to the device's right
        compass = settled(GRAVITY_FLAT, (30.0, 0.0, -40.0))
        assert compass.current_heading() == pytest.approx(270.0, abs=1e-6)

    def test_facing_east(self):
        compass = settled(GRAVITY_FLAT, (-30.0, 0.0, -40.0))
        assert compass.current_heading() == pytest.approx(90.0, abs=1e-6)

    def test_heading_range(self):
        for angle in range(0, 360, 15):
            rad = math.radians(angle)
            mag = (-30.0 * math.sin(rad), 30.0 * math.cos(rad), -40.0)
            heading = settled(GRAVITY_FLAT, mag).current_heading()
            assert 0.0 <= heading < 360.0
            diff = (heading - angle + 180.0) % 360.0 - 180.0
            assert diff == pytest.approx(0.0, abs=1e-6)

    def test_degenerate_field_keeps_last_reading(self):
        compass = settled(GRAVITY_FLAT, (-30.0, 0.0, -40.0))
        before = compass.current_heading()
        # Field parallel to gravity gives no horizontal component
        for _ in range(200):
            compass.update_magnetometer((0.0, 0.0, 50.0))
        assert compass.current_heading() == pytest.approx(before)

    def test_low_pass_smooths_jumps(self):
        compass = settled(GRAVITY_FLAT, (0.0, 30.0, -40.0))
        compass.update_magnetometer((30.0, 0.0, -40.0))
        heading = compass.current_heading()
        # One sample moves the heading only part of the way toward 270
        assert 270.0 < heading < 360.0


class TestLevel:
    """Tests for pitch, roll and the level check."""

    def test_flat_is_level(self):
        compass = settled(GRAVITY_FLAT, (0.0, 30.0, -40.0))
        reading = compass.reading()
        assert reading.pitch == pytest.approx(0.0, abs=1e-6)
        assert reading.roll == pytest.approx(0.0, abs=1e-6)
        assert compass.is_level() is True

    def test_tilted_is_not_level(self):
        g = 9.81
        tilt = math.radians(10)
        compass = settled((g * math.sin(tilt), 0.0, g * math.cos(tilt)), (0.0, 30.0, -40.0))
        assert abs(compass.reading().roll) == pytest.approx(10.0, abs=1e-6)
        assert compass.is_level() is False
        assert compass.is_level(tolerance_deg=15.0) is True

    def test_thread_safe_updates(self):
        compass = CompassFilter()

        def feed():
            for _ in range(500):
                compass.update_accelerometer(GRAVITY_FLAT)
                compass.update_magnetometer((0.0, 30.0, -40.0))

        threads = [threading.Thread(target=feed) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert compass.current_heading() == pytest.approx(0.0, abs=1e-6)
