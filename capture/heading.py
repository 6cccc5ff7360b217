"""Compass heading from accelerometer and magnetometer readings.

The filter low-pass filters raw gravity and geomagnetic vectors and derives
device orientation with the usual rotation-matrix construction:

    H = E x A   (east, from geomagnetic E and gravity A)
    M = A x H   (magnetic north)

    azimuth = atan2(H_y, M_y)
    pitch   = asin(-A_y)
    roll    = atan2(-A_x, A_z)

Heading is reported in degrees in [0, 360), clockwise from magnetic north.
The capture engine only polls the heading at discrete moments (finalize,
anchor save, relocalization confirm), so ``current_heading`` is suitable as
the state machine's ``heading_source``.
"""
from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .config import CompassConfig

logger = logging.getLogger(__name__)

# Below this |E x A| the field is (anti)parallel to gravity or absent
MIN_HORIZONTAL_FIELD = 0.1


@dataclass
class HeadingReading:
    """Device orientation in degrees."""
    heading: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0


class CompassFilter:
    """Tilt-compensated compass with low-pass filtered inputs."""

    def __init__(self, config: CompassConfig | None = None):
        self.config = config or CompassConfig()
        self._gravity = np.zeros(3)
        self._geomagnetic = np.zeros(3)
        self._reading = HeadingReading()
        self._lock = threading.Lock()

    def _low_pass(self, current: np.ndarray, sample: Sequence[float]) -> np.ndarray:
        alpha = self.config.low_pass_alpha
        return current + alpha * (np.asarray(sample, dtype=float) - current)

    def update_accelerometer(self, values: Sequence[float]) -> None:
        """Feed an accelerometer sample (m/s^2, device axes)."""
        with self._lock:
            self._gravity = self._low_pass(self._gravity, values)
            self._recompute()

    def update_magnetometer(self, values: Sequence[float]) -> None:
        """Feed a magnetometer sample (uT, device axes)."""
        with self._lock:
            self._geomagnetic = self._low_pass(self._geomagnetic, values)
            self._recompute()

    def _recompute(self) -> None:
        A = self._gravity
        E = self._geomagnetic

        H = np.cross(E, A)
        norm_h = np.linalg.norm(H)
        norm_a = np.linalg.norm(A)
        if norm_h < MIN_HORIZONTAL_FIELD or norm_a == 0:
            # Free fall or no usable field: keep the last good reading
            return

        H = H / norm_h
        A = A / norm_a
        M = np.cross(A, H)

        azimuth = math.degrees(math.atan2(H[1], M[1]))
        if azimuth < 0:
            azimuth += 360.0

        self._reading = HeadingReading(
            heading=azimuth % 360.0,
            pitch=math.degrees(math.asin(max(-1.0, min(1.0, -A[1])))),
            roll=math.degrees(math.atan2(-A[0], A[2])),
        )

    def reading(self) -> HeadingReading:
        with self._lock:
            return HeadingReading(
                heading=self._reading.heading,
                pitch=self._reading.pitch,
                roll=self._reading.roll,
            )

    def current_heading(self) -> float:
        """Compass heading in degrees [0, 360)."""
        with self._lock:
            return self._reading.heading

    def is_level(self, tolerance_deg: float | None = None) -> bool:
        """Bubble-level check: pitch and roll within tolerance."""
        if tolerance_deg is None:
            tolerance_deg = self.config.level_tolerance_deg
        r = self.reading()
        return abs(r.pitch) < tolerance_deg and abs(r.roll) < tolerance_deg
