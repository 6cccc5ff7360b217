"""Tests for anchor-based relocalization."""

import pytest

from capture.relocalization import RelocalizationCalculator, compute_alignment
from capture.session import CaptureSession
from floorplan.models import AnchorPoint, Point2D, Point3D


@pytest.fixture
def anchor():
    return AnchorPoint(
        id="anchor-1",
        position2d=Point2D(5, 5),
        position3d=Point3D(5, 0, 5),
        heading_degrees=90.0,
        photo_ref="door.jpg",
        label="Front door",
    )


@pytest.fixture
def calculator():
    return RelocalizationCalculator()


class TestComputeAlignment:
    """Tests for compute_alignment()."""

    def test_offset_and_rotation(self, anchor):
        offset, rotation = compute_alignment(anchor, Point3D(1, 0, 1), 80.0)
        assert offset == Point2D(4, 4)
        assert rotation == pytest.approx(10.0)

    def test_identity_when_standing_on_anchor(self, anchor):
        offset, rotation = compute_alignment(anchor, Point3D(5, -1.2, 5), 90.0)
        assert offset == Point2D(0, 0)
        assert rotation == 0.0

    def test_rotation_not_normalized(self, anchor):
        _, rotation = compute_alignment(anchor, Point3D(0, 0, 0), 350.0)
        assert rotation == pytest.approx(-260.0)


class TestRelocalizationFlow:
    """Tests for RelocalizationCalculator."""

    def test_start(self, calculator, anchor):
        session = CaptureSession()
        calculator.start(session, anchor)
        state = session.relocalization
        assert state.is_relocalizing is True
        assert state.target_anchor == anchor
        assert state.is_matched is False

    def test_confirm(self, calculator, anchor):
        session = CaptureSession()
        calculator.start(session, anchor)
        assert calculator.confirm(session, Point3D(1, 0, 1), 80.0) is True
        state = session.relocalization
        assert state.is_matched is True
        assert state.offset == Point2D(4, 4)
        assert state.rotation_offset_degrees == pytest.approx(10.0)
        assert state.observed_position == Point2D(1, 1)

    def test_confirm_without_target_is_noop(self, calculator):
        session = CaptureSession()
        assert calculator.confirm(session, Point3D(1, 0, 1), 80.0) is False
        assert session.relocalization.is_matched is False

    def test_apply_offset(self, calculator, anchor):
        session = CaptureSession()
        calculator.start(session, anchor)
        calculator.confirm(session, Point3D(1, 0, 1), 80.0)
        assert calculator.apply_offset(session, Point2D(2, 3)) == Point2D(6, 7)

    def test_apply_offset_identity_when_unmatched(self, calculator, anchor):
        session = CaptureSession()
        assert calculator.apply_offset(session, Point2D(2, 3)) == Point2D(2, 3)
        calculator.start(session, anchor)
        assert calculator.apply_offset(session, Point2D(2, 3)) == Point2D(2, 3)

    def test_cancel_resets(self, calculator, anchor):
        session = CaptureSession()
        calculator.start(session, anchor)
        calculator.confirm(session, Point3D(1, 0, 1), 80.0)
        calculator.cancel(session)
        state = session.relocalization
        assert state.is_relocalizing is False
        assert state.target_anchor is None
        assert state.offset is None
        assert calculator.apply_offset(session, Point2D(2, 3)) == Point2D(2, 3)


class TestAlignPoint:
    """Tests for align_point() (rotation plus translation)."""

    def test_observed_position_maps_to_anchor(self, calculator, anchor):
        session = CaptureSession()
        calculator.start(session, anchor)
        calculator.confirm(session, Point3D(1, 0, 1), 0.0)
        aligned = calculator.align_point(session, Point2D(1, 1))
        assert aligned.x == pytest.approx(5.0)
        assert aligned.y == pytest.approx(5.0)

    def test_rotation_about_observed_position(self, calculator, anchor):
        session = CaptureSession()
        calculator.start(session, anchor)
        # anchor heading 90, observed 0: rotate by +90 about (1, 1)
        calculator.confirm(session, Point3D(1, 0, 1), 0.0)
        aligned = calculator.align_point(session, Point2D(2, 1))
        assert aligned.x == pytest.approx(5.0)
        assert aligned.y == pytest.approx(6.0)

    def test_identity_when_unmatched(self, calculator):
        session = CaptureSession()
        assert calculator.align_point(session, Point2D(2, 1)) == Point2D(2, 1)
