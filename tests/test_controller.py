"""Tests for the floor plan controller."""

import json
import pytest

from capture.config import CaptureConfig
from capture.controller import FloorMapController
from capture.heading import CompassFilter
from capture.session import RecordingState
from floorplan.models import FeatureType, Point2D
from tests.helpers import pose, walk_rectangle, walk_to


@pytest.fixture
def compass():
    return CompassFilter()


@pytest.fixture
def controller(repository, compass, ids, clock):
    return FloorMapController(
        config=CaptureConfig(),
        repository=repository,
        compass=compass,
        ids=ids,
        clock=clock,
    )


def face_east(compass):
    for _ in range(200):
        compass.update_accelerometer((0.0, 0.0, 9.81))
        compass.update_magnetometer((-30.0, 0.0, -40.0))


class TestCaptureLifecycle:
    """Tests for start/stop capture and finishing a recording."""

    def test_start_capture_new_plan(self, controller):
        plan = controller.start_capture()
        assert controller.capture_active is True
        assert controller.current_plan is plan
        assert plan.name.startswith("Floor Plan ")

    def test_finish_recording_persists(self, controller, repository):
        controller.start_capture()
        controller.machine.start_recording(pose(0, 0))
        walk_to(controller.machine, 0, 0, 3, 0)
        controller.machine.mark_corner()
        walk_to(controller.machine, 3, 0, 3, 3)
        controller.machine.mark_corner()
        walk_to(controller.machine, 3, 3, 0, 0)
        saved = controller.finish_recording(close_path=True)

        assert saved.area_square_meters == pytest.approx(4.5)
        assert repository.get_by_id(saved.id) == saved

    def test_finish_without_recording(self, controller, repository):
        controller.start_capture()
        assert controller.finish_recording(close_path=True) is None
        assert repository.list_all() == []

    def test_stop_capture(self, controller):
        controller.start_capture()
        controller.stop_capture()
        assert controller.capture_active is False

    def test_resume_existing_plan(self, controller):
        controller.start_capture()
        controller.machine.start_recording(pose(0, 0))
        walk_to(controller.machine, 0, 0, 1, 0)
        controller.machine.add_feature(FeatureType.BEACON, linked_device_id="AA:BB")
        first = controller.finish_recording(close_path=False)

        resumed = controller.start_capture(existing_plan_id=first.id)
        assert resumed.id == first.id
        assert controller.machine.recording_state == RecordingState.IDLE
        assert [f.linked_device_id for f in controller.machine.snapshot().features] == ["AA:BB"]

    def test_unknown_plan_starts_new(self, controller):
        plan = controller.start_capture(existing_plan_id="missing")
        assert plan.id != "missing"

    def test_heading_from_compass(self, controller, compass):
        face_east(compass)
        controller.start_capture()
        plan = walk_rectangle(controller.machine)
        assert plan.reference_heading_degrees == pytest.approx(90.0, abs=1e-6)


class TestPlanOperations:
    """Tests for rename, save, load, delete, list, export and import."""

    def test_rename_and_save(self, controller, repository):
        controller.start_capture()
        assert controller.rename_plan("Boiler room") is True
        plan_id = controller.save_current_plan()
        assert repository.get_by_id(plan_id).name == "Boiler room"

    def test_rename_without_plan(self, controller):
        assert controller.rename_plan("Nothing") is False
        assert controller.save_current_plan() is None

    def test_save_manual_pins(self, controller, repository):
        controller.start_capture()
        machine = controller.machine
        machine.add_pin(pose(0, 0))
        machine.add_pin(pose(2, 0))
        machine.add_pin(pose(2, 2))
        machine.add_pin(pose(0, 2))
        machine.close_polygon()

        plan_id = controller.save_current_plan()
        saved = repository.get_by_id(plan_id)
        assert saved.is_closed is True
        assert saved.perimeter_meters == pytest.approx(8.0)
        assert saved.area_square_meters == pytest.approx(4.0)
        assert saved.corners[0] == saved.corners[-1] == Point2D(0, 0)
        assert len(saved.pins) == 4

    def test_save_open_pins(self, controller, repository):
        controller.start_capture()
        controller.machine.add_pin(pose(0, 0))
        controller.machine.add_pin(pose(3, 4))
        saved = repository.get_by_id(controller.save_current_plan())
        assert saved.perimeter_meters == pytest.approx(5.0)
        assert saved.area_square_meters is None

    def test_save_recorded_plan_keeps_metrics(self, controller, repository):
        controller.start_capture()
        recorded = walk_rectangle(controller.machine)
        saved = repository.get_by_id(controller.save_current_plan())
        assert saved.perimeter_meters == pytest.approx(recorded.perimeter_meters)
        assert saved.area_square_meters == pytest.approx(12.0)
        assert saved.corners == recorded.corners

    def test_load_and_list(self, controller):
        controller.start_capture()
        first_id = controller.save_current_plan()
        controller.start_capture()
        second_id = controller.save_current_plan()

        assert [p.id for p in controller.list_plans()] == [second_id, first_id]
        loaded = controller.load_plan(first_id)
        assert loaded.id == first_id
        assert controller.current_plan.id == first_id

    def test_delete_current_plan(self, controller):
        controller.start_capture()
        plan_id = controller.save_current_plan()
        controller.delete_plan(plan_id)
        assert controller.current_plan is None
        assert controller.list_plans() == []

    def test_export_and_import(self, controller):
        controller.start_capture()
        walk_rectangle(controller.machine)
        plan_id = controller.save_current_plan()

        data = controller.export_plan(plan_id)
        assert json.loads(data)["plan"]["id"] == plan_id

        imported = controller.import_plan(data)
        assert imported.id != plan_id
        assert imported.area_square_meters == pytest.approx(12.0)
        assert len(controller.list_plans()) == 2

    def test_export_missing(self, controller):
        assert controller.export_plan("missing") is None

    def test_import_malformed(self, controller):
        assert controller.import_plan(b"not a plan") is None
        assert controller.list_plans() == []

    def test_clear_current_plan(self, controller):
        controller.start_capture()
        controller.machine.start_recording(pose(0, 0))
        controller.clear_current_plan()
        assert controller.current_plan is None
        assert controller.machine.recording_state == RecordingState.IDLE

    def test_anchors_from_all_plans(self, controller):
        controller.start_capture()
        machine = controller.machine
        machine.start_recording(pose(0, 0))
        machine.start_anchor_placement("Front door")
        machine.confirm_anchor_position()
        machine.save_anchor("front.jpg")
        controller.finish_recording(close_path=False)

        anchors = controller.anchors()
        assert [a.label for a in anchors] == ["Front door"]
        assert anchors[0].linked_plan_id == controller.current_plan.id

    def test_load_rename_save_keeps_outline(self, repository, compass, ids, clock):
        first = FloorMapController(repository=repository, compass=compass, ids=ids, clock=clock)
        first.start_capture()
        walk_rectangle(first.machine)
        plan_id = first.save_current_plan()

        second = FloorMapController(repository=repository, compass=compass, ids=ids, clock=clock)
        loaded = second.load_plan(plan_id)
        assert len(second.machine.snapshot().pins) == len(loaded.pins) == 5
        assert second.rename_plan("Renamed") is True
        second.save_current_plan()

        saved = repository.get_by_id(plan_id)
        assert saved.name == "Renamed"
        assert saved.is_closed is True
        assert len(saved.pins) == 5
        assert len(saved.corners) == 5
        assert saved.perimeter_meters == pytest.approx(14.0, abs=1e-6)
        assert saved.area_square_meters == pytest.approx(12.0)

    def test_load_missing_plan_keeps_current(self, controller):
        plan = controller.start_capture()
        assert controller.load_plan("missing") is None
        assert controller.current_plan is plan

    def test_save_after_undoing_closed_pins_reopens(self, controller, repository):
        controller.start_capture()
        machine = controller.machine
        for x, z in [(0, 0), (2, 0), (2, 2)]:
            machine.add_pin(pose(x, z))
        machine.close_polygon()
        machine.undo_last_pin()

        saved = repository.get_by_id(controller.save_current_plan())
        assert saved.is_closed is False
        assert saved.area_square_meters is None
