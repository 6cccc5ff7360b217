"""Floor plan controller.

Plan-level operations around a capture: picking the target plan, finalizing
and persisting it, renaming, loading, deleting, and sharing plans through the
portable format. Presentation layers drive this object; it owns no UI state.

Usage:
    controller = FloorMapController(config)
    controller.start_capture()
    controller.machine.start_recording(first_pose)
    ...
    plan = controller.finish_recording(close_path=True)
"""
from __future__ import annotations

import logging
from typing import List, Optional

from floorplan import geometry
from floorplan.identity import Clock, IdGenerator, system_clock, uuid_ids
from floorplan.models import AnchorPoint, FloorPlan
from floorplan.repository import FloorPlanRepository

from .config import CaptureConfig
from .heading import CompassFilter
from .state_machine import CaptureStateMachine

logger = logging.getLogger(__name__)


class FloorMapController:
    """Owns the capture state machine and the plan repository."""

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        repository: Optional[FloorPlanRepository] = None,
        compass: Optional[CompassFilter] = None,
        ids: IdGenerator = uuid_ids,
        clock: Clock = system_clock,
    ):
        self.config = config or CaptureConfig()
        self.ids = ids
        self.clock = clock
        self.compass = compass or CompassFilter(self.config.compass)
        self.repository = repository or FloorPlanRepository(
            self.config.storage.storage_dir, clock=clock, ids=ids
        )
        self.machine = CaptureStateMachine(
            config=self.config,
            ids=ids,
            clock=clock,
            heading_source=self.compass.current_heading,
        )
        self.capture_active = False

    @property
    def current_plan(self) -> Optional[FloorPlan]:
        return self.machine.floor_plan

    # =========================================================================
    # Capture lifecycle
    # =========================================================================

    def start_capture(self, existing_plan_id: Optional[str] = None) -> FloorPlan:
        """Begin capturing into an existing plan, or a new one.

        An unknown ``existing_plan_id`` starts a new plan.
        """
        existing = None
        if existing_plan_id is not None:
            existing = self.repository.get_by_id(existing_plan_id)
            if existing is None:
                logger.warning(f"Plan {existing_plan_id} not found, starting a new plan")

        plan = self.machine.start_session(existing)
        self.capture_active = True
        return plan

    def stop_capture(self) -> None:
        self.capture_active = False

    def finish_recording(self, close_path: bool) -> Optional[FloorPlan]:
        """Finalize the current recording and persist the plan."""
        plan = self.machine.stop_recording(close_path)
        if plan is None:
            return None
        self.repository.save(plan)
        return plan

    # =========================================================================
    # Current plan
    # =========================================================================

    def rename_plan(self, name: str) -> bool:
        plan = self.machine.floor_plan
        if plan is None:
            return False
        plan.name = name
        return True

    def save_current_plan(self) -> Optional[str]:
        """Persist the current plan with metrics recomputed from its pins.

        Pins placed manually become the plan outline; the compass heading at
        save time becomes the reference heading.
        """
        plan = self.machine.floor_plan
        if plan is None:
            return None

        pins = self.machine.snapshot().pins
        points = [p.position2d for p in pins]
        corners = list(points)
        if plan.is_closed and len(corners) >= 3 and corners[0] != corners[-1]:
            corners.append(corners[0])
        if len(corners) < 3:
            plan.is_closed = False

        plan.pins = pins
        plan.corners = corners
        plan.perimeter_meters = (
            geometry.perimeter(corners, closed=plan.is_closed) if len(points) >= 2 else None
        )
        plan.area_square_meters = (
            geometry.area(corners[:-1]) if plan.is_closed and len(corners) >= 4 else None
        )
        plan.reference_heading_degrees = self.compass.current_heading()

        return self.repository.save(plan)

    def clear_current_plan(self) -> None:
        self.machine.floor_plan = None
        self.machine.reset_recording()

    # =========================================================================
    # Stored plans
    # =========================================================================

    def load_plan(self, plan_id: str) -> Optional[FloorPlan]:
        """Make a stored plan current, with its outline loaded into the session."""
        plan = self.repository.get_by_id(plan_id)
        if plan is None:
            logger.warning(f"Plan {plan_id} not found")
            return None
        return self.machine.start_session(plan)

    def delete_plan(self, plan_id: str) -> None:
        self.repository.delete(plan_id)
        current = self.machine.floor_plan
        if current is not None and current.id == plan_id:
            self.machine.floor_plan = None

    def list_plans(self) -> List[FloorPlan]:
        return self.repository.list_all()

    def export_plan(self, plan_id: str) -> Optional[bytes]:
        plan = self.repository.get_by_id(plan_id)
        if plan is None:
            return None
        return self.repository.export_to_portable_format(plan)

    def import_plan(self, data: bytes | str) -> Optional[FloorPlan]:
        return self.repository.import_from_portable_format(data)

    def anchors(self) -> List[AnchorPoint]:
        """Anchors of every stored plan, for picking a relocalization target."""
        return [a for plan in self.repository.list_all() for a in plan.anchors]
