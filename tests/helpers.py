"""Walk helpers shared by the capture tests."""

from floorplan.models import Point3D


def pose(x: float, z: float, y: float = 0.0) -> Point3D:
    """Tracking-frame pose whose floor projection is (x, z)."""
    return Point3D(x, y, z)


def walk_to(machine, x0, z0, x1, z1, step=0.2):
    """Feed evenly spaced samples from (x0, z0) to (x1, z1), end included."""
    dx, dz = x1 - x0, z1 - z0
    length = (dx * dx + dz * dz) ** 0.5
    steps = max(1, int(round(length / step)))
    for k in range(1, steps + 1):
        f = k / steps
        machine.update_position(pose(x0 + dx * f, z0 + dz * f))


def walk_rectangle(machine, width=4.0, height=3.0, close=True):
    """Record a width x height rectangle starting at the origin and finalize it."""
    machine.start_recording(pose(0, 0))
    walk_to(machine, 0, 0, width, 0)
    machine.mark_corner()
    walk_to(machine, width, 0, width, height)
    machine.mark_corner()
    walk_to(machine, width, height, 0, height)
    machine.mark_corner()
    walk_to(machine, 0, height, 0, 0)
    return machine.stop_recording(close_path=close)
