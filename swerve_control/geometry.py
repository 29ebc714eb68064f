"""Planar geometry types shared by the swerve drive control system.

All angles are radians unless a name says otherwise. Robot frame: +x forward,
+y left, positive rotation counter-clockwise.
"""

import math
from dataclasses import dataclass
from typing import Tuple

MODULE_NAMES = ("front_left", "front_right", "back_left", "back_right")
"""Fixed module ordering used for geometry, kinematics and actuation."""


def normalize_degrees(angle: float) -> float:
    """Map an angle in degrees into (-180, 180].

    Example:
        >>> normalize_degrees(1.0 - 359.0)
        2.0
    """
    wrapped = math.fmod(angle, 360.0)
    if wrapped <= -180.0:
        wrapped += 360.0
    elif wrapped > 180.0:
        wrapped -= 360.0
    return wrapped


def normalize_radians(angle: float) -> float:
    """Map an angle in radians into (-pi, pi]."""
    wrapped = math.fmod(angle, 2.0 * math.pi)
    if wrapped <= -math.pi:
        wrapped += 2.0 * math.pi
    elif wrapped > math.pi:
        wrapped -= 2.0 * math.pi
    return wrapped


@dataclass(frozen=True)
class ChassisVelocity:
    """Commanded or measured robot velocity in the robot frame.

    Attributes:
        vx: Forward velocity (m/s)
        vy: Leftward velocity (m/s)
        omega: Counter-clockwise angular velocity (rad/s)
    """

    vx: float = 0.0
    vy: float = 0.0
    omega: float = 0.0


@dataclass(frozen=True)
class ModuleState:
    """Speed and steering angle of one module."""

    speed: float = 0.0
    angle: float = 0.0


@dataclass(frozen=True)
class Pose:
    """Field-relative position and heading. Heading is kept in (-pi, pi]."""

    x: float = 0.0
    y: float = 0.0
    heading: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "heading", normalize_radians(self.heading))

    @property
    def heading_degrees(self) -> float:
        return math.degrees(self.heading)


@dataclass(frozen=True)
class ModuleGeometry:
    """Mounting offsets of the four modules from the robot center (meters).

    Offsets are stored in MODULE_NAMES order as (offset_x, offset_y) pairs.
    """

    offsets: Tuple[Tuple[float, float], ...]

    @classmethod
    def rectangle(cls, trackwidth: float, wheelbase: float) -> "ModuleGeometry":
        """Build the standard rectangular layout.

        Args:
            trackwidth: Left-right distance between module centers (m)
            wheelbase: Front-back distance between module centers (m)

        Raises:
            ValueError: If either dimension is not positive.
        """
        if trackwidth <= 0.0 or wheelbase <= 0.0:
            raise ValueError(
                f"Degenerate module geometry: trackwidth={trackwidth}, wheelbase={wheelbase} "
                "(both must be positive)"
            )
        half_x = wheelbase / 2.0
        half_y = trackwidth / 2.0
        return cls(
            offsets=(
                (half_x, half_y),  # front left
                (half_x, -half_y),  # front right
                (-half_x, half_y),  # back left
                (-half_x, -half_y),  # back right
            )
        )

    @classmethod
    def from_offsets(cls, *offsets: Tuple[float, float]) -> "ModuleGeometry":
        return cls(offsets=tuple((float(x), float(y)) for x, y in offsets))

    def __len__(self) -> int:
        return len(self.offsets)
