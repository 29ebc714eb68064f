"""
Swerve drive kinematic model.

This module provides the inverse kinematics for a four-module swerve drive,
converting a desired chassis velocity into a speed and steering angle for every
module, the speed desaturation that keeps each module inside its actuator
limit, and the forward kinematics used by odometry.
"""

import math
from typing import List, Optional, Sequence

import numpy as np

from .config import MODULE_ANGLE_HOLD_DEADBAND
from .geometry import ChassisVelocity, ModuleGeometry, ModuleState


def compute_module_states(
    velocity: ChassisVelocity,
    geometry: ModuleGeometry,
    hold_angles: Optional[Sequence[Optional[float]]] = None,
    deadband: float = MODULE_ANGLE_HOLD_DEADBAND,
) -> List[ModuleState]:
    """
    Compute module states from a desired chassis velocity.

    Each module sees the chassis translation plus the rotational contribution
    of its mounting offset (x_i, y_i):
        vx_i = vx - omega * y_i
        vy_i = vy + omega * x_i

    The module speed is the magnitude of that vector and the module angle its
    direction.

    Args:
        velocity: Desired robot-frame chassis velocity
        geometry: Module mounting offsets
        hold_angles: Optional per-module previous angles (rad). When a module's
                     speed is below ``deadband`` its held angle is emitted
                     instead of the numerically unstable fresh one.
        deadband: Speed below which hold angles apply (m/s)

    Returns:
        list[ModuleState]: One state per module, in geometry order

    Example:
        >>> geometry = ModuleGeometry.rectangle(0.6, 0.6)
        >>> states = compute_module_states(ChassisVelocity(1.0, 0.0, 0.0), geometry)
        >>> # every module: speed 1.0 m/s, angle 0.0 rad
    """
    states = []
    for index, (offset_x, offset_y) in enumerate(geometry.offsets):
        module_vx = velocity.vx - velocity.omega * offset_y
        module_vy = velocity.vy + velocity.omega * offset_x

        speed = math.hypot(module_vx, module_vy)
        held = hold_angles[index] if hold_angles is not None else None

        if speed < deadband and held is not None:
            angle = held
        else:
            angle = math.atan2(module_vy, module_vx)

        states.append(ModuleState(speed=speed, angle=angle))

    return states


def desaturate(states: Sequence[ModuleState], max_speed: float) -> List[ModuleState]:
    """
    Scale module speeds down uniformly so none exceeds ``max_speed``.

    All speeds are multiplied by the same factor max_speed / max(|speed_i|),
    which keeps the shape of the commanded motion. Angles are never touched.
    When no module is over the limit (including all-zero input) the states are
    returned unchanged.

    Raises:
        ValueError: If max_speed is not positive.
    """
    if max_speed <= 0.0:
        raise ValueError(f"max_speed must be positive, got {max_speed}")

    peak = max((abs(state.speed) for state in states), default=0.0)
    if peak <= max_speed:
        return list(states)

    scale = max_speed / peak
    return [ModuleState(speed=state.speed * scale, angle=state.angle) for state in states]


class SwerveKinematics:
    """Swerve kinematics bound to one fixed module geometry.

    The inverse kinematics matrix has two rows per module:
        [1, 0, -y_i]
        [0, 1,  x_i]
    so that [vx_i, vy_i] = M_i @ [vx, vy, omega]. Forward kinematics is the
    least-squares solution through the pseudo-inverse of the stacked matrix.

    Raises:
        ValueError: If the geometry does not describe four modules spanning a
            non-zero area.
    """

    def __init__(self, geometry: ModuleGeometry):
        if len(geometry) != 4:
            raise ValueError(f"Swerve geometry needs exactly 4 modules, got {len(geometry)}")

        self.geometry = geometry

        rows = []
        for offset_x, offset_y in geometry.offsets:
            rows.append([1.0, 0.0, -offset_y])
            rows.append([0.0, 1.0, offset_x])
        self.inverse_matrix = np.array(rows)

        xs = {round(x, 9) for x, _ in geometry.offsets}
        ys = {round(y, 9) for _, y in geometry.offsets}
        if len(xs) < 2 or len(ys) < 2 or np.linalg.matrix_rank(self.inverse_matrix) < 3:
            raise ValueError(
                f"Degenerate module geometry {geometry.offsets}: "
                "modules must span a non-zero trackwidth and wheelbase"
            )

        self.forward_matrix = np.linalg.pinv(self.inverse_matrix)

    def to_module_states(
        self,
        velocity: ChassisVelocity,
        hold_angles: Optional[Sequence[Optional[float]]] = None,
        deadband: float = MODULE_ANGLE_HOLD_DEADBAND,
    ) -> List[ModuleState]:
        return compute_module_states(velocity, self.geometry, hold_angles, deadband)

    def to_chassis_velocity(self, states: Sequence[ModuleState]) -> ChassisVelocity:
        """Recover the chassis velocity from measured module states.

        Args:
            states: Four module states in geometry order

        Returns:
            ChassisVelocity: Best-fit robot-frame velocity
        """
        if len(states) != 4:
            raise ValueError(f"Expected 4 module states, got {len(states)}")

        module_vectors = np.array(
            [
                component
                for state in states
                for component in (
                    state.speed * math.cos(state.angle),
                    state.speed * math.sin(state.angle),
                )
            ]
        )
        vx, vy, omega = self.forward_matrix @ module_vectors
        return ChassisVelocity(vx=float(vx), vy=float(vy), omega=float(omega))

    @staticmethod
    def desaturate(states: Sequence[ModuleState], max_speed: float) -> List[ModuleState]:
        return desaturate(states, max_speed)
