"""Odometry module for swerve drive pose estimation.

This module tracks the robot's field pose by fusing module feedback with the
gyro heading:
- Module speeds and angles give the robot-frame displacement each tick
  (forward kinematics)
- The gyro supplies heading directly, since wheel-derived heading drifts
  under slip
- Displacement is integrated with the pose exponential so that translation
  while rotating follows the arc instead of the chord
"""

import logging
import math
from typing import Dict, Optional, Sequence

from .geometry import ChassisVelocity, ModuleState, Pose, normalize_radians
from .kinematics import SwerveKinematics


class SwerveOdometry:
    """Dead-reckoning pose estimator for a swerve drivetrain.

    Heading bookkeeping:
        pose.heading = normalize(gyro_heading + heading_offset)
    where heading_offset is set by reset_pose() so that an arbitrary gyro
    reading can be re-anchored to any field heading.

    Position is integrated from forward kinematics of the measured module
    states. When the gyro is unavailable the caller passes its last known
    heading with ``degraded=True``; when heading is None the estimator falls
    back to integrating wheel-derived angular velocity.
    """

    def __init__(
        self,
        kinematics: SwerveKinematics,
        initial_pose: Pose = Pose(),
        gyro_heading: float = 0.0,
    ):
        """Initialize the estimator.

        Args:
            kinematics: Kinematics used to turn module states into chassis motion.
            initial_pose: Starting field pose.
            gyro_heading: Gyro heading (rad) at the moment initial_pose is valid.
        """
        self.kinematics = kinematics
        self.pose = initial_pose
        self.heading_offset = normalize_radians(initial_pose.heading - gyro_heading)

        # Diagnostics
        self.last_velocity = ChassisVelocity()
        self.degraded = False
        self.degraded_ticks = 0
        self.update_count = 0

    def update(
        self,
        gyro_heading: Optional[float],
        module_states: Sequence[ModuleState],
        dt: float,
        degraded: bool = False,
    ) -> Pose:
        """Advance the pose by one tick.

        Args:
            gyro_heading: Logical gyro heading (rad), or None to integrate the
                          wheel-derived angular velocity instead
            module_states: Measured module states in geometry order
            dt: Time since the previous update (seconds)
            degraded: True when gyro_heading is a held value from an earlier tick

        Returns:
            Pose: The updated pose

        Raises:
            ValueError: If dt is negative.
        """
        if dt < 0.0:
            raise ValueError(f"dt must be non-negative, got {dt}")

        velocity = self.kinematics.to_chassis_velocity(module_states)
        self.last_velocity = velocity

        previous = self.pose
        if gyro_heading is None:
            heading = normalize_radians(previous.heading + velocity.omega * dt)
        else:
            heading = normalize_radians(gyro_heading + self.heading_offset)

        # Robot-frame displacement, bent along the arc swept by the heading change
        dx = velocity.vx * dt
        dy = velocity.vy * dt
        dtheta = normalize_radians(heading - previous.heading)

        if abs(dtheta) < 1e-9:
            s = 1.0 - dtheta**2 / 6.0
            c = 0.5 * dtheta
        else:
            s = math.sin(dtheta) / dtheta
            c = (1.0 - math.cos(dtheta)) / dtheta

        local_x = dx * s - dy * c
        local_y = dx * c + dy * s

        # Rotate into the field frame using the heading at the start of the tick
        cos_h = math.cos(previous.heading)
        sin_h = math.sin(previous.heading)
        self.pose = Pose(
            x=previous.x + local_x * cos_h - local_y * sin_h,
            y=previous.y + local_x * sin_h + local_y * cos_h,
            heading=heading,
        )

        if degraded and not self.degraded:
            logging.warning("Odometry degraded: holding last known gyro heading")
        elif self.degraded and not degraded:
            logging.info(f"Odometry recovered after {self.degraded_ticks} degraded ticks")
        self.degraded = degraded
        self.degraded_ticks = self.degraded_ticks + 1 if degraded else 0
        self.update_count += 1

        return self.pose

    def reset_pose(self, pose: Pose, gyro_heading: float) -> None:
        """Re-anchor the estimator at a known pose.

        Sets the absolute state directly; no correction is applied to history.

        Args:
            pose: Pose the robot is known to be at.
            gyro_heading: Gyro heading (rad) read at that moment.
        """
        self.pose = pose
        self.heading_offset = normalize_radians(pose.heading - gyro_heading)

    def get_pose(self) -> Pose:
        return self.pose

    def get_state(self) -> Dict[str, float]:
        """Get current state estimate.

        Returns:
            Dictionary containing:
                - x, y: Field position (m)
                - heading: Field heading (rad)
                - vx, vy: Robot-frame velocity from the last update (m/s)
                - omega: Angular velocity from the last update (rad/s)
        """
        return {
            "x": self.pose.x,
            "y": self.pose.y,
            "heading": self.pose.heading,
            "vx": self.last_velocity.vx,
            "vy": self.last_velocity.vy,
            "omega": self.last_velocity.omega,
        }

    def get_diagnostics(self) -> Dict[str, float]:
        return {
            "degraded": float(self.degraded),
            "degraded_ticks": self.degraded_ticks,
            "update_count": self.update_count,
            "heading_offset": self.heading_offset,
        }
