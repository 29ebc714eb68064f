"""Swerve drivetrain orchestration.

The Drivetrain owns kinematics, odometry and the rotation controller and runs
one control tick at a time. It is a single-writer object: every public command
(drive, zero gyro, reset odometry, turn) only enqueues a small message, and
tick() applies queued messages before doing anything else. Command issue time
is therefore decoupled from the fixed-rate control cycle.
"""

import logging
import math
from collections import deque
from dataclasses import replace
from typing import Any, Deque, List, Optional, Sequence, Tuple

from .commands import TurnToAngle
from .component_modes import ComponentMode
from .config import (
    MAX_VELOCITY_METERS_PER_SECOND,
    MAX_VOLTAGE,
    TELEMETRY_MAX_ANGULAR_VELOCITY,
    TELEMETRY_MAX_ANGULAR_VELOCITY_DEGREES,
    TELEMETRY_MAX_VELOCITY,
    TELEMETRY_ODOMETRY_DEGRADED,
    TELEMETRY_POSE_HEADING,
    TELEMETRY_POSE_X,
    TELEMETRY_POSE_Y,
    TURN_SETTLE_WINDOW_SECONDS,
)
from .data_collector import DataCollector
from .geometry import MODULE_NAMES, ChassisVelocity, ModuleGeometry, ModuleState, Pose
from .gyro import GyroReadError, GyroscopeAdapter
from .kinematics import SwerveKinematics
from .modules import ModuleActuator
from .odometry import SwerveOdometry
from .rotation_controller import RotationController
from .telemetry import RotationTuning, TelemetryTable


class Drivetrain:
    """Four-module swerve drivetrain.

    Tick pipeline:
        1. Apply queued commands
        2. Apply one live tuning snapshot to the rotation controller
        3. Advance the active turn maneuver or heading assist
        4. Inverse kinematics (holding angles for stationary modules)
        5. Desaturate against max_velocity
        6. Command every module with (speed / max_velocity * max_voltage, angle)
        7. Read module feedback and the gyro (a failed read holds the last heading;
           the first successful read anchors the odometry heading)
        8. Update odometry
        9. Publish pose and state to telemetry and the data collector

    Attributes:
        modules: Module actuators in MODULE_NAMES order.
        gyro: Heading sensor.
        kinematics: Kinematics bound to the module geometry.
        odometry: Pose estimator.
        rotation_controller: Heading controller shared by turns and heading assist.
        telemetry: Live tuning / published state table.
    """

    def __init__(
        self,
        modules: Sequence[ModuleActuator],
        gyro: GyroscopeAdapter,
        geometry: ModuleGeometry,
        telemetry: Optional[TelemetryTable] = None,
        data_collector: Optional[DataCollector] = None,
        component_mode: Optional[ComponentMode] = None,
        max_velocity: float = MAX_VELOCITY_METERS_PER_SECOND,
        max_voltage: float = MAX_VOLTAGE,
        rotation_controller: Optional[RotationController] = None,
        settle_window: float = TURN_SETTLE_WINDOW_SECONDS,
    ):
        """Initialize the drivetrain.

        Raises:
            ValueError: If the module count, geometry or limits are invalid.
        """
        if len(modules) != 4:
            raise ValueError(f"Swerve drivetrain needs exactly 4 modules, got {len(modules)}")
        if max_velocity <= 0.0 or max_voltage <= 0.0:
            raise ValueError(
                f"max_velocity and max_voltage must be positive, got {max_velocity}, {max_voltage}"
            )
        for module in modules:
            if not (
                math.isclose(module.max_velocity, max_velocity)
                and math.isclose(module.max_voltage, max_voltage)
            ):
                raise ValueError(
                    f"Module {module.name} limits ({module.max_velocity} m/s at {module.max_voltage}V) "
                    f"do not match the drivetrain ({max_velocity} m/s at {max_voltage}V)"
                )

        self.modules: List[ModuleActuator] = list(modules)
        self.gyro = gyro
        self.kinematics = SwerveKinematics(geometry)
        self.telemetry = telemetry if telemetry is not None else TelemetryTable()
        self.data_collector = data_collector
        self.component_mode = component_mode if component_mode is not None else ComponentMode()
        self.max_velocity = max_velocity
        self.max_voltage = max_voltage
        self.settle_window = settle_window

        self.rotation_controller = (
            rotation_controller if rotation_controller is not None else RotationController()
        )
        self.default_tuning = RotationTuning(
            kp=self.rotation_controller.kp,
            ki=self.rotation_controller.ki,
            kd=self.rotation_controller.kd,
            tolerance=self.rotation_controller.tolerance,
            min_output=self.rotation_controller.min_output,
            max_output=self.rotation_controller.max_output,
        )
        self.default_tuning.publish_defaults(self.telemetry)
        self._publish_constants(geometry)

        # Gyro state; a missing first sample just starts us degraded and the
        # odometry heading is anchored on the first successful read instead
        self.last_heading: float = 0.0
        self.degraded: bool = False
        initial_heading = self._read_gyro()
        self.heading_anchored: bool = not self.degraded

        self.odometry = SwerveOdometry(self.kinematics, Pose(), initial_heading)

        self.commanded_velocity = ChassisVelocity()
        self.heading_target: Optional[float] = None
        self.maneuver: Optional[TurnToAngle] = None
        self.module_states: List[ModuleState] = [ModuleState() for _ in self.modules]
        self.elapsed: float = 0.0
        self.tick_count: int = 0

        self._inbox: Deque[Tuple[str, Tuple[Any, ...]]] = deque()

    # ------------------------------------------------------------------
    # Command surface (enqueue only)
    # ------------------------------------------------------------------

    def drive(self, vx: Any = 0.0, vy: float = 0.0, omega: float = 0.0) -> None:
        """Command a robot-frame velocity, applied on the next tick.

        Accepts either a ChassisVelocity or (vx, vy, omega). Cancels any
        active turn maneuver and heading assist.
        """
        velocity = vx if isinstance(vx, ChassisVelocity) else ChassisVelocity(vx, vy, omega)
        self._inbox.append(("drive", (velocity,)))

    def drive_with_heading(self, vx: float, vy: float, target_heading_degrees: float) -> None:
        """Translate while the rotation controller holds a field heading."""
        self._inbox.append(("heading_drive", (vx, vy, target_heading_degrees)))

    def stop(self) -> None:
        self.drive(ChassisVelocity())

    def zero_gyroscope(self) -> None:
        """Make the current direction the new forward heading, keeping x and y."""
        self._inbox.append(("zero_gyro", ()))

    def reset_odometry(self, pose: Pose, heading: Optional[float] = None) -> None:
        """Re-anchor odometry at a known pose.

        Args:
            pose: Known field pose.
            heading: Gyro heading (rad) to anchor against. Default: the gyro
                     heading read when the command is applied.
        """
        self._inbox.append(("reset_odometry", (pose, heading)))

    def set_gyro_offset(self, offset: float) -> None:
        self._inbox.append(("gyro_offset", (offset,)))

    def turn_to_angle(self, target_degrees: float) -> TurnToAngle:
        """Start an in-place turn to a field heading.

        Returns:
            TurnToAngle: Handle whose ``finished`` / ``succeeded`` flags signal
            completion and whose cancel() stops the turn on the next tick.
        """
        turn = TurnToAngle(target_degrees, self.rotation_controller, self.settle_window)
        self._inbox.append(("turn", (turn,)))
        return turn

    def cancel_maneuver(self) -> None:
        self._inbox.append(("cancel", ()))

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    def get_pose(self) -> Pose:
        return self.odometry.get_pose()

    def get_module_states(self) -> List[ModuleState]:
        return list(self.module_states)

    @property
    def measured_velocity(self) -> ChassisVelocity:
        return self.odometry.last_velocity

    @property
    def is_degraded(self) -> bool:
        return self.degraded

    # ------------------------------------------------------------------
    # Control tick
    # ------------------------------------------------------------------

    def tick(self, dt: float) -> Pose:
        """Run one control cycle.

        Args:
            dt: Time since the previous tick (seconds).

        Returns:
            Pose: Updated pose estimate.
        """
        self._apply_commands()
        self._apply_tuning()

        velocity = self._resolve_velocity(dt)

        hold_angles = (
            [state.angle for state in self.module_states]
            if self.component_mode.use_angle_hold
            else None
        )
        states = self.kinematics.to_module_states(velocity, hold_angles)
        states = self.kinematics.desaturate(states, self.max_velocity)
        self.module_states = states

        for module, state in zip(self.modules, states):
            module.set(state.speed / self.max_velocity * self.max_voltage, state.angle)

        feedback = [module.get_feedback() for module in self.modules]
        heading = self._read_gyro()
        if not self.heading_anchored and not self.degraded:
            self._anchor_heading(heading)

        if self.component_mode.use_gyro:
            pose = self.odometry.update(heading, feedback, dt, degraded=self.degraded)
        else:
            pose = self.odometry.update(None, feedback, dt)

        self.elapsed += dt
        self.tick_count += 1
        self._publish(pose, states)
        return pose

    def _apply_commands(self) -> None:
        while self._inbox:
            kind, args = self._inbox.popleft()

            if kind == "drive":
                self._end_maneuver()
                self.heading_target = None
                self.commanded_velocity = args[0]

            elif kind == "heading_drive":
                vx, vy, target = args
                self._end_maneuver()
                if self.heading_target is None:
                    self.rotation_controller.retarget(target)
                self.heading_target = target
                self.commanded_velocity = ChassisVelocity(vx, vy, 0.0)

            elif kind == "zero_gyro":
                self._zero_gyroscope()

            elif kind == "reset_odometry":
                pose, heading = args
                if heading is None:
                    heading = self._read_gyro()
                    self.heading_anchored = not self.degraded
                else:
                    self.heading_anchored = True
                self.odometry.reset_pose(pose, heading)
                logging.info(
                    f"Odometry reset to ({pose.x:.2f}, {pose.y:.2f}, {pose.heading_degrees:.1f} deg)"
                )

            elif kind == "gyro_offset":
                self.gyro.set_offset(args[0])

            elif kind == "turn":
                self._end_maneuver()
                self.heading_target = None
                self.maneuver = args[0]
                self.maneuver.start()

            elif kind == "cancel":
                self._end_maneuver()
                self.heading_target = None
                self.commanded_velocity = ChassisVelocity()

    def _zero_gyroscope(self) -> None:
        try:
            self.gyro.zero()
        except GyroReadError as e:
            logging.error(f"Cannot zero gyroscope: {e}")
            return

        self.last_heading = 0.0
        pose = self.odometry.get_pose()
        self.odometry.reset_pose(Pose(pose.x, pose.y, 0.0), 0.0)
        self.heading_anchored = True
        logging.info("Gyroscope zeroed")

    def _anchor_heading(self, heading: float) -> None:
        """Keep the current pose when the first gyro sample arrives."""
        self.odometry.reset_pose(self.odometry.get_pose(), heading)
        self.heading_anchored = True
        logging.info(f"Odometry heading anchored to first gyro sample ({math.degrees(heading):.1f} deg)")

    def _end_maneuver(self) -> None:
        if self.maneuver is not None and not self.maneuver.finished:
            self.maneuver.cancel()
            self.maneuver.step(self.get_pose().heading_degrees, 0.0)
        self.maneuver = None

    def _apply_tuning(self) -> None:
        tuning = RotationTuning.from_table(self.telemetry, self.default_tuning)
        if not self.component_mode.use_integral:
            tuning = replace(tuning, ki=0.0)
        if not self.component_mode.use_derivative:
            tuning = replace(tuning, kd=0.0)
        self.rotation_controller.apply_tuning(tuning)

    def _resolve_velocity(self, dt: float) -> ChassisVelocity:
        heading_degrees = self.get_pose().heading_degrees

        if self.maneuver is not None:
            omega_degrees = self.maneuver.step(heading_degrees, dt)
            if self.maneuver.finished:
                self.maneuver = None
                self.commanded_velocity = ChassisVelocity()
            else:
                self.commanded_velocity = ChassisVelocity(0.0, 0.0, math.radians(omega_degrees))

        elif self.heading_target is not None:
            omega_degrees = self.rotation_controller.calculate(
                heading_degrees, self.heading_target, dt
            )
            self.commanded_velocity = replace(
                self.commanded_velocity, omega=math.radians(omega_degrees)
            )

        return self.commanded_velocity

    def _read_gyro(self) -> float:
        """Read the gyro, holding the last heading if the read fails."""
        try:
            self.last_heading = self.gyro.get_heading()
            self.degraded = False
        except GyroReadError as e:
            if not self.degraded:
                logging.warning(f"Gyro read failed ({e}); holding last heading")
            self.degraded = True
        return self.last_heading

    def _publish_constants(self, geometry: ModuleGeometry) -> None:
        """Publish the drivetrain limits so the dashboard can scale its inputs."""
        radius = max(math.hypot(x, y) for x, y in geometry.offsets)
        max_angular_velocity = self.max_velocity / radius
        self.telemetry.put(TELEMETRY_MAX_VELOCITY, self.max_velocity)
        self.telemetry.put(TELEMETRY_MAX_ANGULAR_VELOCITY, max_angular_velocity)
        self.telemetry.put(TELEMETRY_MAX_ANGULAR_VELOCITY_DEGREES, math.degrees(max_angular_velocity))

    def _publish(self, pose: Pose, states: Sequence[ModuleState]) -> None:
        self.telemetry.put(TELEMETRY_POSE_X, pose.x)
        self.telemetry.put(TELEMETRY_POSE_Y, pose.y)
        self.telemetry.put(TELEMETRY_POSE_HEADING, pose.heading_degrees)
        self.telemetry.put(TELEMETRY_ODOMETRY_DEGRADED, self.degraded)
        for name, state in zip(MODULE_NAMES, states):
            self.telemetry.put(f"Drivetrain/Module/{name}/Speed", state.speed)
            self.telemetry.put(f"Drivetrain/Module/{name}/Angle", math.degrees(state.angle))

        if self.data_collector is not None:
            self.data_collector.log_pose(self.elapsed, pose, self.degraded)
            self.data_collector.log_modules(self.elapsed, states)
            self.data_collector.log_rotation(
                self.elapsed, self.rotation_controller.get_diagnostics()
            )
