import math

import pytest

from swerve_control.client import default_geometry
from swerve_control.commands import TurnState
from swerve_control.component_modes import ComponentMode
from swerve_control.config import (
    MAX_ANGULAR_VELOCITY_DEGREES_PER_SECOND,
    MAX_ANGULAR_VELOCITY_RADIANS_PER_SECOND,
    MAX_VELOCITY_METERS_PER_SECOND,
    MAX_VOLTAGE,
    TELEMETRY_MAX_ANGULAR_VELOCITY,
    TELEMETRY_MAX_ANGULAR_VELOCITY_DEGREES,
    TELEMETRY_MAX_VELOCITY,
    TELEMETRY_ODOMETRY_DEGRADED,
    TELEMETRY_POSE_X,
    TELEMETRY_ROTATION_P,
)
from swerve_control.drivetrain import Drivetrain
from swerve_control.geometry import MODULE_NAMES, ChassisVelocity, Pose
from swerve_control.gyro import SimulatedGyro
from swerve_control.modules import SimulatedModule

DT = 0.02


def run_closed_loop(drivetrain, gyro, ticks):
    for _ in range(ticks):
        drivetrain.tick(DT)
        gyro.rotate(drivetrain.measured_velocity.omega * DT)


def test_requires_four_modules(gyro):
    with pytest.raises(ValueError):
        Drivetrain([SimulatedModule("front_left")] * 3, gyro, default_geometry())


def test_drive_is_applied_on_next_tick(drivetrain, modules):
    drivetrain.drive(1.0, 0.0, 0.0)
    assert all(module.last_command is None for module in modules)

    drivetrain.tick(DT)
    expected = 1.0 / MAX_VELOCITY_METERS_PER_SECOND * MAX_VOLTAGE
    for module in modules:
        speed_command, angle = module.last_command
        assert speed_command == pytest.approx(expected)
        assert angle == pytest.approx(0.0)


def test_every_module_commanded_each_tick(drivetrain, modules):
    for _ in range(5):
        drivetrain.tick(DT)
    assert [module.command_count for module in modules] == [5, 5, 5, 5]


def test_saturated_command_stays_within_voltage(drivetrain, modules):
    drivetrain.drive(10.0, 10.0, 20.0)
    drivetrain.tick(DT)
    assert max(abs(module.last_command[0]) for module in modules) == pytest.approx(MAX_VOLTAGE)


def test_odometry_tracks_driving(drivetrain):
    drivetrain.drive(1.0, 0.0, 0.0)
    for _ in range(50):
        drivetrain.tick(DT)
    pose = drivetrain.get_pose()
    assert pose.x == pytest.approx(1.0)
    assert pose.y == pytest.approx(0.0)
    assert drivetrain.telemetry.get(TELEMETRY_POSE_X) == pytest.approx(1.0)


def test_stop_holds_module_angles(drivetrain, modules):
    drivetrain.drive(0.0, 1.0, 0.0)
    drivetrain.tick(DT)
    drivetrain.stop()
    drivetrain.tick(DT)
    for module in modules:
        speed_command, angle = module.last_command
        assert speed_command == 0.0
        assert angle == pytest.approx(math.pi / 2)


def test_stop_without_angle_hold(modules, gyro):
    drivetrain = Drivetrain(
        modules, gyro, default_geometry(), component_mode=ComponentMode(use_angle_hold=False)
    )
    drivetrain.drive(0.0, 1.0, 0.0)
    drivetrain.tick(DT)
    drivetrain.stop()
    drivetrain.tick(DT)
    assert all(module.last_command[1] == 0.0 for module in modules)


def test_zero_gyroscope_keeps_position(drivetrain, gyro):
    drivetrain.drive(1.0, 0.0, 0.0)
    for _ in range(25):
        drivetrain.tick(DT)
    gyro.rotate(math.radians(70.0))
    drivetrain.stop()
    drivetrain.tick(DT)
    before = drivetrain.get_pose()
    assert before.heading_degrees == pytest.approx(70.0)

    drivetrain.zero_gyroscope()
    drivetrain.tick(DT)
    after = drivetrain.get_pose()
    assert after.x == pytest.approx(before.x)
    assert after.y == pytest.approx(before.y)
    assert after.heading == pytest.approx(0.0)


def test_reset_odometry_is_idempotent(drivetrain):
    target = Pose(3.0, -2.0, math.radians(45.0))
    drivetrain.reset_odometry(target)
    drivetrain.reset_odometry(target)
    drivetrain.tick(DT)
    pose = drivetrain.get_pose()
    assert pose.x == pytest.approx(3.0)
    assert pose.y == pytest.approx(-2.0)
    assert pose.heading_degrees == pytest.approx(45.0)


def test_gyro_failure_degrades_but_keeps_actuating(drivetrain, gyro, modules):
    gyro.rotate(math.radians(30.0))
    drivetrain.tick(DT)
    gyro.set_failed(True)
    drivetrain.drive(1.0, 0.0, 0.0)
    drivetrain.tick(DT)

    assert drivetrain.is_degraded
    assert drivetrain.telemetry.get(TELEMETRY_ODOMETRY_DEGRADED) == 1.0
    assert drivetrain.get_pose().heading_degrees == pytest.approx(30.0)
    assert all(module.command_count == 2 for module in modules)

    gyro.set_failed(False)
    drivetrain.tick(DT)
    assert not drivetrain.is_degraded


def test_turn_to_angle_settles(drivetrain, gyro):
    turn = drivetrain.turn_to_angle(90.0)
    run_closed_loop(drivetrain, gyro, 300)
    assert turn.state is TurnState.SETTLED
    assert drivetrain.get_pose().heading_degrees == pytest.approx(90.0, abs=2.0)
    assert drivetrain.maneuver is None


def test_turn_takes_short_way_across_boundary(drivetrain, gyro):
    drivetrain.reset_odometry(Pose(0.0, 0.0, math.radians(170.0)))
    drivetrain.tick(DT)
    drivetrain.turn_to_angle(-170.0)
    drivetrain.tick(DT)
    drivetrain.tick(DT)
    assert drivetrain.measured_velocity.omega > 0.0


def test_cancel_maneuver_stops_turn(drivetrain, gyro, modules):
    turn = drivetrain.turn_to_angle(90.0)
    run_closed_loop(drivetrain, gyro, 5)
    drivetrain.cancel_maneuver()
    assert turn.state is TurnState.TURNING
    drivetrain.tick(DT)
    assert turn.state is TurnState.CANCELLED
    assert all(module.last_command[0] == 0.0 for module in modules)


def test_drive_cancels_turn(drivetrain, gyro):
    turn = drivetrain.turn_to_angle(90.0)
    run_closed_loop(drivetrain, gyro, 3)
    drivetrain.drive(0.5, 0.0, 0.0)
    drivetrain.tick(DT)
    assert turn.state is TurnState.CANCELLED
    assert drivetrain.measured_velocity.vx == pytest.approx(0.5)


def test_drive_with_heading_holds_heading(drivetrain, gyro):
    drivetrain.drive_with_heading(0.5, 0.0, 45.0)
    run_closed_loop(drivetrain, gyro, 200)
    assert drivetrain.get_pose().heading_degrees == pytest.approx(45.0, abs=1.0)
    assert drivetrain.commanded_velocity.vx == 0.5


def test_live_tuning_applied_without_clearing_integral(drivetrain, gyro):
    drivetrain.rotation_controller.set_gains(4.0, 1.0, 0.0)
    drivetrain.default_tuning.publish_defaults(drivetrain.telemetry)
    drivetrain.telemetry.put("Drivetrain/Rotation/I", 1.0)
    drivetrain.telemetry.put("Drivetrain/Rotation/D", 0.0)

    drivetrain.turn_to_angle(90.0)
    run_closed_loop(drivetrain, gyro, 3)
    integral = drivetrain.rotation_controller.integral
    assert integral > 0.0

    drivetrain.telemetry.put(TELEMETRY_ROTATION_P, 4.4)
    drivetrain.tick(DT)
    assert drivetrain.rotation_controller.kp == 4.4
    assert drivetrain.rotation_controller.integral > integral


def test_wheel_odometry_mode(modules, gyro):
    drivetrain = Drivetrain(
        modules, gyro, default_geometry(), component_mode=ComponentMode(use_gyro=False)
    )
    drivetrain.drive(ChassisVelocity(0.0, 0.0, 1.0))
    for _ in range(10):
        drivetrain.tick(0.05)
    # Gyro never moved; heading comes from the wheels
    assert drivetrain.get_pose().heading == pytest.approx(0.5)


def test_scenario_a_with_lower_speed_limit(gyro):
    modules = [SimulatedModule(name, max_velocity=4.0) for name in MODULE_NAMES]
    drivetrain = Drivetrain(modules, gyro, default_geometry(), max_velocity=4.0)
    drivetrain.drive(1.0, 0.0, 0.0)
    for _ in range(50):
        drivetrain.tick(DT)
    for module in modules:
        assert module.last_command[0] == pytest.approx(1.0 / 4.0 * MAX_VOLTAGE)
        assert module.get_feedback().speed == pytest.approx(1.0)
    assert drivetrain.get_pose().x == pytest.approx(1.0)


def test_module_limits_must_match_drivetrain(modules, gyro):
    with pytest.raises(ValueError):
        Drivetrain(modules, gyro, default_geometry(), max_velocity=4.0)


def test_heading_anchored_on_first_gyro_read(modules, gyro):
    gyro.set_raw_heading(1.2)
    gyro.set_failed(True)
    drivetrain = Drivetrain(modules, gyro, default_geometry())
    drivetrain.tick(DT)
    assert drivetrain.is_degraded

    gyro.set_failed(False)
    drivetrain.tick(DT)
    assert drivetrain.get_pose().heading == pytest.approx(0.0)

    gyro.rotate(0.2)
    drivetrain.tick(DT)
    assert drivetrain.get_pose().heading == pytest.approx(0.2)


def test_starting_direction_is_heading_zero(modules):
    drivetrain = Drivetrain(modules, SimulatedGyro(raw_heading=2.0), default_geometry())
    drivetrain.tick(DT)
    assert drivetrain.get_pose().heading == pytest.approx(0.0)


def test_constants_published(drivetrain):
    assert drivetrain.telemetry.get(TELEMETRY_MAX_VELOCITY) == MAX_VELOCITY_METERS_PER_SECOND
    assert drivetrain.telemetry.get(TELEMETRY_MAX_ANGULAR_VELOCITY) == pytest.approx(
        MAX_ANGULAR_VELOCITY_RADIANS_PER_SECOND
    )
    assert drivetrain.telemetry.get(TELEMETRY_MAX_ANGULAR_VELOCITY_DEGREES) == pytest.approx(
        MAX_ANGULAR_VELOCITY_DEGREES_PER_SECOND
    )
