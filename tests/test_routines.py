import pytest

from swerve_control.client import run_simulation
from swerve_control.geometry import Pose
from swerve_control.routines import (
    RoutineRunner,
    StepKind,
    build_routine,
    drive_for,
    parallel,
    reset_odometry,
    turn,
    wait,
)

DT = 0.02


def run(runner, drivetrain, gyro, max_ticks=2000):
    for _ in range(max_ticks):
        runner.tick(DT)
        drivetrain.tick(DT)
        gyro.rotate(drivetrain.measured_velocity.omega * DT)
        if runner.is_done():
            return
    raise AssertionError("routine did not finish")


def test_wait_step(drivetrain, gyro):
    runner = RoutineRunner(drivetrain, [wait(0.1)])
    run(runner, drivetrain, gyro)
    assert 0.1 <= drivetrain.elapsed <= 0.1 + 3 * DT


def test_drive_for_then_stop(drivetrain, gyro, modules):
    runner = RoutineRunner(drivetrain, [drive_for(1.0, 0.0, 0.0, 0.5)])
    run(runner, drivetrain, gyro)
    drivetrain.tick(DT)
    assert drivetrain.get_pose().x == pytest.approx(0.5, abs=0.05)
    assert all(module.last_command[0] == 0.0 for module in modules)


def test_instant_steps_run_in_order(drivetrain, gyro):
    runner = RoutineRunner(drivetrain, [reset_odometry(Pose(1.0, 2.0, 0.0)), turn(30.0)])
    run(runner, drivetrain, gyro)
    pose = drivetrain.get_pose()
    assert pose.x == pytest.approx(1.0, abs=1e-6)
    assert pose.y == pytest.approx(2.0, abs=1e-6)
    assert pose.heading_degrees == pytest.approx(30.0, abs=2.0)


def test_parallel_waits_for_all_children(drivetrain, gyro):
    step = parallel(wait(0.1), wait(0.3))
    assert step.kind is StepKind.PARALLEL
    runner = RoutineRunner(drivetrain, [step])
    run(runner, drivetrain, gyro)
    assert drivetrain.elapsed >= 0.3 - 1e-9


def test_cancel_stops_routine(drivetrain, gyro):
    runner = RoutineRunner(drivetrain, [turn(90.0), wait(1.0)])
    runner.tick(DT)
    drivetrain.tick(DT)
    runner.cancel()
    assert runner.is_done()
    drivetrain.tick(DT)
    assert drivetrain.maneuver is None
    assert drivetrain.measured_velocity.omega == 0.0


def test_negative_durations_rejected():
    with pytest.raises(ValueError):
        wait(-1.0)
    with pytest.raises(ValueError):
        drive_for(1.0, 0.0, 0.0, -1.0)


def test_unknown_routine():
    with pytest.raises(ValueError):
        build_routine("figure_eight")


def test_idle_routine_is_done_immediately(drivetrain):
    runner = RoutineRunner(drivetrain, build_routine("idle"))
    runner.tick(DT)
    assert runner.is_done()


def test_rotate_tune_in_simulation():
    drivetrain = run_simulation("rotate_tune", duration=15.0)
    assert drivetrain.elapsed < 15.0
    assert drivetrain.get_pose().heading_degrees == pytest.approx(0.0, abs=2.0)


def test_square_returns_near_start():
    drivetrain = run_simulation("square", duration=15.0)
    pose = drivetrain.get_pose()
    assert pose.x == pytest.approx(0.0, abs=0.1)
    assert pose.y == pytest.approx(0.0, abs=0.1)


def test_parallel_turn_and_drive_stops_routine(drivetrain, gyro):
    runner = RoutineRunner(drivetrain, [parallel(turn(90.0), drive_for(0.5, 0.0, 0.0, 1.0)), wait(1.0)])
    runner.tick(DT)
    drivetrain.tick(DT)
    runner.tick(DT)
    assert runner.is_done()
    assert runner.cancelled
    drivetrain.tick(DT)
    assert drivetrain.measured_velocity.vx == 0.0
    assert drivetrain.measured_velocity.omega == 0.0


def test_driver_takeover_ends_routine_without_stopping(drivetrain, gyro):
    runner = RoutineRunner(drivetrain, [turn(90.0), wait(1.0)])
    runner.tick(DT)
    drivetrain.tick(DT)
    drivetrain.drive(0.5, 0.0, 0.0)
    drivetrain.tick(DT)
    runner.tick(DT)
    assert runner.is_done()
    drivetrain.tick(DT)
    assert drivetrain.measured_velocity.vx == pytest.approx(0.5)
