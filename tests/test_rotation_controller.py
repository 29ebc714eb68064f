import pytest

from swerve_control.rotation_controller import RotationController
from swerve_control.telemetry import RotationTuning


@pytest.mark.parametrize(
    "current, target, expected",
    [
        (359.0, 1.0, 2.0),
        (1.0, 359.0, -2.0),
        (90.0, 90.0, 0.0),
        (-170.0, 170.0, -20.0),
        (0.0, 180.0, 180.0),
    ],
)
def test_error_takes_shortest_path(controller, current, target, expected):
    assert controller.error(current, target) == pytest.approx(expected)


def test_proportional_output_across_boundary(controller):
    output = controller.calculate(359.0, 1.0, dt=0.02)
    assert output == pytest.approx(8.0)


def test_output_is_clamped():
    controller = RotationController(kp=10.0, ki=0.0, kd=0.0, min_output=-50.0, max_output=50.0)
    assert controller.calculate(0.0, 90.0) == 50.0
    assert controller.calculate(0.0, -90.0) == -50.0


def test_derivative_zero_on_first_sample():
    controller = RotationController(kp=0.0, ki=0.0, kd=1.0)
    assert controller.calculate(0.0, 10.0, dt=0.1) == 0.0
    # Error shrinks from 10 to 8 over 0.1s
    assert controller.calculate(2.0, dt=0.1) == pytest.approx(-20.0)


def test_integral_anti_windup():
    controller = RotationController(kp=0.0, ki=1.0, kd=0.0, integral_limit=5.0)
    for _ in range(100):
        controller.calculate(0.0, 90.0, dt=0.1)
    assert controller.integral == 5.0


def test_at_setpoint_false_before_first_sample(controller):
    controller.retarget(0.0)
    assert not controller.at_setpoint()
    controller.calculate(1.5)
    assert controller.at_setpoint()
    controller.calculate(3.0)
    assert not controller.at_setpoint()
    assert controller.at_setpoint(tolerance=5.0)


def test_small_gain_change_keeps_integral():
    controller = RotationController(kp=4.0, ki=1.0, kd=0.0)
    controller.calculate(0.0, 10.0, dt=0.1)
    integral = controller.integral
    assert integral != 0.0
    controller.set_gains(4.4, 1.2, 0.0)
    assert controller.integral == integral


@pytest.mark.parametrize(
    "gains",
    [
        (4.0, 0.0, 0.0),  # integral switched off
        (4.0, -1.0, 0.0),  # sign flip
        (4.0, 1.0, 0.5),  # derivative switched on
        (10.0, 1.0, 0.0),  # large relative change
    ],
)
def test_discontinuous_gain_change_clears_integral(gains):
    controller = RotationController(kp=4.0, ki=1.0, kd=0.0)
    controller.calculate(0.0, 10.0, dt=0.1)
    controller.set_gains(*gains)
    assert controller.integral == 0.0


def test_retarget_clears_history(controller):
    controller.calculate(0.0, 30.0)
    controller.retarget(-30.0)
    assert controller.target == -30.0
    assert controller.integral == 0.0
    assert controller.last_error is None


@pytest.mark.parametrize(
    "kwargs",
    [{"tolerance": -1.0}, {"min_output": 10.0, "max_output": -10.0}, {"integral_limit": -1.0}],
)
def test_invalid_limits_rejected(kwargs):
    with pytest.raises(ValueError):
        RotationController(**kwargs)


def test_apply_tuning_sanitizes_values(controller):
    controller.apply_tuning(
        RotationTuning(kp=4.0, ki=0.0, kd=0.0, tolerance=-3.0, min_output=100.0, max_output=-100.0)
    )
    assert controller.tolerance == 0.0
    assert (controller.min_output, controller.max_output) == (-270.0, 270.0)


def test_diagnostics(controller):
    controller.calculate(0.0, 10.0)
    diagnostics = controller.get_diagnostics()
    assert diagnostics["target"] == 10.0
    assert diagnostics["error"] == pytest.approx(10.0)
    assert diagnostics["output"] == pytest.approx(40.0)
    assert diagnostics["at_setpoint"] == 0.0


@pytest.mark.parametrize(
    "tuning",
    [
        RotationTuning(kp=float("nan")),
        RotationTuning(kd=float("inf")),
        RotationTuning(tolerance=float("nan")),
        RotationTuning(min_output=float("nan")),
        RotationTuning(max_output=float("inf")),
    ],
)
def test_apply_tuning_ignores_non_finite_snapshot(controller, tuning):
    controller.apply_tuning(tuning)
    assert (controller.kp, controller.ki, controller.kd) == (4.0, 0.0, 0.0)
    assert controller.tolerance == 2.0
    assert (controller.min_output, controller.max_output) == (-270.0, 270.0)
    assert controller.calculate(0.0, 10.0) == pytest.approx(40.0)


def test_setters_reject_non_finite(controller):
    with pytest.raises(ValueError):
        controller.set_gains(float("nan"), 0.0, 0.0)
    with pytest.raises(ValueError):
        controller.set_output_limits(float("nan"), 270.0)
    with pytest.raises(ValueError):
        controller.set_tolerance(float("inf"))
