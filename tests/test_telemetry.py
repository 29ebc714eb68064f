import pytest

from swerve_control.config import TELEMETRY_ROTATION_P, TELEMETRY_ROTATION_TOLERANCE
from swerve_control.telemetry import RotationTuning, TelemetryTable


def test_put_and_get():
    table = TelemetryTable()
    table.put("Drivetrain/Pose/X", 1)
    table.put("Drivetrain/Odometry/Degraded", True)
    assert table.get("Drivetrain/Pose/X") == 1.0
    assert table.get("Drivetrain/Odometry/Degraded") == 1.0
    assert table.get("missing", 7.0) == 7.0
    assert len(table) == 2


@pytest.mark.parametrize("value", ["4.0", None, [1.0]])
def test_non_numeric_rejected(value):
    with pytest.raises(TypeError):
        TelemetryTable().put("key", value)


def test_set_default_keeps_existing():
    table = TelemetryTable()
    table.put("key", 2.0)
    table.set_default("key", 5.0)
    table.set_default("other", 5.0)
    assert table.snapshot() == {"key": 2.0, "other": 5.0}


def test_tuning_round_trip_through_table():
    table = TelemetryTable()
    RotationTuning().publish_defaults(table)
    assert TELEMETRY_ROTATION_P in table

    table.update({TELEMETRY_ROTATION_P: 6.5, TELEMETRY_ROTATION_TOLERANCE: 1.0})
    tuning = RotationTuning.from_table(table)
    assert tuning.kp == 6.5
    assert tuning.tolerance == 1.0
    assert tuning.kd == RotationTuning().kd


def test_tuning_falls_back_to_given_defaults():
    defaults = RotationTuning(kp=1.0, ki=2.0, kd=3.0)
    tuning = RotationTuning.from_table(TelemetryTable(), defaults)
    assert tuning == defaults


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_rejected(value):
    table = TelemetryTable()
    with pytest.raises(ValueError):
        table.put(TELEMETRY_ROTATION_P, value)
    assert TELEMETRY_ROTATION_P not in table


def test_update_is_all_or_nothing():
    table = TelemetryTable()
    with pytest.raises(ValueError):
        table.update({TELEMETRY_ROTATION_P: 5.0, TELEMETRY_ROTATION_TOLERANCE: float("nan")})
    assert len(table) == 0
