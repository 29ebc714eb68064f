import warnings
from pathlib import Path

import pytest

from swerve_control import commands
from swerve_control.commands import TurnState, TurnToAngle


def test_requires_positive_settle_window(controller):
    with pytest.raises(ValueError):
        TurnToAngle(90.0, controller, settle_window=0.0)


def test_start_retargets_controller(controller):
    controller.calculate(0.0, 45.0)
    turn = TurnToAngle(90.0, controller, settle_window=0.25)
    assert turn.state is TurnState.INIT
    turn.start()
    assert turn.state is TurnState.TURNING
    assert controller.target == 90.0
    assert controller.last_error is None


def test_turns_toward_target(controller):
    turn = TurnToAngle(90.0, controller, settle_window=0.25)
    turn.start()
    assert turn.step(0.0, 0.02) > 0.0
    turn = TurnToAngle(-90.0, controller, settle_window=0.25)
    turn.start()
    assert turn.step(0.0, 0.02) < 0.0


def test_settles_only_after_continuous_window(controller):
    turn = TurnToAngle(90.0, controller, settle_window=0.25)
    turn.start()

    # Window opens at the first in-tolerance sample and needs 0.25s after it
    for _ in range(3):
        turn.step(89.0, 0.1)
        assert turn.state is TurnState.TURNING

    assert turn.step(89.0, 0.1) == 0.0
    assert turn.state is TurnState.SETTLED
    assert turn.finished and turn.succeeded


def test_leaving_tolerance_restarts_window(controller):
    turn = TurnToAngle(90.0, controller, settle_window=0.25)
    turn.start()

    turn.step(89.5, 0.1)
    turn.step(90.5, 0.1)
    turn.step(90.0, 0.1)
    turn.step(95.0, 0.1)  # overshoot out of the band
    assert turn.time_in_tolerance == 0.0

    for _ in range(3):
        turn.step(90.0, 0.1)
    assert turn.state is TurnState.TURNING
    turn.step(90.0, 0.1)
    assert turn.state is TurnState.SETTLED


def test_single_sample_in_band_does_not_settle(controller):
    turn = TurnToAngle(0.0, controller, settle_window=0.25)
    turn.start()
    turn.step(0.0, 0.02)
    assert not turn.finished


def test_cancel_takes_effect_on_next_step(controller):
    turn = TurnToAngle(90.0, controller, settle_window=0.25)
    turn.start()
    turn.step(0.0, 0.02)
    turn.cancel()
    assert turn.state is TurnState.TURNING
    assert turn.step(0.0, 0.02) == 0.0
    assert turn.state is TurnState.CANCELLED
    assert turn.finished and not turn.succeeded
    assert controller.integral == 0.0


def test_cancel_before_start(controller):
    turn = TurnToAngle(90.0, controller)
    turn.cancel()
    turn.start()
    assert turn.state is TurnState.CANCELLED


def test_terminal_states_command_zero(controller):
    turn = TurnToAngle(0.0, controller, settle_window=0.05)
    turn.start()
    turn.step(0.0, 0.1)
    turn.step(0.0, 0.1)
    assert turn.state is TurnState.SETTLED
    assert turn.step(45.0, 0.1) == 0.0
    turn.cancel()
    assert turn.state is TurnState.SETTLED


def test_module_source_has_no_invalid_escapes():
    source = Path(commands.__file__).read_text(encoding="utf-8")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(source, commands.__file__, "exec")
