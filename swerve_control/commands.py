"""Turn-to-angle maneuver.

A small state machine around the RotationController:

    INIT --start()--> TURNING --settled for settle_window--> SETTLED
      |                  |
      +----cancel()------+-------------------------------> CANCELLED

SETTLED and CANCELLED are terminal and both command zero angular velocity.
A single in-tolerance sample never completes the turn: the heading has to stay
inside the tolerance band continuously for the whole settle window, which
rejects noise and overshoot passing through the band.
"""

import logging
from enum import Enum

from .config import TERM_BLUE, TERM_RESET, TURN_SETTLE_WINDOW_SECONDS
from .rotation_controller import RotationController


class TurnState(Enum):
    INIT = "init"
    TURNING = "turning"
    SETTLED = "settled"
    CANCELLED = "cancelled"


class TurnToAngle:
    """Rotate the robot in place to a field heading.

    The maneuver is owned by the drivetrain tick: the drivetrain calls start()
    when it picks the maneuver up and step() once per tick. External callers
    only read the state and may request cancellation.

    Attributes:
        target_degrees: Target field heading (degrees)
        settle_window: Continuous in-tolerance time required (seconds)
        state: Current TurnState
    """

    def __init__(
        self,
        target_degrees: float,
        controller: RotationController,
        settle_window: float = TURN_SETTLE_WINDOW_SECONDS,
    ):
        if settle_window <= 0.0:
            raise ValueError(f"settle_window must be positive, got {settle_window}")

        self.target_degrees = target_degrees
        self.controller = controller
        self.settle_window = settle_window
        self.state = TurnState.INIT

        self.elapsed: float = 0.0
        self.time_in_tolerance: float = 0.0
        self._in_tolerance = False
        self._cancel_requested = False

    @property
    def finished(self) -> bool:
        return self.state in (TurnState.SETTLED, TurnState.CANCELLED)

    @property
    def succeeded(self) -> bool:
        return self.state is TurnState.SETTLED

    def start(self) -> None:
        """Capture the target and begin turning with a fresh integrator."""
        if self.state is not TurnState.INIT:
            return
        if self._cancel_requested:
            self.state = TurnState.CANCELLED
            return
        self.controller.retarget(self.target_degrees)
        self.state = TurnState.TURNING
        logging.debug(f"Turning to {self.target_degrees:.1f} deg")

    def cancel(self) -> None:
        """Request cancellation; takes effect on the next step()."""
        if not self.finished:
            self._cancel_requested = True

    def step(self, heading_degrees: float, dt: float) -> float:
        """Advance one tick.

        Args:
            heading_degrees: Current field heading (degrees)
            dt: Tick duration (seconds)

        Returns:
            Angular velocity command (deg/s); 0.0 once the turn is finished
        """
        if self._cancel_requested and not self.finished:
            self.state = TurnState.CANCELLED
            self.controller.reset()
            logging.info(f"Turn to {self.target_degrees:.1f} deg cancelled")

        if self.state is not TurnState.TURNING:
            return 0.0

        self.elapsed += dt
        output = self.controller.calculate(heading_degrees, dt=dt)

        if self.controller.at_setpoint():
            # The window opens at the first in-tolerance sample
            if self._in_tolerance:
                self.time_in_tolerance += dt
            else:
                self._in_tolerance = True
                self.time_in_tolerance = 0.0
        else:
            self._in_tolerance = False
            self.time_in_tolerance = 0.0

        if self._in_tolerance and self.time_in_tolerance >= self.settle_window:
            self.state = TurnState.SETTLED
            self.controller.reset()
            logging.info(
                f"{TERM_BLUE}✓ Settled at {self.target_degrees:.1f} deg "
                f"after {self.elapsed:.2f}s{TERM_RESET}"
            )
            return 0.0

        return output
