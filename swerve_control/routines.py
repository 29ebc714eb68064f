"""Autonomous routines as lists of tagged steps.

A routine is plain data: a list of Step values, each tagged with a StepKind.
RoutineRunner interprets the list one step at a time from the control loop,
with a PARALLEL step running its children side by side until all are done.

Example:
    >>> steps = [reset_odometry(Pose()), turn(-45.0), wait(0.5), turn(0.0)]
    >>> runner = RoutineRunner(drivetrain, steps)
    >>> runner.start()
    >>> while not runner.is_done():
    ...     runner.tick(0.02)
    ...     drivetrain.tick(0.02)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .commands import TurnToAngle
from .config import TERM_BLUE, TERM_RESET
from .drivetrain import Drivetrain
from .geometry import ChassisVelocity, Pose


class StepKind(Enum):
    TURN = "turn"
    WAIT = "wait"
    DRIVE = "drive"
    RESET_ODOMETRY = "reset_odometry"
    SET_GYRO_OFFSET = "set_gyro_offset"
    ZERO_GYRO = "zero_gyro"
    PARALLEL = "parallel"


@dataclass(frozen=True)
class Step:
    """One routine step. Only the fields relevant to ``kind`` are used."""

    kind: StepKind
    degrees: float = 0.0
    duration: float = 0.0
    velocity: ChassisVelocity = ChassisVelocity()
    pose: Pose = Pose()
    offset: float = 0.0
    children: Tuple["Step", ...] = ()


def turn(degrees: float) -> Step:
    return Step(StepKind.TURN, degrees=degrees)


def wait(seconds: float) -> Step:
    if seconds < 0.0:
        raise ValueError(f"wait duration must be >= 0, got {seconds}")
    return Step(StepKind.WAIT, duration=seconds)


def drive_for(vx: float, vy: float, omega: float, seconds: float) -> Step:
    """Drive at a fixed robot-frame velocity, then stop."""
    if seconds < 0.0:
        raise ValueError(f"drive duration must be >= 0, got {seconds}")
    return Step(StepKind.DRIVE, duration=seconds, velocity=ChassisVelocity(vx, vy, omega))


def reset_odometry(pose: Pose) -> Step:
    return Step(StepKind.RESET_ODOMETRY, pose=pose)


def set_gyro_offset(offset: float) -> Step:
    return Step(StepKind.SET_GYRO_OFFSET, offset=offset)


def zero_gyro() -> Step:
    return Step(StepKind.ZERO_GYRO)


def parallel(*children: Step) -> Step:
    """Run children side by side until all are done.

    At most one child should command the drivetrain motion (turn or drive).
    A drive issued next to a turn cancels the turn, which ends the routine.
    """
    return Step(StepKind.PARALLEL, children=tuple(children))


class _ActiveStep:
    """Runtime state for one step being interpreted."""

    def __init__(self, step: Step, drivetrain: Drivetrain):
        self.step = step
        self.drivetrain = drivetrain
        self.elapsed = 0.0
        self.turn: Optional[TurnToAngle] = None
        self.children: List["_ActiveStep"] = []
        self.done = False

    @property
    def interrupted(self) -> bool:
        """True when a turn in this step ended without settling."""
        if self.turn is not None and self.turn.finished and not self.turn.succeeded:
            return True
        return any(child.interrupted for child in self.children)

    def start(self) -> None:
        kind = self.step.kind

        if kind is StepKind.TURN:
            self.turn = self.drivetrain.turn_to_angle(self.step.degrees)
        elif kind is StepKind.DRIVE:
            self.drivetrain.drive(self.step.velocity)
            self.done = self.step.duration <= 0.0
            if self.done:
                self.drivetrain.stop()
        elif kind is StepKind.WAIT:
            self.done = self.step.duration <= 0.0
        elif kind is StepKind.RESET_ODOMETRY:
            self.drivetrain.reset_odometry(self.step.pose)
            self.done = True
        elif kind is StepKind.SET_GYRO_OFFSET:
            self.drivetrain.set_gyro_offset(self.step.offset)
            self.done = True
        elif kind is StepKind.ZERO_GYRO:
            self.drivetrain.zero_gyroscope()
            self.done = True
        elif kind is StepKind.PARALLEL:
            self.children = [_ActiveStep(child, self.drivetrain) for child in self.step.children]
            for child in self.children:
                child.start()
            self.done = all(child.done for child in self.children)

    def tick(self, dt: float) -> None:
        if self.done:
            return

        kind = self.step.kind
        self.elapsed += dt

        if kind is StepKind.TURN:
            self.done = self.turn is not None and self.turn.finished
        elif kind is StepKind.WAIT:
            self.done = self.elapsed >= self.step.duration
        elif kind is StepKind.DRIVE:
            if self.elapsed >= self.step.duration:
                self.drivetrain.stop()
                self.done = True
        elif kind is StepKind.PARALLEL:
            for child in self.children:
                child.tick(dt)
            self.done = all(child.done for child in self.children)

    def cancel(self) -> None:
        if self.turn is not None:
            self.turn.cancel()
        if self.step.kind is StepKind.DRIVE and not self.done:
            self.drivetrain.stop()
            self.done = True
        for child in self.children:
            child.cancel()


class RoutineRunner:
    """Interprets a list of steps from the control loop.

    The runner issues drivetrain commands; the drivetrain applies them on its
    next tick. Call runner.tick(dt) before drivetrain.tick(dt) every cycle.
    """

    def __init__(self, drivetrain: Drivetrain, steps: Sequence[Step], name: str = "routine"):
        self.drivetrain = drivetrain
        self.steps = list(steps)
        self.name = name
        self.index = 0
        self.current: Optional[_ActiveStep] = None
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True
        logging.info(f"{TERM_BLUE}Starting routine '{self.name}' ({len(self.steps)} steps){TERM_RESET}")
        self._advance()

    def _advance(self) -> None:
        """Start steps until one needs more than an instant."""
        while self.index < len(self.steps):
            self.current = _ActiveStep(self.steps[self.index], self.drivetrain)
            self.current.start()
            logging.debug(f"Routine '{self.name}' step {self.index}: {self.current.step.kind.value}")
            if not self.current.done:
                return
            self.index += 1
        self.current = None

    def tick(self, dt: float) -> None:
        if not self.started:
            self.start()
            return
        if self.current is None or self.cancelled:
            return

        self.current.tick(dt)
        if self.current.interrupted:
            # Whoever interrupted the turn now owns the drivetrain, so leave it alone
            logging.warning(f"Routine '{self.name}' step {self.index} was interrupted; stopping routine")
            self.current.cancel()
            self.cancelled = True
            return
        if self.current.done:
            self.index += 1
            self._advance()
            if self.is_done():
                logging.info(f"{TERM_BLUE}✓ Routine '{self.name}' complete{TERM_RESET}")

    def is_done(self) -> bool:
        return self.cancelled or (self.started and self.index >= len(self.steps))

    def cancel(self) -> None:
        """Stop the routine and the drivetrain."""
        if self.current is not None:
            self.current.cancel()
        self.cancelled = True
        self.drivetrain.cancel_maneuver()
        logging.info(f"Routine '{self.name}' cancelled")


def rotate_tune_routine(offset: float = 0.0) -> List[Step]:
    """Swing -45, +45 and back to 0 degrees to tune the rotation controller."""
    return [
        set_gyro_offset(offset),
        reset_odometry(Pose(0.0, 0.0, 0.0)),
        turn(-45.0),
        wait(0.5),
        turn(45.0),
        wait(0.5),
        turn(0.0),
    ]


def square_routine(side_seconds: float = 1.0, speed: float = 1.0) -> List[Step]:
    """Drive a square without rotating, then face forward."""
    return [
        reset_odometry(Pose(0.0, 0.0, 0.0)),
        drive_for(speed, 0.0, 0.0, side_seconds),
        drive_for(0.0, speed, 0.0, side_seconds),
        drive_for(-speed, 0.0, 0.0, side_seconds),
        drive_for(0.0, -speed, 0.0, side_seconds),
        turn(0.0),
    ]


ROUTINES: Dict[str, Callable[[], List[Step]]] = {
    "idle": lambda: [],
    "rotate_tune": rotate_tune_routine,
    "square": square_routine,
}


def build_routine(name: str) -> List[Step]:
    """Look up a routine by name.

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        return ROUTINES[name]()
    except KeyError:
        raise ValueError(f"Unknown routine '{name}'. Available: {', '.join(sorted(ROUTINES))}") from None
