"""Swerve module actuation interfaces.

A module accepts one (speed command, steering angle) pair per tick and reports
its measured (speed, angle) back for odometry. The speed command is a drive
voltage in [-max_voltage, max_voltage]; feedback speed is in m/s, converted
with the same max_velocity the drivetrain used to build the command.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

from .config import MAX_VELOCITY_METERS_PER_SECOND, MAX_VOLTAGE
from .geometry import ModuleState


class ModuleActuator(ABC):
    """Capability interface for one steerable, drivable wheel module.

    Attributes:
        name: Module name (see geometry.MODULE_NAMES).
        max_velocity: Module speed at full voltage (m/s).
        max_voltage: Voltage corresponding to max_velocity.
    """

    def __init__(
        self,
        name: str,
        max_velocity: float = MAX_VELOCITY_METERS_PER_SECOND,
        max_voltage: float = MAX_VOLTAGE,
    ):
        if max_velocity <= 0.0 or max_voltage <= 0.0:
            raise ValueError(
                f"{name}: max_velocity and max_voltage must be positive, "
                f"got {max_velocity}, {max_voltage}"
            )
        self.name = name
        self.max_velocity = max_velocity
        self.max_voltage = max_voltage

    def command_to_speed(self, speed_command: float) -> float:
        return speed_command / self.max_voltage * self.max_velocity

    @abstractmethod
    def set(self, speed_command: float, angle: float) -> None:
        """Command the drive voltage and steering angle (rad)."""

    @abstractmethod
    def get_feedback(self) -> ModuleState:
        """Measured module speed (m/s) and steering angle (rad)."""


class SimulatedModule(ModuleActuator):
    """Ideal module: feedback equals the last command converted to m/s.

    Attributes:
        last_command: Last (speed_command, angle) received, or None.
    """

    def __init__(
        self,
        name: str,
        max_velocity: float = MAX_VELOCITY_METERS_PER_SECOND,
        max_voltage: float = MAX_VOLTAGE,
    ):
        super().__init__(name, max_velocity, max_voltage)
        self.last_command: Optional[Tuple[float, float]] = None
        self.command_count: int = 0

    def set(self, speed_command: float, angle: float) -> None:
        if abs(speed_command) > self.max_voltage + 1e-9:
            raise ValueError(
                f"{self.name}: speed command {speed_command:.3f}V outside ±{self.max_voltage}V"
            )
        self.last_command = (speed_command, angle)
        self.command_count += 1

    def get_feedback(self) -> ModuleState:
        if self.last_command is None:
            return ModuleState()
        speed_command, angle = self.last_command
        return ModuleState(speed=self.command_to_speed(speed_command), angle=angle)


class RemoteModule(ModuleActuator):
    """Module driven over the robot link.

    set() only records the command; the client sends all pending commands
    after each tick. Feedback comes from the sensor stream through
    update_feedback(). Until the first feedback sample arrives the last
    command (converted to m/s) stands in for it.
    """

    def __init__(
        self,
        name: str,
        max_velocity: float = MAX_VELOCITY_METERS_PER_SECOND,
        max_voltage: float = MAX_VOLTAGE,
    ):
        super().__init__(name, max_velocity, max_voltage)
        self.pending_command: Tuple[float, float] = (0.0, 0.0)
        self._feedback: Optional[ModuleState] = None

    def set(self, speed_command: float, angle: float) -> None:
        clamped = max(-self.max_voltage, min(self.max_voltage, speed_command))
        self.pending_command = (clamped, angle)

    def update_feedback(self, speed: float, angle: float) -> None:
        self._feedback = ModuleState(speed=float(speed), angle=float(angle))

    def get_feedback(self) -> ModuleState:
        if self._feedback is not None:
            return self._feedback
        speed_command, angle = self.pending_command
        return ModuleState(speed=self.command_to_speed(speed_command), angle=angle)

    def to_message(self) -> dict:
        speed_command, angle = self.pending_command
        return {"name": self.name, "speed": speed_command, "angle": angle}
