"""Gyroscope adapters for robot heading.

Every adapter reports heading as
    heading = normalize(raw - zero_reference + calibration_offset)
so that zero() makes the current physical heading read as 0 and set_offset()
applies an additive calibration on top of that.

Two variants are provided:
- StreamGyro: hardware-backed, fed from the robot's sensor stream
- SimulatedGyro: deterministic software stand-in for tests and simulation
"""

import math
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .config import GYRO_STALE_TIMEOUT_SECONDS
from .geometry import normalize_radians


class GyroReadError(RuntimeError):
    """Raised when the gyro has no usable heading sample."""


class GyroscopeAdapter(ABC):
    """Heading sensor capability: read heading, zero it, apply a calibration offset."""

    def __init__(self) -> None:
        self.zero_reference: float = 0.0
        self.calibration_offset: float = 0.0

    @abstractmethod
    def _read_raw(self) -> float:
        """Return the raw physical heading (rad).

        Raises:
            GyroReadError: If no valid sample is available.
        """

    def get_heading(self) -> float:
        """Current logical heading (rad) in (-pi, pi].

        Raises:
            GyroReadError: If the underlying read fails.
        """
        return normalize_radians(self._read_raw() - self.zero_reference + self.calibration_offset)

    def get_heading_degrees(self) -> float:
        return math.degrees(self.get_heading())

    def zero(self) -> None:
        """Make the current physical heading read as zero.

        Clears any calibration offset.

        Raises:
            GyroReadError: If the current heading cannot be read.
        """
        self.zero_reference = self._read_raw()
        self.calibration_offset = 0.0

    def set_offset(self, value: float) -> None:
        """Set the additive calibration offset (rad)."""
        self.calibration_offset = value


class StreamGyro(GyroscopeAdapter):
    """Gyro backed by heading samples streamed from the robot.

    The control loop never blocks on the sensor: update() caches the latest
    sample as it arrives and reads return the cached value. A read with no
    sample yet, or with a sample older than ``stale_timeout``, fails.

    Attributes:
        stale_timeout: Maximum sample age in seconds.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        stale_timeout: float = GYRO_STALE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        if stale_timeout <= 0.0:
            raise ValueError(f"stale_timeout must be positive, got {stale_timeout}")
        self.stale_timeout = stale_timeout
        self.clock = clock
        self._raw: Optional[float] = None
        self._received_at: Optional[float] = None

    def update(self, raw_heading: float, timestamp: Optional[float] = None) -> None:
        """Store a new raw heading sample (rad).

        Args:
            raw_heading: Heading reported by the sensor (rad)
            timestamp: Receive time on ``clock``; defaults to now
        """
        self._raw = float(raw_heading)
        self._received_at = timestamp if timestamp is not None else self.clock()

    def _read_raw(self) -> float:
        if self._raw is None or self._received_at is None:
            raise GyroReadError("No gyro sample received yet")

        age = self.clock() - self._received_at
        if age > self.stale_timeout:
            raise GyroReadError(f"Gyro sample is stale ({age:.3f}s old)")

        return self._raw


class SimulatedGyro(GyroscopeAdapter):
    """Deterministic gyro stand-in.

    The raw heading only changes through set_raw_heading() and rotate(), so a
    zeroed SimulatedGyro reads exactly 0 until the caller rotates it.
    set_failed(True) makes every read raise GyroReadError.
    """

    def __init__(self, raw_heading: float = 0.0):
        super().__init__()
        self._raw = raw_heading
        self._failed = False

    def set_raw_heading(self, raw_heading: float) -> None:
        self._raw = raw_heading

    def rotate(self, delta: float) -> None:
        self._raw += delta

    def set_failed(self, failed: bool) -> None:
        self._failed = failed

    def _read_raw(self) -> float:
        if self._failed:
            raise GyroReadError("Simulated gyro failure")
        return self._raw
