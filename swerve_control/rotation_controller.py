"""Rotation controller for closed-loop robot heading.

This module provides the heading controller used both for driver heading
assist and for autonomous turn-to-angle maneuvers. Error is always the signed
shortest angular distance to the target, so the robot never turns the long way
around when the target sits across the ±180 degree boundary.
"""

import logging
import math
from typing import Dict, Optional

from .config import (
    CONTROL_PERIOD_SECONDS,
    ROTATION_GAIN_RESET_RATIO,
    ROTATION_INTEGRAL_LIMIT,
    ROTATION_KD,
    ROTATION_KI,
    ROTATION_KP,
    ROTATION_MAX_OUTPUT,
    ROTATION_MIN_OUTPUT,
    ROTATION_TOLERANCE_DEGREES,
    TERM_ORANGE,
    TERM_RESET,
)
from .geometry import normalize_degrees


def _is_discontinuous(old: float, new: float, ratio: float) -> bool:
    if old == new:
        return False
    if (old == 0.0) != (new == 0.0):
        return True
    if (old < 0.0) != (new < 0.0):
        return True
    return abs(new - old) > ratio * abs(old)


class RotationController:
    """Wraparound-aware PID controller on robot heading.

    Control law (angles in degrees, output in deg/s):
        error = normalize(target - current)          in (-180, 180]
        output = kp * error + ki * integral(error) + kd * d(error)/dt
        output = clamp(output, min_output, max_output)

    Attributes:
        kp, ki, kd: PID gains
        tolerance: Error (degrees) considered on target
        min_output, max_output: Output clamp (deg/s)
        integral_limit: Anti-windup clamp on the accumulated error
        target: Current target heading (degrees)
    """

    def __init__(
        self,
        kp: float = ROTATION_KP,
        ki: float = ROTATION_KI,
        kd: float = ROTATION_KD,
        tolerance: float = ROTATION_TOLERANCE_DEGREES,
        min_output: float = ROTATION_MIN_OUTPUT,
        max_output: float = ROTATION_MAX_OUTPUT,
        integral_limit: float = ROTATION_INTEGRAL_LIMIT,
        gain_reset_ratio: float = ROTATION_GAIN_RESET_RATIO,
    ):
        """Initialize the rotation controller.

        Args:
            kp: Proportional gain. Default from config.ROTATION_KP
            ki: Integral gain. Default from config.ROTATION_KI
            kd: Derivative gain. Default from config.ROTATION_KD
            tolerance: On-target error band in degrees. Must be >= 0
            min_output: Lower output bound (deg/s). Must be <= max_output
            max_output: Upper output bound (deg/s)
            integral_limit: Anti-windup limit. Must be >= 0
            gain_reset_ratio: Relative gain change that clears the integrator

        Raises:
            ValueError: If any limit is out of range.
        """
        self.kp = kp
        self.ki = ki
        self.kd = kd
        self.gain_reset_ratio = gain_reset_ratio

        self.tolerance = 0.0
        self.min_output = -1.0
        self.max_output = 1.0
        self.integral_limit = 0.0
        self.set_tolerance(tolerance)
        self.set_output_limits(min_output, max_output)
        self.set_integral_limit(integral_limit)

        self.target: float = 0.0

        # Integral state (accumulated error, degree-seconds)
        self.integral: float = 0.0

        # Previous error for derivative computation; None until the first sample
        self.last_error: Optional[float] = None
        self.last_output: float = 0.0

    def set_gains(self, kp: float, ki: float, kd: float) -> None:
        """Retune the controller.

        Small adjustments keep the integrator so that live tuning does not
        kick the output. A discontinuous change (a gain switching on or off,
        flipping sign, or moving by more than gain_reset_ratio) clears it.
        """
        if not all(math.isfinite(gain) for gain in (kp, ki, kd)):
            raise ValueError(f"Gains must be finite, got ({kp}, {ki}, {kd})")
        ratio = self.gain_reset_ratio
        if (
            _is_discontinuous(self.kp, kp, ratio)
            or _is_discontinuous(self.ki, ki, ratio)
            or _is_discontinuous(self.kd, kd, ratio)
        ):
            logging.debug(
                f"Rotation gains changed discontinuously ({self.kp}, {self.ki}, {self.kd}) -> "
                f"({kp}, {ki}, {kd}); clearing integrator"
            )
            self.integral = 0.0
        self.kp = kp
        self.ki = ki
        self.kd = kd

    def set_tolerance(self, tolerance: float) -> None:
        if not math.isfinite(tolerance) or tolerance < 0.0:
            raise ValueError(f"tolerance must be finite and >= 0, got {tolerance}")
        self.tolerance = tolerance

    def set_output_limits(self, min_output: float, max_output: float) -> None:
        if not (math.isfinite(min_output) and math.isfinite(max_output)):
            raise ValueError(f"Output limits must be finite, got [{min_output}, {max_output}]")
        if min_output > max_output:
            raise ValueError(f"Inverted output limits: min {min_output} > max {max_output}")
        self.min_output = min_output
        self.max_output = max_output

    def set_integral_limit(self, integral_limit: float) -> None:
        if integral_limit < 0.0:
            raise ValueError(f"integral_limit must be >= 0, got {integral_limit}")
        self.integral_limit = integral_limit

    def apply_tuning(self, tuning) -> None:
        """Apply a live tuning snapshot (see telemetry.RotationTuning).

        Values from the dashboard are sanitized here rather than rejected:
        a snapshot holding NaN or infinity is ignored as a whole, a negative
        tolerance is clamped to zero and inverted output limits are ignored in
        favour of the previous ones.
        """
        values = (tuning.kp, tuning.ki, tuning.kd, tuning.tolerance, tuning.min_output, tuning.max_output)
        if not all(math.isfinite(value) for value in values):
            logging.warning(f"{TERM_ORANGE}Ignoring non-finite rotation tuning {tuning}{TERM_RESET}")
            return

        self.set_gains(tuning.kp, tuning.ki, tuning.kd)
        self.set_tolerance(max(0.0, tuning.tolerance))
        if tuning.min_output > tuning.max_output:
            logging.warning(
                f"{TERM_ORANGE}Ignoring inverted rotation output limits "
                f"[{tuning.min_output}, {tuning.max_output}]{TERM_RESET}"
            )
        else:
            self.set_output_limits(tuning.min_output, tuning.max_output)

    def error(self, current_heading: float, target_heading: Optional[float] = None) -> float:
        """Signed shortest angular distance from current to target (degrees)."""
        target = self.target if target_heading is None else target_heading
        return normalize_degrees(target - current_heading)

    def calculate(
        self,
        current_heading: float,
        target_heading: Optional[float] = None,
        dt: float = CONTROL_PERIOD_SECONDS,
    ) -> float:
        """Compute the angular command for one tick.

        Args:
            current_heading: Measured heading (degrees)
            target_heading: New target (degrees). Updates the stored target
                            without clearing history; use retarget() for a
                            fresh maneuver. Default: keep the stored target
            dt: Time step since last update (seconds)

        Returns:
            Angular velocity command (deg/s), clamped to the output limits
        """
        if target_heading is not None:
            self.target = target_heading

        error = normalize_degrees(self.target - current_heading)

        if dt > 0 and self.last_error is not None:
            error_derivative = normalize_degrees(error - self.last_error) / dt
        else:
            error_derivative = 0.0

        self.last_error = error

        # Accumulate integral of error with anti-windup
        if dt > 0:
            self.integral += error * dt
            self.integral = max(-self.integral_limit, min(self.integral_limit, self.integral))

        output = self.kp * error + self.ki * self.integral + self.kd * error_derivative
        output = max(self.min_output, min(self.max_output, output))

        self.last_output = output
        return output

    def at_setpoint(self, tolerance: Optional[float] = None) -> bool:
        """True when the last computed error is within tolerance.

        Always False before the first calculate().
        """
        if self.last_error is None:
            return False
        band = self.tolerance if tolerance is None else tolerance
        return abs(self.last_error) <= band

    def retarget(self, target_heading: float) -> None:
        """Set a new target and clear integral and derivative history."""
        self.reset()
        self.target = target_heading

    def reset(self) -> None:
        """Reset integral and derivative states.

        Call this when starting a new maneuver or when integral windup needs
        to be cleared.
        """
        self.integral = 0.0
        self.last_error = None
        self.last_output = 0.0

    def get_diagnostics(self) -> Dict[str, float]:
        return {
            "target": self.target,
            "error": self.last_error if self.last_error is not None else 0.0,
            "output": self.last_output,
            "integral": self.integral,
            "at_setpoint": float(self.at_setpoint()),
        }
