"""
Component isolation modes for modular testing.

This module defines which drivetrain features are active/bypassed to enable
systematic evaluation of each feature's contribution on the robot.
"""

from dataclasses import dataclass
import argparse
import sys


@dataclass
class ComponentMode:
    """Configuration for which drivetrain features are active."""

    # Odometry
    use_gyro: bool = True  # If False, heading is integrated from wheel motion

    # Kinematics
    use_angle_hold: bool = True  # If False, stationary modules snap to atan2 output

    # Rotation controller
    use_integral: bool = True  # If False, force ki = 0
    use_derivative: bool = True  # If False, force kd = 0

    def __str__(self):
        """Human-readable description of active components."""
        components = []

        if self.use_gyro:
            components.append("Gyro Odometry")
        else:
            components.append("Wheel Odometry")

        if self.use_angle_hold:
            components.append("Kinematics + Angle Hold")
        else:
            components.append("Kinematics")

        pid_terms = ["P"]
        if self.use_integral:
            pid_terms.append("I")
        if self.use_derivative:
            pid_terms.append("D")
        components.append(f"Rotation({'+'.join(pid_terms)})")

        return " → ".join(components)

    def to_dict(self):
        """Convert to dictionary for logging."""
        return {
            'use_gyro': self.use_gyro,
            'use_angle_hold': self.use_angle_hold,
            'use_integral': self.use_integral,
            'use_derivative': self.use_derivative,
        }


def parse_component_flags(args=None):
    """
    Parse command-line flags to determine which components are active.

    Args:
        args: List of command-line arguments (default: sys.argv[1:])

    Returns:
        tuple: (ComponentMode, remaining_args)
            - ComponentMode with appropriate settings
            - List of remaining arguments not consumed
    """
    parser = argparse.ArgumentParser(add_help=False)

    parser.add_argument('--no-gyro', action='store_true',
                        help='Ignore the gyro and integrate heading from wheel motion')
    parser.add_argument('--no-angle-hold', action='store_true',
                        help='Do not hold module angles when stationary')
    parser.add_argument('--no-integral', action='store_true',
                        help='Disable the integral term of the rotation controller')
    parser.add_argument('--no-derivative', action='store_true',
                        help='Disable the derivative term of the rotation controller')

    if args is None:
        args = sys.argv[1:]

    known_args, remaining_args = parser.parse_known_args(args)

    mode = ComponentMode(
        use_gyro=not known_args.no_gyro,
        use_angle_hold=not known_args.no_angle_hold,
        use_integral=not known_args.no_integral,
        use_derivative=not known_args.no_derivative,
    )

    return mode, remaining_args
