"""Configuration parameters for the swerve drive control system.

This module centralizes all configuration parameters including:
- Physical drivetrain geometry and actuator limits
- Rotation (heading) controller gains
- Turn-to-angle settle behaviour
- Sensor staleness limits
- Telemetry keys and WebSocket connection parameters

All parameters are documented with their purpose, valid ranges, and tuning rationale.
"""

import math

# ============================================================================
# Physical Drivetrain Parameters
# ============================================================================

DRIVETRAIN_TRACKWIDTH_METERS = 0.6
"""Distance between the left and right module centers (meters).
Fixed by chassis design."""

DRIVETRAIN_WHEELBASE_METERS = 0.6
"""Distance between the front and back module centers (meters).
Fixed by chassis design."""

MK4_L2_DRIVE_REDUCTION = (14.0 / 50.0) * (27.0 / 17.0) * (15.0 / 45.0)
"""Drive gear reduction of an MK4 module in the L2 configuration (dimensionless)."""

MK4_WHEEL_DIAMETER_METERS = 0.10033
"""Drive wheel diameter of an MK4 module (meters)."""

DRIVE_MOTOR_FREE_SPEED_RPM = 6380.0
"""Free speed of the drive motor (RPM)."""

MAX_VOLTAGE = 12.0
"""Maximum voltage delivered to the drive motors (volts).

Module speed commands are expressed as a voltage in [-MAX_VOLTAGE, MAX_VOLTAGE].
Reduce this to cap the robot's top speed during initial testing.
"""

MAX_VELOCITY_METERS_PER_SECOND = (
    DRIVE_MOTOR_FREE_SPEED_RPM / 60.0
    * MK4_L2_DRIVE_REDUCTION
    * MK4_WHEEL_DIAMETER_METERS
    * math.pi
)
"""Maximum module speed (m/s), theoretical.

Formula: <free speed RPM> / 60 * <drive reduction> * <wheel diameter> * pi
Evaluates to roughly 4.97 m/s for the MK4 L2 configuration. Desaturation never
lets a module exceed this value.
"""

MAX_ANGULAR_VELOCITY_RADIANS_PER_SECOND = MAX_VELOCITY_METERS_PER_SECOND / math.hypot(
    DRIVETRAIN_TRACKWIDTH_METERS / 2.0, DRIVETRAIN_WHEELBASE_METERS / 2.0
)
"""Maximum angular velocity when rotating in place (rad/s)."""

MAX_ANGULAR_VELOCITY_DEGREES_PER_SECOND = math.degrees(MAX_ANGULAR_VELOCITY_RADIANS_PER_SECOND)
"""Maximum angular velocity when rotating in place (deg/s)."""


# ============================================================================
# Kinematics Parameters
# ============================================================================

MODULE_ANGLE_HOLD_DEADBAND = 1e-3
"""Module speed below which the previous steering angle is held (m/s).

atan2 of a near-zero vector is numerically meaningless and makes the wheels
chatter at rest. Below this speed the module keeps its last commanded angle.
"""


# ============================================================================
# Rotation Controller Parameters (heading PID)
# ============================================================================

ROTATION_KP = 4.0
"""Proportional gain (deg/s of output per degree of error, range: [0, 10]).

Tuning rationale:
- 4.0 turns a 45 degree error into a 180 deg/s command, which saturates
  briefly and then decays without visible overshoot on carpet
"""

ROTATION_KI = 0.0
"""Integral gain (range: [0, 2]).

Disabled by default. The drivetrain has no steady heading disturbance, so the
proportional term alone settles inside the tolerance.
"""

ROTATION_KD = 0.2
"""Derivative gain (range: [0, 1]).

Small damping term to reduce overshoot at the end of fast turns.
"""

ROTATION_TOLERANCE_DEGREES = 2.0
"""Heading error considered on target (degrees, must be >= 0)."""

ROTATION_MIN_OUTPUT = -270.0
"""Lower bound of the rotation controller output (deg/s)."""

ROTATION_MAX_OUTPUT = 270.0
"""Upper bound of the rotation controller output (deg/s)."""

ROTATION_INTEGRAL_LIMIT = 30.0
"""Anti-windup clamp for the accumulated error (degree-seconds)."""

ROTATION_GAIN_RESET_RATIO = 0.5
"""Relative gain change that counts as a discontinuous retune (dimensionless).

When any gain changes by more than this fraction of its previous value (or
toggles between zero and non-zero, or flips sign) the integrator is cleared.
Smaller live adjustments keep the accumulated history.
"""

TURN_SETTLE_WINDOW_SECONDS = 0.25
"""Time the heading must stay continuously in tolerance before a turn completes (seconds).

Tuning rationale:
- 0.25s is about 12 ticks at 50 Hz, enough to reject a single noisy sample
  or an overshoot passing through the tolerance band
"""


# ============================================================================
# Sensor Parameters
# ============================================================================

GYRO_STALE_TIMEOUT_SECONDS = 0.1
"""Maximum age of a streamed gyro sample before it counts as stale (seconds).
Five control periods at 50 Hz."""


# ============================================================================
# Control Loop Parameters
# ============================================================================

CONTROL_PERIOD_SECONDS = 0.02
"""Fixed control tick period (seconds). 50 Hz."""

TELEMETRY_PUBLISH_EVERY = 5
"""Send a telemetry snapshot to the server every N ticks."""


# ============================================================================
# Telemetry Keys
# ============================================================================

TELEMETRY_ROTATION_P = "Drivetrain/Rotation/P"
TELEMETRY_ROTATION_I = "Drivetrain/Rotation/I"
TELEMETRY_ROTATION_D = "Drivetrain/Rotation/D"
TELEMETRY_ROTATION_TOLERANCE = "Drivetrain/Rotation/Tolerance"
TELEMETRY_ROTATION_MIN_OUTPUT = "Drivetrain/Rotation/Min Output"
TELEMETRY_ROTATION_MAX_OUTPUT = "Drivetrain/Rotation/Max Output"
TELEMETRY_POSE_X = "Drivetrain/Pose/X"
TELEMETRY_POSE_Y = "Drivetrain/Pose/Y"
TELEMETRY_POSE_HEADING = "Drivetrain/Pose/Heading"
TELEMETRY_ODOMETRY_DEGRADED = "Drivetrain/Odometry/Degraded"
TELEMETRY_MAX_VELOCITY = "Drivetrain/Constants/Max Velocity"
TELEMETRY_MAX_ANGULAR_VELOCITY = "Drivetrain/Constants/Max Angular Velocity"
TELEMETRY_MAX_ANGULAR_VELOCITY_DEGREES = "Drivetrain/Constants/Max Angular Velocity Degrees"


# ============================================================================
# Terminal Colors (ANSI escape sequences)
# ============================================================================

TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for warnings and highlights (RGB: 247, 72, 35)."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for status lines (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# Plot Colors
# ============================================================================

PLOT_ORANGE = "#f74823"
"""Primary plot color - measured/actual data."""

PLOT_BLUE = "#2374f7"
"""Secondary plot color - targets and references."""

PLOT_TAUPE = "#686a5f"
"""Neutral color for guides and grids."""


# ============================================================================
# WebSocket Configuration
# ============================================================================

WS_URI = "ws://localhost:8765"
"""WebSocket server URI of the robot (or its simulator)."""

WS_RETRY_DELAY_SECONDS = 1
"""Initial retry delay for failed WebSocket connections (seconds)."""

WS_MAX_RETRY_DELAY_SECONDS = 60
"""Maximum retry delay with exponential backoff (seconds)."""
