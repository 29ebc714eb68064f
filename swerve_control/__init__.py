"""Swerve Control - Motion Control Core for a Four-Module Swerve Drive Robot

Converts a commanded robot velocity into per-module steering and drive targets,
fuses module feedback with a gyro to track field pose, and closes the loop on
heading for driver assist and autonomous turns.

## Architecture Overview

One fixed-rate control tick runs the whole pipeline:

### Kinematics (kinematics.py)
Inverse kinematics for four independently steered modules.
- Module velocity = chassis translation + omega x module offset
- Uniform desaturation keeps every module under the maximum speed
- Angle hold keeps wheels still when a module is (nearly) stopped
- Forward kinematics (least squares) for odometry

### Odometry (odometry.py)
Integrates forward kinematics of the measured module states.
- Heading comes from the gyro (wheel heading drifts under slip)
- Pose exponential integration along the swept arc
- Explicit re-anchoring via reset_pose()

### Rotation Control (rotation_controller.py, commands.py)
PID on heading with wraparound-correct error in (-180, 180].
- Heading assist while driving
- Turn-to-angle maneuver that settles only after a continuous in-tolerance window

### Drivetrain (drivetrain.py)
Single-writer orchestrator: commands are queued and applied at the next tick.
- Failed gyro reads hold the last heading and flag odometry as degraded
- Live tuning read once per tick from the telemetry table

## Modules

- `config.py` - Centralized configuration parameters with documentation
- `geometry.py` - Poses, velocities, module states, angle normalization
- `kinematics.py` - Swerve inverse/forward kinematics and desaturation
- `odometry.py` - Pose estimation
- `rotation_controller.py` - Heading PID controller
- `commands.py` - Turn-to-angle state machine
- `gyro.py` - Gyro adapters (sensor stream, simulated)
- `modules.py` - Module actuators (remote, simulated)
- `telemetry.py` - Numeric telemetry table and tuning snapshot
- `drivetrain.py` - Control tick and command surface
- `routines.py` - Autonomous routines as tagged steps
- `client.py` - WebSocket robot link, fixed-rate loop, simulation mode
- `data_collector.py` - CSV logging
- `visualization.py` - Post-run plots

## Quick Start

```bash
# Simulate the rotation tuning routine and log CSVs to results/
python -m swerve_control --sim --routine rotate_tune

# Plot the latest run
python -m swerve_control.visualization
```
"""

__version__ = "0.1.0"

from .drivetrain import Drivetrain
from .geometry import ChassisVelocity, ModuleGeometry, ModuleState, Pose
from .kinematics import SwerveKinematics
from .odometry import SwerveOdometry
from .rotation_controller import RotationController

__all__ = [
    "Drivetrain",
    "SwerveKinematics",
    "SwerveOdometry",
    "RotationController",
    "ChassisVelocity",
    "ModuleGeometry",
    "ModuleState",
    "Pose",
]
