"""Data collection and CSV logging for drivetrain runs.

This module provides CSV data logging for:
- Pose estimates (position, heading, degraded flag)
- Module commands (speed and angle for every module)
- Rotation controller diagnostics (target, error, output, integral)
"""

import csv
import logging
import math
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, TextIO

from .config import TERM_BLUE, TERM_RESET
from .geometry import MODULE_NAMES, ModuleState, Pose

POSE_HEADERS = ["timestamp", "x", "y", "heading_deg", "degraded"]
MODULE_HEADERS = ["timestamp"] + [
    f"{name}_{field}" for name in MODULE_NAMES for field in ("speed", "angle_deg")
]
ROTATION_HEADERS = ["timestamp", "target", "error", "output", "integral", "at_setpoint"]


class DataCollector:
    """Manages CSV file creation and logging for drivetrain data.

    Attributes:
        run_dir: Directory path for this run's output files.
        pose_output_path: Pose CSV path.
        module_output_path: Module command CSV path.
        rotation_output_path: Rotation controller CSV path.
    """

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.pose_csv_file: Optional[TextIO] = None
        self.pose_csv_writer: Any = None
        self.module_csv_file: Optional[TextIO] = None
        self.module_csv_writer: Any = None
        self.rotation_csv_file: Optional[TextIO] = None
        self.rotation_csv_writer: Any = None

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # Create timestamped directory: results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.pose_output_path: Path = self.run_dir / "pose_data.csv"
        self.module_output_path: Path = self.run_dir / "module_data.csv"
        self.rotation_output_path: Path = self.run_dir / "rotation_data.csv"

    def setup(self) -> None:
        """Create the run directory and open all CSV files with headers.

        Must be called before writing data.
        """
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.pose_csv_file = open(self.pose_output_path, "w", newline="")
        self.pose_csv_writer = csv.writer(self.pose_csv_file)
        self.pose_csv_writer.writerow(POSE_HEADERS)

        self.module_csv_file = open(self.module_output_path, "w", newline="")
        self.module_csv_writer = csv.writer(self.module_csv_file)
        self.module_csv_writer.writerow(MODULE_HEADERS)

        self.rotation_csv_file = open(self.rotation_output_path, "w", newline="")
        self.rotation_csv_writer = csv.writer(self.rotation_csv_file)
        self.rotation_csv_writer.writerow(ROTATION_HEADERS)

        logging.info(f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}/{TERM_RESET}")

    def log_pose(self, timestamp: float, pose: Pose, degraded: bool = False) -> None:
        """Log a pose estimate.

        Args:
            timestamp: Elapsed run time (seconds).
            pose: Estimated pose.
            degraded: Whether the gyro heading was held from an earlier tick.
        """
        if self.pose_csv_writer is None:
            return
        self.pose_csv_writer.writerow(
            [timestamp, pose.x, pose.y, pose.heading_degrees, int(degraded)]
        )

    def log_modules(self, timestamp: float, states: Sequence[ModuleState]) -> None:
        if self.module_csv_writer is None:
            return
        row = [timestamp]
        for state in states:
            row.extend([state.speed, math.degrees(state.angle)])
        self.module_csv_writer.writerow(row)

    def log_rotation(self, timestamp: float, diagnostics: Dict[str, float]) -> None:
        """Log rotation controller diagnostics.

        Args:
            timestamp: Elapsed run time (seconds).
            diagnostics: Dictionary from RotationController.get_diagnostics() with keys
                'target', 'error', 'output', 'integral', 'at_setpoint'
        """
        if self.rotation_csv_writer is None:
            return
        self.rotation_csv_writer.writerow(
            [
                timestamp,
                diagnostics["target"],
                diagnostics["error"],
                diagnostics["output"],
                diagnostics["integral"],
                diagnostics["at_setpoint"],
            ]
        )

    def cleanup(self) -> None:
        """Close all CSV files and log final output location."""
        for handle in (self.pose_csv_file, self.module_csv_file, self.rotation_csv_file):
            if handle:
                handle.close()
        self.pose_csv_writer = None
        self.module_csv_writer = None
        self.rotation_csv_writer = None

        logging.info(f"{TERM_BLUE}✓ Saved drivetrain data to {self.run_dir}/{TERM_RESET}")

    def __enter__(self) -> "DataCollector":
        """Context manager entry point.

        Returns:
            Self reference for use in with statement.
        """
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit point - ensures cleanup is called."""
        self.cleanup()
