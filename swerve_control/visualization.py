"""
Visualization utilities for drivetrain run data.

This module loads the CSV files written by DataCollector and plots the
estimated field trajectory, heading against the rotation target, and module
speed commands.

Usage:
    python -m swerve_control.visualization              # latest run
    python -m swerve_control.visualization results/run_20260101_120000
"""

import argparse
import csv
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from .config import PLOT_BLUE, PLOT_ORANGE, PLOT_TAUPE
from .geometry import MODULE_NAMES


def load_csv_to_dict(csv_path: Path) -> Dict[str, np.ndarray]:
    """Load CSV file into dictionary of numpy arrays.

    Non-numeric or empty values become NaN.

    Args:
        csv_path: Path to CSV file.

    Returns:
        Dictionary mapping column names to numpy arrays.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        data: Dict[str, List[float]] = {name: [] for name in reader.fieldnames or []}
        for row in reader:
            for key, value in row.items():
                try:
                    data[key].append(float(value))
                except (ValueError, TypeError):
                    data[key].append(np.nan)

    return {key: np.array(values) for key, values in data.items()}


def style_axis(ax: Axes, title: str = "", xlabel: str = "", ylabel: str = "") -> None:
    ax.set_title(title, fontweight="bold")
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.grid(True, color=PLOT_TAUPE, alpha=0.3, linestyle="--")


def plot_pose_trajectory(pose_data: Dict[str, np.ndarray], ax: Optional[Axes] = None) -> Axes:
    """Plot the estimated x/y trajectory, marking degraded samples.

    Args:
        pose_data: Columns from pose_data.csv.
        ax: Axis to draw on; a new figure is created if None.

    Returns:
        The axis drawn on.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 6))

    ax.plot(pose_data["x"], pose_data["y"], color=PLOT_ORANGE, linewidth=2, label="Odometry")
    if len(pose_data["x"]) > 0:
        ax.scatter(pose_data["x"][0], pose_data["y"][0], color=PLOT_BLUE, zorder=3, label="Start")

    degraded = pose_data.get("degraded")
    if degraded is not None and np.any(degraded > 0):
        mask = degraded > 0
        ax.scatter(
            pose_data["x"][mask], pose_data["y"][mask],
            color=PLOT_TAUPE, marker="x", label="Degraded heading",
        )

    ax.set_aspect("equal", adjustable="datalim")
    style_axis(ax, "Estimated Trajectory", "x (m)", "y (m)")
    ax.legend()
    return ax


def plot_heading_tracking(
    pose_data: Dict[str, np.ndarray],
    rotation_data: Dict[str, np.ndarray],
    ax: Optional[Axes] = None,
) -> Axes:
    """Plot heading against the rotation controller target over time."""
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 4))

    ax.plot(pose_data["timestamp"], pose_data["heading_deg"], color=PLOT_ORANGE, label="Heading")
    ax.step(
        rotation_data["timestamp"], rotation_data["target"],
        where="post", color=PLOT_BLUE, linestyle="--", label="Target",
    )
    style_axis(ax, "Heading Tracking", "Time (s)", "Heading (deg)")
    ax.legend()
    return ax


def plot_module_speeds(module_data: Dict[str, np.ndarray], ax: Optional[Axes] = None) -> Axes:
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 4))

    for name in MODULE_NAMES:
        ax.plot(module_data["timestamp"], module_data[f"{name}_speed"], label=name)
    style_axis(ax, "Module Speed Commands", "Time (s)", "Speed (m/s)")
    ax.legend()
    return ax


def plot_run_summary(run_dir: Path, save_path: Optional[Path] = None) -> Figure:
    """Create a summary figure for one run directory.

    Args:
        run_dir: Directory containing pose_data.csv, rotation_data.csv and
                 module_data.csv.
        save_path: Where to save the figure. Default: run_dir/summary.png

    Returns:
        The matplotlib figure.

    Raises:
        FileNotFoundError: If any CSV file is missing.
    """
    pose_data = load_csv_to_dict(run_dir / "pose_data.csv")
    rotation_data = load_csv_to_dict(run_dir / "rotation_data.csv")
    module_data = load_csv_to_dict(run_dir / "module_data.csv")

    fig = plt.figure(figsize=(14, 8))
    grid = fig.add_gridspec(2, 2)
    plot_pose_trajectory(pose_data, fig.add_subplot(grid[:, 0]))
    plot_heading_tracking(pose_data, rotation_data, fig.add_subplot(grid[0, 1]))
    plot_module_speeds(module_data, fig.add_subplot(grid[1, 1]))
    fig.suptitle(f"Drivetrain Run: {run_dir.name}", fontweight="bold")
    fig.tight_layout()

    if save_path is None:
        save_path = run_dir / "summary.png"
    fig.savefig(save_path, dpi=120)
    logging.info(f"Saved summary plot to {save_path}")
    return fig


def find_latest_run(results_dir: Path) -> Path:
    """Find the most recent run directory.

    Raises:
        FileNotFoundError: If no run directories are found.
    """
    if not results_dir.exists():
        raise FileNotFoundError(f"Results directory not found: {results_dir}")

    run_dirs = sorted(
        [d for d in results_dir.iterdir() if d.is_dir() and d.name.startswith("run_")]
    )

    if not run_dirs:
        raise FileNotFoundError(f"No run directories found in {results_dir}")

    return run_dirs[-1]


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the plotting script."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    parser = argparse.ArgumentParser(description="Plot drivetrain data from a collected run")
    parser.add_argument("run_dir", nargs="?", help="Run directory (default: latest in results/)")
    parser.add_argument("--results", default="results", help="Results directory to search")
    parser.add_argument("-o", "--output", help="Output image path")
    args = parser.parse_args(argv)

    try:
        run_dir = Path(args.run_dir) if args.run_dir else find_latest_run(Path(args.results))
        plot_run_summary(run_dir, Path(args.output) if args.output else None)
    except FileNotFoundError as e:
        logging.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
