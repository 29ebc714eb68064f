"""Shared fixtures for drivetrain tests."""

import matplotlib

matplotlib.use("Agg")

import pytest

from swerve_control.client import default_geometry
from swerve_control.drivetrain import Drivetrain
from swerve_control.geometry import MODULE_NAMES, ModuleGeometry
from swerve_control.gyro import SimulatedGyro
from swerve_control.modules import SimulatedModule
from swerve_control.rotation_controller import RotationController


@pytest.fixture
def geometry() -> ModuleGeometry:
    return ModuleGeometry.rectangle(0.6, 0.6)


@pytest.fixture
def gyro() -> SimulatedGyro:
    return SimulatedGyro()


@pytest.fixture
def modules():
    return [SimulatedModule(name) for name in MODULE_NAMES]


@pytest.fixture
def drivetrain(modules, gyro) -> Drivetrain:
    return Drivetrain(modules, gyro, default_geometry())


@pytest.fixture
def controller() -> RotationController:
    return RotationController(kp=4.0, ki=0.0, kd=0.0, tolerance=2.0)
