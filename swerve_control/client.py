#!/usr/bin/env python3
"""
WebSocket Client for Swerve Drivetrain Control

This module connects the drivetrain to a robot (or robot simulator) over a
WebSocket. A receive task caches incoming gyro and module sensor samples,
tuning values and driver commands; a fixed-rate task ticks the drivetrain and
the selected autonomous routine every control period and sends the resulting
module commands back. A network-free simulation mode runs the same loop
against simulated hardware.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
import time
from typing import Any, Dict, List, Optional, Union

import websockets

from swerve_control.component_modes import ComponentMode, parse_component_flags
from swerve_control.config import (
    CONTROL_PERIOD_SECONDS,
    DRIVETRAIN_TRACKWIDTH_METERS,
    DRIVETRAIN_WHEELBASE_METERS,
    TELEMETRY_PUBLISH_EVERY,
    TERM_BLUE,
    TERM_RESET,
    WS_MAX_RETRY_DELAY_SECONDS,
    WS_RETRY_DELAY_SECONDS,
    WS_URI,
)
from swerve_control.data_collector import DataCollector
from swerve_control.drivetrain import Drivetrain
from swerve_control.geometry import MODULE_NAMES, ModuleGeometry, Pose
from swerve_control.gyro import SimulatedGyro, StreamGyro
from swerve_control.modules import RemoteModule, SimulatedModule
from swerve_control.routines import RoutineRunner, build_routine
from swerve_control.telemetry import TelemetryTable


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record based on its level.

        Args:
            record: The log record to format.

        Returns:
            Formatted log message string.
        """
        if record.levelno == logging.INFO:
            return record.getMessage()
        else:
            return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        formatter = CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


def default_geometry() -> ModuleGeometry:
    return ModuleGeometry.rectangle(DRIVETRAIN_TRACKWIDTH_METERS, DRIVETRAIN_WHEELBASE_METERS)


class SwerveController:
    """Drivetrain control over a WebSocket robot link.

    This class manages:
    - WebSocket connection with exponential-backoff reconnects
    - Sensor stream decoding into the StreamGyro and RemoteModules
    - Live tuning values written into the telemetry table
    - Driver commands forwarded to the drivetrain inbox
    - The fixed-rate tick of routine and drivetrain
    - Data logging to CSV files

    Attributes:
        uri: WebSocket URI to connect to.
        gyro: Gyro fed from sensor messages.
        modules: Remote modules fed from sensor messages.
        drivetrain: The drivetrain being controlled.
        routine: Autonomous routine ticked before the drivetrain, if any.
        should_stop: Flag indicating whether to stop the control loop.
    """

    def __init__(
        self,
        uri: str,
        routine_name: str = "idle",
        output_dir: str = ".",
        component_mode: Optional[ComponentMode] = None,
        period: float = CONTROL_PERIOD_SECONDS,
    ) -> None:
        """Initialize the controller.

        Args:
            uri: WebSocket URI to connect to (must start with ws:// or wss://).
            routine_name: Name of the routine to run (see routines.ROUTINES).
            output_dir: Base directory for output files (default: current directory).
            component_mode: ComponentMode configuration for component isolation testing.
            period: Control tick period (seconds).

        Raises:
            ValueError: If the URI, routine or period is invalid.
        """
        if not uri or not uri.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid WebSocket URI: {uri}. Must start with 'ws://' or 'wss://'")
        if period <= 0.0:
            raise ValueError(f"Control period must be positive, got {period}")

        self.uri: str = uri
        self.period = period
        self.should_stop: bool = False

        if component_mode is None:
            component_mode = ComponentMode()
        self.component_mode = component_mode
        logging.info(f"{TERM_BLUE}Component Configuration: {component_mode}{TERM_RESET}")

        self.data_collector = DataCollector(output_dir=output_dir)
        self.telemetry = TelemetryTable()
        self.gyro = StreamGyro()
        self.modules: List[RemoteModule] = [RemoteModule(name) for name in MODULE_NAMES]
        self.drivetrain = Drivetrain(
            self.modules,
            self.gyro,
            default_geometry(),
            telemetry=self.telemetry,
            data_collector=self.data_collector,
            component_mode=component_mode,
        )
        self.routine = RoutineRunner(self.drivetrain, build_routine(routine_name), routine_name)

    def process_sensor_message(self, data: Dict[str, Any]) -> None:
        """Cache gyro and module samples from a sensor message.

        Args:
            data: Parsed JSON message containing sensor data.
        """
        sensors = data.get("sensors", [])

        if not isinstance(sensors, list):
            logging.warning(f"Invalid sensors data type: expected list, got {type(sensors)}")
            return

        for sensor in sensors:
            sensor_name = sensor.get("name")
            sensor_data: List[float] = sensor.get("data", [])

            if sensor_name == "gyro" and len(sensor_data) >= 1:
                self.gyro.update(float(sensor_data[0]))

            elif sensor_name == "modules" and len(sensor_data) >= 2 * len(self.modules):
                for index, module in enumerate(self.modules):
                    module.update_feedback(sensor_data[2 * index], sensor_data[2 * index + 1])

    def process_command_message(self, data: Dict[str, Any]) -> None:
        """Forward a driver command to the drivetrain inbox.

        Args:
            data: Parsed JSON message with a "command" field.
        """
        command = data.get("command")

        if command == "drive":
            self.drivetrain.drive(float(data["vx"]), float(data["vy"]), float(data["omega"]))
        elif command == "drive_with_heading":
            self.drivetrain.drive_with_heading(
                float(data["vx"]), float(data["vy"]), float(data["heading"])
            )
        elif command == "zero_gyro":
            self.drivetrain.zero_gyroscope()
        elif command == "reset_odometry":
            pose = Pose(float(data["x"]), float(data["y"]), float(data.get("heading", 0.0)))
            gyro_heading = data.get("gyro_heading")
            self.drivetrain.reset_odometry(
                pose, float(gyro_heading) if gyro_heading is not None else None
            )
        elif command == "turn_to_angle":
            self.drivetrain.turn_to_angle(float(data["degrees"]))
        elif command == "cancel":
            self.routine.cancel()
        else:
            logging.warning(f"Unknown command: {command}")

    def parse_and_route_message(self, message: Union[str, bytes]) -> None:
        """Parse incoming message and route to appropriate handler.

        Args:
            message: Raw JSON message string or bytes from WebSocket.
        """
        try:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            data = json.loads(message)

            message_type = data.get("message_type")

            if message_type == "sensors":
                self.process_sensor_message(data)
            elif message_type == "tuning":
                self.telemetry.update(data.get("values", {}))
            elif message_type == "command":
                self.process_command_message(data)
            elif message_type == "stop":
                logging.info("Stop requested by server")
                self.should_stop = True
            else:
                logging.debug(f"\nReceived unknown message: {json.dumps(data, indent=2)}\n")

        except json.JSONDecodeError as e:
            logging.error(f"Error parsing JSON: {e}")
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logging.error(f"Error processing message data: {e}")

    def build_module_message(self) -> str:
        return json.dumps(
            {
                "message_type": "modules",
                "commands": [module.to_message() for module in self.modules],
            }
        )

    def build_telemetry_message(self) -> str:
        return json.dumps({"message_type": "telemetry", "values": self.telemetry.snapshot()})

    async def receive_messages(self, websocket: Any) -> None:
        async for message in websocket:
            self.parse_and_route_message(message)
            if self.should_stop:
                break

    async def tick_loop(self, websocket: Any) -> None:
        """Tick routine and drivetrain at a fixed rate and send module commands."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        last_tick: Optional[float] = None

        while not self.should_stop:
            now = loop.time()
            dt = self.period if last_tick is None else now - last_tick
            last_tick = now

            self.routine.tick(dt)
            self.drivetrain.tick(dt)
            await websocket.send(self.build_module_message())

            if self.drivetrain.tick_count % TELEMETRY_PUBLISH_EVERY == 0:
                await websocket.send(self.build_telemetry_message())

            next_tick += self.period
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

    async def run_control_loop(self) -> None:
        """Connect to WebSocket and run the control loop.

        Maintains a connection to the WebSocket server with automatic retry logic
        and exponential backoff. Continues running until should_stop is set.
        """
        retry_delay = WS_RETRY_DELAY_SECONDS
        max_retry_delay = WS_MAX_RETRY_DELAY_SECONDS

        while not self.should_stop:
            try:
                async with websockets.connect(self.uri) as websocket:
                    logging.info(f"{TERM_BLUE}✓ Connected to {self.uri}{TERM_RESET}")
                    retry_delay = WS_RETRY_DELAY_SECONDS

                    receiver = asyncio.create_task(self.receive_messages(websocket))
                    ticker = asyncio.create_task(self.tick_loop(websocket))
                    done, pending = await asyncio.wait(
                        {receiver, ticker}, return_when=asyncio.FIRST_COMPLETED
                    )
                    for task in pending:
                        task.cancel()
                    for task in done:
                        task.result()

                    if not self.should_stop:
                        logging.warning("Connection closed by server")

            except Exception as e:
                if self.should_stop:
                    break
                logging.error(f"Connection error: {e}")
                logging.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, max_retry_delay)

    def stop(self) -> None:
        """Signal the controller to stop."""
        self.should_stop = True
        self.routine.cancel()

    def __enter__(self) -> "SwerveController":
        self.data_collector.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.data_collector.cleanup()


def run_simulation(
    routine_name: str = "rotate_tune",
    duration: float = 10.0,
    period: float = CONTROL_PERIOD_SECONDS,
    component_mode: Optional[ComponentMode] = None,
    data_collector: Optional[DataCollector] = None,
) -> Drivetrain:
    """Run a routine against simulated hardware without a network.

    The simulated gyro is advanced each tick by the angular velocity measured
    from module feedback, so turns close the loop on a heading that actually
    moves. Stops when the routine completes or ``duration`` elapses.

    Returns:
        Drivetrain: The drivetrain after the run, for inspection.
    """
    gyro = SimulatedGyro()
    modules = [SimulatedModule(name) for name in MODULE_NAMES]
    drivetrain = Drivetrain(
        modules,
        gyro,
        default_geometry(),
        data_collector=data_collector,
        component_mode=component_mode,
    )
    routine = RoutineRunner(drivetrain, build_routine(routine_name), routine_name)

    started = time.perf_counter()
    while drivetrain.elapsed < duration:
        routine.tick(period)
        drivetrain.tick(period)
        gyro.rotate(drivetrain.measured_velocity.omega * period)
        if routine.is_done():
            break

    pose = drivetrain.get_pose()
    logging.info(
        f"{TERM_BLUE}Simulated {drivetrain.elapsed:.2f}s in {time.perf_counter() - started:.2f}s: "
        f"pose ({pose.x:.3f}, {pose.y:.3f}, {pose.heading_degrees:.1f} deg){TERM_RESET}"
    )
    return drivetrain


async def main(
    routine_name: str = "idle",
    uri: str = WS_URI,
    component_mode: Optional[ComponentMode] = None,
) -> None:
    """Main entry point for the WebSocket client.

    Creates a SwerveController instance, sets up signal handlers for graceful
    shutdown, and starts the control loop.
    """
    with SwerveController(uri, routine_name, component_mode=component_mode) as controller:
        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info("\nShutdown signal received...")
            controller.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        await controller.run_control_loop()


def cli(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point shared by ``python -m swerve_control``."""
    component_mode, remaining_args = parse_component_flags(argv)

    parser = argparse.ArgumentParser(
        description="Swerve drivetrain control over a WebSocket robot link"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    parser.add_argument("--uri", default=WS_URI, help=f"Robot WebSocket URI (default: {WS_URI})")
    parser.add_argument("--routine", default="idle", help="Autonomous routine to run")
    parser.add_argument(
        "--sim", action="store_true", help="Run against simulated hardware instead of a robot"
    )
    parser.add_argument(
        "--duration", type=float, default=10.0, help="Simulation time limit in seconds"
    )
    args = parser.parse_args(remaining_args)

    setup_logging(args.verbose)

    if args.sim:
        with DataCollector() as collector:
            run_simulation(args.routine, args.duration, component_mode=component_mode,
                           data_collector=collector)
        return 0

    try:
        asyncio.run(main(args.routine, args.uri, component_mode=component_mode))
    except KeyboardInterrupt:
        logging.info("\nExiting...")
    return 0


if __name__ == "__main__":
    sys.exit(cli())
