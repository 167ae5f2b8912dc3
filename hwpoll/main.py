"""
Hardware Monitor - Main Entry Point.

Opens the local hardware tree, polls it on a fixed cadence and prints the
latest readings. A watchdog restarts the poll timer if polls stop landing.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

from .core.config import Config, get_default_config_path
from .core.engine import HardwareEngine
from .core.errors import EngineInitError
from .core.log import LoggingErrorSink, setup_logging
from .core.models import Snapshot, format_value
from .core.watchdog import WatchdogMonitor
from .collectors.base import HardwareNode, HardwareTree
from .collectors.local_collector import LocalHardwareTree


logger = logging.getLogger(__name__)


def print_snapshot(snapshot: Snapshot):
    """Print a snapshot as a text table."""
    print("\n" + "=" * 44)
    print(f"Hardware Monitor  {snapshot.timestamp:%H:%M:%S}")
    print("=" * 44)
    for label, value in snapshot.display_rows().items():
        print(f"{label:<28}{value:>16}")
    if not snapshot.disk_temperatures:
        print("No drives found.")


class PollDriver:
    """
    Periodic poll timer.

    Polls run on a worker thread so the event loop is never blocked on
    hardware I/O. ``restart`` replaces the timer task, which is how the
    watchdog recovers a timer whose poll never completed.
    """

    def __init__(
        self,
        engine: HardwareEngine,
        interval: float,
        render: Callable[[Snapshot], None] = print_snapshot,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.engine = engine
        self.interval = interval
        self._render = render
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="hwpoll-poll")
        self._task: Optional[asyncio.Task] = None
        self._oneshots = set()
        self.restarts = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._timer_loop())

    async def stop(self):
        tasks = [t for t in [self._task, *self._oneshots] if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._oneshots.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def restart(self):
        """Stop and start the timer without waiting for the old task."""
        if self._task is not None:
            self._task.cancel()
        self._task = None
        self.restarts += 1
        logger.warning(f"Restarting poll timer (restart #{self.restarts})")
        self.start()

    def poll_now(self, force_thorough: bool = False):
        """Request an immediate out-of-band poll."""
        task = asyncio.create_task(self._poll_once(force_thorough))
        self._oneshots.add(task)
        task.add_done_callback(self._oneshots.discard)

    def recover(self):
        self.restart()
        self.poll_now()

    async def _poll_once(self, force_thorough: bool = False) -> Optional[Snapshot]:
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(self._executor, self.engine.poll, force_thorough)
        if isinstance(result, Snapshot):
            try:
                self._render(result)
            except Exception as e:
                self.engine.sink.error("Render", str(e), e)
            return result
        logger.debug(f"Poll skipped: {result.reason.value}")
        return None

    async def _timer_loop(self):
        # Ticks are spaced from poll start to poll start
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while True:
            try:
                await self._poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.engine.sink.error("Poll timer", str(e), e)
            next_at += self.interval
            now = loop.time()
            if next_at < now:
                # Overran; drop the missed ticks instead of polling in a burst
                next_at = now
            await asyncio.sleep(next_at - now)


class HardwareMonitorApplication:
    """
    Main application that coordinates all components.

    - Opens the hardware engine off the event loop
    - Drives periodic polls and renders snapshots
    - Watches the poll loop and restarts it when it stalls
    """

    def __init__(
        self,
        config: Config,
        tree_factory: Optional[Callable[[], HardwareTree]] = None,
        render: Callable[[Snapshot], None] = print_snapshot,
    ):
        self.config = config
        self.sink = LoggingErrorSink()
        self._tree_factory = tree_factory or (lambda: LocalHardwareTree(config.hardware))
        self._render = render
        self.engine: Optional[HardwareEngine] = None
        self.driver: Optional[PollDriver] = None
        self.watchdog: Optional[WatchdogMonitor] = None
        self.degraded = False
        self._running = False

    async def start(self):
        """Start the application."""
        logger.info("Starting hardware monitor...")
        self._running = True
        loop = asyncio.get_running_loop()

        try:
            self.engine = await loop.run_in_executor(
                None, lambda: HardwareEngine(self._tree_factory(), self.config, self.sink)
            )
        except EngineInitError as e:
            self.sink.error("Initialization", str(e), e)
            self.degraded = True
            print(
                f"Error initializing hardware sensors: {e}\n"
                "The application may have limited functionality."
            )
            return

        self.engine.start_warmup()
        self.driver = PollDriver(self.engine, self.config.polling.interval_seconds, self._render)
        self.driver.start()

        if self.config.watchdog.enabled:
            wd = self.config.watchdog
            driver = self.driver
            self.watchdog = WatchdogMonitor(
                last_success=lambda: self.engine.last_successful_poll_time,
                recover=lambda: loop.call_soon_threadsafe(driver.recover),
                threshold=self.config.stall_threshold_seconds,
                sink=self.sink,
                start_delay=wd.start_delay_seconds,
                tick_interval=wd.tick_seconds,
                restart_cooldown=wd.restart_cooldown_seconds,
                clock=self.engine.clock,
            )
            self.watchdog.start()

        logger.info(f"Hardware monitor started, polling every {self.config.polling.interval_seconds}s")

    async def stop(self):
        """Stop the application."""
        if not self._running:
            return
        logger.info("Stopping hardware monitor...")
        self._running = False

        loop = asyncio.get_running_loop()
        if self.watchdog:
            await loop.run_in_executor(None, self.watchdog.stop)
        if self.driver:
            await self.driver.stop()
        if self.engine:
            await loop.run_in_executor(None, self.engine.dispose)
        logger.info("Hardware monitor stopped")

    @property
    def running(self) -> bool:
        return self._running


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Hardware temperature and load monitor"
    )

    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file (YAML)"
    )

    parser.add_argument(
        "-i", "--interval",
        type=float,
        default=None,
        help="Poll interval in seconds (default: 0.95)"
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Take a single thorough reading, print it as JSON and exit"
    )

    parser.add_argument(
        "--list-sensors",
        action="store_true",
        help="Print every hardware node and sensor after one thorough reading"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Generate a sample configuration file"
    )

    return parser.parse_args(argv)


def print_sensor_tree(tree: HardwareTree):
    """Print every hardware node and its current sensor readings."""
    def walk(node: HardwareNode, depth: int):
        indent = "  " * depth
        print(f"{indent}{node.name} [{node.category.value}]")
        for reading in node.readings():
            print(f"{indent}  {reading.name:<24}{format_value(reading.value, reading.kind):>12}")
        for child in node.children():
            walk(child, depth + 1)

    for root in tree.roots():
        walk(root, 0)


def run_once(config: Config, list_sensors: bool = False) -> int:
    """Take one thorough reading and print it."""
    try:
        engine = HardwareEngine(LocalHardwareTree(config.hardware), config)
    except EngineInitError as e:
        logger.error(f"Hardware unavailable: {e}")
        return 1

    with engine:
        result = engine.poll(force_thorough=True)
        if not isinstance(result, Snapshot):
            logger.error(f"Poll did not complete: {result.reason.value}")
            return 1
        if list_sensors:
            print_sensor_tree(engine.tree)
        else:
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0


async def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Generate sample config if requested
    if args.generate_config:
        config = Config()
        config_path = "config/hwpoll.yaml"
        Path("config").mkdir(exist_ok=True)
        config.to_yaml(config_path)
        print(f"Generated sample configuration: {config_path}")
        return 0

    # Load configuration
    config_path = args.config or get_default_config_path()
    config = Config.from_yaml(config_path)
    setup_logging(config.logging)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    logger.info(f"Loaded configuration from {config_path}")

    # Apply command line overrides
    if args.interval:
        config.polling.interval_seconds = args.interval

    if args.once or args.list_sensors:
        return run_once(config, list_sensors=args.list_sensors)

    app = HardwareMonitorApplication(config)
    stopped = asyncio.Event()

    # Setup signal handlers
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stopped.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    try:
        await app.start()
        await stopped.wait()
    finally:
        await app.stop()
    return 0


def run():
    """Entry point for the application."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nShutdown complete")


if __name__ == "__main__":
    run()
