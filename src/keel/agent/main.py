"""Main agent implementation."""

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Optional

from watchfiles import awatch

from keel.agent.config import ConfigManager
from keel.agent.engine import ConvergenceEngine
from keel.agent.server import AgentServer
from keel.applier.applyspec import ApplySpecService
from keel.applier.bundles import FileBundleCollection
from keel.applier.jobs import JobApplier
from keel.blobstore import create_blobstore
from keel.jobsupervisor.monit import MonitJobSupervisor
from keel.network.arp import ArpingAddressBroadcaster
from keel.network.ip import IPResolver
from keel.network.manager import NetworkManager
from keel.network.resolver import DefaultNetworkResolver
from keel.utils.logging import setup_logging
from keel.utils.systemd import SystemdDBus


logger = logging.getLogger(__name__)


class KeelAgent:
    """Main agent wiring configuration, convergence and the API server."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize the agent."""
        self.config_dir = config_dir or Path("./configs")
        self.state_dir = Path("./state")
        self.config_manager: Optional[ConfigManager] = None
        self.engine: Optional[ConvergenceEngine] = None
        self.network_manager: Optional[NetworkManager] = None
        self.systemd: Optional[SystemdDBus] = None
        self.server: Optional[AgentServer] = None
        self.shutdown_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    async def initialize(self):
        """Initialize agent components."""
        self.config_manager = ConfigManager(self.config_dir)
        await self.config_manager.load()

        config = self.config_manager.config
        setup_logging(config.agent.log_level)

        self.state_dir = Path(config.agent.state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)

        tmp_dir = Path(config.paths.tmp_dir) if config.paths.tmp_dir else None

        self.systemd = SystemdDBus()
        await self.systemd.connect()

        self.network_manager = NetworkManager(
            config=config.network,
            systemd=self.systemd,
            default_network_resolver=DefaultNetworkResolver(),
            ip_resolver=IPResolver(),
            address_broadcaster=ArpingAddressBroadcaster(
                iterations=config.network.arping_iterations,
                interval=config.network.arping_interval,
            ),
        )

        bundles = FileBundleCollection(
            install_root=Path(config.paths.jobs_dir),
            enable_root=Path(config.paths.enabled_jobs_dir),
        )
        job_supervisor = MonitJobSupervisor(Path(config.paths.monit_job_dir))
        job_applier = JobApplier(
            bundles=bundles,
            blobstore=create_blobstore(config.blobstore, tmp_dir=tmp_dir),
            job_supervisor=job_supervisor,
            tmp_dir=tmp_dir,
        )

        self.engine = ConvergenceEngine(
            config_manager=self.config_manager,
            spec_service=ApplySpecService(Path(config.paths.spec_path)),
            bundles=bundles,
            job_applier=job_applier,
            job_supervisor=job_supervisor,
            network_manager=self.network_manager,
        )

        socket_path = Path(config.agent.socket_path)
        if not socket_path.is_absolute():
            socket_path = self.state_dir / socket_path.name

        self.server = AgentServer(
            socket_path=socket_path,
            host=config.agent.host,
            port=config.agent.port,
            engine=self.engine,
            config_manager=self.config_manager,
        )

        logger.info("Agent initialized successfully")

    async def run(self):
        """Run the agent main loop."""
        await self.initialize()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.shutdown)

        try:
            await self.server.start()

            reconcile_task = asyncio.create_task(self._reconciliation_loop())
            self._tasks.append(reconcile_task)

            config_task = asyncio.create_task(self._config_watch_loop())
            self._tasks.append(config_task)

            logger.info("Agent started, waiting for shutdown signal")
            await self.shutdown_event.wait()

        finally:
            await self._cleanup()

    async def _reconciliation_loop(self):
        """Run periodic reconciliation."""
        interval = self.config_manager.config.agent.reconciliation_interval

        while not self.shutdown_event.is_set():
            try:
                logger.debug("Starting reconciliation cycle")
                await self.engine.reconcile()
                logger.debug("Reconciliation cycle completed")
            except Exception as e:
                logger.error(f"Reconciliation error: {e}", exc_info=True)

            try:
                await asyncio.wait_for(
                    self.shutdown_event.wait(),
                    timeout=interval
                )
            except asyncio.TimeoutError:
                continue

    async def _config_watch_loop(self):
        """Watch for configuration changes."""
        paths = self.config_manager.watched_paths()
        logger.info(f"Starting config watcher on {', '.join(str(p) for p in paths)}")
        try:
            async for _ in awatch(*paths, stop_event=self.shutdown_event):
                if not await self.config_manager.watch_for_changes():
                    continue

                logger.info("Configuration changed, reloading")
                try:
                    await self.config_manager.load()
                    await self.engine.reconcile()
                except Exception as e:
                    logger.error(f"Failed to apply configuration change: {e}")
        except Exception as e:
            if not self.shutdown_event.is_set():
                logger.error(f"Config watch error: {e}", exc_info=True)

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self.shutdown_event.set()

    async def _cleanup(self):
        """Clean up resources."""
        logger.info("Cleaning up agent resources")

        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self.server:
            await self.server.stop()

        if self.network_manager:
            await self.network_manager.wait_for_broadcasts()

        if self.systemd:
            await self.systemd.disconnect()

        logger.info("Agent cleanup completed")


async def run_agent():
    """Run the agent."""
    config_dir = os.environ.get("KEEL_CONFIG_DIR")
    agent = KeelAgent(config_dir=Path(config_dir) if config_dir else None)
    await agent.run()
