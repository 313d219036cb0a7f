"""Convergence engine."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from keel.agent.config import ConfigManager
from keel.applier.applyspec import ApplySpecService
from keel.applier.bundles import FileBundleCollection
from keel.applier.jobs import JobApplier
from keel.jobsupervisor.monit import MonitJobSupervisor
from keel.models.applyspec import ApplySpec
from keel.models.settings import Settings
from keel.network.manager import NetworkManager


logger = logging.getLogger(__name__)


class ConvergenceEngine:
    """Drives the node to a desired apply spec, one pass at a time."""

    def __init__(
        self,
        config_manager: ConfigManager,
        spec_service: ApplySpecService,
        bundles: FileBundleCollection,
        job_applier: JobApplier,
        job_supervisor: MonitJobSupervisor,
        network_manager: NetworkManager,
    ):
        """Initialize convergence engine."""
        self.config_manager = config_manager
        self.spec_service = spec_service
        self.bundles = bundles
        self.job_applier = job_applier
        self.job_supervisor = job_supervisor
        self.network_manager = network_manager
        self.last_reconciliation: Optional[datetime] = None
        self._apply_lock = asyncio.Lock()
        self._broadcast_done: Optional[asyncio.Future] = None

    async def reconcile(self):
        """Apply the desired spec from configuration, if any."""
        desired = self.config_manager.desired_spec
        if desired is None:
            logger.debug("No desired spec configured, nothing to reconcile")
            return

        await self.apply(desired)

    async def apply(self, desired: ApplySpec, force: bool = False) -> bool:
        """Converge to ``desired``.

        Returns False when the node was already converged to it and ``force``
        was not given.
        """
        async with self._apply_lock:
            start_time = datetime.now()
            settings = self.config_manager.settings

            resolved = self.spec_service.populate_dhcp_networks(desired, settings)
            current = await self.spec_service.get()
            if resolved == current and not force:
                logger.debug(f"Already converged to deployment {resolved.deployment}")
                self.last_reconciliation = datetime.now()
                return False

            logger.info(f"Converging to deployment {resolved.deployment}")

            try:
                await self._setup_networking(settings)

                jobs = resolved.jobs()
                for job in jobs:
                    await self.job_applier.apply(job)

                await self.job_applier.keep_only(jobs)

                await self.job_supervisor.remove_all_jobs()
                for job in jobs:
                    await self.job_applier.configure(job, resolved.index)
                await self.job_supervisor.reload()

                await self.spec_service.set(resolved)

            except Exception as e:
                logger.error(f"Convergence failed: {e}", exc_info=True)
                raise

            self.last_reconciliation = datetime.now()
            duration = (self.last_reconciliation - start_time).total_seconds()
            logger.info(f"Convergence completed in {duration:.2f}s")
            return True

    async def _setup_networking(self, settings: Settings):
        """Configure DHCP or static networking from settings."""
        networks = settings.networks
        if not networks:
            logger.debug("No networks in settings, skipping network setup")
            return

        broadcast_done = asyncio.get_running_loop().create_future()

        if any(network.is_dynamic() for network in networks.values()):
            await self.network_manager.setup_dhcp(networks, broadcast_done)
        else:
            await self.network_manager.setup_manual_networking(networks, broadcast_done)

        self._broadcast_done = broadcast_done

    def _broadcast_state(self) -> Optional[str]:
        if self._broadcast_done is None:
            return None
        if not self._broadcast_done.done():
            return "pending"
        if self._broadcast_done.exception() is not None:
            return "failed"
        return "done"

    async def get_status(self) -> Dict[str, Any]:
        """Summarize the persisted spec and the last convergence."""
        current = await self.spec_service.get()
        return {
            "last_reconciliation": self.last_reconciliation.isoformat()
                if self.last_reconciliation else None,
            "deployment": current.deployment,
            "index": current.index,
            "jobs": [job.name for job in current.jobs()],
            "networks": sorted(current.network_specs),
            "address_broadcast": self._broadcast_state(),
        }

    async def list_jobs(self) -> List[Dict[str, Any]]:
        """List installed job bundles."""
        jobs = []
        for bundle in await self.bundles.list():
            jobs.append({
                "name": bundle.name,
                "version": bundle.version,
                "enabled": await bundle.is_enabled(),
                "path": str(bundle.install_path),
            })
        return jobs
