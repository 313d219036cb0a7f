"""Monit job supervisor."""

import asyncio
import logging
import subprocess
from pathlib import Path
from typing import Optional

from keel.errors import SupervisorError
from keel.utils.fs import write_file
from keel.utils.systemd import run_command


class MonitJobSupervisor:
    """Registers job monit files in monit's include directory."""

    def __init__(self, job_dir: Path, logger: Optional[logging.Logger] = None):
        """Initialize supervisor."""
        self.job_dir = Path(job_dir)
        self.logger = logger or logging.getLogger(__name__)

    async def add_job(self, name: str, index: int, config_path: Path) -> None:
        """Register ``config_path`` as the monit config for job ``name``."""
        target = self.job_dir / f"{index:04d}_{name}.monitrc"
        self.logger.debug(f"Adding monit job {name} from {config_path}")

        try:
            content = await asyncio.to_thread(Path(config_path).read_text)
        except OSError as e:
            raise SupervisorError(f"Reading {config_path}", e) from e

        try:
            await asyncio.to_thread(write_file, target, content)
        except OSError as e:
            raise SupervisorError(f"Writing to {target}", e) from e

    async def remove_all_jobs(self) -> None:
        """Unregister every job."""
        try:
            await asyncio.to_thread(self._remove_monitrc_files)
        except OSError as e:
            raise SupervisorError(f"Removing monit jobs from {self.job_dir}", e) from e

    async def reload(self) -> None:
        """Make monit pick up the registered jobs."""
        self.logger.debug("Reloading monit")
        try:
            await run_command(["monit", "reload"])
        except (OSError, subprocess.CalledProcessError) as e:
            raise SupervisorError("Reloading monit", e) from e

    def _remove_monitrc_files(self):
        if not self.job_dir.is_dir():
            return
        for monitrc in self.job_dir.glob("*.monitrc"):
            monitrc.unlink()
