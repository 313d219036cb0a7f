"""Installs jobs from the blobstore and registers them with the supervisor."""

import asyncio
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from keel.applier.bundles import FileBundleCollection
from keel.blobstore.base import Blobstore
from keel.errors import JobApplierError, KeelError
from keel.jobsupervisor.monit import MonitJobSupervisor
from keel.models.job import Job
from keel.utils.fs import copy_dir_entries, decompress_file_to_dir


MONIT_FILE_NAME = "monit"
MONIT_FRAGMENT_SUFFIX = ".monit"


class JobApplier:
    """Drives bundle lifecycle and supervisor registration for jobs.

    Re-applying a job is safe: content is copied over whatever is already
    installed. Failures leave completed steps in place and are reported with
    the name of the step that failed; the next apply repairs them.
    """

    def __init__(
        self,
        bundles: FileBundleCollection,
        blobstore: Blobstore,
        job_supervisor: MonitJobSupervisor,
        tmp_dir: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize job applier."""
        self.bundles = bundles
        self.blobstore = blobstore
        self.job_supervisor = job_supervisor
        self.tmp_dir = Path(tmp_dir) if tmp_dir else None
        self.logger = logger or logging.getLogger(__name__)

    async def apply(self, job: Job) -> None:
        """Install ``job``'s content and make it the active version."""
        self.logger.debug(f"Applying job {job.name} ({job.bundle_version()})")

        try:
            bundle = self.bundles.get(job)
        except KeelError as e:
            raise JobApplierError("Getting job bundle", e) from e

        try:
            job_dir = await bundle.install()
        except KeelError as e:
            raise JobApplierError("Installing jobs bundle collection", e) from e

        try:
            blob_path = await self.blobstore.get(job.source.blobstore_id, job.source.sha1)
        except KeelError as e:
            raise JobApplierError("Getting job source from blobstore", e) from e

        try:
            await self._install_content(job, blob_path, job_dir)
        finally:
            await self.blobstore.clean_up(blob_path)

        try:
            await bundle.enable()
        except KeelError as e:
            raise JobApplierError("Enabling job", e) from e

        self.logger.info(f"Applied job {job.name}")

    async def _install_content(self, job: Job, blob_path: Path, job_dir: Path):
        try:
            tmp_dir = Path(await asyncio.to_thread(self._make_temp_dir))
        except OSError as e:
            raise JobApplierError("Getting temp dir", e) from e

        try:
            try:
                await decompress_file_to_dir(blob_path, tmp_dir)
            except (OSError, subprocess.SubprocessError) as e:
                raise JobApplierError("Decompressing files to temp dir", e) from e

            try:
                await asyncio.to_thread(
                    copy_dir_entries, tmp_dir / job.source.path_in_archive, job_dir
                )
            except OSError as e:
                raise JobApplierError("Copying job files to install dir", e) from e

            for binary in await asyncio.to_thread(lambda: sorted((job_dir / "bin").glob("*"))):
                try:
                    await asyncio.to_thread(binary.chmod, 0o755)
                except OSError as e:
                    raise JobApplierError(f"Making {binary} executable", e) from e
        finally:
            await asyncio.to_thread(shutil.rmtree, tmp_dir, ignore_errors=True)

    def _make_temp_dir(self) -> str:
        if self.tmp_dir:
            self.tmp_dir.mkdir(parents=True, exist_ok=True)
        return tempfile.mkdtemp(prefix="keel-job-applier-", dir=self.tmp_dir)

    async def configure(self, job: Job, job_index: int) -> None:
        """Register the job's monit files with the supervisor."""
        self.logger.debug(f"Configuring job {job.name} with index {job_index}")

        try:
            bundle = self.bundles.get(job)
        except KeelError as e:
            raise JobApplierError("Getting job bundle", e) from e

        try:
            job_dir = await bundle.get_install_path()
        except KeelError as e:
            raise JobApplierError("Looking up job directory", e) from e

        monit_file = job_dir / MONIT_FILE_NAME
        if await asyncio.to_thread(monit_file.is_file):
            try:
                await self.job_supervisor.add_job(job.name, job_index, monit_file)
            except KeelError as e:
                raise JobApplierError("Adding monit configuration", e) from e

        try:
            fragments = await asyncio.to_thread(
                lambda: sorted(job_dir.glob(f"*{MONIT_FRAGMENT_SUFFIX}"))
            )
        except OSError as e:
            raise JobApplierError("Looking for additional monit files", e) from e

        for fragment in fragments:
            label = fragment.name[:-len(MONIT_FRAGMENT_SUFFIX)]
            sub_job_name = f"{job.name}_{label}"
            try:
                await self.job_supervisor.add_job(sub_job_name, job_index, fragment)
            except KeelError as e:
                raise JobApplierError(f"Adding additional monit configuration {label}", e) from e

    async def keep_only(self, jobs: List[Job]) -> None:
        """Remove every installed bundle that no job in ``jobs`` maps to.

        Each bundle is disabled before it is uninstalled. The bundle listing
        walks version directories, so a bundle whose uninstall fails after a
        successful disable is still found and retried on the next pass. The
        first failure aborts the call.
        """
        self.logger.debug(f"Keeping only jobs {[job.name for job in jobs]}")

        try:
            installed_bundles = await self.bundles.list()
        except KeelError as e:
            raise JobApplierError("Retrieving installed bundles", e) from e

        desired_bundles = []
        for job in jobs:
            try:
                desired_bundles.append(self.bundles.get(job))
            except KeelError as e:
                raise JobApplierError("Getting job bundle", e) from e

        for bundle in installed_bundles:
            if bundle in desired_bundles:
                continue

            self.logger.info(f"Removing job bundle {bundle.name}/{bundle.version}")

            try:
                await bundle.disable()
            except KeelError as e:
                raise JobApplierError("Disabling job bundle", e) from e

            try:
                await bundle.uninstall()
            except KeelError as e:
                raise JobApplierError("Uninstalling job bundle", e) from e
