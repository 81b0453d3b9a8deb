"""
In-process build queue - Optimize, write and deploy a site in a background task.

Contains:
- InProcessBuildQueue: BuildQueue implementation keyed by build id

The optimize step is raced against a hard ceiling. Jobs are never cancelled
once dispatched; a stopped run simply stops polling them.
"""

import asyncio
import os
from typing import Dict, Optional

from speed_agent.core.collaborators import (
    BuildJob,
    BuildStatus,
    Deployer,
    Optimizer,
    SiteStore,
)
from speed_agent.core.errors import OptimizeTimeoutError, SpeedAgentError
from speed_agent.core.settings import OptimizationSettings
from speed_agent.utils.constants import BUILD_STATUS_RETENTION_SECONDS, OPTIMIZE_TIMEOUT_SECONDS
from speed_agent.utils.helpers import StructuredLogger, get_site_name_from_url


class InProcessBuildQueue:
    def __init__(
        self,
        site_store: SiteStore,
        optimizer: Optimizer,
        deployer: Deployer,
        output_root: str,
        optimize_timeout_seconds: float = OPTIMIZE_TIMEOUT_SECONDS,
        status_retention_seconds: float = BUILD_STATUS_RETENTION_SECONDS,
    ):
        self.site_store = site_store
        self.optimizer = optimizer
        self.deployer = deployer
        self.output_root = output_root
        self.optimize_timeout_seconds = optimize_timeout_seconds
        self.status_retention_seconds = status_retention_seconds
        self._statuses: Dict[str, BuildStatus] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    async def enqueue(self, job: BuildJob) -> None:
        if job.build_id in self._statuses:
            return
        self._statuses[job.build_id] = BuildStatus(build_id=job.build_id, status="queued")
        task = asyncio.create_task(self._run(job))
        self._tasks[job.build_id] = task
        task.add_done_callback(lambda _: self._finished(job.build_id))

    async def get_status(self, build_id: str) -> Optional[BuildStatus]:
        status = self._statuses.get(build_id)
        return status.model_copy() if status is not None else None

    async def join(self, build_id: str) -> Optional[BuildStatus]:
        """Wait for a dispatched job to finish and return its final status."""
        task = self._tasks.get(build_id)
        if task is not None:
            await task
        return await self.get_status(build_id)

    def _finished(self, build_id: str) -> None:
        # finished statuses stay pollable for a while, then go
        self._tasks.pop(build_id, None)
        loop = asyncio.get_running_loop()
        loop.call_later(self.status_retention_seconds, self._statuses.pop, build_id, None)

    def _update(self, build_id: str, **fields) -> None:
        self._statuses[build_id] = self._statuses[build_id].model_copy(update=fields)

    async def _run(self, job: BuildJob) -> None:
        log = StructuredLogger(f"Build {job.build_id}")
        try:
            if job.inventory is None:
                raise SpeedAgentError(f"Build {job.build_id} has no site inventory")

            site = await self.site_store.get_site(job.site_id)
            settings = OptimizationSettings.model_validate(site.settings or {})

            self._update(job.build_id, status="processing", pages_total=job.inventory.page_count)
            log.info(f"Optimizing {job.inventory.page_count} pages")
            try:
                result = await asyncio.wait_for(
                    self.optimizer.optimize(job.inventory, settings),
                    timeout=self.optimize_timeout_seconds,
                )
            except asyncio.TimeoutError:
                raise OptimizeTimeoutError(self.optimize_timeout_seconds)

            output_dir = os.path.join(self.output_root, job.build_id)
            for page in result.pages:
                self._write_page(output_dir, page.path, page.html)
            self._update(job.build_id, status="deploying", pages_processed=len(result.pages))

            project_name = f"speed-{get_site_name_from_url(site.site_url)}"
            log.info(f"Deploying {len(result.pages)} pages to {project_name}")
            deploy = await self.deployer.deploy(project_name, output_dir)
            await self.site_store.set_edge_url(job.site_id, deploy.url)

            self._update(job.build_id, status="success", edge_url=deploy.url)
            log.success(f"Deployed {deploy.files_uploaded} files ({deploy.total_bytes} bytes) to {deploy.url}")
        except Exception as e:
            log.error(f"Build failed: {e}")
            self._update(job.build_id, status="failed", error_message=str(e))

    @staticmethod
    def _write_page(output_dir: str, page_path: str, html: str) -> None:
        relative = (page_path or "/").strip("/")
        page_dir = os.path.join(output_dir, relative) if relative else output_dir
        os.makedirs(page_dir, exist_ok=True)
        with open(os.path.join(page_dir, "index.html"), "w", encoding="utf-8") as f:
            f.write(html)
