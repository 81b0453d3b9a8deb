import asyncio
import os

import pytest

from conftest import make_inventory
from speed_agent.core.collaborators import (
    BuildJob,
    DeployResult,
    InMemorySiteStore,
    OptimizedPage,
    OptimizeResult,
    SiteRecord,
)
from speed_agent.core.build_queue import InProcessBuildQueue
from speed_agent.core.errors import SiteNotFoundError
from speed_agent.core.settings import OptimizationSettings, merge_settings


class RecordingOptimizer:
    def __init__(self, delay: float = 0.0, error: Exception = None):
        self.delay = delay
        self.error = error
        self.settings = None

    async def optimize(self, inventory, settings):
        self.settings = settings
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return OptimizeResult(pages=[
            OptimizedPage(path=p.path, html=f"<html>{p.path}</html>") for p in inventory.pages
        ])


class RecordingDeployer:
    def __init__(self):
        self.calls = []

    async def deploy(self, project_name, output_dir):
        self.calls.append((project_name, output_dir))
        return DeployResult(url="https://speed-example.pages.dev", files_uploaded=2)


def _store():
    return InMemorySiteStore([SiteRecord(site_id="site-1", site_url="https://www.example.com/")])


@pytest.mark.asyncio
async def test_successful_build_writes_pages_and_deploys(tmp_path):
    store = _store()
    await store.save_settings("site-1", merge_settings(OptimizationSettings(), {"js": {"remove_jquery": True}}))
    optimizer, deployer = RecordingOptimizer(), RecordingDeployer()
    queue = InProcessBuildQueue(store, optimizer, deployer, str(tmp_path))

    await queue.enqueue(BuildJob(build_id="b1", site_id="site-1", inventory=make_inventory(paths=("/", "/about/"))))
    status = await queue.join("b1")

    assert status.status == "success"
    assert status.edge_url == "https://speed-example.pages.dev"
    assert status.pages_processed == 2
    assert optimizer.settings.js.remove_jquery is True
    assert deployer.calls == [("speed-example", os.path.join(str(tmp_path), "b1"))]
    assert os.path.exists(tmp_path / "b1" / "index.html")
    assert (tmp_path / "b1" / "about" / "index.html").read_text() == "<html>/about/</html>"
    assert (await store.get_site("site-1")).edge_url == "https://speed-example.pages.dev"


@pytest.mark.asyncio
async def test_enqueue_is_idempotent(tmp_path):
    deployer = RecordingDeployer()
    queue = InProcessBuildQueue(_store(), RecordingOptimizer(), deployer, str(tmp_path))
    job = BuildJob(build_id="b1", site_id="site-1", inventory=make_inventory())

    await queue.enqueue(job)
    await queue.enqueue(job)
    await queue.join("b1")

    assert len(deployer.calls) == 1


@pytest.mark.asyncio
async def test_finished_builds_are_forgotten_after_retention(tmp_path):
    queue = InProcessBuildQueue(
        _store(), RecordingOptimizer(), RecordingDeployer(), str(tmp_path), status_retention_seconds=0.05
    )
    await queue.enqueue(BuildJob(build_id="b1", site_id="site-1", inventory=make_inventory()))

    assert (await queue.join("b1")).status == "success"
    await asyncio.sleep(0)
    assert "b1" not in queue._tasks
    assert (await queue.get_status("b1")).status == "success"

    await asyncio.sleep(0.1)
    assert await queue.get_status("b1") is None


@pytest.mark.asyncio
async def test_optimizer_error_marks_build_failed(tmp_path):
    queue = InProcessBuildQueue(_store(), RecordingOptimizer(error=RuntimeError("sharp crashed")), RecordingDeployer(), str(tmp_path))

    await queue.enqueue(BuildJob(build_id="b1", site_id="site-1", inventory=make_inventory()))
    status = await queue.join("b1")

    assert status.status == "failed"
    assert status.error_message == "sharp crashed"
    assert status.edge_url is None


@pytest.mark.asyncio
async def test_optimizer_timeout_marks_build_failed(tmp_path):
    queue = InProcessBuildQueue(
        _store(), RecordingOptimizer(delay=1.0), RecordingDeployer(), str(tmp_path), optimize_timeout_seconds=0.01,
    )

    await queue.enqueue(BuildJob(build_id="b1", site_id="site-1", inventory=make_inventory()))
    status = await queue.join("b1")

    assert status.status == "failed"
    assert "timed out" in status.error_message


@pytest.mark.asyncio
async def test_build_without_inventory_fails(tmp_path):
    queue = InProcessBuildQueue(_store(), RecordingOptimizer(), RecordingDeployer(), str(tmp_path))

    await queue.enqueue(BuildJob(build_id="b1", site_id="site-1"))
    status = await queue.join("b1")

    assert status.status == "failed"
    assert "no site inventory" in status.error_message


@pytest.mark.asyncio
async def test_unknown_build_has_no_status(tmp_path):
    queue = InProcessBuildQueue(_store(), RecordingOptimizer(), RecordingDeployer(), str(tmp_path))
    assert await queue.get_status("nope") is None


@pytest.mark.asyncio
async def test_site_store_unknown_site():
    with pytest.raises(SiteNotFoundError):
        await _store().get_site("missing")
