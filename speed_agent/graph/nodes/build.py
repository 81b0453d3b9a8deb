"""
Build nodes - Iteration control and the build/deploy wait.

Contains:
- node_iterate: Loop top (abort check, iteration ceiling)
- node_build: Persist settings, enqueue a build, wait for the edge URL
- wait_for_build: Poll the build queue against a hard timeout
- wait_for_edge_ready: Soft wait until the deployment answers
"""

import asyncio
import uuid
from typing import Any, Dict, Optional

import httpx
from langchain_core.runnables import RunnableConfig

from speed_agent.core.collaborators import BuildJob, BuildQueue, BuildStatus
from speed_agent.core.errors import BuildFailedError, BuildTimeoutError, SpeedAgentError
from speed_agent.core.schemas import run_verdict
from speed_agent.core.settings import OptimizationSettings, make_safer_settings
from speed_agent.core.state import GraphState
from speed_agent.graph.nodes.config import RunContext, get_run_context
from speed_agent.utils.constants import HTTP_CHECK_TIMEOUT_SECONDS
from speed_agent.utils.helpers import StructuredLogger


def new_build_id() -> str:
    return f"build_{uuid.uuid4().hex[:12]}"


def describe_settings(settings: OptimizationSettings) -> str:
    return (
        f"Purge: {settings.css.purge_aggressiveness if settings.css.purge else 'off'}, "
        f"remove jQuery: {settings.js.remove_jquery}, "
        f"aggressive HTML: {any(settings.html.aggressive.model_dump().values())}, "
        f"JS strategy: {settings.js.default_loading_strategy}"
    )


async def node_iterate(state: GraphState, config: RunnableConfig) -> Dict[str, Any]:
    """Loop top: stop on abort or ceiling, otherwise start the next iteration."""
    ctx = get_run_context(config)
    log = ctx.logger("Iterate")
    logs = state.get("logs", [])

    if ctx.state.aborted:
        log.warning(f"Run aborted before iteration {ctx.state.iteration + 1}")
        return {"status": "DONE", "final_verdict": "incomplete", "logs": logs + log.get_logs()}

    if ctx.state.iteration >= ctx.state.max_iterations:
        verdict = run_verdict(state.get("last_verdict"))
        log.warning(f"Max iterations ({ctx.state.max_iterations}) reached, final verdict: {verdict}")
        return {"status": "DONE", "final_verdict": verdict, "logs": logs + log.get_logs()}

    ctx.state.iteration += 1
    log.info(f"{'=' * 20} ITERATION {ctx.state.iteration}/{ctx.state.max_iterations} {'=' * 20}")
    return {
        "status": "ITERATING",
        "build_id": None,
        "edge_url": None,
        "current_result": None,
        "logs": logs + log.get_logs(),
    }


async def wait_for_build(
    queue: BuildQueue,
    build_id: str,
    timeout_seconds: float,
    poll_interval_seconds: float,
    log: StructuredLogger,
) -> BuildStatus:
    """
    Poll the build queue until the build finishes.

    Raises:
        BuildTimeoutError: the build did not finish within timeout_seconds.
        SpeedAgentError: the queue lost track of the build.
    """
    async def poll() -> BuildStatus:
        last_status = None
        while True:
            status = await queue.get_status(build_id)
            if status is None:
                raise SpeedAgentError(f"Build {build_id} not found")
            if status.status != last_status:
                log.info(f"Build {build_id}: {status.status} ({status.pages_processed}/{status.pages_total} pages)")
                last_status = status.status
            if status.finished:
                return status
            await asyncio.sleep(poll_interval_seconds)

    try:
        return await asyncio.wait_for(poll(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise BuildTimeoutError(build_id, timeout_seconds)


async def wait_for_edge_ready(
    edge_url: str,
    timeout_seconds: float,
    poll_interval_seconds: float,
    log: StructuredLogger,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """Returns True once the edge URL answers with 2xx or 304, False after the soft limit."""
    async def poll(http: httpx.AsyncClient) -> bool:
        while True:
            try:
                response = await http.head(edge_url)
                if response.is_success or response.status_code == 304:
                    return True
                log.debug(f"Edge not ready yet: HTTP {response.status_code}")
            except httpx.HTTPError as e:
                log.debug(f"Edge not reachable yet: {e}")
            await asyncio.sleep(poll_interval_seconds)

    async def run(http: httpx.AsyncClient) -> bool:
        try:
            return await asyncio.wait_for(poll(http), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            return False

    if client is not None:
        return await run(client)
    async with httpx.AsyncClient(timeout=HTTP_CHECK_TIMEOUT_SECONDS, follow_redirects=True) as http:
        return await run(http)


def soften(ctx: RunContext, settings: OptimizationSettings, error: Exception, log: StructuredLogger) -> Dict[str, Any]:
    """Record an iteration failure and fall back to safer settings."""
    ctx.state.last_error = str(error)
    log.error(f"Iteration {ctx.state.iteration} failed: {error}")
    log.warning("Retrying with safer settings")
    return {"status": "BUILD_FAILED", "settings": make_safer_settings(settings)}


async def node_build(state: GraphState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Persist the current settings, build and deploy them, then wait for the edge.

    Build failures and timeouts soften the settings. A successful build with
    no edge URL goes straight to the next iteration unchanged.
    """
    ctx = get_run_context(config)
    log = ctx.logger("Build")
    ctx.set_phase("building")
    logs = state.get("logs", [])
    settings = state["settings"]
    log.info(describe_settings(settings))

    try:
        await ctx.deps.site_store.save_settings(ctx.state.site_id, settings)

        build_id = new_build_id()
        await ctx.deps.build_queue.enqueue(
            BuildJob(build_id=build_id, site_id=ctx.state.site_id, inventory=ctx.inventory)
        )
        log.info(f"Build {build_id} queued")

        status = await wait_for_build(
            ctx.deps.build_queue,
            build_id,
            ctx.config.build_timeout_seconds,
            ctx.config.build_poll_interval_seconds,
            log,
        )
        if status.status == "failed":
            raise BuildFailedError(status.error_message or f"Build {build_id} failed")
    except Exception as e:
        update = soften(ctx, settings, e, log)
        update["logs"] = logs + log.get_logs()
        return update

    ctx.state.last_error = None
    if not status.edge_url:
        log.warning(f"Build {build_id} finished without an edge URL")
        return {"status": "NO_EDGE_URL", "build_id": build_id, "logs": logs + log.get_logs()}

    log.success(f"Deployed to {status.edge_url}")
    ready = await wait_for_edge_ready(
        status.edge_url,
        ctx.config.edge_ready_timeout_seconds,
        ctx.config.edge_ready_poll_interval_seconds,
        log,
    )
    if not ready:
        log.warning("Edge did not become ready in time, verifying anyway")

    return {
        "status": "BUILT",
        "build_id": build_id,
        "edge_url": status.edge_url,
        "logs": logs + log.get_logs(),
    }
