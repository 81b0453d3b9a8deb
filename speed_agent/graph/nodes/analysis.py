"""
Analysis nodes - Baseline recording and initial planning.

Contains:
- node_analyze: Record the site inventory (crawl, screenshots, behavior)
- node_plan: Turn the inventory into the first OptimizationSettings
"""

from typing import Any, Dict

from langchain_core.runnables import RunnableConfig
from pydantic import ValidationError

from speed_agent.core.errors import EmptyCrawlError
from speed_agent.core.settings import OptimizationSettings, merge_settings
from speed_agent.core.state import GraphState
from speed_agent.graph.nodes.config import get_run_context


async def node_analyze(state: GraphState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Record the original site once per run.

    An empty crawl is fatal. An abort raised while recording ends the run
    with an incomplete verdict before any build is attempted.
    """
    ctx = get_run_context(config)
    log = ctx.logger("Analyze")
    ctx.set_phase("analyzing")
    log.info(f"Recording baseline for {ctx.site.site_url}")

    recorder = ctx.deps.recorder_factory(ctx.driver, log.child("Recorder"))
    inventory = await recorder.record(ctx.site.site_url, ctx.work_dir)
    ctx.inventory = inventory

    if inventory.page_count == 0:
        raise EmptyCrawlError(ctx.site.site_url)

    log.success(
        f"Baseline recorded: {inventory.page_count} pages, {len(inventory.scripts)} scripts, "
        f"{len(inventory.interactive_elements)} interactive elements, "
        f"{len(inventory.baseline_screenshots)} screenshots"
    )

    if ctx.state.aborted:
        log.warning("Run aborted after baseline recording")
        ctx.set_phase("failed")
        return {
            "status": "DONE",
            "final_verdict": "incomplete",
            "logs": state.get("logs", []) + log.get_logs(),
        }

    return {
        "status": "ANALYZED",
        "logs": state.get("logs", []) + log.get_logs(),
    }


async def node_plan(state: GraphState, config: RunnableConfig) -> Dict[str, Any]:
    """Ask the planner for initial settings. Any planner failure means defaults."""
    ctx = get_run_context(config)
    log = ctx.logger("Plan")
    ctx.set_phase("planning")

    settings = OptimizationSettings()
    try:
        plan = await ctx.deps.planner.plan(ctx.inventory)
        settings = merge_settings(settings, plan.settings)
        log.success("Initial settings planned")
    except ValidationError as e:
        log.warning(f"Planner returned invalid settings ({e.error_count()} errors), using defaults")
    except Exception as e:
        log.warning(f"Planning failed, using default settings: {e}")

    return {
        "status": "PLANNED",
        "settings": settings,
        "logs": state.get("logs", []) + log.get_logs(),
    }
