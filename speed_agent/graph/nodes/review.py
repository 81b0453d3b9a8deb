"""
Review nodes - AI review of a failed iteration and run finalization.

Contains:
- node_review: Ask the reviewer, stop or merge its settings delta
- node_finalize: Mark the run complete
"""

from typing import Any, Dict

from langchain_core.runnables import RunnableConfig
from pydantic import ValidationError

from speed_agent.agents.reviewer import conservative_decision
from speed_agent.core.schemas import run_verdict
from speed_agent.core.settings import merge_settings
from speed_agent.core.state import GraphState
from speed_agent.graph.nodes.config import get_run_context


async def node_review(state: GraphState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Review the current iteration against all earlier ones.

    A reviewer that says stop (or pass) ends the loop with its verdict,
    critical-failure mapping to failed. Otherwise the delta is merged; an
    invalid delta keeps the current settings.
    """
    ctx = get_run_context(config)
    log = ctx.logger("Review")
    ctx.set_phase("reviewing")
    logs = state.get("logs", [])
    current = state["current_result"]

    try:
        decision = await ctx.deps.reviewer.review(current, ctx.history[:-1], ctx.inventory)
    except Exception as e:
        log.error(f"Reviewer failed: {e}")
        decision = conservative_decision(f"Reviewer error: {e}")

    log.info(f"Verdict: {decision.overall_verdict} (rebuild: {decision.should_rebuild})")

    if not decision.should_rebuild or decision.overall_verdict == "pass":
        verdict = run_verdict(decision.overall_verdict)
        log.info(f"Reviewer stopped the loop with verdict {verdict}")
        return {
            "status": "DONE",
            "final_verdict": verdict,
            "last_verdict": decision.overall_verdict,
            "last_review": decision,
            "logs": logs + log.get_logs(),
        }

    settings = state["settings"]
    if decision.setting_changes:
        try:
            settings = merge_settings(settings, decision.setting_changes)
            log.info(f"Applied setting changes to: {', '.join(sorted(decision.setting_changes))}")
        except ValidationError as e:
            log.warning(f"Ignoring invalid setting changes ({e.error_count()} errors)")
    else:
        log.info("No setting changes proposed")

    return {
        "status": "CONTINUE",
        "settings": settings,
        "last_verdict": decision.overall_verdict,
        "last_review": decision,
        "logs": logs + log.get_logs(),
    }


async def node_finalize(state: GraphState, config: RunnableConfig) -> Dict[str, Any]:
    ctx = get_run_context(config)
    log = ctx.logger("Finalize")
    ctx.set_phase("complete")
    log.success(
        f"Run finished after {ctx.state.iteration} iterations "
        f"({len(ctx.history)} verified), verdict: {state.get('final_verdict')}"
    )
    return {"status": "COMPLETE", "logs": state.get("logs", []) + log.get_logs()}
