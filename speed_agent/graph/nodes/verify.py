"""
Verification node - Runs the Verifier Set against the current deployment.

Contains:
- node_verify: Verify, record the IterationResult, decide pass
- evaluate_pass: Pass rule (clean checks, optional performance floor)
"""

from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from speed_agent.core.schemas import IterationResult, IterationSummary
from speed_agent.core.state import GraphState
from speed_agent.graph.nodes.build import soften
from speed_agent.graph.nodes.config import get_run_context
from speed_agent.verification.suite import VerificationOutcome


def evaluate_pass(outcome: VerificationOutcome, performance_floor: float, require_floor: bool) -> bool:
    """
    True when every visual, functional and link check passed and no checker
    degraded. The performance floor only counts when require_floor is set.
    """
    if not outcome.checks_clean:
        return False
    if require_floor and outcome.avg_performance < performance_floor:
        return False
    return True


async def node_verify(state: GraphState, config: RunnableConfig) -> Dict[str, Any]:
    ctx = get_run_context(config)
    log = ctx.logger("Verify")
    ctx.set_phase("verifying")
    logs = state.get("logs", [])
    edge_url = state["edge_url"]

    try:
        verifiers = ctx.deps.verifier_factory(ctx.driver, log, ctx.config)
        outcome = await verifiers.run(ctx.site.site_url, edge_url, ctx.inventory, ctx.work_dir)
    except Exception as e:
        update = soften(ctx, state["settings"], e, log)
        update["logs"] = logs + log.get_logs()
        return update

    result = IterationResult(
        iteration=ctx.state.iteration,
        settings=state["settings"],
        build_id=state["build_id"],
        edge_url=edge_url,
        visual=outcome.visual,
        functional=outcome.functional,
        links=outcome.links,
        performance=outcome.performance,
        degraded_checkers=outcome.degraded_checkers,
    )
    ctx.history.append(result)
    ctx.channel.iteration_complete(IterationSummary.from_result(result).model_dump())

    log.info(
        f"Iteration {result.iteration}: avg performance {outcome.avg_performance:.0f} "
        f"(worst {outcome.worst_performance}), visual failures {outcome.visual_failures}, "
        f"functional failures {outcome.functional_failures}, broken links {outcome.broken_links}"
    )
    if outcome.degraded_checkers:
        log.warning(f"Degraded checkers: {', '.join(outcome.degraded_checkers)}")

    if evaluate_pass(outcome, ctx.config.performance_floor, ctx.config.require_performance_floor):
        log.success(f"All checks passed on iteration {result.iteration}")
        return {
            "status": "DONE",
            "final_verdict": "pass",
            "current_result": result,
            "logs": logs + log.get_logs(),
        }

    return {
        "status": "VERIFIED",
        "current_result": result,
        "logs": logs + log.get_logs(),
    }
