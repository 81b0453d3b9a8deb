from typing import List, Optional

from speed_agent.core.schemas import AgentReport, IterationResult, IterationSummary, SiteInventory, Verdict
from speed_agent.core.state import AgentState


def build_report(
    state: AgentState,
    original_url: str,
    inventory: Optional[SiteInventory],
    history: List[IterationResult],
    verdict: Verdict,
) -> AgentReport:
    """
    Summarize a run. Result lists come from the last verified iteration;
    iterations whose build or verification failed only count in
    iterations_attempted.
    """
    last = history[-1] if history else None
    return AgentReport(
        site_id=state.site_id,
        original_url=original_url,
        total_iterations=len(history),
        iterations_attempted=state.iteration,
        final_verdict=verdict,
        final_settings=last.settings.model_dump() if last else {},
        final_performance=list(last.performance) if last else [],
        visual_results=list(last.visual) if last else [],
        functional_results=list(last.functional) if last else [],
        link_results=list(last.links) if last else [],
        iteration_history=[IterationSummary.from_result(r) for r in history],
        phase_timings={name: timing.model_copy() for name, timing in state.phase_timings.items()},
        page_count=inventory.page_count if inventory else 0,
        last_error=state.last_error,
    )
