"""
Reviewer - Judges an iteration and proposes a settings delta.

The reviewer never raises: an LLM error or an unusable response becomes a
conservative needs-changes decision with no setting changes.
"""

import json
from typing import Any, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

from speed_agent.agents.llm import invoke_text
from speed_agent.core.schemas import IterationResult, ReviewDecision, SiteInventory
from speed_agent.utils.helpers import StructuredLogger, extract_json_from_markdown
from speed_agent.utils.prompts import REVIEWER_HISTORY_SECTION, REVIEWER_SYSTEM_PROMPT


def conservative_decision(reason: str) -> ReviewDecision:
    return ReviewDecision(
        overall_verdict="needs-changes",
        setting_changes={},
        reasoning=reason,
        issues_summary=[reason],
        should_rebuild=True,
        confidence_level=0,
    )


def build_system_prompt(current: IterationResult, history: List[IterationResult]) -> str:
    history_section = ""
    if history:
        rows = [
            f"Iteration {prev.iteration}: Avg perf {prev.avg_performance:.0f}, "
            f"Visual fails {prev.visual_failures}, Functional fails {prev.functional_failures}, "
            f"Broken links {prev.broken_links}"
            for prev in history
        ]
        history_section = REVIEWER_HISTORY_SECTION.format(history="\n".join(rows))
    return REVIEWER_SYSTEM_PROMPT.format(iteration=current.iteration, history_section=history_section)


def build_user_content(current: IterationResult, inventory: SiteInventory) -> str:
    failed_tests = [t for t in current.functional if not t.passed]
    broken = [link for link in current.links if not link.passed]
    worst = min((p.performance for p in current.performance), default=0)

    lines = [
        "CURRENT SETTINGS:",
        json.dumps(current.settings.model_dump(), indent=2)[:5000],
        "",
        "PERFORMANCE:",
    ]
    lines += [f"{p.page}: Score {p.performance}, TTFB {p.ttfb:.0f}ms" for p in current.performance]
    lines.append(f"Average: {current.avg_performance:.0f}, Worst: {worst}")

    lines += ["", "VISUAL COMPARISON:"]
    for v in current.visual:
        line = f"{v.page} @ {v.viewport}: {v.diff_percent:.2f}% diff -> {v.status}"
        if v.ai_review:
            line += f" (AI: {v.ai_review}; {'; '.join(v.ai_regions)})"
        if v.error:
            line += f" [{v.error}]"
        lines.append(line)

    lines += [
        "",
        "FUNCTIONAL TESTS:",
        f"Passed: {len(current.functional) - len(failed_tests)}",
        f"Failed: {len(failed_tests)}",
    ]
    lines += [
        f"FAIL: [{t.element.type}] {t.element.description} on {t.element.page} - {t.failure_reason}"
        for t in failed_tests
    ]

    lines += ["", f"BROKEN LINKS: {len(broken)}"]
    lines += [f"{link.page}: {link.href} -> {link.failure_reason}" for link in broken[:10]]

    if current.degraded_checkers:
        lines += ["", f"DEGRADED CHECKERS (no usable results): {', '.join(current.degraded_checkers)}"]

    lines += [
        "",
        "INTERACTIVE ELEMENTS THAT DEPEND ON JQUERY:",
        ", ".join(inventory.jquery_dependent_scripts) or "None",
        "",
        "What settings should change to fix ALL issues?",
    ]
    return "\n".join(lines)


class GeminiReviewer:
    def __init__(self, llm: Any = None, log: Optional[StructuredLogger] = None):
        self.llm = llm
        self.log = log or StructuredLogger("Reviewer")

    async def review(
        self,
        iteration_result: IterationResult,
        history: List[IterationResult],
        inventory: SiteInventory,
    ) -> ReviewDecision:
        try:
            text = await invoke_text([
                SystemMessage(content=build_system_prompt(iteration_result, history)),
                HumanMessage(content=build_user_content(iteration_result, inventory)),
            ], self.llm)
        except Exception as e:
            self.log.error(f"AI review failed: {e}")
            return conservative_decision(f"AI review error: {e}")

        data = extract_json_from_markdown(text)
        if not data:
            self.log.warning("AI review returned no usable JSON")
            return conservative_decision("AI review returned an empty response")

        try:
            # null fields fall back to their defaults
            decision = ReviewDecision.model_validate({k: v for k, v in data.items() if v is not None})
        except ValidationError as e:
            self.log.warning(f"AI review response invalid: {e.error_count()} errors")
            return conservative_decision("AI review returned an invalid response")

        self.log.info(f"AI verdict: {decision.overall_verdict} (confidence: {decision.confidence_level}%)")
        if decision.reasoning:
            self.log.info(f"Reasoning: {decision.reasoning}")
        for issue in decision.issues_summary:
            self.log.info(f"  Issue: {issue}")
        return decision
