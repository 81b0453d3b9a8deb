"""Planner - Chooses the initial optimization settings from the site inventory."""

from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from speed_agent.agents.llm import invoke_text
from speed_agent.core.schemas import OptimizationPlan, SiteInventory
from speed_agent.utils.helpers import StructuredLogger, extract_json_from_markdown
from speed_agent.utils.prompts import PLANNER_SYSTEM_PROMPT


def describe_inventory(inventory: SiteInventory) -> str:
    """Plain-text site summary sent to the planner."""
    interactive = [e for e in inventory.interactive_elements if e.type != "link"]
    wp = inventory.wordpress

    lines = [
        f"SITE: {inventory.url}",
        f"Pages: {inventory.page_count}",
        f"Total size: {inventory.total_size_bytes} bytes",
        "",
        "WORDPRESS:",
        f"- Elementor: {wp.is_elementor}",
        f"- Gutenberg: {wp.is_gutenberg}",
        f"- WooCommerce: {wp.is_woocommerce}",
        "",
        f"SCRIPTS ({len(inventory.scripts)}):",
    ]
    for s in inventory.scripts:
        name = s.src.rstrip("/").split("/")[-1]
        lines.append(
            f"- {name} [bloat:{s.is_wordpress_bloat}, jquery:{s.is_jquery}, plugin:{s.is_jquery_plugin}, "
            f"analytics:{s.is_analytics}, defer:{s.has_defer}]"
        )

    lines += ["", f"INTERACTIVE ELEMENTS ({len(interactive)}):"]
    for e in interactive:
        lines.append(f"- [{e.page}] {e.type}: {e.description} (trigger: {e.trigger_action}, jQuery: {e.depends_on_jquery})")

    if inventory.jquery_used:
        lines.append(f"\nJQUERY: USED by: {', '.join(inventory.jquery_dependent_scripts)}. DO NOT remove jQuery.")
    else:
        lines.append("\nJQUERY: Not detected. jQuery removal MAY be safe.")

    lines += ["", "PAGES WITH FEATURES:"]
    for p in inventory.pages:
        lines.append(
            f"- {p.path}: slider={p.has_slider}, accordion={p.has_accordion}, tabs={p.has_tabs}, "
            f"modal={p.has_modal}, dropdown={p.has_dropdown_menu}, form={p.has_form}, video={p.has_video}"
        )

    lines.append("\nGenerate the optimization settings with full reasoning.")
    return "\n".join(lines)


class GeminiPlanner:
    def __init__(self, llm: Any = None, log: Optional[StructuredLogger] = None):
        self.llm = llm
        self.log = log or StructuredLogger("Planner")

    async def plan(self, inventory: SiteInventory) -> OptimizationPlan:
        self.log.info("Sending site inventory to the LLM for analysis...")
        text = await invoke_text([
            SystemMessage(content=PLANNER_SYSTEM_PROMPT),
            HumanMessage(content=describe_inventory(inventory)),
        ], self.llm)

        plan = OptimizationPlan.model_validate(extract_json_from_markdown(text))

        self.log.info(f"Plan generated. Expected Lighthouse: {plan.expected_performance.get('lighthouse', 'N/A')}")
        for section, reason in plan.reasoning.items():
            self.log.info(f"  [{section}] {reason}")
        if plan.risks:
            self.log.info(f"Identified {len(plan.risks)} risks: {'; '.join(plan.risks)}")
        return plan
