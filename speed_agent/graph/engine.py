"""
Optimization engine - The LangGraph control loop and the Agent Controller.

Flow:
    analyze -> plan -> iterate -> build -> verify -> review -> iterate ...
                          |          |         |         |
                          v          v         v         v
                       finalize   iterate   finalize  finalize

Contains:
- workflow / app: the compiled StateGraph
- OptimizationAgent: starts, stops and tracks one run per site
"""

import asyncio
import os
import shutil
import tempfile
import uuid
from typing import Dict, Optional

from langgraph.graph import END, StateGraph

from speed_agent.core.collaborators import BuildQueue, Planner, Reviewer, SiteStore
from speed_agent.core.events import RunEventBus
from speed_agent.core.registry import RunRegistry
from speed_agent.core.schemas import AgentReport
from speed_agent.core.state import AgentState, GraphState, initial_graph_state
from speed_agent.graph.nodes import (
    node_analyze,
    node_build,
    node_finalize,
    node_iterate,
    node_plan,
    node_review,
    node_verify,
)
from speed_agent.graph.nodes.config import (
    AgentConfig,
    AgentDependencies,
    DriverFactory,
    RecorderFactory,
    RunContext,
    VerifierFactory,
)
from speed_agent.graph.report import build_report


# ============================================================================
# ROUTING
# ============================================================================

def after_analyze(state: GraphState) -> str:
    return "plan" if state.get("status") == "ANALYZED" else "end"


def after_iterate(state: GraphState) -> str:
    """Loop top: build the next iteration or stop (abort, ceiling)."""
    return "build" if state.get("status") == "ITERATING" else "finalize"


def after_build(state: GraphState) -> str:
    """Only a deployed build is verified; failures go back to the loop top."""
    return "verify" if state.get("status") == "BUILT" else "iterate"


def after_verify(state: GraphState) -> str:
    status = state.get("status")
    if status == "DONE":
        return "finalize"
    if status == "VERIFIED":
        return "review"
    return "iterate"


def after_review(state: GraphState) -> str:
    return "iterate" if state.get("status") == "CONTINUE" else "finalize"


# ============================================================================
# GRAPH
# ============================================================================

workflow = StateGraph(GraphState)

workflow.add_node("analyze", node_analyze)
workflow.add_node("plan", node_plan)
workflow.add_node("iterate", node_iterate)
workflow.add_node("build", node_build)
workflow.add_node("verify", node_verify)
workflow.add_node("review", node_review)
workflow.add_node("finalize", node_finalize)

workflow.set_entry_point("analyze")
workflow.add_conditional_edges("analyze", after_analyze, {"plan": "plan", "end": END})
workflow.add_edge("plan", "iterate")
workflow.add_conditional_edges("iterate", after_iterate, {"build": "build", "finalize": "finalize"})
workflow.add_conditional_edges("build", after_build, {"verify": "verify", "iterate": "iterate"})
workflow.add_conditional_edges(
    "verify",
    after_verify,
    {"review": "review", "finalize": "finalize", "iterate": "iterate"},
)
workflow.add_conditional_edges("review", after_review, {"iterate": "iterate", "finalize": "finalize"})
workflow.add_edge("finalize", END)

app = workflow.compile()


# ============================================================================
# AGENT CONTROLLER
# ============================================================================

class OptimizationAgent:
    """
    Runs the optimization loop for sites, at most one live run per site.

    Usage:
        agent = OptimizationAgent(site_store, build_queue, GeminiPlanner(), GeminiReviewer())
        state = await agent.start("site-1")      # background
        report = await agent.run("site-2")       # inline
    """

    def __init__(
        self,
        site_store: SiteStore,
        build_queue: BuildQueue,
        planner: Planner,
        reviewer: Reviewer,
        registry: Optional[RunRegistry] = None,
        bus: Optional[RunEventBus] = None,
        config: Optional[AgentConfig] = None,
        recorder_factory: Optional[RecorderFactory] = None,
        verifier_factory: Optional[VerifierFactory] = None,
        driver_factory: Optional[DriverFactory] = None,
    ):
        self.deps = AgentDependencies(
            site_store=site_store,
            build_queue=build_queue,
            planner=planner,
            reviewer=reviewer,
            recorder_factory=recorder_factory,
            verifier_factory=verifier_factory,
            driver_factory=driver_factory,
        )
        self.registry = registry or RunRegistry()
        self.bus = bus or RunEventBus()
        self.config = config or AgentConfig.from_env()
        self._tasks: Dict[str, asyncio.Task] = {}

    def _register(self, site_id: str) -> AgentState:
        state = AgentState(
            site_id=site_id,
            run_id=uuid.uuid4().hex,
            max_iterations=self.config.max_iterations,
        )
        return self.registry.create(state)

    async def run(self, site_id: str) -> AgentReport:
        """
        Run the whole loop for site_id and return its report.

        Raises:
            RunAlreadyActiveError: another run for this site is still live.
        """
        state = self._register(site_id)
        return await self._execute(state)

    async def start(self, site_id: str) -> AgentState:
        """Register a run and execute it in the background."""
        state = self._register(site_id)
        task = asyncio.create_task(self._execute(state))
        self._tasks[site_id] = task
        task.add_done_callback(lambda t: self._forget(site_id, t))
        return state

    def _forget(self, site_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(site_id) is task:
            del self._tasks[site_id]

    def stop(self, site_id: str) -> bool:
        return self.registry.stop(site_id)

    def get_state(self, site_id: str) -> Optional[AgentState]:
        return self.registry.get(site_id)

    async def wait(self, site_id: str) -> Optional[AgentReport]:
        """Wait for a background run started with start()."""
        task = self._tasks.get(site_id)
        if task is not None:
            await asyncio.shield(task)
        state = self.registry.get(site_id)
        return state.report if state else None

    async def _execute(self, state: AgentState) -> AgentReport:
        channel = self.bus.channel(state.site_id, state.run_id)
        ctx = RunContext(state, self.deps, self.config, channel)
        log = ctx.logger("Agent")
        report: Optional[AgentReport] = None

        try:
            os.makedirs(self.config.work_root, exist_ok=True)
            ctx.work_dir = tempfile.mkdtemp(prefix=f"{state.site_id}-", dir=self.config.work_root)
            ctx.driver = self.deps.driver_factory(self.config)

            ctx.site = await self.deps.site_store.get_site(state.site_id)
            state.domain = ctx.site.site_url
            log.info(f"Starting optimization run {state.run_id} for {ctx.site.site_url}")

            final = await app.ainvoke(
                initial_graph_state(),
                config={
                    "configurable": {"run": ctx},
                    "recursion_limit": self.config.max_iterations * 5 + 10,
                },
            )
            verdict = final.get("final_verdict") or "needs-changes"
            if not state.is_terminal:
                ctx.set_phase("complete")
            report = build_report(state, ctx.site.site_url, ctx.inventory, ctx.history, verdict)
            log.info(f"Run {state.run_id} finished: {verdict}")
        except asyncio.CancelledError:
            state.last_error = "Run cancelled"
            ctx.set_phase("failed")
            raise
        except Exception as e:
            state.last_error = str(e)
            log.error(f"Run failed: {e}")
            ctx.set_phase("failed")
            original_url = ctx.site.site_url if ctx.site else ""
            report = build_report(state, original_url, ctx.inventory, ctx.history, "failed")
        finally:
            if report is not None:
                state.report = report
                channel.run_complete(report.model_dump())
            if ctx.driver is not None:
                try:
                    await ctx.driver.close()
                except Exception as e:
                    log.warning(f"Browser close failed: {e}")
            if ctx.work_dir is not None:
                shutil.rmtree(ctx.work_dir, ignore_errors=True)
            self.registry.expire(state.site_id, self.config.run_eviction_seconds, state.run_id)

        return report
