"""
Shared configuration and utilities for all graph nodes.

Contains:
- AgentConfig: loop limits and timeouts, read from the environment
- AgentDependencies: collaborators injected into every run
- RunContext: per-run handles passed to nodes through RunnableConfig
"""

import os
import tempfile
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv
from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel, Field

from speed_agent.agents.llm import get_llm
from speed_agent.agents.visual import GeminiVisualJudge
from speed_agent.core.browser import BrowserDriver
from speed_agent.core.collaborators import BuildQueue, Planner, Reviewer, SiteRecord, SiteStore
from speed_agent.core.events import RunChannel
from speed_agent.core.schemas import IterationResult, SiteInventory
from speed_agent.core.state import AgentPhase, AgentState
from speed_agent.recorder.recorder import BaselineRecorder
from speed_agent.utils import constants
from speed_agent.utils.helpers import StructuredLogger
from speed_agent.verification.functional import FunctionalVerifier
from speed_agent.verification.links import LinkVerifier
from speed_agent.verification.performance import PageSpeedScorer, PerformanceVerifier
from speed_agent.verification.suite import VerifierSet
from speed_agent.verification.visual import VisualVerifier

load_dotenv(override=True)


# ============================================================================
# CONFIGURATION
# ============================================================================

def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class AgentConfig(BaseModel):
    max_iterations: int = Field(default=constants.MAX_ITERATIONS, ge=1)
    build_timeout_seconds: float = constants.BUILD_TIMEOUT_SECONDS
    build_poll_interval_seconds: float = constants.BUILD_POLL_INTERVAL_SECONDS
    edge_ready_timeout_seconds: float = constants.EDGE_READY_TIMEOUT_SECONDS
    edge_ready_poll_interval_seconds: float = constants.EDGE_READY_POLL_INTERVAL_SECONDS
    performance_floor: float = constants.PERFORMANCE_FLOOR
    require_performance_floor: bool = False
    run_eviction_seconds: float = constants.RUN_EVICTION_SECONDS
    headless: bool = True
    pagespeed_api_key: Optional[str] = None
    visual_judge_enabled: bool = False
    work_root: str = Field(default_factory=lambda: os.path.join(tempfile.gettempdir(), "speed-agent"))

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Build a config from environment variables, keeping defaults for unset ones."""
        numeric = {
            "max_iterations": "MAX_ITERATIONS",
            "build_timeout_seconds": "BUILD_TIMEOUT_SECONDS",
            "build_poll_interval_seconds": "BUILD_POLL_INTERVAL_SECONDS",
            "edge_ready_timeout_seconds": "EDGE_READY_TIMEOUT_SECONDS",
            "performance_floor": "PERFORMANCE_FLOOR",
            "run_eviction_seconds": "RUN_EVICTION_SECONDS",
        }
        values: Dict[str, Any] = {
            field: os.getenv(env).strip()
            for field, env in numeric.items()
            if os.getenv(env, "").strip()
        }
        values["require_performance_floor"] = _env_bool("REQUIRE_PERFORMANCE_FLOOR", False)
        values["headless"] = _env_bool("HEADLESS", True)
        values["pagespeed_api_key"] = (os.getenv("PAGESPEED_API_KEY") or "").strip() or None
        values["visual_judge_enabled"] = _env_bool("AI_VISUAL_REVIEW", bool(os.getenv("GOOGLE_API_KEY")))
        if os.getenv("SPEED_AGENT_WORK_ROOT"):
            values["work_root"] = os.getenv("SPEED_AGENT_WORK_ROOT")
        return cls.model_validate(values)


# ============================================================================
# DEPENDENCIES
# ============================================================================

RecorderFactory = Callable[[Any, StructuredLogger], Any]
VerifierFactory = Callable[[Any, StructuredLogger, AgentConfig], Any]
DriverFactory = Callable[[AgentConfig], Any]


def default_recorder_factory(driver: BrowserDriver, log: StructuredLogger) -> BaselineRecorder:
    return BaselineRecorder(driver, log=log)


def default_verifier_factory(driver: BrowserDriver, log: StructuredLogger, config: AgentConfig) -> VerifierSet:
    scorer = PageSpeedScorer(config.pagespeed_api_key) if config.pagespeed_api_key else None
    judge = GeminiVisualJudge(log=log.child("VisualJudge")) if config.visual_judge_enabled else None
    return VerifierSet(
        visual=VisualVerifier(driver, judge=judge, log=log.child("Visual")),
        functional=FunctionalVerifier(driver, log=log.child("Functional")),
        links=LinkVerifier(driver, log=log.child("Links")),
        performance=PerformanceVerifier(driver, scorer=scorer, log=log.child("Performance")),
        log=log,
    )


def default_driver_factory(config: AgentConfig) -> BrowserDriver:
    return BrowserDriver(headless=config.headless)


class AgentDependencies:
    """Collaborators shared by all runs of one agent."""

    def __init__(
        self,
        site_store: SiteStore,
        build_queue: BuildQueue,
        planner: Planner,
        reviewer: Reviewer,
        recorder_factory: Optional[RecorderFactory] = None,
        verifier_factory: Optional[VerifierFactory] = None,
        driver_factory: Optional[DriverFactory] = None,
    ):
        self.site_store = site_store
        self.build_queue = build_queue
        self.planner = planner
        self.reviewer = reviewer
        self.recorder_factory = recorder_factory or default_recorder_factory
        self.verifier_factory = verifier_factory or default_verifier_factory
        self.driver_factory = driver_factory or default_driver_factory


# ============================================================================
# RUN CONTEXT
# ============================================================================

class RunContext:
    """
    Everything a node needs besides the graph state.

    Attributes:
        state: The externally visible AgentState of this run.
        inventory: Baseline, set once by the analyze node.
        history: IterationResults of completed iterations only.
    """

    def __init__(
        self,
        state: AgentState,
        deps: AgentDependencies,
        config: AgentConfig,
        channel: RunChannel,
        work_dir: Optional[str] = None,
        driver: Any = None,
    ):
        self.state = state
        self.deps = deps
        self.config = config
        self.channel = channel
        self.work_dir = work_dir
        self.driver = driver
        self.site: Optional[SiteRecord] = None
        self.inventory: Optional[SiteInventory] = None
        self.history: List[IterationResult] = []

    def _sink(self, level: str, line: str) -> None:
        self.state.add_log(level, line)
        self.channel.log_line(level, line)

    def logger(self, node_name: str) -> StructuredLogger:
        return StructuredLogger(node_name, sink=self._sink)

    def set_phase(self, phase: AgentPhase) -> None:
        self.state.set_phase(phase)
        self.channel.phase_changed(phase, self.state.iteration)


def get_run_context(config: RunnableConfig) -> RunContext:
    return config["configurable"]["run"]


__all__ = [
    "AgentConfig",
    "AgentDependencies",
    "RunContext",
    "get_run_context",
    "get_llm",
]
