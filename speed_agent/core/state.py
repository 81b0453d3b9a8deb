import datetime
from typing import Any, Dict, List, Literal, Optional, TypedDict

from pydantic import BaseModel, Field

from speed_agent.core.schemas import AgentReport, IterationResult, PhaseTiming, ReviewDecision
from speed_agent.core.settings import OptimizationSettings

AgentPhase = Literal["analyzing", "planning", "building", "verifying", "reviewing", "complete", "failed"]
TERMINAL_PHASES = ("complete", "failed")


def utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class LogEntry(BaseModel):
    timestamp: str
    level: str = "INFO"
    message: str


class AgentState(BaseModel):
    """
    Live, externally observable state of one optimization run.

    Owned by the run's task; other tasks only read it (or flip `aborted`).

    Attributes:
        phase: Current phase. complete/failed are terminal.
        iteration: Iterations started so far, never above max_iterations.
        phase_timings: Last start/end interval per phase name.
        aborted: Cooperative stop flag, checked at loop top and after baseline.
        last_successful_phase: Last non-terminal phase entered.
    """
    site_id: str
    run_id: str
    domain: str = ""
    started_at: str = Field(default_factory=utc_now)
    phase: AgentPhase = "analyzing"
    iteration: int = 0
    max_iterations: int = 10
    logs: List[LogEntry] = Field(default_factory=list)
    phase_timings: Dict[str, PhaseTiming] = Field(default_factory=dict)
    aborted: bool = False
    last_error: Optional[str] = None
    last_successful_phase: Optional[AgentPhase] = None
    report: Optional[AgentReport] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def set_phase(self, phase: AgentPhase) -> None:
        """Close the current phase's open interval and start a new one."""
        now = utc_now()
        current = self.phase_timings.get(self.phase)
        if current is not None and current.end is None:
            current.end = now
        self.phase = phase
        self.phase_timings[phase] = PhaseTiming(start=now)
        if phase not in TERMINAL_PHASES:
            self.last_successful_phase = phase

    def add_log(self, level: str, message: str) -> LogEntry:
        entry = LogEntry(timestamp=utc_now(), level=level, message=message)
        self.logs.append(entry)
        return entry


class GraphState(TypedDict):
    """
    State threaded through the LangGraph control loop.

    Attributes:
        status: Routing signal set by the last node.
            "ANALYZED", "PLANNED", "ITERATING", "BUILT", "BUILD_FAILED",
            "NO_EDGE_URL", "VERIFIED", "CONTINUE", "DONE", "ERROR".
        settings: Settings for the next (or current) build.
        final_verdict: Verdict once the loop ends, else None.
        last_verdict: Last reviewer verdict, used on ceiling exhaustion.
        build_id: Build of the current iteration.
        edge_url: Deployed URL of the current iteration.
        current_result: IterationResult of the current iteration after verify.
        logs: Captured log lines.
    """
    status: str
    settings: OptimizationSettings
    final_verdict: Optional[str]
    last_verdict: Optional[str]
    last_review: Optional[ReviewDecision]
    build_id: Optional[str]
    edge_url: Optional[str]
    current_result: Optional[IterationResult]
    logs: List[str]


def initial_graph_state() -> Dict[str, Any]:
    return {
        "status": "STARTING",
        "settings": OptimizationSettings(),
        "final_verdict": None,
        "last_verdict": None,
        "last_review": None,
        "build_id": None,
        "edge_url": None,
        "current_result": None,
        "logs": [],
    }
