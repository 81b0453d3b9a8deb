"""Core components: state, schemas, settings, run registry and event stream."""

from speed_agent.core.errors import SpeedAgentError
from speed_agent.core.events import RunEvent, RunEventBus
from speed_agent.core.registry import RunRegistry
from speed_agent.core.schemas import AgentReport, IterationResult, SiteInventory
from speed_agent.core.settings import OptimizationSettings, deep_merge, make_safer_settings
from speed_agent.core.state import AgentState

__all__ = [
    "SpeedAgentError",
    "RunEvent",
    "RunEventBus",
    "RunRegistry",
    "AgentReport",
    "IterationResult",
    "SiteInventory",
    "OptimizationSettings",
    "deep_merge",
    "make_safer_settings",
    "AgentState",
]
