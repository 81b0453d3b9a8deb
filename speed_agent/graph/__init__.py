"""LangGraph engine and node definitions."""

from speed_agent.graph.engine import OptimizationAgent, app
from speed_agent.graph.nodes import (
    node_analyze,
    node_build,
    node_finalize,
    node_iterate,
    node_plan,
    node_review,
    node_verify,
)
from speed_agent.graph.nodes.config import AgentConfig

__all__ = [
    "app",
    "OptimizationAgent",
    "AgentConfig",
    "node_analyze",
    "node_plan",
    "node_iterate",
    "node_build",
    "node_verify",
    "node_review",
    "node_finalize",
]
