"""LLM-backed agents: planner, reviewer and visual judge."""

from speed_agent.agents.planner import GeminiPlanner
from speed_agent.agents.reviewer import GeminiReviewer
from speed_agent.agents.visual import GeminiVisualJudge

__all__ = ["GeminiPlanner", "GeminiReviewer", "GeminiVisualJudge"]
