"""
Speed Agent - Closed-loop website optimization powered by LangGraph + Gemini + Playwright

Core workflow: Record baseline -> Plan settings -> Build/Deploy -> Verify -> Review -> repeat
"""

from speed_agent.core.state import AgentState
from speed_agent.graph.engine import OptimizationAgent, app as graph_app
from speed_agent.graph.nodes.config import AgentConfig


__version__ = "1.0.0"
__all__ = ["AgentState", "AgentConfig", "OptimizationAgent", "graph_app"]
