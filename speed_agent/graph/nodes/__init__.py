"""
Graph nodes package - Node implementations for the optimization loop.

This package provides the node functions used by the LangGraph workflow:
- analysis: Record the baseline and plan the first settings
- build: Loop top, build/deploy and the edge wait
- verify: Run the Verifier Set and decide pass
- review: AI review of failed iterations and finalization
"""

from speed_agent.graph.nodes.analysis import node_analyze, node_plan
from speed_agent.graph.nodes.build import node_build, node_iterate
from speed_agent.graph.nodes.review import node_finalize, node_review
from speed_agent.graph.nodes.verify import node_verify

__all__ = [
    "node_analyze",
    "node_plan",
    "node_iterate",
    "node_build",
    "node_verify",
    "node_review",
    "node_finalize",
]
