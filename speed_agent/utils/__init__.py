"""Utility functions, constants and prompts."""

from speed_agent.utils.helpers import StructuredLogger, extract_llm_text, extract_json_from_markdown

__all__ = ["StructuredLogger", "extract_llm_text", "extract_json_from_markdown"]
