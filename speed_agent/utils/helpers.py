"""
Helpers module - Reusable utilities for the Speed Agent.

Contains:
- LLM text and JSON extraction
- URL helpers (site names, page URLs on another origin)
- Structured logging
"""

import datetime
import json
import re
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlparse


# ============================================================================
# TEXT EXTRACTION UTILITIES
# ============================================================================

def extract_llm_text(content: Any) -> str:
    """
    Safely extract text from LLM content.

    Handles both string and list/multimodal formats from LLM responses.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            item.get("text", "") if isinstance(item, dict) else str(item)
            for item in content
        )
    return str(content)


def extract_json_from_markdown(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of an LLM response.

    Strips ```json fences and any prose around the outermost braces.
    Returns an empty dict when nothing parseable is found.
    """
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return {}

    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


# ============================================================================
# URL HELPERS
# ============================================================================

def get_site_name_from_url(url: str) -> str:
    """
    Extract a clean site name from a URL for use in project names.

    'https://www.example-shop.com/about' -> 'exampleshop'
    """
    hostname = urlparse(url).hostname or "unknown"
    for prefix in ("www.", "www2."):
        if hostname.startswith(prefix):
            hostname = hostname[len(prefix):]

    site_name = hostname.split(".")[0]
    site_name = re.sub(r"[^a-zA-Z0-9]", "", site_name)
    return site_name.lower() or "unknown"


def page_url_on(base_url: str, page_path: str) -> str:
    """Resolve a page path recorded on one origin against another origin."""
    return urljoin(base_url, page_path or "/")


def safe_path_name(page_path: str) -> str:
    """Turn a page path into a file-name fragment ('/a/b/' -> '_a_b_')."""
    return (page_path or "/").replace("/", "_") or "index"


def average(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


# ============================================================================
# STRUCTURED LOGGING
# ============================================================================

LogSink = Callable[[str, str], None]


class StructuredLogger:
    """
    Structured logger that captures logs with timestamps and context.

    Stores logs in a list and prints to console for real-time visibility.
    When a sink is given, every stored line is also forwarded to it as
    (level, formatted_line) so the owning run can append it to its state
    and publish it on the event stream.
    """

    def __init__(self, node_name: str, sink: Optional[LogSink] = None):
        self.node_name = node_name
        self.sink = sink
        self.logs: List[str] = []

    def _format(self, level: str, message: str) -> str:
        timestamp = datetime.datetime.now().strftime("%H:%M:%S")
        return f"[{timestamp}] [{self.node_name}] {level}: {message}"

    def _store(self, level: str, formatted: str) -> None:
        self.logs.append(formatted)
        if self.sink is not None:
            self.sink(level, formatted)

    def child(self, node_name: str) -> "StructuredLogger":
        """Logger for a sub-component that shares this logger's sink."""
        return StructuredLogger(node_name, sink=self.sink)

    def info(self, message: str) -> None:
        formatted = self._format("INFO", message)
        print(formatted)
        self._store("INFO", formatted)

    def warning(self, message: str) -> None:
        formatted = self._format("WARN", message)
        print(f"⚠️ {formatted}")
        self._store("WARN", formatted)

    def error(self, message: str) -> None:
        formatted = self._format("ERROR", message)
        print(f"❌ {formatted}")
        self._store("ERROR", formatted)

    def success(self, message: str) -> None:
        formatted = self._format("OK", message)
        print(f"✅ {formatted}")
        self._store("OK", formatted)

    def debug(self, message: str) -> None:
        formatted = self._format("DEBUG", message)
        # Debug only to console, not stored
        print(f"🔍 {formatted}")

    def get_logs(self) -> List[str]:
        """Get all captured logs."""
        return self.logs
