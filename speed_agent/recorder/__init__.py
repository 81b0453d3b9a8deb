"""Baseline recording: crawl, element detection, screenshots and behavior."""

from speed_agent.recorder.recorder import BaselineRecorder
from speed_agent.recorder.crawl import AssetCatalog, analyze_html, discover_page_urls
from speed_agent.recorder.detection import build_selector, detect_interactive_elements

__all__ = [
    "BaselineRecorder",
    "AssetCatalog",
    "analyze_html",
    "discover_page_urls",
    "build_selector",
    "detect_interactive_elements",
]
