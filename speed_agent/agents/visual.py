import base64
from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from speed_agent.agents.llm import invoke_text
from speed_agent.core.schemas import VisualComparisonResult, VisualReview
from speed_agent.utils.helpers import StructuredLogger, extract_json_from_markdown
from speed_agent.utils.prompts import VISUAL_REVIEW_SYSTEM_PROMPT


def image_data_url(path: str) -> str:
    with open(path, "rb") as f:
        encoded = base64.b64encode(f.read()).decode("utf-8")
    return f"data:image/png;base64,{encoded}"


class GeminiVisualJudge:
    """Asks a multimodal model whether a pixel diff is a real regression."""

    def __init__(self, llm: Any = None, log: Optional[StructuredLogger] = None):
        self.llm = llm
        self.log = log or StructuredLogger("VisualJudge")

    async def review(self, result: VisualComparisonResult) -> VisualReview:
        self.log.info(f"AI reviewing visual diff for {result.page} @ {result.viewport}...")
        user_content = [
            {
                "type": "text",
                "text": (
                    f'Compare page "{result.page}" at {result.viewport} viewport '
                    f"({result.diff_percent:.2f}% pixel diff). Image 1 = ORIGINAL, Image 2 = OPTIMIZED."
                ),
            },
            {"type": "image_url", "image_url": {"url": image_data_url(result.baseline_image_path)}},
            {"type": "image_url", "image_url": {"url": image_data_url(result.optimized_image_path)}},
        ]
        text = await invoke_text([
            SystemMessage(content=VISUAL_REVIEW_SYSTEM_PROMPT),
            HumanMessage(content=user_content),
        ], self.llm)
        return VisualReview.model_validate(extract_json_from_markdown(text))
