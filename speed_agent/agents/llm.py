"""
LLM client setup shared by the planner, reviewer and visual judge.

The client is created lazily so that importing the package never requires
GOOGLE_API_KEY; only the first LLM call does.
"""

import os
from typing import Any, List, Optional

from dotenv import load_dotenv
from langchain_core.messages import BaseMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from speed_agent.utils.helpers import extract_llm_text

load_dotenv(override=True)

llm: Optional[ChatGoogleGenerativeAI] = None


def get_llm() -> ChatGoogleGenerativeAI:
    """Get or initialize the shared Gemini client."""
    global llm
    if llm is None:
        google_api_key = os.getenv("GOOGLE_API_KEY")
        if not google_api_key:
            raise ValueError("GOOGLE_API_KEY environment variable is required")
        google_api_key = google_api_key.strip()
        gemini_model = os.getenv("GEMINI_MODEL")

        print(f"🤖 LLM Init: Model={gemini_model}, Key={google_api_key[:8]}...{google_api_key[-4:]}", flush=True)
        llm = ChatGoogleGenerativeAI(
            model=gemini_model,
            temperature=0,
            google_api_key=google_api_key,
        )
    return llm


async def invoke_text(messages: List[BaseMessage], client: Any = None) -> str:
    """Send messages and return the response as plain text."""
    client = client or get_llm()
    response = await client.ainvoke(messages)
    return extract_llm_text(response.content)
