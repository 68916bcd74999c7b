"""Language-model plumbing for browser extraction."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from pydantic import BaseModel

from harvester.config import settings
from harvester.crawler.errors import PermanentExtractionError

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)

SYSTEM_PROMPT = (
    "You extract structured data from web pages. "
    "Answer with a single JSON value and nothing else: no prose, no code fences. "
    "Only report URLs that appear in the page's link list."
)


def get_llm() -> Any:
    """Return the LangChain chat model selected by ``settings.llm_provider``."""
    if settings.llm_provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=settings.openai_chat_model, temperature=0)

    from langchain_ollama import ChatOllama

    return ChatOllama(
        model=settings.ollama_chat_model,
        base_url=settings.ollama_base_url,
        temperature=0,
        format="json",
    )


def build_messages(
    instruction: str, schema: Optional[type[BaseModel]], page_context: str
) -> list[BaseMessage]:
    """Assemble the chat messages for one extraction call."""
    if schema is not None:
        shape = (
            "The JSON must match this JSON Schema:\n"
            + json.dumps(schema.model_json_schema(by_alias=True), indent=2)
        )
    else:
        shape = "Return any JSON object that answers the instruction."
    user = f"{instruction}\n\n{shape}\n\n=== PAGE ===\n{page_context}"
    return [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=user)]


def parse_json_reply(text: Any) -> Any:
    """Parse a model reply into JSON, tolerating code fences and chatter.

    Raises:
        PermanentExtractionError: If no JSON value can be recovered.
    """
    if not isinstance(text, str):
        text = "".join(
            part.get("text", "") if isinstance(part, dict) else str(part)
            for part in (text or [])
        )
    cleaned = text.strip()
    fenced = _FENCE_RE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost object or array in the reply.
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = cleaned.find(opener), cleaned.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start : end + 1])
            except json.JSONDecodeError:
                continue
    raise PermanentExtractionError(f"Model reply is not JSON: {cleaned[:200]!r}")
