"""
Draft classification: decide whether a completion is a tool call or an answer.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from .models import ToolCall

logger = logging.getLogger(__name__)

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```$")
_DISCRIMINATOR_RE = re.compile(r'"type"\s*:\s*"toolcall"')


@dataclass(frozen=True)
class Classification:
    text: str
    tool_call: Optional[ToolCall] = None

    @property
    def is_tool_call(self) -> bool:
        return self.tool_call is not None


def strip_code_fence(raw: str) -> str:
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_CLOSE_RE.sub("", _FENCE_OPEN_RE.sub("", cleaned))
    return cleaned.strip()


def classify_completion(raw: str) -> Classification:
    """Pure function of ``raw``: the same draft always classifies the same way.

    Only an object carrying the ``"type": "toolcall"`` discriminator is parsed;
    anything that fails to parse or validate (including unknown tool names)
    is plain text.
    """
    cleaned = strip_code_fence(raw)
    if not (cleaned.startswith("{") and _DISCRIMINATOR_RE.search(cleaned)):
        return Classification(text=raw)

    try:
        payload = json.loads(cleaned)
        tool_call = ToolCall.model_validate(payload)
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.info("Draft looked like a tool call but did not parse: %s", exc)
        return Classification(text=raw)

    return Classification(text=raw, tool_call=tool_call)
