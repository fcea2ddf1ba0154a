"""
Tool-Calling Agent Loop

One chat turn: compose the prompt, draft, classify the draft, dispatch a
tool call, then either hand a pending fund movement back to the client or
synthesize the final answer from the tool's result.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ...config import settings
from ...providers.llm import LLMProvider, LLMProviderError, get_llm_provider
from .classifier import classify_completion
from .models import AgentReply, ChatTurn, PendingOperation, ToolUsage
from .prompts import compose_prompt, synthesis_prompt, tool_error_prompt
from .tools import ToolRegistry

COMPLETION_FAILURE_REPLY = (
    "Sorry, I'm having trouble reaching my language model right now. Please try again in a moment."
)


class AgentLoop:
    def __init__(
        self,
        llm: Optional[LLMProvider] = None,
        registry: Optional[ToolRegistry] = None,
        *,
        history_window: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._llm = llm
        self.registry = registry or ToolRegistry()
        self.history_window = history_window if history_window is not None else settings.chat_history_window
        self.logger = logger or logging.getLogger(__name__)

    @property
    def llm(self) -> LLMProvider:
        if self._llm is None:
            self._llm = get_llm_provider()
        return self._llm

    async def run(
        self,
        message: str,
        history: Sequence[ChatTurn] = (),
        user_address: Optional[str] = None,
    ) -> AgentReply:
        prompt = compose_prompt(
            self.registry.get_definitions(), history, message, self.history_window
        )

        try:
            draft = await self.llm.complete(
                prompt,
                temperature=settings.draft_temperature,
                max_tokens=settings.draft_max_tokens,
            )
        except LLMProviderError:
            self.logger.exception("Draft completion failed")
            return AgentReply(response=COMPLETION_FAILURE_REPLY)

        classification = classify_completion(draft)
        if not classification.is_tool_call:
            return AgentReply(response=classification.text)

        tool_call = classification.tool_call
        self.logger.info("Draft requested tool %s", tool_call.toolname.value)

        try:
            result = await self.registry.execute(tool_call, user_address=user_address)
        except Exception as exc:
            self.logger.warning("Tool %s failed: %s", tool_call.toolname.value, exc)
            error = str(exc) or exc.__class__.__name__
            response = await self._synthesize(tool_error_prompt(prompt, tool_call, error))
            return AgentReply(
                response=response,
                toolUsed=ToolUsage(
                    name=tool_call.toolname,
                    parameters=tool_call.parameters,
                    error=error,
                ),
            )

        if isinstance(result, PendingOperation):
            return AgentReply(
                response=result.message,
                executeClientSide=True,
                swapType=result.swap_type,
                transactionParams=result.transaction_params.model_dump(by_alias=True, exclude_none=True),
                toolUsed=ToolUsage(
                    name=tool_call.toolname,
                    parameters=tool_call.parameters,
                    result=result.to_payload(),
                ),
            )

        response = await self._synthesize(synthesis_prompt(prompt, tool_call, result))
        return AgentReply(
            response=response,
            toolUsed=ToolUsage(
                name=tool_call.toolname,
                parameters=tool_call.parameters,
                result=result,
            ),
        )

    async def _synthesize(self, prompt: str) -> str:
        try:
            return await self.llm.complete(
                prompt,
                temperature=settings.synthesis_temperature,
                max_tokens=settings.synthesis_max_tokens,
            )
        except LLMProviderError:
            self.logger.exception("Synthesis completion failed")
            return COMPLETION_FAILURE_REPLY


_agent_loop: Optional[AgentLoop] = None


def get_agent_loop() -> AgentLoop:
    global _agent_loop
    if _agent_loop is None:
        _agent_loop = AgentLoop()
    return _agent_loop
