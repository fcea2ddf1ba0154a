"""
Tests for the tool-calling agent loop.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.agent.loop import COMPLETION_FAILURE_REPLY, AgentLoop
from app.core.agent.models import ChatTurn, ToolName
from app.core.agent.tools import ToolRegistry
from app.providers.llm import LLMProviderError
from app.services.server_wallet import ServerWallet

USER = "0x1111111111111111111111111111111111111111"
SMART_ACCOUNT = "0x2222222222222222222222222222222222222222"
RECIPIENT = "0x3333333333333333333333333333333333333333"


def make_llm(*responses):
    llm = MagicMock()
    llm.complete = AsyncMock(side_effect=list(responses))
    return llm


def make_registry():
    wallets = MagicMock()
    wallets.get = AsyncMock(
        return_value=ServerWallet(address="0x9999999999999999999999999999999999999999",
                                  smartAccountAddress=SMART_ACCOUNT)
    )
    return ToolRegistry(server_wallets=wallets, allocator=MagicMock(), weather=MagicMock())


def send_draft(amount="100000"):
    return (
        '{"type": "toolcall", "toolname": "sendUSDCTransaction", '
        f'"parameters": {{"recipient": "{RECIPIENT}", "amount": "{amount}", "amountUSD": 0.1}}}}'
    )


# =============================================================================
# Plain Answer Tests
# =============================================================================

class TestPlainAnswers:
    """Drafts without a tool call are returned as-is."""

    @pytest.mark.asyncio
    async def test_text_draft_returned(self):
        llm = make_llm("Hi there!")
        loop = AgentLoop(llm, make_registry())

        reply = await loop.run("hello")

        assert reply.to_payload() == {"response": "Hi there!"}
        kwargs = llm.complete.await_args.kwargs
        assert kwargs == {"temperature": 0.1, "max_tokens": 500}

    @pytest.mark.asyncio
    async def test_history_is_windowed(self):
        llm = make_llm("ok")
        loop = AgentLoop(llm, make_registry(), history_window=2)
        history = [ChatTurn(role="user", content=f"turn {i}") for i in range(5)]

        await loop.run("latest", history)

        prompt = llm.complete.await_args.args[0]
        assert "turn 2" not in prompt
        assert "user: turn 3\nuser: turn 4\nUser: latest\nAssistant:" in prompt

    @pytest.mark.asyncio
    async def test_draft_failure_apologizes(self):
        llm = make_llm(LLMProviderError("down"))
        loop = AgentLoop(llm, make_registry())

        reply = await loop.run("hello")

        assert reply.response == COMPLETION_FAILURE_REPLY


# =============================================================================
# Tool Dispatch Tests
# =============================================================================

class TestToolDispatch:
    """Drafts with a tool call run the tool."""

    @pytest.mark.asyncio
    async def test_result_is_synthesized(self):
        llm = make_llm(
            '{"type": "toolcall", "toolname": "calculateMath", "parameters": {"expression": "6 * 7"}}',
            "6 times 7 is 42.",
        )
        loop = AgentLoop(llm, make_registry())

        reply = await loop.run("what is 6*7?")

        assert reply.response == "6 times 7 is 42."
        assert reply.tool_used.name == ToolName.CALCULATE_MATH
        assert reply.tool_used.result["result"] == 42
        synthesis = llm.complete.await_args_list[1]
        assert "Tool result:" in synthesis.args[0]
        assert synthesis.kwargs == {"temperature": 0.7, "max_tokens": 1000}

    @pytest.mark.asyncio
    async def test_tool_error_is_explained(self):
        llm = make_llm(
            '{"type": "toolcall", "toolname": "calculateMath", "parameters": {"expression": "1/0"}}',
            "You can't divide by zero.",
        )
        loop = AgentLoop(llm, make_registry())

        reply = await loop.run("1/0?")

        assert reply.response == "You can't divide by zero."
        assert reply.tool_used.error == "Division by zero"
        assert "Tool execution failed with error: Division by zero" in llm.complete.await_args.args[0]

    @pytest.mark.asyncio
    async def test_synthesis_failure_apologizes(self):
        llm = make_llm(
            '{"type": "toolcall", "toolname": "getCurrentTime", "parameters": {}}',
            LLMProviderError("down"),
        )
        loop = AgentLoop(llm, make_registry())

        reply = await loop.run("time?")

        assert reply.response == COMPLETION_FAILURE_REPLY
        assert reply.tool_used.name == ToolName.GET_CURRENT_TIME


# =============================================================================
# Deferred Fund Movement Tests
# =============================================================================

class TestDeferredExecution:
    """Fund movement tools hand a pending operation back without synthesis."""

    @pytest.mark.asyncio
    async def test_transfer_is_deferred(self):
        llm = make_llm(send_draft("100000"))
        loop = AgentLoop(llm, make_registry())

        reply = await loop.run("Send $0.10 USDC to 0x3333...", user_address=USER)
        payload = reply.to_payload()

        assert llm.complete.await_count == 1
        assert payload["executeClientSide"] is True
        assert "swapType" not in payload
        assert payload["transactionParams"] == {
            "recipient": RECIPIENT,
            "amount": "100000",
            "amountUSD": 0.1,
            "userAddress": USER,
            "smartAccountAddress": SMART_ACCOUNT,
        }
        assert payload["toolUsed"]["name"] == "sendUSDCTransaction"
        assert payload["toolUsed"]["result"]["executeClientSide"] is True

    @pytest.mark.asyncio
    async def test_swap_sets_swap_type(self):
        draft = (
            '{"type": "toolcall", "toolname": "swapUSDCForToken", "parameters": '
            '{"tokenAddress": "0x4200000000000000000000000000000000000006", "amount": "1000000", "amountUSD": 1}}'
        )
        loop = AgentLoop(make_llm(draft), make_registry())

        reply = await loop.run("buy WETH with $1", user_address=USER)

        assert reply.execute_client_side is True
        assert reply.swap_type == "usdc_to_token"
