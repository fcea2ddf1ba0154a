"""
Tests for the chat agent's tool registry.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.agent.models import PendingOperation, SwapParams, ToolCall, ToolName, TransferParams
from app.core.agent.tools import ToolRegistry
from app.core.recovery import InputValidationError
from app.services.server_wallet import ServerWallet

USER = "0x1111111111111111111111111111111111111111"
SMART_ACCOUNT = "0x2222222222222222222222222222222222222222"
RECIPIENT = "0x3333333333333333333333333333333333333333"
TOKEN = "0x4200000000000000000000000000000000000006"


def make_registry(wallet=True, permissions=None, weather=None):
    wallets = MagicMock()
    wallets.get = AsyncMock(
        return_value=ServerWallet(address="0x9999999999999999999999999999999999999999",
                                  smartAccountAddress=SMART_ACCOUNT) if wallet else None
    )
    allocator = MagicMock()
    allocator.list_permissions = AsyncMock(return_value=permissions or [])
    weather_provider = MagicMock()
    weather_provider.current = AsyncMock(return_value=weather or {"temperature": 21})
    return ToolRegistry(
        server_wallets=wallets,
        allocator=allocator,
        weather=weather_provider,
        clock=lambda: datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc),
    )


def call(name, **parameters):
    return ToolCall(type="toolcall", toolname=name, parameters=parameters)


# =============================================================================
# Registry Tests
# =============================================================================

class TestRegistry:
    """Tests for registration and dispatch."""

    def test_all_tools_registered(self):
        registry = make_registry()
        assert {d.name for d in registry.get_definitions()} == set(ToolName)

    def test_deferred_tools(self):
        registry = make_registry()
        deferred = {name for name in ToolName if registry.get_tool(name).deferred}
        assert deferred == {ToolName.SEND_USDC, ToolName.SWAP_USDC}

    @pytest.mark.asyncio
    async def test_missing_required_parameter(self):
        registry = make_registry()

        with pytest.raises(InputValidationError, match="Missing required parameter: recipient"):
            await registry.execute(call("sendUSDCTransaction", amount="100000", amountUSD=0.1), USER)

    @pytest.mark.asyncio
    async def test_unknown_parameters_are_dropped(self):
        registry = make_registry()
        result = await registry.execute(call("getCurrentTime", timezone="UTC"))
        assert result["currentDate"] == "2024-05-01"


# =============================================================================
# Fund Movement Tool Tests
# =============================================================================

class TestSendUsdc:
    """Tests for sendUSDCTransaction."""

    @pytest.mark.asyncio
    async def test_returns_pending_transfer(self):
        registry = make_registry()
        tool_call = call("sendUSDCTransaction", recipient=RECIPIENT, amount="100000", amountUSD=0.1)

        result = await registry.execute(tool_call, USER)

        assert isinstance(result, PendingOperation)
        assert result.kind == "transfer"
        assert result.message == f"Preparing to send $0.1 USDC to {RECIPIENT}..."
        params = result.transaction_params
        assert isinstance(params, TransferParams)
        assert params.amount == "100000"
        assert params.user_address == USER
        assert params.smart_account_address == SMART_ACCOUNT
        # The session address is injected into the call
        assert tool_call.parameters["userAddress"] == USER

    @pytest.mark.asyncio
    async def test_whole_dollar_amount_formatting(self):
        registry = make_registry()
        result = await registry.execute(
            call("sendUSDCTransaction", recipient=RECIPIENT, amount="5000000", amountUSD=5.0), USER
        )
        assert result.message.startswith("Preparing to send $5 USDC")

    @pytest.mark.asyncio
    async def test_requires_session(self):
        registry = make_registry()
        result = await registry.execute(
            call("sendUSDCTransaction", recipient=RECIPIENT, amount="100000", amountUSD=0.1)
        )
        assert result["requiresAuth"] is True

    @pytest.mark.asyncio
    async def test_requires_server_wallet(self):
        registry = make_registry(wallet=False)
        result = await registry.execute(
            call("sendUSDCTransaction", recipient=RECIPIENT, amount="100000", amountUSD=0.1), USER
        )
        assert result["requiresSetup"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params",
        [
            {"recipient": "0x123", "amount": "100000", "amountUSD": 0.1},
            {"recipient": RECIPIENT, "amount": "0", "amountUSD": 0.1},
            {"recipient": RECIPIENT, "amount": "1.5", "amountUSD": 0.1},
            {"recipient": RECIPIENT, "amount": "100000", "amountUSD": "free"},
        ],
    )
    async def test_invalid_input(self, params):
        registry = make_registry()
        with pytest.raises(InputValidationError):
            await registry.execute(call("sendUSDCTransaction", **params), USER)


class TestSwapUsdc:
    """Tests for swapUSDCForToken."""

    @pytest.mark.asyncio
    async def test_returns_pending_swap(self):
        registry = make_registry()

        result = await registry.execute(
            call("swapUSDCForToken", tokenAddress=TOKEN, amount="2000000", amountUSD=2, tokenSymbol="WETH"),
            USER,
        )

        assert result.kind == "swap"
        assert result.swap_type == "usdc_to_token"
        assert isinstance(result.transaction_params, SwapParams)
        assert result.transaction_params.token_symbol == "WETH"
        assert result.message == "Preparing to swap $2 USDC for WETH..."
        payload = result.to_payload()
        assert payload["transactionParams"]["tokenAddress"] == TOKEN
        assert payload["executeClientSide"] is True


# =============================================================================
# Informational Tool Tests
# =============================================================================

class TestInformationalTools:
    """Tests for tools that return results directly."""

    @pytest.mark.asyncio
    async def test_convert_usd(self):
        result = await make_registry().execute(call("convertUSDToUSDC", usdAmount=1.5))

        assert result["usdcAmount"] == "1500000"
        assert result["usdcAmountFormatted"] == "1.500000 USDC"
        assert result["decimals"] == 6

    @pytest.mark.asyncio
    async def test_convert_rejects_dust(self):
        with pytest.raises(InputValidationError):
            await make_registry().execute(call("convertUSDToUSDC", usdAmount=0.0000001))

    @pytest.mark.asyncio
    async def test_spend_permissions_default_to_smart_account(self):
        registry = make_registry()

        result = await registry.execute(call("getUserSpendPermissionsWithSignatures"), USER)

        assert result["success"] is True
        assert result["count"] == 0
        registry.allocator.list_permissions.assert_awaited_once_with(USER, SMART_ACCOUNT)

    @pytest.mark.asyncio
    async def test_spend_permission_errors_propagate(self):
        registry = make_registry()
        registry.allocator.list_permissions.side_effect = RuntimeError("registry down")

        with pytest.raises(RuntimeError, match="registry down"):
            await registry.execute(call("getUserSpendPermissionsWithSignatures"), USER)

    @pytest.mark.asyncio
    async def test_weather(self):
        registry = make_registry(weather={"location": "London", "temperature": 12})

        result = await registry.execute(call("getWeatherDetails", location="London"))

        assert result["temperature"] == 12
        registry.weather.current.assert_awaited_once_with("London")

    @pytest.mark.asyncio
    async def test_current_time(self):
        result = await make_registry().execute(call("getCurrentTime"))
        assert result["currentTime"] == "12:30:00"
        assert result["timezone"] == "UTC"

    @pytest.mark.asyncio
    async def test_calculate(self):
        result = await make_registry().execute(call("calculateMath", expression="2 + 2"))
        assert result == {"expression": "2 + 2", "result": 4, "type": "number"}

    @pytest.mark.asyncio
    async def test_calculate_rejects_code(self):
        with pytest.raises(InputValidationError):
            await make_registry().execute(call("calculateMath", expression="__import__('os')"))
