"""
Tool Registry for the chat agent.

Each tool is one row of a static table: a definition (name, description,
parameters) and the handler that runs it. Adding a tool means adding a row
and a handler; the agent loop does not change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Coroutine, Dict, List, Optional

from ...config import settings
from ...providers.openweather import OpenWeatherProvider, get_weather_provider
from ...services.address import require_address, require_positive_units, to_units
from ...services.server_wallet import ServerWalletService, get_server_wallet_service
from ..permissions.allocator import PermissionAllocator
from ..recovery.errors import InputValidationError
from . import math_eval
from .models import (
    PendingOperation,
    SwapParams,
    ToolCall,
    ToolDefinition,
    ToolName,
    ToolParameter,
    ToolParameterType,
    TransferParams,
)


@dataclass
class RegisteredTool:
    """A tool registered in the registry with its definition and handler."""
    definition: ToolDefinition
    handler: Callable[..., Coroutine[Any, Any, Any]]
    requires_address: bool = False
    deferred: bool = False


def _format_usd(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _parse_usd(value: Any, field: str = "amountUSD") -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InputValidationError(f"{field} must be a number", field=field)
    if amount <= 0:
        raise InputValidationError(f"{field} must be greater than 0", field=field)
    return amount


class ToolRegistry:
    """
    Registry of the tools the completion backend can call, keyed by ToolName.
    """

    def __init__(
        self,
        *,
        server_wallets: Optional[ServerWalletService] = None,
        allocator: Optional[PermissionAllocator] = None,
        weather: Optional[OpenWeatherProvider] = None,
        clock: Callable[[], datetime] = lambda: datetime.now().astimezone(),
        logger: Optional[logging.Logger] = None,
    ):
        self._tools: Dict[ToolName, RegisteredTool] = {}
        self._server_wallets = server_wallets
        self._allocator = allocator
        self._weather = weather
        self._clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._register_default_tools()

    @property
    def server_wallets(self) -> ServerWalletService:
        return self._server_wallets or get_server_wallet_service()

    @property
    def allocator(self) -> PermissionAllocator:
        if self._allocator is None:
            self._allocator = PermissionAllocator()
        return self._allocator

    @property
    def weather(self) -> OpenWeatherProvider:
        return self._weather or get_weather_provider()

    def register(
        self,
        definition: ToolDefinition,
        handler: Callable[..., Coroutine[Any, Any, Any]],
        *,
        requires_address: bool = False,
        deferred: bool = False,
    ) -> None:
        self._tools[definition.name] = RegisteredTool(
            definition=definition,
            handler=handler,
            requires_address=requires_address,
            deferred=deferred,
        )

    def get_definitions(self) -> List[ToolDefinition]:
        return [tool.definition for tool in self._tools.values()]

    def get_tool(self, name: ToolName) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def has_tool(self, name: ToolName) -> bool:
        return name in self._tools

    async def execute(self, tool_call: ToolCall, user_address: Optional[str] = None) -> Any:
        """Run a tool call, injecting the session address where the tool needs it.

        Returns the handler's result, which for deferred tools may be a
        :class:`PendingOperation`. Handler errors propagate to the caller.
        """
        tool = self.get_tool(tool_call.toolname)
        if tool is None:
            raise InputValidationError(f"Unknown tool: {tool_call.toolname}", field="toolname")

        parameters = dict(tool_call.parameters)
        if tool.requires_address and user_address and not parameters.get("userAddress"):
            parameters["userAddress"] = user_address
            tool_call.parameters = parameters

        for name in tool.definition.required_parameters:
            if parameters.get(name) in (None, ""):
                raise InputValidationError(f"Missing required parameter: {name}", field=name)

        known = {param.name for param in tool.definition.parameters}
        arguments = {key: value for key, value in parameters.items() if key in known}

        self.logger.info("Executing tool %s", tool_call.toolname.value)
        return await tool.handler(**arguments)

    def _register_default_tools(self) -> None:
        self.register(
            ToolDefinition(
                name=ToolName.SEND_USDC,
                description=(
                    "Send USDC tokens to another wallet address on the Base network. "
                    "Use this tool when users want to transfer, send, or pay USDC to someone. "
                    "The transfer is executed by the user's client using their spend permissions."
                ),
                parameters=[
                    ToolParameter(
                        name="recipient",
                        type=ToolParameterType.STRING,
                        description="The wallet address to send USDC to (must be a valid Ethereum address starting with 0x)",
                    ),
                    ToolParameter(
                        name="amount",
                        type=ToolParameterType.STRING,
                        description=(
                            "Amount of USDC to send in smallest units (6 decimals). "
                            "For example, '1000000' = 1 USDC, '500000' = 0.5 USDC"
                        ),
                    ),
                    ToolParameter(
                        name="amountUSD",
                        type=ToolParameterType.NUMBER,
                        description="Amount in USD for user-friendly display (e.g., 1.5 for $1.50)",
                    ),
                    ToolParameter(
                        name="userAddress",
                        type=ToolParameterType.STRING,
                        description="The user's wallet address (automatically populated from session if not provided)",
                        required=False,
                    ),
                ],
            ),
            self._handle_send_usdc,
            requires_address=True,
            deferred=True,
        )

        self.register(
            ToolDefinition(
                name=ToolName.SWAP_USDC,
                description=(
                    "Swap USDC for another token on the Base network and deliver the purchased tokens "
                    "to the user's wallet. Use this when users want to buy, swap, or exchange USDC for a token."
                ),
                parameters=[
                    ToolParameter(
                        name="tokenAddress",
                        type=ToolParameterType.STRING,
                        description="Contract address of the token to buy (0x...)",
                    ),
                    ToolParameter(
                        name="amount",
                        type=ToolParameterType.STRING,
                        description="Amount of USDC to spend in smallest units (6 decimals)",
                    ),
                    ToolParameter(
                        name="amountUSD",
                        type=ToolParameterType.NUMBER,
                        description="Amount in USD for user-friendly display",
                    ),
                    ToolParameter(
                        name="tokenSymbol",
                        type=ToolParameterType.STRING,
                        description="Symbol of the token to buy, if known (e.g., 'WETH')",
                        required=False,
                    ),
                    ToolParameter(
                        name="userAddress",
                        type=ToolParameterType.STRING,
                        description="The user's wallet address (automatically populated from session if not provided)",
                        required=False,
                    ),
                ],
            ),
            self._handle_swap_usdc,
            requires_address=True,
            deferred=True,
        )

        self.register(
            ToolDefinition(
                name=ToolName.CONVERT_USD_TO_USDC,
                description=(
                    "Convert USD amount to USDC token units (6 decimals). "
                    "Use this when you need to calculate USDC amounts for transactions."
                ),
                parameters=[
                    ToolParameter(
                        name="usdAmount",
                        type=ToolParameterType.NUMBER,
                        description="Amount in USD (e.g., 1.5 for $1.50)",
                    ),
                ],
            ),
            self._handle_convert_usd,
        )

        self.register(
            ToolDefinition(
                name=ToolName.GET_SPEND_PERMISSIONS,
                description=(
                    "Get complete spend permission objects with signatures for a user. "
                    "Use this when the user asks about their spend permissions, allowances or limits."
                ),
                parameters=[
                    ToolParameter(
                        name="userAddress",
                        type=ToolParameterType.STRING,
                        description="The user's wallet address",
                        required=False,
                    ),
                    ToolParameter(
                        name="spenderAddress",
                        type=ToolParameterType.STRING,
                        description="The spender's wallet address (defaults to the user's server smart account)",
                        required=False,
                    ),
                ],
            ),
            self._handle_get_spend_permissions,
            requires_address=True,
        )

        self.register(
            ToolDefinition(
                name=ToolName.GET_WEATHER,
                description=(
                    "Get current weather information for a specific location. Use this tool when users ask "
                    "about temperature, weather conditions, humidity, wind, or any weather-related information for a city."
                ),
                parameters=[
                    ToolParameter(
                        name="location",
                        type=ToolParameterType.STRING,
                        description="City name or location (e.g., 'New York', 'London', 'Hyderabad')",
                    ),
                ],
            ),
            self._handle_get_weather,
        )

        self.register(
            ToolDefinition(
                name=ToolName.GET_CURRENT_TIME,
                description="Get the current time and date",
            ),
            self._handle_get_current_time,
        )

        self.register(
            ToolDefinition(
                name=ToolName.CALCULATE_MATH,
                description="Perform mathematical calculations",
                parameters=[
                    ToolParameter(
                        name="expression",
                        type=ToolParameterType.STRING,
                        description="Mathematical expression to calculate (e.g., '2 + 2', '10 * 5')",
                    ),
                ],
            ),
            self._handle_calculate_math,
        )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _unauthenticated(self, action: str) -> Dict[str, Any]:
        return {
            "success": False,
            "requiresAuth": True,
            "message": f"{action} requires user authentication",
            "instructions": ["Please connect your wallet to the application first"],
        }

    async def _handle_send_usdc(
        self,
        recipient: str,
        amount: Any,
        amountUSD: Any,
        userAddress: Optional[str] = None,
    ) -> Any:
        recipient = require_address(recipient, "recipient")
        units = require_positive_units(amount, "amount")
        amount_usd = _parse_usd(amountUSD)

        if not userAddress:
            return self._unauthenticated("USDC transfer")

        wallet = await self.server_wallets.get(userAddress)
        if wallet is None:
            return {
                "success": False,
                "requiresSetup": True,
                "message": "Server wallet not found. Please refresh and try again.",
            }

        return PendingOperation(
            kind="transfer",
            message=f"Preparing to send ${_format_usd(amountUSD)} USDC to {recipient}...",
            transaction_params=TransferParams(
                recipient=recipient,
                amount=str(units),
                amountUSD=amount_usd,
                userAddress=userAddress,
                smartAccountAddress=wallet.smart_account_address,
            ),
        )

    async def _handle_swap_usdc(
        self,
        tokenAddress: str,
        amount: Any,
        amountUSD: Any,
        tokenSymbol: Optional[str] = None,
        userAddress: Optional[str] = None,
    ) -> Any:
        token_address = require_address(tokenAddress, "tokenAddress")
        units = require_positive_units(amount, "amount")
        amount_usd = _parse_usd(amountUSD)

        if not userAddress:
            return self._unauthenticated("Token swap")

        wallet = await self.server_wallets.get(userAddress)
        if wallet is None:
            return {
                "success": False,
                "requiresSetup": True,
                "message": "Server wallet not found. Please refresh and try again.",
            }

        label = tokenSymbol or token_address
        return PendingOperation(
            kind="swap",
            message=f"Preparing to swap ${_format_usd(amountUSD)} USDC for {label}...",
            transaction_params=SwapParams(
                tokenAddress=token_address,
                tokenSymbol=tokenSymbol,
                amount=str(units),
                amountUSD=amount_usd,
                userAddress=userAddress,
                smartAccountAddress=wallet.smart_account_address,
            ),
        )

    async def _handle_convert_usd(self, usdAmount: Any) -> Dict[str, Any]:
        usd = _parse_usd(usdAmount, field="usdAmount")
        units = to_units(usdAmount, settings.usdc_decimals)
        if units <= 0:
            raise InputValidationError("usdAmount is smaller than one USDC unit", field="usdAmount")
        return {
            "usdAmount": usd,
            "usdcAmount": str(units),
            "usdcAmountFormatted": f"{usd:.6f} USDC",
            "decimals": settings.usdc_decimals,
            "calculation": f"{usdAmount} USD = {units} USDC units ({usdAmount} * 10^6)",
        }

    async def _handle_get_spend_permissions(
        self,
        userAddress: Optional[str] = None,
        spenderAddress: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not userAddress:
            return self._unauthenticated("Viewing spend permissions")

        if not spenderAddress:
            wallet = await self.server_wallets.get(userAddress)
            if wallet is None:
                return {
                    "success": False,
                    "requiresSetup": True,
                    "message": "Server wallet not found. Please refresh and try again.",
                }
            spenderAddress = wallet.smart_account_address

        user = require_address(userAddress, "userAddress")
        spender = require_address(spenderAddress, "spenderAddress")
        permissions = await self.allocator.list_permissions(user, spender)
        return {
            "success": True,
            "permissions": [p.model_dump(mode="json", by_alias=True) for p in permissions],
            "count": len(permissions),
            "message": f"Found {len(permissions)} spend permission(s) with full details and signatures",
            "details": {
                "userAddress": user,
                "spenderAddress": spender,
                "token": "USDC",
                "network": "Base",
            },
        }

    async def _handle_get_weather(self, location: str) -> Dict[str, Any]:
        return await self.weather.current(location)

    async def _handle_get_current_time(self) -> Dict[str, Any]:
        now = self._clock()
        return {
            "currentTime": now.strftime("%H:%M:%S"),
            "currentDate": now.strftime("%Y-%m-%d"),
            "timestamp": now.isoformat(),
            "timezone": now.tzname(),
        }

    async def _handle_calculate_math(self, expression: str) -> Dict[str, Any]:
        try:
            result = math_eval.evaluate(expression)
        except math_eval.MathExpressionError as exc:
            raise InputValidationError(str(exc), field="expression")
        return {
            "expression": expression,
            "result": result,
            "type": "number",
        }
