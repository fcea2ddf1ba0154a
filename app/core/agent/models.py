"""Agent loop data model: tool definitions, tool calls and replies."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ToolName(str, Enum):
    SEND_USDC = "sendUSDCTransaction"
    SWAP_USDC = "swapUSDCForToken"
    CONVERT_USD_TO_USDC = "convertUSDToUSDC"
    GET_SPEND_PERMISSIONS = "getUserSpendPermissionsWithSignatures"
    GET_WEATHER = "getWeatherDetails"
    GET_CURRENT_TIME = "getCurrentTime"
    CALCULATE_MATH = "calculateMath"


class ToolParameterType(str, Enum):
    """Supported parameter types for tool definitions"""
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"


class ToolParameter(BaseModel):
    """Definition of a single tool parameter"""
    name: str
    type: ToolParameterType
    description: str
    required: bool = True


class ToolDefinition(BaseModel):
    """Definition of a tool the completion backend may call"""
    name: ToolName
    description: str
    parameters: List[ToolParameter] = Field(default_factory=list)

    @property
    def required_parameters(self) -> List[str]:
        return [param.name for param in self.parameters if param.required]

    def to_json_schema(self) -> Dict[str, Any]:
        """JSON-schema-like parameter block embedded in the prompt"""
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": {
                param.name: {"type": param.type.value, "description": param.description}
                for param in self.parameters
            },
        }
        if self.required_parameters:
            schema["required"] = self.required_parameters
        return schema


class ToolCall(BaseModel):
    """Structured intent extracted from a draft completion"""
    type: Literal["toolcall"]
    toolname: ToolName
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ChatTurn(BaseModel):
    role: str
    content: str


class TransferParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipient: str
    amount: str
    amount_usd: float = Field(alias="amountUSD")
    user_address: str = Field(alias="userAddress")
    smart_account_address: str = Field(alias="smartAccountAddress")


class SwapParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token_address: str = Field(alias="tokenAddress")
    token_symbol: Optional[str] = Field(default=None, alias="tokenSymbol")
    amount: str
    amount_usd: float = Field(alias="amountUSD")
    user_address: str = Field(alias="userAddress")
    smart_account_address: str = Field(alias="smartAccountAddress")


class PendingOperation(BaseModel):
    """A fund movement the client must execute in the user's session.

    Returned by deferred tools in place of a result: the outcome is unknown
    until the client runs it, so the loop stops without synthesizing.
    """

    kind: Literal["transfer", "swap"]
    message: str
    transaction_params: Union[TransferParams, SwapParams]

    @property
    def swap_type(self) -> Optional[str]:
        return "usdc_to_token" if self.kind == "swap" else None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "executeClientSide": True,
            "kind": self.kind,
            "message": self.message,
            "transactionParams": self.transaction_params.model_dump(by_alias=True, exclude_none=True),
        }


class ToolUsage(BaseModel):
    name: ToolName
    parameters: Dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    error: Optional[str] = None


class AgentReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    execute_client_side: Optional[bool] = Field(default=None, alias="executeClientSide")
    swap_type: Optional[str] = Field(default=None, alias="swapType")
    transaction_params: Optional[Dict[str, Any]] = Field(default=None, alias="transactionParams")
    tool_used: Optional[ToolUsage] = Field(default=None, alias="toolUsed")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
