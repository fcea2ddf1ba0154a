"""
Chat agent: tool registry, draft classification and the tool-calling loop.
"""

from .models import (
    AgentReply,
    ChatTurn,
    PendingOperation,
    SwapParams,
    ToolCall,
    ToolDefinition,
    ToolName,
    ToolUsage,
    TransferParams,
)
from .classifier import Classification, classify_completion, strip_code_fence
from .tools import RegisteredTool, ToolRegistry
from .loop import AgentLoop, get_agent_loop

__all__ = [
    "AgentReply",
    "ChatTurn",
    "PendingOperation",
    "SwapParams",
    "ToolCall",
    "ToolDefinition",
    "ToolName",
    "ToolUsage",
    "TransferParams",
    "Classification",
    "classify_completion",
    "strip_code_fence",
    "RegisteredTool",
    "ToolRegistry",
    "AgentLoop",
    "get_agent_loop",
]
