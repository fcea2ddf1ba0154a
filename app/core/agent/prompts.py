"""Prompt templates for the draft and synthesis completions."""

from __future__ import annotations

import json
from typing import Any, Iterable, Sequence

from .models import ChatTurn, ToolCall, ToolDefinition

TOOL_CALL_INSTRUCTIONS = """When a user asks something that requires using one of these tools, respond with a JSON object in this exact format:
{
  "type": "toolcall",
  "toolname": "tool_name_here",
  "parameters": {
    "param1": "value1",
    "param2": "value2"
  }
}

If the user's query doesn't require any tools, respond normally with a conversational answer.

Important:
- Only respond with the JSON toolcall format when you need to use a tool
- DO NOT wrap the JSON in markdown code blocks (no code formatting)
- Return ONLY the raw JSON object, nothing else
- Make sure the JSON is valid and properly formatted
- Include all required parameters for the tool
- USDC amounts are always given in smallest units (6 decimals): $0.10 is "100000"
- If no tools are needed, respond conversationally

Note: When tools provide data, be contextually aware of what the user specifically asked for:
- If they ask for "temperature", only mention temperature
- If they ask for "weather", you can provide broader weather information
- If they ask "is it raining", focus on precipitation
- Always be concise and answer only what was requested"""


def build_tools_prompt(definitions: Iterable[ToolDefinition]) -> str:
    described = "\n\n".join(
        f"- {definition.name.value}: {definition.description}\n"
        f"  Parameters: {json.dumps(definition.to_json_schema(), indent=2)}"
        for definition in definitions
    )
    return f"You have access to the following tools:\n\n{described}\n\n{TOOL_CALL_INSTRUCTIONS}"


def compose_prompt(
    definitions: Iterable[ToolDefinition],
    history: Sequence[ChatTurn],
    message: str,
    window: int,
) -> str:
    """Tool catalogue, the last ``window`` turns and the new message."""
    prompt = build_tools_prompt(definitions) + "\n\nConversation:\n"
    recent = list(history)[-window:] if window > 0 else []
    for turn in recent:
        prompt += f"{turn.role}: {turn.content}\n"
    prompt += f"User: {message}\nAssistant:"
    return prompt


def synthesis_prompt(prompt: str, tool_call: ToolCall, result: Any) -> str:
    return (
        f"{prompt}\n\n"
        f"Tool was called: {tool_call.toolname.value}\n"
        f"Tool result: {json.dumps(result, indent=2, default=str)}\n\n"
        "Based on the tool result above, provide a helpful and natural response to the user's query.\n\n"
        "IMPORTANT: Only answer what the user specifically asked for. Be contextually aware"
    )


def tool_error_prompt(prompt: str, tool_call: ToolCall, error: str) -> str:
    return (
        f"{prompt}\n\n"
        f"Tool was called: {tool_call.toolname.value}\n"
        f"Tool parameters: {json.dumps(tool_call.parameters, indent=2, default=str)}\n"
        f"Tool execution failed with error: {error}\n\n"
        "The tool failed to execute. Please provide a helpful response explaining what went wrong "
        "and suggest alternatives. For example, if it's a location error, suggest using a more "
        "specific city name or checking the spelling."
    )
