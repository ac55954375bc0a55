"""
Conversation transcript builder.

Pure helpers around the message list replayed to the model on each round.
None of them mutate their input; each returns a new list.
"""

import json
from typing import Any, Iterable, List, Optional

from ..providers.base import Message, ToolInvocation
from .errors import InvalidInput

ROLES = ("user", "assistant", "system", "tool")

SYSTEM_PROMPT = """You are a helpful assistant with access to tools.

Guidelines for using tools:
- Only call a tool when it is needed to answer the question. Do not repeat a tool call you have already made with the same arguments.
- If a request is ambiguous, be specific in your tool arguments (e.g. include the country with a city name) or ask the user to clarify.
- Use at most a few tool calls per answer; prefer one well-formed call over many guesses.
- After you receive tool results, always finish with a clear natural-language answer for the user that summarises what the tools returned."""

FINALIZATION_PROMPT = (
    "You have reached the maximum number of tool calls. Do not call any more tools. "
    "Using the information gathered so far, give the user your final answer now."
)

TOOL_START = "<!--TOOL_START:{name}:{args}-->"
TOOL_END = "<!--TOOL_END-->"


def normalize_history(raw: Any) -> List[Message]:
    """Validate a client-supplied message list into Message objects."""
    if not isinstance(raw, list) or not raw:
        raise InvalidInput("Model and messages are required")

    messages = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise InvalidInput(f"Message {i} must be an object")
        role = item.get("role")
        content = item.get("content", "")
        if role not in ROLES:
            raise InvalidInput(f"Message {i} has invalid role: {role!r}")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise InvalidInput(f"Message {i} content must be a string")

        tool_calls = None
        raw_calls = item.get("tool_calls") or item.get("toolCalls")
        if isinstance(raw_calls, list):
            tool_calls = []
            for call in raw_calls:
                func = call.get("function", call) if isinstance(call, dict) else {}
                if isinstance(func, dict) and func.get("name"):
                    args = func.get("arguments") or {}
                    tool_calls.append(ToolInvocation(func["name"], args if isinstance(args, dict) else {}))

        messages.append(Message(
            role=role,
            content=content,
            tool_calls=tool_calls or None,
            thinking=item.get("thinking") or None,
            tool_name=item.get("tool_name") or None,
        ))
    return messages


def build_transcript(history: Iterable[Message], enable_tools: bool) -> List[Message]:
    """Initial working transcript: system prompt (tools only) then the history."""
    transcript = list(history)
    if enable_tools:
        transcript.insert(0, Message(role="system", content=SYSTEM_PROMPT))
    return transcript


def append_assistant(transcript: List[Message], content: str,
                     tool_calls: Optional[List[ToolInvocation]] = None) -> List[Message]:
    return transcript + [Message(role="assistant", content=content, tool_calls=list(tool_calls) if tool_calls else None)]


def append_tool_result(transcript: List[Message], name: str, result: str) -> List[Message]:
    """Append the plain tool output (never the stream marker)."""
    return transcript + [Message(role="tool", content=result, tool_name=name)]


def append_finalization(transcript: List[Message]) -> List[Message]:
    return transcript + [Message(role="user", content=FINALIZATION_PROMPT)]


def format_tool_marker(name: str, args: dict, text: str) -> str:
    """Client-facing wrapper the UI re-parses into a tool card."""
    return TOOL_START.format(name=name, args=json.dumps(args, ensure_ascii=False)) + text + TOOL_END
