"""
Text tool-call extraction.

Some models do not emit structured tool calls and instead write them into the
reply text. Three shapes are recognised:

    calculator[ARGS]{"expression": "2+2"}
    <tool_call>{"name": "calculator", "arguments": {"expression": "2+2"}}</tool_call>
    {"tool": "calculator", "arguments": {"expression": "2+2"}}

The bare-JSON form also accepts "function"/"name" for the tool name,
"params"/"parameters" for the arguments, and the nested
{"function": {"name": ..., "arguments": ...}} form.
"""

import json
import logging
import re
from typing import Iterable, List, Optional, Tuple

from ..providers.base import ToolInvocation

logger = logging.getLogger("chatgpz.tool_parser")

_ARGS_MARKER = re.compile(r'(\w+)\[ARGS\]\s*(?=\{)')
_TOOL_CALL_TAG = re.compile(r'<tool_call>([\s\S]*?)</tool_call>', re.IGNORECASE)

NAME_KEYS = ("tool", "function", "name")
ARG_KEYS = ("arguments", "params", "parameters")

Span = Tuple[int, int, Optional[ToolInvocation]]


def match_braces(text: str, start: int) -> int:
    """
    Return the index just past the object opened at ``text[start]``.

    Braces inside JSON strings are ignored. Returns -1 if the object is
    never closed.
    """
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def _load_object(raw: str) -> Optional[dict]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _decode_args(args) -> Optional[dict]:
    if args is None:
        return {}
    if isinstance(args, str):
        if not args.strip():
            return {}
        args = _load_object(args)
    return args if isinstance(args, dict) else None


def _invocation_from(data: dict, require_args: bool) -> Optional[ToolInvocation]:
    """Build an invocation from a decoded JSON object, or None if it isn't one."""
    nested = data.get("function")
    if isinstance(nested, dict):
        name = nested.get("name")
        raw_args = next((nested[k] for k in ARG_KEYS if k in nested), None)
        has_args = any(k in nested for k in ARG_KEYS)
    else:
        name = next((data[k] for k in NAME_KEYS if isinstance(data.get(k), str)), None)
        raw_args = next((data[k] for k in ARG_KEYS if k in data), None)
        has_args = any(k in data for k in ARG_KEYS)

    if not isinstance(name, str) or not name.strip():
        return None
    if require_args and not has_args:
        return None
    args = _decode_args(raw_args)
    if args is None:
        return None
    return ToolInvocation(name=name.strip(), arguments=args)


def _args_marker_spans(text: str) -> List[Span]:
    spans = []
    for match in _ARGS_MARKER.finditer(text):
        brace = match.end()
        end = match_braces(text, brace)
        if end == -1:
            continue
        args = _load_object(text[brace:end])
        call = ToolInvocation(name=match.group(1), arguments=args) if args is not None else None
        spans.append((match.start(), end, call))
    return spans


def _tag_spans(text: str) -> List[Span]:
    spans = []
    for match in _TOOL_CALL_TAG.finditer(text):
        body = match.group(1)
        call = None
        brace = body.find("{")
        if brace != -1:
            end = match_braces(body, brace)
            data = _load_object(body[brace:end]) if end != -1 else None
            if data is not None:
                call = _invocation_from(data, require_args=False)
        spans.append((match.start(), match.end(), call))
    return spans


def _bare_json_spans(text: str) -> List[Span]:
    spans = []
    pos = text.find("{")
    while pos != -1:
        end = match_braces(text, pos)
        if end == -1:
            break
        data = _load_object(text[pos:end])
        call = _invocation_from(data, require_args=True) if data is not None else None
        if call is not None:
            spans.append((pos, end, call))
            pos = text.find("{", end)
        else:
            pos = text.find("{", pos + 1)
    return spans


def _mask(text: str, spans: Iterable[Span]) -> str:
    chars = list(text)
    for start, end, _ in spans:
        chars[start:end] = " " * (end - start)
    return "".join(chars)


def find_tool_spans(text: str) -> List[Span]:
    """
    Locate every tool-call syntax in ``text``, ordered by position.

    Spans claimed by the [ARGS] and <tool_call> forms are blanked out before
    the bare-JSON scan, so a single invocation is found once.
    """
    if not text:
        return []
    spans = _args_marker_spans(text)
    spans += _tag_spans(_mask(text, spans))
    spans += _bare_json_spans(_mask(text, spans))
    return sorted(spans, key=lambda s: s[0])


def extract_tool_calls(text: str, known_names: Iterable[str]) -> List[ToolInvocation]:
    """Extract tool invocations from free text, keeping only known tool names."""
    known = set(known_names)
    calls = []
    for _, _, call in find_tool_spans(text):
        if call is None:
            continue
        if call.name not in known:
            logger.debug(f"Dropping text tool call for unknown tool {call.name!r}")
            continue
        calls.append(call)
    return calls


def strip_tool_syntax(text: str) -> str:
    """Remove text tool-call syntax, leaving the prose around it."""
    spans = find_tool_spans(text)
    if not spans:
        return text.strip() if text else ""
    pieces = []
    last = 0
    for start, end, _ in spans:
        pieces.append(text[last:start])
        last = end
    pieces.append(text[last:])
    return re.sub(r'\n{3,}', '\n\n', "".join(pieces)).strip()


__all__ = ["ToolInvocation", "extract_tool_calls", "strip_tool_syntax", "find_tool_spans", "match_braces"]
