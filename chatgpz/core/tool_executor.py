"""
Tool registry and executor.

Maps tool names to async skill functions, generates the tool schemas sent to
the model, and executes tool calls one at a time. Every failure is converted
into a failed ToolResult so a broken tool can never abort the chat loop.
"""

import inspect
import logging
import re
import sys
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from ..config import Settings
from ..providers.base import ToolInvocation
from .errors import InvalidArguments, ToolExecutionError

logger = logging.getLogger("chatgpz.tools")


@dataclass
class ToolResult:
    """Result of a single tool execution."""
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None
    tool_name: str = ""
    args: dict = field(default_factory=dict)
    duration: float = 0.0

    def as_text(self) -> str:
        """Plain text fed back to the model."""
        if self.success:
            return self.result or ""
        return f"Error: {self.error}"


@dataclass
class SkillContext:
    """Resources shared by all skills for the lifetime of the process."""
    settings: Settings
    http: httpx.AsyncClient
    python_executable: str = sys.executable


_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
}


def _parse_docstring(func: Callable) -> Dict[str, Any]:
    """Parse a Google-style docstring into description and per-param docs."""
    doc = inspect.getdoc(func) or ""
    if not doc:
        return {"description": f"Function {func.__name__}", "params": {}}

    description_lines = []
    params = {}
    section = "description"
    current = None

    for line in doc.split("\n"):
        stripped = line.strip()

        if stripped.lower() in ("args:", "arguments:", "parameters:", "params:"):
            section = "args"
            continue
        elif stripped.lower() in ("returns:", "return:", "raises:", "examples:", "note:", "notes:"):
            section = "other"
            continue

        if section == "description":
            if not stripped and description_lines:
                section = "other"  # First paragraph only
                continue
            description_lines.append(stripped)
        elif section == "args":
            match = re.match(r'^(\w+)\s*(?:\([^)]*\))?\s*:\s*(.+)', stripped)
            if match:
                current = match.group(1)
                params[current] = match.group(2).strip()
            elif stripped and current:
                params[current] += " " + stripped

    description = " ".join(l for l in description_lines if l).strip()
    return {"description": description, "params": params}


class ToolRegistry:
    """
    Registry of named async tools.

    Usage:
        registry = ToolRegistry(BUILT_IN_SKILLS, context)
        result = await registry.execute("calculator", {"expression": "2 + 2"})
    """

    def __init__(
        self,
        skills: Dict[str, Callable],
        context: SkillContext,
        enums: Dict[str, Dict[str, List[str]]] = None,
        notes: Dict[str, Callable[[Settings], str]] = None,
    ):
        self.skills = dict(skills)
        self.context = context
        self.enums = enums or {}
        self.notes = notes or {}
        self._schemas: Optional[List[dict]] = None

    def names(self) -> List[str]:
        return list(self.skills.keys())

    def __contains__(self, name: str) -> bool:
        return name in self.skills

    @staticmethod
    def _params(func: Callable) -> List[inspect.Parameter]:
        """Model-visible parameters (everything after the context argument)."""
        params = list(inspect.signature(func).parameters.values())
        return [p for p in params[1:] if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)]

    def _schema_for(self, name: str, func: Callable) -> dict:
        parsed = _parse_docstring(func)
        properties = {}
        required = []

        for param in self._params(func):
            prop = {
                "type": _JSON_TYPES.get(param.annotation, "string"),
                "description": parsed["params"].get(param.name, f"The {param.name} parameter"),
            }
            allowed = self.enums.get(name, {}).get(param.name)
            if allowed:
                prop["enum"] = list(allowed)
            properties[param.name] = prop
            if param.default is inspect.Parameter.empty:
                required.append(param.name)

        description = parsed["description"] or f"Function {name}"
        note = self.notes.get(name)
        if note:
            extra = note(self.context.settings)
            if extra:
                description = f"{description} {extra}"

        return {
            "type": "function",
            "function": {
                "name": name,
                "description": description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }

    def schemas(self) -> List[dict]:
        """Tool definitions in the runtime's function-calling format."""
        if self._schemas is None:
            self._schemas = [self._schema_for(name, func) for name, func in self.skills.items()]
        return self._schemas

    def _bind_args(self, name: str, func: Callable, args: dict) -> dict:
        """Keep known arguments, coerce scalar types, check required ones."""
        bound = {}
        for param in self._params(func):
            if param.name not in args or args[param.name] is None:
                if param.default is inspect.Parameter.empty:
                    raise InvalidArguments(f"Missing required argument '{param.name}' for {name}")
                continue
            value = args[param.name]
            try:
                if param.annotation is int and not isinstance(value, bool):
                    value = int(float(value))
                elif param.annotation is float and not isinstance(value, bool):
                    value = float(value)
                elif param.annotation is bool and isinstance(value, str):
                    value = value.strip().lower() in ("1", "true", "yes")
                elif param.annotation is str and not isinstance(value, str):
                    value = str(value)
            except (TypeError, ValueError):
                raise InvalidArguments(f"Invalid value for '{param.name}': {value!r}")
            bound[param.name] = value

        ignored = set(args) - set(bound) - {p.name for p in self._params(func)}
        if ignored:
            logger.debug(f"Ignoring unknown arguments for {name}: {sorted(ignored)}")
        return bound

    async def execute(self, name: str, args: dict = None) -> ToolResult:
        """Execute one tool. Never raises for tool-level failures."""
        args = args if isinstance(args, dict) else {}
        start = time.time()
        func = self.skills.get(name)
        if func is None:
            return ToolResult(success=False, error=f"Unknown tool: {name}", tool_name=name, args=args)

        logger.info(f"Running tool {name} {args}")
        try:
            output = await func(self.context, **self._bind_args(name, func, args))
            result = ToolResult(
                success=True,
                result=str(output) if output is not None else "",
                tool_name=name,
                args=args,
                duration=time.time() - start,
            )
        except ToolExecutionError as e:
            logger.warning(f"Tool {name} failed: {e}")
            result = ToolResult(success=False, error=str(e) or e.__class__.__name__,
                                tool_name=name, args=args, duration=time.time() - start)
        except Exception as e:
            logger.warning(f"Tool {name} raised unexpectedly", exc_info=True)
            result = ToolResult(success=False, error=str(e) or e.__class__.__name__,
                                tool_name=name, args=args, duration=time.time() - start)

        logger.debug(f"Tool {name} finished in {result.duration:.2f}s (success={result.success})")
        return result

    async def execute_sequential(
        self,
        tool_calls: List[ToolInvocation],
        should_stop: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncIterator[Tuple[ToolInvocation, ToolResult]]:
        """
        Execute tool calls one after another, in order.

        Yields each (call, result) pair as soon as the call finishes, so the
        caller can stream results. If ``should_stop`` returns True before a
        call starts, that call and the rest are skipped.
        """
        for i, call in enumerate(tool_calls):
            if should_stop is not None and await should_stop():
                logger.info(f"Stopped before {call.name}, skipping {len(tool_calls) - i} tool call(s)")
                return
            yield call, await self.execute(call.name, call.arguments)
