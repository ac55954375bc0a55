"""
Streaming tool-call loop.

Drives bounded model/tool rounds for one chat request and multiplexes
thinking, content and tool results into a single text stream:

    <think>...</think>                                  buffered reasoning
    raw content tokens                                  forwarded as they arrive
    "\\n\\n"                                              before each tool batch
    <!--TOOL_START:name:{json args}-->text<!--TOOL_END-->   one per tool call

Supports both native tool calls and tool syntax written into the reply text.
"""

import logging
import re
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from ..providers.base import BaseProvider, Message, ToolInvocation
from .errors import ToolsUnsupported
from .tool_executor import ToolRegistry
from .tool_parser import extract_tool_calls
from .transcript import (
    append_assistant,
    append_finalization,
    append_tool_result,
    build_transcript,
    format_tool_marker,
)

logger = logging.getLogger("chatgpz.agent")

_THINK_BLOCK = re.compile(r'<think>.*?</think>', re.DOTALL)
_THINK_TAG = re.compile(r'</?think>')


class AgentPhase(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    STREAMING_CONTENT = "streaming_content"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


@dataclass
class OrchestrationState:
    """Loop-scoped state for one request. Never shared or persisted."""
    transcript: List[Message]
    iteration: int = 0
    content: str = ""
    thinking: str = ""
    pending_calls: List[ToolInvocation] = field(default_factory=list)
    phase: AgentPhase = AgentPhase.AWAITING_MODEL
    tool_rounds: int = 0
    native_tools: bool = True


def clean_content(text: str) -> str:
    """Remove thinking blocks (and stray think tags) from model text."""
    if not text:
        return ""
    text = _THINK_BLOCK.sub("", text)
    return _THINK_TAG.sub("", text).strip()


class Agent:
    """Tool-calling chat loop over a streaming model provider."""

    def __init__(
        self,
        provider: BaseProvider,
        registry: ToolRegistry,
        max_iterations: int = 10,
        think: Optional[bool] = None,
    ):
        self.provider = provider
        self.registry = registry
        self.max_iterations = max(1, max_iterations)
        self.think = think

    async def run(
        self,
        messages: List[Message],
        model: str,
        enable_tools: bool = True,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncIterator[str]:
        """
        Run the loop and yield text for the client as it is produced.

        Args:
            messages: Conversation history from the client
            model: Model name
            enable_tools: Offer tools to the model
            is_disconnected: Optional coroutine; the loop stops once it returns True

        Raises:
            ModelRuntimeError: The runtime failed; the stream should be aborted
        """
        state = OrchestrationState(transcript=build_transcript(messages, enable_tools))

        while state.iteration < self.max_iterations:
            state.iteration += 1
            final_round = state.iteration == self.max_iterations
            tools_on = enable_tools and not final_round

            if final_round and state.tool_rounds > 0:
                logger.info(f"Iteration budget reached ({self.max_iterations}), forcing a final answer")
                state.transcript = append_finalization(state.transcript)

            if await self._disconnected(is_disconnected):
                logger.info("Client disconnected, stopping before model call")
                return

            state.phase = AgentPhase.AWAITING_MODEL
            state.content = ""
            state.thinking = ""
            state.pending_calls = []

            logger.debug(f"Round {state.iteration}: model={model} tools={'on' if tools_on else 'off'}")
            async with aclosing(self._stream_round(state, model, tools_on)) as pieces:
                async for piece in pieces:
                    yield piece

            calls = self._collect_calls(state, tools_on)
            if not calls:
                state.phase = AgentPhase.DONE
                return

            state.phase = AgentPhase.EXECUTING_TOOLS
            yield "\n\n"
            state.transcript = append_assistant(state.transcript, clean_content(state.content), calls)

            executed = 0
            async with aclosing(self.registry.execute_sequential(calls, should_stop=is_disconnected)) as results:
                async for call, result in results:
                    executed += 1
                    text = result.as_text()
                    yield format_tool_marker(call.name, call.arguments, text)
                    state.transcript = append_tool_result(state.transcript, call.name, text)
            if executed < len(calls):
                logger.info("Client disconnected, remaining tool calls skipped")
                return

            state.tool_rounds += 1

        state.phase = AgentPhase.DONE

    @staticmethod
    async def _disconnected(is_disconnected) -> bool:
        if is_disconnected is None:
            return False
        return bool(await is_disconnected())

    async def _stream_round(self, state: OrchestrationState, model: str, tools_on: bool) -> AsyncIterator[str]:
        schemas = self.registry.schemas() if tools_on and state.native_tools else None
        emitted = False
        try:
            async with aclosing(self._consume(state, model, schemas)) as pieces:
                async for piece in pieces:
                    emitted = True
                    yield piece
        except ToolsUnsupported:
            if not schemas or emitted:
                raise
            # Retry without schemas; text extraction still applies
            logger.warning(f"Model {model} does not support native tools, falling back to text tool calls")
            state.native_tools = False
            state.content = ""
            state.thinking = ""
            state.pending_calls = []
            async with aclosing(self._consume(state, model, None)) as pieces:
                async for piece in pieces:
                    yield piece

    async def _consume(self, state: OrchestrationState, model: str, schemas) -> AsyncIterator[str]:
        """
        Stream one model call into the state.

        Thinking is emitted as one <think> block right before the first content
        token. Thinking that arrives after content has started is held and
        emitted as a second block when the stream ends, so content tokens are
        never interleaved with reasoning.
        """
        stream = self.provider.chat_stream(model, state.transcript, tools=schemas, think=self.think)
        thinking_buffer = []
        try:
            async for chunk in stream:
                if chunk.thinking:
                    state.thinking += chunk.thinking
                    thinking_buffer.append(chunk.thinking)
                if chunk.tool_calls:
                    state.pending_calls.extend(chunk.tool_calls)
                if chunk.content:
                    if thinking_buffer and not state.content:
                        yield f"<think>{''.join(thinking_buffer)}</think>"
                        thinking_buffer = []
                    state.phase = AgentPhase.STREAMING_CONTENT
                    state.content += chunk.content
                    yield chunk.content
            if thinking_buffer:
                yield f"<think>{''.join(thinking_buffer)}</think>"
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _collect_calls(self, state: OrchestrationState, tools_on: bool) -> List[ToolInvocation]:
        """Native calls win; otherwise look for tool syntax in the reply text."""
        if not tools_on:
            return []
        known = set(self.registry.names())
        calls = [c for c in state.pending_calls if c.name in known]
        dropped = len(state.pending_calls) - len(calls)
        if dropped:
            logger.debug(f"Dropped {dropped} native tool call(s) for unknown tools")
        if not calls:
            calls = extract_tool_calls(clean_content(state.content), known)
            if calls:
                logger.debug(f"Extracted {len(calls)} tool call(s) from reply text")
        if calls:
            logger.info(f"Round {state.iteration}: {', '.join(c.name for c in calls)}")
        return calls
