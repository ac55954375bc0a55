"""Base provider interface for the model runtime."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Dict, Any


@dataclass
class ToolInvocation:
    """A request from the model to run one tool."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"function": {"name": self.name, "arguments": self.arguments}}


@dataclass
class Message:
    """A chat message."""
    role: str  # "user", "assistant", "system", "tool"
    content: str
    tool_calls: Optional[List[ToolInvocation]] = None
    thinking: Optional[str] = None
    tool_name: Optional[str] = None

    def to_dict(self) -> dict:
        """Render in the runtime's wire format."""
        data = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.thinking:
            data["thinking"] = self.thinking
        if self.tool_name:
            data["tool_name"] = self.tool_name
        return data


@dataclass
class ChatChunk:
    """One piece of a streamed model response."""
    content: str = ""
    thinking: str = ""
    tool_calls: List[ToolInvocation] = field(default_factory=list)
    done: bool = False


@dataclass
class ModelInfo:
    """Information about an installed model."""
    id: str
    size: Optional[int] = None
    family: Optional[str] = None
    parameter_size: Optional[str] = None
    quantization: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class BaseProvider(ABC):
    """Abstract base class for model runtimes."""

    name: str = "base"
    supports_streaming: bool = True
    supports_tools: bool = False

    @abstractmethod
    def chat_stream(
        self,
        model: str,
        messages: List[Message],
        tools: Optional[List[dict]] = None,
        options: Optional[dict] = None,
        think: Optional[bool] = None,
    ) -> AsyncIterator[ChatChunk]:
        """
        Stream a chat response.

        Args:
            model: Model name
            messages: Full transcript to send
            tools: Tool schemas, or None to disable tool calling
            options: Runtime options (temperature, num_predict, ...)
            think: Ask thinking-capable models to emit reasoning separately

        Yields:
            ChatChunk objects as they arrive
        """

    @abstractmethod
    async def chat(self, model: str, messages: List[Message], options: Optional[dict] = None) -> str:
        """Send a non-streaming chat request and return the reply text."""

    @abstractmethod
    async def list_models(self) -> List[ModelInfo]:
        """List installed models."""

    async def pull_model(self, name: str) -> None:
        raise NotImplementedError(f"{self.name} does not support pulling models")

    async def delete_model(self, name: str) -> None:
        raise NotImplementedError(f"{self.name} does not support deleting models")

    async def is_configured(self) -> bool:
        """Check if the runtime is reachable."""
        return True
