"""
Model runtime providers

Supported:
- Ollama (local or remote)
"""

from .base import BaseProvider, ChatChunk, Message, ModelInfo, ToolInvocation
from .ollama import ModelCache, OllamaProvider

__all__ = [
    "BaseProvider",
    "ChatChunk",
    "Message",
    "ModelInfo",
    "ToolInvocation",
    "ModelCache",
    "OllamaProvider",
]
