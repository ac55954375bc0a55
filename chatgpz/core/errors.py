"""Exception hierarchy shared by the tool registry, agent loop and web layer."""


class ChatGPZError(Exception):
    """Base class for all ChatGPZ errors."""


class InvalidInput(ChatGPZError):
    """Missing or malformed request fields. Surfaced as HTTP 400."""


class ModelRuntimeError(ChatGPZError):
    """The model runtime failed. Aborts the current response stream."""


class ToolsUnsupported(ModelRuntimeError):
    """The runtime rejected a request because the model cannot call tools."""


class ToolExecutionError(ChatGPZError):
    """A tool failed. Converted to a failed ToolResult, never propagated."""


class InvalidArguments(ToolExecutionError):
    pass


class InvalidExpression(ToolExecutionError):
    pass


class FetchError(ToolExecutionError):
    pass


class ExecutionTimeout(ToolExecutionError):
    pass


class AccessDenied(ToolExecutionError):
    pass


class FileTooLarge(ToolExecutionError):
    pass


class LocationNotFound(ToolExecutionError):
    pass


class ConfigurationError(ToolExecutionError):
    """A tool needs an external endpoint that is not configured."""
