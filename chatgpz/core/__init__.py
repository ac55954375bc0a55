"""Chat loop, tool execution and transcript handling."""
