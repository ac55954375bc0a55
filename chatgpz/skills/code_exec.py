"""Execute short Python snippets in a separate, restricted interpreter"""

import asyncio
import json
import logging
from pathlib import Path

from ..core.errors import ExecutionTimeout, InvalidArguments, ToolExecutionError

logger = logging.getLogger("chatgpz.skills.code_exec")

RUNNER = Path(__file__).with_name("sandbox_runner.py")
DEFAULT_TIMEOUT_MS = 5000
MAX_TIMEOUT_MS = 30000


async def execute_code(ctx, code: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> str:
    """
    Execute Python code and return the result. The code runs in a sandboxed interpreter with limited capabilities (math, json, datetime, re, statistics, collections, itertools, functools are available; imports and file access are not). print() output is captured. The value of the last expression is returned.

    Args:
        code: Python code to execute
        timeout_ms: Maximum execution time in milliseconds (default: 5000, max: 30000)
    """
    if not code or not code.strip():
        raise InvalidArguments("No code provided")
    timeout_ms = min(timeout_ms if timeout_ms and timeout_ms > 0 else DEFAULT_TIMEOUT_MS, MAX_TIMEOUT_MS)

    proc = await asyncio.create_subprocess_exec(
        ctx.python_executable, "-I", str(RUNNER),
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(code.encode("utf-8")), timeout_ms / 1000)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning(f"Code execution killed after {timeout_ms}ms")
        raise ExecutionTimeout(f"Execution timed out after {timeout_ms}ms")

    try:
        outcome = json.loads(stdout.decode("utf-8"))
    except ValueError:
        detail = stderr.decode("utf-8", errors="replace").strip().splitlines()
        raise ToolExecutionError(detail[-1] if detail else f"Sandbox exited with code {proc.returncode}")

    if not outcome.get("ok"):
        raise ToolExecutionError(outcome.get("error") or "Code execution failed")

    logs = outcome.get("logs") or []
    result = outcome.get("result")

    output = ""
    if logs:
        output += "Console output:\n" + "\n".join(logs) + "\n\n"
    if result is not None:
        output += f"Result: {result}"
    elif not logs:
        output = "Code executed successfully (no output)"
    return output.strip()
