"""File operation skills restricted to configured directories"""

import asyncio
import base64
import os
from pathlib import Path
from typing import List

from ..core.errors import AccessDenied, FileTooLarge, InvalidArguments, ToolExecutionError

MAX_READ_SIZE = 5 * 1024 * 1024
MAX_WRITE_SIZE = 1 * 1024 * 1024


def _within(path: Path, roots: List[str]) -> bool:
    return any(path == Path(root) or path.is_relative_to(root) for root in roots)


def check_path(path: str, allowed: List[str]) -> Path:
    """
    Resolve a requested path against the allowed directories.

    The first check is purely lexical and touches nothing on disk, so a path
    outside every allowed directory is rejected before any stat or open.
    Symlinks are checked afterwards against the resolved location.
    """
    if not path or not path.strip():
        raise InvalidArguments("No file path provided")

    denied = AccessDenied(f"Access denied. File must be in one of: {', '.join(allowed)}")
    candidate = Path(os.path.abspath(os.path.expanduser(path.strip())))
    if not _within(candidate, allowed):
        raise denied

    real_roots = [os.path.realpath(root) for root in allowed]
    if not _within(Path(os.path.realpath(candidate)), real_roots):
        raise denied
    return candidate


def _read(target: Path, encoding: str) -> str:
    size = target.stat().st_size
    if size > MAX_READ_SIZE:
        raise FileTooLarge(f"File too large ({size} bytes). Maximum: {MAX_READ_SIZE} bytes")
    if encoding == "base64":
        return base64.b64encode(target.read_bytes()).decode("ascii")
    return target.read_text(encoding="utf-8", errors="replace")


def _write(target: Path, content: str, append: bool):
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "a" if append else "w", encoding="utf-8") as f:
        f.write(content)


async def read_file(ctx, path: str, encoding: str = "utf-8") -> str:
    """
    Read the contents of a file.

    Args:
        path: Path to the file to read
        encoding: File encoding (default: utf-8). Use base64 for binary files.
    """
    target = check_path(path, ctx.settings.allowed_paths)
    try:
        content = await asyncio.to_thread(_read, target, encoding)
    except FileNotFoundError:
        raise ToolExecutionError(f"File not found: {path}")
    except IsADirectoryError:
        raise ToolExecutionError(f"Not a file: {path}")
    except PermissionError:
        raise ToolExecutionError(f"Permission denied: {path}")
    return f"Contents of {path}:\n\n{content}"


async def write_file(ctx, path: str, content: str, append: bool = False) -> str:
    """
    Write content to a file.

    Args:
        path: Path to the file to write
        content: Content to write to the file
        append: If true, append to file instead of overwriting (default: false)
    """
    target = check_path(path, ctx.settings.allowed_paths)
    size = len(content.encode("utf-8"))
    if size > MAX_WRITE_SIZE:
        raise FileTooLarge(f"Content too large ({size} bytes). Maximum: {MAX_WRITE_SIZE} bytes")

    try:
        await asyncio.to_thread(_write, target, content, append)
    except IsADirectoryError:
        raise ToolExecutionError(f"Not a file: {path}")
    except PermissionError:
        raise ToolExecutionError(f"Permission denied: {path}")
    return f"Successfully {'appended to' if append else 'wrote'} file: {path}"
