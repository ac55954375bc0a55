#!/usr/bin/env python3
"""
ChatGPZ CLI - Main entry point for the chatgpz command
"""

import asyncio
import logging
import re
import sys

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__, ensure_data_dir
from .config import get_settings
from .core.errors import ModelRuntimeError

console = Console()

_TOOL_MARKER = re.compile(r'<!--TOOL_START:(\w+):(\{.*?\})-->([\s\S]*?)<!--TOOL_END-->')
_THINK = re.compile(r'<think>([\s\S]*?)</think>')


def setup_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@click.group(invoke_without_command=True)
@click.option('--version', '-v', is_flag=True, help='Show version')
@click.option('--debug', is_flag=True, help='Verbose logging')
@click.pass_context
def main(ctx, version, debug):
    """
    ChatGPZ - self-hosted chat over a local Ollama runtime.

    \b
    Examples:
        chatgpz serve                 # API at localhost:8080
        chatgpz chat "What's 15 * 7?" # Single query with tools
        chatgpz models                # Installed models
    """
    if version:
        click.echo(f"ChatGPZ v{__version__}")
        return

    setup_logging(debug)
    ensure_data_dir()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command()
@click.option('--host', default='127.0.0.1', help='Bind address (default: 127.0.0.1)')
@click.option('--port', default=8080, help='Port (default: 8080)')
def serve(host, port):
    """Run the HTTP API."""
    from .ui.app import run_server

    console.print(f"[bold]ChatGPZ[/bold] listening on http://{host}:{port}")
    run_server(host=host, port=port)


def _render(piece: str):
    """Print one stream piece, turning markers into readable blocks."""
    think = _THINK.fullmatch(piece)
    if think:
        console.print(Panel(think.group(1).strip(), title="thinking", style="dim"))
        return
    tool = _TOOL_MARKER.fullmatch(piece)
    if tool:
        name, args, text = tool.groups()
        console.print(Panel(text.strip(), title=f"{name} {args}", border_style="cyan"))
        return
    console.print(piece, end="", markup=False, highlight=False)


async def _run_chat(message: str, model: str, tools: bool):
    from .core.agent import Agent
    from .core.tool_executor import SkillContext
    from .providers import OllamaProvider
    from .providers.base import Message
    from .skills import build_registry

    settings = get_settings()
    provider = OllamaProvider(base_url=settings.ollama_host)
    async with httpx.AsyncClient() as http:
        registry = build_registry(SkillContext(settings=settings, http=http))
        agent = Agent(provider, registry, max_iterations=settings.max_tool_iterations)
        async for piece in agent.run([Message(role="user", content=message)], model or settings.model, tools):
            _render(piece)
    console.print()


@main.command()
@click.argument('message')
@click.option('--model', '-m', default=None, help='Model to use (default from settings)')
@click.option('--no-tools', is_flag=True, help='Disable tool calling')
def chat(message, model, no_tools):
    """Send a single message and stream the response."""
    try:
        asyncio.run(_run_chat(message, model, not no_tools))
    except ModelRuntimeError as e:
        console.print(f"[red]Model error:[/red] {e}")
        sys.exit(1)


@main.command()
def models():
    """List installed Ollama models."""
    from .providers import OllamaProvider

    settings = get_settings()
    provider = OllamaProvider(base_url=settings.ollama_host)
    try:
        installed = asyncio.run(provider.list_models())
    except ModelRuntimeError as e:
        console.print(f"[red]Ollama not available:[/red] {e}")
        sys.exit(1)

    if not installed:
        click.echo("No models installed.")
        click.echo("Install with: ollama pull <model>")
        return

    table = Table(title="Installed models")
    table.add_column("Model")
    table.add_column("Family")
    table.add_column("Params")
    table.add_column("Quant")
    for m in installed:
        table.add_row(m.id, m.family or "", m.parameter_size or "", m.quantization or "")
    console.print(table)


@main.command()
def tools():
    """List the tools offered to the model."""
    from .core.tool_executor import SkillContext
    from .skills import build_registry

    settings = get_settings()
    registry = build_registry(SkillContext(settings=settings, http=None))

    table = Table(title="Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    for schema in registry.schemas():
        func = schema["function"]
        table.add_row(func["name"], func["description"])
    console.print(table)


if __name__ == "__main__":
    main()
