"""
ChatGPZ - Self-hosted chat over a local Ollama runtime

A streaming chat backend with:
- Conversation persistence
- Native and text-embedded tool calling
- Sandboxed tools (calculator, weather, web search, files, code)
- Automatic conversation titles
"""

__version__ = "0.1.0"

from pathlib import Path


# User data directory (for config, database, etc.)
def get_data_dir() -> Path:
    """Get the user data directory for ChatGPZ."""
    import os

    custom_dir = os.environ.get("CHATGPZ_DATA_DIR")
    if custom_dir:
        return Path(custom_dir)

    return Path.home() / ".chatgpz"


def ensure_data_dir() -> Path:
    """Ensure the data directory exists with required structure."""
    data_dir = get_data_dir()

    (data_dir / "config").mkdir(parents=True, exist_ok=True)
    (data_dir / "db").mkdir(parents=True, exist_ok=True)

    return data_dir
