"""Configuration loading - settings.yaml in the data dir, overridden by env vars."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv

from . import ensure_data_dir, get_data_dir

# Load .env file
load_dotenv()

DEFAULT_OLLAMA_HOST = "http://127.0.0.1:11434"
DEFAULT_MODEL = "qwen3:4b"
DEFAULT_ALLOWED_PATHS = "/tmp,./workspace"
DEFAULT_MAX_TOOL_ITERATIONS = 10


def load_config(path: Path = None) -> dict:
    config_path = path or get_data_dir() / "config" / "settings.yaml"
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


def save_config(config: dict, path: Path = None):
    config_path = path or get_data_dir() / "config" / "settings.yaml"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False)


def _parse_paths(value) -> List[str]:
    """Accept a comma separated string or a YAML list and return absolute paths."""
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = list(value or [])
    return [os.path.abspath(os.path.expanduser(p.strip())) for p in parts if p and p.strip()]


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Resolved runtime settings.

    Environment variables win over settings.yaml, which wins over defaults.
    """
    ollama_host: str = DEFAULT_OLLAMA_HOST
    model: str = DEFAULT_MODEL
    title_model: Optional[str] = None
    max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS
    allowed_paths: List[str] = field(default_factory=lambda: _parse_paths(DEFAULT_ALLOWED_PATHS))
    image_api_url: str = ""
    db_url: Optional[str] = None
    auth_enabled: bool = False
    model_cache_ttl: float = 60.0

    @classmethod
    def from_config(cls, config: dict = None, env: dict = None) -> "Settings":
        config = config or {}
        env = os.environ if env is None else env
        tools_cfg = config.get("tools", {}) or {}
        agent_cfg = config.get("agent", {}) or {}

        allowed = env.get("TOOL_FILE_ALLOWED_PATHS") or tools_cfg.get("allowed_paths") or DEFAULT_ALLOWED_PATHS
        iterations = env.get("MAX_TOOL_ITERATIONS") or agent_cfg.get("max_tool_iterations") or DEFAULT_MAX_TOOL_ITERATIONS

        return cls(
            ollama_host=env.get("OLLAMA_HOST") or config.get("ollama_host") or DEFAULT_OLLAMA_HOST,
            model=env.get("CHATGPZ_MODEL") or config.get("model") or DEFAULT_MODEL,
            title_model=env.get("TITLE_MODEL") or config.get("title_model") or None,
            max_tool_iterations=max(1, int(iterations)),
            allowed_paths=_parse_paths(allowed),
            image_api_url=(env.get("IMAGE_GENERATION_API_URL") or tools_cfg.get("image_api_url") or "").rstrip("/"),
            db_url=env.get("CHATGPZ_DB_URL") or config.get("db_url") or None,
            auth_enabled=_as_bool(env.get("CHATGPZ_AUTH_ENABLED", config.get("auth_enabled", False))),
            model_cache_ttl=float(config.get("model_cache_ttl", 60.0)),
        )

    def database_url(self) -> str:
        if self.db_url:
            return self.db_url
        return f"sqlite:///{ensure_data_dir() / 'db' / 'chatgpz.db'}"


def get_settings() -> Settings:
    """Load settings.yaml and apply environment overrides."""
    return Settings.from_config(load_config())
