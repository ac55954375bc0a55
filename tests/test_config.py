"""Tests for chatgpz/config.py"""

import os

from chatgpz import ensure_data_dir
from chatgpz.config import DEFAULT_MODEL, Settings, load_config, save_config


class TestSettings:

    def test_defaults(self):
        settings = Settings.from_config({}, env={})
        assert settings.model == DEFAULT_MODEL
        assert settings.max_tool_iterations == 10
        assert settings.allowed_paths == ["/tmp", os.path.abspath("./workspace")]
        assert settings.image_api_url == ""
        assert settings.auth_enabled is False

    def test_env_overrides(self):
        settings = Settings.from_config({"model": "from-yaml"}, env={
            "OLLAMA_HOST": "http://gpu-box:11434",
            "CHATGPZ_MODEL": "llama3:8b",
            "MAX_TOOL_ITERATIONS": "3",
            "TOOL_FILE_ALLOWED_PATHS": "/data, ~/notes ,",
            "IMAGE_GENERATION_API_URL": "http://sd:7860/",
            "CHATGPZ_AUTH_ENABLED": "true",
        })
        assert settings.ollama_host == "http://gpu-box:11434"
        assert settings.model == "llama3:8b"
        assert settings.max_tool_iterations == 3
        assert settings.allowed_paths == ["/data", os.path.expanduser("~/notes")]
        assert settings.image_api_url == "http://sd:7860"
        assert settings.auth_enabled is True

    def test_yaml_values(self):
        settings = Settings.from_config({
            "model": "qwen3:8b",
            "title_model": "qwen3:0.6b",
            "agent": {"max_tool_iterations": 4},
            "tools": {"allowed_paths": ["/srv/files"], "image_api_url": "http://sd"},
            "auth_enabled": True,
        }, env={})
        assert settings.model == "qwen3:8b"
        assert settings.title_model == "qwen3:0.6b"
        assert settings.max_tool_iterations == 4
        assert settings.allowed_paths == ["/srv/files"]
        assert settings.image_api_url == "http://sd"
        assert settings.auth_enabled is True

    def test_iterations_at_least_one(self):
        assert Settings.from_config({}, env={"MAX_TOOL_ITERATIONS": "0"}).max_tool_iterations == 1

    def test_database_url(self, tmp_path, monkeypatch):
        assert Settings(db_url="sqlite://").database_url() == "sqlite://"

        monkeypatch.setenv("CHATGPZ_DATA_DIR", str(tmp_path / "data"))
        url = Settings().database_url()
        assert url == f"sqlite:///{tmp_path / 'data' / 'db' / 'chatgpz.db'}"
        assert (tmp_path / "data" / "db").is_dir()

    def test_data_dir_layout(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CHATGPZ_DATA_DIR", str(tmp_path / "data"))
        data_dir = ensure_data_dir()
        assert sorted(p.name for p in data_dir.iterdir()) == ["config", "db"]


class TestConfigFile:

    def test_round_trip(self, tmp_path):
        path = tmp_path / "config" / "settings.yaml"
        save_config({"model": "m", "tools": {"allowed_paths": ["/a"]}}, path)
        assert load_config(path) == {"model": "m", "tools": {"allowed_paths": ["/a"]}}

    def test_missing_file(self, tmp_path):
        assert load_config(tmp_path / "nope.yaml") == {}
