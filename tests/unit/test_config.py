"""
Unit tests for configuration loading.
"""

import json

import pytest
from pydantic import ValidationError

from mcp_server_runtime.config.settings import (
    Config,
    HttpConfig,
    ServerConfig,
    create_default_config,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "MCP_SERVER_CONFIG_PATH",
        "MCP_SERVER_LOG_LEVEL",
        "MCP_SERVER_HOST",
        "MCP_SERVER_PORT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestConfigModels:
    """Test configuration defaults and validation."""

    def test_defaults(self):
        config = Config()

        assert config.http.host == "127.0.0.1"
        assert config.http.port == 4000
        assert config.http.path == "/"
        assert config.http.max_body_bytes == 1_000_000
        assert config.server.log_level == "INFO"
        assert config.server.protocol_version == "2025-06-18"
        assert config.server_info.name == "mcp-server-runtime"

    def test_log_level_is_uppercased(self):
        assert ServerConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            ServerConfig(log_level="LOUD")

    def test_invalid_port(self):
        with pytest.raises(ValidationError):
            HttpConfig(port=70000)

    def test_relative_path_rejected(self):
        with pytest.raises(ValidationError):
            HttpConfig(path="mcp")

    def test_unknown_top_level_key_rejected(self):
        with pytest.raises(ValidationError):
            Config(database={"url": "x"})


class TestLoadConfig:
    """Test loading from files and the environment."""

    def test_no_file(self):
        assert load_config() == Config()

    def test_from_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"http": {"port": 8080}, "server_info": {"name": "notes"}}))

        config = load_config(path)

        assert config.http.port == 8080
        assert config.http.host == "127.0.0.1"
        assert config.server_info.name == "notes"

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"server": {"log_level": "error"}}))
        monkeypatch.setenv("MCP_SERVER_CONFIG_PATH", str(path))

        assert load_config().server.log_level == "ERROR"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.json")

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"http": {"host": "10.0.0.1", "port": 8080}}))
        monkeypatch.setenv("MCP_SERVER_HOST", "0.0.0.0")
        monkeypatch.setenv("MCP_SERVER_PORT", "9000")
        monkeypatch.setenv("MCP_SERVER_LOG_LEVEL", "warning")

        config = load_config(path)

        assert config.http.host == "0.0.0.0"
        assert config.http.port == 9000
        assert config.server.log_level == "WARNING"

    def test_invalid_port_in_environment(self, monkeypatch):
        monkeypatch.setenv("MCP_SERVER_PORT", "eighty")

        with pytest.raises(ValueError, match="Invalid MCP_SERVER_PORT"):
            load_config()


class TestCreateDefaultConfig:
    """Test default config generation."""

    def test_round_trips_through_load(self, tmp_path):
        path = tmp_path / "nested" / "config.json"

        create_default_config(path)

        assert json.loads(path.read_text())["http"]["port"] == 4000
        assert load_config(path) == Config()
