"""Tests for configuration loading, env overlay and validation."""

import dataclasses
import tomllib

import pytest

from devoupsagent.config import (
    DEFAULT_HEARTBEAT_INTERVAL_MS,
    AgentConfig,
    ConfigError,
    init_config,
    load_config,
    resolve_config_path,
)

_ENV_VARS = (
    "AGENT_CONFIG",
    "AGENT_BACKEND_URL",
    "AGENT_TOKEN",
    "AGENT_HOSTNAME",
    "AGENT_SERVER_ID",
    "AGENT_HEARTBEAT_INTERVAL",
    "AGENT_RECONNECT_DELAY",
    "AGENT_RECONNECT_MAX_DELAY",
    "AGENT_COMMAND_TIMEOUT",
    "AGENT_COMMAND_MAX_OUTPUT",
    "AGENT_CONTROL_SOCKET",
    "AGENT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _valid() -> AgentConfig:
    return AgentConfig(backend_url="wss://api.example.com/agent", token="t", hostname="h")


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path / "absent.toml")
        assert config.heartbeat_interval == DEFAULT_HEARTBEAT_INTERVAL_MS
        assert config.reconnect_delay == 5000
        assert config.reconnect_max_delay == 60000
        assert config.server_id is None
        assert config.executor.timeout == 30.0
        assert config.control.enabled

    def test_reads_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[backend]\nurl = "ws://b.test"\ntoken = "abc"\nhostname = "web-1"\n'
            "[timing]\nheartbeat_interval = 1500\n"
            "[control]\nenabled = false\n"
        )
        config = load_config(path)
        assert config.backend_url == "ws://b.test"
        assert config.token == "abc"
        assert config.hostname == "web-1"
        assert config.heartbeat_interval == 1500
        assert config.heartbeat_interval_s == 1.5
        assert config.reconnect_delay == 5000
        assert not config.control.enabled
        assert config.config_path == path

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text('[backend]\nurl = "ws://file.test"\nhostname = "from-file"\n')
        monkeypatch.setenv("AGENT_BACKEND_URL", "wss://env.test/ws")
        monkeypatch.setenv("AGENT_TOKEN", "secret")
        monkeypatch.setenv("AGENT_SERVER_ID", "srv-42")
        monkeypatch.setenv("AGENT_RECONNECT_DELAY", "250")
        monkeypatch.setenv("AGENT_LOG_LEVEL", "debug")

        config = load_config(path)
        assert config.backend_url == "wss://env.test/ws"
        assert config.token == "secret"
        assert config.hostname == "from-file"
        assert config.server_id == "srv-42"
        assert config.reconnect_delay == 250
        assert config.log_level == "debug"

    def test_env_config_path(self, tmp_path, monkeypatch):
        path = tmp_path / "elsewhere.toml"
        monkeypatch.setenv("AGENT_CONFIG", str(path))
        assert resolve_config_path() == path
        assert resolve_config_path(tmp_path / "explicit.toml") == tmp_path / "explicit.toml"

    def test_non_integer_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AGENT_HEARTBEAT_INTERVAL", "soon")
        with pytest.raises(ConfigError, match="AGENT_HEARTBEAT_INTERVAL"):
            load_config(tmp_path / "absent.toml")

    def test_bad_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[backend\nurl = ")
        with pytest.raises(ConfigError, match="Cannot parse"):
            load_config(path)


class TestValidate:
    def test_valid(self):
        _valid().validate()

    def test_missing_required(self):
        with pytest.raises(ConfigError) as exc:
            AgentConfig().validate()
        message = str(exc.value)
        assert "AGENT_BACKEND_URL" in message
        assert "AGENT_TOKEN" in message
        assert "AGENT_HOSTNAME" in message

    @pytest.mark.parametrize(
        "field_name", ["heartbeat_interval", "reconnect_delay", "reconnect_max_delay"]
    )
    def test_non_positive_duration(self, field_name):
        config = dataclasses.replace(_valid(), **{field_name: 0})
        with pytest.raises(ConfigError, match=field_name):
            config.validate()

    @pytest.mark.parametrize("value", ["abc", 1.5, True])
    def test_non_integer_duration(self, value):
        config = dataclasses.replace(_valid(), heartbeat_interval=value)
        with pytest.raises(ConfigError, match="heartbeat_interval must be an integer"):
            config.validate()

    def test_non_integer_from_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[backend]\nurl = "ws://b.test"\ntoken = "t"\nhostname = "h"\n'
            '[timing]\nheartbeat_interval = "abc"\n'
        )
        with pytest.raises(ConfigError, match="heartbeat_interval"):
            load_config(path).validate()

    def test_scheme(self):
        config = dataclasses.replace(_valid(), backend_url="https://api.example.com")
        with pytest.raises(ConfigError, match="ws:// or wss://"):
            config.validate()


class TestRedaction:
    def test_strips_credentials_and_query(self):
        config = AgentConfig(backend_url="wss://user:pw@api.example.com:8443/agent?token=x")
        assert config.redacted_backend_url == "wss://api.example.com:8443/agent"


class TestInitConfig:
    def test_writes_parseable_defaults(self, tmp_path):
        path = init_config(tmp_path / "nested" / "config.toml")
        assert path.exists()
        data = tomllib.loads(path.read_text())
        assert data["timing"]["heartbeat_interval"] == 30000
        assert data["control"]["enabled"] is True
