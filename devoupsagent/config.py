"""Configuration loading: TOML file + AGENT_* environment variable overlay."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "devoupsagent"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"

DEFAULT_HEARTBEAT_INTERVAL_MS = 30_000
DEFAULT_RECONNECT_DELAY_MS = 5_000
DEFAULT_RECONNECT_MAX_DELAY_MS = 60_000
DEFAULT_COMMAND_TIMEOUT_MS = 30_000
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024


def _default_socket_path() -> str:
    """Return default control socket path using XDG_RUNTIME_DIR or /tmp fallback."""
    runtime = os.environ.get("XDG_RUNTIME_DIR")
    if runtime:
        return str(Path(runtime) / "devoupsagent.sock")
    return f"/tmp/devoupsagent-{os.getuid()}.sock"


DEFAULT_CONFIG_TOML = """\
[backend]
url = ""
# Prefer the AGENT_TOKEN environment variable over storing the token here
token = ""
hostname = ""
server_id = ""

[timing]
# All values in milliseconds
heartbeat_interval = 30000
reconnect_delay = 5000
reconnect_max_delay = 60000

[executor]
timeout = 30000
max_output_bytes = 10485760

[control]
enabled = true
# socket_path defaults to XDG_RUNTIME_DIR or /tmp

[logging]
level = "info"
"""


class ConfigError(ValueError):
    """Configuration is missing required values or holds invalid ones."""


@dataclass(frozen=True)
class ExecutorConfig:
    timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000


@dataclass(frozen=True)
class ControlConfig:
    enabled: bool = True
    socket_path: str = ""

    @property
    def resolved_socket_path(self) -> str:
        return self.socket_path or _default_socket_path()


@dataclass(frozen=True)
class AgentConfig:
    """Agent settings, loaded once and shared read-only.

    Durations are kept in milliseconds, matching the AGENT_* variables;
    the ``*_s`` properties give seconds for asyncio timers.
    """

    backend_url: str = ""
    token: str = ""
    hostname: str = ""
    server_id: str | None = None
    heartbeat_interval: int = DEFAULT_HEARTBEAT_INTERVAL_MS
    reconnect_delay: int = DEFAULT_RECONNECT_DELAY_MS
    reconnect_max_delay: int = DEFAULT_RECONNECT_MAX_DELAY_MS
    log_level: str = "info"
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    control: ControlConfig = field(default_factory=ControlConfig)
    config_path: Path = DEFAULT_CONFIG_PATH

    @property
    def heartbeat_interval_s(self) -> float:
        return self.heartbeat_interval / 1000

    @property
    def reconnect_delay_s(self) -> float:
        return self.reconnect_delay / 1000

    @property
    def reconnect_max_delay_s(self) -> float:
        return self.reconnect_max_delay / 1000

    @property
    def redacted_backend_url(self) -> str:
        """Backend URL without userinfo or query string, safe for logs."""
        parts = urlsplit(self.backend_url)
        netloc = parts.hostname or ""
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, "", ""))

    def validate(self) -> None:
        """Raise ConfigError listing every missing or invalid setting."""
        problems = []
        required = {
            "AGENT_BACKEND_URL": self.backend_url,
            "AGENT_TOKEN": self.token,
            "AGENT_HOSTNAME": self.hostname,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            problems.append(f"missing required settings: {', '.join(missing)}")

        durations = {
            "heartbeat_interval": self.heartbeat_interval,
            "reconnect_delay": self.reconnect_delay,
            "reconnect_max_delay": self.reconnect_max_delay,
            "executor.timeout": self.executor.timeout_ms,
            "executor.max_output_bytes": self.executor.max_output_bytes,
        }
        for name, value in durations.items():
            if not isinstance(value, int) or isinstance(value, bool):
                problems.append(f"{name} must be an integer (got {value!r})")
            elif value <= 0:
                problems.append(f"{name} must be > 0 (got {value})")

        if self.backend_url and urlsplit(self.backend_url).scheme not in ("ws", "wss"):
            problems.append(f"backend url must use ws:// or wss:// (got {self.backend_url!r})")

        if problems:
            raise ConfigError("Invalid configuration: " + "; ".join(problems))


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw, 10)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer (got {raw!r})") from e


def _env_overlay(raw: dict) -> dict:
    """Override TOML values with AGENT_* environment variables where set."""
    backend = raw.setdefault("backend", {})
    timing = raw.setdefault("timing", {})
    executor = raw.setdefault("executor", {})
    control = raw.setdefault("control", {})
    logging_raw = raw.setdefault("logging", {})

    if url := os.environ.get("AGENT_BACKEND_URL"):
        backend["url"] = url
    if token := os.environ.get("AGENT_TOKEN"):
        backend["token"] = token
    if hostname := os.environ.get("AGENT_HOSTNAME"):
        backend["hostname"] = hostname
    if server_id := os.environ.get("AGENT_SERVER_ID"):
        backend["server_id"] = server_id

    timing["heartbeat_interval"] = _env_int(
        "AGENT_HEARTBEAT_INTERVAL",
        timing.get("heartbeat_interval", DEFAULT_HEARTBEAT_INTERVAL_MS),
    )
    timing["reconnect_delay"] = _env_int(
        "AGENT_RECONNECT_DELAY",
        timing.get("reconnect_delay", DEFAULT_RECONNECT_DELAY_MS),
    )
    timing["reconnect_max_delay"] = _env_int(
        "AGENT_RECONNECT_MAX_DELAY",
        timing.get("reconnect_max_delay", DEFAULT_RECONNECT_MAX_DELAY_MS),
    )
    executor["timeout"] = _env_int(
        "AGENT_COMMAND_TIMEOUT",
        executor.get("timeout", DEFAULT_COMMAND_TIMEOUT_MS),
    )
    executor["max_output_bytes"] = _env_int(
        "AGENT_COMMAND_MAX_OUTPUT",
        executor.get("max_output_bytes", DEFAULT_MAX_OUTPUT_BYTES),
    )

    if socket_path := os.environ.get("AGENT_CONTROL_SOCKET"):
        control["socket_path"] = socket_path
    if level := os.environ.get("AGENT_LOG_LEVEL"):
        logging_raw["level"] = level

    return raw


def resolve_config_path(config_path: Path | None = None) -> Path:
    if config_path:
        return config_path
    if env_path := os.environ.get("AGENT_CONFIG"):
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def load_config(config_path: Path | None = None) -> AgentConfig:
    """Load configuration from TOML file with env var overlay.

    Does not validate; callers that need a backend connection call
    ``AgentConfig.validate()``.
    """
    path = resolve_config_path(config_path)

    if path.exists():
        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Cannot parse {path}: {e}") from e
    else:
        raw = tomllib.loads(DEFAULT_CONFIG_TOML)

    raw = _env_overlay(raw)
    backend = raw["backend"]
    timing = raw["timing"]
    executor_raw = raw["executor"]
    control_raw = raw["control"]

    return AgentConfig(
        backend_url=backend.get("url", ""),
        token=backend.get("token", ""),
        hostname=backend.get("hostname", ""),
        server_id=backend.get("server_id") or None,
        heartbeat_interval=timing["heartbeat_interval"],
        reconnect_delay=timing["reconnect_delay"],
        reconnect_max_delay=timing["reconnect_max_delay"],
        log_level=raw["logging"].get("level", "info"),
        executor=ExecutorConfig(
            timeout_ms=executor_raw["timeout"],
            max_output_bytes=executor_raw["max_output_bytes"],
        ),
        control=ControlConfig(
            enabled=control_raw.get("enabled", True),
            socket_path=control_raw.get("socket_path", ""),
        ),
        config_path=path,
    )


def init_config(config_path: Path | None = None) -> Path:
    """Create default config file."""
    path = resolve_config_path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG_TOML)
    return path
