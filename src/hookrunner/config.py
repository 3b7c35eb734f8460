"""Configuration for hookrunner.

Two layers:
- :class:`Settings` reads the process environment (and a local `.env`) for the
  handful of knobs that are about *this process*: config path, bind host, log level.
- :class:`Config` is the YAML file with the webhook secret, port and workflows.
  It is loaded once at startup, validated, and treated as immutable afterwards.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hookrunner.events import EventKind

DEFAULT_PORT = 7890
DEFAULT_TIMEOUT_SECONDS = 300
DEFAULT_PID_FILE = "~/.hookrunner/hookrunner.pid"
DEFAULT_LOG_FILE = "~/.hookrunner/hookrunner.log"


class ConfigError(Exception):
    """The config file is missing, unreadable or invalid."""


def default_config_path() -> Path:
    return Path.home() / ".hookrunner" / "config.yaml"


def expand_tilde(path: str) -> str:
    """Expand a leading ``~/`` to the user's home directory.

    Only the ``~/`` form is expanded; ``~user`` is left alone.
    """

    if path.startswith("~/"):
        return str(Path.home() / path[2:])
    return path


class Settings(BaseSettings):
    """Process-level settings.

    Environment variables:
    - HOOKRUNNER_CONFIG  (optional)
    - HOOKRUNNER_HOST    (optional)
    - LOG_LEVEL          (optional)
    """

    config_path: Path = Field(
        default_factory=default_config_path,
        validation_alias="HOOKRUNNER_CONFIG",
        description="Path of the YAML config file",
    )
    host: str = Field(
        default="127.0.0.1",
        validation_alias="HOOKRUNNER_HOST",
        description="Interface the webhook listener binds to",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")


class WorkflowConfig(BaseModel):
    """One automation: when it fires and what it runs."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    events: tuple[EventKind, ...] = ()
    trigger: str
    allowed_users: tuple[str, ...] = ()
    command: str
    workdir: str = ""
    timeout: int = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)

    @field_validator("timeout", mode="before")
    @classmethod
    def _default_zero_timeout(cls, value: object) -> object:
        if value in (0, None):
            return DEFAULT_TIMEOUT_SECONDS
        return value

    @field_validator("trigger", "command")
    @classmethod
    def _require_non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("is required")
        return value


class FunnelConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    url: str = ""


class DaemonConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    pid_file: str = DEFAULT_PID_FILE
    log_file: str = DEFAULT_LOG_FILE

    @property
    def pid_path(self) -> Path:
        return Path(expand_tilde(self.pid_file))

    @property
    def log_path(self) -> Path:
        return Path(expand_tilde(self.log_file))


class Config(BaseModel):
    """The validated contents of ``config.yaml``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    webhook_secret: str
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    funnel: FunnelConfig = Field(default_factory=FunnelConfig)
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)
    workflows: dict[str, WorkflowConfig] = Field(default_factory=dict)

    @field_validator("webhook_secret")
    @classmethod
    def _require_secret(cls, value: str) -> str:
        if not value:
            raise ValueError("webhook_secret is required")
        return value

    @field_validator("port", mode="before")
    @classmethod
    def _default_zero_port(cls, value: object) -> object:
        # An explicit 0 (or null) means "use the default", matching an omitted key.
        if value in (0, None):
            return DEFAULT_PORT
        return value


def load_config(path: Path | str) -> Config:
    """Read, default and validate a YAML config file."""

    resolved = Path(expand_tilde(str(path)))
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"reading config {resolved}: {e}") from e

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"parsing config {resolved}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"parsing config {resolved}: top level must be a mapping")

    try:
        return Config.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid config {resolved}: {e}") from e


DEFAULT_CONFIG_YAML = """\
webhook_secret: "changeme"
port: 7890
funnel:
  enabled: true
  url: ""
daemon:
  pid_file: "~/.hookrunner/hookrunner.pid"
  log_file: "~/.hookrunner/hookrunner.log"
workflows:
  claude-review:
    events: [issue_comment, pull_request_review_comment, pull_request_review]
    trigger: '/cc\\s+@claude'
    allowed_users: []
    command: 'claude -p "Review PR #{pr_number} in {repo_full_name}"'
    workdir: "~/repos/{repo_full_name}"
    timeout: 300
"""


def generate_default_config(path: Path | str) -> Path:
    """Write a starter config file. Refuses to overwrite an existing one."""

    resolved = Path(expand_tilde(str(path)))
    resolved.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if resolved.exists():
        raise ConfigError(f"config already exists at {resolved}")

    fd = os.open(resolved, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(DEFAULT_CONFIG_YAML)
    return resolved
