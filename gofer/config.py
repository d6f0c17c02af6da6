"""
Configuration management for Gofer.

Uses Pydantic for type-safe configuration with YAML file support. Values from
the process environment (the same names the `.env.local` files use) override
whatever the YAML file says.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from gofer.exceptions import ConfigError


SUPPORTED_PROVIDERS = ("ollama", "openai")


class ExecutionConfig(BaseModel):
    """Command execution gateway settings."""

    enabled: bool = Field(default=False, description="Whether commands may run at all")
    demo_mode: bool = Field(
        default=False, description="Simulate a read-only allow-list instead of executing"
    )
    command_timeout: int | None = Field(
        default=None, ge=1, description="Per-command timeout in seconds (none when unset)"
    )


class WatcherConfig(BaseModel):
    """Desktop change watcher settings. Durations are in seconds."""

    enabled: bool = False
    max_duration: float = Field(default=30 * 60, gt=0)
    base_interval: float = Field(default=30, gt=0)
    max_interval: float = Field(default=5 * 60, gt=0)
    change_threshold: float = Field(default=0.5, gt=0, description="Changed pixels, percent")
    max_retries: int = Field(default=3, ge=1)
    retry_pause: float = Field(default=2.0, ge=0, description="Pause between baseline attempts")
    pixel_threshold: float = Field(
        default=0.1, ge=0, le=1, description="Per-pixel colour distance tolerance"
    )
    screenshot_dir: Path = Path("/tmp")
    screenshot_command: str = "spectacle -m -b -n -o {path}"
    inhibit_sleep: bool = True
    inhibitor_command: list[str] = Field(
        default_factory=lambda: [
            "systemd-inhibit",
            "--what=idle:sleep:handle-lid-switch",
            "--why=Gofer desktop watch",
            "sleep",
            "infinity",
        ]
    )

    @field_validator("screenshot_command")
    @classmethod
    def _require_path_placeholder(cls, value: str) -> str:
        if "{path}" not in value:
            raise ValueError("screenshot_command must contain a '{path}' placeholder")
        return value.strip()

    @model_validator(mode="after")
    def _check_intervals(self) -> "WatcherConfig":
        if self.max_interval < self.base_interval:
            raise ValueError("watcher.max_interval must be >= watcher.base_interval")
        return self


class ClassifierConfig(BaseModel):
    """AI classifier used to judge desktop task completion."""

    provider: str = "ollama"
    model: str = "llava"
    fallback_provider: str | None = "openai"
    fallback_model: str = "gpt-4o-mini"
    ollama_host: str = "http://localhost:11434"
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    timeout: float = Field(default=60.0, gt=0, description="Deadline per classifier call")

    @field_validator("provider")
    @classmethod
    def _validate_provider(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        if normalized not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unsupported classifier provider '{value}' "
                f"(expected one of: {', '.join(SUPPORTED_PROVIDERS)})"
            )
        return normalized

    @field_validator("fallback_provider")
    @classmethod
    def _validate_fallback(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if not normalized or normalized == "none":
            return None
        if normalized not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported fallback provider '{value}'")
        return normalized


class TelegramConfig(BaseModel):
    """Telegram Bot API channel settings."""

    enabled: bool = False
    token: str | None = None
    chat_id: str | None = None
    api_url: str = "https://api.telegram.org"
    send_retries: int = Field(default=3, ge=1)
    request_timeout: float = Field(default=30.0, gt=0)
    poll_timeout: int = Field(default=30, ge=0, description="getUpdates long-poll seconds")
    prompt_timeout: float = Field(default=300.0, gt=0, description="Seconds to wait for a reply")

    @field_validator("chat_id", mode="before")
    @classmethod
    def _normalize_chat_id(cls, value: Any) -> str | None:
        if value is None:
            return None
        normalized = str(value).strip()
        return normalized or None


class UIConfig(BaseModel):
    """Terminal UI settings."""

    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return (value or "WARNING").upper()


class Config(BaseModel):
    """Main configuration model for Gofer."""

    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    ui: UIConfig = Field(default_factory=UIConfig)

    @classmethod
    def load(cls, path: Path | str) -> "Config":
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            Loaded Config instance.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ConfigError: If config file is invalid.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc

    def save(self, path: Path | str) -> None:
        """Save configuration to a YAML file.

        Args:
            path: Path to save the configuration to.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                self.model_dump(mode="json"),
                f,
                default_flow_style=False,
                sort_keys=False,
            )


# Global config singleton
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        The loaded Config instance.

    Raises:
        RuntimeError: If config hasn't been loaded yet.
    """
    if _config is None:
        raise RuntimeError("Config not loaded. Call load_config() first.")
    return _config


def load_config(
    path: Path | str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Load configuration from file or create default, then apply env overrides.

    Args:
        path: Path to config file. If None, looks for config.yaml
              in current directory or uses defaults.
        environ: Environment mapping to read overrides from (defaults to os.environ).

    Returns:
        The loaded Config instance.
    """
    global _config

    if path is None:
        path = Path("config.yaml")

    path = Path(path)

    config = Config.load(path) if path.exists() else Config()
    _config = apply_env_overrides(config, os.environ if environ is None else environ)
    return _config


def get_default_config_yaml() -> str:
    """Generate default configuration as YAML string.

    Returns:
        YAML string with default configuration.
    """
    config = Config()
    return yaml.safe_dump(
        config.model_dump(mode="json"),
        default_flow_style=False,
        sort_keys=False,
    )


def _env_flag(value: str) -> bool:
    return value.strip().lower() == "true"


def _env_number(cast: Callable[[str], float]) -> Callable[[str], float | None]:
    # Unparseable or zero values mean "use the default".
    def _parse(value: str) -> float | None:
        try:
            number = cast(value.strip())
        except ValueError:
            return None
        return number or None

    return _parse


def _env_millis(value: str) -> float | None:
    millis = _env_number(float)(value)
    return None if millis is None else millis / 1000


def _env_text(value: str) -> str | None:
    return value.strip() or None


# env name -> (section, field, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "ENABLE_COMMAND_EXECUTION": ("execution", "enabled", _env_flag),
    "DEMO_MODE": ("execution", "demo_mode", _env_flag),
    "COMMAND_TIMEOUT": ("execution", "command_timeout", _env_number(int)),
    "ENABLE_WATCHER": ("watcher", "enabled", _env_flag),
    "WATCHER_MAX_DURATION": ("watcher", "max_duration", _env_millis),
    "WATCHER_BASE_INTERVAL": ("watcher", "base_interval", _env_millis),
    "WATCHER_MAX_INTERVAL": ("watcher", "max_interval", _env_millis),
    "WATCHER_CHANGE_THRESHOLD": ("watcher", "change_threshold", _env_number(float)),
    "WATCHER_MAX_RETRIES": ("watcher", "max_retries", _env_number(int)),
    "GOFER_PROVIDER": ("classifier", "provider", _env_text),
    "GOFER_MODEL": ("classifier", "model", _env_text),
    "WATCHER_MODEL": ("classifier", "model", _env_text),
    "GOFER_FALLBACK_PROVIDER": ("classifier", "fallback_provider", _env_text),
    "OLLAMA_HOST": ("classifier", "ollama_host", _env_text),
    "OPENAI_API_KEY": ("classifier", "openai_api_key", _env_text),
    "OPENAI_BASE_URL": ("classifier", "openai_base_url", _env_text),
    "ENABLE_TELEGRAM": ("telegram", "enabled", _env_flag),
    "TELEGRAM_TOKEN": ("telegram", "token", _env_text),
    "CHAT_ID": ("telegram", "chat_id", _env_text),
    "PROMPT_TIMEOUT_MS": ("telegram", "prompt_timeout", _env_millis),
}


def apply_env_overrides(config: Config, environ: Mapping[str, str]) -> Config:
    """Return a copy of ``config`` with environment overrides applied.

    Later entries in ENV_OVERRIDES win, so WATCHER_MODEL beats GOFER_MODEL.

    Raises:
        ConfigError: If the overridden configuration fails validation.
    """
    data = config.model_dump()
    applied: list[str] = []
    for env_name, (section, field, parse) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None:
            continue
        value = parse(raw)
        if value is None:
            continue
        data[section][field] = value
        applied.append(env_name)

    if not applied:
        return config

    try:
        return Config.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid configuration from environment ({', '.join(applied)}): {exc}"
        ) from exc
