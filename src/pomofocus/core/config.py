"""Configuration management with Pydantic and YAML support."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimerConfig(BaseModel):
    """Timer durations, chaining and side-effect settings.

    Accepts both snake_case names and the camelCase names used by the browser
    client (``pomodoroDuration`` and friends). Out-of-range values are rejected
    here, so the timer engine can trust what it receives.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    pomodoro_minutes: int = Field(default=25, ge=1, le=60, alias="pomodoroDuration")
    short_break_minutes: int = Field(default=5, ge=1, le=30, alias="shortBreakDuration")
    long_break_minutes: int = Field(default=15, ge=1, le=60, alias="longBreakDuration")
    long_break_interval: int = Field(
        default=4, ge=2, le=12, description="Pomodoros before a long break"
    )
    auto_start_pomodoro: bool = False
    auto_start_break: bool = False
    sound_enabled: bool = True
    notifications_enabled: bool = True
    volume: int = Field(default=50, ge=0, le=100)
    auto_start_delay_seconds: float = Field(
        default=1.0, ge=0, le=10, description="Pause before an auto-started interval begins"
    )

    def to_api(self) -> dict[str, Any]:
        """Dump using the client's field names."""
        return self.model_dump(by_alias=True)


class WebConfig(BaseModel):
    """Web API configuration."""

    enabled: bool = True
    host: str = Field(default="127.0.0.1", description="Bind to localhost only")
    port: int = Field(default=8765, ge=1024, le=65535)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"]
    )


class SoundConfig(BaseModel):
    """Completion sound configuration."""

    sound_file: Path | None = Field(default=None, description="Custom completion sound")


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POMOFOCUS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/pomofocus")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".local/state/pomofocus")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config/pomofocus")

    # Log level
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Sub-configurations
    timer: TimerConfig = Field(default_factory=TimerConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    sound: SoundConfig = Field(default_factory=SoundConfig)

    @property
    def db_path(self) -> Path:
        """Path to SQLite database."""
        return self.data_dir / "pomofocus.db"

    @property
    def config_file(self) -> Path:
        """Path to YAML config file."""
        return self.config_dir / "config.yaml"

    @property
    def control_file(self) -> Path:
        """Path to the command file read by a running ``pomofocus run``."""
        return self.data_dir / "timer_control.json"

    @property
    def status_file(self) -> Path:
        """Path to the state file written by a running ``pomofocus run``."""
        return self.data_dir / "timer_status.json"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from YAML file, environment variables, and defaults.

        Priority (highest to lowest):
        1. YAML config file
        2. Environment variables
        3. Default values
        """
        config_path = config_path or Path.home() / ".config/pomofocus/config.yaml"

        yaml_config: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def save(self, config_path: Path | None = None) -> None:
        """Save current configuration to YAML file."""
        config_path = config_path or self.config_file
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode="json", exclude_none=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.load()
