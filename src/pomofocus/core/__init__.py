"""Application configuration, event fan-out and orchestration."""

from pomofocus.core.config import Config, TimerConfig, get_config

__all__ = ["Config", "TimerConfig", "get_config"]
