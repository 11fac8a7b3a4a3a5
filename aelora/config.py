"""Settings for the Aelora runtime.

Settings are read from a YAML file (``settings.yaml`` by default), overlaid with
environment variables (a ``.env`` file is loaded first), and validated with
pydantic. Every section is optional; a missing file yields the defaults.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = "settings.yaml"

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "AELORA_LLM_PROVIDER": ("llm", "provider"),
    "AELORA_LLM_BASE_URL": ("llm", "base_url"),
    "AELORA_LLM_API_KEY": ("llm", "api_key"),
    "AELORA_LLM_MODEL": ("llm", "model"),
    "AELORA_DISCORD_TOKEN": ("discord", "bot_token"),
    "TAVILY_API_KEY": ("web_search", "api_key"),
}


class LLMSettings(BaseModel):
    """Model backend settings."""

    model_config = ConfigDict(extra="ignore")

    provider: str = "openai"
    base_url: str | None = None
    api_key: str | None = None
    model: str = "gpt-4o-mini"
    system_prompt: str = "You are a helpful assistant."
    max_tokens: int | None = 1024
    max_history: int = Field(default=20, ge=1)
    max_iterations: int = Field(default=10, ge=1)
    timeout: float | None = Field(default=120.0, gt=0)


class AgentSettings(BaseModel):
    """Settings for delegated agents."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    max_iterations: int = Field(default=5, ge=1)


class MemorySettings(BaseModel):
    """Persistence, compaction and fact-memory settings."""

    model_config = ConfigDict(extra="ignore")

    data_dir: str = "data"
    compaction_min_queue: int = Field(default=10, ge=1)
    max_summary_chars: int = Field(default=1500, ge=100)
    max_transcript_tokens: int = Field(default=6000, ge=100)
    global_facts_limit: int = Field(default=5, ge=0)
    user_facts_limit: int = Field(default=10, ge=0)
    channel_facts_limit: int = Field(default=10, ge=0)
    extract_facts: bool = True
    extraction_cooldown: float = 120.0
    extraction_min_messages: int = 4


class DiscordSettings(BaseModel):
    """Outbound Discord sink settings."""

    model_config = ConfigDict(extra="ignore")

    bot_token: str | None = None


class WebSearchSettings(BaseModel):
    """Settings for the builtin web_search tool."""

    model_config = ConfigDict(extra="ignore")

    api_key: str | None = None
    max_results: int = Field(default=5, ge=1, le=20)


class Settings(BaseModel):
    """Root settings object."""

    model_config = ConfigDict(extra="ignore")

    log_level: str = "INFO"
    llm: LLMSettings = Field(default_factory=LLMSettings)
    agents: AgentSettings = Field(default_factory=AgentSettings)
    memory: MemorySettings = Field(default_factory=MemorySettings)
    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    web_search: WebSearchSettings = Field(default_factory=WebSearchSettings)

    @property
    def data_path(self) -> Path:
        return Path(self.memory.data_dir)


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            raw.setdefault(section, {})
            if raw[section] is None:
                raw[section] = {}
            raw[section][key] = value
    return raw


def load_settings(path: str | os.PathLike[str] | None = None) -> Settings:
    """
    Load settings from YAML plus environment overrides.

    Args:
        path: Settings file path. Defaults to ``AELORA_SETTINGS`` or ``settings.yaml``.

    Returns:
        Validated Settings

    Raises:
        ConfigError: If the file is not valid YAML or fails validation
    """
    load_dotenv()

    settings_path = Path(path or os.getenv("AELORA_SETTINGS", DEFAULT_SETTINGS_PATH))
    raw: dict[str, Any] = {}
    if settings_path.exists():
        try:
            raw = yaml.safe_load(settings_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"{settings_path}: invalid YAML: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{settings_path}: top level must be a mapping")
    else:
        logger.info("Settings file %s not found, using defaults", settings_path)

    raw = _apply_env_overrides(raw)

    try:
        return Settings.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"{settings_path}: {e}") from e
