"""Configuration management for chatpilot.

Settings come from config/chatpilot.yaml, a .env file and the environment.
The coordinate table for each chat application lives here too.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from chatpilot.domain.models import AppCoordinateProfile, Point, TargetApp

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/chatpilot.yaml")


def default_app_profiles() -> dict[TargetApp, AppCoordinateProfile]:
    """Coordinate table for a 100% scaled screen with the chat window in a fixed spot."""
    return {
        TargetApp.WHATSAPP: AppCoordinateProfile(
            app_name="WhatsApp",
            input_box=Point(x=650, y=680),
            send_button=Point(x=720, y=680),
        ),
        TargetApp.DISCORD: AppCoordinateProfile(
            app_name="Discord",
            input_box=Point(x=600, y=700),
            send_button=Point(x=670, y=700),
        ),
    }


class OcrConfig(BaseModel):
    base_url: str = Field(default="http://localhost:3030", description="Screen recording service URL")
    timeout: float = Field(default=10.0, gt=0)


class AutomationConfig(BaseModel):
    backend: Literal["http", "local"] = Field(default="http")
    http_base_url: str = Field(default="http://localhost:3030")
    http_timeout: float = Field(default=10.0, gt=0)


class GeneratorConfig(BaseModel):
    provider: Literal["ollama", "nebius"] = Field(default="ollama")
    ollama_model: str = Field(default="qwen2.5")
    ollama_base_url: str = Field(default="http://localhost:11434")
    nebius_model: str = Field(default="meta-llama/Meta-Llama-3.1-70B-Instruct")
    nebius_base_url: str = Field(default="https://api.studio.nebius.ai/v1/")
    max_tokens: int = Field(default=512, gt=0)
    timeout: float = Field(default=60.0, gt=0)
    system_prompt_override: str | None = Field(default=None)


class KeepAliveConfig(BaseModel):
    """Fixed keystroke sequence sent at the end of every tick when enabled."""

    enabled: bool = Field(default=False)
    point: Point = Field(default_factory=lambda: Point(x=720, y=800))
    text: str = Field(default="hello world")
    keys: list[str] = Field(default_factory=lambda: ["enter", "enter"])


class MonitorConfig(BaseModel):
    target_app: TargetApp = Field(default=TargetApp.WHATSAPP)
    startup_delay: float = Field(default=10.0, ge=0, description="Seconds to bring the chat app to front")
    cycle_interval: float = Field(default=5.0, gt=0, description="Seconds between ticks")
    ocr_confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    activity_capacity: int = Field(default=10, gt=0)
    keepalive: KeepAliveConfig = Field(default_factory=KeepAliveConfig)


class DispatchConfig(BaseModel):
    chunk_size: int = Field(default=15, gt=0)
    move_settle: float = Field(default=0.3, ge=0)
    focus_settle: float = Field(default=0.3, ge=0)
    click_interval: float = Field(default=0.1, ge=0)
    select_settle: float = Field(default=0.5, ge=0)
    chunk_interval: float = Field(default=0.15, ge=0)
    send_settle: float = Field(default=0.5, ge=0)


class HealthConfig(BaseModel):
    url: str = Field(default="http://localhost:3030/health")
    interval: float = Field(default=30.0, gt=0)
    timeout: float = Field(default=5.0, gt=0)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration object; prefixed variables use CHATPILOT_SECTION__FIELD."""

    model_config = {
        "env_prefix": "CHATPILOT_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # API Keys
    nebius_api_key: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    ocr: OcrConfig = Field(default_factory=OcrConfig)
    automation: AutomationConfig = Field(default_factory=AutomationConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    apps: dict[TargetApp, AppCoordinateProfile] = Field(default_factory=default_app_profiles)
    health: HealthConfig = Field(default_factory=HealthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # load_settings passes the YAML file as init kwargs; it ranks below the environment
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Build Settings from the YAML file, overridden by .env and environment variables.

    Priority: env vars > .env file > YAML file > defaults. NEBIUS_API_KEY and
    OLLAMA_HOST are honoured without the CHATPILOT_ prefix.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    # Partial app tables in YAML extend the built-in profiles
    if "apps" in yaml_data:
        merged = {app.value: profile.model_dump() for app, profile in default_app_profiles().items()}
        merged.update(yaml_data["apps"] or {})
        yaml_data["apps"] = merged

    return Settings(**yaml_data)


def _load_dotenv(env_path: Path = Path(".env")) -> None:
    """Export KEY=VALUE lines from a .env file without clobbering set variables."""
    if not env_path.exists():
        return
    for raw in env_path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key and not os.environ.get(key):
            os.environ[key] = value.strip().strip("\"'")


def _apply_env_overrides(yaml_data: dict) -> None:
    """Fold the unprefixed NEBIUS_API_KEY and OLLAMA_HOST variables into the raw config."""
    if nebius_key := os.environ.get("NEBIUS_API_KEY"):
        yaml_data["nebius_api_key"] = nebius_key

    generator = yaml_data.setdefault("generator", {}) or {}
    yaml_data["generator"] = generator

    ollama_host = os.environ.get("OLLAMA_HOST")
    if ollama_host:
        if "://" not in ollama_host:
            ollama_host = f"http://{ollama_host}"
        generator["ollama_base_url"] = ollama_host
