"""Configuration management with YAML and environment variable support.

The YAML file defaults to ``config.yaml`` in the working directory; point
SOUNDTRACK_CONFIG_FILE at another file to use that instead.
"""

import os
from pathlib import Path
from typing import ClassVar, Optional

import yaml
from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

CONFIG_FILE_ENV = "SOUNDTRACK_CONFIG_FILE"


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source reading the nested sections of the YAML config file."""

    def get_field_value(self, field, field_name: str):
        # Whole-file source; values are returned from __call__
        pass

    def prepare_field_value(self, field_name: str, field, value, value_is_complex: bool):
        return value

    def __call__(self):
        yaml_path = Path(os.environ.get(CONFIG_FILE_ENV, "config.yaml"))
        if not yaml_path.is_file():
            return {}

        with open(yaml_path) as f:
            return yaml.safe_load(f) or {}


class LLMConfig(BaseModel):
    """Reasoning model selection and credentials.

    The model prefix picks the provider: ``gemini-*`` routes to Google
    Gemini, ``ollama/*`` routes to an Ollama server.
    """

    model: str = "gemini-2.5-flash"
    gemini_api_key: str = ""
    ollama_endpoint: str = "http://localhost:11434"
    ollama_api_key: Optional[str] = None
    temperature: float = 0.7


class RenderConfig(BaseModel):
    """Music rendering service endpoint and polling parameters."""

    base_url: str = "https://studio-api.prod.suno.com/api/v2/external/hackathons/"
    bearer_token: str = ""
    request_timeout: float = 60.0
    poll_interval: float = 5.0
    poll_max: int = 60
    demo_poll_interval: float = 3.0
    demo_poll_max: int = 90


class PipelineConfig(BaseModel):
    """Defaults for a single generation run."""

    default_stress: str = "high"
    default_instrumental: bool = True
    frame_max_dimension: int = 512
    frame_jpeg_quality: int = 40
    taste_profile_path: Optional[Path] = None

    @field_validator("taste_profile_path", mode="before")
    @classmethod
    def convert_taste_path(cls, v):
        """Convert string to Path object."""
        if isinstance(v, str):
            return Path(v) if v else None
        return v


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: SOUNDTRACK_, delimiter: __)
    2. .env file
    3. YAML file (config.yaml)
    4. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="SOUNDTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    llm: LLMConfig = LLMConfig()
    render: RenderConfig = RenderConfig()
    pipeline: PipelineConfig = PipelineConfig()
    server: ServerConfig = ServerConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources to include YAML configuration.

        Priority order (highest to lowest):
        1. Environment variables
        2. .env file
        3. YAML file
        4. Init settings (programmatic defaults)
        """
        return (
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            init_settings,
        )


# Singleton instance
settings = Settings()
