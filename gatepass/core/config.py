"""Application configuration."""

import os
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from gatepass.utils.logging import get_logger, set_log_level

LOGGER = get_logger(__name__)


def find_env_file() -> Optional[Path]:
    """Find .env file in multiple possible locations."""
    current_dir = os.path.dirname(os.path.abspath(__file__))

    possible_paths = [
        os.path.join(os.getcwd(), ".env"),
        os.path.join(os.path.dirname(current_dir), ".env"),
        os.path.join(os.path.dirname(os.path.dirname(current_dir)), ".env"),
    ]

    for path_str in possible_paths:
        if os.path.exists(path_str):
            path = Path(path_str)
            LOGGER.info(f"Found .env file at: {path}")
            return path

    LOGGER.debug("No .env file found in expected locations")
    return None


ENV_FILE = find_env_file()

_MODEL_CONFIG = SettingsConfigDict(
    env_file=str(ENV_FILE) if ENV_FILE else None,
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
    env_prefix="",
)


class WorkflowBackendSettings(BaseSettings):
    """Gate-pass workflow backend connection settings."""

    url: str = Field(default="http://localhost:5000/api", validation_alias="WORKFLOW_API_URL")
    token: str = Field(default="", validation_alias="WORKFLOW_API_TOKEN")

    model_config = _MODEL_CONFIG


class DirectorySettings(BaseSettings):
    """Identity directory lookup settings."""

    url: str = Field(default="http://localhost:5000/api", validation_alias="DIRECTORY_API_URL")
    token: str = Field(default="", validation_alias="DIRECTORY_API_TOKEN")
    lookup_timeout: float = Field(default=10.0, validation_alias="IDENTITY_LOOKUP_TIMEOUT")

    model_config = _MODEL_CONFIG


class ErpSettings(BaseSettings):
    """ERP employee lookup settings."""

    url: str = Field(default="http://localhost:5000/api", validation_alias="ERP_API_URL")
    username: str = Field(default="", validation_alias="ERP_USERNAME")
    password: str = Field(default="", validation_alias="ERP_PASSWORD")
    enabled: bool = Field(default=True, validation_alias="ERP_FALLBACK_ENABLED")

    model_config = _MODEL_CONFIG


class Settings(BaseSettings):
    """Unified application settings with nested groups."""

    app_name: str = Field(default="Gate Pass Workflow Core", validation_alias="APP_NAME")
    app_version: str = "0.1.0"
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Shared HTTP behaviour for every external collaborator
    http_timeout: int = Field(default=30, validation_alias="HTTP_TIMEOUT")
    max_retries: int = Field(default=3, validation_alias="MAX_RETRIES")
    retry_delay: int = Field(default=2, validation_alias="RETRY_DELAY")

    backend: WorkflowBackendSettings = Field(default_factory=WorkflowBackendSettings)
    directory: DirectorySettings = Field(default_factory=DirectorySettings)
    erp: ErpSettings = Field(default_factory=ErpSettings)

    model_config = _MODEL_CONFIG

    @property
    def workflow_api_url(self) -> str:
        return self.backend.url

    @property
    def workflow_api_token(self) -> str:
        return self.backend.token

    @property
    def directory_api_url(self) -> str:
        return self.directory.url

    @property
    def directory_api_token(self) -> str:
        return self.directory.token

    @property
    def identity_lookup_timeout(self) -> float:
        return self.directory.lookup_timeout

    @property
    def erp_api_url(self) -> str:
        return self.erp.url

    @property
    def erp_username(self) -> str:
        return self.erp.username

    @property
    def erp_password(self) -> str:
        return self.erp.password

    @property
    def erp_fallback_enabled(self) -> bool:
        return self.erp.enabled


settings = Settings()
set_log_level(settings.log_level)

LOGGER.info(f"Settings initialized with environment: {settings.environment}")
LOGGER.info(f"ERP fallback enabled: {settings.erp_fallback_enabled}")
