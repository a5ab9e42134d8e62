"""Configuration management using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Meta-analysis defaults
    ci_z_critical: float = Field(1.96, gt=0, description="Critical z for 95% confidence intervals")
    default_subgroup: str = Field("Overall", min_length=1, description="Label for untagged studies")
    egger_bias_threshold: float = Field(0.10, gt=0, lt=1, description="Egger p-value flagging asymmetry")

    # Web API
    api_host: str = Field("127.0.0.1")
    api_port: int = Field(8000, ge=1, le=65535)

    # Logging
    log_level: str = Field("INFO")
    log_format: str = Field("json", pattern="^(json|text)$")


# Instantiate global settings
settings = Settings()
