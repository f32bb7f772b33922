"""Shared configuration management for the invoice link codec.

Based on Pydantic Settings v2:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="invoice-link",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # URL generation
    app_base_url: str = Field(
        default="https://voidpay.xyz",
        description="Base URL used for shareable links when none is passed explicitly",
    )
    url_max_bytes: int = Field(
        default=2000,
        gt=0,
        description="Maximum UTF-8 byte length of a generated invoice URL",
    )

    # Codec configuration
    compression_level: int = Field(
        default=9,
        ge=0,
        le=9,
        description="zlib compression level for encoded payloads",
    )
    max_payload_chars: int = Field(
        default=4096,
        gt=0,
        description="Longest payload text accepted for decoding",
    )
    max_decompressed_bytes: int = Field(
        default=65536,
        gt=0,
        description="Upper bound on inflated payload size (decompression bomb guard)",
    )
    verify_embedded_totals: bool = Field(
        default=False,
        description="Reject decoded invoices whose embedded total disagrees with the items",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
