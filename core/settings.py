"""
Backblaze B2 settings using pydantic-settings v2 with `B2_` prefixed env keys.

Explicit keyword arguments take precedence over environment variables, which
take precedence over the field defaults (pydantic-settings source order).
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


DEFAULT_API_URL = "https://api.backblazeb2.com"


class B2Settings(BaseSettings):
    application_key_id: Optional[str] = None
    application_key: Optional[str] = None
    bucket_id: Optional[str] = None
    bucket_name: Optional[str] = None
    download_url: Optional[str] = None  # Custom/CDN domain
    path_prefix: Optional[str] = None

    # Transport
    api_url: str = Field(default=DEFAULT_API_URL)
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0

    model_config = SettingsConfigDict(
        env_prefix="B2_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )
