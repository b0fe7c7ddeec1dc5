"""Storage configuration models."""
import re
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from core.settings import B2Settings, DEFAULT_API_URL
from .exceptions import ConfigurationError

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

REQUIRED_FIELDS = ("application_key_id", "application_key", "bucket_id")


class B2StorageConfig(BaseModel):
    """Resolved adapter configuration; immutable once built."""
    model_config = ConfigDict(frozen=True)

    application_key_id: str
    application_key: str
    bucket_id: str
    bucket_name: Optional[str] = None
    download_url: Optional[str] = None  # Public/CDN domain
    path_prefix: Optional[str] = None

    # Transport settings
    api_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0

    def __repr__(self) -> str:
        return (
            f"B2StorageConfig(application_key_id={self.application_key_id!r}, "
            f"bucket_id={self.bucket_id!r}, bucket_name={self.bucket_name!r}, "
            f"download_url={self.download_url!r}, path_prefix={self.path_prefix!r})"
        )


def _normalize_key(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def load_b2_config(config: Optional[Mapping[str, Any]] = None, **overrides: Any) -> B2StorageConfig:
    """Build the adapter configuration.

    Keys may be given in snake_case (``bucket_id``) or the host's camelCase
    (``bucketId``). Explicit values win over ``B2_*`` environment variables;
    blank strings count as unset.

    Raises:
        ConfigurationError: If credentials or the bucket id are missing
    """
    explicit: dict[str, Any] = {}
    for key, value in {**(config or {}), **overrides}.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        explicit[_normalize_key(key)] = value.strip() if isinstance(value, str) else value

    try:
        merged = B2Settings(**explicit)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid B2 storage configuration: {e}") from e

    values = {}
    for name, value in merged.model_dump().items():
        if isinstance(value, str):
            value = value.strip() or None
        if value is not None:
            values[name] = value

    missing = [name for name in REQUIRED_FIELDS if not values.get(name)]
    if missing:
        raise ConfigurationError(
            "B2 storage adapter requires application_key_id, application_key and bucket_id "
            f"(missing: {', '.join(missing)})"
        )

    if values.get("download_url"):
        values["download_url"] = values["download_url"].rstrip("/")

    return B2StorageConfig(**values)
