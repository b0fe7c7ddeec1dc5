"""Storage service entry point and lifecycle management."""
from typing import Any, Mapping, Optional

from core.logging_config import get_logger
from .adapter import B2StorageAdapter
from .config import B2StorageConfig, load_b2_config

logger = get_logger(__name__)

# Global storage client instance
_storage_client: Optional[B2StorageAdapter] = None


async def init_storage_client(
    config: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> B2StorageAdapter:
    """Initialize the process-wide storage adapter.

    Builds the adapter from explicit config merged with ``B2_*`` environment
    variables and waits for authorization and bucket resolution.
    """
    global _storage_client

    if _storage_client is not None:
        logger.warning("Storage client already initialized")
        return _storage_client

    try:
        adapter = await B2StorageAdapter.create(config, **kwargs)
    except Exception as e:
        logger.error("Failed to initialize storage client", error=str(e))
        raise

    _storage_client = adapter
    logger.info(
        "Storage client initialized",
        bucket_id=adapter.bucket.bucket_id,
        bucket_name=adapter.bucket.bucket_name,
    )
    return adapter


def get_storage_client() -> Optional[B2StorageAdapter]:
    """Get storage client instance.

    Returns:
        Storage adapter instance or None if not initialized
    """
    return _storage_client


async def shutdown_storage_client() -> None:
    """Shutdown storage client and release its HTTP connections."""
    global _storage_client

    if _storage_client is None:
        return

    try:
        await _storage_client.aclose()
        logger.info("Storage client shutdown")
    finally:
        _storage_client = None


async def get_storage() -> B2StorageAdapter:
    """FastAPI dependency for storage service.

    Raises:
        RuntimeError: If storage not initialized
    """
    client = get_storage_client()
    if client is None:
        raise RuntimeError(
            "Storage client not initialized. "
            "Call init_storage_client() during startup."
        )
    return client


# Export public interface
__all__ = [
    # Lifecycle
    "init_storage_client",
    "get_storage_client",
    "shutdown_storage_client",
    "get_storage",

    # Adapter and collaborators
    "B2StorageAdapter",
    "AuthorizationSession",
    "BucketResolver",
    "UrlResolver",
    "UploadCoordinator",
    "ProviderClient",

    # Configuration
    "B2StorageConfig",
    "load_b2_config",

    # Models
    "ResolvedBucket",

    # Exceptions
    "StorageError",
    "ConfigurationError",
    "AuthError",
    "BucketNotFoundError",
    "UploadError",
    "UploadFailureReason",
]

from .base import ProviderClient
from .buckets import BucketResolver
from .exceptions import (
    StorageError,
    ConfigurationError,
    AuthError,
    BucketNotFoundError,
    UploadError,
    UploadFailureReason,
)
from .models import ResolvedBucket
from .session import AuthorizationSession
from .uploader import UploadCoordinator
from .urls import UrlResolver
