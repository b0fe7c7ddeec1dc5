"""Storage service exceptions."""
from enum import Enum
from typing import Optional


class StorageError(Exception):
    """Base storage exception."""
    pass


class ConfigurationError(StorageError):
    """Storage configuration error (missing credentials or bucket id)."""
    pass


class AuthError(StorageError):
    """Provider authorization failed (bad credentials, network failure)."""
    pass


class BucketNotFoundError(StorageError):
    """Configured bucket id could not be resolved to a bucket."""

    def __init__(self, bucket_id: str, message: Optional[str] = None):
        self.bucket_id = bucket_id
        super().__init__(message or f"Bucket not found: {bucket_id}")


class UploadFailureReason(str, Enum):
    AUTH_EXPIRED = "auth_expired"
    PROVIDER_REJECTED = "provider_rejected"
    TRANSPORT_FAILURE = "transport_failure"


class UploadError(StorageError):
    """Upload failed; ``reason`` tells whether re-authorization could have helped."""

    def __init__(
        self,
        reason: UploadFailureReason,
        message: Optional[str] = None,
        *,
        file_name: Optional[str] = None,
        provider_code: Optional[str] = None,
    ):
        self.reason = reason
        self.file_name = file_name
        self.provider_code = provider_code
        super().__init__(message or f"Upload failed: {reason.value}")
