"""Storage provider protocol definitions."""
from typing import Optional, Protocol, runtime_checkable

from infrastructure.external.api_clients.base import APIResponse
from infrastructure.external.api_clients.b2 import (
    AuthorizationState,
    BucketInfo,
    FileVersion,
    UploadedFile,
    UploadTarget,
)


@runtime_checkable
class ProviderClient(Protocol):
    """Object-storage REST API surface the storage core depends on."""

    async def authorize(self) -> AuthorizationState:
        """Obtain a fresh authorization token."""
        ...

    def use_authorization(self, state: AuthorizationState) -> None:
        """Send later calls with the given authorization."""
        ...

    async def get_bucket(self, bucket_id: str) -> list[BucketInfo]:
        """Look up buckets matching the id."""
        ...

    async def get_upload_target(self, bucket_id: str) -> UploadTarget:
        """Request a single-use upload URL and token."""
        ...

    async def upload_file(
        self,
        target: UploadTarget,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> UploadedFile:
        """Upload bytes to an upload target."""
        ...

    async def download_file_by_name(
        self,
        bucket_name: str,
        file_name: str,
        *,
        metadata_only: bool = False,
    ) -> APIResponse:
        """Download a file (or only its headers)."""
        ...

    async def list_file_versions(
        self,
        bucket_id: str,
        prefix: str,
        max_file_count: int = 1000,
    ) -> list[FileVersion]:
        """List file versions starting at prefix."""
        ...

    async def delete_file_version(self, file_id: str, file_name: str) -> None:
        """Delete one file version."""
        ...

    async def close(self) -> None:
        """Release HTTP resources."""
        ...
