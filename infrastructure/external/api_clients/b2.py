"""Backblaze B2 native API (v2) client.

Thin, stateless mapping of the B2 REST calls used by the storage adapter.
Authorization state is owned by the caller; after a successful
``authorize()`` the caller hands the state back through
``use_authorization()`` so later calls hit the right API host with the
current token.
"""
from __future__ import annotations

import base64
import hashlib
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field

from core.settings import DEFAULT_API_URL
from .base import APIResponse, BaseAPIClient

API_PREFIX = "b2api/v2"

# Lets B2 pick the MIME type from the file extension
AUTO_CONTENT_TYPE = "b2/x-auto"

AUTH_TOKEN_ERROR_CODES = frozenset({"bad_auth_token", "expired_auth_token"})


class _B2Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class BucketRestriction(_B2Model):
    """Bucket an application key is scoped to."""
    bucket_id: str = Field(alias="bucketId")
    bucket_name: str = Field(alias="bucketName")


class AuthorizationState(_B2Model):
    """Result of ``b2_authorize_account``; replaced wholesale on re-authorization."""
    account_id: str = Field(alias="accountId")
    token: str = Field(alias="authorizationToken")
    obtained_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    api_url: str = Field(alias="apiUrl")
    download_url: str = Field(alias="downloadUrl")
    bucket_restriction: Optional[BucketRestriction] = None
    capabilities: tuple[str, ...] = ()
    recommended_part_size: Optional[int] = Field(default=None, alias="recommendedPartSize")
    absolute_minimum_part_size: Optional[int] = Field(default=None, alias="absoluteMinimumPartSize")

    def __repr__(self) -> str:
        # Keep the token out of logs and tracebacks
        return (
            f"AuthorizationState(account_id={self.account_id!r}, api_url={self.api_url!r}, "
            f"download_url={self.download_url!r}, bucket_restriction={self.bucket_restriction!r})"
        )

    __str__ = __repr__


class BucketInfo(_B2Model):
    bucket_id: str = Field(alias="bucketId")
    bucket_name: str = Field(alias="bucketName")
    bucket_type: Optional[str] = Field(default=None, alias="bucketType")


class UploadTarget(_B2Model):
    """Single-use upload URL and token from ``b2_get_upload_url``."""
    upload_url: str = Field(alias="uploadUrl")
    upload_auth_token: str = Field(alias="authorizationToken")


class UploadedFile(_B2Model):
    file_id: str = Field(alias="fileId")
    file_name: str = Field(alias="fileName")
    content_length: Optional[int] = Field(default=None, alias="contentLength")
    content_sha1: Optional[str] = Field(default=None, alias="contentSha1")


class FileVersion(_B2Model):
    file_id: str = Field(alias="fileId")
    file_name: str = Field(alias="fileName")
    action: Optional[str] = None
    upload_timestamp: Optional[int] = Field(default=None, alias="uploadTimestamp")
    content_length: Optional[int] = Field(default=None, alias="contentLength")


def parse_authorization(data: dict[str, Any]) -> AuthorizationState:
    """Build an AuthorizationState from a ``b2_authorize_account`` payload."""
    allowed = data.get("allowed") or {}
    restriction = None
    if allowed.get("bucketId") and allowed.get("bucketName"):
        restriction = BucketRestriction.model_validate(allowed)
    return AuthorizationState.model_validate({
        **data,
        "bucket_restriction": restriction,
        "capabilities": tuple(allowed.get("capabilities") or ()),
    })


class B2Client(BaseAPIClient):
    """B2 REST API wrapper built on the shared retrying HTTP client."""

    def __init__(
        self,
        application_key_id: str,
        application_key: str,
        api_url: str = DEFAULT_API_URL,
        **kwargs: Any,
    ):
        super().__init__(base_url=api_url, **kwargs)
        self._authorize_url = f"{api_url.rstrip('/')}/{API_PREFIX}/b2_authorize_account"
        self._basic_credentials = base64.b64encode(
            f"{application_key_id}:{application_key}".encode("utf-8")
        ).decode("ascii")
        self.account_id: Optional[str] = None
        self.download_url: Optional[str] = None

    async def authorize(self) -> AuthorizationState:
        response = await self.get(
            self._authorize_url,
            headers={"Authorization": f"Basic {self._basic_credentials}"},
        )
        return parse_authorization(response.json())

    def use_authorization(self, state: AuthorizationState) -> None:
        """Point subsequent API calls at the authorized API host and token."""
        self.base_url = state.api_url.rstrip("/")
        self.download_url = state.download_url.rstrip("/")
        self.account_id = state.account_id
        self.set_auth_token(state.token, prefix="")

    async def get_bucket(self, bucket_id: str) -> list[BucketInfo]:
        response = await self.post(
            f"{API_PREFIX}/b2_list_buckets",
            json_data={"accountId": self.account_id, "bucketId": bucket_id},
        )
        buckets = response.json().get("buckets") or []
        return [BucketInfo.model_validate(b) for b in buckets]

    async def get_upload_target(self, bucket_id: str) -> UploadTarget:
        response = await self.post(
            f"{API_PREFIX}/b2_get_upload_url",
            json_data={"bucketId": bucket_id},
        )
        return UploadTarget.model_validate(response.json())

    async def upload_file(
        self,
        target: UploadTarget,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> UploadedFile:
        """Send the bytes once; transport-level retries are disabled here."""
        headers = {
            "Authorization": target.upload_auth_token,
            "X-Bz-File-Name": quote(file_name, safe="/"),
            "Content-Type": content_type or AUTO_CONTENT_TYPE,
            "X-Bz-Content-Sha1": hashlib.sha1(data).hexdigest(),
        }
        response = await self.post(
            target.upload_url,
            content=data,
            headers=headers,
            max_retries=0,
        )
        payload = response.data if isinstance(response.data, dict) else {}
        return UploadedFile.model_validate({
            "fileId": payload.get("fileId", ""),
            "fileName": payload.get("fileName", file_name),
            "contentLength": payload.get("contentLength", len(data)),
            "contentSha1": payload.get("contentSha1"),
        })

    def file_url(self, bucket_name: str, file_name: str) -> str:
        if not self.download_url:
            raise RuntimeError("B2 client is not authorized")
        return f"{self.download_url}/file/{quote(bucket_name)}/{quote(file_name, safe='/')}"

    async def download_file_by_name(
        self,
        bucket_name: str,
        file_name: str,
        *,
        metadata_only: bool = False,
    ) -> APIResponse:
        url = self.file_url(bucket_name, file_name)
        if metadata_only:
            return await self.head(url)
        return await self.get(url, headers={"Accept": "*/*"})

    async def list_file_versions(
        self,
        bucket_id: str,
        prefix: str,
        max_file_count: int = 1000,
    ) -> list[FileVersion]:
        response = await self.post(
            f"{API_PREFIX}/b2_list_file_versions",
            json_data={
                "bucketId": bucket_id,
                "startFileName": prefix,
                "prefix": prefix,
                "maxFileCount": max_file_count,
            },
        )
        files = response.json().get("files") or []
        return [FileVersion.model_validate(f) for f in files]

    async def delete_file_version(self, file_id: str, file_name: str) -> None:
        await self.post(
            f"{API_PREFIX}/b2_delete_file_version",
            json_data={"fileId": file_id, "fileName": file_name},
        )
