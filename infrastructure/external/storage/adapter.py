"""Backblaze B2 storage adapter for the publishing host."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Mapping, Optional

import anyio

from application.ports.storage import (
    Image,
    Middleware,
    ReadOptions,
    StorageHelpers,
    StoragePort,
)
from application.utils.storage import DefaultStorageHelpers, guess_content_type, join_storage_path
from core.logging_config import get_logger
from domain.common.exceptions import error_for_status
from infrastructure.external.api_clients.base import APIConnectionError, APIError, NotFoundError
from infrastructure.external.api_clients.b2 import B2Client
from .base import ProviderClient
from .buckets import BucketResolver
from .config import B2StorageConfig, load_b2_config
from .exceptions import StorageError
from .models import ResolvedBucket
from .session import AuthorizationSession
from .uploader import UploadCoordinator
from .urls import UrlResolver

# Page size for b2_list_file_versions (single page only)
MAX_VERSIONS_PER_DELETE = 1000


class B2StorageAdapter(StoragePort):
    """Store host media in a Backblaze B2 bucket.

    Construction only validates configuration. Authorization, bucket
    resolution and download URL derivation run once in a shared setup task;
    every operation awaits it first, so concurrent first calls share a single
    setup and a failed setup is re-raised to each caller.
    """

    def __init__(
        self,
        config: Optional[Mapping[str, Any] | B2StorageConfig] = None,
        *,
        helpers: Optional[StorageHelpers] = None,
        client: Optional[ProviderClient] = None,
        logger=None,
    ):
        self.config = config if isinstance(config, B2StorageConfig) else load_b2_config(config)
        self.helpers = helpers or DefaultStorageHelpers()
        self.logger = logger or get_logger(__name__).bind(bucket_id=self.config.bucket_id)

        self.client: ProviderClient = client or B2Client(
            application_key_id=self.config.application_key_id,
            application_key=self.config.application_key,
            api_url=self.config.api_url,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries,
            retry_delay=self.config.retry_delay,
        )
        self.session = AuthorizationSession(self.client, logger=self.logger)

        self.bucket: Optional[ResolvedBucket] = None
        self._base_url: Optional[str] = self.config.download_url
        self._uploader: Optional[UploadCoordinator] = None
        self._setup_task: Optional[asyncio.Task] = None

    @classmethod
    async def create(
        cls,
        config: Optional[Mapping[str, Any] | B2StorageConfig] = None,
        **kwargs: Any,
    ) -> "B2StorageAdapter":
        """Build an adapter and wait until it is ready to serve requests."""
        adapter = cls(config, **kwargs)
        await adapter.ensure_ready()
        return adapter

    # Lifecycle

    @property
    def ready(self) -> bool:
        task = self._setup_task
        return task is not None and task.done() and not task.cancelled() and task.exception() is None

    def start(self) -> asyncio.Task:
        """Schedule the one-time setup (idempotent)."""
        if self._setup_task is None:
            self._setup_task = asyncio.get_running_loop().create_task(self._setup())
        return self._setup_task

    async def ensure_ready(self) -> None:
        await asyncio.shield(self.start())

    async def _setup(self) -> None:
        try:
            state = await self.session.authorize()
            self.logger.debug("B2 account", account_id=state.account_id)

            bucket = await BucketResolver(logger=self.logger).resolve(self.config, self.session)
            self.logger.debug("B2 bucket", bucket_name=bucket.bucket_name, bucket_id=bucket.bucket_id)

            base_url = UrlResolver.base_url(self.config, self.session, bucket)
            self.logger.debug("B2 download URL", download_url=base_url)
        except Exception as e:
            self.logger.error("B2 storage setup failed", error=str(e))
            raise

        self.bucket = bucket
        self._base_url = base_url
        self._uploader = UploadCoordinator(self.session, bucket, base_url, logger=self.logger)

    async def aclose(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "B2StorageAdapter":
        await self.ensure_ready()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # Plugin contract

    async def save_raw(self, buffer: bytes, target_path: str) -> str:
        """Store a buffer at ``target_path`` (used for responsive image variants)."""
        await self.ensure_ready()
        self.logger.debug("save_raw", target_path=target_path)

        storage_path = join_storage_path(self.config.path_prefix, target_path)
        return await self._uploader.upload(
            buffer, storage_path, content_type=guess_content_type(storage_path)
        )

    async def save(self, image: Image, target_dir: Optional[str] = None) -> str:
        """Read a local upload and store it under a collision-free name."""
        await self.ensure_ready()
        self.logger.debug("save", image=image.name, target_dir=target_dir)

        directory = join_storage_path(
            self.config.path_prefix, target_dir or self.helpers.get_target_dir()
        )
        buffer = await anyio.to_thread.run_sync(Path(image.path).read_bytes)
        storage_path = await self.helpers.get_unique_file_name(image, directory, self._exists_in)
        return await self._uploader.upload(
            buffer, storage_path, content_type=guess_content_type(storage_path)
        )

    async def exists(self, file_name: str, target_dir: Optional[str] = None) -> bool:
        await self.ensure_ready()
        directory = join_storage_path(
            self.config.path_prefix, target_dir or self.helpers.get_target_dir()
        )
        return await self._exists_in(file_name, directory)

    async def _exists_in(self, file_name: str, directory: str) -> bool:
        storage_path = join_storage_path(directory, file_name)
        try:
            await self.client.download_file_by_name(
                self.bucket.bucket_name, storage_path, metadata_only=True
            )
        except NotFoundError:
            self.logger.debug("exists", key=storage_path, result=False)
            return False
        except APIConnectionError as e:
            raise error_for_status(None, str(e), details={"key": storage_path}) from e
        except APIError as e:
            raise error_for_status(
                e.status_code, e.error_code or e.message, details={"key": storage_path}
            ) from e
        self.logger.debug("exists", key=storage_path, result=True)
        return True

    async def delete(self, file_name: str, target_dir: Optional[str] = None) -> bool:
        """Delete every version of a file; False when nothing was stored."""
        await self.ensure_ready()
        storage_path = join_storage_path(
            self.config.path_prefix, target_dir or self.helpers.get_target_dir(), file_name
        )

        versions = await self.client.list_file_versions(
            self.bucket.bucket_id, storage_path, max_file_count=MAX_VERSIONS_PER_DELETE
        )
        versions = [v for v in versions if v.file_name == storage_path]

        results = await asyncio.gather(
            *(self.client.delete_file_version(v.file_id, v.file_name) for v in versions),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            self.logger.error(
                "B2 version delete failed",
                key=storage_path,
                versions=len(versions),
                failed=len(errors),
            )
            raise errors[0]

        self.logger.info("Deleted from B2", key=storage_path, versions=len(versions))
        return len(versions) > 0

    async def read(self, options: ReadOptions) -> bytes:
        """Download a stored file given its public URL or storage path."""
        await self.ensure_ready()
        file_name = UrlResolver.relative_path(self._base_url, options.path)

        try:
            response = await self.client.download_file_by_name(self.bucket.bucket_name, file_name)
        except APIConnectionError as e:
            raise error_for_status(None, str(e), details={"key": file_name}) from e
        except APIError as e:
            raise error_for_status(
                e.status_code, e.error_code or e.message, details={"key": file_name}
            ) from e

        self.logger.debug("Downloaded from B2", key=file_name, size=len(response.raw_content))
        return response.raw_content

    def serve(self) -> Middleware:
        """Files are served by B2 (or the CDN in front of it), never proxied here."""
        async def passthrough(request, call_next):
            return await call_next(request)

        return passthrough

    def get_download_url(self, sub_path: Optional[str] = None) -> str:
        if self._base_url is None:
            task = self._setup_task
            if task is not None and task.done() and not task.cancelled() and task.exception():
                raise task.exception()
            raise StorageError("B2 storage adapter is not ready; await ensure_ready() first")
        return UrlResolver.resolve(self._base_url, sub_path)
