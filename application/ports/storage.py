"""Application-owned storage port abstraction (hexagonal architecture).

Defines the plugin contract the publishing host calls on a media storage
adapter, plus the host-side helpers the adapter borrows (target directory
and collision-free file names) so the infrastructure layer does not inherit
host behaviour.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable
from dataclasses import dataclass


@dataclass
class Image:
    """Uploaded file as handed over by the host (original name + temp path)."""

    name: str
    path: str


@dataclass
class ReadOptions:
    path: str


# Starlette/FastAPI "http" middleware shape: (request, call_next) -> response
Middleware = Callable[[Any, Callable[[Any], Awaitable[Any]]], Awaitable[Any]]

# exists(file_name, target_dir) -> bool
ExistsCheck = Callable[[str, str], Awaitable[bool]]


@runtime_checkable
class StorageHelpers(Protocol):
    def get_target_dir(self, base_dir: Optional[str] = None) -> str: ...

    async def get_unique_file_name(
        self,
        image: Image,
        target_dir: str,
        exists: ExistsCheck,
    ) -> str: ...


@runtime_checkable
class StoragePort(Protocol):
    async def save(self, image: Image, target_dir: Optional[str] = None) -> str: ...

    async def save_raw(self, buffer: bytes, target_path: str) -> str: ...

    async def exists(self, file_name: str, target_dir: Optional[str] = None) -> bool: ...

    async def delete(self, file_name: str, target_dir: Optional[str] = None) -> bool: ...

    async def read(self, options: ReadOptions) -> bytes: ...

    def serve(self) -> Middleware: ...

    def get_download_url(self, sub_path: Optional[str] = None) -> str: ...
