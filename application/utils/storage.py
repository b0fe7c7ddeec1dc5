"""Application-level storage helpers to avoid infra coupling."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
import mimetypes
import posixpath
import re

from application.ports.storage import ExistsCheck, Image, StorageHelpers


_UNSAFE_CHARS = re.compile(r"[^\w@.]")


def join_storage_path(*segments: Optional[str]) -> str:
    """Join path segments into a provider-relative key.

    Empty and ``.`` segments are dropped and the result never starts or ends
    with ``/``; ``None`` segments are ignored.
    """
    parts: list[str] = []
    for segment in segments:
        if not segment:
            continue
        for part in segment.replace("\\", "/").split("/"):
            if part and part != ".":
                parts.append(part)
    return "/".join(parts)


def guess_content_type(filename: str) -> Optional[str]:
    ctype, _ = mimetypes.guess_type(filename)
    return ctype


class DefaultStorageHelpers(StorageHelpers):
    """Default host behaviour: ``YYYY/MM`` target dirs and ``name-N.ext`` de-duplication."""

    def get_target_dir(self, base_dir: Optional[str] = None) -> str:
        now = datetime.now(timezone.utc)
        return join_storage_path(base_dir, str(now.year), f"{now.month:02d}")

    def get_sanitized_file_name(self, file_name: str) -> str:
        return _UNSAFE_CHARS.sub("-", file_name)

    async def get_unique_file_name(
        self,
        image: Image,
        target_dir: str,
        exists: ExistsCheck,
    ) -> str:
        base_name = posixpath.basename(image.name.replace("\\", "/"))
        stem, ext = posixpath.splitext(base_name)
        name = self.get_sanitized_file_name(stem)

        attempt = 0
        while True:
            file_name = f"{name}-{attempt}{ext}" if attempt else f"{name}{ext}"
            if not await exists(file_name, target_dir):
                return join_storage_path(target_dir, file_name)
            attempt += 1
