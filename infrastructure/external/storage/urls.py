"""Public download URL composition."""
from typing import Optional

from .config import B2StorageConfig
from .models import ResolvedBucket
from .session import AuthorizationSession


class UrlResolver:
    @staticmethod
    def base_url(
        config: B2StorageConfig,
        session: AuthorizationSession,
        bucket: ResolvedBucket,
    ) -> str:
        """Custom download domain if configured, else the provider's ``/file/{bucket}`` URL."""
        if config.download_url:
            return config.download_url.rstrip("/")
        return f"{session.download_url}/file/{bucket.bucket_name}"

    @staticmethod
    def resolve(base_url: str, storage_path: Optional[str] = None) -> str:
        """Join with exactly one ``/``; an empty path yields the base itself."""
        base = base_url.rstrip("/")
        path = (storage_path or "").lstrip("/")
        if not path:
            return base
        return f"{base}/{path}"

    @staticmethod
    def relative_path(base_url: str, url_or_path: str) -> str:
        """Strip the download base from a URL; provider-relative paths pass through."""
        prefix = base_url.rstrip("/") + "/"
        if url_or_path.startswith(prefix):
            return url_or_path[len(prefix):]
        return url_or_path.lstrip("/")
