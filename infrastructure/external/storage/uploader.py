"""Single logical upload with one-shot re-authorization."""
from typing import Optional

from core.logging_config import get_logger
from infrastructure.external.api_clients.base import APIConnectionError, APIError
from infrastructure.external.api_clients.b2 import AUTH_TOKEN_ERROR_CODES, UploadTarget
from .exceptions import UploadError, UploadFailureReason
from .models import ResolvedBucket
from .session import AuthorizationSession
from .urls import UrlResolver


def is_auth_token_error(error: APIError) -> bool:
    return error.error_code in AUTH_TOKEN_ERROR_CODES


class UploadCoordinator:
    """Upload one buffer and return its public URL.

    Only an expired/invalid token on the upload-target request triggers a
    retry: one re-authorization, one more target request. The bytes are sent
    at most once.
    """

    def __init__(
        self,
        session: AuthorizationSession,
        bucket: ResolvedBucket,
        base_url: str,
        logger=None,
    ):
        self.session = session
        self.bucket = bucket
        self.base_url = base_url
        self.logger = logger or get_logger(__name__)

    async def upload(
        self,
        buffer: bytes,
        storage_path: str,
        content_type: Optional[str] = None,
    ) -> str:
        target = await self._get_upload_target()

        try:
            uploaded = await self.session.client.upload_file(
                target, storage_path, buffer, content_type=content_type
            )
        except APIConnectionError as e:
            raise UploadError(
                UploadFailureReason.TRANSPORT_FAILURE, str(e), file_name=storage_path
            ) from e
        except ValueError as e:
            # pydantic ValidationError or a non-JSON 2xx body
            raise UploadError(
                UploadFailureReason.PROVIDER_REJECTED,
                f"Malformed upload response: {e}",
                file_name=storage_path,
            ) from e
        except APIError as e:
            reason = (
                UploadFailureReason.AUTH_EXPIRED
                if is_auth_token_error(e)
                else UploadFailureReason.PROVIDER_REJECTED
            )
            raise UploadError(
                reason, str(e), file_name=storage_path, provider_code=e.error_code
            ) from e

        url = UrlResolver.resolve(self.base_url, storage_path)
        self.logger.info("Uploaded to B2", key=storage_path, file_id=uploaded.file_id, size=len(buffer))
        return url

    async def _get_upload_target(self, retry_on_auth_error: bool = True) -> UploadTarget:
        try:
            return await self.session.client.get_upload_target(self.bucket.bucket_id)
        except APIConnectionError as e:
            raise UploadError(UploadFailureReason.TRANSPORT_FAILURE, str(e)) from e
        except ValueError as e:
            raise UploadError(
                UploadFailureReason.PROVIDER_REJECTED, f"Malformed upload target response: {e}"
            ) from e
        except APIError as e:
            if not is_auth_token_error(e):
                raise UploadError(
                    UploadFailureReason.PROVIDER_REJECTED, str(e), provider_code=e.error_code
                ) from e
            if not retry_on_auth_error:
                raise UploadError(
                    UploadFailureReason.AUTH_EXPIRED, str(e), provider_code=e.error_code
                ) from e
            self.logger.warning("B2 upload token rejected, re-authorizing", error_code=e.error_code)

        await self.session.reauthorize()
        return await self._get_upload_target(retry_on_auth_error=False)
