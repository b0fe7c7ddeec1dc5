"""Provider authorization session."""
from typing import Optional

from pydantic import ValidationError

from core.logging_config import get_logger
from infrastructure.external.api_clients.base import APIError
from infrastructure.external.api_clients.b2 import AuthorizationState, BucketRestriction
from .base import ProviderClient
from .exceptions import AuthError


class AuthorizationSession:
    """Holds the current provider authorization and refreshes it on demand.

    The provider never reports token lifetime up front, so there is no local
    expiry clock: a refresh happens only when a downstream call reports an
    expired or invalid token.
    """

    def __init__(self, client: ProviderClient, logger=None):
        self.client = client
        self.logger = logger or get_logger(__name__)
        self._state: Optional[AuthorizationState] = None

    @property
    def state(self) -> AuthorizationState:
        if self._state is None:
            raise AuthError("Provider session is not authorized")
        return self._state

    @property
    def is_authorized(self) -> bool:
        return self._state is not None

    @property
    def account_id(self) -> str:
        return self.state.account_id

    @property
    def download_url(self) -> str:
        return self.state.download_url.rstrip("/")

    @property
    def bucket_restriction(self) -> Optional[BucketRestriction]:
        return self._state.bucket_restriction if self._state else None

    async def authorize(self) -> AuthorizationState:
        """Fetch a new token; on failure the previous state is kept as is."""
        try:
            state = await self.client.authorize()
        except (APIError, ValidationError) as e:
            self.logger.error(
                "B2 authorization failed",
                status_code=getattr(e, "status_code", None),
                error_code=getattr(e, "error_code", None),
            )
            raise AuthError(f"B2 authorization failed: {e}") from e

        self.client.use_authorization(state)
        self._state = state
        self.logger.debug(
            "B2 authorized",
            account_id=state.account_id,
            restricted_bucket=state.bucket_restriction.bucket_id if state.bucket_restriction else None,
        )
        return state

    async def reauthorize(self) -> AuthorizationState:
        self.logger.info("Re-authorizing B2 session")
        return await self.authorize()

    def has_bucket_restriction(self, bucket_id: str) -> bool:
        restriction = self.bucket_restriction
        return restriction is not None and restriction.bucket_id == bucket_id
