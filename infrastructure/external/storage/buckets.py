"""Bucket identity resolution."""
from core.logging_config import get_logger
from infrastructure.external.api_clients.base import APIError
from .config import B2StorageConfig
from .exceptions import BucketNotFoundError
from .models import ResolvedBucket
from .session import AuthorizationSession


class BucketResolver:
    """Resolve the configured bucket id to a ``(bucket_id, bucket_name)`` pair.

    Tiers, first match wins:
        1. id and name both configured: used as is, no network call
        2. application key restricted to this bucket: trust the restriction
        3. ``get_bucket`` lookup (needs the listBuckets capability)
    """

    def __init__(self, logger=None):
        self.logger = logger or get_logger(__name__)

    async def resolve(self, config: B2StorageConfig, session: AuthorizationSession) -> ResolvedBucket:
        if config.bucket_id and config.bucket_name:
            return ResolvedBucket(bucket_id=config.bucket_id, bucket_name=config.bucket_name)

        if session.has_bucket_restriction(config.bucket_id):
            restriction = session.bucket_restriction
            self.logger.debug("B2 application key restriction found, using that bucket")
            return ResolvedBucket(
                bucket_id=restriction.bucket_id,
                bucket_name=restriction.bucket_name,
            )

        self.logger.debug("Contacting B2 API for bucket name", bucket_id=config.bucket_id)
        try:
            buckets = await session.client.get_bucket(config.bucket_id)
        except APIError as e:
            raise BucketNotFoundError(
                config.bucket_id,
                f"Bucket lookup failed for {config.bucket_id}: {e}",
            ) from e

        if not buckets:
            raise BucketNotFoundError(config.bucket_id)

        return ResolvedBucket(bucket_id=config.bucket_id, bucket_name=buckets[0].bucket_name)
