"""Storage data transfer objects."""
from pydantic import BaseModel, ConfigDict


class ResolvedBucket(BaseModel):
    """Definitive bucket identity, fixed for the adapter's lifetime."""
    model_config = ConfigDict(frozen=True)

    bucket_id: str
    bucket_name: str
