import pytest

import infrastructure.external.storage as storage


@pytest.fixture(autouse=True)
def _reset_global_client():
    storage._storage_client = None
    yield
    storage._storage_client = None


@pytest.mark.asyncio
async def test_get_storage_requires_initialization():
    with pytest.raises(RuntimeError):
        await storage.get_storage()


@pytest.mark.asyncio
async def test_init_get_and_shutdown(make_client, fake_b2):
    config = {"applicationKeyId": "key_id", "applicationKey": "key", "bucketId": "012345"}

    adapter = await storage.init_storage_client(config, client=make_client())

    assert adapter.ready
    assert storage.get_storage_client() is adapter
    assert await storage.get_storage() is adapter
    assert await storage.init_storage_client(config, client=make_client()) is adapter
    assert fake_b2.count("authorize") == 1

    await storage.shutdown_storage_client()

    assert storage.get_storage_client() is None


@pytest.mark.asyncio
async def test_failed_init_leaves_no_client(make_client, fake_b2):
    fake_b2.auth_failures = [fake_b2.error(401, "unauthorized")]

    with pytest.raises(storage.AuthError):
        await storage.init_storage_client(
            {"applicationKeyId": "key_id", "applicationKey": "key", "bucketId": "012345"},
            client=make_client(),
        )

    assert storage.get_storage_client() is None
