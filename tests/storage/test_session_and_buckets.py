import pytest

from infrastructure.external.storage import (
    AuthError,
    AuthorizationSession,
    BucketNotFoundError,
    BucketResolver,
    load_b2_config,
)


def _config(**kwargs):
    return load_b2_config({"application_key_id": "key_id", "application_key": "key", "bucket_id": "012345", **kwargs})


@pytest.mark.asyncio
async def test_authorize_stores_state_and_points_client(make_client, fake_b2):
    client = make_client()
    session = AuthorizationSession(client)

    state = await session.authorize()

    assert session.is_authorized
    assert state.account_id == "000000000000"
    assert session.download_url == "https://fNNN.example.com"
    assert session.has_bucket_restriction("012345")
    assert client.base_url == "https://api.example.com"
    assert client.default_headers["Authorization"] == "account_token_1"
    assert "account_token_1" not in repr(state)


@pytest.mark.asyncio
async def test_authorize_sends_basic_credentials(make_client, fake_b2):
    session = AuthorizationSession(make_client(application_key_id="abc", application_key="secret"))

    await session.authorize()

    request = fake_b2.requests[0]
    assert request.url == "https://api.backblazeb2.com/b2api/v2/b2_authorize_account"
    assert request.headers["Authorization"] == "Basic YWJjOnNlY3JldA=="
    assert request.headers["User-Agent"].startswith("b2-storage-adapter/")


@pytest.mark.asyncio
async def test_failed_reauthorization_keeps_previous_state(make_client, fake_b2):
    session = AuthorizationSession(make_client())
    first = await session.authorize()
    fake_b2.auth_failures = [fake_b2.error(401, "unauthorized", "key revoked")]

    with pytest.raises(AuthError):
        await session.reauthorize()

    assert session.state is first


@pytest.mark.asyncio
async def test_reauthorize_replaces_token(make_client, fake_b2):
    session = AuthorizationSession(make_client())
    await session.authorize()

    state = await session.reauthorize()

    assert state.token == "account_token_2"
    assert session.state is state


def test_unauthorized_session_has_no_state(make_client):
    session = AuthorizationSession(make_client())

    assert session.is_authorized is False
    assert session.bucket_restriction is None
    with pytest.raises(AuthError):
        session.state


@pytest.mark.asyncio
async def test_configured_name_skips_network(make_client, fake_b2):
    session = AuthorizationSession(make_client())
    await session.authorize()

    bucket = await BucketResolver().resolve(_config(bucket_name="configured"), session)

    assert (bucket.bucket_id, bucket.bucket_name) == ("012345", "configured")
    assert fake_b2.count("list_buckets") == 0


@pytest.mark.asyncio
async def test_key_restriction_names_the_bucket(make_client, fake_b2):
    session = AuthorizationSession(make_client())
    await session.authorize()

    bucket = await BucketResolver().resolve(_config(), session)

    assert bucket.bucket_name == "my_bucket"
    assert fake_b2.count("list_buckets") == 0


@pytest.mark.asyncio
async def test_unrestricted_key_looks_bucket_up(make_client, fake_b2):
    fake_b2.restricted = False
    session = AuthorizationSession(make_client())
    await session.authorize()

    bucket = await BucketResolver().resolve(_config(), session)

    assert bucket.bucket_name == "my_bucket"
    assert fake_b2.count("list_buckets") == 1


@pytest.mark.asyncio
async def test_restriction_to_other_bucket_falls_back_to_lookup(make_client, fake_b2):
    fake_b2.buckets.append({"bucketId": "999", "bucketName": "other_bucket"})
    session = AuthorizationSession(make_client())
    await session.authorize()

    bucket = await BucketResolver().resolve(_config(bucket_id="999"), session)

    assert bucket.bucket_name == "other_bucket"
    assert fake_b2.count("list_buckets") == 1


@pytest.mark.asyncio
async def test_unknown_bucket_is_reported(make_client, fake_b2):
    fake_b2.restricted = False
    session = AuthorizationSession(make_client())
    await session.authorize()

    with pytest.raises(BucketNotFoundError) as exc_info:
        await BucketResolver().resolve(_config(bucket_id="missing"), session)

    assert exc_info.value.bucket_id == "missing"
