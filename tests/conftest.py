"""Pytest bootstrap configuration.

Provides an in-memory fake of the Backblaze B2 native API served through
``httpx.MockTransport`` and helpers to build adapters wired to it.
"""
import json
from typing import Any, Optional
from urllib.parse import unquote

import httpx
import pytest

from core.logging_config import configure_logging
from infrastructure.external.api_clients.b2 import B2Client
from infrastructure.external.storage import B2StorageAdapter


API_URL = "https://api.example.com"
DOWNLOAD_URL = "https://fNNN.example.com"
UPLOAD_URL = "https://pod-000-1000-00.example.com/b2api/v2/b2_upload_file/012345/c000_v0001000_t0001"

configure_logging()

B2_ENV_VARS = (
    "B2_APPLICATION_KEY_ID",
    "B2_APPLICATION_KEY",
    "B2_BUCKET_ID",
    "B2_BUCKET_NAME",
    "B2_DOWNLOAD_URL",
    "B2_PATH_PREFIX",
    "B2_API_URL",
    "B2_TIMEOUT",
    "B2_MAX_RETRIES",
    "B2_RETRY_DELAY",
)


def _b2_error(status: int, code: str, message: str = "") -> httpx.Response:
    return httpx.Response(status, json={"status": status, "code": code, "message": message or code})


class FakeB2:
    """Minimal B2 server: authorize, buckets, upload, download, versions."""

    def __init__(self, bucket_id: str = "012345", bucket_name: str = "my_bucket", restricted: bool = True):
        self.bucket_id = bucket_id
        self.bucket_name = bucket_name
        self.restricted = restricted
        self.buckets: list[dict[str, Any]] = [
            {"accountId": "000000000000", "bucketId": bucket_id, "bucketName": bucket_name, "bucketType": "allPublic"}
        ]
        self.files: dict[str, bytes] = {}
        self.versions: dict[str, list[str]] = {}

        self.auth_failures: list[Any] = []
        self.upload_target_failures: list[Any] = []
        self.upload_failures: list[Any] = []
        self.download_failures: list[Any] = []

        self.requests: list[httpx.Request] = []
        self.counts: dict[str, int] = {}
        self.deleted: list[tuple[str, str]] = []
        self.token_seq = 0

    error = staticmethod(_b2_error)

    def count(self, name: str) -> int:
        return self.counts.get(name, 0)

    def _hit(self, name: str) -> None:
        self.counts[name] = self.counts.get(name, 0) + 1

    def _next_failure(self, queue: list[Any]) -> httpx.Response:
        failure = queue.pop(0)
        if isinstance(failure, Exception):
            raise failure
        return failure

    def authorization_payload(self) -> dict[str, Any]:
        self.token_seq += 1
        allowed: dict[str, Any] = {"capabilities": ["listFiles", "readFiles", "writeFiles", "deleteFiles"]}
        if self.restricted:
            allowed.update({"bucketId": self.bucket_id, "bucketName": self.bucket_name})
        else:
            allowed.update({"bucketId": None, "bucketName": None})
        return {
            "accountId": "000000000000",
            "authorizationToken": f"account_token_{self.token_seq}",
            "allowed": allowed,
            "apiUrl": API_URL,
            "downloadUrl": DOWNLOAD_URL,
            "recommendedPartSize": 10000,
            "absoluteMinimumPartSize": 5000,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        host = request.url.host

        if path.endswith("/b2_authorize_account"):
            self._hit("authorize")
            if self.auth_failures:
                return self._next_failure(self.auth_failures)
            return httpx.Response(200, json=self.authorization_payload())

        if path.endswith("/b2_list_buckets"):
            self._hit("list_buckets")
            body = json.loads(request.content)
            matches = [b for b in self.buckets if b["bucketId"] == body.get("bucketId")]
            return httpx.Response(200, json={"buckets": matches})

        if path.endswith("/b2_get_upload_url"):
            self._hit("get_upload_url")
            if self.upload_target_failures:
                return self._next_failure(self.upload_target_failures)
            return httpx.Response(200, json={
                "bucketId": self.bucket_id,
                "uploadUrl": UPLOAD_URL,
                "authorizationToken": "upload_token",
            })

        if path.startswith("/b2api/v2/b2_upload_file"):
            self._hit("upload")
            if self.upload_failures:
                return self._next_failure(self.upload_failures)
            name = unquote(request.headers["X-Bz-File-Name"])
            self.files[name] = request.content
            file_id = f"4_z{len(self.files):04d}"
            self.versions.setdefault(name, []).append(file_id)
            return httpx.Response(200, json={
                "fileId": file_id,
                "fileName": name,
                "contentLength": len(request.content),
                "contentSha1": request.headers.get("X-Bz-Content-Sha1"),
            })

        if path.endswith("/b2_list_file_versions"):
            self._hit("list_file_versions")
            body = json.loads(request.content)
            files = [
                {"fileId": file_id, "fileName": name, "action": "upload"}
                for name, ids in sorted(self.versions.items())
                if name.startswith(body.get("prefix", ""))
                for file_id in ids
            ]
            return httpx.Response(200, json={"files": files[: body.get("maxFileCount", 1000)], "nextFileName": None})

        if path.endswith("/b2_delete_file_version"):
            self._hit("delete_file_version")
            body = json.loads(request.content)
            self.deleted.append((body["fileId"], body["fileName"]))
            return httpx.Response(200, json={"fileId": body["fileId"], "fileName": body["fileName"]})

        if host == "fNNN.example.com".lower() and path.startswith(f"/file/{self.bucket_name}/"):
            self._hit("download")
            if self.download_failures:
                return self._next_failure(self.download_failures)
            name = unquote(path[len(f"/file/{self.bucket_name}/"):])
            if name not in self.files:
                return _b2_error(404, "not_found", f"File not present: {name}")
            return httpx.Response(200, content=self.files[name], headers={"Content-Type": "image/png"})

        return _b2_error(400, "bad_request", f"Unhandled path {path}")


@pytest.fixture(autouse=True)
def _clean_b2_env(monkeypatch):
    for name in B2_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_b2() -> FakeB2:
    return FakeB2()


@pytest.fixture
def make_client(fake_b2):
    def _make(**kwargs: Any) -> B2Client:
        return B2Client(
            application_key_id=kwargs.pop("application_key_id", "key_id"),
            application_key=kwargs.pop("application_key", "key"),
            transport=httpx.MockTransport(fake_b2.handler),
            **{"retry_delay": 0, **kwargs},
        )

    return _make


@pytest.fixture
def make_adapter(make_client):
    def _make(config: Optional[dict[str, Any]] = None, **kwargs: Any) -> B2StorageAdapter:
        cfg = {"applicationKeyId": "key_id", "applicationKey": "key", "bucketId": "012345"}
        cfg.update(config or {})
        return B2StorageAdapter(cfg, client=make_client(), **kwargs)

    return _make
