import json
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from dato_optimizer.core.config import Settings
from dato_optimizer.main import create_app
from dato_optimizer.services.content_store import ContentStoreClient


CMA_HOST = "site-api.datocms.com"
S3_HOST = "s3.example.com"
ORIGIN_HOST = "www.datocms-assets.com"

IMAGE_BYTES = b"\xff\xd8\xff\xe0" + b"optimized" * 64


class FakeBackend:
    """Plays the CMA, the object store and the image origin on one transport.

    ``status`` overrides the status code answered for a step:
    ``upload_request``, ``source``, ``s3``, ``update``, ``create``, ``delete``, ``site``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status: dict[str, int] = {}
        self.upload_request_id = "/12345/1700000000-optimized-photo.jpg"
        self.s3_headers = {"Content-Type": "image/jpeg", "x-amz-acl": "private"}
        self.new_upload_id = "999"
        self.job_responses: dict[str, bool] = {}
        self.pending_job_polls = 0
        self.job_result_text: str | None = None
        self.raise_on: set[str] = set()

    def _status(self, step: str, default: int = 200) -> int:
        return self.status.get(step, default)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = request.url.path
        method = request.method

        if host == CMA_HOST:
            return self._cma(request, method, path)

        if host == S3_HOST and method == "PUT":
            if "s3" in self.raise_on:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(self._status("s3"))

        if host == ORIGIN_HOST and method == "GET":
            if "source" in self.raise_on:
                raise httpx.ReadTimeout("timed out", request=request)
            code = self._status("source")
            if code >= 400:
                return httpx.Response(code)
            return httpx.Response(code, content=IMAGE_BYTES, headers={"Content-Type": "image/jpeg"})

        return httpx.Response(404, json={"error": "unexpected request"})

    def _cma(self, request: httpx.Request, method: str, path: str) -> httpx.Response:
        if method == "POST" and path == "/upload-requests":
            if "upload_request" in self.raise_on:
                raise httpx.ConnectTimeout("timed out", request=request)
            code = self._status("upload_request")
            if code >= 400:
                return httpx.Response(code, text='{"data":[{"type":"api_error","attributes":{"code":"INVALID_AUTHORIZATION_HEADER"}}]}')
            return httpx.Response(
                code,
                json={
                    "data": {
                        "id": self.upload_request_id,
                        "type": "upload_request",
                        "attributes": {
                            "url": f"https://{S3_HOST}/bucket{self.upload_request_id}?X-Amz-Signature=abc",
                            "request_headers": dict(self.s3_headers),
                        },
                    }
                },
            )

        if method == "PUT" and path.startswith("/uploads/"):
            upload_id = path.rsplit("/", 1)[-1]
            code = self._status("update")
            if code >= 400:
                return httpx.Response(code, text='{"data":[{"type":"api_error","attributes":{"code":"NOT_FOUND"}}]}')
            if self.job_responses.get("update"):
                return httpx.Response(202, json={"data": {"type": "job", "id": "job-update"}})
            body = json.loads(request.content)
            return httpx.Response(code, json=self._upload(upload_id, body["data"]["attributes"]["path"]))

        if method == "GET" and path.startswith("/uploads/"):
            return httpx.Response(200, json=self._upload(path.rsplit("/", 1)[-1], self.upload_request_id))

        if method == "POST" and path == "/uploads":
            code = self._status("create")
            if code >= 400:
                return httpx.Response(code, text="create failed")
            if self.job_responses.get("create"):
                return httpx.Response(202, json={"data": {"type": "job", "id": "job-create"}})
            body = json.loads(request.content)
            return httpx.Response(code, json=self._upload(self.new_upload_id, body["data"]["attributes"]["path"]))

        if method == "DELETE" and path.startswith("/uploads/"):
            code = self._status("delete")
            if code >= 400:
                return httpx.Response(code, text="delete failed")
            return httpx.Response(code, json={"data": {"id": path.rsplit("/", 1)[-1], "type": "upload", "attributes": {}}})

        if method == "GET" and path.startswith("/job-results/"):
            if self.pending_job_polls > 0:
                self.pending_job_polls -= 1
                return httpx.Response(404, json={"data": []})
            if self.job_result_text is not None:
                return httpx.Response(200, text=self.job_result_text)
            job_id = path.rsplit("/", 1)[-1]
            upload_id = self.new_upload_id if job_id == "job-create" else "4567"
            return httpx.Response(
                200,
                json={
                    "data": {
                        "type": "job_result",
                        "id": job_id,
                        "attributes": {"status": 200, "payload": self._upload(upload_id, self.upload_request_id)},
                    }
                },
            )

        if method == "GET" and path == "/site":
            return httpx.Response(self._status("site"), json={"data": {"id": "1", "type": "site", "attributes": {}}})

        return httpx.Response(404, json={"error": "unexpected request"})

    def _upload(self, upload_id: str, path: str) -> dict:
        return {
            "data": {
                "id": upload_id,
                "type": "upload",
                "attributes": {
                    "path": path,
                    "width": 2000,
                    "height": 667,
                    "size": 812345,
                    "format": "jpg",
                },
            }
        }

    def calls(self, method: str, host: str, path_prefix: str = "") -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method and r.url.host == host and r.url.path.startswith(path_prefix)
        ]


@pytest.fixture()
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def content_store(fake_backend):
    client = ContentStoreClient(
        api_token="test-token",
        transport=httpx.MockTransport(fake_backend),
        job_poll_interval=0,
        job_poll_max_attempts=3,
        sleep=lambda _: None,
    )
    yield client
    client.close()


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(DATOCMS_API_TOKEN="test-token", REPLACEMENT_STRATEGY="replace_in_place")


@pytest.fixture()
def client(test_settings, content_store):
    app = create_app(settings=test_settings, content_store=content_store)
    return TestClient(app)
