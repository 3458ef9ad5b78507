from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from dato_optimizer.core.config import Settings
from dato_optimizer.core.errors import ConfigurationError
from dato_optimizer.schemas.content_store import upload_create_body, upload_path_update_body, upload_request_body

logger = logging.getLogger(__name__)


class ContentStoreClient:
    """Authenticated handle on the DatoCMS content management API.

    Two connection pools are kept: one for the CMA host, which carries the
    bearer credential, and one for transfers (source downloads and object
    storage uploads), which never does.
    """

    def __init__(
        self,
        *,
        api_token: str | None,
        base_url: str = "https://site-api.datocms.com",
        api_version: str = "3",
        environment: str | None = None,
        timeout: httpx.Timeout | None = None,
        transport: httpx.BaseTransport | None = None,
        job_poll_interval: float = 1.0,
        job_poll_max_attempts: int = 30,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        token = (api_token or "").strip()
        if not token:
            raise ConfigurationError("DATOCMS_API_TOKEN environment variable is not set")

        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Api-Version": str(api_version),
        }
        env = (environment or "").strip()
        if env:
            headers["X-Environment"] = env

        timeout = timeout or httpx.Timeout(connect=3.0, read=30.0, write=60.0, pool=3.0)
        self.base_url = str(base_url or "").rstrip("/")
        self._api = httpx.Client(base_url=self.base_url, headers=headers, timeout=timeout, transport=transport)
        self._transfer = httpx.Client(timeout=timeout, transport=transport, follow_redirects=True)
        self._job_poll_interval = max(0.0, float(job_poll_interval))
        self._job_poll_max_attempts = max(1, int(job_poll_max_attempts))
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.BaseTransport | None = None) -> ContentStoreClient:
        timeout = httpx.Timeout(
            connect=float(settings.http_timeout_connect),
            read=float(settings.http_timeout_read),
            write=float(settings.http_timeout_write),
            pool=3.0,
        )
        return cls(
            api_token=settings.datocms_api_token,
            base_url=settings.datocms_api_base_url,
            api_version=settings.datocms_api_version,
            environment=settings.datocms_environment,
            timeout=timeout,
            transport=transport,
            job_poll_interval=settings.job_poll_interval_seconds,
            job_poll_max_attempts=settings.job_poll_max_attempts,
        )

    def close(self) -> None:
        self._api.close()
        self._transfer.close()

    def __enter__(self) -> ContentStoreClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    # CMA endpoints

    def create_upload_request(self, filename: str) -> httpx.Response:
        return self._api.post("/upload-requests", json=upload_request_body(filename))

    def update_upload_path(self, upload_id: str, path: str) -> httpx.Response:
        return self._api.put(f"/uploads/{upload_id}", json=upload_path_update_body(upload_id, path))

    def create_upload(self, path: str) -> httpx.Response:
        return self._api.post("/uploads", json=upload_create_body(path))

    def find_upload(self, upload_id: str) -> httpx.Response:
        return self._api.get(f"/uploads/{upload_id}")

    def delete_upload(self, upload_id: str) -> httpx.Response:
        return self._api.delete(f"/uploads/{upload_id}")

    def get_site(self) -> httpx.Response:
        return self._api.get("/site")

    # Transfers

    def fetch_bytes(self, url: str) -> httpx.Response:
        return self._transfer.get(url)

    def put_object(self, url: str, content: bytes, headers: Mapping[str, str] | None = None) -> httpx.Response:
        merged = {k: v for k, v in (headers or {}).items() if k.lower() != "content-length"}
        merged["Content-Length"] = str(len(content))
        return self._transfer.put(url, content=content, headers=merged)

    # Async jobs

    def resolve_job(self, response: httpx.Response) -> httpx.Response:
        """Follow a ``job`` response to its result.

        Mutations on uploads may be answered with ``{"data": {"type": "job"}}``
        instead of the resource itself. The job result is polled until it is
        available and returned as if the original call had produced it.
        Any other response is returned unchanged.
        """
        job_id = _job_id(response)
        if job_id is None:
            return response

        for attempt in range(1, self._job_poll_max_attempts + 1):
            result = self._api.get(f"/job-results/{job_id}")
            if result.status_code == 404:
                logger.debug("Job %s pending (attempt %s)", job_id, attempt)
                self._sleep(self._job_poll_interval)
                continue
            if not result.is_success:
                return result

            try:
                attributes = ((result.json() or {}).get("data") or {}).get("attributes") or {}
                status = int(attributes.get("status") or 200)
                payload = attributes.get("payload") or {}
            except (ValueError, TypeError, AttributeError) as e:
                raise httpx.DecodingError(
                    f"malformed result for job {job_id}: {result.text[:200]}", request=result.request
                ) from e
            return httpx.Response(status, json=payload, request=result.request)

        raise httpx.TimeoutException(f"job {job_id} did not complete", request=response.request)


def _job_id(response: httpx.Response) -> str | None:
    if response.status_code not in (200, 202) or not response.content:
        return None
    try:
        data: Any = response.json().get("data")
    except (ValueError, AttributeError):
        return None
    if isinstance(data, dict) and data.get("type") == "job" and data.get("id"):
        return str(data["id"])
    return None
