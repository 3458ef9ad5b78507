from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from dato_optimizer.core.config import Settings
from dato_optimizer.core.errors import (
    ConfigurationError,
    CreateUploadFailed,
    FinalizeFailed,
    SourceFetchFailed,
    StageRequestFailed,
    StageUploadFailed,
)
from dato_optimizer.schemas.content_store import UploadRequestResponse, UploadResponse
from dato_optimizer.services.content_store import ContentStoreClient

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_FILENAME = "optimized-image.jpg"


@dataclass(frozen=True)
class ReplacementResult:
    asset_id: str
    succeeded: bool
    attributes: dict[str, Any] = field(default_factory=dict)
    new_upload_id: str | None = None
    original_deleted: bool = False

    @property
    def replaced_in_place(self) -> bool:
        return self.succeeded and self.new_upload_id is None


class ReplacementStrategy(Protocol):
    def apply(self, asset_id: str, source_url: str, filename: str | None = None) -> ReplacementResult: ...


def stage_from_url(
    client: ContentStoreClient,
    source_url: str,
    filename: str | None = None,
    *,
    default_filename: str = DEFAULT_UPLOAD_FILENAME,
) -> str:
    """Stage the bytes behind ``source_url`` in object storage.

    Runs the upload-request, fetch and upload steps and returns the path
    token that has to be attached to an upload to make the bytes live.
    """
    # 1) upload request
    use_filename = (filename or "").strip() or default_filename
    try:
        r = client.create_upload_request(use_filename)
    except httpx.HTTPError as e:
        raise StageRequestFailed(f"Failed to create upload request: {type(e).__name__}", body=str(e)) from e
    if not r.is_success:
        raise StageRequestFailed("Failed to create upload request", status_code=r.status_code, body=r.text)
    try:
        upload_request = UploadRequestResponse.model_validate(r.json()).data
    except (ValueError, ValidationError) as e:
        raise StageRequestFailed(
            "Malformed upload request response", status_code=r.status_code, body=r.text
        ) from e

    path = upload_request.id
    logger.info("Upload request %s created for %s", path, use_filename)

    # 2) source bytes
    try:
        src = client.fetch_bytes(source_url)
    except httpx.HTTPError as e:
        raise SourceFetchFailed(f"Failed to fetch image from URL: {type(e).__name__}", body=str(e)) from e
    if not src.is_success:
        raise SourceFetchFailed(
            "Failed to fetch image from URL", status_code=src.status_code, body=src.reason_phrase
        )
    payload = src.content
    logger.info("Fetched %s bytes from %s", len(payload), source_url)

    # 3) object storage
    try:
        put = client.put_object(upload_request.attributes.url, payload, upload_request.attributes.request_headers)
    except httpx.HTTPError as e:
        raise StageUploadFailed(f"Failed to upload file to storage: {type(e).__name__}", body=str(e)) from e
    if not put.is_success:
        raise StageUploadFailed("Failed to upload file to storage", status_code=put.status_code, body=put.reason_phrase)

    return path


class ReplaceInPlace:
    """Point an existing upload at freshly staged bytes.

    The upload keeps its id, so every record linking to it now serves the
    optimized file. Nothing is cleaned up if finalizing fails after staging.
    """

    def __init__(self, client: ContentStoreClient, *, default_filename: str = DEFAULT_UPLOAD_FILENAME) -> None:
        self.client = client
        self.default_filename = default_filename

    def apply(self, asset_id: str, source_url: str, filename: str | None = None) -> ReplacementResult:
        if not str(asset_id or "").strip():
            raise ValueError("asset_id is required")
        logger.info("Replacing DatoCMS asset ID %s with image from URL: %s", asset_id, source_url)

        path = stage_from_url(self.client, source_url, filename, default_filename=self.default_filename)

        # 4) finalize
        try:
            r = self.client.resolve_job(self.client.update_upload_path(asset_id, path))
        except httpx.HTTPError as e:
            raise FinalizeFailed(f"Failed to update asset metadata: {type(e).__name__}", body=str(e)) from e
        if not r.is_success:
            raise FinalizeFailed("Failed to update asset metadata", status_code=r.status_code, body=r.text)
        try:
            updated = UploadResponse.model_validate(r.json()).data
        except (ValueError, ValidationError) as e:
            raise FinalizeFailed("Malformed asset update response", status_code=r.status_code, body=r.text) from e

        if updated.id != asset_id:
            logger.warning("Asset update answered for %s, expected %s", updated.id, asset_id)

        logger.info("Asset %s replaced successfully", asset_id)
        return ReplacementResult(asset_id=asset_id, succeeded=True, attributes=dict(updated.attributes))


class CreateAndDelete:
    """Create a sibling upload from the optimized bytes, optionally dropping the original.

    Records that referenced the original keep pointing at it; with
    ``delete_original`` they lose the reference instead.
    """

    def __init__(
        self,
        client: ContentStoreClient,
        *,
        delete_original: bool = False,
        default_filename: str = DEFAULT_UPLOAD_FILENAME,
    ) -> None:
        self.client = client
        self.delete_original = delete_original
        self.default_filename = default_filename

    def apply(self, asset_id: str, source_url: str, filename: str | None = None) -> ReplacementResult:
        logger.info("Creating DatoCMS upload from URL: %s", source_url)

        path = stage_from_url(self.client, source_url, filename, default_filename=self.default_filename)

        try:
            r = self.client.resolve_job(self.client.create_upload(path))
        except httpx.HTTPError as e:
            raise CreateUploadFailed(f"Failed to create upload: {type(e).__name__}", body=str(e)) from e
        if not r.is_success:
            raise CreateUploadFailed("Failed to create upload", status_code=r.status_code, body=r.text)
        try:
            created = UploadResponse.model_validate(r.json()).data
        except (ValueError, ValidationError) as e:
            raise CreateUploadFailed("Malformed upload response", status_code=r.status_code, body=r.text) from e

        logger.info("Created new optimized upload with ID: %s", created.id)

        original_deleted = False
        if self.delete_original and asset_id:
            original_deleted = self._delete(asset_id)

        return ReplacementResult(
            asset_id=asset_id,
            succeeded=True,
            attributes=dict(created.attributes),
            new_upload_id=created.id,
            original_deleted=original_deleted,
        )

    def _delete(self, upload_id: str) -> bool:
        try:
            r = self.client.resolve_job(self.client.delete_upload(upload_id))
        except httpx.HTTPError as e:
            logger.error("Failed to delete original upload with ID %s: %s", upload_id, e)
            return False
        if not r.is_success:
            logger.error("Failed to delete original upload with ID %s: %s %s", upload_id, r.status_code, r.text)
            return False
        logger.info("Deleted original upload with ID: %s", upload_id)
        return True


def build_strategy(settings: Settings, client: ContentStoreClient | None) -> ReplacementStrategy | None:
    name = settings.strategy_name()
    if name == "disabled":
        return None
    if client is None:
        raise ConfigurationError(f"REPLACEMENT_STRATEGY={name} requires a content store client")
    if name == "create_and_delete":
        return CreateAndDelete(
            client,
            delete_original=bool(settings.delete_original_upload),
            default_filename=settings.default_upload_filename,
        )
    if name == "replace_in_place":
        return ReplaceInPlace(client, default_filename=settings.default_upload_filename)
    raise ConfigurationError(f"unknown REPLACEMENT_STRATEGY: {name}")
