from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class UploadRequestAttributes(BaseModel):
    url: str
    request_headers: dict[str, str] = Field(default_factory=dict)


class UploadRequestData(BaseModel):
    id: str
    type: str
    attributes: UploadRequestAttributes


class UploadRequestResponse(BaseModel):
    data: UploadRequestData


class UploadData(BaseModel):
    id: str
    type: str
    attributes: dict[str, Any] = Field(default_factory=dict)


class UploadResponse(BaseModel):
    data: UploadData


def upload_request_body(filename: str) -> dict[str, Any]:
    return {"data": {"type": "upload_request", "attributes": {"filename": filename}}}


def upload_path_update_body(asset_id: str, path: str) -> dict[str, Any]:
    return {"data": {"id": asset_id, "type": "upload", "attributes": {"path": path}}}


def upload_create_body(path: str) -> dict[str, Any]:
    return {"data": {"type": "upload", "attributes": {"path": path}}}
