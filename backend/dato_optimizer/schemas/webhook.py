from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ImageAttributes(BaseModel):
    model_config = ConfigDict(extra="allow")

    size: int = Field(ge=0)
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    url: str
    is_image: bool
    filename: str | None = None


class ImageEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    type: str
    attributes: ImageAttributes
    relationships: dict[str, Any] = Field(default_factory=dict)


class WebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    entity_type: str | None = None
    event_type: str | None = None
    entity: dict[str, Any] | None = None

    def is_image_upload(self) -> bool:
        if self.entity_type != "upload" or not isinstance(self.entity, dict):
            return False
        attributes = self.entity.get("attributes")
        return isinstance(attributes, dict) and attributes.get("is_image") is True


class WebhookResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    received: bool
    message: str
    timestamp: str
    optimized_url: str | None = Field(default=None, alias="optimizedUrl")
    asset_replaced: bool | None = Field(default=None, alias="assetReplaced")
    new_upload_id: str | None = Field(default=None, alias="newUploadId")
    original_deleted: bool | None = Field(default=None, alias="originalDeleted")
    error: str | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
