from __future__ import annotations

import logging
from datetime import datetime, timezone

from dato_optimizer.core.errors import AssetReplacementError
from dato_optimizer.schemas.webhook import ImageEntity, WebhookPayload, WebhookResponse
from dato_optimizer.services.asset_replacer import ReplacementStrategy
from dato_optimizer.services.imgix import apply_imgix_optimizations, needs_replacement

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def process_webhook(payload: WebhookPayload, strategy: ReplacementStrategy | None) -> WebhookResponse:
    """Handle one DatoCMS webhook event.

    Replacement failures are reported in the response body, never raised:
    the sender must not retry a delivery because the optimization failed.
    """
    optimized_url: str | None = None
    asset_replaced = False
    new_upload_id: str | None = None
    original_deleted: bool | None = None
    error: str | None = None

    if payload.is_image_upload():
        entity = ImageEntity.model_validate(payload.entity)
        attrs = entity.attributes

        logger.info("Processing image: %s", attrs.url)
        logger.info(
            "Original size: %.2fMB, Dimensions: %sx%s", attrs.size / 1024 / 1024, attrs.width, attrs.height
        )

        optimized_url = apply_imgix_optimizations(attrs.url, attrs.width, attrs.height, attrs.size)
        logger.info("Optimized image URL: %s", optimized_url)

        if needs_replacement(attrs.size) and strategy is not None:
            filename = f"optimized-{attrs.filename}" if attrs.filename else None
            try:
                result = strategy.apply(entity.id, optimized_url, filename)
            except AssetReplacementError as e:
                logger.error("Failed to replace asset %s (%s): %s", entity.id, e.step, e)
                error = str(e)
            except Exception as e:
                logger.exception("Unexpected failure replacing asset %s", entity.id)
                error = str(e) or type(e).__name__
            else:
                asset_replaced = result.replaced_in_place
                new_upload_id = result.new_upload_id
                if new_upload_id is not None:
                    original_deleted = result.original_deleted
    else:
        logger.info("Ignoring %s/%s event", payload.entity_type, payload.event_type)

    return WebhookResponse(
        received=True,
        message="Webhook processed successfully",
        timestamp=utc_now_iso(),
        optimized_url=optimized_url,
        asset_replaced=asset_replaced,
        new_upload_id=new_upload_id,
        original_deleted=original_deleted,
        error=error,
    )
