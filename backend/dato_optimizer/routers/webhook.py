from __future__ import annotations

import json
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from dato_optimizer.schemas.webhook import WebhookPayload
from dato_optimizer.services.asset_replacer import ReplacementStrategy
from dato_optimizer.services.webhook import process_webhook, utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])

WEBHOOK_PATHS = ("/api/webhook", "/webhook")


def get_replacement_strategy(request: Request) -> ReplacementStrategy | None:
    return getattr(request.app.state, "replacement_strategy", None)


async def receive_webhook(request: Request):
    try:
        raw = await request.json()
        logger.info("Received DatoCMS webhook: %s", json.dumps(raw, indent=2, ensure_ascii=False))
        payload = WebhookPayload.model_validate(raw)
        result = await run_in_threadpool(process_webhook, payload, get_replacement_strategy(request))
    except Exception as e:
        logger.exception("Error processing webhook")
        return JSONResponse(
            status_code=500,
            content={
                "received": True,
                "message": "Error processing webhook",
                "error": str(e) or type(e).__name__,
                "timestamp": utc_now_iso(),
            },
        )
    return result.to_json()


def webhook_method_not_allowed():
    raise HTTPException(status_code=405, detail="Method not allowed. Only POST requests are accepted.")


for _path in WEBHOOK_PATHS:
    router.add_api_route(_path, receive_webhook, methods=["POST"])
    router.add_api_route(
        _path,
        webhook_method_not_allowed,
        methods=["GET", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
