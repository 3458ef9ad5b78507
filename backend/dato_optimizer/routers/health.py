from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from dato_optimizer.services.content_store_health import content_store_healthcheck

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
def home():
    return "DatoCMS image optimizer is running"


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/live")
def live():
    return {"status": "live"}


@router.get("/health/ready")
def ready(request: Request):
    if getattr(request.app.state, "replacement_strategy", None) is None:
        return {"status": "ready", "content_store": "not_required"}

    ok, reason = content_store_healthcheck(getattr(request.app.state, "content_store", None))
    if not ok:
        raise HTTPException(status_code=503, detail=f"content store not ready: {reason}")

    return {"status": "ready", "content_store": "ok"}
