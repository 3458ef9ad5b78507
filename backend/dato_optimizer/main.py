import json
import logging
import time
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dato_optimizer.core.config import Settings, settings as default_settings
from dato_optimizer.routers import health, webhook
from dato_optimizer.services.asset_replacer import build_strategy
from dato_optimizer.services.content_store import ContentStoreClient
from dato_optimizer.services.webhook import utc_now_iso


def create_app(
    settings: Settings | None = None,
    content_store: ContentStoreClient | None = None,
) -> FastAPI:
    """Build the webhook application.

    When ``content_store`` is given it is used as-is and left open on
    shutdown. Otherwise the client is built from ``settings`` at startup, so a
    missing credential stops the server before it accepts a webhook.
    """
    settings = settings or default_settings

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    app = FastAPI(title="DatoCMS Image Optimizer", version="1.0.0")

    logger = logging.getLogger("dato_optimizer")
    logging.getLogger("httpx").setLevel(logging.WARNING)

    app.state.settings = settings
    app.state.content_store = content_store
    app.state.replacement_strategy = None
    app.state.owns_content_store = False

    if content_store is not None:
        app.state.replacement_strategy = build_strategy(settings, content_store)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        t0 = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        status_code: int | None = None
        try:
            response = await call_next(request)
            status_code = int(getattr(response, "status_code", 0) or 0)
        except Exception:
            status_code = 500
            raise
        finally:
            path = request.url.path
            if not path.startswith("/health"):
                logger.info(
                    json.dumps(
                        {
                            "ts": datetime.now(timezone.utc).isoformat(),
                            "rid": rid,
                            "method": request.method,
                            "path": path,
                            "status": status_code,
                            "duration_ms": int((time.perf_counter() - t0) * 1000),
                        },
                        ensure_ascii=False,
                    )
                )
        response.headers["X-Request-ID"] = rid
        return response

    def _request_id(request: Request) -> str | None:
        rid = getattr(getattr(request, "state", None), "request_id", None)
        rid = str(rid or "").strip()
        return rid or None

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=int(exc.status_code),
            content={"error": str(exc.detail or "request failed"), "request_id": _request_id(request)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        rid = _request_id(request)
        logger.exception("unhandled exception", extra={"rid": rid})
        return JSONResponse(
            status_code=500,
            content={
                "received": True,
                "message": "Error processing webhook",
                "error": "internal server error",
                "timestamp": utc_now_iso(),
                "request_id": rid,
            },
        )

    app.include_router(health.router)
    app.include_router(webhook.router)

    @app.on_event("startup")
    async def _build_content_store() -> None:
        if app.state.content_store is not None or settings.strategy_name() == "disabled":
            return
        client = ContentStoreClient.from_settings(settings)
        app.state.content_store = client
        app.state.owns_content_store = True
        app.state.replacement_strategy = build_strategy(settings, client)
        logger.info("Content store client ready (strategy=%s)", settings.strategy_name())

    @app.on_event("shutdown")
    async def _close_content_store() -> None:
        if app.state.owns_content_store and app.state.content_store is not None:
            app.state.content_store.close()

    return app


app = create_app()
