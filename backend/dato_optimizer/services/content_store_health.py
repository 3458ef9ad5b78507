from __future__ import annotations

from dato_optimizer.services.content_store import ContentStoreClient


def content_store_healthcheck(client: ContentStoreClient | None) -> tuple[bool, str | None]:
    if client is None:
        return False, "missing_client"

    try:
        r = client.get_site()
        if r.status_code >= 400:
            return False, f"http_{r.status_code}"
        return True, None
    except Exception as e:
        return False, f"unreachable:{type(e).__name__}"
