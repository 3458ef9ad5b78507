from dato_optimizer.routers import health, webhook

__all__ = [
    "health",
    "webhook",
]
