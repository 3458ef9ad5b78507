from __future__ import annotations

LARGE_IMAGE_THRESHOLD = 5 * 1024 * 1024
VERY_LARGE_IMAGE_THRESHOLD = 10 * 1024 * 1024
MAX_DELIVERY_WIDTH = 2000


def apply_imgix_optimizations(image_url: str, width: int, height: int, size: int) -> str:
    """Return ``image_url`` annotated with imgix compression parameters.

    Large images (over 5 MiB) drop to quality 75 and are capped at 2000px
    wide; very large ones (over 10 MiB) additionally get ``dpr=2``. Anything
    else keeps quality 85. Existing query strings are extended, never replaced.
    """
    params = "auto=format,compress"

    if size > LARGE_IMAGE_THRESHOLD:
        params += "&q=75"
        if width > MAX_DELIVERY_WIDTH:
            params += f"&w={MAX_DELIVERY_WIDTH}"
        if size > VERY_LARGE_IMAGE_THRESHOLD:
            params += "&dpr=2"
    else:
        params += "&q=85"

    if "?" in image_url:
        return f"{image_url}&{params}"
    return f"{image_url}?{params}"


def needs_replacement(size: int) -> bool:
    return size > LARGE_IMAGE_THRESHOLD
