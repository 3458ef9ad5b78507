import pytest

from dato_optimizer.services.imgix import (
    LARGE_IMAGE_THRESHOLD,
    VERY_LARGE_IMAGE_THRESHOLD,
    apply_imgix_optimizations,
    needs_replacement,
)


@pytest.mark.parametrize("size", [0, 1_000_000, LARGE_IMAGE_THRESHOLD])
@pytest.mark.parametrize("width", [800, 2000, 5000])
def test_small_images_keep_quality_85(size, width):
    out = apply_imgix_optimizations("https://x/img.jpg", width, 600, size)
    assert out == "https://x/img.jpg?auto=format,compress&q=85"
    assert "dpr" not in out
    assert "w=2000" not in out


def test_large_wide_image_is_capped_without_dpr():
    out = apply_imgix_optimizations("https://x/img.jpg", 3000, 1000, VERY_LARGE_IMAGE_THRESHOLD)
    assert out == "https://x/img.jpg?auto=format,compress&q=75&w=2000"
    assert "dpr" not in out


def test_large_narrow_image_is_not_resized():
    out = apply_imgix_optimizations("https://x/img.jpg", 2000, 1000, LARGE_IMAGE_THRESHOLD + 1)
    assert out == "https://x/img.jpg?auto=format,compress&q=75"


def test_very_large_narrow_image_gets_dpr_only():
    out = apply_imgix_optimizations("https://x/img.jpg", 1800, 1000, VERY_LARGE_IMAGE_THRESHOLD + 1)
    assert "q=75&dpr=2" in out
    assert "w=2000" not in out


def test_very_large_wide_image_end_to_end():
    out = apply_imgix_optimizations("https://x/img.jpg", 3000, 1000, 11_000_000)
    assert out == "https://x/img.jpg?auto=format,compress&q=75&w=2000&dpr=2"


def test_existing_query_string_is_extended():
    out = apply_imgix_optimizations("https://x/img.jpg?v=2", 800, 600, 1_000_000)
    assert out == "https://x/img.jpg?v=2&auto=format,compress&q=85"


def test_deriving_twice_appends_instead_of_replacing():
    once = apply_imgix_optimizations("https://x/img.jpg", 800, 600, 1_000_000)
    twice = apply_imgix_optimizations(once, 800, 600, 1_000_000)
    assert twice == once + "&auto=format,compress&q=85"
    assert twice.count("?") == 1


def test_replacement_threshold():
    assert needs_replacement(LARGE_IMAGE_THRESHOLD) is False
    assert needs_replacement(LARGE_IMAGE_THRESHOLD + 1) is True
