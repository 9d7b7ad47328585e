import io

import pytest
from PIL import Image

from app.services.pass_images import (
    IMAGE_SIZES,
    ImageUploadError,
    apply_upload,
    needs_quality_warning,
    normalize_images,
    preview_url,
    quality_warning,
    remove_slot,
    resize_image,
    store_image,
    variant_filename,
)


def png_bytes(width, height, color=(255, 0, 0, 255)):
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_variant_filenames_follow_apple_naming():
    assert variant_filename("logo", "1x") == "logo.png"
    assert variant_filename("logo", "2x") == "logo@2x.png"
    assert variant_filename("logo", "3x") == "logo@3x.png"


@pytest.mark.parametrize("mode", ["contain", "cover"])
def test_resize_produces_exact_dimensions(mode):
    image = Image.new("RGB", (1000, 200), "blue")

    resized = resize_image(image, (160, 50), mode)

    assert resized.size == (160, 50)


def test_contain_pads_with_transparency():
    image = Image.new("RGB", (100, 100), "blue")

    resized = resize_image(image, (200, 100), "contain")

    assert resized.getpixel((0, 50))[3] == 0
    assert resized.getpixel((100, 50))[3] == 255


def test_cover_fills_the_whole_box():
    image = Image.new("RGB", (100, 100), "blue")

    resized = resize_image(image, (200, 100), "cover")

    assert resized.getpixel((0, 50))[3] == 255
    assert resized.getpixel((199, 99))[3] == 255


def test_quality_warning_when_upscaling():
    assert needs_quality_warning((100, 100), (87, 87), ratio=1.0) is False
    assert needs_quality_warning((80, 100), (87, 87), ratio=1.0) is True
    assert needs_quality_warning((100, 100), (87, 87), ratio=1.5) is True


def test_store_image_generates_every_apple_scale(fake_db):
    result = store_image("acc-1", "apple", "logo", "image/png", png_bytes(400, 125), "contain")

    assert result["original"]["width"] == 400
    assert result["original"]["mime"] == "image/png"
    variants = {v["scale"]: v for v in result["variants"]}
    assert set(variants) == {"1x", "2x", "3x"}
    for scale, variant in variants.items():
        expected = IMAGE_SIZES["apple"]["logo"][scale]
        assert (variant["width"], variant["height"]) == expected
        stored = fake_db.storage.buckets["pass-images"][variant["path"]]
        assert Image.open(io.BytesIO(stored)).size == expected

    # 400x125 covers 1x and 2x but not 3x (480x150)
    assert variants["1x"]["quality_warning"] is False
    assert variants["2x"]["quality_warning"] is False
    assert variants["3x"]["quality_warning"] is True
    assert variants["2x"]["path"].endswith("logo@2x.png")


def test_store_image_google_has_single_scale(fake_db):
    result = store_image("acc-1", "google", "icon", "image/png", png_bytes(200, 200))

    assert [(v["scale"], v["width"], v["height"]) for v in result["variants"]] == [("1x", 48, 48)]


@pytest.mark.parametrize("platform,slot,content_type,data,field", [
    ("windows", "logo", "image/png", None, "platform"),
    ("apple", "banner", "image/png", None, "slot"),
    ("apple", "logo", "application/pdf", None, "image"),
    ("apple", "logo", "image/png", b"not an image", "image"),
])
def test_store_image_rejects_bad_uploads(fake_db, platform, slot, content_type, data, field):
    with pytest.raises(ImageUploadError) as exc:
        store_image("acc-1", platform, slot, content_type, data or png_bytes(10, 10))
    assert exc.value.field == field


def test_store_image_enforces_max_size(fake_db, monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "image_max_upload_kb", 1)
    with pytest.raises(ImageUploadError) as exc:
        store_image("acc-1", "apple", "logo", "image/png", b"\x89PNG" + b"0" * 2048)
    assert "1 KB" in exc.value.message


def test_normalize_legacy_flat_map():
    legacy = {"logo.png": "a/logo.png", "logo@2x.png": "a/logo@2x.png", "icon_3x": "a/icon_3x.png"}

    normalized = normalize_images(legacy, "apple")

    assert normalized["originals"] == {}
    assert normalized["variants"]["apple"]["logo"]["1x"]["path"] == "a/logo.png"
    assert normalized["variants"]["apple"]["logo"]["2x"]["path"] == "a/logo@2x.png"
    assert normalized["variants"]["apple"]["icon"]["3x"]["path"] == "a/icon_3x.png"


def test_apply_upload_preview_and_remove(fake_db):
    result = store_image("acc-1", "apple", "icon", "image/png", png_bytes(20, 20))

    images = apply_upload({}, "apple", "icon", result)

    assert images["originals"]["icon"]["width"] == 20
    assert preview_url(images, "apple", "icon") == images["variants"]["apple"]["icon"]["1x"]["url"]
    assert quality_warning(images, "apple", "icon") is True
    assert preview_url(images, "google", "icon") is None

    removed = remove_slot(images, "apple", "icon")
    assert "icon" not in removed["originals"]
    assert preview_url(removed, "apple", "icon") is None
    # Source map is left untouched
    assert "icon" in images["originals"]


def test_preview_falls_back_to_larger_scale():
    images = {"variants": {"apple": {"strip": {"2x": {"url": "https://cdn/strip@2x.png"}}}}}

    assert preview_url(images, "apple", "strip") == "https://cdn/strip@2x.png"
