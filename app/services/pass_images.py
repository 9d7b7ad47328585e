"""
Pass image uploads and per-platform variants.

An uploaded image is stored once as the original, then resized into every
variant the platform needs for the slot:

- Apple Wallet: 1x, 2x and 3x of each slot
- Google Wallet: a single 1x image per slot

Stored image maps on passes and templates look like:

    {
        "originals": {"logo": {"path", "url", "width", "height", "mime"}},
        "variants": {"apple": {"logo": {"1x": {"path", "url", "width", "height", "quality_warning"}}}},
    }
"""

import copy
import io
import logging
import uuid
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from app.core.config import settings
from app.services.storage import get_storage_service

logger = logging.getLogger(__name__)

PLATFORMS = ("apple", "google")
SLOTS = ("icon", "logo", "strip", "thumbnail", "background", "footer")
SCALES = ("1x", "2x", "3x")
RESIZE_MODES = ("contain", "cover")

# (width, height) per platform, slot and scale
IMAGE_SIZES: dict[str, dict[str, dict[str, tuple[int, int]]]] = {
    "apple": {
        "icon": {"1x": (29, 29), "2x": (58, 58), "3x": (87, 87)},
        "logo": {"1x": (160, 50), "2x": (320, 100), "3x": (480, 150)},
        "strip": {"1x": (375, 123), "2x": (750, 246), "3x": (1125, 369)},
        "thumbnail": {"1x": (90, 90), "2x": (180, 180), "3x": (270, 270)},
        "background": {"1x": (180, 220), "2x": (360, 440), "3x": (540, 660)},
        "footer": {"1x": (286, 15), "2x": (572, 30), "3x": (858, 45)},
    },
    "google": {
        "icon": {"1x": (48, 48)},
        "logo": {"1x": (160, 50)},
        "strip": {"1x": (375, 123)},
        "thumbnail": {"1x": (90, 90)},
        "background": {"1x": (180, 220)},
        "footer": {"1x": (286, 15)},
    },
}

LEGACY_SCALE_SUFFIXES = {"@2x": "2x", "@3x": "3x", "_2x": "2x", "_3x": "3x"}


class ImageUploadError(ValueError):
    """Raised when an uploaded image cannot be accepted."""

    def __init__(self, message: str, field: str = "image"):
        super().__init__(message)
        self.message = message
        self.field = field


def target_sizes(platform: str, slot: str) -> dict[str, tuple[int, int]]:
    try:
        return IMAGE_SIZES[platform][slot]
    except KeyError:
        raise ImageUploadError(f"Unsupported image slot '{slot}' for {platform}.", field="slot")


def variant_filename(slot: str, scale: str) -> str:
    """Apple Wallet file naming: logo.png, logo@2x.png, logo@3x.png."""
    return f"{slot}.png" if scale == "1x" else f"{slot}@{scale}.png"


def resize_image(image: Image.Image, size: tuple[int, int], mode: str = "contain") -> Image.Image:
    """Resize to exactly `size`.

    contain: fit inside and pad with transparency, keeping the whole image
    cover: fill the box and center-crop the overflow
    """
    image = image.convert("RGBA")
    if mode == "cover":
        return ImageOps.fit(image, size, Image.Resampling.LANCZOS, centering=(0.5, 0.5))

    fitted = ImageOps.contain(image, size, Image.Resampling.LANCZOS)
    canvas = Image.new("RGBA", size, (0, 0, 0, 0))
    canvas.paste(fitted, ((size[0] - fitted.width) // 2, (size[1] - fitted.height) // 2))
    return canvas


def needs_quality_warning(original_size: tuple[int, int], target: tuple[int, int],
                          ratio: Optional[float] = None) -> bool:
    """True when the variant would be upscaled beyond the configured ratio."""
    ratio = settings.image_quality_warning_ratio if ratio is None else ratio
    return original_size[0] < target[0] * ratio or original_size[1] < target[1] * ratio


def _to_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def decode_upload(content_type: str | None, data: bytes) -> Image.Image:
    if not content_type or not content_type.startswith("image/"):
        raise ImageUploadError("The image must be an image file.")
    if len(data) > settings.image_max_upload_kb * 1024:
        raise ImageUploadError(f"The image must not be larger than {settings.image_max_upload_kb} KB.")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError):
        raise ImageUploadError("The image could not be decoded.")
    return image


def store_image(
    account_id: str,
    platform: str,
    slot: str,
    content_type: str | None,
    data: bytes,
    resize_mode: str | None = None,
) -> dict:
    """Store the original upload and every variant for the platform and slot.

    Returns:
        {"original": {...}, "variants": [{platform, slot, scale, path, url, width, height, quality_warning}]}
    """
    if platform not in PLATFORMS:
        raise ImageUploadError(f"Unsupported platform '{platform}'.", field="platform")
    sizes = target_sizes(platform, slot)
    mode = resize_mode or settings.image_resize_mode
    if mode not in RESIZE_MODES:
        raise ImageUploadError(f"Unsupported resize mode '{mode}'.", field="resize_mode")

    image = decode_upload(content_type, data)
    storage = get_storage_service()
    bucket = settings.images_bucket
    base = f"{account_id}/{platform}/{slot}/{uuid.uuid4().hex}"

    mime = Image.MIME.get(image.format or "", content_type)
    extension = (image.format or "png").lower()
    original_path = f"{base}/original.{extension}"
    original_url = storage.upload_file(bucket, original_path, data, content_type=mime)
    original = {
        "path": original_path,
        "url": original_url,
        "width": image.width,
        "height": image.height,
        "mime": mime,
    }

    variants = []
    for scale in SCALES:
        if scale not in sizes:
            continue
        width, height = sizes[scale]
        resized = resize_image(image, (width, height), mode)
        path = f"{base}/{variant_filename(slot, scale)}"
        url = storage.upload_file(bucket, path, _to_png(resized), content_type="image/png")
        variants.append({
            "platform": platform,
            "slot": slot,
            "scale": scale,
            "path": path,
            "url": url,
            "width": width,
            "height": height,
            "quality_warning": needs_quality_warning((image.width, image.height), (width, height)),
        })

    logger.info(f"Stored {slot} image for {platform} ({len(variants)} variants) for account {account_id}")
    return {"original": original, "variants": variants}


def normalize_images(images: dict | None, platform: str) -> dict:
    """Convert stored images to the {originals, variants} shape.

    Older records keep a flat map of file names to paths
    ("logo.png", "logo@2x.png", "icon_3x"); those are filed under `platform`.
    """
    if not images:
        return {"originals": {}, "variants": {}}
    if "variants" in images or "originals" in images:
        return {
            "originals": dict(images.get("originals") or {}),
            "variants": dict(images.get("variants") or {}),
        }

    variants: dict = {platform: {}}
    for key, path in images.items():
        scale = "1x"
        slot = key.replace(".png", "")
        for suffix, suffix_scale in LEGACY_SCALE_SUFFIXES.items():
            if suffix in slot:
                scale = suffix_scale
                slot = slot.replace(suffix, "")
                break
        variants[platform].setdefault(slot, {})[scale] = {
            "path": path,
            "url": path,
            "width": 0,
            "height": 0,
            "quality_warning": False,
        }
    return {"originals": {}, "variants": variants}


def apply_upload(images: dict | None, platform: str, slot: str, result: dict) -> dict:
    """Merge a store_image result into an image map, returning a new map."""
    updated = copy.deepcopy(normalize_images(images, platform))
    original = result["original"]
    updated["originals"][slot] = {
        "path": original["path"],
        "url": original.get("url"),
        "width": original["width"],
        "height": original["height"],
        "mime": original.get("mime"),
    }
    slot_variants = updated["variants"].setdefault(platform, {}).setdefault(slot, {})
    for variant in result["variants"]:
        slot_variants[variant["scale"]] = {
            "path": variant["path"],
            "url": variant["url"],
            "width": variant["width"],
            "height": variant["height"],
            "quality_warning": variant["quality_warning"],
        }
    return updated


def remove_slot(images: dict | None, platform: str, slot: str) -> dict:
    updated = copy.deepcopy(normalize_images(images, platform))
    updated["originals"].pop(slot, None)
    updated["variants"].get(platform, {}).pop(slot, None)
    return updated


def preview_url(images: dict | None, platform: str, slot: str) -> str | None:
    """URL of the smallest available variant (1x, then 2x, then 3x)."""
    variants = (normalize_images(images, platform)["variants"].get(platform) or {}).get(slot)
    if not variants:
        return None
    for scale in SCALES:
        variant = variants.get(scale)
        if variant and (variant.get("url") or variant.get("path")):
            return variant.get("url") or variant.get("path")
    return None


def quality_warning(images: dict | None, platform: str, slot: str) -> bool:
    variants = (normalize_images(images, platform)["variants"].get(platform) or {}).get(slot)
    if not variants:
        return False
    return any((variants.get(scale) or {}).get("quality_warning") for scale in SCALES)
