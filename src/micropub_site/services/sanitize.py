"""Strip embedded metadata from uploaded images.

Images are decoded with Pillow and re-encoded without EXIF (including GPS and
camera data), ICC profiles or text chunks. EXIF orientation is applied to the
pixels first so the picture still displays the right way up.
"""

from __future__ import annotations

import io
import logging
import mimetypes
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Pillow format names keyed by the image subtype of a MIME type.
SANITIZABLE_FORMATS = {
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "pjpeg": "JPEG",
    "png": "PNG",
    "gif": "GIF",
    "webp": "WEBP",
    "tiff": "TIFF",
}

JPEG_QUALITY = 95

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="media-sanitize")


class SanitizeError(RuntimeError):
    """Raised when an image cannot be re-encoded without its metadata."""


def guess_format(content_type: str | None, filename: str | None = None) -> str | None:
    """Return the Pillow format for a declared content type, or None if not an image we handle.

    When no content type is declared the filename extension is consulted.
    """
    if not content_type and filename:
        content_type, _ = mimetypes.guess_type(filename)
    if not content_type:
        return None
    main, _, subtype = content_type.split(";", 1)[0].strip().lower().partition("/")
    if main != "image":
        return None
    return SANITIZABLE_FORMATS.get(subtype)


def strip_metadata(data: bytes, image_format: str) -> bytes:
    """Return ``data`` re-encoded in ``image_format`` without embedded metadata.

    Raises:
        SanitizeError: If the bytes cannot be decoded as an image, the image is
            animated, or re-encoding fails.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            # Camera JPEGs with an MPF block open as MPO; only the primary frame is kept.
            if image.format != "MPO" and getattr(image, "n_frames", 1) > 1:
                raise SanitizeError("Animated or multi-page images are stored unmodified")
            image.load()
            cleaned = ImageOps.exif_transpose(image)
            if cleaned is None:
                cleaned = image
            save_kwargs: dict[str, object] = {}
            transparency = cleaned.info.get("transparency")
            if image_format == "JPEG":
                save_kwargs["quality"] = JPEG_QUALITY
                if cleaned.mode not in ("RGB", "L", "CMYK"):
                    cleaned = cleaned.convert("RGB")
            elif transparency is not None:
                # The transparent palette entries live in info, which is not copied below.
                if cleaned.mode == "P" and (
                    image_format == "PNG" or (image_format == "GIF" and isinstance(transparency, int))
                ):
                    save_kwargs["transparency"] = transparency
                else:
                    cleaned = cleaned.convert("RGBA")

            # Copying the pixels into a fresh image leaves every info chunk behind.
            bare = Image.frombytes(cleaned.mode, cleaned.size, cleaned.tobytes())
            if cleaned.mode == "P":
                palette = cleaned.getpalette()
                if palette is not None:
                    bare.putpalette(palette)

            out = io.BytesIO()
            bare.save(out, format=image_format, **save_kwargs)
            return out.getvalue()
    except SanitizeError:
        raise
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise SanitizeError(str(exc)) from exc


def sanitize_image(data: bytes, image_format: str, timeout_seconds: float) -> bytes:
    """Best-effort metadata removal bounded by ``timeout_seconds``.

    Returns the original bytes, after logging why, if stripping fails or
    takes too long.
    """
    future = _executor.submit(strip_metadata, data, image_format)
    try:
        return future.result(timeout=timeout_seconds)
    except FutureTimeoutError:
        future.cancel()
        logger.warning(
            "Metadata stripping timed out after %.1fs; storing original bytes", timeout_seconds
        )
    except SanitizeError as exc:
        logger.warning("Metadata stripping failed (%s); storing original bytes", exc)
    return data
