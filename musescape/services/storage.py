import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

from musescape.types import ImagePayload


SUPPORTED_IMAGE_MIME_TYPES = (
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/gif",
    "image/heic",
    "image/heif",
)

_PIL_FORMAT_TO_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "HEIF": "image/heif",
}


def sniff_image_mime(data: bytes) -> Optional[str]:
    """Return the mime type Pillow detects for ``data``, or None if it is not an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return _PIL_FORMAT_TO_MIME.get((img.format or "").upper())
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        return None


def validate_image_payload(image: ImagePayload) -> None:
    if not image.data:
        raise ValueError("Image payload is empty")
    if image.mime_type not in SUPPORTED_IMAGE_MIME_TYPES:
        raise ValueError(f"Unsupported image type: {image.mime_type or '<unknown>'}")


def compress_image_bytes_to_jpeg(data: bytes, *, max_width: int = 1536, quality: int = 85) -> bytes:
    """
    Re-encode raw image bytes as a reasonably sized JPEG.

    - Ensures RGB colorspace
    - Resizes to max_width while preserving aspect ratio
    - Uses JPEG quality and optimization for smaller payloads
    """
    img = Image.open(io.BytesIO(data))
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    if img.width > max_width:
        new_height = int(img.height * (max_width / img.width))
        img = img.resize((max_width, new_height), Image.LANCZOS)
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def prepare_image_payload(data: bytes, mime_type: Optional[str] = None, *, max_width: int = 1536) -> ImagePayload:
    """Build the payload sent to the story backend from an uploaded file.

    Images wider than ``max_width`` are downscaled to JPEG; everything else
    is passed through untouched.
    """
    mime = (mime_type or "").strip().lower() or sniff_image_mime(data) or ""
    if mime == "image/jpg":
        mime = "image/jpeg"
    payload = ImagePayload(data=data, mime_type=mime)
    validate_image_payload(payload)

    try:
        with Image.open(io.BytesIO(data)) as img:
            too_wide = img.width > max_width
    except Image.DecompressionBombError as e:
        raise ValueError("Image could not be decoded") from e
    except (UnidentifiedImageError, OSError):
        # Pillow may lack a decoder (e.g. HEIC); send as-is
        return payload
    if not too_wide:
        return payload
    try:
        compressed = compress_image_bytes_to_jpeg(data, max_width=max_width)
    except (OSError, Image.DecompressionBombError) as e:
        # Headers can parse while the pixel data is truncated or corrupt
        raise ValueError("Image could not be decoded") from e
    return ImagePayload(data=compressed, mime_type="image/jpeg")
