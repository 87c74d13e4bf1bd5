"""
Image conversion utility for converting uploads to WebP format.
Reduces file size before uploading to Cloudinary.
"""
import io
import logging
from typing import Optional, Tuple
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_WEBP_QUALITY = 85  # Balance between quality and file size (0-100)
DEFAULT_WEBP_METHOD = 6    # Compression method (0-6, higher = better compression but slower)
MAX_DIMENSION = 3840       # Larger images are downscaled before conversion


def _downscale(image: Image.Image, max_dimension: int) -> Image.Image:
    width, height = image.size
    if width <= max_dimension and height <= max_dimension:
        return image

    scale = max_dimension / max(width, height)
    new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
    logger.info(f"Downscaling image from {width}x{height} to {new_size[0]}x{new_size[1]}")
    return image.resize(new_size, Image.Resampling.LANCZOS)


def convert_to_webp(
    image_bytes: bytes,
    quality: int = DEFAULT_WEBP_QUALITY,
    max_dimension: Optional[int] = MAX_DIMENSION,
) -> Tuple[bytes, bool]:
    """
    Convert image bytes to WebP.

    Args:
        image_bytes: Original image file bytes
        quality: WebP quality (0-100); 100 switches to lossless
        max_dimension: Maximum width or height before downscaling (None to disable)

    Returns:
        Tuple[bytes, bool]: Converted bytes (or the original ones when the
        input is already WebP or cannot be read) and whether the result is usable
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))

        if image.format == 'WEBP':
            return image_bytes, True

        # WebP keeps alpha; palette images need RGBA first, everything else goes to RGB
        if image.mode == 'P':
            image = image.convert('RGBA')
        elif image.mode not in ('RGB', 'RGBA', 'LA'):
            image = image.convert('RGB')

        if max_dimension:
            image = _downscale(image, max_dimension)

        buffer = io.BytesIO()
        image.save(
            buffer,
            format='WEBP',
            quality=quality,
            method=DEFAULT_WEBP_METHOD,
            lossless=quality == 100,
        )
        return buffer.getvalue(), True

    except UnidentifiedImageError as e:
        logger.warning(f"Cannot identify image format: {str(e)}")
        return image_bytes, False

    except Image.DecompressionBombError as e:
        logger.warning(f"Image too large to convert: {str(e)}")
        return image_bytes, False

    except (OSError, ValueError) as e:
        logger.error(f"Error converting image to WebP: {str(e)}", exc_info=True)
        return image_bytes, False


def prepare_upload(image_bytes: bytes, filename: str, quality: int = DEFAULT_WEBP_QUALITY) -> bytes:
    """Return the smaller of the original bytes and their WebP conversion."""
    converted, ok = convert_to_webp(image_bytes, quality=quality)
    if not ok:
        logger.warning(f"WebP conversion failed for {filename}, uploading original format")
        return image_bytes

    if len(converted) < len(image_bytes):
        logger.info(f"Converted {filename} to WebP: {len(image_bytes):,} bytes -> {len(converted):,} bytes")
        return converted

    logger.debug(f"WebP conversion did not reduce size for {filename}, using original")
    return image_bytes
