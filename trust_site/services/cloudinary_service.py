"""
Cloudinary service for media uploads, deletions and raw metadata documents.
Provides async wrappers with retry logic around the Cloudinary SDK.
"""
import cloudinary
import cloudinary.api
import cloudinary.uploader
import cloudinary.utils
from cloudinary.exceptions import Error as CloudinaryError, NotFound as CloudinaryNotFound
from trust_site.config import settings
import logging
import asyncio
import re
import time
from typing import Optional, Dict, Any, Callable

import httpx

logger = logging.getLogger(__name__)

# Configure Cloudinary with credentials from settings
cloudinary.config(
    cloud_name=settings.CLOUDINARY_CLOUD_NAME,
    api_key=settings.CLOUDINARY_API_KEY,
    api_secret=settings.CLOUDINARY_API_SECRET,
    secure=True  # Always use HTTPS for secure URLs
)

FETCH_TIMEOUT_SECONDS = 15


async def _with_retries(operation: Callable[[], Dict[str, Any]], description: str, max_retries: int) -> Dict[str, Any]:
    """
    Run a blocking Cloudinary call, retrying transient failures with exponential backoff.

    Raises:
        CloudinaryError: If the call still fails after all retries
    """
    for attempt in range(max_retries):
        try:
            return operation()
        except CloudinaryNotFound:
            raise
        except CloudinaryError as e:
            logger.warning(f"Cloudinary {description} error (attempt {attempt + 1}/{max_retries}): {str(e)}")

            if attempt < max_retries - 1:
                await asyncio.sleep(2 ** attempt)  # 1s, 2s, 4s backoff
                continue

            logger.error(f"Cloudinary {description} failed after {max_retries} attempts: {str(e)}")
            raise


async def upload_image(
    file: Any,
    folder: str,
    public_id: Optional[str] = None,
    max_retries: Optional[int] = None
) -> Dict[str, Any]:
    """
    Upload image to Cloudinary with automatic optimization and retry logic.

    Args:
        file: File object, file path, or bytes to upload
        folder: Cloudinary folder path, e.g. "events/Sports_Day" or "slider"
        public_id: Optional public ID inside the folder
        max_retries: Maximum number of attempts (defaults to CLOUDINARY_MAX_RETRIES)

    Returns:
        dict: Upload result containing url, public_id, format, width, height, bytes

    Raises:
        CloudinaryError: If upload fails after all retries
    """
    result = await _with_retries(
        lambda: cloudinary.uploader.upload(
            file,
            folder=folder,
            public_id=public_id,
            resource_type="image",
            overwrite=False,
            quality="auto",
            transformation=[
                {
                    "width": 1920,
                    "height": 1080,
                    "crop": "limit"  # Limit max dimensions, maintain aspect ratio
                }
            ]
        ),
        f"upload to {folder}",
        max_retries or settings.CLOUDINARY_MAX_RETRIES,
    )

    logger.info(f"Successfully uploaded image: {result['public_id']}")

    return {
        "url": result.get("secure_url") or result.get("url", ""),
        "public_id": result["public_id"],
        "format": result.get("format"),
        "width": result.get("width"),
        "height": result.get("height"),
        "bytes": result.get("bytes"),
    }


async def delete_image(public_id: str, max_retries: Optional[int] = None) -> Dict[str, Any]:
    """
    Delete image from Cloudinary with retry logic.

    Args:
        public_id: Cloudinary public ID of the image to delete
        max_retries: Maximum number of attempts (defaults to CLOUDINARY_MAX_RETRIES)

    Returns:
        dict: Deletion result from Cloudinary

    Raises:
        CloudinaryError: If deletion fails after all retries
    """
    result = await _with_retries(
        lambda: cloudinary.uploader.destroy(
            public_id,
            invalidate=True,  # Invalidate CDN cache
            resource_type="image"
        ),
        f"delete of {public_id}",
        max_retries or settings.CLOUDINARY_MAX_RETRIES,
    )

    if result.get("result") in ("ok", "not found"):
        logger.info(f"Deleted image from Cloudinary: {public_id} (result: {result.get('result')})")
    else:
        logger.warning(f"Unexpected Cloudinary delete result for {public_id}: {result}")
    return result


async def upload_raw_document(content: bytes, public_id: str, max_retries: Optional[int] = None) -> Dict[str, Any]:
    """
    Store a JSON metadata document as a raw Cloudinary file, replacing any previous version.

    Raises:
        CloudinaryError: If upload fails after all retries
    """
    result = await _with_retries(
        lambda: cloudinary.uploader.upload(
            content,
            public_id=public_id,
            resource_type="raw",
            overwrite=True,
            invalidate=True,
        ),
        f"document upload of {public_id}",
        max_retries or settings.CLOUDINARY_MAX_RETRIES,
    )
    logger.info(f"Stored metadata document {public_id} (version {result.get('version')})")
    return result


async def fetch_raw_document(public_id: str) -> Optional[bytes]:
    """
    Fetch the latest version of a raw Cloudinary file.

    Returns:
        bytes: File content, or None if the document does not exist yet

    Raises:
        CloudinaryError: If the Admin API lookup fails
        httpx.HTTPError: If downloading the file fails
    """
    try:
        resource = await _with_retries(
            lambda: cloudinary.api.resource(public_id, resource_type="raw"),
            f"lookup of {public_id}",
            settings.CLOUDINARY_MAX_RETRIES,
        )
    except CloudinaryNotFound:
        logger.info(f"Metadata document {public_id} not found on Cloudinary")
        return None

    # secure_url carries the version segment, so the CDN never serves a stale copy
    async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_SECONDS) as client:
        response = await client.get(resource["secure_url"])
        response.raise_for_status()
        return response.content


def extract_public_id_from_url(cloudinary_url: str) -> str:
    """
    Extract Cloudinary public_id from a delivery URL.

    https://res.cloudinary.com/{cloud}/image/upload/v{version}/{public_id}.{format}

    Raises:
        ValueError: If URL format is invalid
    """
    match = re.search(r'/image/upload(?:/v\d+)?/(.+)$', cloudinary_url)
    if not match:
        raise ValueError(f"Invalid Cloudinary URL format: {cloudinary_url}")

    folder, _, filename = match.group(1).rpartition('/')
    if '.' in filename:
        filename = filename.rsplit('.', 1)[0]
    return f"{folder}/{filename}" if folder else filename


def generate_upload_signature(folder: str) -> Dict[str, Any]:
    """
    Sign a folder-scoped direct upload so the browser can send bytes straight to Cloudinary.

    Raises:
        ValueError: If Cloudinary is not configured
    """
    if not validate_cloudinary_config():
        raise ValueError("Cloudinary credentials are not configured")

    timestamp = int(time.time())
    signature = cloudinary.utils.api_sign_request(
        {"folder": folder, "timestamp": timestamp},
        settings.CLOUDINARY_API_SECRET,
    )
    return {
        "timestamp": timestamp,
        "signature": signature,
        "folder": folder,
        "api_key": settings.CLOUDINARY_API_KEY,
        "cloud_name": settings.CLOUDINARY_CLOUD_NAME,
    }


def validate_cloudinary_config() -> bool:
    """
    Validate that Cloudinary is properly configured.

    Returns:
        bool: True if Cloudinary is configured, False otherwise
    """
    if not settings.CLOUDINARY_CLOUD_NAME:
        logger.warning("CLOUDINARY_CLOUD_NAME not configured")
        return False
    if not settings.CLOUDINARY_API_KEY:
        logger.warning("CLOUDINARY_API_KEY not configured")
        return False
    if not settings.CLOUDINARY_API_SECRET:
        logger.warning("CLOUDINARY_API_SECRET not configured")
        return False

    return True
