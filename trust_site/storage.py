"""
Store wiring and FastAPI dependencies for the gallery and card services.
"""
import logging
from functools import lru_cache

from trust_site.config import settings
from trust_site.services.card_service import CardService
from trust_site.services.document_store import CloudinaryDocumentStore, DocumentStore, LocalDocumentStore
from trust_site.services.gallery_service import GalleryService
from trust_site.services.media_store import CloudinaryMediaStore, MediaStore

logger = logging.getLogger(__name__)


@lru_cache
def get_document_store() -> DocumentStore:
    if settings.DOCUMENT_BACKEND == "local":
        logger.info(f"Using local metadata documents in {settings.LOCAL_DATA_DIR}")
        return LocalDocumentStore(settings.LOCAL_DATA_DIR)
    return CloudinaryDocumentStore()


@lru_cache
def get_media_store() -> MediaStore:
    return CloudinaryMediaStore()


def get_gallery_service() -> GalleryService:
    """
    FastAPI dependency for the gallery service.

    Usage:
        @router.get("/endpoint")
        async def my_endpoint(gallery: GalleryService = Depends(get_gallery_service)):
            ...
    """
    return GalleryService(get_document_store(), get_media_store())


def get_card_service() -> CardService:
    """FastAPI dependency for the home card service."""
    return CardService(get_document_store(), get_media_store())
