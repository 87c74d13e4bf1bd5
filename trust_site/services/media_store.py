"""
Media byte storage used by the gallery and card services.
"""
from dataclasses import dataclass
import logging
from typing import Optional

from cloudinary.exceptions import Error as CloudinaryError

from trust_site.exceptions import UpstreamUnavailable
from trust_site.services import cloudinary_service

logger = logging.getLogger(__name__)


@dataclass
class StoredAsset:
    url: str
    external_id: str


class MediaStore:
    """Interface for an object store holding uploaded images."""

    async def upload(self, content: bytes, folder: str, public_id: str) -> StoredAsset:
        """
        Raises:
            UpstreamUnavailable: If the upload fails
        """
        raise NotImplementedError

    async def destroy(self, external_id: str) -> None:
        """
        Raises:
            UpstreamUnavailable: If the deletion fails
        """
        raise NotImplementedError

    def external_id_for_url(self, url: str) -> Optional[str]:
        """Best guess at the external id of an item stored before ids were recorded."""
        return None


class CloudinaryMediaStore(MediaStore):

    async def upload(self, content: bytes, folder: str, public_id: str) -> StoredAsset:
        try:
            result = await cloudinary_service.upload_image(content, folder=folder, public_id=public_id)
        except CloudinaryError as e:
            raise UpstreamUnavailable(f"Upload to {folder} failed: {str(e)}")
        return StoredAsset(url=result["url"], external_id=result["public_id"])

    async def destroy(self, external_id: str) -> None:
        try:
            await cloudinary_service.delete_image(external_id)
        except CloudinaryError as e:
            raise UpstreamUnavailable(f"Delete of {external_id} failed: {str(e)}")

    def external_id_for_url(self, url: str) -> Optional[str]:
        try:
            return cloudinary_service.extract_public_id_from_url(url)
        except ValueError:
            return None
