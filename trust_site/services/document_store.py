"""
JSON document stores for the gallery and card metadata.

Documents are small and always read and written whole. The Cloudinary
backend keeps them as raw files next to the media; the local backend keeps
them on disk for development.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

import httpx
from cloudinary.exceptions import Error as CloudinaryError

from trust_site.exceptions import UpstreamUnavailable
from trust_site.services import cloudinary_service

logger = logging.getLogger(__name__)


def _decode(name: str, content: bytes) -> Any:
    if not content.strip():
        return None
    try:
        return json.loads(content)
    except ValueError as e:
        raise UpstreamUnavailable(f"Document {name} is not valid JSON: {str(e)}")


def _encode(data: Any) -> bytes:
    return json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")


class DocumentStore:
    """Interface for whole-document JSON persistence."""

    async def load(self, name: str) -> Optional[Any]:
        """
        Return the decoded document, or None if it has never been written.

        Raises:
            UpstreamUnavailable: If the store cannot be reached or the content is not JSON
        """
        raise NotImplementedError

    async def save(self, name: str, data: Any) -> None:
        """
        Replace the document with ``data``.

        Raises:
            UpstreamUnavailable: If the store cannot be reached
        """
        raise NotImplementedError


class CloudinaryDocumentStore(DocumentStore):
    """Stores each document as a raw file under ``{folder}/{name}``."""

    def __init__(self, folder: str = "metadata"):
        self.folder = folder

    def public_id(self, name: str) -> str:
        return f"{self.folder}/{name}"

    async def load(self, name: str) -> Optional[Any]:
        public_id = self.public_id(name)
        try:
            content = await cloudinary_service.fetch_raw_document(public_id)
        except (CloudinaryError, httpx.HTTPError) as e:
            logger.error(f"Failed to fetch metadata document {public_id}: {str(e)}")
            raise UpstreamUnavailable(f"Could not fetch {name} from the media host")

        if content is None:
            return None
        return _decode(name, content)

    async def save(self, name: str, data: Any) -> None:
        public_id = self.public_id(name)
        try:
            await cloudinary_service.upload_raw_document(_encode(data), public_id)
        except CloudinaryError as e:
            logger.error(f"Failed to store metadata document {public_id}: {str(e)}")
            raise UpstreamUnavailable(f"Could not store {name} on the media host")


class LocalDocumentStore(DocumentStore):
    """Keeps documents as pretty-printed JSON files in a directory."""

    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir)

    def path(self, name: str) -> Path:
        return self.data_dir / name

    async def load(self, name: str) -> Optional[Any]:
        path = self.path(name)
        try:
            content = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise UpstreamUnavailable(f"Could not read {path}: {str(e)}")
        return _decode(name, content)

    async def save(self, name: str, data: Any) -> None:
        path = self.path(name)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(_encode(data))
            os.replace(tmp_path, path)
        except OSError as e:
            raise UpstreamUnavailable(f"Could not write {path}: {str(e)}")
        logger.debug(f"Wrote metadata document {path}")
