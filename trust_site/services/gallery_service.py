"""
Gallery metadata synchronization.

Keeps the gallery document (collections + hero slider) in step with the
media host. Every mutation loads the whole document, changes it and writes
the whole document back. There is no locking: concurrent writers race and
the last write wins.
"""
from dataclasses import dataclass, field
import logging
from pathlib import PurePath
import re
import time
from typing import Any, Dict, List, Optional, Set, Union
from urllib.parse import urlparse, parse_qs

from trust_site.config import settings
from trust_site.exceptions import InvalidArgument, InvalidOperation, NotFound, UpstreamUnavailable
from trust_site.models import (
    RESERVED_COLLECTION_NAMES,
    Collection,
    CollectionKind,
    GalleryDocument,
    ImageItem,
    VideoItem,
    parse_gallery_document,
    sanitize_name,
)
from trust_site.services.document_store import DocumentStore
from trust_site.services.media_store import MediaStore
from trust_site.utils.image_converter import prepare_upload

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "default_event"
DEFAULT_VIDEO_COLLECTION = "youtube"
SLIDER_FOLDER = "slider"

Item = Union[ImageItem, VideoItem]


@dataclass
class IncomingFile:
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class UploadFailure:
    filename: str
    reason: str


@dataclass
class UploadReport:
    document: Optional[GalleryDocument] = None
    succeeded: List[ImageItem] = field(default_factory=list)
    failed: List[UploadFailure] = field(default_factory=list)


def upload_public_id(filename: str) -> str:
    stem = PurePath(filename or "upload").stem
    stem = re.sub(r"\s+", "_", stem.strip())
    stem = re.sub(r"[^A-Za-z0-9._\-]", "", stem) or "upload"
    return f"{int(time.time() * 1000)}-{stem}"


def collection_folder(name: str) -> str:
    return f"events/{name}"


# -- read-side derivations ---------------------------------------------------

def hero_urls(document: GalleryDocument) -> Set[str]:
    return {url for item in document.slider for url in item.urls()}


def is_hero(item: Item, hero_set: Set[str]) -> bool:
    if isinstance(item, ImageItem) and item.hero:
        return True
    return any(url in hero_set for url in item.urls())


def visible_items(collection: Collection, hero_set: Set[str]) -> List[Item]:
    return [item for item in collection.items if not is_hero(item, hero_set)]


def display_items(document: GalleryDocument, name: str) -> List[Item]:
    """
    Items of a collection as the public gallery shows them: anything on the
    hero slider is left out.

    Raises:
        NotFound: If the collection does not exist
    """
    collection = document.collections.get(sanitize_name(name))
    if collection is None:
        raise NotFound(f"Collection '{name}' does not exist")
    return visible_items(collection, hero_urls(document))


def video_collections(document: GalleryDocument) -> List[str]:
    return [name for name, c in document.collections.items() if c.kind == CollectionKind.VIDEOS]


def youtube_id(url: str) -> Optional[str]:
    parsed = urlparse(url)
    host = parsed.hostname or ""
    if host.endswith("youtube.com"):
        ids = parse_qs(parsed.query).get("v")
        if ids:
            return ids[0]
    elif host.endswith("youtu.be"):
        return parsed.path.lstrip("/") or None

    match = re.search(r"(?:v=|youtu\.be/|/embed/|/shorts/|/live/)([A-Za-z0-9_-]{6,})", url)
    return match.group(1) if match else None


def youtube_embed_url(url: str) -> Optional[str]:
    video_id = youtube_id(url)
    return f"https://www.youtube.com/embed/{video_id}" if video_id else None


def youtube_thumbnail_url(url: str) -> Optional[str]:
    video_id = youtube_id(url)
    return f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg" if video_id else None


def preview_url(items: List[Item]) -> Optional[str]:
    """First image URL, falling back to the first video's thumbnail."""
    for item in items:
        if isinstance(item, ImageItem) and item.url:
            return item.url
    for item in items:
        if isinstance(item, VideoItem):
            thumbnail = youtube_thumbnail_url(item.url)
            if thumbnail:
                return thumbnail
    return None


def public_view(document: GalleryDocument) -> Dict[str, Any]:
    """
    Gallery as the public pages show it: non-empty collections after hero
    exclusion, each with its kind and a preview URL, plus the slider.
    """
    hero_set = hero_urls(document)
    collections = []
    for name, collection in document.collections.items():
        items = visible_items(collection, hero_set)
        if items:
            collections.append({
                "name": name,
                "kind": collection.kind,
                "preview_url": preview_url(items),
                "items": items,
            })

    return {
        "collections": collections,
        "video_collections": video_collections(document),
        "slider": document.slider,
    }


# -- service -----------------------------------------------------------------

class GalleryService:
    """Read and mutate the gallery document, mirroring media changes on the host."""

    def __init__(
        self,
        documents: DocumentStore,
        media: MediaStore,
        document_name: str = settings.GALLERY_DOCUMENT,
        convert_to_webp: bool = settings.CONVERT_UPLOADS_TO_WEBP,
        webp_quality: int = settings.WEBP_QUALITY,
    ):
        self.documents = documents
        self.media = media
        self.document_name = document_name
        self.convert_to_webp = convert_to_webp
        self.webp_quality = webp_quality

    async def read(self) -> GalleryDocument:
        """
        Fetch the gallery document.

        A missing, unreadable or malformed document is treated as first-run
        state and an empty document is returned.
        """
        try:
            raw = await self.documents.load(self.document_name)
        except UpstreamUnavailable as e:
            logger.warning(f"Gallery document unavailable, serving empty gallery: {e.message}")
            return GalleryDocument()

        if raw is None:
            return GalleryDocument()

        try:
            return parse_gallery_document(raw)
        except ValueError as e:
            logger.error(f"Malformed gallery document, serving empty gallery: {str(e)}")
            return GalleryDocument()

    async def _load_for_update(self) -> GalleryDocument:
        # Unlike read(), refuse to continue on a broken document so the
        # following write cannot replace real data with an empty gallery
        raw = await self.documents.load(self.document_name)
        if raw is None:
            return GalleryDocument()
        try:
            return parse_gallery_document(raw)
        except ValueError as e:
            logger.error(f"Malformed gallery document, refusing to overwrite: {str(e)}")
            raise UpstreamUnavailable("Gallery document is malformed")

    async def _persist(self, document: GalleryDocument) -> GalleryDocument:
        document.revision += 1
        await self.documents.save(self.document_name, document.model_dump(mode="json"))
        logger.info(
            f"Saved gallery document revision {document.revision} "
            f"({len(document.collections)} collections, {len(document.slider)} hero images)"
        )
        return document

    async def _destroy_best_effort(self, item: Item) -> None:
        if not isinstance(item, ImageItem):
            return

        external_id = item.external_id or self.media.external_id_for_url(item.url)
        if not external_id:
            logger.warning(f"No external id for {item.url}, skipping media deletion")
            return

        try:
            await self.media.destroy(external_id)
        except Exception as e:
            logger.error(f"Failed to delete {external_id} from the media host: {str(e)}", exc_info=True)

    async def create_collection(self, name: str, kind: CollectionKind = CollectionKind.IMAGES) -> GalleryDocument:
        """
        Create an empty collection. Creating an existing collection changes nothing.

        Raises:
            InvalidArgument: If the name is empty after sanitizing
            InvalidOperation: If the name is reserved for the hero slider
        """
        clean = sanitize_name(name)
        if not clean:
            raise InvalidArgument("Missing collection name")
        if clean in RESERVED_COLLECTION_NAMES:
            raise InvalidOperation(f"'{clean}' is reserved for the hero slider")

        document = await self._load_for_update()
        if clean in document.collections:
            logger.debug(f"Collection {clean} already exists")
            return document

        document.collections[clean] = Collection(kind=kind)
        logger.info(f"Created collection {clean}")
        return await self._persist(document)

    async def add_items(self, collection_name: Optional[str], files: List[IncomingFile], is_hero: bool = False) -> UploadReport:
        """
        Upload files one at a time and append them to a collection or the hero slider.

        A file that fails to upload is recorded in the report and skipped;
        earlier uploads are kept. The document is written once, after the
        loop, if anything was uploaded.

        Raises:
            InvalidArgument: If no files were given
            InvalidOperation: If a non-hero upload targets a reserved name
        """
        if not files:
            raise InvalidArgument("At least one file is required")

        if is_hero:
            target = None
            folder = SLIDER_FOLDER
        else:
            target = sanitize_name(collection_name) or DEFAULT_COLLECTION
            if target in RESERVED_COLLECTION_NAMES:
                raise InvalidOperation("Use the hero flag to upload to the hero slider")
            folder = collection_folder(target)

        document = await self._load_for_update()
        report = UploadReport()
        if target is not None:
            collection = document.collections.setdefault(target, Collection())

        for incoming in files:
            try:
                content = incoming.content
                if self.convert_to_webp:
                    content = prepare_upload(content, incoming.filename, quality=self.webp_quality)
                asset = await self.media.upload(content, folder, upload_public_id(incoming.filename))
            except Exception as e:
                logger.error(f"Upload of {incoming.filename} to {folder} failed: {str(e)}")
                report.failed.append(UploadFailure(filename=incoming.filename, reason=str(e)))
                continue

            item = ImageItem.from_url(asset.url, external_id=asset.external_id, hero=is_hero)
            report.succeeded.append(item)
            if target is not None:
                collection.append(item)
            elif asset.url in hero_urls(document):
                logger.info(f"{asset.url} is already on the hero slider")
            else:
                document.slider.append(item)

        if report.failed:
            logger.warning(
                f"Partial upload: {len(report.succeeded)} succeeded, {len(report.failed)} failed"
            )

        if report.succeeded:
            report.document = await self._persist(document)
        logger.info(f"Uploaded {len(report.succeeded)} file(s) to {folder}")
        return report

    async def add_video_link(self, collection_name: Optional[str], url: str, title: Optional[str] = None) -> GalleryDocument:
        """
        Append a video link unless the collection already holds that exact URL.

        Raises:
            InvalidArgument: If the URL is empty
            InvalidOperation: If the collection name is reserved
        """
        url = (url or "").strip()
        if not url:
            raise InvalidArgument("Missing video url")

        target = sanitize_name(collection_name) or DEFAULT_VIDEO_COLLECTION
        if target in RESERVED_COLLECTION_NAMES:
            raise InvalidOperation(f"'{target}' is reserved for the hero slider")

        document = await self._load_for_update()
        collection = document.collections.setdefault(target, Collection(kind=CollectionKind.VIDEOS))

        if any(isinstance(item, VideoItem) and item.url == url for item in collection.items):
            logger.info(f"Video {url} already present in {target}")
            return document

        collection.append(VideoItem(url=url, title=(title or "").strip() or None))
        return await self._persist(document)

    async def rename_collection(self, old_name: str, new_name: str) -> GalleryDocument:
        """
        Rename a collection. Renaming onto an existing collection appends the
        old items after the existing ones.

        Raises:
            InvalidArgument: If either name is empty after sanitizing
            InvalidOperation: If the new name is reserved
            NotFound: If the old collection does not exist
        """
        old = sanitize_name(old_name)
        new = sanitize_name(new_name)
        if not old or not new:
            raise InvalidArgument("Missing names")
        if new in RESERVED_COLLECTION_NAMES:
            raise InvalidOperation(f"'{new}' is reserved for the hero slider")

        document = await self._load_for_update()
        if old not in document.collections:
            raise NotFound(f"Collection '{old}' does not exist")
        if old == new:
            return document

        moving = document.collections.pop(old)
        if new in document.collections:
            merged = document.collections[new]
            merged.items.extend(moving.items)
            merged.recompute_kind()
            logger.info(f"Merged {len(moving.items)} item(s) from {old} into {new}")
        else:
            document.collections[new] = moving
            logger.info(f"Renamed collection {old} to {new}")

        return await self._persist(document)

    async def delete_collection(self, name: str) -> GalleryDocument:
        """
        Remove a collection and, best effort, its images on the media host.

        Raises:
            InvalidArgument: If the name is empty
            InvalidOperation: If the name is a hero slider alias
            NotFound: If the collection does not exist
        """
        clean = sanitize_name(name)
        if clean in RESERVED_COLLECTION_NAMES:
            raise InvalidOperation("The hero slider cannot be deleted as a collection")
        if not clean:
            raise InvalidArgument("Missing collection name")

        document = await self._load_for_update()
        collection = document.collections.get(clean)
        if collection is None:
            raise NotFound(f"Collection '{clean}' does not exist")

        for item in collection.items:
            await self._destroy_best_effort(item)

        del document.collections[clean]
        logger.info(f"Deleted collection {clean} ({len(collection.items)} items)")
        return await self._persist(document)

    async def delete_item(self, ref: str, collection_name: Optional[str] = None, is_hero: bool = False) -> GalleryDocument:
        """
        Remove the first item whose URL or external id equals ``ref``.

        Searches the hero slider when ``is_hero`` is set, otherwise the named
        collection, or every collection when no name is given.

        Raises:
            InvalidArgument: If ``ref`` is empty
            NotFound: If no item matches
        """
        ref = (ref or "").strip()
        if not ref:
            raise InvalidArgument("Missing item url")

        document = await self._load_for_update()

        if is_hero:
            candidates = [document.slider]
        elif sanitize_name(collection_name):
            collection = document.collections.get(sanitize_name(collection_name))
            if collection is None:
                raise NotFound(f"Collection '{collection_name}' does not exist")
            candidates = [collection.items]
        else:
            candidates = [c.items for c in document.collections.values()]

        removed = self._remove_first_match(candidates, ref)
        if removed is None:
            raise NotFound("Image not found")

        for collection in document.collections.values():
            collection.recompute_kind()

        await self._destroy_best_effort(removed)
        return await self._persist(document)

    @staticmethod
    def _remove_first_match(candidates: List[List[Item]], ref: str) -> Optional[Item]:
        # Video links are matched before images across all lists
        for wanted in (VideoItem, ImageItem):
            for items in candidates:
                for index, item in enumerate(items):
                    if isinstance(item, wanted) and item.matches(ref):
                        return items.pop(index)
        return None
