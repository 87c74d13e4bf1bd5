"""
Pydantic models for the metadata documents kept on the media host.

The gallery document holds named collections of media items plus the hero
slider; the cards document holds the home-page cards. Both are read in full
and written in full on every change.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
import re
import uuid

from pydantic import BaseModel, Field, computed_field

SCHEMA_VERSION = 1

# Names the hero slider has been stored under; never valid collection keys
RESERVED_COLLECTION_NAMES = frozenset({"home_slider", "home-slider", "homeSlider"})

_LEGACY_SLIDER_KEYS = ("slider", "home_slider", "homeSlider")


def sanitize_name(name: Optional[str]) -> str:
    """Reduce a collection name to letters, digits, '-' and '_' (spaces become '_')."""
    cleaned = re.sub(r"[^a-zA-Z0-9\-_ ]", "", str(name or "")).strip()
    return re.sub(r"\s+", "_", cleaned)


class CollectionKind(str, Enum):
    IMAGES = "images"
    VIDEOS = "videos"
    MIXED = "mixed"


class ImageItem(BaseModel):
    """An uploaded image. All three URLs point at the host's secure URL."""

    type: Literal["image"] = "image"
    original_url: str
    optimized_url: str
    thumb_url: str
    external_id: Optional[str] = None
    hero: bool = False

    @classmethod
    def from_url(cls, url: str, external_id: Optional[str] = None, hero: bool = False) -> "ImageItem":
        return cls(
            original_url=url,
            optimized_url=url,
            thumb_url=url,
            external_id=external_id,
            hero=hero,
        )

    @property
    def url(self) -> str:
        return self.original_url or self.optimized_url or self.thumb_url

    def urls(self) -> List[str]:
        return [u for u in (self.original_url, self.optimized_url, self.thumb_url) if u]

    def matches(self, ref: str) -> bool:
        return ref in self.urls() or (self.external_id is not None and self.external_id == ref)


class VideoItem(BaseModel):
    """A YouTube link shown as an embedded video."""

    type: Literal["video"] = "video"
    url: str
    title: Optional[str] = None

    @computed_field
    @property
    def is_video(self) -> bool:
        return True

    def urls(self) -> List[str]:
        return [self.url] if self.url else []

    def matches(self, ref: str) -> bool:
        return self.url == ref


MediaItem = Annotated[Union[ImageItem, VideoItem], Field(discriminator="type")]


def kind_of(item: Union[ImageItem, VideoItem]) -> CollectionKind:
    return CollectionKind.VIDEOS if isinstance(item, VideoItem) else CollectionKind.IMAGES


class Collection(BaseModel):
    """A named gallery folder ("event"). Insertion order is display order."""

    kind: CollectionKind = CollectionKind.IMAGES
    items: List[MediaItem] = Field(default_factory=list)

    def append(self, item: Union[ImageItem, VideoItem]) -> None:
        item_kind = kind_of(item)
        if not self.items:
            self.kind = item_kind
        elif self.kind != item_kind:
            self.kind = CollectionKind.MIXED
        self.items.append(item)

    def recompute_kind(self) -> None:
        kinds = {kind_of(item) for item in self.items}
        if len(kinds) == 1:
            self.kind = kinds.pop()
        elif len(kinds) > 1:
            self.kind = CollectionKind.MIXED


class GalleryDocument(BaseModel):
    """Root aggregate: every collection plus the hero slider."""

    version: int = SCHEMA_VERSION
    revision: int = 0
    collections: Dict[str, Collection] = Field(default_factory=dict)
    slider: List[ImageItem] = Field(default_factory=list)


class Card(BaseModel):
    """Promotional block shown on the home page."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    about: str = ""
    image_src: str = ""
    external_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CardsDocument(BaseModel):
    version: int = SCHEMA_VERSION
    cards: List[Card] = Field(default_factory=list)


def _legacy_item(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, str):
        url = raw.strip()
        return ImageItem.from_url(url).model_dump() if url else None
    if not isinstance(raw, dict):
        return None

    if raw.get("youtube") is True or raw.get("isVideo") is True:
        if not raw.get("url"):
            return None
        return {"type": "video", "url": raw["url"], "title": raw.get("title")}

    url = raw.get("original") or raw.get("optimized") or raw.get("thumb") or raw.get("url")
    if not url:
        return None
    return {
        "type": "image",
        "original_url": raw.get("original") or url,
        "optimized_url": raw.get("optimized") or url,
        "thumb_url": raw.get("thumb") or url,
        "external_id": raw.get("public_id") or None,
    }


def _legacy_collection(raw_items: List[Any]) -> Dict[str, Any]:
    items = [item for item in (_legacy_item(r) for r in raw_items) if item is not None]
    # The historical format had no kind; it was read off the first element
    kind = CollectionKind.VIDEOS if items and items[0]["type"] == "video" else CollectionKind.IMAGES
    if any(item["type"] != items[0]["type"] for item in items):
        kind = CollectionKind.MIXED
    return {"kind": kind.value, "items": items}


def migrate_legacy_gallery(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert an unversioned gallery document into the current schema.

    Handles ``{"gallery": {...}, "slider": [...]}`` documents, the
    ``home_slider``/``homeSlider`` slider spellings, and bare
    ``{name: [items]}`` mappings.
    """
    gallery = raw.get("gallery")
    if not isinstance(gallery, dict):
        gallery = {
            key: value for key, value in raw.items()
            if isinstance(value, list) and key not in _LEGACY_SLIDER_KEYS
        }

    slider_raw: List[Any] = []
    for key in _LEGACY_SLIDER_KEYS:
        if isinstance(raw.get(key), list) and raw[key]:
            slider_raw = raw[key]
            break

    slider = []
    for item in (_legacy_item(r) for r in slider_raw):
        if item is not None and item["type"] == "image":
            item["hero"] = True
            slider.append(item)

    collections = {
        name: _legacy_collection(items)
        for name, items in gallery.items()
        if isinstance(items, list) and name not in RESERVED_COLLECTION_NAMES
    }
    return {"version": SCHEMA_VERSION, "revision": 0, "collections": collections, "slider": slider}


def parse_gallery_document(raw: Any) -> GalleryDocument:
    """
    Validate a decoded gallery document, migrating the legacy shape.

    Raises:
        ValueError: If the document is not an object, has an unknown
            version, or fails validation.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Gallery document must be a JSON object, got {type(raw).__name__}")

    if "version" not in raw:
        raw = migrate_legacy_gallery(raw)
    elif raw["version"] != SCHEMA_VERSION:
        raise ValueError(f"Unsupported gallery document version: {raw['version']!r}")

    document = GalleryDocument.model_validate(raw)
    return normalize_collection_names(document)


def normalize_collection_names(document: GalleryDocument) -> GalleryDocument:
    """
    Re-key collections by their sanitized names.

    Keys that collide after sanitizing are merged in document order; keys
    that sanitize to nothing or to a hero slider alias are dropped.
    """
    collections: Dict[str, Collection] = {}
    for name, collection in document.collections.items():
        clean = sanitize_name(name)
        if not clean or clean in RESERVED_COLLECTION_NAMES:
            continue
        if clean in collections:
            collections[clean].items.extend(collection.items)
            collections[clean].recompute_kind()
        else:
            collections[clean] = collection
    document.collections = collections
    return document


def parse_cards_document(raw: Any) -> CardsDocument:
    """
    Validate a decoded cards document, migrating the legacy shape.

    Raises:
        ValueError: If the document is not an object or fails validation.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Cards document must be a JSON object, got {type(raw).__name__}")

    if "version" not in raw:
        cards = []
        for card in raw.get("cards") or []:
            if not isinstance(card, dict):
                continue
            cards.append({
                "id": card.get("id") or uuid.uuid4().hex,
                "name": card.get("name") or "",
                "about": card.get("about") or "",
                "image_src": card.get("src") or card.get("image_src") or "",
                "external_id": card.get("public_id") or None,
                "created_at": card.get("createdAt") or card.get("created_at") or datetime.now(timezone.utc),
            })
        raw = {"version": SCHEMA_VERSION, "cards": cards}
    elif raw["version"] != SCHEMA_VERSION:
        raise ValueError(f"Unsupported cards document version: {raw['version']!r}")

    return CardsDocument.model_validate(raw)
