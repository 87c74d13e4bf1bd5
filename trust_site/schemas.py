"""
Pydantic schemas for request and response data validation.
Defines data structures for API endpoints with automatic validation and serialization.
"""
from pydantic import BaseModel, Field
from typing import Annotated, Dict, List, Literal, Optional, Union

from trust_site.models import Card, Collection, CollectionKind, ImageItem, MediaItem


class GalleryResponse(BaseModel):
    """
    Full gallery document.
    Returned by GET /api/event-photos and by every gallery mutation.
    """
    ok: bool = True
    revision: int
    collections: Dict[str, Collection]
    slider: List[ImageItem]


class UploadFailureResponse(BaseModel):
    filename: str
    error: str


class GalleryUploadResponse(GalleryResponse):
    """Gallery after a multipart upload, with the outcome of every file."""
    uploaded: List[ImageItem]
    failed: List[UploadFailureResponse]


class CollectionDisplayResponse(BaseModel):
    """Items of one collection with hero slider images left out."""
    name: str
    kind: CollectionKind
    items: List[MediaItem]


class PublicCollection(BaseModel):
    name: str
    kind: CollectionKind
    preview_url: Optional[str] = None
    items: List[MediaItem]


class PublicGalleryResponse(BaseModel):
    """
    Payload for the public gallery and home pages.
    Empty collections are omitted; hero images appear only in the slider.
    """
    collections: List[PublicCollection]
    video_collections: List[str]
    slider: List[ImageItem]


class CreateCollectionCommand(BaseModel):
    action: Literal["create_collection"]
    name: str
    kind: CollectionKind = CollectionKind.IMAGES


class AddVideoLinkCommand(BaseModel):
    action: Literal["add_video_link"]
    collection: Optional[str] = None
    url: str
    title: Optional[str] = None


class RenameCollectionCommand(BaseModel):
    action: Literal["rename_collection"]
    old_name: str
    new_name: str


GalleryCommand = Annotated[
    Union[CreateCollectionCommand, AddVideoLinkCommand, RenameCollectionCommand],
    Field(discriminator="action"),
]


class GalleryDeleteRequest(BaseModel):
    """
    Request schema for DELETE /api/event-photos.
    Either a whole collection (no url) or a single item by URL or external id.
    """
    collection: Optional[str] = None
    url: Optional[str] = None
    hero: bool = False


class CardCreateRequest(BaseModel):
    """JSON variant of POST /api/home-cards (image already hosted)."""
    name: str
    about: str = ""
    src: str = ""


class CardDeleteRequest(BaseModel):
    id: Optional[str] = None
    src: Optional[str] = None


class CardResponse(BaseModel):
    ok: bool = True
    card: Card


class CardsResponse(BaseModel):
    ok: bool = True
    cards: List[Card]


class UploadSignatureResponse(BaseModel):
    timestamp: int
    signature: str
    folder: str
    api_key: str
    cloud_name: str


class ContactRequest(BaseModel):
    first_name: str = ""
    last_name: Optional[str] = None
    email: str = ""
    phone: Optional[str] = None
    message: str = ""


class LoginRequest(BaseModel):
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
