"""
Gallery routes: public reads of collections and the hero slider, and
admin-only commands, uploads and deletions.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError
import json
import logging

from trust_site.exceptions import TrustSiteError
from trust_site.models import GalleryDocument
from trust_site.schemas import (
    AddVideoLinkCommand,
    CollectionDisplayResponse,
    CreateCollectionCommand,
    GalleryCommand,
    GalleryDeleteRequest,
    GalleryResponse,
    GalleryUploadResponse,
    PublicGalleryResponse,
    RenameCollectionCommand,
    UploadFailureResponse,
)
from trust_site.services.gallery_service import (
    GalleryService,
    IncomingFile,
    display_items,
    public_view,
    sanitize_name,
)
from trust_site.storage import get_gallery_service
from trust_site.utils.jwt_auth import require_cms_auth
from trust_site.utils.rate_limit import limiter, RATE_LIMITS

logger = logging.getLogger(__name__)

router = APIRouter()

_command_adapter = TypeAdapter(GalleryCommand)

HERO_FLAG_VALUES = {"1", "true", "on", "yes"}


def _gallery_response(document: GalleryDocument) -> GalleryResponse:
    return GalleryResponse(
        revision=document.revision,
        collections=document.collections,
        slider=document.slider,
    )


@router.get("/event-photos", response_model=GalleryResponse)
async def get_gallery(gallery: GalleryService = Depends(get_gallery_service)):
    """
    Get the whole gallery document (collections and hero slider).

    Never fails because of the media host: a missing or unreadable
    document is served as an empty gallery.
    """
    document = await gallery.read()
    logger.info(
        f"Retrieved gallery revision {document.revision} "
        f"({len(document.collections)} collections, {len(document.slider)} hero images)"
    )
    return _gallery_response(document)


@router.get("/event-photos/public", response_model=PublicGalleryResponse)
async def get_public_gallery(gallery: GalleryService = Depends(get_gallery_service)):
    """
    Gallery as the public pages show it.

    Hero slider images are left out of their collections, collections left
    empty by that are omitted, and each collection carries a preview URL.
    """
    return PublicGalleryResponse.model_validate(public_view(await gallery.read()))


@router.get("/event-photos/collections/{name}", response_model=CollectionDisplayResponse)
async def get_collection(name: str, gallery: GalleryService = Depends(get_gallery_service)):
    """
    Display items of one collection (hero slider images excluded).

    Raises:
        NotFound: 404 if the collection does not exist
    """
    document = await gallery.read()
    items = display_items(document, name)
    clean = sanitize_name(name)
    return CollectionDisplayResponse(name=clean, kind=document.collections[clean].kind, items=items)


@router.post("/event-photos", response_model=None)
@limiter.limit(RATE_LIMITS["upload"])
async def post_gallery(
    request: Request,
    gallery: GalleryService = Depends(get_gallery_service),
    admin: dict = Depends(require_cms_auth),
):
    """
    Change the gallery. Requires admin authentication.

    Accepts either a JSON command (``action`` is ``create_collection``,
    ``add_video_link`` or ``rename_collection``) or a multipart upload with
    fields ``collection``, ``hero`` and one or more ``files``.

    Raises:
        HTTPException: 400 for unsupported bodies, 502 if every upload failed
    """
    content_type = request.headers.get("content-type", "")

    try:
        if "application/json" in content_type:
            return await _run_command(request, gallery)
        if "multipart/form-data" in content_type:
            return await _run_upload(request, gallery)

    except (HTTPException, TrustSiteError):
        raise
    except Exception as e:
        logger.error(f"Error updating gallery: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to update gallery", "detail": str(e)}
        )

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "Unsupported content-type", "detail": content_type or "missing"}
    )


async def _run_command(request: Request, gallery: GalleryService) -> GalleryResponse:
    try:
        command = _command_adapter.validate_python(await request.json())
    except json.JSONDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid JSON", "detail": "Request body is not valid JSON"}
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Unsupported JSON command",
                "detail": e.errors(include_url=False, include_context=False, include_input=False),
            }
        )

    if isinstance(command, CreateCollectionCommand):
        document = await gallery.create_collection(command.name, kind=command.kind)
    elif isinstance(command, AddVideoLinkCommand):
        document = await gallery.add_video_link(command.collection, command.url, title=command.title)
    elif isinstance(command, RenameCollectionCommand):
        document = await gallery.rename_collection(command.old_name, command.new_name)

    return _gallery_response(document)


async def _run_upload(request: Request, gallery: GalleryService) -> JSONResponse:
    form = await request.form()
    files = form.getlist("files")

    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "No files provided", "detail": "At least one image file is required"}
        )

    for i, file in enumerate(files):
        if not hasattr(file, 'content_type') or not file.content_type or not file.content_type.startswith('image/'):
            filename = getattr(file, 'filename', f'file_{i}')
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": "Invalid file type", "detail": f"File '{filename}' is not a valid image file"}
            )

    hero = str(form.get("hero") or "").strip().lower() in HERO_FLAG_VALUES
    collection = form.get("collection")
    incoming = [
        IncomingFile(filename=file.filename or f"file_{i}", content=await file.read(), content_type=file.content_type)
        for i, file in enumerate(files)
    ]

    report = await gallery.add_items(collection if isinstance(collection, str) else None, incoming, is_hero=hero)
    failed = [UploadFailureResponse(filename=f.filename, error=f.reason) for f in report.failed]

    if report.document is None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "All uploads failed", "errors": [f.model_dump() for f in failed]}
        )

    response = GalleryUploadResponse(
        revision=report.document.revision,
        collections=report.document.collections,
        slider=report.document.slider,
        uploaded=report.succeeded,
        failed=failed,
    )
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=response.model_dump(mode="json"))


@router.delete("/event-photos", response_model=GalleryResponse)
async def delete_from_gallery(
    body: GalleryDeleteRequest,
    gallery: GalleryService = Depends(get_gallery_service),
    admin: dict = Depends(require_cms_auth),
):
    """
    Delete a single item (``url``, optionally scoped by ``collection`` or
    ``hero``) or a whole collection (``collection`` without ``url``).
    Requires admin authentication. Media host deletions are best effort.

    Raises:
        HTTPException: 400 if neither url nor collection is given
    """
    if body.url:
        document = await gallery.delete_item(body.url, collection_name=body.collection, is_hero=body.hero)
    elif body.collection:
        document = await gallery.delete_collection(body.collection)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid delete request", "detail": "Provide a url or a collection"}
        )
    return _gallery_response(document)
