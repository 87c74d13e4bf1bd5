"""
Home card routes. Listing is public; creating and deleting require admin authentication.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
import json
import logging

from trust_site.exceptions import TrustSiteError
from trust_site.schemas import CardCreateRequest, CardDeleteRequest, CardResponse, CardsResponse
from trust_site.services.card_service import CardService
from trust_site.services.gallery_service import IncomingFile
from trust_site.storage import get_card_service
from trust_site.utils.jwt_auth import require_cms_auth

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/home-cards", response_model=CardsResponse)
async def list_cards(cards: CardService = Depends(get_card_service)):
    """Get all home cards, newest first."""
    return CardsResponse(cards=await cards.list_cards())


@router.post("/home-cards", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
async def create_card(
    request: Request,
    cards: CardService = Depends(get_card_service),
    admin: dict = Depends(require_cms_auth),
):
    """
    Create a home card.

    Multipart bodies carry ``name``, ``about`` and an optional image in
    ``file``; JSON bodies carry ``name``, ``about`` and an already hosted
    ``src``.
    """
    content_type = request.headers.get("content-type", "")

    try:
        if "multipart/form-data" in content_type:
            form = await request.form()
            upload = form.get("file")
            image = None
            if upload is not None and not isinstance(upload, str):
                if not upload.content_type or not upload.content_type.startswith("image/"):
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail={"error": "Invalid file type", "detail": f"File '{upload.filename}' is not a valid image file"}
                    )
                image = IncomingFile(filename=upload.filename or "upload", content=await upload.read(), content_type=upload.content_type)

            card = await cards.create_card(
                name=str(form.get("name") or ""),
                about=str(form.get("about") or ""),
                image=image,
            )
            return CardResponse(card=card)

        if "application/json" in content_type:
            try:
                body = CardCreateRequest.model_validate(await request.json())
            except (json.JSONDecodeError, ValidationError):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={"error": "Invalid card", "detail": "Expected JSON with name, about and src"}
                )
            card = await cards.create_card(name=body.name, about=body.about, image_src=body.src)
            return CardResponse(card=card)

    except (HTTPException, TrustSiteError):
        raise
    except Exception as e:
        logger.error(f"Error creating home card: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to create home card", "detail": str(e)}
        )

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "Unsupported content-type", "detail": content_type or "missing"}
    )


@router.delete("/home-cards", response_model=CardsResponse)
async def delete_card(
    body: CardDeleteRequest,
    cards: CardService = Depends(get_card_service),
    admin: dict = Depends(require_cms_auth),
):
    """Delete a card by ``id``, or every card showing ``src``."""
    remaining = await cards.delete_card(card_id=body.id, src=body.src)
    return CardsResponse(cards=remaining)
