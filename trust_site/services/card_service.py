"""
Home card storage. Cards live in their own document, newest first.
"""
import logging
from typing import List, Optional

from trust_site.config import settings
from trust_site.exceptions import InvalidArgument, NotFound, UpstreamUnavailable
from trust_site.models import Card, CardsDocument, parse_cards_document
from trust_site.services.document_store import DocumentStore
from trust_site.services.gallery_service import IncomingFile, upload_public_id
from trust_site.services.media_store import MediaStore
from trust_site.utils.image_converter import prepare_upload

logger = logging.getLogger(__name__)

CARDS_FOLDER = "home_cards"


class CardService:

    def __init__(
        self,
        documents: DocumentStore,
        media: MediaStore,
        document_name: str = settings.CARDS_DOCUMENT,
        convert_to_webp: bool = settings.CONVERT_UPLOADS_TO_WEBP,
    ):
        self.documents = documents
        self.media = media
        self.document_name = document_name
        self.convert_to_webp = convert_to_webp

    async def _load(self) -> CardsDocument:
        raw = await self.documents.load(self.document_name)
        if raw is None:
            return CardsDocument()
        try:
            return parse_cards_document(raw)
        except ValueError as e:
            logger.error(f"Malformed cards document: {str(e)}")
            raise UpstreamUnavailable("Cards document is malformed")

    async def _save(self, document: CardsDocument) -> None:
        await self.documents.save(self.document_name, document.model_dump(mode="json"))

    async def list_cards(self) -> List[Card]:
        """All cards, newest first. An unreadable document yields no cards."""
        try:
            return (await self._load()).cards
        except UpstreamUnavailable as e:
            logger.warning(f"Cards document unavailable, serving no cards: {e.message}")
            return []

    async def create_card(
        self,
        name: str,
        about: str = "",
        image: Optional[IncomingFile] = None,
        image_src: Optional[str] = None,
    ) -> Card:
        """
        Create a card and put it first.

        Raises:
            InvalidArgument: If the name is empty
            UpstreamUnavailable: If the image upload fails
        """
        name = (name or "").strip()
        if not name:
            raise InvalidArgument("Missing card name")

        document = await self._load()
        card = Card(name=name, about=(about or "").strip(), image_src=(image_src or "").strip())

        if image is not None:
            content = image.content
            if self.convert_to_webp:
                content = prepare_upload(content, image.filename)
            asset = await self.media.upload(content, CARDS_FOLDER, upload_public_id(image.filename))
            card.image_src = asset.url
            card.external_id = asset.external_id

        document.cards.insert(0, card)
        await self._save(document)
        logger.info(f"Created home card {card.id} ({card.name})")
        return card

    async def delete_card(self, card_id: Optional[str] = None, src: Optional[str] = None) -> List[Card]:
        """
        Delete a card by id, or every card showing ``src``.

        Returns:
            List[Card]: The remaining cards

        Raises:
            InvalidArgument: If neither id nor src is given
            NotFound: If no card has the given id
        """
        if not card_id and not src:
            raise InvalidArgument("Missing id or src")

        document = await self._load()

        if card_id:
            removed = [card for card in document.cards if card.id == card_id]
            if not removed:
                raise NotFound(f"Card {card_id} not found")
        else:
            removed = [card for card in document.cards if card.image_src == src]

        document.cards = [card for card in document.cards if card not in removed]

        for card in removed:
            if not card.external_id:
                continue
            try:
                await self.media.destroy(card.external_id)
            except Exception as e:
                logger.error(f"Failed to delete card image {card.external_id}: {str(e)}", exc_info=True)

        await self._save(document)
        logger.info(f"Deleted {len(removed)} home card(s)")
        return document.cards
