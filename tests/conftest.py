import copy
import json

import pytest
from fastapi.testclient import TestClient

from trust_site.exceptions import UpstreamUnavailable
from trust_site.main import app
from trust_site.services.card_service import CardService
from trust_site.services.document_store import DocumentStore
from trust_site.services.gallery_service import GalleryService, IncomingFile
from trust_site.services.media_store import MediaStore, StoredAsset
from trust_site.storage import get_card_service, get_gallery_service
from trust_site.utils.jwt_auth import require_cms_auth
from trust_site.utils.rate_limit import limiter


class InMemoryDocumentStore(DocumentStore):
    """Keeps JSON-encoded copies so callers never share objects with the store."""

    def __init__(self):
        self.documents = {}
        self.saves = 0
        self.fail_load = False
        self.fail_save = False

    async def load(self, name):
        if self.fail_load:
            raise UpstreamUnavailable("store offline")
        return copy.deepcopy(self.documents.get(name))

    async def save(self, name, data):
        if self.fail_save:
            raise UpstreamUnavailable("store offline")
        self.documents[name] = json.loads(json.dumps(data))
        self.saves += 1


class FakeMediaStore(MediaStore):

    def __init__(self):
        self.uploads = []
        self.destroyed = []
        self.fail_stems = set()
        self.fail_destroy = False

    async def upload(self, content, folder, public_id):
        if any(public_id.endswith(f"-{stem}") for stem in self.fail_stems):
            raise UpstreamUnavailable(f"upload of {public_id} rejected")
        self.uploads.append((folder, public_id, content))
        external_id = f"{folder}/{public_id}-{len(self.uploads)}"
        return StoredAsset(
            url=f"https://res.cloudinary.com/demo/image/upload/v1/{external_id}.webp",
            external_id=external_id,
        )

    async def destroy(self, external_id):
        if self.fail_destroy:
            raise UpstreamUnavailable(f"delete of {external_id} rejected")
        self.destroyed.append(external_id)


def image_file(name="photo.jpg", content=b"fake-image-bytes"):
    return IncomingFile(filename=name, content=content, content_type="image/jpeg")


@pytest.fixture(autouse=True)
def disable_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def documents():
    return InMemoryDocumentStore()


@pytest.fixture
def media():
    return FakeMediaStore()


@pytest.fixture
def gallery_service(documents, media):
    return GalleryService(documents, media, document_name="gallery.json", convert_to_webp=False)


@pytest.fixture
def card_service(documents, media):
    return CardService(documents, media, document_name="home_cards.json", convert_to_webp=False)


@pytest.fixture
def anon_client(gallery_service, card_service):
    """Client with fake stores but real admin authentication."""
    app.dependency_overrides[get_gallery_service] = lambda: gallery_service
    app.dependency_overrides[get_card_service] = lambda: card_service
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def client(anon_client):
    """Client with fake stores, already authenticated as admin."""
    app.dependency_overrides[require_cms_auth] = lambda: {"role": "admin", "sub": "cms_admin"}
    yield anon_client
