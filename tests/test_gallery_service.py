import pytest
from PIL import Image

from trust_site.exceptions import InvalidArgument, InvalidOperation, NotFound, UpstreamUnavailable
from trust_site.models import Collection, CollectionKind, GalleryDocument, ImageItem, VideoItem
from trust_site.services import gallery_service as gallery_module
from trust_site.services.gallery_service import (
    GalleryService,
    display_items,
    hero_urls,
    preview_url,
    public_view,
    sanitize_name,
    upload_public_id,
    video_collections,
    youtube_embed_url,
    youtube_id,
    youtube_thumbnail_url,
)

from conftest import image_file


@pytest.mark.parametrize("raw, expected", [
    ("Sports_Day", "Sports_Day"),
    ("Sports Day", "Sports_Day"),
    ("  Annual   Day 2024 ", "Annual_Day_2024"),
    ("Diwali! Celebration?", "Diwali_Celebration"),
    ("tree-planting", "tree-planting"),
    ("!!!", ""),
    (None, ""),
])
def test_sanitize_name(raw, expected):
    assert sanitize_name(raw) == expected


def test_upload_public_id_keeps_stem_and_folds_spaces():
    public_id = upload_public_id("My Photo 1.JPG")
    timestamp, _, stem = public_id.partition("-")
    assert timestamp.isdigit()
    assert stem == "My_Photo_1"


async def test_read_missing_document_is_empty(gallery_service):
    document = await gallery_service.read()
    assert document.collections == {}
    assert document.slider == []


async def test_read_malformed_document_is_empty(gallery_service, documents):
    documents.documents["gallery.json"] = ["not", "an", "object"]
    document = await gallery_service.read()
    assert document.collections == {}


async def test_read_unknown_version_is_empty(gallery_service, documents):
    documents.documents["gallery.json"] = {"version": 99, "collections": {"x": {}}}
    assert (await gallery_service.read()).collections == {}


async def test_read_unavailable_store_is_empty(gallery_service, documents):
    documents.fail_load = True
    document = await gallery_service.read()
    assert document == GalleryDocument()


async def test_create_collection_then_read(gallery_service):
    await gallery_service.create_collection("Sports Day")
    document = await gallery_service.read()
    assert document.collections["Sports_Day"].items == []
    assert document.collections["Sports_Day"].kind == CollectionKind.IMAGES


async def test_create_collection_twice_is_noop(gallery_service, documents):
    await gallery_service.create_collection("Sports_Day")
    await gallery_service.add_items("Sports_Day", [image_file()])
    saves = documents.saves

    await gallery_service.create_collection("Sports_Day")

    document = await gallery_service.read()
    assert len(document.collections["Sports_Day"].items) == 1
    assert documents.saves == saves


async def test_create_collection_rejects_empty_name(gallery_service):
    with pytest.raises(InvalidArgument):
        await gallery_service.create_collection("?!")


@pytest.mark.parametrize("name", ["home_slider", "home-slider", "homeSlider", "home slider"])
async def test_create_collection_rejects_reserved_names(gallery_service, name):
    with pytest.raises(InvalidOperation):
        await gallery_service.create_collection(name)


async def test_add_items_appends_in_order(gallery_service, media):
    report = await gallery_service.add_items("Sports_Day", [image_file("a.jpg"), image_file("b.jpg")])
    assert not report.failed

    items = (await gallery_service.read()).collections["Sports_Day"].items
    assert [item.external_id for item in items] == [item.external_id for item in report.succeeded]
    assert items[0].external_id.startswith("events/Sports_Day/")
    assert items[0].original_url == items[0].optimized_url == items[0].thumb_url
    assert [folder for folder, _, _ in media.uploads] == ["events/Sports_Day", "events/Sports_Day"]


async def test_add_same_file_twice_creates_two_entries(gallery_service):
    await gallery_service.add_items("Sports_Day", [image_file("a.jpg")])
    await gallery_service.add_items("Sports_Day", [image_file("a.jpg")])

    items = (await gallery_service.read()).collections["Sports_Day"].items
    assert len(items) == 2
    assert items[0].url != items[1].url


async def test_add_items_reports_partial_failure(gallery_service, media):
    media.fail_stems = {"broken"}

    report = await gallery_service.add_items("Trip", [image_file("ok.jpg"), image_file("broken.jpg"), image_file("fine.jpg")])

    assert len(report.succeeded) == 2
    assert [f.filename for f in report.failed] == ["broken.jpg"]
    assert "rejected" in report.failed[0].reason
    assert len((await gallery_service.read()).collections["Trip"].items) == 2


async def test_add_items_all_failed_writes_nothing(gallery_service, media, documents):
    media.fail_stems = {"a", "b"}

    report = await gallery_service.add_items("Trip", [image_file("a.jpg"), image_file("b.jpg")])

    assert report.document is None
    assert len(report.failed) == 2
    assert documents.saves == 0


async def test_add_items_reports_files_that_cannot_be_converted(documents, media, monkeypatch):
    def fake_prepare(content, filename, quality):
        if filename == "huge.png":
            raise Image.DecompressionBombError("image exceeds pixel limit")
        return content

    monkeypatch.setattr(gallery_module, "prepare_upload", fake_prepare)
    service = GalleryService(documents, media, document_name="gallery.json", convert_to_webp=True)

    report = await service.add_items("Events", [image_file("ok.png"), image_file("huge.png")])

    assert [f.filename for f in report.failed] == ["huge.png"]
    assert len(report.succeeded) == 1
    assert documents.saves == 1
    assert (await service.read()).collections["Events"].items == report.succeeded


async def test_add_items_without_files(gallery_service):
    with pytest.raises(InvalidArgument):
        await gallery_service.add_items("Trip", [])


async def test_add_items_defaults_collection_name(gallery_service):
    await gallery_service.add_items("", [image_file()])
    assert "default_event" in (await gallery_service.read()).collections


async def test_add_hero_items_go_to_slider(gallery_service, media):
    report = await gallery_service.add_items("ignored", [image_file("banner.png")], is_hero=True)

    document = await gallery_service.read()
    assert document.collections == {}
    assert document.slider == report.succeeded
    assert document.slider[0].hero is True
    assert media.uploads[0][0] == "slider"


async def test_add_video_link_deduplicates_exact_url(gallery_service):
    await gallery_service.add_video_link("Videos", "https://youtu.be/abc123")
    await gallery_service.add_video_link("Videos", "https://youtu.be/abc123")
    await gallery_service.add_video_link("Videos", "https://www.youtube.com/watch?v=abc123")

    items = (await gallery_service.read()).collections["Videos"].items
    assert [item.url for item in items] == [
        "https://youtu.be/abc123",
        "https://www.youtube.com/watch?v=abc123",
    ]


async def test_add_video_link_creates_video_collection(gallery_service):
    await gallery_service.add_video_link(None, "https://youtu.be/xyz789", title="Annual day")
    collection = (await gallery_service.read()).collections["youtube"]
    assert collection.kind == CollectionKind.VIDEOS
    assert collection.items == [VideoItem(url="https://youtu.be/xyz789", title="Annual day")]


async def test_add_video_link_requires_url(gallery_service):
    with pytest.raises(InvalidArgument):
        await gallery_service.add_video_link("Videos", "  ")


async def test_sports_day_scenario(gallery_service):
    await gallery_service.create_collection("Sports_Day")
    await gallery_service.add_video_link("Sports_Day", "https://youtu.be/abc123")

    document = await gallery_service.read()

    assert list(document.collections) == ["Sports_Day"]
    items = document.collections["Sports_Day"].items
    assert items == [VideoItem(url="https://youtu.be/abc123")]
    assert items[0].is_video is True
    assert document.collections["Sports_Day"].kind == CollectionKind.VIDEOS
    assert document.slider == []


async def test_mixed_content_marks_collection_mixed(gallery_service):
    await gallery_service.add_items("Fest", [image_file()])
    await gallery_service.add_video_link("Fest", "https://youtu.be/abc123")
    assert (await gallery_service.read()).collections["Fest"].kind == CollectionKind.MIXED


async def test_rename_collection(gallery_service):
    await gallery_service.add_items("Old", [image_file()])
    await gallery_service.rename_collection("Old", "New Name")

    document = await gallery_service.read()
    assert "Old" not in document.collections
    assert len(document.collections["New_Name"].items) == 1


async def test_rename_onto_existing_collection_merges(gallery_service):
    await gallery_service.add_items("A", [image_file("a1.jpg"), image_file("a2.jpg")])
    await gallery_service.add_items("B", [image_file("b1.jpg")])
    before = await gallery_service.read()

    await gallery_service.rename_collection("A", "B")

    after = await gallery_service.read()
    assert "A" not in after.collections
    assert after.collections["B"].items == before.collections["B"].items + before.collections["A"].items


async def test_rename_merge_recomputes_kind(gallery_service):
    await gallery_service.add_items("Photos", [image_file()])
    await gallery_service.add_video_link("Clips", "https://youtu.be/abc123")
    await gallery_service.rename_collection("Clips", "Photos")
    assert (await gallery_service.read()).collections["Photos"].kind == CollectionKind.MIXED


async def test_rename_missing_collection(gallery_service):
    with pytest.raises(NotFound):
        await gallery_service.rename_collection("Nope", "Other")


async def test_rename_to_reserved_name(gallery_service):
    await gallery_service.create_collection("Photos")
    with pytest.raises(InvalidOperation):
        await gallery_service.rename_collection("Photos", "home_slider")


@pytest.mark.parametrize("alias", ["home_slider", "home-slider", "homeSlider"])
async def test_delete_reserved_collection_is_refused(gallery_service, documents, alias):
    await gallery_service.add_items("Photos", [image_file()])
    await gallery_service.add_items(None, [image_file("hero.jpg")], is_hero=True)
    before = await gallery_service.read()
    saves = documents.saves

    with pytest.raises(InvalidOperation):
        await gallery_service.delete_collection(alias)

    assert await gallery_service.read() == before
    assert documents.saves == saves


async def test_delete_collection_destroys_media(gallery_service, media):
    report = await gallery_service.add_items("Trip", [image_file("a.jpg"), image_file("b.jpg")])
    await gallery_service.add_video_link("Trip", "https://youtu.be/abc123")

    await gallery_service.delete_collection("Trip")

    assert "Trip" not in (await gallery_service.read()).collections
    assert media.destroyed == [item.external_id for item in report.succeeded]


async def test_delete_collection_survives_media_failures(gallery_service, media):
    await gallery_service.add_items("Trip", [image_file()])
    media.fail_destroy = True

    await gallery_service.delete_collection("Trip")

    assert "Trip" not in (await gallery_service.read()).collections


async def test_delete_missing_collection(gallery_service):
    with pytest.raises(NotFound):
        await gallery_service.delete_collection("Nope")


async def test_delete_item_by_url(gallery_service, media):
    report = await gallery_service.add_items("Trip", [image_file("a.jpg"), image_file("b.jpg")])
    first, second = report.succeeded

    await gallery_service.delete_item(first.thumb_url, collection_name="Trip")

    assert (await gallery_service.read()).collections["Trip"].items == [second]
    assert media.destroyed == [first.external_id]


async def test_delete_item_by_external_id_searches_all_collections(gallery_service):
    await gallery_service.add_items("One", [image_file()])
    report = await gallery_service.add_items("Two", [image_file()])

    await gallery_service.delete_item(report.succeeded[0].external_id)

    document = await gallery_service.read()
    assert len(document.collections["One"].items) == 1
    assert document.collections["Two"].items == []


async def test_delete_video_item(gallery_service, media):
    await gallery_service.add_video_link("Clips", "https://youtu.be/abc123")
    await gallery_service.delete_item("https://youtu.be/abc123")

    assert (await gallery_service.read()).collections["Clips"].items == []
    assert media.destroyed == []


async def test_delete_hero_item(gallery_service, media):
    report = await gallery_service.add_items(None, [image_file("hero.jpg")], is_hero=True)
    hero = report.succeeded[0]

    await gallery_service.delete_item(hero.url, is_hero=True)

    assert (await gallery_service.read()).slider == []
    assert media.destroyed == [hero.external_id]


async def test_delete_item_not_found(gallery_service):
    await gallery_service.add_items("Trip", [image_file()])
    with pytest.raises(NotFound):
        await gallery_service.delete_item("https://example.com/missing.jpg")
    with pytest.raises(NotFound):
        await gallery_service.delete_item("https://example.com/missing.jpg", is_hero=True)


async def test_delete_item_requires_ref(gallery_service):
    with pytest.raises(InvalidArgument):
        await gallery_service.delete_item("")


async def test_delete_legacy_item_without_external_id(gallery_service, documents, media):
    documents.documents["gallery.json"] = {
        "gallery": {"Old": [{"original": "/uploads/events/Old/a.jpg"}]},
        "slider": [],
    }

    await gallery_service.delete_item("/uploads/events/Old/a.jpg")

    assert (await gallery_service.read()).collections["Old"].items == []
    assert media.destroyed == []


async def test_mutation_refuses_to_overwrite_unreadable_document(gallery_service, documents):
    documents.fail_load = True
    with pytest.raises(UpstreamUnavailable):
        await gallery_service.create_collection("Trip")
    assert documents.saves == 0


async def test_mutation_refuses_to_overwrite_malformed_document(gallery_service, documents):
    documents.documents["gallery.json"] = {"version": 1, "collections": "oops"}
    with pytest.raises(UpstreamUnavailable):
        await gallery_service.add_video_link("Clips", "https://youtu.be/abc123")
    assert documents.saves == 0


async def test_every_write_bumps_revision(gallery_service):
    await gallery_service.create_collection("A")
    await gallery_service.create_collection("B")
    assert (await gallery_service.read()).revision == 2


async def test_write_then_read_round_trip(gallery_service, documents):
    await gallery_service.add_items("Trip", [image_file()])
    await gallery_service.add_items(None, [image_file("hero.jpg")], is_hero=True)
    await gallery_service.add_video_link("Clips", "https://youtu.be/abc123", title="Launch")
    stored = documents.documents["gallery.json"]

    document = await gallery_service.read()

    assert document.model_dump(mode="json") == stored


def _image(url, hero=False):
    return ImageItem.from_url(url, external_id=url.rsplit("/", 1)[-1], hero=hero)


def test_display_items_excludes_slider_urls():
    item1 = _image("https://cdn/x/1.jpg")
    item2 = _image("https://cdn/x/2.jpg")
    document = GalleryDocument(
        collections={"X": Collection(items=[item1, item2])},
        slider=[item1],
    )

    assert hero_urls(document) == {"https://cdn/x/1.jpg"}
    assert display_items(document, "X") == [item2]


def test_display_items_excludes_flagged_hero_items():
    flagged = _image("https://cdn/x/1.jpg", hero=True)
    plain = _image("https://cdn/x/2.jpg")
    document = GalleryDocument(collections={"X": Collection(items=[flagged, plain])})

    assert display_items(document, "X") == [plain]


def test_display_items_unknown_collection():
    with pytest.raises(NotFound):
        display_items(GalleryDocument(), "missing")


def test_video_collections_use_stored_kind():
    document = GalleryDocument(collections={
        "Clips": Collection(kind=CollectionKind.VIDEOS, items=[VideoItem(url="https://youtu.be/a1b2c3")]),
        "Photos": Collection(items=[_image("https://cdn/p/1.jpg")]),
        "Empty videos": Collection(kind=CollectionKind.VIDEOS),
    })
    assert video_collections(document) == ["Clips", "Empty videos"]


@pytest.mark.parametrize("url, expected", [
    ("https://www.youtube.com/watch?v=abc123XYZ", "abc123XYZ"),
    ("https://youtu.be/abc123", "abc123"),
    ("https://www.youtube.com/embed/abc123", "abc123"),
    ("youtu.be/abc123", "abc123"),
    ("https://www.youtube.com/shorts/abc123XYZ", "abc123XYZ"),
    ("https://youtube.com/live/abc123XYZ?feature=share", "abc123XYZ"),
    ("https://vimeo.com/12345", None),
])
def test_youtube_id(url, expected):
    assert youtube_id(url) == expected


def test_youtube_urls():
    assert youtube_embed_url("https://youtu.be/abc123") == "https://www.youtube.com/embed/abc123"
    assert youtube_thumbnail_url("https://youtu.be/abc123") == "https://img.youtube.com/vi/abc123/hqdefault.jpg"
    assert youtube_embed_url("not a video") is None


def test_preview_url_prefers_images():
    video = VideoItem(url="https://youtu.be/abc123")
    image = _image("https://cdn/p/1.jpg")
    assert preview_url([video, image]) == "https://cdn/p/1.jpg"
    assert preview_url([video]) == "https://img.youtube.com/vi/abc123/hqdefault.jpg"
    assert preview_url([]) is None


def test_public_view_omits_collections_emptied_by_hero_exclusion():
    hero = ImageItem.from_url("https://cdn/hero.jpg", hero=True)
    kept = ImageItem.from_url("https://cdn/kept.jpg")
    document = GalleryDocument(
        collections={
            "OnlyHero": Collection(items=[ImageItem.from_url("https://cdn/hero.jpg")]),
            "Empty": Collection(),
            "Trip": Collection(items=[kept]),
            "Clips": Collection(kind=CollectionKind.VIDEOS, items=[VideoItem(url="https://youtu.be/abc123")]),
        },
        slider=[hero],
    )

    view = public_view(document)

    assert [c["name"] for c in view["collections"]] == ["Trip", "Clips"]
    assert view["collections"][0]["preview_url"] == "https://cdn/kept.jpg"
    assert view["collections"][0]["items"] == [kept]
    assert view["video_collections"] == ["Clips"]
    assert view["slider"] == [hero]


async def test_delete_item_recomputes_collection_kind(gallery_service):
    await gallery_service.add_video_link("Fest", "https://youtu.be/abc123")
    report = await gallery_service.add_items("Fest", [image_file("stage.jpg")])
    assert report.document.collections["Fest"].kind == CollectionKind.MIXED

    document = await gallery_service.delete_item(report.succeeded[0].url, collection_name="Fest")

    assert document.collections["Fest"].kind == CollectionKind.VIDEOS
    assert video_collections(await gallery_service.read()) == ["Fest"]


async def test_legacy_collection_with_spaces_is_usable(gallery_service, documents):
    documents.documents["gallery.json"] = {
        "gallery": {"Annual Day": [{"original": "https://cdn/annual.jpg"}]},
    }

    document = await gallery_service.read()
    assert list(document.collections) == ["Annual_Day"]
    assert [c["name"] for c in public_view(document)["collections"]] == ["Annual_Day"]

    renamed = await gallery_service.rename_collection("Annual Day", "Annual Day 2024")
    assert list(renamed.collections) == ["Annual_Day_2024"]
