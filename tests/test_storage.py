"""Tests for image validation, object keys and the Supabase Storage client."""

import io
import json

import httpx
import pytest
from starlette.datastructures import Headers, UploadFile

from catering.core.config import settings
from catering.services.catalogue import compute_discount_percent, searchable_in_json_text, slugify
from catering.services.storage import (
    ImageValidationError,
    StorageError,
    SupabaseStorage,
    build_object_key,
    read_image,
    validate_image_file,
)


# ── Validation & keys ───────────────────────────────────────────────
@pytest.mark.parametrize("content_type", ["image/jpeg", "image/jpg", "image/png", "image/webp"])
def test_accepted_image_types(content_type):
    validate_image_file(content_type, 1024)


@pytest.mark.parametrize("content_type", ["image/gif", "application/pdf", "text/plain", None])
def test_rejected_image_types(content_type):
    with pytest.raises(ImageValidationError, match="Invalid file type"):
        validate_image_file(content_type, 1024)


def test_image_size_limit():
    validate_image_file("image/png", settings.MAX_IMAGE_SIZE)
    with pytest.raises(ImageValidationError, match="File size too large"):
        validate_image_file("image/png", settings.MAX_IMAGE_SIZE + 1)


def test_object_key_layout():
    key = build_object_key("menus", "Photo.JPEG", "image/jpeg")
    folder, name = key.split("/")
    assert folder == "menus"
    stamp, rest = name.split("-", 1)
    assert stamp.isdigit()
    assert rest.endswith(".jpeg")


def test_object_key_falls_back_to_content_type_extension():
    assert build_object_key("menus", "blob", "image/webp").endswith(".webp")
    assert build_object_key("menus", None, "image/png").endswith(".png")


def test_object_keys_are_unique():
    keys = {build_object_key("menus", "a.png", "image/png") for _ in range(50)}
    assert len(keys) == 50


# ── Catalogue helpers ───────────────────────────────────────────────
@pytest.mark.parametrize(
    "price,discounted,expected",
    [
        (100, 75, 25),
        (100, 100, 0),
        (200, 199, 1),  # 0.5 rounds up
        (80000, 70000, 13),  # 12.5 rounds up
        (30, 20, 33),
        (30, 10, 67),
        (19.99, 9.99, 50),
    ],
)
def test_compute_discount_percent(price, discounted, expected):
    assert compute_discount_percent(price, discounted) == expected


def test_compute_discount_percent_without_price():
    assert compute_discount_percent(0, 0) is None
    assert compute_discount_percent(0.0, 5) is None


@pytest.mark.parametrize(
    "term,searchable",
    [
        ("Café", True),
        ("rice, egg", True),
        (",", False),
        (" , ", False),
        ("[", False),
        ('"Rice', False),
        ("back\\slash", False),
    ],
)
def test_searchable_in_json_text(term, searchable):
    assert searchable_in_json_text(term) is searchable


@pytest.mark.parametrize(
    "name,slug",
    [
        ("Nasi Goreng", "nasi-goreng"),
        ("  Sate  Ayam!! ", "sate-ayam"),
        ("Crème Brûlée", "creme-brulee"),
        ("!!!", "menu"),
    ],
)
def test_slugify(name, slug):
    assert slugify(name) == slug


# ── Supabase client ─────────────────────────────────────────────────
def _storage(handler) -> SupabaseStorage:
    return SupabaseStorage(
        "https://project.supabase.co/",
        "service-key",
        "images",
        transport=httpx.MockTransport(handler),
    )


def _upload_file(data: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.mark.asyncio
async def test_upload_posts_object_and_returns_public_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["type"] = request.headers["content-type"]
        seen["body"] = request.content
        return httpx.Response(200, json={"Key": "images/menus/x.png"})

    result = await _storage(handler).upload(b"png-bytes", "menus/x.png", "image/png")

    assert seen["method"] == "POST"
    assert seen["url"] == "https://project.supabase.co/storage/v1/object/images/menus/x.png"
    assert seen["auth"] == "Bearer service-key"
    assert seen["type"] == "image/png"
    assert seen["body"] == b"png-bytes"
    assert result.key == "menus/x.png"
    assert result.url == "https://project.supabase.co/storage/v1/object/public/images/menus/x.png"


@pytest.mark.asyncio
async def test_upload_rejection_raises_storage_error():
    storage = _storage(lambda request: httpx.Response(403, json={"error": "denied"}))
    with pytest.raises(StorageError):
        await storage.upload(b"x", "menus/x.png", "image/png")


@pytest.mark.asyncio
async def test_upload_network_failure_raises_storage_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(StorageError):
        await _storage(handler).upload(b"x", "menus/x.png", "image/png")


@pytest.mark.asyncio
async def test_delete_sends_prefix_list():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["json"] = json.loads(request.content)
        return httpx.Response(200, json=[])

    await _storage(handler).delete("menus/old.png")

    assert seen["method"] == "DELETE"
    assert seen["path"] == "/storage/v1/object/images"
    assert seen["json"] == {"prefixes": ["menus/old.png"]}


@pytest.mark.asyncio
async def test_delete_failure_raises_storage_error():
    storage = _storage(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(StorageError):
        await storage.delete("menus/old.png")


@pytest.mark.asyncio
async def test_upload_image_validates_before_sending():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    storage = _storage(handler)
    with pytest.raises(ImageValidationError):
        await storage.upload_image(_upload_file(b"GIF89a", "a.gif", "image/gif"), "menus")
    assert calls == []

    result = await storage.upload_image(_upload_file(b"\x89PNG", "a.png", "image/png"), "menus")
    assert len(calls) == 1
    assert result.key.startswith("menus/")
    assert result.key.endswith(".png")


class _CountingStream(io.BytesIO):
    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.reads = 0

    def read(self, *args):
        self.reads += 1
        return super().read(*args)


@pytest.mark.asyncio
async def test_read_image_rejects_declared_oversize_without_reading():
    stream = _CountingStream(b"\x89PNG")
    upload = UploadFile(
        file=stream,
        size=settings.MAX_IMAGE_SIZE + 1,
        filename="huge.png",
        headers=Headers({"content-type": "image/png"}),
    )
    with pytest.raises(ImageValidationError, match="File size too large"):
        await read_image(upload)
    assert stream.reads == 0


@pytest.mark.asyncio
async def test_read_image_still_checks_actual_size():
    data = b"\x00" * (settings.MAX_IMAGE_SIZE + 1)
    upload = _upload_file(data, "big.png", "image/png")
    assert upload.size is None
    with pytest.raises(ImageValidationError, match="File size too large"):
        await read_image(upload)
