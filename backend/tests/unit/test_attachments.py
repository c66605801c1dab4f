import io
import os
import re

import pytest
from starlette.datastructures import Headers, UploadFile

from app.core.errors import AttachmentRejectedError
from app.services.attachments import AttachmentHandler, has_attachment

FILENAME_RE = re.compile(r"^\d{13}-[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[0-9a-f]{4}-[0-9a-f]{12}\.(jpeg|png|webp|bin)$")


def _upload(data: bytes, content_type: str, filename: str = "../../etc/passwd.png", size=None) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        size=size,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture
def handler(app_settings):
    os.makedirs(app_settings.UPLOAD_DIR, exist_ok=True)
    return AttachmentHandler(app_settings)


@pytest.mark.parametrize(
    "content_type,ext",
    [("image/jpeg", "jpeg"), ("image/png", "png"), ("IMAGE/WEBP", "webp"), ("image/gif", "bin"), (None, "bin")],
)
def test_extension_follows_declared_type(handler, content_type, ext):
    assert handler.extension_for(content_type) == ext


def test_generated_names_are_unique_and_safe(handler):
    names = {handler.generate_filename("image/png") for _ in range(200)}

    assert len(names) == 200
    for name in names:
        assert FILENAME_RE.match(name)


def test_public_url_uses_upload_prefix(handler):
    assert handler.public_url("abc.png") == "/uploads/abc.png"


def test_has_attachment():
    assert not has_attachment(None)
    assert not has_attachment(_upload(b"", "application/octet-stream", filename=""))
    assert has_attachment(_upload(b"x", "image/png"))


@pytest.mark.anyio
async def test_save_ignores_client_filename(handler, app_settings):
    stored = await handler.save(_upload(b"\x89PNG fake", "image/png"))

    assert FILENAME_RE.match(stored.filename)
    assert stored.url == f"/uploads/{stored.filename}"
    assert os.path.dirname(stored.path) == app_settings.UPLOAD_DIR
    assert stored.size_bytes == len(b"\x89PNG fake")
    with open(stored.path, "rb") as f:
        assert f.read() == b"\x89PNG fake"


@pytest.mark.anyio
async def test_disallowed_type_writes_nothing(handler, app_settings):
    with pytest.raises(AttachmentRejectedError) as exc_info:
        await handler.save(_upload(b"GIF89a", "image/gif"))

    assert exc_info.value.errors[0]["path"] == "screenshot"
    assert os.listdir(app_settings.UPLOAD_DIR) == []


@pytest.mark.anyio
async def test_declared_oversize_rejected_before_write(handler, app_settings):
    handler.max_bytes = 10
    with pytest.raises(AttachmentRejectedError):
        await handler.save(_upload(b"x" * 11, "image/jpeg", size=11))

    assert os.listdir(app_settings.UPLOAD_DIR) == []


@pytest.mark.anyio
async def test_oversize_stream_removes_partial_file(handler, app_settings):
    # No declared size, so the limit trips while streaming.
    handler.max_bytes = 100 * 1024
    with pytest.raises(AttachmentRejectedError):
        await handler.save(_upload(b"x" * (100 * 1024 + 1), "image/webp"))

    assert os.listdir(app_settings.UPLOAD_DIR) == []


@pytest.mark.anyio
async def test_upload_at_exact_limit_is_accepted(handler):
    handler.max_bytes = 1024
    stored = await handler.save(_upload(b"x" * 1024, "image/jpeg"))
    assert stored.size_bytes == 1024


def test_discard_missing_file_is_quiet(handler, app_settings):
    handler.discard(os.path.join(app_settings.UPLOAD_DIR, "nope.png"))
    handler.discard(None)
