import io
import os
import threading
from functools import partial

import anyio
import pytest
from starlette.datastructures import Headers, UploadFile

from app.crud.contact import count_contacts, insert_contact, list_contacts
from app.services.attachments import AttachmentHandler
from app.services.intake import IntakePipeline, IntakeState

FORM = {"name": "Jo", "email": "jo@example.com", "message": "Hi there"}


class StallingUpload(UploadFile):
    """Hands out one chunk, then blocks until the reading task is cancelled."""

    def __init__(self):
        super().__init__(
            file=io.BytesIO(),
            filename="slow.png",
            headers=Headers({"content-type": "image/png"}),
        )
        self.stalled = anyio.Event()
        self._sent = False

    async def read(self, size: int = -1) -> bytes:
        if not self._sent:
            self._sent = True
            return b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
        self.stalled.set()
        await anyio.sleep_forever()


@pytest.mark.anyio
async def test_cancel_during_attachment_write_removes_partial_file(app, app_settings):
    ctx = app.state.context
    ctx.init_storage()
    upload = StallingUpload()

    with ctx.session() as db:
        pipeline = IntakePipeline(db, AttachmentHandler(app_settings))
        async with anyio.create_task_group() as tg:
            tg.start_soon(partial(pipeline.submit, **FORM, screenshot=upload))
            await upload.stalled.wait()
            assert len(os.listdir(app_settings.UPLOAD_DIR)) == 1
            tg.cancel_scope.cancel()

        assert pipeline.state is IntakeState.FAILED
        assert os.listdir(app_settings.UPLOAD_DIR) == []
        assert count_contacts(db) == 0


@pytest.mark.anyio
async def test_cancel_during_store_write_keeps_committed_attachment(app, app_settings, monkeypatch):
    ctx = app.state.context
    ctx.init_storage()
    started = threading.Event()
    release = threading.Event()

    def _slow_insert(db, record, **kwargs):
        started.set()
        release.wait(timeout=10)
        return insert_contact(db, record, **kwargs)

    monkeypatch.setattr("app.services.intake.insert_contact", _slow_insert)
    upload = UploadFile(
        file=io.BytesIO(b"\xff\xd8\xff"),
        filename="a.jpg",
        headers=Headers({"content-type": "image/jpeg"}),
    )

    with ctx.session() as db:
        pipeline = IntakePipeline(db, AttachmentHandler(app_settings))
        async with anyio.create_task_group() as tg:
            tg.start_soon(partial(pipeline.submit, **FORM, screenshot=upload))
            while not started.is_set():
                await anyio.sleep(0.01)
            tg.cancel_scope.cancel()
            # The write finishes after the cancel; its record must keep its file.
            release.set()

        files = os.listdir(app_settings.UPLOAD_DIR)
        rows = list_contacts(db)

    assert pipeline.state is IntakeState.COMMITTED
    assert len(files) == 1
    assert len(rows) == 1
    assert rows[0].screenshot == f"/uploads/{files[0]}"
