"""Contact intake pipeline.

A submission moves through::

    Received -> Validating -> AttachmentProcessing -> Persisting -> Committed
                    |                 |                   |
                    v                 v                   v
                 Rejected          Rejected             Failed

Every path ends inside the request. Whatever the outcome, an attachment
written by this pipeline either ends up referenced by a committed record or
is deleted.
"""
from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.errors import StorageError, SubmissionValidationError, errors_from_pydantic
from app.crud.contact import insert_contact
from app.schemas.contact import ContactCreate, ContactRecord
from app.services.attachments import AttachmentHandler, StoredAttachment, has_attachment

logger = structlog.get_logger(__name__)


class IntakeState(str, enum.Enum):
    RECEIVED = "received"
    VALIDATING = "validating"
    ATTACHMENT_PROCESSING = "attachment_processing"
    PERSISTING = "persisting"
    COMMITTED = "committed"
    REJECTED = "rejected"
    FAILED = "failed"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def validate_submission(
    *,
    name: Optional[str],
    email: Optional[str],
    message: Optional[str],
    phone: Optional[str] = None,
) -> ContactCreate:
    """Check the submitted fields, reporting every violation at once."""
    try:
        return ContactCreate(name=name or "", email=email or "", message=message or "", phone=phone)
    except ValidationError as e:
        raise SubmissionValidationError(errors_from_pydantic(e.errors())) from e


class IntakePipeline:
    def __init__(self, db: Session, attachments: AttachmentHandler):
        self.db = db
        self.attachments = attachments
        self.request_id = uuid.uuid4().hex[:12]
        self.state = IntakeState.RECEIVED
        self.log = logger.bind(request_id=self.request_id)

    def _enter(self, state: IntakeState) -> None:
        self.log.debug("intake_transition", from_state=self.state.value, to_state=state.value)
        self.state = state

    async def submit(
        self,
        *,
        name: Optional[str],
        email: Optional[str],
        message: Optional[str],
        phone: Optional[str] = None,
        screenshot: Optional[UploadFile] = None,
        ip: Optional[str] = None,
    ) -> ContactRecord:
        self._enter(IntakeState.VALIDATING)
        try:
            fields = validate_submission(name=name, email=email, message=message, phone=phone)
        except SubmissionValidationError as e:
            self._enter(IntakeState.REJECTED)
            await self._release_upload(screenshot)
            self.log.info("contact_rejected", error_count=len(e.errors))
            raise
        created_at = utc_timestamp()

        stored: Optional[StoredAttachment] = None
        if has_attachment(screenshot):
            self._enter(IntakeState.ATTACHMENT_PROCESSING)
            try:
                stored = await self.attachments.save(screenshot)
            except SubmissionValidationError as e:
                self._enter(IntakeState.REJECTED)
                self.log.info("contact_rejected", reason=e.errors[0]["msg"])
                await self._release_upload(screenshot)
                raise
            except BaseException:
                self._enter(IntakeState.FAILED)
                raise
        elif screenshot is not None:
            await self._release_upload(screenshot)

        self._enter(IntakeState.PERSISTING)
        record = ContactRecord(
            id=str(uuid.uuid4()),
            name=fields.name,
            email=fields.email,
            phone=fields.phone,
            message=fields.message,
            screenshot=stored.url if stored else None,
            ip=ip,
            created_at=created_at,
        )

        # The worker thread is shielded: a cancellation arriving mid-write is
        # delivered only after the write has returned.
        try:
            await run_in_threadpool(insert_contact, self.db, record)
        except Exception as e:
            self._enter(IntakeState.FAILED)
            if stored:
                self.attachments.discard(stored.path)
            if isinstance(e, StorageError):
                raise
            raise StorageError(f"Could not save contact {record.id}: {e!r}") from e
        except BaseException:
            self._enter(IntakeState.FAILED)
            self.log.warning(
                "contact_save_interrupted",
                contact_id=record.id,
                kept_attachment=stored.filename if stored else None,
            )
            raise

        self._enter(IntakeState.COMMITTED)
        self.log.info(
            "contact_saved",
            contact_id=record.id,
            email_domain=record.email.rsplit("@", 1)[-1],
            has_screenshot=stored is not None,
        )
        if screenshot is not None and stored is not None:
            await self._release_upload(screenshot)
        return record

    async def _release_upload(self, upload: Optional[UploadFile]) -> None:
        if upload is None:
            return
        try:
            await upload.close()
        except Exception as e:
            self.log.warning("upload_close_failed", error=str(e))
