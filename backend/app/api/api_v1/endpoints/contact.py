from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.contact import ContactCreated
from app.services.attachments import AttachmentHandler
from app.services.intake import IntakePipeline

router = APIRouter(prefix="/contact", tags=["contact"])


# Fields default to empty so missing ones are reported by the validator
# alongside the others instead of by FastAPI's own form parsing.
@router.post("", response_model=ContactCreated, status_code=status.HTTP_201_CREATED)
async def submit_contact(
    name: str = Form(""),
    email: str = Form(""),
    message: str = Form(""),
    phone: Optional[str] = Form(None),
    screenshot: Optional[UploadFile] = File(None),
    db: Session = Depends(deps.get_db),
    attachments: AttachmentHandler = Depends(deps.get_attachment_handler),
    client_ip: Optional[str] = Depends(deps.get_client_ip),
) -> ContactCreated:
    pipeline = IntakePipeline(db, attachments)
    record = await pipeline.submit(
        name=name,
        email=email,
        message=message,
        phone=phone,
        screenshot=screenshot,
        ip=client_ip,
    )
    return ContactCreated(id=record.id)
