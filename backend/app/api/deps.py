from __future__ import annotations

from typing import Iterator, Optional

from fastapi import Depends, Header, Query, Request
from sqlalchemy.orm import Session

from app.core.errors import AuthorizationError
from app.core.security import verify_admin_token
from app.db.session import ServiceContext
from app.services.attachments import AttachmentHandler


def get_context(request: Request) -> ServiceContext:
    return request.app.state.context


def get_db(ctx: ServiceContext = Depends(get_context)) -> Iterator[Session]:
    yield from ctx.iter_session()


def get_attachment_handler(ctx: ServiceContext = Depends(get_context)) -> AttachmentHandler:
    return AttachmentHandler(ctx.settings)


def get_client_ip(request: Request, ctx: ServiceContext = Depends(get_context)) -> Optional[str]:
    if ctx.settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def require_admin_token(
    token: Optional[str] = Query(None),
    x_admin_token: Optional[str] = Header(None),
    ctx: ServiceContext = Depends(get_context),
) -> None:
    supplied = token or x_admin_token
    if not verify_admin_token(supplied, ctx.settings.ADMIN_TOKEN):
        raise AuthorizationError()
