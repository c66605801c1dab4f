from __future__ import annotations

from app.schemas.contact import ContactCreate, ContactCreated, ContactList, ContactRecord
from app.schemas.legacy import RawImportEntry

__all__ = [
    "ContactCreate",
    "ContactCreated",
    "ContactList",
    "ContactRecord",
    "RawImportEntry",
]
