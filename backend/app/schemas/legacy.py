from __future__ import annotations

import json
import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.contact import ContactRecord

# Fixed namespace so an id-less legacy row maps to the same id on every run.
LEGACY_ID_NAMESPACE = uuid.UUID("6f1c2d5e-8a43-4b7e-9c1d-3e5f7a9b0c24")


class RawImportEntry(BaseModel):
    """One loosely-typed row of the legacy contacts.json file.

    Every field is optional; unknown keys are dropped. Older rows carry the
    timestamp as ``createdAt``, newer ones as ``created_at``.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    screenshot: Optional[str] = None
    ip: Optional[str] = None
    createdAt: Optional[str] = None
    created_at_: Optional[str] = Field(default=None, alias="created_at")

    @field_validator("*", mode="before")
    @classmethod
    def _scalar_to_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, (int, float)):
            return str(value)
        # Nested objects or arrays have no meaning in a contact row.
        return None

    def derived_id(self) -> str:
        """Name-based UUID over the row's own fields.

        Re-importing the same file yields the same ids, so rows without an id
        are skipped on later runs like every other row. Two byte-identical
        id-less rows collapse into one record.
        """
        fields = self.model_dump(by_alias=True, exclude={"id"})
        return str(uuid.uuid5(LEGACY_ID_NAMESPACE, json.dumps(fields, sort_keys=True)))

    def to_record(self, *, now: str) -> ContactRecord:
        return ContactRecord(
            id=self.id or self.derived_id(),
            name=self.name or "",
            email=self.email or "",
            phone=self.phone or None,
            message=self.message or "",
            screenshot=self.screenshot or None,
            ip=self.ip or None,
            created_at=self.createdAt or self.created_at_ or now,
        )
