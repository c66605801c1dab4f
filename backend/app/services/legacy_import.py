from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.errors import ImportParseError, StorageError
from app.crud.contact import insert_contact
from app.schemas.legacy import RawImportEntry
from app.services.intake import utc_timestamp

logger = structlog.get_logger(__name__)


@dataclass
class ImportResult:
    total: int = 0
    inserted: int = 0
    skipped: int = 0
    failed: int = 0


def load_legacy_entries(path: str) -> Optional[list[RawImportEntry]]:
    """Read the legacy JSON array.

    Returns None when the file does not exist. Raises ImportParseError when
    it exists but is not a JSON array of objects; in that case nothing has
    been written anywhere.
    """
    if not os.path.exists(path):
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw: Any = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ImportParseError(f"Failed to parse {path}: {e}") from e

    if not isinstance(raw, list):
        raise ImportParseError(f"Failed to parse {path}: expected a JSON array, got {type(raw).__name__}")

    entries: list[RawImportEntry] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ImportParseError(f"Failed to parse {path}: entry {idx} is not an object")
        try:
            entries.append(RawImportEntry.model_validate(item))
        except ValidationError as e:
            raise ImportParseError(f"Failed to parse {path}: entry {idx}: {e}") from e
    return entries


def import_legacy_contacts(db: Session, entries: list[RawImportEntry]) -> ImportResult:
    """Upsert legacy entries; existing ids are left untouched.

    A failing entry is logged and counted, and the batch carries on.
    """
    result = ImportResult(total=len(entries))
    now = utc_timestamp()

    for entry in entries:
        record = entry.to_record(now=now)
        try:
            if insert_contact(db, record, ignore_duplicates=True):
                result.inserted += 1
            else:
                result.skipped += 1
                logger.debug("legacy_contact_skipped", contact_id=record.id)
        except StorageError as e:
            result.failed += 1
            logger.error("legacy_contact_failed", contact_id=record.id, error=str(e))

    logger.info(
        "legacy_import_finished",
        total=result.total,
        inserted=result.inserted,
        skipped=result.skipped,
        failed=result.failed,
    )
    return result
