"""One-shot migration of the legacy contacts.json file into the contacts table.

Usage:
    contact-import [--source data/contacts.json] [--database-url sqlite:///./db/contacts.db]

Safe to run repeatedly: rows whose id is already stored are skipped.
"""
from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

import structlog

from app.core.config import Settings
from app.core.errors import ImportParseError
from app.core.logging import setup_logging
from app.db.session import ServiceContext
from app.services.legacy_import import import_legacy_contacts, load_legacy_entries

logger = structlog.get_logger("app.scripts.import_legacy")


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import legacy contacts.json into the contacts database")
    parser.add_argument("--source", default=settings.LEGACY_JSON_PATH, help="legacy JSON array file")
    parser.add_argument("--database-url", default=settings.DATABASE_URL, help="SQLAlchemy database URL")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    return parser


def main(argv: Optional[Sequence[str]] = None, settings: Optional[Settings] = None) -> int:
    settings = settings or Settings()
    args = build_parser(settings).parse_args(argv)
    setup_logging(args.log_level)

    try:
        entries = load_legacy_entries(args.source)
    except ImportParseError as e:
        logger.error("legacy_import_unreadable", source=args.source, error=str(e))
        return 1

    if entries is None:
        logger.info("legacy_import_nothing_to_do", source=args.source)
        return 0

    settings.DATABASE_URL = args.database_url
    ctx = ServiceContext.from_settings(settings)
    try:
        ctx.init_storage(with_uploads=False)
        with ctx.session() as db:
            result = import_legacy_contacts(db, entries)
    finally:
        ctx.dispose()

    logger.info("legacy_import_migrated", inserted=result.inserted, database=args.database_url)
    return 0


if __name__ == "__main__":
    sys.exit(main())
