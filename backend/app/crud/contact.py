from __future__ import annotations

from sqlalchemy import func, insert, literal_column, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import DuplicateContactError, StorageError
from app.models.contact import Contact
from app.schemas.contact import ContactRecord


def insert_contact(db: Session, record: ContactRecord, *, ignore_duplicates: bool = False) -> bool:
    """Persist ``record`` and commit.

    Returns True when a row was written. With ``ignore_duplicates`` an
    existing id is skipped and False is returned; without it a duplicate id
    raises DuplicateContactError.
    """
    values = record.model_dump()
    if ignore_duplicates:
        stmt = sqlite_insert(Contact).values(**values).on_conflict_do_nothing(index_elements=["id"])
    else:
        stmt = insert(Contact).values(**values)

    try:
        result = db.execute(stmt)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateContactError(record.id) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(f"Could not insert contact {record.id}: {e}") from e

    return result.rowcount == 1


def list_contacts(db: Session) -> list[Contact]:
    # rowid breaks created_at ties so later inserts come first.
    stmt = select(Contact).order_by(Contact.created_at.desc(), literal_column("contacts.rowid").desc())
    try:
        return list(db.execute(stmt).scalars().all())
    except SQLAlchemyError as e:
        raise StorageError(f"Could not list contacts: {e}") from e


def count_contacts(db: Session) -> int:
    try:
        return int(db.execute(select(func.count()).select_from(Contact)).scalar_one())
    except SQLAlchemyError as e:
        raise StorageError(f"Could not count contacts: {e}") from e
