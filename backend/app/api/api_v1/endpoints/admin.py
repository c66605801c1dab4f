from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api import deps
from app.crud.contact import list_contacts
from app.schemas.contact import ContactList, ContactRecord

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/contacts", response_model=ContactList, dependencies=[Depends(deps.require_admin_token)])
def admin_list_contacts(db: Session = Depends(deps.get_db)) -> ContactList:
    contacts = [ContactRecord.model_validate(row) for row in list_contacts(db)]
    return ContactList(count=len(contacts), contacts=contacts)
