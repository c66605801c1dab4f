from __future__ import annotations

from fastapi import APIRouter

from app.api.api_v1.endpoints import contact, health

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(contact.router)
