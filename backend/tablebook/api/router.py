"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from tablebook.api.routes import auth, reservations

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(reservations.router)
