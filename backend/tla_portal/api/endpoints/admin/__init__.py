"""
Admin API endpoints for the TLA Portal.
All endpoints require an administrator session.
"""
from fastapi import APIRouter

from tla_portal.api.endpoints.admin import users

admin_router = APIRouter(prefix="/admin", tags=["Admin Users"])

admin_router.include_router(users.router)
