from fastapi import APIRouter

from tla_portal.api.endpoints import auth, profile
from tla_portal.api.endpoints.admin import admin_router

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(profile.router, prefix="/user", tags=["Profile"])
api_router.include_router(admin_router)
