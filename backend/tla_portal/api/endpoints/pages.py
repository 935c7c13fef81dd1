"""
Page landings.

HTML is rendered by the frontend; these return what a page needs. The session
gate middleware has already verified the cookie for /dashboard and /admin.
"""
from fastapi import APIRouter, Request
from typing import Optional

router = APIRouter()


def _claims_payload(request: Request) -> dict:
    claims = request.state.claims
    return {"id": claims.account_id, "email": claims.email, "is_admin": claims.is_admin}


@router.get("/")
async def root():
    return {"page": "home"}


@router.get("/dashboard")
async def dashboard(request: Request):
    return {"page": "dashboard", "user": _claims_payload(request)}


@router.get("/admin")
async def admin_dashboard(request: Request):
    return {"page": "admin", "user": _claims_payload(request)}


@router.get("/auth/login")
async def login_page(redirect: Optional[str] = None):
    return {"page": "login", "redirect": redirect}


@router.get("/auth/pending-approval")
async def pending_approval_page():
    return {
        "page": "pending-approval",
        "message": "Your account is pending approval. Please contact the administrator.",
    }
