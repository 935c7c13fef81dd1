from tla_portal.modules.auth.dependencies import (
    get_current_account,
    get_current_admin_claims,
    get_current_claims,
)

__all__ = [
    "get_current_account",
    "get_current_admin_claims",
    "get_current_claims",
]
