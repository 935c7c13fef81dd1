"""
Custom Exceptions for the TLA Portal
====================================

Every error carries a machine readable ``code`` and the HTTP status the API
layer answers with. A single exception handler in ``tla_portal.main`` renders
them, so endpoints and services just raise.

Usage:
    from tla_portal.core.exceptions import AccountNotFoundError, AlreadyApprovedError

    if account is None:
        raise AccountNotFoundError(account_id)
"""

from typing import Optional, Any, Dict


class PortalError(Exception):
    """Base exception for all portal errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(PortalError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class InvalidCredentialsError(AuthenticationError):
    """Password does not match the stored hash"""

    def __init__(self):
        super().__init__("Incorrect email or password")
        self.code = "INVALID_CREDENTIALS"


class InvalidOrExpiredTokenError(AuthenticationError):
    """Token is missing, malformed, badly signed, of the wrong type or expired"""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)
        self.code = "INVALID_OR_EXPIRED_TOKEN"


class PendingApprovalError(PortalError):
    """Account exists but an administrator has not approved it yet"""

    status_code = 403

    def __init__(self, email: str = ""):
        super().__init__(
            "Your account is pending approval. Please contact the administrator.",
            code="PENDING_APPROVAL",
            details={"status": "pending_approval", "email": email}
        )


class AuthorizationError(PortalError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(PortalError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class AccountNotFoundError(ResourceNotFoundError):
    """No account with this id or email"""

    def __init__(self, account_ref: Any):
        super().__init__("Account", account_ref)


class ArchiveNotFoundError(ResourceNotFoundError):
    """No archived snapshot for this account id"""

    def __init__(self, account_id: int):
        super().__init__("Archive", account_id)


# ============================================
# Validation / State Errors (400-type)
# ============================================

class ValidationError(PortalError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class DuplicateAccountError(ValidationError):
    """Email or NIDA number already registered"""

    def __init__(self, field: str):
        labels = {"email": "Email", "nida": "This NIDA number"}
        super().__init__(f"{labels.get(field, field)} is already registered", field=field)
        self.code = "DUPLICATE_ACCOUNT"


class AlreadyApprovedError(PortalError):
    """Approval requested for an account that is already approved"""

    status_code = 400

    def __init__(self, account_id: int, membership_number: Optional[str] = None):
        super().__init__(
            f"Account {account_id} is already approved",
            code="ALREADY_APPROVED",
            details={"account_id": account_id, "membership_number": membership_number}
        )


class RestoreConflictError(PortalError):
    """Archived account collides with an existing account"""

    status_code = 409

    def __init__(self, account_id: int):
        super().__init__(
            f"Account {account_id} cannot be restored: its id, email or NIDA is in use",
            code="RESTORE_CONFLICT",
            details={"account_id": account_id}
        )


# ============================================
# Membership Sequence Errors
# ============================================

class SequenceGenerationError(PortalError):
    """Membership number unit of work aborted and was rolled back"""

    status_code = 503

    def __init__(self, message: str = "Failed to generate membership number",
                 attempts: Optional[int] = None):
        super().__init__(message, code="SEQUENCE_GENERATION_FAILED")
        if attempts is not None:
            self.details["attempts"] = attempts


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: PortalError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
