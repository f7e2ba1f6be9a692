"""
Error taxonomy for the House of Charity API.

Services raise these; ``main.py`` translates them into ``{"error": ...}``
responses using ``status_code``. Anything else that escapes a handler is
reported as a generic 500.

Usage:
    from house_of_charity.core.exceptions import NotFoundError

    if not donation:
        raise NotFoundError("Donation not found")
"""

from typing import Any, Dict, Optional


class CharityError(Exception):
    """Base exception for all domain errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


# ============================================
# 400-type
# ============================================

class ValidationError(CharityError):
    """Missing or invalid input"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConflictError(CharityError):
    """Duplicate resource (reported as 400 by this API)"""

    status_code = 400

    def __init__(self, message: str = "User with this email already exists"):
        super().__init__(message, code="CONFLICT")


class InvalidCredentialsError(CharityError):
    """Unknown email or wrong password; deliberately indistinguishable"""

    status_code = 400

    def __init__(self):
        super().__init__("Invalid email or password", code="INVALID_CREDENTIALS")


# ============================================
# Authentication & Authorization
# ============================================

class AuthenticationError(CharityError):
    """No usable credentials supplied"""

    status_code = 401

    def __init__(self, message: str = "No token provided"):
        super().__init__(message, code="AUTH_REQUIRED")


class InvalidTokenError(AuthenticationError):
    """Token is malformed, tampered with, or expired"""

    status_code = 403

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)
        self.code = "INVALID_TOKEN"


class AuthorizationError(CharityError):
    """Authenticated, but not allowed to touch this resource"""

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# 404 / 500
# ============================================

class NotFoundError(CharityError):
    status_code = 404

    def __init__(self, message: str):
        super().__init__(message, code="NOT_FOUND")


class BackendError(CharityError):
    """Persistence backend failed (query error, connectivity, bad response)"""

    status_code = 500

    def __init__(self, message: str, backend: Optional[str] = None):
        super().__init__(message, code="BACKEND_ERROR")
        if backend:
            self.details["backend"] = backend
