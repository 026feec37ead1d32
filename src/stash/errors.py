"""
Error types raised by the stash core.

Each carries a ``status`` (HTTP-style) and a short ``code`` so a caller exposing the
core over a network boundary can map them without inspecting messages.
"""
from typing import Any, Dict


class StashError(Exception):
    status: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "status": self.status}


class ValidationError(StashError):
    """A required argument is missing or malformed. Never retried."""
    status = 400
    code = "validation_error"


class AuthenticationError(StashError):
    """The actor could not be identified (no workspace or user id)."""
    status = 401
    code = "unauthenticated"


class AuthorizationError(StashError):
    status = 403
    code = "forbidden"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFoundError(StashError):
    status = 404
    code = "not_found"


class UpstreamError(StashError):
    """An external collaborator (embedding provider, remote API) failed."""
    status = 502
    code = "upstream_error"


# Read paths use one message for both "missing" and "not yours" so callers cannot
# probe for the existence of notes they cannot see.
ITEM_NOT_FOUND_MESSAGE = "Item not found"
