"""Scoped hybrid retrieval over multi-tenant workspace notes."""
from .errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    StashError,
    UpstreamError,
    ValidationError,
)
from .service import MemoryService, resolve_actor

__version__ = "0.1.0"

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "MemoryService",
    "NotFoundError",
    "StashError",
    "UpstreamError",
    "ValidationError",
    "resolve_actor",
]
