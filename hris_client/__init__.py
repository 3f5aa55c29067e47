"""Client for the HRIS backend: HTTP calls plus live refetch on change."""
from .api_client import APIClient, APIError, AuthError, ConflictError, NotFoundError, get_api_client
from .live import ChangeListener, ConnectionState, LiveCollection, ReconnectExhausted

__all__ = [
    "APIClient",
    "APIError",
    "AuthError",
    "ChangeListener",
    "ConflictError",
    "ConnectionState",
    "LiveCollection",
    "NotFoundError",
    "ReconnectExhausted",
    "get_api_client",
]
