"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .push_provider import PushMessage, PushProvider, PushTicket

__all__ = ['PushMessage', 'PushProvider', 'PushTicket']
