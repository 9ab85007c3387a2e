"""
Push delivery provider interface.
Allows swapping the real Expo client for a fake in tests or another vendor.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class PushMessage:
    to: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    sound: str = "default"

    def to_payload(self) -> dict[str, Any]:
        return {
            "to": self.to,
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "sound": self.sound,
        }


@dataclass
class PushTicket:
    """Per-message acceptance returned by the provider."""

    ok: bool
    error: Optional[str] = None


class PushProvider(ABC):
    """
    Interface for push delivery providers.

    Implementations:
    - ExpoPushProvider: Expo Push API over HTTPS
    """

    @abstractmethod
    async def send(self, messages: list[PushMessage]) -> list[PushTicket]:
        """
        Send a batch of messages in one provider call.

        Returns:
            One ticket per message, in order. An empty list means the
            provider accepted the call without per-message detail.

        Raises:
            ProviderUnavailable: the call itself failed (network, outage, 5xx)
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        pass
