"""
Push provider factory.
Configures which push delivery provider the queue worker uses.
"""

from typing import Optional

from pickup.core.config import get_settings
from pickup.infrastructure.expo_client import ExpoPushProvider
from pickup.services.interfaces.push_provider import PushProvider


def get_push_provider_strategy() -> PushProvider:
    """
    Build the configured push provider.

    Selected by the PUSH_PROVIDER env var; only "expo" is available.
    """
    provider = get_settings().PUSH_PROVIDER

    if provider == "expo":
        return ExpoPushProvider()
    raise ValueError(f"Unknown push provider: {provider!r}")


# Singleton instance
_provider: Optional[PushProvider] = None


def get_push_provider() -> PushProvider:
    """Get push provider singleton."""
    global _provider
    if _provider is None:
        _provider = get_push_provider_strategy()
    return _provider


async def close_push_provider() -> None:
    global _provider
    if _provider is not None:
        await _provider.close()
        _provider = None
