"""Expose constructed client wrappers."""

from .device_registry import DeviceRegistry
from .platform import PlatformClient
from .token_store import TokenStore

__all__ = [
    "DeviceRegistry",
    "PlatformClient",
    "TokenStore",
]
