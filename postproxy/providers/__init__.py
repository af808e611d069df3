"""Upstream API adapters."""

from .x import XProvider
from .xai import XAIProvider

__all__ = ["XAIProvider", "XProvider"]
