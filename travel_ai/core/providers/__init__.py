"""Language-model providers and the fallback manager.

Each provider implements the BaseProvider interface.
"""

from travel_ai.core.providers.base import BaseProvider
from travel_ai.core.providers.litellm_provider import ProviderKind, create_provider
from travel_ai.core.providers.manager import ProviderManager

__all__ = ["BaseProvider", "ProviderKind", "ProviderManager", "create_provider"]
