"""Provider adapters: the collaborator interface that touches real back-ends."""

from .base import ProviderAdapter
from .simulated import SimulatedProvider
from .loader import load_provider, BUILTIN_PROVIDERS

__all__ = ["ProviderAdapter", "SimulatedProvider", "load_provider", "BUILTIN_PROVIDERS"]
