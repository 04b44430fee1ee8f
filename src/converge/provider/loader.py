"""Resolve provider adapters from built-in names or ``module:attr`` specs."""

import importlib
from typing import Any, Dict, Optional
from ..utils.errors import ProviderLoadError
from ..utils.logging import get_logger
from .base import ProviderAdapter
from .simulated import SimulatedProvider

logger = get_logger("provider.loader")

BUILTIN_PROVIDERS = {
    "simulated": SimulatedProvider,
}


def load_provider(spec: str, options: Optional[Dict[str, Any]] = None) -> ProviderAdapter:
    """
    Instantiate a provider adapter.
    
    Args:
        spec: Built-in provider name (e.g. "simulated") or "package.module:Factory"
        options: Keyword arguments passed to the provider factory
        
    Returns:
        ProviderAdapter instance
        
    Raises:
        ProviderLoadError: If the provider cannot be imported or built
    """
    options = options or {}
    
    if spec in BUILTIN_PROVIDERS:
        factory = BUILTIN_PROVIDERS[spec]
    else:
        if ":" not in spec:
            raise ProviderLoadError(
                f"Unknown provider '{spec}'. "
                f"Use one of {', '.join(sorted(BUILTIN_PROVIDERS))} or 'package.module:Factory'"
            )
        module_name, attr = spec.split(":", 1)
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise ProviderLoadError(f"Cannot import provider module '{module_name}': {e}")
        factory = getattr(module, attr, None)
        if factory is None:
            raise ProviderLoadError(f"Provider module '{module_name}' has no attribute '{attr}'")
    
    try:
        provider = factory(**options)
    except TypeError as e:
        raise ProviderLoadError(f"Invalid options for provider '{spec}': {e}")
    
    if not isinstance(provider, ProviderAdapter):
        raise ProviderLoadError(f"Provider '{spec}' did not produce a ProviderAdapter")
    
    logger.info(f"Loaded provider {spec}")
    return provider
