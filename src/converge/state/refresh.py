"""Refresh persisted state from the provider to detect out-of-band drift."""

from typing import Dict
from ..model.models import ResourceStatus
from ..provider.base import ProviderAdapter
from ..utils.errors import ConvergeError, ProviderError
from ..utils.logging import get_logger
from .store import StateStore

logger = get_logger("state.refresh")

REMOVED = "removed"
UPDATED = "updated"
UNCHANGED = "unchanged"


def refresh_state(state: StateStore, provider: ProviderAdapter, acquire_lock: bool = True) -> Dict[str, str]:
    """
    Read every recorded resource from the provider.
    
    Records whose provider object no longer exists are dropped so the next
    plan recreates them; records whose outputs changed get the fresh outputs.
    
    Args:
        state: State store to refresh
        provider: Provider adapter used for reads
        acquire_lock: Take the apply lock while refreshing
        
    Returns:
        Mapping of resource id to "removed", "updated" or "unchanged"
        
    Raises:
        ConflictError: If the apply lock is held by another run
        ProviderError: If a read fails
    """
    if acquire_lock:
        with state.lock("refresh"):
            return _refresh(state, provider)
    return _refresh(state, provider)


def _refresh(state: StateStore, provider: ProviderAdapter) -> Dict[str, str]:
    changes = {}
    for resource_id, record in sorted(state.load().items()):
        if not record.provider_id:
            changes[resource_id] = UNCHANGED
            continue
        try:
            outputs, exists = provider.read(record.provider_id)
        except ConvergeError:
            raise
        except Exception as e:
            raise ProviderError(f"read of '{resource_id}' raised {type(e).__name__}: {e}") from e
        
        if not exists:
            logger.warning(f"Resource '{resource_id}' ({record.provider_id}) no longer exists, dropping it from state")
            state.remove(resource_id)
            changes[resource_id] = REMOVED
        elif outputs != record.outputs and record.status == ResourceStatus.READY:
            record.outputs = outputs
            state.save(record)
            changes[resource_id] = UPDATED
        else:
            changes[resource_id] = UNCHANGED
    
    logger.info(
        f"Refreshed {len(changes)} resources: "
        f"{sum(1 for c in changes.values() if c == REMOVED)} removed, "
        f"{sum(1 for c in changes.values() if c == UPDATED)} updated"
    )
    return changes
