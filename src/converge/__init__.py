"""converge - Declarative infrastructure reconciliation engine."""

import threading
from pathlib import Path
from typing import List, Optional, Union
from .config import EngineConfig, load_engine_config
from .contracts.apply_report import ApplyReport
from .executor import Executor
from .graph.dependency_graph import DependencyGraph, build_graph
from .model.loader import load_declarations
from .model.models import Resource
from .planner import Plan, plan
from .provider.base import ProviderAdapter
from .state import FileStateStore, StateStore, refresh_state
from .utils.errors import ConflictError, ConvergeError, CycleError, ValidationError
from .utils.logging import setup_logging, get_logger

__version__ = "0.1.0"

__all__ = [
    "plan_resources",
    "apply_resources",
    "destroy_resources",
    "build_executor",
    "open_state",
]

setup_logging()
logger = get_logger("converge")

ResourceSource = Union[str, Path, List[Resource]]


def _load_graph(source: ResourceSource) -> DependencyGraph:
    """Load declarations (from a file path or an in-memory list) and build the graph."""
    if isinstance(source, (str, Path)):
        resources = load_declarations(str(source))
    else:
        resources = list(source)
    return build_graph(resources)


def open_state(config: EngineConfig, path: Optional[str] = None) -> FileStateStore:
    """File state store configured from engine settings."""
    return FileStateStore(path or config.state.path, lock_timeout=config.engine.lock_timeout)


def build_executor(config: EngineConfig, abort_event: Optional[threading.Event] = None) -> Executor:
    """Executor configured from engine settings."""
    return Executor(
        max_concurrency=config.engine.max_concurrency,
        readiness=config.readiness,
        provider_retries=config.engine.provider_retries,
        retry_backoff=config.engine.retry_backoff,
        abort_event=abort_event,
    )


def plan_resources(
    source: ResourceSource,
    state: StateStore,
    config: Optional[EngineConfig] = None,
    provider: Optional[ProviderAdapter] = None,
    refresh: bool = False,
) -> Plan:
    """
    Compute the plan that reconciles state with the declared resources.
    
    Args:
        source: Declaration file path or list of resources
        state: State store to diff against
        config: Engine configuration (defaults if None)
        provider: Provider adapter, required when refresh is True
        refresh: Refresh state from the provider before planning
        
    Returns:
        Plan
        
    Raises:
        ValidationError: If the declarations are malformed
        CycleError: If the dependencies contain a cycle
    """
    config = config or EngineConfig()
    graph = _load_graph(source)
    if refresh:
        if provider is None:
            raise ConvergeError("refresh requires a provider")
        refresh_state(state, provider)
    return plan(graph, state.load(), config.replace_policy_table())


def apply_resources(
    source: ResourceSource,
    state: StateStore,
    provider: ProviderAdapter,
    config: Optional[EngineConfig] = None,
    abort_event: Optional[threading.Event] = None,
    refresh: bool = False,
) -> ApplyReport:
    """
    Plan and apply declared resources under the apply lock.
    
    Structural errors (invalid declarations, dependency cycles, a held lock)
    produce a report with outcome Fatal and leave state untouched.
    
    Args:
        source: Declaration file path or list of resources
        state: State store
        provider: Provider adapter
        config: Engine configuration (defaults if None)
        abort_event: Set to stop scheduling new operations
        refresh: Refresh state from the provider before planning
        
    Returns:
        ApplyReport
    """
    config = config or EngineConfig()
    try:
        logger.info("Starting apply")
        graph = _load_graph(source)
        with state.lock("apply"):
            if refresh:
                refresh_state(state, provider, acquire_lock=False)
            execution_plan = plan(graph, state.load(), config.replace_policy_table())
            executor = build_executor(config, abort_event)
            return executor.apply(execution_plan, provider, state, acquire_lock=False)
    except (ValidationError, CycleError, ConflictError) as e:
        logger.error(f"Apply aborted before execution: {e}")
        return ApplyReport.fatal(e)


def destroy_resources(
    state: StateStore,
    provider: ProviderAdapter,
    config: Optional[EngineConfig] = None,
    abort_event: Optional[threading.Event] = None,
) -> ApplyReport:
    """Delete every resource recorded in state, dependents first."""
    return apply_resources([], state, provider, config=config, abort_event=abort_event)
