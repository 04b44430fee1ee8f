"""Diff desired resources against state and layer the result into waves."""

from typing import Any, Dict, List, Mapping, Optional, Set
import networkx as nx
from ..graph.dependency_graph import DependencyGraph
from ..model.models import Resource, ResourceStatus, StateRecord
from ..utils.errors import CycleError
from ..utils.logging import get_logger
from .models import Action, Plan, PlannedChange, Wave
from .policy import ReplacePolicy

logger = get_logger("planner.planner")

# Actions that give a resource a new provider object, and therefore new outputs.
NEW_OBJECT_ACTIONS = (Action.CREATE, Action.REPLACE)


def diff_attributes(before: Mapping[str, Any], after: Mapping[str, Any]) -> List[str]:
    """Names of attributes whose canonical values differ (added or removed keys included)."""
    keys = set(before) | set(after)
    return sorted(k for k in keys if k not in before or k not in after or before[k] != after[k])


def classify(resource: Resource, record: Optional[StateRecord], policy: ReplacePolicy) -> PlannedChange:
    """
    Decide the action for one desired resource.
    
    Args:
        resource: Desired resource
        record: Persisted state for the resource (None if absent)
        policy: Replace policy table
        
    Returns:
        PlannedChange with action, before/after attributes and reason
    """
    after = resource.canonical_attributes()
    
    if record is None or record.status in (ResourceStatus.ABSENT, ResourceStatus.DESTROYED):
        return PlannedChange(
            resource_id=resource.id,
            type=resource.type,
            action=Action.CREATE,
            after=after,
            changed_attributes=sorted(after),
            reason="not present in state",
        )
    
    before = record.last_applied_attributes
    changed = diff_attributes(before, after)
    
    if record.is_tainted:
        logger.warning(f"Resource '{resource.id}' is tainted (status {record.status.value}), planning replacement")
        return PlannedChange(
            resource_id=resource.id,
            type=resource.type,
            action=Action.REPLACE,
            before=before,
            after=after,
            changed_attributes=changed,
            reason=f"previous apply left status {record.status.value}",
        )
    
    if record.type != resource.type:
        return PlannedChange(
            resource_id=resource.id,
            type=resource.type,
            action=Action.REPLACE,
            before=before,
            after=after,
            changed_attributes=changed,
            reason=f"type changed from {record.type} to {resource.type}",
        )
    
    if not changed and record.status == ResourceStatus.FAILED:
        return PlannedChange(
            resource_id=resource.id,
            type=resource.type,
            action=Action.UPDATE,
            before=before,
            after=after,
            changed_attributes=sorted(after),
            reason="retry after failed update",
        )

    if not changed:
        return PlannedChange(
            resource_id=resource.id,
            type=resource.type,
            action=Action.NO_OP,
            before=before,
            after=after,
            reason="no changes",
        )
    
    forcing = policy.immutable_changes(resource.type, changed)
    if forcing:
        return PlannedChange(
            resource_id=resource.id,
            type=resource.type,
            action=Action.REPLACE,
            before=before,
            after=after,
            changed_attributes=changed,
            reason=f"immutable attributes changed: {', '.join(forcing)}",
        )
    
    return PlannedChange(
        resource_id=resource.id,
        type=resource.type,
        action=Action.UPDATE,
        before=before,
        after=after,
        changed_attributes=changed,
        reason=f"attributes changed: {', '.join(changed)}",
    )


def _propagate_new_objects(
    graph: DependencyGraph,
    changes: Dict[str, PlannedChange],
    policy: ReplacePolicy,
) -> None:
    """Re-plan dependents whose referenced outputs change because a dependency gets a new object."""
    dependencies_first = list(reversed(list(nx.topological_sort(graph.graph))))
    for resource_id in dependencies_first:
        change = changes[resource_id]
        if change.action not in (Action.NO_OP, Action.UPDATE):
            continue
        
        affected: Set[str] = set()
        sources = []
        for dep_id in sorted(graph.dependencies_of(resource_id)):
            if changes[dep_id].action in NEW_OBJECT_ACTIONS:
                attrs = graph.referenced_attributes(resource_id, dep_id)
                if attrs:
                    affected |= attrs
                    sources.append(dep_id)
        if not affected:
            continue
        
        changed = sorted(set(change.changed_attributes) | affected)
        forcing = policy.immutable_changes(change.type, changed)
        change.changed_attributes = changed
        if forcing:
            change.action = Action.REPLACE
            change.reason = f"immutable attributes change with new {', '.join(sources)}: {', '.join(forcing)}"
        elif change.action == Action.NO_OP:
            change.action = Action.UPDATE
            change.reason = f"referenced outputs of {', '.join(sources)} change"
        logger.debug(f"Propagated new object from {sources} to '{resource_id}' ({change.action.value})")


def layer_waves(graph: DependencyGraph) -> Dict[str, int]:
    """
    Assign every resource to a wave.
    
    Waves are extracted Kahn-style: a resource joins the first wave after
    all of its dependencies. Resources with no dependencies but with
    dependents are then placed in the wave right before their earliest
    dependent.
    """
    layer: Dict[str, int] = {}
    dependencies_first = graph.graph.reverse(copy=False)
    for index, generation in enumerate(nx.topological_generations(dependencies_first)):
        for resource_id in generation:
            layer[resource_id] = index
    
    for resource_id in layer:
        if graph.dependencies_of(resource_id):
            continue
        dependents = graph.dependents_of(resource_id)
        if dependents:
            layer[resource_id] = min(layer[d] for d in dependents) - 1
    return layer


def _delete_layers(deleted: Dict[str, StateRecord]) -> Dict[str, int]:
    """Reverse dependency order for deletions: dependents go before their dependencies."""
    order = nx.DiGraph()
    order.add_nodes_from(deleted)
    for resource_id, record in deleted.items():
        for dep_id in record.dependencies:
            if dep_id in deleted:
                order.add_edge(resource_id, dep_id)
    try:
        generations = list(nx.topological_generations(order))
    except nx.NetworkXUnfeasible:
        cycle = nx.find_cycle(order)
        raise CycleError([edge[0] for edge in cycle] + [cycle[0][0]])
    layer = {}
    for index, generation in enumerate(generations):
        for resource_id in generation:
            layer[resource_id] = index
    return layer


def _recorded_dependents(resource_id: str, records: Mapping[str, StateRecord], changes: Dict[str, PlannedChange]) -> List[str]:
    """Ids whose last apply listed ``resource_id`` as a dependency and whose object may still use it."""
    dependents = []
    for other, record in records.items():
        if other == resource_id or resource_id not in record.dependencies:
            continue
        change = changes.get(other)
        # Unchanged attributes cannot reference a resource that is no longer declared.
        if change is not None and change.action == Action.NO_OP:
            continue
        dependents.append(other)
    return sorted(dependents)


def _early_deletes(
    deleted: Dict[str, StateRecord],
    changes: Dict[str, PlannedChange],
    dependents: Dict[str, List[str]],
) -> Set[str]:
    """
    Deletes that must run before the forward waves.
    
    A removed resource whose recorded dependencies lead, through other
    removed resources, to a Replace has to be gone before the old object
    it uses is destroyed. Candidates still used by a declared resource
    that changes stay in the trailing delete waves.
    """
    replaced = {rid for rid, change in changes.items() if change.action == Action.REPLACE}
    early: Set[str] = set()
    grown = True
    while grown:
        grown = False
        for resource_id, record in deleted.items():
            if resource_id not in early and any(d in replaced or d in early for d in record.dependencies):
                early.add(resource_id)
                grown = True
    
    pruned = True
    while pruned:
        pruned = False
        for resource_id in sorted(early):
            blocking = [d for d in dependents[resource_id] if d not in early]
            if blocking:
                logger.warning(
                    f"'{resource_id}' is still used by {', '.join(blocking)}; "
                    f"it will be deleted after its replaced dependencies"
                )
                early.discard(resource_id)
                pruned = True
    return early


def _delete_waves(deleted: Dict[str, StateRecord], offset: int) -> List[Wave]:
    if not deleted:
        return []
    delete_layer = _delete_layers(deleted)
    waves = []
    for index in range(max(delete_layer.values()) + 1):
        members = sorted(r for r, l in delete_layer.items() if l == index)
        waves.append(Wave(index=offset + index, changes=[
            PlannedChange(
                resource_id=r,
                type=deleted[r].type,
                action=Action.DELETE,
                before=deleted[r].last_applied_attributes,
                changed_attributes=sorted(deleted[r].last_applied_attributes),
                reason="no longer declared",
            )
            for r in members
        ]))
    return waves


def plan(graph: DependencyGraph, records: Mapping[str, StateRecord], policy: Optional[ReplacePolicy] = None) -> Plan:
    """
    Compute the plan that reconciles state with the desired graph.
    
    Removed resources are deleted after the forward waves, except those
    that depend on a resource being replaced: they are deleted first so the
    replacement never destroys an object still in use.
    
    Args:
        graph: Acyclic dependency graph of desired resources
        records: Persisted state records keyed by resource id
        policy: Replace policy table (default: nothing is immutable)
        
    Returns:
        Plan with forward waves between the early and trailing delete waves
    """
    policy = policy or ReplacePolicy()
    
    changes: Dict[str, PlannedChange] = {}
    for resource in graph.get_all_resources():
        changes[resource.id] = classify(resource, records.get(resource.id), policy)
    _propagate_new_objects(graph, changes, policy)
    
    prerequisites: Dict[str, List[str]] = {}
    for resource_id in changes:
        prerequisites[resource_id] = sorted(graph.dependencies_of(resource_id))
    
    deleted = {rid: rec for rid, rec in records.items() if rid not in graph}
    dependents = {rid: _recorded_dependents(rid, records, changes) for rid in deleted}
    for resource_id in deleted:
        # Everything that still uses this resource must finish first.
        prerequisites[resource_id] = dependents[resource_id]
    
    early = _early_deletes(deleted, changes, dependents)
    for resource_id in early:
        for dep_id in deleted[resource_id].dependencies:
            if dep_id in changes and changes[dep_id].action == Action.REPLACE:
                prerequisites[dep_id] = sorted(set(prerequisites[dep_id]) | {resource_id})
    
    waves = _delete_waves({rid: deleted[rid] for rid in early}, 0)
    if changes:
        offset = len(waves)
        layer = layer_waves(graph)
        for index in range(max(layer.values()) + 1):
            members = sorted(r for r, l in layer.items() if l == index)
            waves.append(Wave(index=offset + index, changes=[changes[r] for r in members]))
    waves.extend(_delete_waves({rid: rec for rid, rec in deleted.items() if rid not in early}, len(waves)))
    
    result = Plan(waves=waves, prerequisites=prerequisites)
    summary = ", ".join(f"{count} {action}" for action, count in result.action_counts().items() if count)
    logger.info(f"Plan: {summary or 'nothing declared'} in {len(waves)} waves")
    return result
