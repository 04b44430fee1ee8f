"""Build directed dependency graph from declared resources."""

import networkx as nx
from typing import List, Dict, Set, Optional
from ..model.models import Resource
from ..model.references import iter_references
from ..utils.errors import CycleError, ValidationError
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")

EXPLICIT = "explicit"
REFERENCE = "reference"


class DependencyGraph:
    """Directed dependency graph: nodes=resources, edges point from dependent to dependency."""
    
    def __init__(self):
        self.graph = nx.DiGraph()
        self._resource_map: Dict[str, Resource] = {}
    
    def add_resource(self, resource: Resource) -> None:
        """Add a resource node (edges are added by build_from_resources)."""
        if resource.id in self._resource_map:
            raise ValidationError(f"Duplicate resource id: {resource.id}")
        self.graph.add_node(resource.id, resource=resource)
        self._resource_map[resource.id] = resource
    
    def _add_edge(self, dependent: str, dependency: str, kind: str, attribute: Optional[str] = None) -> None:
        if dependency not in self._resource_map:
            if kind == EXPLICIT:
                raise ValidationError(f"Resource '{dependent}' depends on unknown resource '{dependency}'")
            raise ValidationError(
                f"Resource '{dependent}' references unknown resource '{dependency}' (attribute {attribute})"
            )
        if dependent == dependency:
            raise CycleError([dependent, dependent])
        
        if self.graph.has_edge(dependent, dependency):
            data = self.graph.edges[dependent, dependency]
            data["kinds"].add(kind)
        else:
            self.graph.add_edge(dependent, dependency, kinds={kind}, references=set())
            logger.debug(f"Added dependency edge: {dependent} -> {dependency} ({kind})")
        if attribute:
            self.graph.edges[dependent, dependency]["references"].add(attribute)
    
    def build_from_resources(self, resources: List[Resource]) -> None:
        """
        Build the complete dependency graph and verify it is acyclic.
        
        Explicit edges come from ``depends_on``; implicit edges from every
        Reference found in a resource's attributes.
        
        Raises:
            ValidationError: On duplicate ids or dependencies on unknown resources
            CycleError: If the dependencies contain a cycle
        """
        for resource in resources:
            self.add_resource(resource)
        
        for resource in resources:
            for dep_id in resource.depends_on:
                self._add_edge(resource.id, dep_id, EXPLICIT)
            for name, value in resource.attributes.items():
                for ref in iter_references(value):
                    self._add_edge(resource.id, ref.target, REFERENCE, attribute=name)
        
        cycle = self.find_cycle()
        if cycle:
            raise CycleError(cycle)
        
        logger.info(f"Built dependency graph with {self.graph.number_of_nodes()} nodes and {self.graph.number_of_edges()} edges")
    
    def find_cycle(self) -> Optional[List[str]]:
        """
        Depth-first search with a recursion stack.
        
        Returns:
            The ids around the first cycle found (first id repeated at the end), or None
        """
        visited: Set[str] = set()
        on_stack: Set[str] = set()
        stack: List[str] = []
        
        def visit(node: str) -> Optional[List[str]]:
            visited.add(node)
            on_stack.add(node)
            stack.append(node)
            for dep in sorted(self.graph.successors(node)):
                if dep in on_stack:
                    return stack[stack.index(dep):] + [dep]
                if dep not in visited:
                    found = visit(dep)
                    if found:
                        return found
            on_stack.discard(node)
            stack.pop()
            return None
        
        for node in sorted(self.graph.nodes):
            if node not in visited:
                found = visit(node)
                if found:
                    return found
        return None
    
    def dependencies_of(self, resource_id: str) -> Set[str]:
        """Direct dependencies of a resource."""
        if resource_id not in self.graph:
            return set()
        return set(self.graph.successors(resource_id))
    
    def dependents_of(self, resource_id: str) -> Set[str]:
        """Resources that directly depend on the given resource."""
        if resource_id not in self.graph:
            return set()
        return set(self.graph.predecessors(resource_id))
    
    def transitive_dependents(self, resource_id: str) -> Set[str]:
        """All resources that depend on the given resource, directly or not (downstream)."""
        if resource_id not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, resource_id))
    
    def transitive_dependencies(self, resource_id: str) -> Set[str]:
        """All resources the given resource depends on, directly or not (upstream)."""
        if resource_id not in self.graph:
            return set()
        return set(nx.descendants(self.graph, resource_id))
    
    def referenced_attributes(self, dependent: str, dependency: str) -> Set[str]:
        """Attributes of ``dependent`` that reference ``dependency``."""
        if not self.graph.has_edge(dependent, dependency):
            return set()
        return set(self.graph.edges[dependent, dependency]["references"])
    
    def get_resource(self, resource_id: str) -> Optional[Resource]:
        """Get declared resource by id."""
        return self._resource_map.get(resource_id)
    
    def get_all_resources(self) -> List[Resource]:
        """Get all resources in the graph, ordered by id."""
        return [self._resource_map[k] for k in sorted(self._resource_map)]
    
    def __contains__(self, resource_id: str) -> bool:
        return resource_id in self._resource_map
    
    def __len__(self) -> int:
        return len(self._resource_map)
    
    def to_dot(self) -> str:
        """Render the graph in Graphviz DOT format."""
        lines = ["digraph converge {", "  rankdir=LR;"]
        for resource in self.get_all_resources():
            lines.append(f'  "{resource.id}" [label="{resource.id}\\n{resource.type}"];')
        for dependent, dependency in sorted(self.graph.edges):
            kinds = self.graph.edges[dependent, dependency]["kinds"]
            style = "solid" if REFERENCE in kinds else "dashed"
            lines.append(f'  "{dependent}" -> "{dependency}" [style={style}];')
        lines.append("}")
        return "\n".join(lines)


def build_graph(resources: List[Resource]) -> DependencyGraph:
    """
    Build and validate a dependency graph.
    
    Args:
        resources: Declared resources
        
    Returns:
        Acyclic DependencyGraph
        
    Raises:
        ValidationError: On duplicate ids or unknown dependencies
        CycleError: If the dependencies contain a cycle
    """
    graph = DependencyGraph()
    graph.build_from_resources(resources)
    return graph
