"""Shared fixtures: the container service graph used across test modules."""

import networkx as nx
import pytest
from converge.executor import AsyncReadiness
from converge.model import Resource
from converge.model.references import resolve_declared


def _make_resource(resource_id, resource_type, attributes=None, depends_on=None):
    return Resource(
        id=resource_id,
        type=resource_type,
        attributes=resolve_declared(attributes or {}),
        depends_on=depends_on or [],
    )


@pytest.fixture
def make_resource():
    """Factory for resources declared with placeholder references."""
    return _make_resource


@pytest.fixture
def scenario_resources():
    """Net, Cluster, Balancer, Cert, Listener, Service with references between them."""
    return [
        _make_resource("Net", "network", {"cidr_block": "10.0.0.0/16"}),
        _make_resource("Cluster", "cluster", {"name": "web", "network_id": "${Net.id}"}),
        _make_resource("Balancer", "load_balancer", {"name": "web-lb", "subnet": "${Net.id}"}),
        _make_resource("Cert", "certificate", {"domain_name": "example.com", "validation_method": "DNS"}),
        _make_resource("Listener", "listener", {
            "port": 443,
            "load_balancer_arn": "${Balancer.arn}",
            "certificate_arn": {"ref": "Cert.arn"},
        }),
        _make_resource("Service", "service", {
            "name": "web",
            "cluster": "${Cluster.id}",
            "desired_count": 2,
        }, depends_on=["Listener"]),
    ]


def _random_dag(seed, size=12, density=0.25):
    """Resources R0..R{size-1} wired along a seeded random DAG; each has its own type."""
    generated = nx.gnp_random_graph(size, density, seed=seed, directed=True)
    resources = []
    for node in range(size):
        lower = sorted(u for u in generated.predecessors(node) if u < node)
        attributes = {"name": f"r{node}"}
        for u in lower:
            if u % 2 == 0:
                attributes[f"input_{u}"] = f"${{R{u}.id}}"
        resources.append(_make_resource(
            f"R{node}", f"kind_{node}", attributes,
            depends_on=[f"R{u}" for u in lower if u % 2 == 1],
        ))
    return resources


@pytest.fixture
def random_dag():
    """Factory for seeded random acyclic resource sets mixing references and explicit dependencies."""
    return _random_dag


@pytest.fixture
def fast_readiness():
    """Certificate readiness polled every 10ms for up to 2s."""
    return {"certificate": AsyncReadiness(poll_interval=0.01, timeout=2.0)}
