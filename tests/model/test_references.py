"""Tests for reference parsing and substitution."""

import pytest
from converge.model.models import Reference
from converge.model.references import (
    iter_references,
    parse_reference,
    resolve_declared,
    substitute,
    to_canonical,
)


class TestParseReference:
    """Test the accepted reference forms."""
    
    def test_placeholder_string(self):
        ref = parse_reference("${Balancer.arn}")
        assert ref == Reference(target="Balancer", attribute="arn")
    
    def test_ref_mapping(self):
        assert parse_reference({"ref": "Cert.arn"}) == Reference(target="Cert", attribute="arn")
    
    def test_canonical_mapping(self):
        assert parse_reference({"$ref": "Net.id"}) == Reference(target="Net", attribute="id")
    
    def test_dotted_attribute_kept_whole(self):
        ref = parse_reference("${Net.outputs.vpc_id}")
        assert ref.target == "Net"
        assert ref.attribute == "outputs.vpc_id"
    
    def test_plain_values_are_not_references(self):
        assert parse_reference("10.0.0.0/16") is None
        assert parse_reference(443) is None
        assert parse_reference({"name": "web"}) is None
    
    def test_embedded_placeholder_rejected(self):
        with pytest.raises(ValueError, match="whole value"):
            parse_reference("arn:${Cert.arn}:suffix")
    
    def test_malformed_ref_mapping(self):
        with pytest.raises(ValueError, match="<resource_id>.<attribute>"):
            parse_reference({"ref": "Cert"})


class TestReferenceHelpers:
    """Test scanning and substitution across nested values."""
    
    def test_resolve_declared_nested(self):
        value = resolve_declared({"rules": [{"target": "${Listener.arn}"}], "port": 80})
        refs = list(iter_references(value))
        assert refs == [Reference(target="Listener", attribute="arn")]
    
    def test_to_canonical(self):
        value = {"lb": Reference(target="Balancer", attribute="arn"), "ports": [80, 443]}
        assert to_canonical(value) == {"lb": {"$ref": "Balancer.arn"}, "ports": [80, 443]}
    
    def test_canonical_round_trip_through_resolve(self):
        value = {"lb": Reference(target="Balancer", attribute="arn")}
        assert resolve_declared(to_canonical(value)) == value
    
    def test_substitute(self):
        value = {"cluster": Reference(target="Cluster", attribute="id"), "count": 2}
        resolved = substitute(value, lambda ref: f"{ref.target}-0001")
        assert resolved == {"cluster": "Cluster-0001", "count": 2}
    
    def test_reference_str(self):
        assert str(Reference(target="Net", attribute="id")) == "${Net.id}"
