"""Tests for plan execution against the simulated provider."""

import random
import threading
import pytest
from converge import apply_resources
from converge.contracts import ApplyOutcome, ResourceOutcome
from converge.executor import AsyncReadiness, Executor
from converge.graph import build_graph
from converge.model.models import ResourceStatus, StateRecord
from converge.planner import Action, ReplacePolicy, plan
from converge.provider import SimulatedProvider
from converge.state import MemoryStateStore
from converge.utils.errors import ConflictError


def run(resources, provider, state, executor):
    return executor.apply(plan(build_graph(resources), state.load()), provider, state)


def call_index(provider, call):
    return provider.calls.index(call)


class TestScenario:
    """Test the container service graph end to end."""
    
    def test_fresh_apply_succeeds(self, scenario_resources, fast_readiness):
        provider = SimulatedProvider(ready_after={"certificate": 2})
        state = MemoryStateStore()
        
        report = run(scenario_resources, provider, state, Executor(readiness=fast_readiness))
        
        assert report.outcome == ApplyOutcome.SUCCESS.value
        assert [r.final_status for r in report.resources] == ["Ready"] * 6
        records = state.load()
        assert set(records) == {"Net", "Cluster", "Balancer", "Cert", "Listener", "Service"}
        assert all(r.status == ResourceStatus.READY for r in records.values())
    
    def test_listener_waits_for_certificate(self, scenario_resources, fast_readiness):
        provider = SimulatedProvider(ready_after={"certificate": 2})
        state = MemoryStateStore()
        
        run(scenario_resources, provider, state, Executor(readiness=fast_readiness))
        
        cert_id = state.get("Cert").provider_id
        cert_reads = [i for i, call in enumerate(provider.calls) if call == ("read", cert_id)]
        assert len(cert_reads) == 3
        assert call_index(provider, ("create", "listener")) > cert_reads[-1]
        assert state.get("Cert").outputs["status"] == "ready"
    
    def test_references_resolved_from_dependency_outputs(self, scenario_resources, fast_readiness):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        
        run(scenario_resources, provider, state, Executor(readiness=fast_readiness))
        
        listener = provider.objects[state.get("Listener").provider_id]["attributes"]
        assert listener["load_balancer_arn"] == state.get("Balancer").outputs["arn"]
        assert listener["certificate_arn"] == state.get("Cert").outputs["arn"]
        # State keeps the unresolved form so plans stay stable.
        assert state.get("Listener").last_applied_attributes["certificate_arn"] == {"$ref": "Cert.arn"}
    
    def test_failed_listener_skips_service(self, scenario_resources, fast_readiness):
        provider = SimulatedProvider(failures={"listener": ["create"]})
        state = MemoryStateStore()
        
        report = run(scenario_resources, provider, state, Executor(readiness=fast_readiness))
        
        assert report.outcome == ApplyOutcome.PARTIAL_FAILURE.value
        assert report.get("Listener").final_status == "Failed"
        assert "simulated create failure" in report.get("Listener").error
        assert report.get("Service").final_status == "Skipped"
        assert report.skipped == ["Service"]
        assert ("create", "service") not in provider.calls
        # Independent resources are unaffected.
        assert report.get("Cluster").final_status == "Ready"
        assert "Service" not in state.load()
    
    def test_second_apply_is_noop(self, scenario_resources, fast_readiness):
        provider = SimulatedProvider(ready_after={"certificate": 2})
        state = MemoryStateStore()
        executor = Executor(readiness=fast_readiness)
        run(scenario_resources, provider, state, executor)
        calls_before = len(provider.calls)
        saves_before = state.save_count
        
        report = run(scenario_resources, provider, state, executor)
        
        assert report.outcome == ApplyOutcome.SUCCESS.value
        assert len(provider.calls) == calls_before
        assert state.save_count == saves_before
    
    def test_resume_after_crash(self, scenario_resources, fast_readiness):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        executor = Executor(readiness=fast_readiness)
        partial = [r for r in scenario_resources if r.id in ("Net", "Cluster", "Balancer")]
        run(partial, provider, state, executor)
        created = len(provider.mutating_calls())
        
        report = run(scenario_resources, provider, state, executor)
        
        assert report.outcome == ApplyOutcome.SUCCESS.value
        new_calls = provider.mutating_calls()[created:]
        assert sorted(new_calls) == [("create", "certificate"), ("create", "listener"), ("create", "service")]


class TestStatePersistence:
    """Test incremental state saves."""
    
    def test_state_saved_after_each_operation(self, scenario_resources):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        
        run(scenario_resources, provider, state, Executor())
        
        assert state.save_count == 6
    
    def test_readiness_wait_recorded_as_creating(self, scenario_resources, fast_readiness):
        seen = []
        
        class WatchingProvider(SimulatedProvider):
            def read(self, provider_id):
                record = state.get("Cert")
                if record is not None:
                    seen.append(record.status)
                return super().read(provider_id)
        
        provider = WatchingProvider(ready_after={"certificate": 1})
        state = MemoryStateStore()
        run(scenario_resources, provider, state, Executor(readiness=fast_readiness))
        
        assert seen and all(status == ResourceStatus.CREATING for status in seen)
        assert state.get("Cert").status == ResourceStatus.READY
    
    def test_update_changes_only_delta(self, scenario_resources):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        run(scenario_resources, provider, state, Executor())
        service = next(r for r in scenario_resources if r.id == "Service")
        service.attributes["desired_count"] = 3
        
        report = run(scenario_resources, provider, state, Executor())
        
        assert report.get("Service").action == "Update"
        assert provider.mutating_calls()[-1] == ("update", state.get("Service").provider_id)
        assert provider.objects[state.get("Service").provider_id]["attributes"]["desired_count"] == 3
        assert state.get("Service").last_applied_attributes["desired_count"] == 3
    
    def test_failed_update_marks_record_failed(self, scenario_resources):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        run(scenario_resources, provider, state, Executor())
        provider.failures["service"] = {"update"}
        service = next(r for r in scenario_resources if r.id == "Service")
        service.attributes["desired_count"] = 3
        
        report = run(scenario_resources, provider, state, Executor())
        
        assert report.get("Service").final_status == "Failed"
        record = state.get("Service")
        assert record.status == ResourceStatus.FAILED
        assert not record.tainted
        assert record.last_applied_attributes["desired_count"] == 2
    
    def test_replace_destroys_then_creates(self, scenario_resources):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        run(scenario_resources, provider, state, Executor())
        old_id = state.get("Cert").provider_id
        records = state.load()
        records["Cert"].tainted = True
        state.save(records["Cert"])
        
        report = run(scenario_resources, provider, state, Executor())
        
        assert report.get("Cert").action == "Replace"
        assert old_id not in provider.objects
        assert state.get("Cert").provider_id != old_id
        assert not state.get("Cert").tainted
        # Listener references the replaced certificate's arn.
        assert report.get("Listener").action == "Update"
        listener = provider.objects[state.get("Listener").provider_id]["attributes"]
        assert listener["certificate_arn"] == state.get("Cert").outputs["arn"]
    
    def test_removed_dependents_destroyed_before_replaced_dependency(self, scenario_resources, make_resource):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        run(scenario_resources, provider, state, Executor())
        old_ids = {rid: state.get(rid).provider_id for rid in ("Cert", "Listener", "Service")}
        new_cert = make_resource("Cert", "certificate", {"domain_name": "www.example.com", "validation_method": "DNS"})
        remaining = [new_cert if r.id == "Cert" else r for r in scenario_resources if r.id not in ("Listener", "Service")]
        
        next_plan = plan(build_graph(remaining), state.load(), ReplacePolicy({"certificate": ["domain_name"]}))
        report = Executor().apply(next_plan, provider, state)
        
        assert report.outcome == ApplyOutcome.SUCCESS.value
        deletes = [subject for op, subject in provider.mutating_calls() if op == "delete"]
        assert deletes == [old_ids["Service"], old_ids["Listener"], old_ids["Cert"]]
        assert set(state.load()) == {"Net", "Cluster", "Balancer", "Cert"}
    
    def test_failed_removal_holds_back_replacement(self, scenario_resources, make_resource):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        run(scenario_resources, provider, state, Executor())
        old_cert = state.get("Cert").provider_id
        provider.failures["listener"] = {"delete"}
        new_cert = make_resource("Cert", "certificate", {"domain_name": "www.example.com", "validation_method": "DNS"})
        remaining = [new_cert if r.id == "Cert" else r for r in scenario_resources if r.id not in ("Listener", "Service")]
        
        next_plan = plan(build_graph(remaining), state.load(), ReplacePolicy({"certificate": ["domain_name"]}))
        report = Executor().apply(next_plan, provider, state)
        
        assert report.get("Listener").final_status == "Failed"
        assert report.get("Cert").final_status == "Skipped"
        assert old_cert in provider.objects
        assert report.get("Cluster").final_status == "Ready"
    
    def test_unchanged_resource_records_current_dependencies(self, scenario_resources):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        run(scenario_resources, provider, state, Executor())
        record = state.get("Service")
        record.dependencies = ["Cluster", "Gone", "Listener"]
        state.save(record)
        
        report = run(scenario_resources, provider, state, Executor())
        
        assert report.get("Service").action == "NoOp"
        assert state.get("Service").dependencies == ["Cluster", "Listener"]
    
    def test_delete_removes_record(self, scenario_resources):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        run(scenario_resources, provider, state, Executor())
        remaining = [r for r in scenario_resources if r.id != "Service"]
        service_id = state.get("Service").provider_id
        
        report = run(remaining, provider, state, Executor())
        
        assert report.get("Service").final_status == "Destroyed"
        assert "Service" not in state.load()
        assert service_id not in provider.objects
    
    def test_failed_delete_taints_record(self, scenario_resources):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        run(scenario_resources, provider, state, Executor())
        provider.failures["service"] = {"delete"}
        
        report = run([r for r in scenario_resources if r.id != "Service"], provider, state, Executor())
        
        assert report.get("Service").final_status == "Failed"
        assert state.get("Service").tainted
    
    def test_interrupted_delete_not_repeated(self, scenario_resources):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        run(scenario_resources, provider, state, Executor())
        record = state.get("Service")
        provider.delete(record.provider_id)
        record.status = ResourceStatus.DESTROYING
        state.save(record)
        deletes_before = provider.mutating_calls().count(("delete", record.provider_id))
        
        report = run([r for r in scenario_resources if r.id != "Service"], provider, state, Executor())
        
        assert report.get("Service").final_status == "Destroyed"
        assert provider.mutating_calls().count(("delete", record.provider_id)) == deletes_before
        assert "Service" not in state.load()


class TestFailures:
    """Test retries, timeouts and unresolved references."""
    
    def test_retryable_error_retried(self, scenario_resources):
        provider = SimulatedProvider(transient_failures={"network": 2})
        state = MemoryStateStore()
        
        report = run(scenario_resources, provider, state, Executor(provider_retries=2, retry_backoff=0))
        
        assert report.outcome == ApplyOutcome.SUCCESS.value
        assert report.get("Net").attempts == 3
    
    def test_retries_exhausted(self, scenario_resources):
        provider = SimulatedProvider(transient_failures={"network": 2})
        state = MemoryStateStore()
        
        report = run(scenario_resources, provider, state, Executor(provider_retries=1, retry_backoff=0))
        
        assert report.get("Net").final_status == "Failed"
        assert report.get("Net").attempts == 2
        assert sorted(report.skipped) == ["Balancer", "Cluster", "Listener", "Service"]
        assert report.get("Cert").final_status == "Ready"
    
    def test_non_retryable_error_not_retried(self, scenario_resources):
        provider = SimulatedProvider(failures={"network": ["create"]})
        state = MemoryStateStore()
        
        report = run(scenario_resources, provider, state, Executor(provider_retries=3, retry_backoff=0))
        
        assert report.get("Net").attempts == 1
    
    def test_readiness_timeout(self, scenario_resources):
        provider = SimulatedProvider(ready_after={"certificate": 10000})
        state = MemoryStateStore()
        readiness = {"certificate": AsyncReadiness(poll_interval=0.01, timeout=0.05)}
        
        report = run(scenario_resources, provider, state, Executor(readiness=readiness))
        
        assert report.get("Cert").final_status == "Failed"
        assert "did not become ready" in report.get("Cert").error
        assert report.get("Listener").final_status == "Skipped"
        assert report.get("Service").final_status == "Skipped"
        record = state.get("Cert")
        assert record.status == ResourceStatus.FAILED
        assert record.tainted
        
        next_plan = plan(build_graph(scenario_resources), state.load())
        assert next_plan.get_change("Cert").action == Action.REPLACE
    
    def test_unexpected_exception_becomes_provider_error(self, scenario_resources):
        class BrokenProvider(SimulatedProvider):
            def create(self, resource_type, attributes):
                if resource_type == "service":
                    raise RuntimeError("connection reset")
                return super().create(resource_type, attributes)
        
        report = run(scenario_resources, BrokenProvider(), MemoryStateStore(), Executor())
        
        assert report.get("Service").final_status == "Failed"
        assert "RuntimeError: connection reset" in report.get("Service").error
    
    def test_readiness_read_exception_contained(self, scenario_resources, fast_readiness):
        class DroppedConnection(SimulatedProvider):
            def read(self, provider_id):
                if provider_id.startswith("certificate"):
                    raise ConnectionError("read timed out")
                return super().read(provider_id)
        
        state = MemoryStateStore()
        report = run(scenario_resources, DroppedConnection(), state, Executor(readiness=fast_readiness))
        
        assert report.outcome == ApplyOutcome.PARTIAL_FAILURE.value
        assert report.failed == ["Cert"]
        assert "ConnectionError" in report.get("Cert").error
        assert "read timed out" in report.get("Cert").error
        assert sorted(report.skipped) == ["Listener", "Service"]
        assert report.get("Cluster").final_status == "Ready"
        record = state.get("Cert")
        assert record.status == ResourceStatus.FAILED
        assert record.tainted
    
    def test_readiness_predicate_exception_contained(self, scenario_resources, fast_readiness):
        class BrokenPredicate(SimulatedProvider):
            def is_ready(self, resource_type, outputs):
                if resource_type == "certificate":
                    raise ValueError("unexpected status payload")
                return super().is_ready(resource_type, outputs)
        
        report = run(scenario_resources, BrokenPredicate(), MemoryStateStore(), Executor(readiness=fast_readiness))
        
        assert report.failed == ["Cert"]
        assert sorted(report.skipped) == ["Listener", "Service"]
        assert report.get("Balancer").final_status == "Ready"
    
    def test_missing_output_fails_dependent(self, make_resource):
        resources = [
            make_resource("Net", "network"),
            make_resource("Cluster", "cluster", {"network_id": "${Net.vpc_id}"}),
        ]
        report = run(resources, SimulatedProvider(), MemoryStateStore(), Executor())
        
        assert report.get("Net").final_status == "Ready"
        assert report.get("Cluster").final_status == "Failed"
        assert "Net.vpc_id" in report.get("Cluster").error
    
    def test_dotted_output_path(self, make_resource):
        resources = [
            make_resource("Net", "network", {"tags": {"team": "web"}}),
            make_resource("Cluster", "cluster", {"team": "${Net.tags.team}"}),
        ]
        provider = SimulatedProvider()
        state = MemoryStateStore()
        
        run(resources, provider, state, Executor())
        
        assert provider.objects[state.get("Cluster").provider_id]["attributes"]["team"] == "web"


class TestConcurrency:
    """Test concurrency bounds and cancellation."""
    
    @pytest.mark.parametrize("limit", [1, 2])
    def test_max_concurrency(self, make_resource, limit):
        resources = [make_resource(f"R{i}", "thing") for i in range(5)]
        provider = SimulatedProvider(latency=0.02)
        
        report = run(resources, provider, MemoryStateStore(), Executor(max_concurrency=limit))
        
        assert report.outcome == ApplyOutcome.SUCCESS.value
        assert provider.max_in_flight <= limit
    
    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            Executor(max_concurrency=0)
    
    def test_abort_before_start(self, scenario_resources):
        provider = SimulatedProvider()
        executor = Executor()
        executor.abort()
        
        report = run(scenario_resources, provider, MemoryStateStore(), executor)
        
        assert report.outcome == ApplyOutcome.PARTIAL.value
        assert len(report.cancelled) == 6
        assert provider.calls == []
    
    def test_abort_mid_run(self, scenario_resources):
        abort = threading.Event()
        
        class AbortingProvider(SimulatedProvider):
            def create(self, resource_type, attributes):
                result = super().create(resource_type, attributes)
                if resource_type == "network":
                    abort.set()
                return result
        
        state = MemoryStateStore()
        report = run(scenario_resources, AbortingProvider(), state, Executor(abort_event=abort))
        
        assert report.outcome == ApplyOutcome.PARTIAL.value
        assert report.get("Net").final_status == "Ready"
        assert report.get("Service").final_status == "Cancelled"
        assert set(state.load()) == {"Net"}
    
    def test_lock_held_raises_conflict(self, scenario_resources):
        state = MemoryStateStore()
        state.acquire_lock("other run")
        
        with pytest.raises(ConflictError):
            run(scenario_resources, SimulatedProvider(), state, Executor())


class TestApplyResources:
    """Test the top-level apply entry point."""
    
    def test_cycle_is_fatal_without_provider_calls(self, make_resource):
        provider = SimulatedProvider()
        resources = [
            make_resource("A", "thing", {"peer": "${B.id}"}),
            make_resource("B", "thing", {"peer": "${A.id}"}),
        ]
        
        report = apply_resources(resources, MemoryStateStore(), provider)
        
        assert report.outcome == ApplyOutcome.FATAL.value
        assert "cycle" in report.error
        assert provider.calls == []
    
    def test_lock_conflict_is_fatal(self, scenario_resources):
        state = MemoryStateStore()
        state.acquire_lock("other run")
        provider = SimulatedProvider()
        
        report = apply_resources(scenario_resources, state, provider)
        
        assert report.outcome == ApplyOutcome.FATAL.value
        assert "locked" in report.error
        assert provider.calls == []
        assert state.locked
    
    def test_lock_released_after_apply(self, scenario_resources):
        state = MemoryStateStore()
        
        apply_resources(scenario_resources, state, SimulatedProvider())
        
        assert not state.locked
    
    def test_refresh_recreates_deleted_resource(self, scenario_resources):
        provider = SimulatedProvider()
        state = MemoryStateStore()
        apply_resources(scenario_resources, state, provider)
        provider.delete(state.get("Service").provider_id)
        
        report = apply_resources(scenario_resources, state, provider, refresh=True)
        
        assert report.get("Service").action == "Create"
        assert report.outcome == ApplyOutcome.SUCCESS.value


class TestFailureContainment:
    """Test that a failure only reaches the resources that depend on it."""
    
    @pytest.mark.parametrize("seed", range(10))
    def test_failure_skips_exactly_its_dependents(self, random_dag, seed):
        resources = random_dag(seed)
        graph = build_graph(resources)
        failed = random.Random(seed).choice(sorted(r.id for r in resources))
        provider = SimulatedProvider(failures={graph.get_resource(failed).type: ["create"]})
        
        report = run(resources, provider, MemoryStateStore(), Executor())
        
        downstream = graph.transitive_dependents(failed)
        assert report.failed == [failed]
        assert set(report.skipped) == downstream
        for result in report.resources:
            if result.resource_id not in downstream | {failed}:
                assert result.final_status == "Ready"
        created = {subject for op, subject in provider.mutating_calls() if op == "create"}
        assert not created & {graph.get_resource(r).type for r in downstream}
