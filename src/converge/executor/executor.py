"""Apply a plan wave by wave against a provider, persisting state incrementally."""

import asyncio
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set
from ..contracts.apply_report import ApplyOutcome, ApplyReport, ResourceOutcome, ResourceResult
from ..model.models import Reference, ResourceStatus, StateRecord
from ..model.references import resolve_declared, substitute
from ..planner.models import Action, Plan, PlannedChange
from ..provider.base import ProviderAdapter
from ..state.store import StateStore
from ..utils.errors import (
    ConvergeError,
    ProviderError,
    ReadinessTimeoutError,
    UnresolvedReferenceError,
)
from ..utils.logging import get_logger
from .readiness import AsyncReadiness, wait_until_ready

logger = get_logger("executor.executor")

# Errors scoped to a single resource; anything else ends the run.
RESOURCE_ERRORS = (ProviderError, ReadinessTimeoutError, UnresolvedReferenceError)


def _lookup_output(outputs: Dict[str, Any], attribute: str) -> Any:
    """Find an output by exact key, falling back to a dotted path into nested mappings."""
    if attribute in outputs:
        return outputs[attribute]
    value: Any = outputs
    for part in attribute.split("."):
        if not isinstance(value, dict) or part not in value:
            raise KeyError(attribute)
        value = value[part]
    return value


class _Run:
    """Mutable bookkeeping for a single apply run."""

    def __init__(self, plan: Plan, provider: ProviderAdapter, state: StateStore):
        self.plan = plan
        self.provider = provider
        self.state = state
        self.records: Dict[str, StateRecord] = state.load()
        self.results: Dict[str, ResourceResult] = {}
        self.succeeded: Set[str] = set()


class Executor:
    """
    Executes plans.
    
    Waves run sequentially; the operations inside a wave run concurrently,
    at most ``max_concurrency`` at a time. Blocking provider calls run in
    worker threads. A failed resource is recorded and every resource that
    (transitively) depends on it is skipped; unrelated resources continue.
    
    Args:
        max_concurrency: Upper bound on concurrent operations within a wave
        readiness: resource type -> AsyncReadiness for types that become ready asynchronously
        provider_retries: Extra attempts for provider errors flagged retryable
        retry_backoff: Base delay in seconds between retries (doubles per attempt)
        abort_event: When set, no new operation is started
    """
    
    def __init__(
        self,
        max_concurrency: int = 4,
        readiness: Optional[Dict[str, AsyncReadiness]] = None,
        provider_retries: int = 0,
        retry_backoff: float = 1.0,
        abort_event: Optional[threading.Event] = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self.readiness = dict(readiness or {})
        self.provider_retries = provider_retries
        self.retry_backoff = retry_backoff
        self.abort_event = abort_event or threading.Event()
    
    def abort(self) -> None:
        """Stop scheduling new operations; in-flight ones finish."""
        self.abort_event.set()
    
    @property
    def aborted(self) -> bool:
        return self.abort_event.is_set()
    
    def apply(self, plan: Plan, provider: ProviderAdapter, state: StateStore, acquire_lock: bool = True) -> ApplyReport:
        """
        Apply a plan.
        
        Args:
            plan: Plan to execute
            provider: Provider adapter
            state: State store (written after every completed operation)
            acquire_lock: Take the apply lock for the run; pass False when the caller already holds it
            
        Returns:
            ApplyReport with per-resource results and overall outcome
            
        Raises:
            ConflictError: If the apply lock is held by another run
        """
        return asyncio.run(self.apply_async(plan, provider, state, acquire_lock=acquire_lock))
    
    async def apply_async(
        self, plan: Plan, provider: ProviderAdapter, state: StateStore, acquire_lock: bool = True
    ) -> ApplyReport:
        """Coroutine form of :meth:`apply`."""
        if acquire_lock:
            with state.lock("apply"):
                return await self._execute(plan, provider, state)
        return await self._execute(plan, provider, state)
    
    async def _execute(self, plan: Plan, provider: ProviderAdapter, state: StateStore) -> ApplyReport:
        run = _Run(plan, provider, state)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        
        for wave in plan.waves:
            if self.aborted:
                break
            
            runnable: List[PlannedChange] = []
            for change in wave.changes:
                blockers = [
                    p for p in plan.prerequisites.get(change.resource_id, [])
                    if p not in run.succeeded
                ]
                if blockers:
                    run.results[change.resource_id] = ResourceResult(
                        resource_id=change.resource_id,
                        action=change.action,
                        final_status=ResourceOutcome.SKIPPED,
                        error=f"skipped: {', '.join(blockers)} did not complete",
                    )
                    logger.warning(f"Skipping '{change.resource_id}': {', '.join(blockers)} did not complete")
                else:
                    runnable.append(change)
            
            if runnable:
                logger.info(f"Wave {wave.index}: {', '.join(c.resource_id for c in runnable)}")
            
            async def guarded(change: PlannedChange) -> ResourceResult:
                async with semaphore:
                    if self.aborted:
                        return ResourceResult(
                            resource_id=change.resource_id,
                            action=change.action,
                            final_status=ResourceOutcome.CANCELLED,
                            error="apply aborted before this operation started",
                        )
                    return await self._run_change(run, change)
            
            for result in await asyncio.gather(*(guarded(c) for c in runnable)):
                run.results[result.resource_id] = result
                if result.final_status in (ResourceOutcome.READY, ResourceOutcome.DESTROYED):
                    run.succeeded.add(result.resource_id)
        
        return self._report(run)
    
    def _report(self, run: _Run) -> ApplyReport:
        results = []
        for change in run.plan.changes:
            result = run.results.get(change.resource_id)
            if result is None:
                result = ResourceResult(
                    resource_id=change.resource_id,
                    action=change.action,
                    final_status=ResourceOutcome.CANCELLED,
                    error="apply aborted before this operation started",
                )
            results.append(result)
        
        statuses = [r.final_status for r in results]
        if ResourceOutcome.CANCELLED in statuses:
            outcome = ApplyOutcome.PARTIAL
        elif ResourceOutcome.FAILED in statuses or ResourceOutcome.SKIPPED in statuses:
            outcome = ApplyOutcome.PARTIAL_FAILURE
        else:
            outcome = ApplyOutcome.SUCCESS
        
        report = ApplyReport(outcome=outcome, resources=results)
        logger.info(
            f"Apply finished: {outcome.value} "
            f"({len(report.failed)} failed, {len(report.skipped)} skipped, {len(report.cancelled)} cancelled)"
        )
        return report
    
    async def _run_change(self, run: _Run, change: PlannedChange) -> ResourceResult:
        started = time.monotonic()
        attempts = [0]
        try:
            if change.action == Action.NO_OP:
                self._sync_dependencies(run, change)
                status = ResourceOutcome.READY
            elif change.action == Action.DELETE:
                await self._delete(run, change, attempts)
                status = ResourceOutcome.DESTROYED
            elif change.action == Action.CREATE:
                await self._create(run, change, attempts)
                status = ResourceOutcome.READY
            elif change.action == Action.UPDATE:
                await self._update(run, change, attempts)
                status = ResourceOutcome.READY
            else:
                await self._replace(run, change, attempts)
                status = ResourceOutcome.READY
        except RESOURCE_ERRORS as e:
            logger.error(f"{change.action.value} of '{change.resource_id}' failed: {e}")
            return ResourceResult(
                resource_id=change.resource_id,
                action=change.action,
                final_status=ResourceOutcome.FAILED,
                error=str(e),
                attempts=attempts[0],
                duration_seconds=time.monotonic() - started,
            )
        
        if change.action != Action.NO_OP:
            logger.info(f"{change.action.value} of '{change.resource_id}' complete")
        return ResourceResult(
            resource_id=change.resource_id,
            action=change.action,
            final_status=status,
            attempts=attempts[0],
            duration_seconds=time.monotonic() - started,
        )
    
    async def _call(self, resource_id: str, attempts: List[int], fn: Callable, *args) -> Any:
        """Run a provider call in a worker thread, retrying retryable ProviderErrors."""
        tries = 0
        while True:
            tries += 1
            attempts[0] += 1
            try:
                return await asyncio.to_thread(fn, *args)
            except ProviderError as e:
                if e.retryable and tries <= self.provider_retries:
                    delay = self.retry_backoff * (2 ** (tries - 1))
                    logger.warning(f"{fn.__name__} of '{resource_id}' failed ({e}), retrying in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                raise
            except ConvergeError:
                raise
            except Exception as e:
                raise ProviderError(f"{fn.__name__} of '{resource_id}' raised {type(e).__name__}: {e}") from e
    
    def _resolve(self, run: _Run, change: PlannedChange) -> Dict[str, Any]:
        """Replace references in the desired attributes with dependency outputs."""
        def lookup(ref: Reference) -> Any:
            record = run.records.get(ref.target)
            if record is None or record.status != ResourceStatus.READY:
                raise UnresolvedReferenceError(change.resource_id, ref.target, ref.attribute, "the resource is not ready")
            try:
                return _lookup_output(record.outputs, ref.attribute)
            except KeyError:
                raise UnresolvedReferenceError(
                    change.resource_id, ref.target, ref.attribute, "the provider returned no such output"
                )
        
        return substitute(resolve_declared(change.after or {}), lookup)
    
    def _save(self, run: _Run, record: StateRecord) -> None:
        record.updated_at = datetime.now(timezone.utc)
        run.state.save(record)
        run.records[record.id] = record
    
    def _sync_dependencies(self, run: _Run, change: PlannedChange) -> None:
        """Record the current dependency ids of an unchanged resource if they moved."""
        record = run.records.get(change.resource_id)
        dependencies = run.plan.prerequisites.get(change.resource_id, [])
        if record is None or record.dependencies == dependencies:
            return
        record = record.model_copy(deep=True)
        record.dependencies = list(dependencies)
        self._save(run, record)
    
    def _remove(self, run: _Run, resource_id: str) -> None:
        run.state.remove(resource_id)
        run.records.pop(resource_id, None)
    
    async def _await_readiness(self, run: _Run, record: StateRecord) -> None:
        readiness = self.readiness.get(record.type)
        if readiness is None:
            return
        record.status = ResourceStatus.CREATING
        self._save(run, record)
        try:
            outputs, _ = await wait_until_ready(run.provider, record.id, record.type, record.provider_id, readiness)
        except RESOURCE_ERRORS as e:
            record.status = ResourceStatus.FAILED
            record.tainted = True
            record.error = str(e)
            self._save(run, record)
            raise
        record.outputs = outputs
    
    async def _create(self, run: _Run, change: PlannedChange, attempts: List[int]) -> None:
        attributes = self._resolve(run, change)
        provider_id, outputs = await self._call(
            change.resource_id, attempts, run.provider.create, change.type, attributes
        )
        record = StateRecord(
            id=change.resource_id,
            type=change.type,
            provider_id=provider_id,
            last_applied_attributes=change.after or {},
            outputs=dict(outputs or {}),
            dependencies=run.plan.prerequisites.get(change.resource_id, []),
            status=ResourceStatus.READY,
        )
        record.outputs.setdefault("id", provider_id)
        await self._await_readiness(run, record)
        record.status = ResourceStatus.READY
        record.error = None
        self._save(run, record)
    
    async def _update(self, run: _Run, change: PlannedChange, attempts: List[int]) -> None:
        record = run.records[change.resource_id].model_copy(deep=True)
        attributes = self._resolve(run, change)
        delta = {name: attributes.get(name) for name in change.changed_attributes}
        try:
            outputs = await self._call(change.resource_id, attempts, run.provider.update, record.provider_id, delta)
        except RESOURCE_ERRORS as e:
            record.status = ResourceStatus.FAILED
            record.error = str(e)
            self._save(run, record)
            raise
        record.outputs = dict(outputs or {})
        record.outputs.setdefault("id", record.provider_id)
        await self._await_readiness(run, record)
        record.last_applied_attributes = change.after or {}
        record.dependencies = run.plan.prerequisites.get(change.resource_id, [])
        record.status = ResourceStatus.READY
        record.error = None
        self._save(run, record)
    
    async def _destroy(self, run: _Run, record: StateRecord, attempts: List[int]) -> None:
        """Delete the provider object behind a record, then drop the record."""
        if record.provider_id:
            exists = True
            if record.status == ResourceStatus.DESTROYING:
                # A previous run may have been interrupted after the provider deleted it.
                _, exists = await self._call(record.id, attempts, run.provider.read, record.provider_id)
            if exists:
                record.status = ResourceStatus.DESTROYING
                self._save(run, record)
                try:
                    await self._call(record.id, attempts, run.provider.delete, record.provider_id)
                except RESOURCE_ERRORS as e:
                    record.status = ResourceStatus.FAILED
                    record.tainted = True
                    record.error = str(e)
                    self._save(run, record)
                    raise
        self._remove(run, record.id)
    
    async def _delete(self, run: _Run, change: PlannedChange, attempts: List[int]) -> None:
        record = run.records.get(change.resource_id)
        if record is None:
            return
        await self._destroy(run, record.model_copy(deep=True), attempts)
    
    async def _replace(self, run: _Run, change: PlannedChange, attempts: List[int]) -> None:
        # Resolve first so a missing input fails before the old object is destroyed.
        self._resolve(run, change)
        record = run.records.get(change.resource_id)
        if record is not None:
            await self._destroy(run, record.model_copy(deep=True), attempts)
        await self._create(run, change, attempts)
