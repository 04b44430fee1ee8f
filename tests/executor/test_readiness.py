"""Tests for asynchronous readiness polling."""

import asyncio
import pytest
from converge.executor import AsyncReadiness, wait_until_ready
from converge.provider import SimulatedProvider
from converge.utils.errors import ProviderError, ReadinessTimeoutError


class TestAsyncReadiness:
    """Test the polling budget."""
    
    def test_backoff_capped(self):
        readiness = AsyncReadiness(poll_interval=1, backoff=2, max_interval=3)
        
        assert readiness.next_interval(1) == 2
        assert readiness.next_interval(2) == 3
    
    def test_no_backoff_by_default(self):
        assert AsyncReadiness(poll_interval=5).next_interval(5) == 5
    
    def test_rejects_invalid_budget(self):
        with pytest.raises(ValueError):
            AsyncReadiness(poll_interval=0)


class TestWaitUntilReady:
    """Test the poll loop."""
    
    def test_returns_after_predicate_holds(self):
        provider = SimulatedProvider(ready_after={"certificate": 2})
        provider_id, _ = provider.create("certificate", {})
        readiness = AsyncReadiness(poll_interval=0.01, timeout=1)
        
        outputs, polls = asyncio.run(wait_until_ready(provider, "Cert", "certificate", provider_id, readiness))
        
        assert polls == 3
        assert outputs["status"] == "ready"
    
    def test_timeout(self):
        provider = SimulatedProvider(ready_after={"certificate": 1000})
        provider_id, _ = provider.create("certificate", {})
        readiness = AsyncReadiness(poll_interval=0.01, timeout=0.05)
        
        with pytest.raises(ReadinessTimeoutError) as exc_info:
            asyncio.run(wait_until_ready(provider, "Cert", "certificate", provider_id, readiness))
        assert exc_info.value.resource_id == "Cert"
        assert exc_info.value.polls >= 2
    
    def test_disappeared(self):
        provider = SimulatedProvider(ready_after={"certificate": 1000})
        readiness = AsyncReadiness(poll_interval=0.01, timeout=1)
        
        with pytest.raises(ProviderError, match="disappeared"):
            asyncio.run(wait_until_ready(provider, "Cert", "certificate", "certificate-0404", readiness))
    
    def test_read_exception_becomes_provider_error(self):
        class DroppedConnection(SimulatedProvider):
            def read(self, provider_id):
                raise ConnectionError("read timed out")
        
        provider = DroppedConnection(ready_after={"certificate": 2})
        provider_id, _ = provider.create("certificate", {})
        readiness = AsyncReadiness(poll_interval=0.01, timeout=1)
        
        with pytest.raises(ProviderError, match="ConnectionError") as exc_info:
            asyncio.run(wait_until_ready(provider, "Cert", "certificate", provider_id, readiness))
        assert isinstance(exc_info.value.__cause__, ConnectionError)
    
    def test_predicate_exception_becomes_provider_error(self):
        class BrokenPredicate(SimulatedProvider):
            def is_ready(self, resource_type, outputs):
                raise KeyError("status")
        
        provider = BrokenPredicate(ready_after={"certificate": 2})
        provider_id, _ = provider.create("certificate", {})
        readiness = AsyncReadiness(poll_interval=0.01, timeout=1)
        
        with pytest.raises(ProviderError, match="is_ready of 'Cert' raised KeyError"):
            asyncio.run(wait_until_ready(provider, "Cert", "certificate", provider_id, readiness))
    
    def test_cancellable_while_waiting(self):
        provider = SimulatedProvider(ready_after={"certificate": 1000})
        provider_id, _ = provider.create("certificate", {})
        readiness = AsyncReadiness(poll_interval=10, timeout=60)
        
        async def cancel_soon():
            task = asyncio.ensure_future(
                wait_until_ready(provider, "Cert", "certificate", provider_id, readiness)
            )
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
        
        asyncio.run(cancel_soon())
