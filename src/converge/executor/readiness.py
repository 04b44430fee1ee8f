"""Asynchronous readiness: poll-with-timeout for resources that finish provisioning later."""

import asyncio
from typing import Any, Dict, Optional, Tuple
from pydantic import BaseModel, Field
from ..provider.base import ProviderAdapter
from ..utils.errors import ConvergeError, ProviderError, ReadinessTimeoutError
from ..utils.logging import get_logger

logger = get_logger("executor.readiness")


class AsyncReadiness(BaseModel):
    """Polling budget for a resource type whose creation completes asynchronously."""
    poll_interval: float = Field(default=5.0, gt=0, description="Seconds between polls")
    timeout: float = Field(default=600.0, gt=0, description="Total seconds to wait for readiness")
    backoff: float = Field(default=1.0, ge=1.0, description="Interval multiplier after each poll")
    max_interval: Optional[float] = Field(default=None, gt=0, description="Cap on the poll interval")

    def next_interval(self, interval: float) -> float:
        interval = interval * self.backoff
        if self.max_interval is not None:
            interval = min(interval, self.max_interval)
        return interval


async def _poll(resource_id: str, fn, *args):
    """Run one readiness probe in a worker thread; provider failures become ProviderError."""
    try:
        return await asyncio.to_thread(fn, *args)
    except ConvergeError:
        raise
    except Exception as e:
        raise ProviderError(
            f"{fn.__name__} of '{resource_id}' raised {type(e).__name__} while waiting for readiness: {e}"
        ) from e


async def wait_until_ready(
    provider: ProviderAdapter,
    resource_id: str,
    resource_type: str,
    provider_id: str,
    readiness: AsyncReadiness,
) -> Tuple[Dict[str, Any], int]:
    """
    Poll a resource until the provider's readiness predicate holds.
    
    Each poll reads fresh outputs and evaluates ``provider.is_ready``.
    Waiting between polls is an ``asyncio.sleep`` so the surrounding task
    can be cancelled at any suspend point.
    
    Args:
        provider: Provider adapter
        resource_id: Resource identifier (for messages)
        resource_type: Resource type passed to the predicate
        provider_id: Provider identifier to read
        readiness: Polling budget
        
    Returns:
        Tuple of (outputs at readiness, number of polls)
        
    Raises:
        ReadinessTimeoutError: If the predicate is not satisfied within the timeout
        ProviderError: If the resource disappears or a readiness probe fails
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + readiness.timeout
    interval = readiness.poll_interval
    polls = 0
    
    while True:
        outputs, exists = await _poll(resource_id, provider.read, provider_id)
        polls += 1
        if not exists:
            raise ProviderError(f"Resource '{resource_id}' ({provider_id}) disappeared while waiting for readiness")
        if await _poll(resource_id, provider.is_ready, resource_type, outputs):
            logger.info(f"Resource '{resource_id}' ready after {polls} polls")
            return outputs, polls
        
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise ReadinessTimeoutError(resource_id, readiness.timeout, polls)
        
        logger.debug(f"Resource '{resource_id}' not ready (poll {polls}), next poll in {min(interval, remaining):.2f}s")
        await asyncio.sleep(min(interval, remaining))
        interval = readiness.next_interval(interval)
