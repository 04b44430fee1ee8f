"""Pydantic models for engine configuration."""

from typing import Any, Dict, List
from pydantic import BaseModel, Field
from ..executor.readiness import AsyncReadiness
from ..planner.policy import ReplacePolicy


class EngineSettings(BaseModel):
    """Executor tuning."""
    max_concurrency: int = Field(default=4, ge=1, description="Concurrent operations per wave")
    provider_retries: int = Field(default=0, ge=0, description="Retries for retryable provider errors")
    retry_backoff: float = Field(default=1.0, ge=0, description="Base retry delay in seconds")
    lock_timeout: float = Field(default=0.0, ge=0, description="Seconds to wait for the apply lock")


class StateSettings(BaseModel):
    """Where state is persisted."""
    path: str = Field(default="converge.state.json", description="State file path")


class ProviderSettings(BaseModel):
    """Which provider adapter to use."""
    name: str = Field(default="simulated", description="Built-in provider name or 'module:Factory'")
    options: Dict[str, Any] = Field(default_factory=dict, description="Provider factory keyword arguments")


class EngineConfig(BaseModel):
    """Complete engine configuration."""
    engine: EngineSettings = Field(default_factory=EngineSettings)
    state: StateSettings = Field(default_factory=StateSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    readiness: Dict[str, AsyncReadiness] = Field(default_factory=dict, description="Resource type -> readiness budget")
    replace_policy: Dict[str, List[str]] = Field(default_factory=dict, description="Resource type -> immutable attributes")

    def replace_policy_table(self) -> ReplacePolicy:
        return ReplacePolicy(self.replace_policy)
