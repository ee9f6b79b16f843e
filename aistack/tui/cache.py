"""Model cache state as shown by the TUI's model management screen."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class ModelInfo:
    """One cached model."""

    name: str
    size: int
    last_used: datetime


@dataclass
class ModelsState:
    """The cached models of one provider."""

    provider: str
    items: list[ModelInfo] = field(default_factory=list)


@dataclass
class CacheStats:
    """Aggregate figures about a provider's model cache."""

    provider: str
    total_size: int = 0
    model_count: int = 0
    oldest_model: Optional[ModelInfo] = None


class ModelsStateManager:
    """Gives the TUI a view of a provider's model cache.

    This is a lightweight view: it reports the provider with no cached models
    and empty statistics.
    """

    def __init__(self, provider: str, state_dir: str | os.PathLike[str]) -> None:
        self.provider = provider
        self.state_dir = Path(state_dir)
        self.provider_kind = "ollama" if provider == "ollama" else "localai"

    def load(self) -> ModelsState:
        """Return the provider's cached models."""
        return ModelsState(provider=self.provider, items=[])

    def stats(self) -> CacheStats:
        """Return cache statistics for the provider."""
        return CacheStats(provider=self.provider, total_size=0, model_count=0)