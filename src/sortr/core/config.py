"""Nested pydantic-settings configuration for sortr.

Each sub-config reads its own ``SORTR_<GROUP>_*`` env vars::

    export SORTR_PERSISTENCE_BACKEND=memory
    export SORTR_ENGINE_REMOVAL_ANIMATION_DURATION_MS=0
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class EngineConfig(BaseSettings):
    """Interactive merge sort tuning.

    Env vars use ``SORTR_ENGINE_`` prefix.  The defaults reproduce the
    reference progress-bar behaviour and should rarely change.
    """

    model_config = {"env_prefix": "SORTR_ENGINE_"}

    history_capacity: int = Field(default=1, ge=1)
    max_progress_percent: int = Field(default=99, ge=0, le=100)
    removal_animation_duration_ms: float = Field(default=800.0, ge=0.0)
    removal_animation_steps: int = Field(default=20, ge=1)
    removal_work_factor: float = Field(default=1.5, ge=0.0)


class PersistenceConfig(BaseSettings):
    """Where ``SortSession`` keeps saved progress.

    Env vars use ``SORTR_PERSISTENCE_`` prefix.
    """

    model_config = {"env_prefix": "SORTR_PERSISTENCE_"}

    backend: Literal["file", "memory"] = "file"
    store_path: Path = Path("./.sortr")


class ObservabilityConfig(BaseSettings):
    """Logging configuration.

    Env vars use ``SORTR_OBSERVABILITY_`` prefix.
    """

    model_config = {"env_prefix": "SORTR_OBSERVABILITY_"}

    log_level: str = "INFO"


class SortrSettings(BaseSettings):
    """Top-level settings aggregating all sub-configs.

    Sub-configs are built per instance so env vars are read at construction
    time, not at import.
    """

    model_config = {"env_prefix": "SORTR_"}

    engine: EngineConfig = Field(default_factory=EngineConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
