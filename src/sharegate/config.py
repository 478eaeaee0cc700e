"""EngineConfig — tunables shared by the resolvers, mutator and facades."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class EngineConfig:
    """Configuration for a ShareGate engine instance."""

    max_concurrency: int = 8
    """Upper bound on concurrent store lookups within one fan-out."""

    default_permissions: tuple[str, ...] = ("read",)
    """Permissions stored on a grant when the caller passes none."""

    global_permissions: tuple[str, ...] = ("read",)
    """Permissions reported for resources reached through the global flag."""

    create_tables: bool = True
    """If True, ``open()`` creates the model tables when missing."""

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        self.default_permissions = tuple(self.default_permissions)
        self.global_permissions = tuple(self.global_permissions)
        if not self.default_permissions:
            raise ValueError("default_permissions must not be empty")
