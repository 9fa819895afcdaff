"""Memory budget configuration and pressure probing.

Soft-valued caches keep their values strongly reachable until the host
reports memory pressure. This module owns the definition of "pressure":
available system memory (from psutil) dropping below a reserve computed as a
fraction of the configured memory budget.

Environment Variables:
    MEMOCACHE_MAX_MEMORY_GB: Memory budget in GB (default: 16.0)
    MEMOCACHE_SYSTEM_RESERVE: Fraction of the budget that must stay
        available before soft references are released (default: 0.10)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import psutil

logger = logging.getLogger(__name__)

BYTES_PER_GB = 1024**3


@dataclass
class MemoryConfig:
    """Memory budget used to decide when soft references are released."""

    max_memory_gb: float = 16.0
    system_reserve: float = 0.10

    @classmethod
    def from_env(cls) -> MemoryConfig:
        """Build a config from ``MEMOCACHE_*`` environment variables."""
        return cls(
            max_memory_gb=float(os.getenv("MEMOCACHE_MAX_MEMORY_GB", "16.0")),
            system_reserve=float(os.getenv("MEMOCACHE_SYSTEM_RESERVE", "0.10")),
        )

    def get_reserve_bytes(self) -> int:
        """Minimum bytes that must remain available to avoid pressure."""
        return int(self.max_memory_gb * self.system_reserve * BYTES_PER_GB)

    def check_available_memory(self) -> tuple[bool, float]:
        """Check whether enough system memory is available.

        Returns:
            Tuple of (ok, available_gb); ok is False when available memory
            has dropped below the reserve.
        """
        available = psutil.virtual_memory().available
        available_gb = available / BYTES_PER_GB
        return available >= self.get_reserve_bytes(), available_gb

    def is_under_pressure(self) -> bool:
        """True when available memory is below the configured reserve."""
        ok, available_gb = self.check_available_memory()
        if not ok:
            logger.debug(
                f"[MemoryConfig] Memory pressure: {available_gb:.2f}GB available, "
                f"reserve {self.get_reserve_bytes() / BYTES_PER_GB:.2f}GB"
            )
        return not ok
