"""
Hippocampal Model and Pattern Configuration.

Sizes, connectivity densities and mossy-fiber strength deltas of the
hippocampal network, and the parameters of the paired-associate pattern
lists it is trained on.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from hipbench.config.base import SerializableConfig
from hipbench.errors import ConfigurationError


@dataclass
class HipConfig(SerializableConfig):
    """Hippocampal network sizes and pathway parameters.

    EC, CA1 and the autoencoder layers are organized into ``ec_size`` pools
    (one pool per pattern slot); DG and CA3 are flat 2D layers.
    """

    ec_size: Tuple[int, int] = (2, 3)
    """Pool grid (Y, X) of every EC-shaped layer"""

    ec_pool: Tuple[int, int] = (7, 7)
    """Units per EC pool (Y, X)"""

    ca1_pool: Tuple[int, int] = (10, 10)
    """Units per CA1 pool (Y, X)"""

    ca3_size: Tuple[int, int] = (20, 20)
    """CA3 layer shape (Y, X)"""

    dg_ratio: float = 1.5
    """DG size relative to CA3 along each axis"""

    cortex_size: Tuple[int, int] = (20, 20)
    """Neocortical shortcut layer shape (Y, X)"""

    autohid_pool: Tuple[int, int] = (15, 15)
    """Units per autoencoder hidden pool (Y, X)"""

    dg_pcon: float = 0.25
    """Connection probability ECin -> DG"""

    ca3_pcon: float = 0.25
    """Connection probability ECin -> CA3"""

    mossy_pcon: float = 0.02
    """Connection probability DG -> CA3 (mossy fibers)"""

    ec_pct_act: float = 0.2
    """Fraction of active units in each EC pattern pool"""

    mossy_del: float = 4.0
    """Reduction of mossy relative strength during the first quarter"""

    mossy_del_test: float = 3.0
    """Reduction of mossy relative strength after the first quarter when testing"""

    mem_pools: Optional[int] = 2
    """Number of leading Output pools scored by memory statistics; None = all units"""

    def __post_init__(self) -> None:
        self.ec_size = tuple(self.ec_size)  # type: ignore[assignment]
        self.ec_pool = tuple(self.ec_pool)  # type: ignore[assignment]
        self.ca1_pool = tuple(self.ca1_pool)  # type: ignore[assignment]
        self.ca3_size = tuple(self.ca3_size)  # type: ignore[assignment]
        self.cortex_size = tuple(self.cortex_size)  # type: ignore[assignment]
        self.autohid_pool = tuple(self.autohid_pool)  # type: ignore[assignment]

    @property
    def dg_size(self) -> Tuple[int, int]:
        return (int(self.ca3_size[0] * self.dg_ratio), int(self.ca3_size[1] * self.dg_ratio))

    @property
    def ec_pool_units(self) -> int:
        return self.ec_pool[0] * self.ec_pool[1]

    @property
    def mem_units(self) -> Optional[int]:
        """Number of leading Output units scored by memory statistics."""
        if self.mem_pools is None:
            return None
        return self.mem_pools * self.ec_pool_units

    def validate(self) -> None:
        """Raise ConfigurationError on out-of-range values."""
        for name in ("ec_size", "ec_pool", "ca1_pool", "ca3_size", "cortex_size", "autohid_pool"):
            shape = getattr(self, name)
            if len(shape) != 2 or min(shape) < 1:
                raise ConfigurationError(f"{name} must be two positive ints, got {shape}")
        for name in ("dg_pcon", "ca3_pcon", "mossy_pcon", "ec_pct_act"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ConfigurationError(f"{name} must be in (0, 1], got {value}")
        if self.dg_ratio <= 0:
            raise ConfigurationError(f"dg_ratio must be positive, got {self.dg_ratio}")
        n_pools = self.ec_size[0] * self.ec_size[1]
        if self.mem_pools is not None and not 0 < self.mem_pools <= n_pools:
            raise ConfigurationError(f"mem_pools must be in [1, {n_pools}], got {self.mem_pools}")


@dataclass
class PatternConfig(SerializableConfig):
    """Paired-associate list parameters."""

    list_size: int = 30
    """Number of items in each list"""

    min_diff_pct: float = 0.5
    """Minimum fraction of differing active bits between items of a vocabulary"""

    ctxt_flip_pct: float = 0.5
    """Fraction of active context bits flipped per item"""

    def validate(self) -> None:
        if self.list_size < 1:
            raise ConfigurationError(f"list_size must be positive, got {self.list_size}")
        for name in ("min_diff_pct", "ctxt_flip_pct"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be in [0, 1], got {value}")
