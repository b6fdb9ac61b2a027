"""Shared tensor helpers."""

from hipbench.utils.core_utils import (
    centered_cosine,
    clamp_weights,
    masked_max_per_column,
    n_from_pct,
)

__all__ = [
    "centered_cosine",
    "clamp_weights",
    "masked_max_per_column",
    "n_from_pct",
]
