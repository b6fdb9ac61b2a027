"""
Core Utilities for hipbench.

This module provides common tensor utility functions used across the codebase
to reduce code duplication and ensure consistency.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

import math

import torch


def clamp_weights(
    weights: torch.Tensor,
    w_min: float = 0.0,
    w_max: float = 1.0,
    inplace: bool = True,
) -> torch.Tensor:
    """Clamp weight tensor to valid range.

    Standard pattern for enforcing weight bounds after learning updates.
    Operates in-place by default for efficiency.

    Args:
        weights: Weight tensor to clamp
        w_min: Minimum weight value (default: 0.0)
        w_max: Maximum weight value (default: 1.0)
        inplace: If True, modify weights in place (default: True)

    Returns:
        Clamped weight tensor

    Example:
        >>> clamp_weights(proj.synapses.lwt)
    """
    if inplace:
        return weights.clamp_(w_min, w_max)
    return weights.clamp(w_min, w_max)


def centered_cosine(a: torch.Tensor, b: torch.Tensor) -> float:
    """Pearson correlation of two vectors; 0 when either has zero variance.

    Equivalent to the cosine of the mean-centered vectors, which is how layer
    minus/plus phase agreement (``cos_diff``) is measured.
    """
    da = a - a.mean()
    db = b - b.mean()
    denom = torch.sqrt((da * da).sum() * (db * db).sum())
    if denom.item() == 0.0:
        return 0.0
    return float((da * db).sum() / denom)


def masked_max_per_column(values: torch.Tensor, mask: torch.Tensor) -> torch.Tensor:
    """Max of ``values`` over masked rows of each column (0 for empty columns)."""
    return torch.where(mask, values, torch.zeros_like(values)).amax(dim=0)


def n_from_pct(pct: float, n: int) -> int:
    """Number of items corresponding to a fraction of ``n``, rounding halves up."""
    return int(math.floor(pct * n + 0.5))
