"""
Weight-change shaping shared by all learning rules.

- Sigmoidal contrast between linear and effective weights
- The XCAL check-mark function
- Per-synapse normalization and momentum of raw weight deltas
- Weight-balance factors per receiving unit

All functions operate element-wise on tensors so they apply to a whole
projection at once.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from typing import Tuple

import torch

from hipbench.config.learning_config import MomentumConfig, NormConfig, WtBalConfig, XCalConfig


def sig_fun(lwt: torch.Tensor, gain: float = 6.0, off: float = 1.0) -> torch.Tensor:
    """Effective weight from linear weight: ``1 / (1 + (off*(1-w)/w)^gain)``.

    0 and 1 map to themselves.
    """
    w = lwt.clamp(1e-12, 1.0)
    out = 1.0 / (1.0 + torch.pow(off * (1.0 - w) / w, gain))
    out = torch.where(lwt <= 0.0, torch.zeros_like(out), out)
    return torch.where(lwt >= 1.0, torch.ones_like(out), out)


def sig_inv(wt: torch.Tensor, gain: float = 6.0, off: float = 1.0) -> torch.Tensor:
    """Linear weight from effective weight (inverse of ``sig_fun``)."""
    w = wt.clamp(1e-12, 1.0)
    out = 1.0 / (1.0 + torch.pow((1.0 - w) / w, 1.0 / gain) / off)
    out = torch.where(wt <= 0.0, torch.zeros_like(out), out)
    return torch.where(wt >= 1.0, torch.ones_like(out), out)


def xcal(srval: torch.Tensor, thr_p: torch.Tensor, cfg: XCalConfig) -> torch.Tensor:
    """XCAL check-mark: linear above ``thr_p * d_rev``, reversing below it."""
    rev = thr_p * cfg.d_rev
    above = srval - thr_p
    below = -srval * ((1.0 - cfg.d_rev) / cfg.d_rev)
    out = torch.where(srval > rev, above, below)
    return torch.where(srval < cfg.d_thr, torch.zeros_like(out), out)


def normalize_and_integrate(
    dwt: torch.Tensor,
    norm: torch.Tensor,
    moment: torch.Tensor,
    norm_cfg: NormConfig,
    momentum_cfg: MomentumConfig,
) -> torch.Tensor:
    """Apply normalization and momentum to raw deltas.

    ``norm`` and ``moment`` are updated in place. Returns the shaped delta
    (before the learning rate is applied).
    """
    factor = torch.ones_like(dwt)
    if norm_cfg.on:
        torch.maximum(norm * norm_cfg.decay_dt_c, dwt.abs(), out=norm)
        factor = torch.where(
            norm == 0.0,
            factor,
            norm_cfg.lr_comp / norm.clamp(min=norm_cfg.norm_min),
        )
    if momentum_cfg.on:
        moment.mul_(momentum_cfg.m_dt_c).add_(dwt)
        return factor * momentum_cfg.lr_comp * moment
    return factor * dwt


def weight_balance_factors(
    wt: torch.Tensor,
    mask: torch.Tensor,
    cfg: WtBalConfig,
) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    """Per-receiver ``(avg, inc, dec)`` weight-balance factors.

    The receiver's average counts only synapses with ``wt >= avg_thr``.
    Low averages boost increases and damp decreases; high averages do the
    opposite.
    """
    counted = mask & (wt >= cfg.avg_thr)
    n = counted.sum(dim=1)
    total = torch.where(counted, wt, torch.zeros_like(wt)).sum(dim=1)
    avg = torch.where(n > 0, total / n.clamp(min=1), torch.zeros_like(total))

    inc = torch.ones_like(avg)
    dec = torch.ones_like(avg)

    lo = avg < cfg.lo_thr
    lo_fact = cfg.lo_gain * (cfg.lo_thr - avg.clamp(min=cfg.avg_thr))
    lo_dec = 1.0 / (1.0 + lo_fact)
    dec = torch.where(lo, lo_dec, dec)
    inc = torch.where(lo, 2.0 - lo_dec, inc)

    hi = avg > cfg.hi_thr
    hi_fact = cfg.hi_gain * (avg - cfg.hi_thr)
    hi_inc = 1.0 / (1.0 + hi_fact)
    inc = torch.where(hi, hi_inc, inc)
    dec = torch.where(hi, 2.0 - hi_inc, dec)
    return avg, inc, dec
