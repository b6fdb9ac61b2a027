"""
Projection - a learnable pathway from a sending to a receiving layer.

A projection owns its synapse tensors, its input scaling and the learning
rule strategy picked from its config at construction. The network drives it
through three stages:

- ``send_ge``: scaled net-input contribution to the receiver for this cycle
- ``dwt``: accumulate a weight change from the finished trial (learning rule)
- ``wt_from_dwt``: apply the accumulated change (next training trial)

Input scaling:
    ``gscale = abs * rel * slay_act_scale(...) / sum(rel of receiver's projections)``
    is cached by ``Network.recompute_input_scaling``. Changing ``wt_scale``
    never touches synapses; it only takes effect at the next recompute.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import math
from typing import Optional

import torch

from hipbench.config.learning_config import LearningRuleKind, ProjectionConfig
from hipbench.core.layer import Layer
from hipbench.core.synapse import SynapseState
from hipbench.learning.shaping import sig_fun, sig_inv, weight_balance_factors
from hipbench.learning.strategies import LearningRule, create_learning_rule
from hipbench.utils.core_utils import clamp_weights


@dataclass
class WeightScale:
    """Absolute and relative input scaling of a projection."""

    abs: float = 1.0
    rel: float = 1.0


def slay_act_scale(savg: float, snu: int, ncon: float) -> float:
    """Normalize net input by the expected number of active senders.

    Args:
        savg: Expected mean activity of the sending layer
        snu: Number of sending units
        ncon: Mean number of connections per receiving unit
    """
    ncon = max(ncon, 1.0)
    sem_extra = 2
    slay_act_n = max(int(math.floor(savg * snu + 0.5)), 1)
    if ncon == snu:
        return 1.0 / slay_act_n
    max_act_n = int(min(ncon, slay_act_n))
    avg_act_n = max(int(math.floor(savg * ncon + 0.5)), 1)
    exp_act_n = min(avg_act_n + sem_extra, max_act_n)
    return 1.0 / max(exp_act_n, 1)


class Projection:
    """Connection from ``send`` to ``recv`` with dense masked synapses."""

    def __init__(
        self,
        name: str,
        send: Layer,
        recv: Layer,
        mask: torch.Tensor,
        config: Optional[ProjectionConfig] = None,
    ):
        self.name = name
        self.send = send
        self.recv = recv
        self.config = config or ProjectionConfig()
        self.config.validate()
        if self.config.rule is LearningRuleKind.CHL:
            # copy so a config shared with other projections keeps its own flag
            self.config = replace(self.config, wt_sig=replace(self.config.wt_sig, soft_bound=False))
        self.rule: LearningRule = create_learning_rule(self.config.rule)
        self.wt_scale = WeightScale(self.config.wt_scale.abs, self.config.wt_scale.rel)
        self.synapses = SynapseState.zeros(mask, device=recv.device, dtype=recv.dtype)
        self.n_con_avg = float(self.synapses.mask.sum(dim=1).float().mean())
        self.gscale = 0.0
        self.g_inc = torch.zeros(recv.n_units, device=recv.device, dtype=recv.dtype)

    @property
    def learn(self) -> bool:
        return self.config.learn

    @learn.setter
    def learn(self, value: bool) -> None:
        self.config.learn = bool(value)

    @property
    def is_off(self) -> bool:
        return self.send.off or self.recv.off

    def init_weights(self, generator: Optional[torch.Generator] = None) -> None:
        """Uniform random weights in ``[mean - var, mean + var]``, clipped to [0, 1]."""
        syn = self.synapses
        init = self.config.wt_init
        rnd = torch.rand(syn.mask.shape, generator=generator, dtype=syn.wt.dtype)
        wt = (init.mean + init.var * (2.0 * rnd - 1.0)).to(syn.wt.device)
        clamp_weights(wt)
        wt = wt * syn.mask
        syn.wt.copy_(wt)
        sig = self.config.wt_sig
        syn.lwt.copy_(sig_inv(wt, sig.gain, sig.off) * syn.mask)
        syn.reset_learning()
        self.init_g_inc()

    def init_g_inc(self) -> None:
        self.g_inc.zero_()

    def send_ge(self) -> torch.Tensor:
        """Compute and cache this cycle's scaled net-input contribution."""
        self.g_inc = self.gscale * (self.synapses.wt @ self.send.send_act())
        return self.g_inc

    # =========================================================================
    # Learning
    # =========================================================================

    def dwt(self) -> None:
        """Accumulate the learning rule's weight change for the finished trial."""
        if not self.learn or self.is_off:
            return
        self.rule.compute_dwt(self)

    def wt_from_dwt(self) -> None:
        """Apply accumulated changes to the linear weights, then zero them."""
        if not self.learn or self.is_off:
            return
        syn = self.synapses
        sig = self.config.wt_sig
        dwt = syn.dwt
        pos = dwt > 0.0
        inc = syn.wb_inc.unsqueeze(1)
        dec = syn.wb_dec.unsqueeze(1)
        if sig.soft_bound:
            scaled = torch.where(pos, dwt * inc * (1.0 - syn.lwt), dwt * dec * syn.lwt)
        else:
            scaled = torch.where(pos, dwt * inc, dwt * dec)
        changed = (dwt != 0.0) & syn.mask
        syn.lwt.copy_(torch.where(changed, syn.lwt + scaled, syn.lwt))
        clamp_weights(syn.lwt)
        syn.wt.copy_(torch.where(syn.mask, sig_fun(syn.lwt, sig.gain, sig.off), torch.zeros_like(syn.wt)))
        syn.dwt.zero_()

    def weight_balance(self) -> None:
        """Recompute per-receiver weight-balance factors from current weights."""
        if not self.learn or self.is_off or not self.config.wt_bal.on:
            return
        syn = self.synapses
        avg, inc, dec = weight_balance_factors(syn.wt, syn.mask, self.config.wt_bal)
        syn.wb_avg.copy_(avg)
        syn.wb_inc.copy_(inc)
        syn.wb_dec.copy_(dec)

    def __repr__(self) -> str:
        return (
            f"Projection(name={self.name!r}, rule={self.config.rule.value}, "
            f"learn={self.learn}, abs={self.wt_scale.abs}, rel={self.wt_scale.rel})"
        )
