"""
Learning Rule Strategies: pluggable weight-change rules for projections.

Each projection picks one strategy at construction from its config's
``rule`` field, instead of branching on a rule flag every trial:

.. code-block:: python

    proj.rule = create_learning_rule(LearningRuleKind.CHL)
    proj.rule.compute_dwt(proj)   # accumulates into proj.synapses.dwt

Supported Strategies
=====================
- **StandardRule**: XCAL error-driven term plus BCM-like long-term term
- **EncoderRule**: EC <-> CA1 and perforant-path rule; error between the
  plus phase and the end of the first quarter, plus the BCM-like term
- **ContrastiveHebbianRule**: CHL (see ``hipbench.learning.chl``)

Every strategy shares the same tail, implemented in ``BaseRule``:
normalization / momentum shaping, the learning rate, masking to existing
synapses, and broadcasting each sender's max normalization value to all of
its outgoing synapses.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Protocol

import torch

from hipbench.config.learning_config import LearningRuleKind, MinusPhase
from hipbench.errors import ConfigurationError
from hipbench.learning.chl import chl_dwt
from hipbench.learning.shaping import normalize_and_integrate, xcal
from hipbench.utils.core_utils import masked_max_per_column

if TYPE_CHECKING:
    from hipbench.core.projection import Projection


# =============================================================================
# Strategy Interface
# =============================================================================


class LearningRule(Protocol):
    """Protocol for projection learning rules."""

    kind: LearningRuleKind

    def compute_dwt(self, proj: "Projection") -> Dict[str, float]:
        """Accumulate this trial's weight change into ``proj.synapses.dwt``.

        Returns:
            Metrics dict (empty when the projection was skipped)
        """
        ...


class BaseRule(ABC):
    """Base class for learning rules with the shared shaping / accumulation tail."""

    kind: LearningRuleKind

    @abstractmethod
    def raw_dwt(self, proj: "Projection") -> torch.Tensor:
        """Unshaped weight change for every synapse."""

    def should_learn(self, proj: "Projection") -> bool:
        return True

    def compute_dwt(self, proj: "Projection") -> Dict[str, float]:
        if not self.should_learn(proj):
            return {}
        syn = proj.synapses
        cfg = proj.config
        raw = self.raw_dwt(proj) * syn.mask
        shaped = normalize_and_integrate(raw, syn.norm, syn.moment, cfg.norm, cfg.momentum)
        delta = cfg.lrate * shaped * syn.mask
        syn.dwt.add_(delta)
        if cfg.norm.on:
            col_max = masked_max_per_column(syn.norm, syn.mask)
            syn.norm.copy_(col_max.unsqueeze(0) * syn.mask)
        return self._compute_metrics(delta, syn.mask)

    def _compute_metrics(self, delta: torch.Tensor, mask: torch.Tensor) -> Dict[str, float]:
        """Compute standard learning metrics."""
        n = max(int(mask.sum()), 1)
        return {
            "ltp": float((delta > 0).sum()),
            "ltd": float((delta < 0).sum()),
            "net_change": float(delta.sum()),
            "mean_change": float(delta.abs().sum()) / n,
        }


# =============================================================================
# Rules
# =============================================================================


class StandardRule(BaseRule):
    """XCAL: ``xcal(sr_s, sr_m) + xcal(sr_s, avg_l) * avg_l_lrn``."""

    kind = LearningRuleKind.STANDARD

    def raw_dwt(self, proj: "Projection") -> torch.Tensor:
        send, recv = proj.send, proj.recv
        xc = proj.config.xcal
        srs = torch.outer(recv.avg_s_lrn, send.avg_s_lrn)
        srm = torch.outer(recv.avg_m, send.avg_m)
        avg_l = recv.avg_l.unsqueeze(1)
        l_lrn = xc.l_lrn if xc.set_l_lrn else recv.avg_l_lrn.unsqueeze(1)
        err = xc.m_lrn * xcal(srs, srm, xc)
        bcm = xcal(srs, avg_l, xc) * l_lrn
        return bcm + err


class EncoderRule(BaseRule):
    """``(s+ r+ - s_q1 r_q1) + xcal(sr_s, avg_l) * avg_l_lrn``."""

    kind = LearningRuleKind.ENCODER

    def raw_dwt(self, proj: "Projection") -> torch.Tensor:
        send, recv = proj.send, proj.recv
        xc = proj.config.xcal
        err = torch.outer(recv.act_p, send.act_p) - torch.outer(recv.act_q1, send.act_q1)
        srs = torch.outer(recv.avg_s_lrn, send.avg_s_lrn)
        l_lrn = xc.l_lrn if xc.set_l_lrn else recv.avg_l_lrn.unsqueeze(1)
        bcm = xcal(srs, recv.avg_l.unsqueeze(1), xc) * l_lrn
        return bcm + xc.m_lrn * err


class ContrastiveHebbianRule(BaseRule):
    """CHL with sending-average corrected Hebbian term.

    A projection whose sending layer is nearly silent in the plus phase
    (mean ``act_p`` below ``savg_thr``) accumulates no change at all.
    """

    kind = LearningRuleKind.CHL

    def should_learn(self, proj: "Projection") -> bool:
        return proj.send.act_p_mean >= proj.config.chl.savg_thr

    def raw_dwt(self, proj: "Projection") -> torch.Tensor:
        send, recv = proj.send, proj.recv
        chl = proj.config.chl
        if chl.minus_phase is MinusPhase.ACT_Q1:
            send_m, recv_m = send.act_q1, recv.act_q1
        elif chl.minus_phase is MinusPhase.ACT_Q2:
            send_m, recv_m = send.act_q2, recv.act_q2
        else:
            send_m, recv_m = send.act_m, recv.act_m
        return chl_dwt(
            recv.act_p,
            send.act_p,
            recv_m,
            send_m,
            proj.synapses.lwt,
            send.act_p_avg_eff,
            chl,
        )


_RULES = {
    LearningRuleKind.STANDARD: StandardRule,
    LearningRuleKind.ENCODER: EncoderRule,
    LearningRuleKind.CHL: ContrastiveHebbianRule,
}


def create_learning_rule(kind: LearningRuleKind) -> BaseRule:
    """Instantiate the strategy for a rule kind."""
    try:
        return _RULES[LearningRuleKind(kind)]()
    except (KeyError, ValueError) as e:
        raise ConfigurationError(f"unknown learning rule '{kind}'") from e
