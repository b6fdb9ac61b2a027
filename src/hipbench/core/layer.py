"""
Rate-Coded Layer - unit state and per-cycle dynamics.

A layer owns per-unit tensors for conductances, membrane potential,
activation, external input / target, the phase snapshots used by learning
and the running activation averages. Each cycle the network calls, in order:

1. ``ge_from_raw``      - integrate excitatory net input
2. ``inhib_from_ge_act`` - feed-forward / feedback inhibition per layer and pool
3. ``act_from_g``       - membrane update, XX1 activation or hard clamp
4. ``avg_max_act``      - pool activity statistics for next cycle's feedback

External input semantics by layer type:
    INPUT / HIDDEN: ``apply_ext`` sets ``ext`` and the layer is hard-clamped
    TARGET:         ``apply_ext`` sets ``targ``; copied into ``ext`` (and
                    clamped) when quarter 2 finalizes, i.e. for the plus phase
    COMPARE:        ``apply_ext`` sets ``targ`` for statistics only

Phase snapshots:
    act_q1 (end of quarter 0), act_q2 (end of quarter 1),
    act_m (end of quarter 2, minus phase), act_p (end of quarter 3, plus phase)

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

import torch

from hipbench.config.neuron_config import InhibConfig, LayerConfig
from hipbench.errors import TopologyError
from hipbench.utils.core_utils import centered_cosine

if TYPE_CHECKING:
    from hipbench.core.projection import Projection


class LayerType(str, Enum):
    """How a layer treats external input."""

    INPUT = "input"
    HIDDEN = "hidden"
    TARGET = "target"
    COMPARE = "compare"


def _xx1(x: torch.Tensor, gain: float) -> torch.Tensor:
    gx = gain * x.clamp(min=0.0)
    return gx / (gx + 1.0)


def _fffb(
    cfg: InhibConfig,
    ge_avg: torch.Tensor,
    ge_max: torch.Tensor,
    act_avg: torch.Tensor,
    fbi: torch.Tensor,
) -> Tuple[torch.Tensor, torch.Tensor]:
    """Feed-forward / feedback inhibition. Returns ``(gi, updated fbi)``."""
    if not cfg.on:
        return torch.zeros_like(ge_avg), torch.zeros_like(fbi)
    ff_netin = ge_avg + cfg.max_vs_avg * (ge_max - ge_avg)
    ffi = cfg.ff * (ff_netin - cfg.ff0).clamp(min=0.0)
    fbi = fbi + cfg.fb_dt * (cfg.fb * act_avg - fbi)
    return cfg.gi * (ffi + fbi), fbi


class Layer:
    """One population of rate-coded units.

    Args:
        name: Unique layer name within the network
        shape: ``(Y, X)`` or pooled ``(pools_Y, pools_X, units_Y, units_X)``
        layer_type: External-input semantics
        config: Dynamics parameters
        device: Torch device for state tensors
        dtype: Torch dtype for state tensors
    """

    def __init__(
        self,
        name: str,
        shape: Sequence[int],
        layer_type: LayerType = LayerType.HIDDEN,
        config: Optional[LayerConfig] = None,
        device: Optional[torch.device] = None,
        dtype: torch.dtype = torch.float32,
    ):
        if len(shape) not in (2, 4) or min(shape) < 1:
            raise TopologyError(f"layer '{name}' shape must be 2D or 4D positive, got {tuple(shape)}")
        self.name = name
        self.shape: Tuple[int, ...] = tuple(int(s) for s in shape)
        self.type = LayerType(layer_type)
        self.config = config or LayerConfig()
        self.config.validate()
        self.device = device or torch.device("cpu")
        self.dtype = dtype
        self.off = False
        self.recv_projections: List["Projection"] = []
        self.send_projections: List["Projection"] = []

        if len(self.shape) == 4:
            self.n_pools = self.shape[0] * self.shape[1]
            self.pool_size = self.shape[2] * self.shape[3]
        else:
            self.n_pools = 1
            self.pool_size = self.shape[0] * self.shape[1]
        self.n_units = self.n_pools * self.pool_size

        self.has_ext = False
        self.has_targ = False
        self.has_cmpr = False

        self.act_p_avg = self.config.act_avg.init
        """Running average of the layer's plus-phase mean activation"""

        self.act_p_avg_eff = self.act_p_avg
        self.act_m_mean = 0.0
        self.act_p_mean = 0.0
        self.cos_diff = 0.0
        self.cos_diff_avg = 0.0

        self._alloc()
        self.init_acts()

    # =========================================================================
    # State management
    # =========================================================================

    def _zeros(self) -> torch.Tensor:
        return torch.zeros(self.n_units, device=self.device, dtype=self.dtype)

    def _alloc(self) -> None:
        for attr in (
            "act", "ge", "gi", "vm", "ge_raw", "ext", "targ",
            "act_q1", "act_q2", "act_m", "act_p",
            "avg_ss", "avg_s", "avg_m", "avg_l", "avg_s_lrn", "avg_l_lrn",
        ):
            setattr(self, attr, self._zeros())
        self.layer_fbi = torch.zeros((), device=self.device, dtype=self.dtype)
        self.pool_fbi = torch.zeros(self.n_pools, device=self.device, dtype=self.dtype)
        self.layer_act_avg = torch.zeros((), device=self.device, dtype=self.dtype)
        self.pool_act_avg = torch.zeros(self.n_pools, device=self.device, dtype=self.dtype)

    def init_acts(self) -> None:
        """Full reset of activations and running averages (new weights / new run)."""
        act_cfg = self.config.act
        learn = self.config.learn
        for attr in ("act", "ge", "gi", "ge_raw", "act_q1", "act_q2", "act_m", "act_p"):
            getattr(self, attr).zero_()
        self.vm.fill_(act_cfg.vm_init)
        self.avg_ss.fill_(learn.init)
        self.avg_s.fill_(learn.init)
        self.avg_m.fill_(learn.init)
        self.avg_s_lrn.fill_(learn.init)
        self.avg_l.fill_(learn.avg_l_init)
        self._update_avg_l_lrn()
        self.layer_fbi.zero_()
        self.pool_fbi.zero_()
        self.layer_act_avg.zero_()
        self.pool_act_avg.zero_()
        self.act_p_avg = self.config.act_avg.init
        self.act_p_avg_eff = self.act_p_avg
        self.act_m_mean = 0.0
        self.act_p_mean = 0.0
        self.cos_diff = 0.0
        self.cos_diff_avg = 0.0
        self.init_ext()

    def decay_state(self, decay: float) -> None:
        """Move activation state ``decay`` of the way back to its initial values."""
        if decay <= 0:
            return
        vm_init = self.config.act.vm_init
        for attr in ("act", "ge", "gi", "ge_raw"):
            getattr(self, attr).mul_(1.0 - decay)
        self.vm.sub_(decay * (self.vm - vm_init))
        self.layer_fbi.mul_(1.0 - decay)
        self.pool_fbi.mul_(1.0 - decay)
        self.layer_act_avg.mul_(1.0 - decay)
        self.pool_act_avg.mul_(1.0 - decay)

    def pooled(self, values: torch.Tensor) -> torch.Tensor:
        """View a per-unit tensor as ``[n_pools, pool_size]``."""
        return values.view(self.n_pools, self.pool_size)

    def pool_slice(self, pool: int) -> slice:
        return slice(pool * self.pool_size, (pool + 1) * self.pool_size)

    # =========================================================================
    # External input
    # =========================================================================

    def set_type(self, layer_type: LayerType) -> None:
        self.type = LayerType(layer_type)

    def init_ext(self) -> None:
        """Clear external input and target values and their flags."""
        self.ext.zero_()
        self.targ.zero_()
        self.has_ext = False
        self.has_targ = False
        self.has_cmpr = False

    def _set_flags_for_type(self) -> bool:
        """Set the input flag matching the layer type; True if values go to ``targ``."""
        self.has_ext = False
        self.has_targ = False
        self.has_cmpr = False
        if self.type is LayerType.TARGET:
            self.has_targ = True
            return True
        if self.type is LayerType.COMPARE:
            self.has_cmpr = True
            return True
        self.has_ext = True
        return False

    def apply_ext(self, values: torch.Tensor) -> None:
        """Apply external values according to the layer type."""
        values = values.reshape(-1).to(device=self.device, dtype=self.dtype)
        if values.numel() != self.n_units:
            raise TopologyError(
                f"layer '{self.name}' has {self.n_units} units, got {values.numel()} input values"
            )
        to_targ = self._set_flags_for_type()
        if to_targ:
            self.targ.copy_(values)
        else:
            self.ext.copy_(values)

    def update_ext_flags(self) -> None:
        """Re-derive input flags after a type change, keeping stored values."""
        self._set_flags_for_type()

    @property
    def is_clamped(self) -> bool:
        return self.has_ext

    # =========================================================================
    # Cycle dynamics
    # =========================================================================

    def send_act(self) -> torch.Tensor:
        """Activations as seen by receiving layers (sub-threshold values are not sent)."""
        thr = self.config.act.send_thr
        return torch.where(self.act > thr, self.act, torch.zeros_like(self.act))

    def ge_from_raw(self, ge_raw: torch.Tensor) -> None:
        self.ge_raw.copy_(ge_raw)
        self.ge.add_(self.config.act.g_dt * (ge_raw - self.ge)).clamp_(min=0.0)

    def inhib_from_ge_act(self) -> None:
        layer_cfg = self.config.layer_inhib
        layer_gi, self.layer_fbi = _fffb(
            layer_cfg, self.ge.mean(), self.ge.max(), self.layer_act_avg, self.layer_fbi
        )
        if len(self.shape) == 2:
            self.gi.fill_(float(layer_gi))
            return
        pooled_ge = self.pooled(self.ge)
        pool_gi, self.pool_fbi = _fffb(
            self.config.pool_inhib,
            pooled_ge.mean(dim=1),
            pooled_ge.max(dim=1).values,
            self.pool_act_avg,
            self.pool_fbi,
        )
        if layer_cfg.on:
            pool_gi = torch.maximum(pool_gi, layer_gi.expand_as(pool_gi))
        self.gi.copy_(pool_gi.repeat_interleave(self.pool_size))

    def act_from_g(self) -> None:
        cfg = self.config.act
        if self.has_ext:
            clamped = self.ext.clamp(0.0, cfg.clamp_max)
            self.act.copy_(clamped)
            self.vm.copy_(cfg.thr + clamped / cfg.xx1_gain)
        else:
            ge = self.ge * cfg.gbar_e
            gi = self.gi * cfg.gbar_i
            inet = (
                ge * (cfg.e_rev_e - self.vm)
                + cfg.gbar_l * (cfg.e_rev_l - self.vm)
                + gi * (cfg.e_rev_i - self.vm)
            )
            self.vm.add_(cfg.vm_dt * inet).clamp_(cfg.vm_min, cfg.vm_max)

            ge_thr = (gi * (cfg.e_rev_i - cfg.thr) + cfg.gbar_l * (cfg.e_rev_l - cfg.thr)) / (
                cfg.thr - cfg.e_rev_e
            )
            below = (self.act < cfg.vm_act_thr) & (self.vm <= cfg.thr)
            drive = torch.where(below, self.vm - cfg.thr, ge - ge_thr)
            new_act = _xx1(drive, cfg.xx1_gain)
            self.act.add_(cfg.vm_dt * (new_act - self.act))
        self._avgs_from_act()

    def _avgs_from_act(self) -> None:
        learn = self.config.learn
        self.avg_ss.add_((self.act - self.avg_ss) / learn.ss_tau)
        self.avg_s.add_((self.avg_ss - self.avg_s) / learn.s_tau)
        self.avg_m.add_((self.avg_s - self.avg_m) / learn.m_tau)
        torch.add((1.0 - learn.lrn_m) * self.avg_s, learn.lrn_m * self.avg_m, out=self.avg_s_lrn)

    def avg_max_act(self) -> None:
        self.layer_act_avg = self.act.mean()
        self.pool_act_avg = self.pooled(self.act).mean(dim=1)

    # =========================================================================
    # Trial boundaries
    # =========================================================================

    def _update_avg_l_lrn(self) -> None:
        learn = self.config.learn
        slope = (learn.lrn_max - learn.lrn_min) / (learn.avg_l_gain - learn.avg_l_min)
        torch.add(slope * (self.avg_l - learn.avg_l_min), learn.lrn_min, out=self.avg_l_lrn)

    def _act_avg_from_act(self, avg: float, act: float) -> float:
        cfg = self.config.act_avg
        if act < 0.0001:
            return avg
        if cfg.use_first and avg == cfg.init:
            return avg + 0.5 * (act - avg)
        return avg + cfg.dt * (act - avg)

    def alpha_cycle_init(self) -> None:
        """Trial start: long-term averages, expected activity, then state decay."""
        learn = self.config.learn
        self.avg_l.add_((learn.avg_l_gain * self.avg_m - self.avg_l) / learn.avg_l_tau)
        self.avg_l.clamp_(min=learn.avg_l_min)
        self._update_avg_l_lrn()

        act_avg = self.config.act_avg
        self.act_p_avg = self._act_avg_from_act(self.act_p_avg, self.act_p_mean)
        self.act_p_avg_eff = act_avg.init if act_avg.fixed else act_avg.adjust * self.act_p_avg

        if self.type is LayerType.INPUT:
            return
        self.decay_state(self.config.act.decay)

    def quarter_final(self, quarter: int) -> None:
        """Store the quarter's activation snapshot."""
        if quarter == 0:
            self.act_q1.copy_(self.act)
        elif quarter == 1:
            self.act_q2.copy_(self.act)
        elif quarter == 2:
            self.act_m.copy_(self.act)
            self.act_m_mean = float(self.act_m.mean())
            if self.has_targ:
                self.ext.copy_(self.targ)
                self.has_ext = True
        else:
            self.act_p.copy_(self.act.clamp(min=0.0))
            self.act_p_mean = float(self.act_p.mean())
            self.cos_diff = centered_cosine(self.act_m, self.act_p)
            self.cos_diff_avg += 0.01 * (self.cos_diff - self.cos_diff_avg)

    # =========================================================================
    # Statistics
    # =========================================================================

    def mse(self, tol: float = 0.0) -> Tuple[float, float]:
        """Sum and mean squared error of ``act_m`` against ``targ``.

        Units whose absolute error is below ``tol`` count as zero error.
        """
        diff = self.targ - self.act_m
        sq = torch.where(diff.abs() < tol, torch.zeros_like(diff), diff * diff)
        sse = float(sq.sum())
        return sse, sse / self.n_units

    def __repr__(self) -> str:
        return f"Layer(name={self.name!r}, shape={self.shape}, type={self.type.value}, off={self.off})"
