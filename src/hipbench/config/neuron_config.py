"""
Rate-code unit and layer configuration.

Parameters of the point-neuron rate code (conductances, reversal potentials,
XX1 activation), feed-forward / feedback inhibition, running activation
averages used by learning, and the layer-level bundle that combines them.

Design Pattern: one dataclass per concern, bundled in ``LayerConfig``
- Time constants are stored as taus; the ``*_dt`` properties give rates
- Defaults reproduce a standard Leabra-style hidden layer
"""

from __future__ import annotations

from dataclasses import dataclass, field

from hipbench.config.base import SerializableConfig
from hipbench.errors import ConfigurationError


@dataclass
class ActConfig(SerializableConfig):
    """Membrane and activation-function parameters.

    Attributes:
        xx1_gain: Gain of the x/(x+1) activation function.
        thr: Firing threshold on the membrane potential.
        e_rev_e, e_rev_l, e_rev_i: Reversal potentials of excitation, leak and
            inhibition.
        gbar_e, gbar_l, gbar_i: Maximal conductances.
        vm_tau: Membrane (and rate-code) integration time constant in cycles.
        g_tau: Net-input integration time constant in cycles.
        clamp_max: Upper bound of hard-clamped activations.
        send_thr: Activations at or below this contribute no net input.
    """

    xx1_gain: float = 100.0
    thr: float = 0.5
    vm_act_thr: float = 0.01
    e_rev_e: float = 1.0
    e_rev_l: float = 0.3
    e_rev_i: float = 0.25
    gbar_e: float = 1.0
    gbar_l: float = 0.1
    gbar_i: float = 1.0
    vm_tau: float = 3.3
    g_tau: float = 1.4
    vm_init: float = 0.4
    vm_min: float = 0.0
    vm_max: float = 2.0
    clamp_max: float = 0.95
    send_thr: float = 0.1
    """Activations at or below this are not sent to receiving layers"""

    decay: float = 1.0
    """Fraction of activation state decayed at the start of each trial"""

    @property
    def vm_dt(self) -> float:
        return 1.0 / self.vm_tau

    @property
    def g_dt(self) -> float:
        return 1.0 / self.g_tau


@dataclass
class InhibConfig(SerializableConfig):
    """Feed-forward / feedback (FFFB) inhibition for a layer or its pools."""

    on: bool = True
    gi: float = 1.8
    """Overall inhibition gain"""

    ff: float = 1.0
    fb: float = 1.0
    ff0: float = 0.1
    """Net-input offset below which there is no feed-forward inhibition"""

    fb_tau: float = 1.4
    max_vs_avg: float = 0.0

    @property
    def fb_dt(self) -> float:
        return 1.0 / self.fb_tau


@dataclass
class ActAvgConfig(SerializableConfig):
    """Expected and running plus-phase layer activity (drives input scaling)."""

    init: float = 0.15
    fixed: bool = False
    """Always use ``init`` as the effective average"""

    use_first: bool = True
    """Move halfway to the first observed value instead of slow integration"""

    tau: float = 100.0
    adjust: float = 1.0

    @property
    def dt(self) -> float:
        return 1.0 / self.tau


@dataclass
class LearnNeurConfig(SerializableConfig):
    """Short / medium / long running averages consumed by XCAL."""

    ss_tau: float = 2.0
    s_tau: float = 2.0
    m_tau: float = 10.0
    lrn_m: float = 0.1
    """Mix of the medium-term average into the learning short-term average"""

    init: float = 0.15
    avg_l_init: float = 0.4
    avg_l_gain: float = 2.5
    avg_l_min: float = 0.2
    avg_l_tau: float = 10.0
    lrn_max: float = 0.5
    lrn_min: float = 0.0001


@dataclass
class LayerConfig(SerializableConfig):
    """Everything needed to construct one layer's dynamics."""

    act: ActConfig = field(default_factory=ActConfig)
    layer_inhib: InhibConfig = field(default_factory=InhibConfig)
    pool_inhib: InhibConfig = field(default_factory=lambda: InhibConfig(on=False))
    act_avg: ActAvgConfig = field(default_factory=ActAvgConfig)
    learn: LearnNeurConfig = field(default_factory=LearnNeurConfig)

    def validate(self) -> None:
        """Raise ConfigurationError on out-of-range values."""
        if self.act.vm_tau <= 0 or self.act.g_tau <= 0:
            raise ConfigurationError("vm_tau and g_tau must be positive")
        if not 0.0 < self.act_avg.init <= 1.0:
            raise ConfigurationError(f"act_avg.init must be in (0, 1], got {self.act_avg.init}")
        for name, inhib in (("layer_inhib", self.layer_inhib), ("pool_inhib", self.pool_inhib)):
            if inhib.gi < 0:
                raise ConfigurationError(f"{name}.gi must be non-negative, got {inhib.gi}")
