"""
Learning Configuration Classes.

Typed parameter blocks for projection learning: the CHL rule, the XCAL
contrast function, delta normalization and momentum, sigmoidal weight
contrast, weight balance and weight initialization. A ``ProjectionConfig``
bundles them for one projection; the learning rule itself is picked by
``rule`` when the projection is constructed.

CHL invariant:
    ``CHLConfig.err`` is a read-only property equal to ``1 - hebb``, so the
    Hebbian and error-driven weights always sum to 1.

Author: HipBench Project
Date: December 22, 2025
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from hipbench.config.base import SerializableConfig
from hipbench.errors import ConfigurationError


class MinusPhase(str, Enum):
    """Which activation snapshot the CHL rule uses as its minus phase."""

    ACT_M = "act_m"
    """End of quarter 2 (standard minus phase)"""

    ACT_Q1 = "act_q1"
    """End of quarter 0"""

    ACT_Q2 = "act_q2"
    """End of quarter 1"""


class LearningRuleKind(str, Enum):
    """Learning rule selected for a projection at construction time."""

    STANDARD = "standard"
    """XCAL error + BCM-like long-term average term"""

    ENCODER = "encoder"
    """EC<->CA1 / perforant path: ActP*ActP - ActQ1*ActQ1 error plus BCM term"""

    CHL = "chl"
    """Contrastive Hebbian learning with Hebbian sending-average correction"""


# =============================================================================
# CHL
# =============================================================================


@dataclass
class CHLConfig(SerializableConfig):
    """Contrastive Hebbian learning parameters.

    Usage:
        chl = CHLConfig(hebb=0.01, minus_phase=MinusPhase.ACT_Q1)
        chl.err  # 0.99
    """

    hebb: float = 0.001
    """Weight of the Hebbian term; the error term gets 1 - hebb"""

    minus_phase: MinusPhase = MinusPhase.ACT_M
    """Activation snapshot used for the minus phase"""

    savg_cor: float = 0.4
    """Sending-average correction: 0 leaves the Hebb target at 0.5, 1 fully corrects"""

    savg_thr: float = 0.001
    """Sending layers whose mean plus-phase activation is below this do not learn"""

    def __post_init__(self) -> None:
        self.minus_phase = MinusPhase(self.minus_phase)

    def __setattr__(self, name: str, value: object) -> None:
        if name == "hebb":
            value = float(value)  # type: ignore[arg-type]
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"CHL hebb must be in [0, 1], got {value}")
        super().__setattr__(name, value)

    @property
    def err(self) -> float:
        """Weight of the error-driven term (always 1 - hebb)."""
        return 1.0 - self.hebb


# =============================================================================
# XCAL / delta shaping
# =============================================================================


@dataclass
class XCalConfig(SerializableConfig):
    """XCAL check-mark function and long-term-average learning parameters."""

    m_lrn: float = 1.0
    """Multiplier on the error-driven (medium-term) component"""

    set_l_lrn: bool = False
    """Use the fixed ``l_lrn`` instead of the receiver's adaptive avg_l_lrn"""

    l_lrn: float = 1.0
    """Fixed long-term learning weight when ``set_l_lrn`` is on"""

    d_rev: float = 0.1
    """Proportional point at which the check-mark reverses direction"""

    d_thr: float = 0.0001
    """Minimum co-product value below which no weight change occurs"""


@dataclass
class NormConfig(SerializableConfig):
    """Per-synapse running max-abs normalization of weight deltas."""

    on: bool = True
    decay_tau: float = 1000.0
    """Decay time constant of the running max"""

    norm_min: float = 0.001
    """Floor applied to the running max before dividing"""

    lr_comp: float = 0.15
    """Learning-rate compensation applied with normalization"""

    @property
    def decay_dt_c(self) -> float:
        return 1.0 - 1.0 / self.decay_tau


@dataclass
class MomentumConfig(SerializableConfig):
    """Momentum integration of weight deltas."""

    on: bool = True
    m_tau: float = 10.0
    """Time constant of the momentum integrator (in trials)"""

    lr_comp: float = 0.1
    """Learning-rate compensation applied with momentum"""

    @property
    def m_dt_c(self) -> float:
        return 1.0 - 1.0 / self.m_tau


@dataclass
class WtSigConfig(SerializableConfig):
    """Sigmoidal contrast enhancement from linear to effective weights."""

    gain: float = 6.0
    off: float = 1.0
    soft_bound: bool = True
    """Scale deltas by distance to the bound before applying them"""


@dataclass
class WtBalConfig(SerializableConfig):
    """Weight balance: keeps each receiver's mean weight near a target band."""

    on: bool = False
    avg_thr: float = 0.25
    """Only weights at or above this count toward the receiver's mean"""

    hi_thr: float = 0.4
    hi_gain: float = 4.0
    lo_thr: float = 0.4
    lo_gain: float = 6.0


@dataclass
class WtInitConfig(SerializableConfig):
    """Uniform weight initialization in [mean - var, mean + var]."""

    mean: float = 0.5
    var: float = 0.25


@dataclass
class WtScaleConfig(SerializableConfig):
    """Initial absolute / relative input scaling of a projection."""

    abs: float = 1.0
    rel: float = 1.0


# =============================================================================
# Projection bundle
# =============================================================================


@dataclass
class ProjectionConfig(SerializableConfig):
    """All learning and scaling parameters of a single projection.

    Usage:
        cfg = ProjectionConfig(rule=LearningRuleKind.CHL, lrate=0.1)
        cfg.chl.hebb = 0.01
    """

    rule: LearningRuleKind = LearningRuleKind.STANDARD
    """Learning rule strategy"""

    learn: bool = True
    """Learning enabled (protocols may toggle this per trial)"""

    lrate: float = 0.04
    """Learning rate"""

    chl: CHLConfig = field(default_factory=CHLConfig)
    xcal: XCalConfig = field(default_factory=XCalConfig)
    norm: NormConfig = field(default_factory=NormConfig)
    momentum: MomentumConfig = field(default_factory=MomentumConfig)
    wt_sig: WtSigConfig = field(default_factory=WtSigConfig)
    wt_bal: WtBalConfig = field(default_factory=WtBalConfig)
    wt_init: WtInitConfig = field(default_factory=WtInitConfig)
    wt_scale: WtScaleConfig = field(default_factory=WtScaleConfig)

    def __post_init__(self) -> None:
        self.rule = LearningRuleKind(self.rule)

    def validate(self) -> None:
        """Raise ConfigurationError on out-of-range values."""
        if self.lrate < 0:
            raise ConfigurationError(f"lrate must be non-negative, got {self.lrate}")
        if self.wt_scale.abs < 0 or self.wt_scale.rel < 0:
            raise ConfigurationError(
                f"weight scales must be non-negative, got abs={self.wt_scale.abs} "
                f"rel={self.wt_scale.rel}"
            )
        if self.norm.decay_tau <= 0 or self.momentum.m_tau <= 0:
            raise ConfigurationError("norm decay_tau and momentum m_tau must be positive")
        if not 0.0 <= self.wt_init.mean <= 1.0:
            raise ConfigurationError(f"wt_init mean must be in [0, 1], got {self.wt_init.mean}")

    @classmethod
    def chl_defaults(cls, **kwargs) -> "ProjectionConfig":
        """CHL projection: norm, momentum and weight balance off by default."""
        cfg = cls(rule=LearningRuleKind.CHL, **kwargs)
        cfg.norm.on = False
        cfg.momentum.on = False
        cfg.wt_bal.on = False
        return cfg
