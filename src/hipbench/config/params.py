"""
Network Parameters and Named Parameter Sets.

``NetworkParams`` holds one typed ``LayerConfig`` per layer and one
``ProjectionConfig`` per projection. ``base_network_params`` builds the
tuned hippocampal defaults; named parameter sets then modify the typed
structures (and the hippocampal size / pattern configs) before the network
is built.

Parameter sets are plain functions registered by name:

.. code-block:: python

    @register_param_set("RP", "CA3->CA1 learns against the quarter-1 snapshot")
    def _rp(target: ParamTarget) -> None:
        target.projection("CA3ToCA1").chl.minus_phase = MinusPhase.ACT_Q2

Names of the form ``ListNNN`` (e.g. ``List040``) are resolved without
registration and set the pattern list size to ``NNN``.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from typing import Callable, Dict, Iterable, List, Optional

from hipbench.config.hip_config import HipConfig, PatternConfig
from hipbench.config.learning_config import (
    LearningRuleKind,
    MinusPhase,
    ProjectionConfig,
)
from hipbench.config.neuron_config import InhibConfig, LayerConfig
from hipbench.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class NetworkParams:
    """Typed per-layer and per-projection parameters of the network."""

    layers: Dict[str, LayerConfig] = field(default_factory=dict)
    projections: Dict[str, ProjectionConfig] = field(default_factory=dict)

    def layer(self, name: str) -> LayerConfig:
        try:
            return self.layers[name]
        except KeyError:
            raise ConfigurationError(f"no parameters for layer '{name}'") from None

    def projection(self, name: str) -> ProjectionConfig:
        try:
            return self.projections[name]
        except KeyError:
            raise ConfigurationError(f"no parameters for projection '{name}'") from None


# =============================================================================
# Base parameters
# =============================================================================


def _pool_only(gi: float, act_avg_init: float) -> LayerConfig:
    cfg = LayerConfig()
    cfg.layer_inhib.on = False
    cfg.pool_inhib = InhibConfig(on=True, gi=gi)
    cfg.act_avg.init = act_avg_init
    return cfg


def _layer_inhib(gi: float, act_avg_init: float) -> LayerConfig:
    cfg = LayerConfig()
    cfg.layer_inhib.gi = gi
    cfg.act_avg.init = act_avg_init
    return cfg


def _encoder(lrate: float = 0.04) -> ProjectionConfig:
    cfg = ProjectionConfig(rule=LearningRuleKind.ENCODER, lrate=lrate)
    cfg.norm.on = False
    cfg.momentum.on = False
    cfg.wt_bal.on = True
    cfg.xcal.set_l_lrn = False
    return cfg


def _hippo_chl(hebb: float = 0.01, lrate: float = 0.1) -> ProjectionConfig:
    cfg = ProjectionConfig.chl_defaults(lrate=lrate)
    cfg.chl.hebb = hebb
    cfg.wt_bal.on = True
    return cfg


def base_network_params() -> NetworkParams:
    """Tuned defaults of every layer and projection of the hippocampal network."""
    layers = {
        "Input": LayerConfig(),
        "ECin": _pool_only(2.0, 0.2),
        "ECout": _pool_only(2.0, 0.2),
        "Auto": _pool_only(1.4, 0.1),
        "Autoin": LayerConfig(),
        "Autohid": _pool_only(2.0, 0.1),
        "CA1": _pool_only(2.4, 0.1),
        "DG": _layer_inhib(3.8, 0.01),
        "CA3": _layer_inhib(2.8, 0.02),
        "Output": _pool_only(2.0, 0.1),
        "Cortex": _layer_inhib(1.8, 0.088),
    }

    input_to_ecin = ProjectionConfig(learn=False)
    input_to_ecin.wt_init.mean = 0.8
    input_to_ecin.wt_init.var = 0.0

    ecout_to_ecin = ProjectionConfig(learn=False)
    ecout_to_ecin.wt_init.mean = 0.9
    ecout_to_ecin.wt_init.var = 0.01
    ecout_to_ecin.wt_scale.rel = 0.5

    ecout_to_output = ProjectionConfig(learn=False)
    ecout_to_output.wt_scale.rel = 0.5

    ca1_to_ecout = _encoder()
    ca1_to_ecout.wt_scale.abs = 4.0

    ca3_to_ca3 = _encoder(lrate=0.05)
    ca3_to_ca3.wt_scale.rel = 0.1

    ecin_to_dg = _hippo_chl(hebb=0.2, lrate=0.1)
    ecin_to_dg.chl.savg_cor = 0.1
    ecin_to_dg.chl.minus_phase = MinusPhase.ACT_Q1

    ca3_to_ca1 = _hippo_chl(hebb=0.01, lrate=0.05)
    ca3_to_ca1.chl.savg_cor = 0.4

    dg_to_ca3 = _hippo_chl()
    dg_to_ca3.learn = False
    dg_to_ca3.wt_init.mean = 0.9
    dg_to_ca3.wt_init.var = 0.01
    dg_to_ca3.wt_scale.rel = 4.0

    ecout_to_autohid = ProjectionConfig(lrate=0.08)
    ecout_to_autohid.wt_scale.abs = 0.0

    projections = {
        "InputToECin": input_to_ecin,
        "ECoutToECin": ecout_to_ecin,
        "ECoutToOutput": ecout_to_output,
        "ECinToCA1": _encoder(),
        "CA1ToECout": ca1_to_ecout,
        "ECoutToCA1": _encoder(),
        "AutohidToAuto": ProjectionConfig(lrate=0.08),
        "AutoToAutohid": ProjectionConfig(lrate=0.08),
        "AutoinToAutohid": ProjectionConfig(),
        "ECoutToAutohid": ecout_to_autohid,
        "InputToCortex": ProjectionConfig(),
        "CortexToOutput": ProjectionConfig(),
        "OutputToCortex": ProjectionConfig(),
        "ECinToDG": ecin_to_dg,
        "ECinToCA3": _encoder(lrate=0.15),
        "CA3ToCA3": ca3_to_ca3,
        "CA3ToCA1": ca3_to_ca1,
        "DGToCA3": dg_to_ca3,
    }
    return NetworkParams(layers=layers, projections=projections)


# =============================================================================
# Named parameter sets
# =============================================================================


@dataclass
class ParamTarget:
    """What a parameter set may modify."""

    hip: HipConfig
    pat: PatternConfig
    network: NetworkParams

    def projection(self, name: str) -> ProjectionConfig:
        return self.network.projection(name)

    def layer(self, name: str) -> LayerConfig:
        return self.network.layer(name)


ParamSetFn = Callable[[ParamTarget], None]


@dataclass
class ParamSet:
    name: str
    description: str
    apply: ParamSetFn


_PARAM_SETS: Dict[str, ParamSet] = {}

_LIST_SET = re.compile(r"^List(\d+)$")


def register_param_set(name: str, description: str = "") -> Callable[[ParamSetFn], ParamSetFn]:
    """Decorator registering a parameter-set function under ``name``."""

    def decorator(fn: ParamSetFn) -> ParamSetFn:
        if name in _PARAM_SETS:
            raise ConfigurationError(f"parameter set '{name}' already registered")
        _PARAM_SETS[name] = ParamSet(name, description or (fn.__doc__ or "").strip(), fn)
        return fn

    return decorator


def get_param_set(name: str) -> ParamSet:
    """Look up a parameter set; ``ListNNN`` names are synthesized on demand."""
    if name in _PARAM_SETS:
        return _PARAM_SETS[name]
    match = _LIST_SET.match(name)
    if match:
        size = int(match.group(1))

        def _list_size(target: ParamTarget) -> None:
            target.pat.list_size = size

        return ParamSet(name, f"list size {size}", _list_size)
    raise ConfigurationError(
        f"unknown parameter set '{name}'. Choose from: {sorted(_PARAM_SETS)} or ListNNN"
    )


def list_param_sets() -> List[str]:
    return sorted(_PARAM_SETS)


def apply_param_sets(
    names: Iterable[str],
    target: ParamTarget,
    log_set_params: bool = False,
) -> None:
    """Apply parameter sets in order; empty names and ``Base`` are no-ops."""
    for name in names:
        if not name:
            continue
        param_set = get_param_set(name)
        param_set.apply(target)
        if log_set_params:
            logger.info("Applied parameter set %s: %s", param_set.name, param_set.description)


@register_param_set("Base", "tuned defaults (already built into base_network_params)")
def _base(target: ParamTarget) -> None:
    pass


@register_param_set("RP", "CA3->CA1 uses the quarter-1 snapshot as its minus phase")
def _rp(target: ParamTarget) -> None:
    target.projection("CA3ToCA1").chl.minus_phase = MinusPhase.ACT_Q2


def _hip_size(ca3: int, ca1_pool: int) -> ParamSetFn:
    def apply(target: ParamTarget) -> None:
        target.hip.ca3_size = (ca3, ca3)
        target.hip.ca1_pool = (ca1_pool, ca1_pool)

    return apply


register_param_set("SmallHip", "CA3 20x20, CA1 pools 10x10")(_hip_size(20, 10))
register_param_set("MedHip", "CA3 30x30, CA1 pools 15x15")(_hip_size(30, 15))
register_param_set("BigHip", "CA3 40x40, CA1 pools 20x20")(_hip_size(40, 20))


def resolve_param_target(
    hip: HipConfig,
    pat: PatternConfig,
    names: Iterable[str],
    network: Optional[NetworkParams] = None,
    log_set_params: bool = False,
) -> ParamTarget:
    """Base parameters with the named sets applied on top."""
    target = ParamTarget(hip=hip, pat=pat, network=network or base_network_params())
    apply_param_sets(names, target, log_set_params=log_set_params)
    return target
