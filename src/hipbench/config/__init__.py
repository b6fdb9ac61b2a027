"""
Configuration for hipbench.

Typed dataclass configs for units, projections, the hippocampal network,
patterns and the simulation, plus named parameter sets.
"""

from hipbench.config.base import BaseConfig, SerializableConfig
from hipbench.config.hip_config import HipConfig, PatternConfig
from hipbench.config.learning_config import (
    CHLConfig,
    LearningRuleKind,
    MinusPhase,
    MomentumConfig,
    NormConfig,
    ProjectionConfig,
    WtBalConfig,
    WtInitConfig,
    WtScaleConfig,
    WtSigConfig,
    XCalConfig,
)
from hipbench.config.neuron_config import (
    ActAvgConfig,
    ActConfig,
    InhibConfig,
    LayerConfig,
    LearnNeurConfig,
)
from hipbench.config.params import (
    NetworkParams,
    ParamSet,
    ParamTarget,
    apply_param_sets,
    base_network_params,
    get_param_set,
    list_param_sets,
    register_param_set,
    resolve_param_target,
)
from hipbench.config.sim_config import SimConfig

__all__ = [
    "ActAvgConfig",
    "ActConfig",
    "BaseConfig",
    "CHLConfig",
    "HipConfig",
    "InhibConfig",
    "LayerConfig",
    "LearnNeurConfig",
    "LearningRuleKind",
    "MinusPhase",
    "MomentumConfig",
    "NetworkParams",
    "NormConfig",
    "ParamSet",
    "ParamTarget",
    "PatternConfig",
    "ProjectionConfig",
    "SerializableConfig",
    "SimConfig",
    "WtBalConfig",
    "WtInitConfig",
    "WtScaleConfig",
    "WtSigConfig",
    "XCalConfig",
    "apply_param_sets",
    "base_network_params",
    "get_param_set",
    "list_param_sets",
    "register_param_set",
    "resolve_param_target",
]
