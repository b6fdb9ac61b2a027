"""
Rate-code network engine: layers, projections, connectivity and timing.
"""

from hipbench.core.connectivity import (
    ConnectivityPattern,
    Full,
    OneToOne,
    PoolOneToOne,
    UniformRandom,
)
from hipbench.core.layer import Layer, LayerType
from hipbench.core.network import Network
from hipbench.core.projection import Projection, WeightScale, slay_act_scale
from hipbench.core.synapse import SynapseState
from hipbench.core.time import CycleTime

__all__ = [
    "ConnectivityPattern",
    "CycleTime",
    "Full",
    "Layer",
    "LayerType",
    "Network",
    "OneToOne",
    "PoolOneToOne",
    "Projection",
    "SynapseState",
    "UniformRandom",
    "WeightScale",
    "slay_act_scale",
]
