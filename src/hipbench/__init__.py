"""
hipbench - hippocampal memory encoding and recall benchmark

A rate-coded hippocampal network (EC, DG, CA3, CA1 plus a neocortical
shortcut and an autoencoder) trained on paired-associate lists with
contrastive Hebbian learning, driven through four-quarter alpha cycles.

Quick Start:
============

    from hipbench import HipBenchSim, SimConfig

    sim = HipBenchSim(SimConfig(max_runs=1, max_epochs=5))
    sim.init()
    sim.train()

Command line:

    hipbench --runs 2 --epcs 10 --tag quick
"""

__version__ = "0.1.0"

from hipbench.config import HipConfig, PatternConfig, SimConfig
from hipbench.core import Network
from hipbench.errors import ConfigurationError, HipBenchError, TopologyError, WeightFileError
from hipbench.hippocampus import (
    AlphaCycleProtocol,
    HipNetwork,
    MemoryStatsTracker,
    build_hip_network,
    create_protocol,
)
from hipbench.training import HipBenchSim

__all__ = [
    "__version__",
    "AlphaCycleProtocol",
    "ConfigurationError",
    "HipBenchError",
    "HipBenchSim",
    "HipConfig",
    "HipNetwork",
    "MemoryStatsTracker",
    "Network",
    "PatternConfig",
    "SimConfig",
    "TopologyError",
    "WeightFileError",
    "build_hip_network",
    "create_protocol",
]
