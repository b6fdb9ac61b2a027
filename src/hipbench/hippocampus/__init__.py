"""
Hippocampal network, alpha-cycle protocols and memory statistics.
"""

from hipbench.hippocampus.memory_stats import (
    CA3Correlations,
    MemoryStats,
    MemoryStatsTracker,
    TrialStatistics,
    ca3_correlations,
    trial_statistics,
)
from hipbench.hippocampus.observers import (
    CycleObserver,
    ObservationContext,
    ObservationPoint,
    TestCycleRecorder,
    UpdateCadence,
)
from hipbench.hippocampus.protocols import (
    PROTOCOLS,
    AlphaCycleProtocol,
    AutoencoderProtocol,
    EncodeRecallProtocol,
    PreTrainProtocol,
    RestudyProtocol,
    RetrievalPracticeAEProtocol,
    RetrievalPracticeProtocol,
    create_protocol,
)
from hipbench.hippocampus.topology import HipLayers, HipNetwork, HipProjections, build_hip_network

__all__ = [
    "PROTOCOLS",
    "AlphaCycleProtocol",
    "AutoencoderProtocol",
    "CA3Correlations",
    "CycleObserver",
    "EncodeRecallProtocol",
    "HipLayers",
    "HipNetwork",
    "HipProjections",
    "MemoryStats",
    "MemoryStatsTracker",
    "ObservationContext",
    "ObservationPoint",
    "PreTrainProtocol",
    "RestudyProtocol",
    "RetrievalPracticeAEProtocol",
    "RetrievalPracticeProtocol",
    "TestCycleRecorder",
    "TrialStatistics",
    "UpdateCadence",
    "build_hip_network",
    "ca3_correlations",
    "create_protocol",
    "trial_statistics",
]
