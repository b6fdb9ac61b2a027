"""
Benchmark driver: patterns, environments, logs and the simulation loop.

Components:
- build_patterns: paired-associate vocabularies and AB / RP / noise tables
- FixedTableEnv: run / epoch / trial counters over a pattern table
- SimLogs: trial, epoch and run tables with TSV output
- HipBenchSim: the simulation context driving all of the above
"""

from hipbench.training.environment import Counter, FixedTableEnv
from hipbench.training.logs import (
    LOG_PRECISION,
    EpochAccumulator,
    LogTable,
    SimLogs,
    TsvStream,
    describe,
)
from hipbench.training.patterns import (
    PatternSet,
    PatternTable,
    build_patterns,
    build_vocab,
    flip_bits_rows,
    mix_patterns,
    permuted_binary,
    permuted_binary_min_diff,
)
from hipbench.training.sim import HipBenchSim

__all__ = [
    "LOG_PRECISION",
    "Counter",
    "EpochAccumulator",
    "FixedTableEnv",
    "HipBenchSim",
    "LogTable",
    "PatternSet",
    "PatternTable",
    "SimLogs",
    "TsvStream",
    "build_patterns",
    "build_vocab",
    "describe",
    "flip_bits_rows",
    "mix_patterns",
    "permuted_binary",
    "permuted_binary_min_diff",
]
