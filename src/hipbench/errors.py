"""
Custom exception classes for hipbench.

Exception Hierarchy:
====================
HipBenchError (base) - Base exception for all hipbench-specific errors
├── ConfigurationError - Invalid configuration parameters
│   └── TopologyError - Missing, duplicate or mismatched layers/projections
└── WeightFileError - Malformed or incompatible saved weights

Design Philosophy:
==================
- Specific exception types enable targeted error handling
- Topology problems surface when a network or protocol is built, never
  in the middle of a trial
- Numeric edge cases (empty completion sets, near-zero sending averages,
  learning-disabled projections) are defined behaviour, not errors

Author: HipBench Project
Date: December 12, 2025
"""

from __future__ import annotations

# =============================================================================
# Exception Hierarchy
# =============================================================================


class HipBenchError(Exception):
    """Base exception for all hipbench-specific errors.

    All custom exceptions in hipbench inherit from this class, enabling
    code to catch hipbench errors specifically.
    """


class ConfigurationError(HipBenchError):
    """Invalid configuration parameters.

    Raised when configuration values are out of valid range or incompatible
    with each other.
    """


class TopologyError(ConfigurationError):
    """Network topology does not match what a component requires.

    Raised at construction time when a named layer or projection is missing,
    declared twice, or has incompatible dimensions.

    Example:
        raise TopologyError("projection 'CA3ToCA1' not found in network 'Hip'")
    """


class WeightFileError(HipBenchError):
    """Saved weights cannot be loaded into the current network.

    Raised when a weight file has an unknown format version or refers to
    projections / shapes that the network does not have.
    """
