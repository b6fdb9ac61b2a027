"""
Memory-Completion Statistics.

Scores whether a trial's output pattern counts as *remembered*:

- ``trg_on_was_off_all``: fraction of target-on units that were off at the
  end of the minus phase (misses over every target bit)
- ``trg_on_was_off_cmp``: the same, restricted to *completion* bits, i.e.
  target-on units whose ECin input was absent at the end of quarter 1 so
  the hippocampus had to recall them
- ``trg_off_was_on``: fraction of target-off units that were on (false alarms)

A training trial is remembered when both the all-bits miss rate and the
false-alarm rate are below ``mem_thr``. A test trial uses the completion-bit
miss rate instead, and is only rescored when it actually has completion bits.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from hipbench.core.layer import Layer
from hipbench.utils.core_utils import centered_cosine

ON_THRESHOLD = 0.5


@dataclass
class MemoryStats:
    """Outcome of one memory scoring pass."""

    mem: float = 0.0
    trg_on_was_off_all: float = 0.0
    trg_on_was_off_cmp: float = 0.0
    trg_off_was_on: float = 0.0
    trg_on_n: int = 0
    trg_off_n: int = 0
    cmp_n: int = 0


def _rate(count: float, n: int) -> float:
    return count / n if n > 0 else 0.0


class MemoryStatsTracker:
    """Scores memory completion from Output and ECin snapshots.

    ``mem`` persists across calls: a test trial without completion bits
    leaves the previous score in place.

    Args:
        mem_thr: Error proportion below which a trial counts as remembered
        n_units: Number of leading Output units to score (None = all)
    """

    def __init__(self, mem_thr: float = 0.34, n_units: Optional[int] = None):
        self.mem_thr = mem_thr
        self.n_units = n_units
        self.stats = MemoryStats()

    def reset(self) -> None:
        self.stats = MemoryStats()

    @property
    def mem(self) -> float:
        return self.stats.mem

    def update(self, output: Layer, ecin: Layer, train: bool) -> MemoryStats:
        """Score the current trial; call once the minus phase (quarter 2) has finalized."""
        n = output.n_units if self.n_units is None else min(self.n_units, output.n_units, ecin.n_units)
        act_m = output.act_m[:n]
        trg_on = output.targ[:n] >= ON_THRESHOLD
        cmp = trg_on & (ecin.act_q1[:n] < ON_THRESHOLD)
        was_on = act_m > ON_THRESHOLD
        was_off = act_m < ON_THRESHOLD

        trg_on_n = int(trg_on.sum())
        trg_off_n = n - trg_on_n
        cmp_n = int(cmp.sum())

        prev_mem = self.stats.mem
        stats = MemoryStats(
            mem=prev_mem,
            trg_on_was_off_all=_rate(float((trg_on & was_off).sum()), trg_on_n),
            trg_on_was_off_cmp=_rate(float((cmp & was_off).sum()), cmp_n),
            trg_off_was_on=_rate(float((~trg_on & was_on).sum()), trg_off_n),
            trg_on_n=trg_on_n,
            trg_off_n=trg_off_n,
            cmp_n=cmp_n,
        )
        fp_ok = stats.trg_off_was_on < self.mem_thr
        if train:
            stats.mem = 1.0 if stats.trg_on_was_off_all < self.mem_thr and fp_ok else 0.0
        elif cmp_n > 0:
            stats.mem = 1.0 if stats.trg_on_was_off_cmp < self.mem_thr and fp_ok else 0.0
        self.stats = stats
        return stats


# =============================================================================
# CA3 phase correlations
# =============================================================================


@dataclass
class CA3Correlations:
    """Pearson correlations between successive CA3 quarter snapshots."""

    q1_q2: float = 0.0
    q2_m: float = 0.0
    m_p: float = 0.0


def ca3_correlations(ca3: Layer) -> CA3Correlations:
    """How much the CA3 pattern changes from quarter to quarter."""
    return CA3Correlations(
        q1_q2=centered_cosine(ca3.act_q1, ca3.act_q2),
        q2_m=centered_cosine(ca3.act_q2, ca3.act_m),
        m_p=centered_cosine(ca3.act_m, ca3.act_p),
    )


# =============================================================================
# Trial statistics
# =============================================================================


@dataclass
class TrialStatistics:
    """Per-trial summary returned by ``AlphaCycleProtocol.compute_trial_statistics``."""

    sse: float = 0.0
    avg_sse: float = 0.0
    cos_diff: float = 0.0
    mem_score: float = 0.0
    false_positive_rate: float = 0.0
    false_negative_rate: float = 0.0

    @property
    def is_error(self) -> bool:
        return self.sse != 0.0


def trial_statistics(ecout: Layer, mem: MemoryStats, train: bool, tol: float = 0.5) -> TrialStatistics:
    """Combine ECout reconstruction error with the latest memory scores."""
    sse, avg_sse = ecout.mse(tol)
    return TrialStatistics(
        sse=sse,
        avg_sse=avg_sse,
        cos_diff=float(ecout.cos_diff),
        mem_score=mem.mem,
        false_positive_rate=mem.trg_off_was_on,
        false_negative_rate=mem.trg_on_was_off_all if train else mem.trg_on_was_off_cmp,
    )
