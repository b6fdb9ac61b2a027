"""
Alpha-Cycle Observers.

Observers watch a trial without influencing it: logging per-cycle activity,
progress displays, debugging hooks. A protocol notifies each registered
observer at the points its ``cadence`` asks for:

    UpdateCadence.CYCLE        after every cycle
    UpdateCadence.FAST_SPIKE   after every 10th cycle of a quarter
    UpdateCadence.QUARTER      after every quarter finalizes
    UpdateCadence.PHASE        after quarters 2 and 3 finalize (minus and plus phase)
    UpdateCadence.ALPHA_CYCLE  once, at the end of the trial

Usage:
======
    recorder = TestCycleRecorder(["ECin", "CA3"])
    protocol.add_observer(recorder)
    protocol.run_trial(train=False)
    rows = recorder.rows()

Observers receive an ``ObservationContext`` holding the network and the
clock. They must treat both as read-only.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Protocol, Sequence, runtime_checkable

from hipbench.core.network import Network
from hipbench.core.time import CycleTime

FAST_SPIKE_INTERVAL = 10


class UpdateCadence(str, Enum):
    """How often an observer wants to be notified."""

    CYCLE = "cycle"
    FAST_SPIKE = "fast_spike"
    QUARTER = "quarter"
    PHASE = "phase"
    ALPHA_CYCLE = "alpha_cycle"


class ObservationPoint(str, Enum):
    """Where in the trial a notification is issued."""

    CYCLE = "cycle"
    QUARTER = "quarter"
    TRIAL = "trial"


@dataclass(frozen=True)
class ObservationContext:
    """Snapshot of where the trial is, handed to observers."""

    network: Network
    time: CycleTime
    train: bool
    point: ObservationPoint
    quarter: int
    cycle_in_quarter: int = 0


@runtime_checkable
class CycleObserver(Protocol):
    """Anything with a cadence and an ``observe`` method."""

    cadence: UpdateCadence

    def observe(self, ctx: ObservationContext) -> None:
        ...


def wants_notification(cadence: UpdateCadence, ctx: ObservationContext) -> bool:
    """Whether an observer with ``cadence`` should see ``ctx``."""
    if ctx.point is ObservationPoint.CYCLE:
        if cadence is UpdateCadence.CYCLE:
            return True
        if cadence is UpdateCadence.FAST_SPIKE:
            return (ctx.cycle_in_quarter + 1) % FAST_SPIKE_INTERVAL == 0
        return False
    if ctx.point is ObservationPoint.QUARTER:
        if cadence is UpdateCadence.QUARTER:
            return True
        return cadence is UpdateCadence.PHASE and ctx.quarter >= 2
    return cadence is UpdateCadence.ALPHA_CYCLE


class TestCycleRecorder:
    """Per-cycle mean net input and activation of selected layers during testing.

    Rows are indexed by the cycle within the trial and overwritten by the next
    test trial, so after a test the table describes the most recent trial.
    Training trials are ignored.
    """

    cadence = UpdateCadence.CYCLE
    __test__ = False

    def __init__(self, layer_names: Sequence[str]):
        self.layer_names = list(layer_names)
        self._rows: Dict[int, Dict[str, float]] = {}

    def columns(self) -> List[str]:
        cols = ["Cycle"]
        for name in self.layer_names:
            cols += [f"{name} Ge.Avg", f"{name} Act.Avg"]
        return cols

    def observe(self, ctx: ObservationContext) -> None:
        if ctx.train:
            return
        cycle = ctx.time.cycle
        row: Dict[str, float] = {"Cycle": cycle}
        for name in self.layer_names:
            layer = ctx.network.layer(name)
            row[f"{name} Ge.Avg"] = float(layer.ge.mean())
            row[f"{name} Act.Avg"] = float(layer.act.mean())
        self._rows[cycle] = row

    def rows(self) -> List[Dict[str, float]]:
        return [self._rows[c] for c in sorted(self._rows)]

    def clear(self) -> None:
        self._rows.clear()
