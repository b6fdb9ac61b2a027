"""
Alpha-cycle time bookkeeping.

One trial is an alpha cycle of four quarters. Quarters 0-2 form the minus
(expectation) phase and quarter 3 the plus (outcome) phase. ``cycle`` counts
cycles within the current trial.
"""

from __future__ import annotations

from dataclasses import dataclass

N_QUARTERS = 4


@dataclass
class CycleTime:
    """Current position within an alpha cycle."""

    cyc_per_qtr: int = 25
    """Default number of cycles per quarter"""

    cycle: int = 0
    quarter: int = 0
    total_cycles: int = 0
    """Cycles since the last ``reset``"""

    def reset(self) -> None:
        self.cycle = 0
        self.quarter = 0
        self.total_cycles = 0

    def alpha_cycle_start(self) -> None:
        self.cycle = 0
        self.quarter = 0

    def cycle_inc(self) -> None:
        self.cycle += 1
        self.total_cycles += 1

    def quarter_inc(self) -> None:
        self.quarter += 1

    @property
    def plus_phase(self) -> bool:
        return self.quarter == N_QUARTERS - 1
