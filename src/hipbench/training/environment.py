"""
Fixed-Table Environment.

Presents the rows of a ``PatternTable`` one trial at a time and keeps the
run / epoch / trial counters the driver uses to detect epoch boundaries.

Counter semantics:
- ``trial`` starts at -1 so that the first ``step()`` presents row 0
- when ``trial`` wraps past the last row it returns to 0 and ``epoch``
  increments; ``counter("epoch")`` then reports ``changed=True`` until the
  next step
- ``run`` has a maximum; ``run.incr()`` returns True (and wraps to 0) when
  the maximum is reached

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from hipbench.errors import ConfigurationError
from hipbench.training.patterns import PatternTable


@dataclass
class Counter:
    """An integer counter remembering its previous value and whether it just changed."""

    cur: int = 0
    prv: int = -1
    changed: bool = False
    max: int = 0
    """Wrap-around limit (0 = unbounded)"""

    def init(self, value: int = 0) -> None:
        self.cur = value
        self.prv = -1
        self.changed = False

    def same(self) -> None:
        self.changed = False

    def incr(self) -> bool:
        """Increment; returns True when the counter wrapped at ``max``."""
        self.prv = self.cur
        self.cur += 1
        self.changed = True
        if self.max > 0 and self.cur >= self.max:
            self.cur = 0
            return True
        return False


class FixedTableEnv:
    """Steps through a pattern table in order (or in a fresh permutation per epoch).

    Args:
        name: Environment name
        table: Rows to present
        sequential: Present rows in table order; otherwise permute each epoch
        rng: Random generator for permuted order
    """

    def __init__(
        self,
        name: str,
        table: PatternTable,
        sequential: bool = True,
        rng: Optional[np.random.Generator] = None,
    ):
        self.name = name
        self.sequential = sequential
        self.rng = rng if rng is not None else np.random.default_rng()
        self.run = Counter()
        self.epoch = Counter()
        self.trial = Counter()
        self.trial_name = ""
        self.table = table
        self._order = np.arange(table.n_rows)
        self.init(0)

    def set_table(self, table: PatternTable) -> None:
        if table.n_rows == 0:
            raise ConfigurationError(f"environment '{self.name}': table '{table.name}' has no rows")
        self.table = table

    def init(self, run: int) -> None:
        """Start over at ``run`` with epoch 0, before the first trial."""
        self.set_table(self.table)
        self.run.cur = run
        self.run.prv = -1
        self.run.changed = False
        self.epoch.init(0)
        self.trial.init(-1)
        self.trial.max = self.table.n_rows
        self.trial_name = ""
        self._new_order()

    def _new_order(self) -> None:
        n = self.table.n_rows
        self._order = np.arange(n) if self.sequential else self.rng.permutation(n)

    def step(self) -> None:
        """Advance to the next trial, wrapping into the next epoch."""
        self.epoch.same()
        if self.trial.incr():
            self.epoch.incr()
            self._new_order()
        self.trial_name = self.table.trial_name(self.row_index)

    def set_trial(self, index: int) -> None:
        """Jump to trial ``index`` without touching the epoch counter."""
        if not 0 <= index < self.table.n_rows:
            raise ConfigurationError(f"trial {index} out of range for table '{self.table.name}'")
        self.trial.cur = index
        self.trial_name = self.table.trial_name(self.row_index)

    @property
    def row_index(self) -> int:
        return int(self._order[max(self.trial.cur, 0)])

    def counter(self, scale: str) -> Tuple[int, int, bool]:
        """``(cur, prv, changed)`` of the ``run``, ``epoch`` or ``trial`` counter."""
        try:
            ctr = {"run": self.run, "epoch": self.epoch, "trial": self.trial}[scale]
        except KeyError:
            raise ConfigurationError(f"unknown counter '{scale}'") from None
        return ctr.cur, ctr.prv, ctr.changed

    def state(self) -> Dict[str, np.ndarray]:
        """Patterns of the current row, keyed by layer name."""
        return self.table.row(self.row_index)
