"""
Trial, Epoch and Run Logs.

In-memory log tables plus tab-separated files written with ``csv``:

    TrnTrlLog   one row per training trial of the current epoch
    TrnEpcLog   one row per training epoch
    TstTrlLog   one row per test trial of the current test pass
    TstEpcLog   one row per test pass          -> <net>_<run>_epc.tsv
    TstCycLog   per-cycle activity of the last test trial
    RunLog      one row per finished run       -> <net>_<run>_run.tsv
    RunStats    RunLog summarized per Params   -> <net>_<run>_runs.tsv

The test-epoch log also drives early stopping: ``first_zero`` is the first
epoch whose ``AB Mem`` reached 1 and ``nzero`` counts consecutive such
epochs.

Float values are written with ``LOG_PRECISION`` significant digits.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
import logging
from pathlib import Path
import time
from typing import IO, Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from hipbench.errors import HipBenchError
from hipbench.hippocampus.memory_stats import CA3Correlations, MemoryStats, TrialStatistics

logger = logging.getLogger(__name__)

LOG_PRECISION = 4

DESC_AGGS = ("Count", "Mean", "Std", "Sem", "Min", "Max", "Q1", "Median", "Q3")


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        return f"{float(value):.{LOG_PRECISION}g}"
    return str(value)


# =============================================================================
# Tables and files
# =============================================================================


class LogTable:
    """Rows of named columns."""

    def __init__(self, name: str, columns: Sequence[str], description: str = ""):
        self.name = name
        self.columns = list(columns)
        self.description = description
        self.rows: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self.rows)

    def append(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = set(row) - set(self.columns)
        if unknown:
            raise HipBenchError(f"log '{self.name}' has no columns {sorted(unknown)}")
        full = {col: row.get(col, 0.0) for col in self.columns}
        self.rows.append(full)
        return full

    def reset(self) -> None:
        self.rows.clear()

    def column(self, name: str) -> np.ndarray:
        return np.asarray([row[name] for row in self.rows], dtype=np.float64)

    def mean(self, name: str) -> float:
        values = self.column(name)
        return float(values.mean()) if values.size else 0.0

    def sum(self, name: str) -> float:
        return float(self.column(name).sum())

    def prop_if(self, name: str, predicate) -> float:
        values = self.column(name)
        if not values.size:
            return 0.0
        return float(np.mean([bool(predicate(v)) for v in values]))

    @property
    def last(self) -> Optional[Dict[str, Any]]:
        return self.rows[-1] if self.rows else None

    def save(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="") as f:
            writer = csv.writer(f, delimiter="\t")
            writer.writerow(self.columns)
            for row in self.rows:
                writer.writerow([format_value(row[c]) for c in self.columns])
        return path


class TsvStream:
    """Appends rows to a tab-separated file as they are logged, header first."""

    def __init__(self, path: str | Path, columns: Sequence[str]):
        self.path = Path(path)
        self.columns = list(columns)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file: Optional[IO[str]] = open(self.path, "w", newline="")
        self._writer = csv.writer(self._file, delimiter="\t")
        self._writer.writerow(self.columns)
        self._file.flush()

    def write(self, row: Mapping[str, Any]) -> None:
        if self._file is None:
            raise HipBenchError(f"log file {self.path} is closed")
        self._writer.writerow([format_value(row.get(c, 0.0)) for c in self.columns])
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> TsvStream:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def describe(values: Iterable[float]) -> Dict[str, float]:
    """Count, mean, std, sem, min, max and quartiles of ``values``."""
    arr = np.asarray(list(values), dtype=np.float64)
    n = arr.size
    if n == 0:
        return {agg: 0.0 for agg in DESC_AGGS}
    std = float(arr.std(ddof=1)) if n > 1 else 0.0
    q1, median, q3 = np.percentile(arr, [25, 50, 75])
    return {
        "Count": float(n),
        "Mean": float(arr.mean()),
        "Std": std,
        "Sem": std / np.sqrt(n),
        "Min": float(arr.min()),
        "Max": float(arr.max()),
        "Q1": float(q1),
        "Median": float(median),
        "Q3": float(q3),
    }


# =============================================================================
# Epoch accumulation
# =============================================================================


@dataclass
class EpochAccumulator:
    """Sums of per-trial statistics over one training epoch."""

    sum_sse: float = 0.0
    sum_avg_sse: float = 0.0
    sum_cos_diff: float = 0.0
    cnt_err: int = 0

    def add(self, stats: TrialStatistics) -> None:
        self.sum_sse += stats.sse
        self.sum_avg_sse += stats.avg_sse
        self.sum_cos_diff += stats.cos_diff
        if stats.is_error:
            self.cnt_err += 1

    def summarize(self, n_trials: int) -> Dict[str, float]:
        """Per-trial means of the epoch, then reset."""
        n = max(n_trials, 1)
        pct_err = self.cnt_err / n
        summary = {
            "SSE": self.sum_sse / n,
            "AvgSSE": self.sum_avg_sse / n,
            "PctErr": pct_err,
            "PctCor": 1.0 - pct_err,
            "CosDiff": self.sum_cos_diff / n,
        }
        self.sum_sse = self.sum_avg_sse = self.sum_cos_diff = 0.0
        self.cnt_err = 0
        return summary


# =============================================================================
# Simulation logs
# =============================================================================


TRAIN_TRIAL_COLUMNS = (
    "Run", "Epoch", "Trial", "TrialName", "SSE", "AvgSSE", "CosDiff",
    "Mem", "TrgOnWasOff", "TrgOffWasOn",
)
SUMMARY_COLUMNS = ("SSE", "AvgSSE", "PctErr", "PctCor", "CosDiff")
CA3_COLUMNS = ("CA312", "CA323", "CA334")


def _ca3_row(cor: CA3Correlations) -> Dict[str, float]:
    return {"CA312": cor.q1_q2, "CA323": cor.q2_m, "CA334": cor.m_p}


def _trial_row(stats: TrialStatistics, mem: MemoryStats) -> Dict[str, float]:
    return {
        "SSE": stats.sse,
        "AvgSSE": stats.avg_sse,
        "CosDiff": stats.cos_diff,
        "Mem": mem.mem,
        "TrgOnWasOff": mem.trg_on_was_off_all,
        "TrgOffWasOn": mem.trg_off_was_on,
    }


class SimLogs:
    """All log tables of one simulation plus their output files.

    Args:
        lay_stat_names: Layers summarized in epoch and test-trial logs
        test_names: Names of test tables (``AB``)
        test_stat_names: Test statistics averaged per test name
        max_epochs: Reported as ``FirstZero`` when memory never became perfect
    """

    def __init__(
        self,
        lay_stat_names: Sequence[str] = ("ECin", "DG", "CA3", "CA1"),
        test_names: Sequence[str] = ("AB",),
        test_stat_names: Sequence[str] = ("Mem", "TrgOnWasOff", "TrgOffWasOn"),
        max_epochs: int = 30,
    ):
        self.lay_stat_names = list(lay_stat_names)
        self.test_names = list(test_names)
        self.test_stat_names = list(test_stat_names)
        self.max_epochs = max_epochs
        test_stat_cols = [f"{tn} {ts}" for tn in self.test_names for ts in self.test_stat_names]

        self.train_trial = LogTable("TrnTrlLog", TRAIN_TRIAL_COLUMNS, "Record of training per input pattern")
        self.train_epoch = LogTable(
            "TrnEpcLog",
            ["Run", "Epoch", *SUMMARY_COLUMNS, "Mem", "TrgOnWasOff", "TrgOffWasOn", *CA3_COLUMNS]
            + [f"{name} ActAvg" for name in self.lay_stat_names],
            "Record of performance over epochs of training",
        )
        self.test_trial = LogTable(
            "TstTrlLog",
            ["Run", "Epoch", "TestNm", "Trial", "TrialName", "SSE", "AvgSSE", "CosDiff",
             "Mem", "TrgOnWasOff", "TrgOffWasOn", *CA3_COLUMNS]
            + [f"{name} ActM.Avg" for name in self.lay_stat_names],
            "Record of testing per input pattern",
        )
        self.test_epoch = LogTable(
            "TstEpcLog",
            ["Run", "Epoch", "PerTrlMSec", *SUMMARY_COLUMNS, *test_stat_cols],
            "Summary stats for testing trials",
        )
        self.test_cycle = LogTable(
            "TstCycLog",
            ["Cycle"] + [f"{n} {s}" for n in self.lay_stat_names for s in ("Ge.Avg", "Act.Avg")],
            "Record of activity etc over one trial by cycle",
        )
        self.run = LogTable(
            "RunLog",
            ["Run", "Params", "NEpochs", "FirstZero", *SUMMARY_COLUMNS, *test_stat_cols],
            "Record of performance at end of training",
        )
        self.run_stats = LogTable("RunStats", self._run_stats_columns())

        self.first_zero = -1
        self.nzero = 0
        self._last_epoch_time: Optional[float] = None
        self._epoch_file: Optional[TsvStream] = None
        self._run_file: Optional[TsvStream] = None

    # -------------------------------------------------------------------------
    # Files
    # -------------------------------------------------------------------------

    @staticmethod
    def file_name(net_name: str, run_name: str, log_name: str) -> str:
        return f"{net_name}_{run_name}_{log_name}.tsv"

    def open_files(
        self,
        out_dir: str | Path,
        net_name: str,
        run_name: str,
        epoch_log: bool = True,
        run_log: bool = True,
    ) -> None:
        self.close()
        out_dir = Path(out_dir)
        if epoch_log:
            path = out_dir / self.file_name(net_name, run_name, "epc")
            self._epoch_file = TsvStream(path, self.test_epoch.columns)
            logger.info("Saving test epoch log to: %s", path)
        if run_log:
            path = out_dir / self.file_name(net_name, run_name, "run")
            self._run_file = TsvStream(path, self.run.columns)
            logger.info("Saving run log to: %s", path)

    def save_run_stats(self, out_dir: str | Path, net_name: str, run_name: str) -> Path:
        path = self.run_stats.save(Path(out_dir) / self.file_name(net_name, run_name, "runs"))
        logger.info("Saved run stats to: %s", path)
        return path

    def close(self) -> None:
        for stream in (self._epoch_file, self._run_file):
            if stream is not None:
                stream.close()
        self._epoch_file = None
        self._run_file = None

    # -------------------------------------------------------------------------
    # Per-run state
    # -------------------------------------------------------------------------

    def reset_run(self) -> None:
        """Fresh per-run tables and early-stopping counters (``NewRun``)."""
        self.train_trial.reset()
        self.train_epoch.reset()
        self.test_epoch.reset()
        self.first_zero = -1
        self.nzero = 0

    # -------------------------------------------------------------------------
    # Training
    # -------------------------------------------------------------------------

    def log_train_trial(
        self,
        run: int,
        epoch: int,
        trial: int,
        trial_name: str,
        stats: TrialStatistics,
        mem: MemoryStats,
    ) -> None:
        if trial == 0:
            self.train_trial.reset()
        row = {"Run": run, "Epoch": epoch, "Trial": trial, "TrialName": trial_name}
        row.update(_trial_row(stats, mem))
        self.train_trial.append(row)

    def log_train_epoch(
        self,
        run: int,
        epoch: int,
        summary: Mapping[str, float],
        ca3: CA3Correlations,
        act_avgs: Mapping[str, float],
    ) -> Dict[str, Any]:
        trl = self.train_trial
        row: Dict[str, Any] = {"Run": run, "Epoch": epoch}
        row.update(summary)
        row.update(_ca3_row(ca3))
        row["Mem"] = trl.mean("Mem")
        row["TrgOnWasOff"] = trl.mean("TrgOnWasOff")
        row["TrgOffWasOn"] = trl.mean("TrgOffWasOn")
        for name in self.lay_stat_names:
            row[f"{name} ActAvg"] = act_avgs.get(name, 0.0)
        return self.train_epoch.append(row)

    # -------------------------------------------------------------------------
    # Testing
    # -------------------------------------------------------------------------

    def log_test_trial(
        self,
        run: int,
        epoch: int,
        test_name: str,
        trial: int,
        trial_name: str,
        stats: TrialStatistics,
        mem: MemoryStats,
        ca3: CA3Correlations,
        act_m_avgs: Mapping[str, float],
    ) -> None:
        if test_name == self.test_names[0] and trial == 0:
            self.test_trial.reset()
        row: Dict[str, Any] = {
            "Run": run,
            "Epoch": epoch,
            "TestNm": test_name,
            "Trial": len(self.test_trial),
            "TrialName": trial_name,
        }
        row.update(_trial_row(stats, mem))
        row.update(_ca3_row(ca3))
        for name in self.lay_stat_names:
            row[f"{name} ActM.Avg"] = act_m_avgs.get(name, 0.0)
        self.test_trial.append(row)

    def log_test_epoch(self, run: int, epoch: int, n_train_items: int) -> Dict[str, Any]:
        """Summarize the test pass and update the perfect-memory counters."""
        now = time.perf_counter()
        if self._last_epoch_time is None:
            per_trl_msec = 0.0
        else:
            # one training and three test presentations per item
            n_trials = max(n_train_items * 4, 1)
            per_trl_msec = (now - self._last_epoch_time) * 1000.0 / n_trials
        self._last_epoch_time = now

        trl = self.test_trial
        row: Dict[str, Any] = {
            "Run": run,
            "Epoch": epoch,
            "PerTrlMSec": per_trl_msec,
            "SSE": trl.sum("SSE"),
            "AvgSSE": trl.mean("AvgSSE"),
            "PctErr": trl.prop_if("SSE", lambda v: v > 0),
            "PctCor": trl.prop_if("SSE", lambda v: v == 0),
            "CosDiff": trl.mean("CosDiff"),
        }
        for test_name in self.test_names:
            rows = [r for r in trl.rows if r["TestNm"] == test_name]
            for stat in self.test_stat_names:
                values = [r[stat] for r in rows]
                row[f"{test_name} {stat}"] = float(np.mean(values)) if values else 0.0

        mem = row.get(f"{self.test_names[0]} Mem", 0.0)
        if self.first_zero < 0 and mem == 1:
            self.first_zero = epoch
        self.nzero = self.nzero + 1 if mem == 1 else 0

        full = self.test_epoch.append(row)
        if self._epoch_file is not None:
            self._epoch_file.write(full)
        return full

    def log_test_cycles(self, rows: Iterable[Mapping[str, float]]) -> None:
        self.test_cycle.reset()
        for row in rows:
            self.test_cycle.append(row)

    # -------------------------------------------------------------------------
    # Runs
    # -------------------------------------------------------------------------

    def log_run(self, run: int, params: str) -> Optional[Dict[str, Any]]:
        """Summarize a finished run from its last test epoch; no-op without tests."""
        last = self.test_epoch.last
        if last is None:
            return None
        row: Dict[str, Any] = {
            "Run": run,
            "Params": params,
            "NEpochs": len(self.test_epoch),
            "FirstZero": self.first_zero if self.first_zero >= 0 else self.max_epochs,
        }
        for col in self.run.columns:
            if col not in row:
                row[col] = last.get(col, 0.0)
        full = self.run.append(row)
        self.compute_run_stats()
        if self._run_file is not None:
            self._run_file.write(full)
        return full

    def _run_stats_columns(self) -> List[str]:
        cols = ["Params"]
        for col in self._run_stats_sources():
            cols += [f"{col}:{agg}" for agg in DESC_AGGS]
        return cols

    def _run_stats_sources(self) -> List[str]:
        return [f"{tn} Mem" for tn in self.test_names] + ["FirstZero", "NEpochs"]

    def compute_run_stats(self) -> LogTable:
        """Descriptive statistics of the run log, one row per parameter set."""
        self.run_stats.reset()
        groups: Dict[str, List[Dict[str, Any]]] = {}
        for row in self.run.rows:
            groups.setdefault(row["Params"], []).append(row)
        for params, rows in groups.items():
            out: Dict[str, Any] = {"Params": params}
            for col in self._run_stats_sources():
                for agg, value in describe(r[col] for r in rows).items():
                    out[f"{col}:{agg}"] = value
            self.run_stats.append(out)
        return self.run_stats
