"""
Tests for log tables, TSV output, epoch aggregation and run statistics.
"""

import csv

import pytest

from hipbench.errors import HipBenchError
from hipbench.hippocampus import CA3Correlations, TrialStatistics
from hipbench.hippocampus.memory_stats import MemoryStats
from hipbench.training import EpochAccumulator, LogTable, SimLogs, TsvStream, describe
from hipbench.training.logs import format_value


def _read_tsv(path):
    with open(path, newline="") as f:
        return list(csv.reader(f, delimiter="\t"))


def _test_pass(logs, mems, run=0, epoch=0):
    for i, mem in enumerate(mems):
        stats = TrialStatistics(sse=0.0 if mem else 2.0, avg_sse=0.1, cos_diff=0.5)
        logs.log_test_trial(
            run, epoch, "AB", i, f"TestAB_{i}", stats, MemoryStats(mem=mem), CA3Correlations(), {}
        )
    return logs.log_test_epoch(run, epoch, n_train_items=len(mems))


@pytest.mark.unit
class TestLogTable:

    def test_missing_columns_filled(self):
        table = LogTable("T", ["A", "B"])
        row = table.append({"A": 1})
        assert row == {"A": 1, "B": 0.0}

    def test_unknown_column_rejected(self):
        table = LogTable("T", ["A"])
        with pytest.raises(HipBenchError):
            table.append({"Z": 1})

    def test_aggregates(self):
        table = LogTable("T", ["X"])
        for x in (0.0, 1.0, 2.0, 5.0):
            table.append({"X": x})
        assert table.mean("X") == pytest.approx(2.0)
        assert table.sum("X") == pytest.approx(8.0)
        assert table.prop_if("X", lambda v: v > 0) == pytest.approx(0.75)
        assert table.last == {"X": 5.0}

    def test_empty_aggregates(self):
        table = LogTable("T", ["X"])
        assert table.mean("X") == 0.0
        assert table.prop_if("X", lambda v: v > 0) == 0.0
        assert table.last is None

    def test_save_tsv(self, tmp_path):
        table = LogTable("T", ["Name", "Value", "Flag"])
        table.append({"Name": "a", "Value": 1.0 / 3.0, "Flag": True})
        rows = _read_tsv(table.save(tmp_path / "sub" / "t.tsv"))
        assert rows == [["Name", "Value", "Flag"], ["a", "0.3333", "1"]]

    def test_format_value(self):
        assert format_value(123456.0) == "1.235e+05"
        assert format_value(7) == "7"
        assert format_value(False) == "0"


@pytest.mark.unit
class TestTsvStream:

    def test_header_written_on_open(self, tmp_path):
        path = tmp_path / "s.tsv"
        stream = TsvStream(path, ["A", "B"])
        assert _read_tsv(path) == [["A", "B"]]
        stream.write({"A": 1, "B": 0.5})
        stream.close()
        assert _read_tsv(path) == [["A", "B"], ["1", "0.5"]]

    def test_write_after_close(self, tmp_path):
        with TsvStream(tmp_path / "s.tsv", ["A"]) as stream:
            pass
        with pytest.raises(HipBenchError):
            stream.write({"A": 1})


@pytest.mark.unit
class TestDescribe:

    def test_statistics(self):
        desc = describe([1.0, 2.0, 3.0, 4.0])
        assert desc["Count"] == 4.0
        assert desc["Mean"] == pytest.approx(2.5)
        assert desc["Std"] == pytest.approx(1.2909944)
        assert desc["Sem"] == pytest.approx(1.2909944 / 2.0)
        assert desc["Min"] == 1.0 and desc["Max"] == 4.0
        assert desc["Median"] == pytest.approx(2.5)
        assert desc["Q1"] == pytest.approx(1.75)
        assert desc["Q3"] == pytest.approx(3.25)

    def test_single_value_has_zero_spread(self):
        desc = describe([7.0])
        assert desc["Std"] == 0.0
        assert desc["Median"] == 7.0

    def test_empty(self):
        assert describe([])["Count"] == 0.0


@pytest.mark.unit
class TestEpochAccumulator:

    def test_summary_and_reset(self):
        acc = EpochAccumulator()
        acc.add(TrialStatistics(sse=2.0, avg_sse=0.5, cos_diff=0.2))
        acc.add(TrialStatistics(sse=0.0, avg_sse=0.0, cos_diff=0.6))

        summary = acc.summarize(2)

        assert summary["SSE"] == pytest.approx(1.0)
        assert summary["AvgSSE"] == pytest.approx(0.25)
        assert summary["PctErr"] == pytest.approx(0.5)
        assert summary["PctCor"] == pytest.approx(0.5)
        assert summary["CosDiff"] == pytest.approx(0.4)
        assert acc.cnt_err == 0 and acc.sum_sse == 0.0

    def test_zero_trials(self):
        assert EpochAccumulator().summarize(0)["PctCor"] == 1.0


@pytest.mark.unit
class TestSimLogs:

    def test_column_layout(self):
        logs = SimLogs(lay_stat_names=["CA3"], test_names=["AB"], test_stat_names=["Mem"])
        assert "CA3 ActAvg" in logs.train_epoch.columns
        assert "CA3 ActM.Avg" in logs.test_trial.columns
        assert "AB Mem" in logs.test_epoch.columns
        assert logs.test_cycle.columns == ["Cycle", "CA3 Ge.Avg", "CA3 Act.Avg"]
        assert "AB Mem:Mean" in logs.run_stats.columns
        assert "FirstZero:Q3" in logs.run_stats.columns

    def test_train_trial_log_resets_each_epoch(self):
        logs = SimLogs()
        stats = TrialStatistics()
        for trial in (0, 1, 0):
            logs.log_train_trial(0, 0, trial, f"TrainAB_{trial}", stats, MemoryStats(mem=1.0))
        assert len(logs.train_trial) == 1

    def test_train_epoch_averages_memory(self):
        logs = SimLogs(lay_stat_names=["CA3"])
        for trial, mem in enumerate((1.0, 0.0, 1.0, 1.0)):
            logs.log_train_trial(0, 0, trial, "x", TrialStatistics(), MemoryStats(mem=mem))
        row = logs.log_train_epoch(0, 0, EpochAccumulator().summarize(4), CA3Correlations(0.1, 0.2, 0.3), {"CA3": 0.02})
        assert row["Mem"] == pytest.approx(0.75)
        assert row["CA312"] == pytest.approx(0.1)
        assert row["CA3 ActAvg"] == pytest.approx(0.02)

    def test_test_epoch_summary(self):
        logs = SimLogs()
        row = _test_pass(logs, [1.0, 0.0, 1.0, 1.0])
        assert row["AB Mem"] == pytest.approx(0.75)
        assert row["SSE"] == pytest.approx(2.0)
        assert row["PctErr"] == pytest.approx(0.25)
        assert row["PctCor"] == pytest.approx(0.75)
        assert row["PerTrlMSec"] == 0.0
        assert [r["Trial"] for r in logs.test_trial.rows] == [0, 1, 2, 3]

    def test_first_zero_and_consecutive_count(self):
        logs = SimLogs()
        _test_pass(logs, [0.0, 1.0], epoch=0)
        assert logs.first_zero == -1
        _test_pass(logs, [1.0, 1.0], epoch=1)
        _test_pass(logs, [1.0, 1.0], epoch=2)
        assert logs.first_zero == 1
        assert logs.nzero == 2
        _test_pass(logs, [1.0, 0.0], epoch=3)
        assert logs.nzero == 0
        assert logs.first_zero == 1

    def test_run_row_from_last_test_epoch(self):
        logs = SimLogs(max_epochs=30)
        _test_pass(logs, [0.0, 1.0], epoch=0)
        _test_pass(logs, [1.0, 1.0], epoch=1)
        row = logs.log_run(0, "Base")
        assert row["NEpochs"] == 2
        assert row["FirstZero"] == 1
        assert row["AB Mem"] == pytest.approx(1.0)

    def test_never_perfect_reports_max_epochs(self):
        logs = SimLogs(max_epochs=12)
        _test_pass(logs, [0.0, 1.0])
        assert logs.log_run(0, "Base")["FirstZero"] == 12

    def test_run_without_tests_is_skipped(self):
        logs = SimLogs()
        assert logs.log_run(0, "Base") is None
        assert len(logs.run) == 0

    def test_run_stats_grouped_by_params(self):
        logs = SimLogs(max_epochs=10)
        for params, mems in (("A", [1.0, 1.0]), ("A", [0.0, 1.0]), ("B", [1.0, 0.0])):
            logs.reset_run()
            _test_pass(logs, mems)
            logs.log_run(0, params)
        stats = {row["Params"]: row for row in logs.run_stats.rows}
        assert set(stats) == {"A", "B"}
        assert stats["A"]["AB Mem:Count"] == 2.0
        assert stats["A"]["AB Mem:Mean"] == pytest.approx(0.75)
        assert stats["B"]["FirstZero:Max"] == 10.0

    def test_files(self, tmp_path):
        logs = SimLogs()
        logs.open_files(tmp_path, "Hip_bench", "Base")
        _test_pass(logs, [1.0])
        logs.log_run(0, "Base")
        logs.close()
        path = logs.save_run_stats(tmp_path, "Hip_bench", "Base")

        epc = _read_tsv(tmp_path / "Hip_bench_Base_epc.tsv")
        run = _read_tsv(tmp_path / "Hip_bench_Base_run.tsv")
        assert epc[0] == logs.test_epoch.columns
        assert len(epc) == 2
        assert run[1][run[0].index("Params")] == "Base"
        assert path.name == "Hip_bench_Base_runs.tsv"

    def test_disabled_files_not_created(self, tmp_path):
        logs = SimLogs()
        logs.open_files(tmp_path, "Hip_bench", "Base", epoch_log=False, run_log=False)
        _test_pass(logs, [1.0])
        logs.close()
        assert list(tmp_path.iterdir()) == []

    def test_test_cycles_replaced(self):
        logs = SimLogs(lay_stat_names=["CA1"])
        logs.log_test_cycles([{"Cycle": 0, "CA1 Act.Avg": 0.1}, {"Cycle": 1}])
        logs.log_test_cycles([{"Cycle": 0}])
        assert len(logs.test_cycle) == 1
