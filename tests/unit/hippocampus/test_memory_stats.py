"""
Tests for memory-completion scoring, CA3 quarter correlations and trial
statistics.
"""

import pytest
import torch

from hipbench.core.layer import Layer, LayerType
from hipbench.hippocampus import MemoryStatsTracker, ca3_correlations, trial_statistics
from hipbench.hippocampus.memory_stats import MemoryStats


def _layers(targ, act_m, ecin_q1):
    output = Layer("Output", (1, len(targ)), LayerType.TARGET)
    output.apply_ext(torch.tensor(targ, dtype=torch.float32))
    output.act_m.copy_(torch.tensor(act_m, dtype=torch.float32))
    ecin = Layer("ECin", (1, len(targ)))
    ecin.act_q1.copy_(torch.tensor(ecin_q1, dtype=torch.float32))
    return output, ecin


@pytest.mark.unit
class TestTrainingScore:

    def test_perfect_recall_is_remembered(self):
        output, ecin = _layers([1, 1, 0, 0], [0.9, 0.8, 0.1, 0.0], [1, 1, 0, 0])
        stats = MemoryStatsTracker().update(output, ecin, train=True)
        assert stats.mem == 1.0
        assert stats.trg_on_was_off_all == 0.0
        assert stats.trg_off_was_on == 0.0

    def test_miss_rate_below_threshold(self):
        output, ecin = _layers([1, 1, 1, 0, 0, 0], [0.9, 0.9, 0.1, 0.0, 0.0, 0.0], [0] * 6)
        stats = MemoryStatsTracker(mem_thr=0.34).update(output, ecin, train=True)
        assert stats.trg_on_was_off_all == pytest.approx(1 / 3)
        assert stats.mem == 1.0

    def test_rate_equal_to_threshold_is_not_remembered(self):
        output, ecin = _layers([1, 1, 1, 0, 0, 0], [0.9, 0.9, 0.1, 0.0, 0.0, 0.0], [0] * 6)
        stats = MemoryStatsTracker(mem_thr=1.0 / 3.0).update(output, ecin, train=True)
        assert stats.mem == 0.0

    def test_false_alarms_prevent_memory(self):
        output, ecin = _layers([1, 0, 0], [0.9, 0.9, 0.0], [0, 0, 0])
        stats = MemoryStatsTracker().update(output, ecin, train=True)
        assert stats.trg_off_was_on == pytest.approx(0.5)
        assert stats.mem == 0.0

    def test_empty_target_rates_are_zero(self):
        output, ecin = _layers([0, 0, 0], [0.0, 0.0, 0.0], [0, 0, 0])
        stats = MemoryStatsTracker().update(output, ecin, train=True)
        assert stats.trg_on_n == 0
        assert stats.trg_on_was_off_all == 0.0
        assert stats.trg_on_was_off_cmp == 0.0


@pytest.mark.unit
class TestTestScore:

    def test_only_completion_bits_count(self):
        # unit 0 was cued (present in ECin after quarter 1); unit 1 had to be recalled
        output, ecin = _layers([1, 1, 0, 0], [0.0, 0.9, 0.0, 0.0], [1, 0, 0, 0])
        stats = MemoryStatsTracker().update(output, ecin, train=False)
        assert stats.cmp_n == 1
        assert stats.trg_on_was_off_all == pytest.approx(0.5)
        assert stats.trg_on_was_off_cmp == 0.0
        assert stats.mem == 1.0

    def test_no_completion_bits_keeps_previous_score(self):
        tracker = MemoryStatsTracker()
        tracker.stats = MemoryStats(mem=1.0)
        output, ecin = _layers([1, 0], [0.0, 0.0], [1, 0])
        stats = tracker.update(output, ecin, train=False)
        assert stats.cmp_n == 0
        assert stats.mem == 1.0

        tracker.reset()
        assert tracker.update(output, ecin, train=False).mem == 0.0

    def test_scored_units_limited(self):
        # only the first two units are scored; unit 3 is a false alarm outside them
        output, ecin = _layers([1, 0, 0, 0], [0.9, 0.0, 0.0, 0.9], [0, 0, 0, 0])
        stats = MemoryStatsTracker(n_units=2).update(output, ecin, train=True)
        assert stats.trg_off_was_on == 0.0
        assert stats.mem == 1.0


@pytest.mark.unit
class TestCA3Correlations:

    def test_identical_snapshots(self):
        ca3 = Layer("CA3", (1, 4))
        pattern = torch.tensor([1.0, 0.0, 0.5, 0.0])
        for snap in (ca3.act_q1, ca3.act_q2, ca3.act_m, ca3.act_p):
            snap.copy_(pattern)
        cor = ca3_correlations(ca3)
        assert cor.q1_q2 == pytest.approx(1.0)
        assert cor.q2_m == pytest.approx(1.0)
        assert cor.m_p == pytest.approx(1.0)

    def test_silent_snapshot_gives_zero(self):
        ca3 = Layer("CA3", (1, 4))
        ca3.act_q2.copy_(torch.tensor([1.0, 0.0, 1.0, 0.0]))
        assert ca3_correlations(ca3).q1_q2 == 0.0


@pytest.mark.unit
class TestTrialStatistics:

    def test_combines_ecout_error_and_memory(self):
        ecout = Layer("ECout", (1, 4), LayerType.COMPARE)
        ecout.apply_ext(torch.tensor([1.0, 0.0, 1.0, 0.0]))
        ecout.act_m.copy_(torch.tensor([1.0, 0.0, 0.0, 0.0]))
        mem = MemoryStats(mem=1.0, trg_on_was_off_all=0.25, trg_on_was_off_cmp=0.5, trg_off_was_on=0.1)

        train = trial_statistics(ecout, mem, train=True)
        test = trial_statistics(ecout, mem, train=False)

        assert train.sse == pytest.approx(1.0)
        assert train.is_error
        assert train.mem_score == 1.0
        assert train.false_positive_rate == pytest.approx(0.1)
        assert train.false_negative_rate == pytest.approx(0.25)
        assert test.false_negative_rate == pytest.approx(0.5)

    def test_within_tolerance_is_not_an_error(self):
        ecout = Layer("ECout", (1, 2), LayerType.COMPARE)
        ecout.apply_ext(torch.tensor([1.0, 0.0]))
        ecout.act_m.copy_(torch.tensor([0.8, 0.3]))
        stats = trial_statistics(ecout, MemoryStats(), train=True)
        assert stats.sse == 0.0
        assert not stats.is_error
