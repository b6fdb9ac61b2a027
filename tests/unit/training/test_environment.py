"""
Tests for the fixed-table environment and its counters.
"""

import numpy as np
import pytest

from hipbench.errors import ConfigurationError
from hipbench.training import Counter, FixedTableEnv, PatternTable


def _table(n_rows=3, name="T"):
    return PatternTable(name, {"Input": np.arange(n_rows * 2, dtype=np.float32).reshape(n_rows, 2)})


@pytest.mark.unit
class TestCounter:

    def test_incr_tracks_previous(self):
        ctr = Counter()
        ctr.incr()
        assert (ctr.cur, ctr.prv, ctr.changed) == (1, 0, True)
        ctr.same()
        assert not ctr.changed

    def test_wraps_at_max(self):
        ctr = Counter(max=2)
        assert ctr.incr() is False
        assert ctr.incr() is True
        assert ctr.cur == 0

    def test_unbounded(self):
        ctr = Counter()
        for _ in range(100):
            assert ctr.incr() is False
        assert ctr.cur == 100


@pytest.mark.unit
class TestFixedTableEnv:

    def test_first_step_presents_row_zero(self):
        env = FixedTableEnv("Env", _table())
        assert env.trial.cur == -1
        env.step()
        assert env.trial.cur == 0
        assert env.trial_name == "T_0"
        assert np.array_equal(env.state()["Input"], [0.0, 1.0])

    def test_epoch_changes_when_trials_wrap(self):
        env = FixedTableEnv("Env", _table(3))
        for _ in range(3):
            env.step()
            assert env.counter("epoch") == (0, -1, False)
        env.step()
        assert env.trial.cur == 0
        assert env.counter("epoch") == (1, 0, True)
        env.step()
        assert env.counter("epoch")[2] is False

    def test_sequential_order(self):
        env = FixedTableEnv("Env", _table(4))
        names = []
        for _ in range(4):
            env.step()
            names.append(env.trial_name)
        assert names == ["T_0", "T_1", "T_2", "T_3"]

    def test_permuted_order_covers_all_rows(self):
        env = FixedTableEnv("Env", _table(5), sequential=False, rng=np.random.default_rng(0))
        seen = set()
        for _ in range(5):
            env.step()
            seen.add(env.row_index)
        assert seen == set(range(5))

    def test_init_restarts_run(self):
        env = FixedTableEnv("Env", _table(2))
        for _ in range(5):
            env.step()
        env.init(3)
        assert env.run.cur == 3
        assert env.epoch.cur == 0
        assert env.trial.cur == -1

    def test_set_table_resizes_epoch(self):
        env = FixedTableEnv("Env", _table(2))
        env.set_table(_table(4, "U"))
        env.init(0)
        for _ in range(4):
            env.step()
        assert env.counter("epoch")[2] is False
        assert env.trial_name == "U_3"

    def test_empty_table_rejected(self):
        with pytest.raises(ConfigurationError):
            FixedTableEnv("Env", PatternTable("Empty"))

    def test_set_trial(self):
        env = FixedTableEnv("Env", _table(3))
        env.set_trial(2)
        assert env.trial_name == "T_2"
        with pytest.raises(ConfigurationError):
            env.set_trial(3)

    def test_unknown_counter(self):
        env = FixedTableEnv("Env", _table())
        with pytest.raises(ConfigurationError):
            env.counter("cycle")
