"""
Tests for the rate-coded layer: external input semantics, phase snapshots,
inhibition and error statistics.
"""

import pytest
import torch

from hipbench.core.layer import Layer, LayerType
from hipbench.errors import TopologyError


@pytest.mark.unit
class TestLayerConstruction:

    def test_flat_layer(self):
        layer = Layer("L", (2, 3))
        assert layer.n_units == 6
        assert layer.n_pools == 1
        assert layer.pool_size == 6

    def test_pooled_layer(self):
        layer = Layer("L", (2, 3, 4, 4))
        assert layer.n_pools == 6
        assert layer.pool_size == 16
        assert layer.n_units == 96
        assert layer.pool_slice(2) == slice(32, 48)

    @pytest.mark.parametrize("shape", [(4,), (2, 2, 2), (0, 3)])
    def test_invalid_shape(self, shape):
        with pytest.raises(TopologyError):
            Layer("Bad", shape)


@pytest.mark.unit
class TestExternalInput:

    def test_input_layer_is_hard_clamped(self):
        layer = Layer("In", (1, 4), LayerType.INPUT)
        layer.apply_ext(torch.tensor([1.0, 0.0, 1.0, 0.0]))
        layer.act_from_g()

        assert layer.is_clamped
        # clamped activity never exceeds clamp_max
        assert torch.allclose(layer.act, torch.tensor([0.95, 0.0, 0.95, 0.0]))

    def test_wrong_size_rejected(self):
        layer = Layer("In", (1, 4), LayerType.INPUT)
        with pytest.raises(TopologyError):
            layer.apply_ext(torch.ones(5))

    def test_target_applied_only_for_plus_phase(self):
        layer = Layer("Out", (1, 3), LayerType.TARGET)
        layer.apply_ext(torch.tensor([1.0, 0.0, 1.0]))

        assert layer.has_targ and not layer.has_ext
        assert torch.all(layer.ext == 0.0)

        for quarter in range(3):
            layer.quarter_final(quarter)

        assert layer.has_ext
        assert torch.equal(layer.ext, layer.targ)

    def test_compare_layer_never_clamped(self):
        layer = Layer("Cmp", (1, 3), LayerType.COMPARE)
        layer.apply_ext(torch.ones(3))
        for quarter in range(4):
            layer.quarter_final(quarter)
        assert layer.has_cmpr
        assert not layer.has_ext

    def test_type_change_rederives_flags(self):
        layer = Layer("X", (1, 3), LayerType.TARGET)
        layer.apply_ext(torch.ones(3))
        layer.set_type(LayerType.COMPARE)
        layer.update_ext_flags()
        assert layer.has_cmpr and not layer.has_targ

    def test_init_ext_clears(self):
        layer = Layer("In", (1, 2), LayerType.INPUT)
        layer.apply_ext(torch.ones(2))
        layer.init_ext()
        assert not layer.has_ext
        assert torch.all(layer.ext == 0.0)


@pytest.mark.unit
class TestPhaseSnapshots:

    def test_snapshots_taken_in_quarter_order(self):
        layer = Layer("L", (1, 2))
        for quarter, value in enumerate([0.1, 0.2, 0.3, 0.4]):
            layer.act.fill_(value)
            layer.quarter_final(quarter)

        assert torch.allclose(layer.act_q1, torch.full((2,), 0.1))
        assert torch.allclose(layer.act_q2, torch.full((2,), 0.2))
        assert torch.allclose(layer.act_m, torch.full((2,), 0.3))
        assert torch.allclose(layer.act_p, torch.full((2,), 0.4))
        assert layer.act_m_mean == pytest.approx(0.3)
        assert layer.act_p_mean == pytest.approx(0.4)

    def test_cos_diff_after_plus_phase(self):
        layer = Layer("L", (1, 4))
        layer.act.copy_(torch.tensor([1.0, 0.0, 1.0, 0.0]))
        layer.quarter_final(2)
        layer.quarter_final(3)
        assert layer.cos_diff == pytest.approx(1.0)

    def test_init_acts_resets_state(self):
        layer = Layer("L", (1, 2))
        layer.act.fill_(0.7)
        layer.quarter_final(3)
        layer.init_acts()
        assert torch.all(layer.act == 0.0)
        assert torch.all(layer.act_p == 0.0)
        assert layer.act_p_mean == 0.0
        assert layer.act_p_avg == layer.config.act_avg.init


@pytest.mark.unit
class TestDynamics:

    def test_no_net_input_stays_silent(self):
        layer = Layer("L", (1, 5))
        for _ in range(20):
            layer.ge_from_raw(torch.zeros(5))
            layer.inhib_from_ge_act()
            layer.act_from_g()
            layer.avg_max_act()
        assert torch.all(layer.act == 0.0)

    def test_strong_input_activates_units(self):
        layer = Layer("L", (1, 5))
        layer.config.layer_inhib.on = False
        for _ in range(50):
            layer.ge_from_raw(torch.tensor([2.0, 2.0, 0.0, 0.0, 0.0]))
            layer.inhib_from_ge_act()
            layer.act_from_g()
            layer.avg_max_act()
        assert torch.all(layer.act[:2] > 0.5)
        assert torch.all(layer.act[2:] == 0.0)

    def test_pool_inhibition_is_per_pool(self):
        layer = Layer("P", (1, 2, 1, 2))
        layer.config.layer_inhib.on = False
        layer.config.pool_inhib.on = True
        layer.ge_from_raw(torch.tensor([2.0, 2.0, 0.0, 0.0]))
        layer.inhib_from_ge_act()
        assert layer.gi[0] == layer.gi[1]
        assert layer.gi[0] > layer.gi[2]
        assert layer.gi[2] == 0.0

    def test_decay_state(self):
        layer = Layer("L", (1, 2))
        layer.act.fill_(1.0)
        layer.decay_state(0.5)
        assert torch.allclose(layer.act, torch.full((2,), 0.5))
        layer.decay_state(1.0)
        assert torch.all(layer.act == 0.0)

    def test_input_layer_skips_decay_at_trial_start(self):
        layer = Layer("In", (1, 2), LayerType.INPUT)
        layer.act.fill_(0.9)
        layer.alpha_cycle_init()
        assert torch.allclose(layer.act, torch.full((2,), 0.9))

    def test_running_average_moves_halfway_first(self):
        layer = Layer("L", (1, 2))
        init = layer.config.act_avg.init
        layer.act_p_mean = 0.35
        layer.alpha_cycle_init()
        assert layer.act_p_avg == pytest.approx(init + 0.5 * (0.35 - init))


@pytest.mark.unit
class TestErrorStatistics:

    def test_mse_against_target(self):
        layer = Layer("Out", (1, 4), LayerType.COMPARE)
        layer.apply_ext(torch.tensor([1.0, 0.0, 1.0, 0.0]))
        layer.act_m.copy_(torch.tensor([1.0, 0.0, 0.0, 0.5]))
        sse, avg = layer.mse()
        assert sse == pytest.approx(1.25)
        assert avg == pytest.approx(1.25 / 4)

    def test_mse_tolerance(self):
        layer = Layer("Out", (1, 4), LayerType.COMPARE)
        layer.apply_ext(torch.tensor([1.0, 0.0, 1.0, 0.0]))
        layer.act_m.copy_(torch.tensor([0.7, 0.2, 0.0, 0.0]))
        sse, _ = layer.mse(tol=0.5)
        assert sse == pytest.approx(1.0)
