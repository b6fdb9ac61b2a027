"""
Tests for learning rule strategies and weight-change shaping.
"""

import pytest
import torch

from hipbench.config import (
    LearningRuleKind,
    MomentumConfig,
    NormConfig,
    ProjectionConfig,
    WtBalConfig,
    XCalConfig,
)
from hipbench.core.connectivity import Full
from hipbench.core.layer import Layer
from hipbench.core.projection import Projection
from hipbench.errors import ConfigurationError
from hipbench.learning import (
    ContrastiveHebbianRule,
    EncoderRule,
    StandardRule,
    create_learning_rule,
)
from hipbench.learning.shaping import (
    normalize_and_integrate,
    sig_fun,
    sig_inv,
    weight_balance_factors,
    xcal,
)


@pytest.mark.unit
class TestRuleFactory:
    """Rule selection by kind."""

    @pytest.mark.parametrize(
        "kind,cls",
        [
            (LearningRuleKind.STANDARD, StandardRule),
            (LearningRuleKind.ENCODER, EncoderRule),
            (LearningRuleKind.CHL, ContrastiveHebbianRule),
            ("chl", ContrastiveHebbianRule),
        ],
    )
    def test_create_by_kind(self, kind, cls):
        assert isinstance(create_learning_rule(kind), cls)

    def test_unknown_kind_raises(self):
        with pytest.raises(ConfigurationError):
            create_learning_rule("hebbian")

    def test_projection_picks_rule_from_config(self):
        send, recv = Layer("A", (1, 3)), Layer("B", (1, 2))
        mask = Full().connect(send.shape, recv.shape)
        proj = Projection("AToB", send, recv, mask, ProjectionConfig(rule=LearningRuleKind.ENCODER))
        assert isinstance(proj.rule, EncoderRule)


@pytest.mark.unit
class TestEncoderRule:
    """Plus phase against the end of the first quarter."""

    def test_error_positive_when_plus_exceeds_q1(self):
        send, recv = Layer("A", (1, 3)), Layer("B", (1, 2))
        cfg = ProjectionConfig(rule=LearningRuleKind.ENCODER, lrate=0.1)
        cfg.norm.on = False
        cfg.momentum.on = False
        cfg.xcal.set_l_lrn = True
        cfg.xcal.l_lrn = 0.0
        proj = Projection("AToB", send, recv, Full().connect(send.shape, recv.shape), cfg)
        send.act_p.fill_(1.0)
        recv.act_p.fill_(1.0)

        metrics = proj.rule.compute_dwt(proj)

        assert torch.allclose(proj.synapses.dwt, torch.full((2, 3), 0.1))
        assert metrics["ltp"] == 6.0
        assert metrics["ltd"] == 0.0


@pytest.mark.unit
class TestSigmoidContrast:
    """Linear <-> effective weight mapping."""

    def test_fixed_points(self):
        w = torch.tensor([0.0, 0.5, 1.0])
        assert torch.allclose(sig_fun(w), w)

    def test_contrast_enhancement(self):
        w = torch.tensor([0.3, 0.7])
        out = sig_fun(w)
        assert out[0] < 0.3
        assert out[1] > 0.7

    def test_inverse(self):
        w = torch.linspace(0.05, 0.95, 19)
        assert torch.allclose(sig_inv(sig_fun(w)), w, atol=1e-5)


@pytest.mark.unit
class TestXCal:
    """Check-mark function."""

    def test_below_d_thr_is_zero(self):
        cfg = XCalConfig()
        out = xcal(torch.tensor([0.00001]), torch.tensor([0.5]), cfg)
        assert out.item() == 0.0

    def test_linear_above_reversal(self):
        cfg = XCalConfig()
        out = xcal(torch.tensor([0.8]), torch.tensor([0.5]), cfg)
        assert out.item() == pytest.approx(0.3)

    def test_reverses_below_reversal_point(self):
        cfg = XCalConfig(d_rev=0.1)
        # rev = 0.05, srval below it: -srval * 9
        out = xcal(torch.tensor([0.01]), torch.tensor([0.5]), cfg)
        assert out.item() == pytest.approx(-0.09)


@pytest.mark.unit
class TestNormalizeAndIntegrate:
    """Delta normalization and momentum."""

    def test_passthrough_when_disabled(self):
        dwt = torch.tensor([[0.2, -0.1]])
        out = normalize_and_integrate(
            dwt, torch.zeros(1, 2), torch.zeros(1, 2), NormConfig(on=False), MomentumConfig(on=False)
        )
        assert torch.equal(out, dwt)

    def test_norm_tracks_running_max(self):
        norm = torch.zeros(1, 2)
        dwt = torch.tensor([[0.2, -0.4]])
        normalize_and_integrate(dwt, norm, torch.zeros(1, 2), NormConfig(), MomentumConfig(on=False))
        assert torch.allclose(norm, torch.tensor([[0.2, 0.4]]))

    def test_momentum_accumulates(self):
        moment = torch.zeros(1, 1)
        cfg = MomentumConfig(m_tau=10.0, lr_comp=1.0)
        dwt = torch.tensor([[1.0]])
        normalize_and_integrate(dwt, torch.zeros(1, 1), moment, NormConfig(on=False), cfg)
        out = normalize_and_integrate(dwt, torch.zeros(1, 1), moment, NormConfig(on=False), cfg)
        assert out.item() == pytest.approx(1.9)


@pytest.mark.unit
class TestWeightBalance:
    """Per-receiver balance factors."""

    def test_low_average_boosts_increases(self):
        wt = torch.tensor([[0.3, 0.3, 0.1]])
        mask = torch.ones_like(wt, dtype=torch.bool)
        avg, inc, dec = weight_balance_factors(wt, mask, WtBalConfig(on=True))
        assert avg.item() == pytest.approx(0.3)
        assert inc.item() > 1.0
        assert dec.item() < 1.0

    def test_high_average_damps_increases(self):
        wt = torch.tensor([[0.9, 0.8]])
        mask = torch.ones_like(wt, dtype=torch.bool)
        _, inc, dec = weight_balance_factors(wt, mask, WtBalConfig(on=True))
        assert inc.item() < 1.0
        assert dec.item() > 1.0

    def test_receiver_without_counted_weights(self):
        wt = torch.tensor([[0.1, 0.1]])
        mask = torch.ones_like(wt, dtype=torch.bool)
        avg, inc, dec = weight_balance_factors(wt, mask, WtBalConfig(on=True))
        assert avg.item() == 0.0
        assert inc.item() + dec.item() == pytest.approx(2.0)
