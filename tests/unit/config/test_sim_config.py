"""
Tests for the configuration layer: JSON round-trips, validation, run naming
and named parameter sets.
"""

import json

import pytest

from hipbench.config import (
    HipConfig,
    LayerConfig,
    LearningRuleKind,
    MinusPhase,
    PatternConfig,
    ProjectionConfig,
    SimConfig,
    apply_param_sets,
    base_network_params,
    get_param_set,
    list_param_sets,
    register_param_set,
    resolve_param_target,
)
from hipbench.errors import ConfigurationError


@pytest.mark.unit
class TestSerialization:

    def test_json_round_trip(self, tmp_path):
        config = SimConfig(max_runs=3, tag="t", hip=HipConfig(ca3_size=(5, 5)), two_factor_inner=("List010",))
        path = tmp_path / "sim.json"
        config.save(path)

        loaded = SimConfig.load(path)

        assert loaded == config
        assert loaded.hip.ca3_size == (5, 5)
        assert isinstance(loaded.two_factor_inner, tuple)

    def test_saved_file_is_plain_json(self, tmp_path):
        path = tmp_path / "sim.json"
        SimConfig().save(path)
        data = json.loads(path.read_text())
        assert data["hip"]["ec_size"] == [2, 3]
        assert data["max_epochs"] == 30

    def test_unknown_field_rejected(self):
        with pytest.raises(ConfigurationError):
            SimConfig.from_dict({"max_runs": 1, "bogus": 2})

    def test_unknown_nested_field_rejected(self):
        with pytest.raises(ConfigurationError):
            SimConfig.from_dict({"hip": {"ca5_size": [2, 2]}})

    def test_projection_config_round_trip(self):
        cfg = ProjectionConfig.chl_defaults(lrate=0.2)
        cfg.chl.hebb = 0.05
        cfg.chl.minus_phase = MinusPhase.ACT_Q1
        restored = ProjectionConfig.from_dict(json.loads(cfg.to_json()))
        assert restored.rule is LearningRuleKind.CHL
        assert restored.chl.hebb == pytest.approx(0.05)
        assert restored.chl.minus_phase is MinusPhase.ACT_Q1
        assert restored.norm.on is False


@pytest.mark.unit
class TestValidation:

    def test_defaults_are_valid(self):
        SimConfig().validate()

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"mem_thr": 1.5},
            {"cyc_per_qtr": 0},
            {"max_epochs": -1},
            {"dtype": "int8"},
            {"hip": HipConfig(dg_pcon=0.0)},
            {"hip": HipConfig(ec_pool=(0, 7))},
            {"hip": HipConfig(mem_pools=7)},
            {"pat": PatternConfig(list_size=0)},
            {"pat": PatternConfig(ctxt_flip_pct=1.2)},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            SimConfig(**kwargs).validate()

    def test_projection_config_validation(self):
        with pytest.raises(ConfigurationError):
            ProjectionConfig(lrate=-0.1).validate()

    def test_layer_config_validation(self):
        cfg = LayerConfig()
        cfg.act_avg.init = 0.0
        with pytest.raises(ConfigurationError):
            cfg.validate()

    def test_mem_units(self):
        assert HipConfig(ec_pool=(7, 7), mem_pools=2).mem_units == 98
        assert HipConfig(mem_pools=None).mem_units is None

    def test_dg_size_from_ratio(self):
        assert HipConfig(ca3_size=(20, 20), dg_ratio=1.5).dg_size == (30, 30)


@pytest.mark.unit
class TestRunDefaults:

    def test_run_name(self):
        assert SimConfig().run_name == "Base"
        assert SimConfig(param_set="RP").run_name == "RP"
        assert SimConfig(tag="exp").run_name == "exp"
        assert SimConfig(tag="exp", param_set="RP").run_name == "exp_RP"

    def test_zero_limits_become_interactive_defaults(self):
        config = SimConfig(max_runs=0, max_epochs=0, nzero_stop=0)
        config.apply_run_defaults()
        assert config.max_runs == 1
        assert config.max_epochs == 1
        assert config.nzero_stop == 1

    def test_nonzero_limits_untouched(self):
        config = SimConfig(max_runs=4, max_epochs=12)
        config.apply_run_defaults()
        assert (config.max_runs, config.max_epochs, config.nzero_stop) == (4, 12, 0)


@pytest.mark.unit
class TestParamSets:

    def test_base_network_params_cover_hippocampus(self):
        params = base_network_params()
        assert len(params.projections) == 18
        for name in ("ECinToDG", "CA3ToCA1", "DGToCA3"):
            assert params.projection(name).rule is LearningRuleKind.CHL
        for name in ("ECinToCA3", "CA3ToCA3", "ECinToCA1", "CA1ToECout", "ECoutToCA1"):
            assert params.projection(name).rule is LearningRuleKind.ENCODER
        assert params.projection("DGToCA3").learn is False
        assert params.projection("ECinToDG").chl.minus_phase is MinusPhase.ACT_Q1

    def test_unknown_layer_or_projection(self):
        params = base_network_params()
        with pytest.raises(ConfigurationError):
            params.layer("CA2")
        with pytest.raises(ConfigurationError):
            params.projection("CA2ToCA1")

    def test_registered_sets(self):
        assert {"Base", "RP", "SmallHip", "MedHip", "BigHip"} <= set(list_param_sets())

    def test_list_size_sets_synthesized(self):
        target = resolve_param_target(HipConfig(), PatternConfig(), ["List040"])
        assert target.pat.list_size == 40

    def test_unknown_set(self):
        with pytest.raises(ConfigurationError):
            get_param_set("HugeHip")

    def test_sets_apply_in_order(self):
        target = resolve_param_target(HipConfig(), PatternConfig(), ["SmallHip", "BigHip", "List080"])
        assert target.hip.ca3_size == (40, 40)
        assert target.hip.ca1_pool == (20, 20)
        assert target.pat.list_size == 80

    def test_rp_set_changes_minus_phase(self):
        target = resolve_param_target(HipConfig(), PatternConfig(), ["RP"])
        assert target.projection("CA3ToCA1").chl.minus_phase is MinusPhase.ACT_Q2

    def test_empty_and_base_are_noops(self):
        target = resolve_param_target(HipConfig(), PatternConfig(), ["", "Base"])
        assert target.hip == HipConfig()
        assert target.pat == PatternConfig()

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ConfigurationError):
            register_param_set("RP")(lambda target: None)

    def test_logging_applied_sets(self, caplog):
        target = resolve_param_target(HipConfig(), PatternConfig(), [])
        with caplog.at_level("INFO", logger="hipbench.config.params"):
            apply_param_sets(["MedHip"], target, log_set_params=True)
        assert "MedHip" in caplog.text
