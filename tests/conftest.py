"""Shared test fixtures and configuration."""

import numpy as np
import pytest
import torch

from hipbench.config import HipConfig, PatternConfig, SimConfig
from hipbench.hippocampus import build_hip_network


@pytest.fixture(autouse=True)
def set_random_seed():
    """Ensure reproducible tests by setting all random seeds.

    This fixture runs automatically for every test to ensure deterministic behavior.
    """
    torch.manual_seed(42)
    np.random.seed(42)


@pytest.fixture
def rng():
    """Seeded numpy generator for pattern generation."""
    return np.random.default_rng(42)


@pytest.fixture
def tiny_hip():
    """Hippocampal config small enough to run full trials in milliseconds."""
    return HipConfig(
        ec_size=(2, 3),
        ec_pool=(3, 3),
        ca1_pool=(2, 2),
        ca3_size=(3, 3),
        cortex_size=(3, 3),
        autohid_pool=(2, 2),
        dg_pcon=0.5,
        ca3_pcon=0.5,
        mossy_pcon=0.5,
        ec_pct_act=0.34,
    )


@pytest.fixture
def tiny_pat():
    return PatternConfig(list_size=2, min_diff_pct=0.3)


@pytest.fixture
def hip_net(tiny_hip):
    """Built and initialized tiny hippocampal network."""
    return build_hip_network(tiny_hip, seed=1)


@pytest.fixture
def tiny_sim_config(tiny_hip, tiny_pat, tmp_path):
    """SimConfig for fast end-to-end simulation tests writing into ``tmp_path``."""
    return SimConfig(
        hip=tiny_hip,
        pat=tiny_pat,
        max_runs=1,
        max_epochs=2,
        pretrain_epochs=1,
        ae_train_epochs=1,
        cyc_per_qtr=5,
        out_dir=str(tmp_path),
        two_factor_outer=("Base",),
        two_factor_inner=("List002",),
    )
