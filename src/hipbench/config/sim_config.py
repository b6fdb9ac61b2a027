"""
Simulation Configuration.

Top-level configuration of a benchmark run: network and pattern parameters,
run/epoch limits, memory threshold, logging switches and the two-factor
parameter sweep. Serializes to JSON so that runs can be reproduced from a
saved file.

Usage:
    config = SimConfig(max_runs=1, max_epochs=5, tag="quick")
    config.save("run.json")
    config = SimConfig.load("run.json")

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from hipbench.config.base import BaseConfig, SerializableConfig
from hipbench.config.hip_config import HipConfig, PatternConfig
from hipbench.errors import ConfigurationError


@dataclass
class SimConfig(BaseConfig, SerializableConfig):
    """Configuration of the benchmark simulation."""

    seed: Optional[int] = 2
    """Random seed; reapplied before every two-factor cell"""

    name: str = "Hip_bench"
    """Network name, used as the prefix of every output file"""

    hip: HipConfig = field(default_factory=HipConfig)
    pat: PatternConfig = field(default_factory=PatternConfig)

    max_runs: int = 10
    max_epochs: int = 30
    pretrain_epochs: int = 3
    ae_train_epochs: int = 3

    nzero_stop: int = 0
    """Stop a run after this many epochs with perfect memory (0 = never)"""

    test_interval: int = 1
    """Test every N training epochs (0 or negative = no periodic testing)"""

    mem_thr: float = 0.34
    """Error proportion below which a trial counts as remembered"""

    hip_only: bool = False
    """Silence the Cortex -> Output shortcut so recall relies on the hippocampus"""

    record: bool = False
    """Copy ECout's recalled activity on each test trial into the TrainNoise Autoin cue"""

    cyc_per_qtr: int = 25
    """Cycles per quarter for protocols without custom quarter lengths"""

    param_set: str = ""
    """Extra named parameter set applied on top of the base parameters"""

    tag: str = ""
    """Extra tag added to output file names"""

    note: str = ""
    save_weights: bool = False
    log_set_params: bool = False
    save_epoch_log: bool = True
    save_run_log: bool = True
    log_test_cycles: bool = True
    out_dir: str = "."

    lay_stat_names: Tuple[str, ...] = ("ECin", "DG", "CA3", "CA1")
    """Layers whose activity is summarized in the logs"""

    test_names: Tuple[str, ...] = ("AB",)
    test_stat_names: Tuple[str, ...] = ("Mem", "TrgOnWasOff", "TrgOffWasOn")

    two_factor_outer: Tuple[str, ...] = ("MedHip",)
    """Outer sweep of parameter sets (choose from SmallHip, MedHip, BigHip)"""

    two_factor_inner: Tuple[str, ...] = ("List040", "List080", "List120", "List160", "List200")
    """Inner sweep of parameter sets (list sizes)"""

    def __post_init__(self) -> None:
        self.lay_stat_names = tuple(self.lay_stat_names)
        self.test_names = tuple(self.test_names)
        self.test_stat_names = tuple(self.test_stat_names)
        self.two_factor_outer = tuple(self.two_factor_outer)
        self.two_factor_inner = tuple(self.two_factor_inner)

    def apply_run_defaults(self) -> None:
        """Fill in zero run limits the way an interactive session expects.

        ``max_runs == 0`` becomes a single run; ``max_epochs == 0`` becomes a
        single epoch that stops on the first perfect-memory epoch, with short
        pretraining phases.
        """
        if self.max_runs == 0:
            self.max_runs = 1
        if self.max_epochs == 0:
            self.max_epochs = 1
            self.nzero_stop = 1
            self.pretrain_epochs = 3
            self.ae_train_epochs = 3

    def validate(self) -> None:
        """Raise ConfigurationError on out-of-range values."""
        self.hip.validate()
        self.pat.validate()
        self.get_torch_dtype()
        if not 0.0 <= self.mem_thr <= 1.0:
            raise ConfigurationError(f"mem_thr must be in [0, 1], got {self.mem_thr}")
        if self.cyc_per_qtr < 1:
            raise ConfigurationError(f"cyc_per_qtr must be positive, got {self.cyc_per_qtr}")
        for name in ("max_runs", "max_epochs", "pretrain_epochs", "ae_train_epochs", "nzero_stop"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be non-negative, got {getattr(self, name)}")

    @property
    def run_name(self) -> str:
        """Name used for logs and files.

        ``params`` (default ``Base``) without a tag, ``tag`` alone for the
        base parameters, ``tag_params`` otherwise.
        """
        params = self.param_set or "Base"
        if not self.tag:
            return params
        return self.tag if params == "Base" else f"{self.tag}_{params}"
