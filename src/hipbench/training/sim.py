"""
Hippocampal Benchmark Simulation Driver.

``HipBenchSim`` is the explicit simulation context: it owns the network, the
pattern tables, the train / test environments, the alpha-cycle protocols
and the logs, and drives them trial by trial.

Trial flow (training):

1. start a new run if the previous one ended
2. ``train_env.step()``; on an epoch boundary log the finished epoch, test
   every ``test_interval`` epochs and end the run once memory has been
   perfect for ``nzero_stop`` epochs or ``max_epochs`` is reached
3. apply Input / Output patterns, run one training alpha cycle, accumulate
   trial statistics and log the trial

Protocols share one ``MemoryStatsTracker`` and one ``CycleTime``, so memory
scores and cycle counters carry over from trial to trial whatever protocol
ran last. The stop flag is checked only between trials.

Usage:
======
    sim = HipBenchSim(SimConfig(max_runs=1, max_epochs=5))
    sim.init()
    sim.train()
    print(sim.logs.run.rows)

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
import torch

from hipbench.config.hip_config import HipConfig, PatternConfig
from hipbench.config.params import resolve_param_target
from hipbench.config.sim_config import SimConfig
from hipbench.core.layer import LayerType
from hipbench.core.network import Network
from hipbench.core.time import CycleTime
from hipbench.errors import ConfigurationError
from hipbench.hippocampus.memory_stats import CA3Correlations, MemoryStatsTracker, TrialStatistics
from hipbench.hippocampus.observers import TestCycleRecorder
from hipbench.hippocampus.protocols import PROTOCOLS, AlphaCycleProtocol, create_protocol
from hipbench.hippocampus.topology import HipNetwork, build_hip_network
from hipbench.training.environment import FixedTableEnv
from hipbench.training.logs import EpochAccumulator, SimLogs
from hipbench.training.patterns import PatternSet, build_patterns

logger = logging.getLogger(__name__)

SimCallback = Callable[[str, Dict[str, Any]], None]

STUDY_LAYERS = ("Input", "Output")
RP_LAYERS = ("Input", "ECout")
AE_LAYERS = ("Autoin", "Auto")


class HipBenchSim:
    """Runs the hippocampal paired-associate benchmark.

    Args:
        config: Simulation configuration
        pretrained: Weight file whose weights start every run in place of
            pretraining

    Callbacks registered in ``callbacks`` are called with ``("epoch", row)``
    after each training epoch and ``("run", row)`` after each run.
    """

    def __init__(self, config: Optional[SimConfig] = None, pretrained: Optional[str | Path] = None):
        self.config = config or SimConfig()
        self.pretrained = Path(pretrained) if pretrained is not None else None
        self.pretrained_state: Optional[Dict[str, Any]] = None
        """Weights every new run starts from (set by ``pretrain`` or ``pretrained``)"""
        self.callbacks: List[SimCallback] = []

        self.hip: HipConfig = self.config.hip
        self.pat: PatternConfig = self.config.pat
        self.rng = np.random.default_rng(self.config.seed)
        self.time = CycleTime(cyc_per_qtr=self.config.cyc_per_qtr)
        self.mem_tracker = MemoryStatsTracker(mem_thr=self.config.mem_thr)
        self.cycle_recorder = TestCycleRecorder(self.config.lay_stat_names)
        self.epoch_acc = EpochAccumulator()
        self.logs = SimLogs(
            lay_stat_names=self.config.lay_stat_names,
            test_names=self.config.test_names,
            test_stat_names=self.config.test_stat_names,
            max_epochs=self.config.max_epochs,
        )

        self.hip_net: Optional[HipNetwork] = None
        self.patterns: Optional[PatternSet] = None
        self.train_env: Optional[FixedTableEnv] = None
        self.test_env: Optional[FixedTableEnv] = None
        self.protocols: Dict[str, AlphaCycleProtocol] = {}

        self.test_name = ""
        self.ca3_cor = CA3Correlations()
        self.trial_stats_last = TrialStatistics()
        self.needs_new_run = True
        self._stop = False

    # =========================================================================
    # Setup
    # =========================================================================

    def _reseed(self) -> None:
        seed = self.config.seed
        if seed is None:
            return
        self.rng = np.random.default_rng(seed)
        torch.manual_seed(seed)

    def configure(self, param_sets: Sequence[str] = ()) -> None:
        """Build network, patterns, environments and protocols.

        The base parameters, ``config.param_set`` and then ``param_sets`` are
        applied to copies of the configured hippocampal and pattern settings.
        """
        cfg = self.config
        names = ["Base", cfg.param_set, *param_sets]
        target = resolve_param_target(
            copy.deepcopy(cfg.hip),
            copy.deepcopy(cfg.pat),
            names,
            log_set_params=cfg.log_set_params,
        )
        self.hip, self.pat = target.hip, target.pat

        self.hip_net = build_hip_network(
            self.hip,
            target.network,
            name=cfg.name,
            device=cfg.get_torch_device(),
            dtype=cfg.get_torch_dtype(),
            seed=cfg.seed,
        )
        self.patterns = build_patterns(self.hip, self.pat, self.rng)

        self.mem_tracker = MemoryStatsTracker(mem_thr=cfg.mem_thr, n_units=self.hip.mem_units)
        self.time = CycleTime(cyc_per_qtr=cfg.cyc_per_qtr)
        self.protocols = {
            name: create_protocol(
                name,
                self.hip_net,
                self.hip,
                time=self.time,
                mem_tracker=self.mem_tracker,
                hip_only=cfg.hip_only,
            )
            for name in PROTOCOLS
        }
        for protocol in self.protocols.values():
            protocol.add_observer(self.cycle_recorder)
        self.pretrained_state = None
        if self.pretrained is not None:
            self.load_weights(self.pretrained)
            self.pretrained_state = self.net.weights_state()
        self.configure_env()

    def configure_env(self) -> None:
        """Fresh train (AB) and test environments starting at run 0."""
        if self.patterns is None:
            raise ConfigurationError("patterns are not built; call configure() first")
        self.train_env = FixedTableEnv("TrainEnv", self.patterns.train_ab, rng=self.rng)
        self.train_env.run.max = self.config.max_runs
        self.test_env = FixedTableEnv("TestEnv", self.patterns.test_ab, rng=self.rng)
        self.needs_new_run = True

    def init(self) -> None:
        """Validate the config, reseed, rebuild everything and start run 0."""
        self.config.apply_run_defaults()
        self.config.validate()
        self.logs.max_epochs = self.config.max_epochs
        self._reseed()
        self.configure()
        self._stop = False
        self.new_run()

    @property
    def net(self) -> Network:
        return self._require_net().net

    def _require_net(self) -> HipNetwork:
        if self.hip_net is None:
            raise ConfigurationError("simulation is not initialized; call init() first")
        return self.hip_net

    @property
    def run_name(self) -> str:
        return self.config.run_name

    # =========================================================================
    # Runs
    # =========================================================================

    def new_run(self) -> None:
        """Fresh weights, environments, statistics and per-run logs."""
        self._require_net()
        run = self.train_env.run.cur
        self.train_env.set_table(self.patterns.train_ab)
        self.train_env.init(run)
        self.test_env.init(run)
        self.time.reset()
        self.net.init_weights()
        if self.pretrained_state is not None:
            self.net.load_weights_state(self.pretrained_state)
        self.init_stats()
        self.logs.reset_run()
        self.needs_new_run = False
        logger.debug("Starting run %d (%s)", run, self.run_name)

    def init_stats(self) -> None:
        self.epoch_acc = EpochAccumulator()
        self.mem_tracker.reset()
        self.trial_stats_last = TrialStatistics()

    def run_end(self) -> None:
        """Log the finished run and optionally save its weights."""
        row = self.logs.log_run(self.train_env.run.cur, self.run_name)
        if row is not None:
            self._emit("run", row)
        if self.config.save_weights:
            self.save_weights(self.weights_file_name())

    def stop(self) -> None:
        """Request a stop; honored before the next trial starts."""
        self._stop = True

    @property
    def stopped(self) -> bool:
        return self._stop

    # =========================================================================
    # Inputs and statistics
    # =========================================================================

    def apply_inputs(self, env: FixedTableEnv, layer_names: Sequence[str] = STUDY_LAYERS) -> None:
        """Clear external input, then apply the environment's patterns to ``layer_names``."""
        self.net.init_ext()
        state = env.state()
        for name in layer_names:
            if name in state:
                self.net.layer(name).apply_ext(torch.from_numpy(np.ascontiguousarray(state[name])))

    def _set_layer_type(self, name: str, layer_type: LayerType) -> None:
        layer = self.net.layer(name)
        layer.set_type(layer_type)
        layer.update_ext_flags()

    def _run_protocol(self, name: str, train: bool) -> AlphaCycleProtocol:
        protocol = self.protocols[name]
        if not train:
            self.cycle_recorder.clear()
        protocol.run_trial(train)
        if protocol.scores_ca3:
            self.ca3_cor = protocol.ca3_cor
        return protocol

    def trial_stats(self, protocol: AlphaCycleProtocol, train: bool, accum: bool) -> TrialStatistics:
        """ECout reconstruction error and memory scores of the trial just run."""
        stats = protocol.compute_trial_statistics(train)
        if accum:
            self.epoch_acc.add(stats)
        self.trial_stats_last = stats
        return stats

    def _emit(self, event: str, row: Dict[str, Any]) -> None:
        for callback in self.callbacks:
            callback(event, row)

    # =========================================================================
    # Training trials
    # =========================================================================

    def _end_of_epoch(self, max_epochs: int) -> bool:
        """Handle a training epoch boundary; True when the current trial must not run."""
        env = self.train_env
        epc, _, changed = env.counter("epoch")
        if not changed:
            return False
        self.log_train_epoch()
        cfg = self.config
        if cfg.test_interval > 0 and epc % cfg.test_interval == 0:
            self.test_all()
        learned = cfg.nzero_stop > 0 and self.logs.nzero >= cfg.nzero_stop
        if learned or epc >= max_epochs:
            self.run_end()
            if env.run.incr():
                self._stop = True
            else:
                self.needs_new_run = True
            return True
        return False

    def _log_train_trial(self, stats: TrialStatistics) -> None:
        env = self.train_env
        self.logs.log_train_trial(
            env.run.cur, env.epoch.cur, env.trial.cur, env.trial_name, stats, self.mem_tracker.stats
        )

    def train_trial(self) -> None:
        """One encode / recall training trial on the AB list."""
        if self.needs_new_run:
            self.new_run()
        self._set_layer_type("ECout", LayerType.TARGET)
        self.train_env.step()
        if self._end_of_epoch(self.config.max_epochs):
            return
        self.apply_inputs(self.train_env)
        protocol = self._run_protocol("encode_recall", train=True)
        self._log_train_trial(self.trial_stats(protocol, train=True, accum=True))

    def restudy_trial(self) -> None:
        """One restudy trial: the hippocampal loop learns, EC <-> CA1 is frozen."""
        if self.needs_new_run:
            self.new_run()
        self.train_env.step()
        if self._end_of_epoch(self.config.max_epochs):
            return
        self.apply_inputs(self.train_env)
        protocol = self._run_protocol("restudy", train=True)
        self._log_train_trial(self.trial_stats(protocol, train=True, accum=True))

    def retrieval_practice_trial(self) -> None:
        """One retrieval-practice trial on the cue / full-pattern table."""
        self._set_layer_type("ECout", LayerType.TARGET)
        self.train_env.step()
        epc, _, changed = self.train_env.counter("epoch")
        if changed and epc >= self.config.max_epochs:
            self._stop = True
            return
        self.apply_inputs(self.train_env, RP_LAYERS)
        protocol = self._run_protocol("retrieval_practice", train=True)
        stats = self.trial_stats(protocol, train=True, accum=True)
        self._log_test_trial(self.train_env, stats)

    def pretrain_trial(self) -> None:
        """One EC <-> CA1 pretraining trial."""
        if self.needs_new_run:
            self.new_run()
        self.train_env.step()
        epc, _, changed = self.train_env.counter("epoch")
        if changed:
            self.log_train_epoch()
            if epc >= self.config.pretrain_epochs:
                self._stop = True
                return
        self.apply_inputs(self.train_env)
        protocol = self._run_protocol("pretrain", train=True)
        self._log_train_trial(self.trial_stats(protocol, train=True, accum=True))

    def ae_train_trial(self) -> None:
        """One autoencoder trial: noisy cue in Autoin, complete pattern in Auto."""
        if self.needs_new_run:
            self.new_run()
        self._set_layer_type("Autoin", LayerType.INPUT)
        self.train_env.step()
        epc, _, changed = self.train_env.counter("epoch")
        if changed:
            self.log_train_epoch()
            if epc >= self.config.ae_train_epochs:
                self._stop = True
                return
        self.apply_inputs(self.train_env, AE_LAYERS)
        protocol = self._run_protocol("autoencoder", train=True)
        self._log_train_trial(self.trial_stats(protocol, train=True, accum=True))

    # =========================================================================
    # Training loops
    # =========================================================================

    def _start_table(self, table) -> None:
        env = self.train_env
        env.set_table(table)
        env.init(env.run.cur)
        self._stop = False

    def _loop(self, trial_fn: Callable[[], None], until_run_changes: bool = False) -> None:
        cur_run = self.train_env.run.cur
        while True:
            trial_fn()
            if self._stop or (until_run_changes and self.train_env.run.cur != cur_run):
                break

    def train_epoch(self) -> None:
        """Train for the remainder of the current epoch."""
        self._stop = False
        cur_epoch = self.train_env.epoch.cur
        while True:
            self.train_trial()
            if self._stop or self.train_env.epoch.cur != cur_epoch:
                break

    def train_run(self) -> None:
        """Train for the remainder of the current run."""
        self._start_table(self.patterns.train_ab)
        self._loop(self.train_trial, until_run_changes=True)

    def train(self) -> None:
        """Train every remaining run."""
        self._start_table(self.patterns.train_ab)
        self._loop(self.train_trial)

    def rp_run(self) -> None:
        """Retrieval practice for the remainder of the run."""
        self._start_table(self.patterns.train_rp)
        self.test_name = "RP"
        self.logs.test_trial.reset()
        self._loop(self.retrieval_practice_trial, until_run_changes=True)

    def restudy_run(self) -> None:
        self._start_table(self.patterns.train_ab)
        self._loop(self.restudy_trial)

    def ae_run(self) -> None:
        """Train the autoencoder on the noisy-cue table."""
        self._start_table(self.patterns.train_noise)
        self._loop(self.ae_train_trial)

    def pretrain(self) -> None:
        """Pretrain EC <-> CA1 on all patterns, then return to the AB list.

        The pretrained weights become the starting point of every following
        ``new_run``.
        """
        self._start_table(self.patterns.train_all)
        self._loop(self.pretrain_trial, until_run_changes=True)
        self.pretrained_state = self.net.weights_state()
        self.train_env.set_table(self.patterns.train_ab)
        self.train_env.init(self.train_env.run.cur)
        logger.debug("Pretraining finished after %d epochs", self.config.pretrain_epochs)

    def two_factor_run(self) -> None:
        """Train ``max_runs`` runs for every outer x inner parameter-set pair.

        Each cell is tagged ``[tag_]<outer>_<inner>``, starts from the same
        seed and rebuilds the network with both sets applied.
        """
        cfg = self.config
        tag = cfg.tag
        prefix = f"{tag}_" if tag else ""
        cfg.apply_run_defaults()
        cfg.validate()
        self.logs.max_epochs = cfg.max_epochs
        try:
            for outer in cfg.two_factor_outer:
                for inner in cfg.two_factor_inner:
                    cfg.tag = f"{prefix}{outer}_{inner}"
                    logger.info("Two-factor cell %s", cfg.tag)
                    self._reseed()
                    self.configure((outer, inner))
                    self._stop = False
                    if self.pretrained is None:
                        self.pretrain()
                    self.new_run()
                    self.train()
        finally:
            cfg.tag = tag

    # =========================================================================
    # Testing
    # =========================================================================

    def _log_test_trial(self, env: FixedTableEnv, stats: TrialStatistics) -> None:
        act_m = {name: self.net.layer(name).act_m_mean for name in self.logs.lay_stat_names}
        self.logs.log_test_trial(
            self.train_env.run.cur,
            self.train_env.epoch.prv,
            self.test_name,
            env.trial.cur,
            env.trial_name,
            stats,
            self.mem_tracker.stats,
            self.ca3_cor,
            act_m,
        )
        if self.config.log_test_cycles:
            self.logs.log_test_cycles(self.cycle_recorder.rows())

    def test_trial(self, return_on_change: bool = True) -> None:
        """One encode / recall test trial from the test environment."""
        self.test_env.step()
        _, _, changed = self.test_env.counter("epoch")
        if changed and return_on_change:
            return
        self.apply_inputs(self.test_env)
        protocol = self._run_protocol("encode_recall", train=False)
        self._record_recall(self.test_env)
        self._log_test_trial(self.test_env, self.trial_stats(protocol, train=False, accum=False))

    def _record_recall(self, env: FixedTableEnv) -> None:
        """Write ECout's recalled pattern into the TrainNoise Autoin cue for this row."""
        if not self.config.record:
            return
        cue = self.patterns.train_noise.columns["Autoin"]
        row = env.row_index
        recalled = self.net.layer("ECout").act_m.detach().cpu().numpy()
        cue[row] = recalled.reshape(cue[row].shape)

    def test_trial_ae(self, return_on_change: bool = True) -> None:
        """One autoencoder test trial with ECout held silent."""
        self.test_env.step()
        self._set_layer_type("ECout", LayerType.INPUT)
        _, _, changed = self.test_env.counter("epoch")
        if changed and return_on_change:
            return
        self.apply_inputs(self.test_env, AE_LAYERS)
        protocol = self._run_protocol("autoencoder", train=False)
        self._log_test_trial(self.test_env, self.trial_stats(protocol, train=False, accum=False))

    def test_item(self, index: int) -> TrialStatistics:
        """Test the item at ``index`` of the test table without advancing the environment."""
        env = self.test_env
        cur = env.trial.cur
        env.set_trial(index)
        self.apply_inputs(env)
        protocol = self._run_protocol("encode_recall", train=False)
        self._record_recall(env)
        stats = self.trial_stats(protocol, train=False, accum=False)
        env.trial.cur = cur
        return stats

    def _test_pass(self, table, trial_fn: Callable[[bool], None]) -> Dict[str, Any]:
        env = self.test_env
        env.set_table(table)
        env.init(self.train_env.run.cur)
        while True:
            trial_fn(True)
            _, _, changed = env.counter("epoch")
            if changed or self._stop:
                break
        return self.logs.log_test_epoch(
            self.train_env.run.cur, self.train_env.epoch.prv, self.patterns.train_ab.n_rows
        )

    def test_all(self) -> Dict[str, Any]:
        """Test every AB item and log the test epoch."""
        self.test_name = self.config.test_names[0]
        return self._test_pass(self.patterns.test_ab, self.test_trial)

    def test_ae(self) -> Dict[str, Any]:
        """Test the autoencoder on the noisy-cue table and log the test epoch."""
        return self._test_pass(self.patterns.train_noise, self.test_trial_ae)

    # =========================================================================
    # Logging
    # =========================================================================

    def log_train_epoch(self) -> Dict[str, Any]:
        env = self.train_env
        n_trials = max(len(self.logs.train_trial), 1)
        summary = self.epoch_acc.summarize(n_trials)
        act_avgs = {name: self.net.layer(name).act_p_avg_eff for name in self.logs.lay_stat_names}
        row = self.logs.log_train_epoch(env.run.cur, env.epoch.prv, summary, self.ca3_cor, act_avgs)
        self._emit("epoch", row)
        return row

    def open_log_files(self) -> None:
        cfg = self.config
        self.logs.open_files(
            cfg.out_dir, cfg.name, self.run_name, epoch_log=cfg.save_epoch_log, run_log=cfg.save_run_log
        )

    def save_run_stats(self) -> Path:
        return self.logs.save_run_stats(self.config.out_dir, self.config.name, self.run_name)

    # =========================================================================
    # Weights
    # =========================================================================

    def weights_file_name(self) -> Path:
        """``<net>_<run name>_<run:03d>_<epoch:05d>.wts`` in the output directory."""
        env = self.train_env
        name = f"{self.config.name}_{self.run_name}_{env.run.cur:03d}_{env.epoch.cur:05d}.wts"
        return Path(self.config.out_dir) / name

    def save_weights(self, path: str | Path) -> Path:
        return self.net.save_weights(path)

    def load_weights(self, path: str | Path) -> None:
        self.net.load_weights(path)
