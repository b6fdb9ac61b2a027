"""
Command-line entry point for the hippocampal benchmark.

Runs without a GUI: opens the test-epoch and run log files, runs the chosen
mode (the outer x inner parameter sweep by default) and writes the
per-parameter run statistics at the end.

Example:
    hipbench --runs 5 --epcs 20 --tag sweep
    hipbench --mode train --params RP --runs 1 --no-runlog
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, Callable, Dict, List, Optional

from tqdm import tqdm

from hipbench.config.sim_config import SimConfig
from hipbench.errors import HipBenchError
from hipbench.training.sim import HipBenchSim

logger = logging.getLogger(__name__)

MODES = ("two-factor", "train", "pretrain", "rp", "restudy", "ae")


# ============================================================================
# Arguments
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hipbench",
        description="Hippocampal paired-associate memory benchmark",
    )
    parser.add_argument(
        "--params",
        type=str,
        default="",
        help="Parameter set applied on top of the base parameters",
    )
    parser.add_argument(
        "--tag",
        type=str,
        default="",
        help="Extra tag added to file names saved from this run",
    )
    parser.add_argument(
        "--note",
        type=str,
        default="",
        help="User note describing the run",
    )
    parser.add_argument("--runs", type=int, default=10, help="Number of runs")
    parser.add_argument("--epcs", type=int, default=30, help="Maximum number of epochs per run")
    parser.add_argument(
        "--setparams",
        action="store_true",
        help="Log each parameter set as it is applied",
    )
    parser.add_argument(
        "--wts",
        action="store_true",
        help="Save final weights after each run",
    )
    parser.add_argument(
        "--epclog",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Save the test epoch log to file",
    )
    parser.add_argument(
        "--runlog",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Save the run log to file",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed (default: from config)")
    parser.add_argument(
        "--mode",
        choices=MODES,
        default="two-factor",
        help="What to run",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON file with a saved SimConfig; command-line options override it",
    )
    parser.add_argument("--out-dir", type=str, default=None, help="Directory for logs and weights")
    parser.add_argument(
        "--pretrained",
        type=str,
        default=None,
        help="Weight file every run starts from (skips pretraining)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> SimConfig:
    config = SimConfig.load(args.config) if args.config else SimConfig()
    config.param_set = args.params or config.param_set
    config.tag = args.tag or config.tag
    config.note = args.note or config.note
    config.max_runs = args.runs
    config.max_epochs = args.epcs
    config.log_set_params = args.setparams
    config.save_weights = args.wts
    config.save_epoch_log = args.epclog
    config.save_run_log = args.runlog
    if args.seed is not None:
        config.seed = args.seed
    if args.out_dir is not None:
        config.out_dir = args.out_dir
    return config


# ============================================================================
# Modes
# ============================================================================


def _single(driver: Callable[[HipBenchSim], None], test_after: bool) -> Callable[[HipBenchSim], None]:
    def run(sim: HipBenchSim) -> None:
        sim.init()
        driver(sim)
        if test_after:
            sim.test_all()

    return run


MODE_RUNNERS: Dict[str, Callable[[HipBenchSim], None]] = {
    "two-factor": HipBenchSim.two_factor_run,
    "train": _single(HipBenchSim.train, test_after=False),
    "pretrain": _single(HipBenchSim.pretrain, test_after=True),
    "rp": _single(HipBenchSim.rp_run, test_after=True),
    "restudy": _single(HipBenchSim.restudy_run, test_after=False),
    "ae": _single(HipBenchSim.ae_run, test_after=False),
}


def _expected_runs(config: SimConfig, mode: str) -> int:
    runs = max(config.max_runs, 1)
    if mode == "two-factor":
        return runs * len(config.two_factor_outer) * len(config.two_factor_inner)
    return runs


# ============================================================================
# CLI Entry Point
# ============================================================================


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
        config.validate()
    except HipBenchError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    if config.note:
        print(f"note: {config.note}")
    if config.param_set:
        print(f"Using ParamSet: {config.param_set}")
    if config.save_weights:
        print("Saving final weights per run")
    print(f"Running {config.max_runs} Runs")

    sim = HipBenchSim(config, pretrained=args.pretrained)
    progress = tqdm(total=_expected_runs(config, args.mode), desc="Runs", unit="run")

    def on_event(event: str, row: Dict[str, Any]) -> None:
        if event == "run":
            progress.update(1)
            progress.set_postfix(params=row["Params"], first_zero=row["FirstZero"])

    sim.callbacks.append(on_event)
    sim.open_log_files()
    try:
        MODE_RUNNERS[args.mode](sim)
        path = sim.save_run_stats()
        print(f"Saved run stats to: {path}")
    except HipBenchError as e:
        logger.error("Simulation failed: %s", e)
        return 1
    finally:
        progress.close()
        sim.logs.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
