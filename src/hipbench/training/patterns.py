"""
Paired-Associate Pattern Generation.

Every EC pattern is a grid of pools (``HipConfig.ec_size``); each pool holds
one item from a *vocabulary* of sparse binary patterns of ``ec_pool`` shape.
A pattern table row is built by mixing one item from each of six
vocabularies, one per pool:

    TrainAB   Input / Output:  A, B, C, ctxt2, ctxt3, ctxt4
    TestAB    Input:           empty, empty, C, ctxt2, ctxt3, ctxt4   (cue)
              Output:          A, B, C, ctxt2, ctxt3, ctxt4           (full)
    TrainRP   Input:           cue as in TestAB;  ECout: full pattern
    TrainNoise Autoin:         cue as in TestAB;  Auto: full pattern
    TrainAll  copy of TrainAB (pretraining)

Context vocabularies ``ctxt1`` .. ``ctxt12`` are noisy copies of three
mutually distinct prototypes (four lists per prototype), each row with
``ctxt_flip_pct`` of its active bits moved.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from hipbench.config.hip_config import HipConfig, PatternConfig
from hipbench.errors import ConfigurationError
from hipbench.utils.core_utils import n_from_pct

logger = logging.getLogger(__name__)

N_CONTEXTS = 12
N_CONTEXT_PROTOTYPES = 3
MAX_PERMUTE_ITERS = 100

Vocab = Dict[str, np.ndarray]


# =============================================================================
# Vocabulary generation
# =============================================================================


def permuted_binary(
    n_rows: int,
    shape: Tuple[int, int],
    n_on: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """``n_rows`` patterns, each with exactly ``n_on`` randomly placed ones."""
    n = shape[0] * shape[1]
    pats = np.zeros((n_rows, n), dtype=np.float32)
    for row in pats:
        row[rng.permutation(n)[:n_on]] = 1.0
    return pats.reshape(n_rows, *shape)


def permuted_binary_min_diff(
    n_rows: int,
    shape: Tuple[int, int],
    pct_act: float,
    min_diff_pct: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Permuted binary patterns whose rows differ in at least ``min_diff_pct`` of their active bits.

    Regenerates offending rows up to ``MAX_PERMUTE_ITERS`` times and logs a
    warning if the constraint still cannot be met.
    """
    n_on = n_from_pct(pct_act, shape[0] * shape[1])
    min_diff = n_from_pct(min_diff_pct, n_on)
    pats = permuted_binary(n_rows, shape, n_on, rng)
    flat = pats.reshape(n_rows, -1)
    for _ in range(MAX_PERMUTE_ITERS):
        redo = False
        for i in range(n_rows):
            for j in range(i + 1, n_rows):
                if int((flat[i] != flat[j]).sum()) // 2 < min_diff:
                    flat[j] = permuted_binary(1, shape, n_on, rng).reshape(-1)
                    redo = True
        if not redo:
            return pats
    logger.warning(
        "Could not generate %d patterns differing in %d of %d active bits after %d iterations",
        n_rows,
        min_diff,
        n_on,
        MAX_PERMUTE_ITERS,
    )
    return pats


def flip_bits_rows(pats: np.ndarray, n_off: int, n_on: int, rng: np.random.Generator) -> np.ndarray:
    """Per row, turn ``n_off`` random active bits off and ``n_on`` random inactive bits on."""
    out = pats.reshape(len(pats), -1).copy()
    for row in out:
        on_idx = np.flatnonzero(row > 0.5)
        off_idx = np.flatnonzero(row <= 0.5)
        to_off = rng.permutation(on_idx)[:n_off]
        to_on = rng.permutation(off_idx)[:n_on]
        row[to_off] = 0.0
        row[to_on] = 1.0
    return out.reshape(pats.shape)


def mix_patterns(vocab: Vocab, names: Sequence[str], ec_size: Tuple[int, int]) -> np.ndarray:
    """Compose ``[n_rows, *ec_size, *pool_shape]`` patterns, one vocabulary per pool."""
    n_pools = ec_size[0] * ec_size[1]
    if len(names) != n_pools:
        raise ConfigurationError(f"{len(names)} vocabularies for {n_pools} pools")
    try:
        items = [vocab[name] for name in names]
    except KeyError as e:
        raise ConfigurationError(f"unknown vocabulary {e}") from None
    n_rows = len(items[0])
    if any(len(item) != n_rows for item in items):
        raise ConfigurationError("vocabularies mixed into one table must have the same length")
    stacked = np.stack(items, axis=1)
    return stacked.reshape(n_rows, *ec_size, *items[0].shape[1:])


# =============================================================================
# Pattern tables
# =============================================================================


@dataclass
class PatternTable:
    """Named rows of patterns for one or more layers."""

    name: str
    columns: Dict[str, np.ndarray] = field(default_factory=dict)
    description: str = ""

    @property
    def n_rows(self) -> int:
        if not self.columns:
            return 0
        return len(next(iter(self.columns.values())))

    def trial_name(self, row: int) -> str:
        return f"{self.name}_{row}"

    def row(self, index: int) -> Dict[str, np.ndarray]:
        return {layer: values[index] for layer, values in self.columns.items()}

    def clone(self, name: Optional[str] = None) -> PatternTable:
        return PatternTable(
            name=name or self.name,
            columns={layer: values.copy() for layer, values in self.columns.items()},
            description=self.description,
        )


AB_ITEMS = ("A", "B", "C", "ctxt2", "ctxt3", "ctxt4")
CUE_ITEMS = ("empty", "empty", "C", "ctxt2", "ctxt3", "ctxt4")


@dataclass
class PatternSet:
    """Vocabularies and every table the benchmark trains and tests on."""

    vocab: Vocab
    train_ab: PatternTable
    test_ab: PatternTable
    train_rp: PatternTable
    train_noise: PatternTable
    train_all: PatternTable

    def tables(self) -> List[PatternTable]:
        return [self.train_ab, self.test_ab, self.train_rp, self.train_noise, self.train_all]


def build_vocab(hip: HipConfig, pat: PatternConfig, rng: np.random.Generator) -> Vocab:
    shape = hip.ec_pool
    n = pat.list_size
    n_on = n_from_pct(hip.ec_pct_act, shape[0] * shape[1])
    ctxt_flip = n_from_pct(pat.ctxt_flip_pct, n_on)

    vocab: Vocab = {"empty": np.zeros((n, *shape), dtype=np.float32)}
    for name in ("A", "B", "C", "lA", "lB"):
        vocab[name] = permuted_binary_min_diff(n, shape, hip.ec_pct_act, pat.min_diff_pct, rng)
    vocab["ctxt"] = permuted_binary_min_diff(
        N_CONTEXT_PROTOTYPES, shape, hip.ec_pct_act, pat.min_diff_pct, rng
    )
    per_proto = N_CONTEXTS // N_CONTEXT_PROTOTYPES
    for i in range(N_CONTEXTS):
        proto = vocab["ctxt"][i // per_proto]
        repeated = np.repeat(proto[None], n, axis=0)
        vocab[f"ctxt{i + 1}"] = flip_bits_rows(repeated, ctxt_flip, ctxt_flip, rng)
    return vocab


def build_patterns(
    hip: HipConfig,
    pat: PatternConfig,
    rng: Optional[np.random.Generator] = None,
) -> PatternSet:
    """Generate the vocabularies and the AB, RP, noise and pretraining tables."""
    pat.validate()
    rng = rng if rng is not None else np.random.default_rng()
    vocab = build_vocab(hip, pat, rng)

    def mix(names: Sequence[str]) -> np.ndarray:
        return mix_patterns(vocab, names, hip.ec_size)

    train_ab = PatternTable(
        "TrainAB", {"Input": mix(AB_ITEMS), "Output": mix(AB_ITEMS)}, "TrainAB Pats"
    )
    test_ab = PatternTable("TestAB", {"Input": mix(CUE_ITEMS), "Output": mix(AB_ITEMS)}, "TestAB Pats")
    train_rp = PatternTable("TrainRP", {"Input": mix(CUE_ITEMS), "ECout": mix(AB_ITEMS)}, "RP Pats")
    train_noise = PatternTable(
        "TrainNoise", {"Autoin": mix(CUE_ITEMS), "Auto": mix(AB_ITEMS)}, "TrainAB Noise"
    )
    patterns = PatternSet(
        vocab=vocab,
        train_ab=train_ab,
        test_ab=test_ab,
        train_rp=train_rp,
        train_noise=train_noise,
        train_all=train_ab.clone("TrainAll"),
    )
    logger.debug("Generated %d-item pattern lists", pat.list_size)
    return patterns
