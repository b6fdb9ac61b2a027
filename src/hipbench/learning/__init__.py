"""
Learning rules and weight-change shaping.
"""

from hipbench.learning.chl import chl_dwt, err_term, hebb_term, savg_correction
from hipbench.learning.shaping import (
    normalize_and_integrate,
    sig_fun,
    sig_inv,
    weight_balance_factors,
    xcal,
)
from hipbench.learning.strategies import (
    BaseRule,
    ContrastiveHebbianRule,
    EncoderRule,
    LearningRule,
    StandardRule,
    create_learning_rule,
)

__all__ = [
    "BaseRule",
    "ContrastiveHebbianRule",
    "EncoderRule",
    "LearningRule",
    "StandardRule",
    "chl_dwt",
    "create_learning_rule",
    "err_term",
    "hebb_term",
    "normalize_and_integrate",
    "savg_correction",
    "sig_fun",
    "sig_inv",
    "weight_balance_factors",
    "xcal",
]
