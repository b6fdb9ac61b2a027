"""
Contrastive Hebbian Learning (CHL) - weight-change terms.

CHL combines two terms per synapse, weighted by ``hebb`` and ``err = 1 - hebb``:

Hebbian term (with sending-average correction):
    savg = max(savg_thr, 0.5 + savg_cor * (send_avg - 0.5))
    cor  = 0.5 / savg
    hebb = r+ * (s+ * (cor - lwt) - (1 - s+) * lwt)

Error term (plus-phase minus minus-phase coproducts, soft-bounded):
    err  = r+ s+ - r- s-
    err *= (1 - lwt)  if err > 0  else  lwt

Sparse sending layers (``send_avg`` well below 0.5) get ``cor > 1`` so the
Hebbian term still drives weights from active senders toward a useful
range instead of collapsing to zero.

All functions are vectorized over a ``[n_recv, n_send]`` weight matrix;
receiver activities broadcast along rows and sender activities along columns.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

import torch

from hipbench.config.learning_config import CHLConfig


def savg_correction(send_avg: float, cfg: CHLConfig) -> float:
    """Hebbian target correction ``0.5 / savg`` for a sending layer's mean activity."""
    savg = 0.5 + cfg.savg_cor * (send_avg - 0.5)
    savg = max(cfg.savg_thr, savg)
    return 0.5 / savg


def hebb_term(
    recv_p: torch.Tensor,
    send_p: torch.Tensor,
    lwt: torch.Tensor,
    cor: float,
) -> torch.Tensor:
    """Hebbian component: ``r+ * (s+ * (cor - lwt) - (1 - s+) * lwt)``."""
    r = recv_p.unsqueeze(1)
    s = send_p.unsqueeze(0)
    return r * (s * (cor - lwt) - (1.0 - s) * lwt)


def err_term(
    recv_p: torch.Tensor,
    send_p: torch.Tensor,
    recv_m: torch.Tensor,
    send_m: torch.Tensor,
    lwt: torch.Tensor,
) -> torch.Tensor:
    """Soft-bounded error component ``r+ s+ - r- s-``."""
    err = torch.outer(recv_p, send_p) - torch.outer(recv_m, send_m)
    return torch.where(err > 0.0, err * (1.0 - lwt), err * lwt)


def chl_dwt(
    recv_p: torch.Tensor,
    send_p: torch.Tensor,
    recv_m: torch.Tensor,
    send_m: torch.Tensor,
    lwt: torch.Tensor,
    send_avg: float,
    cfg: CHLConfig,
) -> torch.Tensor:
    """Raw CHL delta ``hebb * hebb_term + err * err_term`` for every synapse."""
    cor = savg_correction(send_avg, cfg)
    dwt = cfg.hebb * hebb_term(recv_p, send_p, lwt, cor)
    return dwt + cfg.err * err_term(recv_p, send_p, recv_m, send_m, lwt)
