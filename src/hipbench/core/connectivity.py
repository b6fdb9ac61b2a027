"""
Connectivity Patterns - which sender connects to which receiver.

Each pattern builds a boolean ``[n_recv, n_send]`` mask from the sending and
receiving layer geometries. Layers are either 2D ``(Y, X)`` or 4D
``(pools_Y, pools_X, units_Y, units_X)``; 4D units are numbered pool-major,
so pool ``p`` owns units ``p * pool_size`` to ``(p + 1) * pool_size - 1``.

Patterns:
- Full: every sender to every receiver (no self-connections within a layer)
- OneToOne: unit i to unit i
- PoolOneToOne: pool i to pool i, with 2D <-> 4D variants
- UniformRandom: each receiver draws a fixed fraction of senders at random

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

import torch

from hipbench.errors import TopologyError
from hipbench.utils.core_utils import n_from_pct


def _n_units(shape: Sequence[int]) -> int:
    n = 1
    for dim in shape:
        n *= dim
    return n


def _n_pools(shape: Sequence[int]) -> int:
    """Number of pools of a 4D shape (0 for 2D layers)."""
    return shape[0] * shape[1] if len(shape) == 4 else 0


def _pool_size(shape: Sequence[int]) -> int:
    return shape[2] * shape[3] if len(shape) == 4 else _n_units(shape)


class ConnectivityPattern(ABC):
    """Builds the connectivity mask of a projection."""

    @abstractmethod
    def connect(
        self,
        send_shape: Sequence[int],
        recv_shape: Sequence[int],
        same_layer: bool = False,
        generator: Optional[torch.Generator] = None,
    ) -> torch.Tensor:
        """Return a boolean ``[n_recv, n_send]`` connectivity mask."""


@dataclass
class Full(ConnectivityPattern):
    """All-to-all connectivity."""

    self_con: bool = False
    """Allow a unit to connect to itself when a layer projects to itself"""

    def connect(self, send_shape, recv_shape, same_layer=False, generator=None):
        mask = torch.ones(_n_units(recv_shape), _n_units(send_shape), dtype=torch.bool)
        if same_layer and not self.self_con:
            mask.fill_diagonal_(False)
        return mask


@dataclass
class OneToOne(ConnectivityPattern):
    """Unit i of the sender to unit i of the receiver."""

    def connect(self, send_shape, recv_shape, same_layer=False, generator=None):
        n_send = _n_units(send_shape)
        n_recv = _n_units(recv_shape)
        mask = torch.zeros(n_recv, n_send, dtype=torch.bool)
        idx = torch.arange(min(n_send, n_recv))
        mask[idx, idx] = True
        return mask


@dataclass
class PoolOneToOne(ConnectivityPattern):
    """Pool i of the sender fully connected to pool i of the receiver.

    When only one side is pooled, the flat side either maps one unit per
    pool (if its unit count equals the pool count) or connects fully to the
    selected pools.
    """

    n_pools: int = 0
    """Number of pools to connect (0 = as many as both sides have)"""

    send_start: int = 0
    recv_start: int = 0

    def _count(self, *available: int) -> int:
        n = min(available)
        if self.n_pools > 0:
            n = min(n, self.n_pools)
        return n

    def connect(self, send_shape, recv_shape, same_layer=False, generator=None):
        n_send = _n_units(send_shape)
        n_recv = _n_units(recv_shape)
        s_np = _n_pools(send_shape)
        r_np = _n_pools(recv_shape)
        s_ps = _pool_size(send_shape)
        r_ps = _pool_size(recv_shape)
        mask = torch.zeros(n_recv, n_send, dtype=torch.bool)

        if s_np == 0 and r_np == 0:
            return OneToOne().connect(send_shape, recv_shape)

        if s_np > 0 and r_np > 0:
            n = self._count(s_np - self.send_start, r_np - self.recv_start)
            for i in range(n):
                sp = self.send_start + i
                rp = self.recv_start + i
                mask[rp * r_ps:(rp + 1) * r_ps, sp * s_ps:(sp + 1) * s_ps] = True
            return mask

        if s_np == 0:
            # flat sender into pooled receiver
            n = self._count(r_np - self.recv_start)
            if n_send == r_np:
                for i in range(n):
                    rp = self.recv_start + i
                    mask[rp * r_ps:(rp + 1) * r_ps, rp] = True
            else:
                for i in range(n):
                    rp = self.recv_start + i
                    mask[rp * r_ps:(rp + 1) * r_ps, :] = True
            return mask

        # pooled sender into flat receiver
        n = self._count(s_np - self.send_start)
        if n_recv == s_np:
            for i in range(n):
                sp = self.send_start + i
                mask[sp, sp * s_ps:(sp + 1) * s_ps] = True
        else:
            for i in range(n):
                sp = self.send_start + i
                mask[:, sp * s_ps:(sp + 1) * s_ps] = True
        return mask


@dataclass
class UniformRandom(ConnectivityPattern):
    """Each receiver connects to ``round(p_con * n_send)`` random senders (at least one)."""

    p_con: float = 0.5
    self_con: bool = False

    def connect(self, send_shape, recv_shape, same_layer=False, generator=None):
        if not 0.0 < self.p_con <= 1.0:
            raise TopologyError(f"p_con must be in (0, 1], got {self.p_con}")
        n_send = _n_units(send_shape)
        n_recv = _n_units(recv_shape)
        exclude_self = same_layer and not self.self_con
        n_avail = n_send - 1 if exclude_self else n_send
        n_con = max(1, min(n_avail, n_from_pct(self.p_con, n_send)))
        mask = torch.zeros(n_recv, n_send, dtype=torch.bool)
        for ri in range(n_recv):
            order = torch.randperm(n_send, generator=generator)
            if exclude_self:
                order = order[order != ri]
            mask[ri, order[:n_con]] = True
        return mask
