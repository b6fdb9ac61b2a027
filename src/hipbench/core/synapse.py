"""
Synaptic State - dense per-projection weight storage.

Every projection stores its synapses as ``[n_recv, n_send]`` tensors plus a
boolean connectivity mask. Entries outside the mask are kept at zero so that
dense matrix products give the sparse result.

Per synapse:
- ``lwt``: linear weight, always within [0, 1]
- ``wt``: effective weight, the sigmoid-contrast of ``lwt``
- ``dwt``: accumulated weight change, zeroed once applied
- ``norm``: running max-abs normalization accumulator
- ``moment``: momentum accumulator

Per receiving unit (weight balance):
- ``wb_inc`` / ``wb_dec``: multipliers on positive / negative changes
- ``wb_avg``: mean weight over the receiver's above-threshold synapses

Design Principles:
==================
1. Versioned serialization - weight files carry STATE_VERSION
2. Device-aware - tensors move to the requested device on load
3. Only learned quantities (``wt``, ``lwt``) are persisted; learning
   accumulators restart at zero

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional

import torch

from hipbench.errors import WeightFileError


@dataclass
class SynapseState:
    """Dense synapse tensors of one projection."""

    STATE_VERSION: ClassVar[int] = 1

    mask: torch.Tensor
    wt: torch.Tensor
    lwt: torch.Tensor
    dwt: torch.Tensor
    norm: torch.Tensor
    moment: torch.Tensor
    wb_inc: torch.Tensor
    wb_dec: torch.Tensor
    wb_avg: torch.Tensor

    @classmethod
    def zeros(
        cls,
        mask: torch.Tensor,
        device: Optional[torch.device] = None,
        dtype: torch.dtype = torch.float32,
    ) -> "SynapseState":
        """Allocate zeroed state for the given ``[n_recv, n_send]`` mask."""
        mask = mask.to(device=device, dtype=torch.bool)
        shape = mask.shape

        def z() -> torch.Tensor:
            return torch.zeros(shape, device=mask.device, dtype=dtype)

        n_recv = shape[0]
        return cls(
            mask=mask,
            wt=z(),
            lwt=z(),
            dwt=z(),
            norm=z(),
            moment=z(),
            wb_inc=torch.ones(n_recv, device=mask.device, dtype=dtype),
            wb_dec=torch.ones(n_recv, device=mask.device, dtype=dtype),
            wb_avg=torch.zeros(n_recv, device=mask.device, dtype=dtype),
        )

    @property
    def n_recv(self) -> int:
        return int(self.mask.shape[0])

    @property
    def n_send(self) -> int:
        return int(self.mask.shape[1])

    @property
    def n_synapses(self) -> int:
        return int(self.mask.sum().item())

    def reset_learning(self) -> None:
        """Zero the delta, normalization and momentum accumulators."""
        self.dwt.zero_()
        self.norm.zero_()
        self.moment.zero_()
        self.wb_inc.fill_(1.0)
        self.wb_dec.fill_(1.0)
        self.wb_avg.zero_()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the learned weights (CPU tensors)."""
        return {
            "version": self.STATE_VERSION,
            "wt": self.wt.detach().cpu().clone(),
            "lwt": self.lwt.detach().cpu().clone(),
        }

    def load_dict(self, data: Dict[str, Any]) -> None:
        """Copy saved weights into this state, validating version and shape."""
        version = data.get("version")
        if version != self.STATE_VERSION:
            raise WeightFileError(
                f"synapse state version {version} not supported (expected {self.STATE_VERSION})"
            )
        for key in ("wt", "lwt"):
            saved = data[key]
            if tuple(saved.shape) != tuple(self.mask.shape):
                raise WeightFileError(
                    f"saved '{key}' has shape {tuple(saved.shape)}, "
                    f"projection expects {tuple(self.mask.shape)}"
                )
            getattr(self, key).copy_(saved.to(self.mask.device) * self.mask)
        self.reset_learning()
