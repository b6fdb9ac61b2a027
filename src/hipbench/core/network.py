"""
Network - layers, projections and the alpha-cycle engine API.

The network is the activation engine that alpha-cycle protocols drive:

    net.alpha_cycle_init()          # trial start
    for each quarter:
        for each cycle: net.cycle(time)
        net.quarter_final(time)
    net.dwt()                       # end of a training trial
    net.wt_from_dwt()               # start of the next training trial

Layers and projections are registered by name once; callers that need
them repeatedly (protocols, statistics) resolve typed handles at build time
through ``layer`` / ``projection``, which raise ``TopologyError`` for
unknown names.

Weight files:
    ``save_weights`` writes ``{"version", "network", "projections": {name:
    {"version", "wt", "lwt"}}}`` with ``torch.save``; ``load_weights``
    validates names and shapes before copying anything.

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

import logging
import pickle
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import torch

from hipbench.config.learning_config import ProjectionConfig
from hipbench.config.neuron_config import LayerConfig
from hipbench.core.connectivity import ConnectivityPattern
from hipbench.core.layer import Layer, LayerType
from hipbench.core.projection import Projection, slay_act_scale
from hipbench.core.time import CycleTime
from hipbench.errors import TopologyError, WeightFileError

logger = logging.getLogger(__name__)

WEIGHTS_FORMAT_VERSION = 1


class Network:
    """A named collection of layers and projections.

    Args:
        name: Network name (used in file names and weight files)
        device: Torch device for all state
        dtype: Torch dtype for all state
        seed: Seed for connectivity and weight initialization
    """

    wt_bal_interval: int = 10
    """Weight applications between weight-balance recomputations"""

    def __init__(
        self,
        name: str,
        device: Optional[torch.device] = None,
        dtype: torch.dtype = torch.float32,
        seed: Optional[int] = None,
    ):
        self.name = name
        self.device = device or torch.device("cpu")
        self.dtype = dtype
        self.generator = torch.Generator()
        if seed is not None:
            self.generator.manual_seed(seed)
        self._layers: Dict[str, Layer] = {}
        self._projections: Dict[str, Projection] = {}
        self.wt_bal_ctr = 0

    # =========================================================================
    # Construction
    # =========================================================================

    def add_layer(
        self,
        name: str,
        shape: Sequence[int],
        layer_type: LayerType = LayerType.HIDDEN,
        config: Optional[LayerConfig] = None,
    ) -> Layer:
        if name in self._layers:
            raise TopologyError(f"layer '{name}' already exists in network '{self.name}'")
        layer = Layer(name, shape, layer_type, config, device=self.device, dtype=self.dtype)
        self._layers[name] = layer
        return layer

    def connect(
        self,
        send: Layer | str,
        recv: Layer | str,
        pattern: ConnectivityPattern,
        config: Optional[ProjectionConfig] = None,
        name: Optional[str] = None,
    ) -> Projection:
        """Connect two layers; the projection is named ``<Send>To<Recv>`` by default."""
        send_layer = self.layer(send) if isinstance(send, str) else send
        recv_layer = self.layer(recv) if isinstance(recv, str) else recv
        name = name or f"{send_layer.name}To{recv_layer.name}"
        if name in self._projections:
            raise TopologyError(f"projection '{name}' already exists in network '{self.name}'")
        mask = pattern.connect(
            send_layer.shape,
            recv_layer.shape,
            same_layer=send_layer is recv_layer,
            generator=self.generator,
        )
        proj = Projection(name, send_layer, recv_layer, mask, config)
        send_layer.send_projections.append(proj)
        recv_layer.recv_projections.append(proj)
        self._projections[name] = proj
        return proj

    # =========================================================================
    # Lookup
    # =========================================================================

    def layer(self, name: str) -> Layer:
        try:
            return self._layers[name]
        except KeyError:
            raise TopologyError(f"layer '{name}' not found in network '{self.name}'") from None

    def projection(self, name: str) -> Projection:
        try:
            return self._projections[name]
        except KeyError:
            raise TopologyError(f"projection '{name}' not found in network '{self.name}'") from None

    def has_layer(self, name: str) -> bool:
        return name in self._layers

    @property
    def layers(self) -> List[Layer]:
        return list(self._layers.values())

    @property
    def projections(self) -> List[Projection]:
        return list(self._projections.values())

    def _active_layers(self) -> Iterator[Layer]:
        return (ly for ly in self._layers.values() if not ly.off)

    # =========================================================================
    # Initialization
    # =========================================================================

    def init_weights(self) -> None:
        """Fresh random weights, activations and running averages."""
        for proj in self._projections.values():
            proj.init_weights(self.generator)
        for layer in self._layers.values():
            layer.init_acts()
        self.wt_bal_ctr = 0
        self.weight_balance()
        self.recompute_input_scaling()
        logger.debug("Initialized weights of network '%s'", self.name)

    def init_ext(self) -> None:
        for layer in self._layers.values():
            layer.init_ext()

    def gscale_from_avg_act(self) -> None:
        """Recompute each projection's cached input scale from sender activity."""
        for layer in self._active_layers():
            projs = [p for p in layer.recv_projections if not p.is_off]
            tot_rel = 0.0
            for proj in projs:
                scale = slay_act_scale(proj.send.act_p_avg_eff, proj.send.n_units, proj.n_con_avg)
                proj.gscale = proj.wt_scale.abs * proj.wt_scale.rel * scale
                tot_rel += proj.wt_scale.rel
            if tot_rel > 0:
                for proj in projs:
                    proj.gscale /= tot_rel

    def init_g_inc(self) -> None:
        for layer in self._layers.values():
            layer.ge_raw.zero_()
        for proj in self._projections.values():
            proj.init_g_inc()

    def recompute_input_scaling(self) -> None:
        """Apply changed weight scales: recompute gscale, then reset net-input increments."""
        self.gscale_from_avg_act()
        self.init_g_inc()

    # =========================================================================
    # Alpha cycle
    # =========================================================================

    def alpha_cycle_init(self) -> None:
        for layer in self._active_layers():
            layer.alpha_cycle_init()
        self.recompute_input_scaling()

    def cycle(self, time: CycleTime) -> None:
        """One settling step across all active layers."""
        active = list(self._active_layers())
        ge_raw = {}
        for layer in active:
            total = torch.zeros(layer.n_units, device=self.device, dtype=self.dtype)
            for proj in layer.recv_projections:
                if not proj.is_off:
                    total += proj.send_ge()
            ge_raw[layer.name] = total
        for layer in active:
            layer.ge_from_raw(ge_raw[layer.name])
        for layer in active:
            layer.inhib_from_ge_act()
        for layer in active:
            layer.act_from_g()
        for layer in active:
            layer.avg_max_act()

    def quarter_final(self, time: CycleTime) -> None:
        for layer in self._active_layers():
            layer.quarter_final(time.quarter)

    # =========================================================================
    # Learning
    # =========================================================================

    def dwt(self) -> None:
        for proj in self._projections.values():
            proj.dwt()

    def wt_from_dwt(self) -> None:
        for proj in self._projections.values():
            proj.wt_from_dwt()
        self.wt_bal_ctr += 1
        if self.wt_bal_ctr >= self.wt_bal_interval:
            self.wt_bal_ctr = 0
            self.weight_balance()

    def weight_balance(self) -> None:
        for proj in self._projections.values():
            proj.weight_balance()

    # =========================================================================
    # Weight scales
    # =========================================================================

    def snapshot_wt_scales(self) -> Dict[str, Tuple[float, float]]:
        return {name: (p.wt_scale.abs, p.wt_scale.rel) for name, p in self._projections.items()}

    def restore_wt_scales(self, snapshot: Dict[str, Tuple[float, float]]) -> None:
        for name, (abs_, rel) in snapshot.items():
            proj = self.projection(name)
            proj.wt_scale.abs = abs_
            proj.wt_scale.rel = rel

    # =========================================================================
    # Persistence
    # =========================================================================

    def weights_state(self) -> Dict[str, Any]:
        """In-memory copy of every projection's learned weights."""
        return {
            "version": WEIGHTS_FORMAT_VERSION,
            "network": self.name,
            "projections": {name: p.synapses.to_dict() for name, p in self._projections.items()},
        }

    def load_weights_state(self, state: Dict[str, Any], source: str = "weights") -> None:
        """Copy weights from ``weights_state`` output after validating names and shapes."""
        if not isinstance(state, dict) or state.get("version") != WEIGHTS_FORMAT_VERSION:
            raise WeightFileError(f"{source}: unsupported weight file format")
        saved = state["projections"]
        missing = sorted(set(self._projections) - set(saved))
        extra = sorted(set(saved) - set(self._projections))
        if missing or extra:
            raise WeightFileError(f"{source}: projection mismatch (missing={missing}, unexpected={extra})")
        for name, proj in self._projections.items():
            expected = tuple(proj.synapses.mask.shape)
            got = tuple(saved[name]["wt"].shape)
            if got != expected:
                raise WeightFileError(f"{source}: '{name}' has shape {got}, expected {expected}")
        for name, proj in self._projections.items():
            proj.synapses.load_dict(saved[name])
        self.recompute_input_scaling()

    def save_weights(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        torch.save(self.weights_state(), path)
        logger.info("Saved weights to %s", path)
        return path

    def load_weights(self, path: str | Path) -> None:
        path = Path(path)
        try:
            state = torch.load(path, map_location="cpu")
        except (OSError, RuntimeError, pickle.UnpicklingError) as e:
            raise WeightFileError(f"cannot read weight file {path}: {e}") from e
        self.load_weights_state(state, str(path))
        logger.info("Loaded weights from %s", path)

    def __repr__(self) -> str:
        return f"Network(name={self.name!r}, layers={len(self._layers)}, projections={len(self._projections)})"
