"""
Alpha-Cycle Protocols: the trial state machine and its variants.

A trial is one alpha cycle of four quarters. The hippocampal protocols use
the quarter boundaries to switch which pathway drives CA1:

    quarter 0         encoding: CA1 driven by ECin, mossy fibers weakened
    quarters 1 and 2  recall:   CA1 driven by CA3, mossy fibers restored
                                (weakened again when testing)
    quarter 3         plus phase: CA1 back on ECin, ECout clamped to the target

``run_trial`` fixes the order every variant shares:

1. apply the previous training trial's weight changes (one-trial lag)
2. snapshot every projection's weight scale
3. variant setup: learn flags, layers on/off, layer types, initial scales
4. ``alpha_cycle_init``
5. for each quarter: cycles (per-cycle hook, observers), quarter-end
   transition hook, ``quarter_final``, post-final hook (memory statistics
   after quarter 2, CA3 correlations after quarter 3)
6. restore the weight-scale snapshot
7. accumulate this trial's weight changes (training only)

Variants override the hooks, never the order. All layers and projections
they touch are resolved once, at construction, through ``HipNetwork``; a
network that lacks any of them raises ``TopologyError`` immediately.

Usage:
======
    hip_net = build_hip_network(HipConfig())
    protocol = create_protocol("encode_recall", hip_net, HipConfig())
    protocol.run_trial(train=True)
    stats = protocol.compute_trial_statistics(train=True)

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type

from hipbench.config.hip_config import HipConfig
from hipbench.core.layer import Layer, LayerType
from hipbench.core.network import Network
from hipbench.core.projection import Projection
from hipbench.core.time import N_QUARTERS, CycleTime
from hipbench.errors import ConfigurationError
from hipbench.hippocampus.memory_stats import (
    CA3Correlations,
    MemoryStatsTracker,
    TrialStatistics,
    ca3_correlations,
    trial_statistics,
)
from hipbench.hippocampus.observers import (
    CycleObserver,
    ObservationContext,
    ObservationPoint,
    wants_notification,
)
from hipbench.hippocampus.topology import HipNetwork

logger = logging.getLogger(__name__)

MINUS_PHASE_QUARTER = 2
PLUS_PHASE_QUARTER = 3


class AlphaCycleProtocol(ABC):
    """Base class for four-quarter trial protocols.

    Args:
        network: Built hippocampal network (a plain ``Network`` is resolved
            into a ``HipNetwork`` and must contain every hippocampal layer
            and projection)
        hip: Hippocampal parameters (mossy-fiber deltas)
        time: Shared alpha-cycle clock
        mem_tracker: Memory scoring state shared across protocols
        hip_only: Silence the Cortex -> Output shortcut
    """

    name: str = ""
    scores_ca3: bool = True
    """Whether CA3 quarter correlations are computed after the plus phase"""

    def __init__(
        self,
        network: HipNetwork | Network,
        hip: Optional[HipConfig] = None,
        time: Optional[CycleTime] = None,
        mem_tracker: Optional[MemoryStatsTracker] = None,
        hip_only: bool = False,
    ):
        self.hip_net = network if isinstance(network, HipNetwork) else HipNetwork(network)
        self.net = self.hip_net.net
        self.layers = self.hip_net.layers
        self.prjns = self.hip_net.prjns
        self.hip = hip or HipConfig()
        self.time = time or CycleTime()
        self.mem_tracker = mem_tracker or MemoryStatsTracker(n_units=self.hip.mem_units)
        self.hip_only = hip_only
        self.ca3_cor = CA3Correlations()
        self.observers: List[CycleObserver] = []
        self._mossy_base = self.prjns.ca3_from_dg.wt_scale.rel

    # =========================================================================
    # Observers
    # =========================================================================

    def add_observer(self, observer: CycleObserver) -> None:
        self.observers.append(observer)

    def remove_observer(self, observer: CycleObserver) -> None:
        self.observers.remove(observer)

    def _notify(self, train: bool, point: ObservationPoint, quarter: int, cyc: int = 0) -> None:
        if not self.observers:
            return
        ctx = ObservationContext(self.net, self.time, train, point, quarter, cyc)
        for observer in self.observers:
            if wants_notification(observer.cadence, ctx):
                observer.observe(ctx)

    # =========================================================================
    # Trial
    # =========================================================================

    def quarter_cycles(self) -> Tuple[int, ...]:
        """Number of cycles in each of the four quarters."""
        return (self.time.cyc_per_qtr,) * N_QUARTERS

    def run_trial(self, train: bool) -> None:
        """Run one alpha cycle; ``train`` enables weight changes and target clamping."""
        net = self.net
        if train:
            net.wt_from_dwt()
        snapshot = net.snapshot_wt_scales()
        self._mossy_base = self.prjns.ca3_from_dg.wt_scale.rel
        self.configure(train)

        net.alpha_cycle_init()
        self.time.alpha_cycle_start()
        for quarter, n_cycles in enumerate(self.quarter_cycles()):
            for cyc in range(n_cycles):
                net.cycle(self.time)
                self.on_cycle(train, quarter, cyc)
                self._notify(train, ObservationPoint.CYCLE, quarter, cyc)
                self.time.cycle_inc()
            self.on_quarter_end(train, quarter)
            net.quarter_final(self.time)
            self.after_quarter_final(train, quarter)
            self._notify(train, ObservationPoint.QUARTER, quarter)
            self.time.quarter_inc()

        net.restore_wt_scales(snapshot)
        net.recompute_input_scaling()
        if train:
            net.dwt()
        self._notify(train, ObservationPoint.TRIAL, N_QUARTERS - 1)

    # =========================================================================
    # Hooks
    # =========================================================================

    @abstractmethod
    def configure(self, train: bool) -> None:
        """Set learn flags, layer on/off state, layer types and initial scales."""

    def on_cycle(self, train: bool, quarter: int, cyc: int) -> None:
        """Called after every cycle."""

    def on_quarter_end(self, train: bool, quarter: int) -> None:
        """Called after a quarter's last cycle, before it finalizes."""

    def after_quarter_final(self, train: bool, quarter: int) -> None:
        if quarter == MINUS_PHASE_QUARTER:
            self.mem_tracker.update(self.layers.output, self.layers.ecin, self.mem_train_mode(train))
        elif quarter == PLUS_PHASE_QUARTER and self.scores_ca3:
            self.ca3_cor = ca3_correlations(self.layers.ca3)

    def mem_train_mode(self, train: bool) -> bool:
        """Whether memory is scored with the training (all-bits) criterion."""
        return train

    # =========================================================================
    # Statistics
    # =========================================================================

    def compute_trial_statistics(self, train: bool) -> TrialStatistics:
        """Reconstruction error on ECout plus the latest memory scores."""
        return trial_statistics(self.layers.ecout, self.mem_tracker.stats, self.mem_train_mode(train))

    # =========================================================================
    # Helpers shared by the variants
    # =========================================================================

    @property
    def ec_ca1_prjns(self) -> Tuple[Projection, ...]:
        p = self.prjns
        return (p.ca1_from_ecin, p.ecout_from_ca1, p.ca1_from_ecout)

    @property
    def hippo_prjns(self) -> Tuple[Projection, ...]:
        p = self.prjns
        return (p.dg_from_ecin, p.ca3_from_ecin, p.ca3_from_dg, p.ca1_from_ca3, p.ca3_from_ca3)

    @property
    def auto_prjns(self) -> Tuple[Projection, ...]:
        p = self.prjns
        return (p.autohid_from_autoin, p.auto_from_autohid, p.autohid_from_auto)

    @staticmethod
    def _set_learn(prjns: Iterable[Projection], learn: bool) -> None:
        for proj in prjns:
            proj.learn = learn

    def _set_off(self, off: Iterable[Layer]) -> None:
        """Switch ``off`` layers off and every other layer on."""
        off_names = {layer.name for layer in off}
        for layer in self.net.layers:
            layer.off = layer.name in off_names

    @staticmethod
    def _set_type(layers: Sequence[Layer], layer_type: LayerType) -> None:
        for layer in layers:
            layer.set_type(layer_type)
            layer.update_ext_flags()

    def _encode_drive(self) -> None:
        """CA1 driven by ECin."""
        self.prjns.ca1_from_ecin.wt_scale.abs = 1.0
        self.prjns.ca1_from_ca3.wt_scale.abs = 0.0

    def _recall_drive(self) -> None:
        """CA1 driven by CA3."""
        self.prjns.ca1_from_ecin.wt_scale.abs = 0.0
        self.prjns.ca1_from_ca3.wt_scale.abs = 1.0

    def _set_mossy(self, delta: float) -> None:
        self.prjns.ca3_from_dg.wt_scale.rel = self._mossy_base - delta

    def _clamp_from(self, source: Layer, *targets: Layer) -> None:
        values = source.act.clone()
        for target in targets:
            target.apply_ext(values)


# =============================================================================
# Variants
# =============================================================================


class EncodeRecallProtocol(AlphaCycleProtocol):
    """Standard encode / recall trial.

    ECout and Output are clamped to ECin's activity for the plus phase when
    training; when testing ECout only compares, while Output still receives
    its target so memory can be scored.
    """

    name = "encode_recall"

    def configure(self, train: bool) -> None:
        ly, p = self.layers, self.prjns
        self._set_learn(self.ec_ca1_prjns, True)
        self._set_learn(self.hippo_prjns, True)
        self._set_learn(self.auto_prjns, False)

        self._encode_drive()
        p.output_from_cortex.wt_scale.rel = 0.0 if self.hip_only else 0.5
        self._set_off(())
        self._set_mossy(self.hip.mossy_del)

        self._set_type([ly.ecout], LayerType.TARGET if train else LayerType.COMPARE)
        self._set_type([ly.output], LayerType.TARGET)

    def on_quarter_end(self, train: bool, quarter: int) -> None:
        if quarter == 0:
            self._recall_drive()
            self._set_mossy(0.0 if train else self.hip.mossy_del_test)
            self.net.recompute_input_scaling()
        elif quarter == 2:
            self._encode_drive()
            self.net.recompute_input_scaling()
            if train:
                self._clamp_from(self.layers.ecin, self.layers.ecout, self.layers.output)


class PreTrainProtocol(EncodeRecallProtocol):
    """EC <-> CA1 pretraining with CA3, DG and the cortical shortcut silenced."""

    name = "pretrain"

    def configure(self, train: bool) -> None:
        ly = self.layers
        self._set_learn(self.ec_ca1_prjns, True)
        self._set_learn(self.hippo_prjns, True)
        self._encode_drive()
        self._set_off((ly.ca3, ly.dg, ly.cortex))
        self._set_mossy(self.hip.mossy_del)
        self._set_type([ly.ecout], LayerType.TARGET if train else LayerType.COMPARE)

    def on_quarter_end(self, train: bool, quarter: int) -> None:
        if quarter == 0:
            self._recall_drive()
            self._set_mossy(0.0 if train else self.hip.mossy_del_test)
            self.net.recompute_input_scaling()
        elif quarter == 2:
            self._encode_drive()
            self.net.recompute_input_scaling()
            if train:
                self._clamp_from(self.layers.ecin, self.layers.ecout)


class RestudyProtocol(PreTrainProtocol):
    """Re-exposure to studied items: EC <-> CA1 frozen, full hippocampal loop learning."""

    name = "restudy"

    def configure(self, train: bool) -> None:
        ly = self.layers
        self._set_learn(self.ec_ca1_prjns, False)
        self._set_learn(self.hippo_prjns, True)
        self._encode_drive()
        self._set_off((ly.autoin, ly.autohid, ly.auto, ly.cortex))
        self._set_mossy(self.hip.mossy_del)
        self._set_type([ly.ecout], LayerType.TARGET if train else LayerType.COMPARE)


class RetrievalPracticeProtocol(AlphaCycleProtocol):
    """Retrieval practice: recall from a partial cue, then learn from the recalled pattern.

    Quarter 2 is stretched to 100 cycles. At its 25th cycle (training only)
    the current ECout pattern is fed to the autoencoder, whose cleaned-up
    reconstruction becomes ECout's plus-phase target.
    """

    name = "retrieval_practice"
    scores_ca3 = False

    recall_cycles: Tuple[int, int] = (25, 100)
    autoin_clamp_cycle: int = 25

    def quarter_cycles(self) -> Tuple[int, ...]:
        c = self.time.cyc_per_qtr
        return (c, *self.recall_cycles, c)

    def configure(self, train: bool) -> None:
        ly, p = self.layers, self.prjns
        self._set_learn(self.ec_ca1_prjns, False)
        self._set_learn(self.hippo_prjns, True)
        self._set_learn(self.auto_prjns, False)

        self._encode_drive()
        p.autohid_from_autoin.wt_scale.abs = 1.0
        self._set_off(())
        self._set_mossy(self.hip.mossy_del)
        self._set_type([ly.ecout, ly.output], LayerType.TARGET if train else LayerType.COMPARE)

    def on_cycle(self, train: bool, quarter: int, cyc: int) -> None:
        if train and quarter == 2 and cyc == self.autoin_clamp_cycle:
            self._clamp_from(self.layers.ecout, self.layers.autoin)

    def on_quarter_end(self, train: bool, quarter: int) -> None:
        if quarter == 0:
            self._recall_drive()
            self._set_mossy(self.hip.mossy_del_test)
            self.net.recompute_input_scaling()
        elif quarter == 2:
            # recall drive is kept through the plus phase
            self._recall_drive()
            self.net.recompute_input_scaling()
            if train:
                ly = self.layers
                self._clamp_from(ly.ecout, ly.output)
                self._clamp_from(ly.auto, ly.ecout)


class RetrievalPracticeAEProtocol(AlphaCycleProtocol):
    """Trains the autoencoder on ECout's recall trajectory; the hippocampus is frozen.

    ECout reaches the autoencoder only from quarter 2 on, so it learns to map
    partially recalled patterns onto complete ones.
    """

    name = "retrieval_practice_ae"
    scores_ca3 = False

    recall_cycles: Tuple[int, int] = (50, 75)

    def quarter_cycles(self) -> Tuple[int, ...]:
        c = self.time.cyc_per_qtr
        return (c, *self.recall_cycles, c)

    def configure(self, train: bool) -> None:
        ly, p = self.layers, self.prjns
        self._set_learn(self.ec_ca1_prjns, False)
        self._set_learn(self.hippo_prjns, False)
        self._set_learn((p.autohid_from_ecout, p.auto_from_autohid, p.autohid_from_auto), True)

        self._encode_drive()
        p.autohid_from_ecout.wt_scale.abs = 0.0
        self._set_off(())
        self._set_mossy(self.hip.mossy_del)
        self._set_type([ly.ecout, ly.output], LayerType.COMPARE)

    def on_quarter_end(self, train: bool, quarter: int) -> None:
        if quarter == 0:
            self._recall_drive()
            # weakened in both modes
            self._set_mossy(self.hip.mossy_del_test)
            self.net.recompute_input_scaling()
        elif quarter == 1:
            self.prjns.autohid_from_ecout.wt_scale.abs = 1.0
            self.net.recompute_input_scaling()
        elif quarter == 2:
            self._recall_drive()
            self.net.recompute_input_scaling()


class AutoencoderProtocol(AlphaCycleProtocol):
    """Trains Autoin -> Autohid -> Auto on noisy / complete pattern pairs."""

    name = "autoencoder"
    scores_ca3 = False

    def configure(self, train: bool) -> None:
        ly = self.layers
        self._set_learn(self.ec_ca1_prjns, False)
        self._set_learn(self.hippo_prjns, False)
        self._set_learn(self.auto_prjns, True)
        self._set_off((ly.ca1, ly.ca3, ly.dg, ly.ecin, ly.cortex))

    def mem_train_mode(self, train: bool) -> bool:
        return True


# =============================================================================
# Registry
# =============================================================================

PROTOCOLS: Dict[str, Type[AlphaCycleProtocol]] = {
    cls.name: cls
    for cls in (
        EncodeRecallProtocol,
        PreTrainProtocol,
        RestudyProtocol,
        RetrievalPracticeProtocol,
        RetrievalPracticeAEProtocol,
        AutoencoderProtocol,
    )
}


def create_protocol(
    name: str,
    network: HipNetwork | Network,
    hip: Optional[HipConfig] = None,
    **kwargs,
) -> AlphaCycleProtocol:
    """Instantiate a protocol by name.

    Raises:
        ConfigurationError: for an unknown protocol name
        TopologyError: if the network lacks a required layer or projection
    """
    try:
        cls = PROTOCOLS[name]
    except KeyError:
        raise ConfigurationError(f"unknown protocol '{name}'. Choose from: {sorted(PROTOCOLS)}") from None
    return cls(network, hip, **kwargs)
