"""
Tests for the hippocampal network builder and alpha-cycle observers.
"""

import pytest

from hipbench.core import CycleTime, LayerType, Network
from hipbench.errors import ConfigurationError, TopologyError
from hipbench.hippocampus import (
    HipNetwork,
    ObservationContext,
    ObservationPoint,
    TestCycleRecorder,
    UpdateCadence,
    build_hip_network,
    create_protocol,
)
from hipbench.hippocampus.observers import wants_notification
from hipbench.hippocampus.topology import LAYER_NAMES, PROJECTION_NAMES


class CountingObserver:
    """Counts notifications for one cadence."""

    def __init__(self, cadence):
        self.cadence = cadence
        self.count = 0
        self.quarters = []

    def observe(self, ctx):
        self.count += 1
        self.quarters.append(ctx.quarter)


@pytest.mark.unit
class TestTopology:

    def test_all_layers_and_projections_resolved(self, hip_net):
        assert {ly.name for ly in hip_net.net.layers} == set(LAYER_NAMES.values())
        names = {p.name for p in hip_net.net.projections}
        assert set(PROJECTION_NAMES.values()) <= names
        assert len(names) == 18

    def test_layer_geometry(self, hip_net, tiny_hip):
        ly = hip_net.layers
        assert ly.ecin.shape == (2, 3, 3, 3)
        assert ly.ca1.shape == (2, 3, 2, 2)
        assert ly.dg.shape == tiny_hip.dg_size
        assert ly.input.type is LayerType.INPUT
        assert ly.ecout.type is LayerType.TARGET

    def test_ec_ca1_is_pool_one_to_one(self, hip_net):
        mask = hip_net.prjns.ca1_from_ecin.synapses.mask
        # CA1 pool 0 (units 0-3) only sees ECin pool 0 (units 0-8)
        assert mask[0:4, 0:9].all()
        assert not mask[0:4, 9:].any()

    def test_cortex_shortcut_covers_leading_pools(self, hip_net):
        mask = hip_net.net.projection("CortexToOutput").synapses.mask
        assert mask[:18].all()
        assert not mask[18:].any()

    def test_missing_projection_raises(self):
        net = Network("Partial")
        for name in LAYER_NAMES.values():
            net.add_layer(name, (1, 2))
        with pytest.raises(TopologyError):
            HipNetwork(net)

    def test_protocol_on_incomplete_network(self):
        net = Network("Empty")
        net.add_layer("Input", (1, 2))
        with pytest.raises(TopologyError):
            create_protocol("encode_recall", net)

    def test_unknown_protocol(self, hip_net):
        with pytest.raises(ConfigurationError):
            create_protocol("sleep_replay", hip_net)

    def test_invalid_config_rejected_before_build(self, tiny_hip):
        tiny_hip.mossy_pcon = 0.0
        with pytest.raises(ConfigurationError):
            build_hip_network(tiny_hip)


@pytest.mark.unit
class TestNotificationRules:

    def _ctx(self, hip_net, point, quarter=0, cyc=0):
        return ObservationContext(hip_net.net, CycleTime(), False, point, quarter, cyc)

    def test_cycle_cadences(self, hip_net):
        ctx = self._ctx(hip_net, ObservationPoint.CYCLE, cyc=9)
        assert wants_notification(UpdateCadence.CYCLE, ctx)
        assert wants_notification(UpdateCadence.FAST_SPIKE, ctx)
        assert not wants_notification(UpdateCadence.QUARTER, ctx)
        assert not wants_notification(UpdateCadence.FAST_SPIKE, self._ctx(hip_net, ObservationPoint.CYCLE, cyc=8))

    def test_phase_cadence_only_after_minus_and_plus(self, hip_net):
        assert not wants_notification(UpdateCadence.PHASE, self._ctx(hip_net, ObservationPoint.QUARTER, 1))
        assert wants_notification(UpdateCadence.PHASE, self._ctx(hip_net, ObservationPoint.QUARTER, 2))
        assert wants_notification(UpdateCadence.PHASE, self._ctx(hip_net, ObservationPoint.QUARTER, 3))

    def test_trial_point_only_for_alpha_cycle(self, hip_net):
        ctx = self._ctx(hip_net, ObservationPoint.TRIAL, 3)
        assert wants_notification(UpdateCadence.ALPHA_CYCLE, ctx)
        assert not wants_notification(UpdateCadence.QUARTER, ctx)

    def test_counts_over_one_trial(self, hip_net, tiny_hip):
        protocol = create_protocol("encode_recall", hip_net, tiny_hip, time=CycleTime(cyc_per_qtr=10))
        observers = {cadence: CountingObserver(cadence) for cadence in UpdateCadence}
        for observer in observers.values():
            protocol.add_observer(observer)

        protocol.run_trial(train=False)

        assert observers[UpdateCadence.CYCLE].count == 40
        assert observers[UpdateCadence.FAST_SPIKE].count == 4
        assert observers[UpdateCadence.QUARTER].quarters == [0, 1, 2, 3]
        assert observers[UpdateCadence.PHASE].quarters == [2, 3]
        assert observers[UpdateCadence.ALPHA_CYCLE].count == 1

    def test_removed_observer_not_notified(self, hip_net, tiny_hip):
        protocol = create_protocol("encode_recall", hip_net, tiny_hip, time=CycleTime(cyc_per_qtr=2))
        observer = CountingObserver(UpdateCadence.ALPHA_CYCLE)
        protocol.add_observer(observer)
        protocol.remove_observer(observer)
        protocol.run_trial(train=False)
        assert observer.count == 0


@pytest.mark.unit
class TestRecorder:

    def test_records_test_trials_only(self, hip_net, tiny_hip):
        protocol = create_protocol("encode_recall", hip_net, tiny_hip, time=CycleTime(cyc_per_qtr=3))
        recorder = TestCycleRecorder(["ECin", "CA3"])
        protocol.add_observer(recorder)

        protocol.run_trial(train=True)
        assert recorder.rows() == []

        protocol.run_trial(train=False)
        rows = recorder.rows()
        assert len(rows) == 12
        assert [r["Cycle"] for r in rows] == list(range(12))
        assert set(rows[0]) == set(recorder.columns())

    def test_clear(self, hip_net, tiny_hip):
        protocol = create_protocol("encode_recall", hip_net, tiny_hip, time=CycleTime(cyc_per_qtr=2))
        recorder = TestCycleRecorder(["CA1"])
        protocol.add_observer(recorder)
        protocol.run_trial(train=False)
        recorder.clear()
        assert recorder.rows() == []
