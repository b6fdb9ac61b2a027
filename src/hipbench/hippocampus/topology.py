"""
Hippocampal Network Topology.

Builds the fixed benchmark network and resolves typed handles to every
layer and projection that protocols and statistics use, once, at build time.

Layers (EC-shaped layers are pooled: one pool per pattern slot):

    Input, ECin, ECout, Auto, Autoin, Output   pools of ec_pool units
    Autohid                                    pools of autohid_pool units
    CA1                                        pools of ca1_pool units
    DG, CA3, Cortex                            flat

Projections:

    Input -> ECin, ECout -> ECin, ECout -> Output          one-to-one
    ECin -> CA1, CA1 -> ECout, ECout -> CA1                pool one-to-one, encoder rule
    Autohid <-> Auto, Autoin -> Autohid, ECout -> Autohid  pool one-to-one
    Input -> Cortex (pools 0-2), Cortex <-> Output (pools 0-1)
    ECin -> DG                                             random dg_pcon, CHL
    ECin -> CA3                                            random ca3_pcon, encoder rule
    CA3 -> CA3                                             full, encoder rule
    CA3 -> CA1                                             full, CHL
    DG -> CA3                                              random mossy_pcon, CHL (mossy fibers)

Author: HipBench Project
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass, fields
import logging
from typing import Optional

import torch

from hipbench.config.hip_config import HipConfig
from hipbench.config.params import NetworkParams, base_network_params
from hipbench.core.connectivity import Full, OneToOne, PoolOneToOne, UniformRandom
from hipbench.core.layer import Layer, LayerType
from hipbench.core.network import Network
from hipbench.core.projection import Projection

logger = logging.getLogger(__name__)


@dataclass
class HipLayers:
    """Typed handles to every layer of the hippocampal network."""

    input: Layer
    ecin: Layer
    ecout: Layer
    auto: Layer
    autoin: Layer
    autohid: Layer
    ca1: Layer
    dg: Layer
    ca3: Layer
    output: Layer
    cortex: Layer


LAYER_NAMES = {
    "input": "Input",
    "ecin": "ECin",
    "ecout": "ECout",
    "auto": "Auto",
    "autoin": "Autoin",
    "autohid": "Autohid",
    "ca1": "CA1",
    "dg": "DG",
    "ca3": "CA3",
    "output": "Output",
    "cortex": "Cortex",
}


@dataclass
class HipProjections:
    """Typed handles to the projections whose learning or scaling protocols change."""

    ca1_from_ecin: Projection
    ca1_from_ecout: Projection
    ecout_from_ca1: Projection
    dg_from_ecin: Projection
    ca3_from_ecin: Projection
    ca3_from_dg: Projection
    ca3_from_ca3: Projection
    ca1_from_ca3: Projection
    output_from_cortex: Projection
    autohid_from_autoin: Projection
    auto_from_autohid: Projection
    autohid_from_auto: Projection
    autohid_from_ecout: Projection


PROJECTION_NAMES = {
    "ca1_from_ecin": "ECinToCA1",
    "ca1_from_ecout": "ECoutToCA1",
    "ecout_from_ca1": "CA1ToECout",
    "dg_from_ecin": "ECinToDG",
    "ca3_from_ecin": "ECinToCA3",
    "ca3_from_dg": "DGToCA3",
    "ca3_from_ca3": "CA3ToCA3",
    "ca1_from_ca3": "CA3ToCA1",
    "output_from_cortex": "CortexToOutput",
    "autohid_from_autoin": "AutoinToAutohid",
    "auto_from_autohid": "AutohidToAuto",
    "autohid_from_auto": "AutoToAutohid",
    "autohid_from_ecout": "ECoutToAutohid",
}


class HipNetwork:
    """A ``Network`` together with resolved hippocampal handles.

    Raises:
        TopologyError: if any required layer or projection is missing
    """

    def __init__(self, net: Network):
        self.net = net
        self.layers = HipLayers(**{f.name: net.layer(LAYER_NAMES[f.name]) for f in fields(HipLayers)})
        self.prjns = HipProjections(
            **{f.name: net.projection(PROJECTION_NAMES[f.name]) for f in fields(HipProjections)}
        )

    @property
    def name(self) -> str:
        return self.net.name


def build_hip_network(
    hip: HipConfig,
    params: Optional[NetworkParams] = None,
    name: str = "Hip_bench",
    device: Optional[torch.device] = None,
    dtype: torch.dtype = torch.float32,
    seed: Optional[int] = None,
) -> HipNetwork:
    """Construct, initialize and resolve the hippocampal network."""
    hip.validate()
    params = params or base_network_params()
    net = Network(name, device=device, dtype=dtype, seed=seed)

    ec_shape = (*hip.ec_size, *hip.ec_pool)
    lp = params.layer

    inp = net.add_layer("Input", ec_shape, LayerType.INPUT, lp("Input"))
    ecin = net.add_layer("ECin", ec_shape, LayerType.HIDDEN, lp("ECin"))
    ecout = net.add_layer("ECout", ec_shape, LayerType.TARGET, lp("ECout"))
    auto = net.add_layer("Auto", ec_shape, LayerType.TARGET, lp("Auto"))
    autoin = net.add_layer("Autoin", ec_shape, LayerType.HIDDEN, lp("Autoin"))
    autohid = net.add_layer("Autohid", (*hip.ec_size, *hip.autohid_pool), LayerType.HIDDEN, lp("Autohid"))
    ca1 = net.add_layer("CA1", (*hip.ec_size, *hip.ca1_pool), LayerType.HIDDEN, lp("CA1"))
    dg = net.add_layer("DG", hip.dg_size, LayerType.HIDDEN, lp("DG"))
    ca3 = net.add_layer("CA3", hip.ca3_size, LayerType.HIDDEN, lp("CA3"))
    out = net.add_layer("Output", ec_shape, LayerType.TARGET, lp("Output"))
    cortex = net.add_layer("Cortex", hip.cortex_size, LayerType.HIDDEN, lp("Cortex"))

    pp = params.projection
    one_to_one = OneToOne()
    pool_one_to_one = PoolOneToOne()

    net.connect(inp, ecin, one_to_one, pp("InputToECin"))
    net.connect(ecout, ecin, one_to_one, pp("ECoutToECin"))
    net.connect(ecout, out, one_to_one, pp("ECoutToOutput"))

    net.connect(ecin, ca1, pool_one_to_one, pp("ECinToCA1"))
    net.connect(ca1, ecout, pool_one_to_one, pp("CA1ToECout"))
    net.connect(ecout, ca1, pool_one_to_one, pp("ECoutToCA1"))

    net.connect(autohid, auto, pool_one_to_one, pp("AutohidToAuto"))
    net.connect(auto, autohid, pool_one_to_one, pp("AutoToAutohid"))
    net.connect(autoin, autohid, pool_one_to_one, pp("AutoinToAutohid"))
    net.connect(ecout, autohid, pool_one_to_one, pp("ECoutToAutohid"))

    net.connect(inp, cortex, PoolOneToOne(n_pools=3), pp("InputToCortex"))
    net.connect(cortex, out, PoolOneToOne(n_pools=2), pp("CortexToOutput"))
    net.connect(out, cortex, PoolOneToOne(n_pools=2), pp("OutputToCortex"))

    net.connect(ecin, dg, UniformRandom(p_con=hip.dg_pcon), pp("ECinToDG"))
    net.connect(ecin, ca3, UniformRandom(p_con=hip.ca3_pcon), pp("ECinToCA3"))
    net.connect(ca3, ca3, Full(), pp("CA3ToCA3"))
    net.connect(ca3, ca1, Full(), pp("CA3ToCA1"))
    net.connect(dg, ca3, UniformRandom(p_con=hip.mossy_pcon), pp("DGToCA3"))

    net.init_weights()
    logger.info(
        "Built network '%s': %d layers, %d projections, %d synapses",
        name,
        len(net.layers),
        len(net.projections),
        sum(p.synapses.n_synapses for p in net.projections),
    )
    return HipNetwork(net)
