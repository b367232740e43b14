"""Launch a network of consensus nodes in one process"""
import asyncio
from typing import Callable, List, Optional, Sequence
import logging

from ..communication.message_passing import HttpTransport, LocalNetwork, Value
from ..communication.readiness import ReadinessTracker
from ..consensus.decision import Coin, random_coin
from ..consensus.round_machine import NodeStateSnapshot
from .consensus_node import ConsensusNode

logger = logging.getLogger(__name__)


class Network:
    """A set of nodes sharing a readiness tracker"""

    def __init__(self, nodes: List[ConsensusNode], readiness: ReadinessTracker,
                 transports: Optional[list] = None):
        self.nodes = nodes
        self.readiness = readiness
        self.transports = transports or []

    def __getitem__(self, node_id: int) -> ConsensusNode:
        return self.nodes[node_id]

    def healthy_nodes(self) -> List[ConsensusNode]:
        return [node for node in self.nodes if not node.is_faulty]

    async def start_all(self) -> List[bool]:
        return [await node.start() for node in self.nodes]

    async def stop_all(self):
        for node in self.nodes:
            await node.stop()

    async def close(self):
        """Stop every node and release transports"""
        await self.stop_all()
        for transport in self.transports:
            await transport.stop()

    def snapshots(self) -> List[NodeStateSnapshot]:
        return [node.snapshot() for node in self.nodes]

    def all_decided(self) -> bool:
        return all(node.snapshot().decided for node in self.healthy_nodes())

    async def wait_for_decision(self, timeout: float, poll_interval: float = 0.01) -> bool:
        """Wait until every healthy node has decided, or timeout elapses"""
        try:
            await asyncio.wait_for(self._poll_decided(poll_interval), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _poll_decided(self, poll_interval: float):
        while not self.all_decided():
            await asyncio.sleep(poll_interval)


def _validate(total_nodes: int, initial_values: Sequence, faulty_list: Sequence[bool]):
    if len(initial_values) != total_nodes:
        raise ValueError(f"Expected {total_nodes} initial values, got {len(initial_values)}")
    if len(faulty_list) != total_nodes:
        raise ValueError(f"Expected {total_nodes} faulty flags, got {len(faulty_list)}")


def launch_network(total_nodes: int, faulty_nodes: int, initial_values: Sequence,
                   faulty_list: Sequence[bool],
                   coin_factory: Optional[Callable[[int], Coin]] = None,
                   latency: float = 0.0, **timing) -> Network:
    """Create N nodes wired through an in-memory network.

    timing is passed to every ConsensusNode (round_window, round_delay, ...).
    """
    _validate(total_nodes, initial_values, faulty_list)

    local = LocalNetwork(latency=latency)
    readiness = ReadinessTracker(total_nodes)
    nodes = []
    for node_id in range(total_nodes):
        node = ConsensusNode(
            node_id, total_nodes, faulty_nodes,
            Value.parse(initial_values[node_id]), faulty_list[node_id],
            local.transport(node_id, total_nodes),
            nodes_are_ready=readiness.all_ready,
            set_node_is_ready=readiness.mark_ready,
            coin=coin_factory(node_id) if coin_factory else random_coin,
            **timing
        )
        local.register(node_id, node.submit_message)
        nodes.append(node)
        node.mark_ready()

    logger.info(f"Launched local network: N={total_nodes}, F={faulty_nodes}")
    return Network(nodes, readiness)


async def launch_http_network(total_nodes: int, faulty_nodes: int, initial_values: Sequence,
                              faulty_list: Sequence[bool], host: Optional[str] = None,
                              base_port: Optional[int] = None,
                              coin_factory: Optional[Callable[[int], Coin]] = None,
                              **timing) -> Network:
    """Create N nodes, each serving its HTTP routes on base_port + node_id"""
    _validate(total_nodes, initial_values, faulty_list)

    readiness = ReadinessTracker(total_nodes)
    nodes = []
    transports = []
    for node_id in range(total_nodes):
        transport = HttpTransport(node_id, total_nodes, host=host, base_port=base_port)
        node = ConsensusNode(
            node_id, total_nodes, faulty_nodes,
            Value.parse(initial_values[node_id]), faulty_list[node_id],
            transport,
            nodes_are_ready=readiness.all_ready,
            set_node_is_ready=readiness.mark_ready,
            coin=coin_factory(node_id) if coin_factory else random_coin,
            **timing
        )
        await transport.start(node.create_app())
        node.mark_ready()
        nodes.append(node)
        transports.append(transport)

    logger.info(f"Launched HTTP network: N={total_nodes}, F={faulty_nodes}")
    return Network(nodes, readiness, transports)
