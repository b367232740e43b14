"""
Consensus node: control surface and HTTP routes of one Ben-Or participant
"""
import logging
from typing import Callable, Optional

from aiohttp import web

from ..communication.message_passing import ProtocolMessage, Transport, Value
from ..consensus.decision import Coin, random_coin, termination_permitted
from ..consensus.driver import RoundDriver
from ..consensus.message_store import MessageStore
from ..consensus.round_machine import NodeConsensusState, NodeStateSnapshot, RoundStateMachine
from ..utils.metrics import metrics

logger = logging.getLogger(__name__)


class ConsensusNode:
    """
    One participant in a Ben-Or network

    Features:
    - status / submit_message / start / stop / snapshot control surface
    - HTTP routes mirroring the control surface (create_app)
    - Faulty nodes never transmit and reject every command
    """

    def __init__(self, node_id: int, total_nodes: int, faulty_nodes: int,
                 initial_value: Value, is_faulty: bool, transport: Transport,
                 nodes_are_ready: Callable[[], bool],
                 set_node_is_ready: Optional[Callable[[int], None]] = None,
                 coin: Coin = random_coin,
                 round_window: Optional[float] = None,
                 round_delay: Optional[float] = None,
                 violated_round_delay: Optional[float] = None,
                 readiness_poll: Optional[float] = None):
        if total_nodes < 1:
            raise ValueError(f"total_nodes must be >= 1, got {total_nodes}")
        if faulty_nodes < 0:
            raise ValueError(f"faulty_nodes must be >= 0, got {faulty_nodes}")
        if not 0 <= node_id < total_nodes:
            raise ValueError(f"node_id must be in [0, {total_nodes}), got {node_id}")
        initial_value = Value.parse(initial_value)
        if initial_value is Value.UNKNOWN:
            raise ValueError("initial_value must be 0 or 1")

        self.node_id = node_id
        self.total_nodes = total_nodes
        self.faulty_nodes = faulty_nodes
        self.is_faulty = is_faulty
        self.transport = transport
        self._set_node_is_ready = set_node_is_ready

        self.state = NodeConsensusState.initial(initial_value, is_faulty)
        self.store = MessageStore()
        self.machine = RoundStateMachine(
            node_id, total_nodes, faulty_nodes, self.state, transport,
            store=self.store, coin=coin, round_window=round_window
        )
        self.driver = RoundDriver(
            self.machine, nodes_are_ready,
            round_delay=round_delay,
            violated_round_delay=violated_round_delay,
            readiness_poll=readiness_poll
        )

        if not termination_permitted(total_nodes, faulty_nodes):
            logger.warning(f"Node {node_id}: F={faulty_nodes} > N/2 with N={total_nodes}, "
                           f"this node will never decide")
        logger.info(f"Node {node_id} initialized (N={total_nodes}, F={faulty_nodes}, "
                    f"faulty={is_faulty}, value={initial_value.value})")

    @property
    def available(self) -> bool:
        """Whether the node accepts messages and commands"""
        return not self.is_faulty and not self.state.stopped

    def status(self) -> str:
        return "faulty" if self.is_faulty else "live"

    def mark_ready(self):
        """Signal that this node is ready to receive requests"""
        if self._set_node_is_ready is not None:
            self._set_node_is_ready(self.node_id)

    def submit_message(self, message: ProtocolMessage) -> bool:
        """Buffer a peer message; False if the node is unavailable"""
        if not self.available:
            return False
        return self.machine.deliver(message)

    async def start(self) -> bool:
        """Start the consensus rounds once all nodes are ready"""
        if not self.available:
            logger.warning(f"Node {self.node_id}: start rejected (faulty or stopped)")
            return False
        self.driver.start()
        return True

    async def stop(self):
        """Halt the node; further commands are rejected"""
        if not self.state.stopped:
            logger.info(f"🛑 Node {self.node_id} stopping at round {self.state.round}")
        self.driver.stop()
        await self.driver.join()

    def snapshot(self) -> NodeStateSnapshot:
        return self.driver.inspect()

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get('/status', self._handle_status)
        app.router.add_post('/message', self._handle_message)
        app.router.add_get('/start', self._handle_start)
        app.router.add_get('/stop', self._handle_stop)
        app.router.add_get('/getState', self._handle_get_state)
        app.router.add_get('/metrics', self._handle_metrics)
        return app

    async def _handle_status(self, request):
        if self.is_faulty:
            return web.Response(status=500, text="faulty")
        return web.Response(text="live")

    async def _handle_message(self, request):
        if not self.available:
            return web.Response(status=500, text="Node is faulty or killed")

        try:
            data = await request.json()
            message = ProtocolMessage.from_dict(data)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Node {self.node_id}: malformed message: {e}")
            return web.json_response({'status': 'error', 'message': str(e)}, status=400)

        if not 0 <= message.sender_id < self.total_nodes:
            logger.warning(f"Node {self.node_id}: message from unknown sender {message.sender_id}")
            return web.json_response(
                {'status': 'error', 'message': f"unknown sender {message.sender_id}"}, status=400
            )

        self.submit_message(message)
        return web.Response(text="Message received")

    async def _handle_start(self, request):
        if not await self.start():
            return web.Response(status=500, text="Node is faulty or killed")
        return web.Response(text="Consensus started")

    async def _handle_stop(self, request):
        await self.stop()
        return web.Response(text="Node stopped")

    async def _handle_get_state(self, request):
        return web.json_response(self.snapshot().to_dict())

    async def _handle_metrics(self, request):
        return web.Response(body=metrics.export(), headers={'Content-Type': metrics.content_type})
