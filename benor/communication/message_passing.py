"""Protocol messages and transports used to exchange them between nodes"""
import asyncio
from enum import Enum
from typing import Dict, Any, Optional, Callable, List
from dataclasses import dataclass
import aiohttp
from aiohttp import web
import logging

from ..utils.config import settings
from ..utils.metrics import metrics

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Message exchanges within a round"""
    R = "R"  # carries the current estimate
    P = "P"  # carries the value chosen after the R exchange


class Value(Enum):
    """Binary consensus value, or the unsettled sentinel"""
    ZERO = 0
    ONE = 1
    UNKNOWN = "?"

    @classmethod
    def parse(cls, raw: Any) -> 'Value':
        """Parse a wire value (0, 1 or "?")"""
        if isinstance(raw, bool):
            raise ValueError(f"Invalid value: {raw!r}")
        if isinstance(raw, Value):
            return raw
        try:
            return cls(raw)
        except ValueError:
            raise ValueError(f"Invalid value: {raw!r}") from None


@dataclass(frozen=True)
class ProtocolMessage:
    """Message exchanged between consensus nodes"""
    phase: Phase
    sender_id: int
    round: int
    value: Value

    def to_dict(self) -> Dict:
        """Convert message to the wire envelope"""
        return {
            'phase': self.phase.value,
            'senderId': self.sender_id,
            'round': self.round,
            'value': self.value.value
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'ProtocolMessage':
        """Create message from the wire envelope"""
        if not isinstance(data, dict):
            raise ValueError("Message envelope must be a JSON object")

        sender_id = data['senderId']
        round_number = data['round']
        for name, field_value in (('senderId', sender_id), ('round', round_number)):
            if isinstance(field_value, bool) or not isinstance(field_value, int):
                raise ValueError(f"{name} must be an integer")
        if round_number < 0:
            raise ValueError("round must be >= 0")

        return cls(
            phase=Phase(data['phase']),
            sender_id=sender_id,
            round=round_number,
            value=Value.parse(data['value'])
        )


class Transport:
    """Outbound channel from one node to its peers"""

    def __init__(self, node_id: int, total_nodes: int):
        self.node_id = node_id
        self.total_nodes = total_nodes

    def peers(self) -> List[int]:
        """Ids of every other node in the network"""
        return [i for i in range(self.total_nodes) if i != self.node_id]

    async def start(self):
        """Open the transport"""

    async def stop(self):
        """Close the transport"""

    async def send(self, peer_id: int, message: ProtocolMessage) -> bool:
        """Deliver message to a peer, returning whether it was accepted"""
        raise NotImplementedError


async def broadcast(transport: Transport, message: ProtocolMessage) -> int:
    """Send message to every peer, ignoring unreachable ones.

    Returns the number of peers that accepted the message. Never raises on
    delivery failures so a round always completes its phases.
    """
    delivered = 0
    for peer_id in transport.peers():
        try:
            accepted = await transport.send(peer_id, message)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.debug(f"Node {transport.node_id}: peer {peer_id} unreachable: {e}")
            accepted = False

        if accepted:
            delivered += 1
            metrics.record_message_sent(transport.node_id, message.phase.value)
        else:
            metrics.record_delivery_failure(transport.node_id)
    return delivered


class HttpTransport(Transport):
    """Send messages over HTTP and serve the node's routes"""

    def __init__(self, node_id: int, total_nodes: int, host: Optional[str] = None,
                 base_port: Optional[int] = None, timeout: Optional[float] = None):
        super().__init__(node_id, total_nodes)
        self.host = host or settings.node_host
        self.base_port = base_port if base_port is not None else settings.base_port
        self.timeout = aiohttp.ClientTimeout(
            total=timeout if timeout is not None else settings.request_timeout
        )
        self.session: Optional[aiohttp.ClientSession] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    @property
    def port(self) -> int:
        return self.base_port + self.node_id

    def peer_url(self, peer_id: int, path: str) -> str:
        return f"http://{self.host}:{self.base_port + peer_id}{path}"

    async def start(self, app: Optional[web.Application] = None):
        """Open the client session and, if given, serve app on this node's port"""
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

        if app is not None and self._runner is None:
            self._runner = web.AppRunner(app)
            await self._runner.setup()
            self._site = web.TCPSite(self._runner, self.host, self.port)
            await self._site.start()
            logger.info(f"Node {self.node_id} is listening on {self.host}:{self.port}")

    async def stop(self):
        """Close the client session and the server"""
        if self.session:
            await self.session.close()
            self.session = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None

    async def send(self, peer_id: int, message: ProtocolMessage) -> bool:
        """POST message to a peer's /message route"""
        if self.session is None:
            return False

        url = self.peer_url(peer_id, '/message')
        try:
            async with self.session.post(url, json=message.to_dict()) as response:
                if response.status != 200:
                    logger.debug(f"Node {self.node_id}: peer {peer_id} refused message ({response.status})")
                return response.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.debug(f"Node {self.node_id}: error sending to {url}: {e}")
            return False

    async def is_live(self, peer_id: int) -> bool:
        """Check that a peer answers on /status (a faulty peer still answers)"""
        if self.session is None:
            return False
        try:
            async with self.session.get(self.peer_url(peer_id, '/status')) as response:
                return response.status in (200, 500)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError):
            return False


class LocalNetwork:
    """In-process message routing between nodes sharing one event loop"""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._handlers: Dict[int, Callable[[ProtocolMessage], bool]] = {}

    def register(self, node_id: int, handler: Callable[[ProtocolMessage], bool]):
        """Register the inbound handler of a node"""
        self._handlers[node_id] = handler

    def unregister(self, node_id: int):
        self._handlers.pop(node_id, None)

    def transport(self, node_id: int, total_nodes: int) -> 'LocalTransport':
        return LocalTransport(self, node_id, total_nodes)

    async def deliver(self, peer_id: int, message: ProtocolMessage) -> bool:
        handler = self._handlers.get(peer_id)
        if handler is None:
            return False
        if self.latency:
            await asyncio.sleep(self.latency)
        return handler(message)


class LocalTransport(Transport):
    """Transport backed by a LocalNetwork"""

    def __init__(self, network: LocalNetwork, node_id: int, total_nodes: int):
        super().__init__(node_id, total_nodes)
        self.network = network

    async def send(self, peer_id: int, message: ProtocolMessage) -> bool:
        return await self.network.deliver(peer_id, message)
