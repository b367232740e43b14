"""Ben-Or round state machine"""
import asyncio
from enum import Enum
from typing import Dict, Optional
from dataclasses import dataclass
import logging

from ..communication.message_passing import Phase, ProtocolMessage, Transport, Value, broadcast
from ..utils.config import settings
from ..utils.metrics import metrics
from .decision import Coin, random_coin, propose_from_r, resolve_from_p, termination_permitted
from .message_store import MessageStore

logger = logging.getLogger(__name__)


class RoundPhase(Enum):
    """Steps of a single round"""
    IDLE = "idle"
    BROADCAST_R = "broadcast_r"
    AWAIT_R = "await_r"
    BROADCAST_P = "broadcast_p"
    AWAIT_P = "await_p"
    RESOLVE = "resolve"
    DECIDED = "decided"
    NEXT_ROUND = "next_round"


@dataclass
class NodeConsensusState:
    """Mutable consensus state owned by one node.

    All fields except `stopped` are None for a faulty node.
    """
    current_value: Optional[Value]
    decided: Optional[bool]
    round: Optional[int]
    stopped: bool = False

    @classmethod
    def initial(cls, initial_value: Value, is_faulty: bool) -> 'NodeConsensusState':
        if is_faulty:
            return cls(current_value=None, decided=None, round=None)
        return cls(current_value=initial_value, decided=False, round=0)


@dataclass(frozen=True)
class NodeStateSnapshot:
    """Read-only view of a node's consensus state"""
    stopped: bool
    current_value: Optional[Value]
    decided: Optional[bool]
    round: Optional[int]

    def to_dict(self) -> Dict:
        """Wire form served by /getState"""
        return {
            'killed': self.stopped,
            'x': self.current_value.value if self.current_value is not None else None,
            'decided': self.decided,
            'k': self.round
        }


class RoundStateMachine:
    """Runs Ben-Or rounds for one node.

    The machine owns the node's NodeConsensusState and MessageStore. It runs
    on a single event loop: inbound messages arrive through deliver() between
    the awaits of run_round(), never concurrently with a phase.
    """

    def __init__(self, node_id: int, total_nodes: int, faulty_nodes: int,
                 state: NodeConsensusState, transport: Transport,
                 store: Optional[MessageStore] = None, coin: Coin = random_coin,
                 round_window: Optional[float] = None):
        self.node_id = node_id
        self.total_nodes = total_nodes
        self.faulty_nodes = faulty_nodes
        self.state = state
        self.transport = transport
        self.store = store if store is not None else MessageStore()
        self.coin = coin
        self.round_window = round_window if round_window is not None else settings.round_window
        self.phase = RoundPhase.IDLE

    @property
    def is_faulty(self) -> bool:
        return self.state.round is None

    @property
    def termination_permitted(self) -> bool:
        return termination_permitted(self.total_nodes, self.faulty_nodes)

    @property
    def finished(self) -> bool:
        """No further round will run"""
        if self.state.stopped or self.is_faulty:
            return True
        return bool(self.state.decided) and self.termination_permitted

    def deliver(self, message: ProtocolMessage) -> bool:
        """Buffer an inbound message; rejected once stopped or when faulty.

        Messages that can no longer be counted (rounds before the previous
        one, or anything after a decision) are accepted but not stored.
        """
        if self.state.stopped or self.is_faulty:
            return False
        if self.finished or message.round < self.state.round - 1:
            logger.debug(f"Node {self.node_id}: dropped stale {message.phase.value} "
                         f"from {message.sender_id} for round {message.round}")
            return True
        self.store.record(message)
        metrics.record_message_received(self.node_id, message.phase.value)
        logger.debug(f"Node {self.node_id}: received {message.phase.value} "
                     f"from {message.sender_id} for round {message.round}")
        return True

    def stop(self):
        self.state.stopped = True

    def snapshot(self) -> NodeStateSnapshot:
        """Current state; the only read path for decided"""
        decided = self.state.decided
        if decided is not None and not self.termination_permitted:
            decided = False
        return NodeStateSnapshot(
            stopped=self.state.stopped,
            current_value=self.state.current_value,
            decided=decided,
            round=self.state.round
        )

    async def _send(self, phase: Phase, round_number: int, value: Value):
        message = ProtocolMessage(phase=phase, sender_id=self.node_id, round=round_number, value=value)
        self.store.record(message)
        delivered = await broadcast(self.transport, message)
        logger.debug(f"Node {self.node_id}: {phase.value}({value.value}) for round {round_number} "
                     f"delivered to {delivered}/{len(self.transport.peers())} peers")

    async def run_round(self) -> bool:
        """Run the current round to completion.

        Returns True when another round should follow.
        """
        if self.finished:
            return False

        k = self.state.round
        logger.debug(f"Node {self.node_id} - Round {k}: starting")

        self.phase = RoundPhase.BROADCAST_R
        await self._send(Phase.R, k, self.state.current_value)

        self.phase = RoundPhase.AWAIT_R
        await asyncio.sleep(self.round_window)
        if self.state.stopped:
            self.phase = RoundPhase.IDLE
            return False

        self.phase = RoundPhase.BROADCAST_P
        proposal = propose_from_r(self.store.read(k, Phase.R), self.total_nodes, self.coin)
        await self._send(Phase.P, k, proposal)

        self.phase = RoundPhase.AWAIT_P
        await asyncio.sleep(self.round_window)
        if self.state.stopped:
            self.phase = RoundPhase.IDLE
            return False

        self.phase = RoundPhase.RESOLVE
        resolution = resolve_from_p(
            self.store.read(k, Phase.P), self.total_nodes, self.faulty_nodes,
            self.state.current_value, self.coin
        )
        self.state.current_value = resolution.value

        if resolution.decided:
            self.phase = RoundPhase.DECIDED
            self.state.decided = True
            metrics.record_decision(self.node_id, resolution.value.value)
            logger.info(f"✅ Node {self.node_id}: decided {resolution.value.value} in round {k}")
            return False

        self.phase = RoundPhase.NEXT_ROUND
        self.state.round = k + 1
        self.store.prune(self.state.round)
        metrics.record_round(self.node_id, self.state.round)
        logger.debug(f"Node {self.node_id} - Round {k}: completed, estimate {resolution.value.value}")
        return not self.state.stopped
