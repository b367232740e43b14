"""Per-round buffers of received protocol messages"""
from typing import Dict, FrozenSet, List

from ..communication.message_passing import Phase, ProtocolMessage


class MessageStore:
    """Buffers R and P messages by round.

    A sender has at most one message per (round, phase); a later message
    from the same sender replaces the earlier one.
    """

    def __init__(self):
        self._buckets: Dict[int, Dict[Phase, Dict[int, ProtocolMessage]]] = {}

    def record(self, message: ProtocolMessage):
        """Insert message into the bucket for its round and phase"""
        bucket = self._buckets.setdefault(message.round, {Phase.R: {}, Phase.P: {}})
        bucket[message.phase][message.sender_id] = message

    def read(self, round_number: int, phase: Phase) -> FrozenSet[ProtocolMessage]:
        bucket = self._buckets.get(round_number)
        if bucket is None:
            return frozenset()
        return frozenset(bucket[phase].values())

    def prune(self, before_round: int):
        """Discard buckets for rounds older than before_round - 1"""
        for round_number in [k for k in self._buckets if k < before_round - 1]:
            del self._buckets[round_number]

    def rounds(self) -> List[int]:
        """Buffered round numbers, ascending"""
        return sorted(self._buckets)

    def __len__(self) -> int:
        return sum(
            len(messages) for bucket in self._buckets.values() for messages in bucket.values()
        )
