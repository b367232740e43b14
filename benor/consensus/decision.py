"""Ben-Or threshold rules.

Pure functions over a round's buffered messages. The only source of
non-determinism is the coin, which callers inject so that tests can
supply a fixed sequence.

Thresholds, with N nodes of which at most F are faulty:

- R phase: a value seen in more than N/2 messages is proposed.
- P phase: a value seen in at least N - F messages is decided, a value
  seen in at least F + 1 messages is adopted as the next estimate.

Deciding is only permitted while F <= N/2. Past that bound the node keeps
adopting values and running rounds but never decides.
"""
import random
from dataclasses import dataclass
from typing import Callable, Iterable, Tuple

from ..communication.message_passing import ProtocolMessage, Value

Coin = Callable[[], Value]


def random_coin() -> Value:
    """Fair coin over {0, 1}"""
    return Value.ZERO if random.random() < 0.5 else Value.ONE


@dataclass(frozen=True)
class Resolution:
    """Outcome of the P phase"""
    value: Value
    decided: bool


def termination_permitted(total_nodes: int, faulty_nodes: int) -> bool:
    """Whether the fault bound F <= N/2 holds, so a node may decide"""
    return faulty_nodes <= total_nodes / 2


def count_values(messages: Iterable[ProtocolMessage]) -> Tuple[int, int]:
    """Count messages carrying 0 and 1"""
    count0 = count1 = 0
    for message in messages:
        if message.value is Value.ZERO:
            count0 += 1
        elif message.value is Value.ONE:
            count1 += 1
    return count0, count1


def propose_from_r(messages: Iterable[ProtocolMessage], total_nodes: int,
                   coin: Coin = random_coin) -> Value:
    """Value to send in the P phase"""
    count0, count1 = count_values(messages)
    if count0 > total_nodes / 2:
        return Value.ZERO
    if count1 > total_nodes / 2:
        return Value.ONE
    return coin()


def resolve_from_p(messages: Iterable[ProtocolMessage], total_nodes: int, faulty_nodes: int,
                   current: Value, coin: Coin = random_coin) -> Resolution:
    """New estimate and decision after the P phase"""
    count0, count1 = count_values(messages)

    if termination_permitted(total_nodes, faulty_nodes):
        if total_nodes == 1:
            return Resolution(current, True)

        threshold = total_nodes - faulty_nodes
        if count0 >= threshold:
            return Resolution(Value.ZERO, True)
        if count1 >= threshold:
            return Resolution(Value.ONE, True)

    if count0 >= faulty_nodes + 1:
        return Resolution(Value.ZERO, False)
    if count1 >= faulty_nodes + 1:
        return Resolution(Value.ONE, False)
    return Resolution(coin(), False)
