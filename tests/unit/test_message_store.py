"""Unit tests for the per-round message store"""
from benor.communication.message_passing import Phase, ProtocolMessage, Value
from benor.consensus.message_store import MessageStore


def test_record_and_read():
    store = MessageStore()
    r = ProtocolMessage(Phase.R, 1, 0, Value.ONE)
    p = ProtocolMessage(Phase.P, 1, 0, Value.ZERO)
    store.record(r)
    store.record(p)

    assert store.read(0, Phase.R) == {r}
    assert store.read(0, Phase.P) == {p}
    assert store.read(1, Phase.R) == frozenset()


def test_last_write_per_sender_wins():
    store = MessageStore()
    store.record(ProtocolMessage(Phase.R, 2, 0, Value.ZERO))
    store.record(ProtocolMessage(Phase.R, 2, 0, Value.ONE))

    assert store.read(0, Phase.R) == {ProtocolMessage(Phase.R, 2, 0, Value.ONE)}
    assert len(store) == 1


def test_future_rounds_are_buffered():
    store = MessageStore()
    store.record(ProtocolMessage(Phase.P, 0, 7, Value.ONE))
    assert store.rounds() == [7]


def test_prune_keeps_current_and_previous_round():
    store = MessageStore()
    for k in range(5):
        store.record(ProtocolMessage(Phase.R, 0, k, Value.ONE))

    store.prune(3)

    assert store.rounds() == [2, 3, 4]
    assert store.read(1, Phase.R) == frozenset()
