"""Unit tests for the consensus node control surface and HTTP routes"""
import pytest
import asyncio
from aiohttp.test_utils import TestClient, TestServer
from benor.communication.message_passing import LocalNetwork, Phase, ProtocolMessage, Value
from benor.nodes.consensus_node import ConsensusNode

TIMING = dict(round_window=0.005, round_delay=0.005, violated_round_delay=0.001, readiness_poll=0.005)


def make_node(n=4, f=1, value=1, is_faulty=False, node_id=0):
    transport = LocalNetwork().transport(node_id, n)
    return ConsensusNode(node_id, n, f, value, is_faulty, transport,
                         nodes_are_ready=lambda: True, **TIMING)


@pytest.mark.parametrize("kwargs", [
    dict(n=0),
    dict(f=-1),
    dict(node_id=4),
    dict(value='?'),
    dict(value=3),
])
def test_invalid_construction(kwargs):
    with pytest.raises(ValueError):
        make_node(**kwargs)


def test_status():
    assert make_node().status() == "live"
    assert make_node(is_faulty=True).status() == "faulty"


def test_submit_message_buffers():
    node = make_node()
    message = ProtocolMessage(Phase.R, 2, 0, Value.ZERO)

    assert node.submit_message(message) is True
    assert node.store.read(0, Phase.R) == {message}


@pytest.mark.asyncio
async def test_faulty_node_rejects_commands():
    node = make_node(is_faulty=True)

    assert node.submit_message(ProtocolMessage(Phase.R, 2, 0, Value.ZERO)) is False
    assert await node.start() is False
    assert not node.driver.running
    assert len(node.store) == 0


@pytest.mark.asyncio
async def test_stopped_node_rejects_commands():
    node = make_node()
    await node.stop()
    await node.stop()

    assert node.submit_message(ProtocolMessage(Phase.R, 2, 0, Value.ZERO)) is False
    assert await node.start() is False
    assert node.snapshot().stopped is True


@pytest.mark.asyncio
async def test_mark_ready_calls_back():
    ready = []
    node = ConsensusNode(1, 2, 0, 0, False, LocalNetwork().transport(1, 2),
                         nodes_are_ready=lambda: False, set_node_is_ready=ready.append)
    node.mark_ready()
    assert ready == [1]


@pytest.mark.asyncio
async def test_http_status_routes():
    async with TestClient(TestServer(make_node().create_app())) as client:
        response = await client.get('/status')
        assert response.status == 200
        assert await response.text() == "live"

    async with TestClient(TestServer(make_node(is_faulty=True).create_app())) as client:
        response = await client.get('/status')
        assert response.status == 500
        assert await response.text() == "faulty"


@pytest.mark.asyncio
async def test_http_message_route():
    node = make_node()
    async with TestClient(TestServer(node.create_app())) as client:
        response = await client.post('/message', json={'phase': 'P', 'senderId': 3, 'round': 0, 'value': 0})
        assert response.status == 200
        assert node.store.read(0, Phase.P) == {ProtocolMessage(Phase.P, 3, 0, Value.ZERO)}

        response = await client.post('/message', json={'phase': 'P', 'senderId': 3, 'round': 0, 'value': 5})
        assert response.status == 400
        assert (await response.json())['status'] == 'error'

        response = await client.post('/message', data=b'not json')
        assert response.status == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("sender_id", [4, -1, 10 ** 6])
async def test_http_message_from_unknown_sender(sender_id):
    node = make_node(n=4)
    async with TestClient(TestServer(node.create_app())) as client:
        response = await client.post('/message', json={'phase': 'R', 'senderId': sender_id, 'round': 0, 'value': 1})
        assert response.status == 400
        assert (await response.json())['status'] == 'error'
        assert len(node.store) == 0


@pytest.mark.asyncio
async def test_http_faulty_node_rejects_messages_and_start():
    node = make_node(is_faulty=True)
    async with TestClient(TestServer(node.create_app())) as client:
        response = await client.post('/message', json={'phase': 'R', 'senderId': 1, 'round': 0, 'value': 1})
        assert response.status == 500

        response = await client.get('/start')
        assert response.status == 500

        response = await client.get('/getState')
        assert await response.json() == {'killed': False, 'x': None, 'decided': None, 'k': None}


@pytest.mark.asyncio
async def test_http_start_single_node_decides():
    node = make_node(n=1, f=0, value=0)
    async with TestClient(TestServer(node.create_app())) as client:
        response = await client.get('/start')
        assert response.status == 200

        await asyncio.wait_for(node.driver.join(), timeout=2)

        response = await client.get('/getState')
        assert await response.json() == {'killed': False, 'x': 0, 'decided': True, 'k': 0}


@pytest.mark.asyncio
async def test_http_stop():
    node = make_node(n=3, f=2)
    async with TestClient(TestServer(node.create_app())) as client:
        await client.get('/start')
        await asyncio.sleep(0.05)

        response = await client.get('/stop')
        assert response.status == 200
        assert await response.text() == "Node stopped"

        state = await (await client.get('/getState')).json()
        assert state['killed'] is True
        assert state['decided'] is False

        response = await client.post('/message', json={'phase': 'R', 'senderId': 1, 'round': 0, 'value': 1})
        assert response.status == 500


@pytest.mark.asyncio
async def test_http_metrics():
    async with TestClient(TestServer(make_node().create_app())) as client:
        response = await client.get('/metrics')
        assert response.status == 200
        assert 'benor_rounds_completed' in await response.text()
