"""
Script to run a single Ben-Or consensus node
"""
import asyncio
import logging

from benor.communication.message_passing import HttpTransport
from benor.communication.readiness import ReadinessTracker, mark_ready_when_live
from benor.nodes.consensus_node import ConsensusNode
from benor.utils.config import settings


async def main():
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    readiness = ReadinessTracker(settings.total_nodes)
    transport = HttpTransport(settings.node_id, settings.total_nodes)
    node = ConsensusNode(
        node_id=settings.node_id,
        total_nodes=settings.total_nodes,
        faulty_nodes=settings.faulty_nodes,
        initial_value=settings.initial_value,
        is_faulty=settings.is_faulty,
        transport=transport,
        nodes_are_ready=readiness.all_ready,
        set_node_is_ready=readiness.mark_ready
    )

    await transport.start(node.create_app())
    node.mark_ready()
    readiness_task = asyncio.create_task(
        mark_ready_when_live(readiness, transport.is_live, settings.peer_ids(), settings.readiness_poll)
    )

    print(f"\n{'='*60}")
    print(f"  BEN-OR NODE {settings.node_id} RUNNING")
    print(f"  Address: http://{settings.node_host}:{transport.port}")
    print(f"  N={settings.total_nodes}  F={settings.faulty_nodes}  faulty={settings.is_faulty}")
    print(f"{'='*60}\n")
    print("GET /start to begin consensus. Press Ctrl+C to stop...\n")

    try:
        while True:
            await asyncio.sleep(1)
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("\n\nStopping node...")
    finally:
        readiness_task.cancel()
        await node.stop()
        await transport.stop()
        print("Node stopped.")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
