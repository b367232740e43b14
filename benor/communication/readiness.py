"""Readiness tracking for nodes joining a network"""
import asyncio
from typing import Callable, Set
import logging

logger = logging.getLogger(__name__)


class ReadinessTracker:
    """Track which nodes of a network are up and accepting requests"""

    def __init__(self, total_nodes: int):
        self.total_nodes = total_nodes
        self.ready: Set[int] = set()

    def mark_ready(self, node_id: int):
        """Record that a node is ready to receive requests"""
        if node_id in self.ready:
            return
        self.ready.add(node_id)
        logger.debug(f"Node {node_id} ready ({len(self.ready)}/{self.total_nodes})")
        if self.all_ready():
            logger.info(f"All {self.total_nodes} nodes ready")

    def ready_nodes(self) -> Set[int]:
        return self.ready.copy()

    def all_ready(self) -> bool:
        return len(self.ready) >= self.total_nodes


async def wait_until_ready(predicate: Callable[[], bool], poll_interval: float,
                           should_continue: Callable[[], bool] = lambda: True) -> bool:
    """Poll predicate until it holds.

    Returns False if should_continue turns false first.
    """
    while should_continue():
        if predicate():
            return True
        await asyncio.sleep(poll_interval)
    return False


async def mark_ready_when_live(tracker: ReadinessTracker, is_live, peer_ids, poll_interval: float):
    """Mark peers ready as soon as is_live(peer_id) succeeds.

    is_live is an async callable, e.g. HttpTransport.is_live.
    """
    pending = set(peer_ids) - tracker.ready_nodes()
    while pending:
        for peer_id in list(pending):
            if await is_live(peer_id):
                tracker.mark_ready(peer_id)
                pending.discard(peer_id)
        if pending:
            await asyncio.sleep(poll_interval)
