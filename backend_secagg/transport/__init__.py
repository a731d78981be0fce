"""
Transport between participants: named shared lists and phase barriers.
"""

from backend_secagg.transport.barrier import PHASE_AGGREGATED, PHASE_PUBLISHED, PhaseBarrier
from backend_secagg.transport.queue import (
    InMemoryQueue,
    QueueSnapshot,
    RecordQueue,
    RedisQueue,
    get_queue,
    take_snapshot,
)

__all__ = [
    "PHASE_AGGREGATED",
    "PHASE_PUBLISHED",
    "InMemoryQueue",
    "PhaseBarrier",
    "QueueSnapshot",
    "RecordQueue",
    "RedisQueue",
    "get_queue",
    "take_snapshot",
]
