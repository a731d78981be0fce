"""
Phase barrier over the shared queue.

Each participant that finishes a phase appends a small JSON marker to the
phase list "{prefix}:{phase}". Waiters poll that list until markers from the
expected number of distinct participants are present, and raise
BarrierTimeoutError when the bounded wait runs out, so a slow publisher is
reported instead of silently missing the aggregation pass.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Callable

from backend_secagg.core.exceptions import BarrierTimeoutError, RecordSerializationError
from backend_secagg.secagg_logging import get_logger
from backend_secagg.transport.queue import RecordQueue, take_snapshot

logger = get_logger(__name__)

PHASE_PUBLISHED = "published"
PHASE_AGGREGATED = "aggregated"
ALL_PHASES = (PHASE_PUBLISHED, PHASE_AGGREGATED)


def phase_queue_name(prefix: str, phase: str) -> str:
    return f"{prefix}:{phase}"


@dataclass
class PhaseBarrier:
    """
    Counted barrier for one phase.

    expected_participants: distinct participants that must signal before wait() returns.
    clock / sleep: injectable for tests.
    """

    queue: RecordQueue
    phase: str
    expected_participants: int
    prefix: str = "phase"
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep

    @property
    def queue_name(self) -> str:
        return phase_queue_name(self.prefix, self.phase)

    def signal(self, participant_id: int) -> None:
        """Record that participant_id completed this phase."""
        marker = json.dumps(
            {"participant": participant_id, "phase": self.phase, "at": time.time()},
            separators=(",", ":"),
        ).encode("utf-8")
        self.queue.append(self.queue_name, marker)
        logger.info("barrier_signalled", phase=self.phase, participant=participant_id)

    def arrived(self) -> set[int]:
        """Distinct participants that have signalled so far."""
        seen: set[int] = set()
        for raw in take_snapshot(self.queue, self.queue_name).items:
            try:
                marker = json.loads(raw)
                seen.add(int(marker["participant"]))
            except (ValueError, KeyError, TypeError) as exc:
                raise RecordSerializationError(
                    f"malformed barrier marker in {self.queue_name!r}",
                    queue=self.queue_name,
                ) from exc
        return seen

    def wait(self, timeout_sec: float, poll_interval_sec: float = 0.5) -> set[int]:
        """
        Block until expected_participants have signalled.

        Returns the set of participants seen. Raises BarrierTimeoutError once
        timeout_sec elapses without enough arrivals.
        """
        deadline = self.clock() + timeout_sec
        while True:
            seen = self.arrived()
            if len(seen) >= self.expected_participants:
                logger.info("barrier_reached", phase=self.phase, participants=sorted(seen))
                return seen
            remaining = deadline - self.clock()
            if remaining <= 0:
                logger.error(
                    "barrier_timeout",
                    phase=self.phase,
                    expected=self.expected_participants,
                    seen=sorted(seen),
                    timeout_sec=timeout_sec,
                )
                raise BarrierTimeoutError(
                    f"phase {self.phase!r}: {len(seen)}/{self.expected_participants} participants "
                    f"arrived within {timeout_sec:g}s",
                    phase=self.phase,
                    expected=self.expected_participants,
                    seen=sorted(seen),
                )
            self.sleep(min(poll_interval_sec, remaining))
