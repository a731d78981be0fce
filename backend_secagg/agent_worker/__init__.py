"""
Agent worker package — per-bank participant orchestration.

Sequences publish, aggregate and reveal for one bank (or every bank of a
local simulation) and coordinates them through phase barriers.
"""

from backend_secagg.agent_worker.runner import (
    ParticipantConfig,
    ParticipantOutcome,
    reset_queues,
    run_participant,
    run_simulation,
)

__all__ = [
    "ParticipantConfig",
    "ParticipantOutcome",
    "reset_queues",
    "run_participant",
    "run_simulation",
]
