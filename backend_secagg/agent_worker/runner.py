"""
Participant runner: one bank's full pass through the protocol.

    load clients → publish → signal "published"
    coordinator only: wait for every bank → aggregate → signal "aggregated"
    every bank: wait for "aggregated" → reveal own averages

Phases are gated by PhaseBarrier markers rather than fixed sleeps; a missing
participant surfaces as BarrierTimeoutError. run_simulation() runs all banks
of a session in one process, one thread per bank, over a shared queue.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from backend_secagg.config.settings import Settings
from backend_secagg.core.exceptions import StaleSessionError
from backend_secagg.crypto.fhe import KeyContext, PaillierEngine
from backend_secagg.ingestion.client_csv import load_clients
from backend_secagg.protocol.aggregator import aggregate
from backend_secagg.protocol.models import AggregationResult, ClientRecord, RevealReport
from backend_secagg.protocol.publisher import publish_records
from backend_secagg.protocol.revealer import reveal
from backend_secagg.secagg_logging import bind_bank, get_logger, short_identity
from backend_secagg.transport.barrier import (
    ALL_PHASES,
    PHASE_AGGREGATED,
    PHASE_PUBLISHED,
    PhaseBarrier,
    phase_queue_name,
)
from backend_secagg.transport.queue import RecordQueue

logger = get_logger(__name__)


@dataclass
class ParticipantConfig:
    """Per-bank run configuration."""

    bank_id: int
    n_banks: int
    coordinator_bank: int = 0
    data_dir: Path = field(default_factory=lambda: Path("data"))
    records_queue: str = "records"
    aggregates_queue: str = "aggregates"
    phase_prefix: str = "phase"
    barrier_timeout_sec: float = 60.0
    barrier_poll_sec: float = 0.5

    @property
    def is_coordinator(self) -> bool:
        return self.bank_id == self.coordinator_bank

    @classmethod
    def from_settings(cls, settings: Settings, bank_id: int) -> "ParticipantConfig":
        return cls(
            bank_id=settings.validate_bank_id(bank_id),
            n_banks=settings.n_banks,
            coordinator_bank=settings.coordinator_bank,
            data_dir=settings.data_dir,
            records_queue=settings.records_queue,
            aggregates_queue=settings.aggregates_queue,
            phase_prefix=settings.phase_prefix,
            barrier_timeout_sec=settings.barrier_timeout_sec,
            barrier_poll_sec=settings.barrier_poll_sec,
        )


@dataclass
class ParticipantOutcome:
    bank_id: int
    published: int
    report: RevealReport
    aggregation: AggregationResult | None = None


def run_participant(
    config: ParticipantConfig,
    queue: RecordQueue,
    engine: PaillierEngine,
    keys: KeyContext,
    clients: Sequence[ClientRecord] | None = None,
) -> ParticipantOutcome:
    """
    Run one bank end to end. clients defaults to the bank's CSV under data_dir.

    Raises StaleSessionError if this bank already signalled "published" in the
    current queues (a previous run was not reset).
    """
    log = bind_bank(config.bank_id)
    published = PhaseBarrier(queue, PHASE_PUBLISHED, config.n_banks, prefix=config.phase_prefix)
    aggregated = PhaseBarrier(queue, PHASE_AGGREGATED, 1, prefix=config.phase_prefix)

    if config.bank_id in published.arrived():
        raise StaleSessionError(
            f"bank {config.bank_id} already published in this session; run 'backend-secagg reset' first",
            bank_id=config.bank_id,
        )

    if clients is None:
        clients = load_clients(config.bank_id, config.data_dir)
    own_ids = publish_records(
        config.bank_id, clients, queue, engine, keys, queue_name=config.records_queue
    )
    published.signal(config.bank_id)

    aggregation = None
    if config.is_coordinator:
        published.wait(config.barrier_timeout_sec, config.barrier_poll_sec)
        aggregation = aggregate(
            queue,
            engine,
            keys,
            records_queue=config.records_queue,
            aggregates_queue=config.aggregates_queue,
        )
        aggregated.signal(config.bank_id)

    # Non-coordinators also wait out the coordinator's own publish wait.
    aggregated.wait(config.barrier_timeout_sec * 2, config.barrier_poll_sec)
    report = reveal(
        config.bank_id, own_ids, queue, engine, keys, aggregates_queue=config.aggregates_queue
    )
    log.info(
        "participant_done",
        published=len(own_ids),
        revealed=report.revealed,
        coordinator=config.is_coordinator,
    )
    return ParticipantOutcome(
        bank_id=config.bank_id,
        published=len(own_ids),
        report=report,
        aggregation=aggregation,
    )


def run_simulation(
    base: ParticipantConfig,
    queue: RecordQueue,
    engine: PaillierEngine,
    keys: KeyContext,
    clients_by_bank: Mapping[int, Sequence[ClientRecord]] | None = None,
) -> list[ParticipantOutcome]:
    """
    Run every bank 0..n_banks-1 concurrently in this process.

    base supplies shared settings; its bank_id is ignored. Returns outcomes in
    bank order; the first participant failure is re-raised.
    """
    configs = [
        ParticipantConfig(
            bank_id=b,
            n_banks=base.n_banks,
            coordinator_bank=base.coordinator_bank,
            data_dir=base.data_dir,
            records_queue=base.records_queue,
            aggregates_queue=base.aggregates_queue,
            phase_prefix=base.phase_prefix,
            barrier_timeout_sec=base.barrier_timeout_sec,
            barrier_poll_sec=base.barrier_poll_sec,
        )
        for b in range(base.n_banks)
    ]
    logger.info("simulation_started", banks=base.n_banks, coordinator=base.coordinator_bank)
    with ThreadPoolExecutor(max_workers=base.n_banks) as pool:
        futures = [
            pool.submit(
                run_participant,
                cfg,
                queue,
                engine,
                keys,
                None if clients_by_bank is None else clients_by_bank[cfg.bank_id],
            )
            for cfg in configs
        ]
        outcomes = [f.result() for f in futures]
    logger.info("simulation_done", banks=base.n_banks)
    return outcomes


def reset_queues(
    queue: RecordQueue,
    records_queue: str = "records",
    aggregates_queue: str = "aggregates",
    phase_prefix: str = "phase",
) -> list[str]:
    """Delete the records, aggregates and phase queues. Returns the names cleared."""
    names = [records_queue, aggregates_queue] + [phase_queue_name(phase_prefix, p) for p in ALL_PHASES]
    for name in names:
        queue.delete(name)
    logger.info("queues_reset", queues=names)
    return names


def format_report(report: RevealReport) -> list[str]:
    """Console lines for one bank's reveal report."""
    lines = [f"Bank {report.bank_id} → selective reveal for its own clients"]
    for avg in report.averages:
        lines.append(
            f"  Bank {report.bank_id} → client …{short_identity(avg.identity)} → "
            f"average = {avg.average:.2f} (n={avg.count})"
        )
    lines.append(
        f"Bank {report.bank_id} revealed {report.revealed} of {report.rows_scanned} aggregate rows"
    )
    return lines
