"""
Generate synthetic per-bank client CSVs with realistic cross-bank overlaps.

A pool of unique random 64-bit client ids is spread over the banks: about 3%
of clients sit in 4-5 banks, 10% in 3, 25% in 2 and the rest in one. Each bank
is then topped up with random pool clients until it holds at least
clients_per_bank distinct ids. Scores are uniform in [20, 95].

Writes data/bank_{b}.csv (client_id,risk_score) and returns the overlap
statistics: number of clients present in exactly k banks.

Usage: backend-secagg generate-data [--seed N]
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd

from backend_secagg.ingestion.client_csv import bank_csv_path
from backend_secagg.secagg_logging import get_logger

logger = get_logger(__name__)

TOTAL_CLIENTS = 1000
CLIENTS_PER_BANK = 300
N_BANKS = 5
SCORE_MIN = 20
SCORE_MAX = 95

# Cumulative thresholds on a uniform draw -> number of banks sharing a client
SHARE_4_OR_5 = 0.03
SHARE_3 = 0.13
SHARE_2 = 0.38


@dataclass
class GenerationResult:
    paths: list[Path] = field(default_factory=list)
    bank_sizes: list[int] = field(default_factory=list)
    # k -> number of clients present in exactly k banks
    overlap: dict[int, int] = field(default_factory=dict)


def _banks_for_client(rng: np.random.Generator) -> int:
    x = rng.random()
    if x < SHARE_4_OR_5:
        return 4 + int(rng.integers(0, 2))
    if x < SHARE_3:
        return 3
    if x < SHARE_2:
        return 2
    return 1


def _unique_ids(rng: np.random.Generator, total: int) -> list[int]:
    ids: list[int] = []
    seen: set[int] = set()
    while len(ids) < total:
        for raw in rng.integers(0, 2**64, size=total - len(ids), dtype=np.uint64):
            value = int(raw)
            if value not in seen:
                seen.add(value)
                ids.append(value)
    return ids


def generate_bank_data(
    data_dir: str | Path,
    *,
    n_banks: int = N_BANKS,
    total_clients: int = TOTAL_CLIENTS,
    clients_per_bank: int = CLIENTS_PER_BANK,
    seed: int | None = None,
) -> GenerationResult:
    """Write one CSV per bank under data_dir and return overlap statistics."""
    if clients_per_bank > total_clients:
        raise ValueError("clients_per_bank cannot exceed total_clients")
    rng = np.random.default_rng(seed)
    pool = _unique_ids(rng, total_clients)

    bank_clients: list[dict[int, int]] = [{} for _ in range(n_banks)]
    for raw_id in pool:
        k = min(_banks_for_client(rng), n_banks)
        for b in rng.permutation(n_banks)[:k]:
            bank_clients[int(b)][raw_id] = int(rng.integers(SCORE_MIN, SCORE_MAX + 1))

    for clients in bank_clients:
        while len(clients) < clients_per_bank:
            raw_id = pool[int(rng.integers(0, total_clients))]
            if raw_id not in clients:
                clients[raw_id] = int(rng.integers(SCORE_MIN, SCORE_MAX + 1))

    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    result = GenerationResult()
    membership: Counter[int] = Counter()
    for b, clients in enumerate(bank_clients):
        path = bank_csv_path(data_dir, b)
        df = pd.DataFrame({
            "client_id": pd.Series(list(clients.keys()), dtype=object),
            "risk_score": list(clients.values()),
        })
        df.to_csv(path, index=False)
        result.paths.append(path)
        result.bank_sizes.append(len(clients))
        membership.update(clients.keys())
        logger.info("generate_data_bank_written", bank_id=b, clients=len(clients), path=str(path))

    counts = Counter(membership.values())
    result.overlap = {k: counts.get(k, 0) for k in range(1, n_banks + 1)}
    logger.info("generate_data_complete", banks=n_banks, overlap=result.overlap)
    return result
