"""
Load a bank's plaintext client list from data/bank_{bank_id}.csv.

CSV columns: client_id (unsigned 64-bit), risk_score (0-255). Ids are read
as text and converted with int() so values above 2**63 survive intact.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from backend_secagg.core.exceptions import ClientDataNotFoundError, InvalidClientRecordError
from backend_secagg.protocol.models import ClientRecord
from backend_secagg.secagg_logging import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("client_id", "risk_score")


def bank_csv_path(data_dir: str | Path, bank_id: int) -> Path:
    return Path(data_dir) / f"bank_{bank_id}.csv"


def load_clients(bank_id: int, data_dir: str | Path) -> list[ClientRecord]:
    """Load ClientRecords for bank_id. Raises ClientDataNotFoundError if the CSV is missing."""
    path = bank_csv_path(data_dir, bank_id)
    if not path.is_file():
        raise ClientDataNotFoundError(
            f"Client data not found: {path}. Run 'backend-secagg generate-data' first.",
            path=str(path),
        )
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise InvalidClientRecordError(f"{path.name} is missing columns: {', '.join(missing)}", path=str(path))

    clients: list[ClientRecord] = []
    for line_no, (raw_id, raw_score) in enumerate(zip(df["client_id"], df["risk_score"]), start=2):
        try:
            client_id, risk_score = int(raw_id.strip()), int(raw_score.strip())
        except ValueError as exc:
            raise InvalidClientRecordError(
                f"{path.name}:{line_no}: client_id and risk_score must be integers",
                path=str(path),
                line=line_no,
            ) from exc
        clients.append(ClientRecord(client_id=client_id, risk_score=risk_score))

    logger.info("client_csv_loaded", bank_id=bank_id, clients=len(clients), path=str(path))
    return clients
