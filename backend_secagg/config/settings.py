"""
Application settings.

Collects the environment getters from config.env into one frozen Settings
object, validated once, for use by the CLI and the participant runner.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from backend_secagg.config import env
from backend_secagg.core.exceptions import UsageError


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one participant process."""

    redis_url: str
    key_path: Path
    data_dir: Path
    n_banks: int
    coordinator_bank: int
    key_bits: int
    value_bits: int
    records_queue: str
    aggregates_queue: str
    phase_prefix: str
    barrier_timeout_sec: float
    barrier_poll_sec: float

    def validate_bank_id(self, bank_id: int) -> int:
        """Return bank_id if it is in [0, n_banks); raise UsageError otherwise."""
        if not 0 <= bank_id < self.n_banks:
            raise UsageError(
                f"bank_id must be between 0 and {self.n_banks - 1}, got {bank_id}",
                bank_id=bank_id,
            )
        return bank_id


def get_settings() -> Settings:
    """
    Return the current application settings.

    Raises UsageError if a variable is malformed or the coordinator bank is
    outside the participant range.
    """
    records_queue, aggregates_queue, phase_prefix = env.get_queue_names()
    timeout_sec, poll_sec = env.get_barrier_timing()
    settings = Settings(
        redis_url=env.get_redis_url(),
        key_path=env.get_key_path(),
        data_dir=env.get_data_dir(),
        n_banks=env.get_n_banks(),
        coordinator_bank=env.get_coordinator_bank(),
        key_bits=env.get_key_bits(),
        value_bits=env.get_value_bits(),
        records_queue=records_queue,
        aggregates_queue=aggregates_queue,
        phase_prefix=phase_prefix,
        barrier_timeout_sec=timeout_sec,
        barrier_poll_sec=poll_sec,
    )
    if not 0 <= settings.coordinator_bank < settings.n_banks:
        raise UsageError(
            f"SECAGG_COORDINATOR_BANK must be between 0 and {settings.n_banks - 1}",
            variable="SECAGG_COORDINATOR_BANK",
        )
    if settings.value_bits < 1:
        raise UsageError("SECAGG_VALUE_BITS must be positive", variable="SECAGG_VALUE_BITS")
    return settings
