"""
Environment variable loading and validation for SecAgg.

- SECAGG_REDIS_URL: shared queue endpoint (default redis://127.0.0.1:5555/0; memory:// for single-process runs)
- SECAGG_KEY_PATH: session key file issued by the key authority
- SECAGG_DATA_DIR: directory holding bank_{id}.csv client files
- SECAGG_N_BANKS / SECAGG_COORDINATOR_BANK: participant count and aggregating bank
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from backend_secagg.core.exceptions import UsageError

# Project root: config is backend_secagg/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_REDIS_URL = "redis://127.0.0.1:5555/0"
DEFAULT_KEY_PATH = _ROOT / "keys" / "session_key.json"
DEFAULT_DATA_DIR = _ROOT / "data"
DEFAULT_N_BANKS = 5
DEFAULT_COORDINATOR_BANK = 0
DEFAULT_KEY_BITS = 2048
DEFAULT_VALUE_BITS = 64
DEFAULT_RECORDS_QUEUE = "records"
DEFAULT_AGGREGATES_QUEUE = "aggregates"
DEFAULT_PHASE_PREFIX = "phase"
DEFAULT_BARRIER_TIMEOUT_SEC = 60.0
DEFAULT_BARRIER_POLL_SEC = 0.5

# bank_id is carried as a single byte in the salted identity
MAX_BANKS = 256


def load_secagg_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    load_dotenv(_ENV_PATH)


def _env_str(name: str, default: str) -> str:
    return (os.getenv(name) or "").strip() or default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise UsageError(f"{name} must be an integer, got {raw!r}", variable=name) from exc


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise UsageError(f"{name} must be a number, got {raw!r}", variable=name) from exc


def get_redis_url() -> str:
    """Return SECAGG_REDIS_URL (default: local Redis on port 5555)."""
    load_secagg_env()
    return _env_str("SECAGG_REDIS_URL", DEFAULT_REDIS_URL)


def get_key_path() -> Path:
    """Return SECAGG_KEY_PATH, or keys/session_key.json under the project root."""
    load_secagg_env()
    return Path(_env_str("SECAGG_KEY_PATH", str(DEFAULT_KEY_PATH)))


def get_data_dir() -> Path:
    """Return SECAGG_DATA_DIR, or data/ under the project root."""
    load_secagg_env()
    return Path(_env_str("SECAGG_DATA_DIR", str(DEFAULT_DATA_DIR)))


def get_n_banks() -> int:
    """Return SECAGG_N_BANKS. Must be between 1 and 256."""
    load_secagg_env()
    n = _env_int("SECAGG_N_BANKS", DEFAULT_N_BANKS)
    if not 1 <= n <= MAX_BANKS:
        raise UsageError(f"SECAGG_N_BANKS must be between 1 and {MAX_BANKS}, got {n}", variable="SECAGG_N_BANKS")
    return n


def get_coordinator_bank() -> int:
    """Return SECAGG_COORDINATOR_BANK: the bank that runs aggregation (default 0)."""
    load_secagg_env()
    return _env_int("SECAGG_COORDINATOR_BANK", DEFAULT_COORDINATOR_BANK)


def get_key_bits() -> int:
    """Return SECAGG_KEY_BITS: Paillier modulus size for newly issued keys."""
    load_secagg_env()
    return _env_int("SECAGG_KEY_BITS", DEFAULT_KEY_BITS)


def get_value_bits() -> int:
    """Return SECAGG_VALUE_BITS: width of plaintexts accepted for encryption."""
    load_secagg_env()
    return _env_int("SECAGG_VALUE_BITS", DEFAULT_VALUE_BITS)


def get_queue_names() -> tuple[str, str, str]:
    """Return (records queue, aggregates queue, phase queue prefix)."""
    load_secagg_env()
    return (
        _env_str("SECAGG_RECORDS_QUEUE", DEFAULT_RECORDS_QUEUE),
        _env_str("SECAGG_AGGREGATES_QUEUE", DEFAULT_AGGREGATES_QUEUE),
        _env_str("SECAGG_PHASE_PREFIX", DEFAULT_PHASE_PREFIX),
    )


def get_barrier_timing() -> tuple[float, float]:
    """Return (timeout_sec, poll_interval_sec) for phase barriers."""
    load_secagg_env()
    timeout = _env_float("SECAGG_BARRIER_TIMEOUT_SEC", DEFAULT_BARRIER_TIMEOUT_SEC)
    poll = _env_float("SECAGG_BARRIER_POLL_SEC", DEFAULT_BARRIER_POLL_SEC)
    return max(0.0, timeout), max(0.01, poll)


def print_secagg_startup(script_name: str) -> None:
    """Print queue endpoint and participant layout at script start."""
    load_secagg_env()
    url = get_redis_url()
    # Mask password in URL if present
    if "@" in url:
        scheme, _, rest = url.partition("://")
        url = f"{scheme}://***@{rest.split('@', 1)[1]}"
    print(f"[secagg] {script_name} | queue={url} | banks={get_n_banks()} | coordinator={get_coordinator_bank()}")
