"""
Command-line entrypoint.

Usage:
  backend-secagg keygen [--bits N] [--public-only PATH]
  backend-secagg generate-data [--seed N]
  backend-secagg run BANK_ID
  backend-secagg simulate [--queue-url URL] [--ephemeral-key]
  backend-secagg reset

Every protocol failure is a SecAggError: its message is printed and the
process exits with the error's exit code (2 for usage errors, 1 otherwise).
Usage errors are raised before any queue access.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from backend_secagg.agent_worker.runner import (
    ParticipantConfig,
    format_report,
    reset_queues,
    run_participant,
    run_simulation,
)
from backend_secagg.config import Settings, get_settings
from backend_secagg.config.env import print_secagg_startup
from backend_secagg.core.exceptions import KeyMaterialError, SecAggError, UsageError
from backend_secagg.crypto.fhe import KeyContext, PaillierEngine
from backend_secagg.crypto.key_authority import MIN_KEY_BITS, issue_session_key, load_key, save_key
from backend_secagg.secagg_logging import get_logger
from backend_secagg.tools.generate_data import generate_bank_data
from backend_secagg.transport.queue import get_queue

logger = get_logger(__name__)


def _load_session_key(settings: Settings, engine: PaillierEngine) -> KeyContext:
    keys = load_key(settings.key_path)
    if not keys.can_decrypt:
        raise KeyMaterialError(
            f"{settings.key_path} is public-only; aggregation and reveal need the full session key",
            path=str(settings.key_path),
        )
    engine.check_capacity(keys)
    return keys


def cmd_keygen(args: argparse.Namespace, settings: Settings) -> int:
    key_bits = args.bits if args.bits is not None else settings.key_bits
    if key_bits < MIN_KEY_BITS:
        raise UsageError(f"key size must be at least {MIN_KEY_BITS} bits, got {key_bits}", key_bits=key_bits)
    if args.public_only and Path(args.public_only).resolve() == Path(settings.key_path).resolve():
        raise UsageError(
            f"--public-only path {args.public_only} would overwrite the session key file",
            path=str(args.public_only),
        )
    engine = PaillierEngine(settings.value_bits)
    keys = issue_session_key(engine, key_bits)
    path = save_key(settings.key_path, keys)
    print(f"Session key {keys.key_id} written to {path}")
    if args.public_only:
        public_path = save_key(args.public_only, keys, include_private=False)
        print(f"Public-only key written to {public_path}")
    return 0


def cmd_generate_data(args: argparse.Namespace, settings: Settings) -> int:
    result = generate_bank_data(settings.data_dir, n_banks=settings.n_banks, seed=args.seed)
    for path, size in zip(result.paths, result.bank_sizes):
        print(f"Wrote {path} — {size} clients")
    print("\nOverlap statistics:")
    for k, count in result.overlap.items():
        print(f"  Clients present in {k} bank(s): {count}")
    return 0


def cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    config = ParticipantConfig.from_settings(settings, args.bank_id)
    engine = PaillierEngine(settings.value_bits)
    keys = _load_session_key(settings, engine)
    print_secagg_startup(f"bank {config.bank_id}")
    queue = get_queue(settings.redis_url)
    try:
        outcome = run_participant(config, queue, engine, keys)
    finally:
        queue.close()
    print(f"Bank {outcome.bank_id} published {outcome.published} records")
    if outcome.aggregation is not None:
        print(f"Aggregation complete — {outcome.aggregation.distinct_identities} unique clients")
    print("\n".join(format_report(outcome.report)))
    return 0


def cmd_simulate(args: argparse.Namespace, settings: Settings) -> int:
    engine = PaillierEngine(settings.value_bits)
    if args.ephemeral_key:
        keys = issue_session_key(engine, settings.key_bits)
    else:
        keys = _load_session_key(settings, engine)
    base = ParticipantConfig.from_settings(settings, settings.coordinator_bank)
    queue = get_queue(args.queue_url or settings.redis_url)
    try:
        reset_queues(queue, settings.records_queue, settings.aggregates_queue, settings.phase_prefix)
        outcomes = run_simulation(base, queue, engine, keys)
    finally:
        queue.close()
    for outcome in outcomes:
        if outcome.aggregation is not None:
            print(f"Aggregation complete — {outcome.aggregation.distinct_identities} unique clients")
    for outcome in outcomes:
        print("\n".join(format_report(outcome.report)))
    return 0


def cmd_reset(args: argparse.Namespace, settings: Settings) -> int:
    queue = get_queue(settings.redis_url)
    try:
        names = reset_queues(queue, settings.records_queue, settings.aggregates_queue, settings.phase_prefix)
    finally:
        queue.close()
    print(f"Cleared queues: {', '.join(names)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backend-secagg",
        description="Confidential cross-bank risk scoring over homomorphic aggregation.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("keygen", help="Issue the shared session key (key authority)")
    p.add_argument("--bits", type=int, default=None, help="Paillier modulus size (default: SECAGG_KEY_BITS)")
    p.add_argument("--public-only", default=None, metavar="PATH", help="Also write a public-only key file")
    p.set_defaults(func=cmd_keygen)

    p = sub.add_parser("generate-data", help="Write synthetic data/bank_{id}.csv files")
    p.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    p.set_defaults(func=cmd_generate_data)

    p = sub.add_parser("run", help="Run one bank: publish, (aggregate), reveal")
    p.add_argument("bank_id", type=int, help="Bank identifier in [0, SECAGG_N_BANKS)")
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("simulate", help="Run every bank in this process")
    p.add_argument("--queue-url", default=None, help="Queue URL override, e.g. memory://")
    p.add_argument("--ephemeral-key", action="store_true", help="Generate a throwaway session key")
    p.set_defaults(func=cmd_simulate)

    p = sub.add_parser("reset", help="Clear records, aggregates and phase queues")
    p.set_defaults(func=cmd_reset)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
        return args.func(args, settings)
    except SecAggError as exc:
        logger.error("command_failed", command=args.command, **exc.to_dict())
        print(f"error: {exc.message}", file=sys.stderr)
        return exc.exit_code


if __name__ == "__main__":
    sys.exit(main())
