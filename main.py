"""
Main entrypoint: run one bank participant (or any other CLI command).

    python main.py keygen
    python main.py generate-data --seed 7
    python main.py run 0   # coordinator; start banks 1..4 in other terminals

Env: SECAGG_REDIS_URL, SECAGG_KEY_PATH, SECAGG_DATA_DIR, SECAGG_N_BANKS, LOG_LEVEL, LOG_FORMAT.
"""

import sys


def main() -> None:
    from backend_secagg.cli import main as cli_main

    sys.exit(cli_main())


if __name__ == "__main__":
    main()
