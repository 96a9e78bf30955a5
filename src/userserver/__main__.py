"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    python -m userserver                       # 127.0.0.1:8080, built-in roster
    python -m userserver --host 0.0.0.0 -p 9000
    python -m userserver --seed roster.json    # {"7": {"id": "7", "name": "..."}}
    python -m userserver --log-format json

Settings come from HTTP_* environment variables first (see
ServerConfig.from_env), then command-line flags override them.

Exit status: 0 after a clean shutdown, 1 if the server can't start
(e.g. the port is taken), 2 for bad arguments or an unreadable seed file.

=============================================================================
"""

import argparse
import json
import sys
from typing import Dict, List, Optional

from . import __version__
from .config import ServerConfig, LOG_FORMATS
from .server import create_app
from .store import User


# Lookup keys deliberately differ from the record ids.
DEFAULT_ROSTER: Dict[str, User] = {
    "1": User(id="MCI001", name="Kevin De Bruyne"),
    "2": User(id="MCI002", name="Bernardo Silva"),
    "3": User(id="MCI003", name="Erling Braut Haaland"),
    "4": User(id="MCI004", name="Ederson Moraes"),
    "5": User(id="MCI005", name="Jack Grealish"),
    "6": User(id="MCI006", name="Kyle Walker"),
    "7": User(id="MCI007", name="Joao Cancelo"),
    "8": User(id="MCI008", name="Ruben Dias"),
    "9": User(id="MCI009", name="Aymeric Laporte"),
    "10": User(id="MCI010", name="John Stones"),
    "11": User(id="MCI011", name="Manuel Akanji"),
    "12": User(id="MCI012", name="Ilkay Gundogan"),
    "13": User(id="MCI013", name="Phil Foden"),
    "14": User(id="MCI014", name="Riyad Mahrez"),
}


def load_seed(path: str) -> Dict[str, User]:
    """
    Read a seed file: a JSON object mapping lookup key → {"id", "name"}.

    Raises:
        OSError: The file can't be read.
        ValueError: Not JSON, not an object, or a record of the wrong shape.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("seed file must contain a JSON object")

    return {str(key): User.from_dict(record) for key, record in data.items()}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userserver",
        description="JSON users service over a from-scratch HTTP/1.1 server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  userserver                          # Built-in roster on 127.0.0.1:8080
  userserver --port 3000              # Custom port
  userserver --host 0.0.0.0           # Listen on all interfaces
  userserver --seed roster.json       # Start from your own records
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument("--host", "-H", default=None,
                        help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None,
                        help="Port to listen on (default: 8080)")

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument("--workers", "-w", type=int, default=None,
                        help="Worker threads at startup (default: 4); the pool may grow "
                             "to 2x this or HTTP_WORKERS (default: 16), whichever is larger")

    # ─────────────────────────────────────────────────────────────────────
    # DATA AND LOGGING
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument("--seed", metavar="FILE", default=None,
                        help="JSON file of initial users (default: built-in roster)")
    parser.add_argument("--log-level", "-l", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: INFO)")
    parser.add_argument("--log-format", default=None, choices=list(LOG_FORMATS),
                        help="Access log format (default: text)")

    parser.add_argument("--version", "-v", action="version",
                        version=f"userserver {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    config = ServerConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = max(config.max_workers, args.workers * 2)
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format
    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
        config.validate()
    except ValueError as e:
        print(f"userserver: invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.seed:
        try:
            seed = load_seed(args.seed)
        except (OSError, ValueError) as e:
            print(f"userserver: cannot load seed file {args.seed}: {e}", file=sys.stderr)
            return 2
    else:
        seed = DEFAULT_ROSTER

    server = create_app(seed, config)

    try:
        server.run()
    except OSError as e:
        print(f"userserver: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
