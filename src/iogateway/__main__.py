"""
=============================================================================
IOGATEWAY CLI ENTRY POINT
=============================================================================

    # Serve on port 8080
    python -m iogateway 8080

    # Verbose (debug logging)
    python -m iogateway 8080 v

    # Print the version and exit
    python -m iogateway 8080 a

    # Serve the UI from ./www, simulated board with outputs looped back
    python -m iogateway 8080 --assets ./www --loopback

The second positional keeps the gateway's historical meaning: "v" for
verbose, "a" for "about". Everything else is an ordinary flag. Values
not given on the command line come from IOGW_* environment variables,
then from the GatewayConfig defaults.

Exit status is 1 when the configuration is invalid or the port cannot be
bound.

=============================================================================
"""

import argparse
import sys
from dataclasses import replace
from typing import Optional, Sequence

from . import __version__
from .config import GatewayConfig
from .server import GatewayServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iogateway",
        description="Web gateway for an 8-bit digital I/O board",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m iogateway 8080                    # Serve on port 8080
  python -m iogateway 8080 v                  # Verbose
  python -m iogateway 8080 a                  # Print version and exit
  python -m iogateway 8080 --assets ./www     # Serve the UI from ./www
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # POSITIONAL ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "port",
        type=int,
        nargs="?",
        default=None,
        help="Port to listen on (default: IOGW_PORT or 8080)"
    )

    parser.add_argument(
        "mode",
        nargs="?",
        choices=["v", "a"],
        default=None,
        help="v = verbose, a = print version and exit"
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Address to bind to (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--max-connections",
        type=int,
        default=None,
        help="Connections handled at once (default: 32)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT AND EVENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--assets",
        default=None,
        help="Directory to serve the web UI from (default: .)"
    )

    parser.add_argument(
        "--tick",
        type=float,
        default=None,
        help="Seconds between events on a stream (default: 1.0)"
    )

    parser.add_argument(
        "--legacy-404",
        action="store_true",
        help='Send the not-found page with "200 OK"'
    )

    parser.add_argument(
        "--loopback",
        action="store_true",
        help="Simulated board: mirror outputs onto inputs"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING AND META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Same as --log-level DEBUG"
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"iogateway {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace, base: Optional[GatewayConfig] = None) -> GatewayConfig:
    """Overlay command-line values on an environment-derived config."""
    config = base or GatewayConfig.from_env()

    overrides = {}
    if args.port is not None:
        overrides["port"] = args.port
    if args.host is not None:
        overrides["host"] = args.host
    if args.max_connections is not None:
        overrides["max_connections"] = args.max_connections
    if args.assets is not None:
        overrides["assets_dir"] = args.assets
    if args.tick is not None:
        overrides["tick"] = args.tick
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.verbose or args.mode == "v":
        overrides["log_level"] = "DEBUG"
    if args.legacy_404:
        overrides["legacy_not_found"] = True
    if args.loopback:
        overrides["loopback"] = True

    return replace(config, **overrides)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.mode == "a":
        print(f"iogateway {__version__}")
        return 0

    try:
        config = config_from_args(args)
        server = GatewayServer(config)
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except OSError as e:
        print(f"Error: cannot listen on {config.host}:{config.port}: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
