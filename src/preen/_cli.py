"""Preen CLI — ``preen [root]``.

Entry point for the ``preen`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the preen CLI."""
    parser = argparse.ArgumentParser(
        prog="preen",
        description="Preview a directory of markdown files as GitHub renders them, "
        "reloading the browser when files change.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    parser.add_argument("root", nargs="?", default=".", help="Directory to serve")
    parser.add_argument("--host", default=None, help="Bind address (default 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default 4000)")
    parser.add_argument(
        "--context",
        default=None,
        metavar="OWNER/NAME",
        help="Repository context for GitHub rendering (enables issue links)",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        default=None,
        help="Render locally instead of through the GitHub API",
    )
    parser.add_argument(
        "--debounce-ms",
        type=int,
        default=None,
        help="Quiet period before a burst of changes reloads (default 100)",
    )
    parser.add_argument(
        "--hold-timeout",
        type=float,
        default=None,
        help="Seconds a live-reload request is held open (default 25)",
    )
    return parser


def _get_version() -> str:
    """Get the package version."""
    from preen import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Exits 1 on invalid configuration, an unwatchable root, or a socket
    that cannot be bound.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    from preen._errors import ConfigError, WatchEstablishError
    from preen.app import preview

    try:
        preview(
            root=args.root,
            host=args.host,
            port=args.port,
            context=args.context,
            offline=args.offline,
            debounce_ms=args.debounce_ms,
            hold_timeout=args.hold_timeout,
        )
    except (ConfigError, WatchEstablishError) as exc:
        print(f"preen: {exc}", file=sys.stderr)
        sys.exit(1)
    except OSError as exc:
        print(f"preen: cannot listen: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
