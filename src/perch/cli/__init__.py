"""Perch CLI: run a podlet, print its manifest, or inspect its configuration.

Entry point registered as ``perch`` in ``pyproject.toml``::

    [project.scripts]
    perch = "perch.cli:main"
"""

import argparse
import sys


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    """Options that override configuration values (highest precedence)."""
    parser.add_argument("--root", default=None, help="Podlet project directory (default: cwd)")
    parser.add_argument("--env", default=None, help="Environment, e.g. local or prod")
    parser.add_argument("--domain", default=None, help="Domain, selects config/domains/<domain>")
    parser.add_argument("--host", default=None, help="Bind host address")
    parser.add_argument("--port", default=None, help="Bind port number")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=None,
        help="TRACE, DEBUG, INFO, WARN, ERROR or FATAL",
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``perch`` command."""
    parser = argparse.ArgumentParser(
        prog="perch",
        description="Perch: serve podlets with server-rendered web components.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- perch run --------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Start the podlet server")
    _add_config_arguments(run_parser)
    run_parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart on source changes (defaults to on in development)",
    )
    run_parser.add_argument("--workers", type=int, default=1, help="Worker count")

    # -- perch manifest ---------------------------------------------------
    manifest_parser = subparsers.add_parser("manifest", help="Print the podlet manifest")
    _add_config_arguments(manifest_parser)

    # -- perch config -----------------------------------------------------
    config_parser = subparsers.add_parser("config", help="Print the resolved configuration")
    _add_config_arguments(config_parser)
    config_parser.add_argument("key", nargs="?", help="Print a single dotted key")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "run":
        from perch.cli._run import run_podlet

        run_podlet(args)
    elif args.command == "manifest":
        from perch.cli._inspect import print_manifest

        print_manifest(args)
    elif args.command == "config":
        from perch.cli._inspect import print_config

        print_config(args)
