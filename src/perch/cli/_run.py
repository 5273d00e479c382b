"""``perch run``: build the podlet server and serve it with pounce."""

import argparse
import sys

from perch.cli._common import configure_logging, load_or_exit
from perch.errors import ConfigurationError


def run_podlet(args: argparse.Namespace) -> None:
    """Load configuration, assemble the ``PodletServer``, and serve it.

    Reload is on by default in development; production runs with the
    requested worker count.
    """
    config = load_or_exit(args)
    configure_logging(config)

    from perch.podlet.server import PodletServer
    from perch.server.dev import run_server

    try:
        server = PodletServer(config, root=args.root)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    run_server(
        server,
        config.get("app.host"),
        config.get("app.port"),
        reload=args.reload or config.get("app.development"),
        workers=args.workers,
    )
