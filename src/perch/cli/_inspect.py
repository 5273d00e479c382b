"""``perch manifest`` and ``perch config``: print what a podlet would serve."""

import argparse
import json
import sys

from perch.cli._common import load_or_exit
from perch.podlet.protocol import Podlet


def print_manifest(args: argparse.Namespace) -> None:
    """Print the manifest JSON the manifest route would return."""
    config = load_or_exit(args)
    podlet = Podlet(
        name=config.get("app.name"),
        version=config.get("podlet.version"),
        pathname=config.get("podlet.pathname"),
        manifest=config.get("podlet.manifest"),
        content=config.get("podlet.content"),
        fallback=config.get("podlet.fallback"),
        development=config.get("app.development"),
    )
    print(json.dumps(podlet.to_dict(), indent=2))


def print_config(args: argparse.Namespace) -> None:
    """Print the resolved configuration, or one key of it."""
    config = load_or_exit(args)
    if args.key:
        try:
            value = config.get(args.key)
        except KeyError as exc:
            print(f"Error: unknown configuration key {args.key!r}", file=sys.stderr)
            raise SystemExit(1) from exc
        print(json.dumps(value))
        return
    print(json.dumps(config.as_dict(), indent=2, sort_keys=True))
