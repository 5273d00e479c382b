"""Shared helpers for CLI commands: configuration overrides and logging."""

import argparse
import logging
import sys

from perch.config import PodletConfig, load_config
from perch.errors import ConfigurationError

# Configuration log levels -> stdlib logging levels
LOG_LEVELS = {
    "TRACE": logging.DEBUG,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
}

_OVERRIDES = ("env", "domain", "host", "port", "log_level")


def config_overrides(args: argparse.Namespace) -> dict[str, str]:
    """Command-line values keyed by setting ``arg`` name (``log_level`` -> ``log-level``)."""
    return {
        name.replace("_", "-"): value
        for name in _OVERRIDES
        if (value := getattr(args, name, None)) is not None
    }


def load_or_exit(args: argparse.Namespace) -> PodletConfig:
    """Load configuration for the command, exiting with status 1 when invalid."""
    try:
        return load_config(args.root, args=config_overrides(args))
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


def configure_logging(config: PodletConfig) -> None:
    """Configure stdlib logging once from ``app.logLevel``."""
    logging.basicConfig(
        level=LOG_LEVELS[config.get("app.logLevel")],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
