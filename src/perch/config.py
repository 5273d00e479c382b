"""Podlet configuration.

A schema of frozen ``Setting`` entries keyed by dotted names, a loader that
merges every configuration source in a fixed order, and ``PodletConfig``,
the read-only result. Configuration is loaded and validated once, before
any route is registered, and never changes afterwards.

Source order (later wins)::

    schema defaults
    derived defaults (local env -> development, pyproject name, fallback.py)
    config/common.json
    config/domains/{domain}/config.{env}.json
    environment variables
    command-line arguments

Usage::

    config = load_config(Path.cwd(), args={"port": "3000"})
    config.get("app.name")
"""

import importlib.util
import json
import logging
import os
import re
import time
import tomllib
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from perch.errors import ConfigurationError

logger = logging.getLogger("perch.config")

_APP_NAME_RE = re.compile(r"^[a-z-]*$")
_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off"})

type Check = Callable[[Any], Any]


# -- Value checks --
# Each check coerces raw input (JSON values or strings from env/argv)
# and raises ValueError when the value is not acceptable.


def boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    msg = f"must be a boolean, got {value!r}"
    raise ValueError(msg)


def string(value: Any) -> str:
    if isinstance(value, str):
        return value
    msg = f"must be a string, got {value!r}"
    raise ValueError(msg)


def natural(value: Any) -> int:
    """Integer >= 0."""
    if isinstance(value, bool):
        msg = f"must be an integer >= 0, got {value!r}"
        raise ValueError(msg)
    try:
        number = int(value)
    except (TypeError, ValueError):
        msg = f"must be an integer >= 0, got {value!r}"
        raise ValueError(msg) from None
    if number < 0:
        msg = f"must be an integer >= 0, got {value!r}"
        raise ValueError(msg)
    return number


def port(value: Any) -> int:
    number = natural(value)
    if number > 65535:
        msg = f"must be a valid port (0-65535), got {value!r}"
        raise ValueError(msg)
    return number


def app_name(value: Any) -> str:
    name = string(value)
    if not _APP_NAME_RE.match(name):
        msg = "may only contain lower case letters and hyphens (^[a-z-]*$)"
        raise ValueError(msg)
    return name


def choice(*options: str) -> Check:
    """Build a check accepting only one of *options*."""

    def check(value: Any) -> str:
        if value not in options:
            msg = f"must be one of {', '.join(options)}, got {value!r}"
            raise ValueError(msg)
        return value

    return check


@dataclass(frozen=True, slots=True)
class Setting:
    """One configuration key.

    Args:
        default: Value used when no source provides one.
        check: Coerces and validates raw values.
        doc: Human readable description (shown by ``perch config``).
        env: Environment variable that overrides this key.
        arg: Command-line argument name that overrides this key.
        required: Reject a final value of ``None``.
    """

    default: Any
    check: Check = string
    doc: str = ""
    env: str | None = None
    arg: str | None = None
    required: bool = False


SCHEMA: dict[str, Setting] = {
    "app.name": Setting(
        None,
        app_name,
        doc="Podlet name. Must match ^[a-z-]*$. Defaults to the project name in pyproject.toml.",
        env="APP_NAME",
        required=True,
    ),
    "app.env": Setting("local", doc="Environment", env="ENV", arg="env"),
    "app.domain": Setting("localhost", doc="Domain", env="DOMAIN", arg="domain"),
    "app.host": Setting("127.0.0.1", doc="Bind host", env="HOST", arg="host"),
    "app.port": Setting(8080, port, doc="Port to expose the http service on", env="PORT", arg="port"),
    "app.logLevel": Setting(
        "INFO",
        choice("TRACE", "DEBUG", "INFO", "WARN", "ERROR", "FATAL"),
        doc="Log level",
        env="LOG_LEVEL",
        arg="log-level",
    ),
    "app.locale": Setting("en-US", doc="Locale", env="LOCALE"),
    "app.development": Setting(False, boolean, doc="Development mode", env="DEVELOPMENT"),
    "app.component": Setting(True, boolean, doc="Enables/disables component output"),
    "app.mode": Setting(
        "hydrate",
        choice("hydrate", "csr-only", "ssr-only"),
        doc="Render mode: hydrate, client side only or server side only",
    ),
    "app.grace": Setting(0, natural, doc="Shutdown grace period in seconds"),
    "app.processExceptionHandlers": Setting(
        True, boolean, doc="Use built in process exception handlers"
    ),
    "podlet.pathname": Setting("/", doc="Podlet pathname"),
    "podlet.version": Setting(
        None,
        doc="Podlet version. Changes on every start locally, stable between deploys in production.",
        env="VERSION",
    ),
    "podlet.manifest": Setting("/manifest.json", doc="Manifest route pathname"),
    "podlet.content": Setting("/", doc="Content route pathname"),
    "podlet.fallback": Setting("", doc="Fallback route pathname"),
    "metrics.enabled": Setting(True, boolean, doc="Enable/disable metrics collection"),
    "metrics.timing.enabled": Setting(True, boolean, doc="Enable/disable timing metrics"),
    "metrics.timing.timeAllRoutes": Setting(
        False, boolean, doc="Collect timing metrics for all routes"
    ),
    "metrics.timing.groupStatusCodes": Setting(
        True, boolean, doc="Group status codes for collected timing metrics"
    ),
    "assets.base": Setting(
        "/static",
        doc="Base path or URL for assets, without trailing slash",
    ),
}


class PodletConfig:
    """Validated, read-only podlet configuration.

    Values are addressed by dotted key. Unknown keys raise ``KeyError``
    rather than returning a default, so typos fail loudly::

        config.get("app.mode")      # "hydrate"
        config.get("app.moed")      # KeyError
    """

    __slots__ = ("_schema", "_values")

    def __init__(self, values: Mapping[str, Any], schema: Mapping[str, Setting] | None = None) -> None:
        object.__setattr__(self, "_values", MappingProxyType(dict(values)))
        object.__setattr__(self, "_schema", dict(schema or SCHEMA))

    def __setattr__(self, name: str, value: Any) -> None:
        msg = "PodletConfig is read-only"
        raise AttributeError(msg)

    def get(self, key: str) -> Any:
        """Return the value for a dotted *key*."""
        try:
            return self._values[key]
        except KeyError:
            msg = f"Unknown configuration key {key!r}"
            raise KeyError(msg) from None

    def __getitem__(self, key: str) -> Any:
        return self.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def doc(self, key: str) -> str:
        setting = self._schema.get(key)
        return setting.doc if setting else ""

    def as_dict(self) -> dict[str, Any]:
        """A copy of all values, keyed by dotted name."""
        return dict(self._values)

    def __repr__(self) -> str:
        return f"PodletConfig({self._values!r})"


def flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys.

    ``{"app": {"mode": "csr-only"}}`` -> ``{"app.mode": "csr-only"}``
    """
    flat: dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_config(
    root: str | Path | None = None,
    *,
    args: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> PodletConfig:
    """Load, merge, and validate the configuration for the project at *root*.

    Args:
        root: Project directory. Defaults to the working directory.
        args: Command-line overrides keyed by each setting's ``arg`` name.
        environ: Environment mapping. Defaults to ``os.environ``.

    Raises:
        ConfigurationError: If any value fails validation or a required
            value is missing.
    """
    root = Path(root) if root is not None else Path.cwd()
    environ = os.environ if environ is None else environ
    args = args or {}

    schema = dict(SCHEMA)
    schema.update(_load_user_schema(root))

    values: dict[str, Any] = {key: setting.default for key, setting in schema.items()}
    values["podlet.version"] = str(int(time.time() * 1000))

    # env and domain decide which override file applies, so resolve them first
    overrides = {**_from_environment(schema, environ), **_from_args(schema, args)}
    env = overrides.get("app.env", values["app.env"])
    domain = overrides.get("app.domain", values["app.domain"])

    if env == "local":
        values["app.development"] = True

    name = _project_name(root)
    if name is not None:
        values["app.name"] = name

    if (root / "fallback.py").is_file():
        values["podlet.fallback"] = "/fallback"

    for path in (
        root / "config" / "common.json",
        root / "config" / "domains" / str(domain) / f"config.{env}.json",
    ):
        if path.is_file():
            values.update(_load_file(path, schema))

    values.update(overrides)
    return PodletConfig(_validate(values, schema), schema)


def _validate(values: Mapping[str, Any], schema: Mapping[str, Setting]) -> dict[str, Any]:
    errors: list[str] = []
    result: dict[str, Any] = {}
    for key, setting in schema.items():
        value = values.get(key)
        if value is None:
            if setting.required:
                errors.append(f"{key}: must be set")
            result[key] = None
            continue
        try:
            result[key] = setting.check(value)
        except ValueError as exc:
            errors.append(f"{key}: {exc}")

    if errors:
        msg = "Invalid configuration:\n  " + "\n  ".join(errors)
        raise ConfigurationError(msg)
    return result


def _load_file(path: Path, schema: Mapping[str, Setting]) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        msg = f"Cannot parse {path}: {exc}"
        raise ConfigurationError(msg) from exc
    if not isinstance(data, Mapping):
        msg = f"{path} must contain a JSON object"
        raise ConfigurationError(msg)

    flat = flatten(data)
    for key in flat.keys() - schema.keys():
        logger.warning("Ignoring unknown configuration key %r in %s", key, path)
    return {key: value for key, value in flat.items() if key in schema}


def _from_environment(schema: Mapping[str, Setting], environ: Mapping[str, str]) -> dict[str, Any]:
    return {
        key: environ[setting.env]
        for key, setting in schema.items()
        if setting.env and setting.env in environ
    }


def _from_args(schema: Mapping[str, Setting], args: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: args[setting.arg]
        for key, setting in schema.items()
        if setting.arg and args.get(setting.arg) is not None
    }


def _project_name(root: Path) -> str | None:
    """Read ``[project].name`` from pyproject.toml, normalized to ``^[a-z-]*$`` style."""
    pyproject = root / "pyproject.toml"
    if not pyproject.is_file():
        return None
    with pyproject.open("rb") as fh:
        data = tomllib.load(fh)
    name = data.get("project", {}).get("name")
    if not isinstance(name, str):
        return None
    return re.sub(r"[-_.]+", "-", name).lower()


def _load_user_schema(root: Path) -> dict[str, Setting]:
    """Import ``config/schema.py`` and return its ``SCHEMA`` additions."""
    path = root / "config" / "schema.py"
    if not path.is_file():
        return {}

    spec = importlib.util.spec_from_file_location("perch_user_schema", path)
    if spec is None or spec.loader is None:
        return {}
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        msg = f"Cannot load user schema {path}: {exc}"
        raise ConfigurationError(msg) from exc

    extra = getattr(module, "SCHEMA", {})
    bad = [key for key, value in extra.items() if not isinstance(value, Setting)]
    if bad:
        msg = f"{path}: SCHEMA values must be Setting instances ({', '.join(bad)})"
        raise ConfigurationError(msg)
    return dict(extra)
