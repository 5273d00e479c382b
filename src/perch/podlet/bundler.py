"""Build component source files into server-side artifacts.

The registry never imports a component straight from the project
directory. A bundler first builds the entry file into a deterministic
output directory (``dist/server``), and the registry imports the
artifact. Any object with an async ``build(entry) -> Path`` satisfies
the ``Bundler`` protocol.
"""

import asyncio
import io
import logging
import tokenize
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from perch.errors import CompileError

logger = logging.getLogger("perch.podlet")


@dataclass(frozen=True, slots=True)
class BundleOptions:
    """Bundle target for server-side component builds."""

    format: str = "module"
    minify: bool = True
    legal_comments: str = "none"
    platform: str = "server"


class Bundler(Protocol):
    """Builds an entry file and returns the artifact path."""

    async def build(self, entry: Path) -> Path: ...


class PythonBundler:
    """Bundler for Python component modules.

    Validates the entry by compiling it, strips comments when
    ``legal_comments == "none"``, and writes ``<outdir>/<stem>.py``.

    Usage::

        bundler = PythonBundler(Path("dist/server"))
        artifact = await bundler.build(Path("content.py"))
    """

    __slots__ = ("options", "outdir")

    def __init__(self, outdir: Path, options: BundleOptions | None = None) -> None:
        self.outdir = Path(outdir)
        self.options = options or BundleOptions()

    async def build(self, entry: Path) -> Path:
        return await asyncio.to_thread(self._build, Path(entry))

    def _build(self, entry: Path) -> Path:
        try:
            source = entry.read_text(encoding="utf-8")
        except OSError as exc:
            raise CompileError(str(entry), str(exc)) from exc

        try:
            compile(source, str(entry), "exec")
        except SyntaxError as exc:
            raise CompileError(str(entry), f"{exc.msg} (line {exc.lineno})") from exc

        if self.options.minify and self.options.legal_comments == "none":
            source = strip_comments(source)

        self.outdir.mkdir(parents=True, exist_ok=True)
        artifact = self.outdir / f"{entry.stem}.py"
        artifact.write_text(source, encoding="utf-8")
        logger.debug("Built %s -> %s", entry, artifact)
        return artifact


def strip_comments(source: str) -> str:
    """Remove ``#`` comments from Python *source*, leaving code untouched."""
    tokens = tokenize.generate_tokens(io.StringIO(source).readline)
    kept = [tok for tok in tokens if tok.type != tokenize.COMMENT]
    return tokenize.untokenize(kept)
