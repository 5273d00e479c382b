"""Immutable, case-insensitive HTTP headers.

Stores the raw byte pairs from the ASGI scope and decodes on access.
"""

from collections.abc import Iterator, Mapping


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive HTTP headers.

    ``headers["Content-Type"]`` returns the first matching value;
    ``with_prefix("podium-")`` collects every header sharing a prefix.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        object.__setattr__(self, "_raw", raw)

    def __getitem__(self, key: str) -> str:
        wanted = key.lower().encode("latin-1")
        for name, value in self._raw:
            if name.lower() == wanted:
                return value.decode("latin-1")
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for name, _ in self._raw:
            key = name.decode("latin-1").lower()
            if key not in seen:
                seen.add(key)
                yield key

    def __len__(self) -> int:
        return len(set(self))

    def __repr__(self) -> str:
        return f"Headers({dict(self.items())!r})"

    def with_prefix(self, prefix: str) -> dict[str, str]:
        """Return headers starting with *prefix*, keyed without it.

        ``podium-locale: nb-NO`` with prefix ``"podium-"`` -> ``{"locale": "nb-NO"}``
        """
        prefix = prefix.lower()
        return {
            key[len(prefix) :]: self[key]
            for key in self
            if key.startswith(prefix) and len(key) > len(prefix)
        }

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        return self._raw
