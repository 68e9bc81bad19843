from __future__ import annotations

import string
from typing import Iterable, Iterator
from urllib.parse import quote

from multidict import MultiDict


# printable ASCII that survives in a raw query as-is ("%" included so
# existing escapes are never doubled)
_VALUE_SAFE = "".join(ch for ch in string.punctuation if ch not in "&#")
_KEY_SAFE = _VALUE_SAFE.replace("=", "")


def param_encode(data: str, *, safe: str = _VALUE_SAFE) -> str:
    return quote(data, safe=safe)


class Params:
    """
    Ordered multi-valued query parameters.

    Keys and values are kept raw (no percent-decoding) so fuzzing payloads
    survive a decode/encode cycle. Order is insertion order, duplicates kept.
    """

    def __init__(self, items: Params | Iterable[tuple[str, str]] | None = None) -> None:
        if isinstance(items, Params):
            self._data: MultiDict[str] = MultiDict(items._data)
        else:
            self._data = MultiDict(items or [])

    def decode(self, raw: str) -> Params:
        for part in (raw or "").split("&"):
            if not part:
                continue
            key, _, value = part.partition("=")
            self._data.add(key, value)
        return self

    def encode(self) -> str:
        out: list[str] = []
        for key, value in self._data.items():
            k = param_encode(key, safe=_KEY_SAFE)
            if value == "":
                out.append(k)
            else:
                out.append(f"{k}={param_encode(value)}")
        return "&".join(out)

    def merge(self, other: Params | None) -> Params:
        if other is None:
            return self
        self._data.extend(other._data.items())
        return self

    def add(self, key: str, *values: str) -> None:
        for v in values:
            self._data.add(key, v)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def get(self, key: str, default: str = "") -> str:
        return self._data.get(key, default)

    def getall(self, key: str) -> list[str]:
        return list(self._data.getall(key, []))

    def delete(self, key: str) -> None:
        self._data.popall(key, None)

    def has(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> list[str]:
        seen: dict[str, None] = {}
        for k in self._data.keys():
            seen.setdefault(k, None)
        return list(seen)

    def items(self) -> list[tuple[str, str]]:
        return list(self._data.items())

    def to_dict(self) -> dict[str, list[str]]:
        return {k: self.getall(k) for k in self.keys()}

    def copy(self) -> Params:
        return Params(self)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.keys())

    def __bool__(self) -> bool:
        return len(self._data) > 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Params):
            return NotImplemented
        return self.items() == other.items()

    def __repr__(self) -> str:
        return f"Params({self.items()!r})"
