"""Validated label sets and the storage key derived from them."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from reqmetrics.errors import DimensionTypeError

KEY_DELIMITER = "-"


class Dimensions(Mapping[str, str]):
    """Immutable ``str -> str`` mapping whose equality ignores insertion order.

    Non-string names or values are rejected at construction time rather than
    coerced, so a key can never be built from an ambiguous ``repr``.
    """

    __slots__ = ("_items", "_hash")

    def __init__(self, values: Mapping[str, Any] | None = None, /, **kwargs: Any) -> None:
        merged: dict[str, str] = {}
        for source in (values or {}, kwargs):
            for name, value in source.items():
                if not isinstance(name, str):
                    raise DimensionTypeError(f"Dimension names must be strings, got {type(name).__name__}")
                if not isinstance(value, str):
                    raise DimensionTypeError(
                        f"Dimension '{name}' must have a string value, got {type(value).__name__}"
                    )
                merged[name] = value
        self._items = merged
        self._hash: int | None = None

    @classmethod
    def of(cls, value: "Dimensions | Mapping[str, Any] | None") -> "Dimensions":
        """Return ``value`` unchanged if it is already validated, otherwise validate it."""

        if isinstance(value, Dimensions):
            return value
        return cls(value)

    def __getitem__(self, name: str) -> str:
        return self._items[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._items.items()))
        return self._hash

    def __repr__(self) -> str:
        return f"Dimensions({dict(sorted(self._items.items()))!r})"

    def to_dict(self) -> dict[str, str]:
        return dict(self._items)


def storage_key(name: str, dimensions: Dimensions | Mapping[str, Any] | None = None) -> str:
    """Derive the registry key for ``name`` and ``dimensions``.

    The key is the name followed by each dimension *value*, ordered by
    dimension name and joined with ``KEY_DELIMITER``. Names themselves are not
    part of the key: ``{"a": "x"}`` and ``{"b": "x"}`` both map to ``name-x``.
    Downstream consumers rely on this exact format, so the collision is kept.
    """

    if not isinstance(name, str):
        raise DimensionTypeError(f"Metric names must be strings, got {type(name).__name__}")
    dims = Dimensions.of(dimensions)
    key = name
    for dimension_name in sorted(dims):
        key = f"{key}{KEY_DELIMITER}{dims[dimension_name]}"
    return key
