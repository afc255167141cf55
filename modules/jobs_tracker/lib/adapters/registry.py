from __future__ import annotations

from collections.abc import Iterable

from ..config import AdapterSpec
from ..http_client import HttpClient
from ..reachability import ReachabilityChecker
from .base import BaseAdapter

# Global in-process registry: kind -> adapter class
_REGISTRY: dict[str, type[BaseAdapter]] = {}


def register(cls: type[BaseAdapter]) -> type[BaseAdapter]:
    """
    Class decorator or direct call to register an adapter class.
    Requires cls.kind to be a non-empty string.
    """
    kind = getattr(cls, "kind", "") or ""
    if not isinstance(kind, str) or not kind.strip():
        raise ValueError(f"Cannot register adapter {cls!r}: missing/empty 'kind'.")
    key = kind.strip().lower()
    if key in _REGISTRY and _REGISTRY[key] is not cls:
        # Allow idempotent re-registers of the same class; otherwise reject.
        raise ValueError(f"Adapter kind {key!r} already registered to {_REGISTRY[key]!r}.")
    _REGISTRY[key] = cls
    return cls


def get(kind: str) -> type[BaseAdapter]:
    """
    Look up an adapter class by kind (case-insensitive).
    Raises KeyError if not found.
    """
    key = (kind or "").strip().lower()
    if key not in _REGISTRY:
        raise KeyError(f"No adapter registered for kind {kind!r}.")
    return _REGISTRY[key]


def all_kinds() -> dict[str, type[BaseAdapter]]:
    """
    Return a shallow copy of the registry (useful for debugging/tests).
    """
    return dict(_REGISTRY)


def build_adapters(
    specs: Iterable[AdapterSpec],
    checker: ReachabilityChecker,
    *,
    client: HttpClient | None = None,
    synthetic: bool = False,
) -> list[BaseAdapter]:
    """
    Instantiate the configured adapters once, in config order.
    A spec-level `synthetic` overrides the global flag.
    """
    adapters: list[BaseAdapter] = []
    for spec in specs:
        cls = get(spec.kind)
        use_synthetic = synthetic if spec.synthetic is None else spec.synthetic
        adapters.append(cls(checker, client=client, synthetic=use_synthetic, params=spec.params))
    return adapters
