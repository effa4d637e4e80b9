"""Component scanners: the shared phase machine and its per-kind strategies."""

from __future__ import annotations

from wpfortify.core.scanner.base import ComponentScanner, ComponentStrategy
from wpfortify.core.scanner.collection import CollectionStrategy
from wpfortify.core.scanner.single import CoreStrategy

__all__ = [
    "CollectionStrategy",
    "ComponentScanner",
    "ComponentStrategy",
    "CoreStrategy",
]
