"""Checksum manifests: remote WordPress.org APIs and local baselines.

Public API::

    from wpfortify.manifest import ManifestFetcher

    with ManifestFetcher() as fetcher:
        manifest = fetcher.fetch("core", "6.4.2", "en_US")
"""

from __future__ import annotations

from wpfortify.manifest.fetcher import Manifest, ManifestFetcher

__all__ = [
    "Manifest",
    "ManifestFetcher",
]
