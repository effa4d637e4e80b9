"""Checksum manifest fetcher for the WordPress.org checksum APIs.

Retrieves the expected ``{relative_path: hash}`` map for a component and
version from the remote authority:

- core:    ``api.wordpress.org/core/checksums/1.0/`` (md5, per locale)
- plugins: ``downloads.wordpress.org/plugin-checksums/<slug>/<ver>.json``
- themes:  ``api.wordpress.org/themes/checksums/1.0/<slug>/<ver>``

Locale-aware endpoints are tried for an ordered, de-duplicated list of
candidate locales (preferred first, then ``en_US``). The first candidate
that yields a non-empty checksum map wins. When every candidate fails the
last failure is raised, except that an error message reported by the
remote authority itself is preferred over generic transport failures.

Usage::

    with ManifestFetcher() as fetcher:
        manifest = fetcher.fetch("core", "6.4.2", "de_DE")
        print(manifest.locale, len(manifest.checksums))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from wpfortify.core.hashing import DIGEST_SEPARATOR, SUPPORTED_ALGORITHMS
from wpfortify.exceptions import (
    EmptyManifestError,
    InsufficientMetadataError,
    ManifestError,
    RemoteReportedError,
    UnexpectedStatusError,
)
from wpfortify.manifest.http_client import DEFAULT_TIMEOUT, build_client, get_json

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CORE_CHECKSUMS_URL: str = "https://api.wordpress.org/core/checksums/1.0/"
PLUGIN_CHECKSUMS_URL: str = (
    "https://downloads.wordpress.org/plugin-checksums/{slug}/{version}.json"
)
THEME_CHECKSUMS_URL: str = "https://api.wordpress.org/themes/checksums/1.0/{slug}/{version}"

DEFAULT_LOCALE: str = "en_US"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Manifest:
    """A trusted checksum map for one component at one version.

    Attributes:
        checksums: Relative path to expected hex digest, in the order the
            authority emitted them.
        algorithm: Digest algorithm of the values (``md5`` or ``sha256``).
        locale: Locale that produced the manifest (empty when the endpoint
            is not localised).
        source: URL the manifest was retrieved from, or ``baseline:<path>``
            for locally generated baselines.
    """

    checksums: dict[str, str] = field(default_factory=dict)
    algorithm: str = "md5"
    locale: str = ""
    source: str = ""


def locale_candidates(locale: str, default: str = DEFAULT_LOCALE) -> list[str]:
    """Return the preferred locale then the default, de-duplicated."""
    return list(dict.fromkeys(c for c in (locale, default) if c))


def normalize_algorithm(value: Any) -> str:
    """Map a declared checksum type onto a supported algorithm (md5 default)."""
    algo = str(value or "").strip().lower()
    return algo if algo in SUPPORTED_ALGORITHMS else "md5"


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class ManifestFetcher:
    """Fetches checksum manifests from the WordPress.org APIs.

    The fetcher owns its ``httpx.Client`` unless one is passed in. Use it as
    a context manager, or call ``close()``, to release the connection pool.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        default_locale: str = DEFAULT_LOCALE,
    ) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else build_client(timeout=timeout)
        self._timeout = timeout
        self._default_locale = default_locale

    def __enter__(self) -> ManifestFetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            self._client.close()

    def fetch(
        self,
        component_id: str,
        version: str,
        locale: str = "",
        *,
        slug: str = "",
    ) -> Manifest:
        """Fetch the manifest for a component.

        Args:
            component_id: ``"core"``, ``"plugins"`` or ``"themes"``.
            version: Installed version to pin the manifest to.
            locale: Preferred locale (core and themes only).
            slug: Extension slug (plugins and themes only).

        Returns:
            The first non-empty manifest obtained.

        Raises:
            InsufficientMetadataError: If version or slug is missing.
            ManifestError: If no candidate produced a usable manifest.
        """
        if component_id == "core":
            return self.fetch_core(version, locale)
        if component_id == "plugins":
            return self.fetch_plugin(slug, version)
        if component_id == "themes":
            return self.fetch_theme(slug, version, locale)
        raise InsufficientMetadataError(f"No checksum source for component '{component_id}'.")

    def fetch_core(self, version: str, locale: str = "") -> Manifest:
        """Fetch WordPress core checksums with locale fallback."""
        if not version:
            raise InsufficientMetadataError("WordPress version could not be determined.")

        def attempt(candidate: str) -> Manifest:
            data = get_json(
                self._client, CORE_CHECKSUMS_URL,
                params={"version": version, "locale": candidate},
                timeout=self._timeout,
            )
            checksums = _extract_map(data, "checksums", version=version)
            return Manifest(
                checksums=checksums,
                algorithm="md5",
                locale=str(data.get("locale") or candidate),
                source=CORE_CHECKSUMS_URL,
            )

        return self._first_success(locale_candidates(locale, self._default_locale), attempt)

    def fetch_plugin(self, slug: str, version: str) -> Manifest:
        """Fetch checksums for a plugin hosted on WordPress.org."""
        if not slug or not version:
            raise InsufficientMetadataError("Invalid plugin checksum request.")

        url = PLUGIN_CHECKSUMS_URL.format(slug=quote(slug, safe=""), version=quote(version, safe=""))
        try:
            data = get_json(self._client, url, timeout=self._timeout)
        except UnexpectedStatusError as exc:
            if exc.status_code == 404:
                raise EmptyManifestError(
                    "Plugin checksums were not provided by WordPress.org."
                ) from exc
            raise

        raw_files = data.get("files")
        if not isinstance(raw_files, dict) or not raw_files:
            raise EmptyManifestError("Plugin checksums were not provided by WordPress.org.")

        checksums, algorithm = _flatten_file_hashes(raw_files)
        if not checksums:
            raise EmptyManifestError("Plugin checksums were not provided by WordPress.org.")
        return Manifest(checksums=checksums, algorithm=algorithm, source=url)

    def fetch_theme(self, slug: str, version: str, locale: str = "") -> Manifest:
        """Fetch checksums for a theme hosted on WordPress.org."""
        if not slug or not version:
            raise InsufficientMetadataError("Invalid theme checksum request.")

        url = THEME_CHECKSUMS_URL.format(slug=quote(slug, safe=""), version=quote(version, safe=""))

        def attempt(candidate: str) -> Manifest:
            data = get_json(self._client, url, params={"locale": candidate}, timeout=self._timeout)
            checksums = _extract_map(data, "checksums")
            return Manifest(
                checksums=checksums,
                algorithm=normalize_algorithm(data.get("checksum_type")),
                locale=str(data.get("locale") or candidate),
                source=url,
            )

        return self._first_success(locale_candidates(locale, self._default_locale), attempt)

    def _first_success(self, candidates: list[str], attempt: Any) -> Manifest:
        """Run ``attempt`` per candidate and return the first manifest."""
        last_error: ManifestError | None = None
        remote_error: RemoteReportedError | None = None

        for candidate in candidates:
            try:
                manifest = attempt(candidate)
            except RemoteReportedError as exc:
                logger.warning("Checksum authority reported for %s: %s", candidate, exc)
                remote_error = exc
                last_error = exc
                continue
            except ManifestError as exc:
                logger.debug("Checksum candidate %s failed: %s", candidate, exc)
                last_error = exc
                continue
            logger.debug("Fetched %d checksums (locale %s)", len(manifest.checksums), manifest.locale)
            return manifest

        if remote_error is not None:
            raise remote_error
        if last_error is not None:
            raise last_error
        raise ManifestError("Unable to download checksums.")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _extract_map(data: dict[str, Any], key: str, *, version: str = "") -> dict[str, str]:
    """Pull a non-empty ``{path: hash}`` map out of a response object."""
    checksums = data.get(key)
    # The core API nests the map under the version when asked for several.
    if isinstance(checksums, dict) and version and isinstance(checksums.get(version), dict):
        checksums = checksums[version]

    if not isinstance(checksums, dict) or not checksums:
        error = data.get("error")
        if isinstance(error, str) and error:
            raise RemoteReportedError(error)
        raise EmptyManifestError("Checksum data was not provided by WordPress.org.")

    result = {str(path): value for path, value in checksums.items() if isinstance(value, str)}
    if not result:
        raise EmptyManifestError("Checksum data was not provided by WordPress.org.")
    return result


def _flatten_file_hashes(raw_files: dict[str, Any]) -> tuple[dict[str, str], str]:
    """Reduce per-file hash objects to a single-algorithm map.

    The plugin endpoint reports ``{"md5": ..., "sha256": ...}`` per file,
    where each value may be a string or a list of accepted digests. sha256
    is used when every entry provides one, md5 otherwise. Lists are kept
    whole, joined with ``|``, so any published digest is accepted.
    """
    entries = {str(path): value for path, value in raw_files.items()}
    use_sha256 = all(isinstance(v, dict) and v.get("sha256") for v in entries.values())
    algorithm = "sha256" if use_sha256 else "md5"

    checksums: dict[str, str] = {}
    for path, value in entries.items():
        digest = value.get(algorithm) if isinstance(value, dict) else value
        if isinstance(digest, list):
            digest = DIGEST_SEPARATOR.join(str(d).strip() for d in digest if d)
        if isinstance(digest, str) and digest:
            checksums[path] = digest
    return checksums, algorithm
