"""Discovery of a WordPress installation on disk.

Reads what the verification engine needs to know about an installation
without executing any PHP:

- the core version (``$wp_version`` in ``wp-includes/version.php``);
- the locale the package was built for (``$wp_local_package``);
- installed plugins: PHP files directly in ``wp-content/plugins`` or one
  directory below it that carry a ``Plugin Name`` header;
- installed themes: directories in ``wp-content/themes`` whose
  ``style.css`` carries a ``Theme Name`` header.

Every extension is classified as trusted (WordPress.org is its update
source) or not, using its ``Update URI`` header: an absent header or one
pointing at wordpress.org means trusted.

Usage::

    site = Installation(Path("/var/www/html"))
    print(site.core_version())
    for plugin in site.discover_plugins():
        print(plugin.key, plugin.version, plugin.trusted)
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from urllib.parse import urlparse

from wpfortify.core.models import PLUGINS, THEMES
from wpfortify.exceptions import InsufficientMetadataError
from wpfortify.site.headers import (
    PLUGIN_HEADERS,
    THEME_HEADERS,
    clean_label,
    read_headers,
)
from wpfortify.site.models import ExtensionInfo

logger = logging.getLogger(__name__)

VERSION_FILE = "wp-includes/version.php"
PLUGINS_DIR = "wp-content/plugins"
THEMES_DIR = "wp-content/themes"

_WP_VERSION_RE = re.compile(r"""\$wp_version\s*=\s*['"]([^'"]+)['"]""")
_LOCAL_PACKAGE_RE = re.compile(r"""\$wp_local_package\s*=\s*['"]([^'"]+)['"]""")
_KEY_INVALID_RE = re.compile(r"[^a-z0-9_\-]")
_TITLE_INVALID_RE = re.compile(r"[^a-z0-9\s_\-]")
_TITLE_DASHES_RE = re.compile(r"[\s_\-]+")


def sanitize_key(value: str) -> str:
    """Lower-case and keep only ``[a-z0-9_-]``."""
    return _KEY_INVALID_RE.sub("", value.lower())


def sanitize_title(value: str) -> str:
    """Turn a display name into a dash-separated slug."""
    title = _TITLE_INVALID_RE.sub("", value.lower())
    return _TITLE_DASHES_RE.sub("-", title).strip("-")


def is_trusted_source(update_uri: str, kind: str) -> bool:
    """Whether an ``Update URI`` header designates WordPress.org.

    Args:
        update_uri: Raw header value (may be empty).
        kind: ``"plugins"`` or ``"themes"``.
    """
    uri = update_uri.strip().lower()
    if not uri:
        return True
    return f"wordpress.org/{kind}" in uri or uri in ("wordpress.org", "w.org")


def slug_from_update_uri(update_uri: str) -> str:
    """Extract the slug from ``https://wordpress.org/plugins/<slug>/``."""
    uri = update_uri.strip().lower()
    if not uri:
        return ""
    parts = urlparse(uri if "://" in uri else f"https://{uri}")
    if "wordpress.org" not in (parts.hostname or ""):
        return ""
    segments = [s for s in parts.path.split("/") if s]
    if len(segments) < 2:
        return ""
    return sanitize_key(segments[1])


def guess_plugin_slug(key: str, text_domain: str, name: str) -> str:
    """Best-effort WordPress.org slug for a plugin without an explicit one.

    Resolution order: the plugin directory, the text domain, the sanitised
    name, the file basename.
    """
    directory, _, filename = key.rpartition("/")
    if directory:
        return sanitize_key(directory)
    if text_domain:
        return sanitize_key(text_domain)
    if name:
        return sanitize_title(name)
    return sanitize_key(filename.removesuffix(".php"))


class Installation:
    """Read-only view of a WordPress installation rooted at ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @property
    def plugins_dir(self) -> Path:
        return self.root / PLUGINS_DIR

    @property
    def themes_dir(self) -> Path:
        return self.root / THEMES_DIR

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    def _version_source(self) -> str:
        path = self.root / VERSION_FILE
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise InsufficientMetadataError(
                "WordPress version could not be determined."
            ) from exc

    def core_version(self) -> str:
        """Return the installed core version.

        Raises:
            InsufficientMetadataError: If ``version.php`` is unreadable or
                does not declare ``$wp_version``.
        """
        match = _WP_VERSION_RE.search(self._version_source())
        if not match:
            raise InsufficientMetadataError("WordPress version could not be determined.")
        return match.group(1).strip()

    def packaged_locale(self) -> str:
        """Return the locale of a localised package, or empty string."""
        try:
            source = self._version_source()
        except InsufficientMetadataError:
            return ""
        match = _LOCAL_PACKAGE_RE.search(source)
        return match.group(1).strip() if match else ""

    # ------------------------------------------------------------------
    # Plugins
    # ------------------------------------------------------------------

    def _plugin_candidates(self) -> list[Path]:
        base = self.plugins_dir
        if not base.is_dir():
            return []
        candidates: list[Path] = []
        try:
            entries = sorted(base.iterdir())
        except OSError as exc:
            logger.warning("Cannot list %s: %s", base, exc)
            return []
        for entry in entries:
            if entry.is_file() and entry.suffix == ".php":
                candidates.append(entry)
            elif entry.is_dir():
                try:
                    candidates.extend(
                        sorted(p for p in entry.iterdir() if p.is_file() and p.suffix == ".php")
                    )
                except OSError as exc:
                    logger.warning("Cannot list %s: %s", entry, exc)
        return candidates

    def discover_plugins(self) -> list[ExtensionInfo]:
        """Return every installed plugin, ordered by plugin basename."""
        plugins: list[ExtensionInfo] = []
        for path in self._plugin_candidates():
            headers = read_headers(path, PLUGIN_HEADERS)
            if not headers["Plugin Name"]:
                continue
            key = path.relative_to(self.plugins_dir).as_posix()
            update_uri = headers["Update URI"]
            trusted = is_trusted_source(update_uri, PLUGINS)
            slug = slug_from_update_uri(update_uri) if trusted else ""
            if not slug:
                slug = guess_plugin_slug(key, headers["Text Domain"], headers["Plugin Name"])
            plugins.append(ExtensionInfo(
                kind=PLUGINS,
                key=key,
                name=clean_label(headers["Plugin Name"]),
                version=headers["Version"],
                slug=slug,
                directory=path.parent,
                trusted=trusted,
                update_uri=update_uri,
            ))
        logger.debug("Discovered %d plugins under %s", len(plugins), self.plugins_dir)
        return plugins

    def plugin_root(self, plugin: ExtensionInfo) -> tuple[Path, bool]:
        """Directory a plugin manifest is relative to, and whether to
        report unexpected files.

        A plugin in its own directory owns that directory, so files the
        manifest does not list are reported. A single-file plugin shares
        the plugins directory with everything else, so it is compared
        without unexpected-file detection.
        """
        directory = plugin.key.rpartition("/")[0]
        if directory:
            candidate = self.plugins_dir / directory
            if candidate.is_dir():
                return candidate, True
        return self.plugins_dir, False

    # ------------------------------------------------------------------
    # Themes
    # ------------------------------------------------------------------

    def discover_themes(self) -> list[ExtensionInfo]:
        """Return every installed theme, ordered by stylesheet."""
        base = self.themes_dir
        themes: list[ExtensionInfo] = []
        if not base.is_dir():
            return themes
        try:
            entries = sorted(p for p in base.iterdir() if p.is_dir())
        except OSError as exc:
            logger.warning("Cannot list %s: %s", base, exc)
            return themes
        for directory in entries:
            style = directory / "style.css"
            if not style.is_file():
                continue
            headers = read_headers(style, THEME_HEADERS)
            if not headers["Theme Name"]:
                continue
            update_uri = headers["Update URI"]
            themes.append(ExtensionInfo(
                kind=THEMES,
                key=directory.name,
                name=clean_label(headers["Theme Name"]),
                version=headers["Version"],
                slug=directory.name,
                directory=directory,
                trusted=is_trusted_source(update_uri, THEMES),
                update_uri=update_uri,
            ))
        logger.debug("Discovered %d themes under %s", len(themes), base)
        return themes

    def find_plugin(self, key: str) -> ExtensionInfo | None:
        return next((p for p in self.discover_plugins() if p.key == key), None)

    def find_theme(self, stylesheet: str) -> ExtensionInfo | None:
        return next((t for t in self.discover_themes() if t.key == stylesheet), None)
