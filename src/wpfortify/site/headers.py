"""File-header parsing for WordPress plugins and themes.

WordPress reads extension metadata from a comment block near the top of the
main plugin file or the theme's ``style.css``. Only the first 8 KiB are
inspected, exactly like ``get_file_data()``; each header is a
``Name: value`` line inside that block.

Usage::

    headers = read_headers(Path("akismet/akismet.php"), PLUGIN_HEADERS)
    print(headers["Version"])
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

HEADER_READ_LIMIT = 8192

PLUGIN_HEADERS: tuple[str, ...] = (
    "Plugin Name",
    "Version",
    "Text Domain",
    "Update URI",
)

THEME_HEADERS: tuple[str, ...] = (
    "Theme Name",
    "Version",
    "Text Domain",
    "Update URI",
)

_CLOSING_RE = re.compile(r"\s*(?:\*/|\?>).*")
_TAG_RE = re.compile(r"<[^>]*>")


def parse_headers(text: str, names: Iterable[str]) -> dict[str, str]:
    """Extract header values from the leading text of a file.

    Args:
        text: File content (only the first 8 KiB are considered).
        names: Header names to look for, matched case-insensitively.

    Returns:
        Mapping of every requested name to its value; missing headers map
        to an empty string.
    """
    text = text[:HEADER_READ_LIMIT].replace("\r", "\n")
    values: dict[str, str] = {}
    for name in names:
        pattern = re.compile(
            r"^(?:[ \t]*<\?php)?[ \t/*#@]*" + re.escape(name) + r":(.*)$",
            re.IGNORECASE | re.MULTILINE,
        )
        match = pattern.search(text)
        values[name] = _CLOSING_RE.sub("", match.group(1)).strip() if match else ""
    return values


def read_headers(path: Path, names: Iterable[str]) -> dict[str, str]:
    """Read and parse the header block of ``path``.

    Unreadable files yield empty values rather than raising, so one broken
    extension never hides the rest of the installation.
    """
    try:
        with path.open("rb") as handle:
            raw = handle.read(HEADER_READ_LIMIT)
    except OSError as exc:
        logger.debug("Cannot read headers from %s: %s", path, exc)
        return {name: "" for name in names}
    return parse_headers(raw.decode("utf-8", errors="replace"), names)


def clean_label(label: str) -> str:
    """Strip markup from a display label, defaulting to ``Unknown``."""
    clean = _TAG_RE.sub("", label or "").strip()
    return clean or "Unknown"
