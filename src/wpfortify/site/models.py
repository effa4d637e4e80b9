"""Data models for installation discovery.

Contains the record produced for each installed extension (plugin or
theme) found by ``Installation``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ExtensionInfo:
    """An installed plugin or theme.

    Attributes:
        kind: ``"plugins"`` or ``"themes"``.
        key: Stable identifier. Plugin basename relative to the plugins
            directory (``akismet/akismet.php``) or theme stylesheet
            (``twentytwentyfour``).
        name: Display label with markup stripped.
        version: Declared version (empty when the header is missing).
        slug: Slug on WordPress.org (may be empty).
        directory: Directory holding the extension's files.
        trusted: Whether WordPress.org is the update source.
        update_uri: Raw ``Update URI`` header value.
    """

    kind: str
    key: str
    name: str
    version: str
    slug: str
    directory: Path
    trusted: bool = True
    update_uri: str = ""

    @property
    def is_single_file(self) -> bool:
        """True for a plugin that is a lone file in the plugins directory."""
        return self.kind == "plugins" and "/" not in self.key
