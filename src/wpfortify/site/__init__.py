"""Discovery of a WordPress installation: core version, plugins, themes.

Public API::

    from wpfortify.site import Installation

    site = Installation(Path("/var/www/html"))
    for theme in site.discover_themes():
        print(theme.key, theme.version)
"""

from __future__ import annotations

from wpfortify.site.installation import Installation, is_trusted_source
from wpfortify.site.models import ExtensionInfo

__all__ = [
    "ExtensionInfo",
    "Installation",
    "is_trusted_source",
]
