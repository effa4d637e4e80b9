"""Path filter: which paths belong to a component's manifest surface.

For WordPress core, user-controlled locations (the runtime configuration,
uploads, caches and every directory that holds user-installable
extensions) are excluded from verification. Bundled themes that ship with
core are the exception: when the caller opts to include them, the
allow-set is derived from the manifest itself and re-admits exactly the
theme directories the manifest references, nothing else under
``wp-content/themes``.

Resolution is two-pass:

1. deny list (``CORE_EXCLUDED_FILES`` and ``CORE_EXCLUDED_PREFIXES``);
2. ``derive_allowances`` builds the fine-grained allow-set from manifest
   paths under ``BUNDLED_ROOT``, which then wins over the deny list for
   that one subtree only.

All prefix tests compare whole path segments, so ``wp-content/themes-extra``
is never considered to be under ``wp-content/themes``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

CORE_EXCLUDED_FILES: tuple[str, ...] = ("wp-config.php",)

CORE_EXCLUDED_PREFIXES: tuple[str, ...] = (
    "wp-content/uploads",
    "wp-content/cache",
    "wp-content/plugins",
    "wp-content/themes",
    "wp-content/mu-plugins",
    "wp-content/blogs.dir",
    "wp-content/upgrade",
)

# Root of the sub-items core may bundle (default themes).
BUNDLED_ROOT: str = "wp-content/themes"

_SEPARATORS_RE = re.compile(r"[\\/]+")


def normalize_path(path: str) -> str:
    """Normalise a relative path to forward slashes without edge slashes."""
    return _SEPARATORS_RE.sub("/", str(path)).strip("/")


def is_under(path: str, prefix: str) -> bool:
    """True if ``path`` equals ``prefix`` or lies below it, segment-wise."""
    path = normalize_path(path)
    prefix = normalize_path(prefix)
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


@dataclass(frozen=True)
class Allowances:
    """Paths re-admitted under an otherwise excluded root.

    Attributes:
        directories: Directories whose whole subtree is admitted
            (``wp-content/themes/twentytwentyfour``).
        files: Individual files admitted (``wp-content/themes/index.php``).
    """

    directories: tuple[str, ...] = ()
    files: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.directories or self.files)

    def admits(self, path: str) -> bool:
        """True if ``path`` is one of the admitted files or directories."""
        path = normalize_path(path)
        if path in self.files:
            return True
        return any(is_under(path, d) for d in self.directories)

    def leads_to(self, path: str) -> bool:
        """True if ``path`` is an ancestor directory of something admitted."""
        path = normalize_path(path)
        return any(is_under(d, path) for d in self.directories) or any(
            is_under(f, path) for f in self.files
        )

    def to_dict(self) -> dict[str, list[str]]:
        return {"directories": list(self.directories), "files": list(self.files)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Allowances:
        if not data:
            return cls()
        return cls(
            directories=tuple(data.get("directories", ())),
            files=tuple(data.get("files", ())),
        )


NO_ALLOWANCES = Allowances()


def bundled_directory(path: str) -> str | None:
    """Return ``wp-content/themes/<slug>`` for a path inside a bundled theme.

    Files sitting directly in ``BUNDLED_ROOT`` (and anything outside it)
    have no owning sub-item directory and return None.
    """
    path = normalize_path(path)
    if not is_under(path, BUNDLED_ROOT) or path == BUNDLED_ROOT:
        return None
    rest = path[len(BUNDLED_ROOT) + 1:].split("/")
    if len(rest) < 2 or not rest[0]:
        return None
    return f"{BUNDLED_ROOT}/{rest[0]}"


def derive_allowances(manifest_paths: Iterable[str]) -> Allowances:
    """Build the allow-set from the manifest paths under ``BUNDLED_ROOT``."""
    directories: dict[str, None] = {}
    files: dict[str, None] = {}
    for raw in manifest_paths:
        path = normalize_path(raw)
        if not is_under(path, BUNDLED_ROOT) or path == BUNDLED_ROOT:
            continue
        directory = bundled_directory(path)
        if directory is not None:
            directories[directory] = None
        else:
            files[path] = None
    return Allowances(directories=tuple(directories), files=tuple(files))


def is_excluded(
    relative_path: str,
    component_type: str = "core",
    allowances: Allowances = NO_ALLOWANCES,
) -> bool:
    """Decide whether a path is outside the component's manifest surface.

    Args:
        relative_path: Path relative to the component root.
        component_type: Component id. Only ``core`` has a deny list;
            extension components own their whole directory.
        allowances: Allow-set re-admitting bundled sub-items.

    Returns:
        True if the path must be ignored for verification purposes.
    """
    if component_type != "core":
        return False

    path = normalize_path(relative_path)
    if not path:
        return False

    if path in CORE_EXCLUDED_FILES:
        return True

    for prefix in CORE_EXCLUDED_PREFIXES:
        if not is_under(path, prefix):
            continue
        if prefix == BUNDLED_ROOT and allowances:
            if allowances.admits(path):
                return False
        return True

    return False


def is_traversable(relative_dir: str, allowances: Allowances = NO_ALLOWANCES) -> bool:
    """Whether a directory walk of core should descend into ``relative_dir``.

    Excluded directories are pruned unless they lead to admitted sub-items
    (``wp-content/themes`` itself when bundled themes are included).
    """
    if not is_excluded(relative_dir, "core", allowances):
        return True
    return bool(allowances) and is_under(relative_dir, BUNDLED_ROOT) and allowances.leads_to(relative_dir)


def filter_core_manifest(
    checksums: Mapping[str, str],
    include_bundled: bool = False,
) -> tuple[dict[str, str], Allowances]:
    """Drop excluded entries from a core manifest.

    Args:
        checksums: Raw ``{path: hash}`` map from the authority.
        include_bundled: Keep bundled theme entries and admit their
            directories.

    Returns:
        ``(filtered_map, allowances)``. The map keeps manifest order.
    """
    normalized = {normalize_path(p): str(h) for p, h in checksums.items()}
    allowances = derive_allowances(normalized) if include_bundled else NO_ALLOWANCES
    filtered = {
        path: digest
        for path, digest in normalized.items()
        if path and not is_excluded(path, "core", allowances)
    }
    return filtered, allowances


def strip_prefixes(checksums: Mapping[str, str], prefixes: Iterable[str]) -> dict[str, str]:
    """Re-root manifest keys by removing the first matching directory prefix.

    Extension manifests are sometimes keyed as ``<slug>/file.php``; the
    comparator needs paths relative to the extension directory.
    """
    cleaned = [normalize_path(p) for p in prefixes if normalize_path(p)]
    result: dict[str, str] = {}
    for raw, digest in checksums.items():
        path = normalize_path(raw)
        for prefix in cleaned:
            if path == prefix:
                path = path.rsplit("/", 1)[-1]
                break
            if path.startswith(prefix + "/"):
                path = path[len(prefix) + 1:]
                break
        result[path] = str(digest)
    return result
