"""Locally generated checksum baselines for third-party extensions.

Extensions that do not come from WordPress.org have no remote authority.
For those, a sha256 manifest can be captured from the installed files
(after the administrator has reviewed them) and later used in place of a
remote manifest. Each baseline records the extension version it was taken
from; a baseline whose version differs from the installed one is stale.

Layout under the state directory::

    baselines/plugins/<sanitised key>.json
    baselines/themes/<stylesheet>.json

Usage::

    store = BaselineStore(settings.state_dir)
    store.generate(plugin)
    manifest = store.load("plugins", plugin.key)
"""

from __future__ import annotations

import json
import logging
import re
import time
from pathlib import Path
from typing import Any

from wpfortify.core.hashing import hash_file, list_directory_files
from wpfortify.exceptions import BaselineError, FileCheckError
from wpfortify.manifest.fetcher import Manifest
from wpfortify.site.models import ExtensionInfo

logger = logging.getLogger(__name__)

BASELINE_ALGORITHM = "sha256"

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._\-]+")


def baseline_filename(key: str) -> str:
    """File name for an extension key (``akismet/akismet.php`` -> ``akismet-akismet.php.json``)."""
    return _UNSAFE_CHARS_RE.sub("-", key).strip("-.") + ".json"


class BaselineStore:
    """Reads and writes baselines under ``<state_dir>/baselines``."""

    def __init__(self, state_dir: Path) -> None:
        self.base_dir = Path(state_dir) / "baselines"

    def path_for(self, kind: str, key: str) -> Path:
        return self.base_dir / kind / baseline_filename(key)

    def read(self, kind: str, key: str) -> dict[str, Any] | None:
        """Return the raw baseline document, or None if absent or corrupt."""
        path = self.path_for(kind, key)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable baseline %s: %s", path, exc)
            return None
        if not isinstance(data, dict) or not isinstance(data.get("files"), dict):
            return None
        return data

    def exists(self, kind: str, key: str) -> bool:
        return self.read(kind, key) is not None

    def is_stale(self, extension: ExtensionInfo) -> bool:
        """True when the baseline is missing or was taken from another version."""
        data = self.read(extension.kind, extension.key)
        if data is None:
            return True
        return str(data.get("version", "")) != extension.version

    def load(self, kind: str, key: str) -> Manifest:
        """Return the baseline as a ``Manifest``.

        Raises:
            BaselineError: If no usable baseline exists.
        """
        data = self.read(kind, key)
        if data is None or not data["files"]:
            raise BaselineError(f"No local baseline for {key}.")
        return Manifest(
            checksums={str(k): str(v) for k, v in data["files"].items()},
            algorithm=str(data.get("algorithm") or BASELINE_ALGORITHM),
            source=f"baseline:{self.path_for(kind, key)}",
        )

    def generate(self, extension: ExtensionInfo, root: Path | None = None) -> Path:
        """Hash every file of an extension and write its baseline.

        Args:
            extension: The installed extension.
            root: Directory to hash. Defaults to the extension directory.

        Returns:
            Path of the written baseline file.

        Raises:
            BaselineError: If a file cannot be hashed or the baseline
                cannot be written.
        """
        root = root or extension.directory
        if extension.is_single_file:
            files = [extension.key]
        else:
            files = list_directory_files(root)
        if not files:
            raise BaselineError(f"No files found for {extension.key}.")

        checksums: dict[str, str] = {}
        for relative in files:
            try:
                checksums[relative] = hash_file(root / relative, BASELINE_ALGORITHM)
            except FileCheckError as exc:
                raise BaselineError(f"Cannot hash {relative}: {exc}") from exc

        payload = {
            "key": extension.key,
            "kind": extension.kind,
            "version": extension.version,
            "algorithm": BASELINE_ALGORITHM,
            "generated_at": int(time.time()),
            "files": checksums,
        }
        path = self.path_for(extension.kind, extension.key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise BaselineError(f"Failed to write baseline {path}: {exc}") from exc

        logger.info("Wrote baseline for %s (%d files)", extension.key, len(checksums))
        return path

    def delete(self, kind: str, key: str) -> bool:
        """Remove a baseline; False when there was none."""
        path = self.path_for(kind, key)
        if not path.is_file():
            return False
        path.unlink()
        return True
