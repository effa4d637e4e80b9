"""File hasher and comparator.

Compares files on disk against an expected ``{relative_path: hash}`` map:

- a manifest entry with no file on disk is **missing**;
- a file that cannot be read or hashed is recorded as an error *and* as a
  synthetic **modified** entry with an empty actual hash, so it is never
  invisible in the diff;
- a file whose digest matches none of the accepted digests
  (case-insensitively) is **modified**; a manifest value may list several
  accepted digests joined with ``|``;
- with unexpected-file detection enabled, any file under the root that
  the manifest does not list is **added**.

All output lists are de-duplicated and order-stable: manifest order for
modified and missing, filesystem enumeration order for added. Comparing a
manifest in one pass or in any number of slices yields the same lists.
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping

from wpfortify.core.models import FileDiff, FileError, FileErrorKind
from wpfortify.core.paths import normalize_path
from wpfortify.exceptions import FileHashError, FileReadError

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS: tuple[str, ...] = ("md5", "sha256")

DIGEST_SEPARATOR = "|"

_READ_BLOCK = 1024 * 1024


@dataclass
class Comparison:
    """Outcome of comparing a set of files against expected hashes."""

    modified: list[FileDiff] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    errors: list[FileError] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.modified or self.missing or self.added)


def hash_file(path: Path, algorithm: str = "md5") -> str:
    """Compute the hex digest of a file.

    Args:
        path: File to hash.
        algorithm: ``md5`` or ``sha256``; anything else falls back to md5.

    Returns:
        Lower-case hex digest.

    Raises:
        FileReadError: If the file cannot be opened.
        FileHashError: If reading fails part-way through hashing.
    """
    algo = algorithm.lower() if algorithm.lower() in SUPPORTED_ALGORITHMS else "md5"
    digest = hashlib.new(algo)
    try:
        handle = path.open("rb")
    except OSError as exc:
        raise FileReadError("File could not be read.", str(path)) from exc
    with handle:
        try:
            for block in iter(lambda: handle.read(_READ_BLOCK), b""):
                digest.update(block)
        except OSError as exc:
            raise FileHashError("File could not be hashed.", str(path)) from exc
    return digest.hexdigest()


def accepted_digests(expected: str) -> list[str]:
    """Split a manifest value into its lower-cased accepted digests."""
    return [d.strip().lower() for d in expected.split(DIGEST_SEPARATOR) if d.strip()]


def check_file(root: Path, relative: str, expected: str, algorithm: str) -> tuple[str, FileDiff | None, FileError | None]:
    """Classify one manifest entry.

    ``expected`` may hold several accepted digests joined with ``|``; the
    file is ok when it matches any of them. Diffs report the first one.

    Returns:
        ``(outcome, diff, error)`` where outcome is ``"ok"``, ``"missing"``,
        ``"modified"`` or ``"error"``.
    """
    accepted = accepted_digests(expected)
    reported = expected.split(DIGEST_SEPARATOR, 1)[0].strip()
    full = root / relative
    if not full.exists():
        return "missing", None, None

    if full.is_file() and not os.access(full, os.R_OK):
        logger.warning("Unreadable file: %s", full)
        return (
            "error",
            FileDiff(path=relative, expected_hash=reported, actual_hash=""),
            FileError(path=relative, message="File could not be read.", kind=FileErrorKind.READ),
        )

    try:
        actual = hash_file(full, algorithm)
    except FileReadError as exc:
        logger.warning("Unreadable file: %s", full)
        return (
            "error",
            FileDiff(path=relative, expected_hash=reported, actual_hash=""),
            FileError(path=relative, message=str(exc), kind=FileErrorKind.READ),
        )
    except FileHashError as exc:
        logger.warning("Hashing failed for %s", full)
        return (
            "error",
            FileDiff(path=relative, expected_hash=reported, actual_hash=""),
            FileError(path=relative, message=str(exc), kind=FileErrorKind.HASH),
        )

    if actual.lower() not in accepted:
        return "modified", FileDiff(path=relative, expected_hash=reported, actual_hash=actual), None
    return "ok", None, None


def compare(
    root_dir: Path,
    manifest: Mapping[str, str],
    algorithm: str = "md5",
    detect_unexpected: bool = False,
) -> Comparison:
    """Compare files under ``root_dir`` with ``manifest``.

    Args:
        root_dir: Directory the manifest paths are relative to.
        manifest: ``{relative_path: expected_hash}`` (may be a slice).
        algorithm: Digest algorithm of the expected hashes.
        detect_unexpected: Also report files on disk that the manifest does
            not list. Only meaningful when ``manifest`` is complete.

    Returns:
        A ``Comparison`` with de-duplicated, order-stable lists.
    """
    result = Comparison()
    seen: set[str] = set()

    for raw_path, expected in manifest.items():
        relative = normalize_path(raw_path)
        if not relative or relative in seen:
            continue
        seen.add(relative)
        outcome, diff, error = check_file(root_dir, relative, str(expected), algorithm)
        if outcome == "missing":
            result.missing.append(relative)
        if diff is not None:
            result.modified.append(diff)
        if error is not None:
            result.errors.append(error)

    if detect_unexpected and root_dir.is_dir():
        result.added = find_unexpected(list_directory_files(root_dir), seen)

    return result


def find_unexpected(actual_files: Iterable[str], expected_paths: Iterable[str]) -> list[str]:
    """Return files present on disk but absent from the manifest.

    Order follows ``actual_files``; duplicates are dropped.
    """
    expected = {normalize_path(p) for p in expected_paths}
    added: dict[str, None] = {}
    for path in actual_files:
        rel = normalize_path(path)
        if rel and rel not in expected:
            added[rel] = None
    return list(added)


def list_directory_files(
    root: Path,
    *,
    include_dir: Callable[[str], bool] | None = None,
    include_file: Callable[[str], bool] | None = None,
) -> list[str]:
    """List every regular file under ``root`` as a relative POSIX path.

    Args:
        root: Directory to walk.
        include_dir: Optional predicate on a relative directory path;
            returning False prunes the subtree.
        include_file: Optional predicate on a relative file path.

    Returns:
        Relative paths in a stable (sorted, depth-first) order.
    """
    files: list[str] = []
    if not root.is_dir():
        return files

    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir
        dirnames.sort()
        if include_dir is not None:
            dirnames[:] = [
                d for d in dirnames
                if include_dir(f"{rel_dir}/{d}" if rel_dir else d)
            ]
        for name in sorted(filenames):
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if not os.path.isfile(os.path.join(dirpath, name)):
                continue
            if include_file is not None and not include_file(rel):
                continue
            files.append(rel)
    return files


def _log_walk_error(exc: OSError) -> None:
    logger.warning("Cannot list directory %s: %s", exc.filename, exc.strerror)
