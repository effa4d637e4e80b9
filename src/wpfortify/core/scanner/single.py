"""WordPress core scanner strategy (single artifact, chunked by file).

Prepare resolves the installed version and locale, fetches the core
manifest, drops user-controlled paths (keeping bundled themes when asked),
and enumerates the files actually present inside the verifiable surface.
Each step then hashes a bounded slice of the manifest; finalize computes
the unexpected files in one pass and releases the working data.
"""

from __future__ import annotations

import logging

from wpfortify.config import DEFAULT_CHUNK_SIZE
from wpfortify.core.hashing import compare, find_unexpected, list_directory_files
from wpfortify.core.models import (
    ComponentKind,
    ComponentState,
    Phase,
    SingleResult,
    SingleWork,
)
from wpfortify.core.paths import (
    Allowances,
    filter_core_manifest,
    is_excluded,
    is_traversable,
)
from wpfortify.core.scanner.base import ComponentStrategy
from wpfortify.exceptions import EmptyManifestError
from wpfortify.manifest.fetcher import DEFAULT_LOCALE, ManifestFetcher
from wpfortify.site.installation import Installation

logger = logging.getLogger(__name__)


class CoreStrategy(ComponentStrategy):
    """Verifies WordPress core files against the official core manifest."""

    kind = ComponentKind.SINGLE

    def __init__(
        self,
        installation: Installation,
        fetcher: ManifestFetcher,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.installation = installation
        self.fetcher = fetcher
        self.chunk_size = max(1, chunk_size)

    def preparing_message(self, state: ComponentState) -> str:
        return "Fetching WordPress core checksums"

    def prepare(self, state: ComponentState) -> str:
        version = self.installation.core_version()
        locale = state.locale or self.installation.packaged_locale() or DEFAULT_LOCALE
        state.version = version

        manifest = self.fetcher.fetch_core(version, locale)
        state.locale = manifest.locale or locale

        filtered, allowances = filter_core_manifest(manifest.checksums, state.include_bundled)
        if not filtered:
            raise EmptyManifestError("No core files were available for scanning.")

        actual = list_directory_files(
            self.installation.root,
            include_dir=lambda d: is_traversable(d, allowances),
            include_file=lambda f: not is_excluded(f, "core", allowances),
        )

        state.single = SingleWork(
            checksums=filtered,
            files=list(filtered),
            actual_files=actual,
            allowances=allowances.to_dict(),
            algorithm=manifest.algorithm,
        )
        state.total = len(filtered)
        state.processed = 0
        logger.info(
            "Core %s (%s): %d manifest files, %d files on disk",
            version, state.locale, state.total, len(actual),
        )
        return f"Scanning WordPress core files (0 of {state.total})"

    def step(self, state: ComponentState) -> str:
        work = _work(state)
        batch = work.files[work.pointer:work.pointer + self.chunk_size]
        comparison = compare(
            self.installation.root,
            {path: work.checksums[path] for path in batch},
            work.algorithm,
        )
        work.modified.extend(comparison.modified)
        work.missing.extend(comparison.missing)
        work.errors.extend(comparison.errors)
        work.pointer += len(batch)
        state.processed = work.pointer
        return f"Scanning WordPress core files ({state.processed} of {state.total})"

    def exhausted(self, state: ComponentState) -> bool:
        work = _work(state)
        return work.pointer >= len(work.files)

    def finalizing_message(self, state: ComponentState, step_message: str) -> str:
        return "Wrapping up WordPress core scan"

    def finalize(self, state: ComponentState) -> None:
        work = _work(state)
        work.added = find_unexpected(work.actual_files, work.files)
        work.missing = list(dict.fromkeys(work.missing))
        work.modified = list({d.path: d for d in work.modified}.values())

        work.checksums = {}
        work.files = []
        work.actual_files = []
        work.allowances = Allowances().to_dict()
        work.pointer = 0
        state.processed = state.total

    def summary_message(self, state: ComponentState) -> str:
        work = _work(state)
        modified, missing, added = len(work.modified), len(work.missing), len(work.added)
        subject = "WordPress core and bundled themes" if state.include_bundled else "WordPress core"
        if not (modified or missing or added):
            return f"{subject} scan completed without integrity issues."
        return (
            f"{subject} issues detected: {modified} modified, {missing} missing, "
            f"{added} unexpected files."
        )

    def summarize(self, state: ComponentState) -> SingleResult:
        if state.phase is Phase.ERROR:
            return SingleResult(
                status=Phase.ERROR.value,
                summary=state.error_message or "Unable to scan WordPress core.",
                version=state.version,
                locale=state.locale,
                bundled_included=state.include_bundled,
            )
        work = _work(state)
        if state.phase.is_terminal:
            summary = self.summary_message(state)
        else:
            summary = (
                f"WordPress core scan incomplete: {state.processed} of {state.total} files checked."
            )
        return SingleResult(
            status=state.phase.value,
            summary=summary,
            version=state.version,
            locale=state.locale,
            bundled_included=state.include_bundled,
            modified=tuple(work.modified),
            missing=tuple(work.missing),
            added=tuple(work.added),
            errors=tuple(work.errors),
        )


def _work(state: ComponentState) -> SingleWork:
    if state.single is None:
        state.single = SingleWork()
    return state.single

