"""Plugin and theme scanner strategy (collection, one item per step).

Prepare classifies every installed extension as verifiable or skipped
(with a reason). Each step then verifies exactly one extension: fetch its
manifest (WordPress.org, or a local baseline for third-party extensions
when enabled), re-root the manifest keys and compare the whole directory.
A failing extension is recorded as an item error and never stops its
siblings.
"""

from __future__ import annotations

import logging
from pathlib import Path

from wpfortify.core.hashing import compare
from wpfortify.core.models import (
    PLUGINS,
    CollectionResult,
    CollectionTotals,
    CollectionWork,
    ComponentKind,
    ComponentState,
    ItemError,
    ItemResult,
    ItemState,
    ItemStatus,
    Phase,
    SkippedItem,
)
from wpfortify.core.paths import strip_prefixes
from wpfortify.core.scanner.base import ComponentStrategy
from wpfortify.exceptions import EmptyManifestError, WPFortifyError
from wpfortify.manifest.baseline import BaselineStore
from wpfortify.manifest.fetcher import Manifest, ManifestFetcher
from wpfortify.site.installation import Installation
from wpfortify.site.models import ExtensionInfo

logger = logging.getLogger(__name__)

SOURCE_WPORG = "wordpress.org"
SOURCE_BASELINE = "baseline"

REASON_NOT_WPORG = "Not available on WordPress.org."
REASON_IGNORED = "Ignored by configuration."
REASON_STALE_BASELINE = "Local baseline is out of date."


class CollectionStrategy(ComponentStrategy):
    """Verifies installed plugins or themes one at a time.

    Args:
        component: ``"plugins"`` or ``"themes"``.
        installation: The installation to discover extensions in.
        fetcher: Remote manifest source.
        baselines: Local baseline store (third-party verification).
        third_party: Verify untrusted extensions against local baselines.
        ignore: Extension keys never verified.
    """

    kind = ComponentKind.COLLECTION

    def __init__(
        self,
        component: str,
        installation: Installation,
        fetcher: ManifestFetcher,
        *,
        baselines: BaselineStore | None = None,
        third_party: bool = False,
        ignore: tuple[str, ...] = (),
    ) -> None:
        self.component = component
        self.installation = installation
        self.fetcher = fetcher
        self.baselines = baselines
        self.third_party = third_party and baselines is not None
        self.ignore = frozenset(ignore)
        self.noun = "plugin" if component == PLUGINS else "theme"

    # ------------------------------------------------------------------
    # Prepare
    # ------------------------------------------------------------------

    def preparing_message(self, state: ComponentState) -> str:
        return f"Preparing {self.noun} verification"

    def _discover(self) -> list[ExtensionInfo]:
        if self.component == PLUGINS:
            return self.installation.discover_plugins()
        return self.installation.discover_themes()

    def _root_for(self, extension: ExtensionInfo) -> tuple[Path, bool]:
        if self.component == PLUGINS:
            return self.installation.plugin_root(extension)
        return extension.directory, True

    def _skip_reason(self, extension: ExtensionInfo) -> tuple[str, str]:
        """Return ``(reason, source)``; an empty reason means verifiable."""
        if extension.key in self.ignore:
            return REASON_IGNORED, ""
        if not extension.trusted:
            if not self.third_party or self.baselines is None:
                return REASON_NOT_WPORG, ""
            if not self.baselines.exists(self.component, extension.key):
                return REASON_NOT_WPORG, ""
            if self.baselines.is_stale(extension):
                return REASON_STALE_BASELINE, ""
            return "", SOURCE_BASELINE
        if not extension.slug:
            return f"{self.noun.capitalize()} slug could not be determined.", ""
        if not extension.version:
            return f"{self.noun.capitalize()} version could not be determined.", ""
        return "", SOURCE_WPORG

    def prepare(self, state: ComponentState) -> str:
        work = CollectionWork()
        for extension in self._discover():
            reason, source = self._skip_reason(extension)
            if reason:
                work.skipped.append(SkippedItem(key=extension.key, name=extension.name, reason=reason))
                continue

            root, detect_added = self._root_for(extension)
            prefixes = [extension.slug]
            directory = extension.key.rpartition("/")[0]
            if self.component == PLUGINS and directory:
                prefixes.append(directory)

            work.items[extension.key] = ItemState(
                key=extension.key,
                name=extension.name,
                slug=extension.slug,
                version=extension.version,
                root=str(root),
                detect_added=detect_added,
                source=source,
                prefixes=[p for p in prefixes if p],
            )
            work.order.append(extension.key)

        state.collection = work
        state.total = len(work.order)
        state.processed = 0
        logger.info(
            "%s: %d to verify, %d skipped",
            self.component, state.total, len(work.skipped),
        )
        return f"Preparing {self.noun} verification"

    # ------------------------------------------------------------------
    # Process
    # ------------------------------------------------------------------

    def _manifest_for(self, item: ItemState) -> Manifest:
        if item.source == SOURCE_BASELINE and self.baselines is not None:
            return self.baselines.load(self.component, item.key)
        return self.fetcher.fetch(self.component, item.version, slug=item.slug)

    def _verify(self, item: ItemState) -> None:
        manifest = self._manifest_for(item)
        checksums = strip_prefixes(manifest.checksums, item.prefixes)
        if not checksums:
            raise EmptyManifestError(f"{self.noun.capitalize()} checksums were not provided.")

        comparison = compare(Path(item.root), checksums, manifest.algorithm, item.detect_added)
        item.modified = comparison.modified
        item.missing = comparison.missing
        item.added = comparison.added
        item.errors = comparison.errors
        if comparison.has_issues:
            item.status = ItemStatus.ISSUES
            item.message = f"Differences detected in {self.noun} {item.name}."
        else:
            item.status = ItemStatus.OK
            item.message = f"{self.noun.capitalize()} {item.name} matches the official checksums."

    def step(self, state: ComponentState) -> str:
        work = _work(state)
        position = state.processed + 1
        key = next(
            (k for k in work.order if work.items[k].status is ItemStatus.PENDING),
            None,
        )
        if key is None:
            state.processed = state.total
            return f"{self.noun.capitalize()} verification completed."

        item = work.items[key]
        state.processed += 1
        try:
            self._verify(item)
        except WPFortifyError as exc:
            logger.warning("Verification of %s %s failed: %s", self.noun, key, exc)
            item.status = ItemStatus.ERROR
            item.message = str(exc)
            work.errors.append(ItemError(key=key, name=item.name, message=item.message))
            return f"Verification failed for {self.noun} {item.name}."

        if item.status is ItemStatus.ISSUES:
            work.issue_total += 1
        return f"Checked {self.noun} {item.name} ({position} of {max(1, state.total)})."

    def exhausted(self, state: ComponentState) -> bool:
        return state.processed >= state.total

    def finalize(self, state: ComponentState) -> None:
        work = _work(state)
        work.issue_total = sum(
            1 for item in work.items.values() if item.status is ItemStatus.ISSUES
        )
        state.processed = state.total

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def summary_message(self, state: ComponentState) -> str:
        work = _work(state)
        noun, plural = self.noun, f"{self.noun}s"
        total = state.total
        issues = work.issue_total
        skipped = len(work.skipped)
        errors = len(work.errors)

        if total == 0:
            if skipped:
                return f"No WordPress.org {plural} were available for verification."
            return f"No {plural} required verification."

        if not issues and not errors:
            if skipped:
                return (
                    f"All WordPress.org {plural} verified successfully. "
                    f"{skipped} {noun}(s) were skipped."
                )
            return f"All WordPress.org {plural} match the official checksums."

        message = f"Integrity issues detected in {issues} {noun}(s) out of {total} verified."
        if errors:
            message += f" {errors} {noun}(s) could not be verified."
        if skipped:
            message += f" {skipped} {noun}(s) were skipped."
        return message

    def summarize(self, state: ComponentState) -> CollectionResult:
        work = _work(state)
        if state.phase is Phase.ERROR:
            return CollectionResult(
                status=Phase.ERROR.value,
                summary=state.error_message or f"Unable to verify {self.noun}s.",
                skipped=tuple(work.skipped),
                errors=tuple(work.errors),
            )

        items = tuple(
            ItemResult(
                key=item.key,
                name=item.name,
                version=item.version,
                status=item.status.value,
                message=item.message,
                source=item.source,
                modified=tuple(item.modified),
                missing=tuple(item.missing),
                added=tuple(item.added),
                errors=tuple(item.errors),
            )
            for item in (work.items[k] for k in work.order)
        )
        if state.phase.is_terminal:
            summary = self.summary_message(state)
        else:
            summary = (
                f"{self.noun.capitalize()} verification incomplete: "
                f"{state.processed} of {state.total} {self.noun}(s) checked."
            )
        return CollectionResult(
            status=state.phase.value,
            summary=summary,
            items=items,
            skipped=tuple(work.skipped),
            errors=tuple(work.errors),
            totals=CollectionTotals(
                verified=state.total,
                issues=work.issue_total,
                skipped=len(work.skipped),
                errors=len(work.errors),
            ),
        )


def _work(state: ComponentState) -> CollectionWork:
    if state.collection is None:
        state.collection = CollectionWork()
    return state.collection
