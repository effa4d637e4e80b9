"""Job orchestrator: runs components in order, one bounded unit at a time.

A job lists the components to verify in caller order. Each ``advance``
call delegates exactly one unit of work to the active component's scanner,
records the component result when the scanner reports completion and
moves on to the next component. When every component is terminal the job
is marked completed and its summary is computed, once.

``advance`` never mutates its input: it works on a deep copy and returns
the new job inside an ``AdvanceResult``. This makes it safe to persist the
returned job and discard the old one, or to retry a call after a crash.

Usage::

    orchestrator = Orchestrator(default_scanners(settings, site, fetcher))
    job = create_job(["core", "plugins"], JobContext.MANUAL)
    while True:
        step = orchestrator.advance(job)
        job = step.job
        if step.completed:
            break
"""

from __future__ import annotations

import copy
import logging
import math
import time
from typing import Callable, Iterable, Mapping

from wpfortify.config import Settings
from wpfortify.core.models import (
    CORE,
    PLUGINS,
    THEMES,
    AdvanceResult,
    ComponentError,
    ComponentResult,
    ComponentState,
    Job,
    JobContext,
    Phase,
    SkippedResult,
)
from wpfortify.core.scanner import CollectionStrategy, ComponentScanner, CoreStrategy
from wpfortify.manifest.baseline import BaselineStore
from wpfortify.manifest.fetcher import ManifestFetcher
from wpfortify.site.installation import Installation

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Scanning for this target is not yet available."
DEFAULT_SUMMARY = "Scan completed."


def create_job(
    components: Iterable[str],
    context: JobContext = JobContext.MANUAL,
    *,
    locale: str = "",
    clock: Callable[[], float] = time.time,
) -> Job:
    """Create a fresh job with every component pending.

    Bundled themes are part of the core check only when ``themes`` is
    also among the selected components.
    """
    selected = list(dict.fromkeys(components))
    include_bundled = THEMES in selected
    states = {
        component: ComponentState(
            component=component,
            locale=locale if component == CORE else "",
            include_bundled=include_bundled if component == CORE else False,
        )
        for component in selected
    }
    return Job(
        context=context,
        components=selected,
        component_states=states,
        created_at=clock(),
    )


def calculate_progress(job: Job) -> int:
    """Overall progress percentage in ``[0, 100]``.

    Terminal components count 1.0, the active one counts its
    ``processed / total`` fraction, everything else 0.
    """
    if not job.components:
        return 100

    progress = 0.0
    for index, component in enumerate(job.components):
        state = job.component_states.get(component)
        if state is None:
            continue
        if state.phase.is_terminal:
            progress += 1.0
        elif index == job.active_index:
            total = max(1, state.total)
            progress += min(total, max(0, state.processed)) / total

    percentage = math.floor(progress / len(job.components) * 100)
    return max(0, min(100, percentage))


def build_summary(job: Job, results: Mapping[str, ComponentResult] | None = None) -> str:
    """Join the component summaries in component order."""
    results = job.results if results is None else results
    parts = [
        results[component].summary
        for component in job.components
        if component in results and results[component].summary
    ]
    return " ".join(parts) if parts else DEFAULT_SUMMARY


class Orchestrator:
    """Advances jobs using one scanner per known component id."""

    def __init__(self, scanners: Mapping[str, ComponentScanner]) -> None:
        self.scanners = dict(scanners)

    def advance(self, job: Job, operations: int = 1) -> AdvanceResult:
        """Perform up to ``operations`` bounded units of work.

        Args:
            job: Current job. Not modified.
            operations: Units of work to perform (at least one).

        Returns:
            ``AdvanceResult`` carrying the new job.
        """
        if job.completed:
            return AdvanceResult(
                job=job,
                message=job.summary,
                progress=calculate_progress(job),
                completed=True,
                summary=job.summary,
            )

        job = copy.deepcopy(job)
        message = ""
        performed = 0
        operations = max(1, operations)

        while performed < operations and job.active_index < len(job.components):
            component = job.components[job.active_index]
            state = job.component_states.setdefault(component, ComponentState(component=component))
            scanner = self.scanners.get(component)
            performed += 1

            if scanner is None:
                message = self._skip_unknown(job, component, state)
                job.active_index += 1
                continue

            outcome = scanner.advance(state)
            message = outcome.message
            if outcome.error:
                job.errors.append(ComponentError(component=component, message=outcome.message))
            if outcome.complete:
                job.results[component] = scanner.summarize(state)
                job.active_index += 1
                logger.debug("Component %s finished in phase %s", component, state.phase.value)

        if job.active_index >= len(job.components):
            job.completed = True
            job.summary = build_summary(job)
            message = message or job.summary

        return AdvanceResult(
            job=job,
            message=message,
            progress=calculate_progress(job),
            completed=job.completed,
            summary=job.summary,
        )

    def snapshot_results(self, job: Job) -> dict[str, ComponentResult]:
        """Results so far plus a partial entry for the active component.

        Used when a run is stopped before completion; ``job`` is not
        modified.
        """
        results = dict(job.results)
        if job.active_index < len(job.components):
            component = job.components[job.active_index]
            scanner = self.scanners.get(component)
            state = job.component_states.get(component)
            if scanner is not None and state is not None and component not in results:
                results[component] = scanner.summarize(copy.deepcopy(state))
        return results

    @staticmethod
    def _skip_unknown(job: Job, component: str, state: ComponentState) -> str:
        if state.phase is Phase.PENDING:
            logger.info("No scanner for component %r; skipping", component)
            state.phase = Phase.SKIPPED
            state.message = UNAVAILABLE_MESSAGE
            job.results[component] = SkippedResult(summary=UNAVAILABLE_MESSAGE)
        return state.message


def default_scanners(
    settings: Settings,
    installation: Installation,
    fetcher: ManifestFetcher,
    baselines: BaselineStore | None = None,
) -> dict[str, ComponentScanner]:
    """Build the scanner for every component the engine supports."""
    if baselines is None:
        baselines = BaselineStore(settings.state_dir)
    third_party = settings.targets.third_party
    return {
        CORE: ComponentScanner(
            CoreStrategy(installation, fetcher, chunk_size=settings.chunk_size)
        ),
        PLUGINS: ComponentScanner(
            CollectionStrategy(
                PLUGINS, installation, fetcher,
                baselines=baselines, third_party=third_party,
                ignore=settings.ignore_plugins,
            )
        ),
        THEMES: ComponentScanner(
            CollectionStrategy(
                THEMES, installation, fetcher,
                baselines=baselines, third_party=third_party,
                ignore=settings.ignore_themes,
            )
        ),
    }
