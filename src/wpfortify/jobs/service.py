"""Job control: interactive start/poll and the scheduled synchronous run.

The interactive path spreads one job over many short calls::

    job_id = service.start(["core", "plugins"])
    while not (poll := service.poll(job_id)).completed:
        show(poll.progress, poll.message)

Each ``poll`` loads the job from the state store, performs one orchestrator
advance and either saves the job back (refreshing its TTL) or, once it is
complete, persists the result and discards the transient state.

The scheduled path drives a job in a tight loop bounded by
``max_sync_steps`` and persists whatever exists when it stops, including a
partial entry for a component interrupted by the ceiling.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from wpfortify.config import AVAILABLE_TARGETS, Settings
from wpfortify.core.models import CORE, AdvanceResult, Job, JobContext
from wpfortify.core.orchestrator import (
    Orchestrator,
    build_summary,
    create_job,
    default_scanners,
)
from wpfortify.exceptions import InvalidStateKeyError, JobNotFoundError, JobStateError
from wpfortify.jobs.history import HistoryRecord, ResultStore
from wpfortify.jobs.state_store import MemoryStateStore, StateStore
from wpfortify.manifest.baseline import BaselineStore
from wpfortify.manifest.fetcher import ManifestFetcher
from wpfortify.site.installation import Installation

logger = logging.getLogger(__name__)

JOB_KEY_PREFIX = "wpfortify_scan_job_"
EXPIRED_MESSAGE = "Scan session expired. Please start again."

ProgressCallback = Callable[[AdvanceResult], None]


def resolve_components(requested: Iterable[str] | None, settings: Settings) -> list[str]:
    """Filter the requested components to known ones, in canonical order.

    An empty selection falls back to the configured targets, then to core.
    """
    wanted = {str(c).strip().lower() for c in requested or ()}
    selected = [t for t in AVAILABLE_TARGETS if t in wanted]
    if not selected:
        selected = settings.targets.enabled()
    return selected or [CORE]


@dataclass(frozen=True)
class PollResult:
    """What the caller of ``JobService.poll`` gets back."""

    job_id: str
    progress: int
    message: str
    completed: bool
    summary: str = ""
    results: dict[str, Any] = field(default_factory=dict)
    completed_at: float | None = None
    record_id: int | None = None


@dataclass(frozen=True)
class RunOutcome:
    """Result of a synchronous run."""

    job: Job
    record: HistoryRecord
    completed: bool
    steps: int


class JobService:
    """Creates, advances and persists verification jobs."""

    def __init__(
        self,
        settings: Settings,
        orchestrator: Orchestrator,
        results: ResultStore,
        state_store: StateStore | None = None,
        *,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.orchestrator = orchestrator
        self.results = results
        self.state_store = state_store if state_store is not None else MemoryStateStore(clock)
        self._id_factory = id_factory
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        fetcher: ManifestFetcher,
        state_store: StateStore | None = None,
    ) -> JobService:
        """Wire the default scanners, result store and baselines for ``settings``."""
        orchestrator = Orchestrator(default_scanners(
            settings,
            Installation(settings.root),
            fetcher,
            BaselineStore(settings.state_dir),
        ))
        return cls(settings, orchestrator, ResultStore(settings.state_dir), state_store)

    # ------------------------------------------------------------------
    # Interactive path
    # ------------------------------------------------------------------

    def create(self, requested: Iterable[str] | None, context: JobContext) -> Job:
        components = resolve_components(requested, self.settings)
        return create_job(components, context, locale=self.settings.locale, clock=self._clock)

    def start(self, requested: Iterable[str] | None = None) -> str:
        """Create a manual job, save it and return its id."""
        job = self.create(requested, JobContext.MANUAL)
        job_id = self._id_factory()
        self.state_store.set(self._key(job_id), job.to_dict(), self.settings.job_ttl)
        logger.info("Started job %s for %s", job_id, ", ".join(job.components))
        return job_id

    def load(self, job_id: str) -> Job:
        """Return the stored job.

        Raises:
            JobNotFoundError: If the id is unknown, malformed or the state
                expired.
            JobStateError: If the stored state cannot be decoded.
        """
        try:
            data = self.state_store.get(self._key(job_id))
        except InvalidStateKeyError as exc:
            raise JobNotFoundError(EXPIRED_MESSAGE) from exc
        if data is None:
            raise JobNotFoundError(EXPIRED_MESSAGE)
        try:
            return Job.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise JobStateError(f"Corrupt job state for {job_id}: {exc}") from exc

    def poll(self, job_id: str) -> PollResult:
        """Advance a stored job by one unit of work."""
        step = self.orchestrator.advance(self.load(job_id))
        job = step.job

        if not step.completed:
            self.state_store.set(self._key(job_id), job.to_dict(), self.settings.job_ttl)
            return PollResult(
                job_id=job_id,
                progress=step.progress,
                message=step.message,
                completed=False,
            )

        record = self.results.persist(job)
        self.state_store.delete(self._key(job_id))
        return PollResult(
            job_id=job_id,
            progress=step.progress,
            message=step.message,
            completed=True,
            summary=step.summary,
            results={k: v.to_dict() for k, v in job.results.items()},
            completed_at=record.completed_at,
            record_id=record.id,
        )

    # ------------------------------------------------------------------
    # Synchronous paths
    # ------------------------------------------------------------------

    def run(
        self,
        requested: Iterable[str] | None = None,
        context: JobContext = JobContext.MANUAL,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> RunOutcome:
        """Drive a new job to completion or to ``max_sync_steps``, then persist."""
        job = self.create(requested, context)
        steps = 0
        completed = False
        while steps < self.settings.max_sync_steps:
            step = self.orchestrator.advance(job)
            job = step.job
            steps += 1
            if on_progress is not None:
                on_progress(step)
            if step.completed:
                completed = True
                break

        if completed:
            record = self.results.persist(job)
        else:
            logger.warning(
                "Stopped after %d steps without completing; recording partial results",
                steps,
            )
            partial = self.orchestrator.snapshot_results(job)
            job.summary = build_summary(job, partial)
            record = self.results.persist(job, partial)
        return RunOutcome(job=job, record=record, completed=completed, steps=steps)

    def run_scheduled(self, *, force: bool = False) -> RunOutcome | None:
        """Run the scheduled check; None when scheduling is disabled."""
        if not (self.settings.daily_scan_enabled or force):
            logger.info("Scheduled scan is disabled")
            return None
        return self.run(None, JobContext.SCHEDULED)

    @staticmethod
    def _key(job_id: str) -> str:
        return f"{JOB_KEY_PREFIX}{job_id}"
