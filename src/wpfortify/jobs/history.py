"""Result persistence: last-run snapshot, append-only history, rolling counts.

Layout under the state directory::

    last_result.json   most recent run, {completed_at, context, components,
                       results, errors, summary}
    history.jsonl      one HistoryRecord per line, oldest first
    counts.json        {"success": n, "warning": n, "error": n, "last_id": n}

Record ids are never reused: ``last_id`` keeps the highest id handed out,
so deleting or pruning the newest record does not free its id.

A history record carries the same payload plus an id, the aggregate
issue count and a coarse status:

- ``error``   any component failed or any file could not be checked;
- ``warning`` otherwise, any modified, missing or unexpected file;
- ``success`` otherwise.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from wpfortify.core.models import (
    CollectionResult,
    ComponentError,
    ComponentResult,
    Job,
    SingleResult,
)
from wpfortify.exceptions import HistoryError

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_WARNING = "warning"
STATUS_ERROR = "error"
STATUSES: tuple[str, ...] = (STATUS_SUCCESS, STATUS_WARNING, STATUS_ERROR)

SECONDS_PER_DAY = 86400


def _file_error_count(result: ComponentResult) -> int:
    if isinstance(result, SingleResult):
        return len(result.errors)
    if isinstance(result, CollectionResult):
        return sum(len(item.errors) for item in result.items)
    return 0


def count_issues(results: Iterable[ComponentResult]) -> int:
    """Modified, missing and unexpected files plus file errors."""
    return sum(r.issue_count + _file_error_count(r) for r in results)


def record_status(results: Iterable[ComponentResult], errors: Iterable[ComponentError]) -> str:
    """Coarse status of a run (``success``, ``warning`` or ``error``)."""
    results = list(results)
    if list(errors) or any(r.has_errors for r in results):
        return STATUS_ERROR
    if any(r.issue_count for r in results):
        return STATUS_WARNING
    return STATUS_SUCCESS


def build_payload(
    job: Job,
    completed_at: float,
    results: Mapping[str, ComponentResult] | None = None,
) -> dict[str, Any]:
    """The persisted shape of a finished (or interrupted) run."""
    results = job.results if results is None else results
    return {
        "completed_at": completed_at,
        "context": job.context.value,
        "components": list(job.components),
        "results": {k: v.to_dict() for k, v in results.items()},
        "errors": [e.to_dict() for e in job.errors],
        "summary": job.summary,
    }


@dataclass
class HistoryRecord:
    """One line of ``history.jsonl``."""

    id: int
    completed_at: float
    context: str
    components: list[str]
    status: str
    total_issues: int
    summary: str
    results: dict[str, Any] = field(default_factory=dict)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "completed_at": self.completed_at,
            "context": self.context,
            "components": list(self.components),
            "status": self.status,
            "total_issues": self.total_issues,
            "summary": self.summary,
            "results": self.results,
            "errors": self.errors,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryRecord:
        return cls(
            id=int(data["id"]),
            completed_at=float(data.get("completed_at", 0.0)),
            context=str(data.get("context", "")),
            components=list(data.get("components") or []),
            status=str(data.get("status", STATUS_SUCCESS)),
            total_issues=int(data.get("total_issues", 0)),
            summary=str(data.get("summary", "")),
            results=dict(data.get("results") or {}),
            errors=list(data.get("errors") or []),
        )


class ResultStore:
    """File-backed result persister.

    Usage::

        store = ResultStore(settings.state_dir)
        record = store.persist(job)
        records, total = store.list_records(status="warning")
    """

    def __init__(self, directory: Path, clock: Callable[[], float] = time.time) -> None:
        self.directory = Path(directory)
        self._clock = clock

    @property
    def last_path(self) -> Path:
        return self.directory / "last_result.json"

    @property
    def history_path(self) -> Path:
        return self.directory / "history.jsonl"

    @property
    def counts_path(self) -> Path:
        return self.directory / "counts.json"

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def persist(
        self,
        job: Job,
        results: Mapping[str, ComponentResult] | None = None,
    ) -> HistoryRecord:
        """Save ``job`` as the last run and append it to the history.

        Args:
            job: The finished or interrupted job.
            results: Results to record instead of ``job.results`` (the
                scheduled path passes partial results on a ceiling hit).

        Returns:
            The appended history record.

        Raises:
            HistoryError: If the files cannot be written.
        """
        results = dict(job.results if results is None else results)
        completed_at = self._clock()
        payload = build_payload(job, completed_at, results)

        records = self._read_records()
        record = HistoryRecord(
            id=max(self._last_id(), max((r.id for r in records), default=0)) + 1,
            completed_at=completed_at,
            context=payload["context"],
            components=payload["components"],
            status=record_status(results.values(), job.errors),
            total_issues=count_issues(results.values()),
            summary=payload["summary"],
            results=payload["results"],
            errors=payload["errors"],
        )

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.last_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            with self.history_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record.to_dict()) + "\n")
        except OSError as exc:
            raise HistoryError(f"Cannot persist scan result: {exc}") from exc

        counts = self.counts()
        counts[record.status] = counts.get(record.status, 0) + 1
        self._write_counts(counts, last_id=record.id)
        logger.info("Recorded run #%d (%s, %d issues)", record.id, record.status, record.total_issues)
        return record

    def delete(self, record_id: int) -> bool:
        """Remove one record; return False when it does not exist."""
        records = self._read_records()
        kept = [r for r in records if r.id != record_id]
        if len(kept) == len(records):
            return False
        self._rewrite(kept)
        return True

    def prune(self, days: int) -> int:
        """Remove records older than ``days`` days; return how many."""
        if days < 1:
            raise HistoryError("Retention must be at least one day.")
        cutoff = self._clock() - days * SECONDS_PER_DAY
        records = self._read_records()
        kept = [r for r in records if r.completed_at >= cutoff]
        removed = len(records) - len(kept)
        if removed:
            self._rewrite(kept)
        return removed

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def last(self) -> dict[str, Any] | None:
        """Return the most recent run snapshot, if any."""
        if not self.last_path.is_file():
            return None
        try:
            data = json.loads(self.last_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise HistoryError(f"Cannot read last scan result: {exc}") from exc
        return data if isinstance(data, dict) else None

    def list_records(
        self,
        *,
        status: str | None = None,
        context: str | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[HistoryRecord], int]:
        """Return one page of records, newest first, and the match total."""
        records = [
            r for r in reversed(self._read_records())
            if (status is None or r.status == status)
            and (context is None or r.context == context)
        ]
        page = max(1, page)
        per_page = max(1, per_page)
        start = (page - 1) * per_page
        return records[start:start + per_page], len(records)

    def get(self, record_id: int) -> HistoryRecord | None:
        return next((r for r in self._read_records() if r.id == record_id), None)

    def counts(self) -> dict[str, int]:
        """Rolling per-status counts."""
        counts = {status: 0 for status in STATUSES}
        data = self._read_counts_file()
        counts.update({k: int(v) for k, v in data.items() if k in STATUSES})
        return counts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_records(self) -> list[HistoryRecord]:
        if not self.history_path.is_file():
            return []
        records: list[HistoryRecord] = []
        try:
            lines = self.history_path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise HistoryError(f"Cannot read history: {exc}") from exc
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                records.append(HistoryRecord.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping corrupt history line %d: %s", number, exc)
        return records

    def _rewrite(self, records: list[HistoryRecord]) -> None:
        last_id = max(self._last_id(), max((r.id for r in self._read_records()), default=0))
        tmp = self.history_path.with_suffix(".tmp")
        try:
            tmp.write_text(
                "".join(json.dumps(r.to_dict()) + "\n" for r in records),
                encoding="utf-8",
            )
            tmp.replace(self.history_path)
        except OSError as exc:
            raise HistoryError(f"Cannot rewrite history: {exc}") from exc
        counts = {status: 0 for status in STATUSES}
        for record in records:
            counts[record.status] = counts.get(record.status, 0) + 1
        self._write_counts(counts, last_id=last_id)

    def _read_counts_file(self) -> dict[str, Any]:
        if not self.counts_path.is_file():
            return {}
        try:
            data = json.loads(self.counts_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Resetting unreadable counts file: %s", exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _last_id(self) -> int:
        value = self._read_counts_file().get("last_id", 0)
        return value if isinstance(value, int) else 0

    def _write_counts(self, counts: dict[str, int], last_id: int) -> None:
        data = {**counts, "last_id": last_id}
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.counts_path.write_text(json.dumps(data), encoding="utf-8")
        except OSError as exc:
            raise HistoryError(f"Cannot write counts: {exc}") from exc
