"""Data models for the verification engine.

Everything a job carries between invocations lives here: the per-component
phase state with its working data, the immutable per-component results,
and the job itself. All types round-trip through ``to_dict`` /
``from_dict`` so the complete job blob can be stored as JSON in a
key-value store with expiry and resumed by a later process.

These are pure data holders with no business logic, making them safe to
import from every other engine module without circular-dependency
concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

# ---------------------------------------------------------------------------
# Component identifiers
# ---------------------------------------------------------------------------

CORE = "core"
PLUGINS = "plugins"
THEMES = "themes"


class ComponentKind(str, Enum):
    """How a component is verified."""

    SINGLE = "single"  # one artifact, one manifest, chunked by file
    COLLECTION = "collection"  # many items, one manifest each, one item per step


class Phase(str, Enum):
    """Lifecycle phase of one component within a job."""

    PENDING = "pending"
    PREPARING = "preparing"
    PROCESSING = "processing"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ERROR = "error"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETED, Phase.ERROR, Phase.SKIPPED)


class JobContext(str, Enum):
    """What triggered a job."""

    MANUAL = "manual"
    SCHEDULED = "scheduled"


class FileErrorKind(str, Enum):
    READ = "read"
    HASH = "hash"


class ItemStatus(str, Enum):
    """Verification status of one extension item."""

    PENDING = "pending"
    OK = "ok"
    ISSUES = "issues"
    ERROR = "error"


# ---------------------------------------------------------------------------
# File-level records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileDiff:
    """A file whose content does not match the manifest.

    An empty ``actual_hash`` means the file could not be read or hashed;
    a parallel ``FileError`` explains why.
    """

    path: str
    expected_hash: str
    actual_hash: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "expected_hash": self.expected_hash, "actual_hash": self.actual_hash}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileDiff:
        return cls(
            path=str(data.get("path", "")),
            expected_hash=str(data.get("expected_hash", "")),
            actual_hash=str(data.get("actual_hash", "")),
        )


@dataclass(frozen=True)
class FileError:
    """A per-file filesystem failure."""

    path: str
    message: str
    kind: FileErrorKind = FileErrorKind.READ

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message, "kind": self.kind.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileError:
        return cls(
            path=str(data.get("path", "")),
            message=str(data.get("message", "")),
            kind=FileErrorKind(data.get("kind", FileErrorKind.READ.value)),
        )


@dataclass(frozen=True)
class SkippedItem:
    """An installed extension that could not be verified, with the reason."""

    key: str
    name: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "name": self.name, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SkippedItem:
        return cls(key=str(data["key"]), name=str(data.get("name", "")), reason=str(data.get("reason", "")))


@dataclass(frozen=True)
class ItemError:
    """An extension whose verification failed (manifest unavailable...)."""

    key: str
    name: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "name": self.name, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ItemError:
        return cls(key=str(data["key"]), name=str(data.get("name", "")), message=str(data.get("message", "")))


@dataclass(frozen=True)
class ComponentError:
    """A non-fatal, job-level record of a component failure."""

    component: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"component": self.component, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ComponentError:
        return cls(component=str(data["component"]), message=str(data.get("message", "")))


def _diffs(data: list[dict[str, Any]] | None) -> list[FileDiff]:
    return [FileDiff.from_dict(d) for d in data or []]


def _file_errors(data: list[dict[str, Any]] | None) -> list[FileError]:
    return [FileError.from_dict(d) for d in data or []]


# ---------------------------------------------------------------------------
# Working state
# ---------------------------------------------------------------------------


@dataclass
class SingleWork:
    """Working data of a single-artifact component (WordPress core).

    ``checksums``, ``files``, ``pointer`` and ``actual_files`` are only
    meaningful until finalize, which clears them to bound memory.
    """

    checksums: dict[str, str] = field(default_factory=dict)
    files: list[str] = field(default_factory=list)
    pointer: int = 0
    actual_files: list[str] = field(default_factory=list)
    allowances: dict[str, list[str]] = field(default_factory=dict)
    algorithm: str = "md5"
    modified: list[FileDiff] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    errors: list[FileError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checksums": dict(self.checksums),
            "files": list(self.files),
            "pointer": self.pointer,
            "actual_files": list(self.actual_files),
            "allowances": dict(self.allowances),
            "algorithm": self.algorithm,
            "modified": [d.to_dict() for d in self.modified],
            "missing": list(self.missing),
            "added": list(self.added),
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SingleWork:
        return cls(
            checksums=dict(data.get("checksums") or {}),
            files=list(data.get("files") or []),
            pointer=int(data.get("pointer", 0)),
            actual_files=list(data.get("actual_files") or []),
            allowances=dict(data.get("allowances") or {}),
            algorithm=str(data.get("algorithm", "md5")),
            modified=_diffs(data.get("modified")),
            missing=list(data.get("missing") or []),
            added=list(data.get("added") or []),
            errors=_file_errors(data.get("errors")),
        )


@dataclass
class ItemState:
    """One verifiable extension inside a collection component.

    Attributes:
        key: Stable identifier (plugin basename or theme stylesheet).
        name: Display label.
        slug: Slug on the checksum authority.
        version: Installed version the manifest is pinned to.
        root: Directory the manifest paths are relative to.
        detect_added: Whether files not in the manifest are reported.
        source: ``wordpress.org`` or ``baseline``.
        prefixes: Manifest key prefixes to strip before comparing.
    """

    key: str
    name: str
    slug: str
    version: str
    root: str
    detect_added: bool = True
    source: str = "wordpress.org"
    prefixes: list[str] = field(default_factory=list)
    status: ItemStatus = ItemStatus.PENDING
    message: str = ""
    modified: list[FileDiff] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    errors: list[FileError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "slug": self.slug,
            "version": self.version,
            "root": self.root,
            "detect_added": self.detect_added,
            "source": self.source,
            "prefixes": list(self.prefixes),
            "status": self.status.value,
            "message": self.message,
            "modified": [d.to_dict() for d in self.modified],
            "missing": list(self.missing),
            "added": list(self.added),
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ItemState:
        return cls(
            key=str(data["key"]),
            name=str(data.get("name", "")),
            slug=str(data.get("slug", "")),
            version=str(data.get("version", "")),
            root=str(data.get("root", "")),
            detect_added=bool(data.get("detect_added", True)),
            source=str(data.get("source", "wordpress.org")),
            prefixes=list(data.get("prefixes") or []),
            status=ItemStatus(data.get("status", ItemStatus.PENDING.value)),
            message=str(data.get("message", "")),
            modified=_diffs(data.get("modified")),
            missing=list(data.get("missing") or []),
            added=list(data.get("added") or []),
            errors=_file_errors(data.get("errors")),
        )


@dataclass
class CollectionWork:
    """Working data of a collection component (plugins or themes)."""

    items: dict[str, ItemState] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)
    errors: list[ItemError] = field(default_factory=list)
    issue_total: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": {k: v.to_dict() for k, v in self.items.items()},
            "order": list(self.order),
            "skipped": [s.to_dict() for s in self.skipped],
            "errors": [e.to_dict() for e in self.errors],
            "issue_total": self.issue_total,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CollectionWork:
        return cls(
            items={k: ItemState.from_dict(v) for k, v in (data.get("items") or {}).items()},
            order=list(data.get("order") or []),
            skipped=[SkippedItem.from_dict(s) for s in data.get("skipped") or []],
            errors=[ItemError.from_dict(e) for e in data.get("errors") or []],
            issue_total=int(data.get("issue_total", 0)),
        )


@dataclass
class ComponentState:
    """Phase plus working data of one component, owned by its scanner."""

    component: str
    phase: Phase = Phase.PENDING
    message: str = ""
    error_message: str = ""
    version: str = ""
    locale: str = ""
    include_bundled: bool = False
    processed: int = 0
    total: int = 0
    single: SingleWork | None = None
    collection: CollectionWork | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            "phase": self.phase.value,
            "message": self.message,
            "error_message": self.error_message,
            "version": self.version,
            "locale": self.locale,
            "include_bundled": self.include_bundled,
            "processed": self.processed,
            "total": self.total,
            "single": self.single.to_dict() if self.single is not None else None,
            "collection": self.collection.to_dict() if self.collection is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ComponentState:
        single = data.get("single")
        collection = data.get("collection")
        return cls(
            component=str(data["component"]),
            phase=Phase(data.get("phase", Phase.PENDING.value)),
            message=str(data.get("message", "")),
            error_message=str(data.get("error_message", "")),
            version=str(data.get("version", "")),
            locale=str(data.get("locale", "")),
            include_bundled=bool(data.get("include_bundled", False)),
            processed=int(data.get("processed", 0)),
            total=int(data.get("total", 0)),
            single=SingleWork.from_dict(single) if single is not None else None,
            collection=CollectionWork.from_dict(collection) if collection is not None else None,
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SingleResult:
    """Immutable result of a single-artifact component."""

    status: str
    summary: str
    version: str = ""
    locale: str = ""
    bundled_included: bool = False
    modified: tuple[FileDiff, ...] = ()
    missing: tuple[str, ...] = ()
    added: tuple[str, ...] = ()
    errors: tuple[FileError, ...] = ()

    kind = ComponentKind.SINGLE

    @property
    def issue_count(self) -> int:
        return len(self.modified) + len(self.missing) + len(self.added)

    @property
    def has_errors(self) -> bool:
        return self.status == Phase.ERROR.value or bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "status": self.status,
            "summary": self.summary,
            "version": self.version,
            "locale": self.locale,
            "bundled_included": self.bundled_included,
            "modified": [d.to_dict() for d in self.modified],
            "missing": list(self.missing),
            "added": list(self.added),
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SingleResult:
        return cls(
            status=str(data.get("status", "")),
            summary=str(data.get("summary", "")),
            version=str(data.get("version", "")),
            locale=str(data.get("locale", "")),
            bundled_included=bool(data.get("bundled_included", False)),
            modified=tuple(_diffs(data.get("modified"))),
            missing=tuple(data.get("missing") or ()),
            added=tuple(data.get("added") or ()),
            errors=tuple(_file_errors(data.get("errors"))),
        )


@dataclass(frozen=True)
class ItemResult:
    """Immutable result of one extension item."""

    key: str
    name: str
    version: str
    status: str
    message: str = ""
    source: str = "wordpress.org"
    modified: tuple[FileDiff, ...] = ()
    missing: tuple[str, ...] = ()
    added: tuple[str, ...] = ()
    errors: tuple[FileError, ...] = ()

    @property
    def issue_count(self) -> int:
        return len(self.modified) + len(self.missing) + len(self.added)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "version": self.version,
            "status": self.status,
            "message": self.message,
            "source": self.source,
            "modified": [d.to_dict() for d in self.modified],
            "missing": list(self.missing),
            "added": list(self.added),
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ItemResult:
        return cls(
            key=str(data["key"]),
            name=str(data.get("name", "")),
            version=str(data.get("version", "")),
            status=str(data.get("status", "")),
            message=str(data.get("message", "")),
            source=str(data.get("source", "wordpress.org")),
            modified=tuple(_diffs(data.get("modified"))),
            missing=tuple(data.get("missing") or ()),
            added=tuple(data.get("added") or ()),
            errors=tuple(_file_errors(data.get("errors"))),
        )


@dataclass(frozen=True)
class CollectionTotals:
    verified: int = 0
    issues: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"verified": self.verified, "issues": self.issues, "skipped": self.skipped, "errors": self.errors}


@dataclass(frozen=True)
class CollectionResult:
    """Immutable result of a collection component."""

    status: str
    summary: str
    items: tuple[ItemResult, ...] = ()
    skipped: tuple[SkippedItem, ...] = ()
    errors: tuple[ItemError, ...] = ()
    totals: CollectionTotals = field(default_factory=CollectionTotals)

    kind = ComponentKind.COLLECTION

    @property
    def issue_count(self) -> int:
        return sum(item.issue_count for item in self.items)

    @property
    def has_errors(self) -> bool:
        return (
            self.status == Phase.ERROR.value
            or bool(self.errors)
            or any(item.errors for item in self.items)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "status": self.status,
            "summary": self.summary,
            "items": [i.to_dict() for i in self.items],
            "skipped": [s.to_dict() for s in self.skipped],
            "errors": [e.to_dict() for e in self.errors],
            "totals": self.totals.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CollectionResult:
        totals = data.get("totals") or {}
        return cls(
            status=str(data.get("status", "")),
            summary=str(data.get("summary", "")),
            items=tuple(ItemResult.from_dict(i) for i in data.get("items") or ()),
            skipped=tuple(SkippedItem.from_dict(s) for s in data.get("skipped") or ()),
            errors=tuple(ItemError.from_dict(e) for e in data.get("errors") or ()),
            totals=CollectionTotals(**{k: int(totals.get(k, 0)) for k in ("verified", "issues", "skipped", "errors")}),
        )


@dataclass(frozen=True)
class SkippedResult:
    """Result recorded for a component the engine does not know."""

    summary: str
    status: str = Phase.SKIPPED.value

    issue_count = 0
    has_errors = False

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "skipped", "status": self.status, "summary": self.summary}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SkippedResult:
        return cls(summary=str(data.get("summary", "")), status=str(data.get("status", Phase.SKIPPED.value)))


ComponentResult = Union[SingleResult, CollectionResult, SkippedResult]


def result_from_dict(data: dict[str, Any]) -> ComponentResult:
    """Rebuild a component result from its ``to_dict`` form."""
    kind = data.get("kind")
    if kind == ComponentKind.SINGLE.value:
        return SingleResult.from_dict(data)
    if kind == ComponentKind.COLLECTION.value:
        return CollectionResult.from_dict(data)
    return SkippedResult.from_dict(data)


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------


@dataclass
class Job:
    """One end-to-end verification run across the selected components."""

    context: JobContext
    components: list[str]
    component_states: dict[str, ComponentState]
    created_at: float
    active_index: int = 0
    completed: bool = False
    errors: list[ComponentError] = field(default_factory=list)
    results: dict[str, ComponentResult] = field(default_factory=dict)
    summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "context": self.context.value,
            "components": list(self.components),
            "active_index": self.active_index,
            "component_states": {k: v.to_dict() for k, v in self.component_states.items()},
            "created_at": self.created_at,
            "completed": self.completed,
            "errors": [e.to_dict() for e in self.errors],
            "results": {k: v.to_dict() for k, v in self.results.items()},
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        return cls(
            context=JobContext(data.get("context", JobContext.MANUAL.value)),
            components=list(data.get("components") or []),
            active_index=int(data.get("active_index", 0)),
            component_states={
                k: ComponentState.from_dict(v)
                for k, v in (data.get("component_states") or {}).items()
            },
            created_at=float(data.get("created_at", 0.0)),
            completed=bool(data.get("completed", False)),
            errors=[ComponentError.from_dict(e) for e in data.get("errors") or []],
            results={k: result_from_dict(v) for k, v in (data.get("results") or {}).items()},
            summary=str(data.get("summary", "")),
        )


@dataclass(frozen=True)
class StepOutcome:
    """What one scanner advance reports back to the orchestrator."""

    complete: bool
    message: str = ""
    error: bool = False


@dataclass(frozen=True)
class AdvanceResult:
    """Output of one orchestrator advance."""

    job: Job
    message: str
    progress: int
    completed: bool
    summary: str = ""
