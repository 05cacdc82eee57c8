from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

SNAPSHOT_SCHEMA_VERSION = 2

ROOT_DIRECTORY = "."


def format_function_id(file_path: str, qualified_name: str) -> str:
    return f"{file_path}::{qualified_name}"


@dataclass(frozen=True)
class SourceFile:
    """A tracked file at one revision, as handed over by a RevisionSource."""

    path: str
    language: str | None  # None if no analyzer claims the file
    text: str


@dataclass(frozen=True)
class FunctionRecord:
    """Cyclomatic complexity of a single function or method at one revision."""

    file_path: str
    qualified_name: str            # dotted path of enclosing classes/functions
    start_line: int
    end_line: int
    language: str
    complexity: int                # 1 + decision points, always >= 1
    suppression_reason: str | None = None  # "" if suppressed without a reason

    @property
    def key(self) -> tuple[str, str]:
        return (self.file_path, self.qualified_name)

    @property
    def function_id(self) -> str:
        return format_function_id(self.file_path, self.qualified_name)


@dataclass(frozen=True)
class FileAggregate:
    """Complexity rolled up over the functions of one file."""

    path: str
    function_count: int
    sum_complexity: int
    avg_complexity: float          # sum_complexity / function_count
    max_complexity: int


@dataclass(frozen=True)
class DirectoryAggregate:
    """Complexity rolled up over every descendant file of a directory."""

    path: str                      # "." is the project root
    file_count: int
    function_count: int
    sum_complexity: int
    avg_complexity: float          # function-weighted
    max_complexity: int


@dataclass(frozen=True)
class SnapshotAggregates:
    files: tuple[FileAggregate, ...] = ()             # sorted by path
    directories: tuple[DirectoryAggregate, ...] = ()  # sorted by path

    def root(self) -> DirectoryAggregate | None:
        for d in self.directories:
            if d.path == ROOT_DIRECTORY:
                return d
        return None

    @property
    def total_complexity(self) -> int:
        root = self.root()
        return root.sum_complexity if root is not None else 0


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem hit while analyzing one file."""

    file_path: str
    message: str


@dataclass(frozen=True)
class Snapshot:
    """Every function record of one revision plus its rollups."""

    revision_id: str
    functions: tuple[FunctionRecord, ...]  # sorted by (file_path, start_line, qualified_name)
    aggregates: SnapshotAggregates
    diagnostics: tuple[Diagnostic, ...] = ()
    schema_version: int = SNAPSHOT_SCHEMA_VERSION

    def index(self) -> dict[tuple[str, str], FunctionRecord]:
        return {f.key: f for f in self.functions}


class FunctionStatus(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class FunctionDelta:
    """Per-function complexity change between two snapshots."""

    file_path: str
    qualified_name: str
    status: FunctionStatus
    complexity_before: int | None  # None if added
    complexity_after: int | None   # None if removed
    change: int                    # after - before, missing side counts as 0
    suppression_reason: str | None = None  # head side, else base side

    @property
    def key(self) -> tuple[str, str]:
        return (self.file_path, self.qualified_name)

    @property
    def suppressed(self) -> bool:
        return self.suppression_reason is not None

    @property
    def function_id(self) -> str:
        return format_function_id(self.file_path, self.qualified_name)


@dataclass(frozen=True)
class FileDelta:
    path: str
    sum_before: int
    sum_after: int
    change: int
    added_count: int
    removed_count: int
    modified_count: int


@dataclass(frozen=True)
class DirectoryDelta:
    path: str
    sum_before: int
    sum_after: int
    change: int


@dataclass(frozen=True)
class DeltaAggregates:
    files: tuple[FileDelta, ...] = ()             # sorted by path
    directories: tuple[DirectoryDelta, ...] = ()  # sorted by path


@dataclass(frozen=True)
class Violation:
    """A single rule match. Repository-level rules leave the key fields empty."""

    rule_id: str
    message: str
    file_path: str | None = None
    qualified_name: str | None = None

    @property
    def function_id(self) -> str | None:
        if self.file_path is None or self.qualified_name is None:
            return None
        return format_function_id(self.file_path, self.qualified_name)


@dataclass(frozen=True)
class PolicyResult:
    failed: tuple[Violation, ...] = ()
    warnings: tuple[Violation, ...] = ()

    @property
    def has_failures(self) -> bool:
        return len(self.failed) > 0


@dataclass(frozen=True)
class Delta:
    """Function-level and rolled-up difference between two snapshots."""

    base_revision: str
    head_revision: str
    deltas: tuple[FunctionDelta, ...]  # sorted by (file_path, qualified_name)
    aggregates: DeltaAggregates
    policy: PolicyResult = field(default_factory=PolicyResult)

    def count(self, status: FunctionStatus) -> int:
        return sum(1 for d in self.deltas if d.status == status)


@dataclass(frozen=True)
class VelocityEntry:
    file_path: str
    qualified_name: str
    slope: float                   # complexity change per revision
    points: int                    # revisions in which the function exists
    first_complexity: int
    latest_complexity: int

    @property
    def function_id(self) -> str:
        return format_function_id(self.file_path, self.qualified_name)


@dataclass(frozen=True)
class HotspotEntry:
    file_path: str
    qualified_name: str
    score: float                   # latest * (1 + max(slope, 0))
    latest_complexity: int
    slope: float

    @property
    def function_id(self) -> str:
        return format_function_id(self.file_path, self.qualified_name)


@dataclass(frozen=True)
class RefactorEntry:
    file_path: str
    qualified_name: str
    score: float                   # drop * (1 + |slope|)
    drop: int                      # peak - latest
    latest_complexity: int
    slope: float

    @property
    def function_id(self) -> str:
        return format_function_id(self.file_path, self.qualified_name)


@dataclass(frozen=True)
class TrendWindow:
    """Velocity, hotspot and refactor rankings over an ordered revision window."""

    revisions: tuple[str, ...]     # chronologically ascending, deduplicated
    total_functions: int           # keys seen in at least one snapshot
    tracked_functions: int         # keys seen in at least two snapshots
    velocities: tuple[VelocityEntry, ...]   # sorted by function id
    hotspots: tuple[HotspotEntry, ...]      # ranked, at most top_k
    refactors: tuple[RefactorEntry, ...]    # ranked, at most top_k
