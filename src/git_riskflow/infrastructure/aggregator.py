"""Roll function records up into file and directory aggregates."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from git_riskflow.domain.models import (
    ROOT_DIRECTORY,
    DirectoryAggregate,
    FileAggregate,
    FunctionRecord,
    SnapshotAggregates,
)


def parent_directory(path: str) -> str:
    """`src/pkg/mod.py` → `src/pkg`; top-level paths → "."."""
    head, sep, _tail = path.rpartition("/")
    if not sep or not head:
        return ROOT_DIRECTORY
    return head


def ancestor_directories(file_path: str) -> list[str]:
    """Every directory containing *file_path*, innermost first, ending at "."."""
    dirs: list[str] = []
    current = file_path
    while current != ROOT_DIRECTORY:
        current = parent_directory(current)
        dirs.append(current)
    return dirs


def compute_file_aggregates(functions: Iterable[FunctionRecord]) -> tuple[FileAggregate, ...]:
    by_file: defaultdict[str, list[int]] = defaultdict(list)
    for fn in functions:
        by_file[fn.file_path].append(fn.complexity)

    files = []
    for path in sorted(by_file):
        scores = by_file[path]
        total = sum(scores)
        files.append(FileAggregate(
            path=path,
            function_count=len(scores),
            sum_complexity=total,
            avg_complexity=total / len(scores),
            max_complexity=max(scores),
        ))
    return tuple(files)


def compute_directory_aggregates(
    files: Iterable[FileAggregate],
) -> tuple[DirectoryAggregate, ...]:
    """Recursive rollup: each file counts toward every ancestor directory."""
    # [file_count, function_count, sum, max]
    dir_data: dict[str, list[int]] = {}
    for fa in files:
        for directory in ancestor_directories(fa.path):
            entry = dir_data.setdefault(directory, [0, 0, 0, 0])
            entry[0] += 1
            entry[1] += fa.function_count
            entry[2] += fa.sum_complexity
            if fa.max_complexity > entry[3]:
                entry[3] = fa.max_complexity

    directories = []
    for path in sorted(dir_data):
        file_count, function_count, total, max_cc = dir_data[path]
        if function_count == 0:
            continue
        directories.append(DirectoryAggregate(
            path=path,
            file_count=file_count,
            function_count=function_count,
            sum_complexity=total,
            avg_complexity=total / function_count,
            max_complexity=max_cc,
        ))
    return tuple(directories)


def aggregate(functions: Iterable[FunctionRecord]) -> SnapshotAggregates:
    """Deterministic file and directory rollups, independent of input order."""
    files = compute_file_aggregates(functions)
    return SnapshotAggregates(
        files=files,
        directories=compute_directory_aggregates(files),
    )
