"""Function-level diff between two snapshots.

Functions are matched by (file_path, qualified_name) only; a moved or
renamed function shows up as one removal plus one addition.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping

from git_riskflow.domain.models import (
    Delta,
    DeltaAggregates,
    DirectoryDelta,
    FileDelta,
    FunctionDelta,
    FunctionRecord,
    FunctionStatus,
    Snapshot,
)

Key = tuple[str, str]


def _classify(key: Key, before: FunctionRecord | None, after: FunctionRecord | None) -> FunctionDelta:
    file_path, qualified_name = key
    if before is None and after is not None:
        return FunctionDelta(
            file_path, qualified_name, FunctionStatus.ADDED,
            None, after.complexity, after.complexity, after.suppression_reason,
        )
    if after is None and before is not None:
        return FunctionDelta(
            file_path, qualified_name, FunctionStatus.REMOVED,
            before.complexity, None, -before.complexity, before.suppression_reason,
        )
    if before is None or after is None:
        raise KeyError(f"{file_path}::{qualified_name} is in neither snapshot")
    change = after.complexity - before.complexity
    status = FunctionStatus.UNCHANGED if change == 0 else FunctionStatus.MODIFIED
    return FunctionDelta(
        file_path, qualified_name, status,
        before.complexity, after.complexity, change, after.suppression_reason,
    )


def classify_keys(
    keys: Iterable[Key],
    base_index: Mapping[Key, FunctionRecord],
    head_index: Mapping[Key, FunctionRecord],
) -> list[FunctionDelta]:
    """Classify a partition of keys.

    Disjoint partitions can be classified independently and concatenated.
    """
    return [_classify(k, base_index.get(k), head_index.get(k)) for k in keys]


def compute_delta_aggregates(
    base: Snapshot, head: Snapshot, deltas: Iterable[FunctionDelta],
) -> DeltaAggregates:
    """Per-file and per-directory differences of summed complexity."""
    base_files = {f.path: f.sum_complexity for f in base.aggregates.files}
    head_files = {f.path: f.sum_complexity for f in head.aggregates.files}

    # [added, removed, modified]
    counts: defaultdict[str, list[int]] = defaultdict(lambda: [0, 0, 0])
    for d in deltas:
        if d.status == FunctionStatus.ADDED:
            counts[d.file_path][0] += 1
        elif d.status == FunctionStatus.REMOVED:
            counts[d.file_path][1] += 1
        elif d.status == FunctionStatus.MODIFIED:
            counts[d.file_path][2] += 1

    files = []
    for path in sorted(base_files.keys() | head_files.keys()):
        before = base_files.get(path, 0)
        after = head_files.get(path, 0)
        added, removed, modified = counts.get(path, (0, 0, 0))
        files.append(FileDelta(
            path=path,
            sum_before=before,
            sum_after=after,
            change=after - before,
            added_count=added,
            removed_count=removed,
            modified_count=modified,
        ))

    base_dirs = {d.path: d.sum_complexity for d in base.aggregates.directories}
    head_dirs = {d.path: d.sum_complexity for d in head.aggregates.directories}
    directories = []
    for path in sorted(base_dirs.keys() | head_dirs.keys()):
        before = base_dirs.get(path, 0)
        after = head_dirs.get(path, 0)
        directories.append(DirectoryDelta(
            path=path, sum_before=before, sum_after=after, change=after - before,
        ))

    return DeltaAggregates(files=tuple(files), directories=tuple(directories))


def diff(base: Snapshot, head: Snapshot) -> Delta:
    """Diff two snapshots. The returned delta carries no policy verdicts."""
    base_index = base.index()
    head_index = head.index()
    all_keys = sorted(base_index.keys() | head_index.keys())
    deltas = classify_keys(all_keys, base_index, head_index)
    return Delta(
        base_revision=base.revision_id,
        head_revision=head.revision_id,
        deltas=tuple(deltas),
        aggregates=compute_delta_aggregates(base, head, deltas),
    )
