"""JSON shapes for snapshots, deltas and trend windows.

``encode`` is canonical (sorted keys, no whitespace) so equal values always
produce identical bytes; the snapshot cache relies on this.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from git_riskflow.domain.errors import CacheInconsistencyError
from git_riskflow.domain.models import (
    Delta,
    DeltaAggregates,
    Diagnostic,
    DirectoryAggregate,
    DirectoryDelta,
    FileAggregate,
    FileDelta,
    FunctionDelta,
    FunctionRecord,
    PolicyResult,
    Snapshot,
    SnapshotAggregates,
    TrendWindow,
    Violation,
)


def encode(payload: dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


# ── Snapshot ─────────────────────────────────────────────────────────


def _function_to_dict(fn: FunctionRecord) -> dict[str, Any]:
    return {
        "function_id": fn.function_id,
        "file_path": fn.file_path,
        "qualified_name": fn.qualified_name,
        "start_line": fn.start_line,
        "end_line": fn.end_line,
        "language": fn.language,
        "complexity": fn.complexity,
        "suppression_reason": fn.suppression_reason,
    }


def _file_aggregate_to_dict(fa: FileAggregate) -> dict[str, Any]:
    return {
        "path": fa.path,
        "function_count": fa.function_count,
        "sum_complexity": fa.sum_complexity,
        "avg_complexity": fa.avg_complexity,
        "max_complexity": fa.max_complexity,
    }


def _directory_aggregate_to_dict(da: DirectoryAggregate) -> dict[str, Any]:
    return {
        "path": da.path,
        "file_count": da.file_count,
        "function_count": da.function_count,
        "sum_complexity": da.sum_complexity,
        "avg_complexity": da.avg_complexity,
        "max_complexity": da.max_complexity,
    }


def snapshot_to_dict(snapshot: Snapshot) -> dict[str, Any]:
    return {
        "schema_version": snapshot.schema_version,
        "revision_id": snapshot.revision_id,
        "functions": [_function_to_dict(f) for f in snapshot.functions],
        "aggregates": {
            "files": [_file_aggregate_to_dict(f) for f in snapshot.aggregates.files],
            "directories": [
                _directory_aggregate_to_dict(d) for d in snapshot.aggregates.directories
            ],
        },
        "diagnostics": [
            {"file_path": d.file_path, "message": d.message} for d in snapshot.diagnostics
        ],
    }


def snapshot_from_dict(data: dict[str, Any]) -> Snapshot:
    """Rebuild a Snapshot; malformed input raises CacheInconsistencyError."""
    try:
        functions = tuple(
            FunctionRecord(
                file_path=f["file_path"],
                qualified_name=f["qualified_name"],
                start_line=int(f["start_line"]),
                end_line=int(f["end_line"]),
                language=f["language"],
                complexity=int(f["complexity"]),
                suppression_reason=f["suppression_reason"],
            )
            for f in data["functions"]
        )
        aggregates = SnapshotAggregates(
            files=tuple(
                FileAggregate(
                    path=f["path"],
                    function_count=int(f["function_count"]),
                    sum_complexity=int(f["sum_complexity"]),
                    avg_complexity=float(f["avg_complexity"]),
                    max_complexity=int(f["max_complexity"]),
                )
                for f in data["aggregates"]["files"]
            ),
            directories=tuple(
                DirectoryAggregate(
                    path=d["path"],
                    file_count=int(d["file_count"]),
                    function_count=int(d["function_count"]),
                    sum_complexity=int(d["sum_complexity"]),
                    avg_complexity=float(d["avg_complexity"]),
                    max_complexity=int(d["max_complexity"]),
                )
                for d in data["aggregates"]["directories"]
            ),
        )
        diagnostics = tuple(
            Diagnostic(file_path=d["file_path"], message=d["message"])
            for d in data.get("diagnostics", [])
        )
        return Snapshot(
            revision_id=data["revision_id"],
            functions=functions,
            aggregates=aggregates,
            diagnostics=diagnostics,
            schema_version=int(data["schema_version"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CacheInconsistencyError(f"Malformed snapshot payload: {exc}") from exc


def encode_snapshot(snapshot: Snapshot) -> str:
    return encode(snapshot_to_dict(snapshot))


def decode_snapshot(text: str) -> Snapshot:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CacheInconsistencyError(f"Snapshot payload is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise CacheInconsistencyError("Snapshot payload is not an object")
    return snapshot_from_dict(data)


# ── Delta ────────────────────────────────────────────────────────────


def _function_delta_to_dict(d: FunctionDelta) -> dict[str, Any]:
    return {
        "function_id": d.function_id,
        "file_path": d.file_path,
        "qualified_name": d.qualified_name,
        "status": d.status.value,
        "complexity_before": d.complexity_before,
        "complexity_after": d.complexity_after,
        "change": d.change,
        "suppression_reason": d.suppression_reason,
    }


def _file_delta_to_dict(fd: FileDelta) -> dict[str, Any]:
    return {
        "path": fd.path,
        "sum_before": fd.sum_before,
        "sum_after": fd.sum_after,
        "change": fd.change,
        "added_count": fd.added_count,
        "removed_count": fd.removed_count,
        "modified_count": fd.modified_count,
    }


def _directory_delta_to_dict(dd: DirectoryDelta) -> dict[str, Any]:
    return {
        "path": dd.path,
        "sum_before": dd.sum_before,
        "sum_after": dd.sum_after,
        "change": dd.change,
    }


def delta_aggregates_to_dict(aggregates: DeltaAggregates) -> dict[str, Any]:
    return {
        "files": [_file_delta_to_dict(f) for f in aggregates.files],
        "directories": [_directory_delta_to_dict(d) for d in aggregates.directories],
    }


def violation_to_dict(v: Violation) -> dict[str, Any]:
    return {
        "rule_id": v.rule_id,
        "message": v.message,
        "key": v.function_id,
    }


def policy_to_dict(policy: PolicyResult) -> dict[str, Any]:
    return {
        "failed": [violation_to_dict(v) for v in policy.failed],
        "warnings": [violation_to_dict(v) for v in policy.warnings],
    }


def delta_to_dict(delta: Delta) -> dict[str, Any]:
    return {
        "base_revision": delta.base_revision,
        "head_revision": delta.head_revision,
        "deltas": [_function_delta_to_dict(d) for d in delta.deltas],
        "aggregates": delta_aggregates_to_dict(delta.aggregates),
        "policy": policy_to_dict(delta.policy),
    }


# ── Trends ───────────────────────────────────────────────────────────


def trend_window_to_dict(window: TrendWindow) -> dict[str, Any]:
    return {
        "revisions": list(window.revisions),
        "total_functions": window.total_functions,
        "tracked_functions": window.tracked_functions,
        "velocities": [
            {
                "key": v.function_id,
                "slope": v.slope,
                "points": v.points,
                "first_complexity": v.first_complexity,
                "latest_complexity": v.latest_complexity,
            }
            for v in window.velocities
        ],
        "hotspots": [
            {
                "key": h.function_id,
                "score": h.score,
                "latest_complexity": h.latest_complexity,
                "slope": h.slope,
            }
            for h in window.hotspots
        ],
        "refactors": [
            {
                "key": r.function_id,
                "score": r.score,
                "drop": r.drop,
                "latest_complexity": r.latest_complexity,
                "slope": r.slope,
            }
            for r in window.refactors
        ],
    }
