from __future__ import annotations

from collections.abc import Sequence

from git_riskflow.application.snapshot_builder import SnapshotBuilder
from git_riskflow.domain.models import Delta, Snapshot, TrendWindow
from git_riskflow.domain.ports import RevisionSource
from git_riskflow.infrastructure import delta_engine, trend_engine
from git_riskflow.infrastructure.policy_engine import Rule, apply_policy

EXIT_OK = 0
EXIT_POLICY_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_RUNTIME_ERROR = 3


def snapshot(builder: SnapshotBuilder, revision: str) -> Snapshot:
    return builder.build(revision)


def delta(
    builder: SnapshotBuilder, base: str, head: str, rules: Sequence[Rule],
) -> Delta:
    """Diff two revisions and attach the policy verdicts."""
    base_snapshot = builder.build(base)
    head_snapshot = builder.build(head)
    return apply_policy(delta_engine.diff(base_snapshot, head_snapshot), rules)


def order_revisions(source: RevisionSource, revisions: Sequence[str]) -> list[str]:
    """Resolve *revisions* and sort them oldest first along first-parent history.

    Duplicates are dropped. Raises ValueError when the revisions do not all
    lie on the first-parent history of one of them.
    """
    resolved = list(dict.fromkeys(source.resolve(r) for r in revisions))
    if len(resolved) < 2:
        return resolved
    wanted = set(resolved)
    # The newest revision is usually given last
    for candidate in reversed(resolved):
        position = {rev: i for i, rev in enumerate(source.revisions(candidate))}
        if wanted <= position.keys():
            return sorted(resolved, key=position.__getitem__)
    raise ValueError("revisions do not lie on a single first-parent history")


def trends(builder: SnapshotBuilder, revisions: Sequence[str], top_k: int) -> TrendWindow:
    """Trends over *revisions*, put in history order before analysis."""
    if top_k < 1:
        raise ValueError(f"top_k must be at least 1 (got {top_k})")
    ordered = order_revisions(builder.source, revisions)
    return trend_engine.analyze(builder.build_many(ordered), top_k)


def trends_for_history(
    builder: SnapshotBuilder, ref: str, window: int, top_k: int,
) -> TrendWindow:
    """Trends over the last *window* first-parent revisions ending at *ref*."""
    if window < 2:
        raise ValueError(f"window must be at least 2 revisions (got {window})")
    revisions = builder.source.revisions(ref, limit=window)
    return trends(builder, revisions, top_k)


def exit_status(result: Delta) -> int:
    return EXIT_POLICY_FAILED if result.policy.has_failures else EXIT_OK
