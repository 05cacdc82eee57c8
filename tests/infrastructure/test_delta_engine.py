from git_riskflow.domain.models import FunctionRecord, FunctionStatus, Snapshot
from git_riskflow.infrastructure.aggregator import aggregate
from git_riskflow.infrastructure.delta_engine import classify_keys, diff


def _fn(path: str, name: str, cc: int) -> FunctionRecord:
    return FunctionRecord(path, name, 1, 2, "python", cc)


def _snapshot(revision: str, functions: list[FunctionRecord]) -> Snapshot:
    return Snapshot(revision, tuple(functions), aggregate(functions))


BASE = _snapshot("base", [
    _fn("src/a.py", "keep", 3),
    _fn("src/a.py", "grow", 2),
    _fn("src/a.py", "drop", 4),
    _fn("lib/b.py", "shrink", 6),
])

HEAD = _snapshot("head", [
    _fn("src/a.py", "keep", 3),
    _fn("src/a.py", "grow", 5),
    _fn("src/a.py", "new", 7),
    _fn("lib/b.py", "shrink", 2),
    _fn("lib/c.py", "fresh", 1),
])


class TestDiff:
    def test_statuses(self):
        delta = diff(BASE, HEAD)
        status = {d.function_id: d.status for d in delta.deltas}
        assert status == {
            "src/a.py::keep": FunctionStatus.UNCHANGED,
            "src/a.py::grow": FunctionStatus.MODIFIED,
            "src/a.py::drop": FunctionStatus.REMOVED,
            "src/a.py::new": FunctionStatus.ADDED,
            "lib/b.py::shrink": FunctionStatus.MODIFIED,
            "lib/c.py::fresh": FunctionStatus.ADDED,
        }

    def test_before_after_and_change(self):
        deltas = {d.function_id: d for d in diff(BASE, HEAD).deltas}
        added = deltas["src/a.py::new"]
        assert (added.complexity_before, added.complexity_after, added.change) == (None, 7, 7)
        removed = deltas["src/a.py::drop"]
        assert (removed.complexity_before, removed.complexity_after, removed.change) == (4, None, -4)
        grown = deltas["src/a.py::grow"]
        assert grown.change == 3

    def test_revisions_recorded_and_policy_empty(self):
        delta = diff(BASE, HEAD)
        assert delta.base_revision == "base"
        assert delta.head_revision == "head"
        assert not delta.policy.failed and not delta.policy.warnings

    def test_partition_law(self):
        delta = diff(BASE, HEAD)
        keys = [d.key for d in delta.deltas]
        assert len(keys) == len(set(keys))
        assert set(keys) == set(BASE.index()) | set(HEAD.index())
        for d in delta.deltas:
            in_base = d.key in BASE.index()
            in_head = d.key in HEAD.index()
            if d.status == FunctionStatus.ADDED:
                assert not in_base and in_head
            elif d.status == FunctionStatus.REMOVED:
                assert in_base and not in_head
            else:
                assert in_base and in_head

    def test_sum_law(self):
        delta = diff(BASE, HEAD)
        assert sum(d.change for d in delta.deltas) == (
            HEAD.aggregates.total_complexity - BASE.aggregates.total_complexity
        )

    def test_sorted_by_key(self):
        keys = [d.key for d in diff(BASE, HEAD).deltas]
        assert keys == sorted(keys)

    def test_identical_snapshots_all_unchanged(self):
        delta = diff(BASE, BASE)
        assert all(d.status == FunctionStatus.UNCHANGED for d in delta.deltas)
        assert all(d.change == 0 for d in delta.deltas)

    def test_empty_snapshots(self):
        delta = diff(_snapshot("a", []), _snapshot("b", []))
        assert delta.deltas == ()
        assert delta.aggregates.files == ()


class TestDeltaAggregates:
    def test_file_deltas(self):
        files = {f.path: f for f in diff(BASE, HEAD).aggregates.files}
        a = files["src/a.py"]
        assert (a.sum_before, a.sum_after, a.change) == (9, 15, 6)
        assert (a.added_count, a.removed_count, a.modified_count) == (1, 1, 1)
        c = files["lib/c.py"]
        assert (c.sum_before, c.sum_after, c.added_count) == (0, 1, 1)

    def test_directory_deltas(self):
        dirs = {d.path: d for d in diff(BASE, HEAD).aggregates.directories}
        assert dirs["lib"].change == (2 + 1) - 6
        assert dirs["."].change == sum(d.change for d in diff(BASE, HEAD).deltas)

    def test_removed_file_appears_with_zero_after(self):
        head = _snapshot("head", [_fn("src/a.py", "keep", 3)])
        files = {f.path: f for f in diff(BASE, head).aggregates.files}
        assert files["lib/b.py"].sum_after == 0
        assert files["lib/b.py"].removed_count == 1


class TestClassifyKeys:
    def test_partitions_concatenate_to_full_diff(self):
        base_index, head_index = BASE.index(), HEAD.index()
        keys = sorted(set(base_index) | set(head_index))
        left = classify_keys(keys[:3], base_index, head_index)
        right = classify_keys(keys[3:], base_index, head_index)
        assert tuple(left + right) == diff(BASE, HEAD).deltas


class TestSuppressionCarried:
    def test_head_side_wins_and_removed_keeps_base(self):
        base = _snapshot("base", [
            FunctionRecord("a.py", "kept", 1, 2, "python", 3, "old reason"),
            FunctionRecord("a.py", "gone", 1, 2, "python", 3, ""),
        ])
        head = _snapshot("head", [
            FunctionRecord("a.py", "kept", 1, 2, "python", 4, "new reason"),
            FunctionRecord("a.py", "fresh", 1, 2, "python", 1),
        ])
        reasons = {d.qualified_name: d.suppression_reason for d in diff(base, head).deltas}
        assert reasons == {"kept": "new reason", "gone": "", "fresh": None}
