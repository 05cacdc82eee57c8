"""Build per-revision snapshots, consulting the snapshot store first."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from fnmatch import fnmatchcase

from git_riskflow.domain.errors import SourceParseError
from git_riskflow.domain.models import Diagnostic, FunctionRecord, Snapshot, SourceFile
from git_riskflow.domain.ports import RevisionSource, SnapshotStore
from git_riskflow.infrastructure.aggregator import aggregate
from git_riskflow.infrastructure.analyzers import analyze_source, get_analyzer

logger = logging.getLogger(__name__)

FileResult = tuple[list[FunctionRecord], Diagnostic | None]


def is_excluded(path: str, patterns: Sequence[str]) -> bool:
    """Glob match where a leading ``**/`` also matches top-level files."""
    for pattern in patterns:
        if fnmatchcase(path, pattern):
            return True
        if pattern.startswith("**/") and fnmatchcase(path, pattern[3:]):
            return True
    return False


def analyze_file(source_file: SourceFile) -> FileResult:
    """Analyze one file; a parse failure becomes a diagnostic."""
    try:
        records = analyze_source(source_file.text, source_file.path, source_file.language)
    except SourceParseError as e:
        logger.warning("%s", e.message)
        return [], Diagnostic(file_path=source_file.path, message=e.reason)
    return records, None


class SnapshotBuilder:
    def __init__(
        self,
        source: RevisionSource,
        store: SnapshotStore | None = None,
        max_workers: int = 4,
        exclude: Sequence[str] = (),
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1 (got {max_workers})")
        self._source = source
        self._store = store
        self._max_workers = max_workers
        self._exclude = tuple(exclude)
        self._lock = threading.Lock()
        self._in_flight: dict[str, Future] = {}

    @property
    def source(self) -> RevisionSource:
        return self._source

    def build(self, revision: str) -> Snapshot:
        """Snapshot of *revision*. Concurrent callers for one revision share a build."""
        revision_id = self._source.resolve(revision)

        with self._lock:
            future = self._in_flight.get(revision_id)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[revision_id] = future

        if not owner:
            logger.debug("Waiting for in-flight build of %s", revision_id)
            return future.result()

        try:
            snapshot = self._load_or_build(revision_id)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(snapshot)
            return snapshot
        finally:
            with self._lock:
                del self._in_flight[revision_id]

    def build_many(self, revisions: Sequence[str]) -> list[Snapshot]:
        return [self.build(r) for r in revisions]

    def _load_or_build(self, revision_id: str) -> Snapshot:
        if self._store is not None:
            cached = self._store.read(revision_id)
            if cached is not None:
                return cached

        started = time.perf_counter()
        snapshot = self._analyze(revision_id)
        logger.debug(
            "Built snapshot %s: %d functions in %.2fs",
            revision_id, len(snapshot.functions), time.perf_counter() - started,
        )
        if self._store is not None:
            self._store.write(snapshot)
        return snapshot

    def _selected_files(self, revision_id: str) -> list[SourceFile]:
        selected = []
        for f in self._source.tracked_files(revision_id):
            if get_analyzer(f.language) is None:
                continue
            if is_excluded(f.path, self._exclude):
                continue
            selected.append(f)
        return selected

    def _analyze(self, revision_id: str) -> Snapshot:
        files = self._selected_files(revision_id)

        if self._max_workers == 1 or len(files) <= 1:
            results = [analyze_file(f) for f in files]
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                results = list(pool.map(analyze_file, files))

        functions: list[FunctionRecord] = []
        diagnostics: list[Diagnostic] = []
        for records, diagnostic in results:
            functions.extend(records)
            if diagnostic is not None:
                diagnostics.append(diagnostic)

        functions.sort(key=lambda f: (f.file_path, f.start_line, f.qualified_name))
        diagnostics.sort(key=lambda d: d.file_path)
        return Snapshot(
            revision_id=revision_id,
            functions=tuple(functions),
            aggregates=aggregate(functions),
            diagnostics=tuple(diagnostics),
        )
