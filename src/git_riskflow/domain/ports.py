from __future__ import annotations

from typing import Protocol

from git_riskflow.domain.models import Snapshot, SourceFile


class RevisionSource(Protocol):
    def resolve(self, ref: str) -> str: ...

    def revisions(self, ref: str = "HEAD", limit: int | None = None) -> list[str]: ...

    def tracked_files(self, revision: str) -> list[SourceFile]: ...


class SnapshotStore(Protocol):
    def read(self, revision_id: str) -> Snapshot | None: ...

    def write(self, snapshot: Snapshot) -> None: ...

    def invalidate(self, revision_id: str) -> None: ...
