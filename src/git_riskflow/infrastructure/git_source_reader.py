"""Git-backed RevisionSource using git rev-parse, rev-list, ls-tree and show."""

from __future__ import annotations

import subprocess
from pathlib import Path

from git_riskflow.domain.errors import RevisionResolutionError
from git_riskflow.domain.models import SourceFile
from git_riskflow.infrastructure.analyzers import detect_language


def display_path(path: str) -> str:
    """Printable form of a path that may carry surrogate-escaped bytes."""
    return path.encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")


class GitSourceReader:
    def __init__(self, repo_path: str) -> None:
        path = Path(repo_path).resolve()
        if not (path / ".git").exists():
            raise ValueError(f"Not a git repository: {path}")
        self._path = str(path)

    @property
    def path(self) -> str:
        return self._path

    def _run_bytes(self, *args: str) -> bytes:
        result = subprocess.run(
            ["git", "-C", self._path, *args],
            capture_output=True,
        )
        if result.returncode != 0:
            raise RuntimeError(result.stderr.decode("utf-8", errors="replace").strip())
        return result.stdout

    def _run(self, *args: str) -> str:
        return self._run_bytes(*args).decode("utf-8", errors="replace")

    def resolve(self, ref: str) -> str:
        """Resolve a ref (commit, tag, branch, HEAD~n) to a full commit hash."""
        try:
            output = self._run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")
        except RuntimeError as e:
            raise RevisionResolutionError(ref, str(e) or "unknown revision") from e
        output = output.strip()
        if not output:
            raise RevisionResolutionError(ref, "unknown revision")
        return output

    def revisions(self, ref: str = "HEAD", limit: int | None = None) -> list[str]:
        """First-parent history ending at *ref*, oldest first."""
        head = self.resolve(ref)
        args = ["rev-list", "--first-parent", "--reverse"]
        if limit is not None:
            args.append(f"--max-count={limit}")
        args.append(head)
        try:
            output = self._run(*args)
        except RuntimeError as e:
            raise RevisionResolutionError(ref, str(e)) from e
        return [line for line in output.splitlines() if line]

    def list_files(self, revision: str) -> list[str]:
        """Regular files tracked at *revision*, submodules excluded.

        Paths that are not valid UTF-8 keep their raw bytes as surrogate
        escapes so they can be handed back to ``read_file``.
        """
        try:
            output = self._run_bytes("ls-tree", "-r", "-z", revision)
        except RuntimeError as e:
            raise RevisionResolutionError(revision, str(e)) from e
        paths = []
        for entry in output.split(b"\0"):
            if not entry:
                continue
            # Format: <mode> <type> <hash>\t<path>
            meta, _, raw_path = entry.partition(b"\t")
            parts = meta.split()
            if len(parts) != 3 or parts[1] != b"blob":
                continue
            paths.append(raw_path.decode("utf-8", errors="surrogateescape"))
        return sorted(paths)

    def read_file(self, file_path: str, revision: str) -> str:
        try:
            return self._run("show", f"{revision}:{file_path}")
        except RuntimeError as e:
            raise RevisionResolutionError(revision, str(e)) from e

    def tracked_files(self, revision: str) -> list[SourceFile]:
        """Analyzable files at *revision* with their full text."""
        files = []
        for file_path in self.list_files(revision):
            language = detect_language(file_path)
            if language is None:
                continue
            files.append(SourceFile(
                path=display_path(file_path),
                language=language,
                text=self.read_file(file_path, revision),
            ))
        return files
