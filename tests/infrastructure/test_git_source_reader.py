import os
import subprocess
from pathlib import Path

import pytest

from git_riskflow.application.snapshot_builder import SnapshotBuilder
from git_riskflow.domain.errors import RevisionResolutionError
from git_riskflow.infrastructure.git_source_reader import GitSourceReader
from tests.conftest import PY_V1, PY_V3, commit_file


class TestGitSourceReader:
    def test_rejects_non_repository(self, tmp_path: Path):
        with pytest.raises(ValueError):
            GitSourceReader(str(tmp_path))

    def test_resolve_head_to_full_hash(self, history_repo):
        repo, commits = history_repo
        reader = GitSourceReader(str(repo))
        assert reader.resolve("HEAD") == commits[-1]
        assert reader.resolve("HEAD~2") == commits[0]
        assert reader.resolve(commits[1][:8]) == commits[1]

    def test_resolve_unknown_ref(self, history_repo):
        repo, _ = history_repo
        reader = GitSourceReader(str(repo))
        with pytest.raises(RevisionResolutionError) as exc_info:
            reader.resolve("no-such-branch")
        assert exc_info.value.revision == "no-such-branch"

    def test_resolve_in_empty_repo(self, tmp_git_repo: Path):
        with pytest.raises(RevisionResolutionError):
            GitSourceReader(str(tmp_git_repo)).resolve("HEAD")

    def test_revisions_oldest_first(self, history_repo):
        repo, commits = history_repo
        reader = GitSourceReader(str(repo))
        revisions = reader.revisions("HEAD")
        assert len(revisions) == 4
        assert revisions[-3:] == commits

    def test_revisions_limit_keeps_newest(self, history_repo):
        repo, commits = history_repo
        reader = GitSourceReader(str(repo))
        assert reader.revisions("HEAD", limit=2) == commits[-2:]

    def test_list_files(self, history_repo):
        repo, _ = history_repo
        reader = GitSourceReader(str(repo))
        assert reader.list_files("HEAD") == ["README.md", "src/app/core.py"]

    def test_tracked_files_only_analyzable(self, history_repo):
        repo, commits = history_repo
        reader = GitSourceReader(str(repo))
        files = reader.tracked_files(commits[0])
        assert [f.path for f in files] == ["src/app/core.py"]
        assert files[0].language == "python"
        assert files[0].text == PY_V1

    def test_tracked_files_at_head(self, history_repo):
        repo, commits = history_repo
        reader = GitSourceReader(str(repo))
        (core,) = reader.tracked_files(commits[-1])
        assert core.text == PY_V3

    def test_multiple_languages(self, tmp_git_repo: Path):
        commit_file(tmp_git_repo, "a.py", "def f():\n    pass\n", "py")
        commit_file(tmp_git_repo, "b/Main.java", "class Main {}\n", "java")
        head = commit_file(tmp_git_repo, "c/main.go", "package main\n", "go")
        reader = GitSourceReader(str(tmp_git_repo))
        languages = {f.path: f.language for f in reader.tracked_files(head)}
        assert languages == {"a.py": "python", "b/Main.java": "java", "c/main.go": "go"}

    def test_non_utf8_file_name(self, tmp_git_repo: Path):
        raw_name = os.path.join(os.fsencode(tmp_git_repo), b"caf\xe9.py")
        with open(raw_name, "w") as fh:
            fh.write("def f():\n    pass\n")
        subprocess.run(
            ["git", "-C", str(tmp_git_repo), "add", "-A"], capture_output=True, check=True,
        )
        subprocess.run(
            ["git", "-C", str(tmp_git_repo), "commit", "-m", "latin-1 name"],
            capture_output=True, check=True,
        )
        reader = GitSourceReader(str(tmp_git_repo))
        (source_file,) = reader.tracked_files("HEAD")
        assert source_file.path == "caf\ufffd.py"
        assert source_file.text == "def f():\n    pass\n"

        snap = SnapshotBuilder(reader).build("HEAD")
        assert [f.function_id for f in snap.functions] == ["caf\ufffd.py::f"]
        assert snap.diagnostics == ()
