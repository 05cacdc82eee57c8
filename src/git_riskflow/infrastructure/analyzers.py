"""Registry of complexity analyzers by language tag and file extension."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import PurePosixPath

from git_riskflow.domain.models import FunctionRecord
from git_riskflow.infrastructure.go_complexity_analyzer import analyze_go_source
from git_riskflow.infrastructure.java_complexity_analyzer import analyze_java_source
from git_riskflow.infrastructure.python_complexity_analyzer import analyze_python_source

Analyzer = Callable[[str, str], list[FunctionRecord]]

ANALYZERS: dict[str, Analyzer] = {
    "python": analyze_python_source,
    "java": analyze_java_source,
    "go": analyze_go_source,
}

EXTENSIONS: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".java": "java",
    ".go": "go",
}


def detect_language(file_path: str) -> str | None:
    """Map a file path to a language tag, or None if unsupported."""
    return EXTENSIONS.get(PurePosixPath(file_path).suffix.lower())


def get_analyzer(language: str | None) -> Analyzer | None:
    if language is None:
        return None
    return ANALYZERS.get(language)


def analyze_source(source: str, file_path: str, language: str) -> list[FunctionRecord]:
    """Run the analyzer registered for *language*.

    Raises KeyError for an unregistered language and SourceParseError when
    the file does not parse.
    """
    return ANALYZERS[language](source, file_path)
