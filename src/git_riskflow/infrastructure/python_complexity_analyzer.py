"""Function-level cyclomatic complexity analysis for Python."""

from __future__ import annotations

import ast
import warnings

from git_riskflow.domain.errors import SourceParseError
from git_riskflow.domain.models import FunctionRecord
from git_riskflow.infrastructure.naming import QualifiedNamer
from git_riskflow.infrastructure.suppression import extract_suppression

_FUNCTION_TYPES = (ast.FunctionDef, ast.AsyncFunctionDef)
_SCOPE_TYPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)


def _iter_body_nodes(node: ast.FunctionDef | ast.AsyncFunctionDef):
    """Yield every node of a function body that belongs to its own scope.

    Decorators, defaults and annotations are outside the body. Nested
    functions and classes are separate units and are not entered. Lambdas
    are entered: their branches count toward the enclosing function.
    """
    stack: list[ast.AST] = list(node.body)
    while stack:
        child = stack.pop()
        if isinstance(child, _SCOPE_TYPES):
            continue
        yield child
        stack.extend(ast.iter_child_nodes(child))


def _is_catch_all(case: ast.match_case) -> bool:
    """`case _:` or a bare capture without a guard matches everything."""
    if case.guard is not None:
        return False
    pattern = case.pattern
    return isinstance(pattern, ast.MatchAs) and pattern.pattern is None


def _compute_cyclomatic(node: ast.FunctionDef | ast.AsyncFunctionDef) -> int:
    """Compute cyclomatic complexity: 1 + decision points."""
    complexity = 1
    for child in _iter_body_nodes(node):
        if isinstance(child, (ast.If, ast.IfExp)):
            complexity += 1
        elif isinstance(child, (ast.For, ast.AsyncFor, ast.While)):
            complexity += 1
        elif isinstance(child, ast.ExceptHandler):
            complexity += 1
        elif isinstance(child, ast.BoolOp):
            # `a and b and c` = BoolOp(values=[a,b,c]) → adds len(values)-1
            complexity += len(child.values) - 1
        elif isinstance(child, ast.comprehension):
            # one for the iteration, one per filter clause
            complexity += 1 + len(child.ifs)
        elif isinstance(child, ast.match_case):
            if not _is_catch_all(child):
                complexity += 1
    return complexity


def _first_line(node: ast.FunctionDef | ast.AsyncFunctionDef) -> int:
    """Line of the first decorator, else of the ``def`` itself."""
    return min([d.lineno for d in node.decorator_list] + [node.lineno])


def _collect(
    body: list[ast.stmt],
    scope: tuple[str, ...],
    file_path: str,
    lines: list[str],
    namer: QualifiedNamer,
    records: list[FunctionRecord],
) -> None:
    for node in body:
        if isinstance(node, _FUNCTION_TYPES):
            records.append(FunctionRecord(
                file_path=file_path,
                qualified_name=namer.name(scope + (node.name,)),
                start_line=node.lineno,
                end_line=node.end_lineno or node.lineno,
                language="python",
                complexity=_compute_cyclomatic(node),
                suppression_reason=extract_suppression(lines, _first_line(node), "#"),
            ))
            _collect_nested(node, scope + (node.name,), file_path, lines, namer, records)
        elif isinstance(node, ast.ClassDef):
            _collect_nested(node, scope + (node.name,), file_path, lines, namer, records)
        else:
            # defs under if/try/with/for at this level still belong to `scope`
            _collect_nested(node, scope, file_path, lines, namer, records)


def _collect_nested(
    node: ast.AST,
    scope: tuple[str, ...],
    file_path: str,
    lines: list[str],
    namer: QualifiedNamer,
    records: list[FunctionRecord],
) -> None:
    # Source order: try body, except clauses, else, finally
    for attr in ("body", "handlers", "orelse", "finalbody", "cases"):
        sub = getattr(node, attr, None)
        if not sub or not isinstance(sub, list):
            continue
        if attr in ("handlers", "cases"):
            for clause in sub:
                _collect(clause.body, scope, file_path, lines, namer, records)
        else:
            _collect(sub, scope, file_path, lines, namer, records)


def analyze_python_source(source: str, file_path: str) -> list[FunctionRecord]:
    """Return a record for every function and method in a Python file."""
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", SyntaxWarning)
            tree = ast.parse(source, filename=file_path)
    except (SyntaxError, ValueError) as exc:
        raise SourceParseError(file_path, str(exc)) from exc
    except (RecursionError, MemoryError) as exc:
        # Valid but too deeply nested for the parser
        raise SourceParseError(
            file_path, f"too deeply nested to parse ({type(exc).__name__})",
        ) from exc

    records: list[FunctionRecord] = []
    _collect(tree.body, (), file_path, source.split("\n"), QualifiedNamer(), records)
    records.sort(key=lambda r: (r.start_line, r.qualified_name))
    return records
