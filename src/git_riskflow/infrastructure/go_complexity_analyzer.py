"""Go function-level complexity analysis using tree-sitter."""

from __future__ import annotations

import tree_sitter_go as tsgo
from tree_sitter import Language, Node

from git_riskflow.domain.models import FunctionRecord
from git_riskflow.infrastructure.naming import QualifiedNamer
from git_riskflow.infrastructure.suppression import extract_suppression
from git_riskflow.infrastructure.tree_sitter_support import (
    end_line,
    is_short_circuit,
    node_text,
    parse_tree,
    start_line,
    walk_scope,
)

GO_LANGUAGE = Language(tsgo.language())

_DECISION_TYPES = frozenset({
    "if_statement", "for_statement",
    # switch/select arms; default_case adds nothing
    "expression_case", "type_case", "communication_case",
})


def _compute_cyclomatic(body: Node) -> int:
    """Compute cyclomatic complexity: 1 + decision points.

    Function literals are not units of their own, so their branches count
    toward the enclosing function.
    """
    complexity = 1
    for n in walk_scope(body, frozenset()):
        if n.type in _DECISION_TYPES:
            complexity += 1
        elif is_short_circuit(n):
            complexity += 1
    return complexity


def _receiver_type(node: Node) -> str | None:
    """`func (s *Server[T]) Run()` → "Server"."""
    receiver = node.child_by_field_name("receiver")
    if receiver is None:
        return None
    for param in receiver.named_children:
        if param.type != "parameter_declaration":
            continue
        type_node = param.child_by_field_name("type")
        if type_node is None:
            continue
        name = node_text(type_node).lstrip("*").split("[", 1)[0].strip()
        return name or None
    return None


def analyze_go_source(source: str, file_path: str) -> list[FunctionRecord]:
    """Return a record for every function and method in a Go file."""
    root = parse_tree(GO_LANGUAGE, source, file_path)
    lines = source.split("\n")
    namer = QualifiedNamer()
    records: list[FunctionRecord] = []

    for node in root.named_children:
        if node.type not in ("function_declaration", "method_declaration"):
            continue
        name_node = node.child_by_field_name("name")
        if name_node is None:
            continue
        parts: tuple[str, ...] = (node_text(name_node),)
        if node.type == "method_declaration":
            receiver = _receiver_type(node)
            if receiver:
                parts = (receiver,) + parts
        body = node.child_by_field_name("body")
        first = start_line(node)
        records.append(FunctionRecord(
            file_path=file_path,
            qualified_name=namer.name(parts),
            start_line=first,
            end_line=end_line(node),
            language="go",
            # Declarations without a body are implemented in assembly
            complexity=_compute_cyclomatic(body) if body is not None else 1,
            suppression_reason=extract_suppression(lines, first, "//"),
        ))

    records.sort(key=lambda r: (r.start_line, r.qualified_name))
    return records
