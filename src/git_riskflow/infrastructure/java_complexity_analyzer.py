"""Java function-level complexity analysis using tree-sitter."""

from __future__ import annotations

import tree_sitter_java as tsjava
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

JAVA_LANGUAGE = Language(tsjava.language())

_TYPE_DECLARATIONS = frozenset({
    "class_declaration", "interface_declaration", "enum_declaration",
    "record_declaration", "annotation_type_declaration",
})

_METHOD_DECLARATIONS = frozenset({
    "method_declaration", "constructor_declaration",
    "compact_constructor_declaration",
})

_DECISION_TYPES = frozenset({
    "if_statement", "for_statement", "enhanced_for_statement",
    "while_statement", "do_statement", "catch_clause", "ternary_expression",
})

# Local and anonymous class bodies hold their own methods.
_SCOPE_BOUNDARIES = _TYPE_DECLARATIONS | _METHOD_DECLARATIONS | {"class_body"}


def _compute_cyclomatic(body: Node) -> int:
    """Compute cyclomatic complexity: 1 + decision points."""
    complexity = 1
    for n in walk_scope(body, _SCOPE_BOUNDARIES):
        if n.type in _DECISION_TYPES:
            complexity += 1
        elif n.type == "switch_label":
            # Each non-default case label is a decision
            if node_text(n).strip() != "default":
                complexity += 1
        elif is_short_circuit(n):
            complexity += 1
    return complexity


def _declaration_name(node: Node) -> str | None:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return None
    return node_text(name_node)


def _collect(root: Node, file_path: str, lines: list[str]) -> list[FunctionRecord]:
    """Walk declarations in source order with an explicit stack.

    Deep expression trees in valid files would overflow a recursive walk.
    """
    namer = QualifiedNamer()
    records: list[FunctionRecord] = []
    stack: list[tuple[Node, tuple[str, ...]]] = [(root, ())]
    while stack:
        node, scope = stack.pop()
        children: list[tuple[Node, tuple[str, ...]]]
        if node.type in _TYPE_DECLARATIONS:
            scope = scope + (_declaration_name(node) or "<anonymous>",)
            children = [(child, scope) for child in node.named_children]
        elif node.type in _METHOD_DECLARATIONS:
            name = _declaration_name(node) or (scope[-1] if scope else "<init>")
            body = node.child_by_field_name("body")
            first = start_line(node)
            records.append(FunctionRecord(
                file_path=file_path,
                qualified_name=namer.name(scope + (name,)),
                start_line=first,
                end_line=end_line(node),
                language="java",
                # Abstract and interface methods have no body
                complexity=_compute_cyclomatic(body) if body is not None else 1,
                suppression_reason=extract_suppression(lines, first, "//"),
            ))
            children = [(body, scope + (name,))] if body is not None else []
        elif node.type == "object_creation_expression":
            children = [
                (part, scope + ("<anonymous>",) if part.type == "class_body" else scope)
                for part in node.named_children
            ]
        else:
            children = [(child, scope) for child in node.named_children]
        # reversed so that the first child is popped first
        stack.extend(reversed(children))
    return records


def analyze_java_source(source: str, file_path: str) -> list[FunctionRecord]:
    """Return a record for every method and constructor in a Java file."""
    root = parse_tree(JAVA_LANGUAGE, source, file_path)
    records = _collect(root, file_path, source.split("\n"))
    records.sort(key=lambda r: (r.start_line, r.qualified_name))
    return records
