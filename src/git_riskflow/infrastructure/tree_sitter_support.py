"""Helpers shared by the tree-sitter based analyzers."""

from __future__ import annotations

from collections.abc import Iterator

from tree_sitter import Language, Node, Parser

from git_riskflow.domain.errors import SourceParseError


def parse_tree(language: Language, source: str, file_path: str) -> Node:
    """Parse *source* and return the root node, or raise SourceParseError."""
    parser = Parser(language)
    tree = parser.parse(source.encode("utf-8"))
    root = tree.root_node
    if root.has_error:
        raise SourceParseError(file_path, "syntax error")
    return root


def node_text(node: Node) -> str:
    return node.text.decode("utf-8") if node.text is not None else ""


def start_line(node: Node) -> int:
    """1-based line of the first character of *node*."""
    return node.start_point[0] + 1


def end_line(node: Node) -> int:
    return node.end_point[0] + 1


def walk_scope(node: Node, skip_types: frozenset[str]) -> Iterator[Node]:
    """Yield all descendants of *node*, not entering subtrees in *skip_types*."""
    stack = list(node.children)
    while stack:
        child = stack.pop()
        if child.type in skip_types:
            continue
        yield child
        stack.extend(child.children)


def is_short_circuit(node: Node) -> bool:
    """True for a binary `&&` or `||` expression."""
    if node.type != "binary_expression":
        return False
    op = node.child_by_field_name("operator")
    return op is not None and op.type in ("&&", "||")
