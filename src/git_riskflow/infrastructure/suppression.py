"""Per-function suppression comments.

A comment on the line directly above a function exempts it from the
per-function policy rules::

    # riskflow-ignore: generated lexer tables
    def lex(...):

The text after the colon is the reason. A marker without a reason still
suppresses, but is reported by the ``suppression-missing-reason`` rule.
"""

from __future__ import annotations

from collections.abc import Sequence

SUPPRESSION_MARKER = "riskflow-ignore"


def extract_suppression(lines: Sequence[str], line: int, comment_prefix: str) -> str | None:
    """Suppression reason for a unit starting at 1-based *line*.

    Returns None without a marker, "" for a marker without a reason.
    Blank lines between the comment and the unit break the association.
    """
    if line <= 1 or line - 1 > len(lines):
        return None
    previous = lines[line - 2].strip()
    if not previous.startswith(comment_prefix):
        return None
    text = previous[len(comment_prefix):].strip()
    if not text.startswith(SUPPRESSION_MARKER):
        return None
    rest = text[len(SUPPRESSION_MARKER):]
    if rest and rest[0] != ":" and not rest[0].isspace():
        # e.g. "riskflow-ignored", a different word
        return None
    _, _, reason = rest.partition(":")
    return reason.strip()
