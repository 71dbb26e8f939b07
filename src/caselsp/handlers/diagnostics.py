"""Collect step and page diagnostics for a feature document."""
from __future__ import annotations

from lsprotocol import types as lsp

from caselsp.document import clear_comments, split_lines
from caselsp.state import Snapshot


def get_diagnostics(snapshot: Snapshot, text: str) -> list[lsp.Diagnostic]:
    """Return diagnostics for *text*, one owner per line.

    A line reported by the step index gets only that diagnostic; the page
    index is asked only for lines the step index accepts.
    """
    text = clear_comments(text)
    diags: list[lsp.Diagnostic] = []
    for i, line in enumerate(split_lines(text)):
        step_diag = snapshot.steps.validate(line, i, text) if snapshot.handles_steps else None
        if step_diag is not None:
            diags.append(step_diag)
        elif snapshot.handles_pages:
            diags.extend(snapshot.pages.validate(line, i))
    return diags
