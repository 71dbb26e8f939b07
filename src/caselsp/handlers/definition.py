"""
Go-to-definition.

Resolution order for the symbol under the cursor:

1. a ``"page"."object"`` reference → the page file / object declaration;
2. ``<handler>.<Field>`` → the ``Name="<Field>"`` line of the task-guide
   ``.fields.xml`` file;
3. a Gherkin step → its step definition.
"""
from __future__ import annotations

import re

from lsprotocol import types as lsp

from caselsp.document import split_lines
from caselsp.fields import locate_field
from caselsp.scope import resolve_scope
from caselsp.state import Snapshot

# <handler>.<Field>; the field is a lookahead so chained references overlap
_FIELD_REF_RE = re.compile(r'([^\s.]+)\.(?=(\w+))')


def _field_at(line: str, character: int) -> tuple[str, str] | None:
    for m in _FIELD_REF_RE.finditer(line):
        if m.start(2) <= character <= m.end(2):
            return m.group(1), m.group(2)
    return None


def _field_definition(snapshot: Snapshot, text: str, position: lsp.Position, line: str) -> lsp.Location | None:
    ref = _field_at(line, position.character)
    if ref is None:
        return None
    handler_name, field_name = ref
    scope = resolve_scope(text, position.line)
    handler = next(iter(scope.handlers_named(handler_name)), None)
    if handler is None:
        return None
    found = locate_field(snapshot.workspace_root, handler, field_name)
    if found is None:
        return None
    path, symbol = found
    return lsp.Location(
        uri=path.resolve().as_uri(),
        range=lsp.Range(
            start=lsp.Position(line=symbol.line, character=0),
            end=lsp.Position(line=symbol.line, character=0),
        ),
    )


def get_definition(snapshot: Snapshot, text: str, position: lsp.Position) -> lsp.Location | None:
    lines = split_lines(text)
    if position.line >= len(lines):
        return None
    line = lines[position.line]

    if snapshot.in_page_position(line, position.character):
        return snapshot.pages.get_definition(line, position.character)

    location = _field_definition(snapshot, text, position, line)
    if location is not None:
        return location

    if snapshot.handles_steps:
        return snapshot.steps.get_definition(line, text)
    return None
