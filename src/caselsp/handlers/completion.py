"""
Completion handler.

Merges four sources, always in this order:

1. **Case handlers**: offered right after the ``case`` or ``field``
   keyword; the handlers visible at the cursor line (see
   :mod:`caselsp.scope`).
2. **Fields**: offered after ``<handler>.``; read from the task-guide
   ``.fields.xml`` files of the handler's bound target.
3. **Pages**: when the cursor is inside a ``"page"."object"`` reference.
4. **Steps**: for Gherkin step lines, when steps are configured.

The order is kept because editors use it to break ranking ties.  A source
that has nothing to say contributes an empty list.
"""
from __future__ import annotations

import logging

from lsprotocol import types as lsp

from caselsp.document import split_lines
from caselsp.fields import find_fields
from caselsp.indexes import CompletionOrigin, origin_of, tag
from caselsp.scope import CaseHandler, resolve_scope
from caselsp.state import Snapshot

logger = logging.getLogger(__name__)

CASE_HANDLER_TRIGGERS = frozenset({'case', 'field'})
FIELD_ACCESS = '.'


def word_before_cursor(line: str, character: int) -> str:
    """Return the last whitespace-delimited token of ``line[:character]``."""
    words = line[:character].strip().split()
    return words[-1] if words else ''


def _case_handler_items(
    handlers: tuple[CaseHandler, ...], keyword: str, after_space: bool
) -> list[lsp.CompletionItem]:
    items = []
    for handler in handlers:
        items.append(lsp.CompletionItem(
            label=handler.name,
            kind=lsp.CompletionItemKind.Variable,
            detail=f'Taskguide: {handler.bound_target}' if handler.bound_target else None,
            insert_text=handler.name if after_space else f'{keyword} {handler.name}',
            sort_text='A_',
            data=tag(CompletionOrigin.CASE_HANDLER, handler.line),
        ))
    return items


def _field_items(snapshot: Snapshot, handlers: tuple[CaseHandler, ...], token: str) -> list[lsp.CompletionItem]:
    handler = next((h for h in handlers if f'{h.name}{FIELD_ACCESS}' == token), None)
    if handler is None or not handler.bound_target:
        return []
    return [
        lsp.CompletionItem(
            label=symbol.name,
            kind=lsp.CompletionItemKind.Field,
            detail=symbol.detail,
            documentation=symbol.documentation or None,
            sort_text='AA_',
            data=tag(CompletionOrigin.FIELD, handler.bound_target),
        )
        for symbol in find_fields(snapshot.workspace_root, handler)
    ]


def get_completions(
    snapshot: Snapshot,
    text: str,
    position: lsp.Position,
) -> list[lsp.CompletionItem]:
    """Return completion items for *position* in *text*."""
    lines = split_lines(text)
    if position.line >= len(lines):
        return []
    line = lines[position.line]
    char = min(position.character, len(line))
    token = word_before_cursor(line, char)
    handlers = resolve_scope(text, position.line).case_handlers

    items: list[lsp.CompletionItem] = []
    if token in CASE_HANDLER_TRIGGERS:
        after_space = char > 0 and line[char - 1].isspace()
        items += _case_handler_items(handlers, token, after_space)

    if token.endswith(FIELD_ACCESS):
        items += _field_items(snapshot, handlers, token)

    if snapshot.in_page_position(line, char):
        items += snapshot.pages.get_completion(line, position) or []

    if snapshot.handles_steps:
        items += snapshot.steps.get_completion(line, position.line, text) or []

    logger.debug('get_completions: %d items at %d:%d', len(items), position.line, char)
    return items


def resolve_completion(snapshot: Snapshot, item: lsp.CompletionItem) -> lsp.CompletionItem:
    """Let the index an item came from fill in its details."""
    origin, _ = origin_of(item)
    if origin is CompletionOrigin.STEP and snapshot.handles_steps:
        return snapshot.steps.get_completion_resolve(item)
    if origin is CompletionOrigin.PAGE and snapshot.handles_pages:
        return snapshot.pages.get_completion_resolve(item)
    return item
