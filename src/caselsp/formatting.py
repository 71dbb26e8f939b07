"""
Gherkin text formatting.

:func:`format_text` re-indents a feature document by keyword:

========================================  =====
Feature / Ability / Business Need          0
Background / Scenario / Rule / Example     1
Given / When / Then / And / But / Examples 2
tables and doc strings                     3
comments and tags                          level of the next line
========================================  =====

The levels can be overridden with the ``formatConfOverride`` setting.
Tables are column-aligned.  Lines that start with no known keyword (free
text descriptions) are left as they are.
"""
from __future__ import annotations

import re
from collections.abc import Mapping

from caselsp.document import line_separator, split_lines
from caselsp.settings import Settings

RELATIVE = 'relative'

FORMAT_CONF: dict[str, int | str] = {
    'Ability': 0,
    'Business Need': 0,
    'Feature:': 0,
    'Rule:': 1,
    'Background:': 1,
    'Scenario:': 1,
    'Scenario Outline:': 1,
    'Scenario Template:': 1,
    'Example:': 1,
    'Examples:': 2,
    'Scenarios:': 2,
    'Given': 2,
    'When': 2,
    'Then': 2,
    'And': 2,
    'But': 2,
    '*': 2,
    '|': 3,
    '"""': 3,
    '```': 3,
    '#': RELATIVE,
    '@': RELATIVE,
}

_CELL_SPLIT_RE = re.compile(r'(?<!\\)\|')
_DOC_STRING_RE = re.compile(r'^\s*("""|```)')


def _conf(settings: Settings | None) -> list[tuple[str, int | str]]:
    conf = dict(FORMAT_CONF)
    if settings is not None:
        conf.update(settings.format_conf_override)
    # longest keys first so "Scenario Outline:" wins over "Scenario:"
    return sorted(conf.items(), key=lambda kv: len(kv[0]), reverse=True)


def _level(stripped: str, conf: list[tuple[str, int | str]]) -> int | str | None:
    for key, level in conf:
        if stripped.startswith(key):
            return level
    return None


def _format_table(rows: list[str], prefix: str) -> list[str]:
    cells = [[c.strip() for c in _CELL_SPLIT_RE.split(row.strip())[1:-1]] for row in rows]
    width = max(len(r) for r in cells)
    sizes = [
        max((len(r[i]) for r in cells if i < len(r)), default=0)
        for i in range(width)
    ]
    formatted = []
    for row in cells:
        padded = [row[i].ljust(sizes[i]) if i < len(row) else ' ' * sizes[i] for i in range(width)]
        formatted.append(prefix + '| ' + ' | '.join(padded) + ' |')
    return formatted


def format_text(indent: str, text: str, settings: Settings | None = None) -> str:
    """Return *text* re-indented with *indent* per keyword level."""
    conf = _conf(settings)
    skip_doc_strings = settings is not None and settings.skip_doc_strings_format
    lines = split_lines(text)

    levels: list[int | str | None] = []
    in_doc_string = False
    for line in lines:
        if _DOC_STRING_RE.match(line):
            in_doc_string = not in_doc_string
            levels.append(_level(line.strip(), conf))
        elif in_doc_string:
            levels.append('doc')
        else:
            levels.append(_level(line.strip(), conf) if line.strip() else None)

    # relative lines take the level of the next keyword line
    following: int | None = None
    for i in range(len(lines) - 1, -1, -1):
        if isinstance(levels[i], int):
            following = levels[i]
        elif levels[i] == RELATIVE:
            levels[i] = following if following is not None else 0

    out: list[str] = []
    doc_indent = ''
    i = 0
    while i < len(lines):
        line, level = lines[i], levels[i]
        if level == 'doc':
            out.append(line if skip_doc_strings else doc_indent + line.strip())
        elif isinstance(level, int) and line.strip().startswith('|'):
            j = i
            while j < len(lines) and levels[j] == level and lines[j].strip().startswith('|'):
                j += 1
            out.extend(_format_table(lines[i:j], indent * level))
            i = j
            continue
        elif isinstance(level, int):
            out.append(indent * level + line.strip())
            if _DOC_STRING_RE.match(line):
                doc_indent = indent * level
        else:
            out.append(line)
        i += 1
    return line_separator(text).join(out)


def clear_text(text: str) -> str:
    """Strip trailing whitespace and blank out whitespace-only lines."""
    return line_separator(text).join(line.rstrip() for line in split_lines(text))


def get_indent(options: Mapping | object) -> str:
    """Indent unit from LSP ``FormattingOptions`` (tabs unless insertSpaces)."""
    insert_spaces = getattr(options, 'insert_spaces', None)
    tab_size = getattr(options, 'tab_size', None)
    if isinstance(options, Mapping):
        insert_spaces = options.get('insertSpaces', insert_spaces)
        tab_size = options.get('tabSize', tab_size)
    return ' ' * int(tab_size or 2) if insert_spaces else '\t'
