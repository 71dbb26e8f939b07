"""
Per-document text store.

Each open document is stored as a ``Document`` holding the full text last
sent by the client (full-document sync).  Line views treat ``\\r\\n`` and
``\\n`` as the same separator and never change the line count.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

_LINE_BREAK_RE = re.compile(r'\r?\n')

# A doc-string delimiter line (""" or ```).
_DOC_STRING_RE = re.compile(r'^\s*("""|```)')
_COMMENT_RE = re.compile(r'^\s*#')
_LANGUAGE_RE = re.compile(r'^\s*#\s*language:')


def split_lines(text: str) -> list[str]:
    """Split *text* into lines on ``\\r\\n`` or ``\\n``.

    Unlike :meth:`str.splitlines`, a trailing line break yields a trailing
    empty line, so the result always matches the editor's line count.
    """
    return _LINE_BREAK_RE.split(text)


def line_separator(text: str) -> str:
    """Return the separator used by *text* (``'\\r\\n'`` if present)."""
    return '\r\n' if '\r\n' in text else '\n'


def clear_comments(text: str) -> str:
    """Blank out Gherkin comment lines, keeping line numbers intact.

    ``# language:`` headers and anything inside a doc string are left alone.
    """
    in_doc_string = False
    cleared: list[str] = []
    for line in split_lines(text):
        if _DOC_STRING_RE.match(line):
            in_doc_string = not in_doc_string
            cleared.append(line)
        elif not in_doc_string and _COMMENT_RE.match(line) and not _LANGUAGE_RE.match(line):
            cleared.append('')
        else:
            cleared.append(line)
    return line_separator(text).join(cleared)


@dataclass
class Document:
    uri: str
    source: str

    @property
    def lines(self) -> list[str]:
        return split_lines(self.source)
