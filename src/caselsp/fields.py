"""
Structured-field cross-referencing.

A case handler bound to a target (``Given case Login with taskguide
LoginGuide``) refers to a task-guide directory in the workspace::

    <root>/Data/TaskGuides/<target>/<target>*.fields.xml   (primary)
    <root>/TaskGuides/<target>/<target>*.fields.xml        (fallback)

Directory names are matched case-insensitively.  Each ``.fields.xml`` file is
read line by line; a line declaring ``Name="..."`` yields one
:class:`FieldSymbol`, with ``Type="..."`` and ``Title="..."`` from the same
line when present.

Lookups never raise: a missing tree or an unreadable file is logged and
contributes nothing.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from caselsp.document import split_lines
from caselsp.scope import CaseHandler

logger = logging.getLogger(__name__)

TASKGUIDE_DIRS = (Path('Data', 'TaskGuides'), Path('TaskGuides'))
FIELDS_SUFFIX = '.fields.xml'

_NAME_RE = re.compile(r'Name="([^"]+)"')
_TYPE_RE = re.compile(r'Type="([^"]+)"')
_TITLE_RE = re.compile(r'Title="([^"]+)"')


@dataclass(frozen=True)
class FieldSymbol:
    name: str
    type: str | None = None
    title: str | None = None
    line: int = field(default=0, compare=False)

    @property
    def detail(self) -> str:
        return self.type or ''

    @property
    def documentation(self) -> str:
        parts = []
        if self.type:
            parts.append(f'Type: "{self.type}"')
        if self.title:
            parts.append(f'Title: "{self.title}"')
        return '\n'.join(parts)


def extract_fields(payload: str) -> list[FieldSymbol]:
    """Return one :class:`FieldSymbol` per ``Name``-bearing line of *payload*."""
    symbols: list[FieldSymbol] = []
    for i, line in enumerate(split_lines(payload)):
        name = _NAME_RE.search(line)
        if name is None:
            continue
        type_ = _TYPE_RE.search(line)
        title = _TITLE_RE.search(line)
        symbols.append(FieldSymbol(
            name=name.group(1),
            type=type_.group(1) if type_ else None,
            title=title.group(1) if title else None,
            line=i,
        ))
    return symbols


def definitions_root(workspace_root: str | Path | None) -> Path | None:
    """Return the first existing task-guide root under *workspace_root*."""
    if not workspace_root:
        return None
    for rel in TASKGUIDE_DIRS:
        candidate = Path(workspace_root) / rel
        if candidate.is_dir():
            return candidate
    return None


def field_files(workspace_root: str | Path | None, target: str) -> list[Path]:
    """Return the ``.fields.xml`` files describing *target*, sorted by name."""
    root = definitions_root(workspace_root)
    if root is None:
        logger.debug('field_files: no task-guide directory under %s', workspace_root)
        return []
    try:
        folder = next(
            (d for d in sorted(root.iterdir())
             if d.is_dir() and d.name.lower() == target.lower()),
            None,
        )
        if folder is None:
            return []
        return [
            f for f in sorted(folder.iterdir())
            if f.is_file() and f.name.startswith(target) and f.name.endswith(FIELDS_SUFFIX)
        ]
    except OSError:
        logger.error('field_files: cannot list task guides for %s', target, exc_info=True)
        return []


def _read_fields(path: Path) -> list[FieldSymbol]:
    try:
        payload = path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError):
        logger.error('Error reading or parsing file: %s', path.name, exc_info=True)
        return []
    return extract_fields(payload)


def find_fields(workspace_root: str | Path | None, handler: CaseHandler) -> list[FieldSymbol]:
    """Return the field symbols of the target *handler* is bound to."""
    if not handler.bound_target:
        return []
    symbols: list[FieldSymbol] = []
    for path in field_files(workspace_root, handler.bound_target):
        symbols.extend(_read_fields(path))
    return symbols


def locate_field(
    workspace_root: str | Path | None,
    handler: CaseHandler,
    name: str,
) -> tuple[Path, FieldSymbol] | None:
    """Return the file and symbol declaring field *name* for *handler*."""
    if not handler.bound_target:
        return None
    for path in field_files(workspace_root, handler.bound_target):
        for symbol in _read_fields(path):
            if symbol.name == name:
                return path, symbol
    return None
