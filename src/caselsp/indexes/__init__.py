"""Step and page indexes, and the tag that routes completion items back to them."""
from __future__ import annotations

import enum
import glob
import logging
import os
from pathlib import Path
from typing import Any

from lsprotocol import types as lsp

logger = logging.getLogger(__name__)


class CompletionOrigin(enum.Enum):
    CASE_HANDLER = 'case'
    FIELD = 'field'
    PAGE = 'page'
    STEP = 'step'


def tag(origin: CompletionOrigin, key: Any = None) -> dict[str, Any]:
    """Build the ``data`` payload of a completion item from *origin*."""
    return {'origin': origin.value, 'key': key}


def origin_of(item: lsp.CompletionItem) -> tuple[CompletionOrigin | None, Any]:
    """Return ``(origin, key)`` from ``item.data``; ``(None, None)`` if untagged."""
    data = item.data
    if not isinstance(data, dict):
        return None, None
    try:
        return CompletionOrigin(data.get('origin')), data.get('key')
    except ValueError:
        return None, None


def expand_pattern(root: str | None, pattern: str) -> list[Path]:
    """Expand a workspace-relative glob *pattern* to the matching files."""
    base = root or os.getcwd()
    matches = glob.glob(os.path.join(base, pattern), recursive=True)
    return sorted(Path(m) for m in matches if os.path.isfile(m))


def read_source(path: Path) -> str | None:
    try:
        return path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError):
        logger.error('read_source: cannot read %s', path, exc_info=True)
        return None


def location(path: Path, line: int, start: int = 0, end: int = 0) -> lsp.Location:
    return lsp.Location(
        uri=path.resolve().as_uri(),
        range=lsp.Range(
            start=lsp.Position(line=line, character=start),
            end=lsp.Position(line=line, character=end),
        ),
    )
