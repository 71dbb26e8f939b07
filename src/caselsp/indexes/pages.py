"""
Page-object index.

The ``pages`` setting maps a page name to a glob pattern of the files that
describe it.  Objects of a page are the names declared in those files as

* object-literal keys        ``loginButton: '#login'``
* constructor assignments    ``this.loginButton = ...``
* getters                    ``get loginButton() {``
* attributes                 ``login_button = '#login'``

Feature files refer to them as ``"page"."object"``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from collections.abc import Mapping

from lsprotocol import types as lsp

from caselsp.document import split_lines
from caselsp.indexes import CompletionOrigin, expand_pattern, location, origin_of, read_source, tag
from caselsp.settings import Settings

logger = logging.getLogger(__name__)

_OBJECT_DEF_RES = (
    re.compile(r'^\s*(?P<name>[A-Za-z_$][\w$]*)\s*:(?!:)\s*\S'),
    re.compile(r'^\s*this\.(?P<name>[A-Za-z_$][\w$]*)\s*=(?!=)'),
    re.compile(r'^\s*get\s+(?P<name>[A-Za-z_$][\w$]*)\s*\('),
    re.compile(r'^\s*(?P<name>[A-Za-z_][\w]*)\s*=(?!=)'),
)

# "page"."object"
_REFERENCE_RE = re.compile(r'"([^"]*)"\."([^"]*)"')
# Up to the cursor: optional "page". prefix, then the open quote being typed
_OPEN_REFERENCE_RE = re.compile(r'"(?:([^"]*)"\.")?([^"]*)$')


@dataclass(frozen=True)
class PageObject:
    name: str
    path: Path
    line: int
    start: int
    end: int


@dataclass
class Page:
    name: str
    path: Path | None = None
    objects: dict[str, PageObject] = field(default_factory=dict)


@dataclass(frozen=True)
class FeaturePosition:
    page: str
    object: str | None = None


class PagesIndex:
    """Index of the page objects declared by the ``pages`` setting."""

    def __init__(self, workspace_root: str | None, settings: Settings):
        self._root = workspace_root
        self._settings = settings
        self.pages: dict[str, Page] = {}

    def populate(self, root: str | None, pages: Mapping[str, str]) -> None:
        built: dict[str, Page] = {}
        for name, pattern in pages.items():
            page = Page(name=name)
            for path in expand_pattern(root, pattern):
                if page.path is None:
                    page.path = path
                source = read_source(path)
                if source is None:
                    continue
                for obj in self._parse_objects(path, source):
                    page.objects.setdefault(obj.name, obj)
            built[name] = page
        self.pages = built
        logger.debug('PagesIndex.populate: %d pages', len(built))

    @staticmethod
    def _parse_objects(path: Path, source: str) -> list[PageObject]:
        objects: list[PageObject] = []
        for line_number, line in enumerate(split_lines(source)):
            for regex in _OBJECT_DEF_RES:
                m = regex.match(line)
                if m:
                    objects.append(PageObject(
                        name=m.group('name'), path=path, line=line_number,
                        start=m.start('name'), end=m.end('name'),
                    ))
                    break
        return objects

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_feature_position(self, line: str, char: int) -> FeaturePosition | None:
        """Return the page reference the cursor at *char* is inside, if any."""
        before = line[:char]
        if before.count('"') % 2 == 0:
            return None
        m = _OPEN_REFERENCE_RE.search(before)
        if m is None:
            return None
        after = line[char:].split('"', 1)[0]
        page, typed = m.groups()
        if page is not None:
            return FeaturePosition(page=page, object=typed + after)
        return FeaturePosition(page=typed + after)

    def get_completion(self, line: str, position: lsp.Position) -> list[lsp.CompletionItem] | None:
        fpos = self.get_feature_position(line, position.character)
        if fpos is None:
            return None
        if fpos.object is None:
            return [
                lsp.CompletionItem(
                    label=name,
                    kind=lsp.CompletionItemKind.Module,
                    sort_text=f'B_{name}',
                    data=tag(CompletionOrigin.PAGE, [name, None]),
                )
                for name in self.pages
            ]
        page = self.pages.get(fpos.page)
        if page is None:
            return []
        return [
            lsp.CompletionItem(
                label=name,
                kind=lsp.CompletionItemKind.Field,
                sort_text=f'B_{name}',
                data=tag(CompletionOrigin.PAGE, [page.name, name]),
            )
            for name in page.objects
        ]

    def get_completion_resolve(self, item: lsp.CompletionItem) -> lsp.CompletionItem:
        _, key = origin_of(item)
        if not isinstance(key, (list, tuple)) or len(key) != 2:
            return item
        page = self.pages.get(key[0])
        if page is None:
            return item
        if key[1] is None:
            item.detail = str(page.path) if page.path else None
            return item
        obj = page.objects.get(key[1])
        if obj is not None:
            item.detail = f'{obj.path.name}:{obj.line + 1}'
        return item

    def validate(self, line: str, line_number: int) -> list[lsp.Diagnostic]:
        """Warn about references to unknown pages or page objects on *line*."""
        diags: list[lsp.Diagnostic] = []
        for m in _REFERENCE_RE.finditer(line):
            page_name, obj_name = m.groups()
            page = self.pages.get(page_name)
            if page is None:
                start, end, message = m.start(1), m.end(1), f'Was unable to find page "{page_name}"'
            elif obj_name not in page.objects:
                start, end = m.start(2), m.end(2)
                message = f'Was unable to find object "{obj_name}" for page "{page_name}"'
            else:
                continue
            diags.append(lsp.Diagnostic(
                range=lsp.Range(
                    start=lsp.Position(line=line_number, character=start),
                    end=lsp.Position(line=line_number, character=end),
                ),
                message=message,
                severity=lsp.DiagnosticSeverity.Warning,
                source='caselsp',
            ))
        return diags

    def get_definition(self, line: str, char: int) -> lsp.Location | None:
        fpos = self.get_feature_position(line, char)
        if fpos is None:
            return None
        page = self.pages.get(fpos.page)
        if page is None or page.path is None:
            return None
        if fpos.object is None:
            return location(page.path, 0)
        obj = page.objects.get(fpos.object)
        if obj is None:
            return None
        return location(obj.path, obj.line, obj.start, obj.end)
