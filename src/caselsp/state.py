"""
Per-session state and the index invalidation loop.

One :class:`SessionState` lives for the whole server session.  It owns the
settings, the open documents, the step/page index references and the watch
registry.  Request handlers never read these attributes piecemeal: they take
a :class:`Snapshot` once at the start of the request, so a rebuild happening
in between (a plain reference swap) is never seen half-way.

Transitions::

    UNCONFIGURED --configuration--> READY --configuration/file change--> READY
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from lsprotocol import types as lsp

from caselsp.document import Document
from caselsp.indexes.pages import PagesIndex
from caselsp.indexes.steps import StepsIndex
from caselsp.settings import Settings, read_project_config
from caselsp.watch import WatchRegistry

logger = logging.getLogger(__name__)

SETTINGS_FILE = '.vscode/settings.json'

STEPS = 'steps'
PAGES = 'pages'


class Phase(enum.Enum):
    UNCONFIGURED = 'unconfigured'
    READY = 'ready'


@dataclass(frozen=True)
class Snapshot:
    """What a single request sees: settings and the indexes current at its start."""
    workspace_root: str | None
    settings: Settings
    steps: StepsIndex | None = None
    pages: PagesIndex | None = None

    @property
    def handles_steps(self) -> bool:
        return self.settings.handles_steps and self.steps is not None

    @property
    def handles_pages(self) -> bool:
        return self.settings.handles_pages and self.pages is not None

    def in_page_position(self, line: str, char: int) -> bool:
        return self.handles_pages and self.pages.get_feature_position(line, char) is not None


class SessionState:
    def __init__(self, workspace_root: str | None = None, watches: WatchRegistry | None = None):
        self.workspace_root = workspace_root
        self.project_defaults: dict[str, Any] = read_project_config(workspace_root)
        self.settings = Settings.from_client({}, self.project_defaults)
        self.phase = Phase.UNCONFIGURED
        self.documents: dict[str, Document] = {}
        self.steps: StepsIndex | None = None
        self.pages: PagesIndex | None = None
        self.watches = watches or WatchRegistry(workspace_root)
        self.watches.workspace_root = workspace_root

    def snapshot(self) -> Snapshot:
        return Snapshot(
            workspace_root=self.workspace_root,
            settings=self.settings,
            steps=self.steps,
            pages=self.pages,
        )

    # ------------------------------------------------------------------
    # Index rebuilds (fresh instance, then reference swap)
    # ------------------------------------------------------------------

    def rebuild_steps(self) -> None:
        if not self.settings.handles_steps:
            self.steps = None
            return
        index = StepsIndex(self.workspace_root, self.settings)
        index.populate(self.workspace_root, self.settings.steps)
        self.steps = index

    def rebuild_pages(self) -> None:
        if not self.settings.handles_pages:
            self.pages = None
            return
        index = PagesIndex(self.workspace_root, self.settings)
        index.populate(self.workspace_root, self.settings.pages)
        self.pages = index

    def rebuild(self, owners: Iterable[str] = (STEPS, PAGES)) -> None:
        owners = set(owners)
        if STEPS in owners:
            self.rebuild_steps()
        if PAGES in owners:
            self.rebuild_pages()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def apply_configuration(self, raw: Any) -> list[tuple[str, list[lsp.Diagnostic]]]:
        """Replace the settings and rebuild what they configure.

        Returns the ``(uri, diagnostics)`` pairs to publish for the settings
        file.
        """
        self.settings = Settings.from_client(raw, self.project_defaults)
        self.phase = Phase.READY
        publications: list[tuple[str, list[lsp.Diagnostic]]] = []

        if self.settings.handles_steps:
            self.watches.watch(STEPS, self.settings.steps)
            self.rebuild_steps()
            diags = self.steps.validate_configuration(
                SETTINGS_FILE, self.settings.steps, self.workspace_root,
            )
            if self.workspace_root:
                uri = (Path(self.workspace_root) / SETTINGS_FILE).resolve().as_uri()
                publications.append((uri, diags))
        else:
            self.watches.unwatch(STEPS)
            self.steps = None

        if self.settings.handles_pages:
            self.watches.watch(PAGES, self.settings.pages.values())
            self.rebuild_pages()
        else:
            self.watches.unwatch(PAGES)
            self.pages = None

        logger.info('configuration applied: %d step pattern(s), %d page(s)',
                    len(self.settings.steps), len(self.settings.pages))
        return publications

    def handle_file_changes(self, paths: Iterable[str | Path]) -> bool:
        """Rebuild the indexes owning any of *paths*; True if anything was rebuilt."""
        owners: set[str] = set()
        for path in paths:
            owners |= self.watches.owners_of(path)
        if not owners:
            return False
        logger.debug('handle_file_changes: rebuilding %s', sorted(owners))
        self.rebuild(owners)
        return True

    def on_document_opened(self, uri: str, source: str) -> None:
        self.documents[uri] = Document(uri=uri, source=source)
        self.rebuild()

    def on_document_changed(self, uri: str, source: str) -> None:
        self.documents[uri] = Document(uri=uri, source=source)

    def on_document_closed(self, uri: str) -> None:
        self.documents.pop(uri, None)
