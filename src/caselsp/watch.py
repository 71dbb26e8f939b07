"""
File-watch bookkeeping for the step and page sources.

Each index ("steps", "pages") owns one :class:`WatchHandle` per configured
glob pattern.  Watching an owner again first unregisters its previous
handles, so reconfiguring the same patterns repeatedly never accumulates
watches.  The actual registration is delegated to the *register* and
*unregister* callbacks (the server turns them into
``client/registerCapability`` requests).
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from caselsp.indexes import expand_pattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatchHandle:
    owner: str
    pattern: str
    registration_id: str
    files: frozenset[Path]

    def covers(self, path: Path, root: str | None) -> bool:
        """True if *path* was watched or now matches the pattern.

        The pattern is expanded again with the same glob rules that found
        :attr:`files`, so files created after the watch started are covered
        and deleted ones are still recognised through :attr:`files`.
        """
        if path in self.files:
            return True
        return path in {p.resolve() for p in expand_pattern(root, self.pattern)}


def _noop(handle: WatchHandle) -> None:
    pass


class WatchRegistry:
    def __init__(
        self,
        workspace_root: str | None = None,
        register: Callable[[WatchHandle], None] = _noop,
        unregister: Callable[[WatchHandle], None] = _noop,
    ):
        self.workspace_root = workspace_root
        self._register = register
        self._unregister = unregister
        self._handles: dict[str, list[WatchHandle]] = {}

    def handles(self, owner: str | None = None) -> list[WatchHandle]:
        if owner is not None:
            return list(self._handles.get(owner, ()))
        return [h for hs in self._handles.values() for h in hs]

    def watch(self, owner: str, patterns: Iterable[str]) -> list[WatchHandle]:
        """Replace the watches of *owner* with one handle per pattern."""
        self.unwatch(owner)
        handles: list[WatchHandle] = []
        for pattern in patterns:
            files = frozenset(p.resolve() for p in expand_pattern(self.workspace_root, pattern))
            handle = WatchHandle(
                owner=owner,
                pattern=pattern,
                registration_id=f'caselsp-{owner}-{uuid.uuid4().hex}',
                files=files,
            )
            self._register(handle)
            handles.append(handle)
            logger.debug('watch: %s %r (%d files)', owner, pattern, len(files))
        self._handles[owner] = handles
        return handles

    def unwatch(self, owner: str) -> None:
        for handle in self._handles.pop(owner, ()):
            self._unregister(handle)

    def owners_of(self, path: str | Path) -> set[str]:
        """Return the owners whose watches cover *path*."""
        resolved = Path(path).resolve()
        return {
            h.owner for h in self.handles()
            if h.covers(resolved, self.workspace_root)
        }
