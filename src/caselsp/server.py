"""
caselsp Language Server.

Registers LSP capabilities and wires the case-handler, step and page
handlers.  All per-session data lives in one :class:`SessionState`; each
request takes a snapshot of it before doing any work.
"""
from __future__ import annotations

import logging
from pathlib import Path

from pygls.lsp.server import LanguageServer
from pygls.uris import to_fs_path
from lsprotocol import types as lsp

logger = logging.getLogger(__name__)

from caselsp import __version__
from caselsp.document import line_separator, split_lines
from caselsp.formatting import clear_text, format_text, get_indent
from caselsp.handlers import get_completions, get_definition, get_diagnostics, resolve_completion
from caselsp.state import SessionState
from caselsp.watch import WatchHandle, WatchRegistry

# ---------------------------------------------------------------------------
# Server instance + per-session state
# ---------------------------------------------------------------------------

server = LanguageServer(
    'caselsp', __version__,
    text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
)


def _register_watch(handle: WatchHandle) -> None:
    """Ask the client to report changes of the files matched by *handle*."""
    root = _state.workspace_root
    pattern = (
        lsp.RelativePattern(base_uri=_root_uri(root), pattern=handle.pattern)
        if root else handle.pattern
    )
    try:
        server.client_register_capability(lsp.RegistrationParams(registrations=[
            lsp.Registration(
                id=handle.registration_id,
                method=lsp.WORKSPACE_DID_CHANGE_WATCHED_FILES,
                register_options=lsp.DidChangeWatchedFilesRegistrationOptions(
                    watchers=[lsp.FileSystemWatcher(glob_pattern=pattern)],
                ),
            ),
        ]))
    except Exception:
        logger.debug('_register_watch: client not connected', exc_info=True)


def _unregister_watch(handle: WatchHandle) -> None:
    try:
        server.client_unregister_capability(lsp.UnregistrationParams(unregisterations=[
            lsp.Unregistration(
                id=handle.registration_id,
                method=lsp.WORKSPACE_DID_CHANGE_WATCHED_FILES,
            ),
        ]))
    except Exception:
        logger.debug('_unregister_watch: client not connected', exc_info=True)


def _new_state(workspace_root: str | None = None) -> SessionState:
    watches = WatchRegistry(workspace_root, register=_register_watch, unregister=_unregister_watch)
    return SessionState(workspace_root, watches=watches)


_state = _new_state()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _root_uri(root: str) -> str:
    return Path(root).resolve().as_uri()


def _apply_log_level(raw: str | None) -> None:
    """Set the root logger level from a string like 'debug', 'warning', etc."""
    if not raw:
        return
    level = getattr(logging, str(raw).upper(), None)
    if isinstance(level, int):
        logging.getLogger().setLevel(level)


def _send_diagnostics(uri: str, diags: list[lsp.Diagnostic]) -> None:
    logger.debug('_send_diagnostics: %s → %d diagnostics', uri, len(diags))
    try:
        server.text_document_publish_diagnostics(
            lsp.PublishDiagnosticsParams(uri=uri, diagnostics=diags)
        )
    except Exception:
        logger.debug('_send_diagnostics: client not connected', exc_info=True)


def _publish_diagnostics(uri: str) -> None:
    doc = _state.documents.get(uri)
    if doc is None:
        return
    _send_diagnostics(uri, get_diagnostics(_state.snapshot(), doc.source))


def _publish_all() -> None:
    for uri in list(_state.documents):
        _publish_diagnostics(uri)


def _document_text(uri: str) -> str | None:
    doc = _state.documents.get(uri)
    return doc.source if doc is not None else None


def _full_range(lines: list[str]) -> lsp.Range:
    return lsp.Range(
        start=lsp.Position(line=0, character=0),
        end=lsp.Position(line=len(lines) - 1, character=len(lines[-1])),
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@server.feature(lsp.INITIALIZE)
def on_initialize(params: lsp.InitializeParams):
    global _state
    workspace_root = None
    if params.root_uri:
        workspace_root = to_fs_path(params.root_uri)
    elif params.root_path:
        workspace_root = params.root_path

    _state = _new_state(workspace_root)

    opts = getattr(params, 'initialization_options', None)
    raw_level = opts.get('logLevel') if isinstance(opts, dict) else getattr(opts, 'logLevel', None)
    _apply_log_level(raw_level)
    logger.info('initialize: workspace root %s', workspace_root)


@server.feature(lsp.WORKSPACE_DID_CHANGE_CONFIGURATION)
def did_change_configuration(params: lsp.DidChangeConfigurationParams):
    """Replace the settings, rewatch the step/page sources and rebuild the indexes."""
    settings = getattr(params, 'settings', None) or {}
    for uri, diags in _state.apply_configuration(settings):
        _send_diagnostics(uri, diags)
    _apply_log_level(_state.settings.log_level)
    _publish_all()


@server.feature(lsp.WORKSPACE_DID_CHANGE_WATCHED_FILES)
def did_change_watched_files(params: lsp.DidChangeWatchedFilesParams):
    """A step or page source changed: rebuild its index and revalidate every document."""
    paths = [to_fs_path(change.uri) for change in params.changes]
    if _state.handle_file_changes(p for p in paths if p):
        _publish_all()


# ---------------------------------------------------------------------------
# Text document synchronisation
# ---------------------------------------------------------------------------

@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: lsp.DidOpenTextDocumentParams):
    td = params.text_document
    _state.on_document_opened(td.uri, td.text)
    _publish_diagnostics(td.uri)


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: lsp.DidChangeTextDocumentParams):
    uri = params.text_document.uri
    _state.on_document_changed(uri, params.content_changes[-1].text)
    _publish_diagnostics(uri)


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(params: lsp.DidCloseTextDocumentParams):
    _state.on_document_closed(params.text_document.uri)


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------

@server.feature(
    lsp.TEXT_DOCUMENT_COMPLETION,
    lsp.CompletionOptions(trigger_characters=[' ', '.'], resolve_provider=True),
)
def completion(params: lsp.CompletionParams) -> lsp.CompletionList | None:
    text = _document_text(params.text_document.uri)
    if text is None:
        return None
    items = get_completions(_state.snapshot(), text, params.position)
    return lsp.CompletionList(is_incomplete=False, items=items)


@server.feature(lsp.COMPLETION_ITEM_RESOLVE)
def completion_resolve(item: lsp.CompletionItem) -> lsp.CompletionItem:
    return resolve_completion(_state.snapshot(), item)


# ---------------------------------------------------------------------------
# Go-to-definition
# ---------------------------------------------------------------------------

@server.feature(lsp.TEXT_DOCUMENT_DEFINITION)
def definition(params: lsp.DefinitionParams) -> lsp.Location | None:
    text = _document_text(params.text_document.uri)
    if text is None:
        return None
    return get_definition(_state.snapshot(), text, params.position)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

@server.feature(lsp.TEXT_DOCUMENT_FORMATTING)
def formatting(params: lsp.DocumentFormattingParams) -> list[lsp.TextEdit] | None:
    text = _document_text(params.text_document.uri)
    if text is None:
        return None
    settings = _state.snapshot().settings
    formatted = clear_text(format_text(get_indent(params.options), text, settings))
    return [lsp.TextEdit(range=_full_range(split_lines(text)), new_text=formatted)]


@server.feature(lsp.TEXT_DOCUMENT_RANGE_FORMATTING)
def range_formatting(params: lsp.DocumentRangeFormattingParams) -> list[lsp.TextEdit] | None:
    text = _document_text(params.text_document.uri)
    if text is None:
        return None
    lines = split_lines(text)
    first = params.range.start.line
    last = min(params.range.end.line, len(lines) - 1)
    final_range = lsp.Range(
        start=lsp.Position(line=first, character=0),
        end=lsp.Position(line=last, character=len(lines[last])),
    )
    chunk = line_separator(text).join(lines[first:last + 1])
    settings = _state.snapshot().settings
    formatted = clear_text(format_text(get_indent(params.options), chunk, settings))
    return [lsp.TextEdit(range=final_range, new_text=formatted)]


@server.feature(
    lsp.TEXT_DOCUMENT_ON_TYPE_FORMATTING,
    lsp.DocumentOnTypeFormattingOptions(
        first_trigger_character=' ',
        more_trigger_character=['@', '#', ':'],
    ),
)
def on_type_formatting(params: lsp.DocumentOnTypeFormattingParams) -> list[lsp.TextEdit]:
    settings = _state.snapshot().settings
    text = _document_text(params.text_document.uri)
    if not settings.on_type_format or text is None:
        return []
    formatted = format_text(get_indent(params.options), text, settings)
    return [lsp.TextEdit(range=_full_range(split_lines(text)), new_text=formatted)]
