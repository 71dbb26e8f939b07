"""Tests for caselsp.handlers.diagnostics: one owner per line."""
from __future__ import annotations

from lsprotocol import types as lsp

from caselsp.settings import Settings
from caselsp.state import Snapshot


def _diag(line: int, message: str) -> lsp.Diagnostic:
    return lsp.Diagnostic(
        range=lsp.Range(
            start=lsp.Position(line=line, character=0),
            end=lsp.Position(line=line, character=1),
        ),
        message=message,
    )


class FakeSteps:
    def validate(self, line, line_number, text):
        return _diag(line_number, 'step') if 'bad step' in line else None


class FakePages:
    def validate(self, line, line_number):
        if '"p"' not in line:
            return []
        return [_diag(line_number, 'page-1'), _diag(line_number, 'page-2')]


def _snapshot(steps=None, pages=None) -> Snapshot:
    return Snapshot(
        workspace_root=None,
        settings=Settings(steps=('s/*.js',), pages={'p': 'p.js'}),
        steps=steps,
        pages=pages,
    )


TEXT = """\
Feature: f
  Scenario: s
    Given bad step "p"."o"
    When good step "p"."o"
    # Given bad step "p"."o"
    Then bad step
"""


class TestGetDiagnostics:
    def test_step_diagnostic_owns_the_line(self):
        from caselsp.handlers.diagnostics import get_diagnostics
        diags = get_diagnostics(_snapshot(FakeSteps(), FakePages()), TEXT)
        assert [(d.range.start.line, d.message) for d in diags] == [
            (2, 'step'),
            (3, 'page-1'),
            (3, 'page-2'),
            (5, 'step'),
        ]

    def test_pages_only(self):
        from caselsp.handlers.diagnostics import get_diagnostics
        diags = get_diagnostics(_snapshot(pages=FakePages()), TEXT)
        assert [d.range.start.line for d in diags] == [2, 2, 3, 3]

    def test_steps_only(self):
        from caselsp.handlers.diagnostics import get_diagnostics
        diags = get_diagnostics(_snapshot(steps=FakeSteps()), TEXT)
        assert [d.range.start.line for d in diags] == [2, 5]

    def test_no_indexes(self):
        from caselsp.handlers.diagnostics import get_diagnostics
        assert get_diagnostics(_snapshot(), TEXT) == []

    def test_unconfigured_settings_disable_indexes(self):
        from caselsp.handlers.diagnostics import get_diagnostics
        snapshot = Snapshot(workspace_root=None, settings=Settings(),
                            steps=FakeSteps(), pages=FakePages())
        assert get_diagnostics(snapshot, TEXT) == []

    def test_crlf_line_numbers(self):
        from caselsp.handlers.diagnostics import get_diagnostics
        diags = get_diagnostics(_snapshot(steps=FakeSteps()), TEXT.replace('\n', '\r\n'))
        assert [d.range.start.line for d in diags] == [2, 5]
