"""Tests for caselsp.indexes.steps: step-definition index."""
from __future__ import annotations

import pytest
from lsprotocol import types as lsp

from caselsp.indexes import CompletionOrigin, origin_of
from caselsp.indexes.steps import StepsIndex
from caselsp.settings import Settings

JS_STEPS = """\
const { Given, When, Then } = require('@cucumber/cucumber');
// Opens the login page
Given(/^I open the (\\w+) page$/, function (page) {});
When('I type {string} into {word}', async (text, field) => {});
Then("I see {int} item(s)", () => {});
"""

PY_STEPS = """\
from behave import given


@given('the user is logged in')
def step_impl(context):
    pass
"""

PATTERNS = ('steps/*.js', 'steps/*.py')


@pytest.fixture
def root(tmp_path):
    steps = tmp_path / 'steps'
    steps.mkdir()
    (steps / 'login.steps.js').write_text(JS_STEPS)
    (steps / 'user_steps.py').write_text(PY_STEPS)
    return tmp_path


def _index(root, **settings) -> StepsIndex:
    index = StepsIndex(str(root), Settings(steps=PATTERNS, **settings))
    index.populate(str(root), PATTERNS)
    return index


class TestPopulate:
    def test_collects_all_definitions(self, root):
        index = _index(root)
        assert [s.text for s in index.steps] == [
            'I open the "" page',
            'I type {string} into {word}',
            'I see {int} item(s)',
            'the user is logged in',
        ]

    def test_keywords(self, root):
        assert [s.keyword for s in _index(root).steps] == ['given', 'when', 'then', 'given']

    def test_description_from_comment_above(self, root):
        index = _index(root)
        assert index.steps[0].description == 'Opens the login page'
        assert index.steps[1].description is None

    def test_no_files(self, tmp_path):
        index = _index(tmp_path)
        assert index.steps == []


class TestMatching:
    @pytest.mark.parametrize('text', [
        'I open the login page',
        'I type "secret" into password',
        'I see 3 items',
        'I see 1 item',
        'the user is logged in',
    ])
    def test_known_steps(self, root, text):
        assert _index(root).find(text) is not None

    def test_unknown_step(self, root):
        assert _index(root).find('I do something else') is None

    def test_custom_parameters(self, tmp_path):
        (tmp_path / 'steps').mkdir()
        (tmp_path / 'steps' / 'a.js').write_text("When('{user} logs in', () => {});\n")
        index = _index(tmp_path, custom_parameters=(('{user}', '(alice|bob)'),))
        assert index.find('alice logs in') is not None
        assert index.find('carol logs in') is None


class TestValidate:
    def test_known_step(self, root):
        assert _index(root).validate('    Given I open the login page', 0, '') is None

    def test_unknown_step(self, root):
        diag = _index(root).validate('    When unknown thing  ', 4, '')
        assert diag is not None
        assert diag.range.start == lsp.Position(line=4, character=4)
        assert diag.range.end == lsp.Position(line=4, character=22)
        assert diag.message == 'Was unable to find step for "When unknown thing"'
        assert diag.severity == lsp.DiagnosticSeverity.Warning

    def test_outline_placeholders_are_skipped(self, root):
        assert _index(root).validate('Then I see <count> items', 0, '') is None

    def test_non_step_lines(self, root):
        index = _index(root)
        assert index.validate('  Scenario: s', 0, '') is None
        assert index.validate('', 0, '') is None


class TestCompletion:
    def test_prefix_filtering_and_edit_range(self, root):
        items = _index(root).get_completion('    Given I op', 3, '')
        assert [i.label for i in items] == ['I open the "" page']
        edit = items[0].text_edit
        assert edit.range.start == lsp.Position(line=3, character=10)
        assert edit.range.end == lsp.Position(line=3, character=14)
        assert origin_of(items[0]) == (CompletionOrigin.STEP, 'step0')

    def test_empty_step_text_offers_everything(self, root):
        assert len(_index(root).get_completion('Given ', 0, '')) == 4

    def test_not_a_step_line(self, root):
        assert _index(root).get_completion('Scenario: x', 0, '') is None

    def test_strict_completion_uses_effective_keyword(self, root):
        text = 'Scenario: s\n  Given I open the home page\n  And '
        items = _index(root, strict_gherkin_completion=True).get_completion('  And ', 2, text)
        assert [i.label for i in items] == ['I open the "" page', 'the user is logged in']

    def test_resolve(self, root):
        index = _index(root)
        item = index.get_completion('Given I op', 0, '')[0]
        resolved = index.get_completion_resolve(item)
        assert resolved.detail == 'login.steps.js:3'
        assert resolved.documentation.value == 'Opens the login page'


class TestDefinition:
    def test_location(self, root):
        loc = _index(root).get_definition('  Given I open the login page', '')
        assert loc.uri.endswith('login.steps.js')
        assert loc.range.start.line == 2

    def test_unknown(self, root):
        assert _index(root).get_definition('Given nothing', '') is None


class TestValidateConfiguration:
    def test_missing_pattern_is_reported_on_its_settings_line(self, root):
        vscode = root / '.vscode'
        vscode.mkdir()
        (vscode / 'settings.json').write_text(
            '{\n  "cucumberautocomplete.steps": [\n    "missing/*.js"\n  ]\n}\n'
        )
        diags = _index(root).validate_configuration(
            '.vscode/settings.json', ('steps/*.js', 'missing/*.js'), str(root))
        assert len(diags) == 1
        assert diags[0].range.start == lsp.Position(line=2, character=5)
        assert 'missing/*.js' in diags[0].message

    def test_no_settings_file(self, root):
        diags = _index(root).validate_configuration('.vscode/settings.json', ('nope/*.js',), str(root))
        assert diags[0].range.start == lsp.Position(line=0, character=0)

    def test_all_patterns_match(self, root):
        assert _index(root).validate_configuration('.vscode/settings.json', PATTERNS, str(root)) == []
