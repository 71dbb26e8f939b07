"""
Step-definition index.

Step definitions are collected from the files matched by the ``steps`` glob
patterns.  A definition is any call or decorator of the form::

    Given(/^I open the (\\w+) page$/, ...)         # regex literal
    When('I type {string}', ...)                  # cucumber expression
    @then("the title is {word}")                  # Python decorator

Regex literals are used as they are (JavaScript ``(?<name>`` groups are
rewritten to Python syntax); quoted strings are treated as cucumber
expressions unless they are anchored with ``^``/``$``.  The configured
``customParameters`` are substituted before compiling.

The index is built once by :meth:`StepsIndex.populate` and only read
afterwards; rebuilding means creating a new instance.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from lsprotocol import types as lsp

from caselsp.document import split_lines
from caselsp.indexes import CompletionOrigin, expand_pattern, location, origin_of, read_source, tag
from caselsp.settings import Settings

logger = logging.getLogger(__name__)

_STEP_DEF_RE = re.compile(
    r'(?:^|[^\w$])@?(?P<keyword>(?i:given|when|then|and|but|step|definestep))\s*\(\s*'
    r'(?:/(?P<regex>(?:\\.|[^/\\])+)/[a-z]*'
    r'|r?(?P<quote>[\'"`])(?P<text>(?:\\.|(?!(?P=quote)).)+)(?P=quote))'
)

# A Gherkin step line: indent, keyword, separator, step text.
_GHERKIN_STEP_RE = re.compile(r'^(\s*)(Given|When|Then|And|But|\*)(\s+)(.*)$')

_OUTLINE_PARAM_RE = re.compile(r'<[^<>\s][^<>]*>')
_COMMENT_PREFIX_RE = re.compile(r'^\s*(?://+|#+|/\*+|\*+/?)\s?')
_JS_NAMED_GROUP_RE = re.compile(r'\(\?<(?![=!])')

_CUCUMBER_PARAMS = {
    r'\{int\}': r'-?\d+',
    r'\{float\}': r'-?\d*\.?\d+',
    r'\{word\}': r'\S+',
    r'\{string\}': r'(?:"[^"]*"|\'[^\']*\')',
    r'\{\}': r'.*',
}

_ANY_KEYWORD = ('and', 'but', 'step', 'definestep')


def _cucumber_to_regex(text: str, custom: tuple[tuple[str, str], ...]) -> str:
    pattern = re.escape(text)
    for parameter, value in custom:
        pattern = pattern.replace(re.escape(parameter), value)
    for escaped, regex in _CUCUMBER_PARAMS.items():
        pattern = pattern.replace(escaped, regex)
    # optional text: "apple(s)"
    pattern = re.sub(r'\\\((\w+)\\\)', r'(?:\1)?', pattern)
    return pattern


def _regex_source(raw: str, custom: tuple[tuple[str, str], ...]) -> str:
    for parameter, value in custom:
        raw = raw.replace(parameter, value)
    raw = _JS_NAMED_GROUP_RE.sub('(?P<', raw)
    return raw.lstrip('^').rstrip('$')


def _display_text(pattern: str) -> str:
    """Human-readable form of a regex step: groups become ``""``, escapes are dropped."""
    text = re.sub(r'\((?!\?:)[^()]*\)', '""', pattern)
    text = re.sub(r'\\(.)', r'\1', text)
    return text


def _gherkin_keyword(lines: list[str], line_number: int) -> str | None:
    """Effective keyword of the step on *line_number* (``And``/``But`` inherit)."""
    for i in range(line_number, -1, -1):
        m = _GHERKIN_STEP_RE.match(lines[i]) if i < len(lines) else None
        if m is None:
            continue
        keyword = m.group(2).lower()
        if keyword in ('given', 'when', 'then'):
            return keyword
    return None


@dataclass(frozen=True)
class StepDefinition:
    id: str
    keyword: str
    text: str
    regex: re.Pattern
    path: Path
    line: int
    start: int
    end: int
    description: str | None = None

    def matches(self, step_text: str) -> bool:
        return self.regex.fullmatch(step_text) is not None


class StepsIndex:
    """Index of the step definitions matched by the ``steps`` patterns."""

    def __init__(self, workspace_root: str | None, settings: Settings):
        self._root = workspace_root
        self._settings = settings
        self.steps: list[StepDefinition] = []
        self._by_id: dict[str, StepDefinition] = {}

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def populate(self, root: str | None, patterns: tuple[str, ...]) -> None:
        steps: list[StepDefinition] = []
        for pattern in patterns:
            for path in expand_pattern(root, pattern):
                source = read_source(path)
                if source is not None:
                    steps.extend(self._parse_file(path, source, len(steps)))
        self.steps = steps
        self._by_id = {s.id: s for s in steps}
        logger.debug('StepsIndex.populate: %d steps from %s', len(steps), patterns)

    def _parse_file(self, path: Path, source: str, offset: int) -> list[StepDefinition]:
        custom = self._settings.custom_parameters
        lines = split_lines(source)
        found: list[StepDefinition] = []
        for line_number, line in enumerate(lines):
            for m in _STEP_DEF_RE.finditer(line):
                raw_regex, raw_text = m.group('regex'), m.group('text')
                if raw_regex is not None:
                    pattern = _regex_source(raw_regex, custom)
                    text = _display_text(pattern)
                elif raw_text.startswith('^') or raw_text.endswith('$'):
                    pattern = _regex_source(raw_text, custom)
                    text = _display_text(pattern)
                else:
                    pattern = _cucumber_to_regex(raw_text, custom)
                    text = raw_text
                try:
                    regex = re.compile(pattern)
                except re.error:
                    logger.debug('StepsIndex: skipping %s:%d, bad pattern %r',
                                 path, line_number + 1, pattern)
                    continue
                keyword = m.group('keyword').lower()
                found.append(StepDefinition(
                    id=f'step{offset + len(found)}',
                    keyword='' if keyword in _ANY_KEYWORD else keyword,
                    text=text,
                    regex=regex,
                    path=path,
                    line=line_number,
                    start=m.start('keyword'),
                    end=m.end(),
                    description=self._description(lines, line_number),
                ))
        return found

    @staticmethod
    def _description(lines: list[str], line_number: int) -> str | None:
        if line_number == 0:
            return None
        above = lines[line_number - 1]
        if not _COMMENT_PREFIX_RE.match(above) or not above.strip():
            return None
        text = _COMMENT_PREFIX_RE.sub('', above).strip().rstrip('*/').strip()
        return text or None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find(self, step_text: str) -> StepDefinition | None:
        return next((s for s in self.steps if s.matches(step_text)), None)

    def get_completion(
        self, line: str, line_number: int, text: str
    ) -> list[lsp.CompletionItem] | None:
        """Complete the step text of a Gherkin step *line*."""
        m = _GHERKIN_STEP_RE.match(line)
        if m is None:
            return None
        indent, _, sep, typed = m.groups()
        start = len(indent) + len(m.group(2)) + len(sep)

        keyword = None
        if self._settings.strict_gherkin_completion:
            keyword = _gherkin_keyword(split_lines(text), line_number)

        replace = lsp.Range(
            start=lsp.Position(line=line_number, character=start),
            end=lsp.Position(line=line_number, character=len(line)),
        )
        items: list[lsp.CompletionItem] = []
        for step in self.steps:
            if keyword and step.keyword and step.keyword != keyword:
                continue
            if typed and not step.text.lower().startswith(typed.lower()):
                continue
            items.append(lsp.CompletionItem(
                label=step.text,
                kind=lsp.CompletionItemKind.Method,
                text_edit=lsp.TextEdit(range=replace, new_text=step.text),
                sort_text=f'C_{step.text}',
                data=tag(CompletionOrigin.STEP, step.id),
            ))
        return items

    def get_completion_resolve(self, item: lsp.CompletionItem) -> lsp.CompletionItem:
        _, key = origin_of(item)
        step = self._by_id.get(key)
        if step is None:
            return item
        item.detail = f'{step.path.name}:{step.line + 1}'
        if step.description:
            item.documentation = lsp.MarkupContent(
                kind=lsp.MarkupKind.PlainText, value=step.description,
            )
        return item

    def validate(self, line: str, line_number: int, text: str) -> lsp.Diagnostic | None:
        """Warn when the step on *line* has no matching definition."""
        m = _GHERKIN_STEP_RE.match(line)
        if m is None:
            return None
        step_text = m.group(4).rstrip()
        if not step_text or _OUTLINE_PARAM_RE.search(step_text):
            return None
        if self.find(step_text) is not None:
            return None
        start = len(m.group(1))
        return lsp.Diagnostic(
            range=lsp.Range(
                start=lsp.Position(line=line_number, character=start),
                end=lsp.Position(line=line_number, character=len(line.rstrip())),
            ),
            message=f'Was unable to find step for "{line.strip()}"',
            severity=lsp.DiagnosticSeverity.Warning,
            source='caselsp',
        )

    def get_definition(self, line: str, text: str) -> lsp.Location | None:
        m = _GHERKIN_STEP_RE.match(line)
        if m is None:
            return None
        step = self.find(m.group(4).rstrip())
        if step is None:
            return None
        return location(step.path, step.line, step.start, step.end)

    def validate_configuration(
        self, settings_file: str, patterns: tuple[str, ...], root: str | None
    ) -> list[lsp.Diagnostic]:
        """Report every steps pattern that matches no file."""
        settings_lines: list[str] = []
        if root:
            path = Path(root) / settings_file
            if path.is_file():
                settings_lines = split_lines(read_source(path) or '')

        diags: list[lsp.Diagnostic] = []
        for pattern in patterns:
            if expand_pattern(root, pattern):
                continue
            line_number, start, end = 0, 0, 0
            for i, line in enumerate(settings_lines):
                col = line.find(pattern)
                if col >= 0:
                    line_number, start, end = i, col, col + len(pattern)
                    break
            diags.append(lsp.Diagnostic(
                range=lsp.Range(
                    start=lsp.Position(line=line_number, character=start),
                    end=lsp.Position(line=line_number, character=end),
                ),
                message=f'No steps files found for pattern "{pattern}"',
                severity=lsp.DiagnosticSeverity.Warning,
                source='caselsp',
            ))
        return diags
