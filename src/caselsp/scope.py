"""
Case-handler scope resolution.

A case handler is declared by a step line of the form::

    Given case <name>
    Given case <name> with taskguide <target>
    Given case <name> with <target>
    Given case <name> is <target>

A declaration is visible at a cursor line when it lies in the Scenario that
encloses the cursor (from the Scenario header down to the cursor line), or in
the file-level Background.  The file-level Background is the Background that
precedes the first Scenario; it runs up to the line before that Scenario and
applies to lines before the first Scenario and to lines inside it.  Later
Scenarios see only their own declarations.

Spans are inclusive line intervals; an absent span is ``None``.  Malformed or
missing headers never raise, they only shrink the result.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from caselsp.document import split_lines

SCENARIO_HEADERS = ('Scenario:', 'Scenario Outline:')
BACKGROUND_HEADER = 'Background:'

# Group 1: handler name; 2: taskguide target; 3: ``with`` target; 4: ``is`` target
_CASE_HANDLER_RE = re.compile(
    r'^Given case (\S+)(?: with taskguide (\S+)| with (\S+)| is (\S+))?'
)


class BoundVia(enum.Enum):
    TASKGUIDE = 'taskguide'
    WITH = 'with'
    IS = 'is'
    IMPLICIT = 'implicit'


@dataclass(frozen=True)
class Span:
    start: int
    end: int

    def __contains__(self, line: int) -> bool:
        return self.start <= line <= self.end


@dataclass(frozen=True)
class CaseHandler:
    name: str
    bound_via: BoundVia
    bound_target: str | None
    line: int


@dataclass(frozen=True)
class Scope:
    scenario: Span | None
    background: Span | None
    case_handlers: tuple[CaseHandler, ...]

    def handlers_named(self, name: str) -> list[CaseHandler]:
        """All visible handlers called *name*, in document order."""
        return [h for h in self.case_handlers if h.name == name]


_EMPTY_SCOPE = Scope(scenario=None, background=None, case_handlers=())


def _is_scenario(line: str) -> bool:
    return line.strip().startswith(SCENARIO_HEADERS)


def _is_background(line: str) -> bool:
    return line.strip().startswith(BACKGROUND_HEADER)


def parse_case_handler(line: str, line_number: int) -> CaseHandler | None:
    """Return the :class:`CaseHandler` declared on *line*, if any."""
    m = _CASE_HANDLER_RE.match(line.strip())
    if m is None:
        return None
    name, taskguide, with_target, is_target = m.groups()
    if taskguide is not None:
        return CaseHandler(name, BoundVia.TASKGUIDE, taskguide, line_number)
    if with_target is not None:
        return CaseHandler(name, BoundVia.WITH, with_target, line_number)
    if is_target is not None:
        return CaseHandler(name, BoundVia.IS, is_target, line_number)
    return CaseHandler(name, BoundVia.IMPLICIT, None, line_number)


def _file_background(lines: list[str], first_scenario: int | None) -> Span | None:
    """Span of the Background that precedes the first Scenario, if any."""
    end = len(lines) - 1 if first_scenario is None else first_scenario - 1
    start = None
    for i in range(0, end + 1):
        if _is_background(lines[i]):
            start = i
    if start is None:
        return None
    return Span(start, end)


def resolve_scope(text: str, current_line: int) -> Scope:
    """Compute the spans around *current_line* and the case handlers visible there."""
    lines = split_lines(text)
    if not lines or current_line < 0:
        return _EMPTY_SCOPE
    current_line = min(current_line, len(lines) - 1)

    scenario_start = None
    for i in range(current_line, -1, -1):
        if _is_scenario(lines[i]):
            scenario_start = i
            break

    first_scenario = next((i for i, line in enumerate(lines) if _is_scenario(line)), None)

    background = _file_background(lines, first_scenario)
    if background is not None and first_scenario is not None:
        if current_line >= first_scenario and scenario_start != first_scenario:
            # inside a later Scenario
            background = None

    scenario = Span(scenario_start, current_line) if scenario_start is not None else None

    handlers: list[CaseHandler] = []
    for i, line in enumerate(lines):
        in_scenario = scenario is not None and i in scenario
        in_background = background is not None and i in background
        if not (in_scenario or in_background):
            continue
        handler = parse_case_handler(line, i)
        if handler is not None:
            handlers.append(handler)

    return Scope(scenario=scenario, background=background, case_handlers=tuple(handlers))
