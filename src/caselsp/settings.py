"""
Configuration for caselsp.

Settings come from two places, merged key by key:

1. The ``cucumberautocomplete`` section sent by the client with
   ``workspace/didChangeConfiguration`` (wins).
2. A ``.caselsp.toml`` project config file in the workspace root (defaults).

A :class:`Settings` object is immutable.  Every configuration change builds a
new one and replaces the previous object wholesale.  Malformed values are
normalized rather than rejected (a single ``steps`` glob becomes a
one-element tuple, a non-mapping ``pages`` becomes empty).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

SECTION = 'cucumberautocomplete'
PROJECT_CONFIG = '.caselsp.toml'

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _as_patterns(value: Any) -> tuple[str, ...]:
    """Coerce a glob pattern or list of glob patterns to a tuple."""
    if value is None or value == '':
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value if v)
    return (str(value),)


def _as_mapping(value: Any) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        return _EMPTY
    return MappingProxyType({str(k): v for k, v in value.items()})


def _as_custom_parameters(value: Any) -> tuple[tuple[str, str], ...]:
    """``[{"parameter": "{x}", "value": "(\\d+)"}, ...]`` → ``(("{x}", "(\\d+)"), ...)``."""
    if not isinstance(value, (list, tuple)):
        return ()
    pairs: list[tuple[str, str]] = []
    for entry in value:
        if isinstance(entry, Mapping) and 'parameter' in entry and 'value' in entry:
            pairs.append((str(entry['parameter']), str(entry['value'])))
    return tuple(pairs)


@dataclass(frozen=True)
class Settings:
    steps: tuple[str, ...] = ()
    pages: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    on_type_format: bool = False
    strict_gherkin_completion: bool = False
    skip_doc_strings_format: bool = False
    format_conf_override: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    custom_parameters: tuple[tuple[str, str], ...] = ()
    log_level: str | None = None

    @property
    def handles_steps(self) -> bool:
        return bool(self.steps)

    @property
    def handles_pages(self) -> bool:
        return bool(self.pages)

    @classmethod
    def from_client(
        cls,
        raw: Any,
        defaults: Mapping[str, Any] | None = None,
    ) -> 'Settings':
        """Build settings from a ``didChangeConfiguration`` payload.

        *raw* is either the whole settings object (containing the
        ``cucumberautocomplete`` section) or the section itself.  Keys missing
        from the section fall back to *defaults*.
        """
        section: Mapping[str, Any] = {}
        if isinstance(raw, Mapping):
            inner = raw.get(SECTION, raw)
            section = inner if isinstance(inner, Mapping) else {}
        merged = dict(defaults or {})
        merged.update(section)

        pages = _as_mapping(merged.get('pages'))
        return cls(
            steps=_as_patterns(merged.get('steps')),
            pages=MappingProxyType({k: str(v) for k, v in pages.items() if v}),
            on_type_format=merged.get('onTypeFormat') is True,
            strict_gherkin_completion=merged.get('strictGherkinCompletion') is True,
            skip_doc_strings_format=merged.get('skipDocStringsFormat') is True,
            format_conf_override=_as_mapping(merged.get('formatConfOverride')),
            custom_parameters=_as_custom_parameters(merged.get('customParameters')),
            log_level=merged.get('logLevel') or None,
        )


def read_project_config(workspace_root: str | None) -> dict[str, Any]:
    """Parse ``.caselsp.toml`` in *workspace_root* and return its table, or ``{}``."""
    if not workspace_root:
        return {}
    try:
        import tomllib  # Python 3.11+
    except ImportError:
        try:
            import tomli as tomllib  # fallback
        except ImportError:
            return {}

    config_path = Path(workspace_root) / PROJECT_CONFIG
    if not config_path.exists():
        return {}

    try:
        data = tomllib.loads(config_path.read_text(encoding='utf-8'))
    except (OSError, tomllib.TOMLDecodeError):
        logger.warning('read_project_config: cannot read %s', config_path, exc_info=True)
        return {}
    section = data.get(SECTION, data)
    return dict(section) if isinstance(section, dict) else {}
