"""handlers/__init__.py: re-export handler functions for convenience."""
from .diagnostics import get_diagnostics
from .completion import get_completions, resolve_completion
from .definition import get_definition

__all__ = ['get_diagnostics', 'get_completions', 'resolve_completion', 'get_definition']
