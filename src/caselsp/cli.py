"""
caselsp – Gherkin case-handler Language Server CLI entry point.

Usage
-----
    caselsp                          # serve over stdio (editors)
    caselsp --tcp 2087 [--host H]    # serve over TCP (debugging)
    caselsp --check a.feature ...    # print step/page diagnostics and exit

``--check`` reads the ``cucumberautocomplete`` table of ``.caselsp.toml`` in
``--root`` (default: the current directory) and exits with status 1 when
anything is reported.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog='caselsp',
        description='Language Server (LSP) for Gherkin .feature files with case handlers.',
    )
    mode = p.add_mutually_exclusive_group()
    mode.add_argument(
        '--stdio',
        action='store_true',
        default=False,
        help='Communicate over stdin/stdout (default when no flag given)',
    )
    mode.add_argument(
        '--tcp',
        metavar='PORT',
        type=int,
        default=None,
        help='Listen for connections on the given TCP port instead of stdio',
    )
    mode.add_argument(
        '--check',
        metavar='FEATURE',
        nargs='+',
        type=Path,
        default=None,
        help='Validate the given feature files against the configured steps and pages',
    )
    p.add_argument('--host', default='127.0.0.1', help='Interface to bind in --tcp mode')
    p.add_argument(
        '--root',
        type=Path,
        default=Path.cwd(),
        help='Workspace root holding .caselsp.toml (default: current directory)',
    )
    p.add_argument('--version', action='store_true', default=False,
                   help='Print the caselsp version and exit')
    p.add_argument(
        '--log-level',
        metavar='LEVEL',
        default='WARNING',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level written to stderr (default: WARNING)',
    )
    return p


def check(root: Path, features: list[Path], out=None) -> int:
    """Print ``path:line:col: message`` for every diagnostic; return the count."""
    from caselsp.handlers import get_diagnostics
    from caselsp.state import SessionState

    out = out or sys.stdout
    state = SessionState(str(root))
    state.apply_configuration({})
    snapshot = state.snapshot()
    if not snapshot.handles_steps and not snapshot.handles_pages:
        logger.warning('check: no steps or pages configured in %s', root)

    count = 0
    for feature in features:
        try:
            text = feature.read_text(encoding='utf-8')
        except OSError as exc:
            print(f'{feature}: cannot read: {exc.strerror}', file=out)
            count += 1
            continue
        for diag in get_diagnostics(snapshot, text):
            start = diag.range.start
            print(f'{feature}:{start.line + 1}:{start.character + 1}: {diag.message}', file=out)
            count += 1
    return count


def caselsp(argv: list[str] | None = None) -> None:
    """Entry point for the ``caselsp`` command."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )

    if args.version:
        from caselsp import __version__
        print(f'caselsp {__version__}')
        sys.exit(0)

    if args.check is not None:
        sys.exit(1 if check(args.root, args.check) else 0)

    from caselsp.server import server
    if args.tcp is not None:
        server.start_tcp(args.host, args.tcp)
    else:
        server.start_io()


if __name__ == '__main__':
    caselsp()
