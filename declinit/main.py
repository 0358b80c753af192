#!/usr/bin/env python3
"""declinit/main.py: CLI entry-point for the declaration analyzer.

Usage examples
--------------
    # Analyse declaration files, GCC-style diagnostics on stdout
    python -m declinit analyze decls.cpp more.cpp

    # cppcheck addon JSON, one object per line
    python -m declinit analyze decls.cpp --format json -o findings.json

    # Treat braced narrowing as a warning and drop the vexing-parse advisory
    python -m declinit analyze decls.cpp --narrowing-as-warning --no-vexing-parse

    # Show how a file was read, without analysing it
    python -m declinit parse decls.cpp

    # List builtin type spellings for a data model
    python -m declinit types --data-model LLP64

Exit codes
----------
    0   Success (no error-severity diagnostics).
    1   One or more diagnostics with severity ERROR were emitted.
    2   Infrastructure failure (bad file, syntax error, bad configuration).

The module doubles as ``python -m declinit`` via the companion
``declinit/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO

from . import __version__
from .analyzer import Analyzer
from .config import DATA_MODELS, AnalyzerConfig, load_config
from .diagnostics import DiagnosticKind, SuppressionManager
from .errors import DeclinitError
from .frontend import TranslationUnit, parse
from .report import FORMATS, Reporter, get_colors
from .type_model import FloatingPoint, Integral, TypeContext

_log = logging.getLogger("declinit")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2

_ERROR_IDS = frozenset(k.error_id for k in DiagnosticKind)

_handler: Optional[logging.Handler] = None


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the root ``declinit`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    global _handler
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("declinit")
    if _handler is not None:
        root.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.setLevel(level)
    root.addHandler(_handler)


def _open_output(dest: Optional[str]) -> TextIO:
    """Return a writable text stream.

    *dest* ``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path
    for writing (creating parent directories as needed).
    """
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _read_source(raw: str) -> str:
    p = Path(raw)
    try:
        return p.read_text(encoding="utf-8")
    except OSError as exc:
        raise DeclinitError(f"cannot read {raw}: {exc.strerror or exc}") from exc
    except UnicodeDecodeError as exc:
        raise DeclinitError(f"cannot read {raw}: not UTF-8 text ({exc.reason} at byte {exc.start})") from exc


def _effective_config(args: argparse.Namespace) -> AnalyzerConfig:
    """File configuration with command-line overrides applied."""
    config = load_config(getattr(args, "config", None))
    config = config.merged(
        data_model=args.data_model,
        narrowing_is_error=False if getattr(args, "narrowing_as_warning", False) else None,
        report_vexing_parse=False if getattr(args, "no_vexing_parse", False) else None,
        implicit_narrowing_warnings=(
            False if getattr(args, "no_implicit_narrowing", False) else None
        ),
        max_workers=getattr(args, "jobs", None),
    )
    problems = config.validate()
    if problems:
        raise DeclinitError("; ".join(problems))
    return config


def _suppressions(config: AnalyzerConfig, raw: Sequence[str]) -> SuppressionManager:
    """``ID`` suppresses everywhere, ``ID:PATTERN`` only in matching files."""
    manager = SuppressionManager(config.suppressions)
    for item in raw:
        error_id, _, pattern = item.partition(":")
        if pattern:
            manager.add_file_suppression(error_id, pattern)
        else:
            manager.add_global_suppression(error_id)
    return manager


def _parse_all(
    files: Sequence[str], config: AnalyzerConfig, sources: Optional[Dict[str, str]] = None
) -> List[TranslationUnit]:
    """Parse every file; *sources* collects the text of each one."""
    context = TypeContext(data_model=config.data_model)
    units = []
    for f in files:
        text = _read_source(f)
        if sources is not None:
            sources[f] = text
        units.append(parse(text, f, context))
    return units


# ===========================================================================
# Sub-command implementations
# ===========================================================================

# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------

def cmd_analyze(args: argparse.Namespace) -> int:
    """Parse each file, analyse every declaration, report diagnostics.

    Files are independent: each gets a fresh context of the configured data
    model.
    """
    sources: Dict[str, str] = {}
    try:
        config = _effective_config(args)
        units = _parse_all(args.files, config, sources)
    except DeclinitError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA

    for item in args.suppress:
        error_id = item.partition(":")[0]
        if error_id not in _ERROR_IDS and error_id != "*":
            _log.warning("suppression for unknown error id '%s'", error_id)

    out = _open_output(args.output)
    try:
        reporter = Reporter(
            out,
            args.format,
            _suppressions(config, args.suppress),
            colors=get_colors(out),
            sources=sources,
        )
        for unit in units:
            analyzer = Analyzer(unit.context, config)
            reporter.report(analyzer.analyze_many(unit.declarations()))
    finally:
        if out is not sys.stdout:
            out.close()

    summary = reporter.summary()
    if summary and args.format != "json":
        sys.stderr.write(summary + "\n")

    if reporter.has_errors:
        return EXIT_ERROR
    if args.werror and sum(reporter.counts.values()):
        return EXIT_ERROR
    return EXIT_OK


# ---------------------------------------------------------------------------
# parse (debugging aid)
# ---------------------------------------------------------------------------

def cmd_parse(args: argparse.Namespace) -> int:
    """Print the declarations of a file as the analyzer sees them."""
    try:
        config = _effective_config(args)
        unit, = _parse_all([args.file], config)
    except DeclinitError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA

    out = _open_output(args.output)
    try:
        for agg in unit.aggregates:
            ctors = ", ".join(str(c) for c in agg.effective_constructors)
            out.write(f"struct {agg.name}: {ctors}\n")
        for decl in unit.declarations():
            out.write(f"{decl.location}: {decl}\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


# ---------------------------------------------------------------------------
# types
# ---------------------------------------------------------------------------

def cmd_types(args: argparse.Namespace) -> int:
    """List builtin type spellings with their width and conversion rank."""
    try:
        context = TypeContext(data_model=args.data_model or "LP64")
    except DeclinitError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA

    table = context.table
    rows: Dict[str, str] = {}
    for name in context.builtin_names():
        t = context.lookup_type(name)
        if isinstance(t, Integral):
            sign = "signed" if t.signed and t.width > 1 else "unsigned"
            rows[name] = f"integral {t.width:>2} bits {sign:<8} rank {table.integral_rank(t.width)}"
        elif isinstance(t, FloatingPoint):
            rows[name] = (f"floating {t.width:>2} bits {table.digits(t)} digits "
                          f"rank {table.floating_rank(t.width)}")
    width = max(len(n) for n in rows)
    out = _open_output(args.output)
    try:
        out.write(f"data model {context.data_model}\n")
        for name, row in rows.items():
            out.write(f"  {name:<{width}}  {row}\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


# ===========================================================================
# Argument parser construction
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="declinit",
        description=(
            "declinit: declaration and initialization analyzer.\n\n"
            "Resolves the most vexing parse, rejects narrowing inside\n"
            "braces and deduces the types of auto declarations."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              declinit analyze decls.cpp
              declinit analyze decls.cpp --format json --suppress potentialVexingParse
              declinit parse decls.cpp
              declinit types --data-model ILP32
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # Shared argument groups (reusable) ------------------------------------

    def _add_output_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "-o", "--output",
            default=None,
            metavar="FILE",
            help='Output file ("-" or omit for stdout).',
        )

    def _add_model_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--data-model",
            choices=DATA_MODELS,
            default=None,
            help="Width of long (default: LP64, or the configuration file).",
        )

    # --- analyze -----------------------------------------------------------
    p_analyze = subparsers.add_parser(
        "analyze",
        aliases=["analyse"],
        help="Analyse declaration files.",
        description=(
            "Classify every declaration, deduce auto types and check "
            "each initializer conversion."
        ),
    )
    p_analyze.add_argument("files", nargs="+", metavar="FILE", help="Declaration source files.")
    _add_output_args(p_analyze)
    _add_model_args(p_analyze)
    p_analyze.add_argument(
        "-f", "--format",
        choices=FORMATS,
        default="gcc",
        help="Output format (default: gcc).",
    )
    p_analyze.add_argument(
        "--config",
        default=None,
        metavar="FILE",
        help="JSON configuration file.",
    )
    p_analyze.add_argument(
        "--suppress",
        action="append",
        default=[],
        metavar="ID[:PATTERN]",
        help="Suppress an error id, optionally only in files matching PATTERN.",
    )
    g = p_analyze.add_argument_group("diagnostic tuning")
    g.add_argument(
        "--narrowing-as-warning",
        action="store_true",
        help="Report narrowing inside braces as a warning instead of an error.",
    )
    g.add_argument(
        "--no-vexing-parse",
        action="store_true",
        help="Do not report declarations that parse as functions.",
    )
    g.add_argument(
        "--no-implicit-narrowing",
        action="store_true",
        help="Do not warn about narrowing outside braces.",
    )
    g.add_argument(
        "--werror",
        action="store_true",
        help="Exit with status 1 on warnings too.",
    )
    g.add_argument(
        "-j", "--jobs",
        type=int,
        default=None,
        metavar="N",
        help="Analyse declarations on N threads.",
    )
    p_analyze.set_defaults(func=cmd_analyze)

    # --- parse -------------------------------------------------------------
    p_parse = subparsers.add_parser(
        "parse",
        help="Show the declarations of a file without analysing them.",
    )
    p_parse.add_argument("file", metavar="FILE", help="Declaration source file.")
    _add_output_args(p_parse)
    _add_model_args(p_parse)
    p_parse.set_defaults(func=cmd_parse)

    # --- types -------------------------------------------------------------
    p_types = subparsers.add_parser(
        "types",
        help="List builtin type spellings and their conversion ranks.",
    )
    _add_output_args(p_types)
    _add_model_args(p_types)
    p_types.set_defaults(func=cmd_types)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the declinit CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except OSError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
