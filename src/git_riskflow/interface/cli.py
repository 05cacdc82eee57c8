import argparse
import json
import logging
import sys

from git_riskflow.application.snapshot_builder import SnapshotBuilder
from git_riskflow.application.use_cases import (
    EXIT_CONFIG_ERROR,
    EXIT_OK,
    EXIT_RUNTIME_ERROR,
    delta,
    exit_status,
    snapshot,
    trends_for_history,
)
from git_riskflow.domain.errors import ConfigurationError, RevisionResolutionError
from git_riskflow.domain.models import FunctionStatus
from git_riskflow.infrastructure.git_source_reader import GitSourceReader
from git_riskflow.infrastructure.policy_config import load_config
from git_riskflow.infrastructure.serialization import (
    delta_to_dict,
    snapshot_to_dict,
    trend_window_to_dict,
)

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{value}'")
    if number < 1:
        raise argparse.ArgumentTypeError(f"Expected a positive number, got {number}")
    return number


def _error(msg: str, code: int) -> int:
    """Print error message to stderr and return *code*."""
    print(f"Error: {msg}", file=sys.stderr)
    return code


def _header_fmt(fmt_spec: str) -> str:
    """Extract header-safe format from a value format spec.

    E.g. ">7.4f" → ">7", "<25" → "<25", ">+6" → ">6".
    """
    stripped = fmt_spec.rstrip("df%").replace("+", "")
    dot = stripped.find(".")
    if dot != -1:
        stripped = stripped[:dot]
    return stripped


def _print_table(rows, columns, limit=20, path_attr="path", max_path=60, suffix="rows") -> None:
    """Fixed-width table printer.

    Args:
        rows: list of objects to print.
        columns: list of (header, format_spec, value_fn) tuples. A format_spec
            of None marks the path column, whose width is computed.
        limit: max rows to print.
        path_attr: attribute holding the path-like label of each row.
        max_path: max path column width.
        suffix: word used in "... and N more {suffix}" message.
    """
    if not rows:
        return

    path_width = min(max(len(getattr(r, path_attr)) for r in rows), max_path)

    parts = []
    for header, fmt_spec, _value_fn in columns:
        if fmt_spec is None:
            parts.append(f"{header:<{path_width}}")
        else:
            parts.append(f"{header:{_header_fmt(fmt_spec)}}")
    header_line = "  ".join(parts)
    print(header_line)
    print("-" * len(header_line))

    for r in rows[:limit]:
        parts = []
        for _header, fmt_spec, value_fn in columns:
            if fmt_spec is None:
                path = getattr(r, path_attr)
                if len(path) > path_width:
                    path = "..." + path[-(path_width - 3):]
                parts.append(f"{path:<{path_width}}")
            else:
                parts.append(f"{value_fn(r):{fmt_spec}}")
        print("  ".join(parts))

    if len(rows) > limit:
        print(f"  ... and {len(rows) - limit} more {suffix}")


def _or_dash(value):
    return "-" if value is None else value


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _print_snapshot(snap, limit: int) -> None:
    root = snap.aggregates.root()
    print(f"--- Snapshot {snap.revision_id} ---\n")
    print(f"Functions:           {len(snap.functions)}")
    print(f"Files:               {len(snap.aggregates.files)}")
    print(f"Total complexity:    {snap.aggregates.total_complexity}")
    if root is not None:
        print(f"Avg complexity:      {root.avg_complexity:.2f}")
        print(f"Max complexity:      {root.max_complexity}")
    print()

    if not snap.functions:
        print("No functions found.")
    else:
        _print_table(
            list(snap.aggregates.files),
            [
                ("File", None, None),
                ("Functions", ">9", lambda f: f.function_count),
                ("Sum CC", ">6", lambda f: f.sum_complexity),
                ("Avg CC", ">6.2f", lambda f: f.avg_complexity),
                ("Max CC", ">6", lambda f: f.max_complexity),
            ],
            limit=limit,
            suffix="files",
        )
        print()
        ranked = sorted(snap.functions, key=lambda f: (-f.complexity, f.function_id))
        _print_table(
            ranked,
            [
                ("Function", None, None),
                ("CC", ">4", lambda f: f.complexity),
                ("Line", ">5", lambda f: f.start_line),
            ],
            limit=limit,
            path_attr="function_id",
            max_path=80,
            suffix="functions",
        )

    if snap.diagnostics:
        print(f"\nSkipped {len(snap.diagnostics)} file(s) that failed to parse:")
        for d in snap.diagnostics:
            print(f"  {d.file_path}: {d.message}")


def _print_delta(result, limit: int) -> None:
    print(f"--- Delta {result.base_revision[:12]}..{result.head_revision[:12]} ---\n")
    print(f"Added:               {result.count(FunctionStatus.ADDED)}")
    print(f"Removed:             {result.count(FunctionStatus.REMOVED)}")
    print(f"Modified:            {result.count(FunctionStatus.MODIFIED)}")
    print(f"Unchanged:           {result.count(FunctionStatus.UNCHANGED)}")
    print(f"Net change:          {sum(d.change for d in result.deltas):+d}")
    print()

    changed = [d for d in result.deltas if d.status != FunctionStatus.UNCHANGED]
    if not changed:
        print("No function-level changes.")
    else:
        changed.sort(key=lambda d: (-abs(d.change), d.function_id))
        _print_table(
            changed,
            [
                ("Function", None, None),
                ("Status", "<9", lambda d: d.status.value),
                ("Before", ">6", lambda d: _or_dash(d.complexity_before)),
                ("After", ">6", lambda d: _or_dash(d.complexity_after)),
                ("Change", ">+6", lambda d: d.change),
            ],
            limit=limit,
            path_attr="function_id",
            max_path=80,
            suffix="functions",
        )

    policy = result.policy
    print()
    if not policy.failed and not policy.warnings:
        print("Policy: passed")
        return
    print(f"Policy: {'FAILED' if policy.has_failures else 'passed with warnings'}")
    for v in policy.failed:
        print(f"  [failed]  {v.rule_id}: {v.message}")
    for v in policy.warnings:
        print(f"  [warning] {v.rule_id}: {v.message}")


def _print_trends(window, limit: int) -> None:
    print(f"--- Trends over {len(window.revisions)} revisions ---\n")
    print(f"Functions seen:      {window.total_functions}")
    print(f"With history:        {window.tracked_functions}")
    print()

    print("Hotspots:")
    if not window.hotspots:
        print("  none")
    else:
        _print_table(
            list(window.hotspots),
            [
                ("Function", None, None),
                ("Score", ">8.2f", lambda h: h.score),
                ("Latest", ">6", lambda h: h.latest_complexity),
                ("Slope", ">7.3f", lambda h: h.slope),
            ],
            limit=limit,
            path_attr="function_id",
            max_path=80,
            suffix="functions",
        )

    print("\nRefactors:")
    if not window.refactors:
        print("  none")
    else:
        _print_table(
            list(window.refactors),
            [
                ("Function", None, None),
                ("Score", ">8.2f", lambda r: r.score),
                ("Drop", ">4", lambda r: r.drop),
                ("Latest", ">6", lambda r: r.latest_complexity),
                ("Slope", ">7.3f", lambda r: r.slope),
            ],
            limit=limit,
            path_attr="function_id",
            max_path=80,
            suffix="functions",
        )


def _print_cached(revisions: list[dict]) -> None:
    if not revisions:
        print("No cached snapshots.")
        return

    header = f"{'Revision':<40}  {'Schema':>6}  {'Cached at':<19}"
    print(header)
    print("-" * len(header))
    for r in revisions:
        created = r["created_at"]
        if hasattr(created, "strftime"):
            date_str = created.strftime("%Y-%m-%d %H:%M:%S")
        else:
            date_str = str(created)[:19]
        print(f"{r['revision_id']:<40}  {r['schema_version']:>6}  {date_str:<19}")


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo", default=".",
        help="Path to a local git repository (default: current directory)",
    )
    common.add_argument(
        "--config", default=None, metavar="PATH",
        help="Policy configuration file (default: .riskflow.json in the repository)",
    )
    common.add_argument(
        "--db", default=None, metavar="PATH",
        help="DuckDB snapshot cache (default: ~/.git-riskflow/snapshots.db)",
    )
    common.add_argument(
        "--no-cache", action="store_true",
        help="Neither read nor write the snapshot cache",
    )
    common.add_argument(
        "--jobs", type=_positive_int, default=4, metavar="N",
        help="Files analyzed in parallel (default: 4)",
    )
    common.add_argument(
        "--format", choices=("text", "json"), default="text",
        help="Output format (default: text)",
    )
    common.add_argument(
        "--limit", type=_positive_int, default=20, metavar="N",
        help="Max rows per table in text output (default: 20)",
    )
    common.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log debug output to stderr",
    )

    parser = argparse.ArgumentParser(
        prog="git-riskflow",
        description="Function-level complexity risk across git history",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("snapshot", parents=[common], help="Complexity of one revision")
    p.add_argument("revision", nargs="?", default="HEAD")

    p = sub.add_parser("delta", parents=[common], help="Diff two revisions and apply policy")
    p.add_argument("base")
    p.add_argument("head", nargs="?", default="HEAD")

    p = sub.add_parser("trends", parents=[common], help="Velocity, hotspots and refactors")
    p.add_argument("revision", nargs="?", default="HEAD")
    p.add_argument(
        "--window", type=_positive_int, default=10, metavar="N",
        help="Number of first-parent revisions ending at REVISION (default: 10)",
    )
    p.add_argument(
        "--top-k", type=_positive_int, default=None, metavar="K",
        help="Entries per ranking (default: top_k from config, else 10)",
    )

    sub.add_parser("list", parents=[common], help="List cached snapshots")

    p = sub.add_parser("serve", parents=[common], help="Serve the snapshot cache over HTTP")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000, metavar="PORT")

    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def run(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.command == "serve":
        try:
            from git_riskflow.web.server import launch
        except ImportError:
            return _error(
                "web dependencies not installed. "
                "Run: pip install git-riskflow[web]",
                EXIT_RUNTIME_ERROR,
            )
        try:
            source = GitSourceReader(args.repo)
        except ValueError as e:
            logger.warning("%s; /api/trends is unavailable", e)
            source = None
        launch(db_path=args.db, host=args.host, port=args.port, source=source)
        return EXIT_OK

    if args.command == "list":
        from git_riskflow.infrastructure.snapshot_store import DuckDBSnapshotStore

        store = DuckDBSnapshotStore(db_path=args.db)
        try:
            revisions = store.list_revisions()
        finally:
            store.close()
        if args.format == "json":
            _print_json({"snapshots": [
                {**r, "created_at": str(r["created_at"])} for r in revisions
            ]})
        else:
            _print_cached(revisions)
        return EXIT_OK

    # Configuration errors surface before any analysis runs
    try:
        config = load_config(args.config, args.repo)
    except ConfigurationError as e:
        return _error(str(e), EXIT_CONFIG_ERROR)

    try:
        reader = GitSourceReader(args.repo)
    except ValueError as e:
        return _error(str(e), EXIT_RUNTIME_ERROR)

    store = None
    if not args.no_cache:
        from git_riskflow.infrastructure.snapshot_store import DuckDBSnapshotStore

        store = DuckDBSnapshotStore(db_path=args.db)

    builder = SnapshotBuilder(reader, store, max_workers=args.jobs, exclude=config.exclude)
    try:
        if args.command == "snapshot":
            snap = snapshot(builder, args.revision)
            if args.format == "json":
                _print_json(snapshot_to_dict(snap))
            else:
                _print_snapshot(snap, args.limit)
            return EXIT_OK

        if args.command == "delta":
            result = delta(builder, args.base, args.head, config.rules)
            if args.format == "json":
                _print_json(delta_to_dict(result))
            else:
                _print_delta(result, args.limit)
            return exit_status(result)

        top_k = args.top_k if args.top_k is not None else config.top_k
        if args.window < 2:
            return _error("--window must be at least 2", EXIT_CONFIG_ERROR)
        window = trends_for_history(builder, args.revision, args.window, top_k)
        if args.format == "json":
            _print_json(trend_window_to_dict(window))
        else:
            _print_trends(window, args.limit)
        return EXIT_OK
    except RevisionResolutionError as e:
        return _error(str(e), EXIT_RUNTIME_ERROR)
    except RuntimeError as e:
        logger.debug("Analysis failed", exc_info=True)
        return _error(f"reading repository: {e}", EXIT_RUNTIME_ERROR)
    finally:
        if store is not None:
            store.close()


def main() -> None:
    sys.exit(run())
