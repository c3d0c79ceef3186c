"""Hamlet - generate a medieval town layout from the command line."""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError
from tqdm import tqdm

from hamlet import __version__
from hamlet.core.errors import InvalidCatalogError
from hamlet.logging_config import setup_logging
from hamlet.generation import (
    SolverConfig,
    TownLayout,
    create_town_catalog,
    generate_town,
    render_ascii,
    road_connectivity,
    town_summary,
)
from hamlet.generation.wfc import SolveResult

EXIT_COMPLETE = 0
EXIT_FAILED = 1
EXIT_INVALID_INPUT = 2

DEFAULT_WIDTH = 16
DEFAULT_DEPTH = 16

logger = logging.getLogger("hamlet.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hamlet",
        description="Hamlet - socket-based Wave Function Collapse town generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hamlet                            # 16x16 town with a random seed
  hamlet --seed 42 --walls          # Walled town, reproducible
  hamlet -W 30 -D 20 --no-center    # No forced crossroads
  hamlet --config town.yaml         # Solver/layout settings from a file
  hamlet --seed 7 --output town.json

Environment:
  HAMLET_SEED      default for --seed
  HAMLET_LOG_DIR   default for --logs
        """,
    )
    parser.add_argument("-W", "--width", type=int, help=f"Grid width (default: {DEFAULT_WIDTH})")
    parser.add_argument("-D", "--depth", type=int, help=f"Grid depth (default: {DEFAULT_DEPTH})")
    parser.add_argument("--seed", type=int, help="Random seed (default: random)")
    parser.add_argument(
        "--tiles",
        type=Path,
        help="Tile catalog YAML (default: bundled town tiles)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML file with 'solver:' and 'layout:' sections",
    )
    parser.add_argument(
        "--max-backtracks",
        type=int,
        dest="max_backtrack_attempts",
        metavar="N",
        help="Backtracks allowed before a run fails (default: 1000)",
    )
    parser.add_argument(
        "--no-backtracking",
        action="store_false",
        dest="use_backtracking",
        default=None,
        help="Fail on the first contradiction",
    )
    parser.add_argument(
        "--no-propagation",
        action="store_false",
        dest="propagate_immediately",
        default=None,
        help="Only check rotations against collapsed neighbors",
    )
    parser.add_argument(
        "--walls",
        action="store_true",
        default=None,
        help="Surround the town with walls and gates",
    )
    parser.add_argument(
        "--no-center",
        action="store_false",
        dest="town_center",
        default=None,
        help="Don't force a crossroads at the center",
    )
    parser.add_argument(
        "--center-radius",
        type=int,
        metavar="N",
        help="Length of the road arms leaving the center (default: 2)",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=3,
        metavar="N",
        help="Attempts before giving up, each with seed+1 (default: 3)",
    )
    parser.add_argument("--output", type=Path, help="Write the result as JSON")
    parser.add_argument(
        "--logs",
        type=Path,
        help="Log directory (default: logs/)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to console",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="No progress bar or map, just the outcome (console logs errors only)",
    )
    return parser


def load_config_file(path: Path | None) -> tuple[dict[str, Any], dict[str, Any]]:
    """Read the optional --config file into (solver, layout) sections."""
    if path is None:
        return {}, {}

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")

    solver = data.get("solver") or {}
    layout = data.get("layout") or {}
    if not isinstance(solver, dict) or not isinstance(layout, dict):
        raise ValueError(f"'solver' and 'layout' in {path} must be mappings")
    return dict(solver), dict(layout)


def _env_seed() -> int | None:
    raw = os.environ.get("HAMLET_SEED")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"HAMLET_SEED must be an integer, got '{raw}'") from None


def build_settings(args: argparse.Namespace) -> tuple[SolverConfig, TownLayout]:
    """
    Merge defaults, the config file, the environment and flags.

    Later sources win: flags over environment over file over defaults.
    """
    solver_fields, layout_fields = load_config_file(args.config)

    solver_fields.setdefault("width", DEFAULT_WIDTH)
    solver_fields.setdefault("depth", DEFAULT_DEPTH)

    env_seed = _env_seed()
    if env_seed is not None:
        solver_fields["seed"] = env_seed

    for name in ("width", "depth", "seed", "max_backtrack_attempts", "use_backtracking", "propagate_immediately"):
        value = getattr(args, name)
        if value is not None:
            solver_fields[name] = value

    for name, value in (
        ("walls", args.walls),
        ("town_center", args.town_center),
        ("center_radius", args.center_radius),
    ):
        if value is not None:
            layout_fields[name] = value

    return SolverConfig(**solver_fields), TownLayout(**layout_fields)


def print_report(result: SolveResult, catalog, quiet: bool) -> None:
    stats = result.stats
    outcome = result.outcome.name
    if quiet:
        print(f"{outcome} seed={result.seed} collapses={stats.collapses} backtracks={stats.backtracks}")
        return

    print()
    print(render_ascii(result, catalog))
    print()
    print(f"Outcome:        {outcome}" + (f" ({result.message})" if result.failure else ""))
    print(f"Seed:           {result.seed}")
    print(f"Collapses:      {stats.collapses} (+{stats.forced_collapses} forced)")
    print(f"Contradictions: {stats.contradictions}")
    print(f"Backtracks:     {stats.backtracks}")
    print(f"Elapsed:        {stats.elapsed_ms:.1f} ms")

    summary = town_summary(result, catalog)
    print(
        f"Tiles:          {summary['roads']} roads, {summary['buildings']} buildings, "
        f"{summary['open']} open, {summary['walls']} walls, {summary['unresolved']} unresolved"
    )

    roads = road_connectivity(result, catalog)
    if roads.total:
        status = "connected" if roads.is_connected else f"{roads.components} separate groups"
        print(f"Road network:   {roads.total} cells, {status}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for Hamlet."""
    # Load environment variables first
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    log_dir = args.logs or Path(os.environ.get("HAMLET_LOG_DIR") or "logs")
    log_path = setup_logging(log_dir, debug=args.debug, quiet=args.quiet)

    try:
        config, layout = build_settings(args)
        catalog = create_town_catalog(args.tiles)
    except (InvalidCatalogError, ValidationError, ValueError, OSError, yaml.YAMLError) as e:
        logger.error(f"Invalid input: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    if not args.quiet:
        print(f"Hamlet v{__version__}")
        print(f"Grid: {config.width}x{config.depth}, {len(catalog)} tiles")
        print(f"Log file: {log_path}")

    pbar = None
    progress = None
    if not args.quiet:
        pbar = tqdm(total=config.width * config.depth, desc="  Collapsing", unit="cells")
        last_progress = [0]

        def progress(current: int, total: int) -> None:
            delta = current - last_progress[0]
            if delta:
                # Negative after a backtrack
                pbar.update(delta)
                last_progress[0] = current

    try:
        result = generate_town(
            config,
            layout=layout,
            catalog=catalog,
            max_retries=args.retries,
            progress_callback=progress,
        )
    finally:
        if pbar is not None:
            pbar.close()

    print_report(result, catalog, args.quiet)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result.to_json_dict(), f, indent=2)
        if not args.quiet:
            print(f"Wrote {args.output}")

    return EXIT_COMPLETE if result.succeeded else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
