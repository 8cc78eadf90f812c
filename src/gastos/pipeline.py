"""
Pipeline registry — run one or all steps from a single entry point.

Usage:
    gastos-pipeline                                # migrate, scrape, fornecedores
    gastos-pipeline --only scrape --legislaturas 57
    gastos-pipeline --only fornecedores
    gastos-pipeline --only flush_cache
    gastos-pipeline --list                         # show available steps

Settings come from GASTOS_* environment variables (see config.py); CLI flags
override them. A malformed setting stops the process before any step runs.

Adding a new step:
    1. Write an ``async def`` taking a Settings object.
    2. Add one entry to the registry below.
"""

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from typing import Awaitable, Callable

from . import extract_camara_despesas, extract_fornecedores
from .cache import AnalysisCache
from .config import Settings, load_settings
from .errors import ConfigurationError
from .store import Store
from .utils import configure_utf8


async def _migrate(settings: Settings) -> None:
    with Store.open(settings.db_path) as store:
        store.migrate()


async def _flush_cache(settings: Settings) -> None:
    with Store.open(settings.db_path) as store:
        store.migrate()
        n = AnalysisCache(store).flush()
    print(f"Removed {n} cache entries")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
#   "fn"      : async callable taking Settings
#   "desc"    : human-readable description (shown in --list)
#   "default" : whether the step runs when --only is not given
# ---------------------------------------------------------------------------

REGISTRY: dict[str, dict] = {
    "migrate": {
        "fn":      _migrate,
        "desc":    "Apply pending schema migrations",
        "default": True,
    },
    "scrape": {
        "fn":      extract_camara_despesas.extract_all,
        "desc":    "Deputies, mandate history and CEAP expenses (CAMARA), then flush cache",
        "default": True,
    },
    "fornecedores": {
        "fn":      extract_fornecedores.extract_all,
        "desc":    "Supplier CNPJ enrichment (BrasilAPI)",
        "default": True,
    },
    "flush_cache": {
        "fn":      _flush_cache,
        "desc":    "Drop every cached analytics payload",
        "default": False,
    },
}


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


def _run_one(name: str, fn: Callable[[Settings], Awaitable], settings: Settings) -> bool:
    print(f"\n{'=' * 60}")
    print(f"STEP: {name}")
    print(f"{'=' * 60}")
    try:
        asyncio.run(fn(settings))
    except Exception as exc:
        print(f"FAILED [{name}]: {exc}")
        return False
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the Chamber expense pipeline.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"Available steps: {', '.join(REGISTRY)}",
    )
    parser.add_argument(
        "--only",
        metavar="NAME[,NAME...]",
        default=None,
        help="Comma-separated step names to run (default: all default steps).",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List available steps and exit.",
    )
    parser.add_argument(
        "--db",
        default=None,
        metavar="PATH",
        help="DuckDB warehouse path (default: GASTOS_DB_PATH or data/warehouse/deputies.duckdb).",
    )
    parser.add_argument(
        "--legislaturas",
        nargs="+",
        type=int,
        default=None,
        metavar="N",
        help="Legislature numbers to scrape (default: GASTOS_LEGISLATURES or 56 57).",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        metavar="N",
        help="Deputies fetched concurrently (default: GASTOS_BATCH_SIZE or 10).",
    )
    return parser


def resolve_settings(args: argparse.Namespace) -> Settings:
    settings = load_settings()
    if args.db:
        settings = replace(settings, db_path=Path(args.db))
    if args.legislaturas:
        settings = replace(settings, legislatures=tuple(args.legislaturas))
    if args.batch_size is not None:
        if args.batch_size <= 0:
            raise ConfigurationError(f"--batch-size must be positive, got {args.batch_size}")
        settings = replace(settings, batch_size=args.batch_size)
    return settings


def main(argv: list[str] | None = None) -> None:
    configure_utf8()
    args = build_parser().parse_args(argv)

    if args.list:
        print("Available steps:\n")
        for name, entry in REGISTRY.items():
            flag = "" if entry["default"] else "  [--only]"
            print(f"  {name:<15} {entry['desc']}{flag}")
        sys.exit(0)

    try:
        settings = resolve_settings(args)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if args.only:
        names = [n.strip() for n in args.only.split(",")]
        unknown = [n for n in names if n not in REGISTRY]
        if unknown:
            print(f"ERROR: Unknown step(s): {unknown}")
            print(f"Available: {', '.join(REGISTRY)}")
            sys.exit(1)
    else:
        names = [n for n, entry in REGISTRY.items() if entry["default"]]

    failed = [name for name in names if not _run_one(name, REGISTRY[name]["fn"], settings)]
    if failed:
        print(f"\nFinished with failures: {', '.join(failed)}")
        sys.exit(1)
    print("\nAll steps complete.")


if __name__ == "__main__":
    main()
