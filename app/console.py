# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: command line launcher for SurfaceScan: gathers raw facts (from a collector-written JSON file
and/or the built-in filesystem and service collectors), runs them through the normalization and
severity engine, writes the inventory, and optionally serves it on the local report dashboard.
the terminal shows a welcome banner, a per-severity tally, and one line saying where the output went.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

import argparse  # for parsing command line arguments
import logging  # for root log level and silencing library noise
import sys  # for the exit code
from collections import Counter  # for the per-severity tally
from collections.abc import Sequence  # type hint for argv
from functools import lru_cache  # colorama only needs one init per process

# load environment variables from .env file before reading config
try:
    from dotenv import load_dotenv

    load_dotenv()  # load .env file if it exists
except ImportError:
    pass  # python-dotenv is optional, but recommended

from agent.facts_loader import load_facts  # raw facts written by external collectors
from agent.filesystem_scan import FilesystemScanner  # loose executables on disk
from agent.service_scan import scan_services  # Windows services via psutil
from algorithm.normalizer import normalize_all  # the classification engine
from algorithm.records import NormalizedRecord, RawFact, SeverityTier
from app.exporter import FORMATS, ExportError, write_inventory
from dashboard.config import Config, load_config

log = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _colors() -> dict[str, str]:
    # ANSI colors if colorama is around (Windows terminals need its init), plain text otherwise
    # cached: every init() call would wrap stdout again on Windows
    try:
        from colorama import init as _colorama_init

        _colorama_init()
        return {
            "cyan": "\x1b[36m",
            "purple": "\x1b[35m",
            "red": "\x1b[31m",
            "yellow": "\x1b[33m",
            "green": "\x1b[32m",
            "dim": "\x1b[2m",
            "bold": "\x1b[1m",
            "reset": "\x1b[0m",
        }
    except Exception:  # colorama not installed or terminal init failed
        return dict.fromkeys(("cyan", "purple", "red", "yellow", "green", "dim", "bold", "reset"), "")


# --- ASCII banner ---
def print_banner() -> None:
    c = _colors()
    banner = f"""
{c['dim']}┌────────────────────────────────────────────────────────────┐{c['reset']}
{c['dim']}│{c['reset']}{c['cyan']}{c['bold']}                 S u r f a c e S c a n{c['reset']}{c['dim']}                      │{c['reset']}
{c['dim']}├────────────────────────────────────────────────────────────┤{c['reset']}
{c['dim']}│{c['reset']}  execution surface inventory + severity triage            {c['dim']}│{c['reset']}
{c['dim']}└────────────────────────────────────────────────────────────┘{c['reset']}
"""
    print(banner)


# --- end banner ---

_TIER_COLOR = {"critical": "red", "high": "purple", "medium": "yellow", "low": "green"}


def print_tally(records: Sequence[NormalizedRecord]) -> None:
    # one line per tier, worst first
    c = _colors()
    counts = Counter(r.severity for r in records)
    for tier in sorted(SeverityTier, reverse=True):
        color = c[_TIER_COLOR[tier.label]]
        print(f"  {color}{tier.label:<9}{c['reset']} {counts.get(tier.label, 0)}")


def collect(cfg: Config, facts_path: str | None, scan: bool) -> list[RawFact]:
    facts: list[RawFact] = []
    if facts_path or not scan:  # default input is the configured facts file
        facts.extend(load_facts(facts_path or str(cfg.facts_path)))
    if scan:
        facts.extend(FilesystemScanner(cfg.scan_roots, hash_max_mb=cfg.hash_max_mb).scan())
        facts.extend(scan_services())
    return facts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="surfacescan", description="SurfaceScan execution surface inventory"
    )
    parser.add_argument("--facts", help="raw facts JSON written by external collectors")
    parser.add_argument(
        "--scan",
        action="store_true",
        help="run the built-in filesystem and service collectors",
    )
    parser.add_argument("--out", help="where to write the inventory (default from config)")
    parser.add_argument("--format", choices=FORMATS, default="json", help="output format")
    parser.add_argument("--workers", type=int, help="threads used to classify facts")
    parser.add_argument(
        "--serve",
        action="store_true",
        help="serve the written inventory on the local dashboard afterwards",
    )
    parser.add_argument("--quiet", action="store_true", help="no banner, no tally")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config()

    # set root logging level high enough so library warnings do not spam the console
    logging.basicConfig(level=getattr(logging, cfg.log_level, logging.ERROR))
    logging.getLogger("waitress").setLevel(logging.CRITICAL)  # suppress all waitress messages

    c = _colors()
    if not args.quiet:
        print_banner()

    out_path = args.out or str(cfg.output_path)
    try:
        facts = collect(cfg, args.facts, args.scan)
        records = normalize_all(facts, workers=args.workers or cfg.workers)
        written = write_inventory(records, out_path, args.format)
    except (ExportError, OSError, ValueError) as e:  # ValueError covers malformed facts JSON
        log.debug("inventory run failed", exc_info=True)
        print(f"{c['red']}Inventory failed:{c['reset']} {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        print_tally(records)
    print(
        f"{c['purple']}⬩{c['reset']}{c['cyan']}➢ {c['reset']}"
        f"Inventory complete. Wrote {len(records)} normalized entries to {written}"
    )

    if args.serve:
        if args.format != "json":
            print("--serve needs --format json, skipping dashboard", file=sys.stderr)
            return 0
        from dashboard.app import run_dashboard

        print(f"  dashboard: http://{cfg.host}:{cfg.port}/api/summary  (Ctrl+C to quit)")
        try:
            run_dashboard(cfg, written)
        except KeyboardInterrupt:
            print(f"\n{c['purple']}⬩{c['reset']}{c['cyan']}➢ {c['reset']} Shutting down...\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())  # run main function if this script is executed directly
