"""CLI shell for inspecting text streams through the lookahead reader."""
from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from functools import partial
from pathlib import Path
from typing import Iterable, List, Optional

from common.config import load_reader_config
from common.errors import ReaderError
from common.models import ReaderConfig, ScanSummary
from common.progress import ProgressLogger
from core.reader import LookaheadLineReader, iter_logical_lines, scan_stream

SUPPORTED_EXTENSIONS = {".csv", ".tsv", ".txt"}


def collect_input_files(targets: Iterable[Path]) -> List[Path]:
    files: List[Path] = []
    for target in targets:
        if target.is_dir():
            files.extend(
                sorted(
                    p
                    for p in target.rglob("*")
                    if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
                )
            )
        elif target.is_file():
            files.append(target)
    deduped = []
    seen = set()
    for path in files:
        if path in seen:
            continue
        seen.add(path)
        deduped.append(path)
    return deduped


def resolve_config(args: argparse.Namespace) -> ReaderConfig:
    config_path = Path(args.config) if getattr(args, "config", None) else None
    return load_reader_config(args.profile, config_path=config_path)


def render_summary(summary: ScanSummary) -> None:
    terminators = summary.terminators
    print(
        f"[scan] {summary.source} chars={summary.characters} lines={summary.lines} "
        f"longest={summary.longest_line} "
        f"cr={terminators['cr']} lf={terminators['lf']} crlf={terminators['crlf']}"
    )


def command_scan(args: argparse.Namespace) -> None:
    files = collect_input_files(Path(p) for p in args.inputs)
    if not files:
        raise SystemExit("No input files found. Provide files or directories containing CSV/TSV/TXT data.")

    config = resolve_config(args)
    progress_logger = ProgressLogger(Path(args.progress_log) if args.progress_log else None)

    summaries: List[ScanSummary] = []
    for path in files:
        report = partial(progress_logger.emit, str(path)) if progress_logger.path else None
        with LookaheadLineReader.from_path(path, config) as reader:
            summary = scan_stream(reader, block_size=config.profile.buffer_size, progress=report)
        summaries.append(summary)
        if not args.json:
            render_summary(summary)

    if args.json:
        print(json.dumps([asdict(summary) for summary in summaries], indent=2))


def command_lines(args: argparse.Namespace) -> None:
    config = resolve_config(args)
    with LookaheadLineReader.from_path(Path(args.input), config) as reader:
        for emitted, (line_number, text) in enumerate(iter_logical_lines(reader), start=1):
            print(f"{line_number}:{text}")
            if args.limit and emitted >= args.limit:
                break


def command_peek(args: argparse.Namespace) -> None:
    if args.count < 0:
        raise SystemExit("--count must not be negative")
    config = resolve_config(args)
    with LookaheadLineReader.from_path(Path(args.input), config) as reader:
        buffer = [""] * args.count
        valid = reader.look_ahead_into(buffer)
        print(repr("".join(buffer[:valid])))
        print(f"[peek] position={reader.position} line={reader.current_line_number}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lareader", description="Inspect line structure of text/CSV files with a lookahead reader"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    def add_config_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--profile",
            default="default",
            help="Profile from config/defaults.json (e.g., default, low_memory, workstation)",
        )
        sub.add_argument("--config", help="Path to an alternative configuration JSON")

    scan = subparsers.add_parser("scan", help="Count characters, lines, and terminators")
    scan.add_argument("inputs", nargs="+", help="Files or directories to process")
    add_config_options(scan)
    scan.add_argument(
        "--progress-log",
        help="Path to JSONL file for structured progress events",
    )
    scan.add_argument("--json", action="store_true", help="Emit summaries as JSON")
    scan.set_defaults(func=command_scan)

    lines = subparsers.add_parser("lines", help="Print logical lines with their numbers")
    lines.add_argument("input", help="File to read")
    add_config_options(lines)
    lines.add_argument("--limit", type=int, default=0, help="Stop after this many lines")
    lines.set_defaults(func=command_lines)

    peek = subparsers.add_parser("peek", help="Show upcoming characters without consuming them")
    peek.add_argument("input", help="File to read")
    add_config_options(peek)
    peek.add_argument("--count", type=int, default=16, help="Number of characters to look ahead")
    peek.set_defaults(func=command_peek)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        args.func(args)
    except ReaderError as exc:
        raise SystemExit(f"error: {exc}") from exc


if __name__ == "__main__":
    main()
