from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, PipelineConfig, load_config, resolve_config_path
from ..excel.reader import StructuralError, extract_rows, get_sheet, load_workbook_source
from ..logging.init import log_summary, setup_logging
from ..models.calendar_window import CalendarWindow, WindowScope
from ..services import calendar
from ..services.export import ExportError, export_records
from ..services.orchestrator import (
    ProcessingError,
    REPORT_KINDS,
    first_messages,
    process_files,
    read_parent_child_pairs,
    scan_excel_files,
)
from ..services.summary import render_summary_line

"""CLI entrypoint.

    python -m incident_ingest.cli [PATH ...] [--config FILE] [--report KIND] [--parent-child FILE]
        [--output FILE] [--window-from DATE --window-to DATE [--window-kind KIND]]
        [--debug] [--inspect-data] [--max-messages N]

PATH may be a workbook or a directory (scanned non-recursively). Without
PATH the configured ``source_directory`` is used. KIND picks the sheet type:
``incident`` (default), ``corrective`` or ``releases``.

Exit codes: 0 every file succeeded, 2 some file failed or had invalid rows,
1 fatal (configuration, missing inputs, bad window, export failure).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = False) -> None:
    """Load ``.env`` with python-dotenv; problems only produce a warning."""
    try:
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
    except OSError as e:  # pragma: no cover
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="incident_ingest", description="Incident spreadsheet ingestion pipeline"
    )
    p.add_argument("paths", nargs="*", type=Path, help="Workbooks or directories to process")
    p.add_argument("--config", type=Path, default=None, help="Pipeline config (YAML)")
    p.add_argument("--report", choices=REPORT_KINDS, default="incident", help="Sheet type to process")
    p.add_argument("--parent-child", type=Path, default=None, help="Parent/child linkage workbook")
    p.add_argument("--output", type=Path, default=None, help="Export derived records (.csv, .xlsx, .jsonl)")
    p.add_argument("--window-from", default=None, help="Cut window start (YYYY-MM-DD)")
    p.add_argument("--window-to", default=None, help="Cut window end (YYYY-MM-DD)")
    p.add_argument(
        "--window-kind", choices=[k.value for k in calendar.WindowKind], default=None,
        help="Cut window kind (default: custom when bounds are given)",
    )
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print sheet headers & first rows then exit")
    p.add_argument("--max-messages", type=int, default=5, help="Errors/warnings listed per file")
    return p.parse_args(argv)


def _window_from_args(args: argparse.Namespace, cfg: PipelineConfig) -> CalendarWindow | None:
    if args.window_kind is None and args.window_from is None and args.window_to is None:
        return None
    data: dict[str, str] = {"kind": args.window_kind or calendar.WindowKind.CUSTOM.value}
    if args.window_from is not None:
        data["from"] = args.window_from
    if args.window_to is not None:
        data["to"] = args.window_to
    scope = WindowScope.CORRECTIVE.value if args.report == "corrective" else cfg.scope
    return calendar.parse_window(data, scope=scope)


def _collect_files(paths: list[Path], cfg: PipelineConfig) -> list[Path]:
    if not paths:
        if not cfg.source_directory:
            raise ProcessingError("no input paths given and no source_directory configured")
        paths = [Path(cfg.source_directory)]
    files: list[Path] = []
    for p in paths:
        if p.is_dir():
            files.extend(scan_excel_files(p))
        elif p.is_file():
            files.append(p)
        else:
            raise ProcessingError(f"input not found: {p}")
    return files


def _inspect_data(files: list[Path], cfg: PipelineConfig, report: str) -> int:
    layout = cfg.layout(report)
    if not files:
        print("inspect: no .xlsx files")
        return EXIT_SUCCESS_ALL
    for f in files:
        print(f"FILE: {f.name}")
        warnings: list[str] = []
        try:
            sheet = get_sheet(load_workbook_source(f), layout.sheet_name)
            rows = extract_rows(sheet, layout, warnings)
            print(f"  SHEET: {layout.sheet_name} headers={layout.headers}")
            for _, row in zip(range(3), rows):
                print("    row=", row.to_dict())
        except StructuralError as e:
            print(f"  error={e}")
        for w in warnings:
            print(f"  warning={w}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] must not fall back to sys.argv (pytest args)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    _load_env_file(Path(".env"))

    try:
        cfg = load_config(resolve_config_path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        window = _window_from_args(args, cfg)
    except calendar.WindowValidationError as e:
        logger.error(f"window: {e}")
        return EXIT_FATAL

    try:
        files = _collect_files(args.paths, cfg)
    except ProcessingError as e:
        logger.error(f"input: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(files, cfg, args.report)

    pairs = None
    if args.parent_child is not None:
        try:
            pairs = read_parent_child_pairs(args.parent_child, cfg)
        except StructuralError as e:
            logger.error(f"parent-child: {e}")
            return EXIT_FATAL
        logger.info(f"loaded {len(pairs)} parent/child pairs from {args.parent_child.name}")

    logger.info(f"Processing {len(files)} workbook(s)")
    result = process_files(files, cfg, window=window, pairs=pairs, report=args.report)

    for file_result in result.results:
        for line in first_messages(file_result, args.max_messages):
            logger.info(f"{file_result.file_name}: {line}")

    if args.output is not None:
        records = [r for fr in result.results for r in fr.records]
        try:
            export_records(records, args.output, None if args.output.suffix else cfg.export_format)
        except ExportError as e:
            logger.error(f"export: {e}")
            return EXIT_FATAL

    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(result)[len("SUMMARY "):])

    if result.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
