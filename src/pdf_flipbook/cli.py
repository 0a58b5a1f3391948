"""
Command-line interface for pdf-flipbook.

This file focuses on parsing arguments and dispatching to the real work.
Keeping this separate makes the code easier to read and test.
"""

from __future__ import annotations

import argparse
import json
import subprocess
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict

from . import __version__
from .config import (
    DEFAULT_BUILD,
    _require_bool,
    deep_merge,
    dump_default_build_yaml,
    load_yaml,
    processing_config_from_options,
    validate_keys,
)
from .utils import UserError, ensure_dir_path, normalize_path, parse_size


TOP_LEVEL_EXAMPLES = """Examples:
  python -m pdf_flipbook build --pdf "book.pdf" --out_dir "out/book" --dpi 200
  python -m pdf_flipbook build --pdf "book.pdf" --out_dir "out/book" --covers_facing --format png
  python -m pdf_flipbook inspect --pdf "book.pdf"
  python -m pdf_flipbook fit --container 1280x800 --page 1000x1400
"""

BUILD_EXAMPLES = """Examples:
  python -m pdf_flipbook build --pdf "book.pdf" --out_dir "out/book"
  python -m pdf_flipbook build --pdf "book.pdf" --out_dir "out/book" --no_split --dry-run
  python -m pdf_flipbook build --dump-default-config
  python -m pdf_flipbook build --pdf "book.pdf" --out_dir "out/book" --config "configs/build.yaml"
"""

INSPECT_EXAMPLES = """Examples:
  python -m pdf_flipbook inspect --pdf "book.pdf"
  python -m pdf_flipbook inspect --pdf "book.pdf" --spread_threshold 1.4 --json
"""

FIT_EXAMPLES = """Examples:
  python -m pdf_flipbook fit --container 1280x800 --page 1000x1400
  python -m pdf_flipbook fit --container 1280x800 --page 1000x1400 --single --padding 20
  python -m pdf_flipbook fit --container 1280x800 --page 1000x1400 --opening
"""

BUILD_TOP_LEVEL_KEYS = set(DEFAULT_BUILD.keys())


def _extract_build_section(loaded: Dict[str, Any]) -> Dict[str, Any]:
    """Support either root config keys or a build wrapper."""

    if "build" in loaded:
        raw_section = loaded["build"]
        if not isinstance(raw_section, dict):
            raise UserError("config.build must be a mapping/object.")
        section = raw_section
        validate_keys(section, BUILD_TOP_LEVEL_KEYS, "config.build")
    else:
        section = loaded
        validate_keys(section, BUILD_TOP_LEVEL_KEYS, "config")

    return section


def _build_effective_config(
    args: argparse.Namespace,
) -> tuple[Dict[str, Any], Path | None]:
    """Resolve defaults < YAML config < explicit CLI flags."""

    effective = deep_merge(DEFAULT_BUILD, {})
    config_path: Path | None = None
    if hasattr(args, "config"):
        config_path = normalize_path(args.config)
        loaded = load_yaml(config_path)
        yaml_section = _extract_build_section(loaded)
        effective = deep_merge(effective, yaml_section)

    raw_args = vars(args)
    cli_top_overrides: Dict[str, Any] = {}
    for key in BUILD_TOP_LEVEL_KEYS:
        if key in raw_args:
            cli_top_overrides[key] = raw_args[key]

    effective = deep_merge(effective, cli_top_overrides)
    return effective, config_path


def _verbosity_from_args(args: argparse.Namespace) -> str:
    """Resolve global verbosity mode from top-level flags."""

    if getattr(args, "quiet", False):
        return "quiet"
    if getattr(args, "verbose", False):
        return "verbose"
    return "normal"


def _add_processing_flags(parser: argparse.ArgumentParser) -> None:
    """Flags shared by build and inspect. SUPPRESS keeps YAML values visible."""

    parser.add_argument(
        "--dpi",
        type=float,
        default=argparse.SUPPRESS,
        help="Render DPI (default: 200, recommended 150-300).",
    )
    parser.add_argument(
        "--spread_threshold",
        type=float,
        default=argparse.SUPPRESS,
        help="Aspect ratio (>1.0) at which a page counts as a spread (default: 1.2).",
    )
    parser.add_argument(
        "--no_split",
        dest="enable_spread_split",
        action="store_false",
        default=argparse.SUPPRESS,
        help="Never split spread pages.",
    )
    parser.add_argument(
        "--cover_may_be_spread",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Allow page 1 itself to be split when it is at least 1.8:1.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf-flipbook",
        description="Turn a PDF into page images laid out as a page-flip book.",
        epilog=TOP_LEVEL_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=__version__)
    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress non-error console logs.",
    )
    verbosity_group.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug-level console logs.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser(
        "build",
        help="Render pages, split spreads and write a book layout.",
        epilog=BUILD_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    build.add_argument(
        "--pdf",
        default=argparse.SUPPRESS,
        help="Input PDF path (required unless --dump-default-config).",
    )
    build.add_argument(
        "--out_dir",
        default=argparse.SUPPRESS,
        help="Output folder (required unless --dump-default-config).",
    )
    build.add_argument(
        "--config",
        default=argparse.SUPPRESS,
        help="Optional YAML config for build settings.",
    )
    build.add_argument(
        "--dump-default-config",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Print default build YAML config and exit.",
    )
    _add_processing_flags(build)
    build.add_argument(
        "--max_width",
        type=float,
        default=argparse.SUPPRESS,
        help="Maximum raster width in pixels (default: 1600).",
    )
    build.add_argument(
        "--max_height",
        type=float,
        default=argparse.SUPPRESS,
        help="Maximum raster height in pixels (default: 1600).",
    )
    build.add_argument(
        "--on_page_error",
        choices=["abort", "placeholder"],
        default=argparse.SUPPRESS,
        help="abort=stop the run (default), placeholder=blank page and continue.",
    )
    build.add_argument(
        "--workers",
        type=int,
        default=argparse.SUPPRESS,
        help="Pages rendered concurrently (default: 1).",
    )
    build.add_argument(
        "--covers_facing",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Open on back cover + front cover, then the inner pages.",
    )
    build.add_argument(
        "--format",
        dest="image_format",
        choices=["jpeg", "png"],
        default=argparse.SUPPRESS,
        help="Output image format (default: jpeg).",
    )
    build.add_argument(
        "--jpeg_quality",
        type=int,
        default=argparse.SUPPRESS,
        help="JPEG quality 1-100 (default: 92).",
    )
    build.add_argument(
        "--prefix",
        default=argparse.SUPPRESS,
        help="Filename prefix (default: PDF stem).",
    )
    build.add_argument(
        "--overwrite",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Overwrite existing files.",
    )
    build.add_argument(
        "--dry-run",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Process pages but do not write files.",
    )
    build.add_argument(
        "--manifest",
        default=argparse.SUPPRESS,
        help="Manifest path (default: out_dir/manifest.json).",
    )

    inspect = subparsers.add_parser(
        "inspect",
        help="Show page sizes and spread decisions without rendering.",
        epilog=INSPECT_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    inspect.add_argument("--pdf", required=True, help="Input PDF path.")
    _add_processing_flags(inspect)
    inspect.add_argument("--json", action="store_true", help="Print JSON instead of text.")

    fit = subparsers.add_parser(
        "fit",
        help="Compute display size for a page or opening.",
        epilog=FIT_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    fit.add_argument("--container", required=True, help="Container size, e.g. 1280x800.")
    fit.add_argument("--page", required=True, help="Page size, e.g. 1000x1400.")
    fit.add_argument("--single", action="store_true", help="Single-page view (default: spread view).")
    fit.add_argument("--padding", type=float, help="Padding in pixels (default: 40, or 100 with --opening).")
    fit.add_argument(
        "--opening",
        action="store_true",
        help="Size a page so the full two-page opening fits (min 300 px per axis).",
    )

    return parser


def _command_string(argv: list[str]) -> str:
    """Reconstruct a command string for the manifest."""

    return subprocess.list2cmdline(argv)


def _command_argv_for_manifest(argv: list[str] | None) -> list[str]:
    """Choose argv used to record manifest command faithfully."""

    if argv is None:
        return list(sys.argv)
    return [sys.argv[0], *argv]


def _run_build(args: argparse.Namespace, argv: list[str] | None, verbosity: str) -> int:
    if getattr(args, "dump_default_config", False):
        print(dump_default_build_yaml())
        return 0

    if not hasattr(args, "pdf") or not hasattr(args, "out_dir"):
        raise UserError("build requires --pdf and --out_dir unless --dump-default-config is used.")

    effective_cfg, config_path = _build_effective_config(args)
    pdf_path = normalize_path(args.pdf)
    out_dir = normalize_path(args.out_dir)
    ensure_dir_path(out_dir, "Output directory")
    manifest_value = effective_cfg.get("manifest")
    manifest_path = (
        normalize_path(str(manifest_value)) if manifest_value else out_dir / "manifest.json"
    )

    options = deep_merge(effective_cfg, {})
    options["version"] = __version__
    options["verbosity"] = verbosity
    if config_path is not None:
        options["config_path"] = str(config_path)

    from .builder import build_book

    build_book(
        pdf_path=pdf_path,
        out_dir=out_dir,
        config=processing_config_from_options(effective_cfg),
        prefix=str(effective_cfg["prefix"] or pdf_path.stem),
        image_format=str(effective_cfg["image_format"]),
        jpeg_quality=int(effective_cfg["jpeg_quality"]),
        covers_facing=_require_bool(effective_cfg["covers_facing"], "config.covers_facing"),
        overwrite=_require_bool(effective_cfg["overwrite"], "config.overwrite"),
        dry_run=_require_bool(effective_cfg["dry_run"], "config.dry_run"),
        manifest_path=manifest_path,
        command_string=_command_string(_command_argv_for_manifest(argv)),
        options=options,
    )
    return 0


def _run_inspect(args: argparse.Namespace) -> int:
    from .document import open_document
    from .spread import classify_pages, page_info

    overrides = {key: value for key, value in vars(args).items() if key in DEFAULT_BUILD}
    config = processing_config_from_options(deep_merge(DEFAULT_BUILD, overrides))

    with open_document(normalize_path(args.pdf)) as document:
        pages = [document.load_page(index) for index in range(document.page_count)]
        infos = [page_info(page, index, config) for index, page in enumerate(pages)]
        baseline, flags = classify_pages([info.aspect_ratio for info in infos], config)

    rows = []
    for info, split in zip(infos, flags):
        row = asdict(info)
        row["split"] = split
        rows.append(row)

    if args.json:
        print(json.dumps({"baseline_ratio": baseline, "pages": rows}, indent=2))
        return 0

    print(f"Baseline (cover) ratio: {baseline:.3f}")
    for row in rows:
        print(
            f"p{row['page_number']:>4}  {row['width']:.1f}x{row['height']:.1f}  "
            f"ratio={row['aspect_ratio']:.3f}  spread={'yes' if row['is_spread'] else 'no'}  "
            f"split={'yes' if row['split'] else 'no'}"
        )
    outputs = sum(2 if row["split"] else 1 for row in rows)
    print(f"{len(rows)} source page(s) -> {outputs} book page(s)")
    return 0


def _run_fit(args: argparse.Namespace) -> int:
    from .sizing import fit_opening, fit_page

    container_width, container_height = parse_size(args.container, "--container")
    page_width, page_height = parse_size(args.page, "--page")

    if args.opening:
        padding = 100 if args.padding is None else args.padding
        result = fit_opening(container_width, container_height, page_width, page_height, padding=padding)
    else:
        padding = 40 if args.padding is None else args.padding
        result = fit_page(
            container_width,
            container_height,
            page_width,
            page_height,
            is_spread_view=not args.single,
            padding=padding,
        )
    print(json.dumps(asdict(result)))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        verbosity = _verbosity_from_args(args)

        if args.command == "build":
            return _run_build(args, argv, verbosity)
        if args.command == "inspect":
            return _run_inspect(args)
        if args.command == "fit":
            return _run_fit(args)

        raise UserError("Unknown command. Use --help for usage.")
    except UserError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
