from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from bigoprobe import __version__
from bigoprobe.analyze.estimate import estimate_complexity
from bigoprobe.config.loader import DEFAULT_CONFIG_NAME, load_config, resolve_config_paths
from bigoprobe.config.schema import (
    AGGREGATES,
    CLASSIFIER_STRATEGIES,
    ISOLATION_MODES,
    SAMPLER_POLICIES,
    ProbeConfig,
)
from bigoprobe.config.templates import CONFIG_PRESETS
from bigoprobe.config.validate import validate_config_paths
from bigoprobe.report.format_json import read_json, to_json, write_json
from bigoprobe.report.format_md import to_markdown, to_summary
from bigoprobe.report.models import AnalysisError
from bigoprobe.util.logging import setup_logging

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_ANALYSIS_ERROR = 2

# CLI flag -> config field
_OVERRIDES = {
    "policy": "sampler_policy",
    "strategy": "classifier_strategy",
    "trials": "trial_count",
    "per_trial_timeout_ms": "per_trial_timeout_ms",
    "budget_ms": "global_budget_ms",
    "min_duration_ms": "min_valid_duration_ms",
    "aggregate": "aggregate",
    "isolation": "isolation",
    "function": "function_name",
    "memory_limit_mb": "memory_limit_mb",
}


def _read_source(path_arg: str) -> str | None:
    if path_arg == "-":
        return sys.stdin.read()
    path = Path(path_arg)
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        log.error("Cannot read %s (%s)", path, exc)
        return None


def _apply_overrides(cfg: ProbeConfig, args: argparse.Namespace) -> ProbeConfig:
    changes: dict[str, Any] = {}
    for flag, field_name in _OVERRIDES.items():
        value = getattr(args, flag, None)
        if value is not None:
            changes[field_name] = value
    if args.size:
        changes["sizes"] = list(args.size)
    if args.no_calibrate:
        changes["calibrate"] = False
    return dataclasses.replace(cfg, **changes)


def _render(result: Any, fmt: str, ceiling_ms: float | None) -> str:
    if fmt == "json":
        return to_json(result)
    if fmt == "md":
        return to_markdown(result, ceiling_ms=ceiling_ms)
    return to_summary(result, ceiling_ms=ceiling_ms)


def _emit(result: Any, fmt: str, output: str | None, ceiling_ms: float | None) -> None:
    if not output:
        print(_render(result, fmt, ceiling_ms))
        return
    out_path = Path(output)
    if fmt == "json":
        write_json(result, out_path)
    else:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(_render(result, fmt, ceiling_ms) + "\n", encoding="utf-8")
    log.info("Wrote report to %s", out_path)


def cmd_analyze(args: argparse.Namespace) -> int:
    root = Path(args.root).resolve()
    config_paths = [Path(p) for p in args.config] if args.config else None
    cfg = _apply_overrides(load_config(root, config_paths), args)
    try:
        cfg = cfg.checked()
    except ValueError as exc:
        log.error("Invalid configuration: %s", exc)
        return EXIT_USAGE

    source = _read_source(args.source)
    if source is None:
        return EXIT_USAGE

    result = estimate_complexity(source, cfg)
    _emit(result, args.format, args.output, cfg.per_trial_timeout_ms)
    if isinstance(result, AnalysisError):
        return EXIT_ANALYSIS_ERROR
    return EXIT_OK


def cmd_render(args: argparse.Namespace) -> int:
    path = Path(args.report)
    try:
        result = read_json(path)
    except (OSError, ValueError) as exc:
        log.error("Cannot read report %s (%s)", path, exc)
        return EXIT_USAGE
    _emit(result, args.format, args.output, args.ceiling_ms)
    if isinstance(result, AnalysisError):
        return EXIT_ANALYSIS_ERROR
    return EXIT_OK


def cmd_init(args: argparse.Namespace) -> int:
    root = Path(args.path).resolve()
    target = Path(args.output) if args.output else root / DEFAULT_CONFIG_NAME
    if not target.is_absolute():
        target = root / target
    preset = str(args.preset or "full").lower()
    template = CONFIG_PRESETS.get(preset, CONFIG_PRESETS["full"])
    if target.exists() and not args.force:
        log.error("Config %s already exists. Use --force to overwrite.", target)
        return EXIT_USAGE
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(template, encoding="utf-8")
    log.info("Wrote config to %s", target)
    return EXIT_OK


def cmd_config_show(args: argparse.Namespace) -> int:
    root = Path(args.path).resolve()
    config_paths = [Path(p) for p in args.config] if args.config else None
    cfg = load_config(root, config_paths)
    text = yaml.safe_dump(dataclasses.asdict(cfg), sort_keys=False)
    if args.output:
        out_path = Path(args.output)
        if not out_path.is_absolute():
            out_path = root / out_path
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
    else:
        print(text)
    return EXIT_OK


def cmd_config_validate(args: argparse.Namespace) -> int:
    root = Path(args.path).resolve()
    config_paths = resolve_config_paths(root, [Path(p) for p in args.config] if args.config else None)
    if not args.config and not config_paths[0].exists():
        log.error("Config %s not found.", config_paths[0])
        return EXIT_USAGE
    errors = validate_config_paths(config_paths)
    if errors:
        for err in errors:
            log.error("%s", err)
        return EXIT_USAGE
    log.info("Config valid.")
    return EXIT_OK


def _add_analyze_args(a: argparse.ArgumentParser) -> None:
    a.add_argument("source", help="Python file defining the candidate function ('-' for stdin)")
    a.add_argument("--root", default=".", help="Directory holding .bigoprobe.yml (default: .)")
    a.add_argument(
        "--config",
        action="append",
        default=None,
        help="Config file path (repeatable, root-relative or absolute)",
    )
    a.add_argument("--policy", default=None, choices=sorted(SAMPLER_POLICIES), help="Input size policy")
    a.add_argument(
        "--strategy",
        default=None,
        choices=sorted(CLASSIFIER_STRATEGIES),
        help="Classifier (default: paired with the policy)",
    )
    a.add_argument("--trials", type=int, default=None, help="Trials per input size")
    a.add_argument("--per-trial-timeout-ms", type=float, default=None, help="Ceiling for a valid trial")
    a.add_argument("--budget-ms", type=float, default=None, help="Global time budget for the run")
    a.add_argument("--min-duration-ms", type=float, default=None, help="Resolution floor for a valid trial")
    a.add_argument("--aggregate", default=None, choices=sorted(AGGREGATES), help="mean or best-of (min)")
    a.add_argument("--isolation", default=None, choices=sorted(ISOLATION_MODES), help="Where the candidate runs")
    a.add_argument("--memory-limit-mb", type=int, default=None, help="Address space limit for the worker")
    a.add_argument("--function", default=None, help="Candidate function name (default: algoritmo)")
    a.add_argument(
        "--size",
        type=int,
        action="append",
        default=None,
        help="Input size for the fixed policy (repeatable)",
    )
    a.add_argument("--no-calibrate", action="store_true", help="Time single calls instead of calibrated batches")
    a.add_argument("--format", default="text", choices=["text", "json", "md"], help="Output format")
    a.add_argument("--output", default=None, help="Write output to path instead of stdout")


def _add_init_args(a: argparse.ArgumentParser) -> None:
    a.add_argument("path", nargs="?", default=".", help="Target directory (default: .)")
    a.add_argument("--output", default=None, help=f"Output path (default: {DEFAULT_CONFIG_NAME})")
    a.add_argument(
        "--preset",
        default="full",
        choices=sorted(CONFIG_PRESETS.keys()),
        help="Template preset (default: full)",
    )
    a.add_argument("--force", action="store_true", help="Overwrite existing config if present")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="bigoprobe", description="bigoprobe  Empirical Big-O estimation")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    sub = p.add_subparsers(dest="cmd", required=True)

    a = sub.add_parser("analyze", help="Estimate the complexity of a candidate function")
    _add_analyze_args(a)
    a.set_defaults(func=cmd_analyze)

    c = sub.add_parser("config", help="Config utilities")
    c_sub = c.add_subparsers(dest="config_cmd", required=True)
    c_show = c_sub.add_parser("show", help="Show merged config")
    c_show.add_argument("path", nargs="?", default=".", help="Config root (default: .)")
    c_show.add_argument(
        "--config",
        action="append",
        default=None,
        help="Config file path (repeatable, root-relative or absolute)",
    )
    c_show.add_argument("--output", default=None, help="Write output to path instead of stdout")
    c_show.set_defaults(func=cmd_config_show)

    c_validate = c_sub.add_parser("validate", help="Validate config file(s)")
    c_validate.add_argument("path", nargs="?", default=".", help="Config root (default: .)")
    c_validate.add_argument(
        "--config",
        action="append",
        default=None,
        help="Config file path (repeatable, root-relative or absolute)",
    )
    c_validate.set_defaults(func=cmd_config_validate)

    r = sub.add_parser("render", help="Render a saved JSON report")
    r.add_argument("report", help="Path to a report written with --format json")
    r.add_argument("--format", default="text", choices=["text", "json", "md"], help="Output format")
    r.add_argument("--ceiling-ms", type=float, default=None, help="Per-trial ceiling shown for unmeasured sizes")
    r.add_argument("--output", default=None, help="Write output to path instead of stdout")
    r.set_defaults(func=cmd_render)

    i = sub.add_parser("init", help="Create a bigoprobe configuration file")
    _add_init_args(i)
    i.set_defaults(func=cmd_init)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(bool(args.verbose))
    return int(args.func(args))
