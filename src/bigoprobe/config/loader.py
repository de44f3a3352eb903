from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from .schema import ProbeConfig

log = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = ".bigoprobe.yml"

_FLOAT_KEYS = (
    "per_trial_timeout_ms",
    "global_budget_ms",
    "min_valid_duration_ms",
    "calibration_target_ms",
    "outlier_ratio",
    "duration_floor_ms",
    "progressive_budget_fraction",
    "kill_grace_ms",
)

_INT_KEYS = (
    "trial_count",
    "smoke_input",
    "warmups",
    "max_inner_repeats",
    "progressive_start",
    "progressive_max_size",
    "progressive_points",
)

_CHOICE_KEYS = (
    "sampler_policy",
    "classifier_strategy",
    "aggregate",
    "isolation",
)


def _load_raw_config(path: Path) -> dict[str, Any]:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except Exception as e:
        log.warning("Failed to load %s (%s). Skipping.", path, e)
        return {}


def _get_int_list(raw: dict[str, Any], key: str) -> list[int] | None:
    if key not in raw:
        return None
    v = raw.get(key)
    if not isinstance(v, list):
        return None
    out: list[int] = []
    for item in v:
        try:
            out.append(int(item))
        except (TypeError, ValueError):
            continue
    return out


def _get_optional_int(raw: dict[str, Any], key: str) -> int | None:
    if key not in raw:
        return None
    v = raw.get(key)
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _get_optional_float(raw: dict[str, Any], key: str) -> float | None:
    if key not in raw:
        return None
    v = raw.get(key)
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _get_optional_str(raw: dict[str, Any], key: str) -> str | None:
    if key not in raw:
        return None
    v = raw.get(key)
    if v is None:
        return None
    return str(v).strip().lower()


def _get_bool(raw: dict[str, Any], key: str, default: bool) -> bool:
    if key not in raw:
        return default
    v = raw.get(key)
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        if v.strip().lower() in {"true", "yes", "1", "on"}:
            return True
        if v.strip().lower() in {"false", "no", "0", "off"}:
            return False
    return default


def merge_config(base: ProbeConfig, raw: dict[str, Any]) -> ProbeConfig:
    changes: dict[str, Any] = {}

    for key in _FLOAT_KEYS:
        value = _get_optional_float(raw, key)
        if value is not None:
            changes[key] = value

    for key in _INT_KEYS:
        value = _get_optional_int(raw, key)
        if value is not None:
            changes[key] = value

    for key in _CHOICE_KEYS:
        value = _get_optional_str(raw, key)
        if value is not None:
            changes[key] = value

    sizes = _get_int_list(raw, "sizes")
    if sizes is not None:
        changes["sizes"] = sizes

    if "function_name" in raw and raw.get("function_name"):
        changes["function_name"] = str(raw["function_name"]).strip()

    # null is meaningful here: it lifts a limit set by an earlier file.
    if "memory_limit_mb" in raw:
        changes["memory_limit_mb"] = _get_optional_int(raw, "memory_limit_mb")

    changes["calibrate"] = _get_bool(raw, "calibrate", base.calibrate)
    return dataclasses.replace(base, **changes)


def resolve_config_paths(root: Path, config_paths: Iterable[Path] | None) -> list[Path]:
    if config_paths is None:
        return [root / DEFAULT_CONFIG_NAME]
    resolved: list[Path] = []
    for path in config_paths:
        p = path
        if not p.is_absolute():
            p = root / p
        resolved.append(p)
    return resolved


def load_config(root: Path, config_paths: Iterable[Path] | None = None) -> ProbeConfig:
    paths = resolve_config_paths(root, config_paths)
    if config_paths is None and not paths[0].exists():
        return ProbeConfig()

    cfg = ProbeConfig()
    for path in paths:
        if not path.exists():
            log.warning("Config %s not found; skipping.", path)
            continue
        raw = _load_raw_config(path)
        if not isinstance(raw, dict):
            log.warning("Config %s is not a mapping; skipping.", path)
            continue
        cfg = merge_config(cfg, raw)
    return cfg
