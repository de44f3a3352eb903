from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from .schema import AGGREGATES, CLASSIFIER_STRATEGIES, ISOLATION_MODES, SAMPLER_POLICIES

KNOWN_KEYS = {
    "sampler_policy",
    "classifier_strategy",
    "trial_count",
    "per_trial_timeout_ms",
    "global_budget_ms",
    "min_valid_duration_ms",
    "aggregate",
    "sizes",
    "function_name",
    "smoke_input",
    "warmups",
    "calibrate",
    "calibration_target_ms",
    "max_inner_repeats",
    "outlier_ratio",
    "duration_floor_ms",
    "progressive_start",
    "progressive_max_size",
    "progressive_points",
    "progressive_budget_fraction",
    "isolation",
    "memory_limit_mb",
    "kill_grace_ms",
}


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_optional_number(raw: dict[str, Any], key: str, errors: list[str], positive: bool = False) -> None:
    if key not in raw:
        return
    value = raw.get(key)
    if value is None:
        return
    if not _is_number(value):
        errors.append(f"{key} must be a number")
        return
    if positive and value <= 0:
        errors.append(f"{key} must be positive")


def _validate_optional_int(raw: dict[str, Any], key: str, errors: list[str], minimum: int | None = None) -> None:
    if key not in raw:
        return
    value = raw.get(key)
    if value is None:
        return
    if not _is_int(value):
        errors.append(f"{key} must be an integer")
        return
    if minimum is not None and value < minimum:
        errors.append(f"{key} must be >= {minimum}")


def _validate_optional_str_choice(raw: dict[str, Any], key: str, choices: set[str], errors: list[str]) -> None:
    if key not in raw:
        return
    value = raw.get(key)
    if value is None:
        return
    if not isinstance(value, str):
        errors.append(f"{key} must be a string")
        return
    if value.lower() not in choices:
        errors.append(f"{key} must be one of: {', '.join(sorted(choices))}")


def _validate_optional_bool(raw: dict[str, Any], key: str, errors: list[str]) -> None:
    if key not in raw:
        return
    value = raw.get(key)
    if value is None:
        return
    if not _is_bool(value):
        errors.append(f"{key} must be a boolean")


def _validate_sizes(raw: dict[str, Any], errors: list[str]) -> None:
    if "sizes" not in raw:
        return
    value = raw.get("sizes")
    if not isinstance(value, list) or not all(_is_int(v) for v in value):
        errors.append("sizes must be a list of integers")
        return
    if not value:
        return
    if any(v <= 0 for v in value):
        errors.append("sizes must be positive")
    if len(set(value)) < 3:
        errors.append("sizes must contain at least 3 distinct values")


def validate_raw_config(raw: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    for key in raw.keys():
        if key not in KNOWN_KEYS:
            errors.append(f"Unknown key: {key}")

    _validate_optional_str_choice(raw, "sampler_policy", SAMPLER_POLICIES, errors)
    _validate_optional_str_choice(raw, "classifier_strategy", CLASSIFIER_STRATEGIES, errors)
    _validate_optional_str_choice(raw, "aggregate", AGGREGATES, errors)
    _validate_optional_str_choice(raw, "isolation", ISOLATION_MODES, errors)
    _validate_sizes(raw, errors)
    _validate_optional_bool(raw, "calibrate", errors)

    if "function_name" in raw:
        value = raw.get("function_name")
        if not isinstance(value, str) or not value.isidentifier():
            errors.append("function_name must be a valid identifier")

    for key in [
        "per_trial_timeout_ms",
        "global_budget_ms",
        "calibration_target_ms",
        "duration_floor_ms",
        "progressive_budget_fraction",
    ]:
        _validate_optional_number(raw, key, errors, positive=True)
    for key in ["min_valid_duration_ms", "outlier_ratio", "kill_grace_ms"]:
        _validate_optional_number(raw, key, errors)

    _validate_optional_int(raw, "trial_count", errors, minimum=1)
    _validate_optional_int(raw, "max_inner_repeats", errors, minimum=1)
    _validate_optional_int(raw, "progressive_start", errors, minimum=1)
    _validate_optional_int(raw, "progressive_max_size", errors, minimum=1)
    _validate_optional_int(raw, "progressive_points", errors, minimum=3)
    _validate_optional_int(raw, "warmups", errors, minimum=0)
    _validate_optional_int(raw, "smoke_input", errors)
    _validate_optional_int(raw, "memory_limit_mb", errors, minimum=1)

    per_trial = raw.get("per_trial_timeout_ms")
    floor = raw.get("min_valid_duration_ms")
    if _is_number(per_trial) and _is_number(floor) and per_trial <= floor:
        errors.append("per_trial_timeout_ms must exceed min_valid_duration_ms")

    return errors


def validate_config_path(path: Path) -> list[str]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except Exception as exc:
        return [f"{path}: failed to read ({exc})"]
    if not isinstance(raw, dict):
        return [f"{path}: config must be a mapping"]
    errors = validate_raw_config(raw)
    return [f"{path}: {err}" for err in errors]


def validate_config_paths(paths: Iterable[Path]) -> list[str]:
    errors: list[str] = []
    for path in paths:
        if not path.exists():
            errors.append(f"{path}: file not found")
            continue
        errors.extend(validate_config_path(path))
    return errors
