from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .models import (
    SCHEMA_VERSION,
    AnalysisError,
    ComplexityClass,
    ConfidenceTier,
    EstimationReport,
    SamplePoint,
)


def to_json(result: EstimationReport | AnalysisError) -> str:
    if isinstance(result, AnalysisError):
        return json.dumps({"error": result.to_dict()}, indent=2)
    return json.dumps(result.to_dict(), indent=2)


def write_json(result: EstimationReport | AnalysisError, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_json(result), encoding="utf-8")


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def report_from_dict(raw: dict[str, Any]) -> EstimationReport | AnalysisError:
    error_raw = raw.get("error")
    if isinstance(error_raw, dict):
        return AnalysisError(kind=str(error_raw.get("kind", "")), message=str(error_raw.get("message", "")))
    series = []
    for p in raw.get("series", []):
        series.append(
            SamplePoint(
                size=int(p.get("size", 0)),
                duration_ms=float(p.get("duration_ms", 0.0)),
                valid_trials=int(p.get("valid_trials", 0)),
                jitter=float(p.get("jitter", 0.0) or 0.0),
                sentinel=bool(p.get("sentinel", False)),
            )
        )
    failure = None
    failure_raw = raw.get("failure")
    if isinstance(failure_raw, dict):
        failure = AnalysisError(kind=str(failure_raw.get("kind", "")), message=str(failure_raw.get("message", "")))
    try:
        complexity_class = ComplexityClass(str(raw.get("complexity_class", "unknown")))
    except ValueError:
        complexity_class = ComplexityClass.UNKNOWN
    try:
        confidence = ConfidenceTier(str(raw.get("confidence", "low")))
    except ValueError:
        confidence = ConfidenceTier.LOW
    return EstimationReport(
        complexity_class=complexity_class,
        confidence=confidence,
        series=tuple(series),
        bailed_out=bool(raw.get("bailed_out", False)),
        exponent=_optional_float(raw.get("exponent")),
        r_squared=_optional_float(raw.get("r_squared")),
        sizes=tuple(int(n) for n in raw.get("sizes", [])),
        policy=str(raw.get("policy", "")),
        strategy=str(raw.get("strategy", "")),
        elapsed_ms=float(raw.get("elapsed_ms", 0.0) or 0.0),
        failure=failure,
        schema_version=int(raw.get("schema_version", SCHEMA_VERSION)),
    )


def read_json(path: Path) -> EstimationReport | AnalysisError:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("report must be a JSON object")
    return report_from_dict(data)
