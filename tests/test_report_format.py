from __future__ import annotations

import json
from pathlib import Path

from bigoprobe.report.format_json import read_json, to_json, write_json
from bigoprobe.report.format_md import to_markdown, to_summary
from bigoprobe.report.models import (
    SCHEMA_VERSION,
    SENTINEL_DURATION_MS,
    AnalysisError,
    ComplexityClass,
    ConfidenceTier,
    EstimationReport,
    SamplePoint,
)


def _report(**overrides: object) -> EstimationReport:
    values: dict[str, object] = {
        "complexity_class": ComplexityClass.LINEAR,
        "confidence": ConfidenceTier.HIGH,
        "series": (
            SamplePoint(size=500, duration_ms=0.0123, valid_trials=5, jitter=0.04),
            SamplePoint(size=1000, duration_ms=2.5, valid_trials=4),
            SamplePoint(size=2000, duration_ms=SENTINEL_DURATION_MS, valid_trials=0, sentinel=True),
        ),
        "bailed_out": False,
        "exponent": 1.02,
        "r_squared": 0.991,
        "sizes": (500, 1000, 2000),
        "policy": "fixed",
        "strategy": "exponent",
        "elapsed_ms": 42.0,
    }
    values.update(overrides)
    return EstimationReport(**values)  # type: ignore[arg-type]


def test_json_roundtrip(tmp_path: Path) -> None:
    report = _report(
        bailed_out=True,
        failure=AnalysisError(kind="budget_exceeded", message="single trial at n=2000 took 2500.0 ms"),
    )
    path = tmp_path / "out" / "report.json"
    write_json(report, path)
    loaded = read_json(path)

    assert loaded == report
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["schema_version"] == SCHEMA_VERSION
    assert raw["big_o"] == "O(n)"
    assert raw["complexity_class"] == "linear"
    assert raw["series"][2]["sentinel"] is True


def test_json_omits_missing_failure() -> None:
    raw = json.loads(to_json(_report()))
    assert "failure" not in raw


def test_json_error_payload(tmp_path: Path) -> None:
    error = AnalysisError(kind="compile_error", message="no function defined in source")
    assert json.loads(to_json(error)) == {"error": {"kind": "compile_error", "message": "no function defined in source"}}
    path = tmp_path / "error.json"
    write_json(error, path)
    assert read_json(path) == error


def test_summary_lists_points() -> None:
    text = to_summary(_report(), ceiling_ms=2000.0)
    lines = text.splitlines()
    assert lines[0] == "O(n)  [linear]"
    assert "confidence: high" in lines[1]
    assert "12.30 µs" in text
    assert "2.5 ms" in text
    assert ">2000 ms" in text


def test_summary_error() -> None:
    error = AnalysisError(kind="compile_error", message="SyntaxError at line 2: invalid syntax")
    assert to_summary(error) == "error (compile_error): SyntaxError at line 2: invalid syntax"


def test_markdown_table_and_bailout_note() -> None:
    report = _report(
        complexity_class=ComplexityClass.CUBIC_OR_WORSE,
        confidence=ConfidenceTier.LOW,
        bailed_out=True,
        failure=AnalysisError(kind="budget_exceeded", message="cumulative time exceeded"),
    )
    text = to_markdown(report, ceiling_ms=2000.0)
    assert text.startswith("# bigoprobe report")
    assert "**O(n^3) or worse**" in text
    assert "stopped early" in text
    assert "| n | Duration | Valid trials | Jitter |" in text
    assert "| 2,000 | >2000 ms | 0 | 0.00 |" in text


def test_markdown_without_ceiling_marks_sentinel_unavailable() -> None:
    assert "| 2,000 | n/a | 0 | 0.00 |" in to_markdown(_report())
