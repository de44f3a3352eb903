from __future__ import annotations

import json

import pytest

from bigoprobe.analyze.estimate import estimate_complexity
from bigoprobe.config.schema import ProbeConfig
from bigoprobe.report.models import AnalysisError, ComplexityClass, EstimationReport
from bigoprobe.sandbox.worker import (
    WorkerResult,
    config_from_payload,
    config_to_payload,
    hard_limit_seconds,
    parse_worker_output,
    run_isolated,
)


def _lines(*messages: dict) -> list[str]:
    return [json.dumps(m) for m in messages]


def test_parse_complete_run() -> None:
    lines = _lines(
        {"sizes": [10, 20, 40]},
        {"point": {"size": 10, "duration_ms": 1.0, "valid_trials": 5, "jitter": 0.1, "sentinel": False}},
        {"point": {"size": 20, "duration_ms": 2.0, "valid_trials": 5, "jitter": 0.0, "sentinel": False}},
        {"point": {"size": 40, "duration_ms": 4.0, "valid_trials": 4, "jitter": 0.0, "sentinel": False}},
        {"done": {"bailed_out": False, "elapsed_ms": 40.0, "failed_trials": 1, "last_error": "ValueError: x"}},
    )
    result = parse_worker_output(lines, killed=False, limit_seconds=16.0, returncode=0)
    assert isinstance(result, WorkerResult)
    assert result.sizes == (10, 20, 40)
    assert [p.duration_ms for p in result.series] == [1.0, 2.0, 4.0]
    assert not result.bailed_out
    assert result.failed_trials == 1
    assert result.last_error == "ValueError: x"


def test_parse_killed_run_keeps_partial_points() -> None:
    lines = _lines(
        {"sizes": [10, 20, 40]},
        {"point": {"size": 10, "duration_ms": 1.0, "valid_trials": 5}},
    )
    lines.append("garbage from a dying process")
    result = parse_worker_output(lines, killed=True, limit_seconds=3.5)
    assert isinstance(result, WorkerResult)
    assert result.bailed_out
    assert result.bail_reason == "worker killed after 3.5 s"
    assert len(result.series) == 1


def test_parse_crashed_run_is_not_a_bailout() -> None:
    lines = _lines(
        {"sizes": [1, 2, 3]},
        {"point": {"size": 1, "duration_ms": 1.0, "valid_trials": 5}},
    )
    result = parse_worker_output(lines, killed=False, limit_seconds=1.0, returncode=-11)
    assert isinstance(result, WorkerResult)
    assert not result.bailed_out
    assert "code -11" in result.crash_reason
    assert len(result.series) == 1


def test_parse_error_line() -> None:
    lines = _lines({"error": {"kind": "compile_error", "message": "SyntaxError at line 1: bad"}})
    result = parse_worker_output(lines, killed=False, limit_seconds=1.0, returncode=0)
    assert result == AnalysisError(kind="compile_error", message="SyntaxError at line 1: bad")


def test_payload_forces_inline_isolation() -> None:
    cfg = ProbeConfig(isolation="subprocess", trial_count=3, sizes=[1, 2, 3])
    payload = config_to_payload(cfg)
    payload["not_a_field"] = 1
    restored = config_from_payload(payload)
    assert restored.isolation == "inline"
    assert restored.trial_count == 3
    assert restored.sizes == [1, 2, 3]


def test_hard_limit_is_budget_plus_grace() -> None:
    for policy in ("fixed", "progressive"):
        cfg = ProbeConfig(sampler_policy=policy, global_budget_ms=4000.0, kill_grace_ms=1000.0)
        assert hard_limit_seconds(cfg) == pytest.approx(5.0)


def test_isolated_run_measures_candidate() -> None:
    source = "def algoritmo(n):\n    if n == 10:\n        print('noise')\n    return sum(range(n))\n"
    cfg = ProbeConfig(sizes=[100, 200, 400, 800], trial_count=3, global_budget_ms=10000.0)
    result = run_isolated(source, cfg)
    assert isinstance(result, WorkerResult)
    assert result.sizes == (100, 200, 400, 800)
    assert [p.size for p in result.series] == [100, 200, 400, 800]
    assert not result.bailed_out


def test_isolated_compile_error() -> None:
    result = run_isolated("def algoritmo(n) return n", ProbeConfig())
    assert isinstance(result, AnalysisError)
    assert result.kind == "compile_error"


def test_runaway_candidate_is_killed() -> None:
    source = "import time\n\ndef algoritmo(n):\n    if n > 10:\n        time.sleep(5)\n    return n\n"
    cfg = ProbeConfig(global_budget_ms=500.0, kill_grace_ms=500.0)
    result = run_isolated(source, cfg)
    assert isinstance(result, WorkerResult)
    assert result.bailed_out
    assert "killed" in result.bail_reason


def test_exiting_worker_reports_runtime_error() -> None:
    source = "import os\n\ndef algoritmo(n):\n    if n > 10:\n        os._exit(3)\n    return n\n"
    result = estimate_complexity(source, ProbeConfig(isolation="subprocess"))
    assert isinstance(result, EstimationReport)
    assert not result.bailed_out
    assert result.complexity_class is ComplexityClass.UNKNOWN
    assert result.failure is not None
    assert result.failure.kind == "runtime_error"
    assert "code 3" in result.failure.message


def test_sys_exit_is_contained_in_worker() -> None:
    source = "import sys\n\ndef algoritmo(n):\n    if n > 10:\n        sys.exit(3)\n    return n\n"
    result = run_isolated(source, ProbeConfig(sizes=[100, 200, 400]))
    assert isinstance(result, WorkerResult)
    assert not result.crash_reason
    assert result.failed_trials == 15
    assert "SystemExit" in result.last_error
