"""Run compile, sampling and measurement in a child interpreter.

The parent sends ``{"source": ..., "config": {...}}`` on stdin. The child
answers with JSON lines on its original stdout: one ``sizes`` line, one
``point`` line per measured size and a final ``done`` line, or a single
``error`` line. Output written by the candidate is sent to stderr so it
cannot corrupt that channel. The parent kills the child once the wall-clock
limit passes and keeps whatever points already arrived.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import subprocess
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO

from bigoprobe.analyze.measure import BudgetExceeded, Measurer
from bigoprobe.analyze.sampler import select_sizes
from bigoprobe.config.schema import ProbeConfig
from bigoprobe.report.models import AnalysisError, SamplePoint
from bigoprobe.sandbox.executor import CompileError, compile_candidate

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerResult:
    sizes: tuple[int, ...]
    series: tuple[SamplePoint, ...]
    bailed_out: bool
    bail_reason: str = ""
    elapsed_ms: float = 0.0
    failed_trials: int = 0
    last_error: str = ""
    crash_reason: str = ""


def _apply_resource_limits(memory_limit_mb: int | None) -> None:
    if not memory_limit_mb:
        return
    try:
        import resource
    except ImportError:
        return
    limit = int(memory_limit_mb) * 1024 * 1024
    if limit <= 0:
        return
    try:
        resource.setrlimit(resource.RLIMIT_AS, (limit, limit))
    except (ValueError, OSError):
        try:
            resource.setrlimit(resource.RLIMIT_DATA, (limit, limit))
        except (ValueError, OSError):
            return


def config_to_payload(config: ProbeConfig) -> dict[str, Any]:
    return dataclasses.asdict(config)


def config_from_payload(data: dict[str, Any]) -> ProbeConfig:
    known = {f.name for f in dataclasses.fields(ProbeConfig)}
    values = {k: v for k, v in data.items() if k in known}
    values["isolation"] = "inline"
    return ProbeConfig(**values).checked()


def hard_limit_seconds(config: ProbeConfig) -> float:
    # Exploration is charged to the same budget as measurement.
    return (config.global_budget_ms + config.kill_grace_ms) / 1000.0


def _emit(channel: TextIO, payload: dict[str, Any]) -> None:
    channel.write(json.dumps(payload) + "\n")
    channel.flush()


def _serve(payload: dict[str, Any], channel: TextIO) -> None:
    config = config_from_payload(payload.get("config") or {})
    source = str(payload.get("source", ""))
    _apply_resource_limits(config.memory_limit_mb)
    try:
        candidate = compile_candidate(source, config.function_name, config.smoke_input)
    except CompileError as exc:
        _emit(channel, {"error": {"kind": "compile_error", "message": str(exc)}})
        return

    measurer = Measurer(candidate, config)
    try:
        sizes = select_sizes(config, source, probe=measurer.probe)
    except BudgetExceeded as exc:
        _emit(channel, {"done": {"bailed_out": True, "bail_reason": str(exc), "elapsed_ms": measurer.spent_ms}})
        return
    _emit(channel, {"sizes": list(sizes)})
    measurement = measurer.run(sizes, on_point=lambda p: _emit(channel, {"point": dataclasses.asdict(p)}))
    _emit(
        channel,
        {
            "done": {
                "bailed_out": measurement.bailed_out,
                "bail_reason": measurement.bail_reason,
                "elapsed_ms": measurement.elapsed_ms,
                "failed_trials": measurement.failed_trials,
                "last_error": measurement.last_error,
            }
        },
    )


def main() -> int:
    channel = os.fdopen(os.dup(sys.stdout.fileno()), "w", encoding="utf-8")
    sys.stdout = sys.stderr
    try:
        payload = json.load(sys.stdin)
    except json.JSONDecodeError as exc:
        _emit(channel, {"error": {"kind": "compile_error", "message": f"invalid worker payload: {exc}"}})
        return 1
    try:
        _serve(payload, channel)
    except MemoryError:
        _emit(channel, {"done": {"bailed_out": True, "bail_reason": "memory limit reached"}})
    finally:
        channel.close()
    return 0


def _point_from_dict(raw: dict[str, Any]) -> SamplePoint:
    return SamplePoint(
        size=int(raw.get("size", 0)),
        duration_ms=float(raw.get("duration_ms", 0.0)),
        valid_trials=int(raw.get("valid_trials", 0)),
        jitter=float(raw.get("jitter", 0.0) or 0.0),
        sentinel=bool(raw.get("sentinel", False)),
    )


def _decode(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def parse_worker_output(
    lines: Iterable[str],
    killed: bool,
    limit_seconds: float,
    returncode: int | None = None,
) -> WorkerResult | AnalysisError:
    sizes: tuple[int, ...] = ()
    series: list[SamplePoint] = []
    done: dict[str, Any] | None = None
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            log.debug("Ignoring worker line: %s", line)
            continue
        if not isinstance(message, dict):
            continue
        if "error" in message:
            err = message["error"] or {}
            return AnalysisError(kind=str(err.get("kind", "compile_error")), message=str(err.get("message", "")))
        if "sizes" in message:
            sizes = tuple(int(n) for n in message["sizes"])
        elif "point" in message:
            series.append(_point_from_dict(message["point"]))
        elif "done" in message:
            done = message["done"] or {}

    if done is None:
        if killed:
            return WorkerResult(
                sizes=sizes,
                series=tuple(series),
                bailed_out=True,
                bail_reason=f"worker killed after {limit_seconds:.1f} s",
            )
        return WorkerResult(
            sizes=sizes,
            series=tuple(series),
            bailed_out=False,
            crash_reason=f"worker exited with code {returncode} before finishing",
        )
    return WorkerResult(
        sizes=sizes,
        series=tuple(series),
        bailed_out=bool(done.get("bailed_out", False)),
        bail_reason=str(done.get("bail_reason", "")),
        elapsed_ms=float(done.get("elapsed_ms", 0.0) or 0.0),
        failed_trials=int(done.get("failed_trials", 0) or 0),
        last_error=str(done.get("last_error", "")),
    )


def _worker_env() -> dict[str, str]:
    env = {**os.environ, "PYTHONHASHSEED": "0"}
    # The child must import this package even from an uninstalled checkout.
    package_root = str(Path(__file__).resolve().parents[2])
    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = package_root + (os.pathsep + existing if existing else "")
    return env


def run_isolated(source: str, config: ProbeConfig) -> WorkerResult | AnalysisError:
    limit = hard_limit_seconds(config)
    payload = {"source": source, "config": config_to_payload(config)}
    killed = False
    returncode: int | None = None
    try:
        result = subprocess.run(
            [sys.executable, "-m", "bigoprobe.sandbox.worker"],
            input=json.dumps(payload),
            text=True,
            capture_output=True,
            timeout=limit,
            env=_worker_env(),
        )
        stdout = result.stdout
        stderr = result.stderr
        returncode = result.returncode
    except subprocess.TimeoutExpired as exc:
        killed = True
        stdout = _decode(exc.stdout)
        stderr = _decode(exc.stderr)
        log.info("Worker killed after %.1f s", limit)
    if stderr:
        sys.stderr.write(_decode(stderr))
    return parse_worker_output(_decode(stdout).splitlines(), killed, limit, returncode)


if __name__ == "__main__":
    raise SystemExit(main())
