from __future__ import annotations

import logging
from collections.abc import Sequence

from bigoprobe.analyze.classify import get_strategy
from bigoprobe.analyze.measure import BudgetExceeded, Measurer
from bigoprobe.analyze.sampler import select_sizes
from bigoprobe.config.schema import ProbeConfig
from bigoprobe.report.models import (
    AnalysisError,
    Classification,
    ComplexityClass,
    ConfidenceTier,
    EstimationReport,
    SamplePoint,
)
from bigoprobe.sandbox.executor import Clock, CompileError, compile_candidate
from bigoprobe.sandbox.worker import run_isolated

log = logging.getLogger(__name__)


def classify_series(series: Sequence[SamplePoint], config: ProbeConfig) -> Classification:
    return get_strategy(config.strategy, floor=config.duration_floor_ms).classify(series)


def build_report(
    sizes: Sequence[int],
    series: Sequence[SamplePoint],
    config: ProbeConfig,
    bailed_out: bool,
    bail_reason: str = "",
    elapsed_ms: float = 0.0,
    failed_trials: int = 0,
    last_error: str = "",
    crash_reason: str = "",
) -> EstimationReport:
    """Turn a measured series into the final report.

    Pure with respect to the series: the same points and config always give
    the same class and confidence.
    """
    classification = classify_series(series, config)
    failure: AnalysisError | None = None
    complexity_class = classification.complexity_class
    confidence = classification.confidence

    if bailed_out:
        complexity_class = ComplexityClass.CUBIC_OR_WORSE
        confidence = ConfidenceTier.LOW
        failure = AnalysisError(kind="budget_exceeded", message=bail_reason or "time budget exceeded")
    elif crash_reason:
        complexity_class = ComplexityClass.UNKNOWN
        confidence = ConfidenceTier.LOW
        failure = AnalysisError(kind="runtime_error", message=crash_reason)
    elif series and all(p.sentinel for p in series) and failed_trials:
        complexity_class = ComplexityClass.UNKNOWN
        confidence = ConfidenceTier.LOW
        failure = AnalysisError(kind="runtime_error", message=last_error or "every trial failed")
    elif complexity_class is ComplexityClass.UNKNOWN:
        failure = AnalysisError(kind="degenerate_fit", message="fewer than two usable measurements")

    return EstimationReport(
        complexity_class=complexity_class,
        confidence=confidence,
        series=tuple(series),
        bailed_out=bailed_out,
        exponent=classification.exponent,
        r_squared=classification.r_squared,
        sizes=tuple(sizes),
        policy=config.sampler_policy,
        strategy=config.strategy,
        elapsed_ms=elapsed_ms,
        failure=failure,
    )


def _estimate_inline(source: str, config: ProbeConfig, clock: Clock | None) -> EstimationReport | AnalysisError:
    try:
        candidate = compile_candidate(source, config.function_name, config.smoke_input)
    except CompileError as exc:
        log.debug("Compile failed: %s", exc)
        return AnalysisError(kind="compile_error", message=str(exc))

    measurer = Measurer(candidate, config, clock)
    try:
        sizes = select_sizes(config, source, probe=measurer.probe)
    except BudgetExceeded as exc:
        log.info("Exploration stopped early: %s", exc)
        return build_report((), (), config, bailed_out=True, bail_reason=str(exc), elapsed_ms=measurer.spent_ms)
    log.info("Probing %s at sizes %s", candidate.name, ", ".join(str(n) for n in sizes))
    measurement = measurer.run(sizes)
    return build_report(
        sizes,
        measurement.series,
        config,
        bailed_out=measurement.bailed_out,
        bail_reason=measurement.bail_reason,
        elapsed_ms=measurement.elapsed_ms,
        failed_trials=measurement.failed_trials,
        last_error=measurement.last_error,
    )


def _estimate_isolated(source: str, config: ProbeConfig) -> EstimationReport | AnalysisError:
    outcome = run_isolated(source, config)
    if isinstance(outcome, AnalysisError):
        return outcome
    return build_report(
        outcome.sizes,
        outcome.series,
        config,
        bailed_out=outcome.bailed_out,
        bail_reason=outcome.bail_reason,
        elapsed_ms=outcome.elapsed_ms,
        failed_trials=outcome.failed_trials,
        last_error=outcome.last_error,
        crash_reason=outcome.crash_reason,
    )


def estimate_complexity(
    source: str,
    config: ProbeConfig | None = None,
    *,
    clock: Clock | None = None,
) -> EstimationReport | AnalysisError:
    """Estimate the growth of the candidate function defined in ``source``.

    Compile problems come back as an :class:`AnalysisError`; everything that
    happens during measurement (failing trials, budget overruns, too few
    usable points) is folded into the returned report.
    """
    cfg = (config or ProbeConfig()).checked()
    if cfg.isolation == "subprocess":
        report = _estimate_isolated(source, cfg)
    else:
        report = _estimate_inline(source, cfg, clock)
    if isinstance(report, EstimationReport):
        log.info(
            "Estimated %s (%s confidence)%s",
            report.big_o,
            report.confidence.value,
            " after bailout" if report.bailed_out else "",
        )
    return report
