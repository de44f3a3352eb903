from __future__ import annotations

import logging
import statistics
import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from bigoprobe.config.schema import ProbeConfig
from bigoprobe.report.models import SENTINEL_DURATION_MS, SamplePoint
from bigoprobe.sandbox.executor import CandidateRuntimeError, Clock, CompiledCandidate, invoke

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Measurement:
    series: tuple[SamplePoint, ...]
    bailed_out: bool
    bail_reason: str = ""
    elapsed_ms: float = 0.0
    failed_trials: int = 0
    last_error: str = ""

    @property
    def all_failed(self) -> bool:
        return bool(self.series) and all(p.sentinel for p in self.series) and self.failed_trials > 0


class BudgetExceeded(Exception):
    """Raised inside the measurement loop to stop scheduling further work."""


@dataclass(frozen=True)
class _SizeResult:
    point: SamplePoint
    over_ceiling: bool


def _repeat_counts(limit: int) -> Iterator[int]:
    # 1, 2, 5, 10, 20, 50, ... capped at limit
    base = 1
    while True:
        for mult in (1, 2, 5):
            number = base * mult
            if number >= limit:
                yield limit
                return
            yield number
        base *= 10


def reject_outliers(values: list[float], ratio: float) -> list[float]:
    """Drop readings further than ``ratio`` times from the median."""
    if ratio <= 1.0 or len(values) < 3:
        return values
    median = statistics.median(values)
    kept = [v for v in values if median / ratio <= v <= median * ratio]
    return kept or values


def summarize(values: list[float], aggregate: str) -> tuple[float, float]:
    """Representative duration and jitter (stdev / mean) of per-call readings."""
    if aggregate == "min":
        value = min(values)
    else:
        value = statistics.fmean(values)
    jitter = 0.0
    if len(values) > 1:
        mean = statistics.fmean(values)
        if mean > 0:
            jitter = statistics.stdev(values) / mean
    return value, jitter


class Measurer:
    """Time a compiled candidate over a sequence of input sizes.

    Sizes and trials run strictly one after another. The budget is checked
    after each call returns, so a slow call is only detected once it ends.
    """

    def __init__(self, candidate: CompiledCandidate, config: ProbeConfig, clock: Clock | None = None) -> None:
        self.candidate = candidate
        self.config = config
        self.clock = clock or time.perf_counter
        self.spent_ms = 0.0
        self.failed_trials = 0
        self.last_error = ""

    def _charge(self, size: int, elapsed: float) -> None:
        self.spent_ms += elapsed
        budget = self.config.global_budget_ms
        if elapsed > budget:
            raise BudgetExceeded(f"single trial at n={size} took {elapsed:.1f} ms (budget {budget:.0f} ms)")
        if self.spent_ms > budget:
            raise BudgetExceeded(f"cumulative time {self.spent_ms:.1f} ms exceeded budget {budget:.0f} ms at n={size}")

    def _call(self, size: int, number: int) -> float:
        start = self.clock()
        try:
            elapsed = invoke(self.candidate, size, number, self.clock)
        except CandidateRuntimeError:
            self._charge(size, (self.clock() - start) * 1000.0)
            raise
        self._charge(size, elapsed)
        return elapsed

    def probe(self, size: int) -> float:
        """Time a single call at ``size``, charged to the run budget."""
        return self._call(size, 1)

    def _record_failure(self, size: int, exc: CandidateRuntimeError) -> None:
        self.failed_trials += 1
        self.last_error = str(exc)
        log.debug("Trial at n=%d discarded: %s", size, exc)

    def _calibrate(self, size: int) -> tuple[int, float | None]:
        """Pick the inner repeat count for ``size``.

        Returns the count and, when a single call already reached the target,
        that call's duration so it can stand as the first trial.
        """
        cfg = self.config
        if not cfg.calibrate:
            return 1, None
        target = max(cfg.calibration_target_ms, cfg.min_valid_duration_ms)
        for number in _repeat_counts(cfg.max_inner_repeats):
            elapsed = self._call(size, number)
            if elapsed >= target or number >= cfg.max_inner_repeats:
                if number == 1:
                    return 1, elapsed
                return number, None
        return cfg.max_inner_repeats, None

    def measure_size(self, size: int) -> _SizeResult:
        cfg = self.config
        for _ in range(max(cfg.warmups, 0)):
            try:
                self._call(size, 1)
            except CandidateRuntimeError as exc:
                self._record_failure(size, exc)

        valid: list[float] = []
        over_ceiling = False
        attempts = 0
        number = 1
        first: float | None = None
        try:
            number, first = self._calibrate(size)
        except CandidateRuntimeError as exc:
            self._record_failure(size, exc)
            attempts += 1

        while attempts < cfg.trial_count:
            attempts += 1
            if first is not None:
                elapsed, first = first, None
            else:
                try:
                    elapsed = self._call(size, number)
                except CandidateRuntimeError as exc:
                    self._record_failure(size, exc)
                    continue
            if elapsed >= cfg.per_trial_timeout_ms:
                # No further trials at a size once one reaches the ceiling.
                over_ceiling = True
                break
            if elapsed > cfg.min_valid_duration_ms:
                valid.append(elapsed / number)

        if not valid:
            return _SizeResult(
                point=SamplePoint(size=size, duration_ms=SENTINEL_DURATION_MS, valid_trials=0, sentinel=True),
                over_ceiling=over_ceiling,
            )
        kept = reject_outliers(valid, cfg.outlier_ratio)
        duration, jitter = summarize(kept, cfg.aggregate)
        return _SizeResult(
            point=SamplePoint(size=size, duration_ms=duration, valid_trials=len(kept), jitter=jitter),
            over_ceiling=False,
        )

    def run(self, sizes: Iterable[int], on_point: Callable[[SamplePoint], None] | None = None) -> Measurement:
        series: list[SamplePoint] = []
        bail_reason = ""
        for size in sizes:
            try:
                result = self.measure_size(size)
            except BudgetExceeded as exc:
                bail_reason = str(exc)
                break
            series.append(result.point)
            if on_point is not None:
                on_point(result.point)
            log.debug(
                "n=%d: %.4f ms over %d valid trials",
                size,
                result.point.duration_ms,
                result.point.valid_trials,
            )
            if result.over_ceiling:
                bail_reason = (
                    f"no valid trial at n={size}; a call reached the per-trial ceiling "
                    f"of {self.config.per_trial_timeout_ms:.0f} ms"
                )
                break
        if bail_reason:
            log.info("Measurement stopped early: %s", bail_reason)
        return Measurement(
            series=tuple(series),
            bailed_out=bool(bail_reason),
            bail_reason=bail_reason,
            elapsed_ms=self.spent_ms,
            failed_trials=self.failed_trials,
            last_error=self.last_error,
        )


def measure_series(
    candidate: CompiledCandidate,
    sizes: Iterable[int],
    config: ProbeConfig,
    clock: Clock | None = None,
) -> Measurement:
    return Measurer(candidate, config, clock).run(sizes)
