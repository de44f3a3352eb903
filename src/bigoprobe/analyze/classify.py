from __future__ import annotations

import math
import statistics
from collections.abc import Sequence

from bigoprobe.report.models import (
    Classification,
    ComplexityClass,
    ConfidenceTier,
    SamplePoint,
)
from bigoprobe.util.math import fit_power_law

# Upper bounds (exclusive) on the log-log slope for each class.
EXPONENT_BANDS: tuple[tuple[float, ComplexityClass], ...] = (
    (0.2, ComplexityClass.CONSTANT),
    (0.7, ComplexityClass.LOGARITHMIC),
    (1.3, ComplexityClass.LINEAR),
    (1.8, ComplexityClass.LINEARITHMIC),
    (2.4, ComplexityClass.QUADRATIC),
)

# Upper bounds (exclusive) on the mean consecutive duration ratio.
RATIO_BANDS: tuple[tuple[float, ComplexityClass], ...] = (
    (2.5, ComplexityClass.CONSTANT),
    (12.0, ComplexityClass.LOGARITHMIC),
    (100.0, ComplexityClass.LINEAR),
    (1000.0, ComplexityClass.LINEARITHMIC),
)

RATIO_CLAMP = 1e6

_UNKNOWN = Classification(complexity_class=ComplexityClass.UNKNOWN, confidence=ConfidenceTier.LOW)


def usable_points(series: Sequence[SamplePoint]) -> list[SamplePoint]:
    return [p for p in series if not p.sentinel]


def _band(value: float, bands: Sequence[tuple[float, ComplexityClass]], above: ComplexityClass) -> ComplexityClass:
    for limit, label in bands:
        if value < limit:
            return label
    return above


def tier_from_r_squared(r_squared: float) -> ConfidenceTier:
    if r_squared > 0.97:
        return ConfidenceTier.HIGH
    if r_squared > 0.85:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def tier_from_flatness(durations: Sequence[float], floor: float) -> ConfidenceTier:
    logs = [math.log(max(d, floor)) for d in durations]
    spread = statistics.pstdev(logs) if len(logs) > 1 else 0.0
    if spread < 0.25:
        return ConfidenceTier.HIGH
    if spread < 0.5:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def consecutive_ratios(durations: Sequence[float]) -> list[float]:
    ratios: list[float] = []
    for prev, cur in zip(durations, durations[1:], strict=False):
        try:
            ratio = cur / prev
        except ZeroDivisionError:
            ratio = math.inf
        if not math.isfinite(ratio):
            ratio = RATIO_CLAMP
        ratios.append(ratio)
    return ratios


class ClassifierStrategy:
    name: str = ""

    def classify(self, series: Sequence[SamplePoint]) -> Classification:
        raise NotImplementedError


class ExponentThresholdStrategy(ClassifierStrategy):
    """Classify by the slope of a log-log least-squares fit."""

    name = "exponent"

    def __init__(self, floor: float = 1e-6) -> None:
        self.floor = floor

    def classify(self, series: Sequence[SamplePoint]) -> Classification:
        points = usable_points(series)
        fit = fit_power_law(
            [p.size for p in points],
            [p.duration_ms for p in points],
            floor=self.floor,
        )
        if fit is None:
            return _UNKNOWN
        label = _band(fit.slope, EXPONENT_BANDS, ComplexityClass.CUBIC_OR_WORSE)
        if label is ComplexityClass.CONSTANT:
            # R^2 of a flat fit is near zero by construction; judge the spread instead.
            confidence = tier_from_flatness([p.duration_ms for p in points], self.floor)
        else:
            confidence = tier_from_r_squared(fit.r_squared)
        return Classification(
            complexity_class=label,
            confidence=confidence,
            exponent=fit.slope,
            r_squared=fit.r_squared,
        )


class RatioThresholdStrategy(ClassifierStrategy):
    """Classify by the mean ratio between consecutive durations."""

    name = "ratio"

    def classify(self, series: Sequence[SamplePoint]) -> Classification:
        points = usable_points(series)
        if len(points) < 2:
            return _UNKNOWN
        ratios = consecutive_ratios([p.duration_ms for p in points])
        mean_ratio = statistics.fmean(ratios)
        label = _band(mean_ratio, RATIO_BANDS, ComplexityClass.QUADRATIC)
        return Classification(complexity_class=label, confidence=self._confidence(ratios))

    @staticmethod
    def _confidence(ratios: Sequence[float]) -> ConfidenceTier:
        if len(ratios) < 2:
            return ConfidenceTier.LOW
        low = min(ratios)
        if low <= 0:
            return ConfidenceTier.LOW
        spread = max(ratios) / low
        if spread <= 2.0:
            return ConfidenceTier.HIGH
        if spread <= 5.0:
            return ConfidenceTier.MEDIUM
        return ConfidenceTier.LOW


def get_strategy(name: str, floor: float = 1e-6) -> ClassifierStrategy:
    if name == "ratio":
        return RatioThresholdStrategy()
    if name == "exponent":
        return ExponentThresholdStrategy(floor=floor)
    raise ValueError(f"unknown classifier strategy: {name}")
