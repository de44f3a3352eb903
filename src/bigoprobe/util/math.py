from __future__ import annotations

import math
from collections.abc import Iterable

from bigoprobe.report.models import RegressionFit


def _clean_samples(
    sizes: Iterable[int], durations: Iterable[float], floor: float
) -> tuple[list[float], list[float]]:
    xs: list[float] = []
    ys: list[float] = []
    for size, duration in zip(sizes, durations, strict=False):
        try:
            n = int(size)
            t = float(duration)
        except (TypeError, ValueError):
            continue
        if n <= 0 or math.isnan(t):
            continue
        xs.append(math.log(n))
        ys.append(math.log(max(t, floor)))
    return xs, ys


def fit_power_law(
    sizes: Iterable[int], durations: Iterable[float], floor: float = 1e-6
) -> RegressionFit | None:
    """Fit ``duration = a * size**b`` by least squares in log-log space.

    Durations are clamped to ``floor`` so the logarithm stays defined. The
    slope ``b`` is the growth exponent. Returns ``None`` when there are fewer
    than two usable points or every size is the same.
    """
    xs, ys = _clean_samples(sizes, durations, floor)
    count = len(xs)
    if count < 2:
        return None

    mean_x = sum(xs) / count
    mean_y = sum(ys) / count
    sxx = sum((x - mean_x) ** 2 for x in xs)
    if sxx == 0:
        return None
    sxy = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys, strict=True))
    slope = sxy / sxx
    intercept = mean_y - slope * mean_x

    ss_tot = sum((y - mean_y) ** 2 for y in ys)
    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in zip(xs, ys, strict=True))
    # A flat series leaves nothing to explain.
    r_squared = 0.0 if ss_tot == 0 or max(ys) == min(ys) else 1.0 - ss_res / ss_tot
    return RegressionFit(slope=slope, intercept=intercept, r_squared=r_squared)


def log_spaced(low: int, high: int, count: int) -> list[int]:
    """Round ``count`` log-evenly spaced values between ``low`` and ``high``."""
    if count <= 1 or high <= low:
        return [low]
    step = (math.log(high) - math.log(low)) / (count - 1)
    return [int(round(math.exp(math.log(low) + i * step))) for i in range(count)]
