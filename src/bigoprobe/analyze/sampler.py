from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from bigoprobe.analyze.static_ast import loop_signals
from bigoprobe.config.schema import DEFAULT_SIZES, ProbeConfig
from bigoprobe.sandbox.executor import CandidateRuntimeError
from bigoprobe.util.math import log_spaced

log = logging.getLogger(__name__)

MIN_SIZES = 3

SMALL_TIER = (100, 200, 300, 400, 500)
MEDIUM_TIER = (1000, 2000, 3000, 4000, 5000)
LARGE_TIER = (10000, 50000, 100000, 500000, 1000000)

Probe = Callable[[int], float]


def normalize_sizes(sizes: Iterable[int]) -> tuple[int, ...]:
    out = sorted({int(n) for n in sizes if int(n) > 0})
    if len(out) < MIN_SIZES:
        raise ValueError(f"need at least {MIN_SIZES} distinct positive sizes, got {out}")
    return tuple(out)


def fixed_sizes(config: ProbeConfig) -> tuple[int, ...]:
    return normalize_sizes(config.sizes or DEFAULT_SIZES)


def adaptive_sizes(source: str, function_name: str | None = None) -> tuple[int, ...]:
    signals = loop_signals(source, function_name)
    depth = signals.max_loop_depth
    if signals.recursion:
        depth += 1
    if depth >= 3:
        tier = SMALL_TIER
    elif depth == 2:
        tier = MEDIUM_TIER
    else:
        tier = LARGE_TIER
    log.debug("Estimated loop depth %d (%d loops); sizes %s", depth, signals.loops, tier)
    return tier


def progressive_sizes(config: ProbeConfig, probe: Probe) -> tuple[int, ...]:
    """Double the size while exploration stays within its share of the budget.

    Each step times a single call. The final set is spread log-evenly over
    the explored range.
    """
    allowance = config.global_budget_ms * config.progressive_budget_fraction
    start = max(1, config.progressive_start)
    size = start
    highest = start
    spent = 0.0
    while size <= config.progressive_max_size:
        try:
            spent += probe(size)
        except CandidateRuntimeError as exc:
            log.debug("Exploration stopped at n=%d: %s", size, exc)
            break
        highest = size
        if spent >= allowance:
            break
        size *= 2
    # Keep at least a factor of four between the ends so the fit has a range.
    highest = max(highest, start * 4)
    picked = log_spaced(start, highest, config.progressive_points)
    try:
        return normalize_sizes(picked)
    except ValueError:
        return normalize_sizes([start, start * 2, start * 4])


def select_sizes(config: ProbeConfig, source: str, probe: Probe | None = None) -> tuple[int, ...]:
    policy = config.sampler_policy
    if policy == "adaptive":
        return adaptive_sizes(source, config.function_name)
    if policy == "progressive":
        if probe is None:
            raise ValueError("progressive sampling needs a probe")
        return progressive_sizes(config, probe)
    return fixed_sizes(config)
