from __future__ import annotations

import pytest

from bigoprobe.analyze.sampler import (
    LARGE_TIER,
    MEDIUM_TIER,
    SMALL_TIER,
    adaptive_sizes,
    normalize_sizes,
    select_sizes,
)
from bigoprobe.config.schema import DEFAULT_SIZES, ProbeConfig
from bigoprobe.sandbox.executor import CandidateRuntimeError

FLAT = """
def algoritmo(n):
    return sum(range(n))
"""

ONE_LOOP = """
def algoritmo(n):
    total = 0
    for i in range(n):
        total += i
    return total
"""

TWO_LOOPS = """
def algoritmo(n):
    total = 0
    for i in range(n):
        for j in range(n):
            total += 1
    return total
"""

THREE_LOOPS = """
def algoritmo(n):
    return sum(1 for i in range(n) for j in range(n) for k in range(n))
"""

RECURSIVE_NESTED = """
def algoritmo(n):
    if n <= 1:
        return 1
    for i in range(n):
        for j in range(n):
            pass
    return algoritmo(n // 2)
"""


def test_fixed_policy_uses_default_sizes() -> None:
    assert select_sizes(ProbeConfig(), FLAT) == DEFAULT_SIZES


def test_fixed_policy_normalizes_configured_sizes() -> None:
    cfg = ProbeConfig(sizes=[400, 100, 200, 100, 0])
    assert select_sizes(cfg, FLAT) == (100, 200, 400)


def test_too_few_sizes_rejected() -> None:
    with pytest.raises(ValueError):
        normalize_sizes([10, 10, 20])


@pytest.mark.parametrize(
    ("source", "tier"),
    [
        (FLAT, LARGE_TIER),
        (ONE_LOOP, LARGE_TIER),
        (TWO_LOOPS, MEDIUM_TIER),
        (THREE_LOOPS, SMALL_TIER),
        (RECURSIVE_NESTED, SMALL_TIER),
    ],
)
def test_adaptive_tiers(source: str, tier: tuple[int, ...]) -> None:
    assert adaptive_sizes(source, "algoritmo") == tier


def test_adaptive_unparseable_source_uses_large_tier() -> None:
    assert adaptive_sizes("def (:", "algoritmo") == LARGE_TIER


def test_adaptive_policy_through_select() -> None:
    cfg = ProbeConfig(sampler_policy="adaptive")
    assert select_sizes(cfg, TWO_LOOPS) == MEDIUM_TIER


def test_progressive_grows_until_allowance() -> None:
    probed: list[int] = []

    def probe(n: int) -> float:
        probed.append(n)
        return n / 100.0

    cfg = ProbeConfig(sampler_policy="progressive", global_budget_ms=60.0, progressive_start=64)
    sizes = select_sizes(cfg, FLAT, probe=probe)
    # 0.64 + 1.28 + ... reaches the 15 ms allowance at n=1024
    assert probed == [64, 128, 256, 512, 1024]
    assert sizes[0] == 64
    assert sizes[-1] == 1024
    assert len(sizes) == 5
    assert list(sizes) == sorted(set(sizes))


def test_progressive_stops_on_failure() -> None:
    def probe(n: int) -> float:
        if n > 128:
            raise CandidateRuntimeError("MemoryError: ")
        return 0.001

    cfg = ProbeConfig(sampler_policy="progressive", progressive_start=64)
    sizes = select_sizes(cfg, FLAT, probe=probe)
    assert sizes[0] == 64
    assert sizes[-1] == 256
    assert len(sizes) >= 3


def test_progressive_respects_max_size() -> None:
    cfg = ProbeConfig(sampler_policy="progressive", progressive_start=8, progressive_max_size=64)
    sizes = select_sizes(cfg, FLAT, probe=lambda n: 0.0)
    assert sizes[-1] == 64


def test_progressive_requires_probe() -> None:
    with pytest.raises(ValueError):
        select_sizes(ProbeConfig(sampler_policy="progressive"), FLAT)
