from __future__ import annotations

from bigoprobe.analyze.static_ast import estimate_nesting_depth, loop_signals


def test_detects_nested_loops() -> None:
    source = """
def algoritmo(n):
    s = 0
    for x in range(n):
        for y in range(n):
            s += x * y
    return s
"""
    signals = loop_signals(source, "algoritmo")
    assert signals.loops == 2
    assert signals.max_loop_depth == 2
    assert signals.recursion is False


def test_sibling_loops_do_not_nest() -> None:
    source = """
def algoritmo(n):
    for x in range(n):
        pass
    i = 0
    while i < n:
        i += 1
"""
    signals = loop_signals(source, "algoritmo")
    assert signals.loops == 2
    assert signals.max_loop_depth == 1


def test_helpers_ignored_when_target_named() -> None:
    source = """
def helper(n):
    for a in range(n):
        for b in range(n):
            for c in range(n):
                pass

def algoritmo(n):
    for x in range(n):
        pass
"""
    assert estimate_nesting_depth(source, "algoritmo") == 1
    assert estimate_nesting_depth(source) == 3


def test_comprehension_generators_count_as_nested_loops() -> None:
    source = """
def algoritmo(n):
    return [x + y for x in range(n) for y in range(n)]
"""
    signals = loop_signals(source, "algoritmo")
    assert signals.loops == 2
    assert signals.max_loop_depth == 2


def test_recursion_detected() -> None:
    source = """
def algoritmo(n):
    if n < 2:
        return n
    return algoritmo(n - 1) + algoritmo(n - 2)
"""
    signals = loop_signals(source, "algoritmo")
    assert signals.recursion is True
    assert signals.max_loop_depth == 0


def test_unparseable_source_reports_flat_loop() -> None:
    signals = loop_signals("def algoritmo(n:\n", "algoritmo")
    assert signals.loops == 1
    assert signals.max_loop_depth == 1
