"""Compile candidate source into a callable and time calls to it.

Everything here runs in the caller's interpreter. A runaway candidate cannot
be interrupted mid-call; callers that need a hard stop use
:mod:`bigoprobe.sandbox.worker`.
"""

from __future__ import annotations

import ast
import builtins
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

log = logging.getLogger(__name__)

Clock = Callable[[], float]


class CompileError(Exception):
    """Candidate source is unusable: bad syntax, no function or a failing smoke call."""


class CandidateRuntimeError(Exception):
    """The candidate raised while being timed."""


@dataclass(frozen=True)
class CompiledCandidate:
    name: str
    func: Callable[[int], object]
    source: str


def _describe(exc: BaseException) -> str:
    if isinstance(exc, SyntaxError):
        where = f"line {exc.lineno}" if exc.lineno else "unknown line"
        return f"SyntaxError at {where}: {exc.msg}"
    return f"{type(exc).__name__}: {exc}"


def _top_level_functions(tree: ast.Module) -> list[str]:
    return [node.name for node in tree.body if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))]


def _pick_function_name(tree: ast.Module, function_name: str) -> str:
    names = _top_level_functions(tree)
    if function_name in names:
        return function_name
    if len(names) == 1:
        log.debug("No function named %s; using sole function %s", function_name, names[0])
        return names[0]
    if not names:
        raise CompileError("no function defined in source")
    raise CompileError(f"function {function_name!r} not found (defined: {', '.join(names)})")


def _check_signature(func: Callable[..., object], name: str) -> None:
    if inspect.iscoroutinefunction(func) or inspect.isasyncgenfunction(func):
        raise CompileError(f"{name} is asynchronous; only plain functions are supported")
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError) as exc:
        raise CompileError(f"cannot inspect {name}: {exc}") from exc
    required = [
        p
        for p in sig.parameters.values()
        if p.default is inspect.Parameter.empty
        and p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    try:
        sig.bind(0)
    except TypeError as exc:
        raise CompileError(f"{name} must take exactly one argument n: {exc}") from exc
    if len(required) != 1:
        raise CompileError(f"{name} must take exactly one argument n")


def compile_candidate(
    source: str,
    function_name: str = "algoritmo",
    smoke_input: int = 10,
) -> CompiledCandidate:
    try:
        tree = ast.parse(source, filename="<candidate>")
        code = compile(tree, "<candidate>", "exec")
    except (SyntaxError, ValueError) as exc:
        raise CompileError(_describe(exc)) from exc

    name = _pick_function_name(tree, function_name)
    namespace: dict[str, object] = {"__name__": "__candidate__", "__builtins__": builtins}
    try:
        exec(code, namespace)
    except (Exception, SystemExit) as exc:
        raise CompileError(_describe(exc)) from exc

    func = namespace.get(name)
    if not callable(func):
        raise CompileError(f"{name} is not callable")
    _check_signature(func, name)

    try:
        func(smoke_input)
    except (Exception, SystemExit) as exc:
        raise CompileError(f"smoke call {name}({smoke_input}) failed: {_describe(exc)}") from exc
    return CompiledCandidate(name=name, func=func, source=source)


def invoke(
    candidate: CompiledCandidate,
    n: int,
    number: int = 1,
    clock: Clock = time.perf_counter,
) -> float:
    """Return wall-clock milliseconds for ``number`` back-to-back calls."""
    func = candidate.func
    start = clock()
    try:
        for _ in range(number):
            func(n)
    except (Exception, SystemExit) as exc:
        raise CandidateRuntimeError(_describe(exc)) from exc
    return (clock() - start) * 1000.0
