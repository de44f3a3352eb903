from __future__ import annotations

import ast
from dataclasses import dataclass


@dataclass(frozen=True)
class LoopSignals:
    loops: int
    max_loop_depth: int
    recursion: bool


class _Visitor(ast.NodeVisitor):
    def __init__(self) -> None:
        self.loop_depth = 0
        self.max_loop_depth = 0
        self.loops = 0
        self.func_name_stack: list[str] = []
        self.recursion = False

    def _enter_loop(self, node: ast.AST, count: int = 1) -> None:
        self.loops += count
        self.loop_depth += count
        self.max_loop_depth = max(self.max_loop_depth, self.loop_depth)
        self.generic_visit(node)
        self.loop_depth -= count

    def visit_For(self, node: ast.For) -> None:
        self._enter_loop(node)

    def visit_While(self, node: ast.While) -> None:
        self._enter_loop(node)

    def visit_ListComp(self, node: ast.ListComp) -> None:
        self._visit_comprehension(node)

    def visit_SetComp(self, node: ast.SetComp) -> None:
        self._visit_comprehension(node)

    def visit_DictComp(self, node: ast.DictComp) -> None:
        self._visit_comprehension(node)

    def visit_GeneratorExp(self, node: ast.GeneratorExp) -> None:
        self._visit_comprehension(node)

    def visit_Call(self, node: ast.Call) -> None:
        if self.func_name_stack and isinstance(node.func, ast.Name):
            if node.func.id == self.func_name_stack[-1]:
                self.recursion = True
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self.func_name_stack.append(node.name)
        self.generic_visit(node)
        self.func_name_stack.pop()

    def _visit_comprehension(self, node: ast.AST) -> None:
        gen_count = len(getattr(node, "generators", []))
        if gen_count:
            self._enter_loop(node, gen_count)
        else:
            self.generic_visit(node)


def loop_signals(source: str, function_name: str | None = None) -> LoopSignals:
    """Count iteration constructs in ``source``.

    Only ``function_name`` is inspected when the source defines it; helper
    functions are then ignored. Unparseable source reports a single flat loop
    so callers fall back to the cheapest guess.
    """
    try:
        tree = ast.parse(source)
    except (SyntaxError, ValueError):
        return LoopSignals(loops=1, max_loop_depth=1, recursion=False)
    target: ast.AST = tree
    if function_name:
        for node in tree.body:
            if isinstance(node, ast.FunctionDef) and node.name == function_name:
                target = node
                break
    v = _Visitor()
    v.visit(target)
    return LoopSignals(loops=v.loops, max_loop_depth=v.max_loop_depth, recursion=v.recursion)


def estimate_nesting_depth(source: str, function_name: str | None = None) -> int:
    return loop_signals(source, function_name).max_loop_depth
