"""
Constant folding over the analyzed AST.

Binary arithmetic on two numeric literals is replaced by a single literal,
bottom-up and in place; unary minus on a numeric literal is folded too.
Division and modulus are folded only when the divisor is non-zero, so the
runtime still reports those faults.
"""
from __future__ import annotations

from dataclasses import fields
from typing import Any

from . import ast_nodes as ast
from .interpreter.values import numeric_binary

FOLDABLE = ("+", "-", "*", "/", "%")


class ConstantFolder:
    def __init__(self, opt_level: int = 1) -> None:
        """
        opt_level 0 - no folding
        opt_level 1 - fold numeric literal arithmetic
        """
        self.opt_level = opt_level
        self.folded = 0

    def optimize(self, program: ast.Program) -> ast.Program:
        self.folded = 0
        if self.opt_level == 0:
            return program
        return self._visit(program)

    # --- visitor ---
    def _visit(self, node: Any) -> Any:
        if not isinstance(node, ast.Node):
            return node
        visitor = getattr(self, f"_visit_{type(node).__name__}", self._visit_generic)
        return visitor(node)

    def _visit_generic(self, node: ast.Node) -> ast.Node:
        for f in fields(node):
            value = getattr(node, f.name)
            if isinstance(value, ast.Node):
                setattr(node, f.name, self._visit(value))
            elif isinstance(value, list):
                setattr(node, f.name, [self._visit_item(item) for item in value])
        return node

    def _visit_item(self, item: Any) -> Any:
        if isinstance(item, tuple):
            return tuple(self._visit(part) for part in item)
        return self._visit(item)

    def _literal(self, value: Any, origin: ast.Node) -> ast.NumberLit:
        literal = ast.NumberLit(value, isinstance(value, int))
        literal.line = origin.line
        literal.column = origin.column
        if origin.inferred_type:
            literal.inferred_type = "int" if isinstance(value, int) else "float"
        self.folded += 1
        return literal

    def _visit_Binary(self, node: ast.Binary) -> ast.Node:
        node.left = self._visit(node.left)
        node.right = self._visit(node.right)
        left, right = node.left, node.right
        if node.op not in FOLDABLE:
            return node
        if not (isinstance(left, ast.NumberLit) and isinstance(right, ast.NumberLit)):
            return node
        if node.op in ("/", "%") and right.value == 0:
            return node
        return self._literal(numeric_binary(node.op, left.value, right.value), node)

    def _visit_Unary(self, node: ast.Unary) -> ast.Node:
        node.operand = self._visit(node.operand)
        if node.op == "-" and node.prefix and isinstance(node.operand, ast.NumberLit):
            return self._literal(-node.operand.value, node)
        return node
