"""
Arithmetic evaluator for the calculator tool.

Expressions are parsed with ``ast`` and only a whitelisted grammar is walked:
numeric literals, + - * / // % **, unary signs, parentheses, a few math
functions and constants. Names, attributes, calls to anything else and
every other node type are rejected.
"""

from __future__ import annotations

import ast
import math
import operator
from typing import Callable, Dict, Union

Number = Union[int, float]

MAX_EXPRESSION_LENGTH = 200
MAX_EXPONENT = 1000
MAX_INTEGER_BITS = 4096

_BINARY_OPS: Dict[type, Callable[[Number, Number], Number]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: Dict[type, Callable[[Number], Number]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_FUNCTIONS: Dict[str, Callable[..., Number]] = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sqrt": math.sqrt,
    "floor": math.floor,
    "ceil": math.ceil,
    "log": math.log,
    "log10": math.log10,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}

_CONSTANTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}


class MathExpressionError(ValueError):
    pass


def evaluate(expression: str) -> Number:
    """Evaluate ``expression`` or raise :class:`MathExpressionError`."""
    if not isinstance(expression, str) or not expression.strip():
        raise MathExpressionError("Expression is empty")
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise MathExpressionError("Expression is too long")

    # JavaScript-style exponent operator
    source = expression.replace("^", "**").strip()
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError:
        raise MathExpressionError(f"Invalid mathematical expression: {expression}")

    try:
        return _eval(tree.body)
    except MathExpressionError:
        raise
    except ZeroDivisionError:
        raise MathExpressionError("Division by zero")
    except (OverflowError, ValueError, TypeError) as exc:
        raise MathExpressionError(f"Invalid mathematical expression: {expression} ({exc})")


def _check_power(base: Number, exponent: Number) -> None:
    if abs(exponent) > MAX_EXPONENT:
        raise MathExpressionError("Exponent is too large")
    # Integer powers are exact, so bound the size of the result before computing it
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0:
        if abs(base).bit_length() * exponent > MAX_INTEGER_BITS:
            raise MathExpressionError("Result is too large")


def _check_size(value: Number) -> Number:
    if isinstance(value, complex):
        raise MathExpressionError("Result is not a real number")
    if isinstance(value, int) and value.bit_length() > MAX_INTEGER_BITS:
        raise MathExpressionError("Result is too large")
    return value


def _eval(node: ast.AST) -> Number:
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise MathExpressionError("Only numeric literals are allowed")
        return node.value

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _eval(node.left)
        right = _eval(node.right)
        if isinstance(node.op, ast.Pow):
            _check_power(left, right)
        return _check_size(_BINARY_OPS[type(node.op)](left, right))

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval(node.operand))

    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]

    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in _FUNCTIONS
        and not node.keywords
    ):
        args = [_eval(arg) for arg in node.args]
        return _FUNCTIONS[node.func.id](*args)

    raise MathExpressionError(f"Unsupported syntax: {type(node).__name__}")
