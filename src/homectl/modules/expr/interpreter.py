"""
Expression front-end and interpreter.

Rule expressions use Python expression syntax over the dotted namespace:

    devices.hue.lamp.state.on = not devices.hue.lamp.state.on
    activate_scene("evening") if sensors_dark else False

Statements are separated by ";" or newlines. The result of an expression is
the value of its last statement (None when that statement is an assignment).
Only a small, validated subset of the Python grammar is accepted.
"""

import ast
import logging
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from homectl.exceptions import EvaluationError, HomectlError

from .context import (
    NO_ARGUMENTS,
    EvaluationContext,
    Value,
    format_value,
    value_kind,
    values_equal,
)

logger = logging.getLogger(__name__)

ALLOWED_NODES = (
    ast.Module,
    ast.Expr,
    ast.Assign,
    ast.AugAssign,
    ast.BoolOp,
    ast.BinOp,
    ast.UnaryOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.Name,
    ast.Attribute,
    ast.Subscript,
    ast.Constant,
    ast.Tuple,
    ast.Load,
    ast.Store,
    ast.And,
    ast.Or,
    ast.Not,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.Pow,
    ast.USub,
    ast.UAdd,
    ast.Eq,
    ast.NotEq,
    ast.Gt,
    ast.GtE,
    ast.Lt,
    ast.LtE,
    ast.In,
    ast.NotIn,
)

_ARITHMETIC: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_ORDERING: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}


@dataclass(frozen=True)
class Expression:
    """Validated, parsed rule expression that can be evaluated repeatedly."""

    source: str
    tree: ast.Module


def parse_expression(source: str) -> Expression:
    """
    Parse and validate a rule expression.

    Raises:
        EvaluationError: On syntax errors or unsupported constructs
    """
    try:
        tree = ast.parse(source, mode="exec")
    except SyntaxError as e:
        raise EvaluationError(f"Invalid expression syntax: {e.msg} (line {e.lineno})") from e

    for node in ast.walk(tree):
        if not isinstance(node, ALLOWED_NODES):
            raise EvaluationError(f"Unsupported syntax: {type(node).__name__}")
        if isinstance(node, ast.Call) and not isinstance(node.func, ast.Name):
            raise EvaluationError("Only built-in functions can be called")
        if isinstance(node, ast.Assign):
            for target in node.targets:
                dotted_name(target)
        if isinstance(node, ast.AugAssign):
            dotted_name(node.target)

    return Expression(source=source, tree=tree)


def dotted_name(node: ast.AST) -> str:
    """
    Resolve a variable reference to its dotted namespace path.

    a.b.c -> "a.b.c", a.color[0] -> "a.color.0", a["Living Room"] -> "a.Living Room"

    Raises:
        EvaluationError: If the node is not a variable reference
    """
    if isinstance(node, ast.Name):
        return node.id

    if isinstance(node, ast.Attribute):
        return f"{dotted_name(node.value)}.{node.attr}"

    if isinstance(node, ast.Subscript):
        index = node.slice
        if isinstance(index, ast.Constant):
            if isinstance(index.value, int) and not isinstance(index.value, bool):
                if index.value >= 0:
                    return f"{dotted_name(node.value)}.{index.value}"
            elif isinstance(index.value, str) and index.value and "." not in index.value:
                return f"{dotted_name(node.value)}.{index.value}"
        raise EvaluationError("Subscripts must be non-negative integers or plain names")

    raise EvaluationError(f"Expected a variable name, got {type(node).__name__}")


class Interpreter:
    """
    Evaluates a parsed Expression against an EvaluationContext.

    Assignments mutate the context in place. When the context has type checks
    disabled, assignments may change a variable's kind and ordering across
    kinds yields False; otherwise both raise EvaluationError.
    """

    def __init__(self, context: EvaluationContext) -> None:
        self._context = context

    @property
    def _relaxed(self) -> bool:
        return self._context.type_checks_disabled

    def run(self, expression: Expression) -> Value:
        """
        Evaluate every statement in order.

        Returns:
            Value of the last statement (None for assignments or empty input)

        Raises:
            EvaluationError: On any runtime failure
        """
        result: Value = None

        for statement in expression.tree.body:
            if isinstance(statement, ast.Expr):
                result = self._eval(statement.value)
            elif isinstance(statement, ast.Assign):
                value = self._eval(statement.value)
                for target in statement.targets:
                    self._assign(dotted_name(target), value)
                result = None
            elif isinstance(statement, ast.AugAssign):
                name = dotted_name(statement.target)
                value = self._binary(statement.op, self._lookup(name), self._eval(statement.value))
                self._assign(name, value)
                result = None
            else:
                raise EvaluationError(f"Unsupported statement: {type(statement).__name__}")

        return result

    # =========================================================================
    # Variables
    # =========================================================================

    def _lookup(self, name: str) -> Value:
        if self._context.has_value(name):
            return self._context.get_value(name)
        if self._context.get_function(name) is not None:
            raise EvaluationError(f"{name} is a function and must be called")
        raise EvaluationError(f"Variable not found: {name}")

    def _assign(self, name: str, value: Value) -> None:
        if self._context.get_function(name) is not None:
            raise EvaluationError(f"Cannot assign to function {name}")

        if not self._relaxed and self._context.has_value(name):
            current = self._context.get_value(name)
            if value_kind(current) != value_kind(value):
                raise EvaluationError(
                    f"Cannot assign {value_kind(value)} to {name} "
                    f"(currently {value_kind(current)})"
                )

        self._context.set_value(name, value)

    # =========================================================================
    # Nodes
    # =========================================================================

    def _eval(self, node: ast.AST) -> Value:
        if isinstance(node, ast.Constant):
            if node.value is None or isinstance(node.value, (bool, int, float, str)):
                return node.value
            raise EvaluationError(f"Unsupported literal: {node.value!r}")

        if isinstance(node, (ast.Name, ast.Attribute, ast.Subscript)):
            return self._lookup(dotted_name(node))

        if isinstance(node, ast.Tuple):
            return tuple(self._eval(element) for element in node.elts)

        if isinstance(node, ast.BoolOp):
            return self._bool_op(node)

        if isinstance(node, ast.UnaryOp):
            return self._unary(node)

        if isinstance(node, ast.BinOp):
            return self._binary(node.op, self._eval(node.left), self._eval(node.right))

        if isinstance(node, ast.Compare):
            return self._compare(node)

        if isinstance(node, ast.IfExp):
            branch = node.body if self._truth(self._eval(node.test)) else node.orelse
            return self._eval(branch)

        if isinstance(node, ast.Call):
            return self._call(node)

        raise EvaluationError(f"Unsupported syntax: {type(node).__name__}")

    def _truth(self, value: Value) -> bool:
        if isinstance(value, bool):
            return value
        if self._relaxed:
            return bool(value)
        raise EvaluationError(f"Expected a boolean, got {value_kind(value)}")

    def _bool_op(self, node: ast.BoolOp) -> bool:
        if isinstance(node.op, ast.And):
            for operand in node.values:
                if not self._truth(self._eval(operand)):
                    return False
            return True

        for operand in node.values:
            if self._truth(self._eval(operand)):
                return True
        return False

    def _unary(self, node: ast.UnaryOp) -> Value:
        operand = self._eval(node.operand)

        if isinstance(node.op, ast.Not):
            return not self._truth(operand)

        if value_kind(operand) != "number":
            raise EvaluationError(f"Cannot negate {value_kind(operand)}")
        return -operand if isinstance(node.op, ast.USub) else +operand

    def _binary(self, op: ast.operator, left: Value, right: Value) -> Value:
        left_kind, right_kind = value_kind(left), value_kind(right)

        if isinstance(op, ast.Add):
            if left_kind == right_kind and left_kind in ("number", "string", "tuple"):
                return left + right
            if self._relaxed and "string" in (left_kind, right_kind):
                return _as_text(left) + _as_text(right)
            raise EvaluationError(f"Cannot add {left_kind} and {right_kind}")

        if left_kind != "number" or right_kind != "number":
            raise EvaluationError(
                f"Arithmetic needs numbers, got {left_kind} and {right_kind}"
            )

        try:
            result = _ARITHMETIC[type(op)](left, right)
        except ZeroDivisionError as e:
            raise EvaluationError("Division by zero") from e
        except OverflowError as e:
            raise EvaluationError("Numeric overflow") from e

        # Fractional powers of negative numbers are complex
        if not isinstance(result, (int, float)):
            raise EvaluationError(f"Arithmetic produced a non-real number: {result!r}")
        return result

    def _compare(self, node: ast.Compare) -> bool:
        left = self._eval(node.left)

        for op, comparator in zip(node.ops, node.comparators):
            right = self._eval(comparator)
            if not self._compare_pair(op, left, right):
                return False
            left = right

        return True

    def _compare_pair(self, op: ast.cmpop, left: Value, right: Value) -> bool:
        if isinstance(op, ast.Eq):
            return values_equal(left, right)
        if isinstance(op, ast.NotEq):
            return not values_equal(left, right)

        if isinstance(op, (ast.In, ast.NotIn)):
            if isinstance(right, tuple):
                found = any(values_equal(left, item) for item in right)
            elif isinstance(right, str) and isinstance(left, str):
                found = left in right
            else:
                raise EvaluationError(
                    f"Membership needs a tuple or string, got {value_kind(right)}"
                )
            return found if isinstance(op, ast.In) else not found

        left_kind, right_kind = value_kind(left), value_kind(right)
        if left_kind == right_kind and left_kind in ("number", "string"):
            return _ORDERING[type(op)](left, right)
        if self._relaxed:
            return False
        raise EvaluationError(f"Cannot order {left_kind} and {right_kind}")

    def _call(self, node: ast.Call) -> Value:
        name = dotted_name(node.func)
        function = self._context.get_function(name)
        if function is None:
            raise EvaluationError(f"Function not found: {name}")

        args: List[Value] = [self._eval(arg) for arg in node.args]
        if not args:
            argument: Value = NO_ARGUMENTS
        elif len(args) == 1:
            argument = args[0]
        else:
            argument = tuple(args)

        try:
            return function(self._context, argument)
        except HomectlError:
            raise
        except Exception as e:
            raise EvaluationError(f"Function {name} failed: {e}") from e


def _as_text(value: Value) -> str:
    return value if isinstance(value, str) else format_value(value)
