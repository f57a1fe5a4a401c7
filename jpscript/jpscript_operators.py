"""
Built-in binary operators and their precedence metadata.

Precedence (higher binds tighter):

    6   **                          (right-associative)
    5   *  /  %  <<  >>  &  &^
    4   +  -  |  ^
    3   ==  !=  <  <=  >  >=  =~
    2   &&
    1   ||

Arithmetic operators coerce both operands to float, except the integer
family (% << >> & | ^ &^) which requires integral operands; shift counts
must be unsigned. `+` concatenates when its left operand is a string.
"""

import math
import re
from typing import Callable, Dict, Tuple, Union

from jpscript.jpscript_datatypes import (
    Value, NodeType, value_node,
    TypeCoercionError, DivisionByZero, RegexCompileError, NumericOverflowError, MathDomainError,
)

Operation = Callable[[Value, Value], Value]
# The right operand of a logical operator may be deferred.
Operand = Union[Value, Callable[[], Value]]

PRECEDENCE: Dict[str, int] = {
    "**": 6,
    "*": 5, "/": 5, "%": 5, "<<": 5, ">>": 5, "&": 5, "&^": 5,
    "+": 4, "-": 4, "|": 4, "^": 4,
    "==": 3, "!=": 3, "<": 3, "<=": 3, ">": 3, ">=": 3, "=~": 3,
    "&&": 2,
    "||": 1,
}

RIGHT_ASSOCIATIVE = frozenset({"**"})

# Tokens whose right operand is only evaluated on demand.
LAZY_OPERATORS = frozenset({"&&", "||"})


def boolean(value: Value) -> bool:
    """Truthiness shared by the logical operators and `not`."""
    if not isinstance(value, Value):
        raise TypeCoercionError(f"cannot take truthiness of {type(value).__name__}")
    match value.tag:
        case NodeType.NULL:
            return False
        case NodeType.BOOL:
            return value.get_bool()
        case NodeType.NUMERIC:
            return value.get_numeric() != 0
        case NodeType.STRING:
            return value.get_string() != ""
        case NodeType.ARRAY | NodeType.OBJECT:
            return value.size() > 0
    raise TypeCoercionError(f"cannot take truthiness of {value.tag!r}")


def _force(operand: Operand) -> Value:
    if callable(operand) and not isinstance(operand, Value):
        return operand()
    return operand


def _floats(left: Value, right: Value) -> Tuple[float, float]:
    return left.get_numeric(), right.get_numeric()


def _ints(left: Value, right: Value) -> Tuple[int, int]:
    return left.get_integer(), right.get_integer()


def _numeric(label: str, num) -> Value:
    try:
        return value_node(label, NodeType.NUMERIC, float(num))
    except OverflowError as e:
        raise NumericOverflowError(f"{label}: result does not fit a float64") from e


# --- Arithmetic ---
def _power(left, right):
    lnum, rnum = _floats(left, right)
    try:
        return _numeric("power", math.pow(lnum, rnum))
    except ValueError as e:
        raise MathDomainError(f"power: {lnum!r} ** {rnum!r} is undefined") from e
    except OverflowError as e:
        raise NumericOverflowError("power: result does not fit a float64") from e


def _multiply(left, right):
    lnum, rnum = _floats(left, right)
    return _numeric("multiply", lnum * rnum)


def _division(left, right):
    lnum, rnum = _floats(left, right)
    if rnum == 0:
        raise DivisionByZero("division by zero")
    return _numeric("division", lnum / rnum)


def _remainder(left, right):
    lnum, rnum = _ints(left, right)
    if rnum == 0:
        raise DivisionByZero("integer remainder by zero")
    # Truncated remainder: the result takes the sign of the dividend.
    rem = abs(lnum) % abs(rnum)
    return _numeric("remainder", -rem if lnum < 0 else rem)


def _left_shift(left, right):
    lnum = left.get_integer()
    rnum = right.get_uinteger()
    if lnum and rnum >= 1024:
        raise NumericOverflowError("left shift: result does not fit a float64")
    return _numeric("left shift", lnum << rnum)


def _right_shift(left, right):
    return _numeric("right shift", left.get_integer() >> right.get_uinteger())


def _bitwise_and(left, right):
    lnum, rnum = _ints(left, right)
    return _numeric("bitwise AND", lnum & rnum)


def _bit_clear(left, right):
    lnum, rnum = _ints(left, right)
    return _numeric("bit clear (AND NOT)", lnum & ~rnum)


def _sum(left, right):
    if left.is_string():
        return value_node("sum", NodeType.STRING, left.get_string() + right.get_string())
    lnum, rnum = _floats(left, right)
    return _numeric("sum", lnum + rnum)


def _sub(left, right):
    lnum, rnum = _floats(left, right)
    return _numeric("sub", lnum - rnum)


def _bitwise_or(left, right):
    lnum, rnum = _ints(left, right)
    return _numeric("bitwise OR", lnum | rnum)


def _bitwise_xor(left, right):
    lnum, rnum = _ints(left, right)
    return _numeric("bitwise XOR", lnum ^ rnum)


# --- Comparison ---
def _comparison(label: str, predicate: Callable[[Value, Value], bool]) -> Operation:
    def op(left, right):
        return value_node(label, NodeType.BOOL, bool(predicate(left, right)))
    op.__name__ = f"_{label}"
    return op


def _regex_match(left, right):
    pattern = right.get_string()
    subject = left.get_string()
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise RegexCompileError(f"invalid pattern {pattern!r}: {e}") from e
    return value_node("regex", NodeType.BOOL, compiled.search(subject) is not None)


# --- Logical ---
def _and(left, right: Operand):
    res = False
    if boolean(left):
        res = boolean(_force(right))
    return value_node("AND", NodeType.BOOL, res)


def _or(left, right: Operand):
    res = True
    if not boolean(left):
        res = boolean(_force(right))
    return value_node("OR", NodeType.BOOL, res)


OPERATIONS: Dict[str, Operation] = {
    "**": _power,
    "*": _multiply,
    "/": _division,
    "%": _remainder,
    "<<": _left_shift,
    ">>": _right_shift,
    "&": _bitwise_and,
    "&^": _bit_clear,
    "+": _sum,
    "-": _sub,
    "|": _bitwise_or,
    "^": _bitwise_xor,
    "==": _comparison("eq", Value.eq),
    "!=": _comparison("neq", Value.neq),
    "<": _comparison("lt", Value.lt),
    "<=": _comparison("le", Value.le),
    ">": _comparison("gt", Value.gt),
    ">=": _comparison("ge", Value.ge),
    "=~": _regex_match,
    "&&": _and,
    "||": _or,
}
