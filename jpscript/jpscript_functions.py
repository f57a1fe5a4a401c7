"""
Built-in unary functions: math forwarding, aggregates, base64 and random.
"""

import inspect
import math
import random
from typing import Callable, Dict

from scipy import special

from jpscript.jpscript_datatypes import (
    Value, NodeType, value_node,
    TypeCoercionError, MathDomainError, NumericOverflowError,
)
from jpscript.jpscript_operators import boolean
from jpscript import jpscript_base64 as b64

Function = Callable[[Value], Value]

# n! stops being representable as a float64 past this point.
MAX_FACTORIAL = 170


def numeric_function(name: str, fn: Callable[[float], float]) -> Function:
    """Wrap a float -> float function so it takes and returns numeric Values.

    A finite argument must give a finite result. `math` signals a bad
    argument by raising; `scipy.special` returns NaN or an infinity
    instead, so both are mapped onto the same errors here.
    """
    def call(node: Value) -> Value:
        if not node.is_numeric():
            raise TypeCoercionError(f"function {name!r} was called with a non-numeric value")
        num = node.get_numeric()
        try:
            res = float(fn(num))
        except ValueError as e:
            raise MathDomainError(f"{name}({num!r}) is undefined") from e
        except OverflowError as e:
            raise NumericOverflowError(f"{name}({num!r}) does not fit a float64") from e
        if math.isfinite(num) and not math.isfinite(res):
            if math.isnan(res):
                raise MathDomainError(f"{name}({num!r}) is undefined")
            raise NumericOverflowError(f"{name}({num!r}) does not fit a float64")
        return value_node(name, NodeType.NUMERIC, res)
    call.__name__ = name
    return call


def _integral(fn: Callable[[float], int]) -> Callable[[float], float]:
    # floor/ceil/trunc return ints and reject infinities; pass non-finite values through.
    # copysign keeps the zero sign, e.g. ceil(-0.5) is -0.0.
    return lambda x: math.copysign(float(fn(x)), x) if math.isfinite(x) else x


def _round_half_away(x: float) -> float:
    if not math.isfinite(x):
        return x
    t = float(math.trunc(x))
    if abs(x - t) >= 0.5:
        t += math.copysign(1.0, x)
    return math.copysign(t, x)


def _round_to_even(x: float) -> float:
    if not math.isfinite(x):
        return x
    return math.copysign(float(round(x)), x)


def _logb(x: float) -> float:
    if x == 0:
        raise ValueError("logb of zero")
    if math.isinf(x):
        return math.inf
    if math.isnan(x):
        return x
    return float(math.frexp(x)[1] - 1)


MATH_FUNCTIONS: Dict[str, Callable[[float], float]] = {
    "abs": math.fabs,
    "acos": math.acos,
    "acosh": math.acosh,
    "asin": math.asin,
    "asinh": math.asinh,
    "atan": math.atan,
    "atanh": math.atanh,
    "cbrt": math.cbrt,
    "ceil": _integral(math.ceil),
    "cos": math.cos,
    "cosh": math.cosh,
    "erf": math.erf,
    "erfc": math.erfc,
    "erfcinv": special.erfcinv,
    "erfinv": special.erfinv,
    "exp": math.exp,
    "exp2": math.exp2,
    "expm1": math.expm1,
    "floor": _integral(math.floor),
    "gamma": math.gamma,
    "j0": special.j0,
    "j1": special.j1,
    "log": math.log,
    "log10": math.log10,
    "log1p": math.log1p,
    "log2": math.log2,
    "logb": _logb,
    "round": _round_half_away,
    "roundtoeven": _round_to_even,
    "sin": math.sin,
    "sinh": math.sinh,
    "sqrt": math.sqrt,
    "tan": math.tan,
    "tanh": math.tanh,
    "trunc": _integral(math.trunc),
    "y0": special.y0,
    "y1": special.y1,
}


class FunctionLibrary:
    """Python implementations of the non-math built-ins.

    Every method named `_<name>` becomes the function `<name>`. The random
    source must provide `random()` and `randrange(n)`; sharing it between
    threads is the caller's business.
    """
    def __init__(self, random_source=None):
        self.random_source = random_source if random_source is not None else random.Random()

    def functions(self) -> Dict[str, Function]:
        table: Dict[str, Function] = {
            name: numeric_function(name, fn) for name, fn in MATH_FUNCTIONS.items()
        }
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                table[name[1:]] = member
        return table

    # --- Aggregates ---
    def _sum(self, node: Value) -> Value:
        if not node.is_container():
            return value_node("sum", NodeType.NULL)
        total = 0.0
        for child in node.inheritors():
            total += child.get_numeric()
        return value_node("sum", NodeType.NUMERIC, total)

    def _avg(self, node: Value) -> Value:
        if not node.is_container():
            return value_node("avg", NodeType.NULL)
        size = node.size()
        if size == 0:
            return value_node("avg", NodeType.NUMERIC, 0.0)
        total = 0.0
        for child in node.inheritors():
            total += child.get_numeric()
        return value_node("avg", NodeType.NUMERIC, total / size)

    def _length(self, node: Value) -> Value:
        if node.is_container():
            return value_node("length", NodeType.NUMERIC, node.size())
        if node.is_string():
            return value_node("length", NodeType.NUMERIC, len(node.get_string()))
        return value_node("length", NodeType.NUMERIC, 1)

    # --- Integer math ---
    def _factorial(self, node: Value) -> Value:
        num = node.get_uinteger()
        if num > MAX_FACTORIAL:
            raise NumericOverflowError(f"factorial({num}) does not fit a float64")
        result = 1
        for k in range(2, num + 1):
            result *= k
        return value_node("factorial", NodeType.NUMERIC, float(result))

    def _pow10(self, node: Value) -> Value:
        num = node.get_integer()
        # The decimal literal gives IEEE semantics: +Inf above range, 0 below.
        return value_node("pow10", NodeType.NUMERIC, float(f"1e{num}"))

    # --- Logic ---
    def _not(self, node: Value) -> Value:
        return value_node("not", NodeType.BOOL, not boolean(node))

    # --- Random ---
    def _rand(self, node: Value) -> Value:
        num = node.get_numeric()
        return value_node("rand", NodeType.NUMERIC, self.random_source.random() * num)

    def _randint(self, node: Value) -> Value:
        num = node.get_integer()
        if num <= 0:
            raise MathDomainError(f"randint expects a positive integer, got {num}")
        return value_node("randint", NodeType.NUMERIC, self.random_source.randrange(num))

    # --- Base64 ---
    def _b64encode(self, node: Value) -> Value:
        if not node.is_string():
            return value_node("b64encode", NodeType.NULL)
        try:
            raw = node.get_string().encode("utf-8", "surrogateescape")
        except UnicodeEncodeError as e:
            # Lone surrogates outside the escape range (e.g. from a JSON "\ud800").
            raise TypeCoercionError(
                f"b64encode: string has no UTF-8 form at index {e.start}") from e
        return value_node("b64encode", NodeType.STRING, b64.encode(raw))

    def _b64decode(self, node: Value) -> Value:
        if not node.is_string():
            return value_node("b64decode", NodeType.NULL)
        raw = b64.decode(node.get_string())
        return value_node("b64decode", NodeType.STRING, raw.decode("utf-8", "surrogateescape"))
