"""
Defines the core data types for the jpscript expression engine.

This module provides the tagged `Value` that every operator and function
consumes and produces, together with the error kinds raised during
evaluation.
"""

import enum
import math
from typing import Any, Dict, List, Optional, Union


# =================================================================
# Errors
# =================================================================

class ScriptError(Exception):
    """Base class for every error raised while evaluating an expression."""
    pass


class TypeCoercionError(ScriptError, TypeError):
    pass


class DivisionByZero(ScriptError, ZeroDivisionError):
    pass


class UnsupportedOperator(ScriptError, LookupError):
    def __init__(self, token: str):
        super().__init__(f"unsupported operator {token!r}")
        self.token = token


class UnknownFunction(ScriptError, LookupError):
    def __init__(self, name: str):
        super().__init__(f"unknown function {name!r}")
        self.name = name


class UnknownConstant(ScriptError, LookupError):
    def __init__(self, name: str):
        super().__init__(f"unknown constant {name!r}")
        self.name = name


class PathNotFound(ScriptError, LookupError):
    def __init__(self, key):
        super().__init__(f"path not found: {key!r}")
        self.key = key


class RegistrationError(ScriptError, ValueError):
    pass


class RegexCompileError(ScriptError, ValueError):
    pass


class Base64FormatError(ScriptError, ValueError):
    """Malformed base64 input. `offset` is the index of the offending byte."""
    def __init__(self, message: str, offset: int):
        super().__init__(f"{message} at offset {offset}")
        self.offset = offset


class EmptyInputError(ScriptError, ValueError):
    pass


class MathDomainError(ScriptError, ValueError):
    pass


class NumericOverflowError(ScriptError, OverflowError):
    pass


class ExpressionSyntaxError(ScriptError, ValueError):
    """Raised by the expression runner; `position` is a 0-based column."""
    def __init__(self, message: str, position: Optional[int] = None):
        super().__init__(message)
        self.position = position


# =================================================================
# Values
# =================================================================

class NodeType(enum.Enum):
    NULL = "null"
    NUMERIC = "numeric"
    STRING = "string"
    BOOL = "bool"
    ARRAY = "array"
    OBJECT = "object"


Payload = Union[None, float, str, bool, List["Value"], Dict[str, "Value"]]


class Value:
    """A JSON-derived value with exactly one active type tag.

    Leaf values carry a Python scalar payload; arrays hold a list of
    child Values and objects an insertion-ordered dict of them. The
    `label` names whatever produced the value and is only used in
    diagnostics, never in comparisons.
    """

    __slots__ = ("tag", "payload", "label")

    def __init__(self, tag: NodeType, payload: Payload = None, label: Optional[str] = None):
        self.tag = tag
        self.payload = _check_payload(tag, payload)
        self.label = label

    # --- Type predicates ---
    def is_null(self) -> bool:
        return self.tag is NodeType.NULL

    def is_numeric(self) -> bool:
        return self.tag is NodeType.NUMERIC

    def is_string(self) -> bool:
        return self.tag is NodeType.STRING

    def is_bool(self) -> bool:
        return self.tag is NodeType.BOOL

    def is_array(self) -> bool:
        return self.tag is NodeType.ARRAY

    def is_object(self) -> bool:
        return self.tag is NodeType.OBJECT

    def is_container(self) -> bool:
        return self.tag is NodeType.ARRAY or self.tag is NodeType.OBJECT

    # --- Coercions ---
    def get_string(self) -> str:
        if self.tag is not NodeType.STRING:
            raise self._type_error("string")
        return self.payload

    def get_numeric(self) -> float:
        if self.tag is not NodeType.NUMERIC:
            raise self._type_error("numeric")
        return self.payload

    def get_bool(self) -> bool:
        if self.tag is not NodeType.BOOL:
            raise self._type_error("bool")
        return self.payload

    def get_integer(self) -> int:
        """Numeric value as an int; fails when the number has a fractional part."""
        num = self.get_numeric()
        if not math.isfinite(num) or num != math.floor(num):
            raise TypeCoercionError(f"{self._describe()} is not an integer")
        return int(num)

    def get_uinteger(self) -> int:
        num = self.get_integer()
        if num < 0:
            raise TypeCoercionError(f"{self._describe()} is not an unsigned integer")
        return num

    # --- Containers ---
    def size(self) -> int:
        if not self.is_container():
            raise self._type_error("container")
        return len(self.payload)

    def inheritors(self) -> List["Value"]:
        """Children in traversal order (array order, or object insertion order)."""
        if self.tag is NodeType.ARRAY:
            return list(self.payload)
        if self.tag is NodeType.OBJECT:
            return list(self.payload.values())
        raise self._type_error("container")

    def keys(self) -> List[str]:
        if self.tag is not NodeType.OBJECT:
            raise self._type_error("object")
        return list(self.payload.keys())

    def child(self, key: Union[str, int]) -> "Value":
        """Direct child access by object key or array index (negative counts from the end)."""
        if self.tag is NodeType.OBJECT and isinstance(key, str):
            if key not in self.payload:
                raise PathNotFound(key)
            return self.payload[key]
        if self.tag is NodeType.ARRAY and isinstance(key, int) and not isinstance(key, bool):
            if not -len(self.payload) <= key < len(self.payload):
                raise PathNotFound(key)
            return self.payload[key]
        raise PathNotFound(key)

    # --- Comparisons ---
    def eq(self, other: "Value") -> bool:
        if self.tag is not other.tag:
            return False
        match self.tag:
            case NodeType.NULL:
                return True
            case NodeType.ARRAY:
                if len(self.payload) != len(other.payload):
                    return False
                return all(a.eq(b) for a, b in zip(self.payload, other.payload))
            case NodeType.OBJECT:
                if self.payload.keys() != other.payload.keys():
                    return False
                return all(v.eq(other.payload[k]) for k, v in self.payload.items())
            case _:
                return self.payload == other.payload

    def neq(self, other: "Value") -> bool:
        return not self.eq(other)

    def lt(self, other: "Value") -> bool:
        return self._ordered(other, lambda a, b: a < b)

    def le(self, other: "Value") -> bool:
        return self._ordered(other, lambda a, b: a <= b)

    def gt(self, other: "Value") -> bool:
        return self._ordered(other, lambda a, b: a > b)

    def ge(self, other: "Value") -> bool:
        return self._ordered(other, lambda a, b: a >= b)

    def _ordered(self, other: "Value", cmp) -> bool:
        # Values of different types are never ordered.
        if self.tag is not other.tag:
            return False
        if self.tag is NodeType.NUMERIC or self.tag is NodeType.STRING:
            return cmp(self.payload, other.payload)
        raise TypeCoercionError(f"{self.tag.value} values cannot be ordered")

    # --- Conversion ---
    def to_python(self) -> Any:
        match self.tag:
            case NodeType.ARRAY:
                return [c.to_python() for c in self.payload]
            case NodeType.OBJECT:
                return {k: v.to_python() for k, v in self.payload.items()}
            case _:
                return self.payload

    def copy(self, label: Optional[str] = None) -> "Value":
        """Deep, detached copy; keeps the current label unless one is given."""
        lbl = self.label if label is None else label
        match self.tag:
            case NodeType.ARRAY:
                return Value(self.tag, [c.copy() for c in self.payload], lbl)
            case NodeType.OBJECT:
                return Value(self.tag, {k: v.copy() for k, v in self.payload.items()}, lbl)
            case _:
                return Value(self.tag, self.payload, lbl)

    def _describe(self) -> str:
        if self.label:
            return f"{self.tag.value} value ({self.label})"
        return f"{self.tag.value} value"

    def _type_error(self, wanted: str) -> TypeCoercionError:
        return TypeCoercionError(f"expected {wanted}, got {self._describe()}")

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return self.eq(other)

    __hash__ = None

    def __repr__(self) -> str:
        from jpscript.jpscript_printer import Printer
        return f"Value<{self.tag.value}>({Printer().pformat(self)})"


def _check_payload(tag: NodeType, payload: Payload) -> Payload:
    match tag:
        case NodeType.NULL:
            if payload is not None:
                raise TypeCoercionError("null value cannot carry a payload")
            return None
        case NodeType.NUMERIC:
            if isinstance(payload, bool) or not isinstance(payload, (int, float)):
                raise TypeCoercionError(f"numeric payload expected, got {type(payload).__name__}")
            try:
                return float(payload)
            except OverflowError as e:
                raise NumericOverflowError(f"{payload} does not fit a float64") from e
        case NodeType.STRING:
            if not isinstance(payload, str):
                raise TypeCoercionError(f"string payload expected, got {type(payload).__name__}")
            return payload
        case NodeType.BOOL:
            if not isinstance(payload, bool):
                raise TypeCoercionError(f"bool payload expected, got {type(payload).__name__}")
            return payload
        case NodeType.ARRAY:
            payload = list(payload or [])
            if not all(isinstance(c, Value) for c in payload):
                raise TypeCoercionError("array children must be Values")
            return payload
        case NodeType.OBJECT:
            payload = dict(payload or {})
            if not all(isinstance(k, str) and isinstance(v, Value) for k, v in payload.items()):
                raise TypeCoercionError("object children must be Values keyed by strings")
            return payload
    raise TypeCoercionError(f"unknown node type {tag!r}")


def value_node(label: Optional[str], tag: NodeType, payload: Payload = None) -> Value:
    """Factory for detached result values."""
    return Value(tag, payload, label)


def from_python(obj: Any, label: Optional[str] = None) -> Value:
    """Build a Value tree from plain Python data (as produced by json/yaml loaders)."""
    if isinstance(obj, Value):
        return obj
    match obj:
        case None:
            return Value(NodeType.NULL, None, label)
        # bool is a subclass of int, so check it before int
        case bool():
            return Value(NodeType.BOOL, obj, label)
        case int() | float():
            return Value(NodeType.NUMERIC, obj, label)
        case str():
            return Value(NodeType.STRING, obj, label)
        case list() | tuple():
            return Value(NodeType.ARRAY, [from_python(x, label) for x in obj], label)
        case dict():
            return Value(NodeType.OBJECT, {str(k): from_python(v, label) for k, v in obj.items()}, label)
    raise TypeCoercionError(f"cannot convert {type(obj).__name__} to a Value")
