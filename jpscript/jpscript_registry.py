"""
Operator, function and constant registries.

A Registry owns every name-indexed table the engine dispatches through.
The tables are plain dicts and sets with no locking: register operators,
functions and constants while the process starts up, before any
evaluation runs. Registering while another thread evaluates against the
same Registry is undefined behaviour. Tests that need custom entries
should build their own Registry rather than touching DEFAULT_REGISTRY.
"""

import math
import os
import sys
from typing import Dict, List

from jpscript.jpscript_datatypes import (
    Value, from_python,
    UnsupportedOperator, UnknownFunction, UnknownConstant, RegistrationError,
)
from jpscript.jpscript_operators import (
    PRECEDENCE, RIGHT_ASSOCIATIVE, LAZY_OPERATORS, OPERATIONS, Operation, Operand,
)
from jpscript.jpscript_functions import FunctionLibrary, Function

PHI = (1 + math.sqrt(5)) / 2

BUILTIN_CONSTANTS = {
    "e": math.e,
    "pi": math.pi,
    "phi": PHI,
    "sqrt2": math.sqrt(2),
    "sqrte": math.sqrt(math.e),
    "sqrtpi": math.sqrt(math.pi),
    "sqrtphi": math.sqrt(PHI),
    "ln2": math.log(2),
    "log2e": 1 / math.log(2),
    "ln10": math.log(10),
    "log10e": 1 / math.log(10),
    "true": True,
    "false": False,
    "null": None,
}


def _dbg(*parts):
    if os.environ.get("JPSCRIPT_DEBUG"):
        try:
            print("[DBG]", *parts, file=sys.stderr)
        except Exception:
            pass


def _normalize_alias(kind: str, alias) -> str:
    if not isinstance(alias, str) or not alias:
        raise RegistrationError(f"{kind} alias must be a non-empty string, got {alias!r}")
    return alias.lower()


class Registry:
    """Holds the precedence table, operations, functions and constants."""

    def __init__(self, random_source=None, load_builtins: bool = True):
        self.priority: Dict[str, int] = {}
        self.right_ops: set = set()
        self.priority_chars: set = set()
        self.lazy_ops: set = set(LAZY_OPERATORS)
        self.operations: Dict[str, Operation] = {}
        self.functions: Dict[str, Function] = {}
        self.constants: Dict[str, Value] = {}
        self.library = FunctionLibrary(random_source)
        if load_builtins:
            self._load_builtins()

    def _load_builtins(self):
        for token, op in OPERATIONS.items():
            self.register_operator(token, PRECEDENCE[token], token in RIGHT_ASSOCIATIVE, op)
        for name, fn in self.library.functions().items():
            self.register_function(name, fn)
        for name, raw in BUILTIN_CONSTANTS.items():
            self.register_constant(name, from_python(raw, name))

    # --- Extension API ---
    def register_operator(self, alias: str, precedence: int, right_associative: bool, operation: Operation):
        alias = _normalize_alias("operator", alias)
        self.operations[alias] = operation
        self.priority[alias] = precedence
        self.priority_chars.add(alias[0])
        if right_associative:
            self.right_ops.add(alias)
        else:
            self.right_ops.discard(alias)
        _dbg("register operator", alias, "precedence", precedence, "right", right_associative)

    def register_function(self, alias: str, function: Function):
        alias = _normalize_alias("function", alias)
        self.functions[alias] = function
        _dbg("register function", alias)

    def register_constant(self, alias: str, value: Value):
        alias = _normalize_alias("constant", alias)
        if not isinstance(value, Value):
            value = from_python(value, alias)
        self.constants[alias] = value
        _dbg("register constant", alias, value.tag.value)

    # --- Tokenizer metadata ---
    def precedence(self, token: str) -> int:
        try:
            return self.priority[token.lower()]
        except KeyError:
            raise UnsupportedOperator(token) from None

    def is_right_associative(self, token: str) -> bool:
        return token.lower() in self.right_ops

    def is_lazy(self, token: str) -> bool:
        return token.lower() in self.lazy_ops

    def starts_operator(self, ch: str) -> bool:
        return ch.lower() in self.priority_chars

    def operators_by_length(self) -> List[str]:
        """All operator tokens, longest first, for longest-match tokenizing."""
        return sorted(self.operations, key=len, reverse=True)

    # --- Dispatch ---
    def evaluate(self, token: str, left: Value, right: Operand) -> Value:
        operation = self.operations.get(token.lower())
        if operation is None:
            raise UnsupportedOperator(token)
        return operation(left, right)

    def call(self, name: str, node: Value) -> Value:
        function = self.functions.get(name.lower())
        if function is None:
            raise UnknownFunction(name)
        return function(node)

    def has_function(self, name: str) -> bool:
        return name.lower() in self.functions

    def has_constant(self, name: str) -> bool:
        return name.lower() in self.constants

    def constant(self, name: str) -> Value:
        """A detached copy of the named constant."""
        value = self.constants.get(name.lower())
        if value is None:
            raise UnknownConstant(name)
        return value.copy()

    def copy(self) -> "Registry":
        """A new Registry with the same entries; further registrations stay independent."""
        other = Registry(load_builtins=False)
        other.library = self.library
        other.priority = dict(self.priority)
        other.right_ops = set(self.right_ops)
        other.priority_chars = set(self.priority_chars)
        other.lazy_ops = set(self.lazy_ops)
        other.operations = dict(self.operations)
        other.functions = dict(self.functions)
        other.constants = dict(self.constants)
        return other


# Process-wide registry. Mutate it only at startup.
DEFAULT_REGISTRY = Registry()


def register_operator(alias: str, precedence: int, right_associative: bool, operation: Operation):
    DEFAULT_REGISTRY.register_operator(alias, precedence, right_associative, operation)


def register_function(alias: str, function: Function):
    DEFAULT_REGISTRY.register_function(alias, function)


def register_constant(alias: str, value: Value):
    DEFAULT_REGISTRY.register_constant(alias, value)


def evaluate(token: str, left: Value, right: Operand) -> Value:
    return DEFAULT_REGISTRY.evaluate(token, left, right)


def call(name: str, node: Value) -> Value:
    return DEFAULT_REGISTRY.call(name, node)


def constant(name: str) -> Value:
    return DEFAULT_REGISTRY.constant(name)
