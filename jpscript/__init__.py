from jpscript.jpscript_datatypes import (
    Value, NodeType, value_node, from_python,
    ScriptError, TypeCoercionError, DivisionByZero, UnsupportedOperator,
    UnknownFunction, UnknownConstant, PathNotFound, RegistrationError, RegexCompileError,
    Base64FormatError, EmptyInputError, MathDomainError, NumericOverflowError,
    ExpressionSyntaxError,
)
from jpscript.jpscript_operators import boolean
from jpscript.jpscript_registry import (
    Registry, DEFAULT_REGISTRY,
    register_operator, register_function, register_constant,
    evaluate, call, constant,
)
from jpscript.jpscript_runtime import ExpressionRunner, ExecutionResult, Expression
from jpscript.jpscript_printer import Printer
from jpscript.jpscript_serialize import serialize, deserialize

__version__ = "0.1.0"
