"""
A small reference host for the engine: tokenizes a filter expression with
the registry's operator tables, builds an expression tree by precedence
climbing, and evaluates it bottom-up against a current node `@`.

Path support is limited to direct child access (`@.a`, `@['a']`, `@[0]`);
wildcards, slices and recursive descent belong to a real JSONPath walker.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Literal, Optional, Union

from jpscript.jpscript_datatypes import (
    Value, NodeType, value_node, from_python,
    ScriptError, ExpressionSyntaxError, PathNotFound, TypeCoercionError,
)
from jpscript.jpscript_operators import boolean
from jpscript.jpscript_registry import Registry, DEFAULT_REGISTRY, _dbg

_NUMBER = re.compile(r'-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')
_IDENT = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')
_INDEX = re.compile(r'-?\d+')
_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', 'b': '\b', 'f': '\f', '/': '/'}


# ===================================================================
# 1. Tokens and Tree Nodes
# ===================================================================

@dataclass
class Token:
    kind: Literal['number', 'string', 'operator', 'name', 'current', 'key', 'index', 'lparen', 'rparen']
    text: str
    pos: int
    value: Any = None


class LiteralNode:
    def __init__(self, value: Value, pos: int):
        self.value = value
        self.pos = pos

    def __repr__(self):
        return f"Literal({self.value!r})"


class CurrentNode:
    """`@` followed by zero or more child-access segments."""
    def __init__(self, segments: List[Union[str, int]], pos: int):
        self.segments = segments
        self.pos = pos

    def __repr__(self):
        return f"Current({self.segments!r})"


class ConstantNode:
    def __init__(self, name: str, pos: int):
        self.name = name
        self.pos = pos

    def __repr__(self):
        return f"Constant({self.name!r})"


class CallNode:
    def __init__(self, name: str, arg: Any, pos: int):
        self.name = name
        self.arg = arg
        self.pos = pos

    def __repr__(self):
        return f"Call({self.name!r}, {self.arg!r})"


class BinaryNode:
    def __init__(self, op: str, left: Any, right: Any, pos: int):
        self.op = op
        self.left = left
        self.right = right
        self.pos = pos

    def __repr__(self):
        return f"Binary({self.op!r}, {self.left!r}, {self.right!r})"


# ===================================================================
# 2. Tokenizer
# ===================================================================

def _read_string(source: str, pos: int) -> tuple[str, int]:
    quote = source[pos]
    i = pos + 1
    out = []
    while i < len(source):
        ch = source[i]
        if ch == '\\':
            if i + 1 >= len(source):
                break
            nxt = source[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if ch == quote:
            return ''.join(out), i + 1
        out.append(ch)
        i += 1
    raise ExpressionSyntaxError("unterminated string literal", pos)


def tokenize(source: str, registry: Registry) -> List[Token]:
    tokens: List[Token] = []
    operators = registry.operators_by_length()
    i = 0
    n = len(source)

    def operand_expected() -> bool:
        return not tokens or tokens[-1].kind in ('operator', 'lparen')

    def match_operator(at: int) -> Optional[str]:
        if not registry.starts_operator(source[at]):
            return None
        lowered = source[at:].lower()
        for op in operators:
            if not lowered.startswith(op):
                continue
            # Word operators (e.g. a registered 'in') must end on a word boundary.
            end = at + len(op)
            if op[-1].isalnum() and end < n and (source[end].isalnum() or source[end] == '_'):
                continue
            return op
        return None

    while i < n:
        ch = source[i]
        if ch.isspace():
            i += 1
            continue

        if ch == '(':
            tokens.append(Token('lparen', ch, i))
            i += 1
            continue
        if ch == ')':
            tokens.append(Token('rparen', ch, i))
            i += 1
            continue

        if ch == '@':
            tokens.append(Token('current', ch, i))
            i += 1
            # Child-access segments directly attached to '@'
            while i < n and source[i] in '.[':
                if source[i] == '.':
                    m = _IDENT.match(source, i + 1)
                    if not m:
                        raise ExpressionSyntaxError("expected a key after '.'", i)
                    tokens.append(Token('key', m.group(0), i, m.group(0)))
                    i = m.end()
                    continue
                start = i
                j = i + 1
                while j < n and source[j].isspace():
                    j += 1
                if j < n and source[j] in '\'"':
                    key, j = _read_string(source, j)
                    seg = Token('key', source[start:j], start, key)
                else:
                    m = _INDEX.match(source, j)
                    if not m:
                        raise ExpressionSyntaxError("expected a quoted key or an integer index", j)
                    seg = Token('index', m.group(0), start, int(m.group(0)))
                    j = m.end()
                while j < n and source[j].isspace():
                    j += 1
                if j >= n or source[j] != ']':
                    raise ExpressionSyntaxError("expected ']'", j)
                tokens.append(seg)
                i = j + 1
            continue

        if ch in '\'"':
            text, end = _read_string(source, i)
            tokens.append(Token('string', source[i:end], i, text))
            i = end
            continue

        if ch.isdigit() or ch == '.' or (ch == '-' and operand_expected()):
            m = _NUMBER.match(source, i)
            if m:
                tokens.append(Token('number', m.group(0), i, float(m.group(0))))
                i = m.end()
                continue

        op = None if operand_expected() else match_operator(i)
        if op is not None:
            tokens.append(Token('operator', source[i:i + len(op)], i, op))
            i += len(op)
            continue

        m = _IDENT.match(source, i)
        if m:
            tokens.append(Token('name', m.group(0), i, m.group(0)))
            i = m.end()
            continue

        raise ExpressionSyntaxError(f"unexpected character {ch!r}", i)

    _dbg("TOKENS", [t.text for t in tokens])
    return tokens


# ===================================================================
# 3. Parser
# ===================================================================

class _Parser:
    def __init__(self, tokens: List[Token], registry: Registry, source: str):
        self.tokens = tokens
        self.registry = registry
        self.source = source
        self.i = 0

    def peek(self) -> Optional[Token]:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def advance(self) -> Token:
        tok = self.tokens[self.i]
        self.i += 1
        return tok

    def expect(self, kind: str) -> Token:
        tok = self.peek()
        if tok is None or tok.kind != kind:
            pos = tok.pos if tok is not None else len(self.source)
            raise ExpressionSyntaxError(f"expected {kind}", pos)
        return self.advance()

    def parse(self):
        if not self.tokens:
            raise ExpressionSyntaxError("empty expression", 0)
        node = self.expression(1)
        tok = self.peek()
        if tok is not None:
            raise ExpressionSyntaxError(f"unexpected {tok.text!r}", tok.pos)
        return node

    def expression(self, min_prec: int):
        left = self.operand()
        while True:
            tok = self.peek()
            if tok is None or tok.kind != 'operator':
                return left
            prec = self.registry.precedence(tok.value)
            if prec < min_prec:
                return left
            self.advance()
            next_min = prec if self.registry.is_right_associative(tok.value) else prec + 1
            right = self.expression(next_min)
            left = BinaryNode(tok.value, left, right, tok.pos)

    def operand(self):
        tok = self.peek()
        if tok is None:
            raise ExpressionSyntaxError("unexpected end of expression", len(self.source))
        self.advance()
        match tok.kind:
            case 'number':
                return LiteralNode(value_node("literal", NodeType.NUMERIC, tok.value), tok.pos)
            case 'string':
                return LiteralNode(value_node("literal", NodeType.STRING, tok.value), tok.pos)
            case 'lparen':
                inner = self.expression(1)
                self.expect('rparen')
                return inner
            case 'current':
                segments = []
                while (nxt := self.peek()) is not None and nxt.kind in ('key', 'index'):
                    segments.append(self.advance().value)
                return CurrentNode(segments, tok.pos)
            case 'name':
                nxt = self.peek()
                if nxt is not None and nxt.kind == 'lparen':
                    self.advance()
                    arg = self.expression(1)
                    self.expect('rparen')
                    return CallNode(tok.value.lower(), arg, tok.pos)
                return ConstantNode(tok.value.lower(), tok.pos)
        raise ExpressionSyntaxError(f"unexpected {tok.text!r}", tok.pos)


# ===================================================================
# 4. Evaluation
# ===================================================================

class Expression:
    """A compiled expression tree bound to the registry it was parsed with."""
    def __init__(self, source: str, tree, registry: Registry):
        self.source = source
        self.tree = tree
        self.registry = registry

    def evaluate(self, current: Optional[Value] = None) -> Value:
        return self._eval(self.tree, current)

    def _eval(self, node, current: Optional[Value]) -> Value:
        try:
            match node:
                case LiteralNode():
                    return node.value.copy()
                case ConstantNode():
                    return self.registry.constant(node.name)
                case CurrentNode():
                    if current is None:
                        raise TypeCoercionError("'@' used without a current node")
                    value = current
                    for seg in node.segments:
                        value = value.child(seg)
                    return value
                case CallNode():
                    arg = self._eval(node.arg, current)
                    _dbg("CALL", node.name, arg.tag.value)
                    return self.registry.call(node.name, arg)
                case BinaryNode():
                    left = self._eval(node.left, current)
                    if self.registry.is_lazy(node.op):
                        right = lambda: self._eval(node.right, current)
                    else:
                        right = self._eval(node.right, current)
                    _dbg("OP", node.op, left.tag.value)
                    return self.registry.evaluate(node.op, left, right)
        except ScriptError as e:
            # Remember the innermost position only.
            if getattr(e, 'position', None) is None:
                e.position = node.pos
            raise
        raise TypeError(f"Unsupported expression node: {node!r}")

    def __repr__(self):
        return f"<Expression {self.source!r} tree={self.tree!r}>"


# ===================================================================
# 5. Runner
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of evaluating one expression."""
    status: Literal['success', 'error']
    value: Optional[Value] = None
    error_message: Optional[str] = None
    error_position: Optional[int] = None
    source: Optional[str] = None

    def format_error(self) -> str:
        """Formats the error with the source line and a caret under the offending column."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_position is None or self.source is None:
            return msg
        col = self.error_position
        return f"Error at col {col + 1}: {msg}\n  {self.source}\n  {' ' * col}^"


class ExpressionRunner:
    """Compiles and evaluates filter expressions against a registry."""

    def __init__(self, registry: Optional[Registry] = None):
        self.registry = registry if registry is not None else DEFAULT_REGISTRY

    def compile(self, source: str) -> Expression:
        tokens = tokenize(source, self.registry)
        tree = _Parser(tokens, self.registry, source).parse()
        _dbg("TREE", tree)
        return Expression(source, tree, self.registry)

    def evaluate(self, source: str, current: Any = None) -> Value:
        if current is not None and not isinstance(current, Value):
            current = from_python(current, "@")
        return self.compile(source).evaluate(current)

    def select(self, source: str, container: Any) -> List[Value]:
        """Children of `container` for which the expression is truthy.

        Children missing a referenced key are skipped, as a JSONPath filter would.
        """
        if not isinstance(container, Value):
            container = from_python(container, "$")
        expr = self.compile(source)
        selected = []
        for child in container.inheritors():
            try:
                result = expr.evaluate(child)
            except PathNotFound:
                continue
            if boolean(result):
                selected.append(child)
        return selected

    def handle_expression(self, source: str, current: Any = None) -> ExecutionResult:
        try:
            value = self.evaluate(source, current)
        except ScriptError as e:
            name = type(e).__name__
            return ExecutionResult(
                status='error',
                error_message=f"{name}: {e}",
                error_position=getattr(e, 'position', None),
                source=source,
            )
        return ExecutionResult(status='success', value=value, source=source)
