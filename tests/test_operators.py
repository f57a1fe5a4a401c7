import math

import pytest
from jpscript.jpscript_datatypes import (
    Value, NodeType, from_python,
    TypeCoercionError, DivisionByZero, RegexCompileError, NumericOverflowError,
    MathDomainError, UnsupportedOperator,
)
from jpscript.jpscript_operators import OPERATIONS, PRECEDENCE, RIGHT_ASSOCIATIVE, boolean
from jpscript.jpscript_registry import Registry


@pytest.fixture
def registry():
    return Registry()


def ev(registry, token, left, right):
    return registry.evaluate(token, from_python(left), from_python(right))


# --- Precedence table ---

def test_precedence_levels():
    expected = {
        "**": 6,
        "*": 5, "/": 5, "%": 5, "<<": 5, ">>": 5, "&": 5, "&^": 5,
        "+": 4, "-": 4, "|": 4, "^": 4,
        "==": 3, "!=": 3, "<": 3, "<=": 3, ">": 3, ">=": 3, "=~": 3,
        "&&": 2,
        "||": 1,
    }
    assert PRECEDENCE == expected
    assert set(OPERATIONS) == set(expected)
    assert RIGHT_ASSOCIATIVE == {"**"}

def test_registry_precedence_lookup(registry):
    assert registry.precedence("**") > registry.precedence("*") > registry.precedence("+")
    assert registry.precedence("+") > registry.precedence("=~") > registry.precedence("&&")
    assert registry.precedence("&&") > registry.precedence("||")
    assert registry.is_right_associative("**")
    assert not registry.is_right_associative("-")
    with pytest.raises(UnsupportedOperator):
        registry.precedence("<>")

def test_operator_first_characters(registry):
    for ch in "*/%<>&|^+-=!":
        assert registry.starts_operator(ch)
    for ch in "a0@( ":
        assert not registry.starts_operator(ch)

def test_tokens_sorted_longest_first(registry):
    tokens = registry.operators_by_length()
    lengths = [len(t) for t in tokens]
    assert lengths == sorted(lengths, reverse=True)
    # no token is followed by a longer token that it is a prefix of
    for i, tok in enumerate(tokens):
        for later in tokens[i + 1:]:
            assert not (len(later) > len(tok) and later.startswith(tok)), (tok, later)
    for long_, short in [("<=", "<"), ("<<", "<"), ("&&", "&"), ("&^", "&"), ("||", "|"), ("**", "*"), (">=", ">")]:
        assert tokens.index(long_) < tokens.index(short)

def test_unknown_operator(registry):
    with pytest.raises(UnsupportedOperator):
        ev(registry, "<>", 1, 2)

# --- Arithmetic ---

@pytest.mark.parametrize("token,left,right,expected", [
    ("+", 1, 2, 3),
    ("-", 1, 2, -1),
    ("*", 3, 2.5, 7.5),
    ("/", 7, 2, 3.5),
    ("**", 2, 10, 1024),
    ("%", 7, 3, 1),
    ("%", -7, 3, -1),
    ("%", 7, -3, 1),
    ("<<", 1, 4, 16),
    (">>", 16, 2, 4),
    (">>", -16, 2, -4),
    ("&", 12, 10, 8),
    ("|", 12, 10, 14),
    ("^", 12, 10, 6),
    ("&^", 12, 10, 4),
])
def test_arithmetic(registry, token, left, right, expected):
    result = ev(registry, token, left, right)
    assert result.tag is NodeType.NUMERIC
    assert result.get_numeric() == expected

@pytest.mark.parametrize("a,b", [(1, 3), (-2.5, 0.1), (1e300, 1e10), (0, 7)])
def test_division_is_float_division(registry, a, b):
    assert ev(registry, "/", a, b).get_numeric() == a / b

@pytest.mark.parametrize("a", [0, 1, -3.5])
def test_division_by_zero(registry, a):
    with pytest.raises(DivisionByZero):
        ev(registry, "/", a, 0)

def test_remainder_by_zero(registry):
    with pytest.raises(DivisionByZero):
        ev(registry, "%", 5, 0)

@pytest.mark.parametrize("token", ["%", "<<", ">>", "&", "|", "^", "&^"])
def test_integer_operators_reject_fractions(registry, token):
    with pytest.raises(TypeCoercionError):
        ev(registry, token, 1.5, 1)

def test_shift_count_must_be_unsigned(registry):
    with pytest.raises(TypeCoercionError):
        ev(registry, "<<", 1, -1)
    with pytest.raises(TypeCoercionError):
        ev(registry, ">>", 1, -1)

def test_overflow_is_an_error(registry):
    with pytest.raises(NumericOverflowError):
        ev(registry, "<<", 1, 2000)
    with pytest.raises(NumericOverflowError):
        ev(registry, "**", 10, 400)
    assert ev(registry, "<<", 0, 5000).get_numeric() == 0

def test_power_domain_error(registry):
    with pytest.raises(MathDomainError):
        ev(registry, "**", -8, 1 / 3)

def test_arithmetic_rejects_strings(registry):
    with pytest.raises(TypeCoercionError):
        ev(registry, "-", "a", 1)
    with pytest.raises(TypeCoercionError):
        ev(registry, "*", 2, "b")

@pytest.mark.parametrize("s,t", [("", ""), ("foo", "bar"), ("1", "2"), ("héllo ", "wörld")])
def test_plus_concatenates_strings(registry, s, t):
    result = ev(registry, "+", s, t)
    assert result.tag is NodeType.STRING
    assert result.get_string() == s + t

def test_plus_string_with_number_fails(registry):
    with pytest.raises(TypeCoercionError):
        ev(registry, "+", "a", 1)
    with pytest.raises(TypeCoercionError):
        ev(registry, "+", 1, "a")

def test_results_are_detached_and_labelled(registry):
    left, right = from_python(2), from_python(3)
    result = registry.evaluate("*", left, right)
    assert result is not left and result is not right
    assert result.label == "multiply"

# --- Comparison ---

@pytest.mark.parametrize("token,left,right,expected", [
    ("==", 1, 1, True),
    ("==", 1, "1", False),
    ("!=", "a", "b", True),
    ("!=", None, None, False),
    ("<", 1, 2, True),
    ("<", "b", "a", False),
    ("<=", 2, 2, True),
    (">", 3, 2, True),
    (">=", "a", "b", False),
    ("<", 1, "2", False),
    ("==", [1, 2], [1, 2], True),
    ("==", {"a": 1}, {"a": 2}, False),
])
def test_comparison(registry, token, left, right, expected):
    result = ev(registry, token, left, right)
    assert result.tag is NodeType.BOOL
    assert result.get_bool() is expected

def test_ordering_bools_is_an_error(registry):
    with pytest.raises(TypeCoercionError):
        ev(registry, "<", True, False)

# --- Regex ---

@pytest.mark.parametrize("subject,pattern,expected", [
    ("hello world", "wor", True),
    ("hello world", "^world", False),
    ("abc123", r"\d+$", True),
    ("", "", True),
])
def test_regex_match(registry, subject, pattern, expected):
    assert ev(registry, "=~", subject, pattern).get_bool() is expected

def test_regex_invalid_pattern(registry):
    with pytest.raises(RegexCompileError):
        ev(registry, "=~", "abc", "(")

def test_regex_requires_strings(registry):
    with pytest.raises(TypeCoercionError):
        ev(registry, "=~", 1, "1")
    with pytest.raises(TypeCoercionError):
        ev(registry, "=~", "1", 1)

# --- Truthiness and logic ---

@pytest.mark.parametrize("raw,expected", [
    (None, False),
    (True, True),
    (False, False),
    (0, False),
    (-0.0, False),
    (2.5, True),
    ("", False),
    ("x", True),
    ([], False),
    ([0], True),
    ({}, False),
    ({"a": None}, True),
])
def test_boolean(raw, expected):
    assert boolean(from_python(raw)) is expected

def test_boolean_of_nan_is_true():
    assert boolean(Value(NodeType.NUMERIC, math.nan)) is True

def test_boolean_rejects_non_values():
    with pytest.raises(TypeCoercionError):
        boolean(42)

@pytest.mark.parametrize("token,left,right,expected", [
    ("&&", True, True, True),
    ("&&", True, 0, False),
    ("&&", 0, True, False),
    ("&&", "x", [1], True),
    ("||", False, 0, False),
    ("||", False, "x", True),
    ("||", 1, 0, True),
    ("||", None, {}, False),
])
def test_logical(registry, token, left, right, expected):
    assert ev(registry, token, left, right).get_bool() is expected

def test_and_short_circuits(registry):
    broken = object()  # truthiness of this would raise
    assert registry.evaluate("&&", from_python(False), broken).get_bool() is False
    with pytest.raises(TypeCoercionError):
        registry.evaluate("&&", from_python(True), broken)

def test_or_short_circuits(registry):
    broken = object()
    assert registry.evaluate("||", from_python(True), broken).get_bool() is True
    with pytest.raises(TypeCoercionError):
        registry.evaluate("||", from_python(False), broken)

def test_logical_right_operand_may_be_deferred(registry):
    calls = []

    def right():
        calls.append(1)
        return from_python(True)

    assert registry.evaluate("&&", from_python(0), right).get_bool() is False
    assert registry.evaluate("||", from_python(1), right).get_bool() is True
    assert calls == []
    assert registry.evaluate("&&", from_python(1), right).get_bool() is True
    assert calls == [1]
