import math

import pytest
from jpscript import jpscript_registry
from jpscript.jpscript_datatypes import (
    Value, NodeType, from_python, value_node,
    UnknownFunction, UnknownConstant, UnsupportedOperator, RegistrationError, ScriptError,
)
from jpscript.jpscript_registry import Registry, BUILTIN_CONSTANTS, PHI


@pytest.fixture
def registry():
    return Registry()


def _contains(left: Value, right: Value) -> Value:
    return value_node("in", NodeType.BOOL, any(left.eq(c) for c in right.inheritors()))


# --- Operators ---

def test_register_word_operator(registry):
    registry.register_operator("IN", 3, False, _contains)
    assert registry.precedence("in") == 3
    assert registry.precedence("In") == 3
    assert registry.starts_operator("i")
    assert not registry.is_right_associative("in")
    assert "in" in registry.operators_by_length()
    result = registry.evaluate("IN", from_python(2), from_python([1, 2, 3]))
    assert result.get_bool() is True

def test_register_right_associative_operator(registry):
    registry.register_operator("^^", 6, True, lambda l, r: value_node("pow", NodeType.NUMERIC, l.get_numeric() ** r.get_numeric()))
    assert registry.is_right_associative("^^")
    # re-registering without the flag clears it
    registry.register_operator("^^", 6, False, lambda l, r: l)
    assert not registry.is_right_associative("^^")

def test_override_builtin_operator(registry):
    registry.register_operator("+", 4, False, lambda l, r: value_node("plus", NodeType.STRING, "overridden"))
    assert registry.evaluate("+", from_python(1), from_python(2)).get_string() == "overridden"

@pytest.mark.parametrize("register,args", [
    ("register_operator", (3, False, _contains)),
    ("register_function", (lambda n: n,)),
    ("register_constant", (1,)),
])
@pytest.mark.parametrize("alias", ["", None])
def test_empty_alias_is_rejected(registry, register, args, alias):
    with pytest.raises(RegistrationError) as exc:
        getattr(registry, register)(alias, *args)
    assert isinstance(exc.value, ScriptError)
    assert isinstance(exc.value, ValueError)

def test_unregistered_operator(registry):
    with pytest.raises(UnsupportedOperator) as exc:
        registry.evaluate("in", from_python(1), from_python([1]))
    assert exc.value.token == "in"

def test_empty_registry_has_nothing():
    bare = Registry(load_builtins=False)
    assert bare.operations == {}
    assert bare.functions == {}
    assert bare.constants == {}
    assert not bare.starts_operator("+")

# --- Functions ---

def test_register_function(registry):
    registry.register_function("Double", lambda n: value_node("double", NodeType.NUMERIC, n.get_numeric() * 2))
    assert registry.has_function("double")
    assert registry.has_function("DOUBLE")
    assert registry.call("dOuBlE", from_python(21)).get_numeric() == 42

def test_unknown_function(registry):
    with pytest.raises(UnknownFunction) as exc:
        registry.call("frobnicate", from_python(1))
    assert exc.value.name == "frobnicate"

# --- Constants ---

@pytest.mark.parametrize("name,expected", [
    ("pi", math.pi),
    ("e", math.e),
    ("phi", (1 + math.sqrt(5)) / 2),
    ("sqrt2", math.sqrt(2)),
    ("sqrtphi", math.sqrt(PHI)),
    ("ln2", math.log(2)),
    ("log10e", 1 / math.log(10)),
])
def test_numeric_constants(registry, name, expected):
    value = registry.constant(name)
    assert value.tag is NodeType.NUMERIC
    assert value.get_numeric() == pytest.approx(expected)

def test_literal_constants(registry):
    assert registry.constant("true").get_bool() is True
    assert registry.constant("FALSE").get_bool() is False
    assert registry.constant("Null").is_null()

def test_every_builtin_constant_is_registered(registry):
    for name in BUILTIN_CONSTANTS:
        assert registry.has_constant(name)
        assert registry.has_constant(name.upper())

def test_constants_are_detached_copies(registry):
    registry.register_constant("Limits", from_python({"max": [1, 2]}))
    first = registry.constant("limits")
    first.child("max").payload.append(from_python(3))
    assert registry.constant("LIMITS").child("max").size() == 2
    assert registry.constant("limits") is not registry.constant("limits")

def test_register_constant_converts_plain_data(registry):
    registry.register_constant("answer", 42)
    assert registry.constant("answer").get_numeric() == 42

def test_unknown_constant(registry):
    with pytest.raises(UnknownConstant) as exc:
        registry.constant("tau")
    assert exc.value.name == "tau"

# --- Copies and the default registry ---

def test_copy_is_independent(registry):
    clone = registry.copy()
    clone.register_operator("in", 3, False, _contains)
    clone.register_function("twice", lambda n: n)
    clone.register_constant("tau", 2 * math.pi)
    assert not registry.starts_operator("i")
    assert not registry.has_function("twice")
    assert not registry.has_constant("tau")
    assert clone.evaluate("+", from_python(1), from_python(1)).get_numeric() == 2

def test_custom_registries_leave_default_alone(registry):
    registry.register_function("secret", lambda n: n)
    assert not jpscript_registry.DEFAULT_REGISTRY.has_function("secret")

def test_module_level_helpers_use_default_registry():
    assert jpscript_registry.evaluate("*", from_python(6), from_python(7)).get_numeric() == 42
    assert jpscript_registry.call("abs", from_python(-3)).get_numeric() == 3
    assert jpscript_registry.constant("pi").get_numeric() == math.pi

def test_module_level_registration(monkeypatch):
    monkeypatch.setattr(jpscript_registry, "DEFAULT_REGISTRY", Registry())
    jpscript_registry.register_function("ident", lambda n: n)
    jpscript_registry.register_constant("one", 1)
    jpscript_registry.register_operator("in", 3, False, _contains)
    assert jpscript_registry.call("ident", from_python("x")).get_string() == "x"
    assert jpscript_registry.constant("one").get_numeric() == 1
    assert jpscript_registry.evaluate("in", from_python(1), from_python([1])).get_bool()

def test_debug_output_goes_to_stderr(monkeypatch, capsys):
    monkeypatch.setenv("JPSCRIPT_DEBUG", "1")
    Registry(load_builtins=False).register_function("tracer", lambda n: n)
    err = capsys.readouterr().err
    assert "[DBG] register function tracer" in err
