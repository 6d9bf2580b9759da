import io
from textwrap import dedent

import pytest

from ouro.facade import CompilerFacade, PipelineOptions
from ouro.interpreter import Interpreter, InterpreterLimits
from ouro.parser import parse_ouro


def run(code, **kwargs):
    out = io.StringIO()
    facade = CompilerFacade(stdout=out, **kwargs)
    result = facade.run(dedent(code))
    return result, out.getvalue()


def output_lines(code, **kwargs):
    result, out = run(code, **kwargs)
    assert result.ok, result.messages
    return out.splitlines()


def run_unchecked(code):
    """Executes without the semantic gate, as a host that keeps going would."""
    out = io.StringIO()
    interpreter = Interpreter(stdout=out, reporter=lambda level, message: None)
    completed = interpreter.execute(parse_ouro(dedent(code)))
    return interpreter, completed, out.getvalue()


# --- end-to-end programs ---
def test_arithmetic_and_variables():
    assert output_lines("let x = 10 + 5 * 2; print(x);") == ["20"]


def test_branching():
    code = 'let r = 3; if (r > 2) { print("big"); } else { print("small"); }'
    assert output_lines(code) == ["big"]


def test_loops_and_accumulators():
    code = "let s = 0; for (let i = 1; i <= 5; i = i + 1) { s = s + i; } print(s);"
    assert output_lines(code) == ["15"]


def test_functions_and_recursion():
    code = "fn fact(n) { if (n <= 1) { return 1; } return n * fact(n - 1); } print(fact(6));"
    assert output_lines(code) == ["720"]


def test_classes_fields_methods_and_inheritance():
    code = """
    class A { public greet() { return "hello"; } }
    class B extends A { public greet2() { return this.greet() + ", world"; } }
    let b = new B(); print(b.greet2());
    """
    assert output_lines(code) == ["hello, world"]


def test_private_access_is_rejected_before_running():
    code = """
    class C { private secret = 42; }
    let c = new C(); print(c.secret);
    """
    result, out = run(code)

    assert out == ""
    assert result.executed is False
    assert result.semantic_errors == 1
    assert "secret" in result.semantic_messages[0]["message"]


def test_private_access_at_runtime_yields_undefined():
    code = """
    class C { private secret = 42; }
    let c = new C(); print(c.secret);
    """
    interpreter, completed, out = run_unchecked(code)

    assert completed is True
    assert out == "undefined\n"
    assert interpreter.diagnostics[0].message == "Cannot access private member 'secret' of class 'C'"


# --- recoverable faults ---
def test_division_by_zero_prints_nan_and_continues():
    result, out = run("let z = 1 / 0; print(z); print(\"after\");")

    assert out.splitlines() == ["NaN", "after"]
    assert result.ok is True
    assert result.runtime_errors == 1
    assert result.runtime_messages[0]["message"] == "Division by zero"


def test_modulus_by_zero():
    result, out = run("let n = 0; print(5 % n);")

    assert out == "NaN\n"
    assert result.runtime_messages[0]["message"] == "Modulus by zero"


def test_string_index_equal_to_length_is_undefined():
    result, out = run('let s = "abc"; print(s[3]); print(s[0]);')

    assert out.splitlines() == ["undefined", "a"]
    assert result.runtime_messages[0]["message"] == "String index 3 out of bounds (length 3)"


def test_array_index_out_of_bounds_read():
    result, out = run("let xs = [1, 2]; print(xs[5]);")

    assert out == "undefined\n"
    assert result.runtime_messages[0]["message"] == "Array index 5 out of bounds (length 2)"


def test_undefined_variable_at_runtime():
    interpreter, completed, out = run_unchecked("print(nope);")

    assert completed is True
    assert out == "undefined\n"
    assert interpreter.diagnostics[0].message == "Undefined variable 'nope'"


@pytest.mark.parametrize(
    "expr, printed, message",
    [
        ("~n", "NaN", "Invalid operand for unary '~': NaN"),
        ("(char) n", "undefined", "Cannot cast 'NaN' to char"),
        ("(char) 99999999", "undefined", "Cannot cast '99999999' to char"),
        ("(char) -1", "undefined", "Cannot cast '-1' to char"),
    ],
)
def test_non_integral_operands_are_reported(expr, printed, message):
    result, out = run(f"let z = 0; let n = 1 / z; print({expr}); print(\"after\");")

    assert out.splitlines() == [printed, "after"]
    assert result.aborted is False
    assert result.runtime_messages[-1]["message"] == message


@pytest.mark.parametrize("decl", ["let n = 1 / z;", "let n: any = 1e308 * 10;"])
def test_range_with_non_finite_bound_is_empty(decl):
    result, out = run(f"let z = 0; {decl} print(0..n); print(\"after\");")

    assert out.splitlines() == ["[]", "after"]
    assert result.aborted is False
    assert result.runtime_messages[-1]["message"].startswith("Invalid operand types for '..'")


def test_builtin_arity_mismatch_is_recoverable():
    result, out = run("print(len());")

    assert out == "undefined\n"
    assert result.runtime_messages[0]["message"] == "Built-in 'len' expects 1 argument(s), got 0"


# --- fatal faults ---
def test_break_outside_loop_is_fatal():
    result, out = run('print("before"); break; print("after");')

    assert out == "before\n"
    assert result.aborted is True
    assert result.ok is False
    assert result.runtime_messages[0]["message"] == "'break' used outside of a loop"


def test_break_inside_function_without_loop_is_fatal():
    result, _ = run("fn f() { break; } f();")

    assert result.aborted is True
    assert result.runtime_messages[0]["message"] == "'break' used outside of a loop"


def test_uncaught_exception_aborts():
    result, out = run('print("a"); throw "boom"; print("b");')

    assert out == "a\n"
    assert result.aborted is True
    assert result.runtime_messages[0]["message"] == "Uncaught exception: boom"


def test_state_stays_inspectable_after_abort():
    code = """
    class P { public x = 1; fn get() { return this.x; } }
    fn helper() { return 2; }
    let a = new P();
    let b = new P();
    throw "stop";
    let c = new P();
    """
    interpreter, completed, _ = run_unchecked(code)

    assert completed is False
    assert len(interpreter.heap) == 2
    assert [(obj.id, obj.class_name) for obj in interpreter.heap] == [(1, "P"), (2, "P")]
    assert ("helper", None) in interpreter.functions.names()
    assert ("get", "P") in interpreter.functions


def test_iterating_a_number_is_fatal():
    result, _ = run("let n: any = 5; for (x in n) { print(x); }")

    assert result.aborted is True
    assert result.runtime_messages[0]["message"] == "Value of type 'int' is not iterable"


def test_maximum_call_depth():
    code = "fn down(n) { return down(n + 1); } down(0);"
    result, _ = run(code, limits=InterpreterLimits(max_call_depth=50))

    assert result.aborted is True
    assert result.runtime_messages[0]["message"] == "Maximum call depth exceeded"


def test_duplicate_class_is_a_semantic_error():
    result, out = run("class C {} class C {}")

    assert result.semantic_errors == 1
    assert result.executed is False
    assert out == ""


# --- language features ---
def test_try_catch_finally():
    code = """
    fn risky(n) { if (n > 1) { throw "too big"; } return n; }
    try {
        print(risky(1));
        print(risky(5));
    } catch (e) {
        print("caught " + e);
    } finally {
        print("done");
    }
    """
    assert output_lines(code) == ["1", "caught too big", "done"]


def test_typed_catch_matches_subclasses():
    code = """
    class Err { msg = ""; Err(m) { this.msg = m; } }
    class NotFound extends Err { }
    try {
        throw new NotFound("x");
    } catch (string s) {
        print("string");
    } catch (Err e) {
        print("err " + e.msg);
    }
    """
    assert output_lines(code) == ["err x"]


def test_finally_runs_when_returning():
    code = """
    fn f() { try { return 1; } finally { print("cleanup"); } }
    print(f());
    """
    assert output_lines(code) == ["cleanup", "1"]


def test_static_fields_and_methods():
    code = """
    class Counter {
        static count = 0;
        static fn bump() { count = count + 1; return count; }
    }
    Counter.bump();
    Counter.bump();
    print(Counter.count);
    """
    assert output_lines(code) == ["2"]


def test_enum_values_are_ordinals():
    code = """
    enum Color { Red, Green, Blue }
    print(Color.Blue);
    let c = Color.Green;
    if (c == Color.Green) { print("green"); }
    """
    assert output_lines(code) == ["2", "green"]


def test_struct_positional_construction():
    code = """
    struct Point { x: int; y: int; }
    let p = new Point(3, 4);
    print(p.x + p.y);
    p.x = 10;
    print(p.x);
    """
    assert output_lines(code) == ["7", "10"]


def test_constructor_and_super_calls():
    code = """
    class Animal {
        name = "";
        Animal(n) { this.name = n; }
        speak() { return this.name + " makes a sound"; }
    }
    class Dog extends Animal {
        Dog(n) { super(n); }
        speak() { return super.speak() + " (woof)"; }
    }
    print(new Dog("Rex").speak());
    """
    assert output_lines(code) == ["Rex makes a sound (woof)"]


def test_objects_print_with_class_and_id():
    assert output_lines("class P {} let p = new P(); print(p);") == ["P#1"]


def test_by_reference_parameters_write_back():
    code = """
    fn inc(&n) { n = n + 1; }
    let v = 1;
    inc(v);
    print(v);
    """
    assert output_lines(code) == ["2"]


def test_default_parameters():
    code = """
    fn greet(name = "friend") { return "hi " + name; }
    print(greet());
    print(greet("bob"));
    """
    assert output_lines(code) == ["hi friend", "hi bob"]


def test_labelled_break_and_continue():
    code = """
    outer: for (let i = 0; i < 3; i++) {
        for (let j = 0; j < 3; j++) {
            if (j == 1) { continue outer; }
            if (i == 2) { break outer; }
            print(i + ":" + j);
        }
    }
    """
    assert output_lines(code) == ["0:0", "1:0"]


def test_while_and_do_while():
    code = """
    let i = 0;
    while (i < 3) { i++; }
    do { i = i + 10; } while (i < 5);
    print(i);
    """
    assert output_lines(code) == ["13"]


def test_foreach_over_array_and_string():
    code = """
    for (let x in [1, 2, 3]) { print(x * 2); }
    for (c in "ab") { print(c); }
    """
    assert output_lines(code) == ["2", "4", "6", "a", "b"]


def test_maps_support_member_and_index_access():
    code = """
    let m = {a: 1, "b": 2};
    m["c"] = 3;
    print(m.a + m["b"] + m.c);
    """
    assert output_lines(code) == ["6"]


def test_range_operator_builds_exclusive_list():
    assert output_lines("print(1..4);") == ["[1,2,3]"]


def test_arrays_grow_by_appending_at_length():
    assert output_lines("let xs = [1]; xs[1] = 2; array_push(xs, 3); print(xs);") == ["[1,2,3]"]


def test_casts_and_string_conversion():
    code = 'print((int) 3.9); print((string) 5 + "!");'
    assert output_lines(code) == ["3", "5!"]


def test_integer_and_float_division():
    assert output_lines("print(7 / 2); print(8 / 2); print(-7 % 3);") == ["3.5", "4", "-1"]


def test_bitwise_operators():
    assert output_lines("print(5 & 3); print(1 << 4); print(-1 >>> 60);") == ["1", "16", "15"]


def test_ternary_and_logical_operators():
    code = 'print(1 > 2 ? "yes" : "no"); print(true && false || true);'
    assert output_lines(code) == ["no", "true"]


def test_function_literals_are_callable_values():
    code = """
    let twice = fn(x) { return x * 2; };
    print(twice(21));
    """
    assert output_lines(code) == ["42"]


def test_main_is_called_after_top_level():
    code = 'fn main() { print("in main"); } print("top");'
    assert output_lines(code) == ["top", "in main"]
    assert output_lines(code, options=PipelineOptions(call_main=False)) == ["top"]


@pytest.mark.parametrize(
    "code, expected",
    [
        ('print(len([1, 2, 3]), typeof("s"), to_string(1.5));', "3 string 1.5"),
        ("print(pow(2, 10));", "1024"),
        ("print(sqrt(16));", "4"),
        ('print(substring("hello", 1, 3));', "el"),
        ('print(string_upper("ab"), string_length("abc"));', "AB 3"),
        ('print(parse_int("42") + 1);', "43"),
        ("print(max(3, 9, 4), min(3, 9, 4));", "9 3"),
    ],
)
def test_builtins(code, expected):
    assert output_lines(code) == [expected]


def test_get_input_reads_a_line():
    code = 'let name = get_input("name? "); print("hi " + name);'
    assert output_lines(code, stdin=io.StringIO("ada\n")) == ["name? hi ada"]


# --- scoping ---
def test_callees_see_caller_locals():
    code = """
    fn show() { return level; }
    fn outer() { let level = "outer"; return show(); }
    print(outer());
    """
    _, completed, out = run_unchecked(code)

    assert completed is True
    assert out == "outer\n"


def test_repl_keeps_state_between_entries():
    out = io.StringIO()
    facade = CompilerFacade(stdout=out)

    assert facade.repl_step("let x = 2;").ok
    assert facade.repl_step("fn sq(n) { return n * n; }").ok
    assert facade.repl_step("print(sq(x) * 3);").ok
    failed = facade.repl_step("print(y);")

    assert failed.ok is False
    assert failed.semantic_errors == 1
    assert facade.repl_step("print(x);").ok
    assert out.getvalue().splitlines() == ["12", "2"]
