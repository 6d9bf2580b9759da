from ouro.ast_nodes import walk
from ouro.facade import CompilerFacade
from ouro.parser import parse_ouro
from ouro.semantic import SemanticAnalyzer


def semantic_errors(code):
    result = CompilerFacade().compile(code)
    return [m["message"] for m in result.semantic_messages]


def test_semantic_reports_undefined_identifier():
    result = CompilerFacade().compile("print(x);")

    assert result.semantic_errors == 1
    assert any("Undefined identifier 'x'" in m["message"] for m in result.semantic_messages)
    assert result.ok is False


def test_semantic_passes_when_symbols_exist():
    result = CompilerFacade().compile("let a = 1; print(a);")

    assert result.semantic_errors == 0
    assert result.ok is True


def test_symbol_table_includes_functions_classes_and_methods():
    code = """
    fn util(x = 5) {
        let y = x;
    }
    class Greeter {
        public fn hello(name = "guest") {
            let msg = name;
        }
    }
    let g = new Greeter();
    """
    result = CompilerFacade().compile(code)
    table = result.symbol_table

    def find_symbol(scope_name, name):
        for scope in table:
            if scope.get("name") == scope_name:
                for sym in scope.get("symbols", []):
                    if sym.get("name") == name:
                        return sym
        return None

    util_sym = find_symbol("global", "util")
    greeter_sym = find_symbol("global", "Greeter")
    hello_sym = find_symbol("class_Greeter", "hello")
    param_sym = find_symbol("function_util", "x")
    g_var = find_symbol("global", "g")

    assert result.semantic_errors == 0
    assert util_sym and util_sym["kind"] == "function"
    assert greeter_sym and greeter_sym["kind"] == "class"
    assert hello_sym and hello_sym["kind"] == "function" and hello_sym["owner"] == "Greeter"
    assert param_sym and param_sym["kind"] == "parameter"
    assert g_var and g_var["kind"] == "variable" and g_var["type"] == "Greeter"


def test_arithmetic_operator_on_strings_reports_error():
    errors = semantic_errors('let a = "text" - "more";')

    assert errors == ["Operator '-' cannot be applied to 'string' and 'string'"]


def test_string_concatenation_is_allowed():
    assert semantic_errors('let a = "n = " + 1;') == []


def test_private_member_access_from_outside():
    code = """
    class C { private secret = 1; }
    let c = new C();
    print(c.secret);
    """
    assert semantic_errors(code) == ["Member 'secret' is private to class 'C'"]


def test_private_member_access_inside_class_is_fine():
    code = "class C { private secret = 1; fn reveal() { return this.secret; } }"
    assert semantic_errors(code) == []


def test_argument_count_is_checked():
    errors = semantic_errors("fn f(a, b) { return a; } f(1);")
    assert errors == ["Function 'f' expects 2 argument(s), got 1"]


def test_default_parameters_widen_accepted_arity():
    errors = semantic_errors("fn f(a, b = 2) { return a + b; } f(1); f(1, 2); f();")
    assert errors == ["Function 'f' expects 1 to 2 argument(s), got 0"]


def test_undefined_function():
    assert semantic_errors("missing(1);") == ["Undefined function 'missing'"]


def test_duplicate_global_declaration():
    errors = semantic_errors("fn f() {} fn f() {}")
    assert errors == ["Duplicate declaration of 'f' in scope 'global'"]


def test_duplicate_class_declaration():
    errors = semantic_errors("class A {} class A {}")
    assert errors == ["Duplicate declaration of 'A' in scope 'global'"]


def test_typed_declaration_mismatch():
    errors = semantic_errors('int x = "s";')
    assert errors == ["Type mismatch in declaration of 'x': cannot assign 'string' to 'int'"]


def test_numeric_widening_is_accepted():
    assert semantic_errors("double d = 1; long l = 2;") == []


def test_assignment_to_constant():
    assert semantic_errors("const k = 1; k = 2;") == ["Cannot assign to constant 'k'"]


def test_constant_requires_initializer():
    assert semantic_errors("const z;") == ["Constant 'z' must be initialized"]


def test_const_field_may_be_set_by_constructor():
    assert semantic_errors("class P { const id; P(v) { this.id = v; } }") == []
    assert semantic_errors("class Q { const id; }") == ["Constant 'id' must be initialized"]


def test_condition_must_be_boolean():
    assert semantic_errors('if ("s") { }') == ["Condition of 'if' must be bool, got 'string'"]


def test_unknown_class_in_new():
    assert semantic_errors("let p = new Nope();") == ["Unknown class 'Nope' in 'new'"]


def test_unknown_catch_type():
    errors = semantic_errors("try { } catch (Missing e) { }")
    assert errors == ["Unknown type 'Missing' in catch clause"]


def test_super_without_superclass():
    errors = semantic_errors("class A { fn m() { return super.m(); } }")
    assert errors == ["'super' used in a class without a superclass"]


def test_block_variables_do_not_leak():
    errors = semantic_errors("fn f() { if (true) { let t = 1; } return t; }")
    assert errors == ["Undefined identifier 't'"]


def test_functions_can_be_called_before_their_declaration():
    assert semantic_errors("fn a() { return b(); } fn b() { return 1; }") == []


def test_fields_are_visible_inside_methods():
    assert semantic_errors("class K { n = 1; fn get() { return n; } }") == []


def test_missing_interface_method():
    errors = semantic_errors("interface S { fn area(); } class Sq implements S { }")
    assert errors == ["Class 'Sq' does not implement method 'area' of interface 'S'"]


def test_return_type_mismatch():
    errors = semantic_errors('fn f(): int { return "s"; }')
    assert errors == ["Return type mismatch in function 'f': expected 'int', got 'string'"]


def test_analyzer_reports_through_reporter():
    seen = []
    analyzer = SemanticAnalyzer(builtins=("print",), reporter=lambda level, message: seen.append((level, message)))
    errors = analyzer.analyze(parse_ouro("print(y);"))

    assert len(errors) == 1
    assert errors[0].line == 1 and errors[0].column == 7
    assert seen == [("error", "[SEMANTIC L1:7] Undefined identifier 'y'")]


def test_analyzer_is_reusable():
    analyzer = SemanticAnalyzer()
    assert len(analyzer.analyze(parse_ouro("let a = b;"))) == 1
    assert analyzer.analyze(parse_ouro("let a = 1;")) == []


def test_analyzing_the_same_program_twice_is_stable():
    program = parse_ouro(
        """
        class Box { public v = 1; fn get(): int { return this.v; } }
        fn twice(n: int): int { return n * 2; }
        let b = new Box();
        let total = twice(b.get()) + missing;
        """
    )
    analyzer = SemanticAnalyzer(builtins=("print",))

    first = [str(d) for d in analyzer.analyze(program)]
    first_types = [node.inferred_type for node in walk(program)]
    second = [str(d) for d in analyzer.analyze(program)]
    second_types = [node.inferred_type for node in walk(program)]

    assert first == second
    assert any("Undefined identifier 'missing'" in message for message in first)
    assert first_types == second_types


def test_void_function_returning_a_value():
    errors = semantic_errors("fn f(): void { return 1; }")
    assert errors == ["Function 'f' is declared void but returns a value"]


def test_bare_return_in_typed_function():
    errors = semantic_errors("fn g(): int { return; }")
    assert errors == ["Function 'g' must return a value of type 'int'"]


def test_unknown_member_on_primitive():
    errors = semantic_errors("let n = 1; n.foo;")
    assert errors == ["Type 'int' has no member 'foo'"]
