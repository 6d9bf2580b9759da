from textwrap import dedent

import pytest

from ouro.ast_nodes import (
    ArrayLit,
    Assign,
    Await,
    Binary,
    Block,
    BreakStmt,
    Call,
    Cast,
    ClassDecl,
    DoWhileStmt,
    EnumDecl,
    ExprStmt,
    FieldDecl,
    ForeachStmt,
    ForStmt,
    FunctionDecl,
    FunctionLit,
    IfStmt,
    ImportDecl,
    Index,
    InterfaceDecl,
    MapLit,
    Member,
    New,
    NumberLit,
    PackageDecl,
    PrintStmt,
    Program,
    StructDecl,
    TryStmt,
    Unary,
    VarDeclStmt,
    WhileStmt,
    dump_ast,
    walk,
)
from ouro.lexer import OuroLexer, tokenize
from ouro.parser import BINARY_PRECEDENCE, build_parser, parse_ouro


@pytest.fixture()
def parser():
    return build_parser()


def parse_ok(parser, source):
    ast = parser.parse(source, lexer=OuroLexer())
    assert parser.error_count == 0, [e.message for e in parser.errors]
    return ast


def first_expr(parser, source):
    stmt = parse_ok(parser, source).items[0]
    assert isinstance(stmt, ExprStmt)
    return stmt.expr


def test_program_root_position(parser):
    ast = parse_ok(parser, "let x = 1;")
    assert isinstance(ast, Program)
    assert (ast.line, ast.column) == (1, 1)


def test_let_declaration(parser):
    decl = parse_ok(parser, "let x = 10 + 5 * 2;").items[0]
    assert isinstance(decl, VarDeclStmt)
    assert decl.name == "x"
    assert decl.type_name is None
    assert decl.mutability == "let"
    assert isinstance(decl.init, Binary) and decl.init.op == "+"
    assert isinstance(decl.init.right, Binary) and decl.init.right.op == "*"


@pytest.mark.parametrize(
    "source",
    ["let x: int = 1;", "var int x = 1;", "int x = 1;", "x: int = 1;"],
)
def test_typed_declaration_forms(parser, source):
    decl = parse_ok(parser, source).items[0]
    assert isinstance(decl, VarDeclStmt)
    assert decl.name == "x"
    assert decl.type_name == "int"


def test_const_declaration(parser):
    decl = parse_ok(parser, "const LIMIT = 3;").items[0]
    assert decl.is_const
    assert decl.mutability == "const"


def test_generic_and_array_types(parser):
    items = parse_ok(parser, "map<string, array<int>> m = {}; int[] xs = [1, 2];").items
    assert items[0].type_name == "map<string, array<int>>"
    assert isinstance(items[0].init, MapLit)
    assert items[1].type_name == "int[]"
    assert isinstance(items[1].init, ArrayLit)


@pytest.mark.parametrize("low, high", [("+", "*"), ("==", "<"), ("&&", "=="), ("||", "&&"), ("|", "&"), ("<", "<<")])
def test_higher_precedence_binds_tighter(parser, low, high):
    expr = first_expr(parser, f"a {low} b {high} c;")
    assert isinstance(expr, Binary)
    assert expr.op == low
    assert isinstance(expr.right, Binary) and expr.right.op == high


def test_left_associative_subtraction(parser):
    expr = first_expr(parser, "a - b - c;")
    assert expr.op == "-"
    assert isinstance(expr.left, Binary) and expr.left.op == "-"


def test_assignment_is_right_associative(parser):
    expr = first_expr(parser, "a = b = c;")
    assert isinstance(expr, Assign)
    assert expr.target.name == "a"
    assert isinstance(expr.value, Assign)
    assert expr.value.target.name == "b"


def test_compound_assignment(parser):
    expr = first_expr(parser, "total += 2;")
    assert isinstance(expr, Assign) and expr.op == "+="


def test_precedence_table_order():
    assert BINARY_PRECEDENCE["ASSIGN"] < BINARY_PRECEDENCE["QUESTION"] < BINARY_PRECEDENCE["OR"]
    assert BINARY_PRECEDENCE["AND"] < BINARY_PRECEDENCE["BITOR"] < BINARY_PRECEDENCE["BITXOR"]
    assert BINARY_PRECEDENCE["BITAND"] < BINARY_PRECEDENCE["EQ"] < BINARY_PRECEDENCE["LT"]
    assert BINARY_PRECEDENCE["SHL"] < BINARY_PRECEDENCE["PLUS"] < BINARY_PRECEDENCE["TIMES"]


def test_unary_and_postfix(parser):
    items = parse_ok(parser, "-x; !done; ++i; i--;").items
    neg, bang, pre, post = (item.expr for item in items)
    assert isinstance(neg, Unary) and neg.op == "-" and neg.prefix
    assert bang.op == "!"
    assert pre.op == "++" and pre.prefix
    assert post.op == "--" and not post.prefix


def test_call_member_and_index_chain(parser):
    expr = first_expr(parser, "obj.items[0].name(1, 2);")
    assert isinstance(expr, Call)
    assert len(expr.args) == 2
    assert isinstance(expr.callee, Member) and expr.callee.name == "name"
    assert isinstance(expr.callee.target, Index)
    assert isinstance(expr.callee.target.base, Member)


def test_new_expression(parser):
    decl = parse_ok(parser, "let p = new Point(1, 2);").items[0]
    assert isinstance(decl.init, New)
    assert decl.init.class_name == "Point"
    assert len(decl.init.args) == 2


def test_cast_expression(parser):
    expr = parse_ok(parser, "let n = (int) 3.7;").items[0].init
    assert isinstance(expr, Cast)
    assert expr.type_name == "int"


def test_parenthesized_identifier_is_not_a_cast(parser):
    expr = first_expr(parser, "(a) - b;")
    assert isinstance(expr, Binary) and expr.op == "-"


def test_map_literal_keys(parser):
    expr = parse_ok(parser, 'let m = {name: "x", "k": 1, 2: true};').items[0].init
    assert isinstance(expr, MapLit)
    assert [key.value for key, _ in expr.pairs] == ["name", "k", 2]


def test_function_literal_and_await(parser):
    items = parse_ok(parser, "let f = fn(a) { return a; }; let r = await f(1);").items
    assert isinstance(items[0].init, FunctionLit)
    assert items[0].init.decl.name.startswith("<anon_")
    assert isinstance(items[1].init, Await)


def test_if_else_chain(parser):
    stmt = parse_ok(parser, "if (a) { x = 1; } else if (b) { x = 2; } else x = 3;").items[0]
    assert isinstance(stmt, IfStmt)
    assert isinstance(stmt.then, Block)
    assert isinstance(stmt.els, IfStmt)
    assert isinstance(stmt.els.els, ExprStmt)


def test_loops(parser):
    items = parse_ok(
        parser,
        "while (i < 3) { i++; } do { i--; } while (i > 0); for (let i = 0; i < 3; i++) {} for (;;) { break; }",
    ).items
    assert isinstance(items[0], WhileStmt)
    assert isinstance(items[1], DoWhileStmt)
    assert isinstance(items[2], ForStmt)
    assert isinstance(items[2].init, VarDeclStmt)
    loop = items[3]
    assert loop.init is None and loop.cond is None and loop.update is None
    assert isinstance(loop.body.stmts[0], BreakStmt)


@pytest.mark.parametrize(
    "source, var_type",
    [
        ("for (let x in xs) {}", None),
        ("for (x in xs) {}", None),
        ("for (int x : xs) {}", "int"),
        ("for (string x in xs) {}", "string"),
    ],
)
def test_foreach_forms(parser, source, var_type):
    stmt = parse_ok(parser, source).items[0]
    assert isinstance(stmt, ForeachStmt)
    assert stmt.var == "x"
    assert stmt.var_type == var_type


def test_labelled_loop_and_jump(parser):
    stmt = parse_ok(parser, "outer: while (true) { break outer; }").items[0]
    assert isinstance(stmt, WhileStmt)
    assert stmt.label == "outer"
    assert stmt.body.stmts[0].label == "outer"


def test_try_catch_finally(parser):
    stmt = parse_ok(parser, "try { f(); } catch (Error e) { g(); } catch (x) { } finally { h(); }").items[0]
    assert isinstance(stmt, TryStmt)
    assert [(c.exn_type, c.name) for c in stmt.catches] == [("Error", "e"), (None, "x")]
    assert stmt.finally_body is not None


def test_legacy_print_statement(parser):
    stmt = parse_ok(parser, 'print "hi";').items[0]
    assert isinstance(stmt, PrintStmt)


@pytest.mark.parametrize(
    "source, return_type",
    [
        ("fn f(): int { return 1; }", "int"),
        ("fn f() -> int { return 1; }", "int"),
        ("int f() { return 1; }", "int"),
        ("function f() { return 1; }", None),
    ],
)
def test_function_return_type_forms(parser, source, return_type):
    decl = parse_ok(parser, source).items[0]
    assert isinstance(decl, FunctionDecl)
    assert decl.name == "f"
    assert decl.return_type == return_type


def test_parameter_forms(parser):
    decl = parse_ok(parser, "fn f(a, b: int, string c, &d, e = 5) {}").items[0]
    params = decl.params
    assert [p.name for p in params] == ["a", "b", "c", "d", "e"]
    assert [p.type_name for p in params] == [None, "int", "string", None, None]
    assert params[3].by_ref
    assert isinstance(params[4].default, NumberLit)
    assert decl.required_params() == 4


def test_generic_function_parameters_are_erased(parser):
    decl = parse_ok(parser, "fn id<T>(x: T): T { return x; }").items[0]
    assert decl.name == "id"
    assert decl.params[0].type_name == "T"


def test_async_modifier(parser):
    decl = parse_ok(parser, "async fn load() { return 1; }").items[0]
    assert decl.is_async


def test_class_declaration(parser):
    source = dedent(
        """
        class Dog extends Animal implements Pet, Named {
            private name: string;
            static count = 0;
            const int legs = 4;
            Dog(n) { this.name = n; }
            public fn speak() { return "woof"; }
            protected int age() { return 3; }
            bark() {}
        }
        """
    )
    cls = parse_ok(parser, source).items[0]
    assert isinstance(cls, ClassDecl)
    assert cls.superclass == "Animal"
    assert cls.interfaces == ["Pet", "Named"]
    fields = cls.fields()
    assert [f.name for f in fields] == ["name", "count", "legs"]
    assert fields[0].visibility == "private" and fields[0].type_name == "string"
    assert fields[1].is_static
    assert fields[2].is_const and fields[2].type_name == "int"
    methods = cls.methods()
    assert [m.name for m in methods] == ["Dog", "speak", "age", "bark"]
    assert methods[0].is_constructor
    assert all(m.parent_class == "Dog" for m in methods)
    assert methods[2].visibility == "protected" and methods[2].return_type == "int"


def test_constructor_keyword(parser):
    cls = parse_ok(parser, "class P { constructor(x) { } }").items[0]
    assert cls.methods()[0].is_constructor


def test_interface_struct_enum(parser):
    items = parse_ok(
        parser,
        "interface Shape { fn area(); int sides(); } struct Pt { x: int; y: int; } enum Color { Red, Green, Blue }",
    ).items
    iface, struct, enum = items
    assert isinstance(iface, InterfaceDecl)
    assert [m.name for m in iface.methods] == ["area", "sides"]
    assert all(m.body is None for m in iface.methods)
    assert isinstance(struct, StructDecl)
    assert [f.name for f in struct.fields] == ["x", "y"]
    assert isinstance(enum, EnumDecl)
    assert enum.values == ["Red", "Green", "Blue"]


def test_package_and_imports(parser):
    items = parse_ok(parser, 'package app.core; import "util"; import lib.math as m; import lib.*;').items
    assert isinstance(items[0], PackageDecl) and items[0].name == "app.core"
    imports = items[1:]
    assert all(isinstance(i, ImportDecl) for i in imports)
    assert imports[0].path == "util"
    assert imports[1].path == "lib.math" and imports[1].alias == "m"
    assert imports[2].is_wildcard and imports[2].module_name == "lib"


def test_parse_from_token_list(parser):
    ast = parser.parse(tokenize("let a = 1;"))
    assert parser.error_count == 0
    assert isinstance(ast.items[0], VarDeclStmt)


def test_node_positions_point_at_first_token(parser):
    source = "let a = 1;\nfn f() {\n  return a;\n}"
    ast = parse_ok(parser, source)
    decl, fn = ast.items
    assert (decl.line, decl.column) == (1, 1)
    assert (fn.line, fn.column) == (2, 1)
    ret = fn.body.stmts[0]
    assert (ret.line, ret.column) == (3, 3)
    assert all(1 <= node.line <= 4 for node in walk(ast))


def test_walk_visits_each_child_once(parser):
    ast = parse_ok(parser, "let x = a + b * c;")
    nodes = list(walk(ast))
    assert len(nodes) == len({id(n) for n in nodes})
    assert len(nodes) == 7


def test_dump_ast_lists_kinds_and_positions():
    text = dump_ast(parse_ouro("let x = 1;"))
    lines = text.splitlines()
    assert lines[0] == "Program (1:1)"
    assert lines[1].strip() == "VarDeclStmt x (1:1)"
    assert lines[2].strip() == "NumberLit 1 (1:9)"
