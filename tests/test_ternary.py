from ouro.ast_nodes import Assign, Ternary, VarDeclStmt
from ouro.lexer import OuroLexer
from ouro.parser import build_parser


def test_ternary_expression_parses_and_uses_tokens():
    code = 'let a = flag ? "yes" : "no";'

    # the token stream carries both ? and :
    tokens = [tok.kind for tok in OuroLexer().tokenize(code)]
    assert "QUESTION" in tokens and "COLON" in tokens

    parser = build_parser()
    ast = parser.parse(code, lexer=OuroLexer())

    assert parser.error_count == 0
    assert ast is not None
    assert ast.items

    decl = ast.items[0]
    assert isinstance(decl, VarDeclStmt)
    expr = decl.init
    assert isinstance(expr, Ternary)
    assert expr.if_true.value == "yes"
    assert expr.if_false.value == "no"


def test_nested_ternary_is_right_associative():
    parser = build_parser()
    ast = parser.parse("let s = a ? 1 : b ? 2 : 3;", lexer=OuroLexer())

    assert parser.error_count == 0
    expr = ast.items[0].init
    assert isinstance(expr, Ternary)
    assert expr.if_true.value == 1
    assert isinstance(expr.if_false, Ternary)
    assert expr.if_false.if_false.value == 3


def test_ternary_binds_looser_than_comparison_and_tighter_than_assignment():
    parser = build_parser()
    ast = parser.parse("x = n > 0 ? n : -n;", lexer=OuroLexer())

    assert parser.error_count == 0
    expr = ast.items[0].expr
    assert isinstance(expr, Assign)
    assert isinstance(expr.value, Ternary)
    assert expr.value.cond.op == ">"


def test_missing_colon_is_reported():
    messages = []
    parser = build_parser(reporter=lambda level, message: messages.append(message))
    parser.parse("let s = a ? 1;", lexer=OuroLexer())

    assert parser.error_count == 1
    assert "Expected ':' in conditional expression but found ';'" in messages[0]
