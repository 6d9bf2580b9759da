import pytest

from ouro.facade import CompilerFacade
from ouro.lexer import OuroLexer
from ouro.parser import build_parser


@pytest.fixture()
def lexer():
    return OuroLexer()


@pytest.fixture()
def parser():
    # a fresh parser per test keeps error counts independent
    return build_parser()


def tokenize_pairs(lexer, source):
    return [(tok.kind, tok.value) for tok in lexer.tokenize(source) if tok.kind != "EOF"]


def parse_source(parser, source):
    return parser.parse(source, lexer=OuroLexer())


def test_invalid_characters_report_errors_and_recover(lexer, capsys):
    pairs = tokenize_pairs(lexer, "let foo @ bar; # baz;")
    captured = capsys.readouterr().out

    assert "[LEXICAL L1:9] Unexpected character '@'" in captured
    assert "[LEXICAL L1:16] Unexpected character '#'" in captured
    assert [kind for kind, _ in pairs] == [
        "LET", "IDENT", "ERROR", "IDENT", "SEMICOLON", "ERROR", "IDENT", "SEMICOLON",
    ]
    assert lexer.error_count == 2


def test_unterminated_string_reports_error(lexer, capsys):
    pairs = tokenize_pairs(lexer, 'print "hello')
    captured = capsys.readouterr().out

    assert "Unterminated string literal" in captured
    assert ("STRING_LITERAL", "hello") not in pairs
    assert pairs[0] == ("IDENT", "print")


def test_parser_flags_missing_semicolon_and_recovers(parser, capsys):
    program = parse_source(parser, "let a = 1 let b = 2;")
    captured = capsys.readouterr().out

    assert parser.error_count == 1
    assert "Expected ';' after variable declaration but found 'let'" in captured
    # the statement after the error is still parsed
    assert [item.name for item in program.items] == ["b"]


def test_parser_reports_unclosed_block(parser, capsys):
    parse_source(parser, "fn f() { let x = 1;")
    captured = capsys.readouterr().out

    assert parser.error_count == 1
    assert "Expected '}' to close block but found end of input" in captured


def test_parser_reports_missing_expression(parser, capsys):
    program = parse_source(parser, "let x = ; let y = 2;")
    captured = capsys.readouterr().out

    assert parser.error_count == 1
    assert "[SYNTAX L1:9] Expected expression but found ';'" in captured
    assert [item.name for item in program.items] == ["y"]


def test_parser_reports_each_broken_statement_in_a_block(parser, capsys):
    code = "fn f() {\n  let a = ;\n  let b = 1\n  return a;\n}"
    program = parse_source(parser, code)

    assert parser.error_count == 2
    lines = [err.lineno for err in parser.errors]
    assert lines == [2, 4]
    assert program.items[0].name == "f"


def test_invalid_assignment_target_is_reported(parser, capsys):
    parse_source(parser, "1 = 2;")
    captured = capsys.readouterr().out

    assert parser.error_count == 1
    assert "Invalid assignment target" in captured


def test_new_without_arguments_is_allowed(parser):
    program = parse_source(parser, "let g = new Greeter;")

    assert parser.error_count == 0
    assert program.items[0].init.args == []


def test_errors_carry_source_name(capsys):
    parser = build_parser()
    parser.parse("let = 1;", source_name="broken.ouro")

    assert parser.errors[0].message.startswith("broken.ouro: Expected variable name")


def test_facade_stops_before_analysis_on_lexical_errors():
    result = CompilerFacade().compile("let a = 1 @; print(undefined_name);")

    assert result.lexical_errors == 1
    assert result.syntax_errors == 0
    assert result.semantic_errors == 0
    assert result.symbol_table == []
    assert result.ok is False


def test_facade_counts_syntax_errors():
    result = CompilerFacade().compile("let x = (1 + 2;\nlet ok = 1;")

    assert result.syntax_errors == 1
    assert result.error_count == 1
    assert "but found" in result.syntax_messages[0]["message"]
    assert result.syntax_messages[0]["text"].startswith("[SYNTAX L1:15]")
    assert result.ok is False
