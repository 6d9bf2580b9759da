"""Parser package entry point."""

from .core import (
    BINARY_PRECEDENCE,
    OuroParser,
    RecursiveDescentParser,
    SyntaxErrorInfo,
    build_parser,
    parse_ouro,
)

__all__ = [
    "BINARY_PRECEDENCE",
    "OuroParser",
    "RecursiveDescentParser",
    "SyntaxErrorInfo",
    "build_parser",
    "parse_ouro",
]


def demo(code: str) -> None:
    """Parse an Ouro snippet and show the tree and the error count."""
    from ..ast_nodes import dump_ast
    from ..lexer import OuroLexer

    parser = build_parser()
    ast = parser.parse(code, lexer=OuroLexer())
    print(f"Syntax errors: {parser.error_count}")
    print(dump_ast(ast))


if __name__ == "__main__":
    import sys

    sample = "fn add(a, b) { return a + b; } print(add(1, 2));"
    code = sample if len(sys.argv) == 1 else open(sys.argv[1], encoding="utf-8").read()
    demo(code)
