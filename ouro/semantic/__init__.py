"""Semantic analysis package."""

from .symbol_table import Scope, Symbol, SymbolTable
from .semantic_analyzer import SemanticAnalyzer, TypeInfo, split_type_args

__all__ = ["Scope", "Symbol", "SymbolTable", "SemanticAnalyzer", "TypeInfo", "split_type_args"]


def demo(code: str) -> None:
    """Run a quick semantic pass over an Ouro snippet."""
    from ..lexer import OuroLexer
    from ..parser import build_parser

    parser = build_parser()
    ast = parser.parse(code, lexer=OuroLexer())
    if parser.error_count:
        print(f"Syntax errors: {parser.error_count}")
        return

    analyzer = SemanticAnalyzer(builtins=("print",))
    errors = analyzer.analyze(ast)
    print(f"Semantic errors: {len(errors)}")
    for err in errors:
        print(err)
    print("Symbol table (snapshot):")
    from pprint import pprint

    pprint(analyzer.snapshot_data)


if __name__ == "__main__":
    sample = "fn f(x = 1) { let y = x; return y; } let z: int = \"no\";"
    demo(sample)
