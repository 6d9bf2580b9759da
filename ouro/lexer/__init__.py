"""Lexer package entry point."""

from .core import INT64_MAX, LexerConfig, OuroLexer, Token, tokenize, unescape

__all__ = ["INT64_MAX", "LexerConfig", "OuroLexer", "Token", "tokenize", "unescape"]


def demo(code: str) -> None:
    """Print the token stream of an Ouro snippet."""
    lexer = OuroLexer()
    for tok in lexer.tokenize(code):
        print(f"{tok.line:03d}:{tok.column:03d} {tok.kind:<15} {tok.text!r}")


if __name__ == "__main__":
    import sys

    sample = 'let x = 10 + 5 * 2; print(x);'
    code = sample if len(sys.argv) == 1 else open(sys.argv[1], encoding="utf-8").read()
    demo(code)
