"""ply-based lexer for the Ouro language."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple

import ply.lex as lex

from ..errors import LEXICAL, DiagnosticSink, Reporter

INT64_MAX = 9223372036854775807

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "\\": "\\",
    '"': '"',
    "'": "'",
    "0": "\0",
}


def unescape(body: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_ESCAPES.get(nxt, "\\" + nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    line: int
    column: int
    value: Any = None

    def __str__(self) -> str:
        return f"{self.kind}({self.text!r}) @{self.line}:{self.column}"


@dataclass(frozen=True)
class LexerConfig:
    reserved: Dict[str, str] = field(
        default_factory=lambda: {
            word: word.upper()
            for word in (
                "let", "var", "const", "fn", "function", "func",
                "if", "else", "while", "for", "do", "return", "break", "continue",
                "class", "interface", "struct", "enum", "extends", "implements",
                "this", "super", "new", "static",
                "public", "private", "protected", "internal",
                "import", "as", "in", "try", "catch", "finally", "throw",
                "package", "void", "async", "await",
                "int", "long", "float", "double", "bool", "string", "char",
                "any", "array", "object", "map",
            )
        }
    )
    literal_words: Dict[str, Tuple[str, Any]] = field(
        default_factory=lambda: {
            "true": ("BOOL_LITERAL", True),
            "false": ("BOOL_LITERAL", False),
            "null": ("NULL_LITERAL", None),
        }
    )

    primitive_types: ClassVar[Tuple[str, ...]] = (
        "int", "long", "float", "double", "bool", "string", "char",
        "any", "array", "object", "map", "void",
    )

    base_tokens: ClassVar[Tuple[str, ...]] = (
        'LPAREN', 'RPAREN', 'LBRACE', 'RBRACE', 'LBRACKET', 'RBRACKET',
        'COMMA', 'SEMICOLON', 'COLON', 'DOT', 'QUESTION',
        'PLUS', 'MINUS', 'TIMES', 'DIVIDE', 'MOD',
        'EQ', 'NE', 'LT', 'LE', 'GT', 'GE',
        'AND', 'OR', 'NOT',
        'BITAND', 'BITOR', 'BITXOR', 'BITNOT', 'SHL', 'SHR', 'USHR',
        'ASSIGN', 'PLUS_ASSIGN', 'MINUS_ASSIGN', 'TIMES_ASSIGN', 'DIVIDE_ASSIGN', 'MOD_ASSIGN',
        'INC', 'DEC', 'RANGE', 'ARROW',
        'INT_LITERAL', 'FLOAT_LITERAL', 'STRING_LITERAL', 'CHAR_LITERAL',
        'BOOL_LITERAL', 'NULL_LITERAL',
        'IDENT', 'ERROR',
    )

    def full_token_list(self) -> Tuple[str, ...]:
        return self.base_tokens + tuple(self.reserved.values())

    def type_keyword_kinds(self) -> Tuple[str, ...]:
        return tuple(self.reserved[name] for name in self.primitive_types)


@dataclass
class OuroLexer:
    config: LexerConfig = field(default_factory=LexerConfig)
    reporter: Optional[Reporter] = None
    source_name: Optional[str] = None
    tokens: Tuple[str, ...] = field(init=False)
    reserved: Dict[str, str] = field(init=False)
    lexer: lex.Lexer = field(init=False)
    sink: DiagnosticSink = field(init=False)

    t_ignore: ClassVar[str] = ' \t\r\f'

    def __post_init__(self) -> None:
        self.reserved = self.config.reserved
        self.tokens = self.config.full_token_list()
        self.sink = DiagnosticSink(LEXICAL, self.reporter)
        self.lexer = lex.lex(module=self)

    @property
    def error_count(self) -> int:
        return self.sink.error_count

    @property
    def diagnostics(self):
        return self.sink.diagnostics

    # --- helpers ---
    def _column(self, lexpos: int) -> int:
        data = self.lexer.lexdata
        return lexpos - (data.rfind('\n', 0, lexpos) + 1) + 1

    def _error(self, t, message: str):
        where = f"{self.source_name}: " if self.source_name else ""
        self.sink.emit(f"{where}{message}", t.lineno, self._column(t.lexpos))
        t.type = 'ERROR'
        t.message = message
        return t

    # --- comments and whitespace ---
    def t_COMMENT_BLOCK(self, t):
        r'/\*(?:.|\n)*?\*/'
        t.lexer.lineno += t.value.count('\n')

    def t_COMMENT_UNTERMINATED(self, t):
        r'/\*(?:.|\n)*'
        tok = self._error(t, "Unterminated block comment")
        t.lexer.lineno += t.value.count('\n')
        return tok

    def t_COMMENT_LINE(self, t):
        r'//[^\n]*'

    def t_newline(self, t):
        r'\n+'
        t.lexer.lineno += len(t.value)

    # --- literals ---
    def t_NUMBER(self, t):
        r'(?:\d+(?:\.\d+)?|\.\d+)(?:[eE][+-]?\d*)?'
        text = t.value
        mantissa, _, exponent = text.lower().partition('e')
        if 'e' in text.lower() and not exponent.lstrip('+-'):
            return self._error(t, f"Malformed numeric exponent in {text!r}")
        if '.' in mantissa or exponent:
            t.type = 'FLOAT_LITERAL'
        elif int(text) > INT64_MAX:
            t.type = 'FLOAT_LITERAL'
        else:
            t.type = 'INT_LITERAL'
        return t

    def t_STRING_LITERAL(self, t):
        r'"(?:\\.|[^"\\\n])*"'
        return t

    def t_STRING_UNTERMINATED(self, t):
        r'"(?:\\.|[^"\\\n])*'
        return self._error(t, "Unterminated string literal")

    def t_CHAR_LITERAL(self, t):
        r"'(?:\\.|[^'\\\n])'"
        return t

    def t_CHAR_INVALID(self, t):
        r"'(?:\\.|[^'\\\n])*'?"
        if len(t.value) < 2 or not t.value.endswith("'"):
            return self._error(t, "Unterminated character literal")
        return self._error(t, f"Character literal must hold exactly one character: {t.value}")

    def t_IDENT(self, t):
        r'[A-Za-z_][A-Za-z0-9_]*'
        literal = self.config.literal_words.get(t.value)
        if literal is not None:
            t.type = literal[0]
        else:
            t.type = self.reserved.get(t.value, 'IDENT')
        return t

    # --- operators, longest first ---
    def t_USHR(self, t):
        r'>>>'
        return t

    def t_EQ(self, t):
        r'=='
        return t

    def t_NE(self, t):
        r'!='
        return t

    def t_LE(self, t):
        r'<='
        return t

    def t_GE(self, t):
        r'>='
        return t

    def t_AND(self, t):
        r'&&'
        return t

    def t_OR(self, t):
        r'\|\|'
        return t

    def t_INC(self, t):
        r'\+\+'
        return t

    def t_DEC(self, t):
        r'--'
        return t

    def t_PLUS_ASSIGN(self, t):
        r'\+='
        return t

    def t_MINUS_ASSIGN(self, t):
        r'-='
        return t

    def t_TIMES_ASSIGN(self, t):
        r'\*='
        return t

    def t_DIVIDE_ASSIGN(self, t):
        r'/='
        return t

    def t_MOD_ASSIGN(self, t):
        r'%='
        return t

    def t_SHL(self, t):
        r'<<'
        return t

    def t_SHR(self, t):
        r'>>'
        return t

    def t_ARROW(self, t):
        r'->'
        return t

    def t_RANGE(self, t):
        r'\.\.'
        return t

    def t_PLUS(self, t):
        r'\+'
        return t

    def t_MINUS(self, t):
        r'-'
        return t

    def t_TIMES(self, t):
        r'\*'
        return t

    def t_DIVIDE(self, t):
        r'/'
        return t

    def t_MOD(self, t):
        r'%'
        return t

    def t_LT(self, t):
        r'<'
        return t

    def t_GT(self, t):
        r'>'
        return t

    def t_ASSIGN(self, t):
        r'='
        return t

    def t_NOT(self, t):
        r'!'
        return t

    def t_BITAND(self, t):
        r'&'
        return t

    def t_BITOR(self, t):
        r'\|'
        return t

    def t_BITXOR(self, t):
        r'\^'
        return t

    def t_BITNOT(self, t):
        r'~'
        return t

    def t_LPAREN(self, t):
        r'\('
        return t

    def t_RPAREN(self, t):
        r'\)'
        return t

    def t_LBRACE(self, t):
        r'\{'
        return t

    def t_RBRACE(self, t):
        r'\}'
        return t

    def t_LBRACKET(self, t):
        r'\['
        return t

    def t_RBRACKET(self, t):
        r'\]'
        return t

    def t_COMMA(self, t):
        r','
        return t

    def t_SEMICOLON(self, t):
        r';'
        return t

    def t_COLON(self, t):
        r':'
        return t

    def t_DOT(self, t):
        r'\.'
        return t

    def t_QUESTION(self, t):
        r'\?'
        return t

    def t_error(self, t):
        t.value = t.value[0]
        tok = self._error(t, f"Unexpected character {t.value!r}")
        t.lexer.skip(1)
        return tok

    # --- public API ---
    def _convert(self, tok) -> Token:
        kind = tok.type
        text = tok.value
        if kind == 'INT_LITERAL':
            value: Any = int(text)
        elif kind == 'FLOAT_LITERAL':
            value = float(text)
        elif kind in ('STRING_LITERAL', 'CHAR_LITERAL'):
            value = unescape(text[1:-1])
        elif kind in ('BOOL_LITERAL', 'NULL_LITERAL'):
            value = self.config.literal_words[text][1]
        elif kind == 'ERROR':
            value = getattr(tok, 'message', text)
        else:
            value = text
        return Token(kind, text, tok.lineno, self._column(tok.lexpos), value)

    def tokenize(self, data: str) -> Iterator[Token]:
        self.sink.clear()
        self.lexer.lineno = 1
        self.lexer.input(data)
        while True:
            tok = self.lexer.token()
            if not tok:
                break
            yield self._convert(tok)
        column = len(data) - (data.rfind('\n') + 1) + 1
        yield Token('EOF', '', self.lexer.lineno, column, None)

    def print_tokens(self, data: str) -> None:
        for token in self.tokenize(data):
            print(token)


def tokenize(source: str, source_name: Optional[str] = None, reporter: Optional[Reporter] = None) -> List[Token]:
    return list(OuroLexer(reporter=reporter, source_name=source_name).tokenize(source))
