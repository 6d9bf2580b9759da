"""Recursive-descent parser for the Ouro language."""
from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from ..ast_nodes import *
from ..errors import SYNTAX, DiagnosticSink
from ..lexer import LexerConfig, OuroLexer, Token


@dataclass
class SyntaxErrorInfo:
    message: str
    token_type: Optional[str]
    token_value: Optional[str]
    lineno: Optional[int]
    column: Optional[int] = None


class _ParseFailure(Exception):
    """Unwinds to the nearest statement boundary after a reported error."""


# === PRECEDENCE (lowest to highest) ===
ASSIGN_OPS = {
    'ASSIGN': '=',
    'PLUS_ASSIGN': '+=',
    'MINUS_ASSIGN': '-=',
    'TIMES_ASSIGN': '*=',
    'DIVIDE_ASSIGN': '/=',
    'MOD_ASSIGN': '%=',
}

BINARY_PRECEDENCE = {
    **{kind: 1 for kind in ASSIGN_OPS},
    'QUESTION': 2,
    'OR': 3,
    'AND': 4,
    'BITOR': 5,
    'BITXOR': 6,
    'BITAND': 7,
    'EQ': 8, 'NE': 8,
    'LT': 9, 'LE': 9, 'GT': 9, 'GE': 9,
    'SHL': 10, 'SHR': 10, 'USHR': 10, 'RANGE': 10,
    'PLUS': 11, 'MINUS': 11,
    'TIMES': 12, 'DIVIDE': 12, 'MOD': 12,
}

PREFIX_OPS = ('MINUS', 'PLUS', 'NOT', 'BITNOT')
SYNC_KEYWORDS = {'CLASS', 'FN', 'FUNCTION', 'FUNC', 'VAR', 'LET', 'CONST', 'IF', 'WHILE', 'FOR', 'RETURN'}
FUNCTION_KEYWORDS = ('FN', 'FUNCTION', 'FUNC')
VAR_KEYWORDS = ('LET', 'VAR', 'CONST')
LOOP_KEYWORDS = ('WHILE', 'FOR', 'DO')
MEMBER_MODIFIERS = ('PUBLIC', 'PRIVATE', 'PROTECTED', 'INTERNAL', 'STATIC', 'CONST', 'ASYNC')
TOP_MODIFIERS = ('PUBLIC', 'PRIVATE', 'PROTECTED', 'INTERNAL', 'STATIC', 'ASYNC')
LVALUES = (Identifier, Member, Index)

_ANON_IDS = itertools.count(1)


class RecursiveDescentParser:
    """Parses one token list into a Program, recovering from errors in panic mode."""

    def __init__(
        self,
        tokens: Sequence[Token],
        sink: DiagnosticSink,
        source_name: Optional[str] = None,
        config: Optional[LexerConfig] = None,
    ) -> None:
        self.tokens: List[Token] = [t for t in tokens if t.kind != 'ERROR']
        if not self.tokens or self.tokens[-1].kind != 'EOF':
            last = self.tokens[-1] if self.tokens else None
            self.tokens.append(Token('EOF', '', last.line if last else 1, last.column if last else 1))
        self.pos = 0
        self.sink = sink
        self.source_name = source_name
        self.errors: List[SyntaxErrorInfo] = []
        self.type_kinds = set((config or LexerConfig()).type_keyword_kinds())
        self._pending_gt = 0
        self._block_depth = 0

    # --- token helpers ---
    def peek(self, offset: int = 0) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def check(self, *kinds: str) -> bool:
        return self.peek().kind in kinds

    def at_end(self) -> bool:
        return self.peek().kind == 'EOF'

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != 'EOF':
            self.pos += 1
        return tok

    def match(self, *kinds: str) -> Optional[Token]:
        if self.check(*kinds):
            return self.advance()
        return None

    def expect(self, kind: str, description: str) -> Token:
        if self.check(kind):
            return self.advance()
        self.fail(f"Expected {description}", self.peek())

    def report(self, message: str, tok: Token, show_found: bool = True) -> None:
        text = message
        if show_found:
            found = repr(tok.text) if tok.kind != 'EOF' else "end of input"
            text = f"{message} but found {found}"
        if self.source_name:
            text = f"{self.source_name}: {text}"
        self.sink.emit(text, tok.line, tok.column)
        self.errors.append(
            SyntaxErrorInfo(
                message=text,
                token_type=tok.kind,
                token_value=tok.text,
                lineno=tok.line,
                column=tok.column,
            )
        )

    def fail(self, message: str, tok: Token):
        self.report(message, tok)
        raise _ParseFailure()

    def synchronize(self, start: int) -> None:
        """Discards tokens up to a semicolon (consumed) or a statement keyword."""
        self._pending_gt = 0
        while not self.at_end():
            tok = self.peek()
            if tok.kind == 'SEMICOLON':
                self.advance()
                return
            if self.pos > start and tok.kind in SYNC_KEYWORDS:
                return
            if self._block_depth > 0 and tok.kind == 'RBRACE' and self.pos > start:
                return
            self.advance()

    @staticmethod
    def _at(node: Node, tok: Token) -> Node:
        node.line = tok.line
        node.column = tok.column
        return node

    @staticmethod
    def _like(node: Node, origin: Node) -> Node:
        node.line = origin.line
        node.column = origin.column
        return node

    # --- types ---
    def _scan_type(self, i: int) -> Optional[int]:
        """Index just past a type starting at token ``i``, or None (no consumption)."""
        tokens = self.tokens
        if tokens[i].kind not in self.type_kinds and tokens[i].kind != 'IDENT':
            return None
        i += 1
        if tokens[i].kind == 'LT':
            depth = 1
            i += 1
            while depth > 0:
                kind = tokens[i].kind
                if kind == 'LT':
                    depth += 1
                elif kind == 'GT':
                    depth -= 1
                elif kind == 'SHR':
                    depth -= 2
                elif kind == 'USHR':
                    depth -= 3
                elif kind not in ('IDENT', 'COMMA', 'LBRACKET', 'RBRACKET') and kind not in self.type_kinds:
                    return None
                i += 1
            if depth < 0:
                return None
        while tokens[i].kind == 'LBRACKET' and tokens[i + 1].kind == 'RBRACKET':
            i += 2
        return i

    def _starts_typed_declaration(self) -> bool:
        end = self._scan_type(self.pos)
        return end is not None and self.tokens[end].kind == 'IDENT'

    def _starts_untyped_method(self) -> bool:
        """``name(`` or ``name<T>(`` inside a class body."""
        if self.peek(1).kind == 'LPAREN':
            return True
        if self.peek(1).kind != 'LT':
            return False
        end = self._scan_type(self.pos)
        return end is not None and self.tokens[end].kind == 'LPAREN'

    def _close_angle(self) -> None:
        if self._pending_gt:
            self._pending_gt -= 1
            return
        tok = self.peek()
        if tok.kind == 'GT':
            self.advance()
        elif tok.kind == 'SHR':
            self.advance()
            self._pending_gt += 1
        elif tok.kind == 'USHR':
            self.advance()
            self._pending_gt += 2
        else:
            self.fail("Expected '>' to close type arguments", tok)

    def parse_type(self) -> str:
        tok = self.peek()
        if tok.kind not in self.type_kinds and tok.kind != 'IDENT':
            self.fail("Expected type name", tok)
        self.advance()
        name = tok.text
        if self.match('LT'):
            args = [self.parse_type()]
            while self.match('COMMA'):
                args.append(self.parse_type())
            self._close_angle()
            name += "<" + ", ".join(args) + ">"
        while not self._pending_gt and self.check('LBRACKET') and self.peek(1).kind == 'RBRACKET':
            self.advance()
            self.advance()
            name += "[]"
        return name

    def _skip_type_params(self) -> None:
        if self.check('LT'):
            self.advance()
            self.parse_type()
            while self.match('COMMA'):
                self.parse_type()
            self._close_angle()

    # --- program ---
    def parse_program(self) -> Program:
        items: List[Node] = []
        while not self.at_end():
            start = self.pos
            try:
                item = self.declaration()
                if item is not None:
                    items.append(item)
            except _ParseFailure:
                self.synchronize(start)
        program = Program(items, source_name=self.source_name)
        program.line = 1
        program.column = 1
        return program

    def declaration(self) -> Optional[Node]:
        tok = self.peek()
        if tok.kind == 'PACKAGE':
            return self.package_decl()
        if tok.kind == 'IMPORT':
            return self.import_decl()
        if tok.kind == 'CONST' and self.peek(1).kind in FUNCTION_KEYWORDS + TOP_MODIFIERS:
            pass
        elif tok.kind not in TOP_MODIFIERS:
            return self.statement()

        modifiers: List[str] = []
        while self.check(*TOP_MODIFIERS, 'CONST'):
            modifiers.append(self.advance().text)
        tok = self.peek()
        if tok.kind == 'CLASS':
            return self.class_decl(modifiers)
        if tok.kind in FUNCTION_KEYWORDS:
            return self.function_decl(modifiers, keyword=True)
        if tok.kind == 'INTERFACE':
            return self.interface_decl()
        if tok.kind == 'STRUCT':
            return self.struct_decl()
        if tok.kind == 'ENUM':
            return self.enum_decl()
        if self._starts_typed_declaration():
            return self.typed_declaration(modifiers)
        self.fail("Expected declaration after modifiers", tok)

    # --- statements ---
    def statement(self) -> Node:
        tok = self.peek()
        kind = tok.kind
        if kind == 'LBRACE':
            return self.block()
        if kind == 'SEMICOLON':
            self.advance()
            return self._at(EmptyStmt(), tok)
        if kind in VAR_KEYWORDS:
            return self.var_decl()
        if kind in FUNCTION_KEYWORDS and self.peek(1).kind == 'IDENT':
            return self.function_decl([], keyword=True)
        if kind == 'CLASS':
            return self.class_decl([])
        if kind == 'INTERFACE':
            return self.interface_decl()
        if kind == 'STRUCT':
            return self.struct_decl()
        if kind == 'ENUM':
            return self.enum_decl()
        if kind in ('PACKAGE', 'IMPORT', 'ASYNC') or kind in TOP_MODIFIERS:
            return self.declaration()
        if kind == 'IF':
            return self.if_stmt()
        if kind == 'WHILE':
            return self.while_stmt()
        if kind == 'DO':
            return self.do_while_stmt()
        if kind == 'FOR':
            return self.for_stmt()
        if kind == 'RETURN':
            return self.return_stmt()
        if kind in ('BREAK', 'CONTINUE'):
            return self.jump_stmt()
        if kind == 'THROW':
            return self.throw_stmt()
        if kind == 'TRY':
            return self.try_stmt()
        if kind == 'IDENT':
            nxt = self.peek(1).kind
            if nxt == 'COLON' and self.peek(2).kind in LOOP_KEYWORDS:
                return self.labeled_loop()
            if nxt == 'COLON':
                return self.colon_var_decl()
            if tok.text == 'print' and nxt != 'LPAREN':
                self.advance()
                expr = self.expression()
                self.expect('SEMICOLON', "';' after print statement")
                return self._at(PrintStmt(expr), tok)
        if (kind == 'IDENT' or kind in self.type_kinds) and self._starts_typed_declaration():
            return self.typed_declaration([])
        return self.expression_stmt()

    def block(self) -> Block:
        open_tok = self.expect('LBRACE', "'{'")
        stmts: List[Node] = []
        self._block_depth += 1
        try:
            while not self.check('RBRACE') and not self.at_end():
                start = self.pos
                try:
                    stmts.append(self.declaration())
                except _ParseFailure:
                    self.synchronize(start)
        finally:
            self._block_depth -= 1
        self.expect('RBRACE', "'}' to close block")
        return self._at(Block(stmts), open_tok)

    def expression_stmt(self) -> ExprStmt:
        tok = self.peek()
        expr = self.expression()
        self.expect('SEMICOLON', "';' after expression")
        return self._at(ExprStmt(expr), tok)

    def var_decl(self, require_semicolon: bool = True) -> VarDeclStmt:
        kw = self.advance()
        mutability = kw.text
        type_name: Optional[str] = None
        if self._starts_typed_declaration():
            type_name = self.parse_type()
        name = self.expect('IDENT', "variable name")
        if type_name is None and self.match('COLON'):
            type_name = self.parse_type()
        init = self.expression() if self.match('ASSIGN') else None
        if require_semicolon:
            self.expect('SEMICOLON', "';' after variable declaration")
        return self._at(VarDeclStmt(name.text, type_name, init, mutability), kw)

    def colon_var_decl(self, require_semicolon: bool = True) -> VarDeclStmt:
        name = self.advance()
        self.expect('COLON', "':'")
        type_name = self.parse_type()
        init = self.expression() if self.match('ASSIGN') else None
        if require_semicolon:
            self.expect('SEMICOLON', "';' after variable declaration")
        return self._at(VarDeclStmt(name.text, type_name, init, "var"), name)

    def typed_declaration(self, modifiers: List[str], require_semicolon: bool = True) -> Node:
        start = self.peek()
        type_name = self.parse_type()
        name = self.expect('IDENT', "name after type")
        if self.check('LPAREN', 'LT'):
            return self.function_rest(modifiers, name, start, return_type=type_name)
        init = self.expression() if self.match('ASSIGN') else None
        if require_semicolon:
            self.expect('SEMICOLON', "';' after variable declaration")
        mutability = "const" if "const" in modifiers else "var"
        return self._at(VarDeclStmt(name.text, type_name, init, mutability), start)

    def if_stmt(self) -> IfStmt:
        tok = self.advance()
        self.expect('LPAREN', "'(' after 'if'")
        cond = self.expression()
        self.expect('RPAREN', "')' after if condition")
        then = self.statement()
        els = self.statement() if self.match('ELSE') else None
        return self._at(IfStmt(cond, then, els), tok)

    def while_stmt(self) -> WhileStmt:
        tok = self.advance()
        self.expect('LPAREN', "'(' after 'while'")
        cond = self.expression()
        self.expect('RPAREN', "')' after while condition")
        body = self.statement()
        return self._at(WhileStmt(cond, body), tok)

    def do_while_stmt(self) -> DoWhileStmt:
        tok = self.advance()
        body = self.statement()
        self.expect('WHILE', "'while' after do body")
        self.expect('LPAREN', "'(' after 'while'")
        cond = self.expression()
        self.expect('RPAREN', "')' after do-while condition")
        self.expect('SEMICOLON', "';' after do-while")
        return self._at(DoWhileStmt(body, cond), tok)

    def _foreach_header(self) -> Optional[tuple]:
        """Recognises ``[let] x in`` / ``Type x :`` / ``Type x in`` after '('."""
        i = self.pos
        if self.tokens[i].kind in VAR_KEYWORDS:
            i += 1
        if self.tokens[i].kind == 'IDENT' and self.tokens[i + 1].kind == 'IN':
            return (None, i)
        end = self._scan_type(i)
        if end is not None and self.tokens[end].kind == 'IDENT' and self.tokens[end + 1].kind in ('IN', 'COLON'):
            return ("typed", i)
        return None

    def for_stmt(self) -> Node:
        tok = self.advance()
        self.expect('LPAREN', "'(' after 'for'")
        header = self._foreach_header()
        if header is not None:
            form, _ = header
            self.match(*VAR_KEYWORDS)
            var_type = self.parse_type() if form == "typed" else None
            var = self.expect('IDENT', "loop variable")
            if not self.match('IN'):
                self.expect('COLON', "'in' or ':' in for-each")
            iterable = self.expression()
            self.expect('RPAREN', "')' after for-each header")
            body = self.statement()
            return self._at(ForeachStmt(var.text, iterable, body, var_type), tok)

        init: Optional[Node] = None
        if not self.check('SEMICOLON'):
            if self.check(*VAR_KEYWORDS):
                init = self.var_decl(require_semicolon=False)
            elif self.check('IDENT') and self.peek(1).kind == 'COLON':
                init = self.colon_var_decl(require_semicolon=False)
            elif self._starts_typed_declaration():
                init = self.typed_declaration([], require_semicolon=False)
            else:
                init_tok = self.peek()
                init = self._at(ExprStmt(self.expression()), init_tok)
        self.expect('SEMICOLON', "';' after for initializer")
        cond = None if self.check('SEMICOLON') else self.expression()
        self.expect('SEMICOLON', "';' after for condition")
        update = None if self.check('RPAREN') else self.expression()
        self.expect('RPAREN', "')' after for clauses")
        body = self.statement()
        return self._at(ForStmt(init, cond, update, body), tok)

    def labeled_loop(self) -> Node:
        label = self.advance()
        self.advance()
        loop = self.statement()
        loop.label = label.text
        return loop

    def return_stmt(self) -> ReturnStmt:
        tok = self.advance()
        expr = None if self.check('SEMICOLON') else self.expression()
        self.expect('SEMICOLON', "';' after return")
        return self._at(ReturnStmt(expr), tok)

    def jump_stmt(self) -> Node:
        tok = self.advance()
        label = self.match('IDENT')
        self.expect('SEMICOLON', f"';' after '{tok.text}'")
        cls = BreakStmt if tok.kind == 'BREAK' else ContinueStmt
        return self._at(cls(label.text if label else None), tok)

    def throw_stmt(self) -> ThrowStmt:
        tok = self.advance()
        expr = self.expression()
        self.expect('SEMICOLON', "';' after throw")
        return self._at(ThrowStmt(expr), tok)

    def try_stmt(self) -> TryStmt:
        tok = self.advance()
        body = self.block()
        catches: List[CatchClause] = []
        while self.check('CATCH'):
            catch_tok = self.advance()
            self.expect('LPAREN', "'(' after 'catch'")
            exn_type: Optional[str] = None
            if self._starts_typed_declaration():
                exn_type = self.parse_type()
                name = self.expect('IDENT', "exception variable")
            else:
                name = self.expect('IDENT', "exception variable")
                if self.match('COLON'):
                    exn_type = self.parse_type()
            self.expect('RPAREN', "')' after catch parameter")
            catches.append(self._at(CatchClause(exn_type, name.text, self.block()), catch_tok))
        finally_body = self.block() if self.match('FINALLY') else None
        if not catches and finally_body is None:
            self.fail("Expected 'catch' or 'finally' after try block", self.peek())
        return self._at(TryStmt(body, catches, finally_body), tok)

    # --- declarations ---
    def package_decl(self) -> PackageDecl:
        tok = self.advance()
        parts = [self.expect('IDENT', "package name").text]
        while self.match('DOT'):
            parts.append(self.expect('IDENT', "package name segment").text)
        self.expect('SEMICOLON', "';' after package declaration")
        return self._at(PackageDecl(".".join(parts)), tok)

    def import_decl(self) -> ImportDecl:
        tok = self.advance()
        literal = self.match('STRING_LITERAL')
        if literal is not None:
            path = literal.value
        else:
            parts = [self.expect('IDENT', "module name").text]
            while self.match('DOT'):
                if self.match('TIMES'):
                    parts.append("*")
                    break
                parts.append(self.expect('IDENT', "module name segment").text)
            path = ".".join(parts)
        alias = self.expect('IDENT', "alias after 'as'").text if self.match('AS') else None
        self.expect('SEMICOLON', "';' after import")
        return self._at(ImportDecl(path, alias, path.endswith("*")), tok)

    def parameters(self) -> List[Param]:
        self.expect('LPAREN', "'(' to start parameter list")
        params: List[Param] = []
        if not self.check('RPAREN'):
            params.append(self.parameter())
            while self.match('COMMA'):
                params.append(self.parameter())
        self.expect('RPAREN', "',' or ')' in parameter list")
        return params

    def parameter(self) -> Param:
        tok = self.peek()
        by_ref = self.match('BITAND') is not None
        type_name: Optional[str] = None
        if self._starts_typed_declaration():
            type_name = self.parse_type()
        name = self.expect('IDENT', "parameter name")
        if type_name is None and self.match('COLON'):
            type_name = self.parse_type()
        default = self.expression() if self.match('ASSIGN') else None
        return self._at(Param(name.text, type_name, by_ref, default), tok)

    def function_decl(
        self,
        modifiers: List[str],
        keyword: bool = False,
        parent_class: Optional[str] = None,
        allow_abstract: bool = False,
    ) -> FunctionDecl:
        start = self.peek()
        if keyword:
            self.advance()
        name = self.expect('IDENT', "function name")
        return self.function_rest(modifiers, name, start, parent_class=parent_class, allow_abstract=allow_abstract)

    def function_rest(
        self,
        modifiers: List[str],
        name: Token,
        start: Token,
        return_type: Optional[str] = None,
        parent_class: Optional[str] = None,
        allow_abstract: bool = False,
    ) -> FunctionDecl:
        self._skip_type_params()
        params = self.parameters()
        if return_type is None and (self.match('COLON') or self.match('ARROW')):
            return_type = self.parse_type()
        if allow_abstract and self.match('SEMICOLON'):
            body = None
        else:
            body = self.block()
        decl = FunctionDecl(name.text, params, body, return_type, list(modifiers), parent_class)
        return self._at(decl, start)

    def class_decl(self, modifiers: List[str]) -> ClassDecl:
        tok = self.advance()
        name = self.expect('IDENT', "class name").text
        self._skip_type_params()
        superclass = self.expect('IDENT', "superclass name").text if self.match('EXTENDS') else None
        if superclass is not None:
            self._skip_type_params()
        interfaces: List[str] = []
        if self.match('IMPLEMENTS'):
            interfaces.append(self.expect('IDENT', "interface name").text)
            while self.match('COMMA'):
                interfaces.append(self.expect('IDENT', "interface name").text)
        self.expect('LBRACE', "'{' to open class body")
        members: List[Node] = []
        self._block_depth += 1
        try:
            while not self.check('RBRACE') and not self.at_end():
                start = self.pos
                try:
                    member = self.class_member(name)
                    if member is not None:
                        members.append(member)
                except _ParseFailure:
                    self.synchronize(start)
        finally:
            self._block_depth -= 1
        self.expect('RBRACE', "'}' to close class body")
        return self._at(ClassDecl(name, superclass, interfaces, members, list(modifiers)), tok)

    def _member_modifiers(self) -> List[str]:
        modifiers: List[str] = []
        while self.check(*MEMBER_MODIFIERS):
            modifiers.append(self.advance().text)
        return modifiers

    def class_member(self, class_name: str) -> Optional[Node]:
        if self.match('SEMICOLON'):
            return None
        start = self.peek()
        modifiers = self._member_modifiers()
        tok = self.peek()
        method: Optional[FunctionDecl] = None
        if tok.kind in FUNCTION_KEYWORDS:
            method = self.function_decl(modifiers, keyword=True, parent_class=class_name)
        elif tok.kind in ('LET', 'VAR'):
            self.advance()
            return self.field_rest(modifiers, start)
        elif tok.kind == 'IDENT' and self._starts_untyped_method():
            name = self.advance()
            method = self.function_rest(modifiers, name, start, parent_class=class_name)
        elif tok.kind == 'IDENT' and self.peek(1).kind in ('ASSIGN', 'SEMICOLON', 'COLON'):
            return self.field_rest(modifiers, start)
        elif self._starts_typed_declaration():
            type_name = self.parse_type()
            name = self.expect('IDENT', "member name")
            if self.check('LPAREN', 'LT'):
                method = self.function_rest(modifiers, name, start, return_type=type_name, parent_class=class_name)
            else:
                return self.field_tail(modifiers, name, type_name, start)
        else:
            self.fail("Expected class member", tok)
        method.parent_class = class_name
        method.is_constructor = method.name in (class_name, "constructor")
        return method

    def field_rest(self, modifiers: List[str], start: Token) -> FieldDecl:
        name = self.expect('IDENT', "field name")
        type_name = self.parse_type() if self.match('COLON') else None
        return self.field_tail(modifiers, name, type_name, start)

    def field_tail(self, modifiers: List[str], name: Token, type_name: Optional[str], start: Token) -> FieldDecl:
        init = self.expression() if self.match('ASSIGN') else None
        self.expect('SEMICOLON', "';' after field declaration")
        return self._at(FieldDecl(name.text, type_name, init, list(modifiers)), start)

    def interface_decl(self) -> InterfaceDecl:
        tok = self.advance()
        name = self.expect('IDENT', "interface name").text
        self._skip_type_params()
        extends: List[str] = []
        if self.match('EXTENDS'):
            extends.append(self.expect('IDENT', "interface name").text)
            while self.match('COMMA'):
                extends.append(self.expect('IDENT', "interface name").text)
        self.expect('LBRACE', "'{' to open interface body")
        methods: List[FunctionDecl] = []
        self._block_depth += 1
        try:
            while not self.check('RBRACE') and not self.at_end():
                start = self.pos
                try:
                    if self.match('SEMICOLON'):
                        continue
                    first = self.peek()
                    modifiers = self._member_modifiers()
                    if self.check(*FUNCTION_KEYWORDS):
                        methods.append(self.function_decl(modifiers, keyword=True, parent_class=name, allow_abstract=True))
                    elif self.check('IDENT') and self.peek(1).kind == 'LPAREN':
                        method_name = self.advance()
                        methods.append(self.function_rest(modifiers, method_name, first, parent_class=name, allow_abstract=True))
                    elif self._starts_typed_declaration():
                        type_name = self.parse_type()
                        method_name = self.expect('IDENT', "method name")
                        methods.append(
                            self.function_rest(
                                modifiers, method_name, first, return_type=type_name, parent_class=name, allow_abstract=True
                            )
                        )
                    else:
                        self.fail("Expected method signature in interface", self.peek())
                except _ParseFailure:
                    self.synchronize(start)
        finally:
            self._block_depth -= 1
        self.expect('RBRACE', "'}' to close interface body")
        return self._at(InterfaceDecl(name, methods, extends), tok)

    def struct_decl(self) -> StructDecl:
        tok = self.advance()
        name = self.expect('IDENT', "struct name").text
        self.expect('LBRACE', "'{' to open struct body")
        fields_: List[FieldDecl] = []
        while not self.check('RBRACE') and not self.at_end():
            start = self.pos
            try:
                first = self.peek()
                self.match('LET', 'VAR')
                type_name: Optional[str] = None
                if self._starts_typed_declaration():
                    type_name = self.parse_type()
                field_name = self.expect('IDENT', "field name")
                if type_name is None and self.match('COLON'):
                    type_name = self.parse_type()
                init = self.expression() if self.match('ASSIGN') else None
                if not self.match('SEMICOLON', 'COMMA') and not self.check('RBRACE'):
                    self.fail("Expected ';' after struct field", self.peek())
                fields_.append(self._at(FieldDecl(field_name.text, type_name, init, []), first))
            except _ParseFailure:
                self.synchronize(start)
        self.expect('RBRACE', "'}' to close struct body")
        return self._at(StructDecl(name, fields_), tok)

    def enum_decl(self) -> EnumDecl:
        tok = self.advance()
        name = self.expect('IDENT', "enum name").text
        self.expect('LBRACE', "'{' to open enum body")
        values: List[str] = []
        while not self.check('RBRACE'):
            values.append(self.expect('IDENT', "enum value").text)
            if not self.match('COMMA'):
                break
        self.expect('RBRACE', "'}' to close enum body")
        self.match('SEMICOLON')
        return self._at(EnumDecl(name, values), tok)

    # === EXPRESSIONS ===
    def expression(self, min_prec: int = 0) -> Expr:
        left = self.unary()
        while True:
            tok = self.peek()
            prec = BINARY_PRECEDENCE.get(tok.kind)
            if prec is None or prec <= min_prec:
                return left
            self.advance()
            if tok.kind in ASSIGN_OPS:
                if not isinstance(left, LVALUES):
                    self.report("Invalid assignment target", tok, show_found=False)
                value = self.expression(prec - 1)
                left = self._like(Assign(ASSIGN_OPS[tok.kind], left, value), left)
            elif tok.kind == 'QUESTION':
                if_true = self.expression()
                self.expect('COLON', "':' in conditional expression")
                if_false = self.expression(prec - 1)
                left = self._like(Ternary(left, if_true, if_false), left)
            else:
                right = self.expression(prec)
                left = self._like(Binary(tok.text, left, right), left)

    def unary(self) -> Expr:
        tok = self.peek()
        if tok.kind in PREFIX_OPS:
            self.advance()
            return self._at(Unary(tok.text, self.unary(), True), tok)
        if tok.kind in ('INC', 'DEC'):
            self.advance()
            operand = self.unary()
            if not isinstance(operand, LVALUES):
                self.report(f"Invalid operand for prefix '{tok.text}'", tok, show_found=False)
            return self._at(Unary(tok.text, operand, True), tok)
        if tok.kind == 'AWAIT':
            self.advance()
            return self._at(Await(self.unary()), tok)
        if tok.kind == 'LPAREN' and self.peek(1).kind in self.type_kinds:
            end = self._scan_type(self.pos + 1)
            if end is not None and self.tokens[end].kind == 'RPAREN':
                self.advance()
                type_name = self.parse_type()
                self.expect('RPAREN', "')' after cast type")
                return self._at(Cast(type_name, self.unary()), tok)
        return self.postfix()

    def postfix(self) -> Expr:
        expr = self.primary()
        while True:
            if self.match('DOT'):
                name = self.peek()
                if name.kind != 'IDENT' and not name.text.isidentifier():
                    self.fail("Expected member name after '.'", name)
                self.advance()
                expr = self._like(Member(expr, name.text), expr)
            elif self.match('LBRACKET'):
                index = self.expression()
                self.expect('RBRACKET', "']' after index")
                expr = self._like(Index(expr, index), expr)
            elif self.check('LPAREN'):
                expr = self._like(Call(expr, self.arguments()), expr)
            else:
                break
        if self.check('INC', 'DEC'):
            tok = self.advance()
            if not isinstance(expr, LVALUES):
                self.report(f"Invalid operand for postfix '{tok.text}'", tok, show_found=False)
            expr = self._like(Unary(tok.text, expr, False), expr)
        return expr

    def arguments(self) -> List[Expr]:
        self.expect('LPAREN', "'('")
        args: List[Expr] = []
        if not self.check('RPAREN'):
            args.append(self.expression())
            while self.match('COMMA'):
                args.append(self.expression())
        self.expect('RPAREN', "')' after arguments")
        return args

    def primary(self) -> Expr:
        tok = self.peek()
        kind = tok.kind
        if kind in ('INT_LITERAL', 'FLOAT_LITERAL'):
            self.advance()
            return self._at(NumberLit(tok.value, isinstance(tok.value, int)), tok)
        if kind == 'STRING_LITERAL':
            self.advance()
            return self._at(StringLit(tok.value), tok)
        if kind == 'CHAR_LITERAL':
            self.advance()
            return self._at(CharLit(tok.value), tok)
        if kind == 'BOOL_LITERAL':
            self.advance()
            return self._at(BoolLit(tok.value), tok)
        if kind == 'NULL_LITERAL':
            self.advance()
            return self._at(NullLit(), tok)
        if kind == 'THIS':
            self.advance()
            return self._at(ThisExpr(), tok)
        if kind == 'SUPER':
            self.advance()
            return self._at(SuperExpr(), tok)
        if kind == 'IDENT':
            self.advance()
            return self._at(Identifier(tok.text), tok)
        if kind == 'NEW':
            self.advance()
            name = self.expect('IDENT', "class name after 'new'")
            self._skip_type_params()
            args = self.arguments() if self.check('LPAREN') else []
            return self._at(New(name.text, args), tok)
        if kind == 'LPAREN':
            self.advance()
            expr = self.expression()
            self.expect('RPAREN', "')' to close parenthesized expression")
            return expr
        if kind == 'LBRACKET':
            self.advance()
            elements: List[Expr] = []
            while not self.check('RBRACKET'):
                elements.append(self.expression())
                if not self.match('COMMA'):
                    break
            self.expect('RBRACKET', "']' to close array literal")
            return self._at(ArrayLit(elements), tok)
        if kind == 'LBRACE':
            return self.map_literal()
        if kind in FUNCTION_KEYWORDS and self.peek(1).kind in ('LPAREN', 'LT'):
            self.advance()
            self._skip_type_params()
            params = self.parameters()
            return_type = self.parse_type() if (self.match('COLON') or self.match('ARROW')) else None
            body = self.block()
            decl = self._at(FunctionDecl(f"<anon_{next(_ANON_IDS)}>", params, body, return_type), tok)
            return self._at(FunctionLit(decl), tok)
        self.fail("Expected expression", tok)

    def map_literal(self) -> MapLit:
        tok = self.advance()
        pairs = []
        while not self.check('RBRACE'):
            key_tok = self.peek()
            if key_tok.kind == 'IDENT':
                self.advance()
                key: Expr = self._at(StringLit(key_tok.text), key_tok)
            elif key_tok.kind in ('STRING_LITERAL', 'INT_LITERAL', 'FLOAT_LITERAL'):
                key = self.primary()
            else:
                self.fail("Expected map key", key_tok)
            self.expect('COLON', "':' after map key")
            pairs.append((key, self.expression()))
            if not self.match('COMMA'):
                break
        self.expect('RBRACE', "'}' to close map literal")
        return self._at(MapLit(pairs), tok)


def _default_reporter(level: str, message: str) -> None:
    print(message)


class OuroParser:
    """Wraps the recursive-descent parser and keeps the last run's errors."""

    def __init__(
        self,
        debug: bool = False,
        reporter: Callable[[str, str], None] | None = None,
        config: LexerConfig | None = None,
    ) -> None:
        self._debug = debug
        self._reporter = reporter or _default_reporter
        self._config = config or LexerConfig()
        self.errors: List[SyntaxErrorInfo] = []
        self.error_count: int = 0
        self.diagnostics = []

    def parse(
        self,
        source: Union[str, Sequence[Token]],
        lexer: OuroLexer | None = None,
        source_name: Optional[str] = None,
    ) -> Program:
        if isinstance(source, str):
            lexer = lexer or OuroLexer(config=self._config, reporter=self._reporter, source_name=source_name)
            tokens = list(lexer.tokenize(source))
        else:
            tokens = list(source)

        sink = DiagnosticSink(SYNTAX, self._reporter)
        parser = RecursiveDescentParser(tokens, sink, source_name, self._config)
        program = parser.parse_program()

        self.errors = parser.errors
        self.error_count = len(self.errors)
        self.diagnostics = sink.diagnostics
        if self._debug:
            from pprint import pprint

            pprint(program)
        return program


# === CONSTRUCTION ===
def build_parser(debug: bool = False, reporter: Callable[[str, str], None] | None = None) -> OuroParser:
    return OuroParser(debug=debug, reporter=reporter)


def parse_ouro(code: str) -> Program:
    parser = build_parser()
    return parser.parse(code, lexer=OuroLexer())
