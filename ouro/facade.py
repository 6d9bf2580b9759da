"""High-level facade over the Ouro pipeline."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from . import ast_nodes as ast
from .errors import Diagnostic, Reporter
from .interpreter import BuiltinRegistry, Interpreter, InterpreterLimits
from .lexer import OuroLexer
from .modules import FileSourceLoader, ImportResolver, SourceLoader
from .optimizer import ConstantFolder
from .parser import OuroParser
from .semantic import SemanticAnalyzer


@dataclass(frozen=True)
class PipelineOptions:
    optimize: bool = True
    execute: bool = True
    dump_tokens: bool = False
    dump_ast: bool = False
    call_main: bool = True


def _safe_json_dump(obj: Any) -> str:
    try:
        return json.dumps(obj, indent=2, ensure_ascii=False)
    except TypeError:
        return json.dumps(str(obj), ensure_ascii=False)


def _messages(diagnostics: List[Diagnostic]) -> List[Dict[str, Any]]:
    return [diag.as_dict() for diag in diagnostics]


def _errors(diagnostics: List[Diagnostic]) -> int:
    return sum(1 for diag in diagnostics if diag.level == "error")


@dataclass
class CompilationResult:
    ok: bool
    tokens: List[Dict[str, Any]]
    ast: Optional[ast.Program]
    ast_dump: Optional[str]
    ast_json: Optional[str]
    lexical_errors: int
    syntax_errors: int
    semantic_errors: int
    lexical_messages: List[Dict[str, Any]]
    syntax_messages: List[Dict[str, Any]]
    semantic_messages: List[Dict[str, Any]]
    symbol_table: List[Dict[str, Any]]
    source_path: Optional[str]
    imported: List[ast.Program] = field(default_factory=list)
    folded: int = 0
    executed: bool = False
    aborted: bool = False
    runtime_errors: int = 0
    runtime_messages: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return self.lexical_errors + self.syntax_errors + self.semantic_errors + self.runtime_errors

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return self.lexical_messages + self.syntax_messages + self.semantic_messages + self.runtime_messages


def _silent(level: str, message: str) -> None:
    return None


class CompilerFacade:
    """Entry point for compiling and running Ouro code from the CLI or a host."""

    def __init__(
        self,
        loader: SourceLoader | None = None,
        builtins: BuiltinRegistry | None = None,
        reporter: Reporter | None = None,
        options: PipelineOptions | None = None,
        stdout: TextIO | None = None,
        stdin: TextIO | None = None,
        limits: InterpreterLimits | None = None,
    ) -> None:
        self.loader = loader or FileSourceLoader()
        self.reporter = reporter or _silent
        self.options = options or PipelineOptions()
        self.interpreter = Interpreter(builtins, stdout, stdin, reporter=self.reporter, limits=limits)
        self.resolver = ImportResolver(self.loader, self.builtin_names, reporter=self.reporter)
        # top-level items accepted so far in a REPL session
        self.history: List[ast.Node] = []

    @property
    def builtin_names(self) -> List[str]:
        return self.interpreter.builtins.names()

    def _front_end(
        self,
        code: str,
        path: str | Path | None,
        options: PipelineOptions,
        prelude: List[ast.Node],
    ) -> CompilationResult:
        source_name = str(path) if path is not None else None
        if path is not None and isinstance(self.loader, FileSourceLoader):
            self.loader.add_path(Path(path).resolve().parent)

        lexer = OuroLexer(reporter=self.reporter, source_name=source_name)
        parser = OuroParser(reporter=self.reporter)
        program = parser.parse(code, lexer=lexer, source_name=source_name)
        program.source_name = source_name
        lexical = list(lexer.diagnostics)
        syntax = list(parser.diagnostics)

        tokens: List[Dict[str, Any]] = []
        if options.dump_tokens:
            tokens = [
                {"line": tok.line, "column": tok.column, "kind": tok.kind, "text": tok.text, "value": tok.value}
                for tok in OuroLexer(reporter=_silent).tokenize(code)
            ]

        result = CompilationResult(
            ok=False,
            tokens=tokens,
            ast=program,
            ast_dump=None,
            ast_json=None,
            lexical_errors=_errors(lexical),
            syntax_errors=_errors(syntax),
            semantic_errors=0,
            lexical_messages=_messages(lexical),
            syntax_messages=_messages(syntax),
            semantic_messages=[],
            symbol_table=[],
            source_path=source_name,
        )
        if result.lexical_errors or result.syntax_errors:
            self._attach_dumps(result, program, options)
            return result

        imported = self.resolver.resolve(program)
        analyzer = SemanticAnalyzer(builtins=self.builtin_names, reporter=self.reporter)
        analyzed = ast.Program(prelude + program.items, source_name) if prelude else program
        semantic = self.resolver.diagnostics + analyzer.analyze(analyzed, imported)
        result.imported = imported
        result.semantic_errors = _errors(semantic)
        result.semantic_messages = _messages(semantic)
        result.symbol_table = analyzer.snapshot_data

        if result.semantic_errors == 0 and options.optimize:
            folder = ConstantFolder()
            folder.optimize(program)
            result.folded = folder.folded
        self._attach_dumps(result, program, options)
        result.ok = result.semantic_errors == 0
        return result

    @staticmethod
    def _attach_dumps(result: CompilationResult, program: ast.Program, options: PipelineOptions) -> None:
        if options.dump_ast:
            result.ast_dump = ast.dump_ast(program)
            result.ast_json = _safe_json_dump(ast.to_serializable(program))

    def compile(
        self,
        code: str,
        path: str | Path | None = None,
        options: PipelineOptions | None = None,
    ) -> CompilationResult:
        """Lexing, parsing, import resolution, analysis and folding; no execution."""
        return self._front_end(code, path, options or self.options, [])

    def run(
        self,
        code: str,
        path: str | Path | None = None,
        options: PipelineOptions | None = None,
    ) -> CompilationResult:
        """Compiles and, when the front end reported no errors, executes."""
        options = options or self.options
        result = self._front_end(code, path, options, [])
        if result.ok and options.execute:
            self.execute(result, options.call_main)
        return result

    def run_file(self, path: str | Path, options: PipelineOptions | None = None) -> CompilationResult:
        source = Path(path).read_text(encoding="utf-8")
        return self.run(source, path, options)

    def repl_step(self, line: str) -> CompilationResult:
        """Compiles one REPL entry against everything accepted before and runs it."""
        options = PipelineOptions(optimize=self.options.optimize, call_main=False)
        result = self._front_end(line, None, options, list(self.history))
        if result.ok:
            self.history.extend(result.ast.items)
            self.execute(result, call_main=False)
        return result

    def execute(self, result: CompilationResult, call_main: bool = True) -> None:
        """Runs a successfully compiled result on the persistent interpreter."""
        before = len(self.interpreter.diagnostics)
        completed = self.interpreter.execute(result.ast, result.imported, call_main=call_main)
        runtime = self.interpreter.diagnostics[before:]
        result.executed = True
        result.aborted = not completed
        result.runtime_errors = _errors(runtime)
        result.runtime_messages = _messages(runtime)
        result.ok = completed
