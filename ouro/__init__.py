"""Ouro: lexer, parser, semantic analyzer and interpreter."""

from .ast_nodes import *  # re-export for external consumers
from .errors import Diagnostic, DiagnosticSink, OuroError, OuroImportError, OuroRuntimeError
from .facade import CompilationResult, CompilerFacade, PipelineOptions
from .interpreter import BuiltinRegistry, Interpreter, InterpreterLimits, create_standard_library
from .lexer import LexerConfig, OuroLexer, Token, tokenize
from .modules import FileSourceLoader, ImportResolver, InMemorySourceLoader
from .optimizer import ConstantFolder
from .parser import OuroParser, build_parser
from .semantic import SemanticAnalyzer, SymbolTable

__version__ = "0.1.0"

__all__ = [
    "CompilationResult",
    "CompilerFacade",
    "PipelineOptions",
    "build_parser",
    "create_standard_library",
    "tokenize",
] + [name for name in list(globals()) if name[0].isupper()]
