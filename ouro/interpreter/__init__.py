"""Interpreter package entry point."""

from .builtins import Builtin, BuiltinRegistry, create_standard_library
from .interpreter import Interpreter, InterpreterLimits
from .runtime import ClassRegistry, FunctionRegistry, ObjectHeap, StackFrame
from .values import UNDEFINED, ClassRef, FunctionRef, ObjectRef, to_display, truthy

__all__ = [
    "Builtin",
    "BuiltinRegistry",
    "ClassRef",
    "ClassRegistry",
    "FunctionRef",
    "FunctionRegistry",
    "Interpreter",
    "InterpreterLimits",
    "ObjectHeap",
    "ObjectRef",
    "StackFrame",
    "UNDEFINED",
    "create_standard_library",
    "to_display",
    "truthy",
]


def demo(code: str) -> None:
    """Parse, analyze and run an Ouro snippet."""
    from ..lexer import OuroLexer
    from ..parser import build_parser
    from ..semantic import SemanticAnalyzer

    parser = build_parser()
    program = parser.parse(code, lexer=OuroLexer())
    if parser.error_count:
        print(f"Syntax errors: {parser.error_count}")
        return
    interpreter = Interpreter()
    errors = SemanticAnalyzer(builtins=interpreter.builtins.names()).analyze(program)
    for err in errors:
        print(err)
    if not errors:
        interpreter.execute(program)


if __name__ == "__main__":
    import sys

    sample = "fn fact(n) { if (n <= 1) { return 1; } return n * fact(n - 1); } print(fact(6));"
    code = sample if len(sys.argv) == 1 else open(sys.argv[1], encoding="utf-8").read()
    demo(code)
