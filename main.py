"""Command-line entry point: run an Ouro file or start a REPL."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from ouro import CompilationResult, CompilerFacade, PipelineOptions, __version__
from output_formatter import BufferedReporter, RichCompilerConsole

PROMPT = "ouro> "
EXIT_COMMANDS = (":quit", ":exit")


def build_argument_parser(output: RichCompilerConsole) -> argparse.ArgumentParser:
    parser = output.create_argument_parser(
        prog="ouro",
        description="Lex, parse, analyze and run Ouro programs.",
    )
    parser.add_argument("file", nargs="?", help="source file (.ouro); starts a REPL when omitted")
    parser.add_argument("--tokens", action="store_true", help="print the token stream")
    parser.add_argument("--ast", action="store_true", help="print the syntax tree")
    parser.add_argument("--no-optimize", action="store_true", help="skip constant folding")
    parser.add_argument("--no-run", action="store_true", help="stop after semantic analysis")
    parser.add_argument("--no-main", action="store_true", help="do not call main() after the top level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def options_from_args(args: argparse.Namespace) -> PipelineOptions:
    return PipelineOptions(
        optimize=not args.no_optimize,
        execute=not args.no_run,
        dump_tokens=args.tokens,
        dump_ast=args.ast,
        call_main=not args.no_main,
    )


def _summarize(output: RichCompilerConsole, result: CompilationResult) -> None:
    if result.error_count:
        output.show_summary(
            {
                "lexical": result.lexical_errors,
                "syntax": result.syntax_errors,
                "semantic": result.semantic_errors,
                "runtime": result.runtime_errors,
            }
        )


def run_file(path: str, options: PipelineOptions, output: RichCompilerConsole) -> int:
    try:
        source = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        output.message(f"Cannot read {path}: {exc}", level="error", stderr=True)
        return 1

    buffered = BufferedReporter(output)
    facade = CompilerFacade(reporter=buffered.make_reporter(), options=options)
    result = facade.compile(source, path)
    if options.dump_tokens:
        output.show_tokens(result.tokens)
    if options.dump_ast and result.ast_dump:
        output.show_ast(result.ast_dump)
    buffered.flush()

    if result.ok and options.execute:
        facade.execute(result, options.call_main)
        sys.stdout.flush()
        buffered.flush()

    _summarize(output, result)
    return 0 if result.error_count == 0 and not result.aborted else 1


def repl(options: PipelineOptions, output: RichCompilerConsole) -> int:
    facade = CompilerFacade(reporter=output.make_reporter(), options=options)
    output.message(f"Ouro {__version__}; {EXIT_COMMANDS[0]} or Ctrl-D to leave", stderr=True)
    while True:
        try:
            line = input(PROMPT)
        except EOFError:
            print()
            return 0
        except KeyboardInterrupt:
            print()
            continue
        if not line.strip():
            continue
        if line.strip() in EXIT_COMMANDS:
            return 0
        facade.repl_step(line)


def main(argv: Optional[Sequence[str]] = None) -> int:
    output = RichCompilerConsole()
    parser = build_argument_parser(output)
    args = parser.parse_args(argv)
    options = options_from_args(args)
    if args.file is None:
        return repl(options, output)
    return run_file(args.file, options, output)


if __name__ == "__main__":
    sys.exit(main())
