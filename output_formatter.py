"""Rich helpers that render the Ouro CLI output."""
from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree
from rich_argparse import RichHelpFormatter

PHASES = ("lexical", "syntax", "semantic", "runtime")


class _ConsoleHelpFormatter(RichHelpFormatter):
    def __init__(self, prog: str, console: Console) -> None:
        super().__init__(prog, console=console)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser whose help, usage and errors go through Rich consoles."""

    def __init__(self, output: "RichCompilerConsole", *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault(
            "formatter_class",
            lambda prog: _ConsoleHelpFormatter(prog, console=output.console),
        )
        super().__init__(*args, **kwargs)
        self._output = output

    def _print_message(self, message: Any, file: Any | None = None) -> None:
        if not message:
            return
        console = self._output.err_console if file is sys.stderr else self._output.console
        console.file.write(str(message))
        console.file.flush()

    def error(self, message: str) -> None:
        self._print_message(self.format_usage(), file=sys.stderr)
        self._output.message(f"{self.prog}: {message}", level="error", stderr=True)
        raise SystemExit(2)


class RichCompilerConsole:
    """Single place where the CLI produces styled output."""

    _LEVELS = {
        "info": ("[INFO]", "cyan"),
        "success": ("[OK]", "green"),
        "warning": ("[WARN]", "yellow"),
        "error": ("[ERROR]", "red"),
    }

    def __init__(
        self,
        console: Console | None = None,
        err_console: Console | None = None,
        default_prefix: str = "[ouro]",
    ) -> None:
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)
        self.default_prefix = default_prefix

    def message(self, text: str, *, level: str = "info", prefix: str | None = None, stderr: bool = False) -> None:
        label, style = self._LEVELS.get(level, self._LEVELS["info"])
        line = Text.assemble(
            (label, f"bold {style}"),
            " ",
            (prefix or self.default_prefix, f"bold {style}"),
            " ",
            text,
        )
        # diagnostics must stay on one line so they can be grepped
        (self.err_console if stderr else self.console).print(line, soft_wrap=True)

    def show_tokens(self, tokens: Sequence[Mapping[str, Any]]) -> None:
        table = Table(title="Tokens", header_style="bold cyan", box=box.SIMPLE_HEAD)
        table.add_column("Pos", style="dim", justify="right")
        table.add_column("Kind", style="bold")
        table.add_column("Text", overflow="fold")
        table.add_column("Value", overflow="fold")
        for token in tokens:
            kind = str(token.get("kind", ""))
            text = token.get("text", "")
            value = token.get("value")
            table.add_row(
                f"{token.get('line', '-')}:{token.get('column', '-')}",
                Text(kind, style="red" if kind == "ERROR" else ""),
                Text(text),
                Text("" if value is None or value == text else repr(value)),
            )
        self.console.print(table)

    def show_ast(self, ast_dump: str) -> None:
        """Shows the indented AST dump as a Rich tree."""
        lines = [line for line in ast_dump.splitlines() if line.strip()]
        if not lines:
            return
        root = Tree(Text(lines[0].strip(), style="bold cyan"))
        # (depth, branch) pairs for the current path from the root
        path: list[tuple[int, Tree]] = [(0, root)]
        for line in lines[1:]:
            depth = (len(line) - len(line.lstrip(" "))) // 2
            while path and path[-1][0] >= depth:
                path.pop()
            parent = path[-1][1] if path else root
            path.append((depth, parent.add(Text(line.strip()))))
        self.console.print(Panel(root, title="AST", border_style="cyan", box=box.SIMPLE))

    def show_summary(self, counts: Mapping[str, int]) -> None:
        """Prints the error count of every phase, then the total."""
        for phase in PHASES + ("",):
            count = counts.get(phase, 0) if phase else sum(counts.get(p, 0) for p in PHASES)
            noun = "error" if count == 1 else "errors"
            label = f"Total {phase} errors" if phase else "Total errors"
            self.message(
                f"{label}: {count} {noun}",
                level="success" if count == 0 else "error",
                stderr=True,
            )

    def create_argument_parser(self, **kwargs: Any) -> argparse.ArgumentParser:
        return _RichArgumentParser(self, **kwargs)

    def make_reporter(self) -> Callable[[str, str], None]:
        """Returns a callback usable as the reporter of every pipeline phase."""

        def reporter(level: str, message: str) -> None:
            self.message(message, level=level, stderr=(level == "error"))

        return reporter


@dataclass
class BufferedReporter:
    """Holds diagnostics back so they print after the program's own output."""

    console: RichCompilerConsole
    pending: list[tuple[str, str]] = field(default_factory=list)

    def make_reporter(self) -> Callable[[str, str], None]:
        return lambda level, message: self.pending.append((level, message))

    def flush(self) -> None:
        for level, message in self.pending:
            self.console.message(message, level=level, stderr=(level == "error"))
        self.pending.clear()
