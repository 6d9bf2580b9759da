"""Diagnostics and exceptions shared by every pipeline stage."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

LEXICAL = "lexical"
SYNTAX = "syntax"
SEMANTIC = "semantic"
RUNTIME = "runtime"

SEVERITIES = (LEXICAL, SYNTAX, SEMANTIC, RUNTIME)

Reporter = Callable[[str, str], None]


def default_reporter(level: str, message: str) -> None:
    print(message)


@dataclass
class Diagnostic:
    severity: str
    message: str
    line: Optional[int] = None
    column: Optional[int] = None
    level: str = "error"

    def __str__(self) -> str:
        line = self.line if self.line is not None else 0
        column = self.column if self.column is not None else 0
        return f"[{self.severity.upper()} L{line}:{column}] {self.message}"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity,
            "level": self.level,
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "text": str(self),
        }


class DiagnosticSink:
    """Collects diagnostics for one phase and forwards them to a reporter."""

    def __init__(self, severity: str, reporter: Reporter | None = None) -> None:
        self.severity = severity
        self.reporter = reporter or default_reporter
        self.diagnostics: list[Diagnostic] = []

    def emit(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        level: str = "error",
    ) -> Diagnostic:
        diag = Diagnostic(self.severity, message, line, column, level)
        self.diagnostics.append(diag)
        self.reporter(level, str(diag))
        return diag

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.level == "error")

    def clear(self) -> None:
        self.diagnostics.clear()


class OuroError(Exception):
    """Base error for the Ouro toolchain."""


class OuroImportError(OuroError):
    """A module could not be located or read by the source loader."""

    def __init__(self, module_name: str, reason: str = "not found") -> None:
        super().__init__(f"Module '{module_name}' {reason}")
        self.module_name = module_name
        self.reason = reason


class OuroRuntimeError(OuroError):
    """Fatal runtime fault: aborts the active top-level call."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(RUNTIME, self.message, self.line, self.column)
