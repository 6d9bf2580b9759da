"""
Module loading for ``import`` declarations.

A ``SourceLoader`` turns a module name into source text; the
``ImportResolver`` parses and analyzes every imported module once and hands
back the imported programs, dependencies first, so their top-level
declarations can be merged into the importing program.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Set, Tuple

from . import ast_nodes as ast
from .errors import SEMANTIC, Diagnostic, OuroImportError, Reporter
from .lexer import OuroLexer
from .parser import OuroParser
from .semantic import SemanticAnalyzer

SOURCE_SUFFIX = ".ouro"


class SourceLoader(Protocol):
    def load(self, name: str) -> Tuple[str, str]:
        """Returns ``(source_text, source_name)`` or raises ``OuroImportError``."""
        ...


def _candidates(name: str) -> List[str]:
    if name.endswith(SOURCE_SUFFIX):
        return [name]
    names = [name + SOURCE_SUFFIX, name]
    if "." in name:
        names.insert(0, name.replace(".", "/") + SOURCE_SUFFIX)
    return names


class FileSourceLoader:
    """Looks modules up as files under a list of directories, in order."""

    def __init__(self, search_paths: Iterable[str | Path] = ()) -> None:
        self.search_paths = [Path(p) for p in search_paths] or [Path.cwd()]

    def add_path(self, path: str | Path) -> None:
        path = Path(path)
        if path not in self.search_paths:
            self.search_paths.insert(0, path)

    def load(self, name: str) -> Tuple[str, str]:
        for base in self.search_paths:
            for candidate in _candidates(name):
                path = base / candidate
                if not path.is_file():
                    continue
                try:
                    return path.read_text(encoding="utf-8"), str(path)
                except OSError as exc:
                    raise OuroImportError(name, f"could not be read: {exc}") from exc
        raise OuroImportError(name)


class InMemorySourceLoader:
    def __init__(self, modules: Mapping[str, str] | None = None) -> None:
        self.modules: Dict[str, str] = dict(modules or {})

    def add(self, name: str, source: str) -> None:
        self.modules[name] = source

    def load(self, name: str) -> Tuple[str, str]:
        for candidate in [name] + _candidates(name):
            if candidate in self.modules:
                return self.modules[candidate], candidate
        raise OuroImportError(name)


@dataclass
class LoadedModule:
    name: str
    source_name: str
    program: ast.Program
    diagnostics: List[Diagnostic] = field(default_factory=list)
    dependencies: List[ast.Program] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.level == "error")


def _silent(level: str, message: str) -> None:
    return None


class ImportResolver:
    """Loads each imported module once, recursively, and analyzes it."""

    def __init__(
        self,
        loader: SourceLoader,
        builtins: Iterable[str] = (),
        reporter: Reporter | None = None,
    ) -> None:
        self.loader = loader
        self.builtins = tuple(builtins)
        self.reporter = reporter or _silent
        self.modules: Dict[str, LoadedModule] = {}
        self.diagnostics: List[Diagnostic] = []
        self._loading: Dict[str, ast.Program] = {}

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.level == "error")

    def _record(self, diag: Diagnostic) -> None:
        self.diagnostics.append(diag)
        self.reporter(diag.level, str(diag))

    def resolve(self, program: ast.Program) -> List[ast.Program]:
        """Imported programs of ``program``, dependencies first, each once."""
        self.diagnostics = []
        ordered: List[ast.Program] = []
        self._resolve_imports(program, ordered)
        return ordered

    def _resolve_imports(self, program: ast.Program, ordered: List[ast.Program]) -> None:
        for item in program.items:
            if isinstance(item, ast.ImportDecl):
                self._import(item, ordered)

    @staticmethod
    def _append(ordered: List[ast.Program], program: ast.Program) -> None:
        if not any(p is program for p in ordered):
            ordered.append(program)

    def _import(self, decl: ast.ImportDecl, ordered: List[ast.Program]) -> None:
        name = decl.module_name
        if name in self._loading:
            # circular: hand back the module being loaded without re-parsing
            self._append(ordered, self._loading[name])
            return
        loaded = self.modules.get(name)
        if loaded is not None:
            self._append_module(ordered, loaded)
            return

        try:
            source, source_name = self.loader.load(name)
        except OuroImportError as exc:
            self._record(Diagnostic(SEMANTIC, str(exc), decl.line, decl.column))
            return

        module = self._load_module(name, source, source_name)
        self.modules[name] = module
        for diag in module.diagnostics:
            self._record(diag)
        self._append_module(ordered, module)

    def _append_module(self, ordered: List[ast.Program], module: LoadedModule) -> None:
        for dep in module.dependencies:
            self._append(ordered, dep)
        self._append(ordered, module.program)

    def _load_module(self, name: str, source: str, source_name: str) -> LoadedModule:
        lexer = OuroLexer(reporter=_silent, source_name=source_name)
        parser = OuroParser(reporter=_silent)
        program = parser.parse(source, lexer=lexer, source_name=source_name)
        program.source_name = source_name

        dependencies: List[ast.Program] = []
        self._loading[name] = program
        try:
            self._resolve_imports(program, dependencies)
        finally:
            del self._loading[name]
        dependencies = [dep for dep in dependencies if dep is not program]

        diagnostics = list(lexer.diagnostics) + list(parser.diagnostics)
        analyzer = SemanticAnalyzer(builtins=self.builtins)
        for diag in analyzer.analyze(program, dependencies):
            diagnostics.append(
                Diagnostic(diag.severity, f"{source_name}: {diag.message}", diag.line, diag.column, diag.level)
            )
        return LoadedModule(name, source_name, program, diagnostics, dependencies)

    def loaded(self, name: str) -> Optional[LoadedModule]:
        return self.modules.get(name)

    def loaded_names(self) -> Set[str]:
        return set(self.modules)
