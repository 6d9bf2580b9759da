"""Abstract syntax tree for the Ouro language."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Iterator, List, Optional, Tuple, Union

ACCESS_MODIFIERS = ("public", "private", "protected", "internal")


# === BASE ===
@dataclass
class Node:
    line: int = field(default=0, kw_only=True, compare=False, repr=False)
    column: int = field(default=0, kw_only=True, compare=False, repr=False)
    # filled in by the semantic analyzer
    inferred_type: str = field(default="", kw_only=True, compare=False, repr=False)


class Expr(Node):
    pass


class Stmt(Node):
    pass


class Decl(Stmt):
    pass


class _Modified:
    """Mixin for declarations carrying a modifier list."""

    modifiers: List[str]

    @property
    def visibility(self) -> str:
        for mod in self.modifiers:
            if mod in ACCESS_MODIFIERS:
                return mod
        return "public"

    @property
    def is_static(self) -> bool:
        return "static" in self.modifiers

    @property
    def is_const(self) -> bool:
        return "const" in self.modifiers


# === ROOT ===
@dataclass
class Program(Node):
    items: List[Node]
    source_name: Optional[str] = field(default=None, compare=False)


# === EXPRESSIONS ===
@dataclass
class NumberLit(Expr):
    value: Union[int, float]
    is_integer: bool = True


@dataclass
class StringLit(Expr):
    value: str


@dataclass
class CharLit(Expr):
    value: str


@dataclass
class BoolLit(Expr):
    value: bool


@dataclass
class NullLit(Expr):
    pass


@dataclass
class Identifier(Expr):
    name: str


@dataclass
class ThisExpr(Expr):
    pass


@dataclass
class SuperExpr(Expr):
    pass


@dataclass
class Binary(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass
class Unary(Expr):
    op: str
    operand: Expr
    prefix: bool = True


@dataclass
class Assign(Expr):
    op: str
    target: Expr
    value: Expr


@dataclass
class Call(Expr):
    callee: Expr
    args: List[Expr]


@dataclass
class Member(Expr):
    target: Expr
    name: str


@dataclass
class Index(Expr):
    base: Expr
    index: Expr


@dataclass
class New(Expr):
    class_name: str
    args: List[Expr]


@dataclass
class Cast(Expr):
    type_name: str
    expr: Expr


@dataclass
class Ternary(Expr):
    cond: Expr
    if_true: Expr
    if_false: Expr


@dataclass
class ArrayLit(Expr):
    elements: List[Expr]


@dataclass
class MapLit(Expr):
    pairs: List[Tuple[Expr, Expr]]


@dataclass
class FunctionLit(Expr):
    decl: "FunctionDecl"


@dataclass
class Await(Expr):
    expr: Expr


# === STATEMENTS ===
@dataclass
class Block(Stmt):
    stmts: List[Node]


@dataclass
class EmptyStmt(Stmt):
    pass


@dataclass
class ExprStmt(Stmt):
    expr: Expr


@dataclass
class VarDeclStmt(Stmt):
    name: str
    type_name: Optional[str] = None
    init: Optional[Expr] = None
    mutability: str = "var"

    @property
    def is_const(self) -> bool:
        return self.mutability == "const"


@dataclass
class IfStmt(Stmt):
    cond: Expr
    then: Stmt
    els: Optional[Stmt] = None


@dataclass
class WhileStmt(Stmt):
    cond: Expr
    body: Stmt
    label: Optional[str] = None


@dataclass
class DoWhileStmt(Stmt):
    body: Stmt
    cond: Expr
    label: Optional[str] = None


@dataclass
class ForStmt(Stmt):
    init: Optional[Stmt]
    cond: Optional[Expr]
    update: Optional[Expr]
    body: Stmt
    label: Optional[str] = None


@dataclass
class ForeachStmt(Stmt):
    var: str
    iterable: Expr
    body: Stmt
    var_type: Optional[str] = None
    label: Optional[str] = None


@dataclass
class ReturnStmt(Stmt):
    expr: Optional[Expr] = None


@dataclass
class BreakStmt(Stmt):
    label: Optional[str] = None


@dataclass
class ContinueStmt(Stmt):
    label: Optional[str] = None


@dataclass
class ThrowStmt(Stmt):
    expr: Expr


@dataclass
class CatchClause(Node):
    exn_type: Optional[str]
    name: str
    body: Block


@dataclass
class TryStmt(Stmt):
    body: Block
    catches: List[CatchClause]
    finally_body: Optional[Block] = None


@dataclass
class PrintStmt(Stmt):
    expr: Expr


# === DECLARATIONS ===
@dataclass
class Param(Node):
    name: str
    type_name: Optional[str] = None
    by_ref: bool = False
    default: Optional[Expr] = None


@dataclass
class FunctionDecl(_Modified, Decl):
    name: str
    params: List[Param]
    body: Optional[Block]
    return_type: Optional[str] = None
    modifiers: List[str] = field(default_factory=list)
    parent_class: Optional[str] = None
    is_constructor: bool = False

    @property
    def is_async(self) -> bool:
        return "async" in self.modifiers

    def required_params(self) -> int:
        return sum(1 for p in self.params if p.default is None)


@dataclass
class FieldDecl(_Modified, Decl):
    name: str
    type_name: Optional[str] = None
    init: Optional[Expr] = None
    modifiers: List[str] = field(default_factory=list)


@dataclass
class ClassDecl(_Modified, Decl):
    name: str
    superclass: Optional[str]
    interfaces: List[str]
    members: List[Node]
    modifiers: List[str] = field(default_factory=list)

    def fields(self) -> List[FieldDecl]:
        return [m for m in self.members if isinstance(m, FieldDecl)]

    def methods(self) -> List[FunctionDecl]:
        return [m for m in self.members if isinstance(m, FunctionDecl)]


@dataclass
class InterfaceDecl(Decl):
    name: str
    methods: List[FunctionDecl]
    extends: List[str] = field(default_factory=list)


@dataclass
class StructDecl(Decl):
    name: str
    fields: List[FieldDecl]


@dataclass
class EnumDecl(Decl):
    name: str
    values: List[str]


@dataclass
class PackageDecl(Decl):
    name: str


@dataclass
class ImportDecl(Decl):
    path: str
    alias: Optional[str] = None
    is_wildcard: bool = False

    @property
    def module_name(self) -> str:
        path = self.path
        if path.endswith(".*"):
            path = path[:-2]
        return path


TYPE_DECLS = (ClassDecl, StructDecl, EnumDecl, InterfaceDecl)


# === TRAVERSAL ===
def iter_children(node: Node) -> Iterator[Node]:
    """Yields the direct child nodes of ``node`` in field order."""
    for f in fields(node):
        value = getattr(node, f.name)
        if isinstance(value, Node):
            yield value
        elif isinstance(value, (list, tuple)):
            for item in value:
                if isinstance(item, Node):
                    yield item
                elif isinstance(item, tuple):
                    for sub in item:
                        if isinstance(sub, Node):
                            yield sub


def walk(node: Node) -> Iterator[Node]:
    yield node
    for child in iter_children(node):
        yield from walk(child)


# === DUMP ===
def _lexeme(node: Node) -> str:
    for attr in ("name", "op", "class_name", "type_name", "path"):
        value = getattr(node, attr, None)
        if isinstance(value, str):
            return value
    if isinstance(node, (NumberLit, BoolLit)):
        return str(node.value).lower() if isinstance(node, BoolLit) else repr(node.value)
    if isinstance(node, (StringLit, CharLit)):
        return repr(node.value)
    return ""


def dump_ast(node: Node, indent: int = 0) -> str:
    """Indented, human-readable rendering of a tree (kind, lexeme, position, type)."""
    lines: List[str] = []

    def _dump(n: Node, depth: int) -> None:
        lexeme = _lexeme(n)
        text = f"{'  ' * depth}{type(n).__name__}"
        if lexeme:
            text += f" {lexeme}"
        text += f" ({n.line}:{n.column})"
        if n.inferred_type:
            text += f" : {n.inferred_type}"
        lines.append(text)
        for child in iter_children(n):
            _dump(child, depth + 1)

    _dump(node, indent)
    return "\n".join(lines)


def to_serializable(obj: Any) -> Any:
    """Converts nodes to JSON-friendly dictionaries."""
    if isinstance(obj, Node):
        data: dict = {"node": type(obj).__name__, "line": obj.line, "column": obj.column}
        if obj.inferred_type:
            data["type"] = obj.inferred_type
        for f in fields(obj):
            if f.name in ("line", "column", "inferred_type"):
                continue
            data[f.name] = to_serializable(getattr(obj, f.name))
        return data
    if isinstance(obj, (list, tuple)):
        return [to_serializable(item) for item in obj]
    return obj
