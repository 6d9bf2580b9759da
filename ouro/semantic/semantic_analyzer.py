from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .. import ast_nodes as ast
from ..errors import SEMANTIC, Diagnostic, DiagnosticSink, Reporter
from .symbol_table import Symbol, SymbolTable

ANY = "any"
ERROR = "error_type"
NUMERIC_RANK = {"int": 0, "long": 1, "float": 2, "double": 3}
INTEGRAL = ("int", "long")
VALUE_TYPES = ("int", "long", "float", "double", "bool", "char")
PRIMITIVES = VALUE_TYPES + ("string", "void", "null")
COMPARISONS = ("<", "<=", ">", ">=")
EQUALITY = ("==", "!=")
ARITHMETIC = ("-", "*", "/", "%")
BITWISE = ("&", "|", "^", "<<", ">>", ">>>")


def _silent(level: str, message: str) -> None:
    return None


def split_type_args(type_name: str) -> Tuple[str, List[str]]:
    """``map<string, array<int>>`` -> ``("map", ["string", "array<int>"])``."""
    if "<" not in type_name or not type_name.endswith(">"):
        return type_name, []
    base, _, rest = type_name.partition("<")
    inner = rest[:-1]
    args: List[str] = []
    depth = 0
    current = ""
    for ch in inner:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        if ch == "," and depth == 0:
            args.append(current.strip())
            current = ""
            continue
        current += ch
    if current.strip():
        args.append(current.strip())
    return base, args


def is_array_type(type_name: str) -> bool:
    return type_name == "array" or type_name.endswith("[]") or type_name.startswith("array<")


def is_map_type(type_name: str) -> bool:
    return type_name == "map" or type_name.startswith("map<")


@dataclass
class TypeInfo:
    """Members of a user-defined class, struct, enum or interface."""

    name: str
    kind: str  # 'class', 'struct', 'enum', 'interface'
    node: Any
    superclass: Optional[str] = None
    interfaces: List[str] = field(default_factory=list)
    members: Dict[str, Symbol] = field(default_factory=dict)


class SemanticAnalyzer:
    """Semantic walk over the AST."""

    def __init__(self, builtins: Iterable[str] = (), reporter: Reporter | None = None) -> None:
        self.builtin_names = tuple(builtins)
        self.sink = DiagnosticSink(SEMANTIC, reporter or _silent)
        self.symtab = SymbolTable()
        self.types: Dict[str, TypeInfo] = {}
        self.current_function: Optional[ast.FunctionDecl] = None
        self.snapshot_data: List[dict] = []
        self._predeclared: set[int] = set()

    @property
    def errors(self) -> List[Diagnostic]:
        return self.sink.diagnostics

    @property
    def error_count(self) -> int:
        return self.sink.error_count

    def error(self, msg: str, node: Optional[ast.Node] = None) -> None:
        line = node.line if node is not None else None
        column = node.column if node is not None else None
        self.sink.emit(msg, line, column)

    def analyze(self, program: ast.Program, imported: Sequence[ast.Program] = ()) -> List[Diagnostic]:
        """Entry point: receives the Program root and any already-analyzed imports."""
        self.sink.clear()
        self.symtab = SymbolTable(
            Symbol(name=name, kind="function", type=ANY, owner="builtin") for name in self.builtin_names
        )
        self.types = {}
        self._predeclared = set()
        self.current_function = None
        for module in imported:
            self.predeclare(module.items)
        self.predeclare(program.items)
        self.visit(program)
        self.snapshot_data = self.symtab.snapshot()
        return list(self.errors)

    # --- Dispatch ---
    def visit(self, node):
        if node is None:
            return None
        visitor = getattr(self, "visit_" + node.__class__.__name__, self.generic_visit)
        result = visitor(node)
        if isinstance(node, ast.Expr):
            node.inferred_type = result or ANY
        return result

    def generic_visit(self, node):
        for child in ast.iter_children(node):
            self.visit(child)
        return None

    # --- Predeclare pass ---
    def predeclare(self, items: Iterable[ast.Node]) -> None:
        for item in items:
            if isinstance(item, ast.FunctionDecl):
                sym = Symbol(
                    name=item.name,
                    kind="function",
                    type=item.return_type or ANY,
                    node=item,
                    lineno=item.line,
                )
                self._declare_global(item, sym)
            elif isinstance(item, ast.TYPE_DECLS):
                kind = {"ClassDecl": "class", "StructDecl": "struct"}.get(type(item).__name__, "type")
                sym = Symbol(name=item.name, kind=kind, type=item.name, node=item, lineno=item.line)
                if self._declare_global(item, sym):
                    self.register_type(item)

    def _declare_global(self, node: ast.Node, sym: Symbol) -> bool:
        if not self.symtab.declare(sym.name, sym):
            self.error(f"Duplicate declaration of '{sym.name}' in scope 'global'", node)
            return False
        self._predeclared.add(id(node))
        return True

    def register_type(self, node: ast.Node) -> TypeInfo:
        if isinstance(node, ast.ClassDecl):
            info = TypeInfo(node.name, "class", node, node.superclass, list(node.interfaces))
            for member in node.members:
                if isinstance(member, ast.FieldDecl):
                    sym = Symbol(
                        name=member.name,
                        kind="variable",
                        type=member.type_name or ANY,
                        node=member,
                        lineno=member.line,
                        owner=node.name,
                        access=member.visibility,
                        is_const=member.is_const,
                        is_static=member.is_static,
                        explicit_type=member.type_name is not None,
                    )
                elif isinstance(member, ast.FunctionDecl):
                    sym = Symbol(
                        name=member.name,
                        kind="function",
                        type=member.return_type or ANY,
                        node=member,
                        lineno=member.line,
                        owner=node.name,
                        access=member.visibility,
                        is_static=member.is_static,
                    )
                else:
                    continue
                if member.name in info.members:
                    self.error(f"Duplicate member '{member.name}' in class '{node.name}'", member)
                    continue
                info.members[member.name] = sym
        elif isinstance(node, ast.StructDecl):
            info = TypeInfo(node.name, "struct", node)
            for member in node.fields:
                if member.name in info.members:
                    self.error(f"Duplicate field '{member.name}' in struct '{node.name}'", member)
                    continue
                info.members[member.name] = Symbol(
                    name=member.name,
                    kind="variable",
                    type=member.type_name or ANY,
                    node=member,
                    lineno=member.line,
                    owner=node.name,
                    explicit_type=member.type_name is not None,
                )
        elif isinstance(node, ast.EnumDecl):
            info = TypeInfo(node.name, "enum", node)
            for value in node.values:
                if value in info.members:
                    self.error(f"Duplicate value '{value}' in enum '{node.name}'", node)
                    continue
                info.members[value] = Symbol(
                    name=value,
                    kind="variable",
                    type=node.name,
                    node=node,
                    lineno=node.line,
                    owner=node.name,
                    is_const=True,
                    is_static=True,
                    explicit_type=True,
                )
        else:
            info = TypeInfo(node.name, "interface", node, interfaces=list(node.extends))
            for method in node.methods:
                info.members[method.name] = Symbol(
                    name=method.name,
                    kind="function",
                    type=method.return_type or ANY,
                    node=method,
                    lineno=method.line,
                    owner=node.name,
                )
        self.types[node.name] = info
        return info

    # --- Class helpers ---
    def _base_type(self, type_name: str) -> str:
        return split_type_args(type_name)[0]

    def _ancestors(self, class_name: Optional[str]) -> List[TypeInfo]:
        chain: List[TypeInfo] = []
        seen: set[str] = set()
        while class_name and class_name not in seen:
            seen.add(class_name)
            info = self.types.get(class_name)
            if info is None:
                break
            chain.append(info)
            class_name = info.superclass
        return chain

    def find_member(self, class_name: str, name: str) -> Optional[Symbol]:
        for info in self._ancestors(class_name):
            if name in info.members:
                return info.members[name]
        return None

    def find_constructor(self, class_name: str) -> Optional[ast.FunctionDecl]:
        for info in self._ancestors(class_name):
            if isinstance(info.node, ast.ClassDecl):
                for method in info.node.methods():
                    if method.is_constructor:
                        return method
        return None

    def is_subclass(self, child: str, parent: str) -> bool:
        return any(info.name == parent for info in self._ancestors(child))

    def implements(self, class_name: str, interface: str) -> bool:
        pending = [iface for info in self._ancestors(class_name) for iface in info.interfaces]
        seen: set[str] = set()
        while pending:
            name = pending.pop()
            if name == interface:
                return True
            if name in seen:
                continue
            seen.add(name)
            info = self.types.get(name)
            if info is not None:
                pending.extend(info.interfaces)
        return False

    def _interface_methods(self, interface: str) -> List[ast.FunctionDecl]:
        methods: List[ast.FunctionDecl] = []
        pending = [interface]
        seen: set[str] = set()
        while pending:
            name = pending.pop()
            info = self.types.get(name)
            if name in seen or info is None or info.kind != "interface":
                continue
            seen.add(name)
            methods.extend(info.node.methods)
            pending.extend(info.interfaces)
        return methods

    def current_class_name(self) -> Optional[str]:
        """Class context derived from the enclosing ``method_C.X`` / ``class_C`` scope."""
        scope = self.symtab.current
        while scope is not None:
            if scope.name.startswith("method_"):
                return scope.name[len("method_"):].split(".", 1)[0]
            if scope.name.startswith(("class_", "struct_")):
                return scope.name.split("_", 1)[1]
            scope = scope.parent
        return None

    # --- Types ---
    def type_compatible(self, declared: str, actual: str) -> bool:
        if declared == actual:
            return True
        if ANY in (declared, actual) or ERROR in (declared, actual) or declared == "object":
            return True
        if declared in NUMERIC_RANK and actual in NUMERIC_RANK:
            if {declared, actual} == {"float", "double"}:
                return True
            return NUMERIC_RANK[actual] <= NUMERIC_RANK[declared]
        if actual == "null":
            return declared not in VALUE_TYPES
        if declared == "string" and actual == "char":
            return True
        if is_array_type(declared) and is_array_type(actual):
            return True
        if is_map_type(declared) and is_map_type(actual):
            return True
        declared_base = self._base_type(declared)
        actual_base = self._base_type(actual)
        if declared_base == actual_base:
            return True
        if declared_base in self.types and actual_base in self.types:
            return self.is_subclass(actual_base, declared_base) or self.implements(actual_base, declared_base)
        return False

    def _wider(self, left: str, right: str) -> str:
        return left if NUMERIC_RANK[left] >= NUMERIC_RANK[right] else right

    def _element_type(self, type_name: str) -> Optional[str]:
        """Element type for iteration, or None when the type is not iterable."""
        if type_name in (ANY, ERROR, "array"):
            return ANY
        if type_name.endswith("[]"):
            return type_name[:-2]
        if type_name == "string":
            return "char"
        base, args = split_type_args(type_name)
        if base == "array":
            return args[0] if args else ANY
        if base == "map":
            return args[0] if args else ANY
        return None

    def _binary_type(self, op: str, lt: str, rt: str, node: ast.Node) -> str:
        if ERROR in (lt, rt):
            return ERROR
        if op in ("&&", "||") or op in EQUALITY:
            return "bool"
        if op in COMPARISONS:
            if ANY in (lt, rt):
                return "bool"
            numeric = lt in NUMERIC_RANK and rt in NUMERIC_RANK
            textual = lt in ("string", "char") and rt in ("string", "char")
            if not (numeric or textual):
                self.error(f"Operator '{op}' cannot compare '{lt}' and '{rt}'", node)
            return "bool"
        if op == "+":
            if "string" in (lt, rt):
                return "string"
            if ANY in (lt, rt):
                return ANY
            if lt in NUMERIC_RANK and rt in NUMERIC_RANK:
                return self._wider(lt, rt)
        elif op in ARITHMETIC:
            if ANY in (lt, rt):
                return ANY
            if lt in NUMERIC_RANK and rt in NUMERIC_RANK:
                return self._wider(lt, rt)
        elif op in BITWISE:
            if ANY in (lt, rt):
                return ANY
            if lt in INTEGRAL and rt in INTEGRAL:
                return self._wider(lt, rt)
        elif op == "..":
            if lt in (ANY, "int", "long") and rt in (ANY, "int", "long"):
                return "int[]"
        self.error(f"Operator '{op}' cannot be applied to '{lt}' and '{rt}'", node)
        return ERROR

    def check_condition(self, cond: ast.Expr, keyword: str) -> None:
        cond_type = self.visit(cond)
        if cond_type not in ("bool", ANY, ERROR):
            self.error(f"Condition of '{keyword}' must be bool, got '{cond_type}'", cond)

    # --- Declarations ---
    def visit_Program(self, node: ast.Program):
        for item in node.items:
            self.visit(item)

    def visit_PackageDecl(self, node):
        return None

    def visit_ImportDecl(self, node):
        return None

    def _declare_local_type(self, node: ast.Node, kind: str) -> bool:
        if id(node) in self._predeclared:
            return True
        if self.symtab.lookup_current(node.name) is not None:
            if self.symtab.current is self.symtab.global_scope:
                # already reported by the predeclare pass
                return False
            self.error(f"Duplicate declaration of '{node.name}' in scope '{self.symtab.current.name}'", node)
            return False
        self.symtab.declare(node.name, Symbol(name=node.name, kind=kind, type=node.name, node=node, lineno=node.line))
        self.register_type(node)
        return True

    def visit_FunctionDecl(self, node: ast.FunctionDecl):
        if id(node) not in self._predeclared:
            sym = Symbol(name=node.name, kind="function", type=node.return_type or ANY, node=node, lineno=node.line)
            if not self.symtab.declare(node.name, sym) and self.symtab.current is not self.symtab.global_scope:
                self.error(f"Duplicate declaration of '{node.name}' in scope '{self.symtab.current.name}'", node)
        self.analyze_function(node)

    def analyze_function(self, node: ast.FunctionDecl, class_name: Optional[str] = None) -> None:
        scope_name = f"method_{class_name}.{node.name}" if class_name else f"function_{node.name}"
        self.symtab.enter_scope(scope_name, "method" if class_name else "function")
        previous = self.current_function
        self.current_function = node
        if class_name and not node.is_static:
            self.symtab.declare("this", Symbol(name="this", kind="variable", type=class_name, node=node, lineno=node.line))
        for param in node.params:
            param_type = param.type_name or ANY
            if param.default is not None:
                default_type = self.visit(param.default)
                if not self.type_compatible(param_type, default_type):
                    self.error(
                        f"Default value of parameter '{param.name}' has type '{default_type}', expected '{param_type}'",
                        param,
                    )
            psym = Symbol(
                name=param.name,
                kind="parameter",
                type=param_type,
                node=param,
                lineno=param.line,
                owner=node.name,
                explicit_type=param.type_name is not None,
            )
            if not self.symtab.declare(param.name, psym):
                self.error(f"Duplicate parameter '{param.name}' in '{node.name}'", param)
            param.inferred_type = param_type
        if node.body is not None:
            self.visit(node.body)
        self.current_function = previous
        self.symtab.exit_scope()
        node.inferred_type = node.return_type or ANY

    def visit_ClassDecl(self, node: ast.ClassDecl):
        if not self._declare_local_type(node, "class"):
            return None
        if node.superclass:
            parent = self.types.get(node.superclass)
            if parent is None or parent.kind not in ("class", "struct"):
                self.error(f"Unknown superclass '{node.superclass}' for class '{node.name}'", node)
            elif self.is_subclass(node.superclass, node.name):
                self.error(f"Inheritance cycle involving class '{node.name}'", node)
        for iface in node.interfaces:
            info = self.types.get(iface)
            if info is None or info.kind != "interface":
                self.error(f"Unknown interface '{iface}' for class '{node.name}'", node)
                continue
            for method in self._interface_methods(iface):
                found = self.find_member(node.name, method.name)
                if found is None or found.kind != "function":
                    self.error(
                        f"Class '{node.name}' does not implement method '{method.name}' of interface '{iface}'",
                        node,
                    )

        info = self.types[node.name]
        self.symtab.enter_scope(f"class_{node.name}", "class")
        for sym in info.members.values():
            self.symtab.declare(sym.name, sym)
        for member in node.members:
            if isinstance(member, ast.FieldDecl):
                self._analyze_field(member, info.members.get(member.name))
            elif isinstance(member, ast.FunctionDecl):
                self.analyze_function(member, node.name)
        self.symtab.exit_scope()
        node.inferred_type = node.name

    def _analyze_field(self, node: ast.FieldDecl, sym: Optional[Symbol]) -> None:
        if node.is_const and node.init is None:
            # const fields may instead be assigned once by a constructor
            owner = self.current_class_name()
            if owner is None or self.find_constructor(owner) is None:
                self.error(f"Constant '{node.name}' must be initialized", node)
        if node.init is not None:
            init_type = self.visit(node.init)
            if node.type_name and not self.type_compatible(node.type_name, init_type):
                self.error(
                    f"Type mismatch in declaration of '{node.name}': cannot assign '{init_type}' to '{node.type_name}'",
                    node,
                )
            if sym is not None and not node.type_name and init_type not in ("null", ERROR):
                sym.type = init_type
        node.inferred_type = sym.type if sym is not None else (node.type_name or ANY)

    def visit_StructDecl(self, node: ast.StructDecl):
        if not self._declare_local_type(node, "struct"):
            return None
        info = self.types[node.name]
        self.symtab.enter_scope(f"struct_{node.name}", "struct")
        for sym in info.members.values():
            self.symtab.declare(sym.name, sym)
        for member in node.fields:
            self._analyze_field(member, info.members.get(member.name))
        self.symtab.exit_scope()
        node.inferred_type = node.name

    def visit_EnumDecl(self, node: ast.EnumDecl):
        self._declare_local_type(node, "type")
        node.inferred_type = node.name

    def visit_InterfaceDecl(self, node: ast.InterfaceDecl):
        if not self._declare_local_type(node, "type"):
            return None
        for method in node.methods:
            if method.body is not None:
                self.analyze_function(method, node.name)
        node.inferred_type = node.name

    # --- Statements ---
    def visit_Block(self, node: ast.Block):
        self.symtab.enter_scope(f"block_L{node.line}", "block")
        for stmt in node.stmts:
            self.visit(stmt)
        self.symtab.exit_scope()

    def visit_EmptyStmt(self, node):
        return None

    def visit_ExprStmt(self, node: ast.ExprStmt):
        self.visit(node.expr)

    def visit_PrintStmt(self, node: ast.PrintStmt):
        self.visit(node.expr)

    def visit_VarDeclStmt(self, node: ast.VarDeclStmt):
        init_type = self.visit(node.init) if node.init is not None else None
        if node.is_const and node.init is None:
            self.error(f"Constant '{node.name}' must be initialized", node)
        if node.type_name:
            sym_type = node.type_name
            if init_type is not None and not self.type_compatible(sym_type, init_type):
                self.error(
                    f"Type mismatch in declaration of '{node.name}': cannot assign '{init_type}' to '{sym_type}'",
                    node,
                )
        else:
            sym_type = init_type if init_type not in (None, "null", "void", ERROR) else ANY
        sym = Symbol(
            name=node.name,
            kind="variable",
            type=sym_type,
            node=node,
            lineno=node.line,
            access="const" if node.is_const else "public",
            is_const=node.is_const,
            explicit_type=node.type_name is not None,
        )
        if not self.symtab.declare(node.name, sym):
            self.error(f"Duplicate declaration of '{node.name}' in scope '{self.symtab.current.name}'", node)
        node.inferred_type = sym_type

    def visit_IfStmt(self, node: ast.IfStmt):
        self.check_condition(node.cond, "if")
        self.visit(node.then)
        if node.els is not None:
            self.visit(node.els)

    def visit_WhileStmt(self, node: ast.WhileStmt):
        self.check_condition(node.cond, "while")
        self.visit(node.body)

    def visit_DoWhileStmt(self, node: ast.DoWhileStmt):
        self.visit(node.body)
        self.check_condition(node.cond, "do-while")

    def visit_ForStmt(self, node: ast.ForStmt):
        self.symtab.enter_scope(f"for_loop_L{node.line}", "block")
        self.visit(node.init)
        if node.cond is not None:
            self.check_condition(node.cond, "for")
        self.visit(node.update)
        self.visit(node.body)
        self.symtab.exit_scope()

    def visit_ForeachStmt(self, node: ast.ForeachStmt):
        iterable_type = self.visit(node.iterable)
        element_type = self._element_type(iterable_type)
        if element_type is None:
            self.error(f"Cannot iterate over value of type '{iterable_type}'", node.iterable)
            element_type = ERROR
        if node.var_type and not self.type_compatible(node.var_type, element_type):
            self.error(f"Loop variable '{node.var}' of type '{node.var_type}' cannot hold '{element_type}'", node)
        self.symtab.enter_scope(f"foreach_L{node.line}", "block")
        self.symtab.declare(
            node.var,
            Symbol(
                name=node.var,
                kind="variable",
                type=node.var_type or element_type,
                node=node,
                lineno=node.line,
                explicit_type=node.var_type is not None,
            ),
        )
        self.visit(node.body)
        self.symtab.exit_scope()

    def visit_ReturnStmt(self, node: ast.ReturnStmt):
        value_type = self.visit(node.expr) if node.expr is not None else "void"
        fn = self.current_function
        if fn is None or fn.return_type is None:
            return value_type
        declared = fn.return_type
        if declared == "void":
            if node.expr is not None:
                self.error(f"Function '{fn.name}' is declared void but returns a value", node)
        elif declared not in (ANY, ERROR):
            if node.expr is None:
                self.error(f"Function '{fn.name}' must return a value of type '{declared}'", node)
            elif not self.type_compatible(declared, value_type):
                self.error(
                    f"Return type mismatch in function '{fn.name}': expected '{declared}', got '{value_type}'",
                    node,
                )
        return value_type

    def visit_BreakStmt(self, node):
        return None

    def visit_ContinueStmt(self, node):
        return None

    def visit_ThrowStmt(self, node: ast.ThrowStmt):
        self.visit(node.expr)

    def visit_TryStmt(self, node: ast.TryStmt):
        self.visit(node.body)
        for clause in node.catches:
            exn_type = clause.exn_type or ANY
            if clause.exn_type and clause.exn_type not in PRIMITIVES + (ANY, "array", "map", "object"):
                if self._base_type(clause.exn_type) not in self.types:
                    self.error(f"Unknown type '{clause.exn_type}' in catch clause", clause)
            self.symtab.enter_scope(f"catch_L{clause.line}", "block")
            self.symtab.declare(
                clause.name,
                Symbol(name=clause.name, kind="variable", type=exn_type, node=clause, lineno=clause.line),
            )
            self.visit(clause.body)
            self.symtab.exit_scope()
            clause.inferred_type = exn_type
        if node.finally_body is not None:
            self.visit(node.finally_body)

    # --- Literals ---
    def visit_NumberLit(self, node: ast.NumberLit):
        return "int" if node.is_integer else "float"

    def visit_StringLit(self, node):
        return "string"

    def visit_CharLit(self, node):
        return "char"

    def visit_BoolLit(self, node):
        return "bool"

    def visit_NullLit(self, node):
        return "null"

    def visit_ArrayLit(self, node: ast.ArrayLit):
        element_types = {self.visit(element) for element in node.elements}
        if len(element_types) == 1:
            (element,) = element_types
            if element not in (ANY, ERROR, "null"):
                return f"{element}[]"
        return "any[]"

    def visit_MapLit(self, node: ast.MapLit):
        key_types = set()
        value_types = set()
        for key, value in node.pairs:
            key_types.add(self.visit(key))
            value_types.add(self.visit(value))
        key = key_types.pop() if len(key_types) == 1 else ANY
        value = value_types.pop() if len(value_types) == 1 else ANY
        return f"map<{key}, {value}>"

    def visit_FunctionLit(self, node: ast.FunctionLit):
        self.analyze_function(node.decl)
        return ANY

    # --- Expressions ---
    def visit_Identifier(self, node: ast.Identifier):
        sym = self.symtab.lookup(node.name)
        if sym is not None:
            return sym.type
        class_name = self.current_class_name()
        if class_name:
            member = self.find_member(class_name, node.name)
            if member is not None:
                return member.type
        self.error(f"Undefined identifier '{node.name}'", node)
        return ERROR

    def visit_ThisExpr(self, node):
        sym = self.symtab.lookup("this")
        if sym is None:
            self.error("'this' used outside of an instance method", node)
            return ERROR
        return sym.type

    def visit_SuperExpr(self, node):
        class_name = self.current_class_name()
        info = self.types.get(class_name) if class_name else None
        if info is None or not info.superclass:
            self.error("'super' used in a class without a superclass", node)
            return ERROR
        return info.superclass

    def visit_Binary(self, node: ast.Binary):
        left = self.visit(node.left)
        right = self.visit(node.right)
        return self._binary_type(node.op, left, right, node)

    def visit_Unary(self, node: ast.Unary):
        operand = self.visit(node.operand)
        op = node.op
        if op == "!":
            return "bool"
        if op in ("++", "--"):
            self._check_writable(node.operand, node)
        if operand in (ANY, ERROR):
            return operand
        if op == "~":
            if operand not in INTEGRAL:
                self.error(f"Unary operator '~' requires an integer, got '{operand}'", node)
                return ERROR
            return operand
        if operand not in NUMERIC_RANK:
            self.error(f"Unary operator '{op}' requires a numeric operand, got '{operand}'", node)
            return ERROR
        return operand

    def _check_writable(self, target: ast.Expr, node: ast.Node) -> Optional[Symbol]:
        """Returns the symbol behind an assignable target, reporting const writes."""
        sym: Optional[Symbol] = None
        if isinstance(target, ast.Identifier):
            sym = self.symtab.lookup(target.name)
            if sym is None:
                class_name = self.current_class_name()
                sym = self.find_member(class_name, target.name) if class_name else None
        elif isinstance(target, ast.Member):
            sym = self._member_symbol(target, report=False)[0]
        if sym is not None and sym.is_const:
            in_constructor = self.current_function is not None and self.current_function.is_constructor
            if not (isinstance(target, ast.Member) and in_constructor):
                self.error(f"Cannot assign to constant '{sym.name}'", node)
        return sym

    def visit_Assign(self, node: ast.Assign):
        target = node.target
        if not isinstance(target, (ast.Identifier, ast.Member, ast.Index)):
            self.error("Invalid assignment target", node)
            self.visit(node.value)
            return ERROR
        value_type = self.visit(node.value)
        target_type = self.visit(target)
        sym = self._check_writable(target, node)
        if node.op != "=":
            value_type = self._binary_type(node.op[0], target_type, value_type, node)
        dynamic = sym is not None and not sym.explicit_type and sym.kind in ("variable", "parameter")
        if not dynamic and not self.type_compatible(target_type, value_type):
            label = target.name if isinstance(target, (ast.Identifier, ast.Member)) else "indexed element"
            self.error(
                f"Type mismatch in assignment to '{label}': cannot assign '{value_type}' to '{target_type}'",
                node,
            )
        return value_type if target_type in (ANY, ERROR) else target_type

    def _check_arguments(self, decl: Any, name: str, node: ast.Call, arg_types: List[str]) -> None:
        if not isinstance(decl, ast.FunctionDecl):
            return
        required = decl.required_params()
        total = len(decl.params)
        count = len(arg_types)
        if count > total or count < required:
            expected = str(total) if required == total else f"{required} to {total}"
            self.error(f"Function '{name}' expects {expected} argument(s), got {count}", node)
            return
        for index, (param, arg_type) in enumerate(zip(decl.params, arg_types), start=1):
            if param.type_name and not self.type_compatible(param.type_name, arg_type):
                self.error(
                    f"Argument {index} of '{name}' expects '{param.type_name}', got '{arg_type}'",
                    node.args[index - 1],
                )

    def visit_Call(self, node: ast.Call):
        callee = node.callee
        arg_types = [self.visit(arg) for arg in node.args]
        if isinstance(callee, ast.Identifier):
            name = callee.name
            sym = self.symtab.lookup(name)
            if sym is None:
                class_name = self.current_class_name()
                member = self.find_member(class_name, name) if class_name else None
                if member is not None and member.kind == "function":
                    callee.inferred_type = member.type
                    self._check_arguments(member.node, name, node, arg_types)
                    return member.type
                self.error(f"Undefined function '{name}'", callee)
                callee.inferred_type = ERROR
                return ERROR
            callee.inferred_type = sym.type
            if sym.kind == "function":
                if sym.owner != "builtin":
                    self._check_arguments(sym.node, name, node, arg_types)
                return sym.type
            if sym.kind in ("class", "struct", "type"):
                self.error(f"'{name}' is a type and cannot be called; use 'new {name}(...)'", callee)
                return ERROR
            if sym.type not in (ANY, ERROR):
                self.error(f"'{name}' is not callable (type '{sym.type}')", callee)
                return ERROR
            return ANY
        if isinstance(callee, ast.Member):
            member, member_type = self._member_symbol(callee)
            callee.inferred_type = member_type
            if member is not None and member.kind == "function":
                self._check_arguments(member.node, callee.name, node, arg_types)
                return member.type
            if member is not None and member_type not in (ANY, ERROR):
                self.error(f"Member '{callee.name}' is not callable", callee)
                return ERROR
            return member_type if member_type == ERROR else ANY
        if isinstance(callee, ast.SuperExpr):
            self.visit(callee)
            class_name = self.current_class_name()
            info = self.types.get(class_name) if class_name else None
            if info is not None and info.superclass:
                ctor = self.find_constructor(info.superclass)
                if ctor is not None:
                    self._check_arguments(ctor, info.superclass, node, arg_types)
            return "void"
        callee_type = self.visit(callee)
        if callee_type not in (ANY, ERROR):
            self.error(f"Value of type '{callee_type}' is not callable", node)
            return ERROR
        return ANY

    def _member_symbol(self, node: ast.Member, report: bool = True) -> Tuple[Optional[Symbol], str]:
        """Resolves ``target.name`` to its member symbol and type."""
        target = node.target
        name = node.name
        static_ref = False
        target_sym = self.symtab.lookup(target.name) if isinstance(target, ast.Identifier) else None
        if target_sym is not None and target_sym.kind in ("class", "struct", "type"):
            target_type = target_sym.name
            target.inferred_type = target_type
            static_ref = True
        elif report:
            target_type = self.visit(target)
        else:
            target_type = target.inferred_type or ANY

        if target_type in (ANY, ERROR):
            return None, target_type
        if name == "length" and (target_type == "string" or is_array_type(target_type)):
            return None, "int"
        if is_map_type(target_type):
            args = split_type_args(target_type)[1]
            return None, args[1] if len(args) == 2 else ANY
        if target_type in PRIMITIVES or is_array_type(target_type):
            if report:
                self.error(f"Type '{target_type}' has no member '{name}'", node)
            return None, ERROR

        base = self._base_type(target_type)
        info = self.types.get(base)
        if info is None:
            return None, ANY
        member = self.find_member(base, name)
        if member is None:
            if info.kind == "enum":
                if report:
                    self.error(f"Enum '{base}' has no value '{name}'", node)
                return None, ERROR
            return None, ANY
        if report:
            self._check_access(member, node)
            if static_ref and not member.is_static and member.kind != "function":
                self.error(f"Instance member '{name}' of '{base}' accessed through the class name", node)
        return member, member.type

    def _check_access(self, member: Symbol, node: ast.Member) -> None:
        context = self.current_class_name()
        if member.access == "private" and context != member.owner:
            self.error(f"Member '{node.name}' is private to class '{member.owner}'", node)
        elif member.access == "protected" and not (context and self.is_subclass(context, member.owner)):
            self.error(f"Member '{node.name}' is protected in class '{member.owner}'", node)

    def visit_Member(self, node: ast.Member):
        return self._member_symbol(node)[1]

    def visit_Index(self, node: ast.Index):
        base_type = self.visit(node.base)
        index_type = self.visit(node.index)
        if base_type in (ANY, ERROR):
            return ANY
        if is_map_type(base_type):
            args = split_type_args(base_type)[1]
            return args[1] if len(args) == 2 else ANY
        if base_type == "string" or is_array_type(base_type):
            if index_type not in INTEGRAL + (ANY, ERROR):
                self.error(f"Index must be an integer, got '{index_type}'", node.index)
            if base_type == "string":
                return "char"
            element = self._element_type(base_type)
            return element or ANY
        self.error(f"Type '{base_type}' cannot be indexed", node.base)
        return ERROR

    def visit_New(self, node: ast.New):
        arg_types = [self.visit(arg) for arg in node.args]
        info = self.types.get(node.class_name)
        if info is None or info.kind not in ("class", "struct"):
            self.error(f"Unknown class '{node.class_name}' in 'new'", node)
            return ERROR
        ctor = self.find_constructor(node.class_name)
        if ctor is not None:
            self._check_arguments(ctor, node.class_name, node, arg_types)
        return node.class_name

    def visit_Cast(self, node: ast.Cast):
        self.visit(node.expr)
        return node.type_name

    def visit_Ternary(self, node: ast.Ternary):
        self.visit(node.cond)
        if_true = self.visit(node.if_true)
        if_false = self.visit(node.if_false)
        if if_true == if_false:
            return if_true
        if if_true == "null":
            return if_false
        if if_false == "null":
            return if_true
        if if_true in NUMERIC_RANK and if_false in NUMERIC_RANK:
            return self._wider(if_true, if_false)
        return ANY

    def visit_Await(self, node: ast.Await):
        return self.visit(node.expr)
