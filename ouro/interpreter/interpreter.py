"""Tree-walking interpreter for analyzed Ouro programs."""
from __future__ import annotations

import contextlib
import math
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, TextIO, Tuple

from .. import ast_nodes as ast
from ..errors import RUNTIME, Diagnostic, DiagnosticSink, OuroRuntimeError, Reporter
from .builtins import Builtin, BuiltinRegistry, create_standard_library
from .runtime import ClassEntry, ClassRegistry, FunctionRegistry, ObjectHeap, OuroObject, Property, StackFrame
from .values import (
    NAN,
    UNDEFINED,
    ClassRef,
    FunctionRef,
    ObjectRef,
    integer_binary,
    is_number,
    numeric_binary,
    runtime_type,
    to_display,
    to_number,
    truthy,
)

NUMERIC_TYPES = ("int", "long", "float", "double")
COMPARE = {
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}
# Python frames used per interpreted call, with headroom
FRAMES_PER_CALL = 40


# --- control-flow signals (internal) ---
class _Signal(Exception):
    pass


@dataclass
class _Return(_Signal):
    value: Any


@dataclass
class _Break(_Signal):
    label: Optional[str] = None
    line: int = 0
    column: int = 0


@dataclass
class _Continue(_Signal):
    label: Optional[str] = None
    line: int = 0
    column: int = 0


@dataclass
class _Throw(_Signal):
    value: Any
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class InterpreterLimits:
    max_call_depth: int = 1000


def _stderr_reporter(level: str, message: str) -> None:
    print(message, file=sys.stderr)


def default_for_type(type_name: Optional[str]) -> Any:
    if type_name in NUMERIC_TYPES:
        return 0
    if type_name == "bool":
        return False
    if type_name in ("string", "char"):
        return ""
    return UNDEFINED


class Interpreter:
    def __init__(
        self,
        builtins: BuiltinRegistry | None = None,
        stdout: TextIO | None = None,
        stdin: TextIO | None = None,
        reporter: Reporter | None = None,
        limits: InterpreterLimits | None = None,
    ) -> None:
        self.stdout = stdout or sys.stdout
        self.builtins = builtins or create_standard_library(self.stdout, stdin)
        self.builtins.display = self.to_string
        self.sink = DiagnosticSink(RUNTIME, reporter or _stderr_reporter)
        self.limits = limits or InterpreterLimits()

        self.functions = FunctionRegistry()
        self.classes = ClassRegistry()
        self.heap = ObjectHeap()
        self.global_frame = StackFrame("global")
        self.frame = self.global_frame
        self.current_class: Optional[str] = None
        self.receiver: Optional[ObjectRef] = None
        self.depth = 0
        self.aborted = False

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return self.sink.diagnostics

    # --- diagnostics ---
    def report(self, message: str, node: Optional[ast.Node]) -> None:
        """Recoverable runtime fault: recorded, execution continues."""
        self.sink.emit(message, node.line if node else None, node.column if node else None)

    def fail(self, message: str, node: Optional[ast.Node]):
        raise OuroRuntimeError(message, node.line if node else None, node.column if node else None)

    def to_string(self, value: Any) -> str:
        return to_display(value, self._describe_object)

    def _describe_object(self, ref: ObjectRef) -> str:
        if ref in self.heap:
            return f"{self.heap.get(ref).class_name}#{ref.id}"
        return f"obj:{ref.id}"

    # === REGISTRATION ===
    def register_program(self, program: ast.Program) -> None:
        for item in program.items:
            self.register_declaration(item)

    def register_declaration(self, item: ast.Node) -> None:
        if isinstance(item, ast.FunctionDecl):
            self.functions.register(item)
        elif isinstance(item, ast.ClassDecl):
            self.classes.register(ClassEntry(item.name, item, item.superclass, "class"))
            for method in item.methods():
                method.parent_class = item.name
                self.functions.register(method, item.name)
        elif isinstance(item, ast.StructDecl):
            self.classes.register(ClassEntry(item.name, item, None, "struct"))
        elif isinstance(item, ast.EnumDecl):
            self.classes.register(ClassEntry(item.name, item, None, "enum"))
        elif isinstance(item, ast.InterfaceDecl):
            self.classes.register(ClassEntry(item.name, item, None, "interface"))

    def find_user_function(self, name: str, class_name: Optional[str] = None) -> Optional[ast.FunctionDecl]:
        if class_name is None:
            return self.functions.get(name)
        for entry in self.classes.ancestors(class_name):
            decl = self.functions.get(name, entry.name)
            if decl is not None:
                return decl
        return None

    def find_constructor(self, class_name: Optional[str]) -> Optional[ast.FunctionDecl]:
        for entry in self.classes.ancestors(class_name):
            ctor = entry.constructor()
            if ctor is not None:
                return ctor
        return None

    # === ENTRY POINTS ===
    def execute(
        self,
        program: ast.Program,
        imported: Sequence[ast.Program] = (),
        call_main: bool = True,
    ) -> bool:
        """Registers declarations, runs top-level statements, then ``main``.

        Returns False when a fatal runtime error aborted the run.
        """
        self.aborted = False
        for module in imported:
            self.register_program(module)
        self.register_program(program)
        try:
            with self._recursion_headroom():
                try:
                    for item in program.items:
                        self.execute_stmt(item)
                    main = self.functions.get("main")
                    if call_main and main is not None:
                        self.call_function(main, [], program)
                except _Return:
                    pass
                except _Signal as signal:
                    raise self._escaped(signal)
        except OuroRuntimeError as exc:
            self.sink.emit(exc.message, exc.line, exc.column)
            self.aborted = True
            return False
        finally:
            self.frame = self.global_frame
            self.current_class = None
            self.receiver = None
            self.depth = 0
        return True

    @contextlib.contextmanager
    def _recursion_headroom(self) -> Iterator[None]:
        previous = sys.getrecursionlimit()
        wanted = self.limits.max_call_depth * FRAMES_PER_CALL
        if wanted > previous:
            sys.setrecursionlimit(wanted)
        try:
            yield
        except RecursionError:
            raise OuroRuntimeError("Maximum call depth exceeded") from None
        finally:
            sys.setrecursionlimit(previous)

    def _escaped(self, signal: _Signal) -> OuroRuntimeError:
        if isinstance(signal, _Throw):
            return OuroRuntimeError(f"Uncaught exception: {self.to_string(signal.value)}", signal.line, signal.column)
        keyword = "break" if isinstance(signal, _Break) else "continue"
        return OuroRuntimeError(f"'{keyword}' used outside of a loop", signal.line, signal.column)

    # === STATEMENTS ===
    def execute_stmt(self, node: ast.Node) -> None:
        executor = getattr(self, "exec_" + node.__class__.__name__, None)
        if executor is None:
            self.evaluate(node)
            return
        executor(node)

    def execute_block(self, node: ast.Node) -> None:
        if isinstance(node, ast.Block):
            for stmt in node.stmts:
                self.execute_stmt(stmt)
        else:
            self.execute_stmt(node)

    exec_Block = execute_block

    def exec_EmptyStmt(self, node) -> None:
        return None

    def exec_PackageDecl(self, node) -> None:
        return None

    def exec_ImportDecl(self, node) -> None:
        return None

    def exec_FunctionDecl(self, node: ast.FunctionDecl) -> None:
        if self.functions.get(node.name) is not node:
            self.functions.register(node)

    def exec_ClassDecl(self, node: ast.ClassDecl) -> None:
        entry = self.classes.get(node.name)
        if entry is None or entry.node is not node:
            self.register_declaration(node)

    exec_StructDecl = exec_ClassDecl
    exec_EnumDecl = exec_ClassDecl
    exec_InterfaceDecl = exec_ClassDecl

    def exec_ExprStmt(self, node: ast.ExprStmt) -> None:
        self.evaluate(node.expr)

    def exec_PrintStmt(self, node: ast.PrintStmt) -> None:
        self.stdout.write(self.to_string(self.evaluate(node.expr)) + "\n")

    def exec_VarDeclStmt(self, node: ast.VarDeclStmt) -> None:
        value = self.evaluate(node.init) if node.init is not None else default_for_type(node.type_name)
        self.frame.define(node.name, value, const=node.is_const)

    def exec_IfStmt(self, node: ast.IfStmt) -> None:
        if truthy(self.evaluate(node.cond)):
            self.execute_block(node.then)
        elif node.els is not None:
            self.execute_block(node.els)

    @staticmethod
    def _targets(signal, loop: ast.Node) -> bool:
        return signal.label is None or signal.label == getattr(loop, "label", None)

    def exec_WhileStmt(self, node: ast.WhileStmt) -> None:
        while truthy(self.evaluate(node.cond)):
            try:
                self.execute_block(node.body)
            except _Break as signal:
                if self._targets(signal, node):
                    break
                raise
            except _Continue as signal:
                if not self._targets(signal, node):
                    raise

    def exec_DoWhileStmt(self, node: ast.DoWhileStmt) -> None:
        while True:
            try:
                self.execute_block(node.body)
            except _Break as signal:
                if self._targets(signal, node):
                    break
                raise
            except _Continue as signal:
                if not self._targets(signal, node):
                    raise
            if not truthy(self.evaluate(node.cond)):
                break

    def exec_ForStmt(self, node: ast.ForStmt) -> None:
        if node.init is not None:
            self.execute_stmt(node.init)
        while node.cond is None or truthy(self.evaluate(node.cond)):
            try:
                self.execute_block(node.body)
            except _Break as signal:
                if self._targets(signal, node):
                    break
                raise
            except _Continue as signal:
                if not self._targets(signal, node):
                    raise
            if node.update is not None:
                self.evaluate(node.update)

    def exec_ForeachStmt(self, node: ast.ForeachStmt) -> None:
        collection = self.evaluate(node.iterable)
        if isinstance(collection, (list, str)):
            items = list(collection)
        elif isinstance(collection, dict):
            items = list(collection.keys())
        else:
            self.fail(f"Value of type '{runtime_type(collection)}' is not iterable", node.iterable)
        for item in items:
            self.frame.define(node.var, item)
            try:
                self.execute_block(node.body)
            except _Break as signal:
                if self._targets(signal, node):
                    break
                raise
            except _Continue as signal:
                if not self._targets(signal, node):
                    raise

    def exec_ReturnStmt(self, node: ast.ReturnStmt) -> None:
        value = self.evaluate(node.expr) if node.expr is not None else UNDEFINED
        raise _Return(value)

    def exec_BreakStmt(self, node: ast.BreakStmt) -> None:
        raise _Break(node.label, node.line, node.column)

    def exec_ContinueStmt(self, node: ast.ContinueStmt) -> None:
        raise _Continue(node.label, node.line, node.column)

    def exec_ThrowStmt(self, node: ast.ThrowStmt) -> None:
        raise _Throw(self.evaluate(node.expr), node.line, node.column)

    def _catch_matches(self, clause: ast.CatchClause, value: Any) -> bool:
        exn_type = clause.exn_type
        if exn_type in (None, "any"):
            return True
        if isinstance(value, ObjectRef) and value in self.heap:
            return self.classes.is_subclass(self.heap.get(value).class_name, exn_type)
        kind = runtime_type(value)
        if kind in ("int", "float"):
            return exn_type in NUMERIC_TYPES
        return kind == exn_type

    def exec_TryStmt(self, node: ast.TryStmt) -> None:
        pending: Optional[_Signal] = None
        try:
            self.execute_block(node.body)
        except _Signal as signal:
            pending = signal
            if isinstance(signal, _Throw):
                for clause in node.catches:
                    if self._catch_matches(clause, signal.value):
                        pending = None
                        self.frame.define(clause.name, signal.value)
                        try:
                            self.execute_block(clause.body)
                        except _Signal as inner:
                            pending = inner
                        break
        finally:
            if node.finally_body is not None:
                try:
                    self.execute_block(node.finally_body)
                except _Signal as signal:
                    pending = signal
        if pending is not None:
            raise pending

    # === CALLS ===
    def call_function(
        self,
        decl: ast.FunctionDecl,
        args: List[Any],
        node: ast.Node,
        receiver: Optional[ObjectRef] = None,
        arg_nodes: Sequence[ast.Expr] = (),
    ) -> Any:
        if self.depth >= self.limits.max_call_depth:
            self.fail("Maximum call depth exceeded", node)
        frame = StackFrame(decl.name, parent=self.frame, function=decl)
        saved = (self.frame, self.current_class, self.receiver)
        if decl.parent_class is not None:
            self.current_class = decl.parent_class
            self.receiver = receiver
        elif not decl.name.startswith("<anon_"):
            self.current_class = None
            self.receiver = None
        self.frame = frame
        self.depth += 1
        try:
            for index, param in enumerate(decl.params):
                if index < len(args):
                    value = args[index]
                elif param.default is not None:
                    value = self.evaluate(param.default)
                else:
                    value = UNDEFINED
                frame.define(param.name, value)
            result = UNDEFINED
            try:
                if decl.body is not None:
                    self.execute_block(decl.body)
            except _Return as ret:
                result = ret.value
            except (_Break, _Continue) as signal:
                raise self._escaped(signal)
        finally:
            self.frame, self.current_class, self.receiver = saved
            self.depth -= 1

        for index, param in enumerate(decl.params):
            if param.by_ref and index < len(arg_nodes) and isinstance(arg_nodes[index], ast.Identifier):
                self.assign_variable(arg_nodes[index].name, frame.locals.get(param.name, UNDEFINED), arg_nodes[index])
        return result

    def call_builtin(self, builtin: Builtin, args: List[Any], node: ast.Node) -> Any:
        if builtin.arity is not None and len(args) != builtin.arity:
            self.report(
                f"Built-in '{builtin.name}' expects {builtin.arity} argument(s), got {len(args)}",
                node,
            )
            return UNDEFINED
        try:
            return builtin.function(args)
        except (TypeError, ValueError, IndexError, OverflowError) as exc:
            self.report(f"Built-in '{builtin.name}' failed: {exc}", node)
            return UNDEFINED

    def call_value(self, value: Any, args: List[Any], node: ast.Call) -> Any:
        if isinstance(value, FunctionRef):
            decl = self.functions.get(value.name, value.parent_class)
            if decl is not None:
                receiver = self.receiver if value.parent_class else None
                return self.call_function(decl, args, node, receiver, node.args)
            builtin = self.builtins.lookup(value.name)
            if builtin is not None:
                return self.call_builtin(builtin, args, node)
        self.fail(f"Value of type '{runtime_type(value)}' is not callable", node)

    def eval_Call(self, node: ast.Call) -> Any:
        callee = node.callee
        if isinstance(callee, ast.Identifier):
            return self._call_named(callee.name, node)
        if isinstance(callee, ast.Member):
            return self._call_member(callee, node)
        if isinstance(callee, ast.SuperExpr):
            entry = self.classes.get(self.current_class)
            ctor = self.find_constructor(entry.parent) if entry is not None else None
            args = [self.evaluate(arg) for arg in node.args]
            if ctor is not None:
                self.call_function(ctor, args, node, self.receiver, node.args)
            return UNDEFINED
        value = self.evaluate(callee)
        return self.call_value(value, [self.evaluate(arg) for arg in node.args], node)

    def _call_named(self, name: str, node: ast.Call) -> Any:
        if self.current_class is not None:
            method = self.find_user_function(name, self.current_class)
            if method is not None:
                args = [self.evaluate(arg) for arg in node.args]
                receiver = None if method.is_static else self.receiver
                return self.call_function(method, args, node, receiver, node.args)
        decl = self.functions.get(name)
        if decl is not None:
            return self.call_function(decl, [self.evaluate(arg) for arg in node.args], node, arg_nodes=node.args)
        held = self.frame.get(name)
        if isinstance(held, FunctionRef):
            return self.call_value(held, [self.evaluate(arg) for arg in node.args], node)
        builtin = self.builtins.lookup(name)
        if builtin is not None:
            return self.call_builtin(builtin, [self.evaluate(arg) for arg in node.args], node)
        self.fail(f"Undefined function '{name}'", node)

    def _call_member(self, callee: ast.Member, node: ast.Call) -> Any:
        name = callee.name
        if isinstance(callee.target, ast.SuperExpr):
            entry = self.classes.get(self.current_class)
            method = self.find_user_function(name, entry.parent) if entry is not None else None
            if method is None:
                self.fail(f"Undefined method '{name}' on superclass", node)
            args = [self.evaluate(arg) for arg in node.args]
            return self.call_function(method, args, node, self.receiver, node.args)

        target = self.evaluate(callee.target)
        if isinstance(target, ObjectRef) and target in self.heap:
            class_name = self.heap.get(target).class_name
            method = self.find_user_function(name, class_name)
            if method is None:
                value = self.get_member(target, name, callee)
                if isinstance(value, FunctionRef):
                    return self.call_value(value, [self.evaluate(arg) for arg in node.args], node)
                self.fail(f"Undefined method '{name}' on class '{class_name}'", node)
            self._check_method_access(method, node)
            args = [self.evaluate(arg) for arg in node.args]
            receiver = None if method.is_static else target
            return self.call_function(method, args, node, receiver, node.args)
        if isinstance(target, ClassRef):
            method = self.find_user_function(name, target.name)
            if method is None:
                self.fail(f"Undefined static method '{name}' on class '{target.name}'", node)
            self._check_method_access(method, node)
            args = [self.evaluate(arg) for arg in node.args]
            return self.call_function(method, args, node, None, node.args)
        if isinstance(target, dict) and isinstance(target.get(name), FunctionRef):
            return self.call_value(target[name], [self.evaluate(arg) for arg in node.args], node)
        if target is None or target is UNDEFINED:
            self.fail(f"Cannot call method '{name}' on {self.to_string(target)}", node)
        self.fail(f"Cannot call method '{name}' on a value of type '{runtime_type(target)}'", node)

    def _check_method_access(self, method: ast.FunctionDecl, node: ast.Node) -> None:
        owner = method.parent_class
        if method.visibility == "private" and self.current_class != owner:
            self.fail(f"Cannot call private method '{method.name}' of class '{owner}'", node)
        if method.visibility == "protected" and not (
            self.current_class and self.classes.is_subclass(self.current_class, owner)
        ):
            self.fail(f"Cannot call protected method '{method.name}' of class '{owner}'", node)

    # === OBJECTS ===
    def static_object(self, class_name: str) -> OuroObject:
        """The class's static companion, created and initialized on first use."""
        entry = self.classes.get(class_name)
        if entry.statics is not None:
            return entry.statics
        companion = OuroObject(0, class_name)
        entry.statics = companion
        if isinstance(entry.node, ast.EnumDecl):
            for ordinal, value in enumerate(entry.node.values):
                companion.properties[value] = Property(ordinal, "public", True, True, class_name)
        elif isinstance(entry.node, ast.ClassDecl):
            for field_decl in entry.node.fields():
                if field_decl.is_static:
                    value = self._field_initial_value(field_decl, class_name)
                    companion.properties[field_decl.name] = Property(
                        value, field_decl.visibility, True, field_decl.is_const, class_name
                    )
        return companion

    def _field_initial_value(self, field_decl: ast.FieldDecl, owner: str) -> Any:
        if field_decl.init is None:
            # const fields stay unset until the constructor assigns them
            return UNDEFINED if field_decl.is_const else default_for_type(field_decl.type_name)
        saved = (self.frame, self.current_class, self.receiver)
        self.frame, self.current_class, self.receiver = self.global_frame, owner, None
        try:
            return self.evaluate(field_decl.init)
        finally:
            self.frame, self.current_class, self.receiver = saved

    def _find_static(self, class_name: str, name: str) -> Optional[Property]:
        for entry in self.classes.ancestors(class_name):
            if entry.kind in ("class", "enum"):
                prop = self.static_object(entry.name).properties.get(name)
                if prop is not None:
                    return prop
        return None

    def _can_access(self, prop: Property) -> bool:
        if prop.access == "private":
            return self.current_class == prop.owner
        if prop.access == "protected":
            return bool(self.current_class) and self.classes.is_subclass(self.current_class, prop.owner)
        return True

    def eval_New(self, node: ast.New) -> Any:
        entry = self.classes.get(node.class_name)
        if entry is None or entry.kind not in ("class", "struct"):
            self.fail(f"Unknown class '{node.class_name}'", node)
        args = [self.evaluate(arg) for arg in node.args]
        obj = self.heap.allocate(node.class_name)
        for ancestor in reversed(self.classes.ancestors(node.class_name)):
            if isinstance(ancestor.node, ast.ClassDecl):
                declared = [f for f in ancestor.node.fields() if not f.is_static]
            else:
                declared = list(ancestor.node.fields)
            for field_decl in declared:
                obj.properties[field_decl.name] = Property(
                    self._field_initial_value(field_decl, ancestor.name),
                    field_decl.visibility,
                    False,
                    field_decl.is_const,
                    ancestor.name,
                )
        if entry.kind == "struct":
            for field_decl, value in zip(entry.node.fields, args):
                obj.properties[field_decl.name].value = value
            return obj.ref
        ctor = self.find_constructor(node.class_name)
        if ctor is not None:
            self.call_function(ctor, args, node, obj.ref, node.args)
        return obj.ref

    def get_member(self, target: Any, name: str, node: ast.Node) -> Any:
        if isinstance(target, ObjectRef) and target in self.heap:
            obj = self.heap.get(target)
            prop = obj.properties.get(name)
            if prop is None:
                prop = self._find_static(obj.class_name, name)
            if prop is not None:
                if not self._can_access(prop):
                    self.report(f"Cannot access {prop.access} member '{name}' of class '{prop.owner}'", node)
                    return UNDEFINED
                return prop.value
            method = self.find_user_function(name, obj.class_name)
            if method is not None:
                return FunctionRef(method.name, method.parent_class)
            return UNDEFINED
        if isinstance(target, ClassRef):
            prop = self._find_static(target.name, name)
            if prop is not None:
                if not self._can_access(prop):
                    self.report(f"Cannot access {prop.access} member '{name}' of class '{prop.owner}'", node)
                    return UNDEFINED
                return prop.value
            method = self.find_user_function(name, target.name)
            if method is not None:
                return FunctionRef(method.name, method.parent_class)
            self.report(f"Class '{target.name}' has no static member '{name}'", node)
            return UNDEFINED
        if isinstance(target, (str, list)) and name == "length":
            return len(target)
        if isinstance(target, dict):
            if name == "length" and name not in target:
                return len(target)
            return target.get(name, UNDEFINED)
        if target is None or target is UNDEFINED:
            self.fail(f"Cannot read member '{name}' of {self.to_string(target)}", node)
        self.fail(f"Cannot read member '{name}' of a value of type '{runtime_type(target)}'", node)

    def set_member(self, target: Any, name: str, value: Any, node: ast.Node) -> None:
        if isinstance(target, ObjectRef) and target in self.heap:
            obj = self.heap.get(target)
            prop = obj.properties.get(name) or self._find_static(obj.class_name, name)
            if prop is None:
                obj.properties[name] = Property(value, owner=obj.class_name)
                return
            self._write_property(prop, name, value, node)
            return
        if isinstance(target, ClassRef):
            prop = self._find_static(target.name, name)
            if prop is None:
                self.static_object(target.name).properties[name] = Property(value, is_static=True, owner=target.name)
                return
            self._write_property(prop, name, value, node)
            return
        if isinstance(target, dict):
            target[name] = value
            return
        self.fail(f"Cannot set member '{name}' on a value of type '{runtime_type(target)}'", node)

    def _write_property(self, prop: Property, name: str, value: Any, node: ast.Node) -> None:
        if not self._can_access(prop):
            self.fail(f"Cannot write {prop.access} member '{name}' of class '{prop.owner}'", node)
        if prop.is_const and prop.value is not UNDEFINED:
            self.fail(f"Cannot assign to constant member '{name}'", node)
        prop.value = value

    # === VARIABLES ===
    def lookup_variable(self, name: str, node: ast.Node) -> Any:
        frame = self.frame.find(name)
        if frame is not None:
            return frame.locals[name]
        if self.current_class is not None:
            if self.receiver is not None and self.receiver in self.heap:
                prop = self.heap.get(self.receiver).properties.get(name)
                if prop is not None:
                    return prop.value
            prop = self._find_static(self.current_class, name)
            if prop is not None:
                return prop.value
        if name in self.classes:
            return ClassRef(name)
        if self.functions.get(name) is not None or name in self.builtins:
            return FunctionRef(name)
        self.report(f"Undefined variable '{name}'", node)
        return UNDEFINED

    def assign_variable(self, name: str, value: Any, node: ast.Node) -> None:
        frame = self.frame.find(name)
        if frame is not None:
            if name in frame.consts:
                self.fail(f"Cannot assign to constant '{name}'", node)
            frame.locals[name] = value
            return
        if self.current_class is not None:
            if self.receiver is not None and self.receiver in self.heap:
                prop = self.heap.get(self.receiver).properties.get(name)
                if prop is not None:
                    self._write_property(prop, name, value, node)
                    return
            prop = self._find_static(self.current_class, name)
            if prop is not None:
                self._write_property(prop, name, value, node)
                return
        self.frame.define(name, value)

    # === INDEXING ===
    def _index_value(self, index: Any, node: ast.Node) -> Optional[int]:
        if is_number(index) and float(index).is_integer():
            return int(index)
        self.report(f"Index must be an integer, got '{self.to_string(index)}'", node)
        return None

    @staticmethod
    def _map_key(key: Any) -> Any:
        if isinstance(key, float) and key.is_integer():
            return int(key)
        return key

    def get_index(self, base: Any, index: Any, node: ast.Node) -> Any:
        if isinstance(base, dict):
            return base.get(self._map_key(index), UNDEFINED)
        if isinstance(base, (str, list)):
            position = self._index_value(index, node)
            if position is None:
                return UNDEFINED
            if 0 <= position < len(base):
                return base[position]
            kind = "String" if isinstance(base, str) else "Array"
            self.report(f"{kind} index {position} out of bounds (length {len(base)})", node)
            return UNDEFINED
        self.report(f"Value of type '{runtime_type(base)}' is not indexable", node)
        return UNDEFINED

    def set_index(self, base: Any, index: Any, value: Any, node: ast.Node) -> None:
        if isinstance(base, dict):
            base[self._map_key(index)] = value
            return
        if isinstance(base, list):
            position = self._index_value(index, node)
            if position is not None and 0 <= position < len(base):
                base[position] = value
                return
            if position == len(base):
                base.append(value)
                return
            self.fail(f"Array index {self.to_string(index)} out of bounds (length {len(base)})", node)
        if isinstance(base, str):
            self.fail("Strings are immutable", node)
        self.fail(f"Value of type '{runtime_type(base)}' is not indexable", node)

    # === EXPRESSIONS ===
    def evaluate(self, node: ast.Node) -> Any:
        evaluator = getattr(self, "eval_" + node.__class__.__name__, None)
        if evaluator is None:
            self.fail(f"Cannot evaluate {node.__class__.__name__}", node)
        return evaluator(node)

    def eval_NumberLit(self, node: ast.NumberLit) -> Any:
        return node.value

    def eval_StringLit(self, node: ast.StringLit) -> Any:
        return node.value

    eval_CharLit = eval_StringLit

    def eval_BoolLit(self, node: ast.BoolLit) -> Any:
        return node.value

    def eval_NullLit(self, node) -> Any:
        return None

    def eval_Identifier(self, node: ast.Identifier) -> Any:
        return self.lookup_variable(node.name, node)

    def eval_ThisExpr(self, node) -> Any:
        if self.receiver is None:
            self.report("'this' is not available here", node)
            return UNDEFINED
        return self.receiver

    eval_SuperExpr = eval_ThisExpr

    def eval_ArrayLit(self, node: ast.ArrayLit) -> Any:
        return [self.evaluate(element) for element in node.elements]

    def eval_MapLit(self, node: ast.MapLit) -> Any:
        return {self._map_key(self.evaluate(key)): self.evaluate(value) for key, value in node.pairs}

    def eval_FunctionLit(self, node: ast.FunctionLit) -> Any:
        if self.functions.get(node.decl.name) is None:
            self.functions.register(node.decl)
        return FunctionRef(node.decl.name)

    def eval_Await(self, node: ast.Await) -> Any:
        return self.evaluate(node.expr)

    def eval_Ternary(self, node: ast.Ternary) -> Any:
        if truthy(self.evaluate(node.cond)):
            return self.evaluate(node.if_true)
        return self.evaluate(node.if_false)

    def eval_Cast(self, node: ast.Cast) -> Any:
        value = self.evaluate(node.expr)
        target = node.type_name
        if target in NUMERIC_TYPES:
            number = to_number(value)
            if number is None:
                self.report(f"Cannot cast '{self.to_string(value)}' to {target}", node)
                return NAN
            if target in ("int", "long"):
                return int(number) if math.isfinite(number) else number
            return float(number)
        if target == "string":
            return self.to_string(value)
        if target == "bool":
            return truthy(value)
        if target == "char":
            if is_number(value):
                if not math.isfinite(value) or not 0 <= int(value) < 0x110000:
                    self.report(f"Cannot cast '{self.to_string(value)}' to char", node)
                    return UNDEFINED
                return chr(int(value))
            text = self.to_string(value)
            return text[:1]
        return value

    def eval_Member(self, node: ast.Member) -> Any:
        if isinstance(node.target, ast.SuperExpr):
            return self.get_member(self.receiver, node.name, node)
        return self.get_member(self.evaluate(node.target), node.name, node)

    def eval_Index(self, node: ast.Index) -> Any:
        base = self.evaluate(node.base)
        return self.get_index(base, self.evaluate(node.index), node)

    def _lvalue(self, target: ast.Expr) -> Tuple[Callable[[], Any], Callable[[Any], None]]:
        """Getter/setter pair for an assignable expression; sub-expressions are evaluated once."""
        if isinstance(target, ast.Identifier):
            name = target.name
            return (lambda: self.lookup_variable(name, target)), (lambda v: self.assign_variable(name, v, target))
        if isinstance(target, ast.Member):
            obj = self.receiver if isinstance(target.target, ast.SuperExpr) else self.evaluate(target.target)
            return (
                (lambda: self.get_member(obj, target.name, target)),
                (lambda v: self.set_member(obj, target.name, v, target)),
            )
        if isinstance(target, ast.Index):
            base = self.evaluate(target.base)
            index = self.evaluate(target.index)
            return (lambda: self.get_index(base, index, target)), (lambda v: self.set_index(base, index, v, target))
        self.fail("Invalid assignment target", target)

    def eval_Assign(self, node: ast.Assign) -> Any:
        getter, setter = self._lvalue(node.target)
        value = self.evaluate(node.value)
        if node.op != "=":
            value = self.binary_op(node.op[0], getter(), value, node)
        setter(value)
        return value

    def eval_Unary(self, node: ast.Unary) -> Any:
        op = node.op
        if op in ("++", "--"):
            getter, setter = self._lvalue(node.operand)
            old = getter()
            if not is_number(old):
                self.report(f"Invalid operand type for '{op}': {runtime_type(old)}", node)
                setter(NAN)
                return NAN
            new = old + 1 if op == "++" else old - 1
            setter(new)
            return new if node.prefix else old
        value = self.evaluate(node.operand)
        if op == "!":
            return not truthy(value)
        if not is_number(value):
            self.report(f"Invalid operand type for unary '{op}': {runtime_type(value)}", node)
            return NAN
        if op == "-":
            return -value
        if op == "~":
            if not math.isfinite(value):
                self.report(f"Invalid operand for unary '~': {self.to_string(value)}", node)
                return NAN
            return ~int(value)
        return value

    def eval_Binary(self, node: ast.Binary) -> Any:
        op = node.op
        if op == "&&":
            return truthy(self.evaluate(node.left)) and truthy(self.evaluate(node.right))
        if op == "||":
            return truthy(self.evaluate(node.left)) or truthy(self.evaluate(node.right))
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        return self.binary_op(op, left, right, node)

    def values_equal(self, left: Any, right: Any) -> bool:
        if is_number(left) and is_number(right):
            return left == right
        if isinstance(left, (list, dict)) or isinstance(right, (list, dict)):
            return left is right
        if type(left) is type(right):
            return left == right
        primitive = (str, int, float, bool)
        if isinstance(left, primitive) and isinstance(right, primitive):
            return self.to_string(left) == self.to_string(right)
        return False

    def binary_op(self, op: str, left: Any, right: Any, node: ast.Node) -> Any:
        numbers = is_number(left) and is_number(right)
        if op == "+":
            if numbers:
                return left + right
            return self.to_string(left) + self.to_string(right)
        if op in ("-", "*", "/", "%"):
            if not numbers:
                self.report(
                    f"Invalid operand types for '{op}': {runtime_type(left)} and {runtime_type(right)}",
                    node,
                )
                return NAN
            if op in ("/", "%") and right == 0:
                self.report("Division by zero" if op == "/" else "Modulus by zero", node)
                return NAN
            return numeric_binary(op, left, right)
        if op == "==":
            return self.values_equal(left, right)
        if op == "!=":
            return not self.values_equal(left, right)
        if op in COMPARE:
            if numbers:
                return COMPARE[op](left, right)
            return COMPARE[op](self.to_string(left), self.to_string(right))
        if op in ("&", "|", "^", "<<", ">>", ">>>"):
            if not numbers or not (math.isfinite(left) and math.isfinite(right)):
                self.report(
                    f"Invalid operand types for '{op}': {runtime_type(left)} and {runtime_type(right)}",
                    node,
                )
                return NAN
            return integer_binary(op, left, right)
        if op == "..":
            if not numbers or not (math.isfinite(left) and math.isfinite(right)):
                self.report(
                    f"Invalid operand types for '..': {runtime_type(left)} and {runtime_type(right)}",
                    node,
                )
                return []
            return list(range(int(left), int(right)))
        self.fail(f"Unknown operator '{op}'", node)
