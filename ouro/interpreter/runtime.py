"""Frames, the object heap and the function/class registries."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from ..ast_nodes import ClassDecl, FunctionDecl, Node
from .values import UNDEFINED, ObjectRef


@dataclass
class StackFrame:
    name: str
    parent: Optional["StackFrame"] = None
    locals: Dict[str, Any] = field(default_factory=dict)
    consts: Set[str] = field(default_factory=set)
    function: Optional[FunctionDecl] = None

    def find(self, name: str) -> Optional["StackFrame"]:
        frame: Optional[StackFrame] = self
        while frame is not None:
            if name in frame.locals:
                return frame
            frame = frame.parent
        return None

    def get(self, name: str, default: Any = UNDEFINED) -> Any:
        frame = self.find(name)
        return frame.locals[name] if frame is not None else default

    def define(self, name: str, value: Any, const: bool = False) -> None:
        self.locals[name] = value
        if const:
            self.consts.add(name)
        else:
            self.consts.discard(name)


@dataclass
class Property:
    value: Any
    access: str = "public"
    is_static: bool = False
    is_const: bool = False
    owner: Optional[str] = None


@dataclass
class OuroObject:
    id: int
    class_name: str
    properties: Dict[str, Property] = field(default_factory=dict)

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(self.id)


class ObjectHeap:
    """Objects keyed by id; ids are allocated from 1 and never reused."""

    def __init__(self) -> None:
        self._objects: Dict[int, OuroObject] = {}
        self._next_id = 1

    def allocate(self, class_name: str) -> OuroObject:
        obj = OuroObject(self._next_id, class_name)
        self._objects[obj.id] = obj
        self._next_id += 1
        return obj

    def get(self, ref: ObjectRef) -> OuroObject:
        return self._objects[ref.id]

    def __contains__(self, ref: ObjectRef) -> bool:
        return ref.id in self._objects

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[OuroObject]:
        return iter(self._objects.values())


@dataclass
class ClassEntry:
    name: str
    node: Node
    parent: Optional[str] = None
    kind: str = "class"  # 'class', 'struct', 'enum', 'interface'
    statics: Optional[OuroObject] = None

    def constructor(self) -> Optional[FunctionDecl]:
        if isinstance(self.node, ClassDecl):
            for method in self.node.methods():
                if method.is_constructor:
                    return method
        return None


class FunctionRegistry:
    """User functions keyed by ``(name, parent_class)``."""

    def __init__(self) -> None:
        self._functions: Dict[Tuple[str, Optional[str]], FunctionDecl] = {}

    def register(self, decl: FunctionDecl, parent_class: Optional[str] = None) -> None:
        self._functions[(decl.name, parent_class)] = decl

    def get(self, name: str, parent_class: Optional[str] = None) -> Optional[FunctionDecl]:
        return self._functions.get((name, parent_class))

    def __contains__(self, key: Tuple[str, Optional[str]]) -> bool:
        return key in self._functions

    def names(self) -> List[Tuple[str, Optional[str]]]:
        return list(self._functions)


class ClassRegistry:
    def __init__(self) -> None:
        self._classes: Dict[str, ClassEntry] = {}

    def register(self, entry: ClassEntry) -> None:
        self._classes[entry.name] = entry

    def get(self, name: Optional[str]) -> Optional[ClassEntry]:
        if name is None:
            return None
        return self._classes.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._classes

    def ancestors(self, name: Optional[str]) -> List[ClassEntry]:
        """The class itself followed by its parents, nearest first."""
        chain: List[ClassEntry] = []
        seen: Set[str] = set()
        while name is not None and name not in seen:
            seen.add(name)
            entry = self._classes.get(name)
            if entry is None:
                break
            chain.append(entry)
            name = entry.parent
        return chain

    def is_subclass(self, child: str, parent: str) -> bool:
        return any(entry.name == parent for entry in self.ancestors(child))
