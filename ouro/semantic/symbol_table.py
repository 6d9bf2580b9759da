from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional


@dataclass
class Symbol:
    name: str
    kind: str  # 'variable', 'parameter', 'function', 'class', 'struct', 'type'
    type: str = "any"
    node: Any = None
    lineno: Optional[int] = None
    owner: Optional[str] = None
    access: str = "public"
    is_const: bool = False
    is_static: bool = False
    # untyped variables are dynamic: any later assignment is accepted
    explicit_type: bool = False


@dataclass
class Scope:
    name: str
    kind: str
    parent: Optional["Scope"]
    level: int
    id: int
    symbols: Dict[str, Symbol] = field(default_factory=dict)


class SymbolTable:
    def __init__(self, builtins: Iterable[Symbol] = ()) -> None:
        self.global_scope = Scope("global", "global", None, 0, 0)
        self.current: Scope = self.global_scope
        self.builtins: Dict[str, Symbol] = {sym.name: sym for sym in builtins}
        self.closed_scopes: List[Scope] = []
        self._next_scope_id = 1

    @property
    def scopes(self) -> List[Scope]:
        """Active scopes from global to current."""
        chain: List[Scope] = []
        scope: Optional[Scope] = self.current
        while scope is not None:
            chain.append(scope)
            scope = scope.parent
        return list(reversed(chain))

    def enter_scope(self, name: str, kind: str = "block") -> Scope:
        scope = Scope(name, kind, self.current, self.current.level + 1, self._next_scope_id)
        self._next_scope_id += 1
        self.current = scope
        return scope

    def exit_scope(self) -> Scope:
        if self.current.parent is None:
            raise RuntimeError("Attempted to exit the global scope")
        scope = self.current
        self.current = scope.parent
        self.closed_scopes.append(scope)
        return scope

    def declare(self, name: str, symbol: Symbol) -> bool:
        """Declares in the current scope. Returns False if the name already exists there."""
        if name in self.current.symbols:
            return False
        self.current.symbols[name] = symbol
        return True

    def lookup(self, name: str) -> Optional[Symbol]:
        """Searches from the current scope outwards, then the built-ins."""
        scope: Optional[Scope] = self.current
        while scope is not None:
            if name in scope.symbols:
                return scope.symbols[name]
            scope = scope.parent
        return self.builtins.get(name)

    def lookup_current(self, name: str) -> Optional[Symbol]:
        return self.current.symbols.get(name)

    def snapshot(self) -> List[Dict[str, Any]]:
        """Serializable view of every scope opened so far."""

        def _serialize_scope(scope: Scope) -> Dict[str, Any]:
            symbols: List[Dict[str, Any]] = []
            for sym in scope.symbols.values():
                symbols.append(
                    {
                        "name": sym.name,
                        "kind": sym.kind,
                        "type": sym.type,
                        "access": sym.access,
                        "owner": sym.owner,
                        "lineno": sym.lineno,
                    }
                )
            return {
                "scope": scope.id,
                "name": scope.name,
                "kind": scope.kind,
                "level": scope.level,
                "symbols": symbols,
            }

        serializable = [_serialize_scope(scope) for scope in self.closed_scopes]
        serializable.extend(_serialize_scope(scope) for scope in self.scopes)
        serializable.sort(key=lambda s: s["scope"])
        return serializable
