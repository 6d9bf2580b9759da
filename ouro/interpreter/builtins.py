"""Native functions callable from Ouro code."""
from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TextIO

from .values import UNDEFINED, is_number, runtime_type, to_display, to_number

NativeFunction = Callable[[List[Any]], Any]


@dataclass(frozen=True)
class Builtin:
    name: str
    function: NativeFunction
    arity: Optional[int] = None  # None means variadic


class BuiltinRegistry:
    """Maps names to native callables ``(args) -> value``."""

    def __init__(self) -> None:
        self._functions: Dict[str, Builtin] = {}
        # replaced by the interpreter so objects render as ``Class#id``
        self.display: Callable[[Any], str] = to_display

    def register(self, name: str, function: NativeFunction | None = None, arity: Optional[int] = None):
        if function is None:

            def decorator(fn: NativeFunction) -> NativeFunction:
                self._functions[name] = Builtin(name, fn, arity)
                return fn

            return decorator
        self._functions[name] = Builtin(name, function, arity)
        return function

    def lookup(self, name: str) -> Optional[Builtin]:
        return self._functions.get(name)

    def names(self) -> List[str]:
        return list(self._functions)

    def __contains__(self, name: str) -> bool:
        return name in self._functions


def _number(value: Any) -> float:
    number = to_number(value)
    if number is None:
        raise ValueError(f"expected a number, got {value!r}")
    return number


def _integral(value: float) -> Any:
    return int(value) if isinstance(value, float) and value.is_integer() else value


def create_standard_library(stdout: TextIO | None = None, stdin: TextIO | None = None) -> BuiltinRegistry:
    out = stdout or sys.stdout
    inp = stdin or sys.stdin
    registry = BuiltinRegistry()

    # --- required ---
    @registry.register("print")
    def _print(args: List[Any]) -> Any:
        out.write(" ".join(registry.display(arg) for arg in args) + "\n")
        return UNDEFINED

    @registry.register("get_input", arity=1)
    def _get_input(args: List[Any]) -> str:
        out.write(registry.display(args[0]))
        out.flush()
        line = inp.readline()
        return line.rstrip("\r\n")

    @registry.register("to_string", arity=1)
    def _to_string(args: List[Any]) -> str:
        return registry.display(args[0])

    @registry.register("string_concat", arity=2)
    def _string_concat(args: List[Any]) -> str:
        return registry.display(args[0]) + registry.display(args[1])

    @registry.register("string_length", arity=1)
    def _string_length(args: List[Any]) -> int:
        return len(registry.display(args[0]))

    # --- collections ---
    @registry.register("len", arity=1)
    def _len(args: List[Any]) -> int:
        value = args[0]
        if isinstance(value, (str, list, dict)):
            return len(value)
        return len(registry.display(value))

    @registry.register("typeof", arity=1)
    def _typeof(args: List[Any]) -> str:
        return runtime_type(args[0])

    @registry.register("array_push", arity=2)
    def _array_push(args: List[Any]) -> int:
        array, value = args
        if not isinstance(array, list):
            raise TypeError("array_push expects an array")
        array.append(value)
        return len(array)

    @registry.register("array_pop", arity=1)
    def _array_pop(args: List[Any]) -> Any:
        array = args[0]
        if not isinstance(array, list):
            raise TypeError("array_pop expects an array")
        return array.pop() if array else UNDEFINED

    @registry.register("map_keys", arity=1)
    def _map_keys(args: List[Any]) -> List[Any]:
        mapping = args[0]
        if not isinstance(mapping, dict):
            raise TypeError("map_keys expects a map")
        return list(mapping)

    @registry.register("map_has", arity=2)
    def _map_has(args: List[Any]) -> bool:
        mapping, key = args
        if not isinstance(mapping, dict):
            raise TypeError("map_has expects a map")
        return key in mapping

    # --- math ---
    registry.register("sqrt", lambda args: math.sqrt(_number(args[0])), arity=1)
    registry.register("abs", lambda args: abs(_number(args[0])), arity=1)
    registry.register("floor", lambda args: math.floor(_number(args[0])), arity=1)
    registry.register("ceil", lambda args: math.ceil(_number(args[0])), arity=1)
    registry.register("pow", lambda args: _integral(math.pow(_number(args[0]), _number(args[1]))), arity=2)

    @registry.register("min")
    def _min(args: List[Any]) -> Any:
        return min(_number(arg) for arg in args)

    @registry.register("max")
    def _max(args: List[Any]) -> Any:
        return max(_number(arg) for arg in args)

    @registry.register("parse_int", arity=1)
    def _parse_int(args: List[Any]) -> Any:
        number = to_number(args[0])
        return int(number) if number is not None else math.nan

    @registry.register("parse_float", arity=1)
    def _parse_float(args: List[Any]) -> Any:
        number = to_number(args[0])
        return float(number) if number is not None else math.nan

    # --- strings ---
    @registry.register("substring")
    def _substring(args: List[Any]) -> str:
        text = registry.display(args[0])
        start = int(_number(args[1])) if len(args) > 1 else 0
        end = int(_number(args[2])) if len(args) > 2 and is_number(args[2]) else len(text)
        return text[start:end]

    registry.register("string_upper", lambda args: registry.display(args[0]).upper(), arity=1)
    registry.register("string_lower", lambda args: registry.display(args[0]).lower(), arity=1)

    return registry
