"""Runtime values and their textual forms."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

INT64_MASK = (1 << 64) - 1
NAN = math.nan


class _Undefined:
    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


@dataclass(frozen=True)
class ObjectRef:
    id: int


@dataclass(frozen=True)
class ClassRef:
    name: str


@dataclass(frozen=True)
class FunctionRef:
    name: str
    parent_class: Optional[str] = None


Number = Union[int, float]


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_number(value: Number) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        return repr(value)
    return str(value)


def to_display(value: Any, describe_object: Callable[[ObjectRef], str] | None = None) -> str:
    """Textual form used by ``print``, ``to_string`` and string concatenation."""
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, ObjectRef):
        return describe_object(value) if describe_object else f"obj:{value.id}"
    if isinstance(value, list):
        return "[" + ",".join(to_display(item, describe_object) for item in value) + "]"
    if isinstance(value, dict):
        pairs = (f"{to_display(k, describe_object)}:{to_display(v, describe_object)}" for k, v in value.items())
        return "{" + ",".join(pairs) + "}"
    if isinstance(value, FunctionRef):
        return f"<fn {value.name}>"
    if isinstance(value, ClassRef):
        return f"<class {value.name}>"
    return str(value)


def truthy(value: Any) -> bool:
    if value is None or value is UNDEFINED or value is False:
        return False
    if is_number(value):
        return value != 0
    if isinstance(value, str):
        return value != ""
    return True


def runtime_type(value: Any) -> str:
    """Type name of a non-object value, as matched by typed ``catch`` clauses."""
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "map"
    if isinstance(value, FunctionRef):
        return "function"
    if isinstance(value, ClassRef):
        return "class"
    return "object"


def _integral(value: float) -> Number:
    return int(value) if value.is_integer() else value


def numeric_binary(op: str, left: Number, right: Number) -> Number:
    """Arithmetic on two numbers; division and modulus by zero give NaN."""
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        if right == 0:
            return NAN
        result = left / right
        if isinstance(left, int) and isinstance(right, int):
            return _integral(result)
        return result
    if op == "%":
        if right == 0:
            return NAN
        if isinstance(left, int) and isinstance(right, int):
            remainder = abs(left) % abs(right)
            return -remainder if left < 0 else remainder
        return math.fmod(left, right)
    raise ValueError(f"unknown arithmetic operator {op!r}")


def to_int64(value: Number) -> int:
    number = int(value) & INT64_MASK
    return number - (1 << 64) if number >= (1 << 63) else number


def integer_binary(op: str, left: Number, right: Number) -> int:
    a = to_int64(left)
    b = to_int64(right)
    if op == "&":
        return a & b
    if op == "|":
        return a | b
    if op == "^":
        return a ^ b
    shift = b & 63
    if op == "<<":
        return to_int64(a << shift)
    if op == ">>":
        return a >> shift
    if op == ">>>":
        return (a & INT64_MASK) >> shift
    raise ValueError(f"unknown bitwise operator {op!r}")


def to_number(value: Any) -> Optional[Number]:
    """Numeric view of a value for casts, or None when it has none."""
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return None
    if value is None:
        return 0
    return None
