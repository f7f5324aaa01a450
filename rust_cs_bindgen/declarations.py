"""
Data model for Rust FFI declarations, type descriptors and constant values
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


# Type descriptors. The same classes describe both the types as written in
# the source and the fully resolved types handed to the mapper.

@dataclass(frozen=True)
class Primitive:
    kind: str


@dataclass(frozen=True)
class Pointer:
    to: "Type"
    mutable: bool = False


@dataclass(frozen=True)
class FixedArray:
    of: "Type"
    size: Union[int, str]


@dataclass(frozen=True)
class Named:
    name: str
    args: tuple = ()


@dataclass(frozen=True)
class Param:
    name: str | None
    ty: "Type"


@dataclass(frozen=True)
class CallbackFn:
    params: tuple[Param, ...] = ()
    ret: "Type | None" = None


@dataclass(frozen=True)
class Void:
    pass


Type = Union[Primitive, Pointer, FixedArray, Named, CallbackFn, Void]


def is_void_pointer(ty: Type) -> bool:
    return isinstance(ty, Pointer) and isinstance(ty.to, Void)


# Constant value trees

@dataclass(frozen=True)
class Literal:
    """A scalar constant value.

    ``kind`` is one of int, float, bool, str, char, null (a cast null pointer),
    path (``Mode::ReadOnly`` or another constant), expr (an operator
    expression kept as source text) or unsupported (calls, macros and blocks
    that have no C# constant form).
    """
    kind: str
    text: str


@dataclass(frozen=True)
class ArrayValue:
    items: tuple = ()


@dataclass(frozen=True)
class StructLiteral:
    name: str
    fields: tuple[tuple[str, "Value"], ...] = ()


@dataclass(frozen=True)
class Reference:
    value: "Value"


Value = Union[Literal, ArrayValue, StructLiteral, Reference]


# Declarations

@dataclass
class Field:
    name: str
    ty: Type


@dataclass
class Variant:
    name: str
    value: str | None = None
    has_payload: bool = False


@dataclass
class Declaration:
    name: str
    module: tuple[str, ...] = field(default=(), kw_only=True)
    location: SourceLocation | None = field(default=None, kw_only=True)

    @property
    def kind(self) -> str:
        return type(self).__name__.lower()


@dataclass
class Struct(Declaration):
    fields: list[Field] = field(default_factory=list)
    repr_c: bool = False


@dataclass
class Enum(Declaration):
    variants: list[Variant] = field(default_factory=list)
    repr: str | None = None

    @property
    def repr_c(self) -> bool:
        return self.repr is not None


@dataclass
class TypeAlias(Declaration):
    target: Type = field(default_factory=Void)


@dataclass
class Function(Declaration):
    params: list[Param] = field(default_factory=list)
    ret: Type | None = None
    abi: str | None = None
    no_mangle: bool = False

    @property
    def is_exported(self) -> bool:
        """True for ``#[no_mangle] extern "C"`` functions"""
        return self.abi == "C" and self.no_mangle


@dataclass
class Constant(Declaration):
    ty: Type = field(default_factory=Void)
    value: Value = field(default_factory=lambda: Literal("int", "0"))
    public: bool = True
