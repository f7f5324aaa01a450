"""Lark parser setup and declaration extraction for Rust sources."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from lark import Lark, Token, Transformer, UnexpectedInput

from .constants import CSHARP_TYPE_MAP
from .declarations import (
    ArrayValue, CallbackFn, Constant, Enum, Field, FixedArray, Function, Literal, Named,
    Param, Pointer, Reference, SourceLocation, Struct, StructLiteral, TypeAlias, Variant,
)
from .errors import SourceError

GRAMMAR_PATH = Path(__file__).parent / "rust.lark"

_INT_SUFFIX = re.compile(r"_?[iu](8|16|32|64|128|size)$")


@dataclass
class ModuleItem:
    """A ``mod`` item; ``items`` is None when the body lives in its own file"""
    name: str
    items: list | None = None
    location: SourceLocation | None = None
    cfg_test: bool = False


@dataclass(frozen=True)
class Attribute:
    """Outer attribute, kept as the atoms of its token tree: ``#[repr(C, u8)]`` -> repr, C, u8"""
    atoms: tuple[str, ...]

    @property
    def name(self) -> str:
        return self.atoms[0] if self.atoms else ""

    @property
    def args(self) -> tuple[str, ...]:
        return self.atoms[1:]


@dataclass(frozen=True)
class Visibility:
    restricted: bool = False


@dataclass
class Qualifiers:
    abi: str | None = None
    unsafe: bool = False


@dataclass(frozen=True)
class ReturnType:
    ty: object


@dataclass(frozen=True)
class PathSegment:
    name: str
    args: tuple = ()


@dataclass(frozen=True)
class GenericArgs:
    types: tuple = ()


@dataclass
class ParamList:
    params: list = field(default_factory=list)


@dataclass
class FieldList:
    fields: list = field(default_factory=list)


class TupleFields:
    pass


class Block:
    pass


def parse_int(text: str) -> int:
    """Value of a Rust integer literal such as ``0x1F_u8`` or ``1_000``"""
    digits = _INT_SUFFIX.sub("", text).replace("_", "")
    if digits[:2] in ("0x", "0o", "0b"):
        return int(digits, 0)
    return int(digits, 10)


def value_text(value) -> str:
    """Rust-like spelling of a constant value for enum discriminants and messages"""
    if isinstance(value, Literal):
        return value.text
    if isinstance(value, Reference):
        return f"&{value_text(value.value)}"
    if isinstance(value, ArrayValue):
        return f"[{', '.join(value_text(item) for item in value.items)}]"
    if isinstance(value, StructLiteral):
        return f"{value.name} {{ .. }}"
    return str(value)


def _name(token: Token) -> str:
    text = str(token)
    return text[2:] if text.startswith("r#") else text


def _first_name(children) -> Token:
    return next(c for c in children if isinstance(c, Token) and c.type == "NAME")


def _first(children, kind, default=None):
    return next((c for c in children if isinstance(c, kind)), default)


class RustDeclarationBuilder(Transformer):
    """Builds declarations from the parse tree.

    Items that never cross the FFI boundary (impls, traits, uses, macros,
    statics) transform to None and are dropped by the enclosing module.
    """

    def __init__(self, file_name: str = "lib.rs"):
        super().__init__()
        self.file_name = file_name

    def _location(self, token: Token) -> SourceLocation:
        return SourceLocation(self.file_name, token.line, token.column)

    # Modules and items

    def start(self, children):
        return [c for c in children if c is not None]

    def item(self, children):
        decl = children[-1]
        if decl is None:
            return None
        attrs = [c for c in children if isinstance(c, Attribute)]
        visibility = _first(children, Visibility)

        if isinstance(decl, ModuleItem):
            decl.cfg_test = any(a.name == "cfg" and a.args == ("test",) for a in attrs)
        elif isinstance(decl, Struct):
            decl.repr_c = "C" in _repr_args(attrs)
        elif isinstance(decl, Enum):
            decl.repr = _enum_repr(_repr_args(attrs))
        elif isinstance(decl, Function):
            decl.no_mangle = any(_is_no_mangle(a) for a in attrs)
        elif isinstance(decl, Constant):
            decl.public = visibility is not None and not visibility.restricted
        return decl

    def inner_attribute(self, children):
        return None

    def attribute(self, children):
        return Attribute(tuple(str(c) for c in children))

    def visibility(self, children):
        return Visibility(restricted=bool(children))

    def block(self, children):
        return Block()

    def mod_decl(self, children):
        token = _first_name(children)
        return ModuleItem(_name(token), None, self._location(token))

    def mod_inline(self, children):
        token = children[0]
        items = [c for c in children[1:] if c is not None]
        return ModuleItem(_name(token), items, self._location(token))

    def use_item(self, children):
        return None

    def extern_crate(self, children):
        return None

    def extern_block(self, children):
        return None

    def impl_item(self, children):
        return None

    def trait_item(self, children):
        return None

    def macro_item(self, children):
        return None

    def union_item(self, children):
        return None

    def static_item(self, children):
        return None

    # Functions

    def fn_item(self, children):
        token = _first_name(children)
        qualifiers = _first(children, Qualifiers, Qualifiers())
        params = _first(children, ParamList, ParamList())
        ret = _first(children, ReturnType)
        return Function(
            _name(token),
            params=params.params,
            ret=ret.ty if ret else None,
            abi=qualifiers.abi,
            location=self._location(token),
        )

    def fn_qualifiers(self, children):
        qualifiers = Qualifiers()
        for child in children:
            if isinstance(child, Token):
                if child.type == "UNSAFE_KW":
                    qualifiers.unsafe = True
            else:
                qualifiers.abi = child
        return qualifiers

    def extern_abi(self, children):
        if children:
            return str(children[0]).strip('"')
        return "C"

    def fn_params(self, children):
        return ParamList(list(children))

    def fn_param(self, children):
        return Param(_name(children[-2]), children[-1])

    def ret_type(self, children):
        return ReturnType(children[0])

    # Structs and enums

    def struct_item(self, children):
        token = _first_name(children)
        fields = _first(children, FieldList)
        return Struct(
            _name(token),
            fields=fields.fields if fields else [],
            location=self._location(token),
        )

    def struct_fields(self, children):
        return FieldList(list(children))

    def field(self, children):
        return Field(_name(children[-2]), children[-1])

    def tuple_fields(self, children):
        return TupleFields()

    def tuple_field(self, children):
        return None

    def enum_item(self, children):
        token = _first_name(children)
        variants = [c for c in children if isinstance(c, Variant)]
        return Enum(_name(token), variants=variants, location=self._location(token))

    def variant(self, children):
        token = _first_name(children)
        has_payload = any(isinstance(c, (FieldList, TupleFields)) for c in children)
        value = children[-1] if children[-1] is not token and not isinstance(
            children[-1], (FieldList, TupleFields)) else None
        return Variant(
            _name(token),
            value=value_text(value) if value is not None else None,
            has_payload=has_payload,
        )

    # Aliases and constants

    def type_item(self, children):
        token = _first_name(children)
        return TypeAlias(_name(token), target=children[-1], location=self._location(token))

    def const_item(self, children):
        token = _first_name(children)
        return Constant(_name(token), ty=children[-2], value=children[-1],
                        location=self._location(token))

    # Types

    def path_type(self, children):
        last = children[-1]
        return Named(last.name, last.args)

    def path_segment(self, children):
        args = _first(children, GenericArgs, GenericArgs())
        return PathSegment(_name(children[0]), args.types)

    def fn_sugar_segment(self, children):
        return PathSegment(_name(children[0]))

    def generic_args(self, children):
        return GenericArgs(tuple(c for c in children if c is not None))

    def generic_arg(self, children):
        # Lifetimes and associated type bindings carry no layout
        if len(children) == 1 and not isinstance(children[0], Token):
            return children[0]
        return None

    def pointer_type(self, children):
        qualifier, target = children
        return Pointer(target, mutable=qualifier.type == "MUT_KW")

    def ref_type(self, children):
        mutable = any(isinstance(c, Token) and c.type == "MUT_KW" for c in children)
        return Pointer(children[-1], mutable=mutable)

    def array_type(self, children):
        element, size = children
        if isinstance(size, Literal) and size.kind == "int":
            return FixedArray(element, parse_int(size.text))
        return FixedArray(element, value_text(size))

    def slice_type(self, children):
        return Named("[]", (children[0],))

    def tuple_type(self, children):
        if not children:
            return Named("()")
        if len(children) == 1:
            return children[0]
        return Named("tuple", tuple(children))

    def fn_type(self, children):
        params = tuple(c for c in children if isinstance(c, Param))
        ret = _first(children, ReturnType)
        return CallbackFn(params, ret.ty if ret else None)

    def fn_type_param(self, children):
        if len(children) == 2:
            return Param(_name(children[0]), children[1])
        return Param(None, children[0])

    def never_type(self, children):
        return Named("!")

    def dyn_type(self, children):
        return Named("dyn")

    def impl_type(self, children):
        return Named("impl")

    # Constant expressions

    def int_lit(self, children):
        return Literal("int", str(children[0]))

    def float_lit(self, children):
        return Literal("float", str(children[0]))

    def str_lit(self, children):
        return Literal("str", str(children[0]))

    def char_lit(self, children):
        return Literal("char", str(children[0]))

    def true_lit(self, children):
        return Literal("bool", "true")

    def false_lit(self, children):
        return Literal("bool", "false")

    def path_expr(self, children):
        names = [_name(c) for c in children if isinstance(c, Token)]
        return Literal("path", "::".join(names))

    def field_init(self, children):
        name = _name(children[0])
        if len(children) == 1:
            return (name, Literal("path", name))
        return (name, children[1])

    def struct_expr(self, children):
        path, *fields = children
        return StructLiteral(path.text.split("::")[-1], tuple(fields))

    def array_expr(self, children):
        return ArrayValue(tuple(children))

    def repeat_expr(self, children):
        item, count = children
        if isinstance(count, Literal) and count.kind == "int":
            return ArrayValue((item,) * parse_int(count.text))
        return Literal("unsupported", f"[{value_text(item)}; {value_text(count)}]")

    def paren_expr(self, children):
        inner = children[0]
        if isinstance(inner, Literal) and inner.kind in ("int", "float", "path", "expr"):
            return Literal("expr", f"({inner.text})")
        return inner

    def neg_expr(self, children):
        inner = children[0]
        if isinstance(inner, Literal) and inner.kind in ("int", "float"):
            return Literal(inner.kind, f"-{inner.text}")
        if isinstance(inner, Literal) and inner.kind in ("path", "expr"):
            return Literal("expr", f"-{inner.text}")
        return Literal("unsupported", f"-{value_text(inner)}")

    def not_expr(self, children):
        inner = children[0]
        if isinstance(inner, Literal) and inner.kind == "bool":
            return Literal("bool", "false" if inner.text == "true" else "true")
        if isinstance(inner, Literal) and inner.kind in ("int", "path", "expr"):
            # Rust's `!` on integers is a bitwise complement
            return Literal("expr", f"~{inner.text}")
        return Literal("unsupported", f"!{value_text(inner)}")

    def ref_expr(self, children):
        return Reference(children[-1])

    def cast_expr(self, children):
        inner, *types = children
        if isinstance(inner, Literal) and inner.kind == "int" and isinstance(types[-1], Pointer):
            if parse_int(inner.text) == 0:
                return Literal("null", "0")
        return inner

    def binop(self, children):
        return "".join(str(c) for c in children)

    def binary_expr(self, children):
        parts = []
        supported = True
        for child in children:
            if isinstance(child, str):
                parts.append(child)
                continue
            if not (isinstance(child, Literal) and child.kind in ("int", "float", "path", "expr", "bool")):
                supported = False
            parts.append(value_text(child))
        return Literal("expr" if supported else "unsupported", " ".join(parts))

    def call_expr(self, children):
        return Literal("unsupported", f"{children[0].text}(..)")

    def macro_expr(self, children):
        return Literal("unsupported", f"{children[0].text}!(..)")

    def field_expr(self, children):
        return Literal("unsupported", f"{value_text(children[0])}.{children[1]}")

    def method_expr(self, children):
        return Literal("unsupported", f"{value_text(children[0])}.{children[1]}(..)")

    def block_expr(self, children):
        return Literal("unsupported", "{ .. }")


def _repr_args(attrs: list[Attribute]) -> tuple[str, ...]:
    args = ()
    for attr in attrs:
        if attr.name == "repr":
            args += attr.args
    return args


def _enum_repr(args: tuple[str, ...]) -> str | None:
    """Integer representation wins over ``C``; None means no stable layout"""
    for arg in args:
        if arg in CSHARP_TYPE_MAP and arg[0] in "iu":
            return arg
    return "C" if "C" in args else None


def _is_no_mangle(attr: Attribute) -> bool:
    # Rust 2024 spells it #[unsafe(no_mangle)]
    return attr.atoms in (("no_mangle",), ("unsafe", "no_mangle"))


@lru_cache(maxsize=None)
def get_parser() -> Lark:
    return Lark.open(
        str(GRAMMAR_PATH),
        parser="lalr",
        propagate_positions=True,
        maybe_placeholders=False,
    )


def parse_source(text: str, file_name: str = "lib.rs") -> list:
    """Parse one Rust source file into declarations and module items.

    Raises:
        SourceError: if the text is not valid for the supported Rust subset
    """
    try:
        tree = get_parser().parse(text)
    except UnexpectedInput as e:
        message = str(e).strip().splitlines()[0]
        raise SourceError(f"syntax error: {message}",
                          location=SourceLocation(file_name, e.line, e.column)) from e
    return RustDeclarationBuilder(file_name).transform(tree)
