"""
Type environment: aliases, opaque handles and the struct/enum names seen so far
"""

from .constants import CSHARP_TYPE_MAP, C_TYPE_ALIASES, VOID_TYPES
from .declarations import (
    CallbackFn, Field, FixedArray, Named, Param, Pointer, Primitive, Type, Void,
)
from .errors import UnresolvedTypeError, UnsupportedTypeError


class TypeEnvironment:
    """Knows every type name of one compilation and resolves aliases transitively

    In non-strict mode a name that is not known is assumed to be a host type
    supplied elsewhere (for example a hand written ``FfiResult`` struct) and is
    passed through unchanged. Strict mode rejects it.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.aliases: dict[str, Type] = {}
        self.resolved_aliases: dict[str, Type] = {}
        self.opaque_types: list[str] = []
        self.structs: dict[str, list[Field]] = {}
        self.dynamic_structs: set[str] = set()
        self.enums: set[str] = set()
        self.constants: set[str] = set()

    def register_alias(self, name: str, target: Type):
        existing = self.aliases.get(name)
        if existing is not None and existing != target:
            raise UnsupportedTypeError(f"conflicting definitions of type alias '{name}'")
        self.aliases[name] = target

    def register_opaque(self, name: str):
        if name not in self.opaque_types:
            self.opaque_types.append(name)

    def register_struct(self, name: str, fields: list[Field], dynamic: bool = False):
        self.structs[name] = fields
        if dynamic:
            self.dynamic_structs.add(name)

    def register_enum(self, name: str):
        self.enums.add(name)

    def register_constant(self, name: str):
        self.constants.add(name)

    def is_opaque(self, name: str) -> bool:
        return name in self.opaque_types

    def host_name(self, name: str) -> str:
        """C# name of a named type; dynamically sized structs get a ``Native`` suffix"""
        if name in self.dynamic_structs:
            return f"{name}Native"
        return name

    def struct_fields(self, name: str) -> list[Field] | None:
        return self.structs.get(name)

    def resolve(self, ty: Type) -> Type:
        """Resolve aliases and primitive names through the whole type tree"""
        return self._resolve(ty, ())

    def _resolve(self, ty: Type, seen: tuple[str, ...]) -> Type:
        if isinstance(ty, Named):
            return self._resolve_name(ty, seen)
        if isinstance(ty, Primitive):
            return Primitive(C_TYPE_ALIASES.get(ty.kind, ty.kind))
        if isinstance(ty, Pointer):
            return Pointer(self._resolve(ty.to, seen), ty.mutable)
        if isinstance(ty, FixedArray):
            if isinstance(ty.size, str) and self.strict and ty.size not in self.constants:
                raise UnresolvedTypeError(f"unknown constant '{ty.size}' used as array size")
            return FixedArray(self._resolve(ty.of, seen), ty.size)
        if isinstance(ty, CallbackFn):
            params = tuple(Param(p.name, self._resolve(p.ty, seen)) for p in ty.params)
            ret = self._resolve(ty.ret, seen) if ty.ret is not None else None
            if isinstance(ret, Void):
                ret = None
            return CallbackFn(params, ret)
        return ty

    def _resolve_name(self, ty: Named, seen: tuple[str, ...]) -> Type:
        name = ty.name

        if ty.args:
            args = tuple(self._resolve(arg, seen) for arg in ty.args)
            # Option<fn> and Option<&T> are nullable pointers with the same layout
            if name == "Option" and len(args) == 1 and isinstance(args[0], (CallbackFn, Pointer)):
                return args[0]
            return Named(name, args)

        if name in self.aliases:
            if name in self.resolved_aliases:
                return self.resolved_aliases[name]
            if name in seen:
                cycle = " -> ".join(seen[seen.index(name):] + (name,))
                raise UnresolvedTypeError(f"cyclic type alias: {cycle}")
            resolved = self._resolve(self.aliases[name], seen + (name,))
            self.resolved_aliases[name] = resolved
            return resolved

        if name in VOID_TYPES:
            return Void()
        if name in CSHARP_TYPE_MAP or name == "str":
            return Primitive(name)
        if name in C_TYPE_ALIASES:
            return Primitive(C_TYPE_ALIASES[name])

        if name in self.opaque_types or name in self.structs or name in self.enums:
            return ty

        if self.strict:
            raise UnresolvedTypeError(f"unknown type '{name}'")
        return ty
