"""
Type mapping logic for converting Rust FFI types to C# types
"""

from dataclasses import dataclass

from .constants import CSHARP_TYPE_MAP, MARSHAL_BOOL, MARSHAL_STRING, DEFAULT_CONSTANTS_CLASS
from .declarations import CallbackFn, FixedArray, Named, Pointer, Primitive, Type, Void
from .errors import UnsupportedTypeError
from .type_env import TypeEnvironment

# Positions a type can appear in
FIELD = "field"
PARAM = "param"
CALLBACK_PARAM = "callback_param"
RETURN = "return"
ELEMENT = "element"
CONSTANT = "constant"


@dataclass(frozen=True)
class MappedType:
    """A C# type with its optional marshaling attribute and ref/out modifier"""
    name: str
    marshal: str | None = None
    modifier: str | None = None

    def declare(self, ident: str, marshal: bool = True) -> str:
        """Render a parameter declaration such as ``[MarshalAs(...)] ref T ident``"""
        parts = []
        if marshal and self.marshal:
            parts.append(self.marshal)
        if self.modifier:
            parts.append(self.modifier)
        parts.append(self.name)
        parts.append(ident)
        return " ".join(parts)

    def argument(self, ident: str) -> str:
        """Render a call-site argument, keeping the ref/out modifier"""
        return f"{self.modifier} {ident}" if self.modifier else ident


def describe_type(ty: Type | None) -> str:
    """Rust-like spelling of a type for error messages"""
    if ty is None or isinstance(ty, Void):
        return "()"
    if isinstance(ty, Primitive):
        return ty.kind
    if isinstance(ty, Named):
        if ty.args:
            return f"{ty.name}<{', '.join(describe_type(a) for a in ty.args)}>"
        return ty.name
    if isinstance(ty, Pointer):
        return f"*{'mut' if ty.mutable else 'const'} {describe_type(ty.to)}"
    if isinstance(ty, FixedArray):
        return f"[{describe_type(ty.of)}; {ty.size}]"
    if isinstance(ty, CallbackFn):
        params = ", ".join(describe_type(p.ty) for p in ty.params)
        ret = f" -> {describe_type(ty.ret)}" if ty.ret is not None else ""
        return f'extern "C" fn({params}){ret}'
    return str(ty)


class TypeMapper:
    """Maps resolved Rust types to C# types for a given position"""

    def __init__(self, env: TypeEnvironment | None = None,
                 constants_class: str = DEFAULT_CONSTANTS_CLASS):
        self.env = env if env is not None else TypeEnvironment()
        self.constants_class = constants_class

    def map_type(self, ty: Type | None, position: str = PARAM) -> MappedType:
        """Map a Rust type to C#

        Args:
            ty: The type as declared; aliases are resolved first
            position: One of FIELD, PARAM, CALLBACK_PARAM, RETURN, ELEMENT, CONSTANT
        """
        if ty is None:
            ty = Void()
        return self._map(self.env.resolve(ty), position)

    def array_size(self, size) -> str:
        """SizeConst expression for a fixed array length"""
        if isinstance(size, int):
            return str(size)
        return f"(int) {self.constants_class}.{size}"

    def _map(self, ty: Type, position: str) -> MappedType:
        if isinstance(ty, Void):
            if position == RETURN:
                return MappedType("void")
            raise UnsupportedTypeError("'()' is only valid as a return type")

        if isinstance(ty, Primitive):
            return self._map_primitive(ty, position)

        if isinstance(ty, Named):
            if ty.args:
                raise UnsupportedTypeError(
                    f"generic type '{describe_type(ty)}' cannot cross the FFI boundary")
            return MappedType(self.env.host_name(ty.name))

        if isinstance(ty, FixedArray):
            return self._map_array(ty, position)

        if isinstance(ty, Pointer):
            return self._map_pointer(ty, position)

        if isinstance(ty, CallbackFn):
            if position == FIELD:
                return MappedType("IntPtr")
            if position == PARAM:
                from .naming import callback_shape
                return MappedType(callback_shape(ty, self).delegate_name)
            raise UnsupportedTypeError(f"function pointer is not supported as {position} type")

        raise UnsupportedTypeError(f"cannot map type '{describe_type(ty)}'")

    def _map_primitive(self, ty: Primitive, position: str) -> MappedType:
        kind = ty.kind
        if kind == "str":
            if position == CONSTANT:
                return MappedType("String")
            raise UnsupportedTypeError("'str' is not FFI-safe, use '*const c_char'")
        if kind == "c_char":
            return MappedType("sbyte")

        name = CSHARP_TYPE_MAP.get(kind)
        if name is None:
            raise UnsupportedTypeError(f"no C# equivalent for primitive '{kind}'")
        if kind == "bool" and position in (FIELD, PARAM, CALLBACK_PARAM):
            return MappedType(name, MARSHAL_BOOL)
        return MappedType(name)

    def _map_array(self, ty: FixedArray, position: str) -> MappedType:
        if position in (RETURN, CALLBACK_PARAM, ELEMENT):
            raise UnsupportedTypeError(f"fixed-size array is not supported as {position} type")
        if isinstance(ty.of, FixedArray):
            raise UnsupportedTypeError(f"nested fixed-size array '{describe_type(ty)}'")

        element = self._map(ty.of, ELEMENT)
        if position == CONSTANT:
            return MappedType(f"{element.name}[]")
        return MappedType(
            f"{element.name}[]",
            f"[MarshalAs(UnmanagedType.ByValArray, SizeConst = {self.array_size(ty.size)})]",
        )

    def _map_pointer(self, ty: Pointer, position: str) -> MappedType:
        target = ty.to

        # char* is a string except as a return value, which the caller must not free
        if target == Primitive("c_char"):
            if position in (RETURN, ELEMENT):
                return MappedType("IntPtr")
            if position == CONSTANT:
                return MappedType("String")
            return MappedType("String", MARSHAL_STRING)

        if target == Primitive("str"):
            return self._map_primitive(target, position)

        if isinstance(target, Void):
            return MappedType("IntPtr")

        # Opaque types wrap a pointer and are passed by value
        if isinstance(target, Named) and self.env.is_opaque(target.name):
            return MappedType(target.name)

        if isinstance(target, Pointer):
            if position != PARAM:
                return MappedType("IntPtr")
            inner = target.to
            if isinstance(inner, Pointer):
                raise UnsupportedTypeError(f"too many levels of indirection in '{describe_type(ty)}'")
            if isinstance(inner, Named) and self.env.is_opaque(inner.name):
                return MappedType(inner.name, modifier="out")
            return MappedType("IntPtr", modifier="out")

        if isinstance(target, (FixedArray, CallbackFn)):
            return MappedType("IntPtr")

        if position == CONSTANT:
            return self._map(target, CONSTANT)

        if position in (PARAM, CALLBACK_PARAM):
            inner = self._map(target, position)
            return MappedType(inner.name, inner.marshal, "ref")

        return MappedType("IntPtr")
