"""
Naming heuristics: identifier casing, pointer/length pairs and callback delegate names
"""

from dataclasses import dataclass, field

from .constants import DELEGATE_NAME_PARTS, SIZE_TYPES, DEFAULT_UTILS_CLASS
from .declarations import (
    CallbackFn, FixedArray, Named, Pointer, Primitive, Void, is_void_pointer,
)
from .errors import UnsupportedCallbackShapeError

# C# keywords that might appear as identifiers
CSHARP_KEYWORDS = {
    'abstract', 'as', 'base', 'bool', 'break', 'byte', 'case', 'catch',
    'char', 'checked', 'class', 'const', 'continue', 'decimal', 'default',
    'delegate', 'do', 'double', 'else', 'enum', 'event', 'explicit', 'extern',
    'false', 'finally', 'fixed', 'float', 'for', 'foreach', 'goto', 'if',
    'implicit', 'in', 'int', 'interface', 'internal', 'is', 'lock', 'long',
    'namespace', 'new', 'null', 'object', 'operator', 'out', 'override',
    'params', 'private', 'protected', 'public', 'readonly', 'ref', 'return',
    'sbyte', 'sealed', 'short', 'sizeof', 'stackalloc', 'static', 'string',
    'struct', 'switch', 'this', 'throw', 'true', 'try', 'typeof', 'uint',
    'ulong', 'unchecked', 'unsafe', 'ushort', 'using', 'virtual', 'void',
    'volatile', 'while'
}


def _segments(name: str) -> list[str]:
    return [segment for segment in name.split("_") if segment]


def _title(segment: str) -> str:
    # ALL_CAPS words are title-cased, anything else keeps its inner casing
    if segment.isupper():
        return segment[0] + segment[1:].lower()
    return segment[0].upper() + segment[1:]


def to_upper_camel(name: str) -> str:
    """``random_numbers`` -> ``RandomNumbers``, ``NONCE_LEN`` -> ``NonceLen``"""
    segments = _segments(name)
    if not segments:
        return name
    return "".join(_title(segment) for segment in segments)


def to_lower_camel(name: str) -> str:
    """``user_data`` -> ``userData``, ``o_app`` -> ``oApp``"""
    segments = _segments(name)
    if not segments:
        return name
    first = segments[0]
    first = first.lower() if first.isupper() else first[0].lower() + first[1:]
    return first + "".join(_title(segment) for segment in segments[1:])


def escape_keyword(name: str) -> str:
    """Escape C# keywords by prefixing with @"""
    if name in CSHARP_KEYWORDS:
        return f"@{name}"
    return name


def param_name(name: str) -> str:
    return escape_keyword(to_lower_camel(name))


def type_part(csharp_type: str) -> str:
    """Capitalized form of a C# type used inside delegate names"""
    if csharp_type.endswith("[]"):
        return type_part(csharp_type[:-2]) + "Array"
    if csharp_type in DELEGATE_NAME_PARTS:
        return DELEGATE_NAME_PARTS[csharp_type]
    return csharp_type[0].upper() + csharp_type[1:]


@dataclass(frozen=True)
class ArrayPair:
    """A ``<base>_ptr`` parameter at ``index`` followed by ``<base>_len``"""
    index: int
    base: str


def find_array_pairs(entries, env=None) -> list[ArrayPair]:
    """Find pointer/length pairs among parameters or fields

    ``entries`` are objects with ``name`` and ``ty``. Only a pointer named
    ``<base>_ptr`` immediately followed by an integer named exactly
    ``<base>_len`` forms a pair.
    """
    items = [(entry.name, env.resolve(entry.ty) if env is not None else entry.ty)
             for entry in entries]
    pairs = []
    index = 0
    while index < len(items) - 1:
        name, ty = items[index]
        next_name, next_ty = items[index + 1]
        if (name and name.endswith("_ptr") and len(name) > 4
                and isinstance(ty, Pointer)
                and not isinstance(ty.to, (Void, Pointer, CallbackFn))
                and next_name == f"{name[:-4]}_len"
                and isinstance(next_ty, Primitive) and next_ty.kind in SIZE_TYPES):
            pairs.append(ArrayPair(index, name[:-4]))
            index += 2
            continue
        index += 1
    return pairs


def is_dynamic_struct(fields, env=None) -> bool:
    """A struct holding at least one pointer/length pair is emitted as ``<Name>Native``"""
    return bool(find_array_pairs(fields, env))


@dataclass
class CallbackShape:
    """Everything the function emitter needs to know about one callback type"""
    delegate_name: str
    params: list[str] = field(default_factory=list)
    user_data: str = "userData"
    status: str | None = None
    value_types: list[str] = field(default_factory=list)
    value_exprs: list[str] = field(default_factory=list)
    ret: str = "void"

    @property
    def trampoline_name(self) -> str:
        return f"On{self.delegate_name}"

    @property
    def result_type(self) -> str | None:
        if not self.value_types:
            return None
        if len(self.value_types) == 1:
            return self.value_types[0]
        return f"({', '.join(self.value_types)})"

    @property
    def task_type(self) -> str:
        result = self.result_type
        return f"Task<{result}>" if result else "Task"

    def complete_arguments(self) -> list[str]:
        args = [self.user_data]
        if self.status:
            args.append(f"ref {self.status}")
        if len(self.value_exprs) == 1:
            args.append(self.value_exprs[0])
        elif self.value_exprs:
            args.append(f"({', '.join(self.value_exprs)})")
        return args


def _copy_expression(utils_class: str, element: str, pointer: str, count: str) -> str:
    if element == "byte":
        return f"{utils_class}.CopyToByteArray({pointer}, {count})"
    return f"{utils_class}.CopyToObjectArray<{element}>({pointer}, {count})"


def _is_status(ty, env) -> bool:
    return (isinstance(ty, Pointer) and isinstance(ty.to, Named)
            and not ty.to.args and not env.is_opaque(ty.to.name))


def callback_shape(callback: CallbackFn, mapper, utils_class: str = DEFAULT_UTILS_CLASS) -> CallbackShape:
    """Classify a callback signature and derive its delegate name

    The first parameter must be the ``*mut c_void`` user-data pointer. When the
    next parameter points to a struct it is the status result passed by ``ref``;
    every remaining parameter (or pointer/length pair, or fixed array) is a
    value delivered to the completed task.
    """
    from .type_mapper import CALLBACK_PARAM, ELEMENT, RETURN

    env = mapper.env
    callback = env.resolve(callback)
    params = list(callback.params)

    if not params or not is_void_pointer(params[0].ty):
        raise UnsupportedCallbackShapeError(
            "callback must take a '*mut c_void' user-data pointer as its first parameter")

    def ident(index: int) -> str:
        name = params[index].name
        return param_name(name) if name and name != "_" else f"arg{index}"

    pairs = {pair.index: pair for pair in find_array_pairs(params)}
    if len(pairs) > 1:
        raise UnsupportedCallbackShapeError("callback delivers more than one pointer/length pair")

    shape = CallbackShape(delegate_name="", user_data=ident(0))
    shape.params.append(f"IntPtr {shape.user_data}")
    shape.ret = mapper.map_type(callback.ret, RETURN).name
    parts = []

    index = 1
    while index < len(params):
        ty = params[index].ty

        if index in pairs:
            element = mapper.map_type(ty.to, ELEMENT)
            length = mapper.map_type(params[index + 1].ty, CALLBACK_PARAM)
            pointer_ident, length_ident = ident(index), ident(index + 1)
            shape.params.append(f"IntPtr {pointer_ident}")
            shape.params.append(length.declare(length_ident))
            parts.append(f"{type_part(element.name)}List")
            shape.value_types.append(f"{element.name}[]")
            shape.value_exprs.append(
                _copy_expression(utils_class, element.name, pointer_ident, length_ident))
            index += 2
            continue

        if isinstance(ty, FixedArray):
            if isinstance(ty.of, FixedArray):
                raise UnsupportedCallbackShapeError("callback parameter is an array of arrays")
            element = mapper.map_type(ty.of, ELEMENT)
            pointer_ident = f"{ident(index)}Ptr"
            shape.params.append(f"IntPtr {pointer_ident}")
            if isinstance(ty.size, int):
                size_part, count = str(ty.size), str(ty.size)
            else:
                size_part, count = to_upper_camel(ty.size), f"{mapper.constants_class}.{ty.size}"
            parts.append(f"{type_part(element.name)}Array{size_part}")
            shape.value_types.append(f"{element.name}[]")
            shape.value_exprs.append(_copy_expression(utils_class, element.name, pointer_ident, count))
            index += 1
            continue

        if isinstance(ty, CallbackFn):
            raise UnsupportedCallbackShapeError("callback parameter is itself a callback")

        mapped = mapper.map_type(ty, CALLBACK_PARAM)
        name = ident(index)
        shape.params.append(mapped.declare(name))
        parts.append(type_part(mapped.name))
        if index == 1 and _is_status(ty, env):
            shape.status = name
        else:
            shape.value_types.append(mapped.name)
            shape.value_exprs.append(name)
        index += 1

    shape.delegate_name = f"{''.join(parts) or 'None'}Cb"
    return shape
