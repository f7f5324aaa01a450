"""
Code generation for C# types and constants, and assembly of the output documents
"""

import re

from .config import BindingConfig, TYPES, CONSTANTS, FUNCTIONS, INTERFACE
from .constants import (
    CSHARP_TYPE_MAP,
    TYPES_USINGS,
    FUNCTIONS_USINGS,
    CONSTANTS_USINGS,
    IOS_LIBRARY_NAME,
)
from .declarations import (
    ArrayValue, Constant, Enum, FixedArray, Literal, Named, Pointer, Primitive,
    Reference, Struct, StructLiteral, Type,
)
from .errors import (
    BindgenError, ConfigurationError, UnsupportedCallbackShapeError, UnsupportedTypeError,
)
from .naming import escape_keyword, is_dynamic_struct, to_lower_camel, to_upper_camel
from .type_mapper import CONSTANT, ELEMENT, FIELD, TypeMapper, describe_type

INTEGER_REPRS = {kind for kind in CSHARP_TYPE_MAP if kind[0] in "iu"}

_INT_LITERAL = re.compile(
    r"\b(0x[0-9a-fA-F_]+|0o[0-7_]+|0b[01_]+|[0-9][0-9_]*)(?:_?[iu](?:8|16|32|64|128|size))?\b")
_FLOAT_SUFFIX = re.compile(r"_?f(32|64)$")
_IDENTIFIER = re.compile(r"^@?[A-Za-z_][A-Za-z0-9_]*$")
_UNICODE_ESCAPE = re.compile(r"\\u\{([0-9a-fA-F_]+)\}")


def _number(match: re.Match) -> str:
    digits = match.group(1).replace("_", "")
    if digits.startswith("0o"):
        return str(int(digits[2:], 8))
    return digits


def csharp_expression(text: str) -> str:
    """Rewrite a Rust constant expression into C# syntax"""
    return _INT_LITERAL.sub(_number, text).replace("::", ".")


def csharp_string(text: str) -> str:
    """Convert a Rust string literal (with quotes) into a C# string literal"""
    if text.startswith(("b", "c")) and len(text) > 1 and text[1] in "r\"":
        text = text[1:]
    if text.startswith("r"):
        body = text[text.index('"') + 1:text.rindex('"')]
        return '@"' + body.replace('"', '""') + '"'

    body = text[1:-1]
    # Backslash-newline continues the literal on the next non-blank character
    body = re.sub(r"\\\n\s*", "", body)

    def unicode(match):
        code = int(match.group(1).replace("_", ""), 16)
        return f"\\u{code:04X}" if code <= 0xFFFF else f"\\U{code:08X}"

    return '"' + _UNICODE_ESCAPE.sub(unicode, body) + '"'


class CodeGenerator:
    """Generates C# structs, enums, opaque handles and constants"""

    def __init__(self, type_mapper: TypeMapper, visibility: str = "public"):
        self.type_mapper = type_mapper
        self.env = type_mapper.env
        self.visibility = visibility

    def generate_struct(self, decl: Struct) -> str:
        """Generate C# struct"""
        name = decl.name
        if is_dynamic_struct(decl.fields, self.env):
            name = f"{name}Native"

        lines = [f"    {self.visibility} struct {name} {{"]
        for field in decl.fields:
            try:
                mapped = self.type_mapper.map_type(field.ty, FIELD)
            except BindgenError as e:
                raise e.within(f"field '{field.name}'")
            if mapped.marshal:
                lines.append(f"        {mapped.marshal}")
            lines.append(f"        public {mapped.name} {escape_keyword(to_upper_camel(field.name))};")
        lines.append("    }")
        return "\n".join(lines) + "\n\n"

    def generate_enum(self, decl: Enum) -> str:
        """Generate C# enum"""
        # Add inheritance clause if the representation is not the default int
        inheritance_clause = ""
        if decl.repr not in (None, "C"):
            if decl.repr not in INTEGER_REPRS:
                raise UnsupportedTypeError(f"unsupported enum representation '{decl.repr}'")
            underlying_type = CSHARP_TYPE_MAP[decl.repr]
            if underlying_type != "int":
                inheritance_clause = f" : {underlying_type}"

        lines = [f"    {self.visibility} enum {decl.name}{inheritance_clause} {{"]
        for variant in decl.variants:
            if variant.has_payload:
                raise UnsupportedTypeError(f"enum variant '{variant.name}' carries data")
            if variant.value is None:
                lines.append(f"        {variant.name},")
            else:
                lines.append(f"        {variant.name} = {csharp_expression(variant.value)},")
        lines.append("    }")
        return "\n".join(lines) + "\n\n"

    def generate_opaque(self, name: str) -> str:
        """Generate a pointer-sized handle struct for an opaque type"""
        return (f"    {self.visibility} struct {name} {{\n"
                f"        private IntPtr _value;\n"
                f"    }}\n\n")

    def generate_constant(self, decl: Constant) -> str:
        """Generate a const or static readonly member of the constants class"""
        ty = self.env.resolve(decl.ty)
        value = decl.value
        while isinstance(value, Reference):
            value = value.value

        type_name = self._constant_type(ty)
        if isinstance(value, Literal) and value.kind == "null" and type_name != "String":
            type_name = "IntPtr"
        rendered = self.render_value(value, ty)

        if isinstance(value, Literal) and self._is_const_type(ty, type_name, value):
            return f"        public const {type_name} {decl.name} = {rendered};\n"
        return f"        public static readonly {type_name} {decl.name} = {rendered};\n"

    def generate_custom_constant(self, type_name: str, name: str, value: str) -> str:
        if not type_name.strip():
            raise ConfigurationError(f"custom constant '{name}' has no type")
        if not _IDENTIFIER.match(name):
            raise ConfigurationError(f"invalid custom constant name '{name}'")
        if not value.strip():
            raise ConfigurationError(f"custom constant '{name}' has no value")
        return f"        public const {type_name} {name} = {value};\n"

    def _constant_type(self, ty: Type) -> str:
        element = _slice_element(ty)
        if element is not None:
            return f"{self.type_mapper.map_type(element, ELEMENT).name}[]"
        return self.type_mapper.map_type(ty, CONSTANT).name

    def _is_const_type(self, ty: Type, type_name: str, value: Literal) -> bool:
        if value.kind == "null":
            return type_name == "String"
        if type_name == "String":
            return True
        if isinstance(ty, Primitive):
            return True
        if isinstance(ty, Named):
            return ty.name in self.env.enums
        return False

    def render_value(self, value, ty: Type | None) -> str:
        """Render a constant value tree as a C# expression"""
        if isinstance(value, Reference):
            if isinstance(ty, Pointer):
                ty = ty.to
            return self.render_value(value.value, ty)

        if isinstance(value, Literal):
            return self._render_literal(value, ty)

        if isinstance(value, ArrayValue):
            element = ty.of if isinstance(ty, FixedArray) else _slice_element(ty)
            items = [self.render_value(item, element) for item in value.items]
            if element is None:
                return f"new[] {{ {', '.join(items)} }}"
            element_name = self.type_mapper.map_type(element, ELEMENT).name
            if not items:
                return f"new {element_name}[0]"
            return f"new {element_name}[] {{ {', '.join(items)} }}"

        if isinstance(value, StructLiteral):
            field_types = {field.name: field.ty for field in self.env.struct_fields(value.name) or []}
            parts = []
            for name, field_value in value.fields:
                field_type = field_types.get(name)
                if field_type is not None:
                    field_type = self.env.resolve(field_type)
                parts.append(f"{to_lower_camel(name)} = {self.render_value(field_value, field_type)}")
            host_name = self.env.host_name(value.name)
            if not parts:
                return f"new {host_name}()"
            return f"new {host_name} {{ {', '.join(parts)} }}"

        raise UnsupportedTypeError(f"cannot render constant value {value!r}")

    def _render_literal(self, value: Literal, ty: Type | None) -> str:
        if isinstance(ty, FixedArray) or _slice_element(ty) is not None:
            raise UnsupportedTypeError(
                f"array constant of type '{describe_type(ty)}' needs an array literal")

        kind, text = value.kind, value.text
        if kind == "int":
            return csharp_expression(text)
        if kind == "float":
            number = _FLOAT_SUFFIX.sub("", text).replace("_", "")
            if ty == Primitive("f32"):
                number += "f"
            return number
        if kind == "str":
            return csharp_string(text)
        if kind == "char":
            return text[1:] if text.startswith("b") else text
        if kind == "null":
            if ty is not None and self.type_mapper.map_type(ty, CONSTANT).name == "String":
                return '""'
            return "IntPtr.Zero"
        if kind == "unsupported":
            raise UnsupportedTypeError(f"cannot translate constant expression '{text}'")
        if kind in ("path", "expr"):
            return csharp_expression(text)
        return text


def _slice_element(ty: Type | None) -> Type | None:
    # &[T] and &'static [T] are written as Named("[]", (T,)) behind a pointer
    if isinstance(ty, Pointer):
        ty = ty.to
    if isinstance(ty, Named) and ty.name == "[]" and len(ty.args) == 1:
        return ty.args[0]
    return None


class OutputBuilder:
    """Collects fragments per document and builds the final C# files"""

    def __init__(self, config: BindingConfig | None = None):
        self.config = config if config is not None else BindingConfig()
        self.fragments: dict[str, list[str]] = {TYPES: [], CONSTANTS: [], FUNCTIONS: [], INTERFACE: []}
        self.opaque_fragments: list[str] = []
        self.callbacks: dict[str, list] = {}

    def append(self, document: str, fragment: str):
        self.fragments[document].append(fragment)

    def add_opaque(self, fragment: str):
        self.opaque_fragments.append(fragment)

    def check_callbacks(self, callbacks):
        """Refuse a delegate name already bound to a different signature"""
        declared = {name: entry[0] for name, entry in self.callbacks.items()}
        for name, delegate, _ in callbacks:
            if declared.setdefault(name, delegate) != delegate:
                raise UnsupportedCallbackShapeError(
                    f"delegate '{name}' is already declared with a different signature")

    def add_callback(self, name: str, delegate: str, trampoline: str | None = None):
        """Record a delegate once; a trampoline is kept once any use needs it"""
        entry = self.callbacks.setdefault(name, [delegate, None])
        if trampoline and entry[1] is None:
            entry[1] = trampoline

    def build(self) -> dict[str, str]:
        """Build the final C# documents, keyed by file name"""
        names = self.config.document_names()
        return {
            names[TYPES]: self.build_types(),
            names[CONSTANTS]: self.build_constants(),
            names[FUNCTIONS]: self.build_functions(),
            names[INTERFACE]: self.build_interface(),
        }

    def _preamble(self, usings: list[str]) -> str:
        lines = list(usings)
        for namespace in self.config.using_statements:
            line = namespace if namespace.startswith("using ") else f"using {namespace};"
            if line not in lines:
                lines.append(line)
        return "\n".join(lines) + "\n\n"

    def build_types(self) -> str:
        if not self.fragments[TYPES] and not self.opaque_fragments:
            return ""
        parts = [self._preamble(TYPES_USINGS), f"namespace {self.config.namespace} {{\n"]
        if self.opaque_fragments:
            parts.append("    #pragma warning disable CS0169\n")
        parts.extend(self.fragments[TYPES])
        if self.opaque_fragments:
            parts.extend(self.opaque_fragments)
            parts.append("    #pragma warning restore CS0169\n")
        parts.append("}\n")
        return "".join(parts)

    def build_constants(self) -> str:
        if not self.fragments[CONSTANTS]:
            return ""
        config = self.config
        parts = [
            self._preamble(CONSTANTS_USINGS),
            f"namespace {config.namespace} {{\n",
            f"    {config.visibility} static class {config.constants_class} {{\n",
        ]
        parts.extend(self.fragments[CONSTANTS])
        parts.append("    }\n}\n")
        return "".join(parts)

    def build_functions(self) -> str:
        if not self.fragments[FUNCTIONS] and not self.callbacks:
            return ""
        config = self.config
        parts = [
            self._preamble(FUNCTIONS_USINGS),
            f"namespace {config.namespace} {{\n",
            f"    {config.visibility} partial class {config.class_name} : {config.interface} {{\n",
            "        #if __IOS__\n",
            f'        internal const String DLL_NAME = "{IOS_LIBRARY_NAME}";\n',
            "        #else\n",
            f'        internal const String DLL_NAME = "{config.library_name}";\n',
            "        #endif\n\n",
        ]
        parts.extend(self.fragments[FUNCTIONS])

        if self.callbacks:
            parts.append("        #region Callbacks\n")
            for name in sorted(self.callbacks):
                delegate, trampoline = self.callbacks[name]
                parts.append(delegate)
                if trampoline:
                    parts.append(trampoline)
            parts.append("        #endregion\n\n")

        parts.append("    }\n}\n")
        return "".join(parts)

    def build_interface(self) -> str:
        if not self.fragments[INTERFACE]:
            return ""
        config = self.config
        parts = [
            self._preamble(FUNCTIONS_USINGS),
            f"namespace {config.namespace} {{\n",
            f"    {config.visibility} partial interface {config.interface} {{\n",
        ]
        parts.extend(self.fragments[INTERFACE])
        parts.append("    }\n}\n")
        return "".join(parts)
