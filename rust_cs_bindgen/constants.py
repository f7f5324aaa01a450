"""
Constants and mappings for C# bindings generation
"""


# Mapping from Rust primitive names to C# types
CSHARP_TYPE_MAP = {
    "i8": "sbyte",
    "u8": "byte",
    "i16": "short",
    "u16": "ushort",
    "i32": "int",
    "u32": "uint",
    "i64": "long",
    "u64": "ulong",
    "isize": "long",
    "usize": "ulong",
    "f32": "float",
    "f64": "double",
    "bool": "bool",
    "char": "uint",
}

# libc / std::os::raw aliases, resolved to the Rust primitive they stand for
C_TYPE_ALIASES = {
    "c_char": "c_char",
    "c_schar": "i8",
    "c_uchar": "u8",
    "c_short": "i16",
    "c_ushort": "u16",
    "c_int": "i32",
    "c_uint": "u32",
    "c_long": "i64",
    "c_ulong": "u64",
    "c_longlong": "i64",
    "c_ulonglong": "u64",
    "c_float": "f32",
    "c_double": "f64",
    "size_t": "usize",
    "ssize_t": "isize",
}

# Names that resolve to the void type
VOID_TYPES = {"c_void", "()"}

# Integer primitives allowed as the length half of a `_ptr`/`_len` pair
SIZE_TYPES = {"usize", "isize", "u64", "i64", "u32", "i32", "u16", "u8"}

# Type-name parts used when building delegate names
DELEGATE_NAME_PARTS = {
    "sbyte": "SByte",
    "ushort": "UShort",
    "uint": "UInt",
    "ulong": "ULong",
}

# C# usings per generated document
TYPES_USINGS = [
    "using System;",
    "using System.Runtime.InteropServices;",
]
FUNCTIONS_USINGS = [
    "using System;",
    "using System.Runtime.InteropServices;",
    "using System.Threading.Tasks;",
]
CONSTANTS_USINGS = [
    "using System;",
]

MARSHAL_BOOL = "[MarshalAs(UnmanagedType.U1)]"
MARSHAL_STRING = "[MarshalAs(UnmanagedType.LPStr)]"

# Library name used by the iOS static linking convention
IOS_LIBRARY_NAME = "__Internal"

# Default names for generated code
DEFAULT_NAMESPACE = "Backend"
DEFAULT_LIBRARY_NAME = "backend"
DEFAULT_CLASS_NAME = "Backend"
DEFAULT_CONSTANTS_CLASS = "Constants"
DEFAULT_UTILS_CLASS = "Utils"
DEFAULT_TYPES_FILE = "Types.cs"

# Default crate-relative source file when Cargo.toml has no [lib] path
DEFAULT_LIB_PATH = "src/lib.rs"
