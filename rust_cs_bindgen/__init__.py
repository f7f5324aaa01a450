"""
Rust to C# Bindings Generator - Generate C# P/Invoke bindings from Rust FFI declarations
"""

from .generator import CSharpBindingsGenerator
from .config import BindingConfig, parse_config_file
from .type_mapper import TypeMapper
from .code_generators import CodeGenerator, OutputBuilder
from .errors import (
    BindgenError,
    CompilationError,
    ConfigurationError,
    SourceError,
    UnresolvedTypeError,
    UnsupportedCallbackShapeError,
    UnsupportedTypeError,
)
from .constants import (
    CSHARP_TYPE_MAP,
    DEFAULT_NAMESPACE,
)

__version__ = "0.1.0"

__all__ = [
    "CSharpBindingsGenerator",
    "BindingConfig",
    "parse_config_file",
    "TypeMapper",
    "CodeGenerator",
    "OutputBuilder",
    "BindgenError",
    "CompilationError",
    "ConfigurationError",
    "SourceError",
    "UnresolvedTypeError",
    "UnsupportedCallbackShapeError",
    "UnsupportedTypeError",
    "CSHARP_TYPE_MAP",
    "DEFAULT_NAMESPACE",
]
