"""
Error types raised while generating bindings
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .declarations import SourceLocation


class BindgenError(Exception):
    """Base class for all binding generation errors"""

    def __init__(self, message: str, declaration: str | None = None,
                 location: SourceLocation | None = None):
        super().__init__(message)
        self.message = message
        self.declaration = declaration
        self.location = location
        self.member = None

    def attach(self, declaration: str, location: SourceLocation | None) -> "BindgenError":
        """Fill in the failing declaration unless an inner frame already did"""
        if self.declaration is None:
            self.declaration = declaration
        if self.location is None:
            self.location = location
        return self

    def within(self, member: str) -> "BindgenError":
        """Name the field or parameter being mapped, innermost first"""
        if self.member is None:
            self.member = member
        return self

    def __str__(self) -> str:
        text = self.message
        if self.member:
            text = f"{text} (in {self.member})"
        if self.location is not None:
            text = f"{self.location}: {text}"
        if self.declaration:
            text = f"{text} [in {self.declaration}]"
        return text


class UnresolvedTypeError(BindgenError):
    """A type name that is neither a primitive, alias, opaque type nor a known struct/enum"""


class UnsupportedTypeError(BindgenError):
    """A type or parameter shape with no C# mapping"""


class UnsupportedCallbackShapeError(BindgenError):
    """A callback signature the naming heuristics cannot classify"""


class ConfigurationError(BindgenError, ValueError):
    """Invalid configuration, including malformed custom constants"""


class SourceError(BindgenError):
    """Rust source that cannot be read or parsed"""


class CompilationError(Exception):
    """Raised after a compilation pass in which one or more declarations failed

    ``errors`` holds every collected error in source order; ``outputs`` holds the
    documents built from the declarations that succeeded.
    """

    def __init__(self, errors: list[BindgenError], outputs: dict[str, str] | None = None):
        self.errors = list(errors)
        self.outputs = outputs or {}
        count = len(self.errors)
        super().__init__(f"{count} error{'s' if count != 1 else ''} while generating bindings")
