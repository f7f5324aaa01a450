"""
Language backends: the capabilities the driver needs, and the C# implementation
"""

from typing import Iterable, Protocol

from .code_generators import CodeGenerator, OutputBuilder
from .config import BindingConfig, TYPES, CONSTANTS, FUNCTIONS, INTERFACE
from .declarations import Constant, Declaration, Enum, Function, Struct, TypeAlias
from .errors import BindgenError, ConfigurationError
from .function_generator import FunctionGenerator
from .naming import is_dynamic_struct
from .type_env import TypeEnvironment
from .type_mapper import TypeMapper


class BindingBackend(Protocol):
    """What a target language has to provide to the compilation driver"""

    errors: list[BindgenError]

    def declare(self, declarations: Iterable[Declaration]) -> None: ...

    def map_struct(self, decl: Struct) -> None: ...

    def map_enum(self, decl: Enum) -> None: ...

    def map_alias(self, decl: TypeAlias) -> None: ...

    def map_function(self, decl: Function) -> None: ...

    def map_constant(self, decl: Constant) -> None: ...

    def finalise_output(self) -> dict[str, str]: ...


class CSharpBackend:
    """Emits C# P/Invoke bindings into the four output documents"""

    def __init__(self, config: BindingConfig | None = None):
        self.config = config if config is not None else BindingConfig()
        self.env = TypeEnvironment(strict=self.config.strict)
        for name in self.config.opaque_types:
            self.env.register_opaque(name)
        self.type_mapper = TypeMapper(self.env, self.config.constants_class)
        self.code_generator = CodeGenerator(self.type_mapper, self.config.visibility)
        self.function_generator = FunctionGenerator(self.type_mapper, self.config.utils_class)
        self.output = OutputBuilder(self.config)
        self.errors: list[BindgenError] = []

        # Track what we've already generated to avoid duplicates
        self.seen: set[tuple[str, str]] = set()
        self.failed: set[tuple[str, str]] = set()

    def _fail(self, decl: Declaration, error: BindgenError):
        self.errors.append(error.attach(decl.name, decl.location))
        self.failed.add((decl.kind, decl.name))

    def _should_emit(self, decl: Declaration) -> bool:
        key = (decl.kind, decl.name)
        if key in self.seen or key in self.failed:
            return False
        if self.config.is_filtered(decl.name):
            return False
        return True

    def declare(self, declarations: Iterable[Declaration]):
        """Enter every type name into the environment before anything is emitted"""
        declarations = list(declarations)
        for decl in declarations:
            try:
                if isinstance(decl, TypeAlias):
                    self.env.register_alias(decl.name, decl.target)
                elif isinstance(decl, Struct):
                    self.env.register_struct(decl.name, decl.fields)
                elif isinstance(decl, Enum):
                    self.env.register_enum(decl.name)
                elif isinstance(decl, Constant):
                    self.env.register_constant(decl.name)
            except BindgenError as e:
                self._fail(decl, e)

        # Pair detection needs every alias to be known
        for decl in declarations:
            if isinstance(decl, Struct) and decl.repr_c:
                try:
                    if is_dynamic_struct(decl.fields, self.env):
                        self.env.dynamic_structs.add(decl.name)
                except BindgenError as e:
                    self._fail(decl, e)

    def map_struct(self, decl: Struct):
        # Tuple, unit and empty structs have no named layout to mirror
        if not decl.repr_c or not decl.fields or not self._should_emit(decl):
            return
        try:
            fragment = self.code_generator.generate_struct(decl)
        except BindgenError as e:
            self._fail(decl, e)
            return
        self.output.append(TYPES, fragment)
        self.seen.add((decl.kind, decl.name))

    def map_enum(self, decl: Enum):
        # Enums without a repr have no stable discriminant size
        if not decl.repr_c or not decl.variants or not self._should_emit(decl):
            return
        try:
            fragment = self.code_generator.generate_enum(decl)
        except BindgenError as e:
            self._fail(decl, e)
            return
        self.output.append(TYPES, fragment)
        self.seen.add((decl.kind, decl.name))

    def map_alias(self, decl: TypeAlias):
        # Aliases produce no output; they only feed the environment
        if (decl.kind, decl.name) in self.failed:
            return
        try:
            self.env.register_alias(decl.name, decl.target)
        except BindgenError as e:
            self._fail(decl, e)

    def map_function(self, decl: Function):
        if not decl.is_exported or not self._should_emit(decl):
            return
        try:
            bindings = self.function_generator.generate_function(decl)
            self.output.check_callbacks(bindings.callbacks)
        except BindgenError as e:
            self._fail(decl, e)
            return
        self.output.append(FUNCTIONS, bindings.code)
        if bindings.interface:
            self.output.append(INTERFACE, bindings.interface)
        for name, delegate, trampoline in bindings.callbacks:
            self.output.add_callback(name, delegate, trampoline)
        self.seen.add((decl.kind, decl.name))

    def map_constant(self, decl: Constant):
        if not decl.public or not self._should_emit(decl):
            return
        try:
            fragment = self.code_generator.generate_constant(decl)
        except BindgenError as e:
            self._fail(decl, e)
            return
        self.output.append(CONSTANTS, fragment)
        self.seen.add((decl.kind, decl.name))

    def finalise_output(self) -> dict[str, str]:
        """Add opaque handles and custom constants, then wrap every document"""
        for name in self.env.opaque_types:
            self.output.add_opaque(self.code_generator.generate_opaque(name))

        for type_name, name, value in self.config.custom_constants:
            try:
                fragment = self.code_generator.generate_custom_constant(type_name, name, value)
            except ConfigurationError as e:
                self.errors.append(e.attach(name, None))
                continue
            self.output.append(CONSTANTS, fragment)

        return self.output.build()
