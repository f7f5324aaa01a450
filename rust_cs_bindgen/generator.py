"""
Main C# bindings generator orchestration
"""

import sys
import tomllib
from pathlib import Path
from typing import Callable, Iterable

from .backend import BindingBackend, CSharpBackend
from .config import BindingConfig
from .constants import DEFAULT_LIB_PATH
from .declarations import Constant, Declaration, Enum, Function, Struct, TypeAlias
from .errors import CompilationError, ConfigurationError, SourceError
from .parser import ModuleItem, parse_source

# Files whose child modules live next to them rather than in a same-named directory
MODULE_ROOT_FILES = {"lib.rs", "main.rs", "mod.rs"}


def source_file_from_cargo(crate_dir) -> Path:
    """Locate the library root of a crate from its Cargo.toml"""
    crate_dir = Path(crate_dir)
    manifest = crate_dir / "Cargo.toml"
    try:
        with open(manifest, "rb") as f:
            cargo = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Cargo manifest not found: {manifest}")
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid Cargo manifest {manifest}: {e}")

    lib_path = cargo.get("lib", {}).get("path", DEFAULT_LIB_PATH)
    return crate_dir / lib_path


def write_outputs(output_dir, outputs: dict[str, str]) -> list[Path]:
    """Write every non-empty document into output_dir"""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for file_name, text in outputs.items():
        if not text:
            continue
        path = output_dir / file_name
        path.write_text(text, encoding="utf-8")
        print(f"Generated bindings: {path}")
        written.append(path)
    return written


class CSharpBindingsGenerator:
    """Main orchestrator for generating C# bindings from Rust sources"""

    def __init__(self, config: BindingConfig | None = None,
                 backend_factory: Callable[[BindingConfig], BindingBackend] = CSharpBackend):
        self.config = config if config is not None else BindingConfig()
        self.backend_factory = backend_factory

    def compile(self, declarations: Iterable[Declaration]) -> dict[str, str]:
        """Run both passes over the declarations and build the documents

        Raises:
            CompilationError: if any declaration failed; the documents built
                from the others are attached to the exception
        """
        declarations = list(declarations)
        backend = self.backend_factory(self.config)

        # Pass 1: every type name is known before anything is emitted
        backend.declare(declarations)

        # Pass 2: emit in source order
        for decl in declarations:
            if isinstance(decl, Struct):
                backend.map_struct(decl)
            elif isinstance(decl, Enum):
                backend.map_enum(decl)
            elif isinstance(decl, TypeAlias):
                backend.map_alias(decl)
            elif isinstance(decl, Function):
                backend.map_function(decl)
            elif isinstance(decl, Constant):
                backend.map_constant(decl)

        outputs = backend.finalise_output()
        if backend.errors:
            raise CompilationError(_in_source_order(backend.errors), outputs)
        return outputs

    def compile_source(self, code: str, file_name: str = "lib.rs", base_dir=None) -> dict[str, str]:
        """Compile Rust source text; ``mod name;`` items are looked up under base_dir"""
        items = parse_source(code, file_name)
        declarations = []
        self._collect(items, (), Path(base_dir) if base_dir is not None else None,
                      declarations, ignore_missing=False)
        return self.compile(declarations)

    def compile_path(self, path, ignore_missing: bool = False) -> dict[str, str]:
        """Compile a crate starting from its root source file"""
        return self.compile(self.collect_declarations(path, ignore_missing))

    def collect_declarations(self, path, ignore_missing: bool = False) -> list[Declaration]:
        """Parse a root file and every module file reachable from it"""
        declarations = []
        self._load_file(Path(path), (), declarations, ignore_missing)
        return declarations

    def _load_file(self, path: Path, module: tuple[str, ...], out: list, ignore_missing: bool):
        print(f"Processing: {path} ({'::'.join(('crate',) + module)})")
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise SourceError(f"Cannot read source file {path}: {e.strerror or e}")

        items = parse_source(text, str(path))
        if not module or path.name in MODULE_ROOT_FILES:
            child_dir = path.parent
        else:
            child_dir = path.parent / path.stem
        self._collect(items, module, child_dir, out, ignore_missing)

    def _collect(self, items, module: tuple[str, ...], directory: Path | None, out: list,
                 ignore_missing: bool):
        for item in items:
            if not isinstance(item, ModuleItem):
                item.module = module
                out.append(item)
                continue

            if item.cfg_test:
                continue

            submodule = module + (item.name,)
            if item.items is not None:
                child_dir = directory / item.name if directory is not None else None
                self._collect(item.items, submodule, child_dir, out, ignore_missing)
                continue

            module_file = self._find_module_file(directory, item.name)
            if module_file is None:
                message = f"File not found for module '{'::'.join(submodule)}'"
                if ignore_missing:
                    print(f"Warning: {message}", file=sys.stderr)
                    continue
                raise SourceError(message, location=item.location)
            self._load_file(module_file, submodule, out, ignore_missing)

    @staticmethod
    def _find_module_file(directory: Path | None, name: str) -> Path | None:
        if directory is None:
            return None
        for candidate in (directory / f"{name}.rs", directory / name / "mod.rs"):
            if candidate.is_file():
                return candidate
        return None

    def generate(self, output, source=None, crate_dir=".", ignore_missing: bool = False) -> dict[str, str]:
        """Generate bindings for a crate and write them to the output directory

        The source file is taken from the argument, then the configuration,
        then the ``[lib]`` section of the crate's Cargo.toml.
        """
        crate_dir = Path(crate_dir)
        if source is not None:
            source_path = Path(source)
        elif self.config.source_file:
            source_path = crate_dir / self.config.source_file
        else:
            source_path = source_file_from_cargo(crate_dir)

        outputs = self.compile_path(source_path, ignore_missing=ignore_missing)
        write_outputs(output, outputs)
        return outputs


def _in_source_order(errors):
    def key(error):
        location = error.location
        if location is None:
            return (1, "", 0, 0)
        return (0, location.file, location.line, location.column)

    return sorted(errors, key=key)
