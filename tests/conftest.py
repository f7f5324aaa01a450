"""
Pytest configuration and fixtures
"""

import textwrap

import pytest

from rust_cs_bindgen.config import BindingConfig
from rust_cs_bindgen.generator import CSharpBindingsGenerator
from rust_cs_bindgen.type_env import TypeEnvironment
from rust_cs_bindgen.type_mapper import TypeMapper


def dedent(text: str) -> str:
    return textwrap.dedent(text).lstrip("\n")


def compile_rust(source: str, config: BindingConfig | None = None) -> dict[str, str]:
    """Compile Rust source text with a fresh generator"""
    return CSharpBindingsGenerator(config).compile_source(dedent(source))


@pytest.fixture
def env():
    return TypeEnvironment()


@pytest.fixture
def mapper(env):
    return TypeMapper(env)


@pytest.fixture
def ffi_crate(tmp_path):
    """A small crate with a Cargo manifest, a module file and a module directory"""
    crate = tmp_path / "backend"
    src = crate / "src"
    (src / "app").mkdir(parents=True)

    (crate / "Cargo.toml").write_text(dedent("""
        [package]
        name = "backend"
        version = "0.1.0"

        [lib]
        crate-type = ["cdylib"]
        path = "src/lib.rs"
    """))

    (src / "lib.rs").write_text(dedent("""
        //! FFI surface of the backend
        use std::os::raw::{c_char, c_void};

        pub mod types;
        pub mod app;

        #[cfg(test)]
        mod tests;

        pub const MAX_USERS: u32 = 16;
    """))

    (src / "types.rs").write_text(dedent("""
        #[repr(C)]
        pub struct Point {
            pub x: i32,
            pub y: i32,
        }
    """))

    (src / "app" / "mod.rs").write_text(dedent("""
        use super::types::Point;

        #[no_mangle]
        pub extern "C" fn move_point(point: *mut Point, dx: i32) {
            unsafe { (*point).x += dx; }
        }
    """))

    return crate
