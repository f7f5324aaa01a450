#!/usr/bin/env python3
"""
CLI entry point for the Rust to C# bindings generator
"""

import argparse
import sys
import os

# Add parent directory to sys.path for direct execution
if __name__ == '__main__' and __package__ is None:
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rust_cs_bindgen.config import BindingConfig, parse_config_file
from rust_cs_bindgen.errors import BindgenError, CompilationError
from rust_cs_bindgen.generator import CSharpBindingsGenerator


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate C# P/Invoke bindings from the extern \"C\" surface of a Rust crate",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -o Generated
  %(prog)s -C bindings.xml -o Generated --crate-dir backend
  %(prog)s -o Generated --source src/ffi.rs --ignore-missing
        """
    )

    parser.add_argument(
        "-C", "--config",
        metavar="CONFIG_FILE",
        help="XML configuration file (namespace, library, opaque types, constants, filters)"
    )

    parser.add_argument(
        "-o", "--output",
        metavar="DIRECTORY",
        required=True,
        help="Output directory for generated C# files"
    )

    parser.add_argument(
        "--source",
        metavar="FILE",
        help="Root Rust source file (default: from the config file or Cargo.toml)"
    )

    parser.add_argument(
        "--crate-dir",
        metavar="DIRECTORY",
        default=".",
        help="Crate directory containing Cargo.toml (default: current directory)"
    )

    parser.add_argument(
        "--ignore-missing",
        action="store_true",
        help="Continue when a module file declared with `mod name;` is not found (default: fail)"
    )

    args = parser.parse_args(argv)

    try:
        config = parse_config_file(args.config) if args.config else BindingConfig()
    except (ValueError, FileNotFoundError) as e:
        print(f"Error reading config file: {e}", file=sys.stderr)
        sys.exit(1)

    generator = CSharpBindingsGenerator(config)
    try:
        generator.generate(
            args.output,
            source=args.source,
            crate_dir=args.crate_dir,
            ignore_missing=args.ignore_missing,
        )
    except CompilationError as e:
        for error in e.errors:
            print(f"error: {error}", file=sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except BindgenError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
