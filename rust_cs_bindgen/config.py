"""
XML configuration file parsing for the Rust to C# bindings generator
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from .constants import (
    DEFAULT_NAMESPACE,
    DEFAULT_LIBRARY_NAME,
    DEFAULT_CLASS_NAME,
    DEFAULT_CONSTANTS_CLASS,
    DEFAULT_UTILS_CLASS,
    DEFAULT_TYPES_FILE,
)
from .errors import ConfigurationError

TYPES = "types"
CONSTANTS = "constants"
FUNCTIONS = "functions"
INTERFACE = "interface"


@dataclass
class BindingConfig:
    """Configuration for C# bindings generation"""
    namespace: str = DEFAULT_NAMESPACE
    library_name: str = DEFAULT_LIBRARY_NAME
    class_name: str = DEFAULT_CLASS_NAME
    interface_name: str | None = None
    constants_class: str = DEFAULT_CONSTANTS_CLASS
    utils_class: str = DEFAULT_UTILS_CLASS
    types_file: str = DEFAULT_TYPES_FILE
    visibility: str = "public"
    strict: bool = False
    source_file: str | None = None
    opaque_types: list[str] = field(default_factory=list)
    custom_constants: list[tuple[str, str, str]] = field(default_factory=list)
    using_statements: list[str] = field(default_factory=list)
    removals: list[tuple[str, bool]] = field(default_factory=list)
    keeps: list[tuple[str, bool]] = field(default_factory=list)

    @property
    def interface(self) -> str:
        return self.interface_name or f"I{self.class_name}"

    def add_opaque_type(self, name: str):
        """Register a type that is only ever handled through a pointer"""
        if name not in self.opaque_types:
            self.opaque_types.append(name)

    def add_const(self, type_name: str, name: str, value):
        """Append a hand written constant after the ones found in the source"""
        self.custom_constants.append((type_name, name, str(value)))

    def document_names(self) -> dict[str, str]:
        return {
            TYPES: self.types_file,
            CONSTANTS: f"{self.constants_class}.cs",
            FUNCTIONS: f"{self.class_name}.cs",
            INTERFACE: f"{self.interface}.cs",
        }

    def is_filtered(self, name: str) -> bool:
        """True if a declaration is excluded by the remove/keep patterns"""
        if any(_matches(pattern, is_regex, name) for pattern, is_regex in self.removals):
            return True
        if self.keeps:
            return not any(_matches(pattern, is_regex, name) for pattern, is_regex in self.keeps)
        return False


def _matches(pattern: str, is_regex: bool, name: str) -> bool:
    if is_regex:
        return re.fullmatch(pattern, name) is not None
    return pattern == name


def _patterns(root, tag: str) -> list[tuple[str, bool]]:
    patterns = []
    for element in root.findall(tag):
        pattern = element.get("pattern")
        if not pattern:
            raise ConfigurationError(f"{tag.capitalize()} element missing 'pattern' attribute")
        is_regex = element.get("regex", "false").lower() == "true"
        if is_regex:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid regex in {tag} pattern '{pattern}': {e}")
        patterns.append((pattern.strip(), is_regex))
    return patterns


def parse_config_file(config_path) -> BindingConfig:
    """Parse XML configuration file and return BindingConfig object"""
    try:
        tree = ET.parse(config_path)
        root = tree.getroot()

        if root.tag != "bindings":
            raise ConfigurationError(f"Expected root element 'bindings', got '{root.tag}'")

        config = BindingConfig()
        config.namespace = root.get("namespace", DEFAULT_NAMESPACE).strip()
        config.library_name = root.get("library", DEFAULT_LIBRARY_NAME).strip()
        config.class_name = root.get("class", DEFAULT_CLASS_NAME).strip()
        interface_name = root.get("interface")
        if interface_name is not None:
            config.interface_name = interface_name.strip()
        config.constants_class = root.get("constants_class", DEFAULT_CONSTANTS_CLASS).strip()
        config.utils_class = root.get("utils_class", DEFAULT_UTILS_CLASS).strip()
        config.types_file = root.get("types_file", DEFAULT_TYPES_FILE).strip()
        config.strict = root.get("strict", "false").lower() == "true"

        # Get global visibility setting (default to "public")
        config.visibility = root.get("visibility", "public").strip().lower()
        if config.visibility not in ("public", "internal"):
            raise ConfigurationError(
                f"Invalid visibility value '{config.visibility}'. Must be 'public' or 'internal'.")

        for source in root.findall("source"):
            path = source.get("file")
            if not path:
                raise ConfigurationError("Source element missing 'file' attribute")
            config.source_file = path.strip()

        for opaque in root.findall("opaque"):
            name = opaque.get("name")
            if not name:
                raise ConfigurationError("Opaque element missing 'name' attribute")
            config.add_opaque_type(name.strip())

        # Custom constants are validated when the constants document is built
        for const in root.findall("constant"):
            const_type = const.get("type")
            const_name = const.get("name")
            const_value = const.get("value")
            if const_type is None or const_name is None or const_value is None:
                raise ConfigurationError("Constant element needs 'type', 'name' and 'value' attributes")
            config.add_const(const_type.strip(), const_name.strip(), const_value.strip())

        for using in root.findall("using"):
            using_namespace = using.get("namespace")
            if using_namespace:
                config.using_statements.append(using_namespace.strip())

        config.removals = _patterns(root, "remove")
        config.keeps = _patterns(root, "keep")

        return config

    except ET.ParseError as e:
        raise ConfigurationError(f"XML parsing error: {e}")
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
