"""JSON UI generator for Minecraft Bedrock resource packs.

Compiles Python UI source files, written with the element and namespace
builders in this module, into the JSON UI documents the game loads. Keeps
``_ui_defs.json`` in sync with the generated documents.

A source file exposes its definitions through a module-level ``UI`` name:

    from uigen import define_main, label, panel

    UI = define_main("hud", panel("main").controls(label("title").text("Hi")))

Usage:
    uigen --source scripts/ui --output ui/__generated__ --clean
"""

import argparse
import copy
import enum
import importlib.util
import json
import logging
import re
import shutil
import sys
import time
import traceback
import warnings
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path, PurePosixPath
from types import ModuleType

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_DIR = Path("scripts") / "ui"
DEFAULT_OUTPUT_DIR = Path("ui") / "__generated__"
DEFAULT_UI_DEFS_PATH = Path("ui") / "_ui_defs.json"
DEFAULT_GLOBAL_VARIABLES_PATH = Path("ui") / "_global_variables.json"
DEFAULT_VANILLA_OUTPUT_DIR = Path("ui")

SOURCE_SUFFIX = ".py"
EXCLUSION_MARKER = "_"
DEFAULT_SOURCE_PATTERN = re.compile(rf"^(?!{EXCLUSION_MARKER}).*\{SOURCE_SUFFIX}$")
EXPORT_NAME = "UI"


# ===--- CLI config contracts ---=== #


VALID_ERROR_CODES = {
    "INVALID_PATTERN",
    "EMPTY_PATH",
}


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


@dataclass(frozen=True)
class CompilerConfig:
    """Options for one compiler run.

    Attributes:
        source_dir: Root of the UI sources. May also name a single source file,
            with or without the ``.py`` suffix.
        output_dir: Managed output tree for generated documents. Everything
            below it is owned by the compiler and regenerated every run.
        ui_defs_path: Artifact index read and rewritten by every run.
        global_variables_path: Side file for compiler-registered global
            variables. ``None`` disables it.
        vanilla_output_dir: Root for definitions that patch vanilla documents.
            Kept outside output_dir so ``clean`` never deletes them.
        pretty_print: Indent JSON output with two spaces when True.
        source_pattern: File-name rule a discovered file must match.
        clean: Delete stale ``.json`` files and subdirectories in output_dir
            before generating.
        ui_defs_prefix: Prefix recorded for index entries instead of
            output_dir. ``None`` records output paths verbatim.
    """

    source_dir: Path = DEFAULT_SOURCE_DIR
    output_dir: Path = DEFAULT_OUTPUT_DIR
    ui_defs_path: Path = DEFAULT_UI_DEFS_PATH
    global_variables_path: Path | None = DEFAULT_GLOBAL_VARIABLES_PATH
    vanilla_output_dir: Path = DEFAULT_VANILLA_OUTPUT_DIR
    pretty_print: bool = True
    source_pattern: re.Pattern[str] = DEFAULT_SOURCE_PATTERN
    clean: bool = False
    ui_defs_prefix: str | None = None

    @classmethod
    def from_options(cls, **options: object) -> "CompilerConfig":
        """Merge partial options over the defaults.

        String paths are converted to ``Path`` and a string source_pattern is
        compiled, so callers can pass plain values.

        Raises:
            TypeError: If an option name is not a CompilerConfig field.
            ConfigError: EMPTY_PATH for an empty path string, INVALID_PATTERN
                for a pattern that does not compile.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise TypeError(f"Unknown compiler options: {', '.join(unknown)}")

        normalized = dict(options)
        for key in (
            "source_dir",
            "output_dir",
            "ui_defs_path",
            "global_variables_path",
            "vanilla_output_dir",
        ):
            value = normalized.get(key)
            if isinstance(value, str):
                normalized[key] = validate_path_text(value, key)
        pattern = normalized.get("source_pattern")
        if isinstance(pattern, str):
            normalized["source_pattern"] = compile_source_pattern(pattern)
        return cls(**normalized)

    @property
    def owned_prefix(self) -> str:
        """Index path prefix under which entries are compiler-owned."""
        if self.ui_defs_prefix:
            return PurePosixPath(self.ui_defs_prefix.replace("\\", "/")).as_posix()
        return Path(self.output_dir).as_posix()


def validate_path_text(raw: str, flag: str) -> Path:
    if raw.strip():
        return Path(raw)
    raise ConfigError(
        "EMPTY_PATH",
        f"{flag} must not be empty.",
        "Pass a file or directory path, for example ui/__generated__.",
    )


def compile_source_pattern(raw: str) -> re.Pattern[str]:
    try:
        return re.compile(raw)
    except re.error as err:
        raise ConfigError(
            "INVALID_PATTERN",
            f"Invalid source pattern {raw!r}: {err}",
            "Use a Python regular expression, for example '^(?!_).*\\.py$'.",
        ) from err


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uigen",
        description="Compile Python UI sources to Bedrock JSON UI",
    )

    parser.add_argument("--source", "-s", type=str, default=str(DEFAULT_SOURCE_DIR))
    parser.add_argument("--output", "-o", type=str, default=str(DEFAULT_OUTPUT_DIR))
    parser.add_argument(
        "--ui-defs", "-d", type=str, default=str(DEFAULT_UI_DEFS_PATH)
    )

    variables_group = parser.add_mutually_exclusive_group()
    variables_group.add_argument(
        "--global-variables", type=str, default=str(DEFAULT_GLOBAL_VARIABLES_PATH)
    )
    variables_group.add_argument(
        "--no-global-variables", action="store_true", default=False
    )

    parser.add_argument(
        "--vanilla-output", type=str, default=str(DEFAULT_VANILLA_OUTPUT_DIR)
    )
    parser.add_argument(
        "--pattern", type=str, default=DEFAULT_SOURCE_PATTERN.pattern
    )
    parser.add_argument("--compact", action="store_true", default=False)
    parser.add_argument("--clean", "-c", action="store_true", default=False)
    parser.add_argument("--watch", "-w", action="store_true", default=False)
    parser.add_argument("--verbose", "-v", action="store_true", default=False)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> CompilerConfig:
    global_variables_path = (
        None
        if args.no_global_variables
        else validate_path_text(args.global_variables, "--global-variables")
    )
    return CompilerConfig(
        source_dir=validate_path_text(args.source, "--source"),
        output_dir=validate_path_text(args.output, "--output"),
        ui_defs_path=validate_path_text(args.ui_defs, "--ui-defs"),
        global_variables_path=global_variables_path,
        vanilla_output_dir=validate_path_text(args.vanilla_output, "--vanilla-output"),
        pretty_print=not args.compact,
        source_pattern=compile_source_pattern(args.pattern),
        clean=bool(args.clean),
    )


def build_config(argv: list[str] | None = None) -> CompilerConfig:
    return validate_config(parse_args(argv))


# ===--- Reference encodings ---=== #

VARIABLE_MARKER = "$"
DEFAULT_SUFFIX = "|default"
EXTENSION_SEPARATOR = "@"
NAMESPACE_SEPARATOR = "."
ANIMATION_MARKER = "@"

STRUCTURAL_KEYS: tuple[str, ...] = (
    "type",
    "controls",
    "bindings",
    "modifications",
    "anims",
)
"""Property keys the compiler interprets. Every other key is passed through."""


def full_name(name: str, extension_ref: str | None = None) -> str:
    """Return ``name``, or ``name@extension_ref`` when the element extends."""
    if extension_ref:
        return f"{name}{EXTENSION_SEPARATOR}{extension_ref}"
    return name


def qualified_name(namespace: str, name: str) -> str:
    """Return the cross-namespace form ``namespace.name``."""
    return f"{namespace}{NAMESPACE_SEPARATOR}{name}"


def control_reference(
    name: str, overrides: Mapping[str, object] | None = None
) -> dict[str, dict[str, object]]:
    """Return a single-key control reference ``{name: overrides}``.

    The overrides are copied so later edits by the caller do not leak into
    an already-built controls list.
    """
    return {name: copy.deepcopy(dict(overrides)) if overrides else {}}


def variable_key(name: str, is_default: bool = False) -> str:
    """Normalize a variable name to ``$name`` or ``$name|default``.

    A leading ``$`` and a trailing ``|default`` on the input are stripped
    first, so repeated calls with either form produce the same key.
    """
    bare = name[len(VARIABLE_MARKER):] if name.startswith(VARIABLE_MARKER) else name
    if bare.endswith(DEFAULT_SUFFIX):
        bare = bare[: -len(DEFAULT_SUFFIX)]
    if not bare:
        raise ValueError(f"Invalid variable name: {name!r}")
    key = f"{VARIABLE_MARKER}{bare}"
    return f"{key}{DEFAULT_SUFFIX}" if is_default else key


def ref(name: str, overrides: Mapping[str, object] | None = None) -> dict:
    """Reference an element by its full name, e.g. ``ref("bg@common.panel")``."""
    return control_reference(name, overrides)


def extend_raw(
    name: str, base: str, overrides: Mapping[str, object] | None = None
) -> dict:
    return control_reference(full_name(name, base), overrides)


def from_builder(
    builder: "ElementBuilder", overrides: Mapping[str, object] | None = None
) -> dict:
    return control_reference(builder.full_name, overrides)


def ns_ref(namespace: str, element: str) -> str:
    return qualified_name(namespace, element)


def anim_ref(namespace: str, animation_name: str) -> str:
    """Return the ``@namespace.animation`` form used in ``anims`` lists."""
    return f"{ANIMATION_MARKER}{qualified_name(namespace, animation_name)}"


def _coerce_control(child: object) -> dict:
    if isinstance(child, RegisteredElement):
        return control_reference(child.full_name)
    if isinstance(child, ElementBuilder):
        return {child.full_name: child.build()}
    if isinstance(child, Mapping):
        if len(child) != 1:
            raise ValueError(
                f"Control reference must have exactly one key, got {list(child)!r}"
            )
        return copy.deepcopy(dict(child))
    raise TypeError(
        f"Cannot use {type(child).__name__} as a control; pass an element "
        f"builder, a registered element or a single-key mapping"
    )


# ===--- Element kinds ---=== #


class ElementKind(str, enum.Enum):
    PANEL = "panel"
    STACK_PANEL = "stack_panel"
    GRID = "grid"
    LABEL = "label"
    IMAGE = "image"
    BUTTON = "button"
    TOGGLE = "toggle"
    DROPDOWN = "dropdown"
    SLIDER = "slider"
    SLIDER_BOX = "slider_box"
    EDIT_BOX = "edit_box"
    SCROLL_VIEW = "scroll_view"
    SCROLLBAR_BOX = "scrollbar_box"
    FACTORY = "factory"
    SCREEN = "screen"
    CUSTOM = "custom"
    SELECTION_WHEEL = "selection_wheel"
    INPUT_PANEL = "input_panel"


IMPLICIT_KIND = ElementKind.PANEL
"""Kind emitted for an element that declares neither a kind nor an extension."""


class RedundantPropertyWarning(UserWarning):
    """A setter was called with the value the renderer already assumes."""


def _advise(message: str) -> None:
    warnings.warn(message, RedundantPropertyWarning, stacklevel=3)


@dataclass(frozen=True)
class RegisteredElement:
    """Token handed out by Namespace.register.

    Extension by token is the only checked way to extend a built element:
    an element cannot be extended before it is registered because no token
    exists for it yet.

    Attributes:
        name: Element name without extension suffix.
        namespace: Name of the namespace that registered the element.
        full_name: Registry key at registration time (``name`` or
            ``name@base``).
        kind: Declared kind, or None when the element inherits one.
        builder_type: Builder class of the registered element. Used by
            ``extend()`` to create a new builder with the same setters.
    """

    name: str
    namespace: str
    full_name: str
    kind: ElementKind | None
    builder_type: type = field(default=None, compare=False, repr=False)

    @property
    def qualified_name(self) -> str:
        return qualified_name(self.namespace, self.name)


class UnresolvedReferenceError(ReferenceError):
    """An element extends a registered element the namespace cannot see."""


# ===--- Element builders ---=== #


class ElementBuilder:
    """Fluent builder for one JSON UI element.

    Every setter mutates this builder and returns it. Scalar properties are
    last-write-wins; ``controls``, ``bindings``, ``button_mappings``,
    ``modifications`` and ``anims`` append.
    """

    default_kind: ElementKind | None = None

    def __init__(self, name: str, kind: ElementKind | str | None = None):
        if not name:
            raise ValueError("Element name must not be empty")
        if EXTENSION_SEPARATOR in name:
            raise ValueError(
                f"Element name {name!r} must not contain '{EXTENSION_SEPARATOR}'; "
                f"use extend() to declare a base element"
            )
        self.name = name
        self.kind: ElementKind | None = (
            ElementKind(kind) if kind is not None else self.default_kind
        )
        self.extension_ref: str | None = None
        self.extension_token: RegisteredElement | None = None
        self._properties: dict[str, object] = {}
        if self.kind is not None:
            self._properties["type"] = self.kind.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.full_name!r})"

    @property
    def full_name(self) -> str:
        return full_name(self.name, self.extension_ref)

    # -- extension --

    def extend(self, reference: str, clear_kind: bool = True) -> "ElementBuilder":
        """Inherit from ``reference`` (``name`` or ``namespace.name``).

        The kind is cleared by default because the renderer inherits it from
        the base. Pass ``clear_kind=False`` only for bases whose kind is
        unknown, such as some vanilla elements.
        """
        if not reference:
            raise ValueError("Extension reference must not be empty")
        self.extension_ref = reference
        self.extension_token = None
        if clear_kind:
            self.kind = None
            self._properties.pop("type", None)
        return self

    def extend_from(self, element: RegisteredElement) -> "ElementBuilder":
        """Inherit from an element registered in the same namespace."""
        _require_token(element)
        self.extend(element.name, clear_kind=element.kind is not None)
        self.extension_token = element
        return self

    def extend_across_namespace(self, element: RegisteredElement) -> "ElementBuilder":
        """Inherit from an element registered in another namespace."""
        _require_token(element)
        return self.extend(element.qualified_name, clear_kind=element.kind is not None)

    def add_to_namespace(self, namespace: "Namespace") -> RegisteredElement:
        return namespace.register(self)

    # -- layout --

    def size(self, width: object = "default", height: object = "default") -> "ElementBuilder":
        if width == "100%" or height == "100%":
            _advise("Size of 100% is the default and can be omitted.")
        if any(isinstance(v, str) and "%c + " in v for v in (width, height)):
            _advise("Use pad_children() instead of size() for child padding.")
        return self._set("size", [width, height])

    def size_percent(self, width: float = 100, height: float = 100) -> "ElementBuilder":
        return self.size(f"{width}%", f"{height}%")

    def full_size(self) -> "ElementBuilder":
        return self.size_percent(100, 100)

    def fit_content(self) -> "ElementBuilder":
        return self.size("100%c", "100%c")

    def pad_children(self, horizontal: int, vertical: int | None = None) -> "ElementBuilder":
        v = horizontal if vertical is None else vertical
        return self._set("size", [f"100%c + {horizontal}px", f"100%c + {v}px"])

    def min_size(self, width: object, height: object) -> "ElementBuilder":
        return self._set("min_size", [width, height])

    def max_size(self, width: object, height: object) -> "ElementBuilder":
        return self._set("max_size", [width, height])

    def offset(self, x: object, y: object) -> "ElementBuilder":
        return self._set("offset", [x, y])

    def anchor_from(self, anchor: str) -> "ElementBuilder":
        if anchor == "center":
            _advise("anchor_from of center is the default and can be omitted.")
        return self._set("anchor_from", anchor)

    def anchor_to(self, anchor: str) -> "ElementBuilder":
        if anchor == "center":
            _advise("anchor_to of center is the default and can be omitted.")
        return self._set("anchor_to", anchor)

    def anchor(self, anchor: str) -> "ElementBuilder":
        if anchor == "center":
            _advise("Anchor of center is the default and can be omitted.")
        self._set("anchor_from", anchor)
        return self._set("anchor_to", anchor)

    def layer(self, value: int) -> "ElementBuilder":
        return self._set("layer", value)

    # -- visibility and state --

    def visible(self, value: bool | str) -> "ElementBuilder":
        return self._set("visible", value)

    def enabled(self, value: bool | str) -> "ElementBuilder":
        return self._set("enabled", value)

    def alpha(self, value: float | str) -> "ElementBuilder":
        if not isinstance(value, (bool, str)) and value == 1:
            _advise("Alpha of 1 is the default and can be omitted.")
        return self._set("alpha", value)

    def propagate_alpha(self, value: bool = True) -> "ElementBuilder":
        return self._set("propagate_alpha", value)

    def ignored(self, value: bool | str = True) -> "ElementBuilder":
        return self._set("ignored", value)

    def clips_children(self, value: bool = True) -> "ElementBuilder":
        return self._set("clips_children", value)

    def allow_clipping(self, value: bool = True) -> "ElementBuilder":
        return self._set("allow_clipping", value)

    def clip_offset(self, x: float, y: float) -> "ElementBuilder":
        return self._set("clip_offset", [x, y])

    def clip_direction(self, direction: str) -> "ElementBuilder":
        return self._set("clip_direction", direction)

    def clip_ratio(self, ratio: float) -> "ElementBuilder":
        return self._set("clip_ratio", ratio)

    # -- children --

    def add_children(self, *children: object) -> "ElementBuilder":
        """Append children to ``controls``.

        A builder passed directly is embedded inline with its own built
        properties. A RegisteredElement is referenced by full name with no
        overrides. A single-key mapping is appended as given.
        """
        return self._append("controls", [_coerce_control(child) for child in children])

    controls = add_children

    def add_child(
        self,
        child: "ElementBuilder | RegisteredElement",
        overrides: Mapping[str, object] | None = None,
    ) -> "ElementBuilder":
        """Reference ``child`` by full name with optional per-instance overrides."""
        if not isinstance(child, (ElementBuilder, RegisteredElement)):
            raise TypeError(f"add_child expects an element, got {type(child).__name__}")
        return self._append("controls", [control_reference(child.full_name, overrides)])

    # -- bindings --

    def bindings(self, *new_bindings: Mapping[str, object]) -> "ElementBuilder":
        return self._append("bindings", [dict(b) for b in new_bindings])

    def binding(self, binding_name: str, **options: object) -> "ElementBuilder":
        return self.bindings({"binding_name": binding_name, **options})

    def global_binding(
        self,
        binding_name: str,
        override: str | None = None,
        condition: str = "none",
    ) -> "ElementBuilder":
        return self.bindings(
            {
                "binding_type": "global",
                "binding_condition": condition,
                "binding_name": binding_name,
                "binding_name_override": override or binding_name,
            }
        )

    def view_binding(self, source_property: str, target_property: str) -> "ElementBuilder":
        return self.bindings(
            {
                "binding_name": "#null",
                "binding_type": "view",
                "source_property_name": source_property,
                "target_property_name": target_property,
            }
        )

    def collection_binding(
        self, binding_name: str, collection_name: str, override: str | None = None
    ) -> "ElementBuilder":
        entry: dict[str, object] = {
            "binding_name": binding_name,
            "binding_type": "collection",
            "binding_collection_name": collection_name,
        }
        if override:
            entry["binding_name_override"] = override
        return self.bindings(entry)

    def visibility_binding(self, condition: str) -> "ElementBuilder":
        return self.view_binding(condition, "#visible")

    def enabled_binding(self, condition: str) -> "ElementBuilder":
        return self.view_binding(condition, "#enabled")

    # -- button mappings --

    def button_mappings(self, *mappings: Mapping[str, object]) -> "ElementBuilder":
        return self._append("button_mappings", [dict(m) for m in mappings])

    def global_button_mapping(self, from_button: str, to_button: str) -> "ElementBuilder":
        return self.button_mappings(
            {
                "from_button_id": from_button,
                "to_button_id": to_button,
                "mapping_type": "global",
            }
        )

    # -- modifications --

    def modifications(self, *mods: Mapping[str, object]) -> "ElementBuilder":
        return self._append("modifications", [copy.deepcopy(dict(m)) for m in mods])

    def insert_back(self, array_name: str, *controls: object) -> "ElementBuilder":
        return self.modifications(
            {
                "array_name": array_name,
                "operation": "insert_back",
                "value": [_coerce_control(c) for c in controls],
            }
        )

    def insert_front(self, array_name: str, *controls: object) -> "ElementBuilder":
        return self.modifications(
            {
                "array_name": array_name,
                "operation": "insert_front",
                "value": [_coerce_control(c) for c in controls],
            }
        )

    def insert_after(self, control_name: str, *controls: object) -> "ElementBuilder":
        return self.modifications(
            {
                "control_name": control_name,
                "operation": "insert_after",
                "value": [_coerce_control(c) for c in controls],
            }
        )

    def insert_before(self, control_name: str, *controls: object) -> "ElementBuilder":
        return self.modifications(
            {
                "control_name": control_name,
                "operation": "insert_before",
                "value": [_coerce_control(c) for c in controls],
            }
        )

    # -- animations, factories, variables --

    def anims(self, *anim_refs: str) -> "ElementBuilder":
        return self._append("anims", list(anim_refs))

    def factory(self, name: str, control_name: str) -> "ElementBuilder":
        return self._set("factory", {"name": name, "control_name": control_name})

    def collection_name(self, name: str) -> "ElementBuilder":
        return self._set("collection_name", name)

    def variable(self, name: str, value: object, is_default: bool = False) -> "ElementBuilder":
        return self._set(variable_key(name, is_default), value)

    def variable_default(self, name: str, value: object) -> "ElementBuilder":
        return self.variable(name, value, is_default=True)

    def variables(
        self, values: Mapping[str, object], is_default: bool = False
    ) -> "ElementBuilder":
        for name, value in values.items():
            self.variable(name, value, is_default)
        return self

    def variable_defaults(self, values: Mapping[str, object]) -> "ElementBuilder":
        return self.variables(values, is_default=True)

    def property_bag(self, bag: Mapping[str, object]) -> "ElementBuilder":
        merged = dict(self._properties.get("property_bag") or {})
        merged.update(bag)
        return self._set("property_bag", merged)

    # -- sound and focus --

    def sound(self, name: str, pitch: float = 1, volume: float = 1) -> "ElementBuilder":
        self._set("sound_name", name)
        self._set("sound_pitch", pitch)
        return self._set("sound_volume", volume)

    def focus_enabled(self, value: bool = True) -> "ElementBuilder":
        return self._set("focus_enabled", value)

    def focus_id(self, identifier: str) -> "ElementBuilder":
        return self._set("focus_identifier", identifier)

    def focus_navigation(
        self,
        up: str | None = None,
        down: str | None = None,
        left: str | None = None,
        right: str | None = None,
    ) -> "ElementBuilder":
        for direction, target in (("up", up), ("down", down), ("left", left), ("right", right)):
            if target:
                self._set(f"focus_change_{direction}", target)
        return self

    # -- raw properties --

    def prop(self, key: str, value: object) -> "ElementBuilder":
        return self._set(key, value)

    def props(self, values: Mapping[str, object] | None = None, **kwargs: object) -> "ElementBuilder":
        for key, value in {**(values or {}), **kwargs}.items():
            self._set(key, value)
        return self

    raw_prop = prop

    # -- output --

    def build(self) -> dict[str, object]:
        """Return a deep snapshot of the property bag.

        Elements with neither a kind nor an extension are emitted as panels.
        """
        snapshot = copy.deepcopy(self._properties)
        if "type" not in snapshot and self.extension_ref is None:
            return {"type": IMPLICIT_KIND.value, **snapshot}
        return snapshot

    def to_control_ref(self, overrides: Mapping[str, object] | None = None) -> dict:
        return control_reference(self.full_name, overrides)

    def _set(self, key: str, value: object) -> "ElementBuilder":
        self._properties[key] = value
        return self

    def _append(self, key: str, items: list) -> "ElementBuilder":
        existing = self._properties.setdefault(key, [])
        if not isinstance(existing, list):
            raise TypeError(f"Property {key!r} is not a list on element {self.name!r}")
        existing.extend(items)
        return self


def _require_token(element: object) -> None:
    if not isinstance(element, RegisteredElement):
        raise TypeError(
            f"Expected a RegisteredElement from Namespace.register(), "
            f"got {type(element).__name__}; register the base element first"
        )


class PanelBuilder(ElementBuilder):
    default_kind = ElementKind.PANEL


class StackPanelBuilder(ElementBuilder):
    default_kind = ElementKind.STACK_PANEL

    def orientation(self, value: str) -> "StackPanelBuilder":
        return self._set("orientation", value)

    def horizontal(self) -> "StackPanelBuilder":
        return self.orientation("horizontal")

    def vertical(self) -> "StackPanelBuilder":
        return self.orientation("vertical")


class GridBuilder(ElementBuilder):
    default_kind = ElementKind.GRID

    def grid_dimensions(self, columns: int, rows: int) -> "GridBuilder":
        return self._set("grid_dimensions", [columns, rows])

    def grid_item_template(self, template: str) -> "GridBuilder":
        return self._set("grid_item_template", template)

    def grid_rescaling(self, rescaling_type: str) -> "GridBuilder":
        return self._set("grid_rescaling_type", rescaling_type)

    def max_items(self, count: int) -> "GridBuilder":
        return self._set("maximum_grid_items", count)


class LabelBuilder(ElementBuilder):
    default_kind = ElementKind.LABEL

    def text(self, value: str) -> "LabelBuilder":
        return self._set("text", value)

    def color(self, value: object) -> "LabelBuilder":
        return self._set("color", value)

    def shadow(self, value: bool = True) -> "LabelBuilder":
        return self._set("shadow", value)

    def font_size(self, value: str) -> "LabelBuilder":
        if value == "normal":
            _advise("Font size of normal is the default and can be omitted.")
        return self._set("font_size", value)

    def font_scale_factor(self, value: float | str) -> "LabelBuilder":
        if not isinstance(value, (bool, str)) and value == 1:
            _advise("Font scale factor of 1 is the default and can be omitted.")
        return self._set("font_scale_factor", value)

    def font_type(self, value: str) -> "LabelBuilder":
        return self._set("font_type", value)

    def text_alignment(self, value: str) -> "LabelBuilder":
        return self._set("text_alignment", value)

    def localize(self, value: bool = True) -> "LabelBuilder":
        return self._set("localize", value)

    def line_padding(self, value: float) -> "LabelBuilder":
        return self._set("line_padding", value)


class ImageBuilder(ElementBuilder):
    default_kind = ElementKind.IMAGE

    def texture(self, path: str) -> "ImageBuilder":
        return self._set("texture", path)

    def uv(self, x: float, y: float) -> "ImageBuilder":
        return self._set("uv", [x, y])

    def uv_anim(self, animation_ref: str) -> "ImageBuilder":
        return self._set("uv", animation_ref)

    def uv_size(self, width: float, height: float) -> "ImageBuilder":
        return self._set("uv_size", [width, height])

    def nineslice(self, size: object) -> "ImageBuilder":
        return self._set("nineslice_size", size)

    def tiled(self, value: bool | str = True) -> "ImageBuilder":
        return self._set("tiled", value)

    def keep_ratio(self, value: bool = True) -> "ImageBuilder":
        return self._set("keep_ratio", value)

    def color(self, value: object) -> "ImageBuilder":
        return self._set("color", value)

    def grayscale(self, value: bool = True) -> "ImageBuilder":
        return self._set("grayscale", value)

    def fill(self, value: bool = True) -> "ImageBuilder":
        return self._set("fill", value)


class ButtonBuilder(ElementBuilder):
    default_kind = ElementKind.BUTTON

    def control_states(
        self,
        default: str | None = None,
        hover: str | None = None,
        pressed: str | None = None,
        locked: str | None = None,
    ) -> "ButtonBuilder":
        for state, control in (
            ("default", default),
            ("hover", hover),
            ("pressed", pressed),
            ("locked", locked),
        ):
            if control:
                self._set(f"{state}_control", control)
        return self


class ToggleBuilder(ElementBuilder):
    default_kind = ElementKind.TOGGLE

    def toggle_name(self, name: str) -> "ToggleBuilder":
        return self._set("toggle_name", name)

    def default_state(self, value: bool) -> "ToggleBuilder":
        return self._set("toggle_default_state", value)

    def radio_group(self, value: bool = True) -> "ToggleBuilder":
        return self._set("radio_toggle_group", value)

    def checked_control(self, name: str) -> "ToggleBuilder":
        return self._set("checked_control", name)

    def unchecked_control(self, name: str) -> "ToggleBuilder":
        return self._set("unchecked_control", name)


class DropdownBuilder(ElementBuilder):
    default_kind = ElementKind.DROPDOWN

    def dropdown_name(self, name: str) -> "DropdownBuilder":
        return self._set("dropdown_name", name)

    def content_control(self, name: str) -> "DropdownBuilder":
        return self._set("dropdown_content_control", name)

    def dropdown_area(self, name: str) -> "DropdownBuilder":
        return self._set("dropdown_area", name)


class SliderBuilder(ElementBuilder):
    default_kind = ElementKind.SLIDER

    def slider_name(self, name: str) -> "SliderBuilder":
        return self._set("slider_name", name)

    def steps(self, value: int) -> "SliderBuilder":
        return self._set("slider_steps", value)

    def direction(self, value: str) -> "SliderBuilder":
        return self._set("slider_direction", value)

    def slider_box_control(self, name: str) -> "SliderBuilder":
        return self._set("slider_box_control", name)


class SliderBoxBuilder(ElementBuilder):
    default_kind = ElementKind.SLIDER_BOX

    def indent_control(self, name: str) -> "SliderBoxBuilder":
        return self._set("indent_control", name)


class EditBoxBuilder(ElementBuilder):
    default_kind = ElementKind.EDIT_BOX

    def text_box_name(self, name: str) -> "EditBoxBuilder":
        return self._set("text_box_name", name)

    def max_length(self, value: int) -> "EditBoxBuilder":
        return self._set("max_length", value)

    def text_type(self, value: str) -> "EditBoxBuilder":
        return self._set("text_type", value)

    def text_control(self, name: str) -> "EditBoxBuilder":
        return self._set("text_control", name)

    def placeholder_control(self, name: str) -> "EditBoxBuilder":
        return self._set("place_holder_control", name)


class ScrollViewBuilder(ElementBuilder):
    default_kind = ElementKind.SCROLL_VIEW

    def scroll_speed(self, value: float) -> "ScrollViewBuilder":
        return self._set("scroll_speed", value)

    def scroll_content(self, name: str) -> "ScrollViewBuilder":
        return self._set("scroll_content", name)

    def scrollbar_box(self, name: str) -> "ScrollViewBuilder":
        return self._set("scrollbar_box", name)

    def jump_to_bottom_on_update(self, value: bool = True) -> "ScrollViewBuilder":
        return self._set("jump_to_bottom_on_update", value)


class ScrollbarBoxBuilder(ElementBuilder):
    default_kind = ElementKind.SCROLLBAR_BOX

    def draggable(self, direction: str) -> "ScrollbarBoxBuilder":
        return self._set("draggable", direction)


class FactoryBuilder(ElementBuilder):
    default_kind = ElementKind.FACTORY

    def control_ids(self, ids: Mapping[str, str]) -> "FactoryBuilder":
        return self._set("control_ids", dict(ids))


class ScreenBuilder(ElementBuilder):
    default_kind = ElementKind.SCREEN

    def render_game_behind(self, value: bool = True) -> "ScreenBuilder":
        return self._set("render_game_behind", value)

    def absorbs_input(self, value: bool = True) -> "ScreenBuilder":
        return self._set("absorbs_input", value)

    def is_modal(self, value: bool = True) -> "ScreenBuilder":
        return self._set("is_modal", value)

    def close_on_player_hurt(self, value: bool = True) -> "ScreenBuilder":
        return self._set("close_on_player_hurt", value)


class CustomBuilder(ElementBuilder):
    default_kind = ElementKind.CUSTOM

    def renderer(self, value: str) -> "CustomBuilder":
        return self._set("renderer", value)

    def primary_color(self, value: object) -> "CustomBuilder":
        return self._set("primary_color", value)

    def secondary_color(self, value: object) -> "CustomBuilder":
        return self._set("secondary_color", value)


class SelectionWheelBuilder(ElementBuilder):
    default_kind = ElementKind.SELECTION_WHEEL

    def radii(self, inner: float, outer: float) -> "SelectionWheelBuilder":
        self._set("inner_radius", inner)
        return self._set("outer_radius", outer)

    def slice_count(self, value: int) -> "SelectionWheelBuilder":
        return self._set("slice_count", value)

    def state_controls(self, *names: str) -> "SelectionWheelBuilder":
        return self._set("state_controls", list(names))


class InputPanelBuilder(ElementBuilder):
    default_kind = ElementKind.INPUT_PANEL

    def modal(self, value: bool = True) -> "InputPanelBuilder":
        return self._set("modal", value)

    def consume_event(self, value: bool = True) -> "InputPanelBuilder":
        return self._set("consume_event", value)


BUILDER_BY_KIND: dict[ElementKind, type[ElementBuilder]] = {
    ElementKind.PANEL: PanelBuilder,
    ElementKind.STACK_PANEL: StackPanelBuilder,
    ElementKind.GRID: GridBuilder,
    ElementKind.LABEL: LabelBuilder,
    ElementKind.IMAGE: ImageBuilder,
    ElementKind.BUTTON: ButtonBuilder,
    ElementKind.TOGGLE: ToggleBuilder,
    ElementKind.DROPDOWN: DropdownBuilder,
    ElementKind.SLIDER: SliderBuilder,
    ElementKind.SLIDER_BOX: SliderBoxBuilder,
    ElementKind.EDIT_BOX: EditBoxBuilder,
    ElementKind.SCROLL_VIEW: ScrollViewBuilder,
    ElementKind.SCROLLBAR_BOX: ScrollbarBoxBuilder,
    ElementKind.FACTORY: FactoryBuilder,
    ElementKind.SCREEN: ScreenBuilder,
    ElementKind.CUSTOM: CustomBuilder,
    ElementKind.SELECTION_WHEEL: SelectionWheelBuilder,
    ElementKind.INPUT_PANEL: InputPanelBuilder,
}


def element(name: str) -> ElementBuilder:
    return ElementBuilder(name)


def panel(name: str) -> PanelBuilder:
    return PanelBuilder(name)


def stack_panel(name: str, orientation: str | None = None) -> StackPanelBuilder:
    builder = StackPanelBuilder(name)
    if orientation is not None:
        builder.orientation(orientation)
    return builder


def grid(name: str) -> GridBuilder:
    return GridBuilder(name)


def label(name: str) -> LabelBuilder:
    return LabelBuilder(name)


def image(name: str) -> ImageBuilder:
    return ImageBuilder(name)


def button(name: str) -> ButtonBuilder:
    return ButtonBuilder(name)


def toggle(name: str) -> ToggleBuilder:
    return ToggleBuilder(name)


def dropdown(name: str) -> DropdownBuilder:
    return DropdownBuilder(name)


def slider(name: str) -> SliderBuilder:
    return SliderBuilder(name)


def slider_box(name: str) -> SliderBoxBuilder:
    return SliderBoxBuilder(name)


def edit_box(name: str) -> EditBoxBuilder:
    return EditBoxBuilder(name)


def scroll_view(name: str) -> ScrollViewBuilder:
    return ScrollViewBuilder(name)


def scrollbar_box(name: str) -> ScrollbarBoxBuilder:
    return ScrollbarBoxBuilder(name)


def factory(name: str) -> FactoryBuilder:
    return FactoryBuilder(name)


def screen(name: str) -> ScreenBuilder:
    return ScreenBuilder(name)


def custom(name: str) -> CustomBuilder:
    return CustomBuilder(name)


def selection_wheel(name: str) -> SelectionWheelBuilder:
    return SelectionWheelBuilder(name)


def input_panel(name: str) -> InputPanelBuilder:
    return InputPanelBuilder(name)


def _builder_for_extension(name: str, base: RegisteredElement) -> ElementBuilder:
    builder_type = base.builder_type
    if builder_type is None:
        builder_type = BUILDER_BY_KIND.get(base.kind, ElementBuilder) if base.kind else ElementBuilder
    return builder_type(name)


def extend(name: str, base: RegisteredElement) -> ElementBuilder:
    """Create ``name@base`` with the base's builder type, same namespace."""
    _require_token(base)
    return _builder_for_extension(name, base).extend_from(base)


def extend_external(name: str, base: RegisteredElement) -> ElementBuilder:
    """Create ``name@namespace.base`` with the base's builder type."""
    _require_token(base)
    return _builder_for_extension(name, base).extend_across_namespace(base)


# ===--- Animation builder ---=== #


class AnimationBuilder:
    def __init__(self, name: str):
        if not name:
            raise ValueError("Animation name must not be empty")
        self.name = name
        self._properties: dict[str, object] = {}

    def anim_type(self, value: str) -> "AnimationBuilder":
        return self._set("anim_type", value)

    def flip_book(self) -> "AnimationBuilder":
        return self.anim_type("flip_book")

    def wait(self, duration: float) -> "AnimationBuilder":
        self.anim_type("wait")
        return self._set("duration", duration)

    def _tween(self, anim_type: str, start: object, end: object) -> "AnimationBuilder":
        self.anim_type(anim_type)
        self._set("from", start)
        return self._set("to", end)

    def alpha(self, start: float, end: float) -> "AnimationBuilder":
        return self._tween("alpha", start, end)

    def offset(self, start: list, end: list) -> "AnimationBuilder":
        return self._tween("offset", list(start), list(end))

    def size_anim(self, start: list, end: list) -> "AnimationBuilder":
        return self._tween("size", list(start), list(end))

    def color(self, start: list, end: list) -> "AnimationBuilder":
        return self._tween("color", list(start), list(end))

    def uv(self, start: list, end: list) -> "AnimationBuilder":
        return self._tween("uv", list(start), list(end))

    def clip(self, start: float, end: float) -> "AnimationBuilder":
        return self._tween("clip", start, end)

    def initial_uv(self, u: float, v: float) -> "AnimationBuilder":
        return self._set("initial_uv", [u, v])

    def frame_count(self, count: int) -> "AnimationBuilder":
        return self._set("frame_count", count)

    def fps(self, value: int) -> "AnimationBuilder":
        return self._set("fps", value)

    def frame_step(self, step: float) -> "AnimationBuilder":
        return self._set("frame_step", step)

    def duration(self, seconds: float) -> "AnimationBuilder":
        return self._set("duration", seconds)

    def next(self, animation_ref: str) -> "AnimationBuilder":
        return self._set("next", animation_ref)

    def easing(self, value: str) -> "AnimationBuilder":
        return self._set("easing", value)

    def destroy_at_end(self, element_name: str) -> "AnimationBuilder":
        return self._set("destroy_at_end", element_name)

    def reversible(self, value: bool = True) -> "AnimationBuilder":
        return self._set("reversible", value)

    def resettable(self, value: bool = True) -> "AnimationBuilder":
        return self._set("resettable", value)

    def initial_wait(self, seconds: float) -> "AnimationBuilder":
        return self._set("initial_wait", seconds)

    def from_value(self, value: object) -> "AnimationBuilder":
        return self._set("from", value)

    def to_value(self, value: object) -> "AnimationBuilder":
        return self._set("to", value)

    def build(self) -> dict[str, object]:
        return copy.deepcopy(self._properties)

    def _set(self, key: str, value: object) -> "AnimationBuilder":
        self._properties[key] = value
        return self


def animation(name: str) -> AnimationBuilder:
    return AnimationBuilder(name)


# ===--- Namespace registry ---=== #


class Namespace:
    """Named collection of elements serialized to one JSON UI document.

    Serialization order is fixed: ``namespace``, variables, animations,
    elements in registration order, raw entries. A raw entry whose key
    matches an element's full name replaces that element's value.
    """

    def __init__(
        self,
        name: str,
        *,
        filename: str | None = None,
        subdir: str | None = None,
        is_vanilla_override: bool = False,
    ):
        if not name or NAMESPACE_SEPARATOR in name:
            raise ValueError(
                f"Invalid namespace name {name!r}: must be non-empty and "
                f"must not contain '{NAMESPACE_SEPARATOR}'"
            )
        self.name = name
        self.filename = filename
        self.subdir = subdir
        self.is_vanilla_override = is_vanilla_override
        self.elements: dict[str, RegisteredElement] = {}
        self._builders: dict[str, ElementBuilder] = {}
        self._raw_elements: dict[str, dict[str, object]] = {}
        self._animations: dict[str, dict[str, object]] = {}
        self._variables: dict[str, object] = {}

    def __repr__(self) -> str:
        return f"Namespace({self.name!r})"

    def register(self, builder: ElementBuilder) -> RegisteredElement:
        """Add ``builder`` under its current full name and return its token.

        Re-registering a full name replaces the entry but keeps its original
        position in the document.
        """
        if not isinstance(builder, ElementBuilder):
            raise TypeError(f"Cannot register {type(builder).__name__} as an element")
        if builder.name == "namespace":
            raise ValueError("'namespace' is reserved and cannot name an element")
        key = builder.full_name
        self._builders[key] = builder
        token = RegisteredElement(
            name=builder.name,
            namespace=self.name,
            full_name=key,
            kind=builder.kind,
            builder_type=type(builder),
        )
        self.elements[builder.name] = token
        return token

    def add(self, *builders: ElementBuilder) -> "Namespace":
        for builder in builders:
            self.register(builder)
        return self

    set_main = register

    def add_raw(self, path: str, element: Mapping[str, object]) -> "Namespace":
        """Add an unchecked entry keyed by element name or slash path."""
        if not path:
            raise ValueError("Raw element path must not be empty")
        if path == "namespace":
            raise ValueError("'namespace' is reserved and cannot name a raw element")
        self._raw_elements[path] = copy.deepcopy(dict(element))
        return self

    modify = add_raw

    def add_animation(self, anim: AnimationBuilder) -> "Namespace":
        self._animations[anim.name] = anim.build()
        return self

    def add_animations(self, *anims: AnimationBuilder) -> "Namespace":
        for anim in anims:
            self.add_animation(anim)
        return self

    def define_variable(self, name: str, default_value: object) -> "Namespace":
        self._variables[variable_key(name, is_default=True)] = copy.deepcopy(default_value)
        return self

    def define_variables(self, values: Mapping[str, object]) -> "Namespace":
        for name, value in values.items():
            self.define_variable(name, value)
        return self

    def serialize(self) -> dict[str, object]:
        """Flatten the namespace into one JSON-ready document.

        Raises:
            UnresolvedReferenceError: If an element extends, by token, an
                element that is not registered in this namespace.
        """
        self._check_extensions()
        document: dict[str, object] = {"namespace": self.name}
        document.update(copy.deepcopy(self._variables))
        for name, anim in self._animations.items():
            document[name] = copy.deepcopy(anim)
        for key, builder in self._builders.items():
            document[key] = builder.build()
        for path, raw in self._raw_elements.items():
            document[path] = copy.deepcopy(raw)
        return document

    build = serialize

    def to_json(self, pretty: bool = True) -> str:
        return render_json(self.serialize(), pretty)

    def _check_extensions(self) -> None:
        for builder in self._builders.values():
            token = builder.extension_token
            if token is None:
                continue
            if token.namespace != self.name or token.name not in self.elements:
                raise UnresolvedReferenceError(
                    f"Element '{builder.name}' in namespace '{self.name}' extends "
                    f"'{token.qualified_name}', which is not registered in "
                    f"'{self.name}'; use extend_across_namespace() for elements "
                    f"of other namespaces"
                )


def namespace(name: str, filename: str | None = None, subdir: str | None = None) -> Namespace:
    return Namespace(name, filename=filename, subdir=subdir)


def render_json(document: object, pretty: bool = True) -> str:
    if pretty:
        return json.dumps(document, indent=2, ensure_ascii=False)
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False)


# ===--- Quick-start helpers ---=== #


MAIN_ELEMENT_NAME = "main"


@dataclass(frozen=True)
class VanillaScreen:
    namespace: str
    subdir: str | None = None


VANILLA_SCREENS: dict[str, VanillaScreen] = {
    "hud_screen": VanillaScreen("hud"),
    "start_screen": VanillaScreen("start"),
    "pause_screen": VanillaScreen("pause"),
    "death_screen": VanillaScreen("death"),
    "chat_screen": VanillaScreen("chat"),
    "settings_screen": VanillaScreen("settings"),
    "inventory_screen": VanillaScreen("inventory_screen"),
    "chest_screen": VanillaScreen("chest"),
    "furnace_screen": VanillaScreen("furnace"),
    "anvil_screen": VanillaScreen("anvil"),
    "enchanting_screen": VanillaScreen("enchanting"),
    "trade_screen": VanillaScreen("trade"),
    "book_screen": VanillaScreen("book"),
    "sign_screen": VanillaScreen("sign"),
    "server_form": VanillaScreen("server_form"),
    "scoreboards": VanillaScreen("scoreboard"),
    "ui_common": VanillaScreen("common"),
    "settings_sections/controls_section": VanillaScreen(
        "controls_section", "settings_sections"
    ),
    "settings_sections/general_section": VanillaScreen(
        "general_section", "settings_sections"
    ),
    "settings_sections/world_section": VanillaScreen(
        "world_section", "settings_sections"
    ),
    "realmsPlus_sections/content_section": VanillaScreen(
        "realmsPlus_content", "realmsPlus_sections"
    ),
    "marketplace_sdl/sdl_dropdowns": VanillaScreen(
        "sdl_dropdowns", "marketplace_sdl"
    ),
}
"""Vanilla document path -> namespace and subdirectory, for redefine_ui."""


def define_ui(
    namespace_name: str,
    builder: "ElementBuilder | Callable[[Namespace], Namespace | None]",
    filename: str | None = None,
    subdir: str | None = None,
) -> Namespace:
    """Create a namespace from a ``main`` element or a build callback.

    The callback may return the namespace it was given or None.

    Raises:
        ValueError: If a direct element is not named ``main``.
    """
    ns = Namespace(namespace_name, filename=filename, subdir=subdir)
    if isinstance(builder, ElementBuilder):
        if builder.name != MAIN_ELEMENT_NAME:
            raise ValueError(
                f"Main element must be named '{MAIN_ELEMENT_NAME}', got '{builder.name}'"
            )
        ns.register(builder)
        return ns
    result = builder(ns)
    return ns if result is None else result


def define_main(namespace_name: str, main: ElementBuilder, **options: str | None) -> Namespace:
    return define_ui(namespace_name, main, **options)


def redefine_ui(
    screen_path: str, builder: Callable[[Namespace], Namespace | None]
) -> Namespace:
    """Patch a vanilla document listed in VANILLA_SCREENS.

    Raises:
        KeyError: If screen_path is not a known vanilla document.
    """
    if screen_path not in VANILLA_SCREENS:
        raise KeyError(f"Unknown vanilla screen: {screen_path}")
    info = VANILLA_SCREENS[screen_path]
    ns = Namespace(
        info.namespace,
        filename=PurePosixPath(screen_path).name,
        subdir=info.subdir,
        is_vanilla_override=True,
    )
    result = builder(ns)
    return ns if result is None else result


# ===--- Definitions ---=== #


@dataclass(frozen=True)
class UIDefinition:
    """One output document as exported by a source file.

    Attributes:
        namespace: A Namespace, or an already-serialized document mapping
            with a ``namespace`` string key.
        filename: Output filename without ``.json``. Defaults to the source
            file stem.
        subdir: Output subdirectory. Defaults to the source file's directory
            relative to the source root.
        is_vanilla_override: Route the document to vanilla_output_dir and
            leave it out of the artifact index.
    """

    namespace: Namespace | Mapping[str, object]
    filename: str | None = None
    subdir: str | None = None
    is_vanilla_override: bool = False

    def serialize(self) -> dict[str, object]:
        if isinstance(self.namespace, Namespace):
            return self.namespace.serialize()
        document = copy.deepcopy(dict(self.namespace))
        if not isinstance(document.get("namespace"), str):
            raise ValueError("Serialized namespace is missing a 'namespace' string key")
        return document


def coerce_definition(item: object) -> UIDefinition:
    """Normalize one exported value to a UIDefinition.

    Accepts a Namespace, a UIDefinition, a mapping with a ``namespace`` key
    holding a Namespace or a serialized document, or a serialized document.

    Raises:
        TypeError: For any other value.
    """
    if isinstance(item, UIDefinition):
        return item
    if isinstance(item, Namespace):
        return UIDefinition(
            namespace=item,
            filename=item.filename,
            subdir=item.subdir,
            is_vanilla_override=item.is_vanilla_override,
        )
    if isinstance(item, Mapping) and "namespace" in item:
        inner = item["namespace"]
        if isinstance(inner, str):
            return UIDefinition(namespace=item)
        if isinstance(inner, (Namespace, Mapping)):
            return UIDefinition(
                namespace=inner,
                filename=item.get("filename"),
                subdir=item.get("subdir"),
                is_vanilla_override=bool(item.get("is_vanilla_override", False)),
            )
    raise TypeError(
        f"Unsupported UI definition of type {type(item).__name__}; export a "
        f"Namespace, a UIDefinition or a mapping with a 'namespace' key"
    )


# ===--- Source discovery ---=== #


def discover_sources(
    root: Path, pattern: re.Pattern[str] = DEFAULT_SOURCE_PATTERN
) -> list[Path]:
    """Return absolute source file paths under ``root`` in sorted order.

    ``root`` may be a single matching file, a path that names a file once
    ``.py`` is appended, or a directory searched recursively. Files must
    match ``pattern`` by name; directories are always entered. A missing
    root yields an empty list.
    """
    root = Path(root).resolve()
    if root.is_file():
        return [root] if pattern.search(root.name) else []

    if root.name:
        with_suffix = root.with_name(root.name + SOURCE_SUFFIX)
        if with_suffix.is_file():
            return [with_suffix]

    if not root.is_dir():
        return []

    found: list[Path] = []
    _walk_sources(root, pattern, found)
    return found


def _walk_sources(directory: Path, pattern: re.Pattern[str], found: list[Path]) -> None:
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if entry.is_symlink() and entry.is_dir():
            logger.debug("Skipping directory symlink: %s", entry)
        elif entry.is_dir():
            _walk_sources(entry, pattern, found)
        elif entry.is_file() and pattern.search(entry.name):
            found.append(entry)


def source_root(config: CompilerConfig) -> Path:
    """Directory that output subdirectories are mirrored from."""
    resolved = Path(config.source_dir).resolve()
    return resolved if resolved.is_dir() else resolved.parent


# ===--- Definition loader ---=== #


def load_source_module(path: Path) -> ModuleType:
    """Execute a source file as a fresh module.

    The module is registered in ``sys.modules`` only while it executes, and
    its directory is on ``sys.path`` for that time so it can import helper
    modules beside it. Helpers imported from that directory are dropped from
    ``sys.modules`` afterwards, so a same-named helper in another directory
    is loaded fresh for the next source.

    Raises:
        ImportError: If no loader can be created for the path.
        Exception: Anything the source raises while executing.
    """
    module_name = f"uigen_source_{abs(hash(str(path)))}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load UI source: {path}")
    module = importlib.util.module_from_spec(spec)

    search_dir = str(path.parent)
    loaded_before = set(sys.modules)
    sys.path.insert(0, search_dir)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    finally:
        sys.modules.pop(module_name, None)
        if search_dir in sys.path:
            sys.path.remove(search_dir)
        _forget_local_modules(Path(search_dir), set(sys.modules) - loaded_before)
    return module


def _forget_local_modules(directory: Path, names: Iterable[str]) -> None:
    directory = directory.resolve()
    for name in names:
        origin = getattr(sys.modules.get(name), "__file__", None)
        if origin and Path(origin).resolve().is_relative_to(directory):
            sys.modules.pop(name, None)


def extract_definitions(module: ModuleType) -> list[UIDefinition] | None:
    """Read the ``UI`` export. None means the module exports nothing."""
    exported = getattr(module, EXPORT_NAME, None)
    if exported is None:
        return None
    items = exported if isinstance(exported, (list, tuple)) else [exported]
    return [coerce_definition(item) for item in items]


def load_definitions(path: Path) -> list[UIDefinition] | None:
    return extract_definitions(load_source_module(path))


# ===--- Output planner ---=== #


@dataclass(frozen=True)
class CompiledArtifact:
    """One serialized document ready to write.

    Attributes:
        source_path: Source file, relative to the working directory when
            possible, with forward slashes.
        output_path: Target file path as planned from the config.
        namespace: Serialized namespace document.
        text: JSON text written to output_path.
        is_vanilla_override: True when the document patches a vanilla file.
    """

    source_path: str
    output_path: Path
    namespace: dict[str, object]
    text: str
    is_vanilla_override: bool = False


def display_path(path: Path) -> str:
    """Return ``path`` relative to the working directory if it is below it."""
    resolved = Path(path).resolve()
    try:
        return resolved.relative_to(Path.cwd()).as_posix()
    except ValueError:
        return resolved.as_posix()


def plan_output_path(
    definition: UIDefinition, source_path: Path, config: CompilerConfig
) -> Path:
    """Map a definition to its output file.

    Explicit filename and subdir win. Otherwise the filename is the source
    stem and the subdir mirrors the source's directory under the source
    root. Vanilla overrides are rooted at vanilla_output_dir and never
    mirror the source directory.
    """
    filename = definition.filename or Path(source_path).stem
    if definition.subdir is not None:
        subdir = definition.subdir
    elif definition.is_vanilla_override:
        subdir = ""
    else:
        subdir = _mirrored_subdir(Path(source_path), source_root(config))

    root = config.vanilla_output_dir if definition.is_vanilla_override else config.output_dir
    if subdir:
        return Path(root) / subdir / f"{filename}.json"
    return Path(root) / f"{filename}.json"


def _mirrored_subdir(source_path: Path, root: Path) -> str:
    try:
        relative = source_path.resolve().parent.relative_to(root)
    except ValueError:
        return ""
    text = relative.as_posix()
    return "" if text == "." else text


def compile_definition(
    definition: UIDefinition, source_path: Path, config: CompilerConfig
) -> CompiledArtifact:
    document = definition.serialize()
    return CompiledArtifact(
        source_path=display_path(source_path),
        output_path=plan_output_path(definition, source_path, config),
        namespace=document,
        text=render_json(document, config.pretty_print),
        is_vanilla_override=definition.is_vanilla_override,
    )


def compile_source(path: Path, config: CompilerConfig) -> list[CompiledArtifact] | None:
    """Load one source file and compile every definition it exports.

    Returns:
        One artifact per definition, or None when the file has no ``UI``
        export.

    Raises:
        Exception: Anything raised while loading, extracting or serializing.
            The orchestrator turns it into a CompilationError.
    """
    definitions = load_definitions(path)
    if definitions is None:
        return None
    return [compile_definition(d, path, config) for d in definitions]


# ===--- Write result types ---=== #


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Path written, as planned (relative paths stay relative).
        path: Absolute path of the written file.
        line_count: Number of newline-separated lines in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


def write_artifact(artifact: CompiledArtifact) -> FileWriteResult:
    """Write one artifact, creating its directory first.

    Raises:
        OSError: Propagated directly if the filesystem write fails.
    """
    output_path = Path(artifact.output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    encoded = artifact.text.encode("utf-8")
    output_path.write_bytes(encoded)
    logger.info("  Generated: %s", output_path.as_posix())
    return FileWriteResult(
        filename=output_path.as_posix(),
        path=output_path.resolve(),
        line_count=artifact.text.count("\n") + 1 if artifact.text else 0,
        byte_count=len(encoded),
    )


def write_artifacts(artifacts: Iterable[CompiledArtifact]) -> tuple[FileWriteResult, ...]:
    """Write artifacts in order without rollback on failure."""
    return tuple(write_artifact(a) for a in artifacts)


def prepare_output_dir(output_dir: Path) -> None:
    Path(output_dir).mkdir(parents=True, exist_ok=True)


def clean_output_dir(output_dir: Path) -> int:
    """Delete ``.json`` files and subdirectories directly under output_dir.

    Returns:
        Number of entries removed.
    """
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        return 0
    removed = 0
    for entry in sorted(output_dir.iterdir()):
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
            removed += 1
        elif entry.suffix == ".json":
            entry.unlink()
            removed += 1
    logger.debug("Cleaned %d entries from %s", removed, output_dir)
    return removed


# ===--- Artifact index ---=== #


def _read_json_file(path: Path | None, label: str) -> object | None:
    if path is None or not Path(path).is_file():
        return None
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (ValueError, UnicodeDecodeError) as err:
        logger.warning("Warning: Could not parse existing %s (%s): %s", label, path, err)
        return None


def load_ui_defs(path: Path) -> list[str]:
    """Return the entries of an existing index, or [] if absent or unreadable."""
    data = _read_json_file(path, "ui_defs file")
    if data is None:
        return []
    entries = data.get("ui_defs") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        logger.warning("Warning: %s has no 'ui_defs' list; starting empty", path)
        return []
    return [entry for entry in entries if isinstance(entry, str)]


def normalize_entry(entry: str) -> str:
    return entry.replace("\\", "/")


def is_owned_entry(entry: str, owned_prefix: str) -> bool:
    """True when the entry lies under the managed output tree."""
    return PurePosixPath(normalize_entry(entry)).is_relative_to(
        PurePosixPath(normalize_entry(owned_prefix))
    )


def index_entry(output_path: Path, config: CompilerConfig) -> str:
    """Index entry for a generated file, honoring ui_defs_prefix."""
    if config.ui_defs_prefix:
        try:
            relative = Path(output_path).relative_to(config.output_dir)
        except ValueError:
            return normalize_entry(Path(output_path).as_posix())
        prefix = normalize_entry(config.ui_defs_prefix).rstrip("/")
        return f"{prefix}/{relative.as_posix()}"
    return normalize_entry(Path(output_path).as_posix())


def reconcile_ui_defs(
    existing: Iterable[str], generated: Iterable[str], owned_prefix: str
) -> list[str]:
    """Merge freshly generated entries into an existing index.

    Owned entries of the previous run are dropped; foreign entries are kept
    in their original order, followed by generated entries in compile order.
    No entry appears twice.
    """
    merged: list[str] = []
    seen: set[str] = set()
    for entry in existing:
        if is_owned_entry(entry, owned_prefix) or entry in seen:
            continue
        merged.append(entry)
        seen.add(entry)
    for entry in generated:
        normalized = normalize_entry(entry)
        if normalized in seen:
            continue
        merged.append(normalized)
        seen.add(normalized)
    return merged


def write_json_file(path: Path, document: object, pretty: bool) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_json(document, pretty), encoding="utf-8")
    logger.info("Updated: %s", path.as_posix())


def write_global_variables(
    path: Path | None, variables: Mapping[str, object], pretty: bool
) -> dict[str, object] | None:
    """Write the global variables side file if there is anything to write.

    The file is replaced with exactly the registered variables.

    Returns:
        The document written, or None when nothing was written.
    """
    if path is None or not variables:
        return None
    document = copy.deepcopy(dict(variables))
    write_json_file(path, document, pretty)
    return document


# ===--- Compiler ---=== #


@dataclass(frozen=True)
class CompilationError:
    """A source file that failed to compile. Other files are unaffected."""

    file: str
    message: str
    stack: str | None = None


@dataclass(frozen=True)
class CompilationResult:
    """Everything one compile() run produced.

    Attributes:
        artifacts: Compiled documents in compile order.
        files: Write results for artifacts, same order.
        ui_defs: Index entries written to ui_defs_path.
        global_variables: Registered global variables, None if there were
            none.
        errors: One entry per failed source file.
        duration: Wall time of the run in seconds.
    """

    artifacts: tuple[CompiledArtifact, ...]
    files: tuple[FileWriteResult, ...]
    ui_defs: tuple[str, ...]
    global_variables: dict[str, object] | None
    errors: tuple[CompilationError, ...]
    duration: float

    @property
    def ok(self) -> bool:
        return not self.errors


class Compiler:
    """Runs discovery, compilation, writing and index reconciliation.

    One instance may run compile() repeatedly; each run starts from an empty
    artifact and error list. Global variables registered on the instance
    are written by every run.
    """

    def __init__(self, config: CompilerConfig | None = None):
        self.config = config if config is not None else CompilerConfig()
        self.global_variables: dict[str, object] = {}

    def add_global_variable(self, name: str, value: object) -> None:
        key = name if name.startswith(VARIABLE_MARKER) else f"{VARIABLE_MARKER}{name}"
        self.global_variables[key] = value

    def compile(self) -> CompilationResult:
        """Compile every discovered source and update the artifact index.

        Per-file failures are collected into the result. Filesystem errors
        while preparing, writing or updating the index propagate.

        Raises:
            OSError: The output tree or index could not be written.
        """
        config = self.config
        started = time.perf_counter()

        existing_defs = load_ui_defs(config.ui_defs_path)
        prepare_output_dir(config.output_dir)
        if config.clean:
            clean_output_dir(config.output_dir)

        sources = discover_sources(config.source_dir, config.source_pattern)
        artifacts: list[CompiledArtifact] = []
        errors: list[CompilationError] = []
        for source in sources:
            self._compile_file(source, artifacts, errors)

        files = write_artifacts(artifacts)

        generated = [
            index_entry(a.output_path, config)
            for a in artifacts
            if not a.is_vanilla_override
        ]
        ui_defs = reconcile_ui_defs(existing_defs, generated, config.owned_prefix)
        write_json_file(config.ui_defs_path, {"ui_defs": ui_defs}, config.pretty_print)

        write_global_variables(
            config.global_variables_path, self.global_variables, config.pretty_print
        )

        return CompilationResult(
            artifacts=tuple(artifacts),
            files=files,
            ui_defs=tuple(ui_defs),
            global_variables=dict(self.global_variables) or None,
            errors=tuple(errors),
            duration=time.perf_counter() - started,
        )

    def _compile_file(
        self,
        source: Path,
        artifacts: list[CompiledArtifact],
        errors: list[CompilationError],
    ) -> None:
        shown = display_path(source)
        logger.info("Compiling: %s", shown)
        try:
            compiled = compile_source(source, self.config)
        except Exception as err:
            errors.append(
                CompilationError(
                    file=shown,
                    message=str(err) or type(err).__name__,
                    stack=traceback.format_exc(),
                )
            )
            logger.debug("Failed: %s", shown, exc_info=True)
            return
        if compiled is None:
            logger.info("  Skipped: %s (no %s export)", shown, EXPORT_NAME)
            return
        artifacts.extend(compiled)


def compile_ui(config: CompilerConfig | None = None, **options: object) -> CompilationResult:
    """Compile with ``config``, or with defaults overridden by ``options``.

    Raises:
        TypeError: If both a config and options are given.
    """
    if config is not None and options:
        raise TypeError(
            f"Pass either a config or options, not both (got {', '.join(sorted(options))})"
        )
    if config is None:
        config = CompilerConfig.from_options(**options)
    return Compiler(config).compile()


# ===--- Summary report ---=== #


STACK_EXCERPT_LINES = 2


def stack_excerpt(stack: str | None, limit: int = STACK_EXCERPT_LINES) -> list[str]:
    """Return the innermost frame lines of a traceback, without the message."""
    if not stack:
        return []
    lines = [
        line.strip()
        for line in stack.strip().splitlines()
        if line.strip() and line.strip().strip("^~")
    ]
    frames = lines[1:-1] if lines and lines[0].startswith("Traceback") else lines[:-1]
    return frames[-limit:]


def format_compilation_summary(
    result: CompilationResult, config: CompilerConfig | None = None
) -> str:
    """Render the console report for one run. Ends with a single newline.

    The path header is included only when a config is given.
    """
    lines: list[str] = ["UI compilation summary:", ""]
    if config is not None:
        lines.append(f"  Source:     {Path(config.source_dir).resolve()}")
        lines.append(f"  Output:     {Path(config.output_dir).resolve()}")
        lines.append(f"  UI defs:    {config.ui_defs_path}")
    lines.append(f"  Index:      {len(result.ui_defs)} entries")

    if result.files:
        lines.append("")
        lines.append("  Files written:")
        width = max(len(f.filename) for f in result.files)
        for file_result in result.files:
            lines.append(
                f"    {file_result.filename:<{width}}  {file_result.line_count:>6,} lines"
            )

    lines.append("")
    lines.append(
        f"  Compiled {len(result.artifacts)} file(s) in {result.duration:.2f}s"
    )

    if result.errors:
        lines.append("")
        lines.append(f"  {len(result.errors)} error(s):")
        for error in result.errors:
            lines.append(f"    - {error.file}: {error.message}")
            for frame in stack_excerpt(error.stack):
                lines.append(f"      {frame}")

    lines.append("")
    return "\n".join(lines)


def print_compilation_summary(
    result: CompilationResult, config: CompilerConfig | None = None
) -> None:
    print(format_compilation_summary(result, config), end="")


# ===--- Main ---=== #


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    try:
        config = validate_config(args)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    if args.watch:
        print("Watch mode is not implemented; compiling once.")

    try:
        result = Compiler(config).compile()
    except OSError as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err

    print_compilation_summary(result, config)
    if result.errors:
        raise SystemExit(1)


if __name__ == "__main__":
    # Sources import builders from "uigen"; they must see this module.
    sys.modules.setdefault("uigen", sys.modules[__name__])
    main()
