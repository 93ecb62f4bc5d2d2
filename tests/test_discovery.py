import sys
from collections.abc import Callable
from pathlib import Path

import pytest

import uigen


def test_t_01_missing_root_yields_empty_list(tmp_path: Path) -> None:
    assert uigen.discover_sources(tmp_path / "missing") == []


def test_t_02_directory_walk_is_sorted_and_recursive(
    source_dir: Path, write_source: Callable[[str, str], Path]
) -> None:
    write_source("b.py", "")
    write_source("a.py", "")
    write_source("screens/c.py", "")

    found = uigen.discover_sources(source_dir)

    assert [p.relative_to(source_dir.resolve()).as_posix() for p in found] == [
        "a.py",
        "b.py",
        "screens/c.py",
    ]
    assert all(p.is_absolute() for p in found)


def test_t_03_excluded_files_skipped_at_any_depth(
    source_dir: Path, write_source: Callable[[str, str], Path]
) -> None:
    write_source("_shared.py", "")
    write_source("_private/inner.py", "")
    write_source("_private/_helpers.py", "")
    write_source("notes.txt", "")

    found = uigen.discover_sources(source_dir)

    assert [p.name for p in found] == ["inner.py"]


def test_t_04_single_file_root(write_source: Callable[[str, str], Path]) -> None:
    path = write_source("hud.py", "")

    assert uigen.discover_sources(path) == [path.resolve()]


def test_t_05_root_with_implied_suffix(
    source_dir: Path, write_source: Callable[[str, str], Path]
) -> None:
    path = write_source("hud.py", "")

    assert uigen.discover_sources(source_dir / "hud") == [path.resolve()]


def test_t_06_custom_pattern(
    source_dir: Path, write_source: Callable[[str, str], Path]
) -> None:
    write_source("hud_ui.py", "")
    write_source("hud.py", "")
    pattern = uigen.compile_source_pattern(r"_ui\.py$")

    assert [p.name for p in uigen.discover_sources(source_dir, pattern)] == ["hud_ui.py"]


def test_t_07_loader_reads_ui_export(write_source: Callable[[str, str], Path]) -> None:
    path = write_source(
        "hud.py",
        """
        from uigen import Namespace, panel

        ns = Namespace("hud")
        ns.register(panel("main"))
        UI = ns
        """,
    )

    definitions = uigen.load_definitions(path)

    assert definitions is not None
    assert len(definitions) == 1
    assert definitions[0].namespace.name == "hud"


def test_t_08_loader_returns_none_without_export(
    write_source: Callable[[str, str], Path]
) -> None:
    path = write_source("util.py", "VALUE = 1\n")

    assert uigen.load_definitions(path) is None


def test_t_09_loader_imports_siblings_and_cleans_sys_path(
    write_source: Callable[[str, str], Path],
) -> None:
    write_source("_colors.py", "RED = [1, 0, 0]\n")
    path = write_source(
        "hud.py",
        """
        from _colors import RED
        from uigen import define_main, label

        UI = define_main("hud_colors", label("main").color(RED))
        """,
    )

    definitions = uigen.load_definitions(path)

    assert definitions[0].serialize()["main"]["color"] == [1, 0, 0]
    assert str(path.parent) not in sys.path
    sys.modules.pop("_colors", None)


def test_t_10_list_export_and_mapping_forms(
    write_source: Callable[[str, str], Path]
) -> None:
    path = write_source(
        "multi.py",
        """
        from uigen import Namespace, UIDefinition, panel

        first = Namespace("first")
        first.register(panel("main"))
        UI = [
            first,
            UIDefinition(namespace={"namespace": "second"}, filename="two"),
            {"namespace": {"namespace": "third"}, "subdir": "extra"},
        ]
        """,
    )

    definitions = uigen.load_definitions(path)

    assert [d.serialize()["namespace"] for d in definitions] == ["first", "second", "third"]
    assert definitions[1].filename == "two"
    assert definitions[2].subdir == "extra"


def test_t_11_coerce_definition_rejects_unknown_values() -> None:
    with pytest.raises(TypeError):
        uigen.coerce_definition("hud")
    with pytest.raises(TypeError):
        uigen.coerce_definition({"name": "hud"})


def test_t_12_same_named_helpers_resolve_per_directory(
    write_source: Callable[[str, str], Path],
) -> None:
    write_source("a/theme.py", "COLOR = 'red'\n")
    write_source("b/theme.py", "COLOR = 'blue'\n")
    body = """
        import theme
        from uigen import define_main, label

        UI = define_main("{name}", label("main").color(theme.COLOR))
        """
    screen_a = write_source("a/screen_a.py", body.format(name="sa"))
    screen_b = write_source("b/screen_b.py", body.format(name="sb"))

    colors = {
        d.serialize()["namespace"]: d.serialize()["main"]["color"]
        for path in (screen_a, screen_b)
        for d in uigen.load_definitions(path)
    }

    assert colors == {"sa": "red", "sb": "blue"}
    assert "theme" not in sys.modules


def test_t_13_directory_symlink_loops_are_not_followed(
    source_dir: Path, write_source: Callable[[str, str], Path]
) -> None:
    write_source("screens/hud.py", "")
    loop = source_dir / "screens" / "loop"
    try:
        loop.symlink_to(source_dir, target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported here")

    found = uigen.discover_sources(source_dir)

    assert [p.name for p in found] == ["hud.py"]
