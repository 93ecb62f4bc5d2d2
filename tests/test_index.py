import json
import logging
from collections.abc import Callable
from pathlib import Path

import pytest

import uigen


def test_t_01_reconcile_keeps_foreign_first_then_generated() -> None:
    existing = [
        "ui/vendor_screen.json",
        "ui/__generated__/old.json",
        "ui/other.json",
    ]
    generated = ["ui/__generated__/hud.json", "ui/__generated__/menus/pause.json"]

    merged = uigen.reconcile_ui_defs(existing, generated, "ui/__generated__")

    assert merged == [
        "ui/vendor_screen.json",
        "ui/other.json",
        "ui/__generated__/hud.json",
        "ui/__generated__/menus/pause.json",
    ]


def test_t_02_reconcile_never_duplicates() -> None:
    existing = ["ui/a.json", "ui/a.json", "ui/__generated__/hud.json"]
    generated = ["ui/__generated__/hud.json", "ui/a.json", "ui\\__generated__\\hud.json"]

    merged = uigen.reconcile_ui_defs(existing, generated, "ui/__generated__")

    assert merged == ["ui/a.json", "ui/__generated__/hud.json"]


def test_t_03_owned_entries_lie_under_output_prefix() -> None:
    assert uigen.is_owned_entry("ui/__generated__/x.json", "ui/__generated__")
    assert uigen.is_owned_entry("ui\\__generated__\\x.json", "ui/__generated__")
    assert uigen.is_owned_entry("./ui/__generated__/menus/x.json", "ui/__generated__/")
    assert not uigen.is_owned_entry("ui/not__generated__x.json", "ui/__generated__")
    assert not uigen.is_owned_entry("vendor/__generated__/x.json", "ui/__generated__")


def test_t_14_foreign_entries_sharing_a_segment_with_output_dir_are_kept() -> None:
    existing = ["ui/vendor_screen.json", "gen/ui/old.json"]

    merged = uigen.reconcile_ui_defs(existing, ["gen/ui/hud.json"], "gen/ui")

    assert merged == ["ui/vendor_screen.json", "gen/ui/hud.json"]


def test_t_04_load_ui_defs_missing_file_is_empty(tmp_path: Path) -> None:
    assert uigen.load_ui_defs(tmp_path / "_ui_defs.json") == []


def test_t_05_load_ui_defs_malformed_file_warns_and_is_empty(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "_ui_defs.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="uigen"):
        assert uigen.load_ui_defs(path) == []

    assert any("Could not parse" in record.getMessage() for record in caplog.records)


def test_t_06_load_ui_defs_reads_entries(tmp_path: Path) -> None:
    path = tmp_path / "_ui_defs.json"
    path.write_text(json.dumps({"ui_defs": ["ui/a.json", 3]}), encoding="utf-8")

    assert uigen.load_ui_defs(path) == ["ui/a.json"]


def test_t_07_index_entry_honors_prefix(
    make_config: Callable[..., uigen.CompilerConfig],
) -> None:
    config = make_config(ui_defs_prefix="ui/__generated__")
    output = Path(config.output_dir) / "menus" / "pause.json"

    assert uigen.index_entry(output, config) == "ui/__generated__/menus/pause.json"
    assert config.owned_prefix == "ui/__generated__"


def test_t_08_plan_output_path_mirrors_source_subdir(
    source_dir: Path,
    write_source: Callable[[str, str], Path],
    make_config: Callable[..., uigen.CompilerConfig],
) -> None:
    config = make_config()
    source = write_source("menus/pause.py", "")
    definition = uigen.UIDefinition(namespace={"namespace": "pause"})

    planned = uigen.plan_output_path(definition, source, config)

    assert planned == Path(config.output_dir) / "menus" / "pause.json"


def test_t_09_plan_output_path_explicit_overrides_win(
    write_source: Callable[[str, str], Path],
    make_config: Callable[..., uigen.CompilerConfig],
) -> None:
    config = make_config()
    source = write_source("menus/pause.py", "")
    definition = uigen.UIDefinition(
        namespace={"namespace": "pause"}, filename="custom", subdir=""
    )

    planned = uigen.plan_output_path(definition, source, config)

    assert planned == Path(config.output_dir) / "custom.json"


def test_t_10_plan_output_path_routes_vanilla_overrides(
    write_source: Callable[[str, str], Path],
    make_config: Callable[..., uigen.CompilerConfig],
) -> None:
    config = make_config()
    source = write_source("patches/general.py", "")
    definition = uigen.UIDefinition(
        namespace={"namespace": "general_section"},
        filename="general_section",
        subdir="settings_sections",
        is_vanilla_override=True,
    )

    planned = uigen.plan_output_path(definition, source, config)

    assert planned == Path(config.vanilla_output_dir) / "settings_sections" / "general_section.json"


def test_t_11_global_variables_replace_existing_file(tmp_path: Path) -> None:
    path = tmp_path / "_global_variables.json"
    path.write_text(json.dumps({"$old": 1, "$shared": "old"}), encoding="utf-8")

    written = uigen.write_global_variables(path, {"$shared": "new"}, pretty=False)

    assert written == {"$shared": "new"}
    assert json.loads(path.read_text(encoding="utf-8")) == {"$shared": "new"}


def test_t_12_global_variables_skipped_when_empty_or_disabled(tmp_path: Path) -> None:
    path = tmp_path / "_global_variables.json"

    assert uigen.write_global_variables(path, {}, pretty=True) is None
    assert uigen.write_global_variables(None, {"$a": 1}, pretty=True) is None
    assert not path.exists()


def test_t_13_clean_output_dir_removes_json_and_subdirectories(tmp_path: Path) -> None:
    output = tmp_path / "__generated__"
    (output / "nested").mkdir(parents=True)
    (output / "nested" / "stale.json").write_text("{}", encoding="utf-8")
    (output / "stale.json").write_text("{}", encoding="utf-8")
    (output / "README.txt").write_text("keep", encoding="utf-8")

    removed = uigen.clean_output_dir(output)

    assert removed == 2
    assert sorted(p.name for p in output.iterdir()) == ["README.txt"]
