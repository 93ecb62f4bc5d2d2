from pathlib import Path

import uigen


def _make_result(
    *,
    files: tuple[uigen.FileWriteResult, ...] = (),
    errors: tuple[uigen.CompilationError, ...] = (),
    ui_defs: tuple[str, ...] = (),
    artifact_count: int = 0,
) -> uigen.CompilationResult:
    artifacts = tuple(
        uigen.CompiledArtifact(
            source_path=f"scripts/ui/s{i}.py",
            output_path=Path(f"ui/__generated__/s{i}.json"),
            namespace={"namespace": f"s{i}"},
            text="{}",
        )
        for i in range(artifact_count)
    )
    return uigen.CompilationResult(
        artifacts=artifacts,
        files=files,
        ui_defs=ui_defs,
        global_variables=None,
        errors=errors,
        duration=1.234,
    )


def test_t_01_summary_reports_count_and_duration() -> None:
    text = uigen.format_compilation_summary(_make_result(artifact_count=3))

    assert text.startswith("UI compilation summary:\n")
    assert "  Compiled 3 file(s) in 1.23s" in text
    assert text.endswith("\n")
    assert not text.endswith("\n\n")
    assert "error(s)" not in text


def test_t_02_summary_lists_written_files_aligned() -> None:
    files = (
        uigen.FileWriteResult("ui/__generated__/hud.json", Path("/x/hud.json"), 12, 100),
        uigen.FileWriteResult("ui/__generated__/menus/pause.json", Path("/x/p.json"), 1200, 9000),
    )

    text = uigen.format_compilation_summary(_make_result(files=files))

    assert "  Files written:" in text
    assert "    ui/__generated__/hud.json          " in text
    assert "1,200 lines" in text


def test_t_03_summary_lists_errors_with_two_stack_lines() -> None:
    stack = (
        "Traceback (most recent call last):\n"
        '  File "uigen.py", line 10, in compile_source\n'
        "    definitions = load_definitions(path)\n"
        '  File "scripts/ui/bad.py", line 1, in <module>\n'
        "    raise ValueError('nope')\n"
        "ValueError: nope\n"
    )
    errors = (uigen.CompilationError(file="scripts/ui/bad.py", message="nope", stack=stack),)

    text = uigen.format_compilation_summary(_make_result(errors=errors))

    assert "  1 error(s):" in text
    assert "    - scripts/ui/bad.py: nope" in text
    assert '      File "scripts/ui/bad.py", line 1, in <module>' in text
    assert "      raise ValueError('nope')" in text
    assert "load_definitions(path)" not in text


def test_t_04_stack_excerpt_handles_missing_stack() -> None:
    assert uigen.stack_excerpt(None) == []
    assert uigen.stack_excerpt("") == []


def test_t_05_summary_includes_paths_when_config_given(tmp_path: Path) -> None:
    config = uigen.CompilerConfig(output_dir=tmp_path / "gen")

    text = uigen.format_compilation_summary(_make_result(ui_defs=("a.json",)), config)

    assert f"  Output:     {(tmp_path / 'gen').resolve()}" in text
    assert "  Index:      1 entries" in text
