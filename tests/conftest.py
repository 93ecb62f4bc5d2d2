import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import uigen  # noqa: E402


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    root = tmp_path / "scripts" / "ui"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def write_source(source_dir: Path) -> Callable[[str, str], Path]:
    def _write_source(relative: str, body: str) -> Path:
        path = source_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
        return path

    return _write_source


@pytest.fixture
def make_config(tmp_path: Path, source_dir: Path) -> Callable[..., uigen.CompilerConfig]:
    def _make_config(**overrides: object) -> uigen.CompilerConfig:
        options: dict[str, object] = {
            "source_dir": source_dir,
            "output_dir": tmp_path / "ui" / "__generated__",
            "ui_defs_path": tmp_path / "ui" / "_ui_defs.json",
            "global_variables_path": tmp_path / "ui" / "_global_variables.json",
            "vanilla_output_dir": tmp_path / "ui",
        }
        options.update(overrides)
        return uigen.CompilerConfig(**options)

    return _make_config
