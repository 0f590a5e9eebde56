from __future__ import annotations

import ast
from pathlib import Path

import pytest

BACKEND_DIR = Path(__file__).resolve().parents[1]
PACKAGE_DIR = BACKEND_DIR / "mapserver"
SCRIPTS_DIR = BACKEND_DIR / "scripts"

EXPECTED_PACKAGE_FILES = {
    "__init__.py",
    "directions.py",
    "graph_builder.py",
    "graph_db.py",
    "logging_utils.py",
    "main.py",
    "map_errors.py",
    "map_service.py",
    "models.py",
    "prefix_index.py",
    "rasterer.py",
    "records.py",
    "router.py",
    "settings.py",
}

EXPECTED_SCRIPT_FILES = {
    "build_map_records.py",
}


def _py_files(directory: Path) -> list[Path]:
    return sorted(path for path in directory.glob("*.py") if path.is_file())


def _is_main_guard(node: ast.AST) -> bool:
    if not isinstance(node, ast.If) or not isinstance(node.test, ast.Compare):
        return False
    test = node.test
    return (
        isinstance(test.left, ast.Name)
        and test.left.id == "__name__"
        and len(test.comparators) == 1
        and isinstance(test.comparators[0], ast.Constant)
        and test.comparators[0].value == "__main__"
    )


def test_package_inventory_is_complete() -> None:
    assert {path.name for path in _py_files(PACKAGE_DIR)} == EXPECTED_PACKAGE_FILES


def test_script_inventory_is_complete() -> None:
    assert {path.name for path in _py_files(SCRIPTS_DIR)} == EXPECTED_SCRIPT_FILES


@pytest.mark.parametrize("module_path", _py_files(PACKAGE_DIR) + _py_files(SCRIPTS_DIR), ids=lambda p: p.name)
def test_module_parses(module_path: Path) -> None:
    ast.parse(module_path.read_text(encoding="utf-8"), filename=str(module_path))


@pytest.mark.parametrize("script_path", _py_files(SCRIPTS_DIR), ids=lambda p: p.name)
def test_scripts_have_main_contract(script_path: Path) -> None:
    module = ast.parse(script_path.read_text(encoding="utf-8"), filename=str(script_path))
    assert any(isinstance(node, ast.FunctionDef) and node.name == "main" for node in module.body)
    assert any(_is_main_guard(node) for node in module.body)
